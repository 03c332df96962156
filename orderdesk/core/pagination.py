"""
Offset and cursor pagination helpers shared by the listing views.

Offset pages answer {items, pagination: {page, limit, total, totalPages}}.
Cursor pages answer {items, pagination: {limit, nextCursor, hasMore}}.
"""
import base64
import binascii
import json
import math
from dataclasses import dataclass
from datetime import datetime, timezone as dt_timezone

from django.conf import settings
from django.db.models import Q
from django.utils import timezone
from django.utils.dateparse import parse_datetime
from rest_framework.exceptions import ValidationError


def _allowed_limits():
    return tuple(getattr(settings, 'PAGINATION_ALLOWED_LIMITS', (10, 20, 50, 100)))


def _default_limit():
    return getattr(settings, 'PAGINATION_DEFAULT_LIMIT', 10)


def parse_limit(raw_limit):
    """Limits outside the allow-list fall back to the default"""
    try:
        limit = int(raw_limit)
    except (TypeError, ValueError):
        return _default_limit()
    if limit not in _allowed_limits():
        return _default_limit()
    return limit


def parse_page(raw_page):
    try:
        page = int(raw_page)
    except (TypeError, ValueError):
        return getattr(settings, 'PAGINATION_DEFAULT_PAGE', 1)
    return page if page >= 1 else 1


def parse_pagination_params(query_params):
    """Return (page, limit) from request query params"""
    return parse_page(query_params.get('page')), parse_limit(query_params.get('limit'))


def calculate_offset(page, limit):
    return (page - 1) * limit


def build_pagination_response(page, limit, total):
    return {
        'page': page,
        'limit': limit,
        'total': total,
        'totalPages': math.ceil(total / limit) if limit else 0,
    }


def paginate_queryset(queryset, page, limit):
    """
    Slice an ordered queryset into one offset page.

    Returns (rows, pagination). The queryset must already be ordered.
    """
    total = queryset.count()
    offset = calculate_offset(page, limit)
    rows = list(queryset[offset:offset + limit])
    return rows, build_pagination_response(page, limit, total)


# --- Cursor pagination ---

@dataclass(frozen=True)
class Cursor:
    created_at: datetime
    id: int


def encode_cursor(created_at, pk):
    payload = json.dumps({'created_at': created_at.isoformat(), 'id': pk})
    return base64.urlsafe_b64encode(payload.encode('utf-8')).decode('ascii')


def decode_cursor(raw_cursor):
    """Parse an opaque cursor, raising ValidationError when it is malformed"""
    try:
        padded = raw_cursor + '=' * (-len(raw_cursor) % 4)
        payload = json.loads(base64.urlsafe_b64decode(padded.encode('ascii')).decode('utf-8'))
        created_at = parse_datetime(payload['created_at'])
        pk = payload['id']
    except (binascii.Error, UnicodeError, ValueError, TypeError, KeyError):
        raise ValidationError('Invalid cursor format')

    if created_at is None or not isinstance(pk, int) or isinstance(pk, bool):
        raise ValidationError('Invalid cursor format')
    if timezone.is_naive(created_at):
        created_at = timezone.make_aware(created_at, dt_timezone.utc)
    return Cursor(created_at=created_at, id=pk)


def cursor_paginate(queryset, raw_cursor, limit):
    """
    Keyset page over (created_at DESC, id DESC).

    Fetches limit + 1 rows to learn whether another page exists. Rows
    inserted after the first page was served can only sort before the
    cursor, so walking the pages never repeats or skips older rows.
    """
    queryset = queryset.order_by('-created_at', '-id')
    if raw_cursor:
        cursor = decode_cursor(raw_cursor)
        queryset = queryset.filter(
            Q(created_at__lt=cursor.created_at) |
            Q(created_at=cursor.created_at, id__lt=cursor.id)
        )

    rows = list(queryset[:limit + 1])
    has_more = len(rows) > limit
    rows = rows[:limit]

    next_cursor = None
    if has_more and rows:
        last = rows[-1]
        next_cursor = encode_cursor(last.created_at, last.id)

    return rows, {
        'limit': limit,
        'nextCursor': next_cursor,
        'hasMore': has_more,
    }
