"""
Versioned read-through caching for listing endpoints.

Each resource family ("orders", "stock", ...) owns an integer version
counter stored in Redis. Cache keys embed the current version, so bumping
the counter orphans every page cached under the old version without
enumerating keys. Orphaned pages simply expire on their TTL.

A Redis outage never breaks a request: reads degrade to a miss and bumps
become logged no-ops.
"""
import json
import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlencode

from django.core.cache import cache
from django.core.serializers.json import DjangoJSONEncoder
from rest_framework.response import Response

logger = logging.getLogger(__name__)

ORDERS = 'orders'
STOCK = 'stock'
ITEMS = 'items'
CUSTOMERS = 'customers'
FEEDBACKS = 'feedbacks'

CACHE_VERSION_KEYS = {
    ORDERS: 'cache:v:orders',
    STOCK: 'cache:v:stock',
    ITEMS: 'cache:v:items',
    CUSTOMERS: 'cache:v:customers',
    FEEDBACKS: 'cache:v:feedbacks',
}

CACHE_HIT = 'HIT'
CACHE_MISS = 'MISS'


@dataclass
class CachedPage:
    data: Any
    cache_status: str

    @property
    def hit(self):
        return self.cache_status == CACHE_HIT


def get_version_key(resource):
    try:
        return CACHE_VERSION_KEYS[resource]
    except KeyError:
        raise ValueError(f"Unknown cache resource: {resource}")


def get_cache_version(resource):
    """
    Current version for a resource family, initialized to 1 when absent.

    Never raises: if the store is unreachable the caller gets 1 and the
    subsequent page lookup will simply miss.
    """
    version_key = get_version_key(resource)
    try:
        version = cache.get(version_key)
        if version is None:
            # add() is set-if-absent, so concurrent initializers agree on one value
            if cache.add(version_key, 1, timeout=None):
                logger.debug(f"Initialized cache version for {resource}")
                return 1
            version = cache.get(version_key) or 1
        return int(version)
    except Exception as e:
        logger.warning(f"Cache unavailable reading version for {resource}: {e}")
        return 1


def bump_cache_version(resource):
    """
    Atomically increment a resource family's version.

    Returns the new version, or None if the store could not be reached.
    A failed bump is logged and swallowed: the mutation that triggered it
    has already succeeded and stays successful.
    """
    version_key = get_version_key(resource)
    try:
        cache.add(version_key, 1, timeout=None)
        new_version = cache.incr(version_key)
        if new_version is None:
            logger.warning(f"Cache version bump for {resource} was ignored by the cache backend")
            return None
        logger.info(f"Cache version bumped for {resource}: v{new_version}")
        return new_version
    except Exception as e:
        logger.error(f"Failed to bump cache version for {resource}: {e}")
        return None


def bump_cache_versions(*resources):
    return {resource: bump_cache_version(resource) for resource in resources}


def build_cache_key(resource, request, version=None):
    """
    Deterministic page key: v{version}:{METHOD}:{path}?{sorted query}

    Query parameters are part of the key, so each filter/cursor/limit
    combination is its own cache entry.
    """
    if version is None:
        version = get_cache_version(resource)
    method = getattr(request, 'method', None) or 'GET'
    query_items = sorted((key, sorted(values)) for key, values in request.GET.lists())
    query_string = urlencode(query_items, doseq=True)
    path = f"{request.path}?{query_string}" if query_string else request.path
    return f"v{version}:{method}:{path}"


def page_is_empty(data, items_key='items'):
    if data is None:
        return True
    if isinstance(data, dict):
        page_items = data.get(items_key)
        return not page_items
    if isinstance(data, (list, tuple)):
        return len(data) == 0
    return False


def read_through(cache_key, compute, ttl, items_key='items'):
    """
    Return the cached page for ``cache_key`` or compute and store it.

    Empty pages are never stored: a page computed just before a concurrent
    insert (that raced the version bump) must not hide that row for a
    whole TTL.
    """
    cached = None
    try:
        cached = cache.get(cache_key)
    except Exception as e:
        logger.warning(f"Cache unavailable, proceeding without cache: {e}")

    if cached is not None:
        logger.debug(f"Cache HIT: {cache_key}")
        return CachedPage(json.loads(cached), CACHE_HIT)

    logger.debug(f"Cache MISS: {cache_key}")
    data = compute()
    payload = json.loads(json.dumps(data, cls=DjangoJSONEncoder))

    if page_is_empty(payload, items_key):
        logger.debug(f"Not caching empty page: {cache_key}")
    else:
        try:
            cache.set(cache_key, json.dumps(payload), ttl)
        except Exception as e:
            logger.warning(f"Unable to cache response: {e}")

    return CachedPage(payload, CACHE_MISS)


def cached_listing(resource, request, compute, ttl, items_key='items'):
    """Versioned read-through for a listing request"""
    cache_key = build_cache_key(resource, request)
    return read_through(cache_key, compute, ttl, items_key=items_key)


def cached_response(page, status=None):
    response = Response(page.data, status=status)
    response['X-Cache'] = page.cache_status
    return response


# --- Invalidation helpers ---

def invalidate_order_cache():
    bump_cache_version(ORDERS)


def invalidate_stock_cache():
    bump_cache_version(STOCK)


def invalidate_item_cache():
    """Item edits change the stock view too"""
    bump_cache_versions(ITEMS, STOCK)


def invalidate_customer_cache():
    bump_cache_version(CUSTOMERS)


def invalidate_feedback_cache():
    bump_cache_version(FEEDBACKS)
