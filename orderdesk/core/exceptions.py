"""
API error taxonomy and the DRF exception handler.

Every error response carries a short human-readable ``message``. Field
level validation errors are kept under ``errors``. Stack traces never
reach the client.
"""
import logging

from django.db import IntegrityError
from rest_framework import status
from rest_framework.exceptions import APIException, NotFound, ValidationError
from rest_framework.response import Response
from rest_framework.settings import api_settings
from rest_framework.views import exception_handler

from . import results

logger = logging.getLogger(__name__)


class Conflict(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Resource already exists.'
    default_code = 'conflict'


class InsufficientStock(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Insufficient stock.'
    default_code = 'insufficient_stock'


class TransientStorageError(APIException):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = 'Storage temporarily unavailable, please retry.'
    default_code = 'transient_storage_error'


def raise_for_failure(result):
    """Turn an ExpectedFailure result into the matching API exception"""
    if result.ok:
        return result
    if isinstance(result, results.RetryableFailure):
        raise TransientStorageError()
    if result.kind == results.NOT_FOUND:
        raise NotFound(result.message)
    if result.kind == results.INSUFFICIENT_STOCK:
        raise InsufficientStock(result.message)
    raise ValidationError(result.message)


def _first_message(data, field=None):
    """First leaf error message, prefixed with the field it belongs to"""
    if isinstance(data, dict):
        if 'detail' in data:
            return str(data['detail'])
        for key, value in data.items():
            message = _first_message(value, key)
            if message:
                return message
        return None
    if isinstance(data, (list, tuple)):
        for value in data:
            message = _first_message(value, field)
            if message:
                return message
        return None
    if not data:
        return None
    if field and field != api_settings.NON_FIELD_ERRORS_KEY:
        return f"{field}: {data}"
    return str(data)


def api_exception_handler(exc, context):
    """Wrap DRF's handler so all errors share the {message, errors} shape"""
    if isinstance(exc, IntegrityError):
        logger.warning(f"Integrity error mapped to 409: {exc}")
        exc = Conflict('A record with the same unique value already exists.')

    response = exception_handler(exc, context)
    if response is None:
        view = context.get('view')
        logger.exception(f"Unhandled error in {view.__class__.__name__ if view else 'view'}: {exc}")
        return Response({'message': 'Internal server error'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    data = response.data
    body = {'message': _first_message(data) or 'Invalid request'}
    if isinstance(exc, ValidationError) and isinstance(data, (dict, list)):
        body['errors'] = data
    response.data = body
    return response
