"""
Bounded retry for database operations.

Transient failures (lost connections, timeouts, DNS trouble, lock
contention) are retried with exponential backoff. Anything else is raised
immediately. The wrapped operation must be safe to run again from scratch,
which holds for plain reads and for a single atomic block since a failed
attempt commits nothing.
"""
import logging
import socket
import time
from functools import wraps

from django.conf import settings
from django.db import DatabaseError, IntegrityError, InterfaceError, OperationalError

from .exceptions import TransientStorageError
from .results import RetryableFailure

logger = logging.getLogger(__name__)

RETRYABLE_KEYWORDS = (
    'econnrefused',
    'econnreset',
    'etimedout',
    'enotfound',
    'eai_again',
    'enetunreach',
    'connection refused',
    'connection reset',
    'could not connect',
    'server closed the connection',
    'name or service not known',
    'temporary failure in name resolution',
    'timeout',
    'timed out',
    'network',
    'connection',
    'database is locked',
    'deadlock detected',
    'could not serialize access',
)


def is_retryable_error(error):
    """True if the error looks like a transient storage/network failure"""
    if isinstance(error, IntegrityError):
        return False
    if isinstance(error, (ConnectionError, TimeoutError, socket.gaierror)):
        return True
    if isinstance(error, (OperationalError, InterfaceError, DatabaseError)):
        message = str(error).lower()
        code = str(getattr(error, 'pgcode', '') or '').lower()
        return any(keyword in message or keyword in code for keyword in RETRYABLE_KEYWORDS)
    return False


def _retry_config(overrides):
    config = dict(getattr(settings, 'DB_RETRY', {}))
    config.setdefault('MAX_RETRIES', 3)
    config.setdefault('INITIAL_DELAY_MS', 100)
    config.setdefault('MAX_DELAY_MS', 1000)
    config.setdefault('BACKOFF_MULTIPLIER', 2)
    config.update({k: v for k, v in overrides.items() if v is not None})
    return config


def execute_with_retry(operation, operation_name='DB operation', max_retries=None,
                       initial_delay_ms=None, max_delay_ms=None, backoff_multiplier=None):
    """
    Run ``operation`` and retry it on transient failures.

    The operation may return a plain value or a result object. A returned
    RetryableFailure, or a raised exception that is_retryable_error() accepts,
    triggers another attempt. Once attempts are exhausted a
    TransientStorageError is raised.
    """
    config = _retry_config({
        'MAX_RETRIES': max_retries,
        'INITIAL_DELAY_MS': initial_delay_ms,
        'MAX_DELAY_MS': max_delay_ms,
        'BACKOFF_MULTIPLIER': backoff_multiplier,
    })
    retries = config['MAX_RETRIES']
    delay_ms = config['INITIAL_DELAY_MS']

    for attempt in range(retries + 1):
        try:
            result = operation()
        except Exception as e:
            if not is_retryable_error(e):
                if isinstance(e, DatabaseError):
                    logger.warning(f"{operation_name} failed with non-retryable error: {e}")
                raise
            result = RetryableFailure(e)

        if not isinstance(result, RetryableFailure):
            if attempt > 0:
                logger.info(f"{operation_name} succeeded after retry (attempt {attempt + 1})")
            return result

        if attempt == retries:
            logger.error(f"{operation_name} failed after {retries + 1} attempts: {result.message}")
            raise TransientStorageError() from result.error

        logger.warning(
            f"{operation_name} failed, retrying in {delay_ms}ms "
            f"(attempt {attempt + 1}/{retries + 1}): {result.message}"
        )
        time.sleep(delay_ms / 1000.0)
        delay_ms = min(delay_ms * config['BACKOFF_MULTIPLIER'], config['MAX_DELAY_MS'])

    raise TransientStorageError()


def with_retry(operation_name=None):
    """
    Decorator form of execute_with_retry

    Usage:
        @with_retry("Stock.get_low_stock_items")
        def get_low_stock_items():
            ...
    """
    def decorator(func):
        name = operation_name or func.__qualname__

        @wraps(func)
        def wrapper(*args, **kwargs):
            return execute_with_retry(lambda: func(*args, **kwargs), operation_name=name)
        return wrapper
    return decorator
