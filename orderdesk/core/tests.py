"""
Test suite for the core module
Tests: cache versioning, read-through caching, pagination, retry policy,
error responses, health, session, users and audit logs
"""
from decimal import Decimal
from unittest import mock

from django.core.cache import cache
from django.db import IntegrityError, OperationalError
from django.test import RequestFactory, TestCase
from django.utils import timezone
from rest_framework import status
from rest_framework.exceptions import NotFound, ValidationError

from orderdesk.core import cache_utils, results
from orderdesk.core.cache_utils import ORDERS, STOCK
from orderdesk.core.exceptions import InsufficientStock, TransientStorageError, raise_for_failure
from orderdesk.core.models import AuditLog
from orderdesk.core.pagination import (
    build_pagination_response, decode_cursor, encode_cursor, parse_limit, parse_page,
)
from orderdesk.core.retry import execute_with_retry, is_retryable_error
from orderdesk.core.test_utils import AuthenticatedAPIClient, TestDataFactory, use_locmem_cache
from orderdesk.core.utils import create_audit_log


@use_locmem_cache
class CacheVersionTests(TestCase):
    """Test version counters and page keys"""

    def setUp(self):
        cache.clear()
        self.factory = RequestFactory()

    def test_version_starts_at_one(self):
        """An unseen family is initialized to version 1"""
        self.assertEqual(cache_utils.get_cache_version(ORDERS), 1)
        self.assertEqual(cache.get('cache:v:orders'), 1)

    def test_bump_is_monotonic(self):
        """Every bump yields a strictly larger version"""
        versions = [cache_utils.get_cache_version(STOCK)]
        for _ in range(3):
            versions.append(cache_utils.bump_cache_version(STOCK))
        self.assertEqual(versions, [1, 2, 3, 4])

    def test_bump_without_prior_read(self):
        """Bumping a family that was never read initializes then increments"""
        self.assertEqual(cache_utils.bump_cache_version(ORDERS), 2)

    def test_families_are_independent(self):
        cache_utils.bump_cache_version(ORDERS)
        self.assertEqual(cache_utils.get_cache_version(ORDERS), 2)
        self.assertEqual(cache_utils.get_cache_version(STOCK), 1)

    def test_unknown_family_rejected(self):
        with self.assertRaises(ValueError):
            cache_utils.get_cache_version('widgets')

    def test_cache_key_sorts_query_params(self):
        """Parameter order does not change the key"""
        first = self.factory.get('/api/v1/orders/', {'status': 'pending', 'limit': '10'})
        second = self.factory.get('/api/v1/orders/?limit=10&status=pending')
        key = cache_utils.build_cache_key(ORDERS, first)
        self.assertEqual(key, 'v1:GET:/api/v1/orders/?limit=10&status=pending')
        self.assertEqual(key, cache_utils.build_cache_key(ORDERS, second))

    def test_cache_key_without_query(self):
        request = self.factory.get('/api/v1/stock/')
        self.assertEqual(cache_utils.build_cache_key(STOCK, request), 'v1:GET:/api/v1/stock/')

    def test_bump_changes_key(self):
        """Keys built after a bump never match keys built before it"""
        request = self.factory.get('/api/v1/orders/', {'limit': '10'})
        before = cache_utils.build_cache_key(ORDERS, request)
        cache_utils.bump_cache_version(ORDERS)
        after = cache_utils.build_cache_key(ORDERS, request)
        self.assertNotEqual(before, after)
        self.assertTrue(after.startswith('v2:'))


@use_locmem_cache
class ReadThroughTests(TestCase):
    """Test read-through page caching"""

    def setUp(self):
        cache.clear()

    def test_miss_then_hit(self):
        compute = mock.Mock(return_value={'items': [{'id': 1}], 'pagination': {'page': 1}})

        first = cache_utils.read_through('v1:GET:/api/v1/items/', compute, 60)
        second = cache_utils.read_through('v1:GET:/api/v1/items/', compute, 60)

        self.assertEqual(first.cache_status, cache_utils.CACHE_MISS)
        self.assertTrue(second.hit)
        self.assertEqual(second.data, first.data)
        compute.assert_called_once()

    def test_empty_page_not_cached(self):
        """An empty page is recomputed on every request"""
        compute = mock.Mock(return_value={'items': [], 'pagination': {'page': 1}})

        first = cache_utils.read_through('v1:GET:/api/v1/orders/', compute, 60)
        second = cache_utils.read_through('v1:GET:/api/v1/orders/', compute, 60)

        self.assertFalse(first.hit)
        self.assertFalse(second.hit)
        self.assertEqual(compute.call_count, 2)
        self.assertIsNone(cache.get('v1:GET:/api/v1/orders/'))

    def test_custom_items_key(self):
        compute = mock.Mock(return_value={'results': [], 'count': 0})
        cache_utils.read_through('k', compute, 60, items_key='results')
        self.assertIsNone(cache.get('k'))

    def test_decimal_and_datetime_payloads_are_json_safe(self):
        now = timezone.now()
        page = cache_utils.read_through('k', lambda: {'items': [{'price': Decimal('9.50'), 'at': now}]}, 60)
        self.assertEqual(page.data['items'][0]['price'], '9.50')


class CacheOutageTests(TestCase):
    """A broken cache store degrades to misses instead of errors"""

    def setUp(self):
        patcher = mock.patch.object(cache_utils, 'cache')
        self.broken = patcher.start()
        self.addCleanup(patcher.stop)
        for method in ('get', 'set', 'add', 'incr'):
            getattr(self.broken, method).side_effect = ConnectionError('redis unavailable')

    def test_version_read_falls_back_to_one(self):
        self.assertEqual(cache_utils.get_cache_version(ORDERS), 1)

    def test_bump_returns_none(self):
        self.assertIsNone(cache_utils.bump_cache_version(ORDERS))

    def test_read_through_computes(self):
        compute = mock.Mock(return_value={'items': [1]})
        page = cache_utils.read_through('k', compute, 60)
        self.assertEqual(page.cache_status, cache_utils.CACHE_MISS)
        self.assertEqual(page.data, {'items': [1]})
        compute.assert_called_once()


class PaginationTests(TestCase):
    """Test pagination parameter handling and cursors"""

    def test_limit_allow_list(self):
        self.assertEqual(parse_limit('50'), 50)
        self.assertEqual(parse_limit('25'), 10)
        self.assertEqual(parse_limit('abc'), 10)
        self.assertEqual(parse_limit(None), 10)

    def test_page_defaults(self):
        self.assertEqual(parse_page('3'), 3)
        self.assertEqual(parse_page('0'), 1)
        self.assertEqual(parse_page('-2'), 1)
        self.assertEqual(parse_page('x'), 1)

    def test_total_pages(self):
        self.assertEqual(build_pagination_response(1, 10, 21)['totalPages'], 3)
        self.assertEqual(build_pagination_response(1, 10, 0)['totalPages'], 0)

    def test_cursor_round_trip(self):
        created_at = timezone.now()
        cursor = decode_cursor(encode_cursor(created_at, 42))
        self.assertEqual(cursor.id, 42)
        self.assertEqual(cursor.created_at, created_at)

    def test_cursor_without_padding(self):
        raw = encode_cursor(timezone.now(), 7).rstrip('=')
        self.assertEqual(decode_cursor(raw).id, 7)

    def test_malformed_cursor(self):
        for raw in ('not-a-cursor!', 'e30', encode_cursor(timezone.now(), 1)[:-6] + 'zzzz'):
            with self.assertRaises(ValidationError):
                decode_cursor(raw)


@mock.patch('orderdesk.core.retry.time.sleep')
class RetryTests(TestCase):
    """Test the transient-error retry policy"""

    def test_retries_transient_errors(self, sleep):
        calls = []

        def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise OperationalError('could not connect to server: Connection refused')
            return 'done'

        self.assertEqual(execute_with_retry(flaky, max_retries=3), 'done')
        self.assertEqual(len(calls), 3)
        self.assertEqual([c.args[0] for c in sleep.call_args_list], [0.1, 0.2])

    def test_exhaustion_raises_transient_storage_error(self, sleep):
        operation = mock.Mock(side_effect=OperationalError('server closed the connection unexpectedly'))
        with self.assertRaises(TransientStorageError):
            execute_with_retry(operation, max_retries=3)
        self.assertEqual(operation.call_count, 4)
        self.assertEqual([c.args[0] for c in sleep.call_args_list], [0.1, 0.2, 0.4])

    def test_delay_is_capped(self, sleep):
        operation = mock.Mock(side_effect=OperationalError('timeout expired'))
        with self.assertRaises(TransientStorageError):
            execute_with_retry(operation, max_retries=5)
        self.assertEqual([c.args[0] for c in sleep.call_args_list], [0.1, 0.2, 0.4, 0.8, 1.0])

    def test_non_retryable_raises_immediately(self, sleep):
        operation = mock.Mock(side_effect=IntegrityError('duplicate key value'))
        with self.assertRaises(IntegrityError):
            execute_with_retry(operation, max_retries=3)
        operation.assert_called_once()
        sleep.assert_not_called()

    def test_application_errors_not_retried(self, sleep):
        operation = mock.Mock(side_effect=KeyError('missing'))
        with self.assertRaises(KeyError):
            execute_with_retry(operation)
        operation.assert_called_once()

    def test_only_storage_errors_logged_as_warnings(self, sleep):
        with self.assertNoLogs('orderdesk.core.retry', level='WARNING'):
            with self.assertRaises(NotFound):
                execute_with_retry(mock.Mock(side_effect=NotFound('Order not found')))
            with self.assertRaises(ValidationError):
                execute_with_retry(mock.Mock(side_effect=ValidationError('Cancelled orders cannot be reopened')))

        with self.assertLogs('orderdesk.core.retry', level='WARNING') as logs:
            with self.assertRaises(IntegrityError):
                execute_with_retry(mock.Mock(side_effect=IntegrityError('duplicate key value')), operation_name='Op')
        self.assertIn('Op failed with non-retryable error', logs.output[0])

    def test_retryable_failure_result_is_retried(self, sleep):
        operation = mock.Mock(side_effect=[results.RetryableFailure(), results.Ok(5)])
        self.assertEqual(execute_with_retry(operation).value, 5)
        self.assertEqual(operation.call_count, 2)

    def test_expected_failure_is_returned(self, sleep):
        failure = results.ExpectedFailure(results.NOT_FOUND, 'Item not found')
        operation = mock.Mock(return_value=failure)
        self.assertIs(execute_with_retry(operation), failure)
        operation.assert_called_once()

    def test_classification(self, sleep):
        self.assertTrue(is_retryable_error(OperationalError('Connection reset by peer')))
        self.assertTrue(is_retryable_error(ConnectionError()))
        self.assertFalse(is_retryable_error(OperationalError('no such table: items')))
        self.assertFalse(is_retryable_error(ValueError('connection')))


class ErrorMappingTests(TestCase):
    """Test result-to-exception mapping"""

    def test_ok_passes_through(self):
        result = results.Ok(1)
        self.assertIs(raise_for_failure(result), result)

    def test_not_found(self):
        with self.assertRaises(NotFound):
            raise_for_failure(results.ExpectedFailure(results.NOT_FOUND, 'Item not found'))

    def test_insufficient_stock(self):
        with self.assertRaises(InsufficientStock):
            raise_for_failure(results.ExpectedFailure(results.INSUFFICIENT_STOCK, 'Insufficient stock'))

    def test_invalid(self):
        with self.assertRaises(ValidationError):
            raise_for_failure(results.ExpectedFailure(results.INVALID, 'Quantity must be non-zero'))

    def test_retryable(self):
        with self.assertRaises(TransientStorageError):
            raise_for_failure(results.RetryableFailure())


@use_locmem_cache
class HealthAndSessionTests(TestCase):
    """Test health and session endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user(email='staff@example.com')
        self.client = AuthenticatedAPIClient()

    def test_health_is_public(self):
        response = self.client.get('/api/v1/health/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['checks'], {'database': 'ok', 'cache': 'ok'})

    def test_session_requires_token(self):
        response = self.client.get('/api/v1/auth/session/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertIn('message', response.data)

    def test_session(self):
        self.client.authenticate_user(self.user)
        response = self.client.get('/api/v1/auth/session/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['user']['email'], 'staff@example.com')
        self.assertEqual(response.data['user']['role'], 'user')


@use_locmem_cache
class UserAdminTests(TestCase):
    """Test admin-only user management"""

    def setUp(self):
        self.admin = TestDataFactory.create_admin()
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()

    def test_user_list_admin_only(self):
        self.client.authenticate_user(self.user)
        self.assertEqual(self.client.get('/api/v1/users/').status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(self.admin)
        response = self.client.get('/api/v1/users/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['items']), 2)

    def test_user_stats(self):
        TestDataFactory.create_user()
        self.client.authenticate_user(self.user)
        self.assertEqual(self.client.get('/api/v1/users/stats/').status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(self.admin)
        response = self.client.get('/api/v1/users/stats/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data, {'totalUsers': 3, 'adminUsers': 1, 'regularUsers': 2})

    def test_change_role(self):
        self.client.authenticate_user(self.admin)
        response = self.client.patch(f'/api/v1/users/{self.user.pk}/role/', {'role': 'admin'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.user.refresh_from_db()
        self.assertEqual(self.user.role, 'admin')

        log = AuditLog.objects.get(entity_type='user', entity_id=self.user.pk)
        self.assertEqual(log.changed_fields, ['role'])
        self.assertEqual(log.user, self.admin)

    def test_cannot_demote_self(self):
        self.client.authenticate_user(self.admin)
        response = self.client.patch(f'/api/v1/users/{self.admin.pk}/role/', {'role': 'user'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['message'], 'You cannot remove your own admin role')

    def test_invalid_role(self):
        self.client.authenticate_user(self.admin)
        response = self.client.patch(f'/api/v1/users/{self.user.pk}/role/', {'role': 'owner'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('role', response.data['errors'])


@use_locmem_cache
class AuditLogTests(TestCase):
    """Test audit log creation and listing"""

    def setUp(self):
        self.admin = TestDataFactory.create_admin()
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()

    def test_changed_fields_derived_from_snapshots(self):
        log = create_audit_log(
            entity_type='item', entity_id=1, action='update', user=self.user,
            previous_data={'name': 'A', 'price': '1.00'}, new_data={'name': 'B', 'price': '1.00'},
        )
        self.assertEqual(log.changed_fields, ['name'])
        self.assertEqual(log.user_email, self.user.email)

    def test_missing_fields_skip_audit(self):
        self.assertIsNone(create_audit_log(entity_type='item', action='update'))
        self.assertEqual(AuditLog.objects.count(), 0)

    def test_list_filters(self):
        create_audit_log(entity_type='item', entity_id=1, action='create', user=self.admin)
        create_audit_log(entity_type='order', entity_id=2, action='create', user=self.admin)

        self.client.authenticate_user(self.admin)
        response = self.client.get('/api/v1/audit-logs/', {'entity_type': 'order'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['pagination']['total'], 1)
        self.assertEqual(response.data['items'][0]['entity_id'], 2)

    def test_list_admin_only(self):
        self.client.authenticate_user(self.user)
        self.assertEqual(self.client.get('/api/v1/audit-logs/').status_code, status.HTTP_403_FORBIDDEN)

    def test_recent_scoped_to_user(self):
        create_audit_log(entity_type='item', entity_id=1, action='create', user=self.admin)
        create_audit_log(entity_type='item', entity_id=2, action='create', user=self.user)

        self.client.authenticate_user(self.user)
        response = self.client.get('/api/v1/audit-logs/recent/')
        self.assertEqual([row['entity_id'] for row in response.data['items']], [2])

        self.client.authenticate_user(self.admin)
        response = self.client.get('/api/v1/audit-logs/recent/')
        self.assertEqual(len(response.data['items']), 2)
