"""
Test suite for the feedbacks module
Tests: one feedback per order, rating validation, staff responses, stats
"""
from django.core.cache import cache
from django.test import TestCase
from rest_framework import status

from orderdesk.core.test_utils import AuthenticatedAPIClient, TestDataFactory, use_locmem_cache
from orderdesk.feedbacks.models import Feedback


@use_locmem_cache
class FeedbackAPITests(TestCase):
    """Test feedback endpoints"""

    def setUp(self):
        cache.clear()
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.order = TestDataFactory.create_order(customer_name='Priya Shah')

    def create_feedback(self, order=None, **fields):
        payload = {'order': (order or self.order).pk, 'rating': 4}
        payload.update(fields)
        return self.client.post('/api/v1/feedbacks/', payload, format='json')

    def test_create_feedback(self):
        response = self.create_feedback(comment='Lovely stitching', product_quality=5)
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['order_id'], self.order.order_id)
        self.assertEqual(response.data['customer_name'], 'Priya Shah')
        self.assertTrue(response.data['is_public'])
        self.assertIsNone(response.data['delivery_experience'])

    def test_one_feedback_per_order(self):
        self.create_feedback()
        response = self.create_feedback(rating=2)
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['message'], 'Feedback already exists for this order')
        self.assertEqual(Feedback.objects.count(), 1)

    def test_rating_range(self):
        response = self.create_feedback(rating=6)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['message'], 'rating: rating must be between 1 and 5')

        response = self.create_feedback(rating=3, delivery_experience=0)
        self.assertEqual(response.data['message'], 'delivery_experience: delivery experience must be between 1 and 5')

    def test_order_required_and_must_exist(self):
        response = self.client.post('/api/v1/feedbacks/', {'rating': 5}, format='json')
        self.assertEqual(response.data['message'], 'order: Order ID is required')

        response = self.client.post('/api/v1/feedbacks/', {'order': 999999, 'rating': 5}, format='json')
        self.assertEqual(response.data['message'], 'order: Order not found')

    def test_response_sets_responded_at(self):
        feedback_id = self.create_feedback().data['id']

        response = self.client.patch(f'/api/v1/feedbacks/{feedback_id}/', {'response_text': '  Thank you!  '},
                                     format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['response_text'], 'Thank you!')
        self.assertIsNotNone(response.data['responded_at'])

        response = self.client.patch(f'/api/v1/feedbacks/{feedback_id}/', {'response_text': ''}, format='json')
        self.assertIsNone(response.data['responded_at'])

    def test_ratings_not_editable(self):
        feedback_id = self.create_feedback().data['id']
        response = self.client.patch(f'/api/v1/feedbacks/{feedback_id}/', {'rating': 1}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['message'], 'rating: Unknown field.')

    def test_feedback_by_order(self):
        self.create_feedback()
        response = self.client.get(f'/api/v1/feedbacks/order/{self.order.pk}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['rating'], 4)

        other = TestDataFactory.create_order()
        response = self.client.get(f'/api/v1/feedbacks/order/{other.pk}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['message'], 'Feedback not found for this order')

    def test_delete(self):
        feedback_id = self.create_feedback().data['id']
        response = self.client.delete(f'/api/v1/feedbacks/{feedback_id}/')
        self.assertEqual(response.data['message'], 'Feedback deleted')
        self.assertFalse(Feedback.objects.exists())

    def test_stats(self):
        self.create_feedback(rating=5, product_quality=4)
        self.create_feedback(order=TestDataFactory.create_order(), rating=3, product_quality=5)
        self.create_feedback(order=TestDataFactory.create_order(), rating=5)

        response = self.client.get('/api/v1/feedbacks/stats/')
        self.assertEqual(response.data['totalFeedbacks'], 3)
        self.assertEqual(response.data['avgRating'], 4.33)
        self.assertEqual(response.data['avgProductQuality'], 4.5)
        self.assertIsNone(response.data['avgDeliveryExperience'])
        self.assertEqual(response.data['ratingDistribution'], {'1': 0, '2': 0, '3': 1, '4': 0, '5': 2})

    def test_list_cache_invalidated_by_new_feedback(self):
        self.create_feedback()
        self.assertEqual(self.client.get('/api/v1/feedbacks/')['X-Cache'], 'MISS')
        self.assertEqual(self.client.get('/api/v1/feedbacks/')['X-Cache'], 'HIT')

        self.create_feedback(order=TestDataFactory.create_order(), rating=1)
        response = self.client.get('/api/v1/feedbacks/', {'min_rating': 1})
        self.assertEqual(response.data['pagination']['total'], 2)
        response = self.client.get('/api/v1/feedbacks/')
        self.assertEqual(response['X-Cache'], 'MISS')
        self.assertEqual(response.data['pagination']['total'], 2)
