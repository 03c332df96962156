import logging

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import Avg, Count
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import NotFound, ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from orderdesk.core.cache_utils import FEEDBACKS, cached_listing, cached_response, invalidate_feedback_cache
from orderdesk.core.exceptions import Conflict
from orderdesk.core.pagination import paginate_queryset, parse_pagination_params
from orderdesk.core.utils import create_audit_log, snapshot
from .filters import FeedbackFilter
from .models import MAX_RATING, MIN_RATING, Feedback
from .serializers import FeedbackCreateSerializer, FeedbackSerializer, FeedbackUpdateSerializer

logger = logging.getLogger(__name__)

DUPLICATE_FEEDBACK_MESSAGE = 'Feedback already exists for this order'


def _get_feedback(pk):
    try:
        return Feedback.objects.select_related('order').get(pk=pk)
    except Feedback.DoesNotExist:
        raise NotFound('Feedback not found')


def _average(value):
    return round(float(value), 2) if value is not None else None


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def feedback_list_create(request):
    """List feedback or record feedback for an order"""
    if request.method == 'GET':
        def compute():
            filterset = FeedbackFilter(request.query_params, queryset=Feedback.objects.select_related('order'))
            if not filterset.is_valid():
                raise ValidationError(filterset.errors)
            page, limit = parse_pagination_params(request.query_params)
            rows, pagination = paginate_queryset(filterset.qs.order_by('-created_at', '-id'), page, limit)
            return {
                'items': FeedbackSerializer(rows, many=True).data,
                'pagination': pagination,
            }

        page = cached_listing(FEEDBACKS, request, compute, settings.FEEDBACKS_CACHE_TTL)
        return cached_response(page)

    serializer = FeedbackCreateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    order = serializer.validated_data['order']
    if Feedback.objects.filter(order=order).exists():
        raise Conflict(DUPLICATE_FEEDBACK_MESSAGE)

    try:
        with transaction.atomic():
            feedback = serializer.save()
    except IntegrityError:
        raise Conflict(DUPLICATE_FEEDBACK_MESSAGE)

    create_audit_log(
        request=request,
        entity_type='feedback',
        entity_id=feedback.pk,
        action='create',
        new_data=snapshot(feedback),
    )
    invalidate_feedback_cache()
    logger.info(f"Feedback created: {feedback.pk} for order {order.order_id} (rating={feedback.rating})")
    return Response(FeedbackSerializer(feedback).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def feedback_detail(request, pk):
    """Retrieve, respond to or delete feedback"""
    feedback = _get_feedback(pk)

    if request.method == 'GET':
        return Response(FeedbackSerializer(feedback).data)

    if request.method == 'DELETE':
        previous_data = snapshot(feedback)
        feedback_pk = feedback.pk
        feedback.delete()
        create_audit_log(
            request=request,
            entity_type='feedback',
            entity_id=feedback_pk,
            action='delete',
            previous_data=previous_data,
        )
        invalidate_feedback_cache()
        logger.info(f"Feedback deleted: {feedback_pk}")
        return Response({'message': 'Feedback deleted'})

    serializer = FeedbackUpdateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    changes = serializer.validated_data

    previous_data = snapshot(feedback)
    if 'response_text' in changes:
        feedback.response_text = changes['response_text'].strip()
        feedback.responded_at = timezone.now() if feedback.response_text else None
    if 'is_public' in changes:
        feedback.is_public = changes['is_public']
    feedback.save()

    create_audit_log(
        request=request,
        entity_type='feedback',
        entity_id=feedback.pk,
        action='update',
        previous_data=previous_data,
        new_data=snapshot(feedback),
    )
    invalidate_feedback_cache()
    logger.info(f"Feedback updated: {feedback.pk}")
    return Response(FeedbackSerializer(feedback).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def feedback_by_order(request, order_id):
    """Feedback left for one order"""
    try:
        feedback = Feedback.objects.select_related('order').get(order_id=order_id)
    except Feedback.DoesNotExist:
        raise NotFound('Feedback not found for this order')
    return Response(FeedbackSerializer(feedback).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def feedback_stats(request):
    """Average ratings and the rating distribution"""
    averages = Feedback.objects.aggregate(
        avg_rating=Avg('rating'),
        avg_product_quality=Avg('product_quality'),
        avg_delivery_experience=Avg('delivery_experience'),
        total=Count('id'),
    )
    counts = {
        row['rating']: row['count']
        for row in Feedback.objects.order_by().values('rating').annotate(count=Count('id'))
    }
    return Response({
        'avgRating': _average(averages['avg_rating']),
        'avgProductQuality': _average(averages['avg_product_quality']),
        'avgDeliveryExperience': _average(averages['avg_delivery_experience']),
        'totalFeedbacks': averages['total'],
        'ratingDistribution': {str(r): counts.get(r, 0) for r in range(MIN_RATING, MAX_RATING + 1)},
    })
