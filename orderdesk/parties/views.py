import logging

from django.conf import settings
from django.db import IntegrityError, transaction
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import NotFound, ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from orderdesk.core.cache_utils import CUSTOMERS, cached_listing, cached_response, invalidate_customer_cache
from orderdesk.core.exceptions import Conflict
from orderdesk.core.pagination import paginate_queryset, parse_pagination_params
from orderdesk.core.utils import create_audit_log, snapshot
from orderdesk.orders.models import Order
from orderdesk.orders.serializers import OrderSerializer
from .filters import CustomerFilter
from .models import Customer
from .serializers import CustomerSerializer, CustomerSummarySerializer, CustomerWriteSerializer
from .services import generate_customer_id

logger = logging.getLogger(__name__)

SEARCH_RESULT_LIMIT = 10
DUPLICATE_CUSTOMER_MESSAGE = 'A customer with this ID already exists'


def _get_customer(pk):
    try:
        return Customer.objects.get(pk=pk)
    except Customer.DoesNotExist:
        raise NotFound('Customer not found')


# Customer views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def customer_list_create(request):
    """List customers or create a new customer"""
    if request.method == 'GET':
        def compute():
            filterset = CustomerFilter(request.query_params, queryset=Customer.objects.all())
            if not filterset.is_valid():
                raise ValidationError(filterset.errors)
            page, limit = parse_pagination_params(request.query_params)
            rows, pagination = paginate_queryset(filterset.qs.order_by('-created_at', '-id'), page, limit)
            return {
                'items': CustomerSerializer(rows, many=True).data,
                'pagination': pagination,
            }

        page = cached_listing(CUSTOMERS, request, compute, settings.CUSTOMERS_CACHE_TTL)
        return cached_response(page)

    serializer = CustomerWriteSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    customer_id = serializer.validated_data.pop('customer_id', '') or ''
    if customer_id and Customer.objects.filter(customer_id=customer_id).exists():
        raise Conflict(DUPLICATE_CUSTOMER_MESSAGE)

    try:
        with transaction.atomic():
            customer = serializer.save(customer_id=customer_id or generate_customer_id())
    except IntegrityError:
        raise Conflict(DUPLICATE_CUSTOMER_MESSAGE)

    create_audit_log(
        request=request,
        entity_type='customer',
        entity_id=customer.pk,
        action='create',
        new_data=snapshot(customer),
    )
    invalidate_customer_cache()
    logger.info(f"Customer created: {customer.customer_id} ({customer.name})")
    return Response(CustomerSerializer(customer).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def customer_detail(request, pk):
    """Retrieve, update or delete a customer"""
    customer = _get_customer(pk)

    if request.method == 'GET':
        return Response(CustomerSerializer(customer).data)

    if request.method in ('PUT', 'PATCH'):
        previous_data = snapshot(customer)
        serializer = CustomerWriteSerializer(customer, data=request.data, partial=request.method == 'PATCH')
        serializer.is_valid(raise_exception=True)
        customer = serializer.save()

        create_audit_log(
            request=request,
            entity_type='customer',
            entity_id=customer.pk,
            action='update',
            previous_data=previous_data,
            new_data=snapshot(customer),
        )
        invalidate_customer_cache()
        return Response(CustomerSerializer(customer).data)

    # DELETE
    previous_data = snapshot(customer)
    customer.delete()
    create_audit_log(
        request=request,
        entity_type='customer',
        entity_id=pk,
        action='delete',
        previous_data=previous_data,
    )
    invalidate_customer_cache()
    logger.info(f"Customer deleted: {previous_data['customer_id']}")
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def customer_search(request):
    """Quick lookup by name, phone, email or customer id"""
    query = request.query_params.get('q', '').strip()
    if not query:
        return Response({'items': []})

    filterset = CustomerFilter({'search': query}, queryset=Customer.objects.all())
    customers = filterset.qs.order_by('name')[:SEARCH_RESULT_LIMIT]
    return Response({'items': CustomerSummarySerializer(customers, many=True).data})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def customer_orders(request, pk):
    """Order history for a customer, newest first"""
    customer = _get_customer(pk)
    orders = (
        Order.objects.filter(customer_id=customer.customer_id)
        .prefetch_related('items')
        .order_by('-created_at', '-id')
    )
    return Response({'items': OrderSerializer(orders, many=True).data})
