"""
Stock views

The stock listing is cached under the "stock" version family; every
ledger write bumps that family, so a cached page never outlives the
balances it shows.
"""
import logging

from django.conf import settings
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from orderdesk.core.cache_utils import STOCK, cached_listing, cached_response
from orderdesk.core.exceptions import raise_for_failure
from orderdesk.core.pagination import parse_pagination_params
from orderdesk.core.permissions import IsAdminRole
from . import services
from .models import StockTransaction
from .serializers import (
    BulkAdjustmentSerializer, ItemStockSerializer,
    StockAdjustmentSerializer, StockTransactionSerializer,
)

logger = logging.getLogger(__name__)

TRUE_VALUES = ('1', 'true', 'yes', 'on')


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def stock_list(request):
    """Items with their stock levels, lowest stock first"""
    low_stock_only = request.query_params.get('lowStockOnly', '').strip().lower() in TRUE_VALUES
    page, limit = parse_pagination_params(request.query_params)

    def compute():
        rows, pagination = services.get_items_with_stock(low_stock_only=low_stock_only, page=page, limit=limit)
        return {
            'items': ItemStockSerializer(rows, many=True).data,
            'pagination': pagination,
        }

    cached_page = cached_listing(STOCK, request, compute, settings.STOCK_CACHE_TTL)
    return cached_response(cached_page)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def stock_low(request):
    """Tracked items at or below their low stock threshold"""
    items = services.get_low_stock_items()
    return Response({
        'items': ItemStockSerializer(items, many=True).data,
        'count': len(items),
    })


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def item_stock(request, pk):
    """Stock info for one item, or a manual adjustment of it"""
    if request.method == 'GET':
        item = raise_for_failure(services.get_item_stock(pk)).value
        return Response(ItemStockSerializer(item).data)

    serializer = StockAdjustmentSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    quantity = serializer.validated_data['quantity']
    transaction_type = StockTransaction.RESTOCK if quantity > 0 else StockTransaction.ADJUSTMENT

    result = services.adjust_stock(
        pk,
        quantity,
        transaction_type,
        notes=serializer.validated_data.get('notes') or None,
        user=request.user,
        reference_type='manual',
    )
    stock_transaction = raise_for_failure(result).value
    logger.info(f"Manual stock {transaction_type} on item {pk} by user {request.user.pk}: {quantity:+d}")
    return Response({
        'transaction': StockTransactionSerializer(stock_transaction).data,
        'item': ItemStockSerializer(stock_transaction.item).data,
    }, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def stock_bulk_adjust(request):
    """Apply many independent adjustments; per-entry failures are reported, not raised"""
    serializer = BulkAdjustmentSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    batch = services.bulk_adjust(
        serializer.validated_data['adjustments'],
        transaction_type=serializer.validated_data['transaction_type'],
        user=request.user,
    )
    return Response(batch.as_dict())


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def item_stock_history(request, pk):
    """Ledger rows for one item, newest first"""
    page, limit = parse_pagination_params(request.query_params)
    rows, pagination = raise_for_failure(services.get_transaction_history(pk, page, limit)).value
    return Response({
        'items': StockTransactionSerializer(rows, many=True).data,
        'pagination': pagination,
    })
