import io
import logging

import qrcode
from django.db.models import Q
from django.http import HttpResponse
from rest_framework import viewsets, status
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from apps.core.mixins import BusinessErrorMixin
from apps.core.permissions import HasModuleAccess
from apps.core.utils import filter_date_range
from .models import Product, ProductVariant, StockMovement
from .serializers import (
    ProductSerializer, ProductVariantSerializer,
    StockMovementSerializer, StockAdjustmentSerializer
)
from .services import post_movement

logger = logging.getLogger(__name__)


def qr_code_response(data):
    """Render ``data`` as a PNG QR code"""
    qr = qrcode.QRCode(
        version=1,
        error_correction=qrcode.constants.ERROR_CORRECT_L,
        box_size=10,
        border=4,
    )
    qr.add_data(data)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")

    buffer = io.BytesIO()
    img.save(buffer, format='PNG')
    return HttpResponse(buffer.getvalue(), content_type='image/png')


class ProductViewSet(BusinessErrorMixin, viewsets.ModelViewSet):
    """API endpoint for products"""
    queryset = Product.objects.all().prefetch_related('variants').order_by('name')
    serializer_class = ProductSerializer
    permission_classes = [IsAuthenticated, HasModuleAccess]
    module = 'products'

    def get_queryset(self):
        queryset = super().get_queryset()
        params = self.request.query_params
        for field in ('category', 'product_type'):
            if params.get(field):
                queryset = queryset.filter(**{field: params[field]})
        destination = params.get('destination')
        if destination:
            # "both" products show up on sale and purchase forms alike
            queryset = queryset.filter(Q(destination=destination) | Q(destination='both'))
        is_active = params.get('is_active')
        if is_active is not None:
            queryset = queryset.filter(is_active=is_active.lower() == 'true')
        search = params.get('search')
        if search:
            queryset = queryset.filter(
                Q(name__icontains=search) | Q(sku__icontains=search) | Q(description__icontains=search)
            )
        return queryset

    def perform_create(self, serializer):
        serializer.save(created_by=self.request.user)

    @action(detail=True, methods=['get'])
    def qr_code(self, request, pk=None):
        """Generate QR code for product"""
        product = self.get_object()
        return qr_code_response(f"Produit: {product.name} - SKU: {product.sku}")

    @action(detail=True, methods=['get'])
    def stock_card(self, request, pk=None):
        """Stock card (movements with running balance) of a product"""
        product = self.get_object()
        movements = filter_date_range(product.stock_movements.select_related('warehouse'),
                                      request.query_params, 'date')
        warehouse = request.query_params.get('warehouse')
        if warehouse:
            movements = movements.filter(warehouse_id=warehouse)
        return Response({
            'product': product.id,
            'sku': product.sku,
            'stock_quantity': str(product.stock_quantity),
            'movements': StockMovementSerializer(movements, many=True).data,
        })


class ProductVariantViewSet(viewsets.ModelViewSet):
    """API endpoint for product variants"""
    queryset = ProductVariant.objects.all().select_related('product')
    serializer_class = ProductVariantSerializer
    permission_classes = [IsAuthenticated, HasModuleAccess]
    module = 'products'

    def get_queryset(self):
        queryset = super().get_queryset()
        product = self.request.query_params.get('product')
        if product:
            queryset = queryset.filter(product_id=product)
        return queryset


class StockMovementViewSet(viewsets.ReadOnlyModelViewSet):
    """API endpoint for the stock ledger (read-only, corrections go through adjust)"""
    queryset = StockMovement.objects.all().select_related('product', 'warehouse')
    serializer_class = StockMovementSerializer
    permission_classes = [IsAuthenticated, HasModuleAccess]
    module = 'products'

    def get_queryset(self):
        queryset = super().get_queryset()
        params = self.request.query_params
        if params.get('product'):
            queryset = queryset.filter(product_id=params['product'])
        if params.get('warehouse'):
            queryset = queryset.filter(warehouse_id=params['warehouse'])
        if params.get('movement_type'):
            queryset = queryset.filter(movement_type=params['movement_type'])
        return filter_date_range(queryset, params, 'date')

    @action(detail=False, methods=['post'])
    def adjust(self, request):
        """Positive quantities add stock, negative ones remove it"""
        serializer = StockAdjustmentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        quantity = data['quantity']
        movement = post_movement(
            data['product'],
            'adjustment',
            reference=f"AJUST-{data['product'].sku}",
            quantity_in=quantity if quantity > 0 else 0,
            quantity_out=-quantity if quantity < 0 else 0,
            warehouse=data.get('warehouse'),
            notes=data.get('notes', ''),
            user=request.user,
        )
        logger.info("Stock of %s adjusted by %s", data['product'].sku, quantity)
        return Response(StockMovementSerializer(movement).data, status=status.HTTP_201_CREATED)
