from rest_framework import serializers
from apps.core.models import Warehouse
from .models import Product, ProductVariant, StockMovement


class ProductVariantSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source='product.name', read_only=True)
    price = serializers.DecimalField(max_digits=15, decimal_places=3, read_only=True)

    class Meta:
        model = ProductVariant
        fields = ['id', 'product', 'product_name', 'name', 'sku', 'price_adjustment',
                  'price', 'stock_quantity']


class ProductSerializer(serializers.ModelSerializer):
    variants = ProductVariantSerializer(many=True, read_only=True)
    qr_code_url = serializers.SerializerMethodField()

    class Meta:
        model = Product
        fields = ['id', 'name', 'sku', 'description', 'category', 'product_type',
                  'destination', 'base_price', 'cost_price', 'purchase_price',
                  'margin_percent', 'tva_rate', 'stock_quantity', 'photo', 'is_active',
                  'variants', 'qr_code_url', 'created_at']
        read_only_fields = ['id', 'stock_quantity', 'created_at']
        extra_kwargs = {
            'sku': {'required': False},
        }

    def validate_name(self, value):
        if not value.strip():
            raise serializers.ValidationError("Le nom du produit est requis.")
        return value.strip()

    def get_qr_code_url(self, obj):
        request = self.context.get('request')
        if request is not None:
            return request.build_absolute_uri(f'/api/inventory/products/{obj.id}/qr_code/')
        return None


class StockMovementSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source='product.name', read_only=True)
    warehouse_name = serializers.CharField(source='warehouse.name', read_only=True)

    class Meta:
        model = StockMovement
        fields = ['id', 'product', 'product_name', 'warehouse', 'warehouse_name', 'date',
                  'movement_type', 'reference', 'quantity_in', 'quantity_out', 'balance',
                  'notes', 'created_at']
        read_only_fields = fields


class StockAdjustmentSerializer(serializers.Serializer):
    """Manual inventory correction"""
    product = serializers.PrimaryKeyRelatedField(queryset=Product.objects.filter(product_type='product'))
    warehouse = serializers.PrimaryKeyRelatedField(
        queryset=Warehouse.objects.all(), required=False, allow_null=True
    )
    quantity = serializers.DecimalField(max_digits=12, decimal_places=3)
    notes = serializers.CharField(required=False, allow_blank=True, default='')

    def validate_quantity(self, value):
        if value == 0:
            raise serializers.ValidationError("La quantité d'ajustement ne peut pas être nulle.")
        return value
