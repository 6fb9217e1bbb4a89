from rest_framework import serializers

from apps.sales.serializers import (
    DocumentLineSerializer, DocumentSerializer, DOCUMENT_FIELDS, DOCUMENT_READ_ONLY
)
from .models import PurchaseOrder, PurchaseOrderItem


class PurchaseOrderItemSerializer(DocumentLineSerializer):
    class Meta(DocumentLineSerializer.Meta):
        model = PurchaseOrderItem


class PurchaseOrderSerializer(DocumentSerializer):
    items = PurchaseOrderItemSerializer(many=True)
    supplier_name = serializers.CharField(source='supplier.name', read_only=True)
    supplier_tax_id = serializers.CharField(source='supplier.tax_id', read_only=True)

    class Meta:
        model = PurchaseOrder
        fields = DOCUMENT_FIELDS + [
            'supplier', 'supplier_name', 'supplier_tax_id', 'expected_date', 'received_date',
            'retenue_source', 'net_to_pay', 'tags'
        ]
        read_only_fields = DOCUMENT_READ_ONLY + ['received_date', 'retenue_source', 'net_to_pay']

    def default_unit_price(self, product):
        return product.purchase_price or product.cost_price

    def validate_supplier(self, value):
        if not value.is_active:
            raise serializers.ValidationError("Ce fournisseur est désactivé.")
        return value
