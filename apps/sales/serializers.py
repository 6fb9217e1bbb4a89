from django.db import transaction
from rest_framework import serializers

from apps.app_settings.models import NumberingSequence
from apps.treasury.models import Account

from .models import (
    Quote, QuoteItem, Proforma, ProformaItem, Invoice, InvoiceItem, Payment,
    SalesOrder, SalesOrderItem, DeliveryNote, DeliveryNoteItem,
    ReturnOrder, ReturnOrderItem, CreditNote, CreditNoteItem
)
from .services import apply_company_defaults

LINE_FIELDS = [
    'id', 'product', 'product_name', 'description', 'quantity', 'unit_price',
    'tva_rate', 'discount_percent', 'total_ht', 'total_tva', 'total_ttc', 'position'
]

DOCUMENT_FIELDS = [
    'id', 'number', 'warehouse', 'issue_date', 'status', 'status_display',
    'allowed_transitions', 'discount_percent', 'fodec_rate', 'timbre_amount',
    'subtotal', 'discount_amount', 'tva_amount', 'fodec_amount', 'total',
    'notes', 'created_by', 'created_at', 'updated_at', 'items'
]

DOCUMENT_READ_ONLY = [
    'id', 'status', 'subtotal', 'discount_amount', 'tva_amount', 'fodec_amount',
    'total', 'created_by', 'created_at', 'updated_at'
]


class DocumentLineSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source='product.name', read_only=True)

    class Meta:
        fields = LINE_FIELDS
        read_only_fields = ['id', 'total_ht', 'total_tva', 'total_ttc']


class DocumentSerializer(serializers.ModelSerializer):
    """
    Document header with its lines. Lines are replaced as a whole on update
    and the totals are recomputed in the same transaction.
    """
    number = serializers.CharField(required=False, allow_blank=True, max_length=50)
    status_display = serializers.CharField(source='get_status_display', read_only=True)
    allowed_transitions = serializers.SerializerMethodField()

    def get_allowed_transitions(self, obj):
        return list(obj.manual_transitions())

    def default_unit_price(self, product):
        return product.base_price

    def validate_number(self, value):
        value = value.strip()
        if not value:
            return self.instance.number if self.instance else ''
        queryset = self.Meta.model.objects.filter(number=value)
        if self.instance is not None:
            queryset = queryset.exclude(pk=self.instance.pk)
        if queryset.exists():
            raise serializers.ValidationError(f"Le numéro {value} existe déjà.")
        return value

    def validate(self, attrs):
        if self.instance is not None and not self.instance.is_editable:
            raise serializers.ValidationError(
                f"Un document « {self.instance.get_status_display()} » ne peut plus être modifié."
            )
        if self.instance is None and not attrs.get('items'):
            raise serializers.ValidationError({'items': "Le document doit contenir au moins une ligne."})
        for line in attrs.get('items') or []:
            if not line.get('product') and not line.get('description'):
                raise serializers.ValidationError(
                    {'items': "Chaque ligne doit avoir un produit ou une description."}
                )
        return attrs

    def _write_lines(self, document, lines_data):
        for position, line_data in enumerate(lines_data):
            line_data = dict(line_data)
            product = line_data.get('product')
            if product is not None:
                line_data.setdefault('tva_rate', product.tva_rate)
                line_data.setdefault('unit_price', self.default_unit_price(product))
            line_data.setdefault('position', position)
            document.items.create(**line_data)
        document.recalculate()

    def create(self, validated_data):
        lines_data = validated_data.pop('items', [])
        with transaction.atomic():
            document = self.Meta.model.objects.create(**validated_data)
            self._write_lines(document, lines_data)
        return document

    def update(self, instance, validated_data):
        lines_data = validated_data.pop('items', None)
        new_number = validated_data.get('number')
        old_number = instance.number
        with transaction.atomic():
            instance = super().update(instance, validated_data)
            if new_number and new_number != old_number:
                NumberingSequence.register_manual(self.Meta.model.DOCUMENT_TYPE, new_number)
            if lines_data is not None:
                instance.items.all().delete()
                self._write_lines(instance, lines_data)
            else:
                instance.recalculate()
        return instance


class CommercialDocumentSerializer(DocumentSerializer):
    client_name = serializers.CharField(source='client.name', read_only=True)


class QuoteItemSerializer(DocumentLineSerializer):
    class Meta(DocumentLineSerializer.Meta):
        model = QuoteItem


class QuoteSerializer(CommercialDocumentSerializer):
    items = QuoteItemSerializer(many=True)

    class Meta:
        model = Quote
        fields = DOCUMENT_FIELDS + ['client', 'client_name', 'valid_until', 'converted_invoice']
        read_only_fields = DOCUMENT_READ_ONLY + ['converted_invoice']


class ProformaItemSerializer(DocumentLineSerializer):
    class Meta(DocumentLineSerializer.Meta):
        model = ProformaItem


class ProformaSerializer(CommercialDocumentSerializer):
    items = ProformaItemSerializer(many=True)

    class Meta:
        model = Proforma
        fields = DOCUMENT_FIELDS + [
            'client', 'client_name', 'valid_until', 'payment_terms', 'delivery_terms',
            'public_token', 'tags', 'converted_invoice'
        ]
        read_only_fields = DOCUMENT_READ_ONLY + ['public_token', 'converted_invoice']

    def create(self, validated_data):
        return super().create(apply_company_defaults(validated_data))


class InvoiceItemSerializer(DocumentLineSerializer):
    class Meta(DocumentLineSerializer.Meta):
        model = InvoiceItem


class PaymentSerializer(serializers.ModelSerializer):
    invoice_number = serializers.CharField(source='invoice.number', read_only=True)
    account_name = serializers.CharField(source='account.name', read_only=True)

    class Meta:
        model = Payment
        fields = [
            'id', 'invoice', 'invoice_number', 'account', 'account_name', 'amount',
            'method', 'reference', 'payment_date', 'notes', 'created_by', 'created_at'
        ]
        read_only_fields = ['id', 'invoice', 'created_by', 'created_at']


class PaymentInputSerializer(serializers.Serializer):
    """Payload of the record_payment action"""
    amount = serializers.DecimalField(max_digits=15, decimal_places=3)
    account = serializers.PrimaryKeyRelatedField(
        queryset=Account.objects.filter(is_active=True),
        required=False,
        allow_null=True
    )
    method = serializers.ChoiceField(choices=Payment.METHOD_CHOICES, default='cash')
    reference = serializers.CharField(required=False, allow_blank=True, default='')
    payment_date = serializers.DateField(required=False)
    notes = serializers.CharField(required=False, allow_blank=True, default='')

    def validate_amount(self, value):
        if value <= 0:
            raise serializers.ValidationError("Le montant du paiement doit être supérieur à 0.")
        return value


class InvoiceSerializer(CommercialDocumentSerializer):
    items = InvoiceItemSerializer(many=True)
    payments = PaymentSerializer(many=True, read_only=True)
    paid_amount = serializers.DecimalField(max_digits=15, decimal_places=3, read_only=True)
    remaining_amount = serializers.DecimalField(max_digits=15, decimal_places=3, read_only=True)

    class Meta:
        model = Invoice
        fields = DOCUMENT_FIELDS + [
            'client', 'client_name', 'due_date', 'public_token', 'tags',
            'source_quote', 'source_proforma', 'paid_amount', 'remaining_amount', 'payments'
        ]
        read_only_fields = DOCUMENT_READ_ONLY + ['public_token', 'source_quote', 'source_proforma']

    def validate(self, attrs):
        attrs = super().validate(attrs)
        issue_date = attrs.get('issue_date') or (self.instance.issue_date if self.instance else None)
        due_date = attrs.get('due_date')
        if issue_date and due_date and due_date < issue_date:
            raise serializers.ValidationError(
                {'due_date': "La date d'échéance doit être postérieure à la date de facture."}
            )
        return attrs

    def create(self, validated_data):
        return super().create(apply_company_defaults(validated_data))


class SalesOrderItemSerializer(DocumentLineSerializer):
    class Meta(DocumentLineSerializer.Meta):
        model = SalesOrderItem


class SalesOrderSerializer(CommercialDocumentSerializer):
    items = SalesOrderItemSerializer(many=True)

    class Meta:
        model = SalesOrder
        fields = DOCUMENT_FIELDS + ['client', 'client_name', 'delivery_date', 'delivery_note', 'invoice']
        read_only_fields = DOCUMENT_READ_ONLY + ['delivery_note', 'invoice']


class DeliveryNoteItemSerializer(DocumentLineSerializer):
    class Meta(DocumentLineSerializer.Meta):
        model = DeliveryNoteItem


class DeliveryNoteSerializer(CommercialDocumentSerializer):
    items = DeliveryNoteItemSerializer(many=True)

    class Meta:
        model = DeliveryNote
        fields = DOCUMENT_FIELDS + ['client', 'client_name', 'delivery_date', 'delivery_address', 'invoice']
        read_only_fields = DOCUMENT_READ_ONLY + ['invoice']


class ReturnOrderItemSerializer(DocumentLineSerializer):
    class Meta(DocumentLineSerializer.Meta):
        model = ReturnOrderItem


class ReturnOrderSerializer(CommercialDocumentSerializer):
    items = ReturnOrderItemSerializer(many=True)

    class Meta:
        model = ReturnOrder
        fields = DOCUMENT_FIELDS + [
            'client', 'client_name', 'invoice', 'sales_order', 'return_reason', 'return_to_stock'
        ]
        read_only_fields = DOCUMENT_READ_ONLY

    def validate(self, attrs):
        attrs = super().validate(attrs)
        client = attrs.get('client') or (self.instance.client if self.instance else None)
        invoice = attrs.get('invoice')
        if invoice is not None and client is not None and invoice.client_id != client.pk:
            raise serializers.ValidationError({'invoice': "La facture n'appartient pas à ce client."})
        return attrs


class CreditNoteItemSerializer(DocumentLineSerializer):
    class Meta(DocumentLineSerializer.Meta):
        model = CreditNoteItem


class CreditNoteSerializer(CommercialDocumentSerializer):
    items = CreditNoteItemSerializer(many=True)
    invoice_number = serializers.CharField(source='invoice.number', read_only=True, default=None)

    class Meta:
        model = CreditNote
        fields = DOCUMENT_FIELDS + [
            'client', 'client_name', 'type', 'invoice', 'invoice_number', 'return_order', 'reason'
        ]
        read_only_fields = DOCUMENT_READ_ONLY

    def validate(self, attrs):
        attrs = super().validate(attrs)
        client = attrs.get('client') or (self.instance.client if self.instance else None)
        invoice = attrs.get('invoice')
        if invoice is not None:
            if client is not None and invoice.client_id != client.pk:
                raise serializers.ValidationError({'invoice': "La facture n'appartient pas à ce client."})
            if invoice.status not in ('validated', 'paid'):
                raise serializers.ValidationError(
                    {'invoice': "Un avoir ne peut porter que sur une facture validée ou payée."}
                )
        return attrs

    def create(self, validated_data):
        with transaction.atomic():
            credit_note = super().create(validated_data)
            credit_note.check_creditable()
        return credit_note

    def update(self, instance, validated_data):
        with transaction.atomic():
            credit_note = super().update(instance, validated_data)
            credit_note.check_creditable()
        return credit_note
