from django.contrib import admin
from .models import (
    Quote, QuoteItem, Proforma, ProformaItem, Invoice, InvoiceItem, Payment,
    SalesOrder, SalesOrderItem, DeliveryNote, DeliveryNoteItem,
    ReturnOrder, ReturnOrderItem, CreditNote, CreditNoteItem
)

LINE_FIELDS = ('product', 'description', 'quantity', 'unit_price', 'tva_rate',
               'discount_percent', 'total_ht', 'total_ttc')
TOTAL_FIELDS = ('subtotal', 'discount_amount', 'tva_amount', 'fodec_amount', 'total')


class LineInline(admin.TabularInline):
    extra = 1
    fields = LINE_FIELDS
    readonly_fields = ('total_ht', 'total_ttc')


class DocumentAdmin(admin.ModelAdmin):
    list_display = ('number', 'client', 'issue_date', 'total', 'status')
    search_fields = ('number', 'client__name', 'notes')
    list_filter = ('status', 'issue_date', 'warehouse')
    date_hierarchy = 'issue_date'
    readonly_fields = TOTAL_FIELDS + ('created_by', 'created_at', 'updated_at')

    def save_related(self, request, form, formsets, change):
        super().save_related(request, form, formsets, change)
        form.instance.recalculate()


class QuoteItemInline(LineInline):
    model = QuoteItem


@admin.register(Quote)
class QuoteAdmin(DocumentAdmin):
    inlines = [QuoteItemInline]


class ProformaItemInline(LineInline):
    model = ProformaItem


@admin.register(Proforma)
class ProformaAdmin(DocumentAdmin):
    inlines = [ProformaItemInline]


class InvoiceItemInline(LineInline):
    model = InvoiceItem


class PaymentInline(admin.TabularInline):
    model = Payment
    extra = 0
    fields = ('payment_date', 'amount', 'method', 'account', 'reference')
    readonly_fields = fields
    can_delete = False


@admin.register(Invoice)
class InvoiceAdmin(DocumentAdmin):
    list_display = ('number', 'client', 'issue_date', 'due_date', 'total', 'status')
    inlines = [InvoiceItemInline, PaymentInline]


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ('invoice', 'payment_date', 'amount', 'method', 'account')
    list_filter = ('method', 'payment_date')
    search_fields = ('invoice__number', 'reference')


class SalesOrderItemInline(LineInline):
    model = SalesOrderItem


@admin.register(SalesOrder)
class SalesOrderAdmin(DocumentAdmin):
    inlines = [SalesOrderItemInline]


class DeliveryNoteItemInline(LineInline):
    model = DeliveryNoteItem


@admin.register(DeliveryNote)
class DeliveryNoteAdmin(DocumentAdmin):
    list_display = ('number', 'client', 'issue_date', 'delivery_date', 'status')
    inlines = [DeliveryNoteItemInline]


class ReturnOrderItemInline(LineInline):
    model = ReturnOrderItem


@admin.register(ReturnOrder)
class ReturnOrderAdmin(DocumentAdmin):
    inlines = [ReturnOrderItemInline]


class CreditNoteItemInline(LineInline):
    model = CreditNoteItem


@admin.register(CreditNote)
class CreditNoteAdmin(DocumentAdmin):
    list_display = ('number', 'client', 'invoice', 'type', 'total', 'status')
    inlines = [CreditNoteItemInline]
