from django.contrib import admin
from .models import PurchaseOrder, PurchaseOrderItem


class PurchaseOrderItemInline(admin.TabularInline):
    model = PurchaseOrderItem
    extra = 1
    fields = ('product', 'description', 'quantity', 'unit_price', 'tva_rate',
              'discount_percent', 'total_ht', 'total_ttc')
    readonly_fields = ('total_ht', 'total_ttc')


@admin.register(PurchaseOrder)
class PurchaseOrderAdmin(admin.ModelAdmin):
    list_display = ('number', 'supplier', 'issue_date', 'total', 'retenue_source', 'net_to_pay', 'status')
    search_fields = ('number', 'supplier__name', 'notes')
    list_filter = ('status', 'issue_date', 'warehouse')
    date_hierarchy = 'issue_date'
    readonly_fields = ('subtotal', 'discount_amount', 'tva_amount', 'fodec_amount', 'total',
                       'retenue_source', 'net_to_pay', 'created_by', 'created_at', 'updated_at')
    inlines = [PurchaseOrderItemInline]

    def save_related(self, request, form, formsets, change):
        super().save_related(request, form, formsets, change)
        form.instance.recalculate()
