from django.contrib import admin
from .models import Product, ProductVariant, StockMovement


class ProductVariantInline(admin.TabularInline):
    model = ProductVariant
    extra = 0


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ('sku', 'name', 'category', 'product_type', 'base_price', 'tva_rate', 'stock_quantity', 'is_active')
    search_fields = ('sku', 'name', 'description')
    list_filter = ('category', 'product_type', 'destination', 'is_active')
    readonly_fields = ('stock_quantity', 'created_at', 'updated_at')
    inlines = [ProductVariantInline]


@admin.register(StockMovement)
class StockMovementAdmin(admin.ModelAdmin):
    list_display = ('date', 'product', 'warehouse', 'movement_type', 'reference', 'quantity_in', 'quantity_out', 'balance')
    list_filter = ('movement_type', 'warehouse')
    search_fields = ('reference', 'product__name', 'product__sku')
    date_hierarchy = 'date'
