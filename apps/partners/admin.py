from django.contrib import admin
from .models import Client, Supplier, SupplierBankAccount


@admin.register(Client)
class ClientAdmin(admin.ModelAdmin):
    list_display = ('name', 'type', 'phone', 'email', 'city', 'tax_id', 'is_active')
    search_fields = ('name', 'email', 'phone', 'tax_id')
    list_filter = ('type', 'is_active', 'city')


class SupplierBankAccountInline(admin.TabularInline):
    model = SupplierBankAccount
    extra = 0


@admin.register(Supplier)
class SupplierAdmin(admin.ModelAdmin):
    list_display = ('name', 'contact_name', 'phone', 'category', 'company_type', 'is_active')
    search_fields = ('name', 'contact_name', 'email', 'tax_id')
    list_filter = ('company_type', 'category', 'is_active')
    inlines = [SupplierBankAccountInline]
