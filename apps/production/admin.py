from django.contrib import admin
from .models import ProductionJob, ProductionMaterial


class ProductionMaterialInline(admin.TabularInline):
    model = ProductionMaterial
    extra = 1
    fields = ('product', 'quantity')


@admin.register(ProductionJob)
class ProductionJobAdmin(admin.ModelAdmin):
    list_display = ('job_number', 'title', 'technique', 'priority', 'status', 'quantity', 'deadline', 'client')
    search_fields = ('job_number', 'title', 'client__name', 'notes')
    list_filter = ('status', 'technique', 'priority', 'deadline')
    date_hierarchy = 'created_at'
    readonly_fields = ('job_number', 'started_at', 'completed_at', 'created_by', 'created_at', 'updated_at')
    inlines = [ProductionMaterialInline]
    fieldsets = (
        ('Travail', {
            'fields': ('job_number', 'title', 'technique', 'priority', 'status', 'quantity', 'deadline')
        }),
        ('Liens', {
            'fields': ('client', 'invoice', 'sales_order')
        }),
        ('Suivi', {
            'fields': ('started_at', 'completed_at', 'notes', 'created_by', 'created_at', 'updated_at')
        }),
    )
