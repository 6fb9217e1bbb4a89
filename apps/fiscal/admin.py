from django.contrib import admin
from .models import TEJExport


@admin.register(TEJExport)
class TEJExportAdmin(admin.ModelAdmin):
    list_display = ('year', 'month', 'format', 'line_count', 'total_retenue', 'exported_by', 'export_date')
    list_filter = ('year', 'format')
    readonly_fields = ('month', 'year', 'format', 'line_count', 'total_retenue', 'exported_by', 'export_date')
