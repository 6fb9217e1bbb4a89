from django.contrib import admin
from .models import CompanySettings, NumberingSequence, TaxRule


@admin.register(CompanySettings)
class CompanySettingsAdmin(admin.ModelAdmin):
    fieldsets = (
        ('Société', {
            'fields': ('company_name', 'tax_id', 'rib', 'address', 'city', 'postal_code',
                       'phone', 'email', 'website')
        }),
        ('Documents', {
            'fields': ('logo', 'cachet', 'invoice_template', 'show_qr_code', 'decimals',
                       'pdf_footer', 'pdf_conditions')
        }),
        ('Fiscalité', {
            'fields': ('default_tva_rate', 'default_fodec_rate', 'default_timbre')
        }),
    )

    def has_add_permission(self, request):
        return not CompanySettings.objects.exists()

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(NumberingSequence)
class NumberingSequenceAdmin(admin.ModelAdmin):
    list_display = ('document_type', 'prefix', 'padding', 'include_year', 'current_year', 'current_sequence')
    list_editable = ('prefix', 'padding', 'include_year')


@admin.register(TaxRule)
class TaxRuleAdmin(admin.ModelAdmin):
    list_display = ('name', 'type', 'rate', 'is_active', 'is_default')
    list_filter = ('type', 'is_active')
    search_fields = ('name',)
