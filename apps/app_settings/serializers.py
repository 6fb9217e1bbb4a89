from rest_framework import serializers
from .models import CompanySettings, NumberingSequence, TaxRule
from apps.partners.validators import validate_tunisian_tax_id


class CompanySettingsSerializer(serializers.ModelSerializer):
    tej_errors = serializers.SerializerMethodField()

    class Meta:
        model = CompanySettings
        fields = ['company_name', 'address', 'city', 'postal_code', 'phone', 'email',
                  'website', 'tax_id', 'rib', 'logo', 'cachet', 'pdf_footer',
                  'pdf_conditions', 'show_qr_code', 'decimals', 'invoice_template',
                  'default_tva_rate', 'default_fodec_rate', 'default_timbre',
                  'tej_errors', 'updated_at']
        read_only_fields = ['updated_at']

    def get_tej_errors(self, obj):
        return obj.tej_validation_errors()

    def validate_tax_id(self, value):
        if value:
            validate_tunisian_tax_id(value)
        return value


class NumberingSequenceSerializer(serializers.ModelSerializer):
    next_number = serializers.SerializerMethodField()

    class Meta:
        model = NumberingSequence
        fields = ['id', 'document_type', 'prefix', 'padding', 'include_year',
                  'reset_annually', 'current_year', 'current_sequence', 'next_number']

    def get_next_number(self, obj):
        return obj.preview()


class TaxRuleSerializer(serializers.ModelSerializer):
    class Meta:
        model = TaxRule
        fields = ['id', 'name', 'rate', 'type', 'is_active', 'is_default', 'created_at']
        read_only_fields = ['created_at']
