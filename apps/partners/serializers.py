from rest_framework import serializers
from .models import Client, Supplier, SupplierBankAccount


class ClientSerializer(serializers.ModelSerializer):
    created_by_name = serializers.CharField(source='created_by.username', read_only=True)

    class Meta:
        model = Client
        fields = ['id', 'name', 'type', 'email', 'phone', 'address', 'city', 'tax_id',
                  'notes', 'is_active', 'created_by', 'created_by_name', 'created_at']
        read_only_fields = ['id', 'created_by', 'created_at']

    def validate_name(self, value):
        if not value.strip():
            raise serializers.ValidationError("Le nom du client est requis.")
        return value.strip()

    def validate(self, attrs):
        client_type = attrs.get('type', getattr(self.instance, 'type', 'b2c'))
        tax_id = attrs.get('tax_id', getattr(self.instance, 'tax_id', ''))
        if client_type == 'b2b' and not tax_id:
            raise serializers.ValidationError(
                {'tax_id': "Le matricule fiscal est requis pour un client entreprise."}
            )
        return attrs


class SupplierBankAccountSerializer(serializers.ModelSerializer):
    supplier_name = serializers.CharField(source='supplier.name', read_only=True)

    class Meta:
        model = SupplierBankAccount
        fields = ['id', 'supplier', 'supplier_name', 'bank_name', 'rib_iban',
                  'account_holder', 'notes', 'is_default']


class SupplierSerializer(serializers.ModelSerializer):
    bank_accounts = SupplierBankAccountSerializer(many=True, read_only=True)

    class Meta:
        model = Supplier
        fields = ['id', 'name', 'contact_name', 'email', 'phone', 'address', 'city',
                  'tax_id', 'category', 'company_type', 'notes', 'is_active',
                  'bank_accounts', 'created_at']
        read_only_fields = ['id', 'created_at']

    def validate_name(self, value):
        if not value.strip():
            raise serializers.ValidationError("Le nom du fournisseur est requis.")
        return value.strip()
