from rest_framework import serializers
from .models import Account, TreasuryTransaction, Expense


class AccountSerializer(serializers.ModelSerializer):
    account_type_display = serializers.CharField(source='get_account_type_display', read_only=True)

    class Meta:
        model = Account
        fields = ['id', 'name', 'account_type', 'account_type_display', 'initial_balance',
                  'current_balance', 'description', 'is_active', 'created_at']
        read_only_fields = ['current_balance', 'created_at']

    def validate_initial_balance(self, value):
        if self.instance is not None and value != self.instance.initial_balance \
                and self.instance.transactions.exists():
            raise serializers.ValidationError(
                "Le solde initial ne peut plus être modifié après le premier mouvement."
            )
        return value

    def update(self, instance, validated_data):
        if 'initial_balance' in validated_data and not instance.transactions.exists():
            instance.current_balance = validated_data['initial_balance']
        return super().update(instance, validated_data)


class TreasuryTransactionSerializer(serializers.ModelSerializer):
    account_name = serializers.CharField(source='account.name', read_only=True)
    created_by_name = serializers.CharField(source='created_by.username', read_only=True, default=None)

    class Meta:
        model = TreasuryTransaction
        fields = ['id', 'account', 'account_name', 'type', 'category', 'amount', 'payment_method',
                  'transaction_date', 'description', 'tags', 'reference_type', 'reference_id',
                  'balance_after', 'created_by', 'created_by_name', 'created_at']
        read_only_fields = ['reference_type', 'reference_id', 'balance_after', 'created_by', 'created_at']

    def validate_account(self, value):
        if not value.is_active:
            raise serializers.ValidationError("Ce compte est désactivé.")
        return value

    def validate_tags(self, value):
        if not isinstance(value, list) or not all(isinstance(tag, str) for tag in value):
            raise serializers.ValidationError("Les tags doivent être une liste de textes.")
        return value


class ExpenseSerializer(serializers.ModelSerializer):
    category_display = serializers.CharField(source='get_category_display', read_only=True)
    account_name = serializers.CharField(source='account.name', read_only=True, default=None)
    created_by_name = serializers.CharField(source='created_by.username', read_only=True, default=None)

    class Meta:
        model = Expense
        fields = ['id', 'category', 'category_display', 'description', 'amount', 'expense_date',
                  'account', 'account_name', 'payment_method', 'transaction', 'tags', 'receipt',
                  'notes', 'created_by', 'created_by_name', 'created_at']
        read_only_fields = ['transaction', 'created_by', 'created_at']

    def validate_description(self, value):
        if not value.strip():
            raise serializers.ValidationError("La description de la dépense est requise.")
        return value

    def validate_tags(self, value):
        if not isinstance(value, list) or not all(isinstance(tag, str) for tag in value):
            raise serializers.ValidationError("Les tags doivent être une liste de textes.")
        return value
