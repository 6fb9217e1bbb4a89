from django.contrib import admin
from .models import Account, TreasuryTransaction, Expense


@admin.register(Account)
class AccountAdmin(admin.ModelAdmin):
    list_display = ('name', 'account_type', 'initial_balance', 'current_balance', 'is_active')
    list_filter = ('account_type', 'is_active')
    search_fields = ('name', 'description')
    readonly_fields = ('current_balance', 'created_at')


@admin.register(TreasuryTransaction)
class TreasuryTransactionAdmin(admin.ModelAdmin):
    list_display = ('transaction_date', 'account', 'type', 'category', 'amount', 'balance_after', 'reference_type')
    list_filter = ('type', 'category', 'account', 'transaction_date')
    search_fields = ('description', 'reference_id')
    date_hierarchy = 'transaction_date'
    readonly_fields = [field.name for field in TreasuryTransaction._meta.fields]

    def has_add_permission(self, request):
        return False


@admin.register(Expense)
class ExpenseAdmin(admin.ModelAdmin):
    list_display = ('expense_date', 'category', 'description', 'amount', 'account')
    list_filter = ('category', 'account', 'expense_date')
    search_fields = ('description', 'notes')
    date_hierarchy = 'expense_date'
    readonly_fields = ('transaction', 'created_by', 'created_at')
