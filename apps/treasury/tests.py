"""
Tests for Treasury app - accounts, movements, expenses
"""
import pytest
from django.core.exceptions import ValidationError
from django.urls import reverse
from rest_framework import status
from decimal import Decimal
from datetime import date

from apps.treasury.models import Account, TreasuryTransaction, Expense
from apps.treasury.services import post_transaction, reverse_transaction, post_expense
from conftest import AccountFactory, ExpenseFactory


# ============= Account Model Tests =============

@pytest.mark.django_db
class TestAccountModel:
    """Test Account model"""

    def test_account_creation(self, account):
        """Test that the current balance starts at the initial balance"""
        assert account.name == "Caisse"
        assert account.initial_balance == Decimal('500.000')
        assert account.current_balance == Decimal('500.000')
        assert str(account) == "Caisse (Caisse)"

    def test_ensure_defaults(self, db):
        """Test the standard accounts and that they are created once"""
        Account.ensure_defaults()
        Account.ensure_defaults()
        names = set(Account.objects.values_list('name', flat=True))
        assert names == {'Caisse', 'Banque Principale', 'Banque Secondaire', 'Chèques'}
        assert Account.objects.get(name='Chèques').account_type == 'check'


# ============= Service Tests =============

@pytest.mark.django_db
class TestPostTransaction:
    """Test treasury postings"""

    def test_income(self, account):
        """Test that an income raises the balance"""
        entry = post_transaction(account, 'income', '150.500', category='Ventes')
        account.refresh_from_db()
        assert account.current_balance == Decimal('650.500')
        assert entry.balance_after == Decimal('650.500')
        assert entry.signed_amount == Decimal('150.500')

    def test_expense(self, account):
        """Test that an expense lowers the balance"""
        entry = post_transaction(account, 'expense', 80, category='Loyer')
        account.refresh_from_db()
        assert account.current_balance == Decimal('420.000')
        assert entry.signed_amount == Decimal('-80')

    def test_running_balance(self, account):
        """Test balance_after across several movements"""
        post_transaction(account, 'income', 100)
        post_transaction(account, 'expense', 30)
        balances = list(
            TreasuryTransaction.objects.filter(account=account).order_by('id').values_list('balance_after', flat=True)
        )
        assert balances == [Decimal('600'), Decimal('570')]

    def test_invalid_amount(self, account):
        """Test that amounts must be positive"""
        with pytest.raises(ValidationError):
            post_transaction(account, 'income', 0)
        with pytest.raises(ValidationError):
            post_transaction(account, 'income', '-5')

    def test_invalid_type(self, account):
        """Test an unknown movement type"""
        with pytest.raises(ValidationError):
            post_transaction(account, 'transfer', 10)

    def test_inactive_account(self, db):
        """Test that disabled accounts refuse movements"""
        closed = AccountFactory(is_active=False)
        with pytest.raises(ValidationError):
            post_transaction(closed, 'income', 10)
        assert TreasuryTransaction.objects.count() == 0

    def test_reverse(self, account):
        """Test that reversing restores the balance"""
        entry = post_transaction(account, 'expense', 200)
        reverse_transaction(entry)
        account.refresh_from_db()
        assert account.current_balance == Decimal('500.000')
        assert TreasuryTransaction.objects.count() == 0


@pytest.mark.django_db
class TestExpenseService:
    """Test expense postings"""

    def test_expense_with_account(self, account):
        """Test that a paid expense posts a movement in its treasury category"""
        expense = ExpenseFactory(account=account, category='Matiere premiere', amount=Decimal('120.000'))
        entry = post_expense(expense)
        assert entry.category == 'Achats'
        assert entry.reference_type == 'expense'
        assert entry.reference_id == str(expense.id)
        assert expense.transaction == entry
        account.refresh_from_db()
        assert account.current_balance == Decimal('380.000')

    def test_default_category(self, db):
        """Test the fallback treasury category"""
        assert ExpenseFactory(category='Internet').treasury_category == 'Charges'

    def test_expense_without_account(self, db):
        """Test that an expense without account posts nothing"""
        expense = ExpenseFactory()
        assert post_expense(expense) is None
        assert TreasuryTransaction.objects.count() == 0


# ============= API Tests =============

@pytest.mark.django_db
@pytest.mark.api
class TestAccountAPI:
    """Test account endpoints"""

    def test_create_account(self, admin_client):
        """Test creating an account"""
        data = {'name': 'Banque BIAT', 'account_type': 'bank', 'initial_balance': '1500.000'}
        response = admin_client.post(reverse('account-list'), data, format='json')
        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['current_balance'] == '1500.000'

    def test_sales_role_cannot_create_account(self, authenticated_client):
        """Test that treasury is closed to the sales role"""
        data = {'name': 'X', 'account_type': 'cash'}
        response = authenticated_client.post(reverse('account-list'), data, format='json')
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_initial_balance_locked_after_movement(self, admin_client, account):
        """Test that the initial balance is frozen once used"""
        post_transaction(account, 'income', 10)
        url = reverse('account-detail', kwargs={'pk': account.id})
        response = admin_client.patch(url, {'initial_balance': '900'}, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_initial_balance_editable_before_movement(self, admin_client, account):
        """Test changing the initial balance of an unused account"""
        url = reverse('account-detail', kwargs={'pk': account.id})
        response = admin_client.patch(url, {'initial_balance': '900'}, format='json')
        assert response.status_code == status.HTTP_200_OK
        account.refresh_from_db()
        assert account.current_balance == Decimal('900.000')

    def test_balances(self, admin_client, account):
        """Test balances per account and type"""
        AccountFactory(name='Banque', account_type='bank', initial_balance=Decimal('1000'))
        AccountFactory(name='Ancien compte', is_active=False, initial_balance=Decimal('99'))
        response = admin_client.get(reverse('account-balances'))
        assert response.status_code == status.HTTP_200_OK
        assert len(response.data['accounts']) == 2
        assert response.data['total'] == '1500.000'
        assert response.data['by_type'] == {'bank': '1000.000', 'cash': '500.000'}

    def test_initialize_defaults(self, admin_client):
        """Test creating the standard accounts"""
        response = admin_client.post(reverse('account-initialize-defaults'))
        assert response.status_code == status.HTTP_200_OK
        assert len(response.data) == 4

    def test_delete_account_with_movements_refused(self, admin_client, account):
        """Test that an account with movements cannot be deleted"""
        post_transaction(account, 'income', 10)
        response = admin_client.delete(reverse('account-detail', kwargs={'pk': account.id}))
        assert response.status_code == status.HTTP_400_BAD_REQUEST


@pytest.mark.django_db
@pytest.mark.api
class TestTransactionAPI:
    """Test treasury movement endpoints"""

    def test_create_movement(self, admin_client, account):
        """Test a manual movement updates the balance"""
        data = {'account': account.id, 'type': 'income', 'amount': '75.000',
                'category': 'Remboursement', 'tags': ['salon']}
        response = admin_client.post(reverse('treasurytransaction-list'), data, format='json')
        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['balance_after'] == '575.000'
        account.refresh_from_db()
        assert account.current_balance == Decimal('575.000')

    def test_create_on_inactive_account(self, admin_client):
        """Test that disabled accounts are refused"""
        closed = AccountFactory(is_active=False)
        data = {'account': closed.id, 'type': 'income', 'amount': '5'}
        response = admin_client.post(reverse('treasurytransaction-list'), data, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_movements_not_editable(self, admin_client, account):
        """Test that movements cannot be updated"""
        entry = post_transaction(account, 'income', 10)
        url = reverse('treasurytransaction-detail', kwargs={'pk': entry.id})
        response = admin_client.patch(url, {'amount': '20'}, format='json')
        assert response.status_code == status.HTTP_405_METHOD_NOT_ALLOWED

    def test_delete_reverses(self, admin_client, account):
        """Test that deleting a manual movement restores the balance"""
        entry = post_transaction(account, 'expense', 40)
        response = admin_client.delete(reverse('treasurytransaction-detail', kwargs={'pk': entry.id}))
        assert response.status_code == status.HTTP_204_NO_CONTENT
        account.refresh_from_db()
        assert account.current_balance == Decimal('500.000')

    def test_summary(self, admin_client, account):
        """Test totals and categories"""
        post_transaction(account, 'income', 300, category='Ventes')
        post_transaction(account, 'income', 50, category='Autre')
        post_transaction(account, 'expense', 120, category='Loyer')
        response = admin_client.get(reverse('treasurytransaction-summary'))
        assert response.status_code == status.HTTP_200_OK
        assert response.data['income'] == '350.000'
        assert response.data['expense'] == '120.000'
        assert response.data['net'] == '230.000'
        assert response.data['count'] == 3
        assert len(response.data['by_category']) == 3

    def test_filters(self, admin_client, account):
        """Test type, tag and date filters"""
        post_transaction(account, 'income', 10, tags=['salon'], transaction_date=date(2024, 3, 1))
        post_transaction(account, 'expense', 10, transaction_date=date(2024, 4, 1))
        url = reverse('treasurytransaction-list')
        assert admin_client.get(url, {'type': 'expense'}).data['count'] == 1
        assert admin_client.get(url, {'tag': 'salon'}).data['count'] == 1
        assert admin_client.get(url, {'date_from': '2024-03-15'}).data['count'] == 1


@pytest.mark.django_db
@pytest.mark.integration
class TestExpenseAPI:
    """Test expenses and their treasury movements"""

    def test_create_expense_posts_movement(self, admin_client, account):
        """Test that an expense paid from an account moves the balance"""
        data = {'category': 'Loyer', 'description': 'Loyer atelier mars', 'amount': '450.000',
                'account': account.id, 'expense_date': '2024-03-01', 'tags': ['atelier']}
        response = admin_client.post(reverse('expense-list'), data, format='json')
        assert response.status_code == status.HTTP_201_CREATED
        expense = Expense.objects.get()
        assert expense.transaction is not None
        assert expense.transaction.category == 'Loyer'
        assert expense.transaction.tags == ['atelier']
        account.refresh_from_db()
        assert account.current_balance == Decimal('50.000')

    def test_update_expense_reposts(self, admin_client, account):
        """Test that editing the amount replaces the movement"""
        admin_client.post(reverse('expense-list'), {
            'category': 'Internet', 'description': 'Fibre', 'amount': '100', 'account': account.id
        }, format='json')
        expense = Expense.objects.get()
        url = reverse('expense-detail', kwargs={'pk': expense.id})
        response = admin_client.patch(url, {'amount': '60'}, format='json')
        assert response.status_code == status.HTTP_200_OK
        account.refresh_from_db()
        assert account.current_balance == Decimal('440.000')
        assert TreasuryTransaction.objects.count() == 1

    def test_move_expense_to_other_account(self, admin_client, account):
        """Test that changing the account moves the movement too"""
        bank = AccountFactory(name='Banque', account_type='bank', initial_balance=Decimal('1000'))
        admin_client.post(reverse('expense-list'), {
            'category': 'Transport', 'description': 'Livraison', 'amount': '20', 'account': account.id
        }, format='json')
        expense = Expense.objects.get()
        admin_client.patch(reverse('expense-detail', kwargs={'pk': expense.id}), {'account': bank.id}, format='json')
        account.refresh_from_db()
        bank.refresh_from_db()
        assert account.current_balance == Decimal('500.000')
        assert bank.current_balance == Decimal('980.000')

    def test_delete_expense_reverses(self, admin_client, account):
        """Test that deleting an expense restores the balance"""
        admin_client.post(reverse('expense-list'), {
            'category': 'Marketing', 'description': 'Flyers', 'amount': '35', 'account': account.id
        }, format='json')
        expense = Expense.objects.get()
        response = admin_client.delete(reverse('expense-detail', kwargs={'pk': expense.id}))
        assert response.status_code == status.HTTP_204_NO_CONTENT
        account.refresh_from_db()
        assert account.current_balance == Decimal('500.000')
        assert TreasuryTransaction.objects.count() == 0

    def test_blank_description_refused(self, admin_client):
        """Test that an expense needs a description"""
        data = {'category': 'Autre', 'description': ' ', 'amount': '10'}
        response = admin_client.post(reverse('expense-list'), data, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_summary(self, admin_client, db):
        """Test totals by category and tag"""
        ExpenseFactory(category='Loyer', amount=Decimal('400'), tags=['atelier'])
        ExpenseFactory(category='Fournitures', amount=Decimal('25'), tags=['atelier', 'bureau'])
        ExpenseFactory(category='Fournitures', amount=Decimal('15'))
        response = admin_client.get(reverse('expense-summary'))
        assert response.status_code == status.HTTP_200_OK
        assert response.data['total'] == '440.000'
        assert response.data['count'] == 3
        assert response.data['by_category'][0]['category'] == 'Loyer'
        assert response.data['by_tag'] == {'atelier': '425.000', 'bureau': '25.000'}

    def test_accented_tag_filter(self, admin_client, db):
        """Test filtering expenses on a tag with accents"""
        ExpenseFactory(tags=['équipe'])
        ExpenseFactory(tags=['atelier'])
        url = reverse('expense-list')
        assert admin_client.get(url, {'tag': 'équipe'}).data['count'] == 1
        assert admin_client.get(url, {'tag': 'atelier'}).data['count'] == 1
        assert admin_client.get(url, {'tag': 'equipe'}).data['count'] == 0
