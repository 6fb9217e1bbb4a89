"""
Tests for Dashboard app - stats, cash flow, recent activity
"""
import pytest
from datetime import date, timedelta
from decimal import Decimal
from django.urls import reverse
from django.utils import timezone
from rest_framework import status

from apps.sales.services import record_payment
from apps.treasury.services import post_transaction
from conftest import InvoiceFactory, ProductionJobFactory, ExpenseFactory


@pytest.mark.django_db
@pytest.mark.api
class TestDashboardStats:
    """Test the overview figures"""

    def test_requires_authentication(self, api_client):
        """Test that anonymous users are refused"""
        response = api_client.get(reverse('dashboard-stats'))
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_revenue_and_outstanding(self, authenticated_client, client_partner, account):
        """Test that drafts and cancelled invoices are left out of revenue"""
        paid_in_part = InvoiceFactory(client=client_partner, status='validated')
        InvoiceFactory(client=client_partner, status='validated')
        InvoiceFactory(client=client_partner)
        InvoiceFactory(client=client_partner, status='cancelled')
        record_payment(paid_in_part, Decimal('100.000'), account=account)

        response = authenticated_client.get(reverse('dashboard-stats'))
        assert response.status_code == status.HTTP_200_OK
        assert response.data['total_revenue'] == '476.000'
        assert response.data['paid_revenue'] == '100.000'
        assert response.data['outstanding'] == '376.000'
        assert response.data['month_revenue'] == '476.000'
        assert response.data['unpaid_invoices'] == 2
        assert response.data['total_clients'] == 1

    def test_growth_without_previous_month(self, authenticated_client, validated_invoice):
        """Test growth when last month had no revenue"""
        response = authenticated_client.get(reverse('dashboard-stats'))
        assert response.data['previous_month_revenue'] == '0.000'
        assert response.data['revenue_growth'] == 100.0

    def test_jobs_and_expenses(self, authenticated_client, db):
        """Test production counters and expenses of the month"""
        yesterday = timezone.localdate() - timedelta(days=1)
        ProductionJobFactory()
        ProductionJobFactory(status='in_progress', deadline=yesterday)
        ProductionJobFactory(status='completed', deadline=yesterday)
        ExpenseFactory(amount=Decimal('30.000'))

        response = authenticated_client.get(reverse('dashboard-stats'))
        assert response.data['pending_jobs'] == 1
        assert response.data['in_progress_jobs'] == 1
        assert response.data['overdue_jobs'] == 1
        assert response.data['month_expenses'] == '30.000'


@pytest.mark.django_db
@pytest.mark.api
class TestCashFlow:
    """Test monthly income and expenses"""

    def test_months_and_totals(self, authenticated_client, account):
        """Test that movements land in their month"""
        post_transaction(account, 'income', 200, transaction_date=date(2024, 2, 10))
        post_transaction(account, 'income', 50, transaction_date=date(2024, 2, 20))
        post_transaction(account, 'expense', 80, transaction_date=date(2024, 5, 1))
        post_transaction(account, 'income', 999, transaction_date=date(2023, 12, 31))

        response = authenticated_client.get(reverse('dashboard-cash-flow'), {'year': 2024})
        assert response.status_code == status.HTTP_200_OK
        months = response.data['months']
        assert len(months) == 12
        assert months[1]['label'] == 'Fév'
        assert months[1]['income'] == '250.000'
        assert months[4]['expense'] == '80.000'
        assert months[4]['net'] == '-80.000'
        assert months[0]['income'] == '0.000'
        assert response.data['total_income'] == '250.000'
        assert response.data['total_expense'] == '80.000'
        assert response.data['net'] == '170.000'

    def test_invalid_year(self, authenticated_client):
        """Test that a non numeric year is refused"""
        response = authenticated_client.get(reverse('dashboard-cash-flow'), {'year': 'deux-mille'})
        assert response.status_code == status.HTTP_400_BAD_REQUEST


@pytest.mark.django_db
@pytest.mark.api
class TestRecentActivity:
    """Test latest invoices and jobs"""

    def test_recent_activity(self, authenticated_client, client_partner):
        """Test newest first with a limit"""
        InvoiceFactory(client=client_partner)
        newest = InvoiceFactory(client=client_partner)
        job = ProductionJobFactory(client=client_partner)

        response = authenticated_client.get(reverse('dashboard-recent-activity'), {'limit': 1})
        assert response.status_code == status.HTTP_200_OK
        assert len(response.data['invoices']) == 1
        assert response.data['invoices'][0]['number'] == newest.number
        assert response.data['invoices'][0]['client_name'] == "Client Test"
        assert response.data['production_jobs'][0]['job_number'] == job.job_number
        assert response.data['production_jobs'][0]['overdue'] is False
