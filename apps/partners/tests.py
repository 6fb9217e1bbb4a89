"""
Tests for Partners app - Client, Supplier models and APIs
"""
import pytest
from django.core.exceptions import ValidationError
from django.urls import reverse
from rest_framework import status
from decimal import Decimal

from apps.partners.models import Client, Supplier, SupplierBankAccount
from apps.partners.validators import validate_tunisian_tax_id
from apps.sales.services import record_payment
from conftest import ClientFactory, SupplierFactory, InvoiceFactory


# ============= Validator Tests =============

class TestTaxIdValidator:
    """Test the matricule fiscal format"""

    @pytest.mark.parametrize('value', ['1234567A', '1234567a', '1234567A/A/M/000', '1234567AAM000', ''])
    def test_valid_tax_ids(self, value):
        """Test accepted matricule fiscal forms"""
        validate_tunisian_tax_id(value)

    @pytest.mark.parametrize('value', ['123456A', '12345678', 'ABCDEFGH', '1234567A/A/M'])
    def test_invalid_tax_ids(self, value):
        """Test rejected matricule fiscal forms"""
        with pytest.raises(ValidationError):
            validate_tunisian_tax_id(value)


# ============= Model Tests =============

@pytest.mark.django_db
class TestClientModel:
    """Test Client model"""

    def test_client_creation(self, client_partner):
        """Test creating a client"""
        assert client_partner.id is not None
        assert client_partner.name == "Client Test"
        assert client_partner.type == 'b2c'
        assert client_partner.is_active is True
        assert str(client_partner) == "Client Test"

    def test_b2b_requires_tax_id(self, db):
        """Test that full_clean refuses a company client without matricule"""
        client = Client(name="Société X", type='b2b')
        with pytest.raises(ValidationError) as exc:
            client.full_clean()
        assert 'tax_id' in exc.value.message_dict

    def test_b2b_with_tax_id(self, db):
        """Test a valid company client"""
        client = Client(name="Société Y", type='b2b', tax_id='1234567A')
        client.full_clean()


@pytest.mark.django_db
class TestSupplierModel:
    """Test Supplier model"""

    def test_supplier_creation(self, supplier_partner):
        """Test creating a supplier"""
        assert supplier_partner.id is not None
        assert supplier_partner.tax_id == "7654321B"
        assert str(supplier_partner) == "Fournisseur Test"

    def test_single_default_bank_account(self, supplier_partner):
        """Test that only one bank account stays the default"""
        first = SupplierBankAccount.objects.create(
            supplier=supplier_partner, bank_name='BIAT', rib_iban='08000000000000000001', is_default=True
        )
        SupplierBankAccount.objects.create(
            supplier=supplier_partner, bank_name='STB', rib_iban='10000000000000000002', is_default=True
        )
        first.refresh_from_db()
        assert first.is_default is False
        assert supplier_partner.bank_accounts.filter(is_default=True).count() == 1


# ============= API Tests =============

@pytest.mark.django_db
@pytest.mark.api
class TestClientAPI:
    """Test Client API endpoints"""

    def test_list_clients(self, authenticated_client, client_partner):
        """Test listing clients"""
        response = authenticated_client.get(reverse('client-list'))
        assert response.status_code == status.HTTP_200_OK
        assert response.data['count'] == 1

    def test_create_client(self, authenticated_client, regular_user):
        """Test creating a private client"""
        data = {'name': "Amine Ben Salah", 'phone': '98123456', 'city': 'Sousse'}
        response = authenticated_client.post(reverse('client-list'), data, format='json')
        assert response.status_code == status.HTTP_201_CREATED
        client = Client.objects.get(name="Amine Ben Salah")
        assert client.created_by == regular_user

    def test_create_b2b_without_tax_id(self, authenticated_client):
        """Test that a company client needs its matricule fiscal"""
        data = {'name': "Société Z", 'type': 'b2b'}
        response = authenticated_client.post(reverse('client-list'), data, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'tax_id' in response.data

    def test_create_client_invalid_tax_id(self, authenticated_client):
        """Test that a malformed matricule is refused"""
        data = {'name': "Société Z", 'type': 'b2b', 'tax_id': '12345'}
        response = authenticated_client.post(reverse('client-list'), data, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_create_client_blank_name(self, authenticated_client):
        """Test that the name is required"""
        response = authenticated_client.post(reverse('client-list'), {'name': '   '}, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_search_clients(self, authenticated_client, db):
        """Test searching clients by name or phone"""
        ClientFactory(name="Imprimerie du Centre", phone='71111111')
        ClientFactory(name="Boutique Sport", phone='72222222')
        response = authenticated_client.get(reverse('client-list'), {'search': 'sport'})
        assert response.data['count'] == 1
        response = authenticated_client.get(reverse('client-list'), {'search': '71111'})
        assert response.data['count'] == 1

    def test_filter_by_type(self, authenticated_client, db):
        """Test filtering clients by B2B/B2C"""
        ClientFactory(type='b2b', tax_id='1111111A')
        ClientFactory(type='b2c')
        response = authenticated_client.get(reverse('client-list'), {'type': 'b2b'})
        assert response.data['count'] == 1

    def test_delete_client_with_invoice_refused(self, admin_client, invoice):
        """Test that a client referenced by an invoice cannot be deleted"""
        url = reverse('client-detail', kwargs={'pk': invoice.client_id})
        response = admin_client.delete(url)
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert Client.objects.filter(pk=invoice.client_id).exists()

    def test_client_summary(self, admin_client, client_partner, account):
        """Test invoiced, paid and outstanding amounts"""
        invoice = InvoiceFactory(client=client_partner, status='validated')
        InvoiceFactory(client=client_partner, status='draft')
        record_payment(invoice, Decimal('100.000'), account=account)

        url = reverse('client-summary', kwargs={'pk': client_partner.id})
        response = admin_client.get(url)
        assert response.status_code == status.HTTP_200_OK
        assert response.data['invoice_count'] == 1
        assert response.data['total_invoiced'] == '238.000'
        assert response.data['total_paid'] == '100.000'
        assert response.data['balance_due'] == '138.000'


@pytest.mark.django_db
@pytest.mark.api
class TestSupplierAPI:
    """Test Supplier API endpoints"""

    def test_sales_role_cannot_create_supplier(self, authenticated_client):
        """Test that suppliers are outside the sales role"""
        response = authenticated_client.post(reverse('supplier-list'), {'name': 'X'}, format='json')
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_create_supplier(self, api_client, make_user):
        """Test creating a supplier with the accountant role"""
        api_client.force_authenticate(user=make_user('accountant'))
        data = {'name': "Encres Méditerranée", 'tax_id': '1234567A/A/M/000', 'category': 'Encres'}
        response = api_client.post(reverse('supplier-list'), data, format='json')
        assert response.status_code == status.HTTP_201_CREATED
        assert Supplier.objects.get(name="Encres Méditerranée").tax_id == '1234567A/A/M/000'

    def test_filter_by_category(self, admin_client, db):
        """Test filtering suppliers by category, case-insensitive"""
        SupplierFactory(category='Encres')
        SupplierFactory(category='Textile')
        response = admin_client.get(reverse('supplier-list'), {'category': 'encres'})
        assert response.data['count'] == 1

    def test_bank_accounts_nested(self, admin_client, supplier_partner):
        """Test that supplier detail includes its bank accounts"""
        SupplierBankAccount.objects.create(supplier=supplier_partner, bank_name='BIAT', rib_iban='0800')
        response = admin_client.get(reverse('supplier-detail', kwargs={'pk': supplier_partner.id}))
        assert response.status_code == status.HTTP_200_OK
        assert response.data['bank_accounts'][0]['bank_name'] == 'BIAT'
