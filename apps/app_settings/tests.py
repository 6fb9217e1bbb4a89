"""
Tests for App Settings - company settings, document numbering, tax rules
"""
import pytest
from decimal import Decimal
from django.core.exceptions import ValidationError
from django.urls import reverse
from rest_framework import status

from apps.app_settings.models import CompanySettings, NumberingSequence, TaxRule
from apps.sales.models import Invoice
from conftest import InvoiceFactory, QuoteFactory


# ============= Numbering Tests =============

@pytest.mark.django_db
class TestNumberingSequence:
    """Test document number allocation"""

    def test_allocate_creates_sequence(self):
        """Test first allocation with the default prefix"""
        assert NumberingSequence.allocate('invoice', year=2024) == 'FAC-2024-00001'
        assert NumberingSequence.allocate('invoice', year=2024) == 'FAC-2024-00002'
        sequence = NumberingSequence.objects.get(document_type='invoice')
        assert sequence.current_sequence == 2
        assert sequence.current_year == 2024

    def test_sequences_are_independent(self):
        """Test that each document type has its own counter"""
        NumberingSequence.allocate('invoice', year=2024)
        assert NumberingSequence.allocate('quote', year=2024) == 'DEV-2024-00001'

    def test_annual_reset(self):
        """Test that the counter restarts with a new year"""
        NumberingSequence.allocate('invoice', year=2024)
        NumberingSequence.allocate('invoice', year=2024)
        assert NumberingSequence.allocate('invoice', year=2025) == 'FAC-2025-00001'

    def test_no_reset_keeps_counting(self):
        """Test a sequence that never resets"""
        NumberingSequence.objects.create(document_type='quote', prefix='D', reset_annually=False,
                                         include_year=False, padding=3)
        assert NumberingSequence.allocate('quote', year=2024) == 'D-001'
        assert NumberingSequence.allocate('quote', year=2025) == 'D-002'

    def test_unknown_type_rejected(self):
        """Test that an unknown document type raises"""
        with pytest.raises(ValidationError):
            NumberingSequence.allocate('unknown')

    def test_preview_does_not_consume(self):
        """Test that preview leaves the counter untouched"""
        NumberingSequence.allocate('invoice', year=2024)
        sequence = NumberingSequence.objects.get(document_type='invoice')
        assert sequence.preview(year=2024) == 'FAC-2024-00002'
        assert sequence.preview(year=2024) == 'FAC-2024-00002'
        assert sequence.preview(year=2025) == 'FAC-2025-00001'

    def test_manual_number_bumps_counter(self):
        """Test that a hand-typed number moves the counter forward"""
        NumberingSequence.register_manual('invoice', 'FAC-2024-00042', year=2024)
        assert NumberingSequence.allocate('invoice', year=2024) == 'FAC-2024-00043'

    def test_lower_manual_number_keeps_counter(self):
        """Test that an older manual number does not move the counter back"""
        for _ in range(5):
            NumberingSequence.allocate('invoice', year=2024)
        NumberingSequence.register_manual('invoice', 'FAC-2024-00002', year=2024)
        assert NumberingSequence.allocate('invoice', year=2024) == 'FAC-2024-00006'

    def test_documents_get_numbers(self, client_partner):
        """Test that saved documents receive the next number"""
        first = InvoiceFactory(client=client_partner)
        second = InvoiceFactory(client=client_partner)
        quote = QuoteFactory(client=client_partner)
        assert first.number.startswith('FAC-')
        assert first.number != second.number
        assert quote.number.startswith('DEV-')

    def test_duplicate_manual_number_rejected(self, client_partner):
        """Test that a manual number already in use is refused"""
        InvoiceFactory(client=client_partner, number='FAC-MANUEL-1')
        with pytest.raises(ValidationError):
            Invoice.objects.create(client=client_partner, number='FAC-MANUEL-1')


# ============= Company Settings Tests =============

@pytest.mark.django_db
class TestCompanySettings:
    """Test the single company settings row"""

    def test_load_creates_singleton(self):
        """Test that load always returns the same row"""
        first = CompanySettings.load()
        second = CompanySettings.load()
        assert first.pk == second.pk == 1
        assert CompanySettings.objects.count() == 1

    def test_defaults(self):
        """Test default fiscal values"""
        company = CompanySettings.load()
        assert company.default_tva_rate == Decimal('19')
        assert company.default_timbre == Decimal('1.000')
        assert company.decimals == 3

    def test_cannot_delete(self):
        """Test that the settings row cannot be deleted"""
        with pytest.raises(ValidationError):
            CompanySettings.load().delete()

    def test_tej_errors_when_empty(self):
        """Test that an empty company lists every missing field"""
        errors = CompanySettings.load().tej_validation_errors()
        assert [error['field'] for error in errors] == ['company_name', 'tax_id', 'email', 'phone']

    def test_tej_valid(self, company_settings):
        """Test a complete company"""
        assert company_settings.tej_validation_errors() == []

    def test_tej_rejects_long_tax_id(self, company_settings):
        """Test that the declaration needs the short 7 digits + letter form"""
        company_settings.tax_id = '1234567A/A/M/000'
        company_settings.save()
        fields = [error['field'] for error in company_settings.tej_validation_errors()]
        assert fields == ['tax_id']


# ============= API Tests =============

@pytest.mark.django_db
@pytest.mark.api
class TestSettingsAPI:
    """Test settings endpoints"""

    def test_get_company(self, authenticated_client, company_settings):
        """Test that any user can read company settings"""
        response = authenticated_client.get(reverse('company-settings'))
        assert response.status_code == status.HTTP_200_OK
        assert response.data['company_name'] == "Atelier Test"
        assert response.data['tej_errors'] == []

    def test_update_company_admin(self, admin_client):
        """Test updating company settings as admin"""
        data = {'company_name': "Atelier Sfax", 'tax_id': '1234567B', 'default_timbre': '0.600'}
        response = admin_client.patch(reverse('company-settings'), data, format='json')
        assert response.status_code == status.HTTP_200_OK
        company = CompanySettings.load()
        assert company.company_name == "Atelier Sfax"
        assert company.default_timbre == Decimal('0.600')

    def test_update_company_invalid_tax_id(self, admin_client):
        """Test that a malformed matricule fiscal is refused"""
        response = admin_client.patch(reverse('company-settings'), {'tax_id': '12AB'}, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'tax_id' in response.data

    def test_update_company_forbidden(self, authenticated_client):
        """Test that non-admins cannot change company settings"""
        response = authenticated_client.patch(reverse('company-settings'), {'company_name': 'X'}, format='json')
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_numbering_preview(self, authenticated_client):
        """Test next numbers of every document type"""
        response = authenticated_client.get(reverse('numberingsequence-preview'))
        assert response.status_code == status.HTTP_200_OK
        assert response.data['invoice']['next_number'].startswith('FAC-')
        assert response.data['production_job']['next_number'].startswith('JOB-')

    def test_update_prefix(self, admin_client):
        """Test changing a sequence prefix"""
        sequence = NumberingSequence.objects.create(document_type='invoice', prefix='FAC')
        url = reverse('numberingsequence-detail', kwargs={'pk': sequence.id})
        response = admin_client.patch(url, {'prefix': 'FA'}, format='json')
        assert response.status_code == status.HTTP_200_OK
        assert NumberingSequence.allocate('invoice').startswith('FA-')

    def test_default_tax_rule_unique_per_type(self, admin_client):
        """Test that a new default rule replaces the previous one"""
        old = TaxRule.objects.create(name='TVA 19', rate=Decimal('19'), type='tva', is_default=True)
        response = admin_client.post(
            reverse('taxrule-list'),
            {'name': 'TVA 7', 'rate': '7', 'type': 'tva', 'is_default': True},
            format='json'
        )
        assert response.status_code == status.HTTP_201_CREATED
        old.refresh_from_db()
        assert old.is_default is False

    def test_tax_rule_rate_range(self, admin_client):
        """Test that rates above 100 are refused"""
        response = admin_client.post(reverse('taxrule-list'), {'name': 'X', 'rate': '150'}, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST
