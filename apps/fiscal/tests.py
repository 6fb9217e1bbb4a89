"""
Tests for Fiscal app - tax calculator, retenue, TEJ export, TVA summary
"""
import pytest
from decimal import Decimal
from datetime import date
from django.test import override_settings
from django.urls import reverse
from rest_framework import status

from apps.fiscal.calculator import (
    quantize, compute_line, compute_document_totals, calculate_fodec,
    calculate_retenue, net_to_pay
)
from apps.fiscal.models import TEJExport
from apps.fiscal.tej import tej_rows, render_tej_csv, render_tej_xml, CSV_HEADER
from conftest import PurchaseOrderFactory, InvoiceFactory, SupplierFactory

BIG_LINE = [{'description': 'Encre DTF', 'quantity': Decimal('10'),
             'unit_price': Decimal('100.000'), 'tva_rate': Decimal('19')}]


# ============= Calculator Tests =============

class TestCalculator:
    """Known values of the Tunisian document arithmetic"""

    def test_quantize_rounds_half_up_to_millimes(self):
        """Test that amounts round half-up to 3 decimals"""
        assert quantize(Decimal('1.0005')) == Decimal('1.001')
        assert quantize(Decimal('2.0004')) == Decimal('2.000')
        assert quantize('7') == Decimal('7.000')

    def test_quantize_custom_places(self):
        """Test rounding to 2 decimals"""
        assert quantize(Decimal('1.005'), places=2) == Decimal('1.01')

    def test_simple_line(self):
        """Test 2 x 100.000 at 19 % TVA"""
        totals = compute_line(2, '100.000', 19)
        assert totals['total_ht'] == Decimal('200.000')
        assert totals['total_tva'] == Decimal('38.000')
        assert totals['total_ttc'] == Decimal('238.000')

    def test_line_with_discount(self):
        """Test that the line discount reduces HT before TVA"""
        totals = compute_line(3, '33.333', 19, discount_percent=10)
        assert totals['total_ht'] == Decimal('89.999')
        assert totals['total_tva'] == Decimal('17.100')
        assert totals['total_ttc'] == Decimal('107.099')

    def test_line_default_tva_rate(self):
        """Test that a missing TVA rate falls back to the default 19 %"""
        totals = compute_line(1, '50.000')
        assert totals['total_tva'] == Decimal('9.500')

    def test_document_totals(self):
        """Test discount, mixed TVA rates, FODEC and timbre together"""
        lines = [
            {'quantity': 10, 'unit_price': '50.000', 'tva_rate': 19},
            {'quantity': 1, 'unit_price': '100.000', 'tva_rate': 7},
        ]
        totals = compute_document_totals(lines, discount_percent=10, fodec_rate=1, timbre='1.000')
        assert totals['subtotal'] == Decimal('600.000')
        assert totals['discount_amount'] == Decimal('60.000')
        assert totals['tva_amount'] == Decimal('91.800')
        assert totals['fodec_amount'] == Decimal('5.400')
        assert totals['timbre_amount'] == Decimal('1.000')
        assert totals['total'] == Decimal('638.200')

    def test_document_total_identity(self):
        """Test total = subtotal - discount + tva + fodec + timbre"""
        lines = [{'quantity': '3', 'unit_price': '17.777', 'tva_rate': 13, 'discount_percent': 5}]
        t = compute_document_totals(lines, discount_percent='2.5', fodec_rate=1, timbre='0.600')
        assert t['total'] == (
            t['subtotal'] - t['discount_amount'] + t['tva_amount'] + t['fodec_amount'] + t['timbre_amount']
        )

    def test_empty_document(self):
        """Test that a document without lines only carries its timbre"""
        totals = compute_document_totals([], timbre=1)
        assert totals['subtotal'] == Decimal('0.000')
        assert totals['total'] == Decimal('1.000')

    def test_fodec_disabled_at_zero(self):
        """Test that a 0 % FODEC rate yields nothing"""
        assert calculate_fodec('1000', 0) == Decimal('0.000')
        assert calculate_fodec('1000', 1) == Decimal('10.000')

    def test_retenue_threshold(self):
        """Test 1 % retenue from 1000.000 TTC upward"""
        assert calculate_retenue('999.999') == Decimal('0.000')
        assert calculate_retenue('1000') == Decimal('10.000')
        assert calculate_retenue('2380') == Decimal('23.800')

    def test_net_to_pay(self):
        """Test net amount after retenue"""
        assert net_to_pay('2380') == Decimal('2356.200')
        assert net_to_pay('500') == Decimal('500.000')

    @override_settings(FISCAL={'AMOUNT_DECIMALS': 3, 'DEFAULT_TVA_RATE': Decimal('19'),
                               'RETENUE_THRESHOLD': Decimal('5000'), 'RETENUE_RATE': Decimal('1.5')})
    def test_retenue_uses_settings(self):
        """Test that threshold and rate come from settings"""
        assert calculate_retenue('4999') == Decimal('0.000')
        assert calculate_retenue('10000') == Decimal('150.000')


# ============= TEJ Tests =============

@pytest.mark.django_db
class TestTEJRows:
    """Test selection of purchases for the TEJ declaration"""

    def test_only_purchases_with_retenue(self, supplier_partner):
        """Test that small purchases are left out"""
        big = PurchaseOrderFactory(supplier=supplier_partner, status='ordered', lines=BIG_LINE)
        PurchaseOrderFactory(supplier=supplier_partner, status='ordered')
        today = date.today()

        rows = tej_rows(today.month, today.year)
        assert len(rows) == 1
        assert rows[0]['number'] == big.number
        assert rows[0]['total'] == Decimal('1190.000')
        assert rows[0]['retenue_source'] == Decimal('11.900')
        assert rows[0]['supplier_tax_id'] == '7654321B'

    def test_cancelled_purchases_excluded(self, supplier_partner):
        """Test that cancelled orders are not declared"""
        PurchaseOrderFactory(supplier=supplier_partner, status='cancelled', lines=BIG_LINE)
        today = date.today()
        assert tej_rows(today.month, today.year) == []

    def test_other_month_excluded(self, supplier_partner):
        """Test that only the requested month is selected"""
        PurchaseOrderFactory(supplier=supplier_partner, issue_date=date(2024, 1, 15), lines=BIG_LINE)
        assert len(tej_rows(1, 2024)) == 1
        assert tej_rows(2, 2024) == []


class TestTEJRendering:
    """Test the CSV and XML files"""

    rows = [{
        'number': 'BC-2024-00001',
        'date': '2024-01-15',
        'supplier_name': 'Textiles du Sahel',
        'supplier_tax_id': '7654321B',
        'total': Decimal('1190.000'),
        'retenue_source': Decimal('11.900'),
    }]

    def test_csv(self):
        """Test CSV header and amounts with 3 decimals"""
        content = render_tej_csv(self.rows)
        lines = content.strip().split('\n')
        assert lines[0] == ','.join(CSV_HEADER)
        assert lines[0] == 'Numero,Date,Fournisseur,MF Fournisseur,Montant TTC,Retenue Source'
        assert lines[1] == 'BC-2024-00001,2024-01-15,Textiles du Sahel,7654321B,1190.000,11.900'

    def test_csv_quotes_commas(self):
        """Test that supplier names containing commas stay in one column"""
        rows = [dict(self.rows[0], supplier_name='Sahel, SARL')]
        assert '"Sahel, SARL"' in render_tej_csv(rows)

    def test_xml(self):
        """Test XML structure of the declaration"""
        content = render_tej_xml(self.rows)
        assert content.startswith('<?xml version="1.0" encoding="UTF-8"?>')
        assert '<DeclarationTEJ>' in content
        assert '<Achats>' in content
        assert '<Numero>BC-2024-00001</Numero>' in content
        assert '<MF>7654321B</MF>' in content
        assert '<MontantTTC>1190.000</MontantTTC>' in content
        assert '<RetenueSource>11.900</RetenueSource>' in content

    def test_xml_escapes_text(self):
        """Test that special characters are escaped"""
        rows = [dict(self.rows[0], supplier_name='Print & Co')]
        assert 'Print &amp; Co' in render_tej_xml(rows)


@pytest.mark.django_db
@pytest.mark.api
class TestTEJAPI:
    """Test TEJ endpoints"""

    def test_preview(self, admin_client, company_settings, supplier_partner):
        """Test preview lists rows and company status"""
        PurchaseOrderFactory(supplier=supplier_partner, status='ordered', lines=BIG_LINE)
        today = date.today()
        response = admin_client.get(reverse('tej-preview'), {'month': today.month, 'year': today.year})
        assert response.status_code == status.HTTP_200_OK
        assert response.data['line_count'] == 1
        assert response.data['total_retenue'] == '11.900'
        assert response.data['company_valid'] is True

    def test_preview_invalid_month(self, admin_client):
        """Test that month 13 is rejected"""
        response = admin_client.get(reverse('tej-preview'), {'month': 13, 'year': 2024})
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_export_csv_records_history(self, admin_client, company_settings, supplier_partner):
        """Test CSV download and TEJExport record"""
        PurchaseOrderFactory(supplier=supplier_partner, status='received', lines=BIG_LINE)
        today = date.today()
        response = admin_client.get(reverse('tej-export'),
                                    {'month': today.month, 'year': today.year, 'format': 'csv'})
        assert response.status_code == status.HTTP_200_OK
        assert response['Content-Type'].startswith('text/csv')
        assert f"TEJ_{today.year}_{today.month:02d}.csv" in response['Content-Disposition']
        assert 'Retenue Source' in response.content.decode()

        export = TEJExport.objects.get()
        assert export.line_count == 1
        assert export.total_retenue == Decimal('11.900')
        assert export.format == 'csv'

    def test_export_xml(self, admin_client, company_settings):
        """Test XML download for an empty month"""
        response = admin_client.get(reverse('tej-export'), {'month': 1, 'year': 2020, 'format': 'xml'})
        assert response.status_code == status.HTTP_200_OK
        assert '<DeclarationTEJ>' in response.content.decode()

    def test_export_refused_when_company_incomplete(self, admin_client):
        """Test the validation list returned for incomplete settings"""
        response = admin_client.get(reverse('tej-export'), {'month': 1, 'year': 2024, 'format': 'csv'})
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        fields = {error['field'] for error in response.data['errors']}
        assert fields == {'company_name', 'tax_id', 'email', 'phone'}
        assert TEJExport.objects.count() == 0

    def test_export_invalid_format(self, admin_client, company_settings):
        """Test that only csv and xml are accepted"""
        response = admin_client.get(reverse('tej-export'), {'month': 1, 'year': 2024, 'format': 'pdf'})
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_export_forbidden_for_sales_role(self, authenticated_client, company_settings):
        """Test that the sales role cannot export"""
        response = authenticated_client.get(reverse('tej-export'), {'month': 1, 'year': 2024})
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_history(self, admin_client, admin_user):
        """Test listing past exports"""
        TEJExport.objects.create(month=1, year=2024, format='csv', exported_by=admin_user)
        response = admin_client.get(reverse('tejexport-list'))
        assert response.status_code == status.HTTP_200_OK
        assert response.data['count'] == 1
        assert response.data['results'][0]['filename'] == 'TEJ_2024_01.csv'


@pytest.mark.django_db
@pytest.mark.api
class TestTVASummary:
    """Test monthly TVA summary"""

    def test_collected_minus_deductible(self, admin_client, client_partner):
        """Test net TVA due for one invoice and one purchase"""
        InvoiceFactory(client=client_partner, status='validated', issue_date=date(2024, 3, 10))
        InvoiceFactory(client=client_partner, status='draft', issue_date=date(2024, 3, 11))
        PurchaseOrderFactory(supplier=SupplierFactory(), status='ordered', issue_date=date(2024, 3, 5),
                             lines=[{'description': 'Film', 'quantity': 1,
                                     'unit_price': Decimal('50.000'), 'tva_rate': Decimal('19')}])

        response = admin_client.get(reverse('tva-summary'), {'month': 3, 'year': 2024})
        assert response.status_code == status.HTTP_200_OK
        assert response.data['sales']['invoice_count'] == 1
        assert response.data['sales']['tva_collected'] == '38.000'
        assert response.data['purchases']['tva_deductible'] == '9.500'
        assert response.data['tva_due'] == '28.500'

    def test_inactive_profile_refused(self, authenticated_client, regular_user):
        """Test that a deactivated profile cannot read fiscal figures"""
        regular_user.profile.is_active = False
        regular_user.profile.save()
        response = authenticated_client.get(reverse('tva-summary'), {'month': 3, 'year': 2024})
        assert response.status_code == status.HTTP_403_FORBIDDEN
        response = authenticated_client.get(reverse('tej-preview'), {'month': 3, 'year': 2024})
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_active_sales_profile_reads(self, authenticated_client):
        """Test that any active profile can read the summary"""
        response = authenticated_client.get(reverse('tva-summary'), {'month': 3, 'year': 2024})
        assert response.status_code == status.HTTP_200_OK
        assert response.data['tva_due'] == '0.000'
