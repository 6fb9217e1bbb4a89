"""
Tests for Sales app - documents, status workflows, conversions, payments, credit notes
"""
import uuid
import pytest
from django.core.exceptions import ValidationError
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from decimal import Decimal

from apps.inventory.models import StockMovement
from apps.sales import services
from apps.sales.models import Quote, Proforma, Invoice, Payment, SalesOrder, DeliveryNote, CreditNote
from apps.treasury.models import TreasuryTransaction
from conftest import (
    QuoteFactory, ProformaFactory, InvoiceFactory, SalesOrderFactory,
    DeliveryNoteFactory, ReturnOrderFactory, ClientFactory
)


def product_line(product, quantity):
    return [{'product': product, 'description': product.name, 'quantity': Decimal(quantity),
             'unit_price': product.base_price, 'tva_rate': product.tva_rate}]


# ============= Document Model Tests =============

@pytest.mark.django_db
class TestDocumentModel:
    """Test numbered documents and their totals"""

    def test_invoice_totals(self, invoice):
        """Test totals computed from the default line"""
        assert invoice.number.startswith('FAC-')
        assert invoice.subtotal == Decimal('200.000')
        assert invoice.tva_amount == Decimal('38.000')
        assert invoice.total == Decimal('238.000')
        assert invoice.is_editable is True
        assert str(invoice) == invoice.number

    def test_line_totals_stored(self, invoice):
        """Test that each line keeps its HT, TVA and TTC"""
        line = invoice.items.get()
        assert line.total_ht == Decimal('200.000')
        assert line.total_tva == Decimal('38.000')
        assert line.total_ttc == Decimal('238.000')

    def test_line_description_from_product(self, client_partner, product):
        """Test that a product line without description takes the product name"""
        invoice = InvoiceFactory(client=client_partner, lines=[])
        line = invoice.items.create(product=product, quantity=1, unit_price=product.base_price)
        assert line.description == "T-shirt blanc"

    def test_recalculate_with_header_inputs(self, client_partner):
        """Test discount, FODEC and timbre on the header"""
        invoice = InvoiceFactory(client=client_partner, discount_percent=Decimal('10'),
                                 fodec_rate=Decimal('1'), timbre_amount=Decimal('1.000'))
        assert invoice.discount_amount == Decimal('20.000')
        assert invoice.tva_amount == Decimal('34.200')
        assert invoice.fodec_amount == Decimal('1.800')
        assert invoice.total == Decimal('217.000')

    def test_paid_and_remaining(self, validated_invoice, account):
        """Test paid and remaining amounts"""
        services.record_payment(validated_invoice, '38.000', account=account)
        assert validated_invoice.paid_amount == Decimal('38.000')
        assert validated_invoice.remaining_amount == Decimal('200.000')


@pytest.mark.django_db
class TestStatusWorkflow:
    """Test status transition rules"""

    def test_allowed_transition(self, invoice):
        """Test draft to validated"""
        invoice.transition('validated')
        invoice.refresh_from_db()
        assert invoice.status == 'validated'
        assert invoice.is_editable is False

    def test_forbidden_transition(self, invoice):
        """Test that a draft cannot jump to paid"""
        with pytest.raises(ValidationError):
            invoice.transition('paid')

    def test_system_status_needs_operation(self, validated_invoice):
        """Test that paid is only reached through payments"""
        assert 'paid' not in validated_invoice.manual_transitions()
        with pytest.raises(ValidationError):
            validated_invoice.transition('paid')
        validated_invoice.transition('paid', system=True)
        assert validated_invoice.status == 'paid'

    def test_cancel_with_payment_refused(self, validated_invoice):
        """Test that an invoice with payments cannot be cancelled"""
        services.record_payment(validated_invoice, '10.000')
        with pytest.raises(ValidationError):
            validated_invoice.transition('cancelled')

    def test_quote_workflow(self, client_partner):
        """Test quote statuses up to acceptance"""
        quote = QuoteFactory(client=client_partner)
        assert quote.manual_transitions() == ('sent',)
        quote.transition('sent')
        assert set(quote.manual_transitions()) == {'accepted', 'rejected'}

    def test_terminal_status(self, client_partner):
        """Test that a rejected quote cannot move anymore"""
        quote = QuoteFactory(client=client_partner, status='rejected')
        assert quote.allowed_transitions() == ()


# ============= Document API Tests =============

@pytest.mark.django_db
@pytest.mark.api
class TestInvoiceAPI:
    """Test invoice endpoints"""

    def test_create_invoice_from_product(self, authenticated_client, client_partner, product, company_settings):
        """Test that price and TVA default from the product and timbre from the company"""
        data = {
            'client': client_partner.id,
            'items': [{'product': product.id, 'quantity': '2'}],
        }
        response = authenticated_client.post(reverse('invoice-list'), data, format='json')
        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['number'].startswith('FAC-')
        assert response.data['status'] == 'draft'
        assert response.data['subtotal'] == '50.000'
        assert response.data['tva_amount'] == '9.500'
        assert response.data['timbre_amount'] == '1.000'
        assert response.data['total'] == '60.500'
        assert response.data['items'][0]['unit_price'] == '25.000'
        assert response.data['allowed_transitions'] == ['validated', 'cancelled']

    def test_create_invoice_with_discount(self, authenticated_client, client_partner, company_settings):
        """Test free lines, document discount and an explicit zero timbre"""
        data = {
            'client': client_partner.id,
            'discount_percent': '10',
            'timbre_amount': '0',
            'items': [{'description': 'Impression DTF A3', 'quantity': '3',
                       'unit_price': '12.500', 'tva_rate': '19'}],
        }
        response = authenticated_client.post(reverse('invoice-list'), data, format='json')
        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['subtotal'] == '37.500'
        assert response.data['discount_amount'] == '3.750'
        assert response.data['tva_amount'] == '6.413'
        assert response.data['timbre_amount'] == '0.000'
        assert response.data['total'] == '40.163'

    def test_client_totals_ignored(self, authenticated_client, client_partner):
        """Test that totals sent by the client are recomputed"""
        data = {
            'client': client_partner.id,
            'total': '1.000',
            'timbre_amount': '0',
            'items': [{'description': 'Broderie logo', 'quantity': '1', 'unit_price': '100', 'tva_rate': '19'}],
        }
        response = authenticated_client.post(reverse('invoice-list'), data, format='json')
        assert response.data['total'] == '119.000'

    def test_create_without_lines(self, authenticated_client, client_partner):
        """Test that a document needs at least one line"""
        data = {'client': client_partner.id, 'items': []}
        response = authenticated_client.post(reverse('invoice-list'), data, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'items' in response.data

    def test_line_without_product_or_description(self, authenticated_client, client_partner):
        """Test that each line names what is sold"""
        data = {'client': client_partner.id, 'items': [{'quantity': '1', 'unit_price': '10'}]}
        response = authenticated_client.post(reverse('invoice-list'), data, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_manual_number(self, authenticated_client, client_partner):
        """Test a hand-typed number and its uniqueness"""
        data = {
            'client': client_partner.id,
            'number': 'FAC-2024-00100',
            'items': [{'description': 'Gravure laser', 'quantity': '1', 'unit_price': '30'}],
        }
        response = authenticated_client.post(reverse('invoice-list'), data, format='json')
        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['number'] == 'FAC-2024-00100'

        response = authenticated_client.post(reverse('invoice-list'), data, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'number' in response.data

    def test_manual_number_on_update(self, authenticated_client, invoice, client_partner):
        """Test that renumbering a draft moves the sequence past the new number"""
        year = timezone.now().year
        url = reverse('invoice-detail', kwargs={'pk': invoice.id})
        response = authenticated_client.patch(url, {'number': f'FAC-{year}-00050'}, format='json')
        assert response.status_code == status.HTTP_200_OK
        assert response.data['number'] == f'FAC-{year}-00050'

        next_invoice = InvoiceFactory(client=client_partner)
        assert next_invoice.number == f'FAC-{year}-00051'

    def test_due_date_before_issue_date(self, authenticated_client, client_partner):
        """Test that the due date cannot precede the invoice date"""
        data = {
            'client': client_partner.id,
            'issue_date': '2024-05-10',
            'due_date': '2024-05-01',
            'items': [{'description': 'Flocage', 'quantity': '1', 'unit_price': '10'}],
        }
        response = authenticated_client.post(reverse('invoice-list'), data, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'due_date' in response.data

    def test_update_replaces_lines(self, authenticated_client, invoice):
        """Test that updating a draft replaces lines and totals"""
        url = reverse('invoice-detail', kwargs={'pk': invoice.id})
        data = {'items': [{'description': 'Sérigraphie', 'quantity': '1', 'unit_price': '50', 'tva_rate': '7'}]}
        response = authenticated_client.patch(url, data, format='json')
        assert response.status_code == status.HTTP_200_OK
        invoice.refresh_from_db()
        assert invoice.items.count() == 1
        assert invoice.total == Decimal('53.500')

    def test_update_validated_refused(self, authenticated_client, validated_invoice):
        """Test that a validated invoice is frozen"""
        url = reverse('invoice-detail', kwargs={'pk': validated_invoice.id})
        response = authenticated_client.patch(url, {'notes': 'modif'}, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_delete_draft(self, authenticated_client, invoice):
        """Test deleting a draft invoice"""
        response = authenticated_client.delete(reverse('invoice-detail', kwargs={'pk': invoice.id}))
        assert response.status_code == status.HTTP_204_NO_CONTENT
        assert not Invoice.objects.filter(pk=invoice.id).exists()

    def test_delete_validated_refused(self, authenticated_client, validated_invoice):
        """Test that only drafts can be deleted"""
        response = authenticated_client.delete(reverse('invoice-detail', kwargs={'pk': validated_invoice.id}))
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_change_status(self, authenticated_client, invoice):
        """Test the status action"""
        url = reverse('invoice-status', args=[invoice.id])
        response = authenticated_client.post(url, {'status': 'validated'}, format='json')
        assert response.status_code == status.HTTP_200_OK
        assert response.data['status'] == 'validated'
        assert response.data['status_display'] == 'Validée'

    def test_change_status_to_system_status(self, authenticated_client, validated_invoice):
        """Test that paid cannot be set by hand"""
        url = reverse('invoice-status', args=[validated_invoice.id])
        response = authenticated_client.post(url, {'status': 'paid'}, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'error' in response.data

    def test_change_status_missing(self, authenticated_client, invoice):
        """Test that the new status is required"""
        response = authenticated_client.post(reverse('invoice-status', args=[invoice.id]), {}, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_cancel_with_payments_api(self, authenticated_client, validated_invoice):
        """Test the cancel veto through the API"""
        services.record_payment(validated_invoice, '10.000')
        url = reverse('invoice-status', args=[validated_invoice.id])
        response = authenticated_client.post(url, {'status': 'cancelled'}, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_filters(self, authenticated_client, client_partner):
        """Test status, client and search filters"""
        other = ClientFactory(name="Club de Handball")
        InvoiceFactory(client=client_partner, status='validated')
        InvoiceFactory(client=client_partner)
        InvoiceFactory(client=other)
        url = reverse('invoice-list')
        assert authenticated_client.get(url, {'status': 'validated'}).data['count'] == 1
        assert authenticated_client.get(url, {'client': client_partner.id}).data['count'] == 2
        assert authenticated_client.get(url, {'search': 'handball'}).data['count'] == 1

    def test_tag_filter(self, authenticated_client, client_partner):
        """Test filtering invoices by tag"""
        InvoiceFactory(client=client_partner, tags=['salon', 'urgent'])
        InvoiceFactory(client=client_partner, tags=['salon'])
        response = authenticated_client.get(reverse('invoice-list'), {'tag': 'urgent'})
        assert response.data['count'] == 1

    def test_accented_tag_filter(self, authenticated_client, client_partner):
        """Test filtering invoices on a tag with accents"""
        InvoiceFactory(client=client_partner, tags=['fête', 'salon'])
        InvoiceFactory(client=client_partner, tags=['salon'])
        response = authenticated_client.get(reverse('invoice-list'), {'tag': 'fête'})
        assert response.data['count'] == 1

    def test_qr_code(self, authenticated_client, invoice):
        """Test the verification QR code"""
        response = authenticated_client.get(reverse('invoice-qr-code', args=[invoice.id]))
        assert response.status_code == status.HTTP_200_OK
        assert response['Content-Type'] == 'image/png'

    def test_role_without_sales_access(self, api_client, make_user, client_partner):
        """Test that the stock role reads but cannot create invoices"""
        api_client.force_authenticate(user=make_user('stock'))
        assert api_client.get(reverse('invoice-list')).status_code == status.HTTP_200_OK
        data = {'client': client_partner.id, 'items': [{'description': 'X', 'quantity': '1'}]}
        response = api_client.post(reverse('invoice-list'), data, format='json')
        assert response.status_code == status.HTTP_403_FORBIDDEN


# ============= Payment Tests =============

@pytest.mark.django_db
@pytest.mark.integration
class TestPayments:
    """Test payments and their treasury postings"""

    def test_partial_then_full_payment(self, authenticated_client, validated_invoice, account):
        """Test that the invoice is paid once payments cover the total"""
        url = reverse('invoice-record-payment', args=[validated_invoice.id])
        response = authenticated_client.post(
            url, {'amount': '100.000', 'account': account.id, 'method': 'cash'}, format='json'
        )
        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['invoice']['status'] == 'validated'
        assert response.data['invoice']['remaining_amount'] == '138.000'

        response = authenticated_client.post(
            url, {'amount': '138.000', 'account': account.id, 'method': 'check', 'reference': 'CHQ-001'},
            format='json'
        )
        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['invoice']['status'] == 'paid'
        assert response.data['payment']['reference'] == 'CHQ-001'

        account.refresh_from_db()
        assert account.current_balance == Decimal('738.000')
        entries = TreasuryTransaction.objects.filter(reference_type='invoice', reference_id=str(validated_invoice.id))
        assert entries.count() == 2
        assert set(entries.values_list('category', flat=True)) == {'Ventes'}
        assert set(entries.values_list('payment_method', flat=True)) == {'cash', 'check'}

    def test_overpayment_refused(self, authenticated_client, validated_invoice):
        """Test that a payment cannot exceed what remains"""
        url = reverse('invoice-record-payment', args=[validated_invoice.id])
        response = authenticated_client.post(url, {'amount': '238.001'}, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert Payment.objects.count() == 0

    def test_zero_payment_refused(self, authenticated_client, validated_invoice):
        """Test that the amount must be positive"""
        url = reverse('invoice-record-payment', args=[validated_invoice.id])
        response = authenticated_client.post(url, {'amount': '0'}, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_payment_on_draft_refused(self, authenticated_client, invoice):
        """Test that drafts cannot be paid"""
        url = reverse('invoice-record-payment', args=[invoice.id])
        response = authenticated_client.post(url, {'amount': '10'}, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_payment_without_account(self, validated_invoice):
        """Test that a payment without account posts no treasury movement"""
        payment = services.record_payment(validated_invoice, '238.000')
        validated_invoice.refresh_from_db()
        assert payment.account is None
        assert validated_invoice.status == 'paid'
        assert TreasuryTransaction.objects.count() == 0

    def test_payment_listing(self, authenticated_client, validated_invoice, account):
        """Test the read-only payments endpoint"""
        services.record_payment(validated_invoice, '20.000', account=account, method='bank_transfer')
        response = authenticated_client.get(reverse('payment-list'), {'invoice': validated_invoice.id})
        assert response.status_code == status.HTTP_200_OK
        assert response.data['count'] == 1
        assert response.data['results'][0]['account_name'] == 'Caisse'

    def test_invoice_payment_movement_not_deletable(self, admin_client, validated_invoice, account):
        """Test that treasury movements of invoice payments stay"""
        services.record_payment(validated_invoice, '20.000', account=account)
        entry = TreasuryTransaction.objects.get()
        response = admin_client.delete(reverse('treasurytransaction-detail', args=[entry.id]))
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert TreasuryTransaction.objects.filter(pk=entry.id).exists()


# ============= Conversion Tests =============

@pytest.mark.django_db
@pytest.mark.integration
class TestConversions:
    """Test document conversions"""

    def test_quote_to_invoice(self, authenticated_client, client_partner):
        """Test converting an accepted quote"""
        quote = QuoteFactory(client=client_partner, status='accepted', timbre_amount=Decimal('1.000'))
        response = authenticated_client.post(reverse('quote-convert-to-invoice', args=[quote.id]))
        assert response.status_code == status.HTTP_201_CREATED

        invoice = Invoice.objects.get(pk=response.data['id'])
        quote.refresh_from_db()
        assert quote.status == 'converted'
        assert quote.converted_invoice == invoice
        assert invoice.source_quote == quote
        assert invoice.status == 'draft'
        assert invoice.client == client_partner
        assert invoice.total == quote.total == Decimal('239.000')
        assert invoice.items.count() == 1

    def test_quote_not_accepted(self, authenticated_client, client_partner):
        """Test that a sent quote cannot be converted"""
        quote = QuoteFactory(client=client_partner, status='sent')
        response = authenticated_client.post(reverse('quote-convert-to-invoice', args=[quote.id]))
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert Invoice.objects.count() == 0

    def test_quote_converted_once(self, client_partner):
        """Test that a quote cannot be converted twice"""
        quote = QuoteFactory(client=client_partner, status='accepted')
        services.convert_quote_to_invoice(quote)
        with pytest.raises(ValidationError):
            services.convert_quote_to_invoice(quote)
        assert Invoice.objects.count() == 1

    def test_proforma_to_invoice(self, authenticated_client, client_partner):
        """Test converting a draft proforma keeps amounts and tags"""
        proforma = ProformaFactory(client=client_partner, tags=['salon'])
        response = authenticated_client.post(reverse('proforma-convert-to-invoice', args=[proforma.id]))
        assert response.status_code == status.HTTP_201_CREATED
        invoice = Invoice.objects.get(pk=response.data['id'])
        proforma.refresh_from_db()
        assert proforma.status == 'converted'
        assert invoice.source_proforma == proforma
        assert invoice.tags == ['salon']
        assert invoice.total == proforma.total

    def test_rejected_proforma_not_convertible(self, client_partner):
        """Test that a rejected proforma stays as is"""
        proforma = ProformaFactory(client=client_partner, status='rejected')
        with pytest.raises(ValidationError):
            services.convert_proforma_to_invoice(proforma)

    def test_sales_order_flow(self, authenticated_client, client_partner, product):
        """Test order, delivery note, delivery and invoice"""
        order = SalesOrderFactory(client=client_partner, lines=product_line(product, '4'))
        response = authenticated_client.post(reverse('salesorder-status', args=[order.id]),
                                             {'status': 'confirmed'}, format='json')
        assert response.status_code == status.HTTP_200_OK

        response = authenticated_client.post(reverse('salesorder-generate-delivery-note', args=[order.id]))
        assert response.status_code == status.HTTP_201_CREATED
        note = DeliveryNote.objects.get(pk=response.data['id'])
        order.refresh_from_db()
        assert order.status == 'delivered'
        assert order.delivery_note == note
        assert note.delivery_address == "Rue de la Liberté, Tunis"
        assert note.status == 'draft'

        response = authenticated_client.post(reverse('deliverynote-status', args=[note.id]),
                                             {'status': 'delivered'}, format='json')
        assert response.status_code == status.HTTP_200_OK
        product.refresh_from_db()
        assert product.stock_quantity == Decimal('96')
        movement = StockMovement.objects.get(reference=note.number)
        assert movement.movement_type == 'delivery'
        assert movement.quantity_out == Decimal('4')

        response = authenticated_client.post(reverse('salesorder-generate-invoice', args=[order.id]))
        assert response.status_code == status.HTTP_201_CREATED
        invoice = Invoice.objects.get(pk=response.data['id'])
        order.refresh_from_db()
        note.refresh_from_db()
        assert order.status == 'invoiced'
        assert order.invoice == invoice
        assert note.invoice == invoice

    def test_delivered_status_set_by_conversion_only(self, authenticated_client, client_partner):
        """Test that an order is not marked delivered by hand"""
        order = SalesOrderFactory(client=client_partner, status='confirmed')
        response = authenticated_client.post(reverse('salesorder-status', args=[order.id]),
                                             {'status': 'delivered'}, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_draft_order_no_delivery_note(self, client_partner):
        """Test that a draft order cannot be delivered"""
        order = SalesOrderFactory(client=client_partner)
        with pytest.raises(ValidationError):
            services.sales_order_to_delivery_note(order)

    def test_delivery_note_to_invoice_once(self, authenticated_client, client_partner):
        """Test invoicing a delivered note only once"""
        note = DeliveryNoteFactory(client=client_partner, status='delivered')
        url = reverse('deliverynote-generate-invoice', args=[note.id])
        assert authenticated_client.post(url).status_code == status.HTTP_201_CREATED
        assert authenticated_client.post(url).status_code == status.HTTP_400_BAD_REQUEST

    def test_delivery_note_invoice_closes_order(self, authenticated_client, client_partner):
        """Test that invoicing the delivery note of an order bills the order once"""
        order = SalesOrderFactory(client=client_partner, status='confirmed')
        note = services.sales_order_to_delivery_note(order)
        response = authenticated_client.post(reverse('deliverynote-status', args=[note.id]),
                                             {'status': 'delivered'}, format='json')
        assert response.status_code == status.HTTP_200_OK

        response = authenticated_client.post(reverse('deliverynote-generate-invoice', args=[note.id]))
        assert response.status_code == status.HTTP_201_CREATED
        invoice = Invoice.objects.get(pk=response.data['id'])
        order.refresh_from_db()
        assert order.status == 'invoiced'
        assert order.invoice == invoice

        response = authenticated_client.post(reverse('salesorder-generate-invoice', args=[order.id]))
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert Invoice.objects.count() == 1

    def test_order_with_invoiced_note_refused(self, client_partner):
        """Test that an order whose delivery note is billed cannot be invoiced again"""
        order = SalesOrderFactory(client=client_partner, status='confirmed')
        note = services.sales_order_to_delivery_note(order)
        invoice = InvoiceFactory(client=client_partner)
        note.invoice = invoice
        note.save(update_fields=['invoice'])
        order.refresh_from_db()
        with pytest.raises(ValidationError):
            services.sales_order_to_invoice(order)
        order.refresh_from_db()
        assert order.status == 'delivered'
        assert Invoice.objects.count() == 1

    def test_returned_delivery_note_restocks(self, client_partner, product):
        """Test that a returned delivery note puts goods back"""
        note = DeliveryNoteFactory(client=client_partner, lines=product_line(product, '3'))
        note.transition('delivered')
        note.transition('returned')
        product.refresh_from_db()
        assert product.stock_quantity == Decimal('100')
        assert StockMovement.objects.filter(reference=note.number).count() == 2

    def test_service_lines_do_not_move_stock(self, client_partner, service_product):
        """Test that services are skipped on delivery"""
        note = DeliveryNoteFactory(client=client_partner, lines=product_line(service_product, '1'))
        note.transition('delivered')
        assert StockMovement.objects.count() == 0


# ============= Credit Note Tests =============

@pytest.mark.django_db
@pytest.mark.integration
class TestCreditNotes:
    """Test returns and credit notes"""

    def test_invoice_credit_note(self, authenticated_client, validated_invoice):
        """Test a total credit note without timbre"""
        response = authenticated_client.post(reverse('invoice-credit-note', args=[validated_invoice.id]),
                                             {'reason': 'Erreur de taille'}, format='json')
        assert response.status_code == status.HTTP_201_CREATED
        credit_note = CreditNote.objects.get(pk=response.data['id'])
        assert credit_note.number.startswith('AV-')
        assert credit_note.type == 'total'
        assert credit_note.invoice == validated_invoice
        assert credit_note.timbre_amount == Decimal('0.000')
        assert credit_note.total == Decimal('238.000')
        assert credit_note.reason == 'Erreur de taille'

    def test_credit_note_on_draft_refused(self, authenticated_client, invoice):
        """Test that drafts cannot be credited"""
        response = authenticated_client.post(reverse('invoice-credit-note', args=[invoice.id]))
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_credit_limited_to_invoice_total(self, authenticated_client, validated_invoice):
        """Test that validated credit notes cannot exceed the invoice"""
        first = services.invoice_to_credit_note(validated_invoice)
        first.transition('validated')
        assert validated_invoice.credited_amount == Decimal('238.000')

        response = authenticated_client.post(reverse('invoice-credit-note', args=[validated_invoice.id]))
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert CreditNote.objects.count() == 1

    def test_manual_credit_note_limit(self, authenticated_client, validated_invoice):
        """Test the limit on credit notes typed by hand"""
        data = {
            'client': validated_invoice.client_id,
            'invoice': validated_invoice.id,
            'items': [{'description': 'Geste commercial', 'quantity': '1', 'unit_price': '300', 'tva_rate': '19'}],
        }
        response = authenticated_client.post(reverse('creditnote-list'), data, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert CreditNote.objects.count() == 0

    def test_credit_note_other_client_refused(self, authenticated_client, validated_invoice):
        """Test that the invoice must belong to the credit note client"""
        data = {
            'client': ClientFactory().id,
            'invoice': validated_invoice.id,
            'items': [{'description': 'Remise', 'quantity': '1', 'unit_price': '10'}],
        }
        response = authenticated_client.post(reverse('creditnote-list'), data, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'invoice' in response.data

    def test_return_to_credit_note(self, authenticated_client, validated_invoice, product):
        """Test a processed return restocking goods and its partial credit note"""
        return_order = ReturnOrderFactory(client=validated_invoice.client, invoice=validated_invoice,
                                          return_reason="Impression défectueuse",
                                          lines=product_line(product, '2'))
        return_order.transition('validated')
        return_order.transition('processed')
        product.refresh_from_db()
        assert product.stock_quantity == Decimal('102')

        response = authenticated_client.post(reverse('returnorder-generate-credit-note', args=[return_order.id]))
        assert response.status_code == status.HTTP_201_CREATED
        credit_note = CreditNote.objects.get(pk=response.data['id'])
        assert credit_note.type == 'partial'
        assert credit_note.return_order == return_order
        assert credit_note.invoice == validated_invoice
        assert credit_note.total == Decimal('59.500')

    def test_return_without_restock(self, client_partner, product):
        """Test that return_to_stock=False leaves stock alone"""
        return_order = ReturnOrderFactory(client=client_partner, return_to_stock=False,
                                          lines=product_line(product, '2'))
        return_order.transition('validated')
        return_order.transition('processed')
        product.refresh_from_db()
        assert product.stock_quantity == Decimal('100')


# ============= Public Verification Tests =============

@pytest.mark.django_db
@pytest.mark.api
class TestPublicVerification:
    """Test the pages behind printed QR codes"""

    def test_verify_invoice(self, api_client, validated_invoice):
        """Test that anyone can check an invoice by its token"""
        url = reverse('public-invoice-verify', kwargs={'token': validated_invoice.public_token})
        response = api_client.get(url)
        assert response.status_code == status.HTTP_200_OK
        assert response.data['number'] == validated_invoice.number
        assert response.data['total'] == '238.000'
        assert response.data['status_display'] == 'Validée'
        assert response.data['client_name'] == "Client Test"

    def test_verify_unknown_token(self, api_client, db):
        """Test an unknown token"""
        url = reverse('public-invoice-verify', kwargs={'token': uuid.uuid4()})
        assert api_client.get(url).status_code == status.HTTP_404_NOT_FOUND

    def test_verify_proforma(self, api_client, client_partner):
        """Test proforma verification with validity date"""
        proforma = ProformaFactory(client=client_partner, valid_until='2030-01-31')
        url = reverse('public-proforma-verify', kwargs={'token': proforma.public_token})
        response = api_client.get(url)
        assert response.status_code == status.HTTP_200_OK
        assert str(response.data['valid_until']) == '2030-01-31'
