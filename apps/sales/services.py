"""
Document conversions and payments.

Every operation runs in a single transaction: the target document, its
lines and the status change of the source are written together.
"""
import logging
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from apps.app_settings.models import CompanySettings
from apps.core.activity import log_activity
from apps.treasury.services import post_transaction
from .models import Invoice, SalesOrder, DeliveryNote, CreditNote, Payment

logger = logging.getLogger(__name__)

# Payment methods of invoices mapped to treasury payment methods
TREASURY_METHODS = {
    'cash': 'cash',
    'bank_transfer': 'bank',
    'card': 'bank',
    'check': 'check',
}


def apply_company_defaults(validated_data):
    """FODEC rate and timbre of a new invoice or proforma when not given"""
    company = CompanySettings.load()
    validated_data.setdefault('fodec_rate', company.default_fodec_rate)
    validated_data.setdefault('timbre_amount', company.default_timbre)
    return validated_data


def _invoice_from(source, user, **extra):
    values = source.header_values()
    values.update(extra)
    invoice = Invoice.objects.create(created_by=user, **values)
    source.copy_lines_to(invoice)
    return invoice


def convert_quote_to_invoice(quote, user=None, request=None):
    if quote.status != 'accepted':
        raise ValidationError("Seul un devis accepté peut être converti en facture.")
    if quote.converted_invoice_id:
        raise ValidationError(f"Ce devis a déjà été converti en facture ({quote.converted_invoice.number}).")

    with transaction.atomic():
        invoice = _invoice_from(quote, user, source_quote=quote, notes=quote.notes)
        quote.converted_invoice = invoice
        quote.save(update_fields=['converted_invoice', 'updated_at'])
        quote.transition('converted', user=user, system=True)
        log_activity(user, 'convert', instance=quote, request=request,
                     new_values={'invoice': invoice.number})

    logger.info("Quote %s converted to invoice %s", quote.number, invoice.number)
    return invoice


def convert_proforma_to_invoice(proforma, user=None, request=None):
    if not proforma.can_transition('converted'):
        raise ValidationError(
            f"Une proforma « {proforma.get_status_display()} » ne peut pas être convertie en facture."
        )

    with transaction.atomic():
        invoice = _invoice_from(proforma, user, source_proforma=proforma,
                                notes=proforma.notes, tags=list(proforma.tags))
        proforma.converted_invoice = invoice
        proforma.save(update_fields=['converted_invoice', 'updated_at'])
        proforma.transition('converted', user=user, system=True)
        log_activity(user, 'convert', instance=proforma, request=request,
                     new_values={'invoice': invoice.number})

    logger.info("Proforma %s converted to invoice %s", proforma.number, invoice.number)
    return invoice


def sales_order_to_delivery_note(order, user=None, request=None):
    if order.status not in ('confirmed', 'in_production'):
        raise ValidationError("La commande doit être confirmée ou en production pour générer un bon de livraison.")

    client = order.client
    address = ', '.join(part for part in (client.address, client.city) if part)
    with transaction.atomic():
        note = DeliveryNote.objects.create(
            created_by=user,
            delivery_address=address,
            notes=order.notes,
            **order.header_values()
        )
        order.copy_lines_to(note)
        order.delivery_note = note
        order.delivery_date = timezone.localdate()
        order.save(update_fields=['delivery_note', 'delivery_date', 'updated_at'])
        order.transition('delivered', user=user, system=True)
        log_activity(user, 'convert', instance=order, request=request,
                     new_values={'delivery_note': note.number})

    logger.info("Sales order %s delivered with %s", order.number, note.number)
    return note


def sales_order_to_invoice(order, user=None, request=None):
    if order.status != 'delivered':
        raise ValidationError("Seule une commande livrée peut être facturée.")
    if order.delivery_note_id and order.delivery_note.invoice_id:
        raise ValidationError(
            f"Le bon de livraison {order.delivery_note.number} de cette commande est déjà facturé "
            f"({order.delivery_note.invoice.number})."
        )

    with transaction.atomic():
        invoice = _invoice_from(order, user, notes=order.notes)
        order.invoice = invoice
        order.save(update_fields=['invoice', 'updated_at'])
        order.transition('invoiced', user=user, system=True)
        if order.delivery_note_id and not order.delivery_note.invoice_id:
            order.delivery_note.invoice = invoice
            order.delivery_note.save(update_fields=['invoice', 'updated_at'])
        log_activity(user, 'convert', instance=order, request=request,
                     new_values={'invoice': invoice.number})

    logger.info("Sales order %s invoiced as %s", order.number, invoice.number)
    return invoice


def delivery_note_to_invoice(note, user=None, request=None):
    if note.status != 'delivered':
        raise ValidationError("Seul un bon de livraison livré peut être facturé.")
    if note.invoice_id:
        raise ValidationError(f"Ce bon de livraison est déjà facturé ({note.invoice.number}).")

    with transaction.atomic():
        invoice = _invoice_from(note, user, notes=note.notes)
        note.invoice = invoice
        note.save(update_fields=['invoice', 'updated_at'])
        # The order behind the note is billed by the same invoice
        for order in SalesOrder.objects.filter(delivery_note=note, status='delivered'):
            order.invoice = invoice
            order.save(update_fields=['invoice', 'updated_at'])
            order.transition('invoiced', user=user, system=True)
        log_activity(user, 'convert', instance=note, request=request,
                     new_values={'invoice': invoice.number})

    logger.info("Delivery note %s invoiced as %s", note.number, invoice.number)
    return invoice


def _credit_note_from(source, user, **extra):
    values = source.header_values()
    # Stamp duty is not refunded
    values['timbre_amount'] = Decimal('0')
    values.update(extra)
    credit_note = CreditNote.objects.create(created_by=user, **values)
    source.copy_lines_to(credit_note)
    credit_note.check_creditable()
    return credit_note


def invoice_to_credit_note(invoice, user=None, request=None, reason=''):
    if invoice.status not in ('validated', 'paid'):
        raise ValidationError("Un avoir ne peut être émis que sur une facture validée ou payée.")

    with transaction.atomic():
        credit_note = _credit_note_from(invoice, user, invoice=invoice, type='total',
                                        reason=reason or f"Avoir sur facture {invoice.number}")
        log_activity(user, 'convert', instance=invoice, request=request,
                     new_values={'credit_note': credit_note.number})

    logger.info("Credit note %s issued for invoice %s", credit_note.number, invoice.number)
    return credit_note


def return_order_to_credit_note(return_order, user=None, request=None):
    if return_order.status not in ('validated', 'processed'):
        raise ValidationError("Le bon de retour doit être validé ou traité pour générer un avoir.")

    with transaction.atomic():
        credit_note = _credit_note_from(
            return_order, user,
            invoice=return_order.invoice,
            return_order=return_order,
            type='partial',
            reason=return_order.return_reason,
        )
        log_activity(user, 'convert', instance=return_order, request=request,
                     new_values={'credit_note': credit_note.number})

    logger.info("Credit note %s issued for return %s", credit_note.number, return_order.number)
    return credit_note


def record_payment(invoice, amount, account=None, method='cash', reference='',
                   payment_date=None, notes='', user=None, request=None):
    """
    Register a payment on a validated invoice and post it to treasury.

    The invoice moves to ``paid`` once the payments cover its total.
    """
    amount = Decimal(str(amount))
    with transaction.atomic():
        invoice = Invoice.objects.select_for_update().get(pk=invoice.pk)
        if invoice.status != 'validated':
            raise ValidationError("Seule une facture validée peut recevoir un paiement.")
        if amount <= 0:
            raise ValidationError("Le montant du paiement doit être supérieur à 0.")
        remaining = invoice.remaining_amount
        if amount > remaining:
            raise ValidationError(
                f"Le montant du paiement ({amount}) dépasse le reste à payer ({remaining})."
            )

        payment = Payment.objects.create(
            invoice=invoice,
            account=account,
            amount=amount,
            method=method,
            reference=reference,
            payment_date=payment_date or timezone.localdate(),
            notes=notes,
            created_by=user,
        )
        if account is not None:
            post_transaction(
                account,
                'income',
                amount,
                category='Ventes',
                payment_method=TREASURY_METHODS.get(method, 'cash'),
                description=f"Paiement facture {invoice.number} - {invoice.client.name}",
                reference_type='invoice',
                reference_id=invoice.pk,
                transaction_date=payment.payment_date,
                user=user,
            )
        if invoice.remaining_amount <= 0:
            invoice.transition('paid', user=user, system=True)
        log_activity(user, 'payment', instance=invoice, request=request,
                     new_values={'amount': str(amount), 'status': invoice.status})

    logger.info("Payment of %s recorded on invoice %s (status %s)", amount, invoice.number, invoice.status)
    return payment
