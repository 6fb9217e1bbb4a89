import uuid
from decimal import Decimal

from django.db import models
from django.contrib.auth.models import User
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db.models import Sum
from django.utils import timezone

from apps.treasury.models import Account
from .documents import CommercialDocument, DocumentLine


class Quote(CommercialDocument):
    """
    Devis
    """
    DOCUMENT_TYPE = 'quote'
    STATUS_CHOICES = [
        ('draft', 'Brouillon'),
        ('sent', 'Envoyé'),
        ('accepted', 'Accepté'),
        ('rejected', 'Refusé'),
        ('converted', 'Converti'),
    ]
    STATUS_TRANSITIONS = {
        'draft': ('sent',),
        'sent': ('accepted', 'rejected'),
        'accepted': ('converted',),
    }
    SYSTEM_STATUSES = ('converted',)

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='draft')
    valid_until = models.DateField(null=True, blank=True)
    converted_invoice = models.ForeignKey(
        'Invoice',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+'
    )

    class Meta(CommercialDocument.Meta):
        verbose_name = "Devis"
        verbose_name_plural = "Devis"


class QuoteItem(DocumentLine):
    quote = models.ForeignKey(Quote, on_delete=models.CASCADE, related_name='items')

    class Meta(DocumentLine.Meta):
        verbose_name = "Ligne de devis"
        verbose_name_plural = "Lignes de devis"


class Proforma(CommercialDocument):
    """
    Factures proforma
    """
    DOCUMENT_TYPE = 'proforma'
    STATUS_CHOICES = [
        ('draft', 'Brouillon'),
        ('sent', 'Envoyée'),
        ('accepted', 'Acceptée'),
        ('rejected', 'Refusée'),
        ('converted', 'Convertie'),
        ('expired', 'Expirée'),
    ]
    STATUS_TRANSITIONS = {
        'draft': ('sent', 'expired', 'converted'),
        'sent': ('accepted', 'rejected', 'expired', 'converted'),
        'accepted': ('expired', 'converted'),
        'expired': ('converted',),
    }
    SYSTEM_STATUSES = ('converted',)

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='draft')
    valid_until = models.DateField(null=True, blank=True)
    payment_terms = models.CharField(max_length=255, blank=True)
    delivery_terms = models.CharField(max_length=255, blank=True)
    public_token = models.UUIDField(default=uuid.uuid4, unique=True, editable=False)
    tags = models.JSONField(default=list, blank=True)
    converted_invoice = models.ForeignKey(
        'Invoice',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+'
    )

    class Meta(CommercialDocument.Meta):
        verbose_name = "Facture proforma"
        verbose_name_plural = "Factures proforma"


class ProformaItem(DocumentLine):
    proforma = models.ForeignKey(Proforma, on_delete=models.CASCADE, related_name='items')

    class Meta(DocumentLine.Meta):
        verbose_name = "Ligne de proforma"
        verbose_name_plural = "Lignes de proforma"


class Invoice(CommercialDocument):
    """
    Factures clients
    """
    DOCUMENT_TYPE = 'invoice'
    STATUS_CHOICES = [
        ('draft', 'Brouillon'),
        ('validated', 'Validée'),
        ('paid', 'Payée'),
        ('cancelled', 'Annulée'),
    ]
    STATUS_TRANSITIONS = {
        'draft': ('validated', 'cancelled'),
        'validated': ('paid', 'cancelled'),
    }
    SYSTEM_STATUSES = ('paid',)

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='draft')
    due_date = models.DateField(null=True, blank=True)
    public_token = models.UUIDField(default=uuid.uuid4, unique=True, editable=False)
    tags = models.JSONField(default=list, blank=True)
    source_quote = models.ForeignKey(
        Quote,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+'
    )
    source_proforma = models.ForeignKey(
        Proforma,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+'
    )

    class Meta(CommercialDocument.Meta):
        verbose_name = "Facture"
        verbose_name_plural = "Factures"

    @property
    def paid_amount(self):
        return self.payments.aggregate(total=Sum('amount'))['total'] or Decimal('0')

    @property
    def remaining_amount(self):
        return self.total - self.paid_amount

    @property
    def credited_amount(self):
        credited = self.credit_notes.exclude(status='draft').aggregate(total=Sum('total'))['total']
        return credited or Decimal('0')

    def check_status_change(self, new_status):
        if new_status == 'cancelled' and self.payments.exists():
            raise ValidationError("Impossible d'annuler une facture qui a des paiements enregistrés.")


class InvoiceItem(DocumentLine):
    invoice = models.ForeignKey(Invoice, on_delete=models.CASCADE, related_name='items')

    class Meta(DocumentLine.Meta):
        verbose_name = "Ligne de facture"
        verbose_name_plural = "Lignes de facture"


class Payment(models.Model):
    """
    Règlements reçus sur une facture
    """
    METHOD_CHOICES = [
        ('cash', 'Espèces'),
        ('bank_transfer', 'Virement'),
        ('check', 'Chèque'),
        ('card', 'Carte bancaire'),
    ]

    invoice = models.ForeignKey(Invoice, on_delete=models.PROTECT, related_name='payments')
    account = models.ForeignKey(
        Account,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='invoice_payments'
    )
    amount = models.DecimalField(max_digits=15, decimal_places=3, validators=[MinValueValidator(Decimal('0.001'))])
    method = models.CharField(max_length=20, choices=METHOD_CHOICES, default='cash')
    reference = models.CharField(max_length=100, blank=True)
    payment_date = models.DateField(default=timezone.localdate)
    notes = models.TextField(blank=True)
    created_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='payments_created'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"Paiement {self.amount} - {self.invoice.number}"

    class Meta:
        verbose_name = "Paiement"
        verbose_name_plural = "Paiements"
        ordering = ['-payment_date', '-id']


class SalesOrder(CommercialDocument):
    """
    Commandes clients
    """
    DOCUMENT_TYPE = 'sales_order'
    STATUS_CHOICES = [
        ('draft', 'Brouillon'),
        ('confirmed', 'Confirmée'),
        ('in_production', 'En production'),
        ('delivered', 'Livrée'),
        ('invoiced', 'Facturée'),
        ('cancelled', 'Annulée'),
    ]
    STATUS_TRANSITIONS = {
        'draft': ('confirmed', 'cancelled'),
        'confirmed': ('in_production', 'delivered', 'cancelled'),
        'in_production': ('delivered',),
        'delivered': ('invoiced',),
    }
    SYSTEM_STATUSES = ('delivered', 'invoiced')

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='draft')
    delivery_date = models.DateField(null=True, blank=True)
    delivery_note = models.ForeignKey(
        'DeliveryNote',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+'
    )
    invoice = models.ForeignKey(
        Invoice,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='sales_orders'
    )

    class Meta(CommercialDocument.Meta):
        verbose_name = "Commande client"
        verbose_name_plural = "Commandes clients"


class SalesOrderItem(DocumentLine):
    sales_order = models.ForeignKey(SalesOrder, on_delete=models.CASCADE, related_name='items')

    class Meta(DocumentLine.Meta):
        verbose_name = "Ligne de commande"
        verbose_name_plural = "Lignes de commande"


class DeliveryNote(CommercialDocument):
    """
    Bons de livraison
    """
    DOCUMENT_TYPE = 'delivery_note'
    STATUS_CHOICES = [
        ('draft', 'Brouillon'),
        ('delivered', 'Livré'),
        ('returned', 'Retourné'),
    ]
    STATUS_TRANSITIONS = {
        'draft': ('delivered',),
        'delivered': ('returned',),
    }

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='draft')
    delivery_date = models.DateField(null=True, blank=True)
    delivery_address = models.TextField(blank=True)
    invoice = models.ForeignKey(
        Invoice,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='delivery_notes'
    )

    class Meta(CommercialDocument.Meta):
        verbose_name = "Bon de livraison"
        verbose_name_plural = "Bons de livraison"

    def on_status_change(self, old_status, new_status, user):
        from apps.inventory.services import post_document_lines

        if new_status == 'delivered':
            if not self.delivery_date:
                self.delivery_date = timezone.localdate()
                self.save(update_fields=['delivery_date', 'updated_at'])
            post_document_lines(self.items.select_related('product'), 'delivery', self.number,
                                outgoing=True, warehouse=self.warehouse,
                                notes=f"Livraison {self.number}", user=user)
        elif new_status == 'returned':
            post_document_lines(self.items.select_related('product'), 'return', self.number,
                                outgoing=False, warehouse=self.warehouse,
                                notes=f"Retour du BL {self.number}", user=user)


class DeliveryNoteItem(DocumentLine):
    delivery_note = models.ForeignKey(DeliveryNote, on_delete=models.CASCADE, related_name='items')

    class Meta(DocumentLine.Meta):
        verbose_name = "Ligne de bon de livraison"
        verbose_name_plural = "Lignes de bon de livraison"


class ReturnOrder(CommercialDocument):
    """
    Bons de retour client
    """
    DOCUMENT_TYPE = 'return_order'
    STATUS_CHOICES = [
        ('draft', 'Brouillon'),
        ('validated', 'Validé'),
        ('processed', 'Traité'),
        ('closed', 'Clôturé'),
    ]
    STATUS_TRANSITIONS = {
        'draft': ('validated',),
        'validated': ('processed',),
        'processed': ('closed',),
    }

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='draft')
    invoice = models.ForeignKey(
        Invoice,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='return_orders'
    )
    sales_order = models.ForeignKey(
        SalesOrder,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='return_orders'
    )
    return_reason = models.TextField(blank=True)
    return_to_stock = models.BooleanField(default=True)

    class Meta(CommercialDocument.Meta):
        verbose_name = "Bon de retour"
        verbose_name_plural = "Bons de retour"

    def on_status_change(self, old_status, new_status, user):
        from apps.inventory.services import post_document_lines

        if new_status == 'processed' and self.return_to_stock:
            post_document_lines(self.items.select_related('product'), 'return', self.number,
                                outgoing=False, warehouse=self.warehouse,
                                notes=self.return_reason, user=user)


class ReturnOrderItem(DocumentLine):
    return_order = models.ForeignKey(ReturnOrder, on_delete=models.CASCADE, related_name='items')

    class Meta(DocumentLine.Meta):
        verbose_name = "Ligne de retour"
        verbose_name_plural = "Lignes de retour"


class CreditNote(CommercialDocument):
    """
    Avoirs
    """
    DOCUMENT_TYPE = 'credit_note'
    STATUS_CHOICES = [
        ('draft', 'Brouillon'),
        ('validated', 'Validé'),
        ('applied', 'Appliqué'),
    ]
    TYPE_CHOICES = [
        ('total', 'Total'),
        ('partial', 'Partiel'),
    ]
    STATUS_TRANSITIONS = {
        'draft': ('validated',),
        'validated': ('applied',),
    }

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='draft')
    type = models.CharField(max_length=10, choices=TYPE_CHOICES, default='partial')
    invoice = models.ForeignKey(
        Invoice,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='credit_notes'
    )
    return_order = models.ForeignKey(
        ReturnOrder,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='credit_notes'
    )
    reason = models.TextField(blank=True)

    class Meta(CommercialDocument.Meta):
        verbose_name = "Avoir"
        verbose_name_plural = "Avoirs"

    def check_creditable(self):
        """A credit note may not exceed what is left to credit on its invoice"""
        if self.invoice_id is None:
            return
        others = self.invoice.credit_notes.exclude(status='draft').exclude(pk=self.pk)
        already = others.aggregate(total=Sum('total'))['total'] or Decimal('0')
        creditable = self.invoice.total - already
        if self.total > creditable:
            raise ValidationError(
                f"Le montant de l'avoir ({self.total}) dépasse le montant restant "
                f"à créditer sur la facture {self.invoice.number} ({creditable})."
            )

    def check_status_change(self, new_status):
        if new_status == 'validated':
            self.check_creditable()


class CreditNoteItem(DocumentLine):
    credit_note = models.ForeignKey(CreditNote, on_delete=models.CASCADE, related_name='items')

    class Meta(DocumentLine.Meta):
        verbose_name = "Ligne d'avoir"
        verbose_name_plural = "Lignes d'avoir"
