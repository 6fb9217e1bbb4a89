from django.db import models
from django.utils import timezone

from apps.fiscal.calculator import calculate_retenue, net_to_pay
from apps.sales.documents import NumberedDocument, DocumentLine


class PurchaseOrder(NumberedDocument):
    """
    Bons de commande fournisseur
    """
    DOCUMENT_TYPE = 'purchase_order'
    STATUS_CHOICES = [
        ('draft', 'Brouillon'),
        ('ordered', 'Commandé'),
        ('received', 'Reçu'),
        ('cancelled', 'Annulé'),
    ]
    STATUS_TRANSITIONS = {
        'draft': ('ordered', 'cancelled'),
        'ordered': ('received', 'cancelled'),
    }

    supplier = models.ForeignKey(
        'partners.Supplier',
        on_delete=models.PROTECT,
        related_name='purchase_orders'
    )
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='draft')
    expected_date = models.DateField(null=True, blank=True)
    received_date = models.DateField(null=True, blank=True)
    retenue_source = models.DecimalField(max_digits=15, decimal_places=3, default=0)
    net_to_pay = models.DecimalField(max_digits=15, decimal_places=3, default=0)
    tags = models.JSONField(default=list, blank=True)

    class Meta(NumberedDocument.Meta):
        verbose_name = "Bon de commande"
        verbose_name_plural = "Bons de commande"

    @property
    def order_date(self):
        return self.issue_date

    def recalculate(self, save=True):
        totals = super().recalculate(save=False)
        self.retenue_source = calculate_retenue(self.total)
        self.net_to_pay = net_to_pay(self.total)
        totals['retenue_source'] = self.retenue_source
        totals['net_to_pay'] = self.net_to_pay
        if save:
            self.save(update_fields=[
                'subtotal', 'discount_amount', 'tva_amount', 'fodec_amount',
                'timbre_amount', 'total', 'retenue_source', 'net_to_pay', 'updated_at'
            ])
        return totals

    def on_status_change(self, old_status, new_status, user):
        from apps.inventory.services import post_document_lines

        if new_status == 'received':
            self.received_date = timezone.localdate()
            self.save(update_fields=['received_date', 'updated_at'])
            post_document_lines(self.items.select_related('product'), 'purchase', self.number,
                                outgoing=False, warehouse=self.warehouse,
                                notes=f"Réception {self.number} - {self.supplier.name}", user=user)


class PurchaseOrderItem(DocumentLine):
    purchase_order = models.ForeignKey(PurchaseOrder, on_delete=models.CASCADE, related_name='items')

    class Meta(DocumentLine.Meta):
        verbose_name = "Ligne de bon de commande"
        verbose_name_plural = "Lignes de bon de commande"
