"""
Building blocks shared by every commercial document (quotes, invoices,
orders, delivery notes, returns, credit notes and purchase orders).
"""
import logging
from decimal import Decimal

from django.contrib.auth.models import User
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator, MaxValueValidator
from django.db import models, transaction
from django.utils import timezone

from apps.app_settings.models import NumberingSequence
from apps.core.models import Warehouse
from apps.fiscal.calculator import compute_document_totals, compute_line
from apps.inventory.models import Product

logger = logging.getLogger(__name__)

PERCENT_VALIDATORS = [MinValueValidator(0), MaxValueValidator(100)]


class StatusWorkflowMixin:
    """
    Status machine driven by ``STATUS_TRANSITIONS`` (status -> reachable
    statuses). ``SYSTEM_STATUSES`` are only reached through an operation
    (conversion, payment) and never set directly by a user.
    """
    STATUS_TRANSITIONS = {}
    SYSTEM_STATUSES = ()

    def allowed_transitions(self):
        return tuple(self.STATUS_TRANSITIONS.get(self.status, ()))

    def can_transition(self, new_status):
        return new_status in self.allowed_transitions()

    def manual_transitions(self):
        return tuple(s for s in self.allowed_transitions() if s not in self.SYSTEM_STATUSES)

    def status_label(self, status):
        return dict(self._meta.get_field('status').choices).get(status, status)

    def transition(self, new_status, user=None, system=False):
        """
        Move to ``new_status`` and run the side effects of the change.
        Raises ValidationError when the move is not allowed.
        """
        if not self.can_transition(new_status) or (new_status in self.SYSTEM_STATUSES and not system):
            raise ValidationError(
                f"Impossible de passer de « {self.status_label(self.status)} » "
                f"à « {self.status_label(new_status)} »."
            )
        self.check_status_change(new_status)
        old_status = self.status
        with transaction.atomic():
            self.status = new_status
            self.save(update_fields=['status', 'updated_at'])
            self.on_status_change(old_status, new_status, user)
        logger.info("%s %s: %s -> %s", self._meta.verbose_name, self, old_status, new_status)

    def check_status_change(self, new_status):
        """Hook for business rules that can veto an otherwise allowed change"""

    def on_status_change(self, old_status, new_status, user):
        """Hook for side effects (stock, treasury) of a status change"""


class NumberedDocument(StatusWorkflowMixin, models.Model):
    """
    Numbered document with lines and Tunisian totals.

    ``discount_percent``, ``fodec_rate`` and ``timbre_amount`` are inputs;
    the other amounts are derived from the lines by ``recalculate``.
    """
    DOCUMENT_TYPE = None
    EDITABLE_STATUSES = ('draft',)

    number = models.CharField(max_length=50, unique=True, blank=True)
    warehouse = models.ForeignKey(
        Warehouse,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='%(class)ss'
    )
    issue_date = models.DateField(default=timezone.localdate)
    discount_percent = models.DecimalField(max_digits=5, decimal_places=2, default=0, validators=PERCENT_VALIDATORS)
    fodec_rate = models.DecimalField(max_digits=5, decimal_places=2, default=0, validators=PERCENT_VALIDATORS)
    timbre_amount = models.DecimalField(max_digits=10, decimal_places=3, default=0, validators=[MinValueValidator(0)])
    subtotal = models.DecimalField(max_digits=15, decimal_places=3, default=0)
    discount_amount = models.DecimalField(max_digits=15, decimal_places=3, default=0)
    tva_amount = models.DecimalField(max_digits=15, decimal_places=3, default=0)
    fodec_amount = models.DecimalField(max_digits=15, decimal_places=3, default=0)
    total = models.DecimalField(max_digits=15, decimal_places=3, default=0)
    notes = models.TextField(blank=True)
    created_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='%(class)ss_created'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True
        ordering = ['-issue_date', '-id']

    def __str__(self):
        return self.number or f"{self._meta.verbose_name} #{self.pk}"

    @property
    def is_editable(self):
        return self.status in self.EDITABLE_STATUSES

    def save(self, *args, **kwargs):
        if not self.pk and self.DOCUMENT_TYPE:
            if self.number:
                if type(self).objects.filter(number=self.number).exists():
                    raise ValidationError({'number': f"Le numéro {self.number} existe déjà."})
                NumberingSequence.register_manual(self.DOCUMENT_TYPE, self.number)
            else:
                self.number = NumberingSequence.allocate(self.DOCUMENT_TYPE)
        super().save(*args, **kwargs)

    def recalculate(self, save=True):
        """Recompute header amounts from the stored lines"""
        totals = compute_document_totals(
            [line.calculation_input() for line in self.items.all()],
            discount_percent=self.discount_percent,
            fodec_rate=self.fodec_rate,
            timbre=self.timbre_amount,
        )
        self.subtotal = totals['subtotal']
        self.discount_amount = totals['discount_amount']
        self.tva_amount = totals['tva_amount']
        self.fodec_amount = totals['fodec_amount']
        self.timbre_amount = totals['timbre_amount']
        self.total = totals['total']
        if save:
            self.save(update_fields=[
                'subtotal', 'discount_amount', 'tva_amount', 'fodec_amount',
                'timbre_amount', 'total', 'updated_at'
            ])
        return totals

    def header_values(self):
        """Fields carried over when this document is converted"""
        return {
            'warehouse': self.warehouse,
            'discount_percent': self.discount_percent,
            'fodec_rate': self.fodec_rate,
            'timbre_amount': self.timbre_amount,
        }

    def copy_lines_to(self, target):
        for line in self.items.all():
            target.items.create(**line.line_values())
        target.recalculate()
        return target


class CommercialDocument(NumberedDocument):
    """Document addressed to a client"""
    client = models.ForeignKey(
        'partners.Client',
        on_delete=models.PROTECT,
        related_name='%(class)ss'
    )

    class Meta(NumberedDocument.Meta):
        abstract = True

    def header_values(self):
        values = super().header_values()
        values['client'] = self.client
        return values


class DocumentLine(models.Model):
    """One line of a commercial document"""
    product = models.ForeignKey(
        Product,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+'
    )
    description = models.CharField(max_length=500, blank=True)
    quantity = models.DecimalField(
        max_digits=12, decimal_places=3, default=1,
        validators=[MinValueValidator(Decimal('0.001'))]
    )
    unit_price = models.DecimalField(max_digits=15, decimal_places=3, default=0, validators=[MinValueValidator(0)])
    tva_rate = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal('19'), validators=PERCENT_VALIDATORS)
    discount_percent = models.DecimalField(max_digits=5, decimal_places=2, default=0, validators=PERCENT_VALIDATORS)
    total_ht = models.DecimalField(max_digits=15, decimal_places=3, default=0)
    total_tva = models.DecimalField(max_digits=15, decimal_places=3, default=0)
    total_ttc = models.DecimalField(max_digits=15, decimal_places=3, default=0)
    position = models.PositiveIntegerField(default=0)

    class Meta:
        abstract = True
        ordering = ['position', 'id']

    def __str__(self):
        return self.description or (self.product.name if self.product else '')

    def calculation_input(self):
        return {
            'quantity': self.quantity,
            'unit_price': self.unit_price,
            'tva_rate': self.tva_rate,
            'discount_percent': self.discount_percent,
        }

    def line_values(self):
        return {
            'product': self.product,
            'description': self.description,
            'quantity': self.quantity,
            'unit_price': self.unit_price,
            'tva_rate': self.tva_rate,
            'discount_percent': self.discount_percent,
            'position': self.position,
        }

    def save(self, *args, **kwargs):
        if not self.description and self.product_id:
            self.description = self.product.name
        totals = compute_line(self.quantity, self.unit_price, self.tva_rate, self.discount_percent)
        self.total_ht = totals['total_ht']
        self.total_tva = totals['total_tva']
        self.total_ttc = totals['total_ttc']
        super().save(*args, **kwargs)
