import logging
import re
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator, MaxValueValidator
from django.db import models, transaction
from django.utils import timezone

logger = logging.getLogger(__name__)

COMPANY_TAX_ID_RE = re.compile(r'^\d{7}[A-Za-z]$')


class CompanySettings(models.Model):
    """
    Paramètres de la société (une seule ligne)
    """
    DECIMALS_CHOICES = [
        (2, '2 décimales'),
        (3, '3 décimales (millimes)'),
    ]
    TEMPLATE_CHOICES = [
        ('free', 'Gratuit'),
        ('pro', 'Pro'),
        ('teewinek', 'Teewinek'),
    ]

    company_name = models.CharField(max_length=200, blank=True)
    address = models.TextField(blank=True)
    city = models.CharField(max_length=100, blank=True)
    postal_code = models.CharField(max_length=10, blank=True)
    phone = models.CharField(max_length=30, blank=True)
    email = models.EmailField(blank=True)
    website = models.CharField(max_length=200, blank=True)
    tax_id = models.CharField("Matricule fiscal", max_length=30, blank=True)
    rib = models.CharField("RIB", max_length=30, blank=True)
    logo = models.ImageField(upload_to='company/', blank=True, null=True)
    cachet = models.ImageField(upload_to='company/', blank=True, null=True)
    pdf_footer = models.TextField(blank=True)
    pdf_conditions = models.TextField(blank=True)
    show_qr_code = models.BooleanField(default=True)
    decimals = models.PositiveSmallIntegerField(choices=DECIMALS_CHOICES, default=3)
    invoice_template = models.CharField(max_length=20, choices=TEMPLATE_CHOICES, default='free')
    default_tva_rate = models.DecimalField(
        max_digits=5, decimal_places=2, default=Decimal('19'),
        validators=[MinValueValidator(0), MaxValueValidator(100)]
    )
    default_fodec_rate = models.DecimalField(
        max_digits=5, decimal_places=2, default=Decimal('0'),
        validators=[MinValueValidator(0), MaxValueValidator(100)]
    )
    default_timbre = models.DecimalField(
        max_digits=10, decimal_places=3, default=Decimal('1.000'),
        validators=[MinValueValidator(0)]
    )
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.company_name or "Paramètres société"

    def save(self, *args, **kwargs):
        self.pk = 1
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("Les paramètres de la société ne peuvent pas être supprimés.")

    @classmethod
    def load(cls):
        settings_row, _ = cls.objects.get_or_create(pk=1)
        return settings_row

    def tej_validation_errors(self):
        """Company data the tax platform refuses to ingest without"""
        errors = []
        if not self.company_name.strip():
            errors.append({'field': 'company_name', 'message': "Le nom de la société est requis"})
        if not COMPANY_TAX_ID_RE.match(self.tax_id.strip()):
            errors.append({
                'field': 'tax_id',
                'message': "Matricule fiscal de la société invalide (doit être 7 chiffres + 1 lettre)"
            })
        if not self.email.strip():
            errors.append({'field': 'email', 'message': "L'adresse email de la société est requise"})
        if not self.phone.strip():
            errors.append({'field': 'phone', 'message': "Le numéro de téléphone de la société est requis"})
        return errors

    class Meta:
        verbose_name = "Paramètres société"
        verbose_name_plural = "Paramètres société"


class NumberingSequence(models.Model):
    """
    Compteur de numérotation par type de document
    """
    DOCUMENT_TYPES = [
        ('invoice', 'Facture'),
        ('quote', 'Devis'),
        ('proforma', 'Facture proforma'),
        ('purchase_order', 'Bon de commande'),
        ('delivery_note', 'Bon de livraison'),
        ('sales_order', 'Commande client'),
        ('return_order', 'Bon de retour'),
        ('credit_note', 'Avoir'),
        ('production_job', 'Travail de production'),
    ]
    DEFAULT_PREFIXES = {
        'invoice': 'FAC',
        'quote': 'DEV',
        'proforma': 'PRO',
        'purchase_order': 'BC',
        'delivery_note': 'BL',
        'sales_order': 'CMD',
        'return_order': 'BR',
        'credit_note': 'AV',
        'production_job': 'JOB',
    }

    document_type = models.CharField(max_length=30, choices=DOCUMENT_TYPES, unique=True)
    prefix = models.CharField(max_length=10)
    padding = models.PositiveSmallIntegerField(
        default=5, validators=[MinValueValidator(1), MaxValueValidator(10)]
    )
    include_year = models.BooleanField(default=True)
    reset_annually = models.BooleanField(default=True)
    current_year = models.PositiveIntegerField(default=0)
    current_sequence = models.PositiveIntegerField(default=0)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.get_document_type_display()} ({self.prefix})"

    def format_number(self, sequence, year):
        if self.include_year:
            return f"{self.prefix}-{year}-{sequence:0{self.padding}d}"
        return f"{self.prefix}-{sequence:0{self.padding}d}"

    def preview(self, year=None):
        """Number the next allocation would return, without consuming it"""
        year = year or timezone.now().year
        sequence = self.current_sequence
        if self.reset_annually and self.current_year != year:
            sequence = 0
        return self.format_number(sequence + 1, year)

    @classmethod
    def _locked(cls, document_type):
        sequence = cls.objects.select_for_update().filter(document_type=document_type).first()
        if sequence is None:
            if document_type not in cls.DEFAULT_PREFIXES:
                raise ValidationError(f"Type de document inconnu : {document_type}")
            cls.objects.get_or_create(
                document_type=document_type,
                defaults={'prefix': cls.DEFAULT_PREFIXES[document_type]}
            )
            sequence = cls.objects.select_for_update().get(document_type=document_type)
        return sequence

    @classmethod
    def allocate(cls, document_type, year=None):
        """
        Reserve the next number for ``document_type``. The counter row is
        locked until the surrounding transaction commits.
        """
        year = year or timezone.now().year
        with transaction.atomic():
            sequence = cls._locked(document_type)
            if sequence.reset_annually and sequence.current_year != year:
                sequence.current_sequence = 0
            sequence.current_year = year
            sequence.current_sequence += 1
            sequence.save(update_fields=['current_sequence', 'current_year', 'updated_at'])
            number = sequence.format_number(sequence.current_sequence, year)
        logger.info("Allocated %s number %s", document_type, number)
        return number

    @classmethod
    def register_manual(cls, document_type, number, year=None):
        """
        Bump the counter past a number typed by hand so the next
        allocation cannot collide with it.
        """
        match = re.search(r'(\d+)\s*$', number or '')
        if not match:
            return
        used = int(match.group(1))
        year = year or timezone.now().year
        with transaction.atomic():
            sequence = cls._locked(document_type)
            if sequence.reset_annually and sequence.current_year != year:
                sequence.current_sequence = 0
                sequence.current_year = year
            if used > sequence.current_sequence:
                sequence.current_sequence = used
                logger.info("Sequence %s moved to %s after manual number %s",
                            document_type, used, number)
            sequence.save(update_fields=['current_sequence', 'current_year', 'updated_at'])

    class Meta:
        verbose_name = "Séquence de numérotation"
        verbose_name_plural = "Séquences de numérotation"
        ordering = ['document_type']


class TaxRule(models.Model):
    """Taux de taxe paramétrables (TVA, FODEC, ...)"""
    TYPE_CHOICES = [
        ('tva', 'TVA'),
        ('fodec', 'FODEC'),
        ('other', 'Autre'),
    ]

    name = models.CharField(max_length=100)
    rate = models.DecimalField(
        max_digits=5, decimal_places=2,
        validators=[MinValueValidator(0), MaxValueValidator(100)]
    )
    type = models.CharField(max_length=10, choices=TYPE_CHOICES, default='tva')
    is_active = models.BooleanField(default=True)
    is_default = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.name} ({self.rate}%)"

    def save(self, *args, **kwargs):
        with transaction.atomic():
            if self.is_default:
                TaxRule.objects.filter(type=self.type, is_default=True).exclude(pk=self.pk).update(is_default=False)
            super().save(*args, **kwargs)

    class Meta:
        verbose_name = "Règle de taxe"
        verbose_name_plural = "Règles de taxe"
        ordering = ['type', 'rate']
