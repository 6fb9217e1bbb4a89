from django.db import models
from django.contrib.auth.models import User
from django.core.validators import MinValueValidator
from django.utils import timezone
from decimal import Decimal


class Account(models.Model):
    """
    Comptes de trésorerie (caisse, banques, chèques)
    """
    ACCOUNT_TYPES = [
        ('cash', 'Caisse'),
        ('bank', 'Compte bancaire'),
        ('check', 'Chèques'),
    ]
    DEFAULT_ACCOUNTS = [
        ('Caisse', 'cash'),
        ('Banque Principale', 'bank'),
        ('Banque Secondaire', 'bank'),
        ('Chèques', 'check'),
    ]

    name = models.CharField(max_length=100, unique=True)
    account_type = models.CharField(max_length=20, choices=ACCOUNT_TYPES)
    initial_balance = models.DecimalField(max_digits=15, decimal_places=3, default=0)
    current_balance = models.DecimalField(max_digits=15, decimal_places=3, default=0)
    description = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.name} ({self.get_account_type_display()})"

    def save(self, *args, **kwargs):
        if not self.pk and not self.current_balance:
            self.current_balance = self.initial_balance
        super().save(*args, **kwargs)

    @classmethod
    def ensure_defaults(cls):
        """Create the standard cash, bank and cheque accounts when missing"""
        for name, account_type in cls.DEFAULT_ACCOUNTS:
            cls.objects.get_or_create(name=name, defaults={'account_type': account_type})

    class Meta:
        verbose_name = "Compte"
        verbose_name_plural = "Comptes"
        ordering = ['name']


class TreasuryTransaction(models.Model):
    """
    Mouvement de trésorerie (entrée ou sortie) avec le solde du compte après opération
    """
    TYPE_CHOICES = [
        ('income', 'Entrée'),
        ('expense', 'Sortie'),
    ]
    CATEGORY_CHOICES = [
        ('Ventes', 'Ventes'),
        ('Achats', 'Achats'),
        ('Loyer', 'Loyer'),
        ('Salaires', 'Salaires'),
        ('Charges', 'Charges'),
        ('Investissement', 'Investissement'),
        ('Remboursement', 'Remboursement'),
        ('Autre', 'Autre'),
    ]
    PAYMENT_METHODS = [
        ('cash', 'Espèces'),
        ('bank', 'Virement'),
        ('check', 'Chèque'),
    ]

    account = models.ForeignKey(
        Account,
        on_delete=models.PROTECT,
        related_name='transactions'
    )
    type = models.CharField(max_length=10, choices=TYPE_CHOICES)
    category = models.CharField(max_length=30, choices=CATEGORY_CHOICES, default='Autre')
    amount = models.DecimalField(
        max_digits=15,
        decimal_places=3,
        validators=[MinValueValidator(Decimal('0.001'))]
    )
    payment_method = models.CharField(max_length=10, choices=PAYMENT_METHODS, default='cash')
    transaction_date = models.DateField(default=timezone.localdate)
    description = models.TextField(blank=True)
    tags = models.JSONField(default=list, blank=True)
    reference_type = models.CharField(max_length=30, blank=True)
    reference_id = models.CharField(max_length=50, blank=True)
    balance_after = models.DecimalField(max_digits=15, decimal_places=3, default=0)
    created_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='treasury_transactions_created'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        sign = '+' if self.type == 'income' else '-'
        return f"{self.account.name} {sign}{self.amount} ({self.category})"

    @property
    def signed_amount(self):
        return self.amount if self.type == 'income' else -self.amount

    class Meta:
        verbose_name = "Mouvement de trésorerie"
        verbose_name_plural = "Mouvements de trésorerie"
        ordering = ['-transaction_date', '-id']
        indexes = [
            models.Index(fields=['reference_type', 'reference_id']),
        ]


class Expense(models.Model):
    """
    Dépenses de l'atelier
    """
    CATEGORY_CHOICES = [
        ('Loyer', 'Loyer'),
        ('Electricite', 'Électricité'),
        ('Internet', 'Internet'),
        ('Transport', 'Transport'),
        ('Matiere premiere', 'Matière première'),
        ('Equipement', 'Équipement'),
        ('Salaires', 'Salaires'),
        ('Marketing', 'Marketing'),
        ('Fournitures', 'Fournitures'),
        ('Maintenance', 'Maintenance'),
        ('Assurance', 'Assurance'),
        ('Autre', 'Autre'),
    ]
    # Treasury category used when an expense is paid from an account
    TREASURY_CATEGORIES = {
        'Loyer': 'Loyer',
        'Salaires': 'Salaires',
        'Matiere premiere': 'Achats',
        'Equipement': 'Investissement',
    }

    category = models.CharField(max_length=30, choices=CATEGORY_CHOICES)
    description = models.CharField(max_length=255)
    amount = models.DecimalField(
        max_digits=15,
        decimal_places=3,
        validators=[MinValueValidator(Decimal('0.001'))]
    )
    expense_date = models.DateField(default=timezone.localdate)
    account = models.ForeignKey(
        Account,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='expenses'
    )
    payment_method = models.CharField(max_length=10, choices=TreasuryTransaction.PAYMENT_METHODS, default='cash')
    transaction = models.OneToOneField(
        TreasuryTransaction,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='expense'
    )
    tags = models.JSONField(default=list, blank=True)
    receipt = models.FileField(upload_to='receipts/%Y/%m/', blank=True, null=True)
    notes = models.TextField(blank=True)
    created_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='expenses_created'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"Dépense {self.category} - {self.amount}"

    @property
    def treasury_category(self):
        return self.TREASURY_CATEGORIES.get(self.category, 'Charges')

    class Meta:
        verbose_name = "Dépense"
        verbose_name_plural = "Dépenses"
        ordering = ['-expense_date', '-id']
