from django.db import models, transaction
from django.contrib.auth.models import User
from django.core.exceptions import ValidationError
from .validators import validate_tunisian_tax_id


class Client(models.Model):
    """
    Clients de l'atelier
    """
    TYPE_CHOICES = [
        ('b2b', 'Entreprise (B2B)'),
        ('b2c', 'Particulier (B2C)'),
    ]

    name = models.CharField(max_length=200)
    type = models.CharField(max_length=3, choices=TYPE_CHOICES, default='b2c')
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=30, blank=True)
    address = models.TextField(blank=True)
    city = models.CharField(max_length=100, blank=True)
    tax_id = models.CharField(
        "Matricule fiscal", max_length=30, blank=True,
        validators=[validate_tunisian_tax_id]
    )
    notes = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)
    created_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='clients_created'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    def clean(self):
        if self.type == 'b2b' and not self.tax_id:
            raise ValidationError({'tax_id': "Le matricule fiscal est requis pour un client entreprise."})

    class Meta:
        verbose_name = "Client"
        verbose_name_plural = "Clients"
        ordering = ['name']


class Supplier(models.Model):
    """
    Fournisseurs de l'atelier
    """
    COMPANY_TYPE_CHOICES = [
        ('particulier', 'Particulier'),
        ('entreprise', 'Entreprise'),
    ]

    name = models.CharField(max_length=200)
    contact_name = models.CharField(max_length=100, blank=True)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=30, blank=True)
    address = models.TextField(blank=True)
    city = models.CharField(max_length=100, blank=True)
    tax_id = models.CharField(
        "Matricule fiscal", max_length=30, blank=True,
        validators=[validate_tunisian_tax_id]
    )
    category = models.CharField(max_length=100, blank=True)
    company_type = models.CharField(max_length=20, choices=COMPANY_TYPE_CHOICES, default='entreprise')
    notes = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)
    created_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='suppliers_created'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        verbose_name = "Fournisseur"
        verbose_name_plural = "Fournisseurs"
        ordering = ['name']


class SupplierBankAccount(models.Model):
    """
    Coordonnées bancaires d'un fournisseur
    """
    supplier = models.ForeignKey(
        Supplier,
        on_delete=models.CASCADE,
        related_name='bank_accounts'
    )
    bank_name = models.CharField(max_length=100)
    rib_iban = models.CharField("RIB / IBAN", max_length=40)
    account_holder = models.CharField(max_length=200, blank=True)
    notes = models.TextField(blank=True)
    is_default = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.bank_name} - {self.rib_iban}"

    def save(self, *args, **kwargs):
        with transaction.atomic():
            if self.is_default:
                SupplierBankAccount.objects.filter(
                    supplier=self.supplier_id, is_default=True
                ).exclude(pk=self.pk).update(is_default=False)
            super().save(*args, **kwargs)

    class Meta:
        verbose_name = "Compte bancaire fournisseur"
        verbose_name_plural = "Comptes bancaires fournisseurs"
        ordering = ['-is_default', 'bank_name']
