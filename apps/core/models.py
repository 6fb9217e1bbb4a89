from django.db import models
from django.contrib.auth.models import User


# Modules a role may write to. Reads are open to every active profile.
ROLE_MODULES = {
    'admin': {'*'},
    'sales': {'clients', 'products', 'sales', 'production', 'attachments'},
    'finance': {'clients', 'suppliers', 'sales', 'purchasing', 'treasury', 'fiscal', 'attachments'},
    'accountant': {'suppliers', 'purchasing', 'treasury', 'fiscal', 'attachments'},
    'stock': {'products', 'suppliers', 'purchasing', 'warehouses', 'attachments'},
    'production': {'production', 'products', 'attachments'},
}


class Warehouse(models.Model):
    """Dépôt, magasin ou atelier"""
    TYPE_CHOICES = [
        ('warehouse', 'Dépôt'),
        ('store', 'Magasin'),
        ('agency', 'Agence'),
        ('production', 'Atelier de production'),
    ]

    code = models.CharField(max_length=20, unique=True)
    name = models.CharField(max_length=100)
    type = models.CharField(max_length=20, choices=TYPE_CHOICES, default='warehouse')
    address = models.TextField(blank=True)
    city = models.CharField(max_length=100, blank=True)
    phone = models.CharField(max_length=30, blank=True)
    manager = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='managed_warehouses'
    )
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.code} - {self.name}"

    class Meta:
        verbose_name = "Site"
        verbose_name_plural = "Sites"
        ordering = ['name']


class UserProfile(models.Model):
    """User profile with role"""
    ROLE_CHOICES = (
        ('admin', 'Administrateur'),
        ('sales', 'Commercial'),
        ('finance', 'Finance'),
        ('accountant', 'Comptable'),
        ('stock', 'Magasinier'),
        ('production', 'Production'),
    )

    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='profile')
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default='sales')
    warehouse = models.ForeignKey(
        Warehouse,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='users'
    )
    phone = models.CharField(max_length=30, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.user.username} - {self.role}"

    def get_modules(self):
        """Modules this profile may write to"""
        if self.user.is_superuser:
            return ROLE_MODULES['admin']
        return ROLE_MODULES.get(self.role, set())

    def can_write(self, module):
        if not self.is_active:
            return False
        modules = self.get_modules()
        return '*' in modules or module in modules

    class Meta:
        verbose_name = "Profil utilisateur"
        verbose_name_plural = "Profils utilisateurs"


class ActivityLog(models.Model):
    """Journal des opérations métier"""
    user = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='activity_logs'
    )
    action = models.CharField(max_length=50)
    entity_type = models.CharField(max_length=50)
    entity_id = models.CharField(max_length=50, blank=True)
    old_values = models.JSONField(null=True, blank=True)
    new_values = models.JSONField(null=True, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.CharField(max_length=255, blank=True)
    success = models.BooleanField(default=True)
    error_message = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.action} {self.entity_type}#{self.entity_id}"

    class Meta:
        verbose_name = "Journal d'activité"
        verbose_name_plural = "Journal d'activité"
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['entity_type', 'entity_id']),
        ]


class Attachment(models.Model):
    """Pièce jointe rattachée à un document ou un partenaire"""
    ENTITY_TYPES = [
        ('invoice', 'Facture'),
        ('quote', 'Devis'),
        ('proforma', 'Proforma'),
        ('purchase_order', 'Bon de commande'),
        ('delivery_note', 'Bon de livraison'),
        ('sales_order', 'Commande client'),
        ('credit_note', 'Avoir'),
        ('client', 'Client'),
        ('supplier', 'Fournisseur'),
        ('expense', 'Dépense'),
        ('production_job', 'Travail de production'),
    ]

    entity_type = models.CharField(max_length=30, choices=ENTITY_TYPES)
    entity_id = models.PositiveBigIntegerField()
    file = models.FileField(upload_to='attachments/%Y/%m/')
    file_name = models.CharField(max_length=255, blank=True)
    file_type = models.CharField(max_length=100, blank=True)
    file_size = models.PositiveIntegerField(default=0)
    document_type = models.CharField(max_length=50, blank=True)
    tags = models.JSONField(default=list, blank=True)
    uploaded_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='attachments'
    )
    uploaded_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.file_name or self.file.name

    def save(self, *args, **kwargs):
        if self.file:
            if not self.file_name:
                self.file_name = self.file.name.rsplit('/', 1)[-1]
            if not self.file_size:
                self.file_size = self.file.size or 0
        super().save(*args, **kwargs)

    class Meta:
        verbose_name = "Pièce jointe"
        verbose_name_plural = "Pièces jointes"
        ordering = ['-uploaded_at']
