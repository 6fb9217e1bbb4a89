from django.db import models
from django.contrib.auth.models import User
from django.core.validators import MinValueValidator
from django.utils import timezone
from decimal import Decimal

from apps.app_settings.models import NumberingSequence
from apps.inventory.models import Product
from apps.sales.documents import StatusWorkflowMixin


class ProductionJob(StatusWorkflowMixin, models.Model):
    """
    Travaux de l'atelier (impression DTF, UV, broderie, gravure laser)
    """
    DOCUMENT_TYPE = 'production_job'
    STATUS_CHOICES = [
        ('pending', 'En attente'),
        ('in_progress', 'En cours'),
        ('completed', 'Terminé'),
        ('delivered', 'Livré'),
    ]
    STATUS_TRANSITIONS = {
        'pending': ('in_progress',),
        'in_progress': ('completed',),
        'completed': ('delivered',),
    }
    TECHNIQUE_CHOICES = [
        ('dtf', 'DTF'),
        ('uv', 'UV'),
        ('embroidery', 'Broderie'),
        ('laser', 'Laser'),
    ]
    PRIORITY_CHOICES = [
        ('low', 'Basse'),
        ('medium', 'Moyenne'),
        ('high', 'Haute'),
        ('urgent', 'Urgente'),
    ]

    job_number = models.CharField(max_length=50, unique=True, blank=True)
    title = models.CharField(max_length=200)
    technique = models.CharField(max_length=20, choices=TECHNIQUE_CHOICES, default='dtf')
    priority = models.CharField(max_length=10, choices=PRIORITY_CHOICES, default='medium')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending')
    quantity = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])
    deadline = models.DateField(null=True, blank=True)
    client = models.ForeignKey(
        'partners.Client',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='production_jobs'
    )
    invoice = models.ForeignKey(
        'sales.Invoice',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='production_jobs'
    )
    sales_order = models.ForeignKey(
        'sales.SalesOrder',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='production_jobs'
    )
    started_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True)
    created_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='production_jobs_created'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.job_number} - {self.title}"

    def save(self, *args, **kwargs):
        if not self.job_number:
            self.job_number = NumberingSequence.allocate(self.DOCUMENT_TYPE)
        super().save(*args, **kwargs)

    @property
    def is_overdue(self):
        return bool(
            self.deadline
            and self.deadline < timezone.localdate()
            and self.status in ('pending', 'in_progress')
        )

    @property
    def is_editable(self):
        return self.status in ('pending', 'in_progress')

    def on_status_change(self, old_status, new_status, user):
        from apps.inventory.services import post_movement

        if new_status == 'in_progress':
            self.started_at = timezone.now()
            self.save(update_fields=['started_at', 'updated_at'])
        elif new_status == 'completed':
            self.completed_at = timezone.now()
            self.save(update_fields=['completed_at', 'updated_at'])
            # Raw materials leave stock once the job is done
            for material in self.materials.select_related('product'):
                post_movement(material.product, 'production', self.job_number,
                              quantity_out=material.quantity,
                              notes=f"Production {self.job_number} - {self.title}", user=user)

    class Meta:
        verbose_name = "Travail de production"
        verbose_name_plural = "Travaux de production"
        ordering = ['-created_at']


class ProductionMaterial(models.Model):
    """
    Matières premières consommées par un travail
    """
    job = models.ForeignKey(
        ProductionJob,
        on_delete=models.CASCADE,
        related_name='materials'
    )
    product = models.ForeignKey(
        Product,
        on_delete=models.PROTECT,
        related_name='production_materials'
    )
    quantity = models.DecimalField(
        max_digits=12, decimal_places=3,
        validators=[MinValueValidator(Decimal('0.001'))]
    )

    def __str__(self):
        return f"{self.product.name} - {self.quantity}"

    class Meta:
        verbose_name = "Matière première utilisée"
        verbose_name_plural = "Matières premières utilisées"
