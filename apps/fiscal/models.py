from django.db import models
from django.contrib.auth.models import User
from django.core.validators import MinValueValidator, MaxValueValidator


class TEJExport(models.Model):
    """
    Historique des déclarations TEJ (retenues à la source) exportées
    """
    FORMAT_CHOICES = [
        ('csv', 'CSV'),
        ('xml', 'XML'),
    ]

    month = models.PositiveSmallIntegerField(validators=[MinValueValidator(1), MaxValueValidator(12)])
    year = models.PositiveSmallIntegerField()
    format = models.CharField(max_length=3, choices=FORMAT_CHOICES)
    line_count = models.PositiveIntegerField(default=0)
    total_retenue = models.DecimalField(max_digits=15, decimal_places=3, default=0)
    exported_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='tej_exports'
    )
    export_date = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"TEJ {self.month:02d}/{self.year} ({self.format})"

    @property
    def filename(self):
        return f"TEJ_{self.year}_{self.month:02d}.{self.format}"

    class Meta:
        verbose_name = "Export TEJ"
        verbose_name_plural = "Exports TEJ"
        ordering = ['-export_date']
