from django.db import models
from django.contrib.auth.models import User
from django.core.validators import MinValueValidator, MaxValueValidator
from decimal import Decimal
from apps.core.models import Warehouse


class Product(models.Model):
    """
    Produits et prestations de l'atelier
    """
    CATEGORY_CHOICES = [
        ('dtf', 'DTF'),
        ('uv', 'UV'),
        ('embroidery', 'Broderie'),
        ('laser', 'Laser'),
        ('other', 'Autre'),
    ]
    PRODUCT_TYPE_CHOICES = [
        ('product', 'Produit'),
        ('service', 'Service'),
    ]
    DESTINATION_CHOICES = [
        ('sale', 'Vente'),
        ('purchase', 'Achat'),
        ('both', 'Vente et achat'),
    ]

    name = models.CharField(max_length=200)
    sku = models.CharField(max_length=50, unique=True, blank=True, null=True)
    description = models.TextField(blank=True)
    category = models.CharField(max_length=20, choices=CATEGORY_CHOICES, default='other')
    product_type = models.CharField(max_length=10, choices=PRODUCT_TYPE_CHOICES, default='product')
    destination = models.CharField(max_length=10, choices=DESTINATION_CHOICES, default='sale')
    base_price = models.DecimalField(
        "Prix de vente HT", max_digits=15, decimal_places=3, default=0,
        validators=[MinValueValidator(0)]
    )
    cost_price = models.DecimalField(max_digits=15, decimal_places=3, default=0, validators=[MinValueValidator(0)])
    purchase_price = models.DecimalField(max_digits=15, decimal_places=3, default=0, validators=[MinValueValidator(0)])
    margin_percent = models.DecimalField(max_digits=6, decimal_places=2, default=0, validators=[MinValueValidator(0)])
    tva_rate = models.DecimalField(
        max_digits=5, decimal_places=2, default=Decimal('19'),
        validators=[MinValueValidator(0), MaxValueValidator(100)]
    )
    stock_quantity = models.DecimalField(max_digits=12, decimal_places=3, default=0)
    photo = models.ImageField(upload_to='products/', blank=True, null=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    created_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='products_created'
    )

    def __str__(self):
        return self.name

    @property
    def is_service(self):
        return self.product_type == 'service'

    def save(self, *args, **kwargs):
        if not self.base_price and self.purchase_price and self.margin_percent:
            self.base_price = (
                self.purchase_price * (1 + self.margin_percent / Decimal('100'))
            ).quantize(Decimal('0.001'))
        if not self.sku:
            self.sku = self.generate_sku()
        super().save(*args, **kwargs)

    def generate_sku(self):
        last_product = Product.objects.order_by('-id').first()
        next_id = 1 if not last_product else last_product.id + 1
        sku = f"PRD-{next_id:04d}"
        while Product.objects.filter(sku=sku).exists():
            next_id += 1
            sku = f"PRD-{next_id:04d}"
        return sku

    class Meta:
        verbose_name = "Produit"
        verbose_name_plural = "Produits"
        ordering = ['name']


class ProductVariant(models.Model):
    """
    Déclinaison d'un produit (taille, couleur, support...)
    """
    product = models.ForeignKey(
        Product,
        on_delete=models.CASCADE,
        related_name='variants'
    )
    name = models.CharField(max_length=100)
    sku = models.CharField(max_length=50, blank=True)
    price_adjustment = models.DecimalField(max_digits=15, decimal_places=3, default=0)
    stock_quantity = models.IntegerField(default=0, validators=[MinValueValidator(0)])
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.product.name} - {self.name}"

    @property
    def price(self):
        return self.product.base_price + self.price_adjustment

    class Meta:
        verbose_name = "Variante"
        verbose_name_plural = "Variantes"
        ordering = ['product', 'name']


class StockMovement(models.Model):
    """
    Fiche de stock : chaque entrée ou sortie avec le solde après mouvement
    """
    MOVEMENT_TYPES = [
        ('delivery', 'Livraison client'),
        ('return', 'Retour client'),
        ('purchase', 'Réception fournisseur'),
        ('adjustment', "Ajustement d'inventaire"),
        ('production', 'Consommation production'),
    ]

    product = models.ForeignKey(
        Product,
        on_delete=models.PROTECT,
        related_name='stock_movements'
    )
    warehouse = models.ForeignKey(
        Warehouse,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='stock_movements'
    )
    date = models.DateField()
    movement_type = models.CharField(max_length=20, choices=MOVEMENT_TYPES)
    reference = models.CharField(max_length=50)
    quantity_in = models.DecimalField(max_digits=12, decimal_places=3, default=0)
    quantity_out = models.DecimalField(max_digits=12, decimal_places=3, default=0)
    balance = models.DecimalField(max_digits=12, decimal_places=3, default=0)
    notes = models.TextField(blank=True)
    created_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='stock_movements'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"Fiche {self.product.name} - {self.date} - {self.get_movement_type_display()}"

    class Meta:
        verbose_name = "Mouvement de stock"
        verbose_name_plural = "Fiche de stock"
        ordering = ['product', '-date', '-id']
