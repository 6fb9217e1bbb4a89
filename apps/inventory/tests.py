"""
Tests for Inventory app - Product, stock card and movements
"""
import pytest
from decimal import Decimal
from django.urls import reverse
from rest_framework import status

from apps.inventory.models import Product, ProductVariant, StockMovement
from apps.inventory.services import post_movement
from conftest import ProductFactory


# ============= Model Tests =============

@pytest.mark.django_db
class TestProductModel:
    """Test Product model"""

    def test_product_creation(self, product):
        """Test creating a product"""
        assert product.id is not None
        assert product.name == "T-shirt blanc"
        assert product.sku.startswith('PRD-')
        assert product.is_service is False
        assert str(product) == "T-shirt blanc"

    def test_sku_generated_unique(self, db):
        """Test that SKUs are generated and unique"""
        first = ProductFactory()
        second = ProductFactory()
        assert first.sku != second.sku

    def test_explicit_sku_kept(self, db):
        """Test that a given SKU is not overwritten"""
        assert ProductFactory(sku='TSH-BLANC-M').sku == 'TSH-BLANC-M'

    def test_price_from_margin(self, db):
        """Test sale price derived from purchase price and margin"""
        product = ProductFactory(base_price=Decimal('0'), purchase_price=Decimal('10.000'),
                                 margin_percent=Decimal('35'))
        assert product.base_price == Decimal('13.500')

    def test_variant_price(self, product):
        """Test variant price with adjustment"""
        variant = ProductVariant.objects.create(product=product, name='XXL', price_adjustment=Decimal('3.000'))
        assert variant.price == Decimal('28.000')
        assert str(variant) == "T-shirt blanc - XXL"


# ============= Stock Service Tests =============

@pytest.mark.django_db
class TestPostMovement:
    """Test stock card postings"""

    def test_incoming_movement(self, product, warehouse):
        """Test that an entry raises stock and records the balance"""
        movement = post_movement(product, 'purchase', 'BC-1', quantity_in=20, warehouse=warehouse)
        product.refresh_from_db()
        assert product.stock_quantity == Decimal('120')
        assert movement.balance == Decimal('120')
        assert movement.quantity_in == Decimal('20')
        assert movement.warehouse == warehouse

    def test_outgoing_movement(self, product):
        """Test that an exit lowers stock"""
        movement = post_movement(product, 'delivery', 'BL-1', quantity_out='7.5')
        product.refresh_from_db()
        assert product.stock_quantity == Decimal('92.5')
        assert movement.quantity_out == Decimal('7.5')

    def test_running_balance(self, product):
        """Test that each movement carries the balance after it"""
        post_movement(product, 'delivery', 'BL-1', quantity_out=30)
        post_movement(product, 'return', 'BR-1', quantity_in=5)
        balances = list(
            StockMovement.objects.filter(product=product).order_by('id').values_list('balance', flat=True)
        )
        assert balances == [Decimal('70'), Decimal('75')]

    def test_negative_stock_allowed(self, product):
        """Test that stock may go below zero"""
        post_movement(product, 'delivery', 'BL-2', quantity_out=150)
        product.refresh_from_db()
        assert product.stock_quantity == Decimal('-50')

    def test_service_ignored(self, service_product):
        """Test that services carry no stock"""
        assert post_movement(service_product, 'delivery', 'BL-3', quantity_out=1) is None
        assert StockMovement.objects.count() == 0


# ============= API Tests =============

@pytest.mark.django_db
@pytest.mark.api
class TestProductAPI:
    """Test Product API endpoints"""

    def test_list_products(self, authenticated_client, product):
        """Test listing products"""
        response = authenticated_client.get(reverse('product-list'))
        assert response.status_code == status.HTTP_200_OK
        assert response.data['count'] == 1

    def test_create_product(self, authenticated_client):
        """Test creating a product"""
        data = {
            'name': "Mug personnalisé",
            'category': 'uv',
            'base_price': '15.000',
            'tva_rate': '19',
            'stock_quantity': '999',
        }
        response = authenticated_client.post(reverse('product-list'), data, format='json')
        assert response.status_code == status.HTTP_201_CREATED
        product = Product.objects.get(name="Mug personnalisé")
        assert product.stock_quantity == Decimal('0')
        assert product.sku.startswith('PRD-')

    def test_filter_by_destination(self, authenticated_client, db):
        """Test that 'both' products appear for sale and purchase"""
        ProductFactory(destination='sale')
        ProductFactory(destination='purchase')
        ProductFactory(destination='both')
        response = authenticated_client.get(reverse('product-list'), {'destination': 'purchase'})
        assert response.data['count'] == 2

    def test_search(self, authenticated_client, db):
        """Test searching by name or SKU"""
        ProductFactory(name="Casquette brodée", sku='CAS-01')
        ProductFactory(name="Tote bag")
        response = authenticated_client.get(reverse('product-list'), {'search': 'cas-01'})
        assert response.data['count'] == 1

    def test_qr_code(self, authenticated_client, product):
        """Test QR code PNG for a product"""
        response = authenticated_client.get(reverse('product-qr-code', kwargs={'pk': product.id}))
        assert response.status_code == status.HTTP_200_OK
        assert response['Content-Type'] == 'image/png'
        assert response.content[:8] == b'\x89PNG\r\n\x1a\n'

    def test_stock_card(self, authenticated_client, product):
        """Test stock card with movements"""
        post_movement(product, 'delivery', 'BL-1', quantity_out=10)
        response = authenticated_client.get(reverse('product-stock-card', kwargs={'pk': product.id}))
        assert response.status_code == status.HTTP_200_OK
        assert Decimal(response.data['stock_quantity']) == Decimal('90')
        assert len(response.data['movements']) == 1
        assert response.data['movements'][0]['reference'] == 'BL-1'

    def test_delete_product_with_movements_refused(self, admin_client, product):
        """Test that a product on the stock card cannot be deleted"""
        post_movement(product, 'delivery', 'BL-1', quantity_out=1)
        response = admin_client.delete(reverse('product-detail', kwargs={'pk': product.id}))
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert Product.objects.filter(pk=product.id).exists()


@pytest.mark.django_db
@pytest.mark.api
class TestStockAdjustmentAPI:
    """Test manual stock corrections"""

    def test_adjust_up(self, authenticated_client, product, warehouse):
        """Test a positive inventory correction"""
        data = {'product': product.id, 'warehouse': warehouse.id, 'quantity': '5', 'notes': 'Inventaire'}
        response = authenticated_client.post(reverse('stockmovement-adjust'), data, format='json')
        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['movement_type'] == 'adjustment'
        product.refresh_from_db()
        assert product.stock_quantity == Decimal('105')

    def test_adjust_down(self, authenticated_client, product):
        """Test a negative inventory correction"""
        response = authenticated_client.post(
            reverse('stockmovement-adjust'), {'product': product.id, 'quantity': '-12'}, format='json'
        )
        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['quantity_out'] == '12.000'
        product.refresh_from_db()
        assert product.stock_quantity == Decimal('88')

    def test_adjust_zero_refused(self, authenticated_client, product):
        """Test that a zero correction is refused"""
        response = authenticated_client.post(
            reverse('stockmovement-adjust'), {'product': product.id, 'quantity': '0'}, format='json'
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_adjust_service_refused(self, authenticated_client, service_product):
        """Test that services cannot be adjusted"""
        response = authenticated_client.post(
            reverse('stockmovement-adjust'), {'product': service_product.id, 'quantity': '1'}, format='json'
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_filter_movements(self, authenticated_client, product):
        """Test filtering the ledger by movement type"""
        post_movement(product, 'delivery', 'BL-1', quantity_out=1)
        post_movement(product, 'purchase', 'BC-1', quantity_in=1)
        response = authenticated_client.get(reverse('stockmovement-list'), {'movement_type': 'purchase'})
        assert response.data['count'] == 1
