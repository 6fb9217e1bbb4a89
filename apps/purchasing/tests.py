"""
Tests for Purchasing app - purchase orders, retenue à la source, receptions
"""
import pytest
from decimal import Decimal
from django.core.exceptions import ValidationError
from django.urls import reverse
from rest_framework import status

from apps.inventory.models import StockMovement
from apps.purchasing.models import PurchaseOrder
from conftest import PurchaseOrderFactory, SupplierFactory


# ============= Model Tests =============

@pytest.mark.django_db
class TestPurchaseOrderModel:
    """Test purchase order totals and workflow"""

    def test_small_order_has_no_retenue(self, supplier_partner):
        """Test an order under the threshold"""
        order = PurchaseOrderFactory(supplier=supplier_partner)
        assert order.number.startswith('BC-')
        assert order.total == Decimal('238.000')
        assert order.retenue_source == Decimal('0.000')
        assert order.net_to_pay == Decimal('238.000')
        assert order.order_date == order.issue_date

    def test_retenue_from_threshold(self, supplier_partner):
        """Test 1 % withheld on an order of 1190.000 TTC"""
        order = PurchaseOrderFactory(supplier=supplier_partner, lines=[
            {'description': 'Film DTF', 'quantity': Decimal('10'),
             'unit_price': Decimal('100.000'), 'tva_rate': Decimal('19')}
        ])
        assert order.total == Decimal('1190.000')
        assert order.retenue_source == Decimal('11.900')
        assert order.net_to_pay == Decimal('1178.100')

    def test_workflow(self, supplier_partner):
        """Test draft, ordered, received"""
        order = PurchaseOrderFactory(supplier=supplier_partner)
        assert order.manual_transitions() == ('ordered', 'cancelled')
        order.transition('ordered')
        order.transition('received')
        order.refresh_from_db()
        assert order.status == 'received'
        assert order.received_date is not None
        with pytest.raises(ValidationError):
            order.transition('cancelled')

    def test_reception_posts_stock(self, supplier_partner, product, warehouse):
        """Test that receiving goods raises stock"""
        order = PurchaseOrderFactory(supplier=supplier_partner, warehouse=warehouse, lines=[
            {'product': product, 'quantity': Decimal('50'), 'unit_price': Decimal('10.000'),
             'tva_rate': Decimal('19')}
        ])
        order.transition('ordered')
        order.transition('received')
        product.refresh_from_db()
        assert product.stock_quantity == Decimal('150')
        movement = StockMovement.objects.get(reference=order.number)
        assert movement.movement_type == 'purchase'
        assert movement.quantity_in == Decimal('50')
        assert movement.warehouse == warehouse

    def test_cancelled_order_posts_nothing(self, supplier_partner, product):
        """Test that a cancelled order leaves stock alone"""
        order = PurchaseOrderFactory(supplier=supplier_partner, lines=[
            {'product': product, 'quantity': Decimal('5'), 'unit_price': Decimal('10.000'),
             'tva_rate': Decimal('19')}
        ])
        order.transition('cancelled')
        assert StockMovement.objects.count() == 0


# ============= API Tests =============

@pytest.mark.django_db
@pytest.mark.api
class TestPurchaseOrderAPI:
    """Test purchase order endpoints"""

    def test_create_order(self, admin_client, supplier_partner, product):
        """Test that lines default to the purchase price"""
        data = {
            'supplier': supplier_partner.id,
            'items': [{'product': product.id, 'quantity': '100'}],
        }
        response = admin_client.post(reverse('purchaseorder-list'), data, format='json')
        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['items'][0]['unit_price'] == '10.000'
        assert response.data['total'] == '1190.000'
        assert response.data['retenue_source'] == '11.900'
        assert response.data['net_to_pay'] == '1178.100'
        assert response.data['supplier_tax_id'] == '7654321B'

    def test_inactive_supplier_refused(self, admin_client):
        """Test that orders go to active suppliers only"""
        supplier = SupplierFactory(is_active=False)
        data = {'supplier': supplier.id, 'items': [{'description': 'Encre', 'quantity': '1', 'unit_price': '5'}]}
        response = admin_client.post(reverse('purchaseorder-list'), data, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'supplier' in response.data

    def test_sales_role_cannot_order(self, authenticated_client, supplier_partner):
        """Test that purchasing is closed to the sales role"""
        data = {'supplier': supplier_partner.id, 'items': [{'description': 'Encre', 'quantity': '1'}]}
        response = authenticated_client.post(reverse('purchaseorder-list'), data, format='json')
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_update_recomputes_retenue(self, admin_client, supplier_partner):
        """Test that editing lines updates the retenue"""
        order = PurchaseOrderFactory(supplier=supplier_partner)
        url = reverse('purchaseorder-detail', kwargs={'pk': order.id})
        data = {'items': [{'description': 'Machine de presse', 'quantity': '1',
                           'unit_price': '2000', 'tva_rate': '19'}]}
        response = admin_client.patch(url, data, format='json')
        assert response.status_code == status.HTTP_200_OK
        order.refresh_from_db()
        assert order.total == Decimal('2380.000')
        assert order.retenue_source == Decimal('23.800')
        assert order.net_to_pay == Decimal('2356.200')

    def test_receive_through_status(self, api_client, make_user, supplier_partner):
        """Test the stock role receiving an order"""
        api_client.force_authenticate(user=make_user('stock'))
        order = PurchaseOrderFactory(supplier=supplier_partner, status='ordered')
        response = api_client.post(reverse('purchaseorder-status', args=[order.id]),
                                   {'status': 'received'}, format='json')
        assert response.status_code == status.HTTP_200_OK
        assert response.data['status'] == 'received'
        assert response.data['received_date'] is not None

    def test_filters(self, admin_client, supplier_partner):
        """Test supplier, retenue and tag filters"""
        other = SupplierFactory()
        PurchaseOrderFactory(supplier=supplier_partner, tags=['encres'], lines=[
            {'description': 'Encres', 'quantity': Decimal('1'), 'unit_price': Decimal('1500'),
             'tva_rate': Decimal('19')}
        ])
        PurchaseOrderFactory(supplier=other)
        url = reverse('purchaseorder-list')
        assert admin_client.get(url, {'supplier': supplier_partner.id}).data['count'] == 1
        assert admin_client.get(url, {'with_retenue': 'true'}).data['count'] == 1
        assert admin_client.get(url, {'tag': 'encres'}).data['count'] == 1
        assert admin_client.get(url).data['count'] == 2

    def test_delete_ordered_refused(self, admin_client, supplier_partner):
        """Test that only draft orders can be deleted"""
        order = PurchaseOrderFactory(supplier=supplier_partner, status='ordered')
        response = admin_client.delete(reverse('purchaseorder-detail', kwargs={'pk': order.id}))
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert PurchaseOrder.objects.filter(pk=order.id).exists()
