"""
Tests for Production app - jobs, status board, material consumption
"""
import pytest
from datetime import timedelta
from decimal import Decimal
from django.core.exceptions import ValidationError
from django.urls import reverse
from django.utils import timezone
from rest_framework import status

from apps.inventory.models import StockMovement
from apps.production.models import ProductionJob
from conftest import ProductionJobFactory, InvoiceFactory, ClientFactory


# ============= Model Tests =============

@pytest.mark.django_db
class TestProductionJobModel:
    """Test production job numbering and workflow"""

    def test_job_number(self, db):
        """Test that jobs are numbered from their own sequence"""
        first = ProductionJobFactory()
        second = ProductionJobFactory()
        assert first.job_number.startswith('JOB-')
        assert first.job_number != second.job_number
        assert str(first) == f"{first.job_number} - {first.title}"

    def test_workflow_timestamps(self, db):
        """Test start and completion times"""
        job = ProductionJobFactory()
        job.transition('in_progress')
        assert job.started_at is not None
        job.transition('completed')
        assert job.completed_at is not None
        job.transition('delivered')
        job.refresh_from_db()
        assert job.status == 'delivered'

    def test_no_skipping_steps(self, db):
        """Test that a pending job cannot be completed directly"""
        job = ProductionJobFactory()
        with pytest.raises(ValidationError):
            job.transition('completed')

    def test_overdue(self, db):
        """Test overdue detection"""
        yesterday = timezone.localdate() - timedelta(days=1)
        late = ProductionJobFactory(deadline=yesterday)
        done = ProductionJobFactory(deadline=yesterday, status='completed')
        on_time = ProductionJobFactory(deadline=timezone.localdate() + timedelta(days=3))
        assert late.is_overdue is True
        assert done.is_overdue is False
        assert on_time.is_overdue is False

    def test_materials_consumed_on_completion(self, product):
        """Test that materials leave stock when the job is completed"""
        job = ProductionJobFactory()
        job.materials.create(product=product, quantity=Decimal('12'))
        job.transition('in_progress')
        assert StockMovement.objects.count() == 0

        job.transition('completed')
        product.refresh_from_db()
        assert product.stock_quantity == Decimal('88')
        movement = StockMovement.objects.get(reference=job.job_number)
        assert movement.movement_type == 'production'
        assert movement.quantity_out == Decimal('12')


# ============= API Tests =============

@pytest.mark.django_db
@pytest.mark.api
class TestProductionJobAPI:
    """Test production job endpoints"""

    def test_create_job_with_materials(self, authenticated_client, client_partner, product):
        """Test creating a job and its materials"""
        data = {
            'title': "Maillots club",
            'technique': 'embroidery',
            'priority': 'high',
            'quantity': 25,
            'client': client_partner.id,
            'materials': [{'product': product.id, 'quantity': '25'}],
        }
        response = authenticated_client.post(reverse('productionjob-list'), data, format='json')
        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['job_number'].startswith('JOB-')
        assert response.data['status'] == 'pending'
        assert response.data['allowed_transitions'] == ['in_progress']
        assert response.data['materials'][0]['product_name'] == "T-shirt blanc"
        assert ProductionJob.objects.get().created_by is not None

    def test_blank_title_refused(self, authenticated_client):
        """Test that a title is required"""
        response = authenticated_client.post(reverse('productionjob-list'), {'title': '  '}, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_invoice_of_other_client_refused(self, authenticated_client, client_partner):
        """Test that the linked invoice belongs to the job client"""
        invoice = InvoiceFactory(client=ClientFactory())
        data = {'title': "Mugs", 'client': client_partner.id, 'invoice': invoice.id}
        response = authenticated_client.post(reverse('productionjob-list'), data, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'invoice' in response.data

    def test_status_action(self, authenticated_client, db):
        """Test moving a job along the board"""
        job = ProductionJobFactory()
        url = reverse('productionjob-status', args=[job.id])
        response = authenticated_client.post(url, {'status': 'in_progress'}, format='json')
        assert response.status_code == status.HTTP_200_OK
        assert response.data['status'] == 'in_progress'
        assert response.data['started_at'] is not None

        response = authenticated_client.post(url, {'status': 'pending'}, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_materials_frozen_after_completion(self, authenticated_client, product):
        """Test that materials of a finished job cannot change"""
        job = ProductionJobFactory(status='completed')
        url = reverse('productionjob-detail', kwargs={'pk': job.id})
        response = authenticated_client.patch(
            url, {'materials': [{'product': product.id, 'quantity': '1'}]}, format='json'
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_filters(self, authenticated_client, db):
        """Test technique, priority and search filters"""
        ProductionJobFactory(technique='uv', title="Plaques gravées")
        ProductionJobFactory(technique='dtf', priority='urgent')
        url = reverse('productionjob-list')
        assert authenticated_client.get(url, {'technique': 'uv'}).data['count'] == 1
        assert authenticated_client.get(url, {'priority': 'urgent'}).data['count'] == 1
        assert authenticated_client.get(url, {'search': 'plaques'}).data['count'] == 1

    def test_board(self, authenticated_client, db):
        """Test columns, priority order and overdue list"""
        yesterday = timezone.localdate() - timedelta(days=1)
        low = ProductionJobFactory(priority='low')
        urgent = ProductionJobFactory(priority='urgent', deadline=yesterday)
        ProductionJobFactory(status='in_progress', technique='laser')
        ProductionJobFactory(status='delivered')

        response = authenticated_client.get(reverse('productionjob-board'))
        assert response.status_code == status.HTTP_200_OK
        columns = response.data['columns']
        assert columns['pending']['count'] == 2
        assert columns['pending']['label'] == 'En attente'
        assert [job['id'] for job in columns['pending']['jobs']] == [urgent.id, low.id]
        assert columns['in_progress']['count'] == 1
        assert columns['delivered']['count'] == 1
        assert response.data['overdue_count'] == 1
        assert response.data['overdue'][0]['id'] == urgent.id
        assert response.data['open_by_technique'] == {'dtf': 2, 'laser': 1}

    def test_accountant_cannot_create_job(self, api_client, make_user):
        """Test that production is closed to the accountant role"""
        api_client.force_authenticate(user=make_user('accountant'))
        response = api_client.post(reverse('productionjob-list'), {'title': 'X'}, format='json')
        assert response.status_code == status.HTTP_403_FORBIDDEN
