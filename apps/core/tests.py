"""
Tests for Core app - UserProfile roles, Warehouse, Authentication, Activity log
"""
import pytest
from django.contrib.auth.models import User
from django.core.files.uploadedfile import SimpleUploadedFile
from django.urls import reverse
from rest_framework import status

from apps.core.activity import log_activity
from apps.core.models import UserProfile, Warehouse, ActivityLog, Attachment
from apps.core.permissions import user_can_write
from conftest import UserFactory, WarehouseFactory


# ============= Model Tests =============

@pytest.mark.django_db
class TestWarehouseModel:
    """Test Warehouse model"""

    def test_warehouse_creation(self, warehouse):
        """Test creating a warehouse"""
        assert warehouse.id is not None
        assert warehouse.code == 'DEP01'
        assert warehouse.is_active is True
        assert str(warehouse) == "DEP01 - Dépôt central"

    def test_warehouse_types(self, db):
        """Test the workshop site type"""
        workshop = WarehouseFactory(type='production', name="Atelier")
        assert workshop.get_type_display() == "Atelier de production"


@pytest.mark.django_db
class TestUserProfileModel:
    """Test UserProfile model and roles"""

    def test_profile_created_by_signal(self, regular_user):
        """Test that every new user gets a sales profile"""
        profile = UserProfile.objects.get(user=regular_user)
        assert profile.role == 'sales'
        assert profile.is_active is True
        assert str(profile) == "testuser - sales"

    def test_superuser_gets_admin_role(self, admin_user):
        """Test that superusers start as administrators"""
        assert admin_user.profile.role == 'admin'

    def test_profile_not_duplicated_on_save(self, regular_user):
        """Test that saving a user twice keeps one profile"""
        regular_user.first_name = "Sami"
        regular_user.save()
        assert UserProfile.objects.filter(user=regular_user).count() == 1

    def test_sales_modules(self, regular_user):
        """Test modules writable by the sales role"""
        profile = regular_user.profile
        assert profile.can_write('sales') is True
        assert profile.can_write('production') is True
        assert profile.can_write('treasury') is False
        assert profile.can_write('fiscal') is False

    def test_admin_writes_everything(self, make_user):
        """Test that the admin role covers any module"""
        user = make_user('admin')
        assert user.profile.can_write('treasury') is True
        assert user.profile.can_write('anything') is True

    def test_inactive_profile_cannot_write(self, regular_user):
        """Test that deactivating a profile removes write access"""
        profile = regular_user.profile
        profile.is_active = False
        profile.save()
        assert profile.can_write('sales') is False

    def test_user_can_write_helper(self, make_user, admin_user):
        """Test the helper used by function views"""
        accountant = make_user('accountant')
        assert user_can_write(accountant, 'fiscal') is True
        assert user_can_write(accountant, 'sales') is False
        assert user_can_write(admin_user, 'fiscal') is True


@pytest.mark.django_db
class TestActivityLog:
    """Test activity logging helper"""

    def test_log_with_instance(self, admin_user, warehouse):
        """Test that the entity is taken from the instance"""
        entry = log_activity(admin_user, 'create', instance=warehouse, new_values={'code': 'DEP01'})
        assert entry.entity_type == 'warehouse'
        assert entry.entity_id == str(warehouse.id)
        assert entry.user == admin_user
        assert entry.success is True

    def test_log_without_user(self, db):
        """Test system operations logged without a user"""
        entry = log_activity(None, 'export', entity_type='tejexport', entity_id=3)
        assert entry.user is None
        assert entry.entity_id == '3'
        assert str(entry) == "export tejexport#3"


# ============= API Tests =============

@pytest.mark.django_db
@pytest.mark.api
class TestWarehouseAPI:
    """Test Warehouse API endpoints"""

    def test_list_warehouses_unauthenticated(self, api_client):
        """Test that unauthenticated users cannot list warehouses"""
        url = reverse('warehouse-list')
        response = api_client.get(url)
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_list_warehouses_authenticated(self, authenticated_client, warehouse):
        """Test that any active profile can read warehouses"""
        url = reverse('warehouse-list')
        response = authenticated_client.get(url)
        assert response.status_code == status.HTTP_200_OK
        assert response.data['count'] == 1

    def test_create_warehouse(self, admin_client):
        """Test creating a warehouse as admin"""
        url = reverse('warehouse-list')
        data = {'code': 'MAG01', 'name': 'Magasin Sfax', 'type': 'store', 'city': 'Sfax'}
        response = admin_client.post(url, data, format='json')
        assert response.status_code == status.HTTP_201_CREATED
        assert Warehouse.objects.filter(code='MAG01').exists()

    def test_sales_role_cannot_create_warehouse(self, authenticated_client):
        """Test that the sales role has no write access to warehouses"""
        url = reverse('warehouse-list')
        response = authenticated_client.post(url, {'code': 'X', 'name': 'X'}, format='json')
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_stock_role_can_create_warehouse(self, api_client, make_user):
        """Test that the stock role manages warehouses"""
        api_client.force_authenticate(user=make_user('stock'))
        url = reverse('warehouse-list')
        response = api_client.post(url, {'code': 'DEP09', 'name': 'Dépôt 9'}, format='json')
        assert response.status_code == status.HTTP_201_CREATED

    def test_filter_by_type(self, authenticated_client, db):
        """Test filtering warehouses by type"""
        WarehouseFactory(type='store')
        WarehouseFactory(type='warehouse')
        response = authenticated_client.get(reverse('warehouse-list'), {'type': 'store'})
        assert response.data['count'] == 1


@pytest.mark.django_db
@pytest.mark.api
class TestUserAPI:
    """Test users and profiles endpoints"""

    def test_me(self, authenticated_client, regular_user):
        """Test current user details with profile data"""
        response = authenticated_client.get(reverse('user-me'))
        assert response.status_code == status.HTTP_200_OK
        assert response.data['username'] == 'testuser'
        assert response.data['profile_data']['role'] == 'sales'
        assert 'sales' in response.data['profile_data']['modules']

    def test_permissions(self, authenticated_client):
        """Test the role summary of the current user"""
        response = authenticated_client.get(reverse('user-permissions'))
        assert response.status_code == status.HTTP_200_OK
        assert response.data['role'] == 'sales'
        assert response.data['is_admin'] is False

    def test_list_users_requires_admin(self, authenticated_client):
        """Test that non-admin users cannot manage users"""
        response = authenticated_client.get(reverse('user-list'))
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_create_user_with_role(self, admin_client, warehouse):
        """Test creating a user and setting the profile role"""
        data = {
            'username': 'comptable',
            'email': 'compta@example.com',
            'password': 'motdepasse123',
            'role': 'accountant',
            'warehouse': warehouse.id,
        }
        response = admin_client.post(reverse('user-list'), data, format='json')
        assert response.status_code == status.HTTP_201_CREATED
        user = User.objects.get(username='comptable')
        assert user.check_password('motdepasse123')
        assert user.profile.role == 'accountant'
        assert user.profile.warehouse == warehouse

    def test_change_password(self, authenticated_client, regular_user):
        """Test changing the password of the current user"""
        data = {'old_password': 'testpass123', 'new_password': 'nouveau12345', 'confirm_password': 'nouveau12345'}
        response = authenticated_client.post(reverse('user-change-password'), data, format='json')
        assert response.status_code == status.HTTP_200_OK
        regular_user.refresh_from_db()
        assert regular_user.check_password('nouveau12345')

    def test_change_password_wrong_old(self, authenticated_client):
        """Test that the current password must be correct"""
        data = {'old_password': 'mauvais', 'new_password': 'nouveau12345', 'confirm_password': 'nouveau12345'}
        response = authenticated_client.post(reverse('user-change-password'), data, format='json')
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_update_profile_role(self, admin_client, regular_user):
        """Test an admin changing a user's role"""
        url = reverse('userprofile-detail', kwargs={'pk': regular_user.profile.id})
        response = admin_client.patch(url, {'role': 'finance'}, format='json')
        assert response.status_code == status.HTTP_200_OK
        regular_user.profile.refresh_from_db()
        assert regular_user.profile.role == 'finance'

    def test_activity_log_admin_only(self, authenticated_client):
        """Test that the activity log is reserved to admins"""
        response = authenticated_client.get(reverse('activitylog-list'))
        assert response.status_code == status.HTTP_403_FORBIDDEN


@pytest.mark.django_db
@pytest.mark.api
class TestAuthenticationAPI:
    """Test JWT Authentication"""

    def test_obtain_token(self, api_client, regular_user):
        """Test obtaining JWT token"""
        url = reverse('token_obtain_pair')
        data = {
            'username': 'testuser',
            'password': 'testpass123'
        }
        response = api_client.post(url, data, format='json')
        assert response.status_code == status.HTTP_200_OK
        assert 'access' in response.data
        assert 'refresh' in response.data

    def test_obtain_token_invalid_credentials(self, api_client, regular_user):
        """Test token with invalid credentials"""
        url = reverse('token_obtain_pair')
        data = {
            'username': 'testuser',
            'password': 'wrongpassword'
        }
        response = api_client.post(url, data, format='json')
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_refresh_token(self, api_client, regular_user):
        """Test refreshing JWT token"""
        obtain_response = api_client.post(
            reverse('token_obtain_pair'),
            {'username': 'testuser', 'password': 'testpass123'},
            format='json'
        )
        response = api_client.post(
            reverse('token_refresh'),
            {'refresh': obtain_response.data['refresh']},
            format='json'
        )
        assert response.status_code == status.HTTP_200_OK
        assert 'access' in response.data

    def test_bearer_token_access(self, api_client, regular_user, warehouse):
        """Test calling the API with the access token"""
        obtain_response = api_client.post(
            reverse('token_obtain_pair'),
            {'username': 'testuser', 'password': 'testpass123'},
            format='json'
        )
        api_client.credentials(HTTP_AUTHORIZATION=f"Bearer {obtain_response.data['access']}")
        response = api_client.get(reverse('warehouse-list'))
        assert response.status_code == status.HTTP_200_OK


# ============= Integration Tests =============

@pytest.mark.django_db
@pytest.mark.integration
class TestAttachments:
    """Test files attached to documents"""

    def test_upload_attachment(self, authenticated_client, invoice, settings, tmp_path):
        """Test uploading a file against an invoice"""
        settings.MEDIA_ROOT = str(tmp_path)
        upload = SimpleUploadedFile('bon.pdf', b'%PDF-1.4 test', content_type='application/pdf')
        data = {'entity_type': 'invoice', 'entity_id': invoice.id, 'file': upload, 'document_type': 'bon'}
        response = authenticated_client.post(reverse('attachment-list'), data, format='multipart')
        assert response.status_code == status.HTTP_201_CREATED

        attachment = Attachment.objects.get()
        assert attachment.file_name.startswith('bon')
        assert attachment.file_size == len(b'%PDF-1.4 test')
        assert attachment.file_type == 'application/pdf'

    def test_filter_by_entity(self, authenticated_client, admin_user, settings, tmp_path):
        """Test listing attachments of one entity"""
        settings.MEDIA_ROOT = str(tmp_path)
        for entity_id in (1, 1, 2):
            Attachment.objects.create(
                entity_type='client', entity_id=entity_id,
                file=SimpleUploadedFile('contrat.txt', b'contrat'), uploaded_by=admin_user
            )
        response = authenticated_client.get(reverse('attachment-list'), {'entity_type': 'client', 'entity_id': 1})
        assert response.data['count'] == 2

    def test_status_change_is_logged(self, authenticated_client, invoice):
        """Test that document status changes reach the activity log"""
        url = reverse('invoice-status', args=[invoice.id])
        response = authenticated_client.post(url, {'status': 'validated'}, format='json')
        assert response.status_code == status.HTTP_200_OK
        entry = ActivityLog.objects.get(action='status_change')
        assert entry.entity_type == 'invoice'
        assert entry.old_values == {'status': 'draft'}
        assert entry.new_values == {'status': 'validated'}
