"""
Pytest configuration and shared fixtures for all tests
"""
import pytest
from django.contrib.auth.models import User
from rest_framework.test import APIClient
from decimal import Decimal
from datetime import date
import factory
from factory.django import DjangoModelFactory
from faker import Faker

from apps.app_settings.models import CompanySettings
from apps.core.models import Warehouse
from apps.partners.models import Client, Supplier
from apps.inventory.models import Product
from apps.production.models import ProductionJob
from apps.purchasing.models import PurchaseOrder
from apps.sales.models import Quote, Proforma, Invoice, SalesOrder, DeliveryNote, ReturnOrder
from apps.treasury.models import Account, Expense

fake = Faker('fr_FR')


# ============= Factories =============

class UserFactory(DjangoModelFactory):
    class Meta:
        model = User

    username = factory.Sequence(lambda n: f"user{n}")
    email = factory.LazyAttribute(lambda obj: f"{obj.username}@example.com")
    first_name = factory.Faker('first_name')
    last_name = factory.Faker('last_name')
    is_active = True
    is_staff = False
    is_superuser = False

    @factory.post_generation
    def password(self, create, extracted, **kwargs):
        if not create:
            return
        if extracted:
            self.set_password(extracted)
        else:
            self.set_password('testpass123')


class WarehouseFactory(DjangoModelFactory):
    class Meta:
        model = Warehouse

    code = factory.Sequence(lambda n: f"DEP{n:02d}")
    name = factory.Sequence(lambda n: f"Dépôt {n}")
    type = 'warehouse'
    city = 'Tunis'
    is_active = True


class ClientFactory(DjangoModelFactory):
    class Meta:
        model = Client

    name = factory.Faker('company', locale='fr_FR')
    type = 'b2c'
    phone = factory.Sequence(lambda n: f"2{n:07d}")
    email = factory.Faker('email')
    address = factory.Faker('street_address', locale='fr_FR')
    city = 'Sfax'
    is_active = True


class SupplierFactory(DjangoModelFactory):
    class Meta:
        model = Supplier

    name = factory.Faker('company', locale='fr_FR')
    contact_name = factory.Faker('name')
    phone = factory.Sequence(lambda n: f"7{n:07d}")
    email = factory.Faker('email')
    address = factory.Faker('street_address', locale='fr_FR')
    city = 'Sousse'
    tax_id = factory.Sequence(lambda n: f"{1000000 + n}B")
    category = 'Textile'
    company_type = 'entreprise'
    is_active = True


class ProductFactory(DjangoModelFactory):
    class Meta:
        model = Product

    name = factory.Sequence(lambda n: f"T-shirt imprimé {n}")
    category = 'dtf'
    product_type = 'product'
    destination = 'both'
    base_price = Decimal('25.000')
    cost_price = Decimal('12.000')
    purchase_price = Decimal('10.000')
    tva_rate = Decimal('19')
    stock_quantity = Decimal('0')
    is_active = True


class AccountFactory(DjangoModelFactory):
    class Meta:
        model = Account

    name = factory.Sequence(lambda n: f"Compte {n}")
    account_type = 'cash'
    initial_balance = Decimal('0')
    is_active = True


class DocumentFactory(DjangoModelFactory):
    """
    Numbered document with lines. ``lines`` takes a list of line values;
    by default one line of 2 x 100.000 at 19 % TVA is created.
    """
    class Meta:
        abstract = True
        skip_postgeneration_save = True

    issue_date = factory.LazyFunction(date.today)

    @factory.post_generation
    def lines(self, create, extracted, **kwargs):
        if not create:
            return
        if extracted is None:
            extracted = [{'description': 'Impression DTF', 'quantity': Decimal('2'),
                          'unit_price': Decimal('100.000'), 'tva_rate': Decimal('19')}]
        for position, line in enumerate(extracted):
            self.items.create(position=position, **line)
        self.recalculate()


class QuoteFactory(DocumentFactory):
    class Meta:
        model = Quote

    client = factory.SubFactory(ClientFactory)


class ProformaFactory(DocumentFactory):
    class Meta:
        model = Proforma

    client = factory.SubFactory(ClientFactory)


class InvoiceFactory(DocumentFactory):
    class Meta:
        model = Invoice

    client = factory.SubFactory(ClientFactory)


class SalesOrderFactory(DocumentFactory):
    class Meta:
        model = SalesOrder

    client = factory.SubFactory(ClientFactory)


class DeliveryNoteFactory(DocumentFactory):
    class Meta:
        model = DeliveryNote

    client = factory.SubFactory(ClientFactory)


class ReturnOrderFactory(DocumentFactory):
    class Meta:
        model = ReturnOrder

    client = factory.SubFactory(ClientFactory)


class PurchaseOrderFactory(DocumentFactory):
    class Meta:
        model = PurchaseOrder

    supplier = factory.SubFactory(SupplierFactory)


class ProductionJobFactory(DjangoModelFactory):
    class Meta:
        model = ProductionJob

    title = factory.Sequence(lambda n: f"Série de maillots {n}")
    technique = 'dtf'
    priority = 'medium'
    quantity = 10
    client = factory.SubFactory(ClientFactory)


class ExpenseFactory(DjangoModelFactory):
    class Meta:
        model = Expense

    category = 'Fournitures'
    description = factory.Faker('sentence', nb_words=4)
    amount = Decimal('50.000')
    expense_date = factory.LazyFunction(date.today)


# ============= Fixtures =============

@pytest.fixture
def api_client():
    """DRF API client for testing endpoints"""
    return APIClient()


@pytest.fixture
def admin_user(db):
    """Create an admin user"""
    user = UserFactory(
        username='admin',
        email='admin@example.com',
        is_staff=True,
        is_superuser=True
    )
    user.set_password('admin123')
    user.save()
    return user


@pytest.fixture
def regular_user(db):
    """Create a regular user (sales role, given by the profile signal)"""
    user = UserFactory(username='testuser', email='test@example.com')
    user.set_password('testpass123')
    user.save()
    return user


@pytest.fixture
def make_user(db):
    """Factory fixture: a user with the given profile role"""
    def _make(role, username=None):
        user = UserFactory(username=username or f"{role}_user")
        user.profile.role = role
        user.profile.save()
        return user
    return _make


@pytest.fixture
def warehouse(db):
    """Create a test warehouse"""
    return WarehouseFactory(code='DEP01', name="Dépôt central")


@pytest.fixture
def client_partner(db):
    """Create a test client"""
    return ClientFactory(
        name="Client Test",
        phone="22123456",
        email="client@example.com",
        address="Rue de la Liberté",
        city="Tunis"
    )


@pytest.fixture
def supplier_partner(db):
    """Create a test supplier"""
    return SupplierFactory(
        name="Fournisseur Test",
        phone="71654321",
        email="supplier@example.com",
        tax_id="7654321B"
    )


@pytest.fixture
def product(db):
    """Create a stocked test product"""
    return ProductFactory(
        name="T-shirt blanc",
        base_price=Decimal('25.000'),
        purchase_price=Decimal('10.000'),
        stock_quantity=Decimal('100')
    )


@pytest.fixture
def service_product(db):
    """Create a service (no stock)"""
    return ProductFactory(name="Conception graphique", product_type='service', base_price=Decimal('80.000'))


@pytest.fixture
def account(db):
    """Create a test cash account"""
    return AccountFactory(name="Caisse", account_type='cash', initial_balance=Decimal('500.000'))


@pytest.fixture
def company_settings(db):
    """Company settings complete enough for the TEJ export"""
    company = CompanySettings.load()
    company.company_name = "Atelier Test"
    company.tax_id = "1234567A"
    company.email = "contact@atelier.tn"
    company.phone = "71000000"
    company.default_fodec_rate = Decimal('0')
    company.default_timbre = Decimal('1.000')
    company.save()
    return company


@pytest.fixture
def invoice(db, client_partner):
    """Draft invoice: 2 x 100.000 HT, 19 % TVA"""
    return InvoiceFactory(client=client_partner)


@pytest.fixture
def validated_invoice(db, client_partner):
    """Validated invoice of 238.000 TTC"""
    return InvoiceFactory(client=client_partner, status='validated')


@pytest.fixture
def authenticated_client(api_client, regular_user):
    """API client authenticated as regular user"""
    api_client.force_authenticate(user=regular_user)
    return api_client


@pytest.fixture
def admin_client(api_client, admin_user):
    """API client authenticated as admin"""
    api_client.force_authenticate(user=admin_user)
    return api_client
