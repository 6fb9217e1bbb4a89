from django.urls import path, include
from rest_framework.routers import DefaultRouter
from . import views

router = DefaultRouter()
router.register(r'clients', views.ClientViewSet, basename='client')
router.register(r'suppliers', views.SupplierViewSet, basename='supplier')
router.register(r'supplier-bank-accounts', views.SupplierBankAccountViewSet, basename='supplierbankaccount')

urlpatterns = [
    path('', include(router.urls)),
]
