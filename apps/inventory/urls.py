from django.urls import path, include
from rest_framework.routers import DefaultRouter
from . import views

router = DefaultRouter()
router.register(r'products', views.ProductViewSet, basename='product')
router.register(r'variants', views.ProductVariantViewSet, basename='productvariant')
router.register(r'stock-movements', views.StockMovementViewSet, basename='stockmovement')

urlpatterns = [
    path('', include(router.urls)),
]
