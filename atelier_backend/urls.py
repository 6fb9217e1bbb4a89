"""
URL configuration for atelier_backend project.
"""
from django.conf import settings
from django.conf.urls.static import static
from django.contrib import admin
from django.urls import path, include
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from apps.sales.views import verify_invoice, verify_proforma

urlpatterns = [
    path('admin/', admin.site.urls),

    # Authentication
    path('api/token/', TokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('api/token/refresh/', TokenRefreshView.as_view(), name='token_refresh'),

    # Public document verification (QR codes printed on documents)
    path('api/public/invoices/<uuid:token>/', verify_invoice, name='public-invoice-verify'),
    path('api/public/proformas/<uuid:token>/', verify_proforma, name='public-proforma-verify'),

    path('api/', include('apps.core.urls')),
    path('api/settings/', include('apps.app_settings.urls')),
    path('api/', include('apps.partners.urls')),
    path('api/inventory/', include('apps.inventory.urls')),
    path('api/sales/', include('apps.sales.urls')),
    path('api/purchasing/', include('apps.purchasing.urls')),
    path('api/production/', include('apps.production.urls')),
    path('api/treasury/', include('apps.treasury.urls')),
    path('api/fiscal/', include('apps.fiscal.urls')),
    path('api/dashboard/', include('apps.dashboard.urls')),
]

if settings.DEBUG:
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
