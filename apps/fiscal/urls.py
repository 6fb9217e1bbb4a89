from django.urls import path
from rest_framework.routers import DefaultRouter
from .views import TEJExportViewSet, tej_preview, tej_export, tva_summary

router = DefaultRouter()
router.register(r'tej/history', TEJExportViewSet, basename='tejexport')

urlpatterns = [
    path('tej/preview/', tej_preview, name='tej-preview'),
    path('tej/export/', tej_export, name='tej-export'),
    path('tva-summary/', tva_summary, name='tva-summary'),
] + router.urls
