from django.urls import path, include
from rest_framework.routers import DefaultRouter
from . import views

router = DefaultRouter()
router.register(r'numbering', views.NumberingSequenceViewSet, basename='numberingsequence')
router.register(r'tax-rules', views.TaxRuleViewSet, basename='taxrule')

urlpatterns = [
    path('company/', views.company_settings, name='company-settings'),
    path('', include(router.urls)),
]
