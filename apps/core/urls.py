from django.urls import path, include
from rest_framework.routers import DefaultRouter
from . import views

router = DefaultRouter()
router.register(r'profiles', views.UserProfileViewSet, basename='userprofile')
router.register(r'users', views.UserViewSet, basename='user')
router.register(r'warehouses', views.WarehouseViewSet, basename='warehouse')
router.register(r'activity-logs', views.ActivityLogViewSet, basename='activitylog')
router.register(r'attachments', views.AttachmentViewSet, basename='attachment')

urlpatterns = [
    path('', include(router.urls)),
]
