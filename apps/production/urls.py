from rest_framework.routers import DefaultRouter
from .views import ProductionJobViewSet

router = DefaultRouter()
router.register(r'jobs', ProductionJobViewSet, basename='productionjob')

urlpatterns = router.urls
