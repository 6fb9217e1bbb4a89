from rest_framework.routers import DefaultRouter
from .views import AccountViewSet, TreasuryTransactionViewSet, ExpenseViewSet

router = DefaultRouter()
router.register(r'accounts', AccountViewSet, basename='account')
router.register(r'transactions', TreasuryTransactionViewSet, basename='treasurytransaction')
router.register(r'expenses', ExpenseViewSet, basename='expense')

urlpatterns = router.urls
