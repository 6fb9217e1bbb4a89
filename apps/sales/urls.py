from rest_framework.routers import DefaultRouter
from .views import (
    QuoteViewSet,
    ProformaViewSet,
    InvoiceViewSet,
    PaymentViewSet,
    SalesOrderViewSet,
    DeliveryNoteViewSet,
    ReturnOrderViewSet,
    CreditNoteViewSet,
)

router = DefaultRouter()
router.register(r'quotes', QuoteViewSet, basename='quote')
router.register(r'proformas', ProformaViewSet, basename='proforma')
router.register(r'invoices', InvoiceViewSet, basename='invoice')
router.register(r'payments', PaymentViewSet, basename='payment')
router.register(r'orders', SalesOrderViewSet, basename='salesorder')
router.register(r'delivery-notes', DeliveryNoteViewSet, basename='deliverynote')
router.register(r'returns', ReturnOrderViewSet, basename='returnorder')
router.register(r'credit-notes', CreditNoteViewSet, basename='creditnote')

urlpatterns = router.urls
