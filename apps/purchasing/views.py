from apps.core.utils import filter_by_tag
from apps.sales.views import DocumentViewSet
from .models import PurchaseOrder
from .serializers import PurchaseOrderSerializer


class PurchaseOrderViewSet(DocumentViewSet):
    """API endpoint for supplier purchase orders"""
    queryset = PurchaseOrder.objects.all().prefetch_related('items')
    serializer_class = PurchaseOrderSerializer
    module = 'purchasing'
    partner_field = 'supplier'

    def get_queryset(self):
        queryset = super().get_queryset()
        params = self.request.query_params
        tag = params.get('tag')
        if tag:
            queryset = filter_by_tag(queryset, tag)
        if params.get('with_retenue', '').lower() == 'true':
            queryset = queryset.filter(retenue_source__gt=0)
        return queryset
