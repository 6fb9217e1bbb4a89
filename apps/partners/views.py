from decimal import Decimal

from django.db.models import Q, Sum, Count, Value, DecimalField
from django.db.models.functions import Coalesce
from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from apps.core.mixins import BusinessErrorMixin
from apps.core.permissions import HasModuleAccess
from apps.fiscal.calculator import quantize
from .models import Client, Supplier, SupplierBankAccount
from .serializers import ClientSerializer, SupplierSerializer, SupplierBankAccountSerializer


def search_partners(queryset, params):
    search = params.get('search')
    if search:
        queryset = queryset.filter(
            Q(name__icontains=search) |
            Q(email__icontains=search) |
            Q(phone__icontains=search) |
            Q(tax_id__icontains=search)
        )
    is_active = params.get('is_active')
    if is_active is not None:
        queryset = queryset.filter(is_active=is_active.lower() == 'true')
    return queryset


class ClientViewSet(BusinessErrorMixin, viewsets.ModelViewSet):
    """API endpoint for clients"""
    queryset = Client.objects.all().order_by('name')
    serializer_class = ClientSerializer
    permission_classes = [IsAuthenticated, HasModuleAccess]
    module = 'clients'

    def get_queryset(self):
        queryset = search_partners(super().get_queryset(), self.request.query_params)
        client_type = self.request.query_params.get('type')
        if client_type:
            queryset = queryset.filter(type=client_type)
        return queryset

    def perform_create(self, serializer):
        serializer.save(created_by=self.request.user)

    @action(detail=True, methods=['get'])
    def summary(self, request, pk=None):
        """Invoiced, paid and outstanding amounts of a client"""
        from apps.sales.models import Invoice, Payment

        client = self.get_object()
        zero = Value(Decimal('0'), output_field=DecimalField(max_digits=15, decimal_places=3))
        invoices = Invoice.objects.filter(client=client).exclude(status__in=['draft', 'cancelled'])
        totals = invoices.aggregate(
            count=Count('id'),
            total=Coalesce(Sum('total'), zero),
        )
        paid = Payment.objects.filter(invoice__in=invoices).aggregate(
            total=Coalesce(Sum('amount'), zero)
        )['total']
        return Response({
            'client': client.id,
            'invoice_count': totals['count'],
            'total_invoiced': str(quantize(totals['total'])),
            'total_paid': str(quantize(paid)),
            'balance_due': str(quantize(totals['total'] - paid)),
        })


class SupplierViewSet(BusinessErrorMixin, viewsets.ModelViewSet):
    """API endpoint for suppliers"""
    queryset = Supplier.objects.all().prefetch_related('bank_accounts').order_by('name')
    serializer_class = SupplierSerializer
    permission_classes = [IsAuthenticated, HasModuleAccess]
    module = 'suppliers'

    def get_queryset(self):
        queryset = search_partners(super().get_queryset(), self.request.query_params)
        category = self.request.query_params.get('category')
        if category:
            queryset = queryset.filter(category__iexact=category)
        company_type = self.request.query_params.get('company_type')
        if company_type:
            queryset = queryset.filter(company_type=company_type)
        return queryset

    def perform_create(self, serializer):
        serializer.save(created_by=self.request.user)


class SupplierBankAccountViewSet(viewsets.ModelViewSet):
    """API endpoint for supplier bank accounts"""
    queryset = SupplierBankAccount.objects.all().select_related('supplier')
    serializer_class = SupplierBankAccountSerializer
    permission_classes = [IsAuthenticated, HasModuleAccess]
    module = 'suppliers'

    def get_queryset(self):
        queryset = super().get_queryset()
        supplier = self.request.query_params.get('supplier')
        if supplier:
            queryset = queryset.filter(supplier_id=supplier)
        return queryset
