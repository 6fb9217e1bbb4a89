import logging

from django.conf import settings
from django.db.models import Q
from django.shortcuts import get_object_or_404
from rest_framework import viewsets, status
from rest_framework.decorators import action, api_view, permission_classes
from rest_framework.permissions import IsAuthenticated, AllowAny
from rest_framework.response import Response

from apps.core.mixins import BusinessErrorMixin, StatusActionMixin
from apps.core.permissions import HasModuleAccess
from apps.core.utils import filter_date_range, filter_by_tag
from apps.inventory.views import qr_code_response
from .models import (
    Quote, Proforma, Invoice, Payment, SalesOrder, DeliveryNote, ReturnOrder, CreditNote
)
from .serializers import (
    QuoteSerializer, ProformaSerializer, InvoiceSerializer, PaymentSerializer,
    PaymentInputSerializer, SalesOrderSerializer, DeliveryNoteSerializer,
    ReturnOrderSerializer, CreditNoteSerializer
)
from . import services

logger = logging.getLogger(__name__)


class DocumentViewSet(BusinessErrorMixin, StatusActionMixin, viewsets.ModelViewSet):
    """
    Base endpoint for numbered documents: list filters, status action and
    deletion restricted to editable documents.
    """
    permission_classes = [IsAuthenticated, HasModuleAccess]
    module = 'sales'
    partner_field = 'client'

    def get_queryset(self):
        queryset = super().get_queryset().select_related(self.partner_field, 'created_by')
        params = self.request.query_params
        if params.get('status'):
            queryset = queryset.filter(status=params['status'])
        if params.get(self.partner_field):
            queryset = queryset.filter(**{f'{self.partner_field}_id': params[self.partner_field]})
        if params.get('warehouse'):
            queryset = queryset.filter(warehouse_id=params['warehouse'])
        queryset = filter_date_range(queryset, params, 'issue_date')
        search = params.get('search')
        if search:
            queryset = queryset.filter(
                Q(number__icontains=search) |
                Q(**{f'{self.partner_field}__name__icontains': search}) |
                Q(notes__icontains=search)
            )
        return queryset

    def perform_create(self, serializer):
        serializer.save(created_by=self.request.user)

    def destroy(self, request, *args, **kwargs):
        document = self.get_object()
        if not document.is_editable:
            logger.warning("Delete of %s refused (status %s)", document, document.status)
            return Response(
                {'error': "Seuls les documents en brouillon peuvent être supprimés."},
                status=status.HTTP_400_BAD_REQUEST
            )
        return super().destroy(request, *args, **kwargs)


def _converted(source, target, serializer_class):
    return Response({
        'message': f"{target._meta.verbose_name} {target.number} créé(e) à partir de {source.number}",
        'id': target.id,
        'number': target.number,
        'document': serializer_class(target).data,
    }, status=status.HTTP_201_CREATED)


class QuoteViewSet(DocumentViewSet):
    """API endpoint for quotes"""
    queryset = Quote.objects.all().prefetch_related('items')
    serializer_class = QuoteSerializer

    @action(detail=True, methods=['post'])
    def convert_to_invoice(self, request, pk=None):
        """Convert an accepted quote into a draft invoice"""
        quote = self.get_object()
        invoice = services.convert_quote_to_invoice(quote, user=request.user, request=request)
        return _converted(quote, invoice, InvoiceSerializer)


class ProformaViewSet(DocumentViewSet):
    """API endpoint for proforma invoices"""
    queryset = Proforma.objects.all().prefetch_related('items')
    serializer_class = ProformaSerializer

    def get_queryset(self):
        queryset = super().get_queryset()
        tag = self.request.query_params.get('tag')
        if tag:
            queryset = filter_by_tag(queryset, tag)
        return queryset

    @action(detail=True, methods=['post'])
    def convert_to_invoice(self, request, pk=None):
        """Convert a proforma into a draft invoice with the same amounts"""
        proforma = self.get_object()
        invoice = services.convert_proforma_to_invoice(proforma, user=request.user, request=request)
        return _converted(proforma, invoice, InvoiceSerializer)


class InvoiceViewSet(DocumentViewSet):
    """API endpoint for invoices"""
    queryset = Invoice.objects.all().prefetch_related('items', 'payments')
    serializer_class = InvoiceSerializer

    def get_queryset(self):
        queryset = super().get_queryset()
        tag = self.request.query_params.get('tag')
        if tag:
            queryset = filter_by_tag(queryset, tag)
        return queryset

    @action(detail=True, methods=['post'])
    def record_payment(self, request, pk=None):
        """Register a payment and post it to the chosen treasury account"""
        invoice = self.get_object()
        serializer = PaymentInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        payment = services.record_payment(invoice, user=request.user, request=request,
                                          **serializer.validated_data)
        invoice.refresh_from_db()
        return Response({
            'payment': PaymentSerializer(payment).data,
            'invoice': InvoiceSerializer(invoice).data,
        }, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'])
    def credit_note(self, request, pk=None):
        """Issue a total credit note for a validated or paid invoice"""
        invoice = self.get_object()
        credit_note = services.invoice_to_credit_note(invoice, user=request.user, request=request,
                                                      reason=request.data.get('reason', ''))
        return _converted(invoice, credit_note, CreditNoteSerializer)

    @action(detail=True, methods=['get'])
    def qr_code(self, request, pk=None):
        """QR code pointing at the public verification page of the invoice"""
        invoice = self.get_object()
        url = f"{settings.PUBLIC_BASE_URL.rstrip('/')}/api/public/invoices/{invoice.public_token}/"
        return qr_code_response(url)


class PaymentViewSet(viewsets.ReadOnlyModelViewSet):
    """API endpoint for invoice payments (created through record_payment)"""
    queryset = Payment.objects.all().select_related('invoice', 'account')
    serializer_class = PaymentSerializer
    permission_classes = [IsAuthenticated, HasModuleAccess]
    module = 'sales'

    def get_queryset(self):
        queryset = super().get_queryset()
        params = self.request.query_params
        if params.get('invoice'):
            queryset = queryset.filter(invoice_id=params['invoice'])
        if params.get('client'):
            queryset = queryset.filter(invoice__client_id=params['client'])
        if params.get('method'):
            queryset = queryset.filter(method=params['method'])
        return filter_date_range(queryset, params, 'payment_date')


class SalesOrderViewSet(DocumentViewSet):
    """API endpoint for client orders"""
    queryset = SalesOrder.objects.all().prefetch_related('items')
    serializer_class = SalesOrderSerializer

    @action(detail=True, methods=['post'])
    def generate_delivery_note(self, request, pk=None):
        order = self.get_object()
        note = services.sales_order_to_delivery_note(order, user=request.user, request=request)
        return _converted(order, note, DeliveryNoteSerializer)

    @action(detail=True, methods=['post'])
    def generate_invoice(self, request, pk=None):
        order = self.get_object()
        invoice = services.sales_order_to_invoice(order, user=request.user, request=request)
        return _converted(order, invoice, InvoiceSerializer)


class DeliveryNoteViewSet(DocumentViewSet):
    """API endpoint for delivery notes"""
    queryset = DeliveryNote.objects.all().prefetch_related('items')
    serializer_class = DeliveryNoteSerializer

    @action(detail=True, methods=['post'])
    def generate_invoice(self, request, pk=None):
        note = self.get_object()
        invoice = services.delivery_note_to_invoice(note, user=request.user, request=request)
        return _converted(note, invoice, InvoiceSerializer)


class ReturnOrderViewSet(DocumentViewSet):
    """API endpoint for client returns"""
    queryset = ReturnOrder.objects.all().prefetch_related('items')
    serializer_class = ReturnOrderSerializer

    @action(detail=True, methods=['post'])
    def generate_credit_note(self, request, pk=None):
        return_order = self.get_object()
        credit_note = services.return_order_to_credit_note(return_order, user=request.user, request=request)
        return _converted(return_order, credit_note, CreditNoteSerializer)


class CreditNoteViewSet(DocumentViewSet):
    """API endpoint for credit notes"""
    queryset = CreditNote.objects.all().prefetch_related('items')
    serializer_class = CreditNoteSerializer

    def get_queryset(self):
        queryset = super().get_queryset()
        params = self.request.query_params
        if params.get('invoice'):
            queryset = queryset.filter(invoice_id=params['invoice'])
        if params.get('type'):
            queryset = queryset.filter(type=params['type'])
        return queryset


def _public_summary(document):
    return {
        'number': document.number,
        'issue_date': document.issue_date,
        'total': str(document.total),
        'status': document.status,
        'status_display': document.get_status_display(),
        'client_name': document.client.name,
    }


@api_view(['GET'])
@permission_classes([AllowAny])
def verify_invoice(request, token):
    """Public page behind the QR code printed on invoices"""
    invoice = get_object_or_404(Invoice.objects.select_related('client'), public_token=token)
    return Response(_public_summary(invoice))


@api_view(['GET'])
@permission_classes([AllowAny])
def verify_proforma(request, token):
    proforma = get_object_or_404(Proforma.objects.select_related('client'), public_token=token)
    data = _public_summary(proforma)
    data['valid_until'] = proforma.valid_until
    return Response(data)
