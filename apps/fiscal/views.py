import logging
from decimal import Decimal

from django.db.models import Sum, Value, DecimalField
from django.db.models.functions import Coalesce
from django.http import HttpResponse
from django.utils import timezone
from rest_framework import viewsets, status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from apps.app_settings.models import CompanySettings
from apps.core.activity import log_activity
from apps.core.permissions import HasModuleAccess, user_can_write
from apps.core.utils import month_and_year
from .calculator import quantize
from .models import TEJExport
from .serializers import TEJExportSerializer
from .tej import tej_rows, total_retenue, RENDERERS

logger = logging.getLogger(__name__)

ZERO = Value(Decimal('0'), output_field=DecimalField(max_digits=15, decimal_places=3))
INVALID_PERIOD = {'error': "Mois ou année invalide."}


def _serialize_rows(rows):
    return [
        dict(row, total=str(row['total']), retenue_source=str(row['retenue_source']))
        for row in rows
    ]


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasModuleAccess])
def tej_preview(request):
    """
    Purchases of the month that will appear in the TEJ declaration
    Endpoint: /api/fiscal/tej/preview/?month=&year=
    """
    month, year = month_and_year(request.query_params, timezone.localdate())
    if month is None:
        return Response(INVALID_PERIOD, status=status.HTTP_400_BAD_REQUEST)

    rows = tej_rows(month, year)
    company_errors = CompanySettings.load().tej_validation_errors()
    return Response({
        'month': month,
        'year': year,
        'rows': _serialize_rows(rows),
        'line_count': len(rows),
        'total_retenue': str(total_retenue(rows)),
        'company_valid': not company_errors,
        'company_errors': company_errors,
    })


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def tej_export(request):
    """
    Download the TEJ declaration of a month and record it in the history
    Endpoint: /api/fiscal/tej/export/?month=&year=&format=csv|xml
    """
    if not user_can_write(request.user, 'fiscal'):
        return Response({'error': HasModuleAccess.message}, status=status.HTTP_403_FORBIDDEN)

    params = request.query_params if request.method == 'GET' else request.data
    month, year = month_and_year(params, timezone.localdate())
    if month is None:
        return Response(INVALID_PERIOD, status=status.HTTP_400_BAD_REQUEST)
    export_format = params.get('format', 'csv')
    if export_format not in RENDERERS:
        return Response({'error': "Format d'export invalide (csv ou xml)."}, status=status.HTTP_400_BAD_REQUEST)

    company_errors = CompanySettings.load().tej_validation_errors()
    if company_errors:
        logger.warning("TEJ export %02d/%s refused, company settings incomplete", month, year)
        return Response({
            'error': "Les paramètres de la société sont incomplets pour l'export TEJ.",
            'errors': company_errors,
        }, status=status.HTTP_400_BAD_REQUEST)

    rows = tej_rows(month, year)
    render, content_type = RENDERERS[export_format]
    export = TEJExport.objects.create(
        month=month,
        year=year,
        format=export_format,
        line_count=len(rows),
        total_retenue=total_retenue(rows),
        exported_by=request.user,
    )
    log_activity(request.user, 'export', instance=export, request=request,
                 new_values={'line_count': export.line_count, 'total_retenue': str(export.total_retenue)})
    logger.info("TEJ %02d/%s exported as %s (%d lines)", month, year, export_format, len(rows))

    response = HttpResponse(render(rows), content_type=content_type)
    response['Content-Disposition'] = f'attachment; filename="{export.filename}"'
    return response


class TEJExportViewSet(viewsets.ReadOnlyModelViewSet):
    """History of TEJ exports"""
    queryset = TEJExport.objects.all().select_related('exported_by')
    serializer_class = TEJExportSerializer
    permission_classes = [IsAuthenticated, HasModuleAccess]
    module = 'fiscal'

    def get_queryset(self):
        queryset = super().get_queryset()
        year = self.request.query_params.get('year')
        if year:
            queryset = queryset.filter(year=year)
        return queryset


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasModuleAccess])
def tva_summary(request):
    """
    TVA collected on sales against TVA paid on purchases for a month
    Endpoint: /api/fiscal/tva-summary/?month=&year=
    """
    from apps.sales.models import Invoice, CreditNote
    from apps.purchasing.models import PurchaseOrder

    month, year = month_and_year(request.query_params, timezone.localdate())
    if month is None:
        return Response(INVALID_PERIOD, status=status.HTTP_400_BAD_REQUEST)

    period = {'issue_date__year': year, 'issue_date__month': month}
    invoices = Invoice.objects.filter(**period).exclude(status__in=['draft', 'cancelled'])
    credit_notes = CreditNote.objects.filter(**period).exclude(status='draft')
    purchases = PurchaseOrder.objects.filter(**period).exclude(status__in=['draft', 'cancelled'])

    def totals(queryset, *fields):
        return queryset.aggregate(**{field: Coalesce(Sum(field), ZERO) for field in fields})

    sales = totals(invoices, 'subtotal', 'discount_amount', 'tva_amount', 'fodec_amount', 'timbre_amount', 'total')
    credits = totals(credit_notes, 'tva_amount', 'total')
    buys = totals(purchases, 'tva_amount', 'total', 'retenue_source')

    tva_collected = sales['tva_amount'] - credits['tva_amount']
    tva_deductible = buys['tva_amount']
    return Response({
        'month': month,
        'year': year,
        'sales': {
            'invoice_count': invoices.count(),
            'total_ht': str(quantize(sales['subtotal'] - sales['discount_amount'])),
            'tva_collected': str(quantize(tva_collected)),
            'fodec': str(quantize(sales['fodec_amount'])),
            'timbre': str(quantize(sales['timbre_amount'])),
            'total_ttc': str(quantize(sales['total'])),
            'credit_notes_tva': str(quantize(credits['tva_amount'])),
        },
        'purchases': {
            'order_count': purchases.count(),
            'tva_deductible': str(quantize(tva_deductible)),
            'total_ttc': str(quantize(buys['total'])),
            'retenue_source': str(quantize(buys['retenue_source'])),
        },
        'tva_due': str(quantize(tva_collected - tva_deductible)),
    })
