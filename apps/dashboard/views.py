"""
Dashboard Views
Aggregated read-only views for dashboard display
Consolidates data from multiple domain apps
"""

from decimal import Decimal
from datetime import timedelta
from django.db.models import Sum, Q, Value, DecimalField
from django.db.models.functions import Coalesce, ExtractMonth
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from apps.fiscal.calculator import quantize
from apps.inventory.models import Product
from apps.partners.models import Client
from apps.production.models import ProductionJob
from apps.sales.models import Invoice, Payment
from apps.treasury.models import TreasuryTransaction, Expense

ZERO = Value(Decimal('0'), output_field=DecimalField(max_digits=15, decimal_places=3))

MONTH_LABELS = ['Jan', 'Fév', 'Mar', 'Avr', 'Mai', 'Juin', 'Juil', 'Août', 'Sep', 'Oct', 'Nov', 'Déc']


def _month_bounds(day):
    start = day.replace(day=1)
    next_month = (start + timedelta(days=32)).replace(day=1)
    return start, next_month - timedelta(days=1)


def _growth(current, previous):
    if previous == 0:
        return None if current == 0 else 100.0
    return round(float((current - previous) / previous * 100), 1)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def dashboard_stats(request):
    """
    Get overall dashboard statistics
    Endpoint: /api/dashboard/stats/

    Revenue counts validated and paid invoices; drafts and cancelled
    invoices are left out.
    """
    today = timezone.localdate()
    month_start, month_end = _month_bounds(today)
    previous_start, previous_end = _month_bounds(month_start - timedelta(days=1))

    invoices = Invoice.objects.exclude(status__in=['draft', 'cancelled'])
    revenue = invoices.aggregate(total=Coalesce(Sum('total'), ZERO))['total']
    paid = Payment.objects.filter(invoice__in=invoices).aggregate(
        total=Coalesce(Sum('amount'), ZERO)
    )['total']
    month_revenue = invoices.filter(issue_date__range=[month_start, month_end]).aggregate(
        total=Coalesce(Sum('total'), ZERO)
    )['total']
    previous_revenue = invoices.filter(issue_date__range=[previous_start, previous_end]).aggregate(
        total=Coalesce(Sum('total'), ZERO)
    )['total']
    month_expenses = Expense.objects.filter(expense_date__range=[month_start, month_end]).aggregate(
        total=Coalesce(Sum('amount'), ZERO)
    )['total']

    jobs = ProductionJob.objects.all()
    return Response({
        'total_revenue': str(quantize(revenue)),
        'paid_revenue': str(quantize(paid)),
        'outstanding': str(quantize(revenue - paid)),
        'month_revenue': str(quantize(month_revenue)),
        'previous_month_revenue': str(quantize(previous_revenue)),
        'revenue_growth': _growth(month_revenue, previous_revenue),
        'month_expenses': str(quantize(month_expenses)),
        'total_clients': Client.objects.filter(is_active=True).count(),
        'total_products': Product.objects.filter(is_active=True).count(),
        'pending_jobs': jobs.filter(status='pending').count(),
        'in_progress_jobs': jobs.filter(status='in_progress').count(),
        'overdue_jobs': jobs.filter(status__in=['pending', 'in_progress'], deadline__lt=today).count(),
        'unpaid_invoices': invoices.filter(status='validated').count(),
        'month': month_start.isoformat(),
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def cash_flow(request):
    """
    Monthly income and expenses from treasury movements
    Endpoint: /api/dashboard/cash-flow/?year=
    """
    try:
        year = int(request.query_params.get('year', timezone.localdate().year))
    except (TypeError, ValueError):
        return Response({'error': "Année invalide."}, status=status.HTTP_400_BAD_REQUEST)

    rows = (
        TreasuryTransaction.objects
        .filter(transaction_date__year=year)
        .annotate(month=ExtractMonth('transaction_date'))
        .values('month')
        .annotate(
            income=Coalesce(Sum('amount', filter=Q(type='income')), ZERO),
            expense=Coalesce(Sum('amount', filter=Q(type='expense')), ZERO),
        )
        .order_by('month')
    )
    by_month = {row['month']: row for row in rows}

    months = []
    total_income = total_expense = Decimal('0')
    for number in range(1, 13):
        row = by_month.get(number, {'income': Decimal('0'), 'expense': Decimal('0')})
        total_income += row['income']
        total_expense += row['expense']
        months.append({
            'month': number,
            'label': MONTH_LABELS[number - 1],
            'income': str(quantize(row['income'])),
            'expense': str(quantize(row['expense'])),
            'net': str(quantize(row['income'] - row['expense'])),
        })

    return Response({
        'year': year,
        'months': months,
        'total_income': str(quantize(total_income)),
        'total_expense': str(quantize(total_expense)),
        'net': str(quantize(total_income - total_expense)),
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def recent_activity(request):
    """
    Latest invoices and production jobs
    Endpoint: /api/dashboard/recent-activity/?limit=
    """
    try:
        limit = min(max(int(request.query_params.get('limit', 5)), 1), 50)
    except (TypeError, ValueError):
        limit = 5

    invoices = Invoice.objects.select_related('client').order_by('-created_at')[:limit]
    jobs = ProductionJob.objects.select_related('client').order_by('-created_at')[:limit]
    return Response({
        'invoices': [
            {
                'id': invoice.id,
                'number': invoice.number,
                'client_name': invoice.client.name,
                'issue_date': invoice.issue_date,
                'total': str(invoice.total),
                'status': invoice.status,
            }
            for invoice in invoices
        ],
        'production_jobs': [
            {
                'id': job.id,
                'job_number': job.job_number,
                'title': job.title,
                'technique': job.technique,
                'priority': job.priority,
                'status': job.status,
                'deadline': job.deadline,
                'overdue': job.is_overdue,
            }
            for job in jobs
        ],
    })
