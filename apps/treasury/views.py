import logging
from decimal import Decimal

from django.db import transaction
from django.db.models import Sum, Count, Q, Value, DecimalField
from django.db.models.functions import Coalesce
from rest_framework import viewsets, status
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from apps.core.activity import log_activity
from apps.core.mixins import BusinessErrorMixin
from apps.core.permissions import HasModuleAccess
from apps.core.utils import filter_date_range, filter_by_tag
from apps.fiscal.calculator import quantize
from .models import Account, TreasuryTransaction, Expense
from .serializers import AccountSerializer, TreasuryTransactionSerializer, ExpenseSerializer
from .services import post_transaction, reverse_transaction, post_expense, repost_expense

logger = logging.getLogger(__name__)

ZERO = Value(Decimal('0'), output_field=DecimalField(max_digits=15, decimal_places=3))


class AccountViewSet(BusinessErrorMixin, viewsets.ModelViewSet):
    """API endpoint for treasury accounts"""
    queryset = Account.objects.all().order_by('name')
    serializer_class = AccountSerializer
    permission_classes = [IsAuthenticated, HasModuleAccess]
    module = 'treasury'

    def get_queryset(self):
        queryset = super().get_queryset()
        params = self.request.query_params
        if params.get('type'):
            queryset = queryset.filter(account_type=params['type'])
        is_active = params.get('is_active')
        if is_active is not None:
            queryset = queryset.filter(is_active=is_active.lower() == 'true')
        return queryset

    @action(detail=False, methods=['get'])
    def balances(self, request):
        """Current balance of every active account and the grand total"""
        accounts = Account.objects.filter(is_active=True).order_by('name')
        by_type = {}
        for account in accounts:
            by_type[account.account_type] = by_type.get(account.account_type, Decimal('0')) + account.current_balance
        total = sum((account.current_balance for account in accounts), Decimal('0'))
        return Response({
            'accounts': AccountSerializer(accounts, many=True).data,
            'by_type': {key: str(quantize(value)) for key, value in by_type.items()},
            'total': str(quantize(total)),
        })

    @action(detail=False, methods=['post'])
    def initialize_defaults(self, request):
        """Create Caisse, Banque Principale, Banque Secondaire and Chèques"""
        Account.ensure_defaults()
        return Response(AccountSerializer(accounts, many=True).data)


class TreasuryTransactionViewSet(BusinessErrorMixin, viewsets.ModelViewSet):
    """
    API endpoint for treasury movements. Movements are posted and reversed,
    never edited.
    """
    queryset = TreasuryTransaction.objects.all().select_related('account', 'created_by')
    serializer_class = TreasuryTransactionSerializer
    permission_classes = [IsAuthenticated, HasModuleAccess]
    module = 'treasury'
    http_method_names = ['get', 'post', 'delete', 'head', 'options']

    def get_queryset(self):
        queryset = super().get_queryset()
        params = self.request.query_params
        if params.get('account'):
            queryset = queryset.filter(account_id=params['account'])
        if params.get('type'):
            queryset = queryset.filter(type=params['type'])
        if params.get('category'):
            queryset = queryset.filter(category=params['category'])
        if params.get('tag'):
            queryset = filter_by_tag(queryset, params['tag'])
        search = params.get('search')
        if search:
            queryset = queryset.filter(Q(description__icontains=search) | Q(reference_id__icontains=search))
        return filter_date_range(queryset, params, 'transaction_date')

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        entry = post_transaction(
            data['account'],
            data['type'],
            data['amount'],
            category=data.get('category', 'Autre'),
            payment_method=data.get('payment_method', 'cash'),
            description=data.get('description', ''),
            transaction_date=data.get('transaction_date'),
            tags=data.get('tags'),
            user=request.user,
        )
        log_activity(request.user, 'create', instance=entry, request=request,
                     new_values={'type': entry.type, 'amount': str(entry.amount)})
        return Response(self.get_serializer(entry).data, status=status.HTTP_201_CREATED)

    def destroy(self, request, *args, **kwargs):
        entry = self.get_object()
        if entry.reference_type == 'invoice':
            return Response(
                {'error': "Ce mouvement provient d'un paiement de facture et ne peut pas être supprimé."},
                status=status.HTTP_400_BAD_REQUEST
            )
        log_activity(request.user, 'delete', instance=entry, request=request,
                     old_values={'type': entry.type, 'amount': str(entry.amount)})
        reverse_transaction(entry)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=False, methods=['get'])
    def summary(self, request):
        """Income, expenses and net over the filtered movements"""
        queryset = self.get_queryset()
        totals = queryset.aggregate(
            income=Coalesce(Sum('amount', filter=Q(type='income')), ZERO),
            expense=Coalesce(Sum('amount', filter=Q(type='expense')), ZERO),
            count=Count('id'),
        )
        by_category = (
            queryset.values('category', 'type')
            .annotate(total=Sum('amount'), count=Count('id'))
            .order_by('category', 'type')
        )
        return Response({
            'income': str(quantize(totals['income'])),
            'expense': str(quantize(totals['expense'])),
            'net': str(quantize(totals['income'] - totals['expense'])),
            'count': totals['count'],
            'by_category': [
                {'category': row['category'], 'type': row['type'],
                 'total': str(quantize(row['total'])), 'count': row['count']}
                for row in by_category
            ],
        })


class ExpenseViewSet(BusinessErrorMixin, viewsets.ModelViewSet):
    """API endpoint for expenses"""
    queryset = Expense.objects.all().select_related('account', 'created_by')
    serializer_class = ExpenseSerializer
    permission_classes = [IsAuthenticated, HasModuleAccess]
    module = 'treasury'

    def get_queryset(self):
        queryset = super().get_queryset()
        params = self.request.query_params
        if params.get('category'):
            queryset = queryset.filter(category=params['category'])
        if params.get('account'):
            queryset = queryset.filter(account_id=params['account'])
        if params.get('tag'):
            queryset = filter_by_tag(queryset, params['tag'])
        search = params.get('search')
        if search:
            queryset = queryset.filter(Q(description__icontains=search) | Q(notes__icontains=search))
        return filter_date_range(queryset, params, 'expense_date')

    def perform_create(self, serializer):
        with transaction.atomic():
            expense = serializer.save(created_by=self.request.user)
            post_expense(expense, user=self.request.user)
        logger.info("Expense %s of %s recorded", expense.category, expense.amount)

    def perform_update(self, serializer):
        with transaction.atomic():
            expense = serializer.save()
            repost_expense(expense, user=self.request.user)

    def perform_destroy(self, instance):
        with transaction.atomic():
            if instance.transaction_id:
                reverse_transaction(instance.transaction)
            instance.delete()

    @action(detail=False, methods=['get'])
    def summary(self, request):
        """Expense totals by category and by tag over the filtered expenses"""
        queryset = self.get_queryset()
        total = queryset.aggregate(total=Coalesce(Sum('amount'), ZERO))['total']
        by_category = (
            queryset.values('category')
            .annotate(total=Sum('amount'), count=Count('id'))
            .order_by('-total')
        )
        by_tag = {}
        for tags, amount in queryset.values_list('tags', 'amount'):
            for tag in tags or []:
                by_tag[tag] = by_tag.get(tag, Decimal('0')) + amount
        return Response({
            'total': str(quantize(total)),
            'count': queryset.count(),
            'by_category': [
                {'category': row['category'], 'total': str(quantize(row['total'])), 'count': row['count']}
                for row in by_category
            ],
            'by_tag': {tag: str(quantize(amount)) for tag, amount in sorted(by_tag.items())},
        })
