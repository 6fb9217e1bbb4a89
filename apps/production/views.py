from django.db.models import Q, Count
from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from apps.core.mixins import BusinessErrorMixin, StatusActionMixin
from apps.core.permissions import HasModuleAccess
from .models import ProductionJob
from .serializers import ProductionJobSerializer

PRIORITY_ORDER = {'urgent': 0, 'high': 1, 'medium': 2, 'low': 3}


class ProductionJobViewSet(BusinessErrorMixin, StatusActionMixin, viewsets.ModelViewSet):
    """API endpoint for production jobs"""
    queryset = ProductionJob.objects.all().select_related('client').prefetch_related('materials__product')
    serializer_class = ProductionJobSerializer
    permission_classes = [IsAuthenticated, HasModuleAccess]
    module = 'production'

    def get_queryset(self):
        queryset = super().get_queryset()
        params = self.request.query_params
        for field in ('status', 'technique', 'priority'):
            if params.get(field):
                queryset = queryset.filter(**{field: params[field]})
        if params.get('client'):
            queryset = queryset.filter(client_id=params['client'])
        search = params.get('search')
        if search:
            queryset = queryset.filter(
                Q(title__icontains=search) | Q(job_number__icontains=search)
            )
        return queryset

    def perform_create(self, serializer):
        serializer.save(created_by=self.request.user)

    @action(detail=False, methods=['get'])
    def board(self, request):
        """Jobs grouped by status column, most urgent first, with the overdue ones"""
        jobs = list(self.get_queryset())
        jobs.sort(key=lambda job: (PRIORITY_ORDER.get(job.priority, 9),
                                   job.deadline is None, job.deadline or job.created_at.date()))
        columns = {}
        for code, label in ProductionJob.STATUS_CHOICES:
            column_jobs = [job for job in jobs if job.status == code]
            columns[code] = {
                'label': label,
                'count': len(column_jobs),
                'jobs': ProductionJobSerializer(column_jobs, many=True).data,
            }
        overdue = [job for job in jobs if job.is_overdue]
        by_technique = (
            ProductionJob.objects.exclude(status='delivered')
            .values('technique').annotate(count=Count('id')).order_by('technique')
        )
        return Response({
            'columns': columns,
            'overdue': ProductionJobSerializer(overdue, many=True).data,
            'overdue_count': len(overdue),
            'open_by_technique': {row['technique']: row['count'] for row in by_technique},
        })
