import logging

from rest_framework import viewsets, status
from rest_framework.decorators import action, api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from apps.core.permissions import HasModuleAccess, IsAdminRole
from .models import CompanySettings, NumberingSequence, TaxRule
from .serializers import CompanySettingsSerializer, NumberingSequenceSerializer, TaxRuleSerializer

logger = logging.getLogger(__name__)


@api_view(['GET', 'PUT', 'PATCH'])
@permission_classes([IsAuthenticated])
def company_settings(request):
    """
    Read or update the company settings
    Endpoint: /api/settings/company/

    Only administrators may update.
    """
    instance = CompanySettings.load()
    if request.method == 'GET':
        return Response(CompanySettingsSerializer(instance, context={'request': request}).data)

    if not IsAdminRole().has_permission(request, None):
        return Response({'error': IsAdminRole.message}, status=status.HTTP_403_FORBIDDEN)

    serializer = CompanySettingsSerializer(
        instance, data=request.data, partial=request.method == 'PATCH',
        context={'request': request}
    )
    serializer.is_valid(raise_exception=True)
    serializer.save()
    logger.info("Company settings updated by %s", request.user.username)
    return Response(serializer.data)


class NumberingSequenceViewSet(viewsets.ModelViewSet):
    """API endpoint for document numbering sequences"""
    queryset = NumberingSequence.objects.all()
    serializer_class = NumberingSequenceSerializer
    permission_classes = [IsAuthenticated, HasModuleAccess]
    module = 'settings'

    @action(detail=False, methods=['get'])
    def preview(self, request):
        """Next number of every document type, without consuming them"""
        previews = {}
        for document_type, label in NumberingSequence.DOCUMENT_TYPES:
            sequence = NumberingSequence.objects.filter(document_type=document_type).first()
            if sequence is None:
                sequence = NumberingSequence(
                    document_type=document_type,
                    prefix=NumberingSequence.DEFAULT_PREFIXES[document_type]
                )
            previews[document_type] = {'label': label, 'next_number': sequence.preview()}
        return Response(previews)


class TaxRuleViewSet(viewsets.ModelViewSet):
    """API endpoint for tax rules"""
    queryset = TaxRule.objects.all()
    serializer_class = TaxRuleSerializer
    permission_classes = [IsAuthenticated, HasModuleAccess]
    module = 'settings'

    def get_queryset(self):
        queryset = super().get_queryset()
        rule_type = self.request.query_params.get('type')
        if rule_type:
            queryset = queryset.filter(type=rule_type)
        is_active = self.request.query_params.get('is_active')
        if is_active is not None:
            queryset = queryset.filter(is_active=is_active.lower() == 'true')
        return queryset
