from rest_framework import viewsets, status
from rest_framework.decorators import action
from rest_framework.parsers import MultiPartParser, FormParser, JSONParser
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from django.contrib.auth.models import User
from .models import UserProfile, Warehouse, ActivityLog, Attachment
from .permissions import HasModuleAccess, IsAdminRole
from .serializers import (
    UserProfileSerializer, UserSerializer, WarehouseSerializer,
    PasswordChangeSerializer, ActivityLogSerializer, AttachmentSerializer
)
from .utils import filter_date_range


class UserProfileViewSet(viewsets.ModelViewSet):
    """API endpoint for user profiles"""
    queryset = UserProfile.objects.all().select_related('user', 'warehouse')
    serializer_class = UserProfileSerializer
    permission_classes = [IsAuthenticated, IsAdminRole]
    http_method_names = ['get', 'put', 'patch', 'head', 'options']

    def get_queryset(self):
        queryset = super().get_queryset()
        role = self.request.query_params.get('role')
        if role:
            queryset = queryset.filter(role=role)
        is_active = self.request.query_params.get('is_active')
        if is_active is not None:
            queryset = queryset.filter(is_active=is_active.lower() == 'true')
        return queryset.order_by('user__username')


class UserViewSet(viewsets.ModelViewSet):
    """API endpoint for users management"""
    queryset = User.objects.all().select_related('profile').order_by('-date_joined')
    serializer_class = UserSerializer
    permission_classes = [IsAuthenticated, IsAdminRole]

    def get_permissions(self):
        if self.action in ('me', 'permissions', 'change_password'):
            return [IsAuthenticated()]
        return super().get_permissions()

    @action(detail=False, methods=['get'])
    def me(self, request):
        """Get current user details"""
        serializer = self.get_serializer(request.user)
        return Response(serializer.data)

    @action(detail=False, methods=['get'])
    def permissions(self, request):
        """Role and writable modules of the current user"""
        profile = request.user.profile
        return Response({
            'role': profile.role,
            'is_admin': request.user.is_superuser or profile.role == 'admin',
            'modules': sorted(profile.get_modules()),
        })

    @action(detail=False, methods=['post'])
    def change_password(self, request):
        serializer = PasswordChangeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        if not request.user.check_password(serializer.validated_data['old_password']):
            return Response(
                {'old_password': ["Mot de passe actuel incorrect."]},
                status=status.HTTP_400_BAD_REQUEST
            )
        request.user.set_password(serializer.validated_data['new_password'])
        request.user.save()
        return Response({'success': True})


class WarehouseViewSet(viewsets.ModelViewSet):
    """API endpoint for warehouses, stores and workshops"""
    queryset = Warehouse.objects.all().select_related('manager').order_by('name')
    serializer_class = WarehouseSerializer
    permission_classes = [IsAuthenticated, HasModuleAccess]
    module = 'warehouses'

    def get_queryset(self):
        queryset = super().get_queryset()
        warehouse_type = self.request.query_params.get('type')
        if warehouse_type:
            queryset = queryset.filter(type=warehouse_type)
        is_active = self.request.query_params.get('is_active')
        if is_active is not None:
            queryset = queryset.filter(is_active=is_active.lower() == 'true')
        return queryset


class ActivityLogViewSet(viewsets.ReadOnlyModelViewSet):
    """API endpoint for the activity log (read-only)"""
    queryset = ActivityLog.objects.all().select_related('user')
    serializer_class = ActivityLogSerializer
    permission_classes = [IsAuthenticated, IsAdminRole]

    def get_queryset(self):
        queryset = super().get_queryset()
        params = self.request.query_params
        for field in ('entity_type', 'entity_id', 'action'):
            if params.get(field):
                queryset = queryset.filter(**{field: params[field]})
        if params.get('user'):
            queryset = queryset.filter(user_id=params['user'])
        return filter_date_range(queryset, params, 'created_at__date')


class AttachmentViewSet(viewsets.ModelViewSet):
    """API endpoint for files attached to documents and partners"""
    queryset = Attachment.objects.all().select_related('uploaded_by')
    serializer_class = AttachmentSerializer
    permission_classes = [IsAuthenticated, HasModuleAccess]
    parser_classes = [MultiPartParser, FormParser, JSONParser]
    module = 'attachments'

    def get_queryset(self):
        queryset = super().get_queryset()
        params = self.request.query_params
        if params.get('entity_type'):
            queryset = queryset.filter(entity_type=params['entity_type'])
        if params.get('entity_id'):
            queryset = queryset.filter(entity_id=params['entity_id'])
        return queryset

    def perform_create(self, serializer):
        upload = serializer.validated_data['file']
        serializer.save(
            uploaded_by=self.request.user,
            file_size=upload.size,
            file_type=serializer.validated_data.get('file_type') or getattr(upload, 'content_type', '') or '',
        )
