from rest_framework import serializers
from django.contrib.auth.models import User
from .models import UserProfile, Warehouse, ActivityLog, Attachment


class WarehouseSerializer(serializers.ModelSerializer):
    manager_name = serializers.CharField(source='manager.username', read_only=True)

    class Meta:
        model = Warehouse
        fields = ['id', 'code', 'name', 'type', 'address', 'city', 'phone',
                  'manager', 'manager_name', 'is_active', 'created_at']
        read_only_fields = ['id', 'created_at']


class UserProfileSerializer(serializers.ModelSerializer):
    warehouse_name = serializers.CharField(source='warehouse.name', read_only=True)
    user_username = serializers.CharField(source='user.username', read_only=True)
    user_email = serializers.CharField(source='user.email', read_only=True)
    user_full_name = serializers.SerializerMethodField()

    class Meta:
        model = UserProfile
        fields = ['id', 'role', 'warehouse', 'warehouse_name', 'phone', 'is_active',
                  'user_username', 'user_email', 'user_full_name']

    def get_user_full_name(self, obj):
        return f"{obj.user.first_name} {obj.user.last_name}".strip()


class UserSerializer(serializers.ModelSerializer):
    profile_data = serializers.SerializerMethodField()
    password = serializers.CharField(write_only=True, required=False, min_length=8)
    role = serializers.ChoiceField(choices=UserProfile.ROLE_CHOICES, write_only=True, required=False)
    warehouse = serializers.PrimaryKeyRelatedField(
        queryset=Warehouse.objects.all(), write_only=True, required=False, allow_null=True
    )

    class Meta:
        model = User
        fields = ['id', 'username', 'email', 'first_name', 'last_name', 'is_active',
                  'is_staff', 'profile_data', 'password', 'role', 'warehouse']
        read_only_fields = ['id', 'is_staff']

    def get_profile_data(self, obj):
        profile = getattr(obj, 'profile', None)
        if profile is None:
            return None
        return {
            'id': profile.id,
            'role': profile.role,
            'warehouse': profile.warehouse_id,
            'warehouse_name': profile.warehouse.name if profile.warehouse else None,
            'is_active': profile.is_active,
            'modules': sorted(profile.get_modules()),
        }

    def _apply_profile(self, user, role, warehouse):
        profile = user.profile
        if role is not None:
            profile.role = role
        if warehouse is not None:
            profile.warehouse = warehouse
        profile.save()

    def create(self, validated_data):
        role = validated_data.pop('role', None)
        warehouse = validated_data.pop('warehouse', None)
        password = validated_data.pop('password', None)

        user = User(**validated_data)
        if password:
            user.set_password(password)
        else:
            user.set_unusable_password()
        user.save()
        self._apply_profile(user, role, warehouse)
        return user

    def update(self, instance, validated_data):
        role = validated_data.pop('role', None)
        warehouse = validated_data.pop('warehouse', None)
        password = validated_data.pop('password', None)

        for attr, value in validated_data.items():
            setattr(instance, attr, value)
        if password:
            instance.set_password(password)
        instance.save()
        self._apply_profile(instance, role, warehouse)
        return instance


class PasswordChangeSerializer(serializers.Serializer):
    """Serializer for password change"""
    old_password = serializers.CharField(required=True, write_only=True)
    new_password = serializers.CharField(required=True, write_only=True, min_length=8)
    confirm_password = serializers.CharField(required=True, write_only=True)

    def validate(self, attrs):
        if attrs['new_password'] != attrs['confirm_password']:
            raise serializers.ValidationError({"confirm_password": "Les mots de passe ne correspondent pas."})
        return attrs


class ActivityLogSerializer(serializers.ModelSerializer):
    user_username = serializers.CharField(source='user.username', read_only=True)

    class Meta:
        model = ActivityLog
        fields = ['id', 'user', 'user_username', 'action', 'entity_type', 'entity_id',
                  'old_values', 'new_values', 'ip_address', 'success', 'error_message',
                  'created_at']
        read_only_fields = fields


class AttachmentSerializer(serializers.ModelSerializer):
    uploaded_by_name = serializers.CharField(source='uploaded_by.username', read_only=True)

    class Meta:
        model = Attachment
        fields = ['id', 'entity_type', 'entity_id', 'file', 'file_name', 'file_type',
                  'file_size', 'document_type', 'tags', 'uploaded_by', 'uploaded_by_name',
                  'uploaded_at']
        read_only_fields = ['id', 'file_size', 'uploaded_by', 'uploaded_at']

    def validate_tags(self, value):
        if not isinstance(value, list) or not all(isinstance(tag, str) for tag in value):
            raise serializers.ValidationError("Les étiquettes doivent être une liste de textes.")
        return value
