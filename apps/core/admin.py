from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.contrib.auth.models import User
from .models import UserProfile, Warehouse, ActivityLog, Attachment


class UserProfileInline(admin.StackedInline):
    model = UserProfile
    can_delete = False
    verbose_name_plural = 'Profil'
    fields = ('role', 'warehouse', 'phone', 'is_active')


class CustomUserAdmin(BaseUserAdmin):
    inlines = (UserProfileInline,)
    list_display = ('username', 'email', 'first_name', 'last_name', 'is_staff', 'get_role')

    def get_role(self, obj):
        try:
            return obj.profile.get_role_display()
        except UserProfile.DoesNotExist:
            return '-'
    get_role.short_description = 'Rôle'


admin.site.unregister(User)
admin.site.register(User, CustomUserAdmin)


@admin.register(Warehouse)
class WarehouseAdmin(admin.ModelAdmin):
    list_display = ('code', 'name', 'type', 'city', 'is_active')
    search_fields = ('code', 'name', 'city')
    list_filter = ('type', 'is_active')
    fieldsets = (
        ('Informations', {
            'fields': ('code', 'name', 'type', 'manager')
        }),
        ('Coordonnées', {
            'fields': ('address', 'city', 'phone')
        }),
        ('Statut', {
            'fields': ('is_active', 'created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )
    readonly_fields = ('created_at', 'updated_at')


@admin.register(ActivityLog)
class ActivityLogAdmin(admin.ModelAdmin):
    list_display = ('created_at', 'user', 'action', 'entity_type', 'entity_id', 'success')
    list_filter = ('action', 'entity_type', 'success')
    search_fields = ('entity_id', 'user__username')
    readonly_fields = [field.name for field in ActivityLog._meta.fields]


@admin.register(Attachment)
class AttachmentAdmin(admin.ModelAdmin):
    list_display = ('file_name', 'entity_type', 'entity_id', 'file_size', 'uploaded_by', 'uploaded_at')
    list_filter = ('entity_type',)
    search_fields = ('file_name', 'document_type')
