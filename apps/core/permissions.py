from rest_framework.permissions import BasePermission, SAFE_METHODS

from .models import UserProfile


class HasModuleAccess(BasePermission):
    """
    Read access for any active profile, write access only when the user's
    role covers the view's ``module``.
    """
    message = "Votre rôle ne permet pas de modifier ce module."

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False
        if user.is_superuser:
            return True
        try:
            profile = user.profile
        except UserProfile.DoesNotExist:
            return False
        if request.method in SAFE_METHODS:
            return profile.is_active
        module = getattr(view, 'module', None)
        if module is None:
            return profile.role == 'admin'
        return profile.can_write(module)


class IsAdminRole(BasePermission):
    """Administrators only (superuser or admin role)"""
    message = "Action réservée aux administrateurs."

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False
        if user.is_superuser:
            return True
        profile = getattr(user, 'profile', None)
        return bool(profile and profile.is_active and profile.role == 'admin')


def user_can_write(user, module):
    """Module write check for function views that have no ``module`` attribute"""
    if not user or not user.is_authenticated:
        return False
    if user.is_superuser:
        return True
    profile = getattr(user, 'profile', None)
    return bool(profile and profile.can_write(module))
