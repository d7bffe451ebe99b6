from rest_framework import permissions


class IsPortalAdmin(permissions.BasePermission):
    """Allows access to users holding the ADMIN or SUPER_ADMIN role."""

    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated and user.is_portal_admin)


class IsAdminOrReadOnly(permissions.BasePermission):
    def has_permission(self, request, view):
        if request.method in permissions.SAFE_METHODS:
            return True
        user = request.user
        return bool(user and user.is_authenticated and (user.is_portal_admin or user.is_staff))
