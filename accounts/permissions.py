from rest_framework import permissions


class RolePermission(permissions.BasePermission):
    """RBAC permission based on a view's allowed_roles attribute.

    If a view defines allowed_roles = ["admin", ...] the request.user.role must be
    in that list. A view may narrow a single action further with
    action_roles = {"confirm": ["admin", "cashier"]}. Superusers always pass.
    """

    message = "You do not have permission to perform this action for your role."

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False
        if request.user.is_superuser:
            return True
        action_roles = getattr(view, "action_roles", None) or {}
        allowed = action_roles.get(getattr(view, "action", None))
        if allowed is None:
            allowed = getattr(view, "allowed_roles", None)
        if allowed is None:
            return True
        return request.user.role in allowed
