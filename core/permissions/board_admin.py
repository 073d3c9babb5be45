from rest_framework.permissions import BasePermission


class IsBoardAdmin(BasePermission):
    """Autorise l'accès si le cookie admin_session a ouvert une session valide."""
    message = "Admin session required"

    def has_permission(self, request, view):
        return bool(getattr(request.user, "is_board_admin", False))
