"""
Authorization for the GreenSpace marketplace.

Two independent checks are applied, in order:

1. Role check: ``authorize(user, roles)`` passes only when the user's role is
   in the required set. The admin role is never implied; endpoints that admins
   may use list it explicitly.
2. Resource check: predicates such as ``is_plot_owner`` decide whether the
   caller is the party the resource belongs to.
"""

import logging

from rest_framework import permissions

from .exceptions import Forbidden
from .models import Role

logger = logging.getLogger(__name__)


def has_role(user, *roles):
    """Return True if ``user`` is authenticated and holds one of ``roles``."""
    if not user or not user.is_authenticated:
        return False
    return getattr(user, 'role', None) in roles


def authorize(user, required_roles, message=None):
    """
    Raise Forbidden unless the user's role is in ``required_roles``.

    Args:
        user: Authenticated caller
        required_roles: Iterable of Role values
        message: Optional error detail

    Raises:
        Forbidden: If the caller's role is not in the required set
    """
    if not has_role(user, *required_roles):
        allowed = ', '.join(sorted(str(role) for role in required_roles))
        logger.warning(
            f"Role check failed. User: {getattr(user, 'email', None)}, "
            f"Role: {getattr(user, 'role', None)}, Required: {allowed}"
        )
        raise Forbidden(message or f'This action requires one of the roles: {allowed}.')


def is_plot_owner(user, plot):
    return plot.owner_id == user.id


def is_booking_gardener(user, booking):
    return booking.gardener_id == user.id


def is_booking_landowner(user, booking):
    return booking.landowner_id == user.id


def can_view_booking(user, booking):
    """Bookings are readable by their gardener, their landowner, or an admin."""
    role = Role(user.role)
    if role == Role.ADMIN:
        return True
    if role == Role.GARDENER:
        return is_booking_gardener(user, booking)
    if role == Role.LANDOWNER:
        return is_booking_landowner(user, booking)
    raise ValueError(f'Unhandled role: {role}')


def can_cancel_booking(user, booking):
    """Only the booking's gardener or an admin may cancel it."""
    role = Role(user.role)
    if role == Role.ADMIN:
        return True
    if role == Role.GARDENER:
        return is_booking_gardener(user, booking)
    if role == Role.LANDOWNER:
        return False
    raise ValueError(f'Unhandled role: {role}')


class RolePermission(permissions.BasePermission):
    """
    Base permission class granting access to a fixed set of roles.

    Usage:
        class MyView(APIView):
            permission_classes = [IsAuthenticated, IsLandowner]
    """

    allowed_roles = ()
    message = 'You do not have permission to perform this action.'

    def has_permission(self, request, view):
        return has_role(request.user, *self.allowed_roles)


class IsGardener(RolePermission):
    """Allows only gardeners."""

    allowed_roles = (Role.GARDENER,)
    message = 'Only gardeners can perform this action.'


class IsLandowner(RolePermission):
    """Allows only landowners."""

    allowed_roles = (Role.LANDOWNER,)
    message = 'Only landowners can perform this action.'


class IsAdmin(RolePermission):
    """
    Allows only marketplace admins.

    Admin access is read-only for users, plots, bookings and stats, plus
    verification decisions.
    """

    allowed_roles = (Role.ADMIN,)
    message = 'You do not have permission to perform this action. Admin privileges required.'
