"""
Role based access for admin actions.

Kept separate from the status edge tables in transitions.py: this module
only answers "may this role perform this action", never "is this edge legal".
"""

from typing import Dict, FrozenSet

from errors import Forbidden

SUPER_ADMIN = "super_admin"
ADMIN = "admin"
SUPPORT = "support"

ROLES = (SUPER_ADMIN, ADMIN, SUPPORT)

_MODERATORS = frozenset({SUPER_ADMIN, ADMIN})
_ALL_ADMINS = frozenset(ROLES)

PERMISSIONS: Dict[str, FrozenSet[str]] = {
    # Owner management
    "approve_owner": _MODERATORS,
    "reject_owner": _MODERATORS,
    "suspend_owner": _MODERATORS,
    "reactivate_owner": _MODERATORS,
    # Field management
    "approve_field": _MODERATORS,
    "reject_field": _MODERATORS,
    "disable_field": _MODERATORS,
    "block_field": _MODERATORS,
    "reactivate_field": _MODERATORS,
    # Booking management
    "view_bookings": _ALL_ADMINS,
    "update_booking": _MODERATORS,
    "handle_dispute": _ALL_ADMINS,
    # Financial
    "view_financial": _ALL_ADMINS,
    "update_commission": frozenset({SUPER_ADMIN}),
    # Activity logs
    "view_activity": _MODERATORS,
    # Dashboard / listings
    "view_dashboard": _ALL_ADMINS,
    # Admin accounts
    "manage_admins": frozenset({SUPER_ADMIN}),
}


def has_permission(permission: str, role: str) -> bool:
    """Unknown permissions are never granted."""
    return role in PERMISSIONS.get(permission, frozenset())


def require_permission(permission: str, role: str) -> None:
    if not has_permission(permission, role):
        raise Forbidden(f"Forbidden - insufficient permissions for {permission} (role: {role})")


def get_admin_permissions(role: str) -> Dict[str, bool]:
    return {perm: role in roles for perm, roles in PERMISSIONS.items()}
