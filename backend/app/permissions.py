"""
Permission Constants and Role Mappings

WHY: Centralized permission definitions ensure consistency across the
HTTP surface. The order engine enforces its own role rules from the
transition table; these codes gate the routes in front of it.

DESIGN PRINCIPLES:
- Permissions are granular (one action per permission)
- Default role mappings follow principle of least privilege
- Admin has all permissions
"""

from .models import UserRole


# =============================================================================
# PERMISSION DEFINITIONS
# =============================================================================

# Each permission is defined as: (code, description)
PERMISSION_DEFINITIONS = [
    ("VIEW_CATALOG", "Browse products and stock levels"),
    ("PLACE_ORDER", "Check out a cart and create an order"),
    ("SUBMIT_PAYMENT_PROOF", "Upload proof of bank transfer for an own order"),
    ("VIEW_OWN_ORDERS", "View orders placed by the current account"),
    ("VIEW_ALL_ORDERS", "View every order in the system"),
    ("VERIFY_PAYMENTS", "Approve or reject submitted payment proofs"),
    ("APPROVE_ORDERS", "Approve paid orders and sync inventory"),
    ("UPDATE_LOGISTICS", "Advance orders through packing, dispatch and delivery"),
    ("VIEW_AUDIT_LOG", "Read the audit log"),
    ("MANAGE_USERS", "Verify and activate wholesale accounts"),
]

ALL_PERMISSION_CODES = frozenset(code for code, _ in PERMISSION_DEFINITIONS)


# =============================================================================
# DEFAULT ROLE MAPPINGS
# =============================================================================

DEFAULT_ROLE_PERMISSIONS = {
    UserRole.PUBLIC: frozenset({
        "VIEW_CATALOG",
        "PLACE_ORDER",
        "SUBMIT_PAYMENT_PROOF",
        "VIEW_OWN_ORDERS",
    }),
    UserRole.WHOLESALE: frozenset({
        "VIEW_CATALOG",
        "PLACE_ORDER",
        "SUBMIT_PAYMENT_PROOF",
        "VIEW_OWN_ORDERS",
    }),
    UserRole.LOGISTICS: frozenset({
        "VIEW_CATALOG",
        "VIEW_ALL_ORDERS",
        "UPDATE_LOGISTICS",
    }),
    UserRole.ADMIN: ALL_PERMISSION_CODES,
}


def has_permission(role, permission_code: str) -> bool:
    return permission_code in DEFAULT_ROLE_PERMISSIONS.get(UserRole(role), frozenset())


def has_any_permission(role, *permission_codes: str) -> bool:
    return any(has_permission(role, code) for code in permission_codes)
