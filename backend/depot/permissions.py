"""
Permission codes and the role -> permission table.

WHY: Route guards and the login payload both read ROLE_PERMISSIONS.
Every Role must have an entry; a missing entry fails at import time.

DESIGN PRINCIPLES:
- Permissions are granular (one action per permission)
- Role grants follow least privilege
- Ownership (which distributor, which client) is checked in the services,
  not here
"""
from .models.enums import Role


class PermissionCategory:
    """Permission categories for organization."""
    INVENTORY = "INVENTORY"
    ORDERS = "ORDERS"
    PAYMENTS = "PAYMENTS"
    DIRECTORY = "DIRECTORY"
    REPORTS = "REPORTS"


# Each permission is defined as: (code, description, category)
PERMISSION_DEFINITIONS = [
    ("VIEW_PRODUCTS", "Browse the product catalog", PermissionCategory.INVENTORY),
    ("MANAGE_PRODUCTS", "Create, edit and deactivate products", PermissionCategory.INVENTORY),
    ("VIEW_WAREHOUSE_INVENTORY", "View warehouse stock and movements", PermissionCategory.INVENTORY),
    ("RESTOCK_INVENTORY", "Record RESTOCK movements", PermissionCategory.INVENTORY),
    ("ADJUST_INVENTORY", "Record ADJUSTMENT movements", PermissionCategory.INVENTORY),
    ("VIEW_OWN_INVENTORY", "View the caller's distributor stock", PermissionCategory.INVENTORY),
    ("VIEW_AVAILABLE_PRODUCTS", "View what the client's distributor has in stock", PermissionCategory.INVENTORY),

    ("VIEW_ORDERS", "View orders within the caller's scope", PermissionCategory.ORDERS),
    ("PLACE_WAREHOUSE_ORDER", "Order stock from a warehouse", PermissionCategory.ORDERS),
    ("PLACE_CLIENT_ORDER", "Order stock from the client's distributor", PermissionCategory.ORDERS),
    ("PROCESS_ORDERS", "Move orders into processing", PermissionCategory.ORDERS),
    ("FULFILL_WAREHOUSE_ORDERS", "Ship warehouse orders from warehouse stock", PermissionCategory.ORDERS),
    ("FULFILL_CLIENT_ORDERS", "Ship client orders from distributor stock", PermissionCategory.ORDERS),
    ("RECEIVE_ORDERS", "Receive fulfilled warehouse orders into distributor stock", PermissionCategory.ORDERS),
    ("CANCEL_ORDERS", "Cancel open orders", PermissionCategory.ORDERS),

    ("VIEW_PAYMENTS", "View payment records", PermissionCategory.PAYMENTS),
    ("MARK_PAID", "Record manual payment receipt", PermissionCategory.PAYMENTS),
    ("INITIATE_PAYMENT", "Start paying a warehouse order", PermissionCategory.PAYMENTS),
    ("CONFIRM_PAYMENT", "Record gateway payment outcomes", PermissionCategory.PAYMENTS),

    ("MANAGE_DISTRIBUTORS", "List, create and deactivate distributors", PermissionCategory.DIRECTORY),
    ("MANAGE_CLIENTS", "List, create and deactivate the caller's clients", PermissionCategory.DIRECTORY),

    ("VIEW_REPORTS", "View business reports", PermissionCategory.REPORTS),
]

PERMISSION_CODES = frozenset(code for code, _, _ in PERMISSION_DEFINITIONS)


_WAREHOUSE_STAFF = frozenset({
    "VIEW_PRODUCTS",
    "MANAGE_PRODUCTS",
    "VIEW_WAREHOUSE_INVENTORY",
    "RESTOCK_INVENTORY",
    "ADJUST_INVENTORY",
    "VIEW_ORDERS",
    "PROCESS_ORDERS",
    "FULFILL_WAREHOUSE_ORDERS",
    "CANCEL_ORDERS",
    "VIEW_PAYMENTS",
    "MARK_PAID",
    "CONFIRM_PAYMENT",
    "MANAGE_DISTRIBUTORS",
    "VIEW_REPORTS",
})


ROLE_PERMISSIONS: dict[Role, frozenset[str]] = {
    Role.OWNER: _WAREHOUSE_STAFF,
    Role.MANAGER: _WAREHOUSE_STAFF,
    Role.DISTRIBUTOR: frozenset({
        "VIEW_PRODUCTS",
        "VIEW_OWN_INVENTORY",
        "VIEW_ORDERS",
        "PLACE_WAREHOUSE_ORDER",
        "PROCESS_ORDERS",
        "FULFILL_CLIENT_ORDERS",
        "RECEIVE_ORDERS",
        "CANCEL_ORDERS",
        "VIEW_PAYMENTS",
        "MARK_PAID",
        "INITIATE_PAYMENT",
        "MANAGE_CLIENTS",
    }),
    Role.CLIENT: frozenset({
        "VIEW_PRODUCTS",
        "VIEW_AVAILABLE_PRODUCTS",
        "VIEW_ORDERS",
        "PLACE_CLIENT_ORDER",
        "CANCEL_ORDERS",
        "VIEW_PAYMENTS",
    }),
}


def _check_role_table() -> None:
    missing = set(Role) - set(ROLE_PERMISSIONS)
    if missing:
        raise RuntimeError(f"No permissions defined for roles: {sorted(r.value for r in missing)}")
    for role, codes in ROLE_PERMISSIONS.items():
        unknown = codes - PERMISSION_CODES
        if unknown:
            raise RuntimeError(f"Role {role.value} references unknown permissions: {sorted(unknown)}")


_check_role_table()


def role_has_permission(role, permission_code: str) -> bool:
    """Unknown roles and unknown codes are denied."""
    if not isinstance(role, Role):
        try:
            role = Role(role)
        except ValueError:
            return False
    return permission_code in ROLE_PERMISSIONS.get(role, frozenset())


def permissions_for(role: Role) -> list[str]:
    return sorted(ROLE_PERMISSIONS.get(role, frozenset()))
