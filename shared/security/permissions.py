"""
Role -> capability resolution.

Every authorization decision in the cluster asks this module, never compares
role strings directly.
"""
from enum import Enum


class Role(str, Enum):
    FARMER = "farmer"
    BUYER = "buyer"
    ADMIN = "admin"


class Permission(str, Enum):
    LIST_CROPS = "list-crops"
    PURCHASE_CROPS = "purchase-crops"
    MANAGE_USERS = "manage-users"
    EDIT_PRODUCT = "edit-product"
    DELETE_PRODUCT = "delete-product"
    MANAGE_ORDERS = "manage-orders"


_ROLE_PERMISSIONS: dict[Role, frozenset[Permission]] = {
    Role.FARMER: frozenset({
        Permission.LIST_CROPS,
        Permission.PURCHASE_CROPS,
        Permission.EDIT_PRODUCT,
        Permission.DELETE_PRODUCT,
        Permission.MANAGE_ORDERS,
    }),
    Role.BUYER: frozenset({Permission.PURCHASE_CROPS}),
    Role.ADMIN: frozenset(Permission),
}


def capabilities_for(role: Role | str | None) -> frozenset[Permission]:
    """Returns the capability set of a role. Unknown roles get nothing."""
    if role is None:
        return frozenset()
    try:
        return _ROLE_PERMISSIONS[Role(role)]
    except ValueError:
        return frozenset()


def has_permission(role: Role | str | None, permission: Permission) -> bool:
    return permission in capabilities_for(role)
