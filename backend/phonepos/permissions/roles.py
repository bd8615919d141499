# Overview: Default role-to-permission mappings.

from .definitions import PERMISSION_DEFINITIONS


DEFAULT_ROLE_PERMISSIONS = {
    # Admin gets ALL permissions
    "admin": [perm[0] for perm in PERMISSION_DEFINITIONS],

    "manager": [
        # Manager: runs the shop floor, no user/role or destructive system access
        "VIEW_INVENTORY",
        "ADJUST_INVENTORY",
        "MANAGE_PRODUCTS",
        "MANAGE_CATEGORIES",
        "VIEW_PURCHASES",
        "CREATE_PURCHASE",
        "RECEIVE_PURCHASE",
        "CANCEL_PURCHASE",
        "MANAGE_SUPPLIERS",
        "CREATE_SALE",
        "VIEW_SALES",
        "UPDATE_SALE_STATUS",
        "VIEW_CUSTOMERS",
        "MANAGE_CUSTOMERS",
        "VIEW_REPORTS",
        "VIEW_USERS",
        "MANAGE_BACKUPS",
    ],

    "cashier": [
        "VIEW_INVENTORY",
        "CREATE_SALE",
        "VIEW_SALES",
        "VIEW_CUSTOMERS",
        "MANAGE_CUSTOMERS",
    ],

    "viewer": [
        # Read-only
        "VIEW_INVENTORY",
        "VIEW_PURCHASES",
        "VIEW_SALES",
        "VIEW_CUSTOMERS",
        "VIEW_REPORTS",
    ],
}

ROLE_DESCRIPTIONS = {
    "admin": "Full system access",
    "manager": "Store management: catalog, purchasing, sales and reports",
    "cashier": "Point of sale and customer lookup",
    "viewer": "Read-only access",
}
