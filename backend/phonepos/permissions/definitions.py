# Overview: All permission definitions organized by category.
# Each permission is defined as: (code, name, description, category)

from .categories import PermissionCategory


# -- INVENTORY --

INVENTORY_PERMISSIONS = [
    (
        "VIEW_INVENTORY",
        "View Inventory",
        "View products, stock levels and stock movements",
        PermissionCategory.INVENTORY,
    ),
    (
        "ADJUST_INVENTORY",
        "Adjust Inventory",
        "Record manual stock adjustments (damage, recounts, corrections)",
        PermissionCategory.INVENTORY,
    ),
    (
        "MANAGE_PRODUCTS",
        "Manage Products",
        "Create, edit, deactivate and delete products",
        PermissionCategory.INVENTORY,
    ),
    (
        "MANAGE_CATEGORIES",
        "Manage Categories",
        "Create, edit and delete product categories",
        PermissionCategory.INVENTORY,
    ),
]


# -- PURCHASING --

PURCHASING_PERMISSIONS = [
    (
        "VIEW_PURCHASES",
        "View Purchases",
        "View purchase orders and supplier list",
        PermissionCategory.PURCHASING,
    ),
    (
        "CREATE_PURCHASE",
        "Create Purchase",
        "Create purchase orders",
        PermissionCategory.PURCHASING,
    ),
    (
        "RECEIVE_PURCHASE",
        "Receive Purchase",
        "Receive purchase orders into stock",
        PermissionCategory.PURCHASING,
    ),
    (
        "CANCEL_PURCHASE",
        "Cancel Purchase",
        "Cancel pending purchase orders",
        PermissionCategory.PURCHASING,
    ),
    (
        "MANAGE_SUPPLIERS",
        "Manage Suppliers",
        "Create, edit and delete suppliers",
        PermissionCategory.PURCHASING,
    ),
]


# -- SALES --

SALES_PERMISSIONS = [
    (
        "CREATE_SALE",
        "Create Sale",
        "Ring up sales at the POS",
        PermissionCategory.SALES,
    ),
    (
        "VIEW_SALES",
        "View Sales",
        "View sales history, daily summaries and payment transactions",
        PermissionCategory.SALES,
    ),
    (
        "UPDATE_SALE_STATUS",
        "Update Sale Status",
        "Mark sales completed, refunded or cancelled",
        PermissionCategory.SALES,
    ),
    (
        "VIEW_CUSTOMERS",
        "View Customers",
        "View customer list and history",
        PermissionCategory.SALES,
    ),
    (
        "MANAGE_CUSTOMERS",
        "Manage Customers",
        "Create and edit customers",
        PermissionCategory.SALES,
    ),
]


# -- REPORTS --

REPORT_PERMISSIONS = [
    (
        "VIEW_REPORTS",
        "View Reports",
        "View dashboard, profit and top product reports",
        PermissionCategory.REPORTS,
    ),
]


# -- USERS --

USER_PERMISSIONS = [
    (
        "VIEW_USERS",
        "View Users",
        "View user list and profiles",
        PermissionCategory.USERS,
    ),
    (
        "CREATE_USER",
        "Create User",
        "Create new user accounts",
        PermissionCategory.USERS,
    ),
    (
        "EDIT_USER",
        "Edit User",
        "Edit staff profiles",
        PermissionCategory.USERS,
    ),
    (
        "ASSIGN_ROLES",
        "Assign Roles",
        "Change a user's role",
        PermissionCategory.USERS,
    ),
    (
        "DEACTIVATE_USER",
        "Deactivate User",
        "Activate and deactivate user accounts",
        PermissionCategory.USERS,
    ),
]


# -- SYSTEM --

SYSTEM_PERMISSIONS = [
    (
        "MANAGE_BACKUPS",
        "Manage Backups",
        "Export database backups",
        PermissionCategory.SYSTEM,
    ),
    (
        "SYSTEM_ADMIN",
        "System Administration",
        "Restore backups, clear tables and reset data",
        PermissionCategory.SYSTEM,
    ),
]


# Combined list of all permissions
PERMISSION_DEFINITIONS = (
    INVENTORY_PERMISSIONS
    + PURCHASING_PERMISSIONS
    + SALES_PERMISSIONS
    + REPORT_PERMISSIONS
    + USER_PERMISSIONS
    + SYSTEM_PERMISSIONS
)
