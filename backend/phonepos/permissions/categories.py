# Overview: Permission groups, in the order the role editor lists them.


class PermissionCategory:
    INVENTORY = "INVENTORY"
    PURCHASING = "PURCHASING"
    SALES = "SALES"
    REPORTS = "REPORTS"
    USERS = "USERS"
    SYSTEM = "SYSTEM"

    ALL = (INVENTORY, PURCHASING, SALES, REPORTS, USERS, SYSTEM)
