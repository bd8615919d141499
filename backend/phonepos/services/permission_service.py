# Overview: Role-based permission resolution and seeding.

"""
Permission checks resolve user -> role -> role_permissions -> codes.

Nothing is granted unless a role_permissions row says so. Denials are
logged at WARNING; grants are not logged.
"""

import logging

from ..extensions import db
from ..models import UserRole, Role, RolePermission, Permission
from ..permissions import PERMISSION_DEFINITIONS, DEFAULT_ROLE_PERMISSIONS, validate_permission_code

logger = logging.getLogger(__name__)


class PermissionDeniedError(Exception):
    """Raised when user lacks required permission."""
    pass


def get_user_permissions(user_id: int) -> set[str]:
    """
    Get all permission codes for a user.

    Returns set of permission codes (e.g., {"CREATE_SALE", "VIEW_SALES"}).
    """
    rows = (
        db.session.query(Permission.code)
        .join(RolePermission, RolePermission.permission_id == Permission.id)
        .join(UserRole, UserRole.role_id == RolePermission.role_id)
        .filter(UserRole.user_id == user_id)
        .all()
    )
    return {code for (code,) in rows}


def user_has_permission(user_id: int, permission_code: str) -> bool:
    """Unknown codes are never granted."""
    if not validate_permission_code(permission_code):
        logger.error("Unknown permission code checked: %s", permission_code)
        return False
    return permission_code in get_user_permissions(user_id)


def require_permission(user_id: int, permission_code: str, resource: str | None = None) -> None:
    """
    Raise PermissionDeniedError unless the user holds permission_code.

    Denials are logged at WARNING with the requested resource.
    """
    if user_has_permission(user_id, permission_code):
        return

    logger.warning(
        "Permission denied: user=%s permission=%s resource=%s",
        user_id,
        permission_code,
        resource,
    )
    raise PermissionDeniedError(f"Missing permission: {permission_code}")


def get_user_role_name(user_id: int) -> str | None:
    """Role name for a user, or None if unassigned."""
    return (
        db.session.query(Role.name)
        .join(UserRole, UserRole.role_id == Role.id)
        .filter(UserRole.user_id == user_id)
        .scalar()
    )


def initialize_permissions():
    """
    Initialize all permission definitions in database.

    Creates Permission records for all codes in PERMISSION_DEFINITIONS.
    Idempotent: Safe to run multiple times.
    """
    created_count = 0

    for code, name, description, category in PERMISSION_DEFINITIONS:
        existing = db.session.query(Permission).filter_by(code=code).first()

        if not existing:
            db.session.add(Permission(code=code, name=name, description=description, category=category))
            created_count += 1

    db.session.commit()
    return created_count


def assign_default_role_permissions():
    """
    Assign default permissions to roles based on DEFAULT_ROLE_PERMISSIONS.

    Idempotent: Safe to run multiple times (skips existing).
    """
    created_count = 0
    permissions = {p.code: p for p in db.session.query(Permission).all()}

    for role_name, permission_codes in DEFAULT_ROLE_PERMISSIONS.items():
        role = db.session.query(Role).filter_by(name=role_name).first()

        if not role:
            continue  # Role doesn't exist, skip

        granted = {
            rp.permission_id
            for rp in db.session.query(RolePermission).filter_by(role_id=role.id).all()
        }

        for permission_code in permission_codes:
            permission = permissions.get(permission_code)
            if not permission or permission.id in granted:
                continue
            db.session.add(RolePermission(role_id=role.id, permission_id=permission.id))
            created_count += 1

    db.session.commit()
    return created_count
