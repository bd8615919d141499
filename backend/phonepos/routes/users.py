# Overview: Flask API routes for user administration; parses input and returns JSON responses.

# backend/phonepos/routes/users.py
"""
User and role administration.

Provides endpoints for:
- User management (list, create, activate/deactivate, stats)
- Role assignment (one role per user)
- Staff profiles (create, update)

Accounts are never hard-deleted so sale and ledger attribution survives.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..extensions import db
from ..models import Role, User
from ..services import auth_service, user_service
from ..services.auth_service import PasswordValidationError
from ..validation import ValidationError, ConflictError, NotFoundError
from ..decorators import require_auth, require_permission
from ..permissions import DEFAULT_ROLE_PERMISSIONS, PermissionCategory, get_permissions_by_category

users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("")
@require_auth
@require_permission("VIEW_USERS")
def list_users_route():
    users = user_service.list_users()
    return jsonify({"users": users, "count": len(users)})


@users_bp.get("/stats")
@require_auth
@require_permission("VIEW_USERS")
def user_stats_route():
    return jsonify(user_service.get_user_stats())


@users_bp.get("/roles")
@require_auth
@require_permission("VIEW_USERS")
def list_roles_route():
    """Roles with their default permission codes."""
    roles = db.session.query(Role).order_by(Role.id.asc()).all()
    result = []
    for role in roles:
        data = role.to_dict()
        data["permissions"] = list(DEFAULT_ROLE_PERMISSIONS.get(role.name, []))
        result.append(data)
    return jsonify({"roles": result})


@users_bp.get("/permissions")
@require_auth
@require_permission("VIEW_USERS")
def list_permissions_route():
    """Permission catalog grouped by category, for the role editor."""
    return jsonify({
        "categories": {
            category: get_permissions_by_category(category) for category in PermissionCategory.ALL
        },
    })


@users_bp.post("")
@require_auth
@require_permission("CREATE_USER")
def create_user_route():
    """
    Create a new user.

    Request body:
    - username: str (required)
    - email: str (required)
    - password: str (required)
    - name: str (optional)
    - role: str (optional, default cashier)
    """
    try:
        data = request.get_json(silent=True) or {}
        username = data.get("username")
        email = data.get("email")
        password = data.get("password")

        if not all([username, email, password]):
            return jsonify({"error": "username, email, and password required"}), 400

        user = auth_service.create_user(
            username,
            email,
            password,
            role_name=data.get("role") or "cashier",
            name=data.get("name"),
            assigned_by_user_id=g.current_user.id,
        )
        return jsonify({"user": user_service.serialize_user(user)}), 201

    except PasswordValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create user")
        return jsonify({"error": "Internal server error"}), 500


@users_bp.put("/<int:user_id>/role")
@require_auth
@require_permission("ASSIGN_ROLES")
def assign_role_route(user_id: int):
    data = request.get_json(silent=True) or {}
    role_name = data.get("role")
    if not role_name:
        return jsonify({"error": "role required"}), 400

    try:
        auth_service.assign_role(user_id, role_name, assigned_by_user_id=g.current_user.id)
        user = db.session.get(User, user_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    return jsonify({"user": user_service.serialize_user(user), "message": "Role assigned"})


@users_bp.patch("/<int:user_id>/status")
@require_auth
@require_permission("EDIT_USER")
def set_status_route(user_id: int):
    data = request.get_json(silent=True) or {}
    if not isinstance(data.get("is_active"), bool):
        return jsonify({"error": "is_active must be a boolean"}), 400

    try:
        user = user_service.set_user_active(user_id, data["is_active"], g.actor)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    return jsonify({"user": user_service.serialize_user(user)})


@users_bp.delete("/<int:user_id>")
@require_auth
@require_permission("DEACTIVATE_USER")
def deactivate_user_route(user_id: int):
    """Soft delete: deactivates the account and revokes its sessions."""
    try:
        user = user_service.deactivate_user(user_id, g.actor)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    return jsonify({"user": user_service.serialize_user(user), "message": "User deactivated"})


@users_bp.post("/<int:user_id>/profile")
@require_auth
@require_permission("EDIT_USER")
def create_profile_route(user_id: int):
    data = request.get_json(silent=True) or {}
    try:
        profile = user_service.create_profile(user_id, data, g.actor)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    return jsonify({"profile": profile.to_dict()}), 201


@users_bp.put("/<int:user_id>/profile")
@require_auth
@require_permission("EDIT_USER")
def update_profile_route(user_id: int):
    data = request.get_json(silent=True) or {}
    try:
        profile = user_service.update_profile(user_id, data)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    return jsonify({"profile": profile.to_dict()})
