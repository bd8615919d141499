# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/phonepos/routes/auth.py
"""Authentication routes: bearer session login, logout and caller info."""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import bearer_token, require_auth
from ..services import auth_service, session_service, permission_service
from ..services.user_service import serialize_user


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Exchange username (or email) and password for a session token.

    The token is returned once; only its hash is stored.
    """
    try:
        data = request.get_json(silent=True) or {}
        username = data.get("username") or ""
        password = data.get("password") or ""

        if not isinstance(username, str) or not isinstance(password, str):
            return jsonify({"error": "username and password must be strings"}), 400
        username = username.strip()
        if not username or not password:
            return jsonify({"error": "username and password required"}), 400

        user = auth_service.authenticate(username, password)
        if not user:
            current_app.logger.warning("Failed login for %s", username)
            return jsonify({"error": "Invalid credentials"}), 401

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
        permissions = sorted(permission_service.get_user_permissions(user.id))

        return jsonify({
            "user": serialize_user(user),
            "permissions": permissions,
            "token": token,
            "session": session.to_dict(),
            "message": "Login successful",
        }), 200

    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
def logout_route():
    """Revoke the presented session token."""
    try:
        token = bearer_token()
        if not token:
            return jsonify({"error": "Authorization header required"}), 401

        if not session_service.revoke_session(token):
            return jsonify({"error": "Invalid or expired token"}), 401

        return jsonify({"message": "Logout successful"}), 200

    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({
        "user": serialize_user(g.current_user),
        "permissions": sorted(permission_service.get_user_permissions(g.current_user.id)),
        "session": g.session_context.session.to_dict(),
    })
