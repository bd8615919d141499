# Overview: Bearer-session and permission guards for API routes.

"""
Usage, outermost first:

    @bp.post("/adjust")
    @require_auth
    @require_permission("ADJUST_INVENTORY")
    def adjust_stock_route(): ...

require_auth answers 401 (no session), require_permission answers 403
(session present, permission missing). Handlers read the caller from
g.current_user and pass g.actor to services.
"""

from functools import wraps

from flask import g, jsonify, request

from .services import permission_service, session_service
from .services.permission_service import PermissionDeniedError
from .services.session_service import ActorContext


def bearer_token() -> str | None:
    """Token from "Authorization: Bearer <token>", or None."""
    header = request.headers.get("Authorization") or ""
    scheme, _, token = header.partition(" ")
    if scheme != "Bearer" or not token.strip():
        return None
    return token.strip()


def require_auth(f):
    """
    Resolve the bearer token to an active user.

    Populates g.current_user, g.actor and g.session_context. Expired,
    revoked or unknown tokens and deactivated accounts all get 401.
    """
    @wraps(f)
    def wrapper(*args, **kwargs):
        token = bearer_token()
        if token is None:
            return jsonify({"error": "Authentication required"}), 401

        context = session_service.validate_session(token)
        if context is None:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.session_context = context
        g.current_user = context.user
        g.actor = ActorContext.for_user(
            context.user, permission_service.get_user_role_name(context.user.id)
        )
        return f(*args, **kwargs)

    return wrapper


def require_permission(permission_code: str):
    def decorator(f):
        @wraps(f)
        def wrapper(*args, **kwargs):
            user = getattr(g, "current_user", None)
            if user is None:
                return jsonify({"error": "Authentication required"}), 401

            try:
                permission_service.require_permission(user.id, permission_code, resource=request.path)
            except PermissionDeniedError as e:
                return jsonify({
                    "error": "Permission denied",
                    "required_permission": permission_code,
                    "message": str(e),
                }), 403

            return f(*args, **kwargs)

        return wrapper
    return decorator
