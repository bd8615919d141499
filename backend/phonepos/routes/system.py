# backend/phonepos/routes/system.py
"""
System health endpoint.

Checks the database and the auth seed data the API depends on.
"""

import time

from flask import Blueprint, current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Permission, Product, Role, User
from ..permissions import DEFAULT_ROLE_PERMISSIONS
from phonepos.time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)


def _elapsed_ms(start_time: float) -> float:
    return round((time.time() - start_time) * 1000, 2)


def check_database_health() -> dict:
    start_time = time.time()
    try:
        details = {
            "products": db.session.query(Product).count(),
            "users": db.session.query(User).count(),
        }
        return {"status": "healthy", "latency_ms": _elapsed_ms(start_time), "details": details}
    except SQLAlchemyError:
        current_app.logger.exception("Database health check failed")
        return {"status": "unhealthy", "latency_ms": _elapsed_ms(start_time), "error": "Database error"}


def check_auth_health() -> dict:
    """Roles and permissions must be seeded (`flask system init`)."""
    start_time = time.time()
    try:
        existing = {name for (name,) in db.session.query(Role.name).all()}
        missing_roles = sorted(set(DEFAULT_ROLE_PERMISSIONS) - existing)
        permission_count = db.session.query(Permission).count()
    except SQLAlchemyError:
        current_app.logger.exception("Auth health check failed")
        return {"status": "unhealthy", "latency_ms": _elapsed_ms(start_time), "error": "Auth service error"}

    result = {
        "status": "healthy",
        "latency_ms": _elapsed_ms(start_time),
        "details": {
            "permissions_initialized": permission_count > 0,
            "permission_count": permission_count,
        },
    }
    if missing_roles or permission_count == 0:
        result["status"] = "degraded"
        if missing_roles:
            result["warning"] = f"Missing roles: {', '.join(missing_roles)}"
    return result


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: healthy or degraded
    - 503: database unreachable
    """
    start_time = time.time()
    database_health = check_database_health()
    auth_health = check_auth_health()

    checks = [database_health, auth_health]
    if any(c["status"] == "unhealthy" for c in checks):
        overall_status, http_status = "unhealthy", 503
    elif any(c["status"] == "degraded" for c in checks):
        overall_status, http_status = "degraded", 200
    else:
        overall_status, http_status = "healthy", 200

    return {
        "status": overall_status,
        "app": current_app.config.get("APP_NAME"),
        "timestamp": to_utc_z(utcnow()),
        "total_latency_ms": _elapsed_ms(start_time),
        "checks": {
            "database": database_health,
            "auth_service": auth_health,
        },
    }, http_status
