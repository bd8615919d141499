# Overview: Flask API routes for dashboard reports; parses input and returns JSON responses.

# backend/phonepos/routes/reports.py
"""Dashboard reporting. Read-only; requires VIEW_REPORTS."""

from flask import Blueprint, request, jsonify

from ..services import reporting_service
from ..decorators import require_auth, require_permission

reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/overview")
@require_auth
@require_permission("VIEW_REPORTS")
def overview_route():
    """Today's figures, all-time totals, stock health and a 12-month series."""
    return jsonify(reporting_service.get_overview())


@reports_bp.get("/top-products")
@require_auth
@require_permission("VIEW_REPORTS")
def top_products_route():
    limit = request.args.get("limit", default=10, type=int) or 10
    limit = max(1, min(limit, 100))
    return jsonify({"items": reporting_service.get_top_products(limit=limit)})


@reports_bp.get("/recent-activity")
@require_auth
@require_permission("VIEW_REPORTS")
def recent_activity_route():
    return jsonify(reporting_service.get_recent_activity())
