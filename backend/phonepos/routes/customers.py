# Overview: Flask API routes for customer operations; parses input and returns JSON responses.

# backend/phonepos/routes/customers.py
from flask import Blueprint, request

from ..services import customer_service
from ..validation import ValidationError, NotFoundError
from ..decorators import require_auth, require_permission

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
@require_auth
@require_permission("VIEW_CUSTOMERS")
def list_customers_route():
    customers = customer_service.list_customers(search=request.args.get("search") or None)
    return {"items": [c.to_dict() for c in customers]}


@customers_bp.get("/<int:customer_id>")
@require_auth
@require_permission("VIEW_CUSTOMERS")
def get_customer_route(customer_id: int):
    try:
        return customer_service.get_customer(customer_id).to_dict()
    except NotFoundError as e:
        return {"error": str(e)}, 404


@customers_bp.post("")
@require_auth
@require_permission("MANAGE_CUSTOMERS")
def create_customer_route():
    payload = request.get_json(silent=True) or {}
    try:
        customer = customer_service.create_customer(payload)
    except ValidationError as e:
        return {"error": str(e)}, 400
    return customer.to_dict(), 201


@customers_bp.put("/<int:customer_id>")
@require_auth
@require_permission("MANAGE_CUSTOMERS")
def update_customer_route(customer_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        customer = customer_service.update_customer(customer_id, payload)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ValidationError as e:
        return {"error": str(e)}, 400
    return customer.to_dict()
