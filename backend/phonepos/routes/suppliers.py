# Overview: Flask API routes for supplier operations; parses input and returns JSON responses.

# backend/phonepos/routes/suppliers.py
from flask import Blueprint, request

from ..services import supplier_service
from ..services.supplier_service import SupplierInUseError
from ..validation import ValidationError, NotFoundError
from ..decorators import require_auth, require_permission

suppliers_bp = Blueprint("suppliers", __name__, url_prefix="/api/suppliers")


@suppliers_bp.get("")
@require_auth
@require_permission("VIEW_PURCHASES")
def list_suppliers_route():
    """Query params: search, active_only=true"""
    active_only = (request.args.get("active_only") or "").lower() in {"1", "true", "yes"}
    suppliers = supplier_service.list_suppliers(
        search=request.args.get("search") or None,
        active_only=active_only,
    )
    return {"items": [s.to_dict() for s in suppliers]}


@suppliers_bp.get("/<int:supplier_id>")
@require_auth
@require_permission("VIEW_PURCHASES")
def get_supplier_route(supplier_id: int):
    try:
        return supplier_service.get_supplier(supplier_id).to_dict()
    except NotFoundError as e:
        return {"error": str(e)}, 404


@suppliers_bp.post("")
@require_auth
@require_permission("MANAGE_SUPPLIERS")
def create_supplier_route():
    payload = request.get_json(silent=True) or {}
    try:
        supplier = supplier_service.create_supplier(payload)
    except ValidationError as e:
        return {"error": str(e)}, 400
    return supplier.to_dict(), 201


@suppliers_bp.put("/<int:supplier_id>")
@require_auth
@require_permission("MANAGE_SUPPLIERS")
def update_supplier_route(supplier_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        supplier = supplier_service.update_supplier(supplier_id, payload)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ValidationError as e:
        return {"error": str(e)}, 400
    return supplier.to_dict()


@suppliers_bp.delete("/<int:supplier_id>")
@require_auth
@require_permission("MANAGE_SUPPLIERS")
def delete_supplier_route(supplier_id: int):
    try:
        deleted_id = supplier_service.delete_supplier(supplier_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except SupplierInUseError as e:
        return {"error": str(e)}, 409
    return {"message": "Supplier deleted successfully", "id": deleted_id}
