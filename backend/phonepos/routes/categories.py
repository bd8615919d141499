# Overview: Flask API routes for category operations; parses input and returns JSON responses.

# backend/phonepos/routes/categories.py
from flask import Blueprint, request

from ..services import categories_service
from ..services.categories_service import CategoryInUseError
from ..validation import ValidationError, ConflictError, NotFoundError
from ..decorators import require_auth, require_permission

categories_bp = Blueprint("categories", __name__, url_prefix="/api/categories")


@categories_bp.get("")
@require_auth
@require_permission("VIEW_INVENTORY")
def list_categories_route():
    """Categories by name, each with its product count."""
    counts = categories_service.get_product_counts()
    items = []
    for category in categories_service.list_categories():
        data = category.to_dict()
        data["product_count"] = counts.get(category.id, 0)
        items.append(data)
    return {"items": items}


@categories_bp.get("/<int:category_id>")
@require_auth
@require_permission("VIEW_INVENTORY")
def get_category_route(category_id: int):
    try:
        data = categories_service.get_category(category_id).to_dict()
        data["product_count"] = categories_service.get_product_count(category_id)
        return data
    except NotFoundError as e:
        return {"error": str(e)}, 404


@categories_bp.post("")
@require_auth
@require_permission("MANAGE_CATEGORIES")
def create_category_route():
    payload = request.get_json(silent=True) or {}
    try:
        category = categories_service.create_category(payload)
    except ConflictError as e:
        return {"error": str(e)}, 409
    except ValidationError as e:
        return {"error": str(e)}, 400
    return category.to_dict(), 201


@categories_bp.put("/<int:category_id>")
@require_auth
@require_permission("MANAGE_CATEGORIES")
def update_category_route(category_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        category = categories_service.update_category(category_id, payload)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    except ValidationError as e:
        return {"error": str(e)}, 400
    return category.to_dict()


@categories_bp.delete("/<int:category_id>")
@require_auth
@require_permission("MANAGE_CATEGORIES")
def delete_category_route(category_id: int):
    try:
        deleted_id = categories_service.delete_category(category_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except CategoryInUseError as e:
        return {"error": str(e)}, 409
    return {"message": "Category deleted successfully", "id": deleted_id}
