# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/phonepos/routes/products.py
"""
Product catalog routes.

SECURITY: All routes require authentication.
- Read operations require VIEW_INVENTORY permission
- Write operations require MANAGE_PRODUCTS permission
"""
from flask import Blueprint, request, g, current_app

from ..services import products_service
from ..services.products_service import ProductInUseError
from ..services.stock_service import StockError
from ..validation import ValidationError, ConflictError, NotFoundError, coerce_positive_int
from ..decorators import require_auth, require_permission

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _parse_bool_arg(name: str):
    raw = request.args.get(name)
    if raw is None or raw == "":
        return None
    return raw.strip().lower() in {"1", "true", "yes"}


def _lookup_response(product):
    if product is None:
        return {"error": "Product not found"}, 404
    return product.to_dict()


@products_bp.get("")
@require_auth
@require_permission("VIEW_INVENTORY")
def list_products():
    """
    List products, newest first.

    Query params:
    - category_id: int (optional)
    - brand: str (optional)
    - is_active: bool (optional)
    - search: str (optional) - matches name, brand, model, sku, imei, barcode
    - ids: comma-separated product ids (optional) - batch lookup; other filters are ignored
    """
    if "ids" in request.args:
        try:
            ids = [coerce_positive_int(part, "ids") for part in request.args["ids"].split(",") if part.strip()]
        except ValidationError as e:
            return {"error": str(e)}, 400
        products = products_service.get_products(ids)
        found = {p.id for p in products}
        return {
            "items": [p.to_dict() for p in products],
            "count": len(products),
            "missing": [pid for pid in ids if pid not in found],
        }

    products = products_service.list_products(
        category_id=request.args.get("category_id", type=int),
        brand=request.args.get("brand") or None,
        is_active=_parse_bool_arg("is_active"),
        search=request.args.get("search") or None,
    )
    return {"items": [p.to_dict() for p in products], "count": len(products)}


@products_bp.get("/<int:product_id>")
@require_auth
@require_permission("VIEW_INVENTORY")
def get_product_route(product_id: int):
    try:
        return products_service.get_product(product_id).to_dict()
    except NotFoundError as e:
        return {"error": str(e)}, 404


@products_bp.get("/sku/<string:sku>")
@require_auth
@require_permission("VIEW_INVENTORY")
def get_by_sku_route(sku: str):
    return _lookup_response(products_service.get_by_sku(sku))


@products_bp.get("/imei/<string:imei>")
@require_auth
@require_permission("VIEW_INVENTORY")
def get_by_imei_route(imei: str):
    return _lookup_response(products_service.get_by_imei(imei))


@products_bp.get("/barcode/<string:barcode>")
@require_auth
@require_permission("VIEW_INVENTORY")
def get_by_barcode_route(barcode: str):
    return _lookup_response(products_service.get_by_barcode(barcode))


@products_bp.get("/brands")
@require_auth
@require_permission("VIEW_INVENTORY")
def list_brands_route():
    return {"brands": products_service.list_brands()}


@products_bp.get("/low-stock")
@require_auth
@require_permission("VIEW_INVENTORY")
def low_stock_route():
    return {"items": [p.to_dict() for p in products_service.list_low_stock()]}


@products_bp.get("/out-of-stock")
@require_auth
@require_permission("VIEW_INVENTORY")
def out_of_stock_route():
    return {"items": [p.to_dict() for p in products_service.list_out_of_stock()]}


@products_bp.get("/inventory-value")
@require_auth
@require_permission("VIEW_INVENTORY")
def inventory_value_route():
    return products_service.get_inventory_value()


@products_bp.post("")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def create_product_route():
    """
    Create a new product.

    A positive current_stock is recorded as an "Initial Stock" movement.
    """
    payload = request.get_json(silent=True) or {}

    try:
        created = products_service.create_product(payload, g.actor)
    except ConflictError as e:
        return {"error": str(e)}, 409
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except (ValidationError, StockError) as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to create product")
        return {"error": "Internal server error"}, 500

    return created.to_dict(), 201


@products_bp.put("/<int:product_id>")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def update_product_route(product_id: int):
    """
    Update a product.

    A changed current_stock is recorded as a "Stock Adjustment" movement.
    """
    payload = request.get_json(silent=True) or {}

    try:
        updated = products_service.update_product(product_id, payload, g.actor)
    except ConflictError as e:
        return {"error": str(e)}, 409
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ValidationError as e:
        return {"error": str(e)}, 400
    except StockError as e:
        return {"error": str(e), "details": e.details}, 400
    except Exception:
        current_app.logger.exception("Failed to update product")
        return {"error": "Internal server error"}, 500

    return updated.to_dict()


@products_bp.patch("/<int:product_id>/active")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def set_active_route(product_id: int):
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload.get("is_active"), bool):
        return {"error": "is_active must be a boolean"}, 400

    try:
        product = products_service.set_product_active(product_id, payload["is_active"])
    except NotFoundError as e:
        return {"error": str(e)}, 404

    return product.to_dict()


@products_bp.delete("/<int:product_id>")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def delete_product_route(product_id: int):
    """
    Delete a product.

    Refused with 409 once the product appears on any sale or purchase;
    deactivate it instead.
    """
    try:
        deleted_id = products_service.delete_product(product_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ProductInUseError as e:
        return {"error": str(e), "details": e.details}, 409
    except Exception:
        current_app.logger.exception("Failed to delete product")
        return {"error": "Internal server error"}, 500

    return {"message": "Product deleted successfully", "id": deleted_id}
