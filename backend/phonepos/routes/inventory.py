# Overview: Flask API routes for inventory operations; parses input and returns JSON responses.

# backend/phonepos/routes/inventory.py
"""
Stock ledger routes.

Every stock change is a StockMovement; there is no endpoint that writes
current_stock directly.
"""
from flask import Blueprint, request, g, current_app

from ..services import stock_service
from ..services.stock_service import StockError, REASON_STOCK_ADJUSTMENT, REFERENCE_ADJUSTMENT
from ..validation import ValidationError, NotFoundError, coerce_optional_str, coerce_positive_int
from ..decorators import require_auth, require_permission

inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.post("/adjust")
@require_auth
@require_permission("ADJUST_INVENTORY")
def adjust_stock_route():
    """
    Manual stock correction.

    Body: {"product_id", "quantity" (> 0), "direction" ("in"|"out"),
           "reason"?, "reference"?}
    """
    payload = request.get_json(silent=True) or {}

    try:
        product_id = coerce_positive_int(payload.get("product_id"), "product_id")
        quantity = coerce_positive_int(payload.get("quantity"), "quantity")
        direction = (coerce_optional_str(payload.get("direction"), "direction") or "").lower()
        reason = coerce_optional_str(payload.get("reason"), "reason") or REASON_STOCK_ADJUSTMENT
        reference = coerce_optional_str(payload.get("reference"), "reference") or REFERENCE_ADJUSTMENT

        product = stock_service.adjust_stock(
            product_id=product_id,
            quantity=quantity,
            direction=direction,
            reason=reason,
            actor=g.actor,
            reference=reference,
        )
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ValidationError as e:
        return {"error": str(e)}, 400
    except StockError as e:
        return {"error": str(e), "details": e.details}, 400
    except Exception:
        current_app.logger.exception("Failed to adjust stock")
        return {"error": "Internal server error"}, 500

    return {"product": product.to_dict()}


@inventory_bp.get("/movements")
@require_auth
@require_permission("VIEW_INVENTORY")
def list_movements_route():
    limit = min(request.args.get("limit", default=50, type=int) or 50, 500)
    movements = stock_service.list_stock_movements(
        product_id=request.args.get("product_id", type=int),
        limit=limit,
    )
    return {"items": [m.to_dict() for m in movements]}


@inventory_bp.get("/ledger/verify")
@require_auth
@require_permission("VIEW_INVENTORY")
def verify_ledger_route():
    """Replay each product's movements and report any drift from current_stock."""
    mismatches = stock_service.verify_ledger(product_id=request.args.get("product_id", type=int))
    return {"consistent": not mismatches, "mismatches": mismatches}
