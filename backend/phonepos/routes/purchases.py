# Overview: Flask API routes for purchase order operations; parses input and returns JSON responses.

# backend/phonepos/routes/purchases.py
"""
Purchase order routes.

Lifecycle: pending -> received | cancelled. Receiving is the only step that
touches stock.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import purchase_service
from ..services.purchase_service import PurchaseError, PurchaseStateError
from ..services.stock_service import StockError
from ..validation import ValidationError, NotFoundError
from ..decorators import require_auth, require_permission


purchases_bp = Blueprint("purchases", __name__, url_prefix="/api/purchases")


@purchases_bp.post("")
@require_auth
@require_permission("CREATE_PURCHASE")
def create_purchase_route():
    """
    Create a pending purchase order.

    Body:
        supplier_id, items: [{"product_id", "quantity", "unit_cost_cents",
        "imei_numbers"?}, ...], tax_cents?, expected_date?, notes?
    """
    try:
        data = request.get_json(silent=True) or {}
        if data.get("supplier_id") is None:
            return jsonify({"error": "supplier_id required"}), 400

        purchase = purchase_service.create_purchase(
            supplier_id=data["supplier_id"],
            items=data.get("items"),
            tax_cents=data.get("tax_cents", 0),
            actor=g.actor,
            expected_date=data.get("expected_date"),
            notes=data.get("notes"),
        )
        return jsonify({"purchase": purchase.to_dict()}), 201

    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except PurchaseError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        current_app.logger.exception("Failed to create purchase")
        return jsonify({"error": "Internal server error"}), 500


@purchases_bp.get("")
@require_auth
@require_permission("VIEW_PURCHASES")
def list_purchases_route():
    limit = min(request.args.get("limit", default=50, type=int) or 50, 500)
    purchases = purchase_service.list_purchases(
        supplier_id=request.args.get("supplier_id", type=int),
        status=request.args.get("status") or None,
        limit=limit,
    )
    return jsonify({"purchases": [p.to_dict(include_lines=False) for p in purchases]})


@purchases_bp.get("/stats")
@require_auth
@require_permission("VIEW_PURCHASES")
def purchase_stats_route():
    return jsonify(purchase_service.get_purchase_stats())


@purchases_bp.get("/<int:purchase_id>")
@require_auth
@require_permission("VIEW_PURCHASES")
def get_purchase_route(purchase_id: int):
    try:
        return jsonify({"purchase": purchase_service.get_purchase(purchase_id).to_dict()})
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@purchases_bp.post("/<int:purchase_id>/receive")
@require_auth
@require_permission("RECEIVE_PURCHASE")
def receive_purchase_route(purchase_id: int):
    """
    Receive a pending purchase into stock.

    Body: {"received_items": [{"product_id", "received_quantity",
           "imei_numbers"?}, ...]}

    Returns 409 when the purchase is no longer pending.
    """
    try:
        data = request.get_json(silent=True) or {}
        purchase = purchase_service.receive_purchase(
            purchase_id,
            data.get("received_items"),
            g.actor,
        )
        return jsonify({"purchase": purchase.to_dict(), "message": "Purchase received"})

    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except PurchaseStateError as e:
        return jsonify({"error": str(e), "details": e.details}), 409
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except (PurchaseError, StockError) as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        current_app.logger.exception("Failed to receive purchase")
        return jsonify({"error": "Internal server error"}), 500


@purchases_bp.post("/<int:purchase_id>/cancel")
@require_auth
@require_permission("CANCEL_PURCHASE")
def cancel_purchase_route(purchase_id: int):
    try:
        purchase = purchase_service.cancel_purchase(purchase_id)
        return jsonify({"purchase": purchase.to_dict(), "message": "Purchase cancelled"})

    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except PurchaseStateError as e:
        return jsonify({"error": str(e), "details": e.details}), 409
    except Exception:
        current_app.logger.exception("Failed to cancel purchase")
        return jsonify({"error": "Internal server error"}), 500
