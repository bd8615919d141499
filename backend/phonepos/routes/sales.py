# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/phonepos/routes/sales.py
"""Sales API routes with permission enforcement"""

from datetime import date

from flask import Blueprint, request, jsonify, g, current_app

from ..services import sales_service
from ..services.sales_service import SaleError
from ..services.stock_service import StockError
from ..validation import ValidationError, NotFoundError
from ..decorators import require_auth, require_permission
from phonepos.time_utils import parse_iso_datetime, utcnow


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
@require_auth
@require_permission("CREATE_SALE")
def create_sale_route():
    """
    Record a checkout in one step.

    Requires: CREATE_SALE permission
    Available to: admin, manager, cashier

    Body:
        items: [{"product_id", "quantity", "unit_price_cents", "imei"?}, ...]
        discount_cents, payment_method, customer_id?, customer_name?,
        payment_details?, delivery_info?
    """
    try:
        data = request.get_json(silent=True) or {}

        sale = sales_service.create_sale(
            items=data.get("items"),
            discount_cents=data.get("discount_cents", 0),
            payment_method=data.get("payment_method"),
            actor=g.actor,
            customer_id=data.get("customer_id"),
            customer_name=data.get("customer_name"),
            payment_details=data.get("payment_details"),
            delivery_info=data.get("delivery_info"),
        )

        return jsonify({"sale": sale.to_dict()}), 201

    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except (SaleError, StockError) as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("")
@require_auth
@require_permission("VIEW_SALES")
def list_sales_route():
    """
    List sales, newest first.

    Query params: limit, start, end (ISO-8601), payment_method
    """
    try:
        start = parse_iso_datetime(request.args.get("start"))
        end = parse_iso_datetime(request.args.get("end"))
    except ValueError:
        return jsonify({"error": "start and end must be ISO-8601 datetimes"}), 400

    limit = min(request.args.get("limit", default=50, type=int) or 50, 500)
    sales = sales_service.list_sales(
        limit=limit,
        start=start,
        end=end,
        payment_method=request.args.get("payment_method") or None,
    )
    return jsonify({"sales": [s.to_dict() for s in sales], "count": len(sales)})


@sales_bp.get("/<int:sale_id>")
@require_auth
@require_permission("VIEW_SALES")
def get_sale_route(sale_id: int):
    try:
        return jsonify({"sale": sales_service.get_sale(sale_id).to_dict()})
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@sales_bp.patch("/<int:sale_id>/status")
@require_auth
@require_permission("UPDATE_SALE_STATUS")
def update_status_route(sale_id: int):
    """Change a sale's status (e.g. a COD order once delivered). Stock is untouched."""
    try:
        data = request.get_json(silent=True) or {}
        sale = sales_service.update_sale_status(sale_id, data.get("status"))
        return jsonify({"sale": sale.to_dict()})

    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to update sale status")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/daily-summary")
@require_auth
@require_permission("VIEW_SALES")
def daily_summary_route():
    """Query param: date=YYYY-MM-DD (defaults to today, UTC)."""
    raw = request.args.get("date")
    if raw:
        try:
            day = date.fromisoformat(raw)
        except ValueError:
            return jsonify({"error": "date must be YYYY-MM-DD"}), 400
    else:
        day = utcnow().date()

    return jsonify(sales_service.get_daily_summary(day))


@sales_bp.get("/payment-stats")
@require_auth
@require_permission("VIEW_SALES")
def payment_stats_route():
    return jsonify(sales_service.get_payment_stats())


@sales_bp.get("/transactions")
@require_auth
@require_permission("VIEW_SALES")
def list_transactions_route():
    """Mobile-banking payment transactions, newest first."""
    limit = min(request.args.get("limit", default=50, type=int) or 50, 500)
    transactions = sales_service.list_transactions(
        limit=limit,
        payment_method=request.args.get("payment_method") or None,
    )
    return jsonify({"transactions": [t.to_dict() for t in transactions]})
