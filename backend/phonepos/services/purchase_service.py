# Overview: Purchase orders from suppliers and receiving them into stock.

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import func

from ..extensions import db
from ..models import Product, Purchase, PurchaseLine, Supplier
from ..validation import (
    NotFoundError,
    ValidationError,
    coerce_non_negative_int,
    coerce_optional_str,
    coerce_positive_int,
)
from phonepos.time_utils import parse_iso_datetime, utcnow
from .concurrency import begin_write, lock_for_update, run_with_retry
from .document_service import PURCHASE_DOCUMENT, next_document_number
from .session_service import ActorContext
from .stock_service import DIRECTION_IN, REASON_PURCHASE_RECEIVED, apply_stock_change

"""
Purchase Invariants (authoritative)

- A purchase is created "pending" and has no stock effect until received.
- Only a pending purchase can be received or cancelled; both are terminal.
- Receiving writes stock through stock_service.apply_stock_change():
    - with IMEIs: one movement per IMEI (quantity 1, tagged with the IMEI),
      each carrying its own running previous/new stock
    - without IMEIs: one aggregate movement for the received quantity
- All received items are validated before any stock changes, so a failed
  receive leaves stock and the purchase untouched.
"""

logger = logging.getLogger(__name__)

PURCHASE_STATUS_PENDING = "pending"
PURCHASE_STATUS_RECEIVED = "received"
PURCHASE_STATUS_CANCELLED = "cancelled"


class PurchaseError(Exception):
    """Raised for purchase validation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class PurchaseStateError(PurchaseError):
    """Raised when a purchase is not in the state the operation needs."""


def _normalize_imeis(raw, field: str) -> list[str]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValidationError(f"{field} must be a list")
    imeis = [str(value).strip() for value in raw if value is not None and str(value).strip()]
    if len(set(imeis)) != len(imeis):
        raise ValidationError(f"{field} contains duplicate IMEI numbers")
    return imeis


def _normalize_order_items(items) -> list[dict]:
    if not isinstance(items, list) or not items:
        raise PurchaseError("Purchase must have at least one item")

    normalized = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError(f"items[{index}] must be an object")
        if item.get("product_id") is None:
            raise ValidationError(f"items[{index}].product_id is required")
        normalized.append({
            "product_id": coerce_positive_int(item["product_id"], f"items[{index}].product_id"),
            "quantity": coerce_positive_int(item.get("quantity"), f"items[{index}].quantity"),
            "unit_cost_cents": coerce_non_negative_int(
                item.get("unit_cost_cents"), f"items[{index}].unit_cost_cents"
            ),
            "imei_numbers": _normalize_imeis(item.get("imei_numbers"), f"items[{index}].imei_numbers"),
        })
    return normalized


def _normalize_received_items(items) -> list[dict]:
    if not isinstance(items, list) or not items:
        raise PurchaseError("No items to receive")

    normalized = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError(f"received_items[{index}] must be an object")
        if item.get("product_id") is None:
            raise ValidationError(f"received_items[{index}].product_id is required")

        imeis = _normalize_imeis(item.get("imei_numbers"), f"received_items[{index}].imei_numbers")
        raw_quantity = item.get("received_quantity")
        if raw_quantity is None and imeis:
            quantity = len(imeis)
        else:
            quantity = coerce_positive_int(raw_quantity, f"received_items[{index}].received_quantity")

        if imeis and len(imeis) != quantity:
            raise PurchaseError(
                f"IMEI count ({len(imeis)}) does not match received quantity ({quantity})",
                details={"index": index, "imei_count": len(imeis), "received_quantity": quantity},
            )

        normalized.append({
            "product_id": coerce_positive_int(item["product_id"], f"received_items[{index}].product_id"),
            "received_quantity": quantity,
            "imei_numbers": imeis,
        })
    return normalized


def create_purchase(
    supplier_id: int,
    items: list[dict],
    tax_cents: int,
    actor: ActorContext,
    expected_date=None,
    notes: str | None = None,
) -> Purchase:
    """
    Create a pending purchase order.

    items: [{"product_id", "quantity", "unit_cost_cents", "imei_numbers"?}, ...]
    """
    supplier_id = coerce_positive_int(supplier_id, "supplier_id")
    lines = _normalize_order_items(items)
    tax_cents = coerce_non_negative_int(tax_cents or 0, "tax_cents")
    notes = coerce_optional_str(notes, "notes")
    if expected_date is not None and not isinstance(expected_date, (str, datetime)):
        raise ValidationError("expected_date must be an ISO-8601 datetime")
    try:
        expected_dt = parse_iso_datetime(expected_date) if isinstance(expected_date, str) else expected_date
    except ValueError:
        raise ValidationError("expected_date must be an ISO-8601 datetime")

    def _op():
        begin_write()
        supplier = db.session.get(Supplier, supplier_id)
        if not supplier:
            raise NotFoundError("Supplier not found")

        product_ids = {line["product_id"] for line in lines}
        products = {
            p.id: p
            for p in db.session.query(Product).filter(Product.id.in_(product_ids)).all()
        }
        for line in lines:
            if line["product_id"] not in products:
                raise NotFoundError(f"Product not found: {line['product_id']}")

        subtotal_cents = sum(line["quantity"] * line["unit_cost_cents"] for line in lines)

        purchase = Purchase(
            purchase_number=next_document_number(PURCHASE_DOCUMENT),
            supplier_id=supplier.id,
            supplier_name=supplier.name,
            subtotal_cents=subtotal_cents,
            tax_cents=tax_cents,
            total_cents=subtotal_cents + tax_cents,
            status=PURCHASE_STATUS_PENDING,
            order_date=utcnow(),
            expected_date=expected_dt,
            user_id=actor.user_id,
            user_name=actor.display_name,
            notes=notes,
        )
        db.session.add(purchase)
        db.session.flush()

        for line in lines:
            product = products[line["product_id"]]
            db.session.add(PurchaseLine(
                purchase_id=purchase.id,
                product_id=product.id,
                product_name=product.name,
                quantity=line["quantity"],
                unit_cost_cents=line["unit_cost_cents"],
                line_total_cents=line["quantity"] * line["unit_cost_cents"],
                imei_numbers=line["imei_numbers"] or None,
            ))

        db.session.commit()
        logger.info("Purchase created: %s total=%s", purchase.purchase_number, purchase.total_cents)
        return purchase

    return run_with_retry(_op)


def _lock_pending_purchase(purchase_id: int, action: str) -> Purchase:
    purchase = lock_for_update(db.session.query(Purchase).filter_by(id=purchase_id)).first()
    if not purchase:
        raise NotFoundError("Purchase not found")
    if purchase.status != PURCHASE_STATUS_PENDING:
        raise PurchaseStateError(
            f"Purchase order is not pending; cannot {action}",
            details={"purchase_id": purchase_id, "status": purchase.status},
        )
    return purchase


def receive_purchase(purchase_id: int, received_items: list[dict], actor: ActorContext) -> Purchase:
    """
    Receive a pending purchase into stock.

    received_items: [{"product_id", "received_quantity", "imei_numbers"?}, ...]
    """
    items = _normalize_received_items(received_items)

    def _op():
        begin_write()
        purchase = _lock_pending_purchase(purchase_id, "receive")

        product_ids = sorted({item["product_id"] for item in items})
        products = {
            p.id: p
            for p in lock_for_update(
                db.session.query(Product).filter(Product.id.in_(product_ids)).order_by(Product.id.asc())
            ).all()
        }
        missing = [pid for pid in product_ids if pid not in products]
        if missing:
            raise NotFoundError(f"Product not found: {missing[0]}")

        lines_by_product: dict[int, PurchaseLine] = {}
        for line in purchase.lines:
            lines_by_product.setdefault(line.product_id, line)

        for item in items:
            product = products[item["product_id"]]
            if item["imei_numbers"]:
                for imei in item["imei_numbers"]:
                    apply_stock_change(
                        product,
                        DIRECTION_IN,
                        1,
                        REASON_PURCHASE_RECEIVED,
                        actor,
                        reference=purchase.purchase_number,
                        imei=imei,
                    )
            else:
                apply_stock_change(
                    product,
                    DIRECTION_IN,
                    item["received_quantity"],
                    REASON_PURCHASE_RECEIVED,
                    actor,
                    reference=purchase.purchase_number,
                )

            line = lines_by_product.get(product.id)
            if line is not None:
                line.received_quantity = (line.received_quantity or 0) + item["received_quantity"]

        purchase.status = PURCHASE_STATUS_RECEIVED
        purchase.received_date = utcnow()
        db.session.commit()

        logger.info(
            "Purchase received: %s items=%s by %s",
            purchase.purchase_number,
            sum(item["received_quantity"] for item in items),
            actor.display_name,
        )
        return purchase

    return run_with_retry(_op)


def cancel_purchase(purchase_id: int) -> Purchase:
    def _op():
        begin_write()
        purchase = _lock_pending_purchase(purchase_id, "cancel")
        purchase.status = PURCHASE_STATUS_CANCELLED
        db.session.commit()
        logger.info("Purchase cancelled: %s", purchase.purchase_number)
        return purchase

    return run_with_retry(_op)


def get_purchase(purchase_id: int) -> Purchase:
    purchase = db.session.get(Purchase, purchase_id)
    if not purchase:
        raise NotFoundError("Purchase not found")
    return purchase


def list_purchases(
    supplier_id: int | None = None,
    status: str | None = None,
    limit: int = 50,
) -> list[Purchase]:
    q = db.session.query(Purchase)
    if supplier_id is not None:
        q = q.filter(Purchase.supplier_id == supplier_id)
    if status:
        q = q.filter(Purchase.status == status)
    return q.order_by(Purchase.id.desc()).limit(limit).all()


def get_purchase_stats() -> dict:
    rows = (
        db.session.query(Purchase.status, func.count(Purchase.id), func.coalesce(func.sum(Purchase.total_cents), 0))
        .group_by(Purchase.status)
        .all()
    )
    by_status = {status: (count, int(total)) for status, count, total in rows}
    pending = by_status.get(PURCHASE_STATUS_PENDING, (0, 0))
    received = by_status.get(PURCHASE_STATUS_RECEIVED, (0, 0))

    return {
        "total_purchases": sum(count for count, _ in by_status.values()),
        "pending_purchases": pending[0],
        "received_purchases": received[0],
        "total_purchase_value_cents": received[1],
        "pending_value_cents": pending[1],
    }
