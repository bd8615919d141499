# Overview: Stock ledger; the only code path that changes Product.current_stock.

from __future__ import annotations

import logging

from ..extensions import db
from ..models import Product, StockMovement
from ..validation import NotFoundError, ValidationError
from .concurrency import begin_write, lock_for_update, run_with_retry
from .session_service import ActorContext

"""
Stock Ledger Invariants (authoritative)

- Product.current_stock is a materialized quantity; StockMovement rows are
  its append-only history.
- Every change to current_stock goes through apply_stock_change(), which
  writes the paired movement in the same DB transaction.
- current_stock never goes below zero (also a CHECK constraint).
- Folding a product's movements in id order (+quantity for "in",
  -quantity for "out") reproduces current_stock exactly.
- Movements are only deleted together with their product.
"""

logger = logging.getLogger(__name__)

DIRECTION_IN = "in"
DIRECTION_OUT = "out"
DIRECTIONS = (DIRECTION_IN, DIRECTION_OUT)

REASON_SALE = "Sale"
REASON_PURCHASE_RECEIVED = "Purchase received"
REASON_INITIAL_STOCK = "Initial Stock"
REASON_STOCK_ADJUSTMENT = "Stock Adjustment"

REFERENCE_INITIAL = "INITIAL"
REFERENCE_ADJUSTMENT = "ADJUSTMENT"


class StockError(Exception):
    """Raised when a stock change would break the ledger invariants."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def apply_stock_change(
    product: Product,
    direction: str,
    quantity: int,
    reason: str,
    actor: ActorContext,
    *,
    reference: str | None = None,
    imei: str | None = None,
) -> StockMovement:
    """
    Change a product's stock and append the matching movement.

    Caller owns the transaction: the product should already be locked and
    nothing is committed here.
    """
    if direction not in DIRECTIONS:
        raise ValidationError("direction must be 'in' or 'out'")
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValidationError("quantity must be a positive integer")
    if not reason or not str(reason).strip():
        raise ValidationError("reason is required")

    previous = product.current_stock
    new_stock = previous + quantity if direction == DIRECTION_IN else previous - quantity
    if new_stock < 0:
        raise StockError(
            f"Insufficient stock for {product.name}. Available: {previous}",
            details={
                "product_id": product.id,
                "available": previous,
                "requested": quantity,
            },
        )

    product.current_stock = new_stock

    movement = StockMovement(
        product_id=product.id,
        product_name=product.name,
        imei=imei if imei is not None else product.imei,
        direction=direction,
        quantity=quantity,
        reason=str(reason).strip(),
        reference=reference,
        user_id=actor.user_id,
        user_name=actor.display_name,
        previous_stock=previous,
        new_stock=new_stock,
    )
    db.session.add(movement)
    db.session.flush()
    return movement


def adjust_stock(
    product_id: int,
    quantity: int,
    direction: str,
    reason: str,
    actor: ActorContext,
    reference: str | None = None,
) -> Product:
    """Manual stock correction (damage, recount, found stock)."""
    def _op():
        begin_write()
        product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
        if not product:
            raise NotFoundError("Product not found")

        movement = apply_stock_change(
            product,
            direction,
            quantity,
            reason,
            actor,
            reference=reference,
        )
        db.session.commit()
        logger.info(
            "Stock adjusted: product=%s %s %s (%s -> %s) by %s",
            product.id,
            direction,
            quantity,
            movement.previous_stock,
            movement.new_stock,
            actor.display_name,
        )
        return product

    return run_with_retry(_op)


def list_stock_movements(product_id: int | None = None, limit: int = 50) -> list[StockMovement]:
    q = db.session.query(StockMovement)
    if product_id is not None:
        q = q.filter(StockMovement.product_id == product_id)
    return q.order_by(StockMovement.id.desc()).limit(limit).all()


def replay_ledger(product_id: int) -> int:
    """Stock level implied by folding the product's movements from zero."""
    movements = (
        db.session.query(StockMovement)
        .filter_by(product_id=product_id)
        .order_by(StockMovement.id.asc())
        .all()
    )
    return sum(m.signed_quantity for m in movements)


def verify_ledger(product_id: int | None = None) -> list[dict]:
    """
    Compare each product's current_stock with its replayed ledger.

    Returns one row per mismatching product; an empty list means consistent.
    """
    q = db.session.query(Product)
    if product_id is not None:
        q = q.filter(Product.id == product_id)

    mismatches = []
    for product in q.order_by(Product.id.asc()).all():
        replayed = replay_ledger(product.id)
        if replayed != product.current_stock:
            mismatches.append({
                "product_id": product.id,
                "sku": product.sku,
                "current_stock": product.current_stock,
                "ledger_stock": replayed,
            })
    return mismatches
