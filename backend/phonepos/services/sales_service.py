"""
Sales Service - one-shot POS checkout

A sale is written once, complete: lines, totals, stock decrements and
ledger entries commit together or not at all. Afterwards only its status
can change.

TWO PHASES inside one transaction:
1. Validate every line (product exists, quantity > 0, price >= 0, and the
   cumulative quantity per product fits the on-hand stock) before anything
   is written.
2. Lock the touched products in ascending id order, allocate the sale
   number, decrement stock through stock_service and write the sale.
"""

from __future__ import annotations

import logging
from datetime import date, datetime

from sqlalchemy import func

from ..extensions import db
from ..models import Customer, PaymentTransaction, Product, Sale, SaleLine, SALE_STATUSES
from ..validation import (
    NotFoundError,
    ValidationError,
    coerce_non_negative_int,
    coerce_optional_str,
    coerce_positive_int,
)
from phonepos.time_utils import day_bounds, utcnow
from .concurrency import begin_write, lock_for_update, run_with_retry
from .document_service import SALE_DOCUMENT, next_document_number
from .session_service import ActorContext
from .stock_service import DIRECTION_OUT, REASON_SALE, apply_stock_change

logger = logging.getLogger(__name__)

# Fixed 5% VAT, in basis points
VAT_RATE_BPS = 500

CASH_ON_DELIVERY = "cod"
MOBILE_BANKING_METHODS = {"bkash", "nagad", "rocket", "upay"}
WALK_IN_CUSTOMER = "Walk-in Customer"


class SaleError(Exception):
    """Raised for sale operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def compute_tax_cents(subtotal_cents: int) -> int:
    """VAT on the subtotal, rounded half-up to the minor unit."""
    return (subtotal_cents * VAT_RATE_BPS + 5000) // 10000


def _normalize_items(items) -> list[dict]:
    if not isinstance(items, list) or not items:
        raise SaleError("Sale must have at least one item")

    normalized = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError(f"items[{index}] must be an object")
        if item.get("product_id") is None:
            raise ValidationError(f"items[{index}].product_id is required")
        imei = item.get("imei")
        normalized.append({
            "product_id": coerce_positive_int(item["product_id"], f"items[{index}].product_id"),
            "quantity": coerce_positive_int(item.get("quantity"), f"items[{index}].quantity"),
            "unit_price_cents": coerce_non_negative_int(
                item.get("unit_price_cents"), f"items[{index}].unit_price_cents"
            ),
            "imei": (str(imei).strip() or None) if imei is not None else None,
        })
    return normalized


def _validate_lines(lines: list[dict], products: dict[int, Product]) -> None:
    """Phase one: every check that can fail, before any write."""
    requested: dict[int, int] = {}
    for line in lines:
        product = products.get(line["product_id"])
        if product is None:
            raise NotFoundError(f"Product not found: {line['product_id']}")
        requested[product.id] = requested.get(product.id, 0) + line["quantity"]

    for product_id, quantity in requested.items():
        product = products[product_id]
        if product.current_stock < quantity:
            raise SaleError(
                f"Insufficient stock for {product.name}. Available: {product.current_stock}",
                details={
                    "product_id": product_id,
                    "requested_quantity": quantity,
                    "on_hand": product.current_stock,
                },
            )


def create_sale(
    items: list[dict],
    discount_cents: int,
    payment_method: str,
    actor: ActorContext,
    customer_id: int | None = None,
    customer_name: str | None = None,
    payment_details: dict | None = None,
    delivery_info: dict | None = None,
) -> Sale:
    """
    Record a completed checkout.

    items: [{"product_id", "quantity", "unit_price_cents", "imei"?}, ...]
    delivery_info: optional {"type", "address"?, "phone"?, "charges_cents"?}
    payment_details: optional {"transaction_id"?, "phone_number"?, "reference"?, "status"?}
    """
    lines = _normalize_items(items)
    discount_cents = coerce_non_negative_int(discount_cents or 0, "discount_cents")

    payment_method = (coerce_optional_str(payment_method, "payment_method") or "").lower()
    if not payment_method:
        raise ValidationError("payment_method is required")
    customer_name = coerce_optional_str(customer_name, "customer_name")
    if customer_id is not None:
        customer_id = coerce_positive_int(customer_id, "customer_id")

    if payment_details is not None and not isinstance(payment_details, dict):
        raise ValidationError("payment_details must be an object")
    if delivery_info is not None and not isinstance(delivery_info, dict):
        raise ValidationError("delivery_info must be an object")

    delivery_charges_cents = 0
    if delivery_info:
        delivery_charges_cents = coerce_non_negative_int(
            delivery_info.get("charges_cents") or 0, "delivery_info.charges_cents"
        )

    def _op():
        begin_write()

        product_ids = sorted({line["product_id"] for line in lines})
        products = {
            p.id: p
            for p in lock_for_update(
                db.session.query(Product).filter(Product.id.in_(product_ids)).order_by(Product.id.asc())
            ).all()
        }
        _validate_lines(lines, products)

        customer = None
        if customer_id is not None:
            customer = lock_for_update(db.session.query(Customer).filter_by(id=customer_id)).first()
            if customer is None:
                raise NotFoundError("Customer not found")

        subtotal_cents = sum(line["quantity"] * line["unit_price_cents"] for line in lines)
        tax_cents = compute_tax_cents(subtotal_cents)
        total_cents = subtotal_cents + tax_cents - discount_cents + delivery_charges_cents
        if total_cents < 0:
            raise SaleError(
                "Discount cannot exceed the sale amount",
                details={"discount_cents": discount_cents, "subtotal_cents": subtotal_cents},
            )

        # Phase two: mutate
        sale_number = next_document_number(SALE_DOCUMENT)
        resolved_customer_name = (
            customer_name
            or (customer.name if customer else "")
            or WALK_IN_CUSTOMER
        )

        sale = Sale(
            sale_number=sale_number,
            customer_id=customer.id if customer else None,
            customer_name=resolved_customer_name,
            subtotal_cents=subtotal_cents,
            discount_cents=discount_cents,
            tax_cents=tax_cents,
            delivery_charges_cents=delivery_charges_cents,
            total_cents=total_cents,
            payment_method=payment_method,
            payment_details=payment_details,
            delivery_info=delivery_info,
            cashier_id=actor.user_id,
            cashier_name=actor.display_name,
            status="pending" if payment_method == CASH_ON_DELIVERY else "completed",
        )
        db.session.add(sale)
        db.session.flush()

        for line in lines:
            product = products[line["product_id"]]
            movement = apply_stock_change(
                product,
                DIRECTION_OUT,
                line["quantity"],
                REASON_SALE,
                actor,
                reference=sale_number,
                imei=line["imei"],
            )
            db.session.add(SaleLine(
                sale_id=sale.id,
                product_id=product.id,
                product_name=product.name,
                imei=line["imei"],
                quantity=line["quantity"],
                unit_price_cents=line["unit_price_cents"],
                line_total_cents=line["quantity"] * line["unit_price_cents"],
                stock_movement_id=movement.id,
            ))

        transaction_id = (payment_details or {}).get("transaction_id")
        if payment_method in MOBILE_BANKING_METHODS and transaction_id:
            db.session.add(PaymentTransaction(
                sale_id=sale.id,
                sale_number=sale_number,
                transaction_id=str(transaction_id),
                amount_cents=total_cents,
                payment_method=payment_method,
                status="completed",
                customer_id=sale.customer_id,
                customer_name=resolved_customer_name,
                cashier_id=actor.user_id,
                cashier_name=actor.display_name,
            ))

        if customer is not None:
            customer.total_purchases_cents = (customer.total_purchases_cents or 0) + total_cents
            customer.last_purchase_at = utcnow()

        db.session.commit()
        logger.info(
            "Sale created: %s total=%s method=%s lines=%s by %s",
            sale_number,
            total_cents,
            payment_method,
            len(lines),
            actor.display_name,
        )
        return sale

    return run_with_retry(_op)


def update_sale_status(sale_id: int, status: str) -> Sale:
    """Status is the only mutable field on a sale; stock is not touched."""
    if status not in SALE_STATUSES:
        raise ValidationError(f"Invalid status: {status}")

    def _op():
        begin_write()
        sale = lock_for_update(db.session.query(Sale).filter_by(id=sale_id)).first()
        if not sale:
            raise NotFoundError("Sale not found")
        sale.status = status
        db.session.commit()
        return sale

    return run_with_retry(_op)


def get_sale(sale_id: int) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if not sale:
        raise NotFoundError("Sale not found")
    return sale


def list_sales(
    limit: int = 50,
    start: datetime | None = None,
    end: datetime | None = None,
    payment_method: str | None = None,
) -> list[Sale]:
    q = db.session.query(Sale)
    if start is not None:
        q = q.filter(Sale.created_at >= start)
    if end is not None:
        q = q.filter(Sale.created_at <= end)
    if payment_method:
        q = q.filter(Sale.payment_method == payment_method)
    return q.order_by(Sale.id.desc()).limit(limit).all()


def get_daily_summary(day: date) -> dict:
    start, end = day_bounds(day)
    sales = (
        db.session.query(Sale)
        .filter(Sale.created_at >= start, Sale.created_at < end)
        .order_by(Sale.id.desc())
        .all()
    )

    payment_breakdown: dict[str, int] = {}
    for sale in sales:
        payment_breakdown[sale.payment_method] = payment_breakdown.get(sale.payment_method, 0) + sale.total_cents

    return {
        "date": day.isoformat(),
        "total_sales": len(sales),
        "total_revenue_cents": sum(s.total_cents for s in sales),
        "total_items": sum(line.quantity for s in sales for line in s.lines),
        "payment_breakdown": payment_breakdown,
        "sales": [s.to_dict() for s in sales],
    }


def get_payment_stats() -> dict:
    rows = (
        db.session.query(Sale.payment_method, func.count(Sale.id), func.coalesce(func.sum(Sale.total_cents), 0))
        .group_by(Sale.payment_method)
        .all()
    )
    return {method: {"count": count, "total_cents": int(total)} for method, count, total in rows}


def list_transactions(limit: int = 50, payment_method: str | None = None) -> list[PaymentTransaction]:
    q = db.session.query(PaymentTransaction)
    if payment_method:
        q = q.filter(PaymentTransaction.payment_method == payment_method)
    return q.order_by(PaymentTransaction.id.desc()).limit(limit).all()
