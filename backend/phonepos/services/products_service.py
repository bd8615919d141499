# backend/phonepos/services/products_service.py
"""
Products Service

Catalog CRUD plus the catalog-side stock entry points:
- create_product writes an "Initial Stock" movement when stock > 0
- update_product turns a changed current_stock into a "Stock Adjustment"
  movement through stock_service.apply_stock_change()

Uniqueness (sku always, imei and barcode when present) is checked here so
callers get a descriptive ConflictError; the unique constraints on the
table are the storage backstop.
"""
from __future__ import annotations

import logging

from sqlalchemy import func, or_

from ..extensions import db
from ..models import Category, Product, PurchaseLine, SaleLine, StockMovement
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    NotFoundError,
    enforce_rules_product,
    validate_payload,
)
from .concurrency import begin_write, lock_for_update, run_with_retry
from .session_service import ActorContext
from .stock_service import (
    DIRECTION_IN,
    DIRECTION_OUT,
    REASON_INITIAL_STOCK,
    REASON_STOCK_ADJUSTMENT,
    REFERENCE_ADJUSTMENT,
    REFERENCE_INITIAL,
    apply_stock_change,
)

logger = logging.getLogger(__name__)

PRODUCT_WRITABLE_FIELDS = {
    "sku",
    "imei",
    "barcode",
    "name",
    "brand",
    "model",
    "description",
    "category_id",
    "cost_price_cents",
    "selling_price_cents",
    "current_stock",
    "min_stock_level",
    "unit",
    "is_active",
    "specifications",
    "warranty",
    "supplier_name",
    "supplier_mobile",
    "supplier_nid",
}

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields=PRODUCT_WRITABLE_FIELDS,
    required_on_create={"sku", "name", "brand", "category_id", "cost_price_cents", "selling_price_cents"},
)


class ProductInUseError(Exception):
    """Raised when deleting a product that sale or purchase lines reference."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def _ensure_unique(field: str, value, exclude_id: int | None = None) -> None:
    if value is None:
        return
    q = db.session.query(Product.id).filter(getattr(Product, field) == value)
    if exclude_id is not None:
        q = q.filter(Product.id != exclude_id)
    if q.first() is not None:
        label = {"sku": "SKU", "imei": "IMEI", "barcode": "Barcode"}[field]
        raise ConflictError(f"{label} already exists")


def _ensure_category(category_id: int) -> None:
    if db.session.get(Category, category_id) is None:
        raise NotFoundError("Category not found")


def create_product(data: dict, actor: ActorContext) -> Product:
    """
    Create a product; opening stock is recorded in the ledger.

    min_stock_level defaults to 5 when not supplied.
    """
    patch = validate_payload(model=Product, payload=data, policy=PRODUCT_POLICY, partial=False)
    enforce_rules_product(patch)

    def _op():
        begin_write()
        for field in ("sku", "imei", "barcode"):
            _ensure_unique(field, patch.get(field))
        _ensure_category(patch["category_id"])

        opening_stock = patch.pop("current_stock", None) or 0
        product = Product(current_stock=0, **patch)
        if product.min_stock_level is None:
            product.min_stock_level = 5
        if product.unit is None:
            product.unit = "pcs"
        if product.is_active is None:
            product.is_active = True
        db.session.add(product)
        db.session.flush()

        if opening_stock > 0:
            apply_stock_change(
                product,
                DIRECTION_IN,
                opening_stock,
                REASON_INITIAL_STOCK,
                actor,
                reference=REFERENCE_INITIAL,
            )

        db.session.commit()
        logger.info("Product created: %s (%s) stock=%s", product.sku, product.id, opening_stock)
        return product

    return run_with_retry(_op)


def update_product(product_id: int, data: dict, actor: ActorContext) -> Product:
    """
    Update catalog fields.

    A current_stock different from the stored value is applied as a
    "Stock Adjustment" movement for the difference, never as a direct write.
    """
    patch = validate_payload(model=Product, payload=data, policy=PRODUCT_POLICY, partial=True)
    enforce_rules_product(patch)

    def _op():
        begin_write()
        product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
        if not product:
            raise NotFoundError("Product not found")

        for field in ("sku", "imei", "barcode"):
            if field in patch:
                _ensure_unique(field, patch[field], exclude_id=product.id)
        if "category_id" in patch:
            _ensure_category(patch["category_id"])

        target_stock = patch.pop("current_stock", None)
        for key, value in patch.items():
            setattr(product, key, value)

        if target_stock is not None and target_stock != product.current_stock:
            delta = target_stock - product.current_stock
            apply_stock_change(
                product,
                DIRECTION_IN if delta > 0 else DIRECTION_OUT,
                abs(delta),
                REASON_STOCK_ADJUSTMENT,
                actor,
                reference=REFERENCE_ADJUSTMENT,
            )

        db.session.commit()
        return product

    return run_with_retry(_op)


def delete_product(product_id: int) -> int:
    """Hard delete, refused while any sale or purchase line references the product."""
    def _op():
        begin_write()
        product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
        if not product:
            raise NotFoundError("Product not found")

        sold = db.session.query(SaleLine.id).filter(SaleLine.product_id == product_id).first()
        if sold is not None:
            raise ProductInUseError(
                "Cannot delete product that has been sold. Consider deactivating it instead.",
                details={"product_id": product_id, "referenced_by": "sale"},
            )

        purchased = db.session.query(PurchaseLine.id).filter(PurchaseLine.product_id == product_id).first()
        if purchased is not None:
            raise ProductInUseError(
                "Cannot delete product that has purchase history. Consider deactivating it instead.",
                details={"product_id": product_id, "referenced_by": "purchase"},
            )

        db.session.query(StockMovement).filter(StockMovement.product_id == product_id).delete(
            synchronize_session=False
        )
        db.session.delete(product)
        db.session.commit()
        logger.info("Product deleted: %s", product_id)
        return product_id

    return run_with_retry(_op)


def set_product_active(product_id: int, is_active: bool) -> Product:
    product = db.session.get(Product, product_id)
    if not product:
        raise NotFoundError("Product not found")
    product.is_active = bool(is_active)
    db.session.commit()
    return product


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if not product:
        raise NotFoundError("Product not found")
    return product


def get_products(product_ids: list[int]) -> list[Product]:
    """Batch lookup in request order; unknown ids are left out."""
    if not product_ids:
        return []
    found = {p.id: p for p in db.session.query(Product).filter(Product.id.in_(set(product_ids))).all()}
    return [found[pid] for pid in product_ids if pid in found]


def get_by_sku(sku: str) -> Product | None:
    return db.session.query(Product).filter_by(sku=sku).first()


def get_by_imei(imei: str) -> Product | None:
    return db.session.query(Product).filter_by(imei=imei).first()


def get_by_barcode(barcode: str) -> Product | None:
    return db.session.query(Product).filter_by(barcode=barcode).first()


def list_products(
    category_id: int | None = None,
    brand: str | None = None,
    is_active: bool | None = None,
    search: str | None = None,
) -> list[Product]:
    """Filtered catalog, newest first. search matches name, brand, model, sku, imei and barcode."""
    q = db.session.query(Product)
    if category_id is not None:
        q = q.filter(Product.category_id == category_id)
    if brand:
        q = q.filter(Product.brand == brand)
    if is_active is not None:
        q = q.filter(Product.is_active.is_(is_active))
    if search:
        like = f"%{search.strip().lower()}%"
        q = q.filter(
            or_(
                func.lower(Product.name).like(like),
                func.lower(Product.brand).like(like),
                func.lower(Product.model).like(like),
                func.lower(Product.sku).like(like),
                func.lower(Product.imei).like(like),
                func.lower(Product.barcode).like(like),
            )
        )
    return q.order_by(Product.created_at.desc(), Product.id.desc()).all()


def list_brands() -> list[str]:
    rows = db.session.query(Product.brand).distinct().all()
    return sorted(brand for (brand,) in rows if brand)


def list_low_stock() -> list[Product]:
    return (
        db.session.query(Product)
        .filter(Product.current_stock <= Product.min_stock_level)
        .order_by(Product.current_stock.asc(), Product.id.asc())
        .all()
    )


def list_out_of_stock() -> list[Product]:
    return db.session.query(Product).filter(Product.current_stock == 0).order_by(Product.id.asc()).all()


def get_inventory_value() -> dict:
    """Stock valuation at cost and at selling price, in minor units."""
    row = db.session.query(
        func.coalesce(func.sum(Product.current_stock * Product.cost_price_cents), 0),
        func.coalesce(func.sum(Product.current_stock * Product.selling_price_cents), 0),
        func.coalesce(func.sum(Product.current_stock), 0),
        func.count(Product.id),
    ).one()

    return {
        "total_cost_value_cents": int(row[0]),
        "total_selling_value_cents": int(row[1]),
        "total_items": int(row[2]),
        "total_products": int(row[3]),
        "active_products": db.session.query(Product).filter(Product.is_active.is_(True)).count(),
        "low_stock_products": db.session.query(Product)
        .filter(Product.current_stock <= Product.min_stock_level)
        .count(),
        "out_of_stock_products": db.session.query(Product).filter(Product.current_stock == 0).count(),
    }
