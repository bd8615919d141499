from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Category(db.Model):
    """Product grouping shown in the catalog (Smartphones, Chargers, ...)."""
    __tablename__ = "categories"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False, unique=True)
    description = db.Column(db.Text, nullable=True)
    color = db.Column(db.String(32), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "color": self.color,
            "created_at": to_utc_z(self.created_at),
        }


class Product(db.Model):
    """
    Stockable catalog entry.

    IDENTITY:
    - sku: required, unique
    - imei: optional, unique when present; identifies one physical handset
    - barcode: optional, unique when present

    Uniqueness is checked in products_service before writing so callers get
    a descriptive message; the unique constraints are the storage backstop.

    STOCK:
    current_stock is a materialized quantity. It may only change through
    stock_service.apply_stock_change(), which appends the paired
    StockMovement in the same transaction.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("current_stock >= 0", name="ck_products_stock_non_negative"),
        db.Index("ix_products_brand", "brand"),
        db.Index("ix_products_category_active", "category_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    sku = db.Column(db.String(64), nullable=False, unique=True)
    imei = db.Column(db.String(32), nullable=True, unique=True)
    barcode = db.Column(db.String(64), nullable=True, unique=True)

    name = db.Column(db.String(255), nullable=False)
    brand = db.Column(db.String(120), nullable=False)
    model = db.Column(db.String(120), nullable=True)
    description = db.Column(db.Text, nullable=True)

    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=False, index=True)

    # Authoritative storage in minor units (poisha)
    cost_price_cents = db.Column(db.Integer, nullable=False, default=0)
    selling_price_cents = db.Column(db.Integer, nullable=False, default=0)

    current_stock = db.Column(db.Integer, nullable=False, default=0)
    min_stock_level = db.Column(db.Integer, nullable=False, default=0)
    unit = db.Column(db.String(32), nullable=False, default="pcs")

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    # Free-form bundles: display, processor, memory, camera, battery, ...
    specifications = db.Column(db.JSON, nullable=True)
    warranty = db.Column(db.JSON, nullable=True)

    supplier_name = db.Column(db.String(255), nullable=True)
    supplier_mobile = db.Column(db.String(32), nullable=True)
    supplier_nid = db.Column(db.String(64), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    category = db.relationship("Category", backref=db.backref("products", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r} stock={self.current_stock}>"

    @property
    def is_low_stock(self) -> bool:
        return self.current_stock <= self.min_stock_level

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "imei": self.imei,
            "barcode": self.barcode,
            "name": self.name,
            "brand": self.brand,
            "model": self.model,
            "description": self.description,
            "category_id": self.category_id,
            "cost_price_cents": self.cost_price_cents,
            "selling_price_cents": self.selling_price_cents,
            "current_stock": self.current_stock,
            "min_stock_level": self.min_stock_level,
            "unit": self.unit,
            "is_active": self.is_active,
            "is_low_stock": self.is_low_stock,
            "specifications": self.specifications,
            "warranty": self.warranty,
            "supplier_name": self.supplier_name,
            "supplier_mobile": self.supplier_mobile,
            "supplier_nid": self.supplier_nid,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
