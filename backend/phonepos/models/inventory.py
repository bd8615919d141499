from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class StockMovement(db.Model):
    """
    Append-only stock ledger entry.

    INVARIANTS:
    - quantity > 0; direction carries the sign
    - new_stock = previous_stock + quantity (in) or - quantity (out)
    - folding a product's movements in id order reproduces current_stock

    product_name, imei and user_name are snapshots taken at write time so a
    later catalog rename does not rewrite history.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_stock_movements_quantity_positive"),
        db.CheckConstraint("direction IN ('in', 'out')", name="ck_stock_movements_direction"),
        db.Index("ix_stock_movements_product_id_desc", "product_id", "id"),
        db.Index("ix_stock_movements_reference", "reference"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    product_name = db.Column(db.String(255), nullable=False)
    imei = db.Column(db.String(32), nullable=True)

    direction = db.Column(db.String(8), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.String(255), nullable=False)
    reference = db.Column(db.String(64), nullable=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    user_name = db.Column(db.String(255), nullable=False, default="Unknown")

    previous_stock = db.Column(db.Integer, nullable=False)
    new_stock = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    @property
    def signed_quantity(self) -> int:
        return self.quantity if self.direction == "in" else -self.quantity

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "imei": self.imei,
            "direction": self.direction,
            "quantity": self.quantity,
            "reason": self.reason,
            "reference": self.reference,
            "user_id": self.user_id,
            "user_name": self.user_name,
            "previous_stock": self.previous_stock,
            "new_stock": self.new_stock,
            "created_at": to_utc_z(self.created_at),
        }
