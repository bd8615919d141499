from __future__ import annotations

import logging

from sqlalchemy import func, or_

from ..extensions import db
from ..models import Purchase, Supplier
from ..validation import ModelValidationPolicy, NotFoundError, validate_payload

logger = logging.getLogger(__name__)

SUPPLIER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "contact_person", "email", "phone", "address", "website", "notes", "is_active"},
    required_on_create={"name"},
)


class SupplierInUseError(Exception):
    """Raised when deleting a supplier that still has purchase orders."""


def list_suppliers(search: str | None = None, active_only: bool = False) -> list[Supplier]:
    q = db.session.query(Supplier)
    if active_only:
        q = q.filter(Supplier.is_active.is_(True))
    if search:
        term = search.strip()
        like = f"%{term.lower()}%"
        q = q.filter(
            or_(
                func.lower(Supplier.name).like(like),
                func.lower(Supplier.contact_person).like(like),
                Supplier.phone.like(f"%{term}%"),
                func.lower(Supplier.email).like(like),
            )
        )
    return q.order_by(Supplier.name.asc(), Supplier.id.asc()).all()


def get_supplier(supplier_id: int) -> Supplier:
    supplier = db.session.get(Supplier, supplier_id)
    if not supplier:
        raise NotFoundError("Supplier not found")
    return supplier


def create_supplier(data: dict) -> Supplier:
    patch = validate_payload(model=Supplier, payload=data, policy=SUPPLIER_POLICY, partial=False)
    if patch.get("is_active") is None:
        patch["is_active"] = True
    supplier = Supplier(**patch)
    db.session.add(supplier)
    db.session.commit()
    return supplier


def update_supplier(supplier_id: int, data: dict) -> Supplier:
    supplier = get_supplier(supplier_id)
    patch = validate_payload(model=Supplier, payload=data, policy=SUPPLIER_POLICY, partial=True)
    for key, value in patch.items():
        setattr(supplier, key, value)
    db.session.commit()
    return supplier


def delete_supplier(supplier_id: int) -> int:
    """Refused while any non-cancelled purchase references the supplier."""
    supplier = get_supplier(supplier_id)

    open_purchase = (
        db.session.query(Purchase.id)
        .filter(Purchase.supplier_id == supplier_id, Purchase.status != "cancelled")
        .first()
    )
    if open_purchase is not None:
        raise SupplierInUseError("Cannot delete supplier with existing purchase orders")

    # Cancelled orders keep their supplier_name snapshot
    db.session.query(Purchase).filter(Purchase.supplier_id == supplier_id).update(
        {Purchase.supplier_id: None}, synchronize_session=False
    )

    db.session.delete(supplier)
    db.session.commit()
    logger.info("Supplier deleted: %s", supplier_id)
    return supplier_id
