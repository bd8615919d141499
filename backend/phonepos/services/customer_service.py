from __future__ import annotations

from sqlalchemy import func, or_

from ..extensions import db
from ..models import Customer
from ..validation import ModelValidationPolicy, NotFoundError, validate_payload

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "email", "phone", "address", "date_of_birth", "notes"},
    required_on_create={"name"},
)


def list_customers(search: str | None = None) -> list[Customer]:
    """All customers, optionally filtered by name, phone or email."""
    q = db.session.query(Customer)
    if search:
        term = search.strip()
        like = f"%{term.lower()}%"
        q = q.filter(
            or_(
                func.lower(Customer.name).like(like),
                Customer.phone.like(f"%{term}%"),
                func.lower(Customer.email).like(like),
            )
        )
    return q.order_by(Customer.name.asc(), Customer.id.asc()).all()


def get_customer(customer_id: int) -> Customer:
    customer = db.session.get(Customer, customer_id)
    if not customer:
        raise NotFoundError("Customer not found")
    return customer


def create_customer(data: dict) -> Customer:
    patch = validate_payload(model=Customer, payload=data, policy=CUSTOMER_POLICY, partial=False)
    customer = Customer(total_purchases_cents=0, **patch)
    db.session.add(customer)
    db.session.commit()
    return customer


def update_customer(customer_id: int, data: dict) -> Customer:
    """Contact details only; purchase aggregates belong to sales_service."""
    customer = get_customer(customer_id)
    patch = validate_payload(model=Customer, payload=data, policy=CUSTOMER_POLICY, partial=True)
    for key, value in patch.items():
        setattr(customer, key, value)
    db.session.commit()
    return customer
