from __future__ import annotations

import logging

from sqlalchemy import func

from ..extensions import db
from ..models import Category, Product
from ..validation import ConflictError, ModelValidationPolicy, NotFoundError, validate_payload

logger = logging.getLogger(__name__)

CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description", "color"},
    required_on_create={"name"},
)


class CategoryInUseError(Exception):
    """Raised when deleting a category that still holds products."""


def _ensure_unique_name(name: str, exclude_id: int | None = None) -> None:
    q = db.session.query(Category.id).filter(Category.name == name)
    if exclude_id is not None:
        q = q.filter(Category.id != exclude_id)
    if q.first() is not None:
        raise ConflictError("A category with this name already exists")


def list_categories() -> list[Category]:
    return db.session.query(Category).order_by(Category.name.asc()).all()


def get_category(category_id: int) -> Category:
    category = db.session.get(Category, category_id)
    if not category:
        raise NotFoundError("Category not found")
    return category


def create_category(data: dict) -> Category:
    patch = validate_payload(model=Category, payload=data, policy=CATEGORY_POLICY, partial=False)
    _ensure_unique_name(patch["name"])

    category = Category(**patch)
    db.session.add(category)
    db.session.commit()
    return category


def update_category(category_id: int, data: dict) -> Category:
    category = get_category(category_id)
    patch = validate_payload(model=Category, payload=data, policy=CATEGORY_POLICY, partial=True)
    if "name" in patch:
        _ensure_unique_name(patch["name"], exclude_id=category.id)

    for key, value in patch.items():
        setattr(category, key, value)
    db.session.commit()
    return category


def delete_category(category_id: int) -> int:
    category = get_category(category_id)

    has_products = db.session.query(Product.id).filter(Product.category_id == category_id).first()
    if has_products is not None:
        raise CategoryInUseError(
            "Cannot delete category that contains products. "
            "Please move or delete all products in this category first."
        )

    db.session.delete(category)
    db.session.commit()
    logger.info("Category deleted: %s", category_id)
    return category_id


def get_product_count(category_id: int) -> int:
    get_category(category_id)
    return db.session.query(func.count(Product.id)).filter(Product.category_id == category_id).scalar()


def get_product_counts() -> dict[int, int]:
    """Product count keyed by category id (categories with no products omitted)."""
    rows = (
        db.session.query(Product.category_id, func.count(Product.id))
        .group_by(Product.category_id)
        .all()
    )
    return {category_id: count for category_id, count in rows}
