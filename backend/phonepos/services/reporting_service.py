# Overview: Dashboard aggregates over sales, catalog and master data.

from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy import func, or_

from ..extensions import db
from ..models import Category, Customer, Product, Sale, SaleLine, Supplier
from phonepos.time_utils import day_bounds, month_start, utcnow

# Category names containing any of these count as handsets
MOBILE_CATEGORY_KEYWORDS = ("mobile", "phone", "smartphone")


def _revenue(start: datetime | None = None, end: datetime | None = None) -> int:
    q = db.session.query(func.coalesce(func.sum(Sale.total_cents), 0))
    if start is not None:
        q = q.filter(Sale.created_at >= start)
    if end is not None:
        q = q.filter(Sale.created_at < end)
    return int(q.scalar())


def _sale_count(start: datetime | None = None, end: datetime | None = None) -> int:
    q = db.session.query(func.count(Sale.id))
    if start is not None:
        q = q.filter(Sale.created_at >= start)
    if end is not None:
        q = q.filter(Sale.created_at < end)
    return int(q.scalar())


def _profit(start: datetime | None = None, end: datetime | None = None) -> int:
    """
    Gross profit: (line unit price - current product cost) * quantity.

    Uses the product's current cost price; lines whose product no longer
    exists contribute nothing.
    """
    q = (
        db.session.query(
            func.coalesce(
                func.sum((SaleLine.unit_price_cents - Product.cost_price_cents) * SaleLine.quantity),
                0,
            )
        )
        .join(Sale, Sale.id == SaleLine.sale_id)
        .join(Product, Product.id == SaleLine.product_id)
    )
    if start is not None:
        q = q.filter(Sale.created_at >= start)
    if end is not None:
        q = q.filter(Sale.created_at < end)
    return int(q.scalar())


def _count_mobiles() -> int:
    name = func.lower(Category.name)
    return int(
        db.session.query(func.count(Product.id))
        .join(Category, Category.id == Product.category_id)
        .filter(or_(*[name.like(f"%{kw}%") for kw in MOBILE_CATEGORY_KEYWORDS]))
        .scalar()
    )


def get_monthly_series(now: datetime | None = None, months: int = 12) -> list[dict]:
    """Revenue, profit and transaction count per calendar month, oldest first."""
    now = now or utcnow()
    series = []
    for back in range(months - 1, -1, -1):
        start = month_start(now, back)
        end = month_start(now, back - 1)
        series.append({
            "month": start.strftime("%b"),
            "year": start.year,
            "revenue_cents": _revenue(start, end),
            "profit_cents": _profit(start, end),
            "transactions": _sale_count(start, end),
        })
    return series


def get_overview(now: datetime | None = None) -> dict:
    now = now or utcnow()
    today_start, today_end = day_bounds(now.date())

    total_revenue = _revenue()
    total_sales = _sale_count()

    this_week = _revenue(now - timedelta(days=7), None)
    last_week = _revenue(now - timedelta(days=14), now - timedelta(days=7))
    growth = round((this_week - last_week) / last_week * 100, 2) if last_week > 0 else 0

    stock_totals = db.session.query(
        func.count(Product.id),
        func.coalesce(func.sum(Product.current_stock), 0),
        func.coalesce(func.sum(Product.current_stock * Product.cost_price_cents), 0),
    ).one()

    # Dashboard "low stock" is products with nothing on hand
    low_stock = (
        db.session.query(Product)
        .filter(Product.current_stock <= 0)
        .order_by(Product.id.asc())
        .all()
    )

    payment_rows = (
        db.session.query(Sale.payment_method, func.coalesce(func.sum(Sale.total_cents), 0))
        .group_by(Sale.payment_method)
        .all()
    )

    recent_sales = db.session.query(Sale).order_by(Sale.id.desc()).limit(5).all()

    return {
        "today_sales_cents": _revenue(today_start, today_end),
        "today_profit_cents": _profit(today_start, today_end),
        "today_transactions": _sale_count(today_start, today_end),
        "total_products": int(stock_totals[0]),
        "total_mobiles": _count_mobiles(),
        "total_categories": db.session.query(func.count(Category.id)).scalar(),
        "total_customers": db.session.query(func.count(Customer.id)).scalar(),
        "total_suppliers": db.session.query(func.count(Supplier.id))
        .filter(Supplier.is_active.is_(True))
        .scalar(),
        "total_revenue_cents": total_revenue,
        "total_investment_cents": int(stock_totals[2]),
        "total_profit_cents": _profit(),
        "low_stock_count": len(low_stock),
        "total_stock": int(stock_totals[1]),
        "average_sale_value_cents": total_revenue // total_sales if total_sales else 0,
        "growth_percentage": growth,
        "recent_sales": [s.to_dict(include_lines=False) for s in recent_sales],
        "low_stock_products": [p.to_dict() for p in low_stock[:10]],
        "payment_method_breakdown": {method: int(total) for method, total in payment_rows},
        "monthly_data": get_monthly_series(now),
    }


def get_top_products(limit: int = 10) -> list[dict]:
    """Best sellers by quantity across all sales."""
    rows = (
        db.session.query(
            SaleLine.product_id,
            func.max(SaleLine.product_name).label("name"),
            func.sum(SaleLine.quantity).label("quantity"),
            func.sum(SaleLine.line_total_cents).label("revenue"),
        )
        .group_by(SaleLine.product_id)
        .order_by(func.sum(SaleLine.quantity).desc(), SaleLine.product_id.asc())
        .limit(limit)
        .all()
    )
    return [
        {
            "product_id": row.product_id,
            "name": row.name,
            "quantity": int(row.quantity),
            "revenue_cents": int(row.revenue),
        }
        for row in rows
    ]


def get_recent_activity() -> dict:
    return {
        "recent_sales": [
            s.to_dict(include_lines=False)
            for s in db.session.query(Sale).order_by(Sale.id.desc()).limit(10).all()
        ],
        "recent_customers": [
            c.to_dict() for c in db.session.query(Customer).order_by(Customer.id.desc()).limit(5).all()
        ],
        "recent_products": [
            p.to_dict() for p in db.session.query(Product).order_by(Product.id.desc()).limit(5).all()
        ],
    }
