"""
Concurrency tests.

Verifies:
- Parallel checkouts of one product never oversell and keep the ledger consistent
- Sale numbers stay unique under parallel checkouts
- Parallel manual adjustments stop at zero
- A receive racing a cancel leaves exactly one winner
- run_with_retry retries lock and version conflicts and rolls back on failure

Thread tests need a file-backed SQLite database: every worker opens its own
connection and SQLite's write lock is what serializes them.
"""

import threading

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from phonepos import create_app
from phonepos.extensions import db
from phonepos.models import Product, Purchase, Sale, Supplier
from phonepos.services import (
    categories_service,
    products_service,
    purchase_service,
    sales_service,
    stock_service,
)
from phonepos.services.concurrency import run_with_retry
from phonepos.services.purchase_service import PurchaseStateError
from phonepos.services.sales_service import SaleError
from phonepos.services.session_service import ActorContext
from phonepos.services.stock_service import StockError
from phonepos.validation import ValidationError


ACTOR = ActorContext.system()


@pytest.fixture(scope='function')
def file_app(tmp_path):
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'concurrency.db'}",
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
        'LOG_LEVEL': 'ERROR',
    })
    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


def _seed_product(app, stock: int) -> int:
    with app.app_context():
        category = categories_service.create_category({"name": "Smartphones"})
        product = products_service.create_product({
            "sku": "RACE-1",
            "name": "Race Phone",
            "brand": "Acme",
            "category_id": category.id,
            "cost_price_cents": 50,
            "selling_price_cents": 100,
            "current_stock": stock,
        }, ACTOR)
        product_id = product.id
        db.session.remove()
    return product_id


def _run_together(app, calls):
    """Start every call at once behind a barrier; returns each call's result or exception."""
    barrier = threading.Barrier(len(calls))
    results = [None] * len(calls)

    def worker(index, call):
        with app.app_context():
            try:
                barrier.wait()
                results[index] = call()
            except Exception as exc:
                results[index] = exc
            finally:
                db.session.remove()

    threads = [threading.Thread(target=worker, args=(i, call)) for i, call in enumerate(calls)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return results


def _sell(product_id, quantity):
    def call():
        sale = sales_service.create_sale(
            items=[{"product_id": product_id, "quantity": quantity, "unit_price_cents": 100}],
            discount_cents=0,
            payment_method="cash",
            actor=ACTOR,
        )
        return sale.sale_number
    return call


class TestParallelSales:

    def test_no_oversell(self, file_app):
        product_id = _seed_product(file_app, stock=10)

        results = _run_together(file_app, [_sell(product_id, 3) for _ in range(8)])

        sold = [r for r in results if isinstance(r, str)]
        refused = [r for r in results if not isinstance(r, str)]
        assert len(sold) == 10 // 3
        assert all(isinstance(r, SaleError) for r in refused), refused

        with file_app.app_context():
            product = db.session.get(Product, product_id)
            assert product.current_stock == 1
            assert db.session.query(Sale).count() == 3
            assert stock_service.verify_ledger() == []
            db.session.remove()

    def test_sale_numbers_unique(self, file_app):
        product_id = _seed_product(file_app, stock=10)

        results = _run_together(file_app, [_sell(product_id, 1) for _ in range(10)])

        assert all(isinstance(r, str) for r in results), results
        assert sorted(results) == [f"SALE-{n:06d}" for n in range(1, 11)]

        with file_app.app_context():
            assert db.session.get(Product, product_id).current_stock == 0
            assert stock_service.verify_ledger() == []
            db.session.remove()


class TestParallelAdjustments:

    def test_stops_at_zero(self, file_app):
        product_id = _seed_product(file_app, stock=10)

        def take_three():
            product = stock_service.adjust_stock(
                product_id=product_id,
                quantity=3,
                direction="out",
                reason="Damaged",
                actor=ACTOR,
            )
            return product.current_stock

        results = _run_together(file_app, [take_three for _ in range(5)])

        applied = [r for r in results if isinstance(r, int)]
        refused = [r for r in results if not isinstance(r, int)]
        assert sorted(applied) == [1, 4, 7]
        assert all(isinstance(r, StockError) for r in refused), refused

        with file_app.app_context():
            assert db.session.get(Product, product_id).current_stock == 1
            assert stock_service.verify_ledger(product_id) == []
            db.session.remove()


class TestReceiveCancelRace:

    def test_one_winner(self, file_app):
        product_id = _seed_product(file_app, stock=10)
        with file_app.app_context():
            supplier = Supplier(name="Dhaka Wholesale", is_active=True)
            db.session.add(supplier)
            db.session.commit()
            purchase = purchase_service.create_purchase(
                supplier.id,
                [{"product_id": product_id, "quantity": 5, "unit_cost_cents": 50}],
                0,
                ACTOR,
            )
            purchase_id = purchase.id
            db.session.remove()

        def receive():
            purchase_service.receive_purchase(
                purchase_id, [{"product_id": product_id, "received_quantity": 5}], ACTOR
            )
            return "received"

        def cancel():
            purchase_service.cancel_purchase(purchase_id)
            return "cancelled"

        results = _run_together(file_app, [receive, cancel])

        winners = [r for r in results if isinstance(r, str)]
        losers = [r for r in results if not isinstance(r, str)]
        assert len(winners) == 1
        assert len(losers) == 1
        assert isinstance(losers[0], PurchaseStateError)

        with file_app.app_context():
            purchase = db.session.get(Purchase, purchase_id)
            stock = db.session.get(Product, product_id).current_stock
            assert purchase.status == winners[0]
            assert stock == (15 if winners[0] == "received" else 10)
            assert stock_service.verify_ledger() == []
            db.session.remove()


class TestRunWithRetry:

    def test_retries_lock_errors(self, app, db_session):
        calls = {"n": 0}

        def flaky():
            calls["n"] += 1
            if calls["n"] == 1:
                raise OperationalError("BEGIN IMMEDIATE", {}, Exception("database is locked"))
            return "done"

        assert run_with_retry(flaky, backoff_base=0) == "done"
        assert calls["n"] == 2

    def test_gives_up_after_attempts(self, app, db_session):
        calls = {"n": 0}

        def stale():
            calls["n"] += 1
            raise StaleDataError("version mismatch")

        with pytest.raises(StaleDataError):
            run_with_retry(stale, attempts=3, backoff_base=0)
        assert calls["n"] == 3

    def test_domain_error_rolls_back_without_retry(self, app, db_session):
        calls = {"n": 0}

        def failing():
            calls["n"] += 1
            db.session.add(Supplier(name="Half written", is_active=True))
            db.session.flush()
            raise ValidationError("nope")

        with pytest.raises(ValidationError):
            run_with_retry(failing, backoff_base=0)

        assert calls["n"] == 1
        assert db.session.query(Supplier).filter_by(name="Half written").count() == 0
