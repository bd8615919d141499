"""
Stock ledger tests.

Verifies:
- Manual adjustments write exactly one movement with running stock
- Stock can never go negative; a refused change leaves no trace
- Replaying movements reproduces current_stock
"""

import pytest

from phonepos.extensions import db
from phonepos.models import Product, StockMovement
from phonepos.services import stock_service
from phonepos.services.stock_service import StockError
from phonepos.validation import NotFoundError, ValidationError


def _movements(product_id):
    return (
        db.session.query(StockMovement)
        .filter_by(product_id=product_id)
        .order_by(StockMovement.id.asc())
        .all()
    )


class TestAdjustStock:

    def test_out_adjustment_records_movement(self, product, actor):
        # Bring P to 7 first, as after the first sale
        stock_service.adjust_stock(product.id, 3, "out", "Recount", actor)

        updated = stock_service.adjust_stock(product.id, 3, "out", "Damaged", actor)

        assert updated.current_stock == 4
        last = _movements(product.id)[-1]
        assert last.direction == "out"
        assert last.quantity == 3
        assert last.reason == "Damaged"
        assert (last.previous_stock, last.new_stock) == (7, 4)
        assert last.user_name == actor.display_name

    def test_adjustment_below_zero_is_refused(self, product, actor):
        stock_service.adjust_stock(product.id, 6, "out", "Damaged", actor)
        before = len(_movements(product.id))

        with pytest.raises(StockError) as exc:
            stock_service.adjust_stock(product.id, 10, "out", "Damaged", actor)

        assert "Insufficient stock" in str(exc.value)
        assert exc.value.details["available"] == 4
        db.session.expire_all()
        assert db.session.get(Product, product.id).current_stock == 4
        assert len(_movements(product.id)) == before

    def test_in_adjustment(self, product, actor):
        updated = stock_service.adjust_stock(product.id, 5, "in", "Found in back room", actor)
        assert updated.current_stock == 15

    def test_invalid_direction(self, product, actor):
        with pytest.raises(ValidationError):
            stock_service.adjust_stock(product.id, 1, "sideways", "Oops", actor)

    def test_zero_quantity(self, product, actor):
        with pytest.raises(ValidationError):
            stock_service.adjust_stock(product.id, 0, "in", "Nothing", actor)

    def test_unknown_product(self, db_session, actor):
        with pytest.raises(NotFoundError):
            stock_service.adjust_stock(9999, 1, "in", "Ghost", actor)


class TestLedger:

    def test_initial_stock_is_a_movement(self, product):
        movements = _movements(product.id)
        assert len(movements) == 1
        assert movements[0].reason == stock_service.REASON_INITIAL_STOCK
        assert movements[0].reference == stock_service.REFERENCE_INITIAL
        assert (movements[0].previous_stock, movements[0].new_stock) == (0, 10)

    def test_zero_opening_stock_writes_no_movement(self, make_product):
        p = make_product(current_stock=0)
        assert _movements(p.id) == []

    def test_replay_matches_current_stock(self, product, actor):
        stock_service.adjust_stock(product.id, 4, "out", "Damaged", actor)
        stock_service.adjust_stock(product.id, 2, "in", "Returned to shelf", actor)

        assert stock_service.replay_ledger(product.id) == 8
        assert stock_service.verify_ledger() == []

    def test_verify_reports_drift(self, product):
        # Bypass the service to simulate a corrupted row
        db.session.query(Product).filter_by(id=product.id).update({Product.current_stock: 42})
        db.session.commit()

        mismatches = stock_service.verify_ledger()

        assert mismatches == [{
            "product_id": product.id,
            "sku": product.sku,
            "current_stock": 42,
            "ledger_stock": 10,
        }]

    def test_movements_newest_first(self, product, actor):
        stock_service.adjust_stock(product.id, 1, "out", "First", actor)
        stock_service.adjust_stock(product.id, 1, "out", "Second", actor)

        movements = stock_service.list_stock_movements(product_id=product.id)

        assert [m.reason for m in movements][:2] == ["Second", "First"]
