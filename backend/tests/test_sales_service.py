"""
Sales checkout tests.

Verifies:
- Totals: subtotal + 5% VAT - discount + delivery, in minor units
- Each line decrements stock through one "Sale" movement
- A sale that cannot be fulfilled writes nothing at all
- Payment side effects (COD status, mobile-banking transactions, customer totals)
"""

import pytest

from phonepos.extensions import db
from phonepos.models import Customer, PaymentTransaction, Product, Sale, StockMovement
from phonepos.services import sales_service
from phonepos.services.sales_service import SaleError
from phonepos.validation import NotFoundError, ValidationError


def _sell(actor, items, **kwargs):
    kwargs.setdefault("discount_cents", 0)
    kwargs.setdefault("payment_method", "cash")
    return sales_service.create_sale(items=items, actor=actor, **kwargs)


def _sale_movements(product_id):
    return (
        db.session.query(StockMovement)
        .filter_by(product_id=product_id, reason="Sale")
        .order_by(StockMovement.id.asc())
        .all()
    )


class TestTax:

    @pytest.mark.parametrize("subtotal,tax", [(300, 15), (0, 0), (10, 1), (9, 0), (99999, 5000)])
    def test_half_up_rounding(self, subtotal, tax):
        assert sales_service.compute_tax_cents(subtotal) == tax


class TestCreateSale:

    def test_simple_sale(self, product, actor):
        sale = _sell(actor, [{"product_id": product.id, "quantity": 3, "unit_price_cents": 100}])

        assert sale.sale_number == "SALE-000001"
        assert sale.subtotal_cents == 300
        assert sale.tax_cents == 15
        assert sale.total_cents == 315
        assert sale.status == "completed"
        assert sale.customer_name == "Walk-in Customer"
        assert sale.cashier_id == actor.user_id

        db.session.expire_all()
        assert db.session.get(Product, product.id).current_stock == 7
        movements = _sale_movements(product.id)
        assert len(movements) == 1
        assert movements[0].direction == "out"
        assert movements[0].quantity == 3
        assert movements[0].reference == "SALE-000001"
        assert (movements[0].previous_stock, movements[0].new_stock) == (10, 7)
        assert sale.lines[0].stock_movement_id == movements[0].id

    def test_insufficient_stock_writes_nothing(self, product, actor):
        _sell(actor, [{"product_id": product.id, "quantity": 3, "unit_price_cents": 100}])

        with pytest.raises(SaleError) as exc:
            _sell(actor, [{"product_id": product.id, "quantity": 15, "unit_price_cents": 100}])

        assert "Insufficient stock" in str(exc.value)
        assert exc.value.details["on_hand"] == 7
        db.session.expire_all()
        assert db.session.get(Product, product.id).current_stock == 7
        assert len(_sale_movements(product.id)) == 1
        assert db.session.query(Sale).count() == 1

    def test_failing_second_line_rolls_back_first(self, make_product, actor):
        a = make_product(current_stock=5)
        b = make_product(current_stock=1)

        with pytest.raises(SaleError):
            _sell(actor, [
                {"product_id": a.id, "quantity": 2, "unit_price_cents": 100},
                {"product_id": b.id, "quantity": 2, "unit_price_cents": 100},
            ])

        db.session.expire_all()
        assert db.session.get(Product, a.id).current_stock == 5
        assert db.session.get(Product, b.id).current_stock == 1
        assert db.session.query(Sale).count() == 0
        assert _sale_movements(a.id) == []

    def test_repeated_product_lines_are_summed(self, product, actor):
        with pytest.raises(SaleError):
            _sell(actor, [
                {"product_id": product.id, "quantity": 6, "unit_price_cents": 100},
                {"product_id": product.id, "quantity": 6, "unit_price_cents": 100},
            ])

    def test_unknown_product(self, product, actor):
        with pytest.raises(NotFoundError):
            _sell(actor, [{"product_id": 9999, "quantity": 1, "unit_price_cents": 100}])

    def test_empty_items(self, product, actor):
        with pytest.raises(SaleError):
            _sell(actor, [])

    def test_zero_quantity(self, product, actor):
        with pytest.raises(ValidationError):
            _sell(actor, [{"product_id": product.id, "quantity": 0, "unit_price_cents": 100}])

    def test_discount_and_delivery(self, product, actor):
        sale = _sell(
            actor,
            [{"product_id": product.id, "quantity": 2, "unit_price_cents": 1000}],
            discount_cents=100,
            payment_method="cash",
            delivery_info={"type": "home", "address": "Mirpur 10", "charges_cents": 60},
        )

        # 2000 + 100 VAT - 100 discount + 60 delivery
        assert sale.total_cents == 2060
        assert sale.delivery_charges_cents == 60

    def test_discount_larger_than_total(self, product, actor):
        with pytest.raises(SaleError):
            _sell(
                actor,
                [{"product_id": product.id, "quantity": 1, "unit_price_cents": 100}],
                discount_cents=1000,
            )
        db.session.expire_all()
        assert db.session.get(Product, product.id).current_stock == 10

    def test_sale_numbers_increase(self, product, actor):
        first = _sell(actor, [{"product_id": product.id, "quantity": 1, "unit_price_cents": 100}])
        second = _sell(actor, [{"product_id": product.id, "quantity": 1, "unit_price_cents": 100}])
        assert (first.sale_number, second.sale_number) == ("SALE-000001", "SALE-000002")


class TestPayments:

    def test_cash_on_delivery_is_pending(self, product, actor):
        sale = _sell(
            actor,
            [{"product_id": product.id, "quantity": 1, "unit_price_cents": 100}],
            payment_method="cod",
        )
        assert sale.status == "pending"

    def test_mobile_banking_records_transaction(self, product, actor):
        sale = _sell(
            actor,
            [{"product_id": product.id, "quantity": 1, "unit_price_cents": 1000}],
            payment_method="bkash",
            payment_details={"transaction_id": "TRX9A8B7C", "phone_number": "01711111111"},
        )

        txn = db.session.query(PaymentTransaction).filter_by(sale_id=sale.id).one()
        assert txn.transaction_id == "TRX9A8B7C"
        assert txn.amount_cents == sale.total_cents
        assert txn.sale_number == sale.sale_number

    def test_cash_records_no_transaction(self, product, actor):
        _sell(
            actor,
            [{"product_id": product.id, "quantity": 1, "unit_price_cents": 100}],
            payment_details={"transaction_id": "ignored"},
        )
        assert db.session.query(PaymentTransaction).count() == 0

    def test_customer_totals_updated(self, product, customer, actor):
        sale = _sell(
            actor,
            [{"product_id": product.id, "quantity": 1, "unit_price_cents": 1000}],
            customer_id=customer.id,
        )

        db.session.expire_all()
        refreshed = db.session.get(Customer, customer.id)
        assert refreshed.total_purchases_cents == sale.total_cents
        assert refreshed.last_purchase_at is not None
        assert sale.customer_name == "Rahim"

    def test_unknown_customer(self, product, actor):
        with pytest.raises(NotFoundError):
            _sell(
                actor,
                [{"product_id": product.id, "quantity": 1, "unit_price_cents": 100}],
                customer_id=9999,
            )
        db.session.expire_all()
        assert db.session.get(Product, product.id).current_stock == 10


class TestSaleQueries:

    def test_status_update_leaves_stock(self, product, actor):
        sale = _sell(actor, [{"product_id": product.id, "quantity": 2, "unit_price_cents": 100}])

        updated = sales_service.update_sale_status(sale.id, "cancelled")

        assert updated.status == "cancelled"
        db.session.expire_all()
        assert db.session.get(Product, product.id).current_stock == 8

    def test_invalid_status(self, product, actor):
        sale = _sell(actor, [{"product_id": product.id, "quantity": 1, "unit_price_cents": 100}])
        with pytest.raises(ValidationError):
            sales_service.update_sale_status(sale.id, "refunded-twice")

    def test_payment_stats(self, product, actor):
        _sell(actor, [{"product_id": product.id, "quantity": 1, "unit_price_cents": 100}])
        _sell(actor, [{"product_id": product.id, "quantity": 1, "unit_price_cents": 100}], payment_method="cod")

        stats = sales_service.get_payment_stats()

        assert stats["cash"] == {"count": 1, "total_cents": 105}
        assert stats["cod"]["count"] == 1
