"""Product catalog tests: uniqueness, ledger-backed stock edits and the delete guard."""

import pytest

from phonepos.extensions import db
from phonepos.models import Product, StockMovement
from phonepos.services import products_service, sales_service, purchase_service
from phonepos.services.products_service import ProductInUseError
from phonepos.validation import ConflictError, NotFoundError, ValidationError


class TestCreateProduct:

    def test_defaults(self, category, actor):
        p = products_service.create_product({
            "sku": "IP15-128",
            "name": "iPhone 15",
            "brand": "Apple",
            "category_id": category.id,
            "cost_price_cents": 90000,
            "selling_price_cents": 99000,
        }, actor)

        assert p.current_stock == 0
        assert p.min_stock_level == 5
        assert p.unit == "pcs"
        assert p.is_active is True

    def test_submitted_min_stock_level_is_kept(self, make_product):
        assert make_product(min_stock_level=0).min_stock_level == 0

    def test_duplicate_sku(self, product, make_product):
        with pytest.raises(ConflictError):
            make_product(sku=product.sku)

    def test_duplicate_imei(self, make_product):
        make_product(imei="356938035643809", current_stock=1)
        with pytest.raises(ConflictError):
            make_product(imei="356938035643809", current_stock=1)

    def test_duplicate_barcode(self, make_product):
        make_product(barcode="8901234567890")
        with pytest.raises(ConflictError):
            make_product(barcode="8901234567890")

    def test_missing_category(self, make_product):
        with pytest.raises(NotFoundError):
            make_product(category_id=9999)

    def test_missing_required_fields(self, category, actor):
        with pytest.raises(ValidationError) as exc:
            products_service.create_product({"sku": "X"}, actor)
        assert "Missing required fields" in str(exc.value)

    def test_negative_stock_rejected(self, make_product):
        with pytest.raises(ValidationError):
            make_product(current_stock=-1)

    def test_decimal_price_rejected(self, make_product):
        with pytest.raises(ValidationError):
            make_product(selling_price_cents=10.5)


class TestUpdateProduct:

    def test_stock_change_becomes_adjustment(self, product, actor):
        updated = products_service.update_product(product.id, {"current_stock": 4, "name": "Renamed"}, actor)

        assert updated.current_stock == 4
        assert updated.name == "Renamed"
        last = (
            db.session.query(StockMovement)
            .filter_by(product_id=product.id)
            .order_by(StockMovement.id.desc())
            .first()
        )
        assert last.reason == "Stock Adjustment"
        assert last.reference == "ADJUSTMENT"
        assert last.direction == "out"
        assert (last.previous_stock, last.new_stock, last.quantity) == (10, 4, 6)

    def test_same_stock_writes_nothing(self, product, actor):
        products_service.update_product(product.id, {"current_stock": 10}, actor)
        assert db.session.query(StockMovement).filter_by(product_id=product.id).count() == 1

    def test_sku_collision_excludes_self(self, product, make_product, actor):
        other = make_product()
        products_service.update_product(product.id, {"sku": product.sku}, actor)
        with pytest.raises(ConflictError):
            products_service.update_product(other.id, {"sku": product.sku}, actor)

    def test_imei_collision_excludes_self(self, make_product, actor):
        first = make_product(imei="356938035643809", current_stock=1)
        other = make_product(imei="356938035643817", current_stock=1)
        products_service.update_product(first.id, {"imei": "356938035643809"}, actor)
        with pytest.raises(ConflictError, match="IMEI"):
            products_service.update_product(other.id, {"imei": "356938035643809"}, actor)

        db.session.expire_all()
        assert db.session.get(Product, other.id).imei == "356938035643817"

    def test_barcode_collision_excludes_self(self, make_product, actor):
        first = make_product(barcode="8901234567890")
        other = make_product(barcode="8901234567891")
        products_service.update_product(first.id, {"barcode": "8901234567890"}, actor)
        with pytest.raises(ConflictError, match="Barcode"):
            products_service.update_product(other.id, {"barcode": "8901234567890"}, actor)

        db.session.expire_all()
        assert db.session.get(Product, other.id).barcode == "8901234567891"

    def test_clearing_barcode_is_allowed(self, make_product, actor):
        first = make_product(barcode="8901234567890")
        updated = products_service.update_product(first.id, {"barcode": None}, actor)
        assert updated.barcode is None


class TestDeleteProduct:

    def test_delete_clean_product(self, product):
        product_id = product.id
        products_service.delete_product(product_id)

        assert db.session.get(Product, product_id) is None
        assert db.session.query(StockMovement).filter_by(product_id=product_id).count() == 0

    def test_delete_sold_product_refused(self, product, actor):
        sales_service.create_sale(
            items=[{"product_id": product.id, "quantity": 3, "unit_price_cents": 100}],
            discount_cents=0,
            payment_method="cash",
            actor=actor,
        )

        with pytest.raises(ProductInUseError) as exc:
            products_service.delete_product(product.id)

        assert exc.value.details["referenced_by"] == "sale"
        db.session.expire_all()
        assert db.session.get(Product, product.id) is not None

    def test_delete_purchased_product_refused(self, product, supplier, actor):
        purchase_service.create_purchase(
            supplier.id,
            [{"product_id": product.id, "quantity": 1, "unit_cost_cents": 50}],
            0,
            actor,
        )

        with pytest.raises(ProductInUseError) as exc:
            products_service.delete_product(product.id)
        assert exc.value.details["referenced_by"] == "purchase"


class TestCatalogQueries:

    def test_lookups(self, make_product):
        p = make_product(imei="111111111111111", barcode="222", current_stock=1)
        assert products_service.get_by_sku(p.sku).id == p.id
        assert products_service.get_by_imei("111111111111111").id == p.id
        assert products_service.get_by_barcode("222").id == p.id
        assert products_service.get_by_sku("nope") is None

    def test_batch_lookup_keeps_order_and_skips_unknown(self, make_product):
        first = make_product()
        second = make_product()
        found = products_service.get_products([second.id, 9999, first.id])
        assert [p.id for p in found] == [second.id, first.id]
        assert products_service.get_products([]) == []

    def test_search_and_filters(self, make_product):
        make_product(name="Galaxy S24", brand="Samsung")
        make_product(name="Pixel 8", brand="Google", is_active=False)

        assert [p.name for p in products_service.list_products(search="galaxy")] == ["Galaxy S24"]
        assert [p.name for p in products_service.list_products(brand="Google")] == ["Pixel 8"]
        assert [p.name for p in products_service.list_products(is_active=True)] == ["Galaxy S24"]
        assert products_service.list_brands() == ["Google", "Samsung"]

    def test_low_and_out_of_stock(self, make_product):
        low = make_product(current_stock=2, min_stock_level=2)
        empty = make_product(current_stock=0, min_stock_level=2)
        make_product(current_stock=50)

        assert {p.id for p in products_service.list_low_stock()} == {low.id, empty.id}
        assert [p.id for p in products_service.list_out_of_stock()] == [empty.id]

    def test_inventory_value(self, make_product):
        make_product(current_stock=2, cost_price_cents=100, selling_price_cents=150)
        make_product(current_stock=3, cost_price_cents=10, selling_price_cents=20)

        value = products_service.get_inventory_value()

        assert value["total_cost_value_cents"] == 230
        assert value["total_selling_value_cents"] == 360
        assert value["total_items"] == 5
        assert value["total_products"] == 2

    def test_deactivate(self, product):
        assert products_service.set_product_active(product.id, False).is_active is False
