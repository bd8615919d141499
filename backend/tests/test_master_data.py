"""Categories, suppliers, customers and user administration."""

import pytest

from phonepos.extensions import db
from phonepos.models import Purchase, SessionToken
from phonepos.services import (
    categories_service,
    customer_service,
    purchase_service,
    session_service,
    supplier_service,
    user_service,
)
from phonepos.services.categories_service import CategoryInUseError
from phonepos.services.supplier_service import SupplierInUseError
from phonepos.validation import ConflictError, NotFoundError, ValidationError


class TestCategories:

    def test_duplicate_name(self, category):
        with pytest.raises(ConflictError):
            categories_service.create_category({"name": "Smartphones"})

    def test_product_counts(self, category, make_product):
        make_product()
        make_product()
        empty = categories_service.create_category({"name": "Chargers"})

        assert categories_service.get_product_count(category.id) == 2
        assert categories_service.get_product_counts() == {category.id: 2}
        assert categories_service.get_product_count(empty.id) == 0

    def test_delete_in_use(self, product, category):
        with pytest.raises(CategoryInUseError):
            categories_service.delete_category(category.id)

    def test_delete_empty(self, db_session):
        cat = categories_service.create_category({"name": "Cases", "color": "#ff0000"})
        categories_service.delete_category(cat.id)
        with pytest.raises(NotFoundError):
            categories_service.get_category(cat.id)


class TestSuppliers:

    def test_search(self, supplier):
        supplier_service.create_supplier({"name": "Chittagong Traders", "contact_person": "Karim"})

        assert [s.name for s in supplier_service.list_suppliers(search="karim")] == ["Chittagong Traders"]
        assert [s.name for s in supplier_service.list_suppliers(search="01700")] == ["Dhaka Wholesale"]

    def test_active_only(self, supplier):
        supplier_service.update_supplier(supplier.id, {"is_active": False})
        assert supplier_service.list_suppliers(active_only=True) == []

    def test_delete_with_open_purchase(self, supplier, product, actor):
        purchase_service.create_purchase(
            supplier.id, [{"product_id": product.id, "quantity": 1, "unit_cost_cents": 10}], 0, actor
        )
        with pytest.raises(SupplierInUseError):
            supplier_service.delete_supplier(supplier.id)

    def test_delete_detaches_cancelled_purchases(self, supplier, product, actor):
        purchase = purchase_service.create_purchase(
            supplier.id, [{"product_id": product.id, "quantity": 1, "unit_cost_cents": 10}], 0, actor
        )
        purchase_service.cancel_purchase(purchase.id)

        supplier_service.delete_supplier(supplier.id)

        db.session.expire_all()
        kept = db.session.get(Purchase, purchase.id)
        assert kept.supplier_id is None
        assert kept.supplier_name == "Dhaka Wholesale"


class TestCustomers:

    def test_create_and_search(self, db_session):
        customer_service.create_customer({"name": "Nusrat", "phone": "01912345678", "email": "n@example.com"})
        customer_service.create_customer({"name": "Tanvir", "phone": "01598765432"})

        assert [c.name for c in customer_service.list_customers(search="0191")] == ["Nusrat"]
        assert [c.name for c in customer_service.list_customers(search="TANVIR")] == ["Tanvir"]
        assert len(customer_service.list_customers()) == 2

    def test_totals_not_writable(self, customer):
        with pytest.raises(ValidationError):
            customer_service.update_customer(customer.id, {"total_purchases_cents": 100})


class TestUsers:

    def test_deactivate_revokes_sessions(self, cashier_user, actor):
        session_service.create_session(user_id=cashier_user.id)

        user_service.deactivate_user(cashier_user.id, actor)

        open_sessions = db.session.query(SessionToken).filter_by(
            user_id=cashier_user.id, is_revoked=False
        ).count()
        assert open_sessions == 0

    def test_cannot_deactivate_self(self, admin_user, actor):
        with pytest.raises(ValidationError):
            user_service.deactivate_user(admin_user.id, actor)

    def test_stats(self, admin_user, cashier_user, viewer_user, actor):
        user_service.deactivate_user(viewer_user.id, actor)

        stats = user_service.get_user_stats()

        assert stats["total_users"] == 3
        assert stats["active_users"] == 2
        assert stats["inactive_users"] == 1
        assert stats["role_distribution"] == {"admin": 1, "cashier": 1}

    def test_profile(self, cashier_user, actor):
        user_service.create_profile(cashier_user.id, {"first_name": "Sadia", "department": "Sales"}, actor)
        with pytest.raises(ConflictError):
            user_service.create_profile(cashier_user.id, {}, actor)

        profile = user_service.update_profile(cashier_user.id, {"salary_cents": 2500000})

        assert profile.department == "Sales"
        assert profile.salary_cents == 2500000
        assert user_service.serialize_user(cashier_user)["profile"]["first_name"] == "Sadia"
