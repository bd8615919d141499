"""Dashboard and report aggregate tests."""

from phonepos.services import reporting_service, sales_service


def _sell(actor, product, quantity, unit_price_cents=100, payment_method="cash"):
    return sales_service.create_sale(
        items=[{"product_id": product.id, "quantity": quantity, "unit_price_cents": unit_price_cents}],
        discount_cents=0,
        payment_method=payment_method,
        actor=actor,
    )


class TestOverview:

    def test_empty_shop(self, db_session):
        overview = reporting_service.get_overview()

        assert overview["total_revenue_cents"] == 0
        assert overview["average_sale_value_cents"] == 0
        assert overview["growth_percentage"] == 0
        assert overview["recent_sales"] == []
        assert len(overview["monthly_data"]) == 12

    def test_totals_after_sales(self, make_product, supplier, customer, actor):
        phone = make_product(current_stock=10, cost_price_cents=50)
        make_product(current_stock=0)
        _sell(actor, phone, 3)
        _sell(actor, phone, 1, payment_method="bkash")

        overview = reporting_service.get_overview()

        assert overview["total_revenue_cents"] == 315 + 105
        assert overview["today_sales_cents"] == 420
        assert overview["today_transactions"] == 2
        assert overview["total_profit_cents"] == (100 - 50) * 4
        assert overview["total_products"] == 2
        assert overview["total_mobiles"] == 2
        assert overview["total_customers"] == 1
        assert overview["total_suppliers"] == 1
        assert overview["total_stock"] == 6
        assert overview["total_investment_cents"] == 6 * 50
        assert overview["low_stock_count"] == 1
        assert overview["average_sale_value_cents"] == 210
        assert overview["payment_method_breakdown"] == {"cash": 315, "bkash": 105}
        assert overview["monthly_data"][-1]["transactions"] == 2


class TestTopProducts:

    def test_ranked_by_quantity(self, make_product, actor):
        slow = make_product(name="Feature Phone")
        fast = make_product(name="Galaxy A15")
        _sell(actor, slow, 1)
        _sell(actor, fast, 4)
        _sell(actor, fast, 2)

        top = reporting_service.get_top_products(limit=5)

        assert [row["name"] for row in top] == ["Galaxy A15", "Feature Phone"]
        assert top[0]["quantity"] == 6
        assert top[0]["revenue_cents"] == 600

    def test_limit(self, make_product, actor):
        for _ in range(3):
            _sell(actor, make_product(), 1)
        assert len(reporting_service.get_top_products(limit=2)) == 2


class TestRecentActivity:

    def test_recent_lists(self, product, customer, actor):
        sale = _sell(actor, product, 1)

        activity = reporting_service.get_recent_activity()

        assert activity["recent_sales"][0]["sale_number"] == sale.sale_number
        assert activity["recent_customers"][0]["name"] == "Rahim"
        assert activity["recent_products"][0]["id"] == product.id
