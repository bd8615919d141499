"""
Pytest fixtures for PhonePOS backend tests.

Provides an in-memory database, seeded roles/permissions, users per role,
bearer-token headers for the test client, and catalog factories.
"""

import pytest

from phonepos import create_app
from phonepos.extensions import db
from phonepos.models import Customer, Supplier
from phonepos.services import auth_service, permission_service, products_service, categories_service
from phonepos.services.session_service import ActorContext


TEST_PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
        'LOG_LEVEL': 'WARNING',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Fresh tables for each test; the schema is kept."""
    db.session.remove()
    for table in reversed(db.metadata.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()

    yield db.session

    db.session.rollback()
    db.session.remove()


@pytest.fixture(scope='function')
def setup_roles(db_session):
    """Setup default roles and permissions."""
    auth_service.create_default_roles()
    permission_service.initialize_permissions()
    permission_service.assign_default_role_permissions()
    db_session.commit()


def _make_user(username: str, role: str):
    return auth_service.create_user(
        username=username,
        email=f"{username}@phonepos.test",
        password=TEST_PASSWORD,
        role_name=role,
        name=username.title(),
    )


@pytest.fixture(scope='function')
def admin_user(setup_roles):
    return _make_user("admin", "admin")


@pytest.fixture(scope='function')
def manager_user(setup_roles):
    return _make_user("manager", "manager")


@pytest.fixture(scope='function')
def cashier_user(setup_roles):
    return _make_user("cashier", "cashier")


@pytest.fixture(scope='function')
def viewer_user(setup_roles):
    return _make_user("viewer", "viewer")


@pytest.fixture(scope='function')
def actor(admin_user):
    """Admin ActorContext for calling services directly."""
    return ActorContext.for_user(admin_user, "admin")


def get_auth_token(client, username: str, password: str = TEST_PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'username': username,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def admin_headers(client, admin_user):
    return auth_headers(get_auth_token(client, admin_user.username))


@pytest.fixture(scope='function')
def manager_headers(client, manager_user):
    return auth_headers(get_auth_token(client, manager_user.username))


@pytest.fixture(scope='function')
def cashier_headers(client, cashier_user):
    return auth_headers(get_auth_token(client, cashier_user.username))


@pytest.fixture(scope='function')
def viewer_headers(client, viewer_user):
    return auth_headers(get_auth_token(client, viewer_user.username))


@pytest.fixture(scope='function')
def category(db_session):
    return categories_service.create_category({"name": "Smartphones"})


@pytest.fixture(scope='function')
def make_product(category, actor):
    """Factory: products are created through the service so opening stock is in the ledger."""
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        data = {
            "sku": f"SKU-{counter['n']:03d}",
            "name": f"Phone {counter['n']}",
            "brand": "Acme",
            "category_id": category.id,
            "cost_price_cents": 50,
            "selling_price_cents": 100,
            "current_stock": 10,
            "min_stock_level": 2,
        }
        data.update(overrides)
        return products_service.create_product(data, actor)

    return _make


@pytest.fixture(scope='function')
def product(make_product):
    """Product P: current_stock=10, min_stock_level=2."""
    return make_product()


@pytest.fixture(scope='function')
def supplier(db_session):
    supplier = Supplier(name="Dhaka Wholesale", phone="01700000000", is_active=True)
    db_session.add(supplier)
    db_session.commit()
    return supplier


@pytest.fixture(scope='function')
def customer(db_session):
    customer = Customer(name="Rahim", phone="01800000000", total_purchases_cents=0)
    db_session.add(customer)
    db_session.commit()
    return customer
