"""
Pytest fixtures for Storefront backend tests.

Provides test database setup, role-based users, products and test client.
"""

import pytest
from storefront import create_app
from storefront.extensions import db
from storefront.models import User, Product, Transaction
from storefront.permissions import Role
from storefront.services.auth_service import hash_password
from storefront.services.session_service import SessionContext


TEST_PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_LOG_ROUNDS': 4,
        'ALLOW_SELF_REGISTRATION': False,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()
        db.session.remove()


def make_user(username: str, role: Role, *, email: str | None = None, is_active: bool = True) -> User:
    user = User(
        username=username,
        email=email or f"{username}@storefront.test",
        password_hash=hash_password(TEST_PASSWORD),
        role=role.value,
        is_active=is_active,
    )
    user.apply_role_defaults()
    db.session.add(user)
    db.session.commit()
    return user


def make_product(name: str = "Widget", *, price_cents: int = 1000, stock: int = 5, sku: str | None = None, **fields) -> Product:
    product = Product(
        name=name,
        price_cents=price_cents,
        stock_quantity=stock,
        sku=sku,
        **fields,
    )
    db.session.add(product)
    db.session.commit()
    return product


def count_rows(transaction_type: str | None = None) -> int:
    q = db.session.query(Transaction)
    if transaction_type:
        q = q.filter(Transaction.transaction_type == transaction_type)
    return q.count()


@pytest.fixture(scope='function')
def admin_user(db_session):
    return make_user("admin", Role.ADMIN)


@pytest.fixture(scope='function')
def manager_user(db_session):
    return make_user("manager", Role.MANAGER)


@pytest.fixture(scope='function')
def cashier_user(db_session):
    return make_user("cashier", Role.CASHIER)


@pytest.fixture(scope='function')
def admin_actor(admin_user):
    return SessionContext(user=admin_user, ip_address="127.0.0.1", user_agent="pytest")


@pytest.fixture(scope='function')
def cashier_actor(cashier_user):
    return SessionContext(user=cashier_user, ip_address="127.0.0.1", user_agent="pytest")


@pytest.fixture(scope='function')
def product(db_session):
    """Price 10.00, stock 5."""
    return make_product("Widget", price_cents=1000, stock=5, sku="WID-001", category="Hardware")


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
