"""
Pytest fixtures for depot backend tests.

Provides an in-memory database, the four roles (owner, manager,
distributor, client), a warehouse, products and test client helpers.
"""

import pytest

from depot import create_app
from depot.extensions import db
from depot.models import Product, Role
from depot.services import directory_service, fulfillment_service, inventory_service, order_service, payment_service
from depot.services.auth_service import create_user


PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
        'DEFAULT_REORDER_LEVEL': 50,
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


def _staff(db_session, email, full_name, role):
    user = create_user(email=email, password=PASSWORD, full_name=full_name, role=role)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def owner(db_session):
    return _staff(db_session, "owner@depot.test", "Olive Owner", Role.OWNER)


@pytest.fixture(scope='function')
def manager(db_session):
    return _staff(db_session, "manager@depot.test", "Max Manager", Role.MANAGER)


@pytest.fixture(scope='function')
def warehouse(db_session):
    return directory_service.create_warehouse(code="MAIN", name="Main Warehouse", location="Dock 1")


@pytest.fixture(scope='function')
def distributor(db_session):
    """Distributor profile (its login is distributor.user)."""
    return directory_service.create_distributor(
        email="dist@depot.test",
        password=PASSWORD,
        full_name="Dana Distributor",
        business_name="Dana Drinks",
        location="Northside",
    )


@pytest.fixture(scope='function')
def other_distributor(db_session):
    return directory_service.create_distributor(
        email="other@depot.test",
        password=PASSWORD,
        full_name="Omar Other",
        business_name="Other Beverages",
    )


@pytest.fixture(scope='function')
def client_account(db_session, distributor):
    """Client profile attached to `distributor` (its login is client_account.user)."""
    return directory_service.create_client(
        distributor_user_id=distributor.user_id,
        email="client@depot.test",
        password=PASSWORD,
        full_name="Cara Client",
        business_name="Cara's Corner Shop",
    )


@pytest.fixture(scope='function')
def products(db_session):
    """Two active products: Mango Burst at 10.00 and Berry Blast at 15.00."""
    mango = Product(sku="MNG-001", name="Mango Burst", flavor="Mango", category="Juice", unit_price_cents=1000)
    berry = Product(sku="BRY-001", name="Berry Blast", flavor="Berry", category="Juice", unit_price_cents=1500)
    db_session.add_all([mango, berry])
    db_session.commit()
    return mango, berry


def restock(warehouse, product, quantity, user):
    record, _ = inventory_service.restock_inventory(
        warehouse_id=warehouse.id,
        product_id=product.id,
        quantity=quantity,
        user_id=user.id,
    )
    return record


def place_paid_warehouse_order(distributor, warehouse, lines, staff):
    """Place a warehouse order for [(product, qty)] and mark it paid."""
    order = order_service.create_warehouse_order(
        user_id=distributor.user_id,
        warehouse_id=warehouse.id,
        items=[(product.id, quantity) for product, quantity in lines],
    )
    order, _ = payment_service.mark_paid(order_id=order.id, user_id=staff.id, payment_method="Bank Transfer")
    return order


def stock_distributor(distributor, warehouse, lines, staff):
    """Move stock into a distributor through a fulfilled and received warehouse order."""
    order = place_paid_warehouse_order(distributor, warehouse, lines, staff)
    fulfillment_service.fulfill_warehouse_order(order_id=order.id, user_id=staff.id)
    fulfillment_service.receive_order(order_id=order.id, user_id=distributor.user_id)
    return order


def get_auth_token(client, email: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'email': email,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def owner_headers(client, owner):
    return auth_headers(get_auth_token(client, owner.email))


@pytest.fixture(scope='function')
def manager_headers(client, manager):
    return auth_headers(get_auth_token(client, manager.email))


@pytest.fixture(scope='function')
def distributor_headers(client, distributor):
    return auth_headers(get_auth_token(client, distributor.user.email))


@pytest.fixture(scope='function')
def client_headers(client, client_account):
    return auth_headers(get_auth_token(client, client_account.user.email))
