"""
Pytest fixtures for AquaDist backend tests.

Provides test database setup, master-data factories, and test client.
"""

from contextlib import contextmanager

import pytest
from sqlalchemy import event

from aquadist import create_app
from aquadist.extensions import db
from aquadist.services import account_service, inventory_service, products_service


TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    'LEDGER_RETRY_BACKOFF': 0,
}

ACTOR = {'X-User-Id': '7'}


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TEST_CONFIG)

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


def make_product(name="Water 20L", price_cents=20000, returnable=True, stock=0, unit="bottle"):
    product = products_service.create_product(
        name=name,
        unit=unit,
        price_cents=price_cents,
        is_returnable=returnable,
    )
    if stock:
        inventory_service.apply_movement(
            product_id=product.id,
            movement_type="import",
            quantity=stock,
            note="Opening stock",
        )
    return product


@pytest.fixture(scope='function')
def retail_customer(db_session):
    return account_service.create_customer(
        name="Retail Customer",
        phone="0900000001",
        address="1 Main St",
    )


@pytest.fixture(scope='function')
def agency_customer(db_session):
    """Second-level agency: gets the configured percentage off every order."""
    return account_service.create_customer(
        name="Agency Level 2",
        phone="0900000002",
        address="2 Main St",
        customer_type="agency",
        agency_level=2,
    )


@pytest.fixture(scope='function')
def supplier(db_session):
    return account_service.create_supplier(
        name="Spring Source Co",
        contact_person="Lan",
        phone="0900000003",
        address="Industrial Park",
    )


@pytest.fixture(scope='function')
def bottle(db_session):
    """Returnable 20L bottle, 100 in stock, 200.00 each."""
    return make_product(name="Water 20L", price_cents=20000, returnable=True, stock=100)


@pytest.fixture(scope='function')
def pack(db_session):
    """Non-returnable 500ml pack, 50 in stock, 80.00 each."""
    return make_product(name="Water 500ml x24", price_cents=8000, returnable=False, stock=50, unit="pack")


@contextmanager
def captured_selects():
    """Collect the SELECT statements sent to the database inside the block."""
    statements = []

    def _record(conn, cursor, statement, parameters, context, executemany):
        if statement.lstrip().upper().startswith("SELECT"):
            statements.append(statement)

    event.listen(db.engine, "before_cursor_execute", _record)
    try:
        yield statements
    finally:
        event.remove(db.engine, "before_cursor_execute", _record)


def first_read(statements, table):
    return next(i for i, s in enumerate(statements) if f"FROM {table}" in s)


def last_read(statements, table):
    return max(i for i, s in enumerate(statements) if f"FROM {table}" in s)
