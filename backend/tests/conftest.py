"""
Pytest fixtures for shopdesk backend tests.

Provides an in-memory database, a test client and catalog/customer fixtures.
"""

from decimal import Decimal

import pytest

from shopdesk import create_app
from shopdesk.extensions import db
from shopdesk.models import Customer, Product
from shopdesk.services import sales_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'TRANSACTION_RETRY_ATTEMPTS': 3,
        'TRANSACTION_RETRY_BACKOFF': 0,
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


@pytest.fixture(scope='function')
def product_p(db_session):
    """Stock-tracked product: stock 10, price 5, cost 2."""
    product = Product(name="Yerba 1kg", price=Decimal("5.00"), cost=Decimal("2.00"), stock=Decimal("10"))
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def legacy_product(db_session):
    """Product migrated from the relational store (legacy id 7), no stored cost."""
    product = Product(legacy_id=7, name="Azucar 1kg", price=Decimal("3.50"), cost=None, stock=Decimal("4"))
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def untracked_product(db_session):
    """Product whose stock is not tracked."""
    product = Product(name="Pan casero", price=Decimal("12.00"), cost=Decimal("6.00"), stock=None)
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def customer(db_session):
    """Customer migrated from the relational store (legacy id 12)."""
    c = Customer(legacy_id=12, name="Ana Torres", email="ana@example.com")
    db_session.add(c)
    db_session.commit()
    return c


@pytest.fixture(scope='function')
def credit_sale(db_session, product_p, customer):
    """3 x product_p on credit with 5 paid up front (total 15, outstanding 10)."""
    return sales_service.create_sale(
        [{"id": product_p.id, "qty": 3}],
        customer_ref=customer.legacy_id,
        on_credit=True,
        initial_paid_amount=5,
    )
