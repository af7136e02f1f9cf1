"""
Pytest fixtures for LedgerPOS backend tests.

Provides test database setup, tenant fixtures, stock factories, and test client.
"""

import pytest

from ledgerpos import create_app
from ledgerpos.extensions import db
from ledgerpos.models import Company, Entity, EntityType, Product
from ledgerpos.services import inventory_service, sales_service
from ledgerpos.services.sales_service import SaleLineRequest, SaleRequest


@pytest.fixture(scope='session')
def app(tmp_path_factory):
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'RECEIPT_DIR': str(tmp_path_factory.mktemp('receipts')),
        'UNIT_OF_WORK_BACKOFF_SECONDS': 0.01,
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
def company(db_session):
    """Create Company A (first tenant)."""
    company = Company(name="Acme Corp", code="ACME", is_active=True)
    db_session.add(company)
    db_session.commit()
    return company


@pytest.fixture(scope='function')
def other_company(db_session):
    """Create Company B (second tenant)."""
    company = Company(name="Beta Inc", code="BETA", is_active=True)
    db_session.add(company)
    db_session.commit()
    return company


@pytest.fixture(scope='function')
def product(db_session, company):
    """Plain (non-serialized) product in Company A."""
    product = Product(company_id=company.id, sku="WID-001", name="Widget", unit_purchase_price_cents=500)
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def serialized_product(db_session, company):
    """Serialized product in Company A."""
    product = Product(
        company_id=company.id,
        sku="PHN-001",
        name="Phone",
        unit_purchase_price_cents=20000,
        is_serialized=True,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def customer(db_session, company):
    entity = Entity(company_id=company.id, name="Jane Doe", entity_type=EntityType.CUSTOMER.value)
    db_session.add(entity)
    db_session.commit()
    return entity


@pytest.fixture(scope='function')
def vendor(db_session, company):
    entity = Entity(company_id=company.id, name="Parts Supply Ltd", entity_type=EntityType.VENDOR.value)
    db_session.add(entity)
    db_session.commit()
    return entity


@pytest.fixture(scope='function')
def batch(db_session, company, product):
    """10 units @ purchase 5.00, selling 8.00 (no purchase posting, so the ledger starts empty)."""
    return inventory_service.receive_batch(
        company.id, product.id, None, "B-001", 10, 500, 800, post_purchase=False
    )


@pytest.fixture(scope='function')
def serialized_batch(db_session, company, serialized_product):
    """3 phones with registered serials SN-1..SN-3."""
    return inventory_service.receive_batch(
        company.id,
        serialized_product.id,
        None,
        "PB-001",
        3,
        20000,
        30000,
        serial_numbers=["SN-1", "SN-2", "SN-3"],
        post_purchase=False,
    )


@pytest.fixture(scope='function')
def sell(db_session):
    """Factory: sell(company, batch, quantity, unit_price, paid, **extra) -> SaleResult."""
    def _sell(company, batch, quantity, unit_price_cents, paid_amount_cents, serial_numbers=None, **extra):
        request = SaleRequest(
            company_id=company.id,
            lines=[
                SaleLineRequest(
                    product_id=batch.product_id,
                    batch_id=batch.id,
                    quantity=quantity,
                    unit_price_cents=unit_price_cents,
                    serial_numbers=list(serial_numbers or []),
                )
            ],
            paid_amount_cents=paid_amount_cents,
            **extra,
        )
        return sales_service.execute_sale(request)
    return _sell
