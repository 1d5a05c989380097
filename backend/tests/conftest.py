"""
Pytest fixtures for the PDC backend tests.

Provides an in-memory database, collaborator rows (tenant, invoice, bank
account), a cheque factory and a test client.
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from pdcms import create_app
from pdcms.extensions import db
from pdcms.models import Tenant, Invoice, InvoiceStatus, BankAccount
from pdcms.services import pdc_registry_service
from pdcms.time_utils import today


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'PDC_HOLDER_NAME': 'Acme Properties LLC',
        'PDC_MAX_BULK': 24,
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
def tenant(db_session):
    t = Tenant(full_name="Layla Haddad", email="layla@example.com")
    db_session.add(t)
    db_session.commit()
    return t


@pytest.fixture(scope='function')
def other_tenant(db_session):
    t = Tenant(full_name="Omar Nasser", email="omar@example.com")
    db_session.add(t)
    db_session.commit()
    return t


@pytest.fixture(scope='function')
def invoice(db_session, tenant):
    """Invoice of 10,000.00 with nothing paid yet."""
    inv = Invoice(
        invoice_number="INV-2026-0001",
        tenant_id=tenant.id,
        total_amount=Decimal("10000.00"),
        paid_amount=Decimal("0.00"),
        balance_amount=Decimal("10000.00"),
        status=InvoiceStatus.SENT,
    )
    db_session.add(inv)
    db_session.commit()
    return inv


@pytest.fixture(scope='function')
def bank_account(db_session):
    account = BankAccount(bank_name="Emirates NBD", account_name="Acme Operating Account")
    db_session.add(account)
    db_session.commit()
    return account


@pytest.fixture(scope='function')
def make_pdc(db_session, tenant):
    """Factory: register a cheque through the registry (status RECEIVED)."""
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        fields = {
            "cheque_number": f"CHQ-{counter['n']:04d}",
            "bank_name": "Emirates NBD",
            "tenant_id": tenant.id,
            "amount": "5000.00",
            "cheque_date": today() + timedelta(days=30),
        }
        fields.update(overrides)
        return pdc_registry_service.register(**fields)

    return _make


@pytest.fixture(scope='function')
def actor_headers():
    """Headers identifying the calling user."""
    return {'X-User-Id': '7'}
