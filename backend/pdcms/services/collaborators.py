# Overview: Narrow read/write contracts onto subsystems the cheque engine does not own.

"""
External Collaborator Contracts

WHY: Tenants, invoices and bank accounts are managed elsewhere. The cheque
engine touches them only through the functions below so the surface it
depends on stays small and auditable.

- Tenant Registry:        tenant_exists(id), get_tenant(id)
- Bank Account Registry:  account_exists(id)
- Invoice Ledger:         get_invoice(id), apply_payment(id, amount)

apply_payment is the only write. It must run inside the caller's unit of
work (it never commits).
"""

from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from ..models import Tenant, BankAccount, Invoice, InvoiceStatus
from .concurrency import lock_for_update


ZERO = Decimal("0.00")


def tenant_exists(tenant_id: int) -> bool:
    return db.session.query(
        db.session.query(Tenant).filter_by(id=tenant_id).exists()
    ).scalar()


def get_tenant(tenant_id: int) -> Tenant | None:
    return db.session.get(Tenant, tenant_id)


def account_exists(bank_account_id: int) -> bool:
    return db.session.query(
        db.session.query(BankAccount).filter_by(id=bank_account_id, is_active=True).exists()
    ).scalar()


def get_invoice(invoice_id: int) -> Invoice | None:
    return db.session.get(Invoice, invoice_id)


def apply_payment(invoice_id: int, amount: Decimal) -> Invoice | None:
    """
    Increment an invoice's paid amount and recompute balance and status.

    Returns None when the invoice does not exist.

    LOCKING:
    1. SELECT ... FOR UPDATE on the invoice row (honored by PostgreSQL/MySQL)
    2. paid_amount is incremented with an SQL expression, not a value computed
       from the Python copy, so an increment committed by another worker is
       never overwritten.
    3. balance/status are derived from the row as re-read after step 2,
       while this transaction holds the write lock.
    """
    invoice = lock_for_update(db.session.query(Invoice).filter_by(id=invoice_id)).first()
    if invoice is None:
        return None

    db.session.query(Invoice).filter(Invoice.id == invoice_id).update(
        {Invoice.paid_amount: Invoice.paid_amount + amount},
        synchronize_session=False,
    )
    db.session.refresh(invoice)

    paid = Decimal(invoice.paid_amount)
    total = Decimal(invoice.total_amount)
    balance = max(total - paid, ZERO)

    invoice.balance_amount = balance
    if balance == ZERO:
        invoice.status = InvoiceStatus.PAID
    elif paid > ZERO:
        invoice.status = InvoiceStatus.PARTIALLY_PAID
    db.session.flush()
    return invoice
