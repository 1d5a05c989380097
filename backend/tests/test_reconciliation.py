# Overview: Pytest coverage for applying cleared cheques to invoices.

"""
Invoice Reconciliation Tests

Clearing a cheque increments its invoice's paid amount inside the same
transaction. The increment must never overwrite a payment committed by
someone else, and a stale invoice link only produces a warning.
"""

from decimal import Decimal

from sqlalchemy import text
from pdcms.models import Invoice, InvoiceStatus, PDC, PDCStatus
from pdcms.services import pdc_lifecycle_service as lifecycle
from pdcms.time_utils import today


def _clear(make_pdc, bank_account, **kwargs):
    pdc = make_pdc(**kwargs)
    lifecycle.deposit(pdc.id, today(), bank_account.id)
    return lifecycle.clear(pdc.id, today())


def test_partial_payment(db_session, make_pdc, bank_account, invoice):
    result = _clear(make_pdc, bank_account, invoice_id=invoice.id, amount="4000.00")

    inv = db_session.get(Invoice, invoice.id)
    assert result.warning is None
    assert inv.paid_amount == Decimal("4000.00")
    assert inv.balance_amount == Decimal("6000.00")
    assert inv.status == InvoiceStatus.PARTIALLY_PAID


def test_full_payment_over_two_cheques(db_session, make_pdc, bank_account, invoice):
    _clear(make_pdc, bank_account, invoice_id=invoice.id, amount="6000.00")
    _clear(make_pdc, bank_account, invoice_id=invoice.id, amount="4000.00")

    inv = db_session.get(Invoice, invoice.id)
    assert inv.paid_amount == Decimal("10000.00")
    assert inv.balance_amount == Decimal("0.00")
    assert inv.status == InvoiceStatus.PAID


def test_overpayment_floors_balance_at_zero(db_session, make_pdc, bank_account, invoice):
    _clear(make_pdc, bank_account, invoice_id=invoice.id, amount="12000.00")

    inv = db_session.get(Invoice, invoice.id)
    assert inv.paid_amount == Decimal("12000.00")
    assert inv.balance_amount == Decimal("0.00")
    assert inv.status == InvoiceStatus.PAID


def test_cheque_without_invoice_leaves_invoices_alone(db_session, make_pdc, bank_account, invoice):
    result = _clear(make_pdc, bank_account)

    inv = db_session.get(Invoice, invoice.id)
    assert result.pdc.status == PDCStatus.CLEARED
    assert result.warning is None
    assert inv.paid_amount == Decimal("0.00")
    assert inv.status == InvoiceStatus.SENT


def test_increment_committed_elsewhere_is_not_lost(db_session, make_pdc, bank_account, invoice):
    pdc = make_pdc(invoice_id=invoice.id, amount="4000.00")
    lifecycle.deposit(pdc.id, today(), bank_account.id)

    stale = db_session.get(Invoice, invoice.id)
    assert stale.paid_amount == Decimal("0.00")

    # A payment posted by another writer after the invoice was read here
    db_session.execute(
        text("UPDATE invoices SET paid_amount = paid_amount + 1000 WHERE id = :id"), {"id": invoice.id}
    )

    lifecycle.clear(pdc.id, today())

    inv = db_session.get(Invoice, invoice.id)
    assert inv.paid_amount == Decimal("5000.00")
    assert inv.balance_amount == Decimal("5000.00")
    assert inv.status == InvoiceStatus.PARTIALLY_PAID


def test_missing_invoice_returns_warning(db_session, make_pdc, bank_account, invoice):
    invoice_id = invoice.id
    pdc = make_pdc(invoice_id=invoice_id)
    lifecycle.deposit(pdc.id, today(), bank_account.id)

    # Invoice removed by the invoicing subsystem after registration
    db_session.execute(text("DELETE FROM invoices WHERE id = :id"), {"id": invoice_id})
    db_session.commit()

    result = lifecycle.clear(pdc.id, today())

    assert result.pdc.status == PDCStatus.CLEARED
    assert result.warning is not None
    assert result.warning.pdc_id == pdc.id
    assert result.warning.invoice_id == invoice_id
    assert db_session.get(PDC, pdc.id).status == PDCStatus.CLEARED


def test_bounce_does_not_touch_invoice(db_session, make_pdc, bank_account, invoice):
    pdc = make_pdc(invoice_id=invoice.id)
    lifecycle.deposit(pdc.id, today(), bank_account.id)
    lifecycle.bounce(pdc.id, today(), "Insufficient funds")

    inv = db_session.get(Invoice, invoice.id)
    assert inv.paid_amount == Decimal("0.00")
    assert inv.status == InvoiceStatus.SENT
