# Overview: Invoice reconciliation bridge; applies a cleared cheque to its invoice inside the clear transaction.

"""
Invoice Reconciliation Bridge

WHY: When a cheque clears, the money is in the bank and the linked invoice
must reflect it. The invoice update happens in the same transaction as the
cheque's CLEARED status so the two can never disagree.

RULES:
- Invoked only by the clear transition, only when the cheque has an invoice_id.
- paid_amount += cheque amount; balance = max(total - paid, 0);
  status = PAID when balance is 0, else PARTIALLY_PAID.
- Never decrements an invoice and never creates or deletes one.
- A missing invoice does not block the clear: a ReconciliationWarning is
  returned and the cheque still moves to CLEARED.

LOCK ORDER: cheque row first, then invoice row (fixed, avoids deadlocks
between concurrent clears).
"""

from __future__ import annotations

import logging
from decimal import Decimal

from ..models import PDC
from . import collaborators
from .errors import ReconciliationWarning


logger = logging.getLogger(__name__)


def reconcile_cleared_pdc(pdc: PDC) -> ReconciliationWarning | None:
    """
    Apply pdc.amount to pdc.invoice_id within the caller's transaction.

    The caller must hold the cheque row lock and commit afterwards.
    """
    if pdc.invoice_id is None:
        return None

    invoice = collaborators.apply_payment(pdc.invoice_id, Decimal(pdc.amount))
    if invoice is None:
        warning = ReconciliationWarning(
            pdc_id=pdc.id,
            invoice_id=pdc.invoice_id,
            message=(
                f"Cheque {pdc.cheque_number} cleared but invoice {pdc.invoice_id} "
                "was not found; payment was not applied"
            ),
        )
        logger.warning(warning.message)
        return warning

    logger.info(
        "Applied cheque %s (%s) to invoice %s: paid=%s balance=%s status=%s",
        pdc.cheque_number,
        pdc.amount,
        invoice.invoice_number,
        invoice.paid_amount,
        invoice.balance_amount,
        invoice.status.value,
    )
    return None
