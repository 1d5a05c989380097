# Overview: Service-layer operations for the cheque lifecycle; the single authority for status transitions.

"""
PDC Lifecycle (State Machine Engine)

================================================================================
PURPOSE: Move a cheque through its lifecycle, one validated transition at a time
================================================================================

STATE MACHINE:

    RECEIVED --mark_due--> DUE
    RECEIVED/DUE --deposit--> DEPOSITED --clear--> CLEARED
                                        --bounce--> BOUNCED --replace--> REPLACED
    RECEIVED/DUE/BOUNCED --withdraw--> WITHDRAWN
    RECEIVED/DUE --cancel--> CANCELLED

    Terminal:       CLEARED, CANCELLED, REPLACED
    Semi-terminal:  BOUNCED (may still be replaced or withdrawn), WITHDRAWN

RULES (NON-NEGOTIABLE):
1. TRANSITIONS below is the only place that decides what is allowed.
   Every caller (API, chain manager, scheduled DUE job) goes through
   execute_transition().
2. A rejected transition raises InvalidTransitionError and writes nothing.
3. Each transition is applied under the cheque's version. A caller may pin
   the version it last read (expected_version); the mapper also issues a
   versioned UPDATE so a racing writer surfaces as ConcurrentModificationError.
4. Each transition date is written once, by its own transition.
5. Clearing applies the amount to the linked invoice in the same transaction.

================================================================================
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Callable

from flask import current_app

from ..extensions import db
from ..models import PDC, PDCStatus, NewPaymentMethod
from ..validation import (
    ValidationError,
    coerce_enum,
    optional_text,
    require_date,
    require_id,
    require_not_future,
    require_text,
)
from pdcms.time_utils import today as business_today
from . import collaborators
from .concurrency import atomic, check_version, lock_for_update, run_with_retry
from .errors import (
    ConcurrentModificationError,
    InvalidTransitionError,
    NotFoundError,
    ReconciliationWarning,
)
from .ledger_service import append_pdc_event
from .reconciliation_service import reconcile_cleared_pdc


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Transition:
    action: str
    label: str
    sources: frozenset
    target: PDCStatus


_S = PDCStatus

TRANSITIONS: dict[str, Transition] = {
    t.action: t
    for t in (
        Transition("mark_due", "mark as due", frozenset({_S.RECEIVED}), _S.DUE),
        Transition("deposit", "deposit", frozenset({_S.RECEIVED, _S.DUE}), _S.DEPOSITED),
        Transition("clear", "clear", frozenset({_S.DEPOSITED}), _S.CLEARED),
        Transition("bounce", "bounce", frozenset({_S.DEPOSITED}), _S.BOUNCED),
        Transition("withdraw", "withdraw", frozenset({_S.RECEIVED, _S.DUE, _S.BOUNCED}), _S.WITHDRAWN),
        Transition("cancel", "cancel", frozenset({_S.RECEIVED, _S.DUE}), _S.CANCELLED),
        Transition("replace", "replace", frozenset({_S.BOUNCED}), _S.REPLACED),
    )
}

TERMINAL_STATUSES = frozenset({_S.CLEARED, _S.CANCELLED, _S.REPLACED})
PENDING_STATUSES = frozenset({_S.RECEIVED, _S.DUE, _S.DEPOSITED})


def can_transition(action: str, status: PDCStatus) -> bool:
    transition = TRANSITIONS.get(action)
    if transition is None:
        raise ValidationError(f"Unknown action '{action}'")
    return PDCStatus(status) in transition.sources


def allowed_actions(status: PDCStatus) -> list[str]:
    """Actions a caller may take on a cheque in the given status (for UIs)."""
    status = PDCStatus(status)
    if status in TERMINAL_STATUSES:
        return []
    return [a for a, t in TRANSITIONS.items() if status in t.sources]


def assert_transition(action: str, status: PDCStatus) -> Transition:
    if not can_transition(action, status):
        raise InvalidTransitionError(TRANSITIONS[action].label, PDCStatus(status).value)
    return TRANSITIONS[action]


def execute_transition(
    pdc_id: int,
    action: str,
    *,
    guard: Callable[[PDC], None] | None = None,
    apply: Callable[[PDC], None] | None = None,
    after: Callable[[PDC], object] | None = None,
    expected_version: int | None = None,
    actor_user_id: int | None = None,
    note: str | None = None,
) -> tuple[PDC, object]:
    """
    Run one transition as a single unit of work.

    guard(pdc) runs on the locked record before the transition table is
    consulted, for rules that must take precedence over it. apply(pdc)
    validates against the locked record and stages the transition's
    changes before the cheque row is written. after(pdc) runs once the
    cheque row has been written (cheque before invoice lock order) and
    its return value is handed back to the caller.
    """
    def _op():
        pdc = lock_for_update(db.session.query(PDC).filter_by(id=pdc_id)).first()
        if pdc is None:
            raise NotFoundError("PDC", pdc_id)

        check_version("PDC", pdc_id, expected_version, pdc.version_id)
        if guard is not None:
            guard(pdc)
        transition = assert_transition(action, pdc.status)
        from_status = pdc.status

        if apply is not None:
            apply(pdc)
        pdc.status = transition.target
        db.session.flush()

        extra = after(pdc) if after is not None else None

        append_pdc_event(
            pdc=pdc,
            event_type=f"pdc.{transition.target.value.lower()}",
            from_status=from_status.value,
            actor_user_id=actor_user_id,
            note=note,
        )
        return pdc, extra

    pdc, extra = atomic(_op, entity="PDC", entity_id=pdc_id)
    logger.info("PDC %s (%s) -> %s", pdc.id, pdc.cheque_number, pdc.status.value)
    return pdc, extra


def _not_before_deposit(field: str, value: date, pdc: PDC) -> None:
    if pdc.deposit_date is not None and value < pdc.deposit_date:
        raise ValidationError(f"{field} cannot be earlier than deposit_date {pdc.deposit_date.isoformat()}")


# =============================================================================
# TRANSITIONS
# =============================================================================

def deposit(
    pdc_id: int,
    deposit_date,
    bank_account_id,
    *,
    expected_version: int | None = None,
    actor_user_id: int | None = None,
) -> PDC:
    deposit_on = require_not_future("deposit_date", require_date("deposit_date", deposit_date), business_today())
    account_id = require_id("bank_account_id", bank_account_id)

    def _apply(pdc: PDC) -> None:
        if not collaborators.account_exists(account_id):
            raise NotFoundError("Bank account", account_id)
        pdc.deposit_date = deposit_on
        pdc.bank_account_id = account_id

    pdc, _ = execute_transition(
        pdc_id, "deposit", apply=_apply,
        expected_version=expected_version, actor_user_id=actor_user_id,
    )
    return pdc


@dataclass
class ClearResult:
    pdc: PDC
    warning: ReconciliationWarning | None = None


def clear(
    pdc_id: int,
    cleared_date,
    *,
    expected_version: int | None = None,
    actor_user_id: int | None = None,
) -> ClearResult:
    """
    Mark a deposited cheque as cleared and apply it to its invoice.

    A stale invoice link does not fail the clear; the returned
    ClearResult carries a ReconciliationWarning instead.
    """
    cleared_on = require_not_future("cleared_date", require_date("cleared_date", cleared_date), business_today())

    def _apply(pdc: PDC) -> None:
        _not_before_deposit("cleared_date", cleared_on, pdc)
        pdc.cleared_date = cleared_on

    pdc, warning = execute_transition(
        pdc_id, "clear", apply=_apply, after=reconcile_cleared_pdc,
        expected_version=expected_version, actor_user_id=actor_user_id,
    )
    return ClearResult(pdc=pdc, warning=warning)


def bounce(
    pdc_id: int,
    bounced_date,
    bounce_reason,
    *,
    expected_version: int | None = None,
    actor_user_id: int | None = None,
) -> PDC:
    bounced_on = require_not_future("bounced_date", require_date("bounced_date", bounced_date), business_today())
    reason = require_text("bounce_reason", bounce_reason, 255)

    def _apply(pdc: PDC) -> None:
        _not_before_deposit("bounced_date", bounced_on, pdc)
        pdc.bounced_date = bounced_on
        pdc.bounce_reason = reason

    pdc, _ = execute_transition(
        pdc_id, "bounce", apply=_apply,
        expected_version=expected_version, actor_user_id=actor_user_id, note=reason,
    )
    return pdc


def withdraw(
    pdc_id: int,
    withdrawal_date,
    withdrawal_reason,
    new_payment_method=None,
    transaction_id=None,
    *,
    expected_version: int | None = None,
    actor_user_id: int | None = None,
) -> PDC:
    """
    Return a cheque to the tenant.

    new_payment_method records how the tenant pays instead; BANK_TRANSFER
    requires the transfer's transaction_id.
    """
    withdrawn_on = require_not_future(
        "withdrawal_date", require_date("withdrawal_date", withdrawal_date), business_today()
    )
    reason = require_text("withdrawal_reason", withdrawal_reason, 255)
    method = None
    if new_payment_method not in (None, ""):
        method = coerce_enum("new_payment_method", NewPaymentMethod, new_payment_method)
    txn_id = optional_text("transaction_id", transaction_id, 100)

    if method is NewPaymentMethod.BANK_TRANSFER and txn_id is None:
        raise ValidationError("transaction_id is required when new_payment_method is BANK_TRANSFER")
    if txn_id is not None and method is None:
        raise ValidationError("transaction_id requires new_payment_method")

    def _apply(pdc: PDC) -> None:
        pdc.withdrawal_date = withdrawn_on
        pdc.withdrawal_reason = reason
        pdc.new_payment_method = method
        pdc.transaction_id = txn_id

    pdc, _ = execute_transition(
        pdc_id, "withdraw", apply=_apply,
        expected_version=expected_version, actor_user_id=actor_user_id, note=reason,
    )
    return pdc


def cancel(
    pdc_id: int,
    *,
    expected_version: int | None = None,
    actor_user_id: int | None = None,
) -> PDC:
    pdc, _ = execute_transition(
        pdc_id, "cancel", expected_version=expected_version, actor_user_id=actor_user_id,
    )
    return pdc


# =============================================================================
# SCHEDULER SUPPORT (RECEIVED -> DUE)
# =============================================================================

def _due_window_days() -> int:
    return int(current_app.config.get("PDC_DUE_WINDOW_DAYS", 7))


def mark_due(pdc_id: int, *, as_of: date | None = None, actor_user_id: int | None = None) -> PDC:
    """
    Reclassify one RECEIVED cheque as DUE.

    Only cheques dated on or before as_of + due window qualify.
    """
    as_of = as_of or business_today()
    window_end = as_of + timedelta(days=_due_window_days())

    def _apply(pdc: PDC) -> None:
        if pdc.cheque_date > window_end:
            raise ValidationError(
                f"cheque_date {pdc.cheque_date.isoformat()} is outside the due window ending {window_end.isoformat()}"
            )

    pdc, _ = execute_transition(pdc_id, "mark_due", apply=_apply, actor_user_id=actor_user_id)
    return pdc


def reclassify_due(as_of: date | None = None) -> int:
    """
    Scheduled job: move every RECEIVED cheque inside the due window to DUE.

    Each cheque is its own unit of work through execute_transition(); a
    cheque that moved on meanwhile is skipped and logged, not forced.
    """
    as_of = as_of or business_today()
    window_end = as_of + timedelta(days=_due_window_days())

    candidate_ids = [
        row.id for row in db.session.query(PDC.id).filter(
            PDC.status == PDCStatus.RECEIVED,
            PDC.cheque_date <= window_end,
        ).order_by(PDC.cheque_date.asc(), PDC.id.asc()).all()
    ]

    count = 0
    for pdc_id in candidate_ids:
        try:
            run_with_retry(lambda: mark_due(pdc_id, as_of=as_of))
            count += 1
        except (InvalidTransitionError, ConcurrentModificationError) as exc:
            logger.warning("Skipped DUE reclassification for PDC %s: %s", pdc_id, exc)

    logger.info("Transitioned %s PDCs from RECEIVED to DUE", count)
    return count


def pdcs_due_for_reminder(reminder_date: date) -> list[PDC]:
    """DUE cheques dated on reminder_date (feeds the external reminder job)."""
    return db.session.query(PDC).filter(
        PDC.status == PDCStatus.DUE,
        PDC.cheque_date == reminder_date,
    ).order_by(PDC.id.asc()).all()
