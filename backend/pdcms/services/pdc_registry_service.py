# Overview: Service-layer operations for cheque registration; record store, duplicate guard and read queries.

"""
PDC Record Store & Duplicate Guard

WHY: Every cheque a tenant hands over is registered once, in RECEIVED
status, and is never physically deleted afterwards.

RULES:
- (cheque_number, tenant_id) is unique. Cheque numbers are stored upper-cased
  so the database constraint, check_duplicate() and register() all apply the
  same case-insensitive predicate.
- check_duplicate() is advisory. The unique constraint is the real guard; an
  IntegrityError raised by a racing insert is reported as DuplicateChequeError.
- register_bulk() is all-or-nothing: every entry is validated and checked
  before the first insert, and the batch commits as one unit.
- amount, tenant_id and invoice_id are fixed at creation.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from datetime import date
from typing import Any, Iterable

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import PDC, PDCStatus
from ..validation import (
    PDC_CREATE_POLICY,
    ValidationError,
    coerce_enum,
    enforce_rules_pdc,
    validate_payload,
)
from . import collaborators
from .concurrency import atomic
from .errors import DuplicateChequeError, NotFoundError
from .ledger_service import append_pdc_event
from .pagination import Page, paginate


logger = logging.getLogger(__name__)

UNIQUE_CHEQUE_CONSTRAINT = "uq_pdcs_cheque_tenant"

SORTABLE_FIELDS = {
    "cheque_number": PDC.cheque_number,
    "bank_name": PDC.bank_name,
    "amount": PDC.amount,
    "cheque_date": PDC.cheque_date,
    "status": PDC.status,
    "created_at": PDC.created_at,
}


@dataclass
class PDCFilter:
    search: str | None = None
    status: PDCStatus | str | None = None
    tenant_id: int | None = None
    bank_name: str | None = None
    from_date: date | None = None
    to_date: date | None = None
    sort_by: str = "cheque_date"
    sort_direction: str = "asc"


def normalize_cheque_number(cheque_number: str) -> str:
    return cheque_number.strip().upper()


def _max_bulk() -> int:
    return int(current_app.config.get("PDC_MAX_BULK", 24))


# =============================================================================
# DUPLICATE GUARD
# =============================================================================

def check_duplicate(cheque_number: str, tenant_id: int) -> bool:
    """True when (cheque_number, tenant_id) is already registered."""
    if not cheque_number:
        return False
    return db.session.query(
        db.session.query(PDC).filter(
            PDC.cheque_number == normalize_cheque_number(cheque_number),
            PDC.tenant_id == tenant_id,
        ).exists()
    ).scalar()


def _existing_cheque_numbers(cheque_numbers: Iterable[str], tenant_id: int) -> list[str]:
    numbers = list(cheque_numbers)
    if not numbers:
        return []
    rows = db.session.query(PDC.cheque_number).filter(
        PDC.tenant_id == tenant_id,
        PDC.cheque_number.in_(numbers),
    ).all()
    found = {row.cheque_number for row in rows}
    return [n for n in numbers if n in found]


def _is_cheque_uniqueness_violation(exc: IntegrityError) -> bool:
    msg = str(exc.orig)
    return UNIQUE_CHEQUE_CONSTRAINT in msg or "pdcs.cheque_number, pdcs.tenant_id" in msg


# =============================================================================
# REGISTRATION
# =============================================================================

def clean_pdc_fields(raw: dict[str, Any]) -> dict:
    """
    Validate and normalize the fields of one cheque.

    Raises ValidationError naming the offending field.
    """
    patch = validate_payload(model=PDC, payload=raw, policy=PDC_CREATE_POLICY, partial=False)
    patch["cheque_number"] = normalize_cheque_number(patch["cheque_number"])
    enforce_rules_pdc(patch)
    return patch


def insert_pdc(fields: dict, *, actor_user_id: int | None = None, note: str | None = None) -> PDC:
    """
    Insert one validated cheque in RECEIVED status inside the current unit of work.

    Shared by registration and the chain manager; never commits.
    """
    pdc = PDC(status=PDCStatus.RECEIVED, **fields)
    db.session.add(pdc)
    db.session.flush()
    append_pdc_event(
        pdc=pdc,
        event_type="pdc.registered",
        from_status=None,
        actor_user_id=actor_user_id,
        note=note,
    )
    return pdc


def register(
    cheque_number: str,
    bank_name: str,
    tenant_id: int,
    amount,
    cheque_date,
    invoice_id: int | None = None,
    lease_id: int | None = None,
    notes: str | None = None,
    *,
    actor_user_id: int | None = None,
) -> PDC:
    """
    Register a single post-dated cheque.

    Raises:
        ValidationError: malformed or missing field
        NotFoundError: unknown tenant or invoice
        DuplicateChequeError: (cheque_number, tenant_id) already registered
    """
    fields = clean_pdc_fields({
        "cheque_number": cheque_number,
        "bank_name": bank_name,
        "tenant_id": tenant_id,
        "amount": amount,
        "cheque_date": cheque_date,
        "invoice_id": invoice_id,
        "lease_id": lease_id,
        "notes": notes,
    })
    fields["created_by_user_id"] = actor_user_id

    def _op():
        if not collaborators.tenant_exists(fields["tenant_id"]):
            raise NotFoundError("Tenant", fields["tenant_id"])
        if fields.get("invoice_id") is not None and collaborators.get_invoice(fields["invoice_id"]) is None:
            raise NotFoundError("Invoice", fields["invoice_id"])
        if check_duplicate(fields["cheque_number"], fields["tenant_id"]):
            raise DuplicateChequeError(fields["cheque_number"], fields["tenant_id"])
        return insert_pdc(fields, actor_user_id=actor_user_id)

    try:
        pdc = atomic(_op, entity="PDC")
    except IntegrityError as exc:
        if _is_cheque_uniqueness_violation(exc):
            raise DuplicateChequeError(fields["cheque_number"], fields["tenant_id"]) from exc
        raise

    logger.info("PDC registered: %s for tenant %s (id=%s)", pdc.cheque_number, pdc.tenant_id, pdc.id)
    return pdc


def register_bulk(
    tenant_id: int,
    entries: list[dict],
    invoice_id: int | None = None,
    lease_id: int | None = None,
    *,
    actor_user_id: int | None = None,
) -> list[PDC]:
    """
    Register several cheques from one tenant as a single all-or-nothing unit.

    Each entry carries cheque_number, bank_name, amount, cheque_date and
    optionally invoice_id / notes. Batch-level invoice_id applies to entries
    that do not name their own; batch-level lease_id applies to every entry.
    """
    if not isinstance(entries, list) or not entries:
        raise ValidationError("At least 1 cheque entry is required")
    max_bulk = _max_bulk()
    if len(entries) > max_bulk:
        raise ValidationError(f"Cannot register more than {max_bulk} cheques at once")

    cleaned: list[dict] = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise ValidationError(f"entries[{index}] must be an object")
        unknown = set(entry) - {"cheque_number", "bank_name", "amount", "cheque_date", "invoice_id", "notes"}
        if unknown:
            raise ValidationError(f"entries[{index}]: Field not allowed: {', '.join(sorted(unknown))}")
        try:
            fields = clean_pdc_fields({
                "cheque_number": entry.get("cheque_number"),
                "bank_name": entry.get("bank_name"),
                "amount": entry.get("amount"),
                "cheque_date": entry.get("cheque_date"),
                "notes": entry.get("notes"),
                "tenant_id": tenant_id,
                "invoice_id": entry.get("invoice_id") if entry.get("invoice_id") not in (None, "") else invoice_id,
                "lease_id": lease_id,
            })
        except ValidationError as exc:
            raise ValidationError(f"entries[{index}]: {exc}") from exc
        fields["created_by_user_id"] = actor_user_id
        cleaned.append(fields)

    numbers = [f["cheque_number"] for f in cleaned]
    repeated = sorted(n for n, count in Counter(numbers).items() if count > 1)
    if repeated:
        raise ValidationError(f"Duplicate cheque numbers within submission: {', '.join(repeated)}")

    tenant_id = cleaned[0]["tenant_id"]

    def _op():
        if not collaborators.tenant_exists(tenant_id):
            raise NotFoundError("Tenant", tenant_id)
        for invoice in sorted({f["invoice_id"] for f in cleaned if f.get("invoice_id") is not None}):
            if collaborators.get_invoice(invoice) is None:
                raise NotFoundError("Invoice", invoice)
        existing = _existing_cheque_numbers(numbers, tenant_id)
        if existing:
            raise DuplicateChequeError(existing, tenant_id)
        return [
            insert_pdc(fields, actor_user_id=actor_user_id, note=f"bulk {i + 1}/{len(cleaned)}")
            for i, fields in enumerate(cleaned)
        ]

    try:
        pdcs = atomic(_op, entity="PDC")
    except IntegrityError as exc:
        if _is_cheque_uniqueness_violation(exc):
            raise DuplicateChequeError(numbers, tenant_id) from exc
        raise

    logger.info("Bulk PDCs registered: %s cheques for tenant %s", len(pdcs), tenant_id)
    return pdcs


# =============================================================================
# READS
# =============================================================================

def get_pdc(pdc_id: int) -> PDC:
    pdc = db.session.get(PDC, pdc_id)
    if pdc is None:
        raise NotFoundError("PDC", pdc_id)
    return pdc


def list_pdcs(filters: PDCFilter | None = None, page: int | None = 0, size: int | None = None) -> Page:
    filters = filters or PDCFilter()
    query = db.session.query(PDC)

    if filters.search:
        term = f"%{filters.search.strip().lower()}%"
        query = query.filter(func.lower(PDC.cheque_number).like(term))
    if filters.status:
        query = query.filter(PDC.status == coerce_enum("status", PDCStatus, filters.status))
    if filters.tenant_id is not None:
        query = query.filter(PDC.tenant_id == filters.tenant_id)
    if filters.bank_name:
        query = query.filter(PDC.bank_name == filters.bank_name)
    if filters.from_date:
        query = query.filter(PDC.cheque_date >= filters.from_date)
    if filters.to_date:
        query = query.filter(PDC.cheque_date <= filters.to_date)

    column = SORTABLE_FIELDS.get(filters.sort_by)
    if column is None:
        raise ValidationError(f"sort_by must be one of: {', '.join(sorted(SORTABLE_FIELDS))}")
    direction = (filters.sort_direction or "asc").lower()
    if direction not in ("asc", "desc"):
        raise ValidationError("sort_direction must be asc or desc")
    order = column.desc() if direction == "desc" else column.asc()

    return paginate(query.order_by(order, PDC.id.asc()), page, size)


def list_by_tenant(tenant_id: int, page: int | None = 0, size: int | None = None) -> Page:
    query = db.session.query(PDC).filter(PDC.tenant_id == tenant_id).order_by(
        PDC.cheque_date.desc(), PDC.id.desc()
    )
    return paginate(query, page, size)


def list_by_invoice(invoice_id: int) -> list[PDC]:
    return db.session.query(PDC).filter(PDC.invoice_id == invoice_id).order_by(
        PDC.cheque_date.asc(), PDC.id.asc()
    ).all()
