# Overview: Service-layer operations for cheque replacement chains.

"""
PDC Chain Manager

WHY: A bounced cheque is usually replaced by a new cheque from the same
tenant. The new cheque is an independent lifecycle participant; the two are
linked by id so finance staff can follow the history either way.

RULES:
- Only a BOUNCED cheque can be replaced, and only once.
- replace() performs three writes as one unit of work:
    new.original_pdc_id = original.id
    original.replacement_pdc_id = new.id
    original.status = REPLACED
- The replacement inherits tenant, invoice and lease from the original.
- Chains are acyclic by construction: a replacement is always a brand-new
  row, and a cheque can acquire replacement_pdc_id only once (from BOUNCED).
- History is read by pointer traversal (get_chain), not from a separate table.
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import PDC
from . import collaborators
from .errors import AlreadyReplacedError, DuplicateChequeError, NotFoundError
from .pdc_lifecycle_service import execute_transition
from .pdc_registry_service import (
    _is_cheque_uniqueness_violation,
    check_duplicate,
    clean_pdc_fields,
    insert_pdc,
)


logger = logging.getLogger(__name__)


def replace(
    original_id: int,
    new_cheque_number: str,
    bank_name: str,
    amount,
    cheque_date,
    notes: str | None = None,
    invoice_id: int | None = None,
    *,
    expected_version: int | None = None,
    actor_user_id: int | None = None,
) -> PDC:
    """
    Replace a bounced cheque with a new one and link the two.

    Returns the new cheque (status RECEIVED). invoice_id overrides the
    invoice inherited from the original.

    Raises:
        NotFoundError: unknown original or override invoice
        AlreadyReplacedError: original already has a replacement
        InvalidTransitionError: original is not BOUNCED
        DuplicateChequeError: new cheque number already registered for the tenant
        ValidationError: malformed replacement fields
    """
    created: dict[str, object] = {}

    def _guard(locked: PDC) -> None:
        if locked.replacement_pdc_id is not None:
            raise AlreadyReplacedError(locked.id, locked.replacement_pdc_id)

    def _apply(locked: PDC) -> None:
        # Runs after the status check so a wrong-state original is reported first
        fields = clean_pdc_fields({
            "cheque_number": new_cheque_number,
            "bank_name": bank_name,
            "amount": amount,
            "cheque_date": cheque_date,
            "notes": notes,
            "tenant_id": locked.tenant_id,
            "invoice_id": invoice_id,
        })
        created["fields"] = fields

        if fields.get("invoice_id") is not None and collaborators.get_invoice(fields["invoice_id"]) is None:
            raise NotFoundError("Invoice", fields["invoice_id"])
        if check_duplicate(fields["cheque_number"], locked.tenant_id):
            raise DuplicateChequeError(fields["cheque_number"], locked.tenant_id)

        replacement = insert_pdc(
            {
                **fields,
                "invoice_id": fields.get("invoice_id") or locked.invoice_id,
                "lease_id": locked.lease_id,
                "original_pdc_id": locked.id,
                "created_by_user_id": actor_user_id,
            },
            actor_user_id=actor_user_id,
            note=f"replaces PDC {locked.id} ({locked.cheque_number})",
        )
        locked.replacement_pdc_id = replacement.id
        created["pdc"] = replacement

    try:
        execute_transition(
            original_id,
            "replace",
            guard=_guard,
            apply=_apply,
            expected_version=expected_version,
            actor_user_id=actor_user_id,
            note=f"replaced by cheque {str(new_cheque_number).strip().upper()}",
        )
    except IntegrityError as exc:
        fields = created.get("fields")
        if fields and _is_cheque_uniqueness_violation(exc):
            raise DuplicateChequeError(fields["cheque_number"], fields["tenant_id"]) from exc
        raise

    replacement = created["pdc"]
    logger.info(
        "PDC %s replaced by %s (new cheque %s)", original_id, replacement.id, replacement.cheque_number
    )
    return replacement


def get_chain(pdc_id: int) -> list[PDC]:
    """
    Full replacement chain containing pdc_id, oldest first.

    Walks original_pdc_id back to the root, then replacement_pdc_id forward.
    A revisited id stops the walk.
    """
    pdc = db.session.get(PDC, pdc_id)
    if pdc is None:
        raise NotFoundError("PDC", pdc_id)

    seen = {pdc.id}
    root = pdc
    while root.original_pdc_id is not None and root.original_pdc_id not in seen:
        parent = db.session.get(PDC, root.original_pdc_id)
        if parent is None:
            break
        seen.add(parent.id)
        root = parent

    chain = [root]
    visited = {root.id}
    current = root
    while current.replacement_pdc_id is not None and current.replacement_pdc_id not in visited:
        nxt = db.session.get(PDC, current.replacement_pdc_id)
        if nxt is None:
            break
        visited.add(nxt.id)
        chain.append(nxt)
        current = nxt
    return chain
