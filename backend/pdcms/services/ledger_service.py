# Overview: Service-layer operations for the cheque event ledger; append-only audit of every change.

from __future__ import annotations

from typing import Optional
from datetime import datetime

from ..extensions import db
from ..models import PDC, PDCEvent
"""
Cheque Event Ledger Invariants

- Append-only: rows are never updated or deleted.
- Events are written inside the same DB transaction as the change they record,
  so a rolled-back transition leaves no event behind.
- occurred_at is system time unless the caller passes a business time.
"""


def append_pdc_event(
    *,
    pdc: PDC,
    event_type: str,
    from_status: str | None,
    actor_user_id: int | None = None,
    occurred_at: Optional[datetime] = None,
    note: Optional[str] = None,
) -> PDCEvent:
    """Append one event for pdc; pdc must already be flushed (has an id)."""
    ev = PDCEvent(
        pdc_id=pdc.id,
        event_type=event_type,
        from_status=from_status,
        to_status=pdc.status.value,
        actor_user_id=actor_user_id,
        note=note,
    )
    if occurred_at is not None:
        ev.occurred_at = occurred_at  # otherwise the db default applies
    db.session.add(ev)
    db.session.flush()
    return ev


def get_pdc_events(pdc_id: int) -> list[PDCEvent]:
    return db.session.query(PDCEvent).filter_by(
        pdc_id=pdc_id
    ).order_by(PDCEvent.occurred_at.asc(), PDCEvent.id.asc()).all()
