from __future__ import annotations

from ..extensions import db
from pdcms.time_utils import to_utc_z


class PDCEvent(db.Model):
    """
    Append-only audit row for every cheque registration and transition.

    WHY: Finance staff need to see who moved a cheque and when.
    Rows are written in the same transaction as the change they record
    and are never updated or deleted.
    """
    __tablename__ = "pdc_events"
    __table_args__ = (
        db.Index("ix_pdc_events_pdc_occurred", "pdc_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    pdc_id = db.Column(db.Integer, db.ForeignKey("pdcs.id"), nullable=False, index=True)

    event_type = db.Column(db.String(64), nullable=False, index=True)  # e.g. "pdc.cleared"
    from_status = db.Column(db.String(20), nullable=True)
    to_status = db.Column(db.String(20), nullable=False)

    actor_user_id = db.Column(db.Integer, nullable=True)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    note = db.Column(db.String(500), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "pdc_id": self.pdc_id,
            "event_type": self.event_type,
            "from_status": self.from_status,
            "to_status": self.to_status,
            "actor_user_id": self.actor_user_id,
            "occurred_at": to_utc_z(self.occurred_at),
            "note": self.note,
        }
