from __future__ import annotations

import enum

from ..extensions import db
from pdcms.time_utils import to_iso_date, to_utc_z


class PDCStatus(str, enum.Enum):
    """Closed set of cheque states. Transitions live in pdc_lifecycle_service."""
    RECEIVED = "RECEIVED"
    DUE = "DUE"
    DEPOSITED = "DEPOSITED"
    CLEARED = "CLEARED"
    BOUNCED = "BOUNCED"
    CANCELLED = "CANCELLED"
    REPLACED = "REPLACED"
    WITHDRAWN = "WITHDRAWN"


class NewPaymentMethod(str, enum.Enum):
    """Alternate payment a tenant offers when a cheque is withdrawn."""
    BANK_TRANSFER = "BANK_TRANSFER"
    CASH = "CASH"
    NEW_CHEQUE = "NEW_CHEQUE"


class PDC(db.Model):
    """
    Post-dated cheque received from a tenant.

    WHY: A cheque is a document with its own lifecycle (receipt, deposit,
    clearing or bounce, replacement, withdrawal). Records are never deleted;
    end states are kept for audit and dashboard history.

    CHAIN:
    - replacement_pdc_id: forward link, set once when a BOUNCED cheque is replaced
    - original_pdc_id: back link, set on the replacement at creation time
    Both are plain id references; history is obtained by following them.
    """
    __tablename__ = "pdcs"
    __table_args__ = (
        db.UniqueConstraint("cheque_number", "tenant_id", name="uq_pdcs_cheque_tenant"),
        db.CheckConstraint("amount > 0", name="ck_pdcs_amount_positive"),
        db.CheckConstraint(
            "replacement_pdc_id IS NULL OR replacement_pdc_id <> id",
            name="ck_pdcs_replacement_not_self",
        ),
        db.CheckConstraint(
            "replacement_pdc_id IS NULL OR original_pdc_id IS NULL "
            "OR replacement_pdc_id <> original_pdc_id",
            name="ck_pdcs_chain_distinct",
        ),
        # Dashboard scans: status + cheque_date ("due this week")
        db.Index("ix_pdcs_status_cheque_date", "status", "cheque_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Cheque identification
    cheque_number = db.Column(db.String(50), nullable=False, index=True)
    bank_name = db.Column(db.String(100), nullable=False, index=True)

    # Ownership (tenant and invoice never change after creation)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    # Invoice ledger row; owned by another subsystem, so the link may go stale
    invoice_id = db.Column(db.Integer, nullable=True, index=True)
    lease_id = db.Column(db.Integer, nullable=True, index=True)  # informational only

    amount = db.Column(db.Numeric(12, 2), nullable=False)

    # Dates (each transition date is written exactly once by its transition)
    cheque_date = db.Column(db.Date, nullable=False, index=True)
    deposit_date = db.Column(db.Date, nullable=True, index=True)
    cleared_date = db.Column(db.Date, nullable=True)
    bounced_date = db.Column(db.Date, nullable=True)
    withdrawal_date = db.Column(db.Date, nullable=True)

    status = db.Column(
        db.Enum(PDCStatus, name="pdc_status", native_enum=False, create_constraint=True, length=20),
        nullable=False,
        default=PDCStatus.RECEIVED,
        index=True,
    )

    # Bounce / withdrawal metadata
    bounce_reason = db.Column(db.String(255), nullable=True)
    withdrawal_reason = db.Column(db.String(255), nullable=True)
    new_payment_method = db.Column(
        db.Enum(NewPaymentMethod, name="pdc_new_payment_method", native_enum=False, create_constraint=True, length=20),
        nullable=True,
    )
    transaction_id = db.Column(db.String(100), nullable=True)

    # Deposit metadata
    bank_account_id = db.Column(db.Integer, db.ForeignKey("bank_accounts.id"), nullable=True, index=True)

    # Replacement chain
    replacement_pdc_id = db.Column(db.Integer, db.ForeignKey("pdcs.id"), nullable=True, unique=True)
    original_pdc_id = db.Column(db.Integer, db.ForeignKey("pdcs.id"), nullable=True, unique=True)

    notes = db.Column(db.String(500), nullable=True)
    created_by_user_id = db.Column(db.Integer, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    tenant = db.relationship("Tenant", backref=db.backref("pdcs", lazy="dynamic"))
    bank_account = db.relationship("BankAccount")

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<PDC id={self.id} cheque={self.cheque_number!r} status={self.status.value}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "cheque_number": self.cheque_number,
            "bank_name": self.bank_name,
            "tenant_id": self.tenant_id,
            "tenant_name": self.tenant.full_name if self.tenant else None,
            "invoice_id": self.invoice_id,
            "lease_id": self.lease_id,
            "amount": f"{self.amount:.2f}",
            "cheque_date": to_iso_date(self.cheque_date),
            "deposit_date": to_iso_date(self.deposit_date),
            "cleared_date": to_iso_date(self.cleared_date),
            "bounced_date": to_iso_date(self.bounced_date),
            "withdrawal_date": to_iso_date(self.withdrawal_date),
            "status": self.status.value,
            "bounce_reason": self.bounce_reason,
            "withdrawal_reason": self.withdrawal_reason,
            "new_payment_method": self.new_payment_method.value if self.new_payment_method else None,
            "transaction_id": self.transaction_id,
            "bank_account_id": self.bank_account_id,
            "replacement_pdc_id": self.replacement_pdc_id,
            "original_pdc_id": self.original_pdc_id,
            "notes": self.notes,
            "created_by_user_id": self.created_by_user_id,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
