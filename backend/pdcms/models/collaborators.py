from __future__ import annotations

import enum

from ..extensions import db
from pdcms.time_utils import to_utc_z


class Tenant(db.Model):
    """
    Tenant (lessee) as seen by the cheque engine.

    Owned by the tenant registry; this service only checks existence
    and reads the display name.
    """
    __tablename__ = "tenants"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    full_name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Tenant id={self.id} name={self.full_name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "full_name": self.full_name,
            "email": self.email,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class InvoiceStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    SENT = "SENT"
    PARTIALLY_PAID = "PARTIALLY_PAID"
    PAID = "PAID"
    OVERDUE = "OVERDUE"
    CANCELLED = "CANCELLED"


class Invoice(db.Model):
    """
    Invoice ledger row.

    Created and managed by the invoicing subsystem. The cheque engine only
    ever increments paid_amount and recomputes balance_amount / status
    (see reconciliation_service).
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.UniqueConstraint("invoice_number", name="uq_invoices_number"),
        db.CheckConstraint("paid_amount >= 0", name="ck_invoices_paid_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_number = db.Column(db.String(64), nullable=False)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=True, index=True)

    total_amount = db.Column(db.Numeric(12, 2), nullable=False)
    paid_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    balance_amount = db.Column(db.Numeric(12, 2), nullable=False)
    status = db.Column(
        db.Enum(InvoiceStatus, name="invoice_status", native_enum=False, create_constraint=True, length=20),
        nullable=False,
        default=InvoiceStatus.SENT,
        index=True,
    )

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Invoice id={self.id} number={self.invoice_number!r} status={self.status.value}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_number": self.invoice_number,
            "tenant_id": self.tenant_id,
            "total_amount": f"{self.total_amount:.2f}",
            "paid_amount": f"{self.paid_amount:.2f}",
            "balance_amount": f"{self.balance_amount:.2f}",
            "status": self.status.value,
            "updated_at": to_utc_z(self.updated_at),
        }


class BankAccount(db.Model):
    """Company bank account that cheques are deposited into (read-only here)."""
    __tablename__ = "bank_accounts"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    bank_name = db.Column(db.String(100), nullable=False)
    account_name = db.Column(db.String(255), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "bank_name": self.bank_name,
            "account_name": self.account_name,
            "is_active": self.is_active,
        }
