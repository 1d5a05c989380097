# Overview: Error taxonomy for the cheque engine; every rejection names the rule it violated.

from __future__ import annotations

from dataclasses import dataclass

from ..validation import ValidationError


class PDCError(Exception):
    """Base class for business-rule rejections raised by cheque services."""
    code = "PDC_ERROR"


class DuplicateChequeError(PDCError):
    """(cheque_number, tenant) already registered."""
    code = "DUPLICATE_CHEQUE"

    def __init__(self, cheque_numbers: list[str] | str, tenant_id: int):
        if isinstance(cheque_numbers, str):
            cheque_numbers = [cheque_numbers]
        self.cheque_numbers = list(cheque_numbers)
        self.tenant_id = tenant_id
        super().__init__(
            f"Cheque number already exists for tenant {tenant_id}: {', '.join(self.cheque_numbers)}"
        )


class NotFoundError(PDCError):
    code = "NOT_FOUND"

    def __init__(self, entity: str, entity_id):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class InvalidTransitionError(PDCError):
    """Requested action is not permitted from the cheque's current status."""
    code = "INVALID_TRANSITION"

    def __init__(self, action: str, current_status: str):
        self.action = action
        self.current_status = current_status
        super().__init__(f"cannot {action} a {current_status} cheque")


class AlreadyReplacedError(PDCError):
    code = "ALREADY_REPLACED"

    def __init__(self, pdc_id: int, replacement_pdc_id: int):
        self.pdc_id = pdc_id
        self.replacement_pdc_id = replacement_pdc_id
        super().__init__(
            f"PDC {pdc_id} has already been replaced by PDC {replacement_pdc_id}"
        )


class ConcurrentModificationError(PDCError):
    """Stale version: another writer changed the record first. Caller must re-read and retry."""
    code = "CONCURRENT_MODIFICATION"

    def __init__(self, entity: str, entity_id, expected_version: int | None = None, actual_version: int | None = None):
        self.entity = entity
        self.entity_id = entity_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        if expected_version is not None and actual_version is not None:
            msg = (
                f"{entity} {entity_id} was modified concurrently "
                f"(expected version {expected_version}, found {actual_version})"
            )
        else:
            msg = f"{entity} {entity_id} was modified concurrently; reload and retry"
        super().__init__(msg)


@dataclass(frozen=True)
class ReconciliationWarning:
    """
    Non-fatal outcome of clearing a cheque whose invoice link could not be applied.

    Returned alongside the cleared cheque, never raised: the cheque's own
    status change stands on its own.
    """
    pdc_id: int
    invoice_id: int
    message: str
    code: str = "RECONCILIATION_WARNING"

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "pdc_id": self.pdc_id,
            "invoice_id": self.invoice_id,
            "message": self.message,
        }


__all__ = [
    "PDCError",
    "ValidationError",
    "DuplicateChequeError",
    "NotFoundError",
    "InvalidTransitionError",
    "AlreadyReplacedError",
    "ConcurrentModificationError",
    "ReconciliationWarning",
]
