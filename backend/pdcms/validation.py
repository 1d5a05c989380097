from __future__ import annotations
import enum
import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from pdcms.time_utils import parse_iso_date

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Date, Enum, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeMeta


# Cheque amounts: 0.01 .. 99,999,999.99 (fits Numeric(12, 2))
MIN_AMOUNT = Decimal("0.01")
MAX_AMOUNT = Decimal("99999999.99")

CHEQUE_NUMBER_MIN_LENGTH = 3
CHEQUE_NUMBER_RE = re.compile(r"^[A-Za-z0-9-]+$")


class ValidationError(ValueError):
    """400-level input problem."""
    code = "VALIDATION_ERROR"


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for create
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


PDC_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={
        "cheque_number", "bank_name", "tenant_id", "invoice_id", "lease_id",
        "amount", "cheque_date", "notes", "original_pdc_id", "created_by_user_id",
    },
    required_on_create={"cheque_number", "bank_name", "tenant_id", "amount", "cheque_date"},
)


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def coerce_decimal(field: str, value: Any) -> Decimal:
    # bool is an int subclass; never a money amount
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float, str)):
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValidationError(f"{field} must be a number")
    else:
        raise ValidationError(f"{field} must be a number")
    if not result.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    return result


def coerce_date(field: str, value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            parsed = parse_iso_date(value)
        except ValueError:
            raise ValidationError(f"{field} must be an ISO-8601 date (YYYY-MM-DD)")
        if parsed is None:
            raise ValidationError(f"{field} is required")
        return parsed
    raise ValidationError(f"{field} must be a date")


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped or not stripped.lstrip("-").isdigit():
                raise ValidationError(f"{col.key} must be an integer")
            return int(stripped)
        raise ValidationError(f"{col.key} must be an integer")

    if isinstance(coltype, Numeric):
        return coerce_decimal(col.key, value)

    if isinstance(coltype, Date):
        return coerce_date(col.key, value)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        return bool(value)

    if isinstance(coltype, Enum):
        enum_class = coltype.enum_class
        if enum_class is not None:
            return coerce_enum(col.key, enum_class, value)
        return value

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    # Default: leave as-is
    return value


def coerce_enum(field: str, enum_class: type[enum.Enum], value: Any):
    if isinstance(value, enum_class):
        return value
    try:
        return enum_class(str(value).strip().upper())
    except ValueError:
        allowed = ", ".join(m.value for m in enum_class)
        raise ValidationError(f"{field} must be one of: {allowed}")


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming data against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if payload.get(f) in (None, ""))
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        # NULL handling
        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not isinstance(col.type, Enum):
            if isinstance(val, str) and val == "":
                if not col.nullable:
                    raise ValidationError(f"{k} cannot be blank")
                val = None

        # Max length check for String(n)
        if isinstance(col.type, String) and not isinstance(col.type, Enum):
            if col.type.length and isinstance(val, str) and len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def validate_amount(amount: Decimal, field: str = "amount") -> Decimal:
    if amount < MIN_AMOUNT:
        raise ValidationError(f"{field} must be greater than 0")
    if amount > MAX_AMOUNT:
        raise ValidationError(f"{field} cannot exceed {MAX_AMOUNT:,}")
    quantized = amount.quantize(Decimal("0.01"))
    if amount != quantized:
        raise ValidationError(f"{field} cannot have more than 2 decimal places")
    return quantized


def validate_cheque_number(cheque_number: str, field: str = "cheque_number") -> str:
    if len(cheque_number) < CHEQUE_NUMBER_MIN_LENGTH:
        raise ValidationError(f"{field} must be at least {CHEQUE_NUMBER_MIN_LENGTH} characters")
    if not CHEQUE_NUMBER_RE.match(cheque_number):
        raise ValidationError(f"{field} must contain only letters, numbers, and hyphens")
    return cheque_number


def enforce_rules_pdc(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    if patch.get("cheque_number") is not None:
        validate_cheque_number(patch["cheque_number"])

    if patch.get("amount") is not None:
        patch["amount"] = validate_amount(patch["amount"])


def require_text(field: str, value: Any, max_length: int) -> str:
    """Required free-text input (reasons, references)."""
    if value is None or str(value).strip() == "":
        raise ValidationError(f"{field} is required")
    text = str(value).strip()
    if len(text) > max_length:
        raise ValidationError(f"{field} exceeds max length {max_length}")
    return text


def optional_text(field: str, value: Any, max_length: int) -> str | None:
    if value is None or str(value).strip() == "":
        return None
    return require_text(field, value, max_length)


def require_date(field: str, value: Any) -> date:
    if value is None or value == "":
        raise ValidationError(f"{field} is required")
    return coerce_date(field, value)


def require_not_future(field: str, value: date, today: date) -> date:
    if value > today:
        raise ValidationError(f"{field} cannot be in the future")
    return value


def require_id(field: str, value: Any) -> int:
    if value is None or value == "":
        raise ValidationError(f"{field} is required")
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    raise ValidationError(f"{field} must be an integer")
