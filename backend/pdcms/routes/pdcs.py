# Overview: Flask API routes for post-dated cheques; parses input and returns JSON responses.

# backend/pdcms/routes/pdcs.py
"""PDC API routes: registration, lifecycle transitions, chains and dashboard."""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_actor
from ..services import (
    ledger_service,
    pdc_chain_service,
    pdc_dashboard_service,
    pdc_lifecycle_service,
    pdc_registry_service,
)
from ..services.errors import (
    AlreadyReplacedError,
    ConcurrentModificationError,
    DuplicateChequeError,
    InvalidTransitionError,
    NotFoundError,
    PDCError,
)
from ..services.pdc_registry_service import PDCFilter
from ..time_utils import parse_iso_date
from ..validation import ValidationError, require_id


pdcs_bp = Blueprint("pdcs", __name__, url_prefix="/api/pdcs")

HANDLED_ERRORS = (PDCError, ValidationError)

ERROR_STATUS = (
    (ValidationError, 400),
    (NotFoundError, 404),
    (DuplicateChequeError, 409),
    (InvalidTransitionError, 409),
    (AlreadyReplacedError, 409),
    (ConcurrentModificationError, 409),
)


def _error_response(e):
    status = next((code for cls, code in ERROR_STATUS if isinstance(e, cls)), 400)
    body = {"error": str(e), "code": getattr(e, "code", "ERROR")}
    if isinstance(e, DuplicateChequeError):
        body["cheque_numbers"] = e.cheque_numbers
    return jsonify(body), status


def _internal_error(message: str):
    current_app.logger.exception(message)
    return jsonify({"error": "Internal server error"}), 500


def _date_arg(name: str):
    try:
        return parse_iso_date(request.args.get(name))
    except ValueError:
        raise ValidationError(f"{name} must be an ISO date (YYYY-MM-DD)")


def _page_args() -> tuple[int | None, int | None]:
    return request.args.get("page", type=int), request.args.get("size", type=int)


def _expected_version(data: dict) -> int | None:
    if data.get("version") is None:
        return None
    return require_id("version", data.get("version"))


def _page_response(page):
    return jsonify(page.to_dict()), 200


# =============================================================================
# REGISTRATION
# =============================================================================

@pdcs_bp.post("/")
@require_actor
def register_route():
    """
    Register a single cheque.

    Body: cheque_number, bank_name, tenant_id, amount, cheque_date,
          invoice_id (optional), lease_id (optional), notes (optional)
    """
    try:
        data = request.get_json() or {}
        pdc = pdc_registry_service.register(
            cheque_number=data.get("cheque_number"),
            bank_name=data.get("bank_name"),
            tenant_id=data.get("tenant_id"),
            amount=data.get("amount"),
            cheque_date=data.get("cheque_date"),
            invoice_id=data.get("invoice_id"),
            lease_id=data.get("lease_id"),
            notes=data.get("notes"),
            actor_user_id=g.current_user_id,
        )
        return jsonify({"pdc": pdc.to_dict()}), 201

    except HANDLED_ERRORS as e:
        return _error_response(e)
    except Exception:
        return _internal_error("Failed to register PDC")


@pdcs_bp.post("/bulk")
@require_actor
def register_bulk_route():
    """
    Register up to PDC_MAX_BULK cheques for one tenant in a single all-or-nothing call.

    Body: tenant_id, invoice_id (optional), lease_id (optional), entries: [...]
    """
    try:
        data = request.get_json() or {}
        pdcs = pdc_registry_service.register_bulk(
            tenant_id=data.get("tenant_id"),
            entries=data.get("entries"),
            invoice_id=data.get("invoice_id"),
            lease_id=data.get("lease_id"),
            actor_user_id=g.current_user_id,
        )
        return jsonify({"pdcs": [p.to_dict() for p in pdcs], "count": len(pdcs)}), 201

    except HANDLED_ERRORS as e:
        return _error_response(e)
    except Exception:
        return _internal_error("Failed to register PDCs in bulk")


@pdcs_bp.get("/check-duplicate")
@require_actor
def check_duplicate_route():
    cheque_number = request.args.get("cheque_number", "")
    tenant_id = request.args.get("tenant_id", type=int)
    if tenant_id is None:
        return jsonify({"error": "tenant_id required", "code": "VALIDATION_ERROR"}), 400
    exists = pdc_registry_service.check_duplicate(cheque_number, tenant_id)
    return jsonify({"duplicate": bool(exists)}), 200


# =============================================================================
# READS
# =============================================================================

@pdcs_bp.get("/<int:pdc_id>")
@require_actor
def get_pdc_route(pdc_id: int):
    try:
        pdc = pdc_registry_service.get_pdc(pdc_id)
        body = pdc.to_dict()
        body["allowed_actions"] = pdc_lifecycle_service.allowed_actions(pdc.status)
        return jsonify({"pdc": body}), 200
    except HANDLED_ERRORS as e:
        return _error_response(e)


@pdcs_bp.get("/")
@require_actor
def list_pdcs_route():
    """
    List cheques.

    Query params:
    - search: substring of the cheque number (case-insensitive)
    - status: one status, or ALL
    - tenant_id, bank_name
    - from_date / to_date: cheque_date range (inclusive)
    - sort_by (default cheque_date), sort_direction (asc|desc)
    - page (0-based), size
    """
    try:
        status = (request.args.get("status") or "").strip()
        filters = PDCFilter(
            search=request.args.get("search"),
            status=None if status.upper() in ("", "ALL") else status,
            tenant_id=request.args.get("tenant_id", type=int),
            bank_name=request.args.get("bank_name") or None,
            from_date=_date_arg("from_date"),
            to_date=_date_arg("to_date"),
            sort_by=request.args.get("sort_by", "cheque_date"),
            sort_direction=request.args.get("sort_direction", "asc"),
        )
        page, size = _page_args()
        return _page_response(pdc_registry_service.list_pdcs(filters, page, size))

    except HANDLED_ERRORS as e:
        return _error_response(e)
    except Exception:
        return _internal_error("Failed to list PDCs")


@pdcs_bp.get("/tenant/<int:tenant_id>")
@require_actor
def list_by_tenant_route(tenant_id: int):
    try:
        page, size = _page_args()
        return _page_response(pdc_registry_service.list_by_tenant(tenant_id, page, size))
    except HANDLED_ERRORS as e:
        return _error_response(e)


@pdcs_bp.get("/invoice/<int:invoice_id>")
@require_actor
def list_by_invoice_route(invoice_id: int):
    pdcs = pdc_registry_service.list_by_invoice(invoice_id)
    return jsonify({"pdcs": [p.to_dict() for p in pdcs]}), 200


@pdcs_bp.get("/<int:pdc_id>/chain")
@require_actor
def chain_route(pdc_id: int):
    try:
        chain = pdc_chain_service.get_chain(pdc_id)
        return jsonify({"chain": [p.to_dict() for p in chain]}), 200
    except HANDLED_ERRORS as e:
        return _error_response(e)


@pdcs_bp.get("/<int:pdc_id>/events")
@require_actor
def events_route(pdc_id: int):
    try:
        pdc_registry_service.get_pdc(pdc_id)
        events = ledger_service.get_pdc_events(pdc_id)
        return jsonify({"events": [e.to_dict() for e in events]}), 200
    except HANDLED_ERRORS as e:
        return _error_response(e)


# =============================================================================
# LIFECYCLE TRANSITIONS
# =============================================================================
# Every transition body accepts an optional "version": the version_id the
# client last read. A mismatch returns 409 CONCURRENT_MODIFICATION.

@pdcs_bp.post("/<int:pdc_id>/deposit")
@require_actor
def deposit_route(pdc_id: int):
    """Body: deposit_date, bank_account_id, version (optional)"""
    try:
        data = request.get_json() or {}
        pdc = pdc_lifecycle_service.deposit(
            pdc_id,
            deposit_date=data.get("deposit_date"),
            bank_account_id=data.get("bank_account_id"),
            expected_version=_expected_version(data),
            actor_user_id=g.current_user_id,
        )
        return jsonify({"pdc": pdc.to_dict()}), 200

    except HANDLED_ERRORS as e:
        return _error_response(e)
    except Exception:
        return _internal_error("Failed to deposit PDC")


@pdcs_bp.post("/<int:pdc_id>/clear")
@require_actor
def clear_route(pdc_id: int):
    """
    Body: cleared_date, version (optional)

    A cheque linked to an invoice that no longer exists still clears; the
    response carries the problem under "warnings".
    """
    try:
        data = request.get_json() or {}
        result = pdc_lifecycle_service.clear(
            pdc_id,
            cleared_date=data.get("cleared_date"),
            expected_version=_expected_version(data),
            actor_user_id=g.current_user_id,
        )
        warnings = [result.warning.to_dict()] if result.warning else []
        return jsonify({"pdc": result.pdc.to_dict(), "warnings": warnings}), 200

    except HANDLED_ERRORS as e:
        return _error_response(e)
    except Exception:
        return _internal_error("Failed to clear PDC")


@pdcs_bp.post("/<int:pdc_id>/bounce")
@require_actor
def bounce_route(pdc_id: int):
    """Body: bounced_date, bounce_reason, version (optional)"""
    try:
        data = request.get_json() or {}
        pdc = pdc_lifecycle_service.bounce(
            pdc_id,
            bounced_date=data.get("bounced_date"),
            bounce_reason=data.get("bounce_reason"),
            expected_version=_expected_version(data),
            actor_user_id=g.current_user_id,
        )
        return jsonify({"pdc": pdc.to_dict()}), 200

    except HANDLED_ERRORS as e:
        return _error_response(e)
    except Exception:
        return _internal_error("Failed to bounce PDC")


@pdcs_bp.post("/<int:pdc_id>/replace")
@require_actor
def replace_route(pdc_id: int):
    """Body: new_cheque_number, bank_name, amount, cheque_date, notes, invoice_id, version (last three optional)"""
    try:
        data = request.get_json() or {}
        replacement = pdc_chain_service.replace(
            pdc_id,
            new_cheque_number=data.get("new_cheque_number"),
            bank_name=data.get("bank_name"),
            amount=data.get("amount"),
            cheque_date=data.get("cheque_date"),
            notes=data.get("notes"),
            invoice_id=data.get("invoice_id"),
            expected_version=_expected_version(data),
            actor_user_id=g.current_user_id,
        )
        original = pdc_registry_service.get_pdc(pdc_id)
        return jsonify({"pdc": replacement.to_dict(), "original": original.to_dict()}), 201

    except HANDLED_ERRORS as e:
        return _error_response(e)
    except Exception:
        return _internal_error("Failed to replace PDC")


@pdcs_bp.post("/<int:pdc_id>/withdraw")
@require_actor
def withdraw_route(pdc_id: int):
    """Body: withdrawal_date, withdrawal_reason, new_payment_method, transaction_id, version (all but the first two optional)"""
    try:
        data = request.get_json() or {}
        pdc = pdc_lifecycle_service.withdraw(
            pdc_id,
            withdrawal_date=data.get("withdrawal_date"),
            withdrawal_reason=data.get("withdrawal_reason"),
            new_payment_method=data.get("new_payment_method"),
            transaction_id=data.get("transaction_id"),
            expected_version=_expected_version(data),
            actor_user_id=g.current_user_id,
        )
        return jsonify({"pdc": pdc.to_dict()}), 200

    except HANDLED_ERRORS as e:
        return _error_response(e)
    except Exception:
        return _internal_error("Failed to withdraw PDC")


@pdcs_bp.post("/<int:pdc_id>/cancel")
@require_actor
def cancel_route(pdc_id: int):
    try:
        data = request.get_json(silent=True) or {}
        pdc = pdc_lifecycle_service.cancel(
            pdc_id,
            expected_version=_expected_version(data),
            actor_user_id=g.current_user_id,
        )
        return jsonify({"pdc": pdc.to_dict()}), 200

    except HANDLED_ERRORS as e:
        return _error_response(e)
    except Exception:
        return _internal_error("Failed to cancel PDC")


# =============================================================================
# DASHBOARD & HISTORY
# =============================================================================

@pdcs_bp.get("/dashboard")
@require_actor
def dashboard_route():
    try:
        return jsonify(pdc_dashboard_service.dashboard()), 200
    except Exception:
        return _internal_error("Failed to build PDC dashboard")


@pdcs_bp.get("/tenant/<int:tenant_id>/history")
@require_actor
def tenant_history_route(tenant_id: int):
    try:
        page, size = _page_args()
        stats, pdcs = pdc_dashboard_service.tenant_history(tenant_id, page, size)
        return jsonify({"stats": stats, "pdcs": pdcs.to_dict()}), 200
    except HANDLED_ERRORS as e:
        return _error_response(e)


@pdcs_bp.get("/withdrawals")
@require_actor
def withdrawals_route():
    try:
        page, size = _page_args()
        return _page_response(pdc_dashboard_service.withdrawal_history(page, size))
    except HANDLED_ERRORS as e:
        return _error_response(e)


@pdcs_bp.get("/banks")
@require_actor
def banks_route():
    return jsonify({"banks": pdc_dashboard_service.distinct_bank_names()}), 200


@pdcs_bp.get("/holder")
@require_actor
def holder_route():
    return jsonify({"holder_name": pdc_dashboard_service.holder_name()}), 200
