# Overview: Service-layer read models for the cheque dashboard; never writes.

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal

from flask import current_app
from sqlalchemy import case, func

from ..extensions import db
from ..models import PDC, PDCStatus
from pdcms.time_utils import today as business_today
from . import collaborators
from .errors import NotFoundError
from .pagination import Page, paginate
from .pdc_lifecycle_service import PENDING_STATUSES


UPCOMING_STATUSES = (PDCStatus.RECEIVED, PDCStatus.DUE)


def _config_int(key: str, default: int) -> int:
    return int(current_app.config.get(key, default))


def _as_decimal(value) -> Decimal:
    if value is None:
        return Decimal("0.00")
    return Decimal(str(value)).quantize(Decimal("0.01"))


def format_amount(value) -> str:
    currency = current_app.config.get("PDC_CURRENCY", "AED")
    return f"{currency} {_as_decimal(value):,.2f}"


def holder_name() -> str:
    """Legal company name printed as the cheque holder."""
    return current_app.config.get("PDC_HOLDER_NAME") or "Company Name Not Configured"


def distinct_bank_names() -> list[str]:
    rows = db.session.query(PDC.bank_name).distinct().order_by(PDC.bank_name.asc()).all()
    return [row.bank_name for row in rows]


def _count_and_sum(*criteria) -> tuple[int, Decimal]:
    count, total = db.session.query(
        func.count(PDC.id),
        func.coalesce(func.sum(PDC.amount), 0),
    ).filter(*criteria).one()
    return int(count or 0), _as_decimal(total)


def upcoming_this_week(as_of: date | None = None, limit: int | None = None) -> list[PDC]:
    as_of = as_of or business_today()
    week_end = as_of + timedelta(days=_config_int("PDC_DUE_WINDOW_DAYS", 7))
    limit = limit or _config_int("PDC_DASHBOARD_LIMIT", 10)
    return db.session.query(PDC).filter(
        PDC.status.in_(UPCOMING_STATUSES),
        PDC.cheque_date >= as_of,
        PDC.cheque_date <= week_end,
    ).order_by(PDC.cheque_date.asc(), PDC.id.asc()).limit(limit).all()


def recently_deposited(as_of: date | None = None, limit: int | None = None) -> list[PDC]:
    as_of = as_of or business_today()
    since = as_of - timedelta(days=_config_int("PDC_RECENT_WINDOW_DAYS", 30))
    limit = limit or _config_int("PDC_DASHBOARD_LIMIT", 10)
    return db.session.query(PDC).filter(
        PDC.status == PDCStatus.DEPOSITED,
        PDC.deposit_date >= since,
    ).order_by(PDC.deposit_date.desc(), PDC.id.desc()).limit(limit).all()


def summary(as_of: date | None = None) -> dict:
    """
    Dashboard headline numbers.

    - total_received: every cheque ever registered (end states included)
    - due this week: RECEIVED/DUE cheques dated within [as_of, as_of + window]
    - deposited this month: cheques whose deposit_date falls in the current month
    - outstanding: RECEIVED, DUE and DEPOSITED value
    - bounced recently: cheques with a bounced_date inside the recent window
    - bounce rate: bounced / (cleared + bounced) * 100 over every processed cheque
    """
    as_of = as_of or business_today()
    week_end = as_of + timedelta(days=_config_int("PDC_DUE_WINDOW_DAYS", 7))
    month_start = as_of.replace(day=1)
    recent_start = as_of - timedelta(days=_config_int("PDC_RECENT_WINDOW_DAYS", 30))

    total_received = db.session.query(func.count(PDC.id)).scalar() or 0
    due_count, due_total = _count_and_sum(
        PDC.status.in_(UPCOMING_STATUSES),
        PDC.cheque_date >= as_of,
        PDC.cheque_date <= week_end,
    )
    deposited_count, deposited_total = _count_and_sum(
        PDC.deposit_date >= month_start,
        PDC.deposit_date <= as_of,
    )
    _, outstanding_total = _count_and_sum(PDC.status.in_(sorted(PENDING_STATUSES)))
    bounced_recent = db.session.query(func.count(PDC.id)).filter(
        PDC.bounced_date.isnot(None),
        PDC.bounced_date >= recent_start,
    ).scalar() or 0
    cleared_count, bounced_count = db.session.query(
        func.coalesce(func.sum(case((PDC.status == PDCStatus.CLEARED, 1), else_=0)), 0),
        func.coalesce(func.sum(case((PDC.bounced_date.isnot(None), 1), else_=0)), 0),
    ).one()
    cleared_count, bounced_count = int(cleared_count), int(bounced_count)

    return {
        "as_of": as_of.isoformat(),
        "total_received": int(total_received),
        "due_this_week_count": due_count,
        "due_this_week_total": f"{due_total:.2f}",
        "formatted_due_this_week_total": format_amount(due_total),
        "deposited_this_month_count": deposited_count,
        "deposited_this_month_total": f"{deposited_total:.2f}",
        "formatted_deposited_this_month_total": format_amount(deposited_total),
        "outstanding_total": f"{outstanding_total:.2f}",
        "formatted_outstanding_total": format_amount(outstanding_total),
        "bounced_recent_count": int(bounced_recent),
        "bounce_rate_percent": bounce_rate_percent(cleared_count + bounced_count, bounced_count),
    }


def dashboard(as_of: date | None = None) -> dict:
    as_of = as_of or business_today()
    return {
        "summary": summary(as_of),
        "upcoming_this_week": [p.to_dict() for p in upcoming_this_week(as_of)],
        "recently_deposited": [p.to_dict() for p in recently_deposited(as_of)],
        "holder_name": holder_name(),
    }


def bounce_rate_percent(total: int, bounced: int) -> float:
    """bounced / total * 100; 0.0 when total is 0."""
    if not total:
        return 0.0
    return bounced / total * 100


def tenant_stats(tenant_id: int) -> dict:
    """
    Counts for one tenant.

    bounced counts every cheque that ever reached BOUNCED (bounced_date set),
    including ones since replaced or withdrawn.
    """
    total, cleared, bounced, pending = db.session.query(
        func.count(PDC.id),
        func.coalesce(func.sum(case((PDC.status == PDCStatus.CLEARED, 1), else_=0)), 0),
        func.coalesce(func.sum(case((PDC.bounced_date.isnot(None), 1), else_=0)), 0),
        func.coalesce(func.sum(case((PDC.status.in_(sorted(PENDING_STATUSES)), 1), else_=0)), 0),
    ).filter(PDC.tenant_id == tenant_id).one()

    total, cleared, bounced, pending = int(total), int(cleared), int(bounced), int(pending)
    return {
        "tenant_id": tenant_id,
        "total": total,
        "cleared": cleared,
        "bounced": bounced,
        "pending": pending,
        "bounce_rate_percent": bounce_rate_percent(total, bounced),
    }


def tenant_history(tenant_id: int, page: int | None = 0, size: int | None = None) -> tuple[dict, Page]:
    tenant = collaborators.get_tenant(tenant_id)
    if tenant is None:
        raise NotFoundError("Tenant", tenant_id)

    stats = tenant_stats(tenant_id)
    stats["tenant_name"] = tenant.full_name
    pdcs = paginate(
        db.session.query(PDC).filter(PDC.tenant_id == tenant_id).order_by(
            PDC.cheque_date.desc(), PDC.id.desc()
        ),
        page,
        size,
    )
    return stats, pdcs


def withdrawal_history(page: int | None = 0, size: int | None = None) -> Page:
    query = db.session.query(PDC).filter(PDC.status == PDCStatus.WITHDRAWN).order_by(
        PDC.withdrawal_date.desc(), PDC.id.desc()
    )
    return paginate(query, page, size)
