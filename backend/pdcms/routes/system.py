# backend/pdcms/routes/system.py
"""
System health and version endpoints.

Health checks the database and the cheque tables; version information
helps when debugging a deployment.
"""

import sys
import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import PDC, PDCEvent, PDCStatus
from pdcms.time_utils import utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        pdc_count = db.session.query(PDC).count()
        event_count = db.session.query(PDCEvent).count()

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "pdcs": pdc_count,
                "pdc_events": event_count,
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


def check_due_job_health() -> dict:
    """
    Degraded when RECEIVED cheques are already past their date.

    That means the RECEIVED -> DUE job has not run recently.
    """
    start_time = time.time()
    try:
        stale = db.session.query(PDC).filter(
            PDC.status == PDCStatus.RECEIVED,
            PDC.cheque_date < utcnow().date(),
        ).count()

        elapsed_ms = (time.time() - start_time) * 1000

        if stale:
            return {
                "status": "degraded",
                "latency_ms": round(elapsed_ms, 2),
                "warning": f"{stale} RECEIVED cheque(s) past their date; run `flask pdcs mark-due`",
            }
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Due job health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Due job check error"
        }


@system_bp.get("/health")
def health():
    """
    Health check endpoint.

    Returns:
    - 200: healthy or degraded
    - 503: one or more checks unhealthy
    """
    start_time = time.time()

    database_health = check_database_health()
    due_job_health = check_due_job_health()

    all_checks = [database_health, due_job_health]
    unhealthy_count = sum(1 for check in all_checks if check["status"] == "unhealthy")
    degraded_count = sum(1 for check in all_checks if check["status"] == "degraded")

    if unhealthy_count > 0:
        overall_status = "unhealthy"
        http_status = 503
    elif degraded_count > 0:
        overall_status = "degraded"
        http_status = 200  # Degraded is still operational
    else:
        overall_status = "healthy"
        http_status = 200

    total_elapsed_ms = (time.time() - start_time) * 1000

    response = {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round(total_elapsed_ms, 2),
        "checks": {
            "database": database_health,
            "due_job": due_job_health,
        }
    }

    return response, http_status


@system_bp.get("/version")
def version():
    """Non-sensitive deployment information; never exposes secrets or paths."""
    env = "production" if not current_app.debug else "development"

    return {
        "api_version": "0.1.0",
        "environment": env,
        "python_version": sys.version.split()[0],
        "server_time": utcnow().isoformat() + "Z",
    }
