# backend/pdcms/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/pdcms.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///pdcms.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Legal company name printed as the cheque holder (company profile lives elsewhere)
    PDC_HOLDER_NAME = os.environ.get("PDC_HOLDER_NAME", "Company Name Not Configured")
    PDC_CURRENCY = os.environ.get("PDC_CURRENCY", "AED")

    # Days ahead of today that count as "due" (dashboard + RECEIVED -> DUE job)
    PDC_DUE_WINDOW_DAYS = int(os.environ.get("PDC_DUE_WINDOW_DAYS", "7"))
    PDC_RECENT_WINDOW_DAYS = int(os.environ.get("PDC_RECENT_WINDOW_DAYS", "30"))
    PDC_DASHBOARD_LIMIT = int(os.environ.get("PDC_DASHBOARD_LIMIT", "10"))
    PDC_MAX_BULK = int(os.environ.get("PDC_MAX_BULK", "24"))
