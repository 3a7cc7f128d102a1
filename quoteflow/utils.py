"""
Utility functions shared across the app. This includes:
- get_system_settings: the single branding row (created with defaults on first use).
- get_active_list_values: active dropdown values for a report list category.
- commit_or_flash: commit, or roll back and report the failure to the user.
- parse helpers used by the blueprints.
"""

from __future__ import annotations

import logging
import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from urllib.parse import urlparse

from flask import flash, request, url_for
from sqlalchemy.exc import SQLAlchemyError

from .extensions import db
from .models import ReportListItem, SystemSettings

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
THOUSANDS_RE = re.compile(r"^-?[1-9]\d{0,2}(\.\d{3})+$")


def get_system_settings() -> SystemSettings:
    """Return the branding row, creating it with the default brand if missing."""
    settings = SystemSettings.query.order_by(SystemSettings.created_at.asc()).first()
    if settings is None:
        settings = SystemSettings()
        db.session.add(settings)
        db.session.commit()
    return settings


def get_active_list_values(category: str) -> list[str]:
    """Active ReportListItem values for a category, in display order."""
    items = (
        ReportListItem.query.filter_by(category=category, is_active=True)
        .order_by(ReportListItem.sort_order.asc(), ReportListItem.value.asc())
        .all()
    )
    return [item.value for item in items]


def commit_or_flash(error_message: str) -> bool:
    """Commit the session; on failure roll back, log and flash. Returns True on success."""
    try:
        db.session.commit()
        return True
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("database error")
        flash(error_message, "danger")
        return False


def form_text(name: str) -> str:
    """Stripped form value ('' when missing)."""
    return (request.form.get(name) or "").strip()


def parse_decimal(value: str | None) -> Decimal | None:
    """
    Parse decimal from user input.

    Accepts '1.234,56', '1234,56' and '1234.56'. Without a comma, dots that
    group exactly three digits ('1.234', '1.234.567') are thousands separators.
    Infinity and NaN are rejected.
    """
    if value is None:
        return None
    raw = str(value).strip().replace("R$", "").replace(" ", "")
    if raw == "":
        return None
    if "," in raw:
        raw = raw.replace(".", "").replace(",", ".")
    elif THOUSANDS_RE.match(raw):
        raw = raw.replace(".", "")
    try:
        result = Decimal(raw)
    except (InvalidOperation, ValueError):
        return None
    return result if result.is_finite() else None


def parse_date(value: str | None) -> date | None:
    """Parse YYYY-MM-DD (HTML date input) or DD/MM/YYYY."""
    raw = (value or "").strip()
    if not raw:
        return None
    for fmt in ("%Y-%m-%d", "%d/%m/%Y"):
        try:
            return datetime.strptime(raw, fmt).date()
        except ValueError:
            continue
    return None


def only_digits(value: str | None) -> str:
    if not value:
        return ""
    return "".join(ch for ch in str(value) if ch.isdigit())


def safe_next_url(raw_next: str | None, fallback_endpoint: str) -> str:
    """
    Return a safe local next URL.

    Only relative URLs starting with "/" are accepted; anything else falls back
    to the given endpoint.
    """
    if not raw_next:
        return url_for(fallback_endpoint)

    try:
        parsed = urlparse(raw_next)
    except ValueError:
        return url_for(fallback_endpoint)

    if parsed.scheme or parsed.netloc or not raw_next.startswith("/") or raw_next.startswith("//"):
        return url_for(fallback_endpoint)

    return raw_next
