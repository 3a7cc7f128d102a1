"""
quoteflow/audit.py

Change history for quotes, report records, suppliers, list items, branding and system users.

Each entry stores the actor (id + e-mail at the time), the entity, the action
(CREATE / UPDATE / DELETE / APPROVE / PROTOCOL / INCONSISTENCY) and JSON
snapshots of the row before and after the change.

IMPORTANT:
- log_action() only adds to the session. The route owns commit/rollback.
"""

from __future__ import annotations

import json
import logging
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Optional

from flask import has_request_context, request
from flask_login import current_user

from .extensions import db
from .models import AuditLog

logger = logging.getLogger(__name__)

# base64 payload columns: only their size goes into a snapshot
_BULKY_COLUMNS = {"photo", "data", "logo_url"}

Snapshot = Dict[str, Optional[str]]


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return f"{value:.2f}"
    return str(value)


def serialize_model(instance: Any) -> Snapshot:
    """Column name -> text for one row. Data URLs are summarized by their length."""
    snapshot: Snapshot = {}
    for name in instance.__table__.columns.keys():
        value = getattr(instance, name)
        if name in _BULKY_COLUMNS and isinstance(value, str) and value.startswith("data:"):
            snapshot[name] = f"<data url, {len(value)} chars>"
        else:
            snapshot[name] = _as_text(value)
    return snapshot


def _dump(snapshot: Optional[Snapshot]) -> Optional[str]:
    return json.dumps(snapshot, ensure_ascii=False, sort_keys=True) if snapshot else None


def log_action(
    entity: Any,
    action: str,
    *,
    before: Optional[Snapshot] = None,
    after: Optional[Snapshot] = None,
) -> AuditLog:
    """Queue a history entry for `entity`, which must already have its id (flush first)."""
    if getattr(entity, "id", None) is None:
        raise ValueError(f"{type(entity).__name__} has no id yet; flush before logging it")

    actor = current_user if getattr(current_user, "is_authenticated", False) else None

    entry = AuditLog(
        user_id=actor.id if actor else None,
        email_snapshot=actor.email if actor else None,
        entity_type=type(entity).__name__,
        entity_id=str(entity.id),
        action=action,
        before_data=_dump(before),
        after_data=_dump(after),
        ip_address=request.remote_addr if has_request_context() else None,
    )
    db.session.add(entry)

    logger.info(
        "audit %s %s",
        action,
        entry.entity_type,
        extra={"entity_id": entry.entity_id, "actor": entry.email_snapshot},
    )
    return entry
