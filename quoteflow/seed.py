"""
quoteflow/seed.py

Seed default report dropdown items and the branding row.

Rules:
- Safe to run multiple times (idempotent).
- Items are matched by (category, value); existing rows are left alone except for sort order.

NOTE:
- Suppliers are not seeded here because they are first-class entities managed in the UI.
"""

from __future__ import annotations

from .extensions import db
from .models import (
    DELIVERY_AWAITING_PROTOCOL,
    DELIVERY_NOT_DELIVERED,
    DELIVERY_PARTS_PROTOCOL,
    DELIVERY_PROTOCOLLED,
    DELIVERY_SERVICE_PROTOCOL,
    DEFAULT_REPORT_STATUS,
    ReportListItem,
    SystemUser,
    User,
)
from .security import ROLE_ADMIN
from .utils import get_system_settings

LIST_DEPARTMENT = "DEPARTMENT"
LIST_SUPPLIER = "SUPPLIER"
LIST_STATUS = "STATUS"
LIST_DELIVERY = "DELIVERY"

LIST_CATEGORIES = {
    LIST_DEPARTMENT: "Secretaria",
    LIST_SUPPLIER: "Fornecedor",
    LIST_STATUS: "Status",
    LIST_DELIVERY: "Entregue Relatório",
}

DEFAULT_LIST_ITEMS = {
    LIST_STATUS: [DEFAULT_REPORT_STATUS, "AGUARDANDO APROVAÇÃO", "APROVADO", "FINALIZADO", "CANCELADO"],
    LIST_DELIVERY: [
        DELIVERY_NOT_DELIVERED,
        DELIVERY_AWAITING_PROTOCOL,
        DELIVERY_PARTS_PROTOCOL,
        DELIVERY_SERVICE_PROTOCOL,
        DELIVERY_PROTOCOLLED,
    ],
    LIST_DEPARTMENT: ["SAÚDE", "EDUCAÇÃO", "OBRAS", "ADMINISTRAÇÃO"],
}


def seed_defaults() -> None:
    """Create default list items and the branding row if they don't exist."""
    for category, values in DEFAULT_LIST_ITEMS.items():
        for idx, value in enumerate(values):
            item = ReportListItem.query.filter_by(category=category, value=value).first()
            if item:
                item.sort_order = idx
                continue
            db.session.add(ReportListItem(category=category, value=value, sort_order=idx, is_active=True))

    db.session.flush()
    get_system_settings()
    db.session.commit()


def create_admin(email: str, password: str) -> User:
    """
    Create a login account and register its e-mail as ADMIN.

    Raises ValueError if the e-mail is already registered.
    """
    email = (email or "").strip().lower()
    if not email or not password:
        raise ValueError("email and password are required")
    if User.query.filter_by(email=email).first():
        raise ValueError(f"user {email} already exists")

    user = User(email=email, is_active=True)
    user.set_password(password)
    db.session.add(user)

    settings = get_system_settings()
    entry = settings.find_user(email)
    if entry is None:
        settings.users.append(SystemUser(email=email, role=ROLE_ADMIN))
    else:
        entry.role = ROLE_ADMIN

    db.session.commit()
    return user
