"""
quoteflow/security.py

Role-based access control.

Key rules:
- Four mutually exclusive roles, each with a fixed set of views (ROLE_VIEWS).
- The role of a logged-in user comes from the SystemUser list in SystemSettings,
  matched by e-mail (case-insensitive). Unlisted e-mails get DEFAULT_USER_ROLE.
- Demo mode always resolves to ADMIN.
- Navigation only filters visibility; every route enforces its view with view_required().

IMPORTANT:
- Decorators must preserve wrapped function metadata to avoid Flask endpoint collisions.
  We use functools.wraps everywhere.
"""

from __future__ import annotations

from functools import wraps
from typing import Any, Callable, Optional, Sequence

from flask import current_app, g
from flask_login import current_user

from .errors import PermissionDenied

ROLE_ADMIN = "ADMIN"
ROLE_MANAGER = "GESTOR"
ROLE_WORKSHOP = "OFICINA"
ROLE_PROTOCOL = "PROTOCOLO"

ROLES = (ROLE_ADMIN, ROLE_MANAGER, ROLE_WORKSHOP, ROLE_PROTOCOL)

ROLE_LABELS = {
    ROLE_ADMIN: "Administrador",
    ROLE_MANAGER: "Gestor",
    ROLE_WORKSHOP: "Oficina",
    ROLE_PROTOCOL: "Protocolo",
}

VIEW_DASHBOARD = "dashboard"
VIEW_HISTORY = "history"
VIEW_REPORTS = "reports"
VIEW_PROTOCOL = "protocol"
VIEW_SUPPLIERS = "suppliers"
VIEW_SYSTEM = "system"
VIEW_USERS = "users"

# Order matters: the first view is the landing page for the role.
ROLE_VIEWS = {
    ROLE_ADMIN: (
        VIEW_DASHBOARD,
        VIEW_HISTORY,
        VIEW_REPORTS,
        VIEW_PROTOCOL,
        VIEW_SUPPLIERS,
        VIEW_SYSTEM,
        VIEW_USERS,
    ),
    ROLE_MANAGER: (VIEW_DASHBOARD, VIEW_HISTORY, VIEW_REPORTS, VIEW_PROTOCOL, VIEW_SUPPLIERS),
    ROLE_WORKSHOP: (VIEW_DASHBOARD, VIEW_HISTORY, VIEW_SUPPLIERS),
    ROLE_PROTOCOL: (VIEW_PROTOCOL,),
}

VIEW_ENDPOINTS = {
    VIEW_DASHBOARD: "quotes.dashboard",
    VIEW_HISTORY: "quotes.history",
    VIEW_REPORTS: "reports.list_records",
    VIEW_PROTOCOL: "protocol.queue",
    VIEW_SUPPLIERS: "settings.suppliers_list",
    VIEW_SYSTEM: "settings.branding",
    VIEW_USERS: "users.list_users",
}


def normalize_role(role: str | None) -> Optional[str]:
    """Return the canonical role name, or None if it is not one of ROLES."""
    value = (role or "").strip().upper()
    return value if value in ROLES else None


def allowed_views(role: str | None) -> Sequence[str]:
    return ROLE_VIEWS.get(normalize_role(role) or "", ())


def resolve_role(
    email: str | None,
    settings: Any,
    *,
    demo_mode: bool = False,
    default_role: str = ROLE_ADMIN,
) -> str:
    """
    Resolve the role for an e-mail.

    - demo mode -> ADMIN
    - no e-mail -> ADMIN
    - listed e-mail -> its role
    - otherwise -> default_role (falls back to ADMIN if misconfigured)
    """
    if demo_mode or not (email or "").strip():
        return ROLE_ADMIN

    entry = settings.find_user(email) if settings is not None else None
    if entry is not None:
        role = normalize_role(entry.role)
        if role:
            return role

    return normalize_role(default_role) or ROLE_ADMIN


def current_role() -> Optional[str]:
    """Role of the current user, cached per request. None when anonymous."""
    if not current_user.is_authenticated:
        return None

    cached = getattr(g, "_current_role", None)
    if cached:
        return cached

    from .utils import get_system_settings

    role = resolve_role(
        current_user.email,
        get_system_settings(),
        demo_mode=bool(current_app.config.get("DEMO_MODE")),
        default_role=current_app.config.get("DEFAULT_USER_ROLE", ROLE_ADMIN),
    )
    g._current_role = role
    return role


def can_see(view: str) -> bool:
    return view in allowed_views(current_role())


def landing_endpoint(role: str | None) -> str:
    """Endpoint of the first view the role may open."""
    views = allowed_views(role)
    if not views:
        return "auth.login"
    return VIEW_ENDPOINTS[views[0]]


def view_required(view: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Decorator factory: the current role must include `view`."""
    def decorator(view_func: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(view_func)
        def wrapper(*args: Any, **kwargs: Any):
            if not can_see(view):
                raise PermissionDenied()
            return view_func(*args, **kwargs)

        return wrapper

    return decorator
