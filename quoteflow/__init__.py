"""
quoteflow/__init__.py

Flask application factory for QuoteFlow, the quote / purchase-report system of the workshop.

Navigation:
- A single sidebar whose items are filtered by the role of the current user
  (see security.ROLE_VIEWS). Visibility only: every route enforces its own view.
"""

from __future__ import annotations

import logging

import click
from flask import Flask, redirect, url_for
from flask_login import current_user

from .errors import register_error_handlers
from .extensions import csrf, db, login_manager, migrate
from .logging_setup import configure_logging, register_request_logging
from .models import User
from .security import (
    ROLE_LABELS,
    VIEW_DASHBOARD,
    VIEW_HISTORY,
    VIEW_PROTOCOL,
    VIEW_REPORTS,
    VIEW_SUPPLIERS,
    VIEW_SYSTEM,
    VIEW_USERS,
    VIEW_ENDPOINTS,
    allowed_views,
    current_role,
    landing_endpoint,
)

logger = logging.getLogger(__name__)


# -------------------------------------------------------------------
# NAVIGATION STRUCTURE (UI visibility only; security enforced in routes)
# -------------------------------------------------------------------
NAV_ITEMS = [
    {"view": VIEW_DASHBOARD, "label": "Dashboard"},
    {"view": VIEW_HISTORY, "label": "Histórico"},
    {"view": VIEW_REPORTS, "label": "Relatórios"},
    {"view": VIEW_PROTOCOL, "label": "Protocolo"},
    {"view": VIEW_SUPPLIERS, "label": "Fornecedores"},
    {"view": VIEW_SYSTEM, "label": "Sistema"},
    {"view": VIEW_USERS, "label": "Usuários"},
]


def create_app(config_object: object | str = "config.Config") -> Flask:
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    configure_logging(app)
    register_request_logging(app)
    register_error_handlers(app)

    # Extensions
    db.init_app(app)
    migrate.init_app(app, db)
    csrf.init_app(app)

    login_manager.init_app(app)
    login_manager.login_view = "auth.login"
    login_manager.login_message = "Faça login para continuar."
    login_manager.login_message_category = "info"

    @login_manager.user_loader
    def load_user(user_id: str) -> User | None:
        """Load user for Flask-Login."""
        try:
            return db.session.get(User, int(user_id))
        except (TypeError, ValueError):
            return None

    # ----------------------------------------------------------------------
    # Blueprints
    # ----------------------------------------------------------------------
    from .blueprints.auth import auth_bp, demo_login_hook
    from .blueprints.quotes import quotes_bp
    from .blueprints.reports import reports_bp
    from .blueprints.protocol import protocol_bp
    from .blueprints.settings import settings_bp
    from .blueprints.users import users_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(quotes_bp)
    app.register_blueprint(reports_bp)
    app.register_blueprint(protocol_bp)
    app.register_blueprint(settings_bp)
    app.register_blueprint(users_bp)

    app.before_request(demo_login_hook)

    # ----------------------------------------------------------------------
    # Context globals (branding + navigation)
    # ----------------------------------------------------------------------
    @app.context_processor
    def inject_globals():
        """
        Inject branding and navigation filtered by role.

        SECURITY NOTE:
        - This only filters visibility. Routes enforce permissions.
        """
        from .utils import get_system_settings

        branding = None
        nav_items = []
        role = None
        if current_user.is_authenticated:
            branding = get_system_settings()
            role = current_role()
            visible = set(allowed_views(role))
            nav_items = [
                {**item, "endpoint": VIEW_ENDPOINTS[item["view"]]}
                for item in NAV_ITEMS
                if item["view"] in visible
            ]

        return {
            "config": app.config,
            "branding": branding,
            "nav_items": nav_items,
            "current_role": role,
            "role_labels": ROLE_LABELS,
        }

    # ----------------------------------------------------------------------
    # CLI
    # ----------------------------------------------------------------------
    @app.cli.command("seed-options")
    def seed_options_command():
        """Seed default report dropdown items and the branding row."""
        from .seed import seed_defaults

        seed_defaults()
        click.echo("Default list items seeded.")

    @app.cli.command("create-admin")
    @click.argument("email")
    @click.password_option()
    def create_admin_command(email: str, password: str):
        """Create a login account registered as ADMIN."""
        from .seed import create_admin

        create_admin(email, password)
        click.echo(f"Admin {email} created.")

    # ----------------------------------------------------------------------
    # Home
    # ----------------------------------------------------------------------
    @app.route("/")
    def index():
        """Home: first view of the role, or login."""
        if current_user.is_authenticated:
            return redirect(url_for(landing_endpoint(current_role())))
        return redirect(url_for("auth.login"))

    return app
