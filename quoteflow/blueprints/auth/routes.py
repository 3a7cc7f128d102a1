"""
Authentication Routes

Provides:
- /auth/login
- /auth/logout
- /auth/register (self sign-up; the role comes from the system users list)
- /auth/seed-admin (first system bootstrap)

Demo mode:
- With DEMO_MODE enabled every request is logged in as a demo account, which always resolves to ADMIN.
"""

from __future__ import annotations

import logging

from flask import (
    Blueprint,
    current_app,
    flash,
    redirect,
    render_template,
    request,
    url_for,
)
from flask_login import current_user, login_required, login_user, logout_user

from ...extensions import db
from ...models import User
from ...security import current_role, landing_endpoint
from ...seed import create_admin
from ...utils import EMAIL_RE, form_text, safe_next_url

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__, url_prefix="/auth")

DEMO_EMAIL = "demo@quoteflow.local"
MIN_PASSWORD_LENGTH = 6


def _normalize_email(raw: str) -> str | None:
    """Validated, lower-cased e-mail or None."""
    email = (raw or "").strip().lower()
    return email if EMAIL_RE.match(email) else None


def demo_login_hook():
    """before_request: log every visitor in as the demo account when DEMO_MODE is on."""
    if not current_app.config.get("DEMO_MODE"):
        return None
    if current_user.is_authenticated or request.endpoint in (None, "static"):
        return None

    user = User.query.filter_by(email=DEMO_EMAIL).first()
    if user is None:
        user = User(email=DEMO_EMAIL, is_active=True)
        user.set_password(current_app.config["SECRET_KEY"])
        db.session.add(user)
        db.session.commit()
        logger.info("demo account created")

    login_user(user)
    return None


# ============================================================
# LOGIN
# ============================================================
@auth_bp.route("/login", methods=["GET", "POST"])
def login():
    """Authenticate a user. Only active accounts may log in."""
    if current_user.is_authenticated:
        return redirect(url_for(landing_endpoint(current_role())))

    if request.method == "POST":
        email = form_text("email").lower()
        password = request.form.get("password", "")

        user = User.query.filter_by(email=email).first()

        if not user or not user.check_password(password):
            logger.info("login failed", extra={"email": email})
            flash("E-mail ou senha inválidos.", "danger")
            return render_template("auth/login.html", email=email), 401

        if not user.is_active:
            flash("Conta desativada.", "danger")
            return render_template("auth/login.html", email=email), 403

        login_user(user)
        flash("Bem-vindo!", "success")

        next_url = request.args.get("next")
        if next_url:
            return redirect(safe_next_url(next_url, landing_endpoint(current_role())))
        return redirect(url_for(landing_endpoint(current_role())))

    return render_template("auth/login.html", email="")


# ============================================================
# LOGOUT
# ============================================================
@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout():
    """Log out the current user."""
    logout_user()
    flash("Sessão encerrada.", "info")
    return redirect(url_for("auth.login"))


# ============================================================
# REGISTER
# ============================================================
@auth_bp.route("/register", methods=["GET", "POST"])
def register():
    """Self sign-up. Access level is decided by the system users list, not here."""
    if current_user.is_authenticated:
        return redirect(url_for("index"))

    if request.method == "POST":
        email = _normalize_email(form_text("email"))
        password = request.form.get("password", "")

        if not email:
            flash("Informe um e-mail válido.", "danger")
            return redirect(url_for("auth.register"))

        if len(password) < MIN_PASSWORD_LENGTH:
            flash(f"A senha deve ter pelo menos {MIN_PASSWORD_LENGTH} caracteres.", "danger")
            return redirect(url_for("auth.register"))

        if User.query.filter_by(email=email).first():
            flash("E-mail já cadastrado.", "danger")
            return redirect(url_for("auth.register"))

        user = User(email=email, is_active=True)
        user.set_password(password)
        db.session.add(user)
        db.session.commit()

        flash("Cadastro realizado! Faça login.", "success")
        return redirect(url_for("auth.login"))

    return render_template("auth/register.html")


# ============================================================
# SEED FIRST ADMIN (BOOTSTRAP)
# ============================================================
@auth_bp.route("/seed-admin", methods=["GET", "POST"])
def seed_admin():
    """
    Bootstrap the FIRST admin of the system.

    - If ANY account already exists -> blocked
    - The e-mail is registered as ADMIN in the system users list
    """
    if User.query.count() > 0:
        flash("Já existe usuário no sistema.", "warning")
        return redirect(url_for("auth.login"))

    if request.method == "POST":
        email = _normalize_email(form_text("email"))
        password = request.form.get("password", "")

        if not email or len(password) < MIN_PASSWORD_LENGTH:
            flash("Informe e-mail válido e senha com pelo menos 6 caracteres.", "danger")
            return render_template("auth/seed_admin.html")

        create_admin(email, password)

        flash("Administrador criado. Faça login.", "success")
        return redirect(url_for("auth.login"))

    return render_template("auth/seed_admin.html")
