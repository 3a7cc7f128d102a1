"""
System user management (ADMIN only).

Rules enforced:
- Each entry maps an e-mail to exactly one of the four roles.
- E-mails are unique, compared case-insensitively.
- UI never trusted: we validate server-side.

Audit:
- CREATE / UPDATE / DELETE logged
"""

from flask import (
    Blueprint,
    flash,
    redirect,
    render_template,
    url_for,
)
from flask_login import login_required

from ...audit import log_action, serialize_model
from ...errors import NotFound
from ...extensions import db
from ...models import SystemUser
from ...security import ROLE_LABELS, ROLES, VIEW_USERS, normalize_role, view_required
from ...utils import EMAIL_RE, commit_or_flash, form_text, get_system_settings

users_bp = Blueprint(
    "users",
    __name__,
    url_prefix="/users",
)


def _load_entry(entry_id: str) -> SystemUser:
    entry = db.session.get(SystemUser, entry_id)
    if entry is None:
        raise NotFound("Usuário não encontrado.")
    return entry


# ---------------------------------------------------------------------
# LIST
# ---------------------------------------------------------------------

@users_bp.route("/")
@login_required
@view_required(VIEW_USERS)
def list_users():
    """E-mail -> role entries of the system."""
    settings = get_system_settings()

    return render_template(
        "users/list.html",
        entries=settings.users,
        roles=ROLES,
        role_labels=ROLE_LABELS,
    )


# ---------------------------------------------------------------------
# ADD
# ---------------------------------------------------------------------

@users_bp.route("/add", methods=["POST"])
@login_required
@view_required(VIEW_USERS)
def add_user():
    """
    Register an e-mail with a role.

    Required:
    - email (valid, not yet listed)
    - role (one of ROLES)
    """
    settings = get_system_settings()

    email = form_text("email").lower()
    role = normalize_role(form_text("role"))

    if not EMAIL_RE.match(email):
        flash("Informe um e-mail válido.", "danger")
        return redirect(url_for("users.list_users"))

    if role is None:
        flash("Perfil inválido.", "danger")
        return redirect(url_for("users.list_users"))

    if settings.find_user(email) is not None:
        flash("Este e-mail já está cadastrado.", "danger")
        return redirect(url_for("users.list_users"))

    entry = SystemUser(email=email, role=role)
    settings.users.append(entry)
    db.session.flush()

    log_action(entry, "CREATE", after=serialize_model(entry))
    if commit_or_flash("Erro ao adicionar o usuário."):
        flash("Usuário adicionado.", "success")
    return redirect(url_for("users.list_users"))


# ---------------------------------------------------------------------
# CHANGE ROLE
# ---------------------------------------------------------------------

@users_bp.route("/<entry_id>/role", methods=["POST"])
@login_required
@view_required(VIEW_USERS)
def change_role(entry_id: str):
    entry = _load_entry(entry_id)

    role = normalize_role(form_text("role"))
    if role is None:
        flash("Perfil inválido.", "danger")
        return redirect(url_for("users.list_users"))

    before = serialize_model(entry)
    entry.role = role

    db.session.flush()
    log_action(entry, "UPDATE", before=before, after=serialize_model(entry))
    if commit_or_flash("Erro ao alterar o perfil."):
        flash("Perfil atualizado.", "success")
    return redirect(url_for("users.list_users"))


# ---------------------------------------------------------------------
# REMOVE
# ---------------------------------------------------------------------

@users_bp.route("/<entry_id>/remove", methods=["POST"])
@login_required
@view_required(VIEW_USERS)
def remove_user(entry_id: str):
    entry = _load_entry(entry_id)
    before = serialize_model(entry)

    db.session.delete(entry)
    db.session.flush()

    log_action(entry, "DELETE", before=before)
    if commit_or_flash("Erro ao remover o usuário."):
        flash("Usuário removido.", "success")
    return redirect(url_for("users.list_users"))
