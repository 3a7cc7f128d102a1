"""
quoteflow/blueprints/settings/routes.py

Settings & master data routes.

Scope:
- Suppliers directory: list (search), create, edit, delete
- Branding: name, subtitle, logo (URL or upload), primary colour from a fixed palette

SECURITY:
- Navigation only hides links; every route enforces its view with view_required().

AUDIT:
- CREATE/UPDATE/DELETE is audited via quoteflow/audit.py.
"""

from __future__ import annotations

from flask import Blueprint, current_app, flash, redirect, render_template, request, url_for
from flask_login import login_required

from ...audit import log_action, serialize_model
from ...errors import NotFound, ValidationError
from ...extensions import db
from ...imaging import process_photo
from ...models import Supplier
from ...reporting import search_suppliers
from ...security import VIEW_SUPPLIERS, VIEW_SYSTEM, view_required
from ...utils import commit_or_flash, form_text, get_system_settings

settings_bp = Blueprint("settings", __name__, url_prefix="/settings")

BRAND_COLORS = (
    "indigo-600",
    "blue-600",
    "emerald-600",
    "rose-600",
    "slate-900",
    "amber-600",
)

LOGO_MAX_EDGE = 512


def _load_supplier(supplier_id: str) -> Supplier:
    supplier = db.session.get(Supplier, supplier_id)
    if supplier is None:
        raise NotFound("Fornecedor não encontrado.")
    return supplier


def _supplier_form() -> tuple[str, str, str]:
    name = form_text("name").upper()
    phone = form_text("phone")
    category = form_text("category")
    if not name or not phone:
        raise ValidationError("Nome e telefone são obrigatórios.")
    return name, phone, category


# ----------------------------------------------------------------------
# SUPPLIERS
# ----------------------------------------------------------------------
@settings_bp.route("/suppliers")
@login_required
@view_required(VIEW_SUPPLIERS)
def suppliers_list():
    term = (request.args.get("q") or "").strip()
    suppliers = search_suppliers(Supplier.query.order_by(Supplier.name.asc()).all(), term)
    return render_template("settings/suppliers_list.html", suppliers=suppliers, q=term)


@settings_bp.route("/suppliers/new", methods=["GET", "POST"])
@login_required
@view_required(VIEW_SUPPLIERS)
def supplier_create():
    if request.method == "POST":
        try:
            name, phone, category = _supplier_form()
        except ValidationError as exc:
            flash(exc.message, "danger")
            return redirect(url_for("settings.supplier_create"))

        supplier = Supplier(name=name, phone=phone, category=category or None)
        db.session.add(supplier)
        db.session.flush()

        log_action(supplier, "CREATE", after=serialize_model(supplier))
        if commit_or_flash("Erro ao salvar o fornecedor."):
            flash("Fornecedor cadastrado.", "success")
        return redirect(url_for("settings.suppliers_list"))

    return render_template("settings/supplier_form.html", supplier=None)


@settings_bp.route("/suppliers/<supplier_id>/edit", methods=["GET", "POST"])
@login_required
@view_required(VIEW_SUPPLIERS)
def supplier_edit(supplier_id: str):
    supplier = _load_supplier(supplier_id)

    if request.method == "POST":
        try:
            name, phone, category = _supplier_form()
        except ValidationError as exc:
            flash(exc.message, "danger")
            return redirect(url_for("settings.supplier_edit", supplier_id=supplier_id))

        before = serialize_model(supplier)
        supplier.name = name
        supplier.phone = phone
        supplier.category = category or None

        db.session.flush()
        log_action(supplier, "UPDATE", before=before, after=serialize_model(supplier))
        if commit_or_flash("Erro ao atualizar o fornecedor."):
            flash("Fornecedor atualizado.", "success")
        return redirect(url_for("settings.suppliers_list"))

    return render_template("settings/supplier_form.html", supplier=supplier)


@settings_bp.route("/suppliers/<supplier_id>/delete", methods=["POST"])
@login_required
@view_required(VIEW_SUPPLIERS)
def supplier_delete(supplier_id: str):
    supplier = _load_supplier(supplier_id)
    before = serialize_model(supplier)

    db.session.delete(supplier)
    db.session.flush()

    log_action(supplier, "DELETE", before=before)
    if commit_or_flash("Erro ao excluir o fornecedor."):
        flash("Fornecedor excluído.", "success")
    return redirect(url_for("settings.suppliers_list"))


# ----------------------------------------------------------------------
# BRANDING
# ----------------------------------------------------------------------
def _logo_from_request(current: str | None) -> str | None:
    """Uploaded logo (as a JPEG data URL), else the typed URL, else no logo."""
    upload = request.files.get("logo")
    if upload and upload.filename:
        return process_photo(
            upload.read(),
            max_edge=LOGO_MAX_EDGE,
            quality=int(current_app.config.get("PHOTO_JPEG_QUALITY", 80)),
        )

    if request.form.get("remove_logo") == "on":
        return None

    typed = form_text("logo_url")
    if typed:
        if not typed.startswith(("http://", "https://", "data:image/")):
            raise ValidationError("URL do logo inválida.")
        return typed
    return current


@settings_bp.route("/branding", methods=["GET", "POST"])
@login_required
@view_required(VIEW_SYSTEM)
def branding():
    settings = get_system_settings()

    if request.method == "POST":
        name = form_text("name").upper()
        subtitle = form_text("subtitle").upper()
        color = form_text("primary_color") or settings.primary_color

        try:
            if not name:
                raise ValidationError("O nome do sistema é obrigatório.")
            if color not in BRAND_COLORS:
                raise ValidationError("Cor inválida.")
            logo_url = _logo_from_request(settings.logo_url)
        except ValidationError as exc:
            flash(exc.message, "danger")
            return redirect(url_for("settings.branding"))

        before = serialize_model(settings)
        settings.name = name
        settings.subtitle = subtitle or None
        settings.primary_color = color
        settings.logo_url = logo_url

        db.session.flush()
        log_action(settings, "UPDATE", before=before, after=serialize_model(settings))
        if commit_or_flash("Erro ao salvar as configurações."):
            flash("Configurações salvas.", "success")
        return redirect(url_for("settings.branding"))

    return render_template("settings/branding.html", settings=settings, colors=BRAND_COLORS)
