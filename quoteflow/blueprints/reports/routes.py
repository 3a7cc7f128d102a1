"""
quoteflow/blueprints/reports/routes.py

Purchase report ledger.

Routes:
- list (search), create, edit (full overwrite), delete
- CSV export of the current filtered list
- dropdown list items (department / supplier / status / delivery)
"""

from __future__ import annotations

import logging
from datetime import date

from flask import Blueprint, Response, flash, redirect, render_template, request, url_for
from flask_login import current_user, login_required
from sqlalchemy.exc import IntegrityError

from ...audit import log_action, serialize_model
from ...errors import NotFound
from ...extensions import db
from ...models import (
    DEFAULT_REPORT_STATUS,
    DELIVERY_NOT_DELIVERED,
    WORKSHOP_OUTSOURCED,
    WORKSHOP_TYPES,
    ReportListItem,
    ReportRecord,
    Supplier,
)
from ...reporting import csv_filename, filter_report_records, render_reports_csv
from ...security import VIEW_REPORTS, view_required
from ...seed import LIST_CATEGORIES, LIST_DELIVERY, LIST_DEPARTMENT, LIST_STATUS, LIST_SUPPLIER
from ...utils import commit_or_flash, form_text, get_active_list_values, parse_date, parse_decimal

logger = logging.getLogger(__name__)

reports_bp = Blueprint("reports", __name__, url_prefix="/reports")


def _load_record(record_id: str) -> ReportRecord:
    record = db.session.get(ReportRecord, record_id)
    if record is None:
        raise NotFound("Registro não encontrado.")
    return record


def _form_options() -> dict:
    """Dropdown values for the record form."""
    suppliers = get_active_list_values(LIST_SUPPLIER)
    for supplier in Supplier.query.order_by(Supplier.name.asc()).all():
        if supplier.name not in suppliers:
            suppliers.append(supplier.name)

    return {
        "departments": get_active_list_values(LIST_DEPARTMENT),
        "suppliers": suppliers,
        "statuses": get_active_list_values(LIST_STATUS) or [DEFAULT_REPORT_STATUS],
        "deliveries": get_active_list_values(LIST_DELIVERY) or [DELIVERY_NOT_DELIVERED],
        "workshop_types": WORKSHOP_TYPES,
    }


def _record_values(record: ReportRecord) -> dict:
    """Form field -> display string for an existing record."""
    values = {}
    for column in ReportRecord.__table__.columns:
        value = getattr(record, column.name)
        if value is None:
            values[column.name] = ""
        elif isinstance(value, date):
            values[column.name] = value.isoformat()
        else:
            values[column.name] = str(value)
    return values


def _apply_form(record: ReportRecord) -> list[str]:
    """
    Overwrite every editable field of `record` from the submitted form.

    Returns a list of validation messages (empty when the form is valid).
    """
    errors: list[str] = []

    raw_value = form_text("total_value")
    total_value = parse_decimal(raw_value)
    if raw_value and total_value is None:
        errors.append("Valor total inválido.")

    dates = {}
    for field in ("received_date", "volus_entry_date", "volus_approval_date"):
        raw = form_text(field)
        parsed = parse_date(raw)
        if raw and parsed is None:
            errors.append("Data inválida.")
        dates[field] = parsed

    workshop_type = form_text("workshop_type").upper() or WORKSHOP_OUTSOURCED
    if workshop_type not in WORKSHOP_TYPES:
        errors.append("Tipo de oficina inválido.")

    if not form_text("prefix"):
        errors.append("O prefixo é obrigatório.")

    if errors:
        return errors

    record.received_date = dates["received_date"]
    record.prefix = form_text("prefix").upper()
    record.department = form_text("department").upper()
    record.description = form_text("description")
    record.workshop_order_number = form_text("workshop_order_number") or None
    record.workshop_type = workshop_type
    record.volus_entry_date = dates["volus_entry_date"]
    record.volus_parts_quote_number = form_text("volus_parts_quote_number") or None
    record.volus_services_quote_number = form_text("volus_services_quote_number") or None
    record.volus_approval_date = dates["volus_approval_date"]
    record.approved_quote_number = form_text("approved_quote_number")
    record.total_value = total_value
    record.invoice_number = form_text("invoice_number") or None
    record.supplier = form_text("supplier").upper()
    record.responsible = form_text("responsible") or None
    record.status = form_text("status").upper() or DEFAULT_REPORT_STATUS
    record.report_delivery = form_text("report_delivery").upper() or DELIVERY_NOT_DELIVERED
    record.notes = form_text("notes") or None
    return []


# ---------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------
@reports_bp.route("/")
@login_required
@view_required(VIEW_REPORTS)
def list_records():
    term = (request.args.get("q") or "").strip()
    records = filter_report_records(ReportRecord.query.all(), term)
    return render_template("reports/list.html", records=records, q=term)


@reports_bp.route("/new", methods=["GET", "POST"])
@login_required
@view_required(VIEW_REPORTS)
def create_record():
    if request.method == "POST":
        record = ReportRecord(user_id=current_user.id)
        errors = _apply_form(record)
        if errors:
            for message in errors:
                flash(message, "danger")
            return render_template("reports/form.html", record=None, values=request.form.to_dict(), **_form_options()), 400

        db.session.add(record)
        db.session.flush()
        log_action(record, "CREATE", after=serialize_model(record))
        if commit_or_flash("Erro ao salvar o registro."):
            flash("Registro salvo.", "success")
        return redirect(url_for("reports.list_records"))

    return render_template("reports/form.html", record=None, values={}, **_form_options())


@reports_bp.route("/<record_id>/edit", methods=["GET", "POST"])
@login_required
@view_required(VIEW_REPORTS)
def edit_record(record_id: str):
    record = _load_record(record_id)

    if request.method == "POST":
        before = serialize_model(record)
        errors = _apply_form(record)
        if errors:
            for message in errors:
                flash(message, "danger")
            return render_template("reports/form.html", record=record, values=request.form.to_dict(), **_form_options()), 400

        db.session.flush()
        log_action(record, "UPDATE", before=before, after=serialize_model(record))
        if commit_or_flash("Erro ao atualizar o registro."):
            flash("Registro atualizado.", "success")
        return redirect(url_for("reports.list_records"))

    return render_template("reports/form.html", record=record, values=_record_values(record), **_form_options())


@reports_bp.route("/<record_id>/delete", methods=["POST"])
@login_required
@view_required(VIEW_REPORTS)
def delete_record(record_id: str):
    record = _load_record(record_id)
    before = serialize_model(record)

    db.session.delete(record)
    db.session.flush()
    log_action(record, "DELETE", before=before)
    if commit_or_flash("Erro ao excluir o registro."):
        flash("Registro excluído.", "success")
    return redirect(url_for("reports.list_records", q=request.form.get("q") or None))


@reports_bp.route("/export.csv")
@login_required
@view_required(VIEW_REPORTS)
def export_csv():
    """Download the current filtered list (same `q` as the list page)."""
    records = filter_report_records(ReportRecord.query.all(), request.args.get("q"))
    logger.info("report export", extra={"rows": len(records)})
    return Response(
        render_reports_csv(records),
        mimetype="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{csv_filename(date.today())}"'},
    )


# ---------------------------------------------------------------------
# Dropdown list items
# ---------------------------------------------------------------------
@reports_bp.route("/lists/<category>", methods=["GET", "POST"])
@login_required
@view_required(VIEW_REPORTS)
def list_items(category: str):
    """
    Dropdown values for one category.

    - GET: list (all items, active or not)
    - POST: action in {create, update, delete}, audited
    """
    category = category.upper()
    if category not in LIST_CATEGORIES:
        raise NotFound("Lista não encontrada.")

    if request.method == "POST":
        action = form_text("action")
        value = form_text("value").upper()
        sort_order = _parse_sort_order(form_text("sort_order"))
        is_active = request.form.get("is_active") == "on"

        if action == "create":
            if not value:
                flash("O valor é obrigatório.", "danger")
                return redirect(request.path)

            item = ReportListItem(category=category, value=value, sort_order=sort_order, is_active=is_active)
            db.session.add(item)
            try:
                db.session.flush()
            except IntegrityError:
                db.session.rollback()
                flash("Este valor já existe na lista.", "danger")
                return redirect(request.path)

            log_action(item, "CREATE", after=serialize_model(item))
            if commit_or_flash("Erro ao salvar o item."):
                flash("Item adicionado.", "success")
            return redirect(request.path)

        item = ReportListItem.query.filter_by(id=form_text("id"), category=category).first()
        if item is None:
            flash("Item não encontrado.", "danger")
            return redirect(request.path)

        if action == "update":
            if not value:
                flash("O valor é obrigatório.", "danger")
                return redirect(request.path)

            before = serialize_model(item)
            item.value = value
            item.sort_order = sort_order
            item.is_active = is_active
            try:
                db.session.flush()
            except IntegrityError:
                db.session.rollback()
                flash("Este valor já existe na lista.", "danger")
                return redirect(request.path)

            log_action(item, "UPDATE", before=before, after=serialize_model(item))
            if commit_or_flash("Erro ao atualizar o item."):
                flash("Item atualizado.", "success")
            return redirect(request.path)

        if action == "delete":
            before = serialize_model(item)
            db.session.delete(item)
            db.session.flush()
            log_action(item, "DELETE", before=before)
            if commit_or_flash("Erro ao excluir o item."):
                flash("Item removido.", "success")
            return redirect(request.path)

        flash("Ação inválida.", "danger")
        return redirect(request.path)

    items = (
        ReportListItem.query.filter_by(category=category)
        .order_by(ReportListItem.sort_order.asc(), ReportListItem.value.asc())
        .all()
    )
    return render_template(
        "reports/list_items.html",
        category=category,
        label=LIST_CATEGORIES[category],
        categories=LIST_CATEGORIES,
        items=items,
    )


def _parse_sort_order(raw: str) -> int:
    try:
        return int(raw)
    except (TypeError, ValueError):
        return 0
