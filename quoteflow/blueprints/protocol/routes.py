"""
quoteflow/blueprints/protocol/routes.py

Protocol queue: printed reports awaiting physical confirmation by the back office.

- queue: pending records (oldest first), searchable by prefix / supplier / department
- confirm one record, confirm a batch, or record an inconsistency note
"""

from __future__ import annotations

from flask import Blueprint, flash, redirect, render_template, request, url_for
from flask_login import login_required

from ...audit import log_action, serialize_model
from ...errors import NotFound, ValidationError
from ...extensions import db
from ...models import DELIVERY_PROTOCOLLED, ReportRecord
from ...reporting import pending_protocol_records
from ...security import VIEW_PROTOCOL, view_required
from ...utils import commit_or_flash, form_text

protocol_bp = Blueprint("protocol", __name__, url_prefix="/protocol")

INCONSISTENCY_PREFIX = "INCONSISTÊNCIA: "


def confirm_record(record: ReportRecord) -> None:
    """Mark a pending record as received. Non-pending records are rejected."""
    if not record.is_pending_protocol:
        raise ValidationError("Este registro não está aguardando protocolo.")

    before = serialize_model(record)
    record.report_delivery = DELIVERY_PROTOCOLLED
    db.session.flush()
    log_action(record, "PROTOCOL", before=before, after=serialize_model(record))


def confirm_batch(record_ids: list[str]) -> int:
    """Confirm every pending record among `record_ids`; returns how many were confirmed."""
    ids = [rid for rid in dict.fromkeys(r.strip() for r in record_ids) if rid]
    if not ids:
        return 0

    count = 0
    for record in ReportRecord.query.filter(ReportRecord.id.in_(ids)).all():
        if record.is_pending_protocol:
            confirm_record(record)
            count += 1
    return count


def record_inconsistency(record: ReportRecord, note: str) -> None:
    """Append an upper-cased inconsistency note. The delivery status stays as it is."""
    note = (note or "").strip().upper()
    if not note:
        raise ValidationError("Descreva a inconsistência.")

    before = serialize_model(record)
    entry = f"{INCONSISTENCY_PREFIX}{note}"
    record.notes = f"{record.notes} | {entry}" if record.notes else entry
    db.session.flush()
    log_action(record, "INCONSISTENCY", before=before, after=serialize_model(record))


def _load_record(record_id: str) -> ReportRecord:
    record = db.session.get(ReportRecord, record_id)
    if record is None:
        raise NotFound("Registro não encontrado.")
    return record


def _back():
    return redirect(url_for("protocol.queue", q=request.form.get("q") or None))


@protocol_bp.route("/")
@login_required
@view_required(VIEW_PROTOCOL)
def queue():
    term = (request.args.get("q") or "").strip()
    records = pending_protocol_records(ReportRecord.query.all(), term)
    return render_template("protocol/queue.html", records=records, q=term)


@protocol_bp.route("/<record_id>/confirm", methods=["POST"])
@login_required
@view_required(VIEW_PROTOCOL)
def confirm(record_id: str):
    record = _load_record(record_id)
    try:
        confirm_record(record)
    except ValidationError as exc:
        flash(exc.message, "warning")
        return _back()

    if commit_or_flash("Erro ao confirmar o protocolo."):
        flash(f"Protocolo confirmado: {record.prefix}.", "success")
    return _back()


@protocol_bp.route("/confirm-batch", methods=["POST"])
@login_required
@view_required(VIEW_PROTOCOL)
def confirm_selected():
    count = confirm_batch(request.form.getlist("record_ids"))
    if count == 0:
        flash("Nenhum registro selecionado.", "info")
        return _back()

    if commit_or_flash("Erro ao confirmar os protocolos."):
        flash(f"{count} protocolos confirmados.", "success")
    return _back()


@protocol_bp.route("/<record_id>/inconsistency", methods=["POST"])
@login_required
@view_required(VIEW_PROTOCOL)
def inconsistency(record_id: str):
    record = _load_record(record_id)
    try:
        record_inconsistency(record, form_text("note"))
    except ValidationError as exc:
        flash(exc.message, "danger")
        return _back()

    if commit_or_flash("Erro ao registrar a inconsistência."):
        flash("Inconsistência registrada.", "success")
    return _back()
