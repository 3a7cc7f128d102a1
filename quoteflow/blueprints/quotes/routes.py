"""
quoteflow/blueprints/quotes/routes.py

Quote routes.

Includes:
- Dashboard: quote form + the three most recent quotes
- Create a single quote, or a batch of quotes (one per supplier row) sharing type and observations
- History grouped by supplier
- Approve (request -> approval with edited observations), send via WhatsApp, delete
- Attachment download

IMPORTANT:
- The WhatsApp message is produced server-side (messaging.format_quote_message), which falls
  back to the local template whenever the text API is unavailable.
- Database failures are rolled back, logged and reported to the user with a flash message.
"""

from __future__ import annotations

import base64
import io

from flask import Blueprint, current_app, flash, redirect, render_template, request, send_file, url_for
from flask_login import current_user, login_required

from ...audit import log_action, serialize_model
from ...errors import NotFound, ValidationError
from ...extensions import db
from ...imaging import CropBox, encode_attachment, process_photo, process_photo_data_url
from ...messaging import (
    QUICK_TEXTS,
    append_quick_text,
    approve_message,
    extract_observations,
    format_quote_message,
    whatsapp_url,
)
from ...models import Quote, QuoteAttachment, QuoteType, Supplier
from ...reporting import group_quotes_by_supplier, newest_first
from ...security import VIEW_DASHBOARD, VIEW_HISTORY, view_required
from ...utils import commit_or_flash, form_text, safe_next_url

quotes_bp = Blueprint("quotes", __name__, url_prefix="/quotes")

RECENT_QUOTES_ON_DASHBOARD = 3


# ---------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------
def _load_quote(quote_id: str) -> Quote:
    quote = db.session.get(Quote, quote_id)
    if quote is None:
        raise NotFound("Orçamento não encontrado.")
    return quote


def _parse_quote_type(raw: str | None) -> QuoteType:
    try:
        return QuoteType(raw or QuoteType.REQUEST.value)
    except ValueError as exc:
        raise ValidationError("Tipo de orçamento inválido.") from exc


def _supplier_fields(supplier_id: str, typed_name: str, typed_phone: str) -> tuple[str, str]:
    """Supplier name/phone from the directory (preferred) or typed in the form."""
    if supplier_id:
        supplier = db.session.get(Supplier, supplier_id)
        if supplier is None:
            raise ValidationError("Fornecedor não encontrado.")
        return supplier.name, supplier.phone

    if not typed_name or not typed_phone:
        raise ValidationError("Informe o fornecedor e o telefone.")
    return typed_name, typed_phone


def _read_photo() -> str | None:
    """Photo from a file upload or a camera data URL, run through the photo pipeline."""
    crop = CropBox.parse(
        request.form.get("crop_left"),
        request.form.get("crop_top"),
        request.form.get("crop_right"),
        request.form.get("crop_bottom"),
    )
    options = {
        "rotation": request.form.get("rotation") or 0,
        "crop": crop,
        "max_edge": int(current_app.config.get("PHOTO_MAX_EDGE", 1280)),
        "quality": int(current_app.config.get("PHOTO_JPEG_QUALITY", 80)),
    }

    upload = request.files.get("photo")
    if upload and upload.filename:
        return process_photo(upload.read(), **options)

    data_url = form_text("photo_data")
    if data_url:
        return process_photo_data_url(data_url, **options)

    return None


def _read_attachments() -> list[QuoteAttachment]:
    max_bytes = int(current_app.config.get("MAX_ATTACHMENT_BYTES", 0))
    attachments = []
    for upload in request.files.getlist("files"):
        if not upload or not upload.filename:
            continue
        encoded = encode_attachment(upload.filename, upload.read(), upload.mimetype, max_bytes)
        attachments.append(QuoteAttachment(name=encoded.name, data=encoded.data, mime_type=encoded.mime_type))
    return attachments


def _new_quote(
    quote_type: QuoteType,
    supplier_name: str,
    supplier_phone: str,
    prefix: str,
    parts_number: str,
    services_number: str,
    observations: str,
    photo: str | None,
) -> Quote:
    message = format_quote_message(
        quote_type,
        observations,
        supplier_name,
        prefix,
        parts_number,
        services_number,
    )
    return Quote(
        type=quote_type.value,
        supplier_name=supplier_name,
        supplier_phone=supplier_phone,
        prefix=prefix or None,
        quote_number_parts=parts_number,
        quote_number_services=services_number,
        photo=photo,
        observations=message,
        user_id=current_user.id,
    )


def _suppliers_for_form():
    return Supplier.query.order_by(Supplier.name.asc()).all()


# ---------------------------------------------------------------------
# Dashboard / create
# ---------------------------------------------------------------------
@quotes_bp.route("/")
@login_required
@view_required(VIEW_DASHBOARD)
def dashboard():
    recent = newest_first(Quote.query.all())[:RECENT_QUOTES_ON_DASHBOARD]
    return render_template(
        "quotes/dashboard.html",
        suppliers=_suppliers_for_form(),
        quote_types=list(QuoteType),
        recent_quotes=recent,
        quick_texts=QUICK_TEXTS,
    )


@quotes_bp.route("/new", methods=["POST"])
@login_required
@view_required(VIEW_DASHBOARD)
def create_quote():
    try:
        quote_type = _parse_quote_type(request.form.get("type"))
        supplier_name, supplier_phone = _supplier_fields(
            form_text("supplier_id"),
            form_text("supplier_name"),
            form_text("supplier_phone"),
        )
        photo = _read_photo()
        attachments = _read_attachments()
    except ValidationError as exc:
        flash(exc.message, "danger")
        return redirect(url_for("quotes.dashboard"))

    quote = _new_quote(
        quote_type,
        supplier_name,
        supplier_phone,
        form_text("prefix"),
        form_text("quote_number_parts"),
        form_text("quote_number_services"),
        form_text("observations"),
        photo,
    )
    quote.attachments.extend(attachments)
    db.session.add(quote)
    db.session.flush()
    log_action(quote, "CREATE", after=serialize_model(quote))

    if commit_or_flash("Erro ao salvar o orçamento."):
        flash("Orçamento gerado.", "success")
    return redirect(url_for("quotes.dashboard"))


@quotes_bp.route("/batch", methods=["POST"])
@login_required
@view_required(VIEW_DASHBOARD)
def create_batch():
    """
    One quote per supplier row. Rows without a supplier are skipped.

    Form lists (same length): supplier_id, prefix, quote_number_parts, quote_number_services.
    """
    supplier_ids = request.form.getlist("supplier_id")
    prefixes = request.form.getlist("prefix")
    parts_numbers = request.form.getlist("quote_number_parts")
    services_numbers = request.form.getlist("quote_number_services")

    def _at(values: list[str], idx: int) -> str:
        return (values[idx] if idx < len(values) else "").strip()

    try:
        quote_type = _parse_quote_type(request.form.get("type"))
        photo = _read_photo()
        rows = []
        for idx, supplier_id in enumerate(supplier_ids):
            supplier_id = (supplier_id or "").strip()
            if not supplier_id:
                continue
            name, phone = _supplier_fields(supplier_id, "", "")
            rows.append((name, phone, _at(prefixes, idx), _at(parts_numbers, idx), _at(services_numbers, idx)))
        if not rows:
            raise ValidationError("Adicione pelo menos um fornecedor ao lote.")
    except ValidationError as exc:
        flash(exc.message, "danger")
        return redirect(url_for("quotes.dashboard"))

    observations = form_text("observations")
    created = []
    for name, phone, prefix, parts_number, services_number in rows:
        quote = _new_quote(quote_type, name, phone, prefix, parts_number, services_number, observations, photo)
        db.session.add(quote)
        created.append(quote)

    db.session.flush()
    for quote in created:
        log_action(quote, "CREATE", after=serialize_model(quote))

    if commit_or_flash("Erro ao salvar o lote de orçamentos."):
        flash(f"{len(created)} orçamentos gerados.", "success")
    return redirect(url_for("quotes.dashboard"))


# ---------------------------------------------------------------------
# History
# ---------------------------------------------------------------------
@quotes_bp.route("/history")
@login_required
@view_required(VIEW_HISTORY)
def history():
    groups = group_quotes_by_supplier(Quote.query.all())
    return render_template(
        "quotes/history.html",
        groups=groups,
        quick_texts=QUICK_TEXTS,
        extract_observations=extract_observations,
        expanded=request.args.get("supplier"),
    )


@quotes_bp.route("/<quote_id>/approve", methods=["POST"])
@login_required
@view_required(VIEW_HISTORY)
def approve_quote(quote_id: str):
    """Turn a request into an approval, rewrite its message and open WhatsApp."""
    quote = _load_quote(quote_id)

    if quote.is_approval:
        flash("Este orçamento já está aprovado.", "warning")
        return redirect(url_for("quotes.history", supplier=quote.supplier_name))

    observations = form_text("observations")
    if "observations" not in request.form:
        observations = extract_observations(quote.observations)
    for text in request.form.getlist("quick_text"):
        if text.strip():
            observations = append_quick_text(observations, text.strip())

    before = serialize_model(quote)
    quote.type = QuoteType.APPROVAL.value
    quote.observations = approve_message(quote, observations)
    quote.sent = True

    db.session.flush()
    log_action(quote, "APPROVE", before=before, after=serialize_model(quote))
    if not commit_or_flash("Erro ao aprovar o orçamento."):
        return redirect(url_for("quotes.history"))

    return redirect(whatsapp_url(quote.supplier_phone, quote.observations))


@quotes_bp.route("/<quote_id>/send", methods=["POST"])
@login_required
@view_required(VIEW_DASHBOARD)
def send_quote(quote_id: str):
    """Mark as sent and redirect to the supplier's WhatsApp chat with the message."""
    quote = _load_quote(quote_id)
    quote.sent = True
    if not commit_or_flash("Erro ao atualizar o orçamento."):
        return redirect(safe_next_url(request.form.get("next"), "quotes.dashboard"))
    return redirect(whatsapp_url(quote.supplier_phone, quote.observations))


@quotes_bp.route("/<quote_id>/delete", methods=["POST"])
@login_required
@view_required(VIEW_HISTORY)
def delete_quote(quote_id: str):
    quote = _load_quote(quote_id)
    before = serialize_model(quote)

    db.session.delete(quote)
    db.session.flush()
    log_action(quote, "DELETE", before=before)

    if commit_or_flash("Erro ao excluir o orçamento."):
        flash("Orçamento excluído.", "success")
    return redirect(safe_next_url(request.form.get("next"), "quotes.history"))


@quotes_bp.route("/<quote_id>/attachments/<attachment_id>")
@login_required
@view_required(VIEW_HISTORY)
def download_attachment(quote_id: str, attachment_id: str):
    attachment = QuoteAttachment.query.filter_by(id=attachment_id, quote_id=quote_id).first()
    if attachment is None:
        raise NotFound("Anexo não encontrado.")
    return send_file(
        io.BytesIO(base64.b64decode(attachment.data)),
        mimetype=attachment.mime_type,
        as_attachment=True,
        download_name=attachment.name,
    )
