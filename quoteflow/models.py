"""
QuoteFlow – Domain Models

Entities:
- Quote (+ QuoteAttachment): supplier request/approval message records
- ReportRecord: purchase/approval ledger line with the protocol (delivery) status
- ReportListItem: (category, value) dropdown entries for the report form
- Supplier: contact directory
- SystemSettings (+ SystemUser): branding and coarse role assignment
- User: login account
- AuditLog: who changed what

IMPORTANT:
- Every business entity gets a UUID string id and a creation timestamp when it is created.
- Updates overwrite every editable field; deletes remove by id. There is no versioning.
"""

from __future__ import annotations

import enum
import uuid
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP

from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash

from .extensions import db


# ---------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------
def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Naive UTC timestamp (SQLite does not keep tzinfo)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _money(x: Decimal) -> Decimal:
    return x.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


# ---------------------------------------------------------------------
# Vocabularies
# ---------------------------------------------------------------------
class QuoteType(str, enum.Enum):
    REQUEST = "PEDIDO DE ORÇAMENTO"
    APPROVAL = "APROVAÇÃO DE ORÇAMENTO"


WORKSHOP_OWN = "PROPRIA"
WORKSHOP_OUTSOURCED = "TERCERIZADA"
WORKSHOP_TYPES = (WORKSHOP_OWN, WORKSHOP_OUTSOURCED)

DEFAULT_REPORT_STATUS = "EM ANDAMENTO"

# Report delivery ("entregue relatório") vocabulary
DELIVERY_NOT_DELIVERED = "NÃO"
DELIVERY_AWAITING_PROTOCOL = "SIM - AGUARD. PROTOCOLO"
DELIVERY_PARTS_PROTOCOL = "ENTREGUE PEÇAS PROTOCOLO"
DELIVERY_SERVICE_PROTOCOL = "ENTREGUE SERVIÇO PROTOCOLO"
DELIVERY_PROTOCOLLED = "RECEBIDO - PROTOCOLADO"

PENDING_PROTOCOL_STATES = (
    DELIVERY_AWAITING_PROTOCOL,
    DELIVERY_PARTS_PROTOCOL,
    DELIVERY_SERVICE_PROTOCOL,
)


# ---------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------
class User(UserMixin, db.Model):
    """Login account. The role comes from SystemSettings.users (matched by e-mail)."""

    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)

    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)

    is_active = db.Column(db.Boolean, default=True, nullable=False)

    created_at = db.Column(db.DateTime, default=utcnow, index=True)

    def set_password(self, password: str):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)

    def __repr__(self):
        return f"<User {self.email}>"


# ---------------------------------------------------------------------
# Branding & role assignment
# ---------------------------------------------------------------------
class SystemSettings(db.Model):
    """Single-row branding configuration."""

    __tablename__ = "system_settings"

    id = db.Column(db.String(36), primary_key=True, default=new_id)

    name = db.Column(db.String(120), nullable=False, default="MECÂNICA VOLUS")
    subtitle = db.Column(db.String(255), nullable=True, default="SISTEMA INTEGRADO DE ORÇAMENTOS")
    # http(s) URL or a data: URL of an uploaded logo
    logo_url = db.Column(db.Text, nullable=True)
    primary_color = db.Column(db.String(30), nullable=False, default="indigo-600")

    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    users = db.relationship(
        "SystemUser",
        back_populates="settings",
        cascade="all, delete-orphan",
        order_by="SystemUser.email",
    )

    def find_user(self, email: str | None) -> "SystemUser | None":
        if not email:
            return None
        needle = email.strip().lower()
        for entry in self.users:
            if (entry.email or "").strip().lower() == needle:
                return entry
        return None


class SystemUser(db.Model):
    """E-mail -> role entry embedded in SystemSettings."""

    __tablename__ = "system_users"

    id = db.Column(db.String(36), primary_key=True, default=new_id)

    settings_id = db.Column(
        db.String(36),
        db.ForeignKey("system_settings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    email = db.Column(db.String(255), nullable=False, index=True)
    role = db.Column(db.String(20), nullable=False)

    added_at = db.Column(db.DateTime, default=utcnow)

    settings = db.relationship("SystemSettings", back_populates="users")

    __table_args__ = (db.UniqueConstraint("settings_id", "email", name="uq_settings_user_email"),)

    def __repr__(self):
        return f"<SystemUser {self.email} {self.role}>"


# ---------------------------------------------------------------------
# Directory
# ---------------------------------------------------------------------
class Supplier(db.Model):
    __tablename__ = "suppliers"

    id = db.Column(db.String(36), primary_key=True, default=new_id)

    name = db.Column(db.String(255), nullable=False, index=True)
    phone = db.Column(db.String(40), nullable=False)
    category = db.Column(db.String(80), nullable=True)

    created_at = db.Column(db.DateTime, default=utcnow, index=True)

    def __repr__(self):
        return f"<Supplier {self.name}>"


# ---------------------------------------------------------------------
# Quotes
# ---------------------------------------------------------------------
class Quote(db.Model):
    __tablename__ = "quotes"

    id = db.Column(db.String(36), primary_key=True, default=new_id)

    type = db.Column(db.String(40), nullable=False, default=QuoteType.REQUEST.value, index=True)

    supplier_name = db.Column(db.String(255), nullable=False, index=True)
    supplier_phone = db.Column(db.String(40), nullable=False)

    prefix = db.Column(db.String(50), nullable=True, index=True)
    quote_number_parts = db.Column(db.String(80), nullable=False, default="")
    quote_number_services = db.Column(db.String(80), nullable=False, default="")

    # JPEG data URL from the photo pipeline
    photo = db.Column(db.Text, nullable=True)

    # Generated WhatsApp message
    observations = db.Column(db.Text, nullable=False, default="")

    sent = db.Column(db.Boolean, default=False, nullable=False)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    created_at = db.Column(db.DateTime, default=utcnow, index=True)

    attachments = db.relationship(
        "QuoteAttachment",
        back_populates="quote",
        cascade="all, delete-orphan",
        order_by="QuoteAttachment.name",
    )

    @property
    def quote_type(self) -> QuoteType:
        return QuoteType(self.type)

    @property
    def is_approval(self) -> bool:
        return self.type == QuoteType.APPROVAL.value

    @property
    def status_label(self) -> str:
        return "APROVADO" if self.is_approval else "SOLICITADO"

    def __repr__(self):
        return f"<Quote {self.supplier_name} {self.type}>"


class QuoteAttachment(db.Model):
    __tablename__ = "quote_attachments"

    id = db.Column(db.String(36), primary_key=True, default=new_id)

    quote_id = db.Column(
        db.String(36),
        db.ForeignKey("quotes.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    name = db.Column(db.String(255), nullable=False)
    data = db.Column(db.Text, nullable=False)  # base64
    mime_type = db.Column(db.String(120), nullable=False)

    created_at = db.Column(db.DateTime, default=utcnow)

    quote = db.relationship("Quote", back_populates="attachments")


# ---------------------------------------------------------------------
# Report ledger
# ---------------------------------------------------------------------
class ReportRecord(db.Model):
    """Purchase report line (18 control fields)."""

    __tablename__ = "report_records"

    id = db.Column(db.String(36), primary_key=True, default=new_id)

    received_date = db.Column(db.Date, nullable=True, index=True)  # Data Recebido
    prefix = db.Column(db.String(50), nullable=False, default="", index=True)  # Prefixo
    department = db.Column(db.String(120), nullable=False, default="", index=True)  # Secretaria
    description = db.Column(db.Text, nullable=False, default="")  # Descrição
    workshop_order_number = db.Column(db.String(80), nullable=True)  # Nº Pedido Oficina
    workshop_type = db.Column(db.String(20), nullable=False, default=WORKSHOP_OUTSOURCED)  # Própria/Terceirizada
    volus_entry_date = db.Column(db.Date, nullable=True)  # Data Lançamento Volus
    volus_parts_quote_number = db.Column(db.String(80), nullable=True)  # Nº Orç Volus Peças
    volus_services_quote_number = db.Column(db.String(80), nullable=True)  # Nº Orç Volus Serv
    volus_approval_date = db.Column(db.Date, nullable=True)  # Data Aprovação Volus
    approved_quote_number = db.Column(db.String(80), nullable=False, default="", index=True)  # Nº Orç Aprovado
    total_value = db.Column(db.Numeric(12, 2), nullable=True)  # Valor Total
    invoice_number = db.Column(db.String(80), nullable=True)  # Nota Fiscal
    supplier = db.Column(db.String(255), nullable=False, default="", index=True)  # Fornecedor
    responsible = db.Column(db.String(120), nullable=True)  # Responsável Lançamento
    status = db.Column(db.String(80), nullable=False, default=DEFAULT_REPORT_STATUS, index=True)
    report_delivery = db.Column(db.String(80), nullable=False, default=DELIVERY_NOT_DELIVERED, index=True)
    notes = db.Column(db.Text, nullable=True)  # Observação

    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    created_at = db.Column(db.DateTime, default=utcnow, index=True)

    @property
    def total_value_display(self) -> str:
        if self.total_value is None:
            return ""
        return str(_money(Decimal(str(self.total_value))))

    @property
    def is_pending_protocol(self) -> bool:
        return (self.report_delivery or "").strip().upper() in PENDING_PROTOCOL_STATES

    def __repr__(self):
        return f"<ReportRecord {self.prefix} {self.supplier}>"


class ReportListItem(db.Model):
    """Dropdown entry for the report form (department, supplier, status, delivery)."""

    __tablename__ = "report_list_items"

    id = db.Column(db.String(36), primary_key=True, default=new_id)

    category = db.Column(db.String(40), nullable=False, index=True)
    value = db.Column(db.String(120), nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    sort_order = db.Column(db.Integer, default=0, nullable=False)

    created_at = db.Column(db.DateTime, default=utcnow)

    __table_args__ = (db.UniqueConstraint("category", "value", name="uq_list_category_value"),)


# ---------------------------------------------------------------------
# Audit
# ---------------------------------------------------------------------
class AuditLog(db.Model):
    __tablename__ = "audit_logs"

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    email_snapshot = db.Column(db.String(255), nullable=True)

    entity_type = db.Column(db.String(50), nullable=False, index=True)
    entity_id = db.Column(db.String(36), nullable=False, index=True)

    action = db.Column(db.String(20), nullable=False, index=True)

    before_data = db.Column(db.Text, nullable=True)
    after_data = db.Column(db.Text, nullable=True)

    ip_address = db.Column(db.String(45), nullable=True)

    created_at = db.Column(db.DateTime, default=utcnow, index=True)

    user = db.relationship("User", backref=db.backref("audit_entries", lazy=True))
