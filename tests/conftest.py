from __future__ import annotations

from datetime import datetime

import pytest

from config import TestingConfig
from quoteflow import create_app
from quoteflow.extensions import db
from quoteflow.models import Quote, ReportRecord, Supplier, SystemUser, User
from quoteflow.utils import get_system_settings

PASSWORD = "secret123"


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    """Create a login account; with `role`, also register the e-mail in the system users list."""

    def _make(email: str, role: str | None = None, is_active: bool = True) -> int:
        with app.app_context():
            user = User(email=email, is_active=is_active)
            user.set_password(PASSWORD)
            db.session.add(user)
            if role:
                settings = get_system_settings()
                settings.users.append(SystemUser(email=email, role=role))
            db.session.commit()
            return user.id

    return _make


@pytest.fixture
def login(app, make_user):
    """Return a fresh test client logged in with the given role."""

    def _login(role: str, email: str | None = None):
        email = email or f"{role.lower()}@volus.test"
        make_user(email, role)
        client = app.test_client()
        response = client.post("/auth/login", data={"email": email, "password": PASSWORD})
        assert response.status_code == 302
        return client

    return _login


@pytest.fixture
def admin_client(login):
    return login("ADMIN")


@pytest.fixture
def manager_client(login):
    return login("GESTOR")


@pytest.fixture
def workshop_client(login):
    return login("OFICINA")


@pytest.fixture
def protocol_client(login):
    return login("PROTOCOLO")


@pytest.fixture
def make_supplier(app):
    def _make(name: str = "AUTO PEÇAS SILVA", phone: str = "(11) 98765-4321", **fields) -> str:
        with app.app_context():
            supplier = Supplier(name=name, phone=phone, **fields)
            db.session.add(supplier)
            db.session.commit()
            return supplier.id

    return _make


@pytest.fixture
def make_record(app):
    def _make(created_at: datetime | None = None, **fields) -> str:
        values = {
            "prefix": "V-100",
            "department": "SAÚDE",
            "supplier": "AUTO PEÇAS SILVA",
            "approved_quote_number": "A-1",
        }
        values.update(fields)
        with app.app_context():
            record = ReportRecord(**values)
            if created_at is not None:
                record.created_at = created_at
            db.session.add(record)
            db.session.commit()
            return record.id

    return _make


@pytest.fixture
def make_quote(app):
    def _make(created_at: datetime | None = None, **fields) -> str:
        values = {
            "supplier_name": "AUTO PEÇAS SILVA",
            "supplier_phone": "(11) 98765-4321",
            "prefix": "V-100",
            "quote_number_parts": "P-1",
            "quote_number_services": "S-1",
            "observations": "ORCAMENTO *VOLUS* SOLICITADO\nEMPRESA: *AUTO PEÇAS SILVA*\n\nOBS: *TROCA DE PASTILHAS*",
        }
        values.update(fields)
        with app.app_context():
            quote = Quote(**values)
            if created_at is not None:
                quote.created_at = created_at
            db.session.add(quote)
            db.session.commit()
            return quote.id

    return _make
