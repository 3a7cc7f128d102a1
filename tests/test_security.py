from types import SimpleNamespace

import pytest

from quoteflow.security import (
    ROLE_ADMIN,
    ROLE_MANAGER,
    ROLE_PROTOCOL,
    ROLE_WORKSHOP,
    allowed_views,
    landing_endpoint,
    normalize_role,
    resolve_role,
)


def _settings(entries):
    """Stand-in for SystemSettings with a case-insensitive find_user()."""
    users = [SimpleNamespace(email=email, role=role) for email, role in entries]

    def find_user(email):
        needle = (email or "").strip().lower()
        return next((u for u in users if u.email.lower() == needle), None)

    return SimpleNamespace(find_user=find_user)


def test_listed_email_gets_its_role_case_insensitively():
    settings = _settings([("Oficina@Volus.test", "OFICINA")])
    assert resolve_role("oficina@volus.test", settings) == ROLE_WORKSHOP


def test_unlisted_email_gets_default_role():
    settings = _settings([])
    assert resolve_role("x@volus.test", settings) == ROLE_ADMIN
    assert resolve_role("x@volus.test", settings, default_role="PROTOCOLO") == ROLE_PROTOCOL


def test_demo_mode_and_missing_email_resolve_to_admin():
    settings = _settings([("p@volus.test", "PROTOCOLO")])
    assert resolve_role("p@volus.test", settings, demo_mode=True) == ROLE_ADMIN
    assert resolve_role(None, settings) == ROLE_ADMIN
    assert resolve_role("   ", settings) == ROLE_ADMIN


def test_misconfigured_default_role_falls_back_to_admin():
    assert resolve_role("x@volus.test", _settings([]), default_role="CHEFE") == ROLE_ADMIN


@pytest.mark.parametrize(
    "role, expected",
    [
        (ROLE_ADMIN, ("dashboard", "history", "reports", "protocol", "suppliers", "system", "users")),
        (ROLE_MANAGER, ("dashboard", "history", "reports", "protocol", "suppliers")),
        (ROLE_WORKSHOP, ("dashboard", "history", "suppliers")),
        (ROLE_PROTOCOL, ("protocol",)),
    ],
)
def test_role_views(role, expected):
    assert tuple(allowed_views(role)) == expected


def test_unknown_role_sees_nothing():
    assert normalize_role("chefe") is None
    assert normalize_role(" gestor ") == ROLE_MANAGER
    assert allowed_views("chefe") == ()
    assert landing_endpoint(None) == "auth.login"


def test_landing_endpoints():
    assert landing_endpoint(ROLE_ADMIN) == "quotes.dashboard"
    assert landing_endpoint(ROLE_PROTOCOL) == "protocol.queue"


def test_protocol_role_lands_on_queue_and_is_kept_out_of_other_views(protocol_client):
    response = protocol_client.get("/")
    assert response.status_code == 302
    assert response.headers["Location"].endswith("/protocol/")

    assert protocol_client.get("/protocol/").status_code == 200
    assert protocol_client.get("/quotes/").status_code == 403
    assert protocol_client.get("/reports/").status_code == 403
    assert protocol_client.get("/users/").status_code == 403


def test_workshop_role_views(workshop_client):
    assert workshop_client.get("/quotes/").status_code == 200
    assert workshop_client.get("/quotes/history").status_code == 200
    assert workshop_client.get("/settings/suppliers").status_code == 200
    assert workshop_client.get("/reports/").status_code == 403
    assert workshop_client.get("/protocol/").status_code == 403
    assert workshop_client.get("/settings/branding").status_code == 403


def test_manager_cannot_manage_system(manager_client):
    assert manager_client.get("/reports/").status_code == 200
    assert manager_client.get("/protocol/").status_code == 200
    assert manager_client.get("/settings/branding").status_code == 403
    assert manager_client.get("/users/").status_code == 403


def test_navigation_only_lists_allowed_views(workshop_client):
    html = workshop_client.get("/quotes/").get_data(as_text=True)
    assert "Histórico" in html
    assert "Fornecedores" in html
    assert "Relatórios" not in html
    assert "Usuários" not in html


def test_anonymous_user_is_sent_to_login(client):
    response = client.get("/reports/")
    assert response.status_code == 302
    assert "/auth/login" in response.headers["Location"]


def test_permission_denied_as_json(protocol_client):
    response = protocol_client.get("/reports/", headers={"Accept": "application/json"})
    assert response.status_code == 403
    assert response.get_json()["error"] == "permission_denied"
