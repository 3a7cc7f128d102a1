from quoteflow.models import SystemUser
from quoteflow.utils import get_system_settings


def _entries(app):
    with app.app_context():
        settings = get_system_settings()
        return [(u.email, u.role) for u in settings.users]


def test_add_system_user(app, admin_client):
    response = admin_client.post("/users/add", data={"email": "Joao@Volus.test ", "role": "oficina"})
    assert response.status_code == 302
    assert ("joao@volus.test", "OFICINA") in _entries(app)


def test_duplicate_email_is_rejected_case_insensitively(app, admin_client):
    admin_client.post("/users/add", data={"email": "ana@volus.test", "role": "GESTOR"})
    response = admin_client.post("/users/add", data={"email": "ANA@volus.test", "role": "OFICINA"}, follow_redirects=True)

    assert "já está cadastrado" in response.get_data(as_text=True)
    assert [e for e in _entries(app) if e[0] == "ana@volus.test"] == [("ana@volus.test", "GESTOR")]


def test_invalid_email_or_role_is_rejected(app, admin_client):
    before = _entries(app)
    admin_client.post("/users/add", data={"email": "not-an-email", "role": "GESTOR"})
    admin_client.post("/users/add", data={"email": "x@volus.test", "role": "CHEFE"})
    assert _entries(app) == before


def test_change_role_changes_access(app, admin_client, make_user):
    make_user("carla@volus.test")
    admin_client.post("/users/add", data={"email": "carla@volus.test", "role": "PROTOCOLO"})

    carla = app.test_client()
    carla.post("/auth/login", data={"email": "carla@volus.test", "password": "secret123"})
    assert carla.get("/reports/").status_code == 403

    with app.app_context():
        entry_id = SystemUser.query.filter_by(email="carla@volus.test").one().id
    admin_client.post(f"/users/{entry_id}/role", data={"role": "GESTOR"})

    assert carla.get("/reports/").status_code == 200


def test_removed_user_falls_back_to_default_role(app, admin_client, make_user):
    make_user("dani@volus.test", role="PROTOCOLO")
    with app.app_context():
        entry_id = SystemUser.query.filter_by(email="dani@volus.test").one().id

    admin_client.post(f"/users/{entry_id}/remove")
    assert ("dani@volus.test", "PROTOCOLO") not in _entries(app)

    dani = app.test_client()
    dani.post("/auth/login", data={"email": "dani@volus.test", "password": "secret123"})
    assert dani.get("/users/").status_code == 200


def test_change_role_of_unknown_entry_is_404(admin_client):
    assert admin_client.post("/users/nope/role", data={"role": "GESTOR"}).status_code == 404


def test_users_page_is_admin_only(manager_client, admin_client):
    assert manager_client.get("/users/").status_code == 403
    html = admin_client.get("/users/").get_data(as_text=True)
    assert "admin@volus.test" in html
