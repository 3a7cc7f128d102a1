import logging

from quoteflow.extensions import db
from quoteflow.logging_setup import JsonLogFormatter
from quoteflow.models import User
from quoteflow.utils import get_system_settings


def test_login_with_wrong_password(client, make_user):
    make_user("ana@volus.test")
    response = client.post("/auth/login", data={"email": "ana@volus.test", "password": "wrong"})
    assert response.status_code == 401
    assert "E-mail ou senha inválidos" in response.get_data(as_text=True)


def test_inactive_account_cannot_log_in(client, make_user):
    make_user("off@volus.test", is_active=False)
    response = client.post("/auth/login", data={"email": "off@volus.test", "password": "secret123"})
    assert response.status_code == 403


def test_login_redirects_to_landing_view(client, make_user):
    make_user("p@volus.test", role="PROTOCOLO")
    response = client.post("/auth/login", data={"email": "P@volus.test", "password": "secret123"})
    assert response.headers["Location"].endswith("/protocol/")


def test_login_honours_local_next_only(client, make_user):
    make_user("a@volus.test")
    response = client.post(
        "/auth/login?next=/settings/suppliers",
        data={"email": "a@volus.test", "password": "secret123"},
    )
    assert response.headers["Location"] == "/settings/suppliers"

    other = client.application.test_client()
    response = other.post(
        "/auth/login?next=https://evil.example/",
        data={"email": "a@volus.test", "password": "secret123"},
    )
    assert response.headers["Location"] == "/quotes/"


def test_logout(admin_client):
    assert admin_client.post("/auth/logout").status_code == 302
    assert admin_client.get("/quotes/").status_code == 302


def test_register(app, client):
    response = client.post("/auth/register", data={"email": "Nova@Volus.test", "password": "123456"})
    assert response.headers["Location"].endswith("/auth/login")
    with app.app_context():
        assert User.query.filter_by(email="nova@volus.test").count() == 1

    response = client.post("/auth/register", data={"email": "nova@volus.test", "password": "123456"}, follow_redirects=True)
    assert "E-mail já cadastrado" in response.get_data(as_text=True)


def test_register_validates_input(app, client):
    client.post("/auth/register", data={"email": "invalid", "password": "123456"})
    client.post("/auth/register", data={"email": "ok@volus.test", "password": "123"})
    with app.app_context():
        assert User.query.count() == 0


def test_seed_admin_only_once(app, client):
    response = client.post("/auth/seed-admin", data={"email": "root@volus.test", "password": "123456"})
    assert response.status_code == 302
    with app.app_context():
        entry = get_system_settings().find_user("ROOT@volus.test")
        assert entry.role == "ADMIN"

    response = client.post("/auth/seed-admin", data={"email": "other@volus.test", "password": "123456"})
    assert response.headers["Location"].endswith("/auth/login")
    with app.app_context():
        assert User.query.count() == 1


def test_demo_mode_logs_visitors_in_as_admin(app, make_user):
    make_user("demo-listed@volus.test", role="PROTOCOLO")
    app.config["DEMO_MODE"] = True
    client = app.test_client()

    response = client.get("/users/")
    assert response.status_code == 200
    with app.app_context():
        assert db.session.query(User).filter_by(email="demo@quoteflow.local").count() == 1


def test_request_id_is_echoed(client):
    response = client.get("/auth/login", headers={"X-Request-Id": "abc-123"})
    assert response.headers["X-Request-Id"] == "abc-123"
    assert client.get("/auth/login").headers["X-Request-Id"]


def test_index_sends_anonymous_users_to_login(client):
    response = client.get("/")
    assert response.headers["Location"].endswith("/auth/login")


def test_create_admin_cli(app):
    runner = app.test_cli_runner()
    result = runner.invoke(args=["create-admin", "cli@volus.test", "--password", "123456"])
    assert result.exit_code == 0, result.output

    result = runner.invoke(args=["seed-options"])
    assert result.exit_code == 0
    with app.app_context():
        assert get_system_settings().find_user("cli@volus.test").role == "ADMIN"


def test_json_log_formatter_outputs_one_line():
    record = logging.LogRecord("quoteflow.test", logging.INFO, __file__, 1, "hello %s", ("world",), None)
    record.entity_id = "42"
    line = JsonLogFormatter().format(record)
    assert "\n" not in line
    assert '"message":"hello world"' in line
    assert '"entity_id":"42"' in line
