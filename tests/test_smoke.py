import logging

import pytest

from app.qdms import create_app
from app.qdms.config import load_config
from app.qdms.db import session_scope
from app.qdms.logging_config import JSONFormatter
from app.qdms.models import AuditEvent

from conftest import login


@pytest.fixture()
def client(app):
    return app.test_client()


def test_health_ok(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json["ok"] is True
    assert client.get("/healthz").data == b"ok"


def test_login_me_logout(client, app):
    assert client.get("/auth/me").status_code == 401

    r = login(client, password="wrong")
    assert r.status_code == 401

    r = login(client)
    assert r.status_code == 200
    assert r.json["user"]["email"] == "admin@example.com"
    assert r.json["user"]["roles"] == ["ADMIN"]

    r = client.get("/auth/me")
    assert r.status_code == 200

    client.post("/auth/logout")
    assert client.get("/auth/me").status_code == 401

    with session_scope(app) as s:
        actions = [e.action for e in s.query(AuditEvent).order_by(AuditEvent.id.asc()).all()]
    assert actions == ["USER_LOGIN_FAILED", "USER_LOGIN", "USER_LOGOUT"]


def test_unknown_route_is_json_404(client):
    r = client.get("/nope")
    assert r.status_code == 404
    assert r.json == {"error": "Not found."}


def test_request_id_header_is_recorded(client, app):
    client.post("/auth/login", json={"email": "admin@example.com", "password": "signing-pass-1"}, headers={"X-Request-ID": "req-123"})
    with session_scope(app) as s:
        ev = s.query(AuditEvent).filter(AuditEvent.action == "USER_LOGIN").one()
    assert ev.request_id == "req-123"


def test_config_defaults_and_postgres_scheme(monkeypatch):
    for k in ("DATABASE_URL", "AUDIT_LOG_MAX_LIMIT", "LOG_LEVEL"):
        monkeypatch.delenv(k, raising=False)
    cfg = load_config()
    assert cfg["DATABASE_URL"] == "sqlite:///qdms.db"
    assert cfg["AUDIT_LOG_MAX_LIMIT"] == 500
    assert cfg["LOG_LEVEL"] == "INFO"

    monkeypatch.setenv("DATABASE_URL", "postgres://u:p@db:5432/qdms")
    monkeypatch.setenv("AUDIT_LOG_MAX_LIMIT", "not-a-number")
    cfg = load_config()
    assert cfg["DATABASE_URL"] == "postgresql://u:p@db:5432/qdms"
    assert cfg["AUDIT_LOG_MAX_LIMIT"] == 500


def test_production_refuses_sqlite_and_default_secret(tmp_path, monkeypatch):
    monkeypatch.setenv("ENV", "production")
    monkeypatch.setenv("SECRET_KEY", "a-real-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'prod.db'}")
    with pytest.raises(RuntimeError, match="Postgres"):
        create_app()


def test_json_formatter_carries_request_id():
    record = logging.LogRecord("qdms", logging.WARNING, __file__, 1, "signature %s", ("rejected",), None)
    record.request_id = "abc"
    out = JSONFormatter().format(record)
    assert '"message": "signature rejected"' in out
    assert '"request_id": "abc"' in out
    assert '"level": "WARNING"' in out
