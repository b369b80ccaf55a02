import os

import pytest
from sqlalchemy import create_engine, inspect, text

from app.qdms.models import Base
from scripts import start
from scripts.release import run_release


@pytest.fixture()
def release_env(tmp_path, monkeypatch):
    db_url = f"sqlite:///{tmp_path/'release.db'}"
    monkeypatch.setenv("DATABASE_URL", db_url)
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("ADMIN_EMAIL", "ops@example.com")
    monkeypatch.setenv("ADMIN_PASSWORD", "release-pass-1")
    return db_url


def _counts(db_url):
    eng = create_engine(db_url)
    try:
        with eng.connect() as conn:
            return {
                t: conn.execute(text(f"SELECT COUNT(*) FROM {t}")).scalar_one()
                for t in ("roles", "permissions", "document_types", "workflow_templates", "workflow_template_steps", "users")
            }
    finally:
        eng.dispose()


def test_release_applies_baseline_and_seed(release_env):
    run_release()

    eng = create_engine(release_env)
    try:
        tables = set(inspect(eng).get_table_names())
        assert set(Base.metadata.tables) <= tables
        with eng.connect() as conn:
            assert conn.execute(text("SELECT version_num FROM alembic_version")).scalar_one() == "0001_baseline"
            assert conn.execute(text("SELECT email FROM users")).scalars().all() == ["ops@example.com"]
            assert conn.execute(text("SELECT name FROM workflow_templates WHERE is_default")).scalar_one() == "Standard SOP approval"
    finally:
        eng.dispose()

    first = _counts(release_env)
    assert first["roles"] == 8
    assert first["workflow_template_steps"] == 3

    run_release()
    assert _counts(release_env) == first


def test_release_guards(release_env, monkeypatch):
    monkeypatch.setenv("ENV", "production")
    with pytest.raises(RuntimeError, match="sqlite"):
        run_release()

    monkeypatch.delenv("DATABASE_URL")
    with pytest.raises(RuntimeError, match="DATABASE_URL"):
        run_release()


def test_start_runs_release_then_execs_gunicorn(monkeypatch):
    calls = []
    monkeypatch.setenv("PORT", "9000")
    monkeypatch.setenv("WEB_CONCURRENCY", "4")
    monkeypatch.delenv("GUNICORN_TIMEOUT", raising=False)
    monkeypatch.setattr("scripts.release.run_release", lambda: calls.append("release"))
    monkeypatch.setattr(os, "execvp", lambda file, argv: calls.append((file, argv)))

    start.main()

    assert calls[0] == "release"
    file, argv = calls[1]
    assert file == "gunicorn"
    assert argv[1] == "app.wsgi:app"
    assert argv[argv.index("--bind") + 1] == "0.0.0.0:9000"
    assert argv[argv.index("--workers") + 1] == "4"
    assert argv[argv.index("--timeout") + 1] == "60"


@pytest.mark.parametrize("port", ["0", "70000", "http"])
def test_start_rejects_bad_port(monkeypatch, port):
    monkeypatch.setenv("PORT", port)
    monkeypatch.setattr(os, "execvp", lambda *a: pytest.fail("gunicorn must not start"))
    with pytest.raises(SystemExit) as exc:
        start.main()
    assert exc.value.code == 1


def test_start_stops_when_release_fails(monkeypatch):
    def broken():
        raise RuntimeError("migration failed")

    monkeypatch.setenv("PORT", "9000")
    monkeypatch.setattr("scripts.release.run_release", broken)
    monkeypatch.setattr(os, "execvp", lambda *a: pytest.fail("gunicorn must not start"))
    with pytest.raises(SystemExit) as exc:
        start.main()
    assert exc.value.code == 1
