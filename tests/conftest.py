import pytest
from werkzeug.security import generate_password_hash

from app.qdms import create_app
from app.qdms.db import session_scope
from app.qdms.models import Base, DocumentType, Role, User, WorkflowTemplate
from app.qdms.modules.document_control.schemas import parse_create_document
from app.qdms.modules.signatures.schemas import SignatureInput
from scripts.init_db import seed_only

PASSWORD = "signing-pass-1"


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    db_url = f"sqlite:///{tmp_path/'test.db'}"
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", db_url)
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("ADMIN_EMAIL", "admin@example.com")
    monkeypatch.setenv("ADMIN_PASSWORD", PASSWORD)

    app = create_app()
    Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])
    seed_only(database_url=db_url)
    return app


@pytest.fixture()
def engine(app):
    return app.extensions["qdms_engine"]


@pytest.fixture()
def make_user(app):
    def _make(email: str, *role_keys: str, password: str = PASSWORD, is_active: bool = True) -> int:
        with session_scope(app) as s:
            u = User(
                email=email,
                name=email.split("@")[0],
                password_hash=generate_password_hash(password),
                is_active=is_active,
            )
            u.roles.extend(s.query(Role).filter(Role.key.in_(role_keys)).all())
            s.add(u)
            s.flush()
            return u.id

    return _make


def type_id(app, name: str = "Procedure") -> int:
    with session_scope(app) as s:
        return s.query(DocumentType).filter(DocumentType.type == name).one().id


def default_template_id(app) -> int:
    with session_scope(app) as s:
        return s.query(WorkflowTemplate).filter(WorkflowTemplate.name == "Standard SOP approval").one().id


def document_payload(app, number: str = "SOP-001", **overrides) -> dict:
    payload = {
        "title": "Cleaning procedure",
        "documentNumber": number,
        "documentCategory": "QUALITY",
        "documentSecurity": "INTERNAL",
        "typeId": type_id(app),
        "versionLabel": "1.0",
        "issuerRole": "AUTHOR",
        "effectiveFrom": "2026-11-01",
        "nextIssueDate": "2027-11-01T00:00:00Z",
        "summary": "Initial issue",
        "content": "1. Scope\n2. Responsibilities",
    }
    payload.update(overrides)
    return payload


def create_document(app, engine, user_id: int, number: str = "SOP-001", **overrides) -> tuple[int, int]:
    """Returns (document_id, current_version_id)."""
    data = parse_create_document(document_payload(app, number, **overrides))
    with session_scope(app) as s:
        d = engine.lifecycle.create_document(s, data, s.get(User, user_id))
        return d.id, d.current_version_id


def sign(app, engine, user_id: int, version_id: int, purpose: str, step_id: int | None = None, *, password: str = PASSWORD, comments: str | None = None) -> int:
    data = SignatureInput(
        document_version_id=version_id,
        purpose=purpose,
        password=password,
        workflow_step_id=step_id,
        comments=comments,
    )
    with session_scope(app) as s:
        sig = engine.signatures.apply_signature(s, data, s.get(User, user_id))
        return sig.id


def login(client, email: str = "admin@example.com", password: str = PASSWORD):
    return client.post("/auth/login", json={"email": email, "password": password})
