import pytest

from app.qdms.db import session_scope
from app.qdms.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    SignatureRejectedError,
    ValidationError,
)
from app.qdms.models import AuditEvent, Document, ElectronicSignature, User, WorkflowRun
from app.qdms.modules.signatures.schemas import parse_signature
from app.qdms.modules.workflows import repository as wf_repo
from app.qdms.modules.workflows.schemas import parse_create_template

from conftest import create_document, default_template_id, login, sign


@pytest.fixture()
def people(make_user):
    return {
        "author": make_user("author@example.com", "AUTHOR"),
        "author2": make_user("author2@example.com", "AUTHOR"),
        "qa": make_user("qa@example.com", "QA"),
        "manager": make_user("manager@example.com", "QA_MANAGER"),
        "approver": make_user("approver@example.com", "APPROVER"),
        "viewer": make_user("viewer@example.com", "VIEWER"),
    }


@pytest.fixture()
def doc(app, engine, people):
    """Document on the default SOP template: [AUTHOR/REVIEW, QA/REVIEW, QA_MANAGER/APPROVAL]."""
    doc_id, version_id = create_document(app, engine, people["author"], workflowTemplateId=default_template_id(app))
    with session_scope(app) as s:
        run = s.query(WorkflowRun).filter(WorkflowRun.document_id == doc_id).one()
        steps = {st.order: st.id for st in run.steps}
        run_id = run.id
    return {"id": doc_id, "version_id": version_id, "run_id": run_id, "steps": steps}


def _run_state(app, run_id):
    with session_scope(app) as s:
        run = s.get(WorkflowRun, run_id)
        return run.status, run.current_step, [st.status for st in run.steps]


def _actions(app, action=None):
    with session_scope(app) as s:
        q = s.query(AuditEvent)
        if action:
            q = q.filter(AuditEvent.action == action)
        return q.order_by(AuditEvent.id.asc()).all()


def test_three_step_scenario_ends_approved(app, engine, people, doc):
    sign(app, engine, people["author"], doc["version_id"], "REVIEW", doc["steps"][1])
    assert _run_state(app, doc["run_id"]) == ("IN_PROGRESS", 2, ["COMPLETED", "IN_PROGRESS", "PENDING"])

    sign(app, engine, people["qa"], doc["version_id"], "REVIEW", doc["steps"][2], comments="Looks right")
    assert _run_state(app, doc["run_id"]) == ("IN_PROGRESS", 3, ["COMPLETED", "COMPLETED", "IN_PROGRESS"])

    with session_scope(app) as s:
        assert s.get(Document, doc["id"]).status == "DRAFT"

    sign(app, engine, people["manager"], doc["version_id"], "APPROVAL", doc["steps"][3])
    status, _, step_statuses = _run_state(app, doc["run_id"])
    assert status == "COMPLETED"
    assert step_statuses == ["COMPLETED"] * 3

    with session_scope(app) as s:
        d = s.get(Document, doc["id"])
        assert d.status == "APPROVED"
        assert d.lifecycle_state == "EFFECTIVE"
        run = s.get(WorkflowRun, doc["run_id"])
        assert run.completed_at is not None
        assert all(st.document_version_id == doc["version_id"] for st in run.steps)
        assert run.steps[1].comments == "Looks right"
        sigs = s.query(ElectronicSignature).order_by(ElectronicSignature.id).all()
        assert [sig.purpose for sig in sigs] == ["REVIEW", "REVIEW", "APPROVAL"]
        assert [sig.workflow_step_id for sig in sigs] == [doc["steps"][1], doc["steps"][2], doc["steps"][3]]
        assert sigs[2].signature_metadata["roles"] == ["QA_MANAGER"]

    captured = _actions(app, "SIGNATURE_CAPTURED")
    assert len(captured) == 3
    assert all(ev.workflow_run_id == doc["run_id"] for ev in captured)
    completed = _actions(app, "WORKFLOW_COMPLETED")
    assert len(completed) == 1
    assert completed[0].event_metadata == {"documentStatus": "APPROVED", "lifecycleState": "EFFECTIVE"}


def test_steps_can_be_signed_out_of_order_and_last_purpose_decides(app, engine, people, doc):
    sign(app, engine, people["manager"], doc["version_id"], "APPROVAL", doc["steps"][3])
    assert _run_state(app, doc["run_id"]) == ("IN_PROGRESS", 1, ["IN_PROGRESS", "PENDING", "COMPLETED"])

    sign(app, engine, people["author"], doc["version_id"], "REVIEW", doc["steps"][1])
    assert _run_state(app, doc["run_id"]) == ("IN_PROGRESS", 2, ["COMPLETED", "IN_PROGRESS", "COMPLETED"])

    sign(app, engine, people["qa"], doc["version_id"], "REVIEW", doc["steps"][2])
    assert _run_state(app, doc["run_id"])[0] == "COMPLETED"
    with session_scope(app) as s:
        d = s.get(Document, doc["id"])
        assert (d.status, d.lifecycle_state) == ("EFFECTIVE", "EFFECTIVE")


def test_wrong_password_is_rejected_and_audited_once(app, engine, people, doc):
    with pytest.raises(SignatureRejectedError) as exc:
        sign(app, engine, people["author"], doc["version_id"], "REVIEW", doc["steps"][1], password="not-my-password")
    assert exc.value.status_code == 401

    with session_scope(app) as s:
        assert s.query(ElectronicSignature).count() == 0
    rejected = _actions(app, "SIGNATURE_REJECTED")
    assert len(rejected) == 1
    assert rejected[0].actor_user_id == people["author"]
    assert rejected[0].reason == "invalid_credentials"
    assert rejected[0].entity_type == "DOCUMENT_VERSION"
    assert rejected[0].entity_id == str(doc["version_id"])
    assert _actions(app, "SIGNATURE_CAPTURED") == []
    assert _run_state(app, doc["run_id"]) == ("PENDING", 1, ["PENDING", "PENDING", "PENDING"])


def test_inactive_account_cannot_sign(app, engine, make_user, doc):
    ghost = make_user("ghost@example.com", "AUTHOR", is_active=False)
    with pytest.raises(SignatureRejectedError):
        sign(app, engine, ghost, doc["version_id"], "REVIEW", doc["steps"][1])
    assert len(_actions(app, "SIGNATURE_REJECTED")) == 1


def test_signer_without_role_or_assignment_is_refused(app, engine, people, doc):
    with pytest.raises(AuthorizationError):
        sign(app, engine, people["viewer"], doc["version_id"], "REVIEW", doc["steps"][1])
    with session_scope(app) as s:
        assert s.query(ElectronicSignature).count() == 0
    assert _actions(app, "SIGNATURE_CAPTURED") == []
    assert _run_state(app, doc["run_id"])[2] == ["PENDING", "PENDING", "PENDING"]


def test_signing_a_completed_step_conflicts(app, engine, people, doc):
    sign(app, engine, people["author"], doc["version_id"], "REVIEW", doc["steps"][1])
    with pytest.raises(ConflictError):
        sign(app, engine, people["author2"], doc["version_id"], "REVIEW", doc["steps"][1])
    with session_scope(app) as s:
        assert s.query(ElectronicSignature).count() == 1


def test_unauthorized_signer_on_completed_step_is_refused_before_conflict(app, engine, people, doc):
    sign(app, engine, people["author"], doc["version_id"], "REVIEW", doc["steps"][1])
    with pytest.raises(AuthorizationError):
        sign(app, engine, people["viewer"], doc["version_id"], "REVIEW", doc["steps"][1])
    with session_scope(app) as s:
        assert s.query(ElectronicSignature).count() == 1


def test_unknown_version_or_step(app, engine, people, doc):
    with pytest.raises(NotFoundError):
        sign(app, engine, people["author"], 9999, "REVIEW")
    with pytest.raises(NotFoundError):
        sign(app, engine, people["author"], doc["version_id"], "REVIEW", 9999)
    with session_scope(app) as s:
        assert s.query(ElectronicSignature).count() == 0


def test_step_from_another_document_is_refused(app, engine, people, doc):
    _, other_version = create_document(app, engine, people["author"], number="SOP-OTHER")
    with pytest.raises(ValidationError):
        sign(app, engine, people["author"], other_version, "REVIEW", doc["steps"][1])
    assert _run_state(app, doc["run_id"])[2] == ["PENDING", "PENDING", "PENDING"]


def test_signature_without_step_leaves_workflow_alone(app, engine, people, doc):
    sig_id = sign(app, engine, people["viewer"], doc["version_id"], "ACKNOWLEDGEMENT", comments="read it")
    with session_scope(app) as s:
        sig = s.get(ElectronicSignature, sig_id)
        assert sig.workflow_step_id is None
        assert sig.signature_hash and "read it" not in sig.signature_hash
        assert sig.signature_metadata == {"comments": "read it", "roles": ["VIEWER"]}
    assert _run_state(app, doc["run_id"])[0] == "PENDING"
    ev = _actions(app, "SIGNATURE_CAPTURED")[0]
    assert ev.workflow_run_id is None
    assert ev.event_metadata == {"comments": "read it", "purpose": "ACKNOWLEDGEMENT"}


def test_competing_submission_committed_before_lock(app, engine, people, doc, monkeypatch):
    real = wf_repo.load_run_with_steps
    fired = []

    def racing(s, run_id, *, for_update=False):
        if not fired:
            fired.append(True)
            sign(app, engine, people["author2"], doc["version_id"], "REVIEW", doc["steps"][1])
        return real(s, run_id, for_update=for_update)

    monkeypatch.setattr(wf_repo, "load_run_with_steps", racing)

    with pytest.raises(ConflictError):
        sign(app, engine, people["author"], doc["version_id"], "REVIEW", doc["steps"][1])

    with session_scope(app) as s:
        sigs = s.query(ElectronicSignature).all()
        assert [sig.user_id for sig in sigs] == [people["author2"]]
    assert _run_state(app, doc["run_id"]) == ("IN_PROGRESS", 2, ["COMPLETED", "IN_PROGRESS", "PENDING"])
    assert len(_actions(app, "SIGNATURE_CAPTURED")) == 1


def test_competing_submission_committed_after_read_loses_on_flush(app, engine, people, doc, monkeypatch):
    real = wf_repo.load_run_with_steps
    fired = []

    def racing(s, run_id, *, for_update=False):
        run = real(s, run_id, for_update=for_update)
        if not fired:
            fired.append(True)
            sign(app, engine, people["author2"], doc["version_id"], "REVIEW", doc["steps"][1])
        return run

    monkeypatch.setattr(wf_repo, "load_run_with_steps", racing)

    with pytest.raises(ConflictError):
        sign(app, engine, people["author"], doc["version_id"], "REVIEW", doc["steps"][1])

    with session_scope(app) as s:
        sigs = s.query(ElectronicSignature).all()
        assert [sig.user_id for sig in sigs] == [people["author2"]]
    assert _run_state(app, doc["run_id"]) == ("IN_PROGRESS", 2, ["COMPLETED", "IN_PROGRESS", "PENDING"])


def _four_step_doc(app, engine, people):
    """[AUTHOR, QA, QA_MANAGER, APPROVER] run with steps 3 and 4 signed, leaving 1 and 2 IN_PROGRESS."""
    payload = {
        "name": "Four-step release",
        "category": "QUALITY",
        "steps": [
            {"stepOrder": 1, "role": "AUTHOR", "stepType": "REVIEW"},
            {"stepOrder": 2, "role": "QA", "stepType": "REVIEW"},
            {"stepOrder": 3, "role": "QA_MANAGER", "stepType": "APPROVAL"},
            {"stepOrder": 4, "role": "APPROVER", "stepType": "APPROVAL"},
        ],
    }
    with session_scope(app) as s:
        template_id = engine.workflows.create_template(s, parse_create_template(payload), s.get(User, people["manager"])).id
    doc_id, version_id = create_document(app, engine, people["author"], number="SOP-004", workflowTemplateId=template_id)
    with session_scope(app) as s:
        run = s.query(WorkflowRun).filter(WorkflowRun.document_id == doc_id).one()
        run_id, steps = run.id, {st.order: st.id for st in run.steps}

    sign(app, engine, people["manager"], version_id, "APPROVAL", steps[3])
    sign(app, engine, people["approver"], version_id, "APPROVAL", steps[4])
    assert _run_state(app, run_id) == ("IN_PROGRESS", 2, ["IN_PROGRESS", "IN_PROGRESS", "COMPLETED", "COMPLETED"])
    return doc_id, version_id, run_id, steps


def _row_version(app, run_id):
    with session_scope(app) as s:
        return s.get(WorkflowRun, run_id).row_version


def test_completion_rewrites_run_row_even_when_run_state_is_unchanged(app, engine, people):
    _, version_id, run_id, steps = _four_step_doc(app, engine, people)

    before = _row_version(app, run_id)
    sign(app, engine, people["qa"], version_id, "REVIEW", steps[2])
    assert _run_state(app, run_id)[0] == "IN_PROGRESS"
    assert _row_version(app, run_id) > before


def test_concurrent_completion_of_different_last_steps(app, engine, people, monkeypatch):
    doc_id, version_id, run_id, steps = _four_step_doc(app, engine, people)

    real = wf_repo.load_run_with_steps
    fired = []

    def racing(s, rid, *, for_update=False):
        run = real(s, rid, for_update=for_update)
        if not fired:
            fired.append(True)
            sign(app, engine, people["qa"], version_id, "REVIEW", steps[2])
        return run

    monkeypatch.setattr(wf_repo, "load_run_with_steps", racing)
    with pytest.raises(ConflictError):
        sign(app, engine, people["author"], version_id, "REVIEW", steps[1])
    monkeypatch.setattr(wf_repo, "load_run_with_steps", real)

    # exactly one of the two completions committed
    assert _run_state(app, run_id)[::2] == ("IN_PROGRESS", ["IN_PROGRESS", "COMPLETED", "COMPLETED", "COMPLETED"])
    with session_scope(app) as s:
        assert s.query(ElectronicSignature).count() == 3
        assert s.get(Document, doc_id).status == "DRAFT"

    sign(app, engine, people["author"], version_id, "APPROVAL", steps[1])
    assert _run_state(app, run_id)[::2] == ("COMPLETED", ["COMPLETED"] * 4)
    with session_scope(app) as s:
        assert s.get(Document, doc_id).status == "APPROVED"
    assert len(_actions(app, "WORKFLOW_COMPLETED")) == 1


def test_parse_signature_uses_url_version_and_checks_password():
    data = parse_signature({"purpose": "review", "password": "long-enough", "documentVersionId": 99}, document_version_id=7)
    assert data.document_version_id == 7
    assert data.purpose == "REVIEW"
    assert "long-enough" not in repr(data)

    with pytest.raises(ValidationError) as exc:
        parse_signature({"purpose": "STAMP", "password": "short"}, document_version_id=7)
    assert set(exc.value.details) == {"purpose", "password"}


def test_signature_route(app, engine, people, doc):
    client = app.test_client()
    url = f"/api/document-versions/{doc['version_id']}/signatures"

    assert client.post(url, json={}).status_code == 401

    assert login(client, "author@example.com").status_code == 200
    r = client.post(url, json={"purpose": "REVIEW", "password": "wrong-password", "workflowStepId": doc["steps"][1]})
    assert r.status_code == 401
    assert r.json == {"error": "Electronic signature rejected. Invalid password."}

    r = client.post(url, json={"purpose": "REVIEW", "password": "x"})
    assert r.status_code == 422

    r = client.post(url, json={"purpose": "REVIEW", "password": "signing-pass-1", "workflowStepId": doc["steps"][3]})
    assert r.status_code == 403

    r = client.post(url, json={"purpose": "REVIEW", "password": "signing-pass-1", "workflowStepId": doc["steps"][1]})
    assert r.status_code == 201
    assert r.json["workflowStepId"] == doc["steps"][1]
    assert r.json["user"]["email"] == "author@example.com"

    r = client.post(url, json={"purpose": "REVIEW", "password": "signing-pass-1", "workflowStepId": doc["steps"][1]})
    assert r.status_code == 409

    rejected = _actions(app, "SIGNATURE_REJECTED")
    assert len(rejected) == 1
    assert rejected[0].client_ip == "127.0.0.1"
    assert rejected[0].request_id
