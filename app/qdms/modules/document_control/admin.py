from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from app.qdms.db import db_session, transaction
from app.qdms.engine import current_engine
from app.qdms.models import User
from app.qdms.modules.document_control.schemas import (
    parse_create_document,
    parse_create_version,
    parse_document_patch,
)
from app.qdms.rbac import require_permission

bp = Blueprint("doc_control", __name__)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        # RBAC decorator should prevent this.
        raise RuntimeError("No current user")
    return u


@bp.get("/documents")
@require_permission("docs.view")
def list_documents():
    s = db_session()
    docs = current_engine().lifecycle.list_documents(s)
    return jsonify([d.to_dict() for d in docs])


@bp.post("/documents")
@require_permission("docs.create")
def create_document():
    data = parse_create_document(request.get_json(silent=True))
    s = db_session()
    with transaction(s):
        d = current_engine().lifecycle.create_document(s, data, _current_user())
    return jsonify({"documentId": d.id}), 201


@bp.get("/documents/<int:doc_id>")
@require_permission("docs.view")
def document_detail(doc_id: int):
    s = db_session()
    return jsonify(current_engine().lifecycle.get_document(s, doc_id))


@bp.put("/documents/<int:doc_id>")
@require_permission("docs.edit")
def update_document(doc_id: int):
    patch = parse_document_patch(request.get_json(silent=True))
    s = db_session()
    with transaction(s):
        d = current_engine().lifecycle.update_document(s, doc_id, patch, _current_user())
    return jsonify(d.to_dict())


@bp.post("/documents/<int:doc_id>/versions")
@require_permission("docs.revise")
def create_version(doc_id: int):
    data = parse_create_version(request.get_json(silent=True))
    s = db_session()
    with transaction(s):
        v = current_engine().lifecycle.create_version(s, doc_id, data, _current_user())
    return jsonify(v.to_dict()), 201
