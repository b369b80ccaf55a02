from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from app.qdms.db import db_session, transaction
from app.qdms.engine import current_engine
from app.qdms.modules.workflows.schemas import parse_create_template
from app.qdms.rbac import require_permission

bp = Blueprint("workflows", __name__)


@bp.get("/workflows")
@require_permission("workflows.view")
def list_templates():
    s = db_session()
    return jsonify([t.to_dict() for t in current_engine().workflows.list_templates(s)])


@bp.post("/workflows")
@require_permission("workflows.create")
def create_template():
    data = parse_create_template(request.get_json(silent=True))
    s = db_session()
    with transaction(s):
        t = current_engine().workflows.create_template(s, data, g.current_user)
    return jsonify(t.to_dict()), 201
