from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from app.qdms.db import db_session, transaction
from app.qdms.engine import current_engine
from app.qdms.modules.signatures.schemas import parse_signature
from app.qdms.rbac import require_permission

bp = Blueprint("signatures", __name__)


@bp.post("/document-versions/<int:version_id>/signatures")
@require_permission("docs.sign")
def apply_signature(version_id: int):
    data = parse_signature(request.get_json(silent=True), document_version_id=version_id)
    s = db_session()
    with transaction(s):
        sig = current_engine().signatures.apply_signature(s, data, g.current_user)
    return jsonify(sig.to_dict()), 201
