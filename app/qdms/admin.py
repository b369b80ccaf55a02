from flask import Blueprint, current_app, jsonify, request

from app.qdms.audit import list_events
from app.qdms.db import db_session
from app.qdms.errors import ValidationError
from app.qdms.rbac import require_permission

bp = Blueprint("admin", __name__)

DEFAULT_AUDIT_LIMIT = 100


@bp.get("/audit-log")
@require_permission("audit.view")
def audit_list():
    raw = (request.args.get("limit") or "").strip()
    try:
        limit = int(raw) if raw else DEFAULT_AUDIT_LIMIT
    except ValueError:
        raise ValidationError("limit must be an integer.", details={"limit": "must be an integer"})
    s = db_session()
    events = list_events(s, limit, max_limit=current_app.config.get("AUDIT_LOG_MAX_LIMIT", 500))
    return jsonify([e.to_dict() for e in events])
