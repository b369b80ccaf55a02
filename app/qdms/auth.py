from __future__ import annotations

import uuid

from flask import Blueprint, current_app, g, jsonify, request, session
from werkzeug.security import check_password_hash

from app.qdms.audit import AuditEntry
from app.qdms.constants import AuditAction, EntityType
from app.qdms.db import db_session, transaction
from app.qdms.engine import current_engine
from app.qdms.models import User

bp = Blueprint("auth", __name__)


def load_current_user() -> None:
    """
    Loads g.current_user from the signed session cookie.
    Also assigns a simple per-request request_id (for audit/log correlation).
    """
    if not getattr(g, "request_id", None):
        g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    if request.path.startswith(("/health", "/healthz")):
        g.current_user = None
        return

    user_id = session.get("user_id")
    if not user_id:
        g.current_user = None
        return

    try:
        s = db_session()
        user = s.get(User, int(user_id))
        if not user or not user.is_active:
            session.pop("user_id", None)
            g.current_user = None
            return
        g.current_user = user
    except Exception as e:
        current_app.logger.error("load_current_user DB error (clearing session): %s", e)
        session.pop("user_id", None)
        g.current_user = None


@bp.post("/login")
def login_post():
    payload = request.get_json(silent=True) or {}
    email = str(payload.get("email") or "").strip().lower()
    password = str(payload.get("password") or "")

    s = db_session()
    audit = current_engine().audit
    user = s.query(User).filter(User.email == email).one_or_none()
    if not user or not user.is_active or not check_password_hash(user.password_hash, password):
        with transaction(s):
            audit.record(
                s,
                AuditEntry(
                    action=AuditAction.USER_LOGIN_FAILED,
                    entity_type=EntityType.USER,
                    entity_id=email,
                    reason="Invalid credentials",
                    metadata={"email": email},
                ),
            )
        current_app.logger.warning("Login failed for %s", email)
        return jsonify({"error": "Invalid credentials."}), 401

    session["user_id"] = user.id
    with transaction(s):
        audit.record(s, AuditEntry(actor=user, action=AuditAction.USER_LOGIN, entity_type=EntityType.USER, entity_id=user.id))
    return jsonify({"user": user.to_summary()})


@bp.post("/logout")
def logout():
    user = getattr(g, "current_user", None)
    if user:
        s = db_session()
        with transaction(s):
            current_engine().audit.record(
                s, AuditEntry(actor=user, action=AuditAction.USER_LOGOUT, entity_type=EntityType.USER, entity_id=user.id)
            )
    session.pop("user_id", None)
    return jsonify({"ok": True})


@bp.get("/me")
def me():
    user = getattr(g, "current_user", None)
    if not user:
        return jsonify({"error": "Authentication required."}), 401
    return jsonify({"user": user.to_summary()})
