from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any

from flask import g, has_app_context, has_request_context, request
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.qdms.models import AuditEvent, User

logger = logging.getLogger(__name__)

MAX_AUDIT_LIMIT = 500


@dataclass(frozen=True)
class AuditEntry:
    action: str
    actor: User | None = None
    entity_type: str | None = None
    entity_id: str | int | None = None
    document_id: int | None = None
    document_version_id: int | None = None
    workflow_run_id: int | None = None
    reason: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


class AuditSink:
    """
    Append-only audit trail. Implementations must write within the caller's
    session so the event commits or rolls back with the mutation it records.
    """

    def record(self, s: Session, entry: AuditEntry) -> AuditEvent:
        raise NotImplementedError


class SqlAuditSink(AuditSink):
    def record(self, s: Session, entry: AuditEntry) -> AuditEvent:
        rid = getattr(g, "request_id", None) if has_app_context() else None
        ev = AuditEvent(
            request_id=rid,
            actor_user_id=entry.actor.id if entry.actor else None,
            actor_user_email=entry.actor.email if entry.actor else None,
            action=entry.action,
            entity_type=entry.entity_type,
            entity_id=str(entry.entity_id) if entry.entity_id is not None else None,
            document_id=entry.document_id,
            document_version_id=entry.document_version_id,
            workflow_run_id=entry.workflow_run_id,
            reason=entry.reason,
            metadata_json=json.dumps(entry.metadata, sort_keys=True, default=str) if entry.metadata else None,
            client_ip=request.remote_addr if has_request_context() else None,
        )
        s.add(ev)
        logger.debug("audit %s %s=%s", entry.action, entry.entity_type, entry.entity_id)
        return ev


def list_events(s: Session, limit: int = 100, *, max_limit: int = MAX_AUDIT_LIMIT) -> list[AuditEvent]:
    """Most recent first."""
    limit = max(1, min(int(limit), max_limit))
    stmt = select(AuditEvent).order_by(AuditEvent.created_at.desc(), AuditEvent.id.desc()).limit(limit)
    return list(s.scalars(stmt))


def events_for_document(s: Session, document_id: int, limit: int = 50) -> list[AuditEvent]:
    stmt = (
        select(AuditEvent)
        .where(AuditEvent.document_id == document_id)
        .order_by(AuditEvent.created_at.desc(), AuditEvent.id.desc())
        .limit(limit)
    )
    return list(s.scalars(stmt))
