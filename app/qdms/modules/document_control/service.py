"""
Document lifecycle service.
Owns Document and DocumentVersion records: creation, superseding, status and
lifecycle transitions. Callers own the transaction; nothing here commits.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

from app.qdms.audit import AuditEntry, AuditSink, events_for_document
from app.qdms.constants import (
    DOCUMENT_AUDIT_TAIL,
    AuditAction,
    DocumentStatus,
    EntityType,
    LifecycleState,
    SignaturePurpose,
)
from app.qdms.errors import ConflictError, NotFoundError

from . import repository as repo
from .models import Document, DocumentVersion
from .schemas import CreateDocumentInput, DocumentPatch, VersionInput

if TYPE_CHECKING:
    from app.qdms.models import User
    from app.qdms.modules.workflows.service import WorkflowOrchestrator

logger = logging.getLogger(__name__)


def _new_version(document: Document, data: VersionInput, user: User) -> DocumentVersion:
    return DocumentVersion(
        document_id=document.id,
        version_label=data.version_label,
        issue_date=data.issue_date,
        effective_from=data.effective_from,
        next_issue_date=data.next_issue_date,
        issuer_role=data.issuer_role,
        status=DocumentStatus.DRAFT,
        is_superseded=False,
        summary=data.summary,
        change_note=data.change_note,
        content=data.content,
        created_by_user_id=user.id,
        issued_by_user_id=data.issued_by_id or user.id,
    )


class DocumentLifecycle:
    def __init__(self, audit: AuditSink, workflows: WorkflowOrchestrator) -> None:
        self._audit = audit
        self._workflows = workflows

    def create_document(self, s: Session, data: CreateDocumentInput, user: User) -> Document:
        """Document + first version (both DRAFT), optional workflow run, DOCUMENT_CREATED."""
        if repo.get_document_type(s, data.type_id) is None:
            raise NotFoundError("Document type", data.type_id)
        if repo.get_document_by_number(s, data.doc_number) is not None:
            raise ConflictError(f"Document number {data.doc_number!r} already exists.")

        d = Document(
            doc_number=data.doc_number,
            title=data.title,
            category=data.category,
            security=data.security,
            type_id=data.type_id,
            status=DocumentStatus.DRAFT,
            lifecycle_state=LifecycleState.DRAFT,
            effective_from=data.version.effective_from,
            next_issue_date=data.version.next_issue_date,
            created_by_user_id=user.id,
        )
        s.add(d)
        s.flush()

        v = _new_version(d, data.version, user)
        s.add(v)
        s.flush()
        d.current_version_id = v.id

        run_id = None
        if data.workflow_template_id is not None:
            run = self._workflows.instantiate_run(s, d.id, data.workflow_template_id)
            run_id = run.id

        self._audit.record(
            s,
            AuditEntry(
                actor=user,
                action=AuditAction.DOCUMENT_CREATED,
                entity_type=EntityType.DOCUMENT,
                entity_id=d.id,
                document_id=d.id,
                document_version_id=v.id,
                workflow_run_id=run_id,
                metadata={
                    "number": d.doc_number,
                    "version": v.version_label,
                    "category": d.category,
                    "security": d.security,
                },
            ),
        )
        logger.info("Document %s created (id=%s version=%s run=%s)", d.doc_number, d.id, v.version_label, run_id)
        return d

    def create_version(self, s: Session, document_id: int, data: VersionInput, user: User) -> DocumentVersion:
        """
        New DRAFT version; every other version of the document becomes superseded.
        This is the only code path that writes is_superseded.
        """
        d = repo.get_document_for_update(s, document_id)
        if d is None:
            raise NotFoundError("Document", document_id)
        if repo.version_label_exists(s, d.id, data.version_label):
            raise ConflictError(f"Version {data.version_label!r} already exists for document {d.doc_number}.")

        v = _new_version(d, data, user)
        s.add(v)
        s.flush()
        superseded = repo.supersede_other_versions(s, d.id, keep_version_id=v.id)

        d.current_version_id = v.id
        d.status = DocumentStatus.DRAFT
        d.lifecycle_state = LifecycleState.UNDER_REVISION
        d.effective_from = data.effective_from
        d.next_issue_date = data.next_issue_date

        self._audit.record(
            s,
            AuditEntry(
                actor=user,
                action=AuditAction.DOCUMENT_VERSION_CREATED,
                entity_type=EntityType.DOCUMENT_VERSION,
                entity_id=v.id,
                document_id=d.id,
                document_version_id=v.id,
                metadata={"versionLabel": v.version_label, "issuerRole": v.issuer_role},
            ),
        )
        logger.info(
            "Document %s revised to %s (superseded %s prior version(s))", d.doc_number, v.version_label, superseded
        )
        return v

    def update_document(self, s: Session, document_id: int, patch: DocumentPatch, user: User) -> Document:
        """
        Administrative override of category/security/status/lifecycle/dates.
        Bypasses workflow gating on purpose; coarse role checks live in the caller.
        """
        d = repo.get_document(s, document_id)
        if d is None:
            raise NotFoundError("Document", document_id)

        for attr, value in patch.values.items():
            setattr(d, attr, value)

        self._audit.record(
            s,
            AuditEntry(
                actor=user,
                action=AuditAction.DOCUMENT_UPDATED,
                entity_type=EntityType.DOCUMENT,
                entity_id=d.id,
                document_id=d.id,
                metadata=patch.to_metadata(),
            ),
        )
        return d

    def finalize(self, s: Session, document_id: int, purpose: str) -> Document:
        """Run completed: APPROVED for an APPROVAL signature, otherwise EFFECTIVE."""
        d = repo.get_document(s, document_id)
        if d is None:
            raise NotFoundError("Document", document_id)
        d.status = DocumentStatus.APPROVED if purpose == SignaturePurpose.APPROVAL else DocumentStatus.EFFECTIVE
        d.lifecycle_state = LifecycleState.EFFECTIVE
        logger.info("Document %s finalized as %s", d.doc_number, d.status)
        return d

    def list_documents(self, s: Session) -> list[Document]:
        return repo.list_documents(s)

    def get_document(self, s: Session, document_id: int) -> dict:
        """Read-only aggregate for the presentation layer."""
        from app.qdms.modules.signatures.repository import signatures_for_version
        from app.qdms.modules.workflows.repository import runs_for_document

        d = repo.get_document(s, document_id)
        if d is None:
            raise NotFoundError("Document", document_id)

        versions = []
        for v in repo.versions_for_document(s, d.id):
            row = v.to_dict()
            row["signatures"] = [sig.to_dict() for sig in signatures_for_version(s, v.id)]
            versions.append(row)

        out = d.to_dict()
        current = repo.get_version(s, d.current_version_id) if d.current_version_id else None
        out["currentVersion"] = current.to_dict() if current else None
        out["versions"] = versions
        out["workflows"] = [run.to_dict() for run in runs_for_document(s, d.id)]
        out["auditLogs"] = [ev.to_dict() for ev in events_for_document(s, d.id, limit=DOCUMENT_AUDIT_TAIL)]
        return out
