"""
Named queries for the Document aggregate. Each function has a fixed shape;
services never build ad-hoc relation loads.
"""
from __future__ import annotations

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from app.qdms.modules.document_control.models import Document, DocumentType, DocumentVersion


def get_document(s: Session, document_id: int) -> Document | None:
    return s.get(Document, document_id)


def get_document_for_update(s: Session, document_id: int) -> Document | None:
    """Row-locks the document (no-op on SQLite) so concurrent revisions serialize."""
    stmt = select(Document).where(Document.id == document_id).with_for_update()
    return s.scalars(stmt).one_or_none()


def get_document_by_number(s: Session, doc_number: str) -> Document | None:
    return s.scalars(select(Document).where(Document.doc_number == doc_number)).one_or_none()


def list_documents(s: Session) -> list[Document]:
    stmt = select(Document).order_by(Document.updated_at.desc(), Document.id.desc())
    return list(s.scalars(stmt))


def get_document_type(s: Session, type_id: int) -> DocumentType | None:
    return s.get(DocumentType, type_id)


def get_version(s: Session, version_id: int) -> DocumentVersion | None:
    return s.get(DocumentVersion, version_id)


def versions_for_document(s: Session, document_id: int) -> list[DocumentVersion]:
    """Newest first."""
    stmt = (
        select(DocumentVersion)
        .where(DocumentVersion.document_id == document_id)
        .order_by(DocumentVersion.created_at.desc(), DocumentVersion.id.desc())
    )
    return list(s.scalars(stmt))


def version_label_exists(s: Session, document_id: int, version_label: str) -> bool:
    stmt = select(DocumentVersion.id).where(
        DocumentVersion.document_id == document_id,
        DocumentVersion.version_label == version_label,
    )
    return s.scalars(stmt).first() is not None


def supersede_other_versions(s: Session, document_id: int, keep_version_id: int) -> int:
    stmt = (
        update(DocumentVersion)
        .where(DocumentVersion.document_id == document_id, DocumentVersion.id != keep_version_id)
        .values(is_superseded=True)
        .execution_options(synchronize_session="fetch")
    )
    return s.execute(stmt).rowcount
