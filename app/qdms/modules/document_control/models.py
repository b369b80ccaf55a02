from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.qdms.constants import DocumentStatus, LifecycleState
from app.qdms.models import Base, iso


class DocumentType(Base):
    __tablename__ = "document_types"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    type: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)  # e.g. "Procedure"
    description: Mapped[str] = mapped_column(String(512), nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    def to_dict(self) -> dict:
        return {"id": self.id, "type": self.type, "description": self.description}


class Document(Base):
    __tablename__ = "documents"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    doc_number: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str] = mapped_column(String(32), nullable=False)
    security: Mapped[str] = mapped_column(String(32), nullable=False)
    type_id: Mapped[int] = mapped_column(ForeignKey("document_types.id", ondelete="RESTRICT"), nullable=False)

    status: Mapped[str] = mapped_column(String(32), nullable=False, default=DocumentStatus.DRAFT)
    lifecycle_state: Mapped[str] = mapped_column(String(32), nullable=False, default=LifecycleState.DRAFT)

    # Always the newest non-superseded version once one exists.
    current_version_id: Mapped[int | None] = mapped_column(
        ForeignKey(
            "document_versions.id",
            ondelete="SET NULL",
            use_alter=True,
            name="fk_documents_current_version_id",
        ),
        nullable=True,
    )

    effective_from: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    next_issue_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    created_by_user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    doc_type: Mapped[DocumentType] = relationship("DocumentType", lazy="selectin")

    versions: Mapped[list["DocumentVersion"]] = relationship(
        "DocumentVersion",
        back_populates="document",
        lazy="selectin",
        order_by="DocumentVersion.id.desc()",
        foreign_keys="DocumentVersion.document_id",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "documentNumber": self.doc_number,
            "title": self.title,
            "documentCategory": self.category,
            "documentSecurity": self.security,
            "typeId": self.type_id,
            "type": self.doc_type.to_dict() if self.doc_type else None,
            "status": self.status,
            "lifecycleState": self.lifecycle_state,
            "currentVersionId": self.current_version_id,
            "effectiveFrom": iso(self.effective_from),
            "nextIssueDate": iso(self.next_issue_date),
            "createdById": self.created_by_user_id,
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }


class DocumentVersion(Base):
    __tablename__ = "document_versions"
    __table_args__ = (
        UniqueConstraint("document_id", "version_label", name="uq_document_version_label"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    document_id: Mapped[int] = mapped_column(ForeignKey("documents.id", ondelete="CASCADE"), nullable=False)
    version_label: Mapped[str] = mapped_column(String(32), nullable=False)  # e.g. "1.0", "2.0"

    issue_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    effective_from: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    next_issue_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    issuer_role: Mapped[str] = mapped_column(String(32), nullable=False)

    status: Mapped[str] = mapped_column(String(32), nullable=False, default=DocumentStatus.DRAFT)
    # Only DocumentLifecycle.create_version flips this.
    is_superseded: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    summary: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    change_note: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    content: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_by_user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)
    issued_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    document: Mapped[Document] = relationship(
        "Document",
        back_populates="versions",
        foreign_keys=[document_id],
        lazy="selectin",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "documentId": self.document_id,
            "versionLabel": self.version_label,
            "issueDate": iso(self.issue_date),
            "effectiveFrom": iso(self.effective_from),
            "nextIssueDate": iso(self.next_issue_date),
            "issuerRole": self.issuer_role,
            "status": self.status,
            "isSuperseded": self.is_superseded,
            "summary": self.summary,
            "changeNote": self.change_note,
            "content": self.content,
            "createdById": self.created_by_user_id,
            "issuedById": self.issued_by_user_id,
            "createdAt": iso(self.created_at),
        }
