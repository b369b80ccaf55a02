from __future__ import annotations

import json
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


def iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


class UserRole(Base):
    __tablename__ = "user_roles"
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    role_id: Mapped[int] = mapped_column(ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True)


class RolePermission(Base):
    __tablename__ = "role_permissions"
    role_id: Mapped[int] = mapped_column(ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True)
    permission_id: Mapped[int] = mapped_column(ForeignKey("permissions.id", ondelete="CASCADE"), primary_key=True)


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    roles: Mapped[list["Role"]] = relationship(
        secondary="user_roles",
        back_populates="users",
        lazy="selectin",
    )

    @property
    def role_keys(self) -> list[str]:
        return sorted(r.key for r in self.roles)

    def to_summary(self) -> dict:
        return {"id": self.id, "name": self.name, "email": self.email, "roles": self.role_keys}


class Role(Base):
    __tablename__ = "roles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    key: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)  # e.g. "QA_MANAGER"
    name: Mapped[str] = mapped_column(String(128), nullable=False)  # display name
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    users: Mapped[list[User]] = relationship(secondary="user_roles", back_populates="roles", lazy="selectin")
    permissions: Mapped[list["Permission"]] = relationship(
        secondary="role_permissions",
        back_populates="roles",
        lazy="selectin",
    )


class Permission(Base):
    __tablename__ = "permissions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    key: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)  # e.g. "docs.sign"
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    roles: Mapped[list[Role]] = relationship(secondary="role_permissions", back_populates="permissions", lazy="selectin")


class AuditEvent(Base):
    """
    Append-only audit trail event.
    The generic entity_type/entity_id pair names the mutated record; the document,
    version and run columns are optional cross-references for per-document trails.
    """

    __tablename__ = "audit_events"
    __table_args__ = (
        Index("ix_audit_events_document_id", "document_id"),
        Index("ix_audit_events_created_at", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    request_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    # NULL actor = system
    actor_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    actor_user_email: Mapped[str | None] = mapped_column(String(320), nullable=True)

    action: Mapped[str] = mapped_column(String(128), nullable=False)  # e.g. "SIGNATURE_CAPTURED"
    entity_type: Mapped[str | None] = mapped_column(String(128), nullable=True)  # e.g. "DOCUMENT_VERSION"
    entity_id: Mapped[str | None] = mapped_column(String(128), nullable=True)

    document_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    document_version_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    workflow_run_id: Mapped[int | None] = mapped_column(Integer, nullable=True)

    reason: Mapped[str | None] = mapped_column(String(512), nullable=True)
    metadata_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    client_ip: Mapped[str | None] = mapped_column(String(45), nullable=True)

    @property
    def event_metadata(self) -> dict:
        return json.loads(self.metadata_json) if self.metadata_json else {}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "createdAt": iso(self.created_at),
            "requestId": self.request_id,
            "actorId": self.actor_user_id,
            "actorEmail": self.actor_user_email,
            "action": self.action,
            "entityType": self.entity_type,
            "entityId": self.entity_id,
            "documentId": self.document_id,
            "documentVersionId": self.document_version_id,
            "workflowRunId": self.workflow_run_id,
            "reason": self.reason,
            "metadata": self.event_metadata,
            "ipAddress": self.client_ip,
        }


# Ensure module models are imported so Base.metadata includes their tables.
# (Kept at bottom to avoid circular imports.)
from app.qdms.modules.document_control.models import Document, DocumentType, DocumentVersion  # noqa: E402,F401
from app.qdms.modules.workflows.models import (  # noqa: E402,F401
    TemplateStep,
    WorkflowRun,
    WorkflowStep,
    WorkflowTemplate,
)
from app.qdms.modules.signatures.models import ElectronicSignature  # noqa: E402,F401
