from __future__ import annotations

import json
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.qdms.models import Base, User, iso


class ElectronicSignature(Base):
    """
    Credential-verified attestation bound to a document version and optionally a workflow step.
    Append-only: rows are never updated or deleted.
    """

    __tablename__ = "electronic_signatures"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    document_version_id: Mapped[int] = mapped_column(
        ForeignKey("document_versions.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)
    purpose: Mapped[str] = mapped_column(String(32), nullable=False)

    # Binding token over signer/version/time, not a content digest. Never re-verified.
    signature_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    workflow_step_id: Mapped[int | None] = mapped_column(
        ForeignKey("workflow_steps.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    metadata_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    signed_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    user: Mapped[User] = relationship("User", lazy="selectin")

    @property
    def signature_metadata(self) -> dict:
        return json.loads(self.metadata_json) if self.metadata_json else {}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "documentVersionId": self.document_version_id,
            "userId": self.user_id,
            "user": self.user.to_summary() if self.user else None,
            "purpose": self.purpose,
            "signatureHash": self.signature_hash,
            "workflowStepId": self.workflow_step_id,
            "metadata": self.signature_metadata,
            "signedAt": iso(self.signed_at),
        }
