from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.qdms.constants import WorkflowStatus
from app.qdms.models import Base, iso


class WorkflowTemplate(Base):
    """
    Reusable ordered definition of review/approval roles.
    Never mutated after creation; runs copy the step shape instead of referencing it.
    """

    __tablename__ = "workflow_templates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str | None] = mapped_column(String(32), nullable=True)
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    steps: Mapped[list["TemplateStep"]] = relationship(
        "TemplateStep",
        back_populates="template",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="TemplateStep.step_order",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "isDefault": self.is_default,
            "createdAt": iso(self.created_at),
            "steps": [st.to_dict() for st in self.steps],
        }


class TemplateStep(Base):
    __tablename__ = "workflow_template_steps"
    __table_args__ = (
        UniqueConstraint("template_id", "step_order", name="uq_template_step_order"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    template_id: Mapped[int] = mapped_column(ForeignKey("workflow_templates.id", ondelete="CASCADE"), nullable=False)

    step_order: Mapped[int] = mapped_column(Integer, nullable=False)  # 1-based
    role: Mapped[str] = mapped_column(String(32), nullable=False)
    step_type: Mapped[str] = mapped_column(String(32), nullable=False)

    # Declarative policy only: runtime steps do not copy or enforce these.
    require_signature: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    sla_hours: Mapped[int | None] = mapped_column(Integer, nullable=True)

    template: Mapped[WorkflowTemplate] = relationship("WorkflowTemplate", back_populates="steps", lazy="selectin")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "stepOrder": self.step_order,
            "role": self.role,
            "stepType": self.step_type,
            "requireSignature": self.require_signature,
            "slaHours": self.sla_hours,
        }


class WorkflowRun(Base):
    __tablename__ = "workflow_runs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    document_id: Mapped[int] = mapped_column(ForeignKey("documents.id", ondelete="CASCADE"), nullable=False, index=True)
    template_id: Mapped[int | None] = mapped_column(
        ForeignKey("workflow_templates.id", ondelete="SET NULL"),
        nullable=True,
    )

    # PENDING -> IN_PROGRESS -> COMPLETED
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=WorkflowStatus.PENDING)
    current_step: Mapped[int | None] = mapped_column(Integer, nullable=True)  # order pointer

    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    # Optimistic lock; a concurrent completion of the same run fails its flush.
    row_version: Mapped[int] = mapped_column(Integer, nullable=False)

    steps: Mapped[list["WorkflowStep"]] = relationship(
        "WorkflowStep",
        back_populates="run",
        lazy="selectin",
        order_by="WorkflowStep.order",
    )
    template: Mapped[WorkflowTemplate | None] = relationship("WorkflowTemplate", lazy="selectin")

    __mapper_args__ = {"version_id_col": row_version}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "documentId": self.document_id,
            "templateId": self.template_id,
            "template": {"id": self.template.id, "name": self.template.name} if self.template else None,
            "status": self.status,
            "currentStep": self.current_step,
            "startedAt": iso(self.started_at),
            "completedAt": iso(self.completed_at),
            "steps": [st.to_dict() for st in self.steps],
        }


class WorkflowStep(Base):
    __tablename__ = "workflow_steps"
    __table_args__ = (
        UniqueConstraint("run_id", "step_order", name="uq_workflow_step_order"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    run_id: Mapped[int] = mapped_column(ForeignKey("workflow_runs.id", ondelete="CASCADE"), nullable=False, index=True)
    template_step_id: Mapped[int | None] = mapped_column(
        ForeignKey("workflow_template_steps.id", ondelete="SET NULL"),
        nullable=True,
    )

    order: Mapped[int] = mapped_column("step_order", Integer, nullable=False)
    role: Mapped[str] = mapped_column(String(32), nullable=False)
    step_type: Mapped[str] = mapped_column(String(32), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=WorkflowStatus.PENDING)

    assignee_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    # NULL until signed; this is what marks a step as still open for signing.
    document_version_id: Mapped[int | None] = mapped_column(
        ForeignKey("document_versions.id", ondelete="SET NULL"),
        nullable=True,
    )
    comments: Mapped[str | None] = mapped_column(Text, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    row_version: Mapped[int] = mapped_column(Integer, nullable=False)

    run: Mapped[WorkflowRun] = relationship("WorkflowRun", back_populates="steps", lazy="selectin")

    __mapper_args__ = {"version_id_col": row_version}

    @property
    def is_open(self) -> bool:
        return self.document_version_id is None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "runId": self.run_id,
            "order": self.order,
            "role": self.role,
            "stepType": self.step_type,
            "status": self.status,
            "assigneeId": self.assignee_user_id,
            "documentVersionId": self.document_version_id,
            "comments": self.comments,
            "completedAt": iso(self.completed_at),
        }
