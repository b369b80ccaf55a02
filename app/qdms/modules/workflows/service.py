"""
Workflow orchestration service.

- Templates are created once and never mutated; a run copies the template's
  step shape (order, role, step_type) at instantiation.
- Step status is monotonic: PENDING -> IN_PROGRESS -> COMPLETED.
- A run completes only when every one of its steps is COMPLETED.
- Signing eligibility is role/assignee matching on any open step, not strict
  order gating: a later step may be signed before an earlier PENDING one.
- require_signature / sla_hours on template steps are declarative only; runs
  do not copy or enforce them.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified

from app.qdms.audit import AuditEntry, AuditSink
from app.qdms.constants import AuditAction, EntityType, WorkflowStatus
from app.qdms.errors import ConflictError, NotFoundError

from . import repository as repo
from .models import TemplateStep, WorkflowRun, WorkflowStep, WorkflowTemplate
from .schemas import CreateTemplateInput

if TYPE_CHECKING:
    from app.qdms.models import User

logger = logging.getLogger(__name__)

_STEP_RANK = {
    WorkflowStatus.PENDING: 0,
    WorkflowStatus.IN_PROGRESS: 1,
    WorkflowStatus.COMPLETED: 2,
}


def set_step_status(step: WorkflowStep, new_status: str) -> None:
    """Forward-only status change; a regression means another writer got there first."""
    if _STEP_RANK[new_status] < _STEP_RANK[step.status]:
        raise ConflictError(f"Workflow step {step.id} cannot move from {step.status} to {new_status}.")
    step.status = new_status


def user_can_sign_step(step: WorkflowStep, user: User) -> bool:
    if step.assignee_user_id is not None and step.assignee_user_id == user.id:
        return True
    return step.role in user.role_keys


class WorkflowOrchestrator:
    def __init__(self, audit: AuditSink) -> None:
        self._audit = audit

    # Templates

    def create_template(self, s: Session, data: CreateTemplateInput, user: User) -> WorkflowTemplate:
        t = WorkflowTemplate(
            name=data.name,
            description=data.description,
            category=data.category,
            is_default=data.is_default,
        )
        for st in data.steps:
            t.steps.append(
                TemplateStep(
                    step_order=st.step_order,
                    role=st.role,
                    step_type=st.step_type,
                    require_signature=st.require_signature,
                    sla_hours=st.sla_hours,
                )
            )
        s.add(t)
        s.flush()

        if t.is_default:
            repo.clear_default_templates(s, category=t.category, keep_template_id=t.id)

        self._audit.record(
            s,
            AuditEntry(
                actor=user,
                action=AuditAction.WORKFLOW_TEMPLATE_CREATED,
                entity_type=EntityType.CONFIG,
                entity_id=t.id,
                metadata={"steps": len(t.steps), "category": t.category},
            ),
        )
        logger.info("Workflow template %r created (id=%s steps=%s)", t.name, t.id, len(t.steps))
        return t

    def list_templates(self, s: Session) -> list[WorkflowTemplate]:
        return repo.list_templates(s)

    # Runs

    def instantiate_run(self, s: Session, document_id: int, template_id: int) -> WorkflowRun:
        template = repo.load_template_with_steps(s, template_id)
        if template is None:
            raise NotFoundError("Workflow template", template_id)

        ordered = sorted(template.steps, key=lambda st: st.step_order)
        run = WorkflowRun(
            document_id=document_id,
            template_id=template.id,
            status=WorkflowStatus.PENDING,
            current_step=ordered[0].step_order if ordered else None,
        )
        s.add(run)
        s.flush()
        for st in ordered:
            s.add(
                WorkflowStep(
                    run_id=run.id,
                    template_step_id=st.id,
                    order=st.step_order,
                    role=st.role,
                    step_type=st.step_type,
                    status=WorkflowStatus.PENDING,
                    assignee_user_id=None,
                    document_version_id=None,
                )
            )
        s.flush()
        logger.info("Workflow run %s started for document %s from template %s", run.id, document_id, template.id)
        return run

    def advance(self, s: Session, run: WorkflowRun, completed_step: WorkflowStep) -> bool:
        """
        Progress `run` after `completed_step` was marked COMPLETED.

        Expects the aggregate from repository.load_run_with_steps(for_update=True).
        Returns True when this completion finished the run.
        """
        # Every completion rewrites the run row so its row_version check fires,
        # even when status and current_step are unchanged.
        flag_modified(run, "status")

        remaining = [st for st in run.steps if st.status != WorkflowStatus.COMPLETED]
        if not remaining:
            run.status = WorkflowStatus.COMPLETED
            run.completed_at = datetime.utcnow()
            logger.info("Workflow run %s completed by step %s", run.id, completed_step.order)
            return True

        pending = [st for st in remaining if st.status == WorkflowStatus.PENDING]
        run.status = WorkflowStatus.IN_PROGRESS
        if pending:
            nxt = min(pending, key=lambda st: st.order)
            set_step_status(nxt, WorkflowStatus.IN_PROGRESS)
            run.current_step = nxt.order
        logger.info(
            "Workflow run %s advanced after step %s (current_step=%s, open=%s)",
            run.id,
            completed_step.order,
            run.current_step,
            len(remaining),
        )
        return False

    def eligible_steps(self, run: WorkflowRun, user: User) -> list[WorkflowStep]:
        """Open steps the user may sign, by role or assignment. Order is not enforced."""
        return [st for st in run.steps if st.is_open and user_can_sign_step(st, user)]
