"""
Named queries for workflow templates and runs.
"""
from __future__ import annotations

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from app.qdms.modules.workflows.models import WorkflowRun, WorkflowStep, WorkflowTemplate


def load_template_with_steps(s: Session, template_id: int) -> WorkflowTemplate | None:
    # steps relationship is selectin-loaded and ordered by step_order
    return s.get(WorkflowTemplate, template_id)


def list_templates(s: Session) -> list[WorkflowTemplate]:
    stmt = select(WorkflowTemplate).order_by(WorkflowTemplate.created_at.desc(), WorkflowTemplate.id.desc())
    return list(s.scalars(stmt))


def clear_default_templates(s: Session, *, category: str | None, keep_template_id: int) -> None:
    cond = WorkflowTemplate.category.is_(None) if category is None else WorkflowTemplate.category == category
    stmt = (
        update(WorkflowTemplate)
        .where(WorkflowTemplate.id != keep_template_id, cond)
        .values(is_default=False)
        .execution_options(synchronize_session="fetch")
    )
    s.execute(stmt)


def get_step(s: Session, step_id: int) -> WorkflowStep | None:
    return s.get(WorkflowStep, step_id)


def load_run_with_steps(s: Session, run_id: int, *, for_update: bool = False) -> WorkflowRun | None:
    """
    Run plus all sibling steps ordered by `order`.

    With for_update=True the run row and its step rows are locked (SELECT ... FOR UPDATE)
    and refreshed from the database, so step-completion decisions on one run serialize.
    """
    stmt = select(WorkflowRun).where(WorkflowRun.id == run_id)
    if for_update:
        stmt = stmt.with_for_update().execution_options(populate_existing=True)
    run = s.scalars(stmt).one_or_none()
    if run is None:
        return None
    if for_update:
        step_stmt = (
            select(WorkflowStep)
            .where(WorkflowStep.run_id == run_id)
            .order_by(WorkflowStep.order)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        list(s.scalars(step_stmt))
    return run


def runs_for_document(s: Session, document_id: int) -> list[WorkflowRun]:
    stmt = (
        select(WorkflowRun)
        .where(WorkflowRun.document_id == document_id)
        .order_by(WorkflowRun.started_at.desc(), WorkflowRun.id.desc())
    )
    return list(s.scalars(stmt))
