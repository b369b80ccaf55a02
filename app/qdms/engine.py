from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from app.qdms.audit import AuditSink, SqlAuditSink
from app.qdms.modules.document_control.service import DocumentLifecycle
from app.qdms.modules.signatures.service import SignatureGate
from app.qdms.modules.workflows.service import WorkflowOrchestrator


@dataclass(frozen=True)
class Engine:
    audit: AuditSink
    lifecycle: DocumentLifecycle
    workflows: WorkflowOrchestrator
    signatures: SignatureGate


def build_engine(audit: AuditSink | None = None) -> Engine:
    sink = audit or SqlAuditSink()
    workflows = WorkflowOrchestrator(sink)
    lifecycle = DocumentLifecycle(sink, workflows)
    signatures = SignatureGate(sink, workflows, lifecycle)
    return Engine(audit=sink, lifecycle=lifecycle, workflows=workflows, signatures=signatures)


def current_engine() -> Engine:
    return current_app.extensions["qdms_engine"]
