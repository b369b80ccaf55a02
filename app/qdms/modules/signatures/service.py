"""
Electronic signature gate.

One submission, one unit of work:
1. re-verify the signer's password (rejections are audited in their own transaction)
2. resolve the target document version
3. persist the signature (append-only)
4. if bound to a workflow step: authorize, complete the step, advance the run,
   finalize the document when the run completes
5. audit SIGNATURE_CAPTURED

Nothing is committed here; on any failure the caller's transaction rolls back
and leaves no partial state.
"""
from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError
from werkzeug.security import check_password_hash, generate_password_hash

from app.qdms.audit import AuditEntry, AuditSink
from app.qdms.constants import AuditAction, EntityType, WorkflowStatus
from app.qdms.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    SignatureRejectedError,
    ValidationError,
)
from app.qdms.modules.document_control import repository as doc_repo
from app.qdms.modules.document_control.models import DocumentVersion
from app.qdms.modules.workflows import repository as wf_repo
from app.qdms.modules.workflows.service import set_step_status, user_can_sign_step

from . import repository as repo
from .models import ElectronicSignature
from .schemas import SignatureInput

if TYPE_CHECKING:
    from app.qdms.models import User
    from app.qdms.modules.document_control.service import DocumentLifecycle
    from app.qdms.modules.workflows.service import WorkflowOrchestrator

logger = logging.getLogger(__name__)


def binding_token(user_id: int, version_id: int, signed_at: datetime) -> str:
    """Attestation marker over signer, version and time. Not a content digest."""
    return generate_password_hash(f"{user_id}:{version_id}:{signed_at.isoformat()}")


class SignatureGate:
    def __init__(
        self,
        audit: AuditSink,
        workflows: WorkflowOrchestrator,
        lifecycle: DocumentLifecycle,
    ) -> None:
        self._audit = audit
        self._workflows = workflows
        self._lifecycle = lifecycle

    def apply_signature(self, s: Session, data: SignatureInput, user: User) -> ElectronicSignature:
        account = repo.get_signer(s, user.id)
        if account is None or not account.is_active or not check_password_hash(account.password_hash, data.password):
            self._reject(s, data, user)

        version = doc_repo.get_version(s, data.document_version_id)
        if version is None:
            raise NotFoundError("Document version", data.document_version_id)

        signed_at = datetime.utcnow()
        sig = ElectronicSignature(
            document_version_id=version.id,
            user_id=account.id,
            purpose=data.purpose,
            signature_hash=binding_token(account.id, version.id, signed_at),
            workflow_step_id=data.workflow_step_id,
            metadata_json=json.dumps({"comments": data.comments, "roles": account.role_keys}, sort_keys=True),
            signed_at=signed_at,
        )
        s.add(sig)

        run_id = None
        if data.workflow_step_id is not None:
            run_id = self._complete_step(s, data, version, account)

        self._audit.record(
            s,
            AuditEntry(
                actor=account,
                action=AuditAction.SIGNATURE_CAPTURED,
                entity_type=EntityType.DOCUMENT_VERSION,
                entity_id=version.id,
                document_id=version.document_id,
                document_version_id=version.id,
                workflow_run_id=run_id,
                metadata={"purpose": data.purpose, "comments": data.comments},
            ),
        )

        try:
            s.flush()
        except StaleDataError as e:
            logger.warning("Signature on step %s lost a concurrent completion race: %s", data.workflow_step_id, e)
            raise ConflictError(
                "This workflow step was completed by a concurrent submission. Re-enter your credentials and retry."
            ) from e

        logger.info(
            "Signature %s captured on version %s by user %s (purpose=%s step=%s)",
            sig.id,
            version.id,
            account.id,
            data.purpose,
            data.workflow_step_id,
        )
        return sig

    def _reject(self, s: Session, data: SignatureInput, user: User) -> None:
        """
        Audit a credential mismatch in a separate transaction so it survives the
        rollback of the submission, then raise.
        """
        entry = AuditEntry(
            actor=user,
            action=AuditAction.SIGNATURE_REJECTED,
            entity_type=EntityType.DOCUMENT_VERSION,
            entity_id=data.document_version_id,
            reason="invalid_credentials",
            metadata={"reason": "invalid_credentials", "purpose": data.purpose},
        )
        with Session(bind=s.get_bind(), expire_on_commit=False) as rs:
            with rs.begin():
                self._audit.record(rs, entry)
        logger.warning(
            "Electronic signature rejected for user %s on version %s (invalid credentials)",
            user.id,
            data.document_version_id,
        )
        raise SignatureRejectedError()

    def _complete_step(self, s: Session, data: SignatureInput, version: DocumentVersion, account: User) -> int:
        step = wf_repo.get_step(s, data.workflow_step_id)  # type: ignore[arg-type]
        if step is None:
            raise NotFoundError("Workflow step", data.workflow_step_id)

        run = wf_repo.load_run_with_steps(s, step.run_id, for_update=True)
        if run is None:
            raise NotFoundError("Workflow run", step.run_id)
        if run.document_id != version.document_id:
            raise ValidationError("Workflow step does not belong to this document.")

        # Authorization is checked first: an unauthorized signer gets 403 even on a
        # step that is already signed.
        if not user_can_sign_step(step, account):
            raise AuthorizationError("You are not authorized to sign this workflow step.")
        if step.status == WorkflowStatus.COMPLETED or not step.is_open:
            raise ConflictError("This workflow step has already been signed.")

        set_step_status(step, WorkflowStatus.COMPLETED)
        step.document_version_id = version.id
        step.comments = data.comments
        step.completed_at = datetime.utcnow()

        if self._workflows.advance(s, run, step):
            d = self._lifecycle.finalize(s, run.document_id, data.purpose)
            self._audit.record(
                s,
                AuditEntry(
                    actor=account,
                    action=AuditAction.WORKFLOW_COMPLETED,
                    entity_type=EntityType.WORKFLOW_RUN,
                    entity_id=run.id,
                    document_id=run.document_id,
                    document_version_id=version.id,
                    workflow_run_id=run.id,
                    metadata={"documentStatus": d.status, "lifecycleState": d.lifecycle_state},
                ),
            )
        return run.id
