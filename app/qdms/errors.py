"""
Exception hierarchy for the document control engine.

Components raise these; the blueprint error handler registered in
`create_app()` maps them to a JSON body with a single human-readable
`error` string and the status code carried by the class.

Usage:
    from app.qdms.errors import NotFoundError, ValidationError

    raise NotFoundError("Document", doc_id)
    raise ValidationError("title is required", details={"title": "required"})
"""

from __future__ import annotations


class DomainError(Exception):
    status_code: int = 400

    def to_payload(self) -> dict:
        return {"error": str(self)}


class ValidationError(DomainError):
    """Input failed schema or business-rule validation. Caller may resubmit corrected input.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown; keys are field names.
    """

    status_code = 422

    def __init__(self, message: str, details: dict[str, str] | None = None) -> None:
        self.details = details or {}
        super().__init__(message)

    def to_payload(self) -> dict:
        payload = super().to_payload()
        if self.details:
            payload["details"] = self.details
        return payload


class NotFoundError(DomainError):
    """A referenced document, version, template, step or type does not exist."""

    status_code = 404

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource} not found"
        if resource_id is not None:
            msg = f"{resource} {resource_id} not found"
        super().__init__(msg)


class AuthorizationError(DomainError):
    """Signer is neither the step's assignee nor a holder of the step's role."""

    status_code = 403


class SignatureRejectedError(DomainError):
    """Credential re-verification failed. Always audited before it is raised.

    Callers must re-prompt for credentials rather than retry.
    """

    status_code = 401

    def __init__(self, message: str = "Electronic signature rejected. Invalid password.") -> None:
        super().__init__(message)


class ConflictError(DomainError):
    """Duplicate unique value, or a concurrent completion of the same step/run won the race.

    For races the caller should restart the whole submission from credential entry.
    """

    status_code = 409
