from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from app.qdms.constants import SignaturePurpose
from app.qdms.validation import choice_field, int_field, raise_if_errors, require_mapping, text_field

MIN_PASSWORD_LENGTH = 8


@dataclass(frozen=True)
class SignatureInput:
    document_version_id: int
    purpose: str
    password: str = field(repr=False)
    workflow_step_id: int | None = None
    comments: str | None = None


def parse_signature(payload: Any, *, document_version_id: int | None = None) -> SignatureInput:
    """`document_version_id` from the URL wins over the body."""
    data = dict(require_mapping(payload))
    if document_version_id is not None:
        data["documentVersionId"] = document_version_id
    errors: dict[str, str] = {}
    version_id = int_field(data, "documentVersionId", errors, required=True, min_value=1)
    step_id = int_field(data, "workflowStepId", errors, min_value=1)
    purpose = choice_field(data, "purpose", SignaturePurpose.ALL, errors, required=True)
    comments = text_field(data, "comments", errors, max_len=2000)

    password = data.get("password")
    if not isinstance(password, str) or not password:
        errors["password"] = "required"
    elif len(password) < MIN_PASSWORD_LENGTH:
        errors["password"] = f"must be at least {MIN_PASSWORD_LENGTH} characters"
    raise_if_errors(errors)

    return SignatureInput(
        document_version_id=version_id,  # type: ignore[arg-type]
        purpose=purpose,  # type: ignore[arg-type]
        password=password,  # type: ignore[arg-type]
        workflow_step_id=step_id,
        comments=comments,
    )
