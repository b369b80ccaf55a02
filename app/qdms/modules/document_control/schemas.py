from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from app.qdms.constants import DocumentCategory, DocumentSecurity, DocumentStatus, LifecycleState, Roles
from app.qdms.validation import (
    choice_field,
    datetime_field,
    int_field,
    raise_if_errors,
    require_mapping,
    text_field,
)


@dataclass(frozen=True)
class VersionInput:
    version_label: str
    issuer_role: str
    issue_date: datetime | None = None
    issued_by_id: int | None = None
    effective_from: datetime | None = None
    next_issue_date: datetime | None = None
    summary: str | None = None
    change_note: str | None = None
    content: str | None = None


@dataclass(frozen=True)
class CreateDocumentInput:
    title: str
    doc_number: str
    category: str
    security: str
    type_id: int
    version: VersionInput
    workflow_template_id: int | None = None


@dataclass(frozen=True)
class DocumentPatch:
    """Only keys present in the request are applied."""

    values: dict[str, Any]

    def to_metadata(self) -> dict[str, Any]:
        return {k: (v.isoformat() if isinstance(v, datetime) else v) for k, v in self.values.items()}


def _version_fields(data: dict[str, Any], errors: dict[str, str]) -> VersionInput | None:
    version_label = text_field(data, "versionLabel", errors, required=True, min_len=1, max_len=32)
    issuer_role = choice_field(data, "issuerRole", Roles.ALL, errors, required=True)
    issued_by_id = int_field(data, "issuedById", errors, min_value=1)
    issue_date = datetime_field(data, "issueDate", errors)
    effective_from = datetime_field(data, "effectiveFrom", errors)
    next_issue_date = datetime_field(data, "nextIssueDate", errors)
    summary = text_field(data, "summary", errors, max_len=1024)
    change_note = text_field(data, "changeNote", errors, max_len=1024)
    content = data.get("content")
    if content is not None and not isinstance(content, str):
        errors["content"] = "must be a string"
        content = None
    if version_label is None or issuer_role is None:
        return None
    return VersionInput(
        version_label=version_label,
        issuer_role=issuer_role,
        issue_date=issue_date,
        issued_by_id=issued_by_id,
        effective_from=effective_from,
        next_issue_date=next_issue_date,
        summary=summary,
        change_note=change_note,
        content=content,
    )


def parse_create_document(payload: Any) -> CreateDocumentInput:
    data = require_mapping(payload)
    errors: dict[str, str] = {}
    title = text_field(data, "title", errors, required=True, min_len=3, max_len=255)
    doc_number = text_field(data, "documentNumber", errors, required=True, min_len=3, max_len=64)
    category = choice_field(data, "documentCategory", DocumentCategory.ALL, errors, required=True)
    security = choice_field(data, "documentSecurity", DocumentSecurity.ALL, errors, required=True)
    type_id = int_field(data, "typeId", errors, required=True, min_value=1)
    template_id = int_field(data, "workflowTemplateId", errors, min_value=1)
    version = _version_fields(data, errors)
    raise_if_errors(errors)
    return CreateDocumentInput(
        title=title,  # type: ignore[arg-type]
        doc_number=doc_number,  # type: ignore[arg-type]
        category=category,  # type: ignore[arg-type]
        security=security,  # type: ignore[arg-type]
        type_id=type_id,  # type: ignore[arg-type]
        version=version,  # type: ignore[arg-type]
        workflow_template_id=template_id,
    )


def parse_create_version(payload: Any) -> VersionInput:
    data = require_mapping(payload)
    errors: dict[str, str] = {}
    version = _version_fields(data, errors)
    raise_if_errors(errors)
    return version  # type: ignore[return-value]


_PATCH_FIELDS = {
    "documentCategory": "category",
    "documentSecurity": "security",
    "status": "status",
    "lifecycleState": "lifecycle_state",
    "effectiveFrom": "effective_from",
    "nextIssueDate": "next_issue_date",
}


def parse_document_patch(payload: Any) -> DocumentPatch:
    data = require_mapping(payload)
    errors: dict[str, str] = {}
    values: dict[str, Any] = {}

    choices = {
        "documentCategory": DocumentCategory.ALL,
        "documentSecurity": DocumentSecurity.ALL,
        "status": DocumentStatus.ALL,
        "lifecycleState": LifecycleState.ALL,
    }
    for key, allowed in choices.items():
        if key in data:
            v = choice_field(data, key, allowed, errors)
            if v is not None:
                values[_PATCH_FIELDS[key]] = v
    for key in ("effectiveFrom", "nextIssueDate"):
        if key in data:
            v = datetime_field(data, key, errors)
            if v is not None:
                values[_PATCH_FIELDS[key]] = v

    unknown = sorted(set(data) - set(_PATCH_FIELDS))
    for key in unknown:
        errors[key] = "is not an updatable field"
    raise_if_errors(errors)
    return DocumentPatch(values=values)
