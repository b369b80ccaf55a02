"""
Central constants for the QDMS application.

Enumerations are stored as plain strings in the database; each class exposes
its members as attributes plus an `ALL` frozenset used for validation.
"""
from __future__ import annotations


class Roles:
    ADMIN = "ADMIN"
    QA_MANAGER = "QA_MANAGER"
    QA = "QA"
    DOCUMENT_CONTROLLER = "DOCUMENT_CONTROLLER"
    AUTHOR = "AUTHOR"
    REVIEWER = "REVIEWER"
    APPROVER = "APPROVER"
    VIEWER = "VIEWER"

    ALL = frozenset({ADMIN, QA_MANAGER, QA, DOCUMENT_CONTROLLER, AUTHOR, REVIEWER, APPROVER, VIEWER})


class DocumentCategory:
    QUALITY = "QUALITY"
    OPERATIONS = "OPERATIONS"
    REGULATORY = "REGULATORY"
    VALIDATION = "VALIDATION"
    MANUFACTURING = "MANUFACTURING"
    LAB = "LAB"
    SAFETY = "SAFETY"
    TRAINING = "TRAINING"
    SUPPLIER = "SUPPLIER"
    OTHER = "OTHER"

    ALL = frozenset(
        {QUALITY, OPERATIONS, REGULATORY, VALIDATION, MANUFACTURING, LAB, SAFETY, TRAINING, SUPPLIER, OTHER}
    )


class DocumentSecurity:
    CONFIDENTIAL = "CONFIDENTIAL"
    INTERNAL = "INTERNAL"
    RESTRICTED = "RESTRICTED"
    PUBLIC = "PUBLIC"

    ALL = frozenset({CONFIDENTIAL, INTERNAL, RESTRICTED, PUBLIC})


class DocumentStatus:
    DRAFT = "DRAFT"
    IN_REVIEW = "IN_REVIEW"
    APPROVED = "APPROVED"
    EFFECTIVE = "EFFECTIVE"
    RETIRED = "RETIRED"
    ARCHIVED = "ARCHIVED"

    ALL = frozenset({DRAFT, IN_REVIEW, APPROVED, EFFECTIVE, RETIRED, ARCHIVED})


class LifecycleState:
    DRAFT = "DRAFT"
    IN_REVIEW = "IN_REVIEW"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    EFFECTIVE = "EFFECTIVE"
    UNDER_REVISION = "UNDER_REVISION"
    OBSOLETE = "OBSOLETE"

    ALL = frozenset({DRAFT, IN_REVIEW, PENDING_APPROVAL, EFFECTIVE, UNDER_REVISION, OBSOLETE})


class WorkflowStepType:
    REVIEW = "REVIEW"
    APPROVAL = "APPROVAL"
    NOTIFICATION = "NOTIFICATION"

    ALL = frozenset({REVIEW, APPROVAL, NOTIFICATION})


class WorkflowStatus:
    """Shared by runs and steps. Steps only ever move forward: PENDING -> IN_PROGRESS -> COMPLETED."""

    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"

    ALL = frozenset({PENDING, IN_PROGRESS, COMPLETED})


class SignaturePurpose:
    AUTHORSHIP = "AUTHORSHIP"
    REVIEW = "REVIEW"
    APPROVAL = "APPROVAL"
    EFFECTIVITY = "EFFECTIVITY"
    ACKNOWLEDGEMENT = "ACKNOWLEDGEMENT"

    ALL = frozenset({AUTHORSHIP, REVIEW, APPROVAL, EFFECTIVITY, ACKNOWLEDGEMENT})


# Audit action taxonomy
class AuditAction:
    DOCUMENT_CREATED = "DOCUMENT_CREATED"
    DOCUMENT_VERSION_CREATED = "DOCUMENT_VERSION_CREATED"
    DOCUMENT_UPDATED = "DOCUMENT_UPDATED"
    SIGNATURE_CAPTURED = "SIGNATURE_CAPTURED"
    SIGNATURE_REJECTED = "SIGNATURE_REJECTED"
    WORKFLOW_COMPLETED = "WORKFLOW_COMPLETED"
    WORKFLOW_TEMPLATE_CREATED = "WORKFLOW_TEMPLATE_CREATED"
    USER_LOGIN = "USER_LOGIN"
    USER_LOGIN_FAILED = "USER_LOGIN_FAILED"
    USER_LOGOUT = "USER_LOGOUT"


class EntityType:
    DOCUMENT = "DOCUMENT"
    DOCUMENT_VERSION = "DOCUMENT_VERSION"
    WORKFLOW_RUN = "WORKFLOW_RUN"
    CONFIG = "CONFIG"
    USER = "USER"


# Recent audit events embedded in the document aggregate
DOCUMENT_AUDIT_TAIL = 50
