import sys
from pathlib import Path
import os

from werkzeug.security import generate_password_hash

# Ensure repo root is on sys.path when running as a script (Windows-friendly).
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.qdms.constants import DocumentCategory, Roles, WorkflowStepType
from app.qdms.models import DocumentType, Permission, Role, TemplateStep, User, WorkflowTemplate
from scripts._db_utils import script_session

ALL_ROLES = (
    Roles.ADMIN,
    Roles.QA_MANAGER,
    Roles.QA,
    Roles.DOCUMENT_CONTROLLER,
    Roles.AUTHOR,
    Roles.REVIEWER,
    Roles.APPROVER,
    Roles.VIEWER,
)
OVERSIGHT_ROLES = (Roles.ADMIN, Roles.QA_MANAGER, Roles.QA, Roles.DOCUMENT_CONTROLLER)

ROLE_NAMES = {
    Roles.ADMIN: "Administrator",
    Roles.QA_MANAGER: "QA Manager",
    Roles.QA: "Quality Assurance",
    Roles.DOCUMENT_CONTROLLER: "Document Controller",
    Roles.AUTHOR: "Author",
    Roles.REVIEWER: "Reviewer",
    Roles.APPROVER: "Approver",
    Roles.VIEWER: "Viewer",
}

# permission key -> (display name, roles granted)
PERMISSIONS = {
    "docs.view": ("Docs: view", ALL_ROLES),
    "docs.create": ("Docs: create", OVERSIGHT_ROLES + (Roles.AUTHOR,)),
    "docs.edit": ("Docs: administrative update", OVERSIGHT_ROLES),
    "docs.revise": ("Docs: create version", (Roles.ADMIN, Roles.QA_MANAGER, Roles.DOCUMENT_CONTROLLER, Roles.AUTHOR)),
    "docs.sign": ("Docs: electronic signature", ALL_ROLES),
    "workflows.view": ("Workflows: view templates", ALL_ROLES),
    "workflows.create": ("Workflows: create templates", (Roles.ADMIN, Roles.QA_MANAGER, Roles.DOCUMENT_CONTROLLER)),
    "audit.view": ("Audit log: view", OVERSIGHT_ROLES),
}

DOCUMENT_TYPES = (
    ("Manual", "High-level quality manual describing the management system."),
    ("Procedure", "Standard operating procedure for a controlled process."),
    ("Work Instruction", "Step-by-step instructions for a specific task."),
    ("Policy", "Statement of organisational intent and direction."),
    ("Template", "Blank controlled form or record template."),
    ("Checklist", "Verification checklist used during execution or review."),
)

DEFAULT_TEMPLATE_NAME = "Standard SOP approval"
DEFAULT_TEMPLATE_STEPS = (
    (1, Roles.AUTHOR, WorkflowStepType.REVIEW, 24),
    (2, Roles.QA, WorkflowStepType.REVIEW, 48),
    (3, Roles.QA_MANAGER, WorkflowStepType.APPROVAL, 24),
)


def seed_only(*, database_url: str | None = None) -> None:
    """
    Seed permissions/roles/document types/default workflow/admin user in an idempotent way.
    Does NOT overwrite an existing admin user's password.
    """
    admin_email = (os.environ.get("ADMIN_EMAIL") or "admin@qdms.local").strip().lower()
    admin_password = os.environ.get("ADMIN_PASSWORD") or "change-me"

    db_url = (database_url or os.environ.get("DATABASE_URL") or "sqlite:///qdms.db").strip()

    # Use direct engine/session so this can run in release without importing app.wsgi (avoids recursion).
    with script_session(db_url) as s:
        def ensure_perm(key: str, name: str) -> Permission:
            p = s.query(Permission).filter(Permission.key == key).one_or_none()
            if not p:
                p = Permission(key=key, name=name)
                s.add(p)
            return p

        def ensure_role(key: str) -> Role:
            r = s.query(Role).filter(Role.key == key).one_or_none()
            if not r:
                r = Role(key=key, name=ROLE_NAMES[key])
                s.add(r)
            return r

        roles = {key: ensure_role(key) for key in ALL_ROLES}
        for perm_key, (perm_name, granted) in PERMISSIONS.items():
            p = ensure_perm(perm_key, perm_name)
            for role_key in granted:
                if p not in roles[role_key].permissions:
                    roles[role_key].permissions.append(p)

        for type_name, description in DOCUMENT_TYPES:
            if not s.query(DocumentType).filter(DocumentType.type == type_name).one_or_none():
                s.add(DocumentType(type=type_name, description=description))

        if not s.query(WorkflowTemplate).filter(WorkflowTemplate.name == DEFAULT_TEMPLATE_NAME).one_or_none():
            s.add(
                WorkflowTemplate(
                    name=DEFAULT_TEMPLATE_NAME,
                    description="Author check, QA review, QA manager approval.",
                    category=DocumentCategory.QUALITY,
                    is_default=True,
                    steps=[
                        TemplateStep(step_order=order, role=role, step_type=step_type, require_signature=True, sla_hours=sla)
                        for order, role, step_type, sla in DEFAULT_TEMPLATE_STEPS
                    ],
                )
            )

        # User
        user = s.query(User).filter(User.email == admin_email).one_or_none()
        if not user:
            user = User(email=admin_email, name="Administrator", password_hash=generate_password_hash(admin_password), is_active=True)
            s.add(user)
        if roles[Roles.ADMIN] not in user.roles:
            user.roles.append(roles[Roles.ADMIN])

    print("Initialized database (seed_only).")
    print(f"Admin email: {admin_email}")
    print("Admin password: (from ADMIN_PASSWORD)")


def main() -> None:
    seed_only(database_url=None)


if __name__ == "__main__":
    main()
