from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.qdms.models import User
from app.qdms.modules.signatures.models import ElectronicSignature


def get_signer(s: Session, user_id: int) -> User | None:
    return s.get(User, user_id)


def signatures_for_version(s: Session, version_id: int) -> list[ElectronicSignature]:
    stmt = (
        select(ElectronicSignature)
        .where(ElectronicSignature.document_version_id == version_id)
        .order_by(ElectronicSignature.signed_at.asc(), ElectronicSignature.id.asc())
    )
    return list(s.scalars(stmt))
