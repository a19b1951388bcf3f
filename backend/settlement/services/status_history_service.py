from typing import Optional

from sqlalchemy.orm import Session

from settlement.models.status_history import StatusHistory
from settlement.models.user import User


def create_status_history(
    db: Session,
    tenant_id: int,
    entity_type: str,
    entity_id: int,
    old_status: Optional[str],
    new_status: str,
    user: Optional[User] = None,
    notes: Optional[str] = None
) -> StatusHistory:
    """Helper function to create a status history entry (no commit)"""
    history = StatusHistory(
        tenant_id=tenant_id,
        entity_type=entity_type,
        entity_id=entity_id,
        old_status=old_status,
        new_status=new_status,
        user_id=user.id if user is not None else None,
        user_email=user.email if user is not None else None,
        notes=notes[:500] if notes else None
    )
    db.add(history)
    return history
