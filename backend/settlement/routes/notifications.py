from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from settlement.core.database import get_db
from settlement.core.deps import get_current_user, get_tenant
from settlement.core.serialization_helpers import serialize_datetime
from settlement.models.tenant import Tenant
from settlement.models.user import User
from settlement.services.notification_service import list_notifications, mark_read


router = APIRouter()


class NotificationOut(BaseModel):
    id: int
    kind: str
    title: str
    message: str
    entity_type: Optional[str]
    entity_id: Optional[int]
    read: bool
    created_at: str


def _serialize(n) -> dict:
    return {
        "id": n.id,
        "kind": n.kind,
        "title": n.title,
        "message": n.message,
        "entity_type": n.entity_type,
        "entity_id": n.entity_id,
        "read": n.read,
        "created_at": serialize_datetime(n.created_at),
    }


@router.get("/", response_model=List[NotificationOut])
def get_notifications(
    unread_only: bool = Query(False),
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_tenant),
    user: User = Depends(get_current_user),
):
    return [_serialize(n) for n in list_notifications(db, user, unread_only)]


@router.patch("/{notification_id}/read", response_model=NotificationOut)
def read_notification(
    notification_id: int,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_tenant),
    user: User = Depends(get_current_user),
):
    notification = mark_read(db, user, notification_id)
    if not notification:
        raise HTTPException(status_code=404, detail="Notification not found")
    db.commit()
    db.refresh(notification)
    return _serialize(notification)
