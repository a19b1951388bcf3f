from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session
from typing import List, Optional

from settlement.core.database import get_db
from settlement.core.deps import get_tenant, get_current_user
from settlement.models.tenant import Tenant
from settlement.models.user import User
from settlement.models.status_history import StatusHistory

router = APIRouter()

ENTITY_TYPES = ["order", "pending_settlement"]


class StatusHistoryResponse(BaseModel):
    id: int
    entity_type: str
    entity_id: int
    old_status: Optional[str]
    new_status: str
    user_email: Optional[str]
    notes: Optional[str]
    created_at: str


@router.get("/{entity_type}/{entity_id}", response_model=List[StatusHistoryResponse])
def get_status_history(
    entity_type: str,
    entity_id: int,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_tenant),
    current_user: User = Depends(get_current_user)
):
    """Get status history for an order or a pending settlement"""
    if entity_type not in ENTITY_TYPES:
        raise HTTPException(status_code=400, detail="Invalid entity type")

    history = db.query(StatusHistory).filter(
        StatusHistory.tenant_id == tenant.id,
        StatusHistory.entity_type == entity_type,
        StatusHistory.entity_id == entity_id
    ).order_by(StatusHistory.created_at.desc(), StatusHistory.id.desc()).all()

    return [
        {
            "id": h.id,
            "entity_type": h.entity_type,
            "entity_id": h.entity_id,
            "old_status": h.old_status,
            "new_status": h.new_status,
            "user_email": h.user_email,
            "notes": h.notes,
            "created_at": h.created_at.isoformat()
        }
        for h in history
    ]
