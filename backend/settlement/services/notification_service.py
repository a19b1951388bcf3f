"""
Avisos internos para los administradores del tenant.
"""
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from settlement.core.roles import ADMIN_ROLES
from settlement.models.notification import Notification
from settlement.models.user import User


logger = logging.getLogger(__name__)


def notify_admins(
    db: Session,
    tenant_id: int,
    kind: str,
    title: str,
    message: str,
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
) -> List[Notification]:
    """Crea una notificación por cada owner/admin del tenant (sin commit)"""
    admins = db.query(User).filter(
        User.tenant_id == tenant_id,
        User.role.in_([r.value for r in ADMIN_ROLES]),
    ).all()
    created = []
    for admin in admins:
        notification = Notification(
            tenant_id=tenant_id,
            user_id=admin.id,
            kind=kind,
            title=title,
            message=message[:1000],
            entity_type=entity_type,
            entity_id=entity_id,
            read=False,
        )
        db.add(notification)
        created.append(notification)
    if not admins:
        logger.warning("no admins to notify tenant=%s kind=%s", tenant_id, kind)
    return created


def list_notifications(db: Session, user: User, unread_only: bool = False) -> List[Notification]:
    query = db.query(Notification).filter(
        Notification.tenant_id == user.tenant_id,
        Notification.user_id == user.id,
    )
    if unread_only:
        query = query.filter(Notification.read.is_(False))
    return query.order_by(Notification.created_at.desc(), Notification.id.desc()).all()


def mark_read(db: Session, user: User, notification_id: int) -> Optional[Notification]:
    notification = db.query(Notification).filter(
        Notification.id == notification_id,
        Notification.tenant_id == user.tenant_id,
        Notification.user_id == user.id,
    ).first()
    if notification is not None:
        notification.read = True
    return notification
