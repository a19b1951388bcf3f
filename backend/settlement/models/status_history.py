from sqlalchemy import Column, Integer, String, DateTime, ForeignKey

from settlement.models.tenant import Base, utcnow


class StatusHistory(Base):
    __tablename__ = "status_history"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)

    # "order" o "pending_settlement"
    entity_type = Column(String(30), nullable=False)
    entity_id = Column(Integer, nullable=False, index=True)

    old_status = Column(String(50), nullable=True)  # null para creación
    new_status = Column(String(50), nullable=False)

    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    user_email = Column(String(255), nullable=True)  # por si el usuario se elimina

    notes = Column(String(500), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
