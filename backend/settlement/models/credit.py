from sqlalchemy import Column, Integer, String, Numeric, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import validates

from settlement.core.errors import CreditImmutable
from settlement.models.tenant import Base, utcnow


class Credit(Base):
    """Saldo a favor del cliente, generado por pago a mayor o manualmente"""

    __tablename__ = "credits"
    __table_args__ = (
        UniqueConstraint("tenant_id", "credit_number", name="uq_credits_tenant_number"),
    )

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    credit_number = Column(Integer, nullable=False, index=True)

    customer_code = Column(String(50), nullable=False, index=True)
    customer_name = Column(String(255), nullable=True)

    amount = Column(Numeric(10, 2), nullable=False)
    origin = Column(String(500), nullable=False)
    justification = Column(String(1000), nullable=True)
    # "automatic" (pago a mayor) o "manual"
    generation_type = Column(String(20), nullable=False, default="automatic")

    status = Column(String(20), nullable=False, default="available", index=True)
    source_order_id = Column(Integer, ForeignKey("orders.id", ondelete="SET NULL"), nullable=True, index=True)
    consuming_order_id = Column(Integer, ForeignKey("orders.id", ondelete="SET NULL"), nullable=True, index=True)
    consumed_at = Column(DateTime(timezone=True), nullable=True)
    # Resto de un crédito parcialmente consumido
    split_from_id = Column(Integer, ForeignKey("credits.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    @validates("amount", "consuming_order_id", "consumed_at", "status")
    def _freeze_when_used(self, key, value):
        if self.status == "used" and getattr(self, key) != value:
            raise CreditImmutable(
                f"Credit #{self.credit_number} is already used; {key} cannot change"
            )
        return value
