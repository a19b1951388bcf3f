from sqlalchemy import Column, Integer, String, Numeric, DateTime, ForeignKey, event

from settlement.core.errors import SettlementRecordImmutable
from settlement.models.tenant import Base, JSONType, utcnow


class SettlementRecord(Base):
    """Borderô: recibo inmutable de una liquidación directa o aprobada"""

    __tablename__ = "settlement_records"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    record_number = Column(String(50), nullable=False, index=True)
    kind = Column(String(20), nullable=False)  # direct | approved

    customer_code = Column(String(50), nullable=False, index=True)
    customer_name = Column(String(255), nullable=True)
    order_ids = Column(JSONType, nullable=False, default=list)
    payments = Column(JSONType, nullable=False, default=list)
    attachments = Column(JSONType, nullable=False, default=list)
    # Desglose por pedido: pagos, crédito, descuento, saldo resultante
    allocations = Column(JSONType, nullable=False, default=list)

    original_total = Column(Numeric(10, 2), nullable=False, default=0)
    discount_total = Column(Numeric(10, 2), nullable=False, default=0)
    return_total = Column(Numeric(10, 2), nullable=False, default=0)
    credit_applied = Column(Numeric(10, 2), nullable=False, default=0)
    credit_generated = Column(Numeric(10, 2), nullable=False, default=0)
    total_paid = Column(Numeric(10, 2), nullable=False, default=0)

    operator_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    operator_email = Column(String(255), nullable=True)
    pending_settlement_id = Column(Integer, nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)


@event.listens_for(SettlementRecord, "before_update")
def _refuse_update(mapper, connection, target):
    raise SettlementRecordImmutable(
        f"Settlement record {target.record_number} is immutable"
    )
