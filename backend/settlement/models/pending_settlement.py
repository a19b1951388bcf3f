from sqlalchemy import Column, Integer, String, Numeric, DateTime, ForeignKey, Text

from settlement.models.tenant import Base, JSONType, utcnow


class PendingSettlement(Base):
    """Solicitud de liquidación remota (representante o cliente) en espera de un admin"""

    __tablename__ = "pending_settlements"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    request_number = Column(Integer, nullable=False, index=True)

    customer_code = Column(String(50), nullable=False, index=True)
    customer_name = Column(String(255), nullable=True)
    order_ids = Column(JSONType, nullable=False, default=list)

    original_total = Column(Numeric(10, 2), nullable=False, default=0)
    # [{"type": "fixed" | "percentage", "value": "10.00"}, ...] aplicados en orden
    discount_cascade = Column(JSONType, nullable=False, default=list)
    return_amount = Column(Numeric(10, 2), nullable=False, default=0)
    return_note = Column(String(500), nullable=True)
    attachments = Column(JSONType, nullable=False, default=list)
    payments = Column(JSONType, nullable=False, default=list)
    credit_amount = Column(Numeric(10, 2), nullable=False, default=0)
    proposed_total_paid = Column(Numeric(10, 2), nullable=False, default=0)
    # Reparto explícito {order_id: monto}; vacío = prorrateo por saldo
    allocations = Column(JSONType, nullable=True)

    status = Column(String(20), nullable=False, default="pending", index=True)
    submitter_type = Column(String(30), nullable=False)
    submitted_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    note = Column(Text, nullable=True)

    rejection_reason = Column(String(1000), nullable=True)
    reviewed_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    settlement_record_id = Column(Integer, ForeignKey("settlement_records.id"), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=utcnow)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}
