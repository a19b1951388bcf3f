from sqlalchemy import Boolean, Column, Integer, Numeric, ForeignKey, DateTime, String, Text
from sqlalchemy.orm import relationship

from settlement.models.tenant import Base, JSONType, utcnow


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    order_number = Column(String(50), nullable=True, index=True)

    customer_code = Column(String(50), nullable=False, index=True)
    customer_name = Column(String(255), nullable=True)

    gross_value = Column(Numeric(10, 2), nullable=False, default=0)
    discount_type = Column(String(20), nullable=False, default="fixed")
    discount_value = Column(Numeric(10, 2), nullable=False, default=0)
    return_amount = Column(Numeric(10, 2), nullable=False, default=0)
    return_note = Column(String(500), nullable=True)

    amount_paid = Column(Numeric(10, 2), nullable=False, default=0)
    remaining_balance = Column(Numeric(10, 2), nullable=False, default=0)
    status = Column(String(30), nullable=False, default="open", index=True)
    payment_date = Column(DateTime(timezone=True), nullable=True)
    commission_pct = Column(Numeric(5, 2), nullable=False, default=0)

    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=utcnow)
    version = Column(Integer, nullable=False)

    deposits = relationship(
        "Deposit",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="Deposit.id",
    )

    # Cada UPDATE incluye "WHERE version = :leida"; si otro proceso ya
    # escribió, el flush lanza StaleDataError
    __mapper_args__ = {"version_id_col": version}


class Deposit(Base):
    """Sinal: pago anticipado registrado contra un pedido aún no liquidado"""

    __tablename__ = "order_deposits"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    payment_method = Column(String(30), nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    proof_ref = Column(String(1000), nullable=True)
    consumed = Column(Boolean, nullable=False, default=False)
    consumed_at = Column(DateTime(timezone=True), nullable=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    order = relationship("Order", back_populates="deposits")


class SettlementHistory(Base):
    """Historial estructurado (append-only) de cada liquidación aplicada a un pedido"""

    __tablename__ = "settlement_history"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    settlement_record_id = Column(Integer, ForeignKey("settlement_records.id"), nullable=True, index=True)

    actor_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    actor_email = Column(String(255), nullable=True)

    payments = Column(JSONType, nullable=False, default=list)
    amount_paid = Column(Numeric(10, 2), nullable=False, default=0)
    credit_applied = Column(Numeric(10, 2), nullable=False, default=0)
    credit_generated = Column(Numeric(10, 2), nullable=False, default=0)
    credit_numbers = Column(JSONType, nullable=False, default=list)
    discount_amount = Column(Numeric(10, 2), nullable=False, default=0)
    return_amount = Column(Numeric(10, 2), nullable=False, default=0)

    balance_before = Column(Numeric(10, 2), nullable=False)
    balance_after = Column(Numeric(10, 2), nullable=False)
    status_before = Column(String(30), nullable=True)
    status_after = Column(String(30), nullable=False)

    note = Column(String(500), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
