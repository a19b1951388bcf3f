"""
Borderôs: recibos inmutables de liquidaciones directas o aprobadas.
"""
from decimal import Decimal
from typing import List, Optional, Sequence

from sqlalchemy.orm import Session

from settlement.core.folio_service import generate_folio
from settlement.core.serialization_helpers import money, serialize_payments
from settlement.models.enums import RecordKind
from settlement.models.order import SettlementHistory
from settlement.models.settlement_record import SettlementRecord
from settlement.models.user import User


def _allocation_entry(outcome, discount_share, return_share) -> dict:
    return {
        "order_id": outcome["order_id"],
        "order_number": outcome["order_number"],
        "payments": serialize_payments(outcome["payments"]),
        "payment_total": str(outcome["payment_total"]),
        "credit_applied": str(outcome["credit_applied"]),
        "credit_generated": str(outcome["credit_generated"]),
        "discount_share": str(discount_share),
        "return_share": str(return_share),
        "remaining_balance": str(outcome["remaining_balance"]),
        "status": outcome["status"],
    }


def create_record(
    db: Session,
    tenant_id: int,
    kind: RecordKind,
    customer_code: str,
    customer_name: Optional[str],
    payments: Sequence[dict],
    outcomes: Sequence[dict],
    original_total: Decimal,
    discount_total: Decimal,
    return_total: Decimal,
    operator: Optional[User],
    attachments: Optional[Sequence[str]] = None,
    discount_shares: Optional[Sequence[Decimal]] = None,
    return_shares: Optional[Sequence[Decimal]] = None,
    pending_settlement_id: Optional[int] = None,
) -> SettlementRecord:
    """
    Inserta el borderô y enlaza las entradas de historial de cada pedido.
    Se crea una sola vez; cualquier UPDATE posterior es rechazado.
    """
    zero = Decimal("0.00")
    discount_shares = discount_shares or [zero] * len(outcomes)
    return_shares = return_shares or [zero] * len(outcomes)

    record = SettlementRecord(
        tenant_id=tenant_id,
        record_number=generate_folio(db, tenant_id, "BORDERO"),
        kind=kind.value,
        customer_code=customer_code,
        customer_name=customer_name,
        order_ids=[o["order_id"] for o in outcomes],
        payments=serialize_payments(payments),
        attachments=list(attachments or []),
        allocations=[
            _allocation_entry(o, d, r)
            for o, d, r in zip(outcomes, discount_shares, return_shares)
        ],
        original_total=money(original_total),
        discount_total=money(discount_total),
        return_total=money(return_total),
        credit_applied=money(sum((o["credit_applied"] for o in outcomes), zero)),
        credit_generated=money(sum((o["credit_generated"] for o in outcomes), zero)),
        total_paid=money(sum((o["payment_total"] for o in outcomes), zero)),
        operator_id=operator.id if operator is not None else None,
        operator_email=operator.email if operator is not None else None,
        pending_settlement_id=pending_settlement_id,
    )
    db.add(record)
    db.flush()

    history_ids = [o["history_id"] for o in outcomes]
    if history_ids:
        db.query(SettlementHistory).filter(
            SettlementHistory.id.in_(history_ids)
        ).update({SettlementHistory.settlement_record_id: record.id}, synchronize_session="fetch")
    return record


def get_record(db: Session, tenant_id: int, record_id: int) -> Optional[SettlementRecord]:
    return db.query(SettlementRecord).filter(
        SettlementRecord.id == record_id,
        SettlementRecord.tenant_id == tenant_id,
    ).first()


def list_records(
    db: Session,
    tenant_id: int,
    customer_code: Optional[str] = None,
    order_id: Optional[int] = None,
) -> List[SettlementRecord]:
    query = db.query(SettlementRecord).filter(SettlementRecord.tenant_id == tenant_id)
    if customer_code:
        query = query.filter(SettlementRecord.customer_code == customer_code)
    records = query.order_by(SettlementRecord.created_at.desc(), SettlementRecord.id.desc()).all()
    if order_id is not None:
        # order_ids es JSON; el filtro se hace en Python para que funcione igual en SQLite
        records = [r for r in records if order_id in (r.order_ids or [])]
    return records
