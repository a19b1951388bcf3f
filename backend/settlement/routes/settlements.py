"""
Liquidación directa por operadores: un pedido o un lote del mismo cliente.
Cada request es una transacción: si algo falla no queda nada aplicado.
"""
from decimal import Decimal
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from settlement.core.database import get_db
from settlement.core.deps import get_current_user, get_tenant, require_settlement_operator
from settlement.core.roles import REMOTE_ROLES
from settlement.core.serialization_helpers import serialize_datetime, serialize_decimal, to_decimal
from settlement.models.enums import DiscountType
from settlement.models.settlement_record import SettlementRecord
from settlement.models.tenant import Tenant
from settlement.models.user import User
from settlement.routes.orders import get_order_or_404
from settlement.services.balance_calculator import DiscountSpec
from settlement.services.settlement_record_service import get_record, list_records
from settlement.services.settlement_service import load_orders, settle_batch, settle_order


router = APIRouter()


class PaymentLine(BaseModel):
    method: Optional[str] = None
    amount: Decimal = Decimal("0")


class DiscountLine(BaseModel):
    type: DiscountType = DiscountType.fixed
    value: Decimal = Field(Decimal("0"), ge=0)


class OrderSettlementRequest(BaseModel):
    payments: List[PaymentLine] = []
    credit_amount: Decimal = Decimal("0")
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[Decimal] = None
    return_amount: Optional[Decimal] = None
    return_note: Optional[str] = None
    allow_partial_credit: bool = False
    expected_version: Optional[int] = None
    attachments: List[str] = []
    note: Optional[str] = None


class BatchSettlementRequest(BaseModel):
    order_ids: List[int]
    payments: List[PaymentLine] = []
    discount_cascade: List[DiscountLine] = []
    return_amount: Decimal = Decimal("0")
    return_note: Optional[str] = None
    credit_amount: Decimal = Decimal("0")
    allocations: Optional[Dict[int, Decimal]] = None
    allow_partial_credit: bool = False
    expected_versions: Optional[Dict[int, int]] = None
    attachments: List[str] = []
    note: Optional[str] = None


class OutcomeOut(BaseModel):
    order_id: int
    order_number: Optional[str]
    balance_before: float
    payment_total: float
    credit_applied: float
    consumed_credit_numbers: List[int]
    credit_generated: float
    generated_credit_number: Optional[int]
    remaining_balance: float
    status: str


class SettlementRecordOut(BaseModel):
    id: int
    record_number: str
    kind: str
    customer_code: str
    customer_name: Optional[str]
    order_ids: List[int]
    payments: list
    attachments: List[str]
    allocations: list
    original_total: float
    discount_total: float
    return_total: float
    credit_applied: float
    credit_generated: float
    total_paid: float
    operator_email: Optional[str]
    pending_settlement_id: Optional[int]
    created_at: str


class SettlementResponse(BaseModel):
    record: SettlementRecordOut
    outcomes: List[OutcomeOut]


def serialize_record(record: SettlementRecord) -> dict:
    return {
        "id": record.id,
        "record_number": record.record_number,
        "kind": record.kind,
        "customer_code": record.customer_code,
        "customer_name": record.customer_name,
        "order_ids": record.order_ids or [],
        "payments": record.payments or [],
        "attachments": record.attachments or [],
        "allocations": record.allocations or [],
        "original_total": serialize_decimal(record.original_total),
        "discount_total": serialize_decimal(record.discount_total),
        "return_total": serialize_decimal(record.return_total),
        "credit_applied": serialize_decimal(record.credit_applied),
        "credit_generated": serialize_decimal(record.credit_generated),
        "total_paid": serialize_decimal(record.total_paid),
        "operator_email": record.operator_email,
        "pending_settlement_id": record.pending_settlement_id,
        "created_at": serialize_datetime(record.created_at),
    }


def serialize_outcome(outcome) -> dict:
    return {
        "order_id": outcome["order_id"],
        "order_number": outcome["order_number"],
        "balance_before": serialize_decimal(outcome["balance_before"]),
        "payment_total": serialize_decimal(outcome["payment_total"]),
        "credit_applied": serialize_decimal(outcome["credit_applied"]),
        "consumed_credit_numbers": outcome["consumed_credit_numbers"],
        "credit_generated": serialize_decimal(outcome["credit_generated"]),
        "generated_credit_number": outcome["generated_credit_number"],
        "remaining_balance": serialize_decimal(outcome["remaining_balance"]),
        "status": outcome["status"],
    }


def _require_return_note(return_amount, return_note: Optional[str]) -> None:
    if to_decimal(return_amount) > 0 and not (return_note or "").strip():
        raise HTTPException(status_code=400, detail="A return requires a note explaining it")


@router.post("/orders/{order_id}", response_model=SettlementResponse)
def settle_single_order(
    order_id: int,
    data: OrderSettlementRequest,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_tenant),
    user: User = Depends(require_settlement_operator),
):
    """Liquida un pedido: pagos, crédito a usar y overrides opcionales"""
    order = get_order_or_404(db, tenant.id, order_id)
    discount = None
    if data.discount_type is not None or data.discount_value is not None:
        discount = DiscountSpec.parse(data.discount_type, data.discount_value)
    if data.return_amount is not None:
        _require_return_note(data.return_amount, data.return_note or order.return_note)
        if data.return_note:
            order.return_note = data.return_note.strip()

    record, outcome = settle_order(
        db,
        order,
        [p.model_dump() for p in data.payments],
        user,
        credit_amount=data.credit_amount,
        discount=discount,
        return_amount=data.return_amount,
        allow_partial_credit=data.allow_partial_credit,
        expected_version=data.expected_version,
        attachments=data.attachments,
        note=data.note,
    )
    db.commit()
    db.refresh(record)
    return {"record": serialize_record(record), "outcomes": [serialize_outcome(outcome)]}


@router.post("/batch", response_model=SettlementResponse)
def settle_orders_batch(
    data: BatchSettlementRequest,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_tenant),
    user: User = Depends(require_settlement_operator),
):
    """Liquida varios pedidos del mismo cliente con un único desglose de pago"""
    _require_return_note(data.return_amount, data.return_note)
    orders = load_orders(db, tenant.id, data.order_ids)
    record, outcomes = settle_batch(
        db,
        tenant.id,
        orders,
        [p.model_dump() for p in data.payments],
        user,
        discount_cascade=[{"type": d.type.value, "value": d.value} for d in data.discount_cascade],
        return_amount=data.return_amount,
        credit_amount=data.credit_amount,
        allocations=data.allocations,
        attachments=data.attachments,
        allow_partial_credit=data.allow_partial_credit,
        expected_versions=data.expected_versions,
        note=data.note,
    )
    db.commit()
    db.refresh(record)
    return {"record": serialize_record(record), "outcomes": [serialize_outcome(o) for o in outcomes]}


@router.get("/records", response_model=List[SettlementRecordOut])
def get_records(
    customer_code: Optional[str] = Query(None),
    order_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_tenant),
    user: User = Depends(get_current_user),
):
    if user.role in {r.value for r in REMOTE_ROLES}:
        customer_code = user.customer_code
    return [serialize_record(r) for r in list_records(db, tenant.id, customer_code, order_id)]


@router.get("/records/{record_id}", response_model=SettlementRecordOut)
def get_record_detail(
    record_id: int,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_tenant),
    user: User = Depends(get_current_user),
):
    record = get_record(db, tenant.id, record_id)
    if not record:
        raise HTTPException(status_code=404, detail="Settlement record not found")
    if user.role in {r.value for r in REMOTE_ROLES} and record.customer_code != user.customer_code:
        raise HTTPException(status_code=404, detail="Settlement record not found")
    return serialize_record(record)
