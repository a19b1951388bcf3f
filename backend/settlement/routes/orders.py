"""
Rutas de pedidos: alta (intake mínimo), consulta con saldo y historial de
liquidaciones.
"""
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from settlement.core.database import get_db
from settlement.core.deps import get_current_user, get_tenant, require_settlement_operator
from settlement.core.folio_service import generate_folio
from settlement.core.roles import REMOTE_ROLES
from settlement.core.serialization_helpers import serialize_datetime, serialize_decimal, to_decimal
from settlement.models.enums import DiscountType, OrderStatus
from settlement.models.order import Order, SettlementHistory
from settlement.models.tenant import Tenant
from settlement.models.user import User
from settlement.services.balance_calculator import balance_for_order, derive_status
from settlement.services.customer_service import upsert_customer
from settlement.services.status_history_service import create_status_history


router = APIRouter()


class OrderCreate(BaseModel):
    customer_code: str
    customer_name: Optional[str] = None
    gross_value: Decimal = Field(..., ge=0)
    discount_type: DiscountType = DiscountType.fixed
    discount_value: Decimal = Field(Decimal("0"), ge=0)
    return_amount: Decimal = Field(Decimal("0"), ge=0)
    return_note: Optional[str] = None
    commission_pct: Decimal = Field(Decimal("0"), ge=0)
    awaiting_confirmation: bool = False
    notes: Optional[str] = None


class OrderOut(BaseModel):
    id: int
    order_number: Optional[str]
    customer_code: str
    customer_name: Optional[str]
    gross_value: float
    discount_type: str
    discount_value: float
    discount_amount: float
    return_amount: float
    return_note: Optional[str]
    total_deposits: float
    amount_paid: float
    remaining_balance: float
    status: str
    payment_date: Optional[str]
    commission_pct: float
    notes: Optional[str]
    version: int
    created_at: str


class SettlementHistoryOut(BaseModel):
    id: int
    settlement_record_id: Optional[int]
    actor_email: Optional[str]
    payments: list
    amount_paid: float
    credit_applied: float
    credit_generated: float
    credit_numbers: list
    discount_amount: float
    return_amount: float
    balance_before: float
    balance_after: float
    status_before: Optional[str]
    status_after: str
    note: Optional[str]
    created_at: str


def serialize_order(order: Order) -> dict:
    breakdown = balance_for_order(order)
    return {
        "id": order.id,
        "order_number": order.order_number,
        "customer_code": order.customer_code,
        "customer_name": order.customer_name,
        "gross_value": serialize_decimal(order.gross_value),
        "discount_type": order.discount_type,
        "discount_value": serialize_decimal(order.discount_value),
        "discount_amount": serialize_decimal(breakdown["discount_amount"]),
        "return_amount": serialize_decimal(order.return_amount),
        "return_note": order.return_note,
        "total_deposits": serialize_decimal(breakdown["total_deposits"]),
        "amount_paid": serialize_decimal(order.amount_paid),
        "remaining_balance": serialize_decimal(order.remaining_balance),
        "status": order.status,
        "payment_date": serialize_datetime(order.payment_date),
        "commission_pct": serialize_decimal(order.commission_pct),
        "notes": order.notes,
        "version": order.version,
        "created_at": serialize_datetime(order.created_at),
    }


def get_order_or_404(db: Session, tenant_id: int, order_id: int) -> Order:
    order = db.query(Order).filter(Order.id == order_id, Order.tenant_id == tenant_id).first()
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


def ensure_visible(order: Order, user: User) -> None:
    # Representantes y clientes sólo ven los pedidos de su cliente
    if user.role in {r.value for r in REMOTE_ROLES} and order.customer_code != user.customer_code:
        raise HTTPException(status_code=404, detail="Order not found")


@router.post("/", response_model=OrderOut)
def create_order(
    data: OrderCreate,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_tenant),
    user: User = Depends(require_settlement_operator),
):
    """Alta de pedido; el número sale del contador PEDIDO"""
    customer_code = data.customer_code.strip()
    if not customer_code:
        raise HTTPException(status_code=400, detail="customer_code is required")
    if to_decimal(data.return_amount) > 0 and not (data.return_note or "").strip():
        raise HTTPException(status_code=400, detail="A return requires a note explaining it")

    customer = upsert_customer(db, tenant.id, customer_code, data.customer_name)

    order = Order(
        tenant_id=tenant.id,
        order_number=generate_folio(db, tenant.id, "PEDIDO"),
        customer_code=customer_code,
        customer_name=customer.name if customer is not None else data.customer_name,
        gross_value=to_decimal(data.gross_value),
        discount_type=data.discount_type.value,
        discount_value=to_decimal(data.discount_value),
        return_amount=to_decimal(data.return_amount),
        return_note=(data.return_note or "").strip() or None,
        amount_paid=Decimal("0.00"),
        commission_pct=to_decimal(data.commission_pct),
        notes=data.notes,
    )
    order.remaining_balance = balance_for_order(order)["adjusted_balance"]
    if data.awaiting_confirmation:
        order.status = OrderStatus.awaiting_confirmation.value
    else:
        order.status = derive_status(order.remaining_balance, order.amount_paid, False).value
    db.add(order)
    db.flush()

    create_status_history(
        db=db,
        tenant_id=tenant.id,
        entity_type="order",
        entity_id=order.id,
        old_status=None,
        new_status=order.status,
        user=user,
        notes=f"Order {order.order_number} created",
    )
    db.commit()
    db.refresh(order)
    return serialize_order(order)


@router.get("/", response_model=List[OrderOut])
def list_orders(
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_tenant),
    user: User = Depends(get_current_user),
    status: Optional[str] = Query(None),
    customer_code: Optional[str] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
):
    """Listar pedidos"""
    query = db.query(Order).filter(Order.tenant_id == tenant.id)
    if user.role in {r.value for r in REMOTE_ROLES}:
        customer_code = user.customer_code
    if status:
        query = query.filter(Order.status == status)
    if customer_code:
        query = query.filter(Order.customer_code == customer_code)
    orders = query.order_by(Order.id.desc()).offset(skip).limit(limit).all()
    return [serialize_order(o) for o in orders]


@router.get("/{order_id}", response_model=OrderOut)
def get_order(
    order_id: int,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_tenant),
    user: User = Depends(get_current_user),
):
    order = get_order_or_404(db, tenant.id, order_id)
    ensure_visible(order, user)
    return serialize_order(order)


@router.get("/{order_id}/history", response_model=List[SettlementHistoryOut])
def get_order_history(
    order_id: int,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_tenant),
    user: User = Depends(get_current_user),
):
    """Historial estructurado de liquidaciones del pedido"""
    order = get_order_or_404(db, tenant.id, order_id)
    ensure_visible(order, user)
    entries = db.query(SettlementHistory).filter(
        SettlementHistory.tenant_id == tenant.id,
        SettlementHistory.order_id == order.id,
    ).order_by(SettlementHistory.created_at.asc(), SettlementHistory.id.asc()).all()
    return [
        {
            "id": h.id,
            "settlement_record_id": h.settlement_record_id,
            "actor_email": h.actor_email,
            "payments": h.payments or [],
            "amount_paid": serialize_decimal(h.amount_paid),
            "credit_applied": serialize_decimal(h.credit_applied),
            "credit_generated": serialize_decimal(h.credit_generated),
            "credit_numbers": h.credit_numbers or [],
            "discount_amount": serialize_decimal(h.discount_amount),
            "return_amount": serialize_decimal(h.return_amount),
            "balance_before": serialize_decimal(h.balance_before),
            "balance_after": serialize_decimal(h.balance_after),
            "status_before": h.status_before,
            "status_after": h.status_after,
            "note": h.note,
            "created_at": serialize_datetime(h.created_at),
        }
        for h in entries
    ]
