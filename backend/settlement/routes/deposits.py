from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from settlement.core.database import get_db
from settlement.core.deps import get_current_user, get_tenant, require_settlement_operator
from settlement.core.serialization_helpers import serialize_datetime, serialize_decimal
from settlement.models.order import Deposit
from settlement.models.tenant import Tenant
from settlement.models.user import User
from settlement.routes.orders import ensure_visible, get_order_or_404
from settlement.services.deposit_service import add_deposit, list_deposits, remove_deposit


router = APIRouter()


class DepositCreate(BaseModel):
    payment_method: str
    amount: Decimal
    proof_ref: Optional[str] = None
    confirm_excess: bool = False


class DepositOut(BaseModel):
    id: int
    order_id: int
    payment_method: str
    amount: float
    proof_ref: Optional[str]
    consumed: bool
    consumed_at: Optional[str]
    created_at: str


def _serialize(deposit: Deposit) -> dict:
    return {
        "id": deposit.id,
        "order_id": deposit.order_id,
        "payment_method": deposit.payment_method,
        "amount": serialize_decimal(deposit.amount),
        "proof_ref": deposit.proof_ref,
        "consumed": deposit.consumed,
        "consumed_at": serialize_datetime(deposit.consumed_at),
        "created_at": serialize_datetime(deposit.created_at),
    }


@router.get("/{order_id}/deposits", response_model=List[DepositOut])
def get_deposits(
    order_id: int,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_tenant),
    user: User = Depends(get_current_user),
):
    order = get_order_or_404(db, tenant.id, order_id)
    ensure_visible(order, user)
    return [_serialize(d) for d in list_deposits(order)]


@router.post("/{order_id}/deposits", response_model=DepositOut)
def create_deposit(
    order_id: int,
    data: DepositCreate,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_tenant),
    user: User = Depends(require_settlement_operator),
):
    """Registra un sinal; por encima del valor del pedido exige confirm_excess"""
    order = get_order_or_404(db, tenant.id, order_id)
    deposit = add_deposit(
        db,
        order,
        data.payment_method,
        data.amount,
        proof_ref=data.proof_ref,
        confirm_excess=data.confirm_excess,
        user_id=user.id,
    )
    db.commit()
    db.refresh(deposit)
    return _serialize(deposit)


@router.delete("/{order_id}/deposits/{deposit_id}")
def delete_deposit(
    order_id: int,
    deposit_id: int,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_tenant),
    user: User = Depends(require_settlement_operator),
):
    order = get_order_or_404(db, tenant.id, order_id)
    remove_deposit(db, order, deposit_id)
    db.commit()
    return {"message": "Deposit removed"}
