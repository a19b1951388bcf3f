"""
Rutas del ledger de créditos: consulta y crédito manual.
"""
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from settlement.core.database import get_db
from settlement.core.deps import get_current_user, get_tenant, require_admin
from settlement.core.roles import REMOTE_ROLES
from settlement.core.serialization_helpers import serialize_datetime, serialize_decimal
from settlement.models.credit import Credit
from settlement.models.tenant import Tenant
from settlement.models.user import User
from settlement.services.credit_ledger import available_total, issue_manual_credit, list_credits
from settlement.services.customer_service import upsert_customer


router = APIRouter()


class ManualCreditCreate(BaseModel):
    customer_code: str
    customer_name: Optional[str] = None
    amount: Decimal
    justification: str


class CreditOut(BaseModel):
    id: int
    credit_number: int
    customer_code: str
    customer_name: Optional[str]
    amount: float
    origin: str
    justification: Optional[str]
    generation_type: str
    status: str
    source_order_id: Optional[int]
    consuming_order_id: Optional[int]
    consumed_at: Optional[str]
    split_from_id: Optional[int]
    created_at: str


class AvailableCreditOut(BaseModel):
    customer_code: str
    available: float
    credits: List[CreditOut]


def serialize_credit(credit: Credit) -> dict:
    return {
        "id": credit.id,
        "credit_number": credit.credit_number,
        "customer_code": credit.customer_code,
        "customer_name": credit.customer_name,
        "amount": serialize_decimal(credit.amount),
        "origin": credit.origin,
        "justification": credit.justification,
        "generation_type": credit.generation_type,
        "status": credit.status,
        "source_order_id": credit.source_order_id,
        "consuming_order_id": credit.consuming_order_id,
        "consumed_at": serialize_datetime(credit.consumed_at),
        "split_from_id": credit.split_from_id,
        "created_at": serialize_datetime(credit.created_at),
    }


def _scope_customer(user: User, customer_code: Optional[str]) -> Optional[str]:
    if user.role in {r.value for r in REMOTE_ROLES}:
        if customer_code and customer_code != user.customer_code:
            raise HTTPException(status_code=404, detail="Customer not found")
        return user.customer_code
    return customer_code


@router.get("/", response_model=List[CreditOut])
def get_credits(
    customer_code: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_tenant),
    user: User = Depends(get_current_user),
):
    customer_code = _scope_customer(user, customer_code)
    return [serialize_credit(c) for c in list_credits(db, tenant.id, customer_code, status)]


@router.get("/customers/{customer_code}/available", response_model=AvailableCreditOut)
def get_available_credit(
    customer_code: str,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_tenant),
    user: User = Depends(get_current_user),
):
    """Saldo a favor disponible del cliente"""
    customer_code = _scope_customer(user, customer_code)
    credits = list_credits(db, tenant.id, customer_code, "available")
    return {
        "customer_code": customer_code,
        "available": serialize_decimal(available_total(db, tenant.id, customer_code)),
        "credits": [serialize_credit(c) for c in credits],
    }


@router.post("/manual", response_model=CreditOut)
def create_manual_credit(
    data: ManualCreditCreate,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_tenant),
    admin: User = Depends(require_admin),
):
    customer = upsert_customer(db, tenant.id, data.customer_code, data.customer_name)
    credit = issue_manual_credit(
        db,
        tenant.id,
        data.customer_code.strip(),
        data.amount,
        data.justification,
        customer_name=customer.name if customer is not None else data.customer_name,
    )
    db.commit()
    db.refresh(credit)
    return serialize_credit(credit)


@router.get("/{credit_id}", response_model=CreditOut)
def get_credit(
    credit_id: int,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_tenant),
    user: User = Depends(get_current_user),
):
    credit = db.query(Credit).filter(Credit.id == credit_id, Credit.tenant_id == tenant.id).first()
    if not credit:
        raise HTTPException(status_code=404, detail="Credit not found")
    _scope_customer(user, credit.customer_code)
    return serialize_credit(credit)
