"""
Solicitudes de liquidación enviadas por representantes o clientes y su
revisión por un administrador.
"""
from decimal import Decimal
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from settlement.core.database import get_db
from settlement.core.deps import get_current_user, get_tenant, require_admin
from settlement.core.roles import REMOTE_ROLES, Role
from settlement.core.serialization_helpers import serialize_datetime, serialize_decimal
from settlement.models.enums import SubmitterType
from settlement.models.pending_settlement import PendingSettlement
from settlement.models.tenant import Tenant
from settlement.models.user import User
from settlement.routes.settlements import DiscountLine, PaymentLine, SettlementRecordOut, serialize_record
from settlement.services.pending_settlement_service import (
    approve_request,
    get_request,
    list_requests,
    reject_request,
    submit_request,
    update_request,
)


router = APIRouter()


class PendingSettlementCreate(BaseModel):
    order_ids: List[int]
    payments: List[PaymentLine]
    attachments: List[str] = []
    discount_cascade: List[DiscountLine] = []
    return_amount: Decimal = Decimal("0")
    return_note: Optional[str] = None
    credit_amount: Decimal = Decimal("0")
    note: Optional[str] = None


class PendingSettlementUpdate(BaseModel):
    add_order_ids: Optional[List[int]] = None
    remove_order_ids: Optional[List[int]] = None
    discount_cascade: Optional[List[DiscountLine]] = None
    return_amount: Optional[Decimal] = None
    return_note: Optional[str] = None
    payments: Optional[List[PaymentLine]] = None
    credit_amount: Optional[Decimal] = None
    allocations: Optional[Dict[int, Decimal]] = None
    add_attachments: Optional[List[str]] = None
    remove_attachments: Optional[List[str]] = None
    expected_version: Optional[int] = None


class ApproveRequest(BaseModel):
    allow_partial_credit: bool = False
    expected_version: Optional[int] = None


class RejectRequest(BaseModel):
    reason: Optional[str] = None
    expected_version: Optional[int] = None


class PendingSettlementOut(BaseModel):
    id: int
    request_number: int
    customer_code: str
    customer_name: Optional[str]
    order_ids: List[int]
    original_total: float
    discount_cascade: list
    return_amount: float
    return_note: Optional[str]
    attachments: List[str]
    payments: list
    credit_amount: float
    proposed_total_paid: float
    allocations: Optional[dict]
    status: str
    submitter_type: str
    submitted_by_id: Optional[int]
    note: Optional[str]
    rejection_reason: Optional[str]
    reviewed_by_id: Optional[int]
    reviewed_at: Optional[str]
    settlement_record_id: Optional[int]
    version: int
    created_at: str


class ApprovalResponse(BaseModel):
    request: PendingSettlementOut
    record: SettlementRecordOut


def serialize_request(request: PendingSettlement) -> dict:
    return {
        "id": request.id,
        "request_number": request.request_number,
        "customer_code": request.customer_code,
        "customer_name": request.customer_name,
        "order_ids": request.order_ids or [],
        "original_total": serialize_decimal(request.original_total),
        "discount_cascade": request.discount_cascade or [],
        "return_amount": serialize_decimal(request.return_amount),
        "return_note": request.return_note,
        "attachments": request.attachments or [],
        "payments": request.payments or [],
        "credit_amount": serialize_decimal(request.credit_amount),
        "proposed_total_paid": serialize_decimal(request.proposed_total_paid),
        "allocations": request.allocations,
        "status": request.status,
        "submitter_type": request.submitter_type,
        "submitted_by_id": request.submitted_by_id,
        "note": request.note,
        "rejection_reason": request.rejection_reason,
        "reviewed_by_id": request.reviewed_by_id,
        "reviewed_at": serialize_datetime(request.reviewed_at),
        "settlement_record_id": request.settlement_record_id,
        "version": request.version,
        "created_at": serialize_datetime(request.created_at),
    }


def _is_remote(user: User) -> bool:
    return user.role in {r.value for r in REMOTE_ROLES}


def _submitter_type(user: User) -> SubmitterType:
    if user.role == Role.representative.value:
        return SubmitterType.representative
    if user.role == Role.customer.value:
        return SubmitterType.customer
    return SubmitterType.operator


def _get_or_404(db: Session, tenant_id: int, request_id: int, user: Optional[User] = None) -> PendingSettlement:
    request = get_request(db, tenant_id, request_id)
    if not request:
        raise HTTPException(status_code=404, detail="Settlement request not found")
    if user is not None and _is_remote(user) and request.customer_code != user.customer_code:
        raise HTTPException(status_code=404, detail="Settlement request not found")
    return request


def _cascade(lines: Optional[List[DiscountLine]]):
    if lines is None:
        return None
    return [{"type": d.type.value, "value": d.value} for d in lines]


@router.post("/", response_model=PendingSettlementOut)
def create_pending_settlement(
    data: PendingSettlementCreate,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_tenant),
    user: User = Depends(get_current_user),
):
    """Envía una solicitud; no modifica pedidos ni créditos hasta aprobarse"""
    request = submit_request(
        db,
        tenant.id,
        data.order_ids,
        [p.model_dump() for p in data.payments],
        data.attachments,
        user,
        submitter_type=_submitter_type(user),
        discount_cascade=_cascade(data.discount_cascade),
        return_amount=data.return_amount,
        return_note=data.return_note,
        credit_amount=data.credit_amount,
        note=data.note,
    )
    db.commit()
    db.refresh(request)
    return serialize_request(request)


@router.get("/", response_model=List[PendingSettlementOut])
def get_pending_settlements(
    status: Optional[str] = Query(None),
    customer_code: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_tenant),
    user: User = Depends(get_current_user),
):
    submitted_by_id = None
    if _is_remote(user):
        customer_code = user.customer_code
        submitted_by_id = user.id
    requests = list_requests(db, tenant.id, status, customer_code, submitted_by_id)
    return [serialize_request(r) for r in requests]


@router.get("/{request_id}", response_model=PendingSettlementOut)
def get_pending_settlement(
    request_id: int,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_tenant),
    user: User = Depends(get_current_user),
):
    return serialize_request(_get_or_404(db, tenant.id, request_id, user))


@router.patch("/{request_id}", response_model=PendingSettlementOut)
def edit_pending_settlement(
    request_id: int,
    data: PendingSettlementUpdate,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_tenant),
    admin: User = Depends(require_admin),
):
    """Edición del revisor: pedidos, descuentos, devolución, pagos, reparto, adjuntos"""
    request = _get_or_404(db, tenant.id, request_id)
    changes = data.model_dump(exclude_unset=True, exclude={"expected_version"})
    if "discount_cascade" in changes:
        changes["discount_cascade"] = _cascade(data.discount_cascade)
    if changes.get("payments") is not None:
        changes["payments"] = [p.model_dump() for p in data.payments]
    request = update_request(db, request, changes, reviewer=admin, expected_version=data.expected_version)
    db.commit()
    db.refresh(request)
    return serialize_request(request)


@router.post("/{request_id}/approve", response_model=ApprovalResponse)
def approve_pending_settlement(
    request_id: int,
    data: Optional[ApproveRequest] = None,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_tenant),
    admin: User = Depends(require_admin),
):
    """Aprueba y ejecuta la liquidación de todos los pedidos de la solicitud"""
    data = data or ApproveRequest()
    request = _get_or_404(db, tenant.id, request_id)
    record = approve_request(
        db,
        request,
        admin,
        allow_partial_credit=data.allow_partial_credit,
        expected_version=data.expected_version,
    )
    db.commit()
    db.refresh(request)
    db.refresh(record)
    return {"request": serialize_request(request), "record": serialize_record(record)}


@router.post("/{request_id}/reject", response_model=PendingSettlementOut)
def reject_pending_settlement(
    request_id: int,
    data: RejectRequest,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_tenant),
    admin: User = Depends(require_admin),
):
    request = _get_or_404(db, tenant.id, request_id)
    request = reject_request(db, request, data.reason, admin, expected_version=data.expected_version)
    db.commit()
    db.refresh(request)
    return serialize_request(request)
