"""
Flujo de liquidaciones pendientes (portal del representante / cliente).

    pending --approve--> approved   (terminal)
    pending --reject---> rejected   (terminal)

Al enviar no se toca el ledger: la solicitud es sólo datos hasta que un admin
la revisa. La aprobación ejecuta settle_batch dentro de la misma transacción.
"""
import logging
from decimal import Decimal
from typing import Iterable, List, Mapping, Optional, Sequence

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from settlement.core.errors import (
    ApprovalPreconditionFailed,
    AttachmentRequired,
    ConcurrentModification,
    InvalidPaymentAmount,
    InvalidStateTransition,
    MalformedSettlementRequest,
    RejectionReasonRequired,
)
from settlement.core.folio_service import get_next_folio_seq
from settlement.core.serialization_helpers import money, serialize_payments, to_decimal
from settlement.models.enums import OrderStatus, PendingStatus, RecordKind, SubmitterType
from settlement.models.pending_settlement import PendingSettlement
from settlement.models.settlement_record import SettlementRecord
from settlement.models.tenant import utcnow
from settlement.models.user import User
from settlement.services.allocation import weights_from_explicit
from settlement.services.balance_calculator import balance_for_order, parse_cascade
from settlement.services.notification_service import notify_admins
from settlement.services.settlement_processor import normalize_payments, payments_total
from settlement.services.settlement_service import load_orders, settle_batch, single_customer
from settlement.services.status_history_service import create_status_history


logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


def _clean_attachments(attachments: Optional[Iterable[str]]) -> List[str]:
    return [a.strip() for a in attachments or [] if isinstance(a, str) and a.strip()]


def _clean_allocations(allocations: Optional[Mapping]) -> Optional[dict]:
    if not allocations:
        return None
    return {str(int(k)): str(to_decimal(v)) for k, v in allocations.items()}


def _open_orders(db: Session, tenant_id: int, order_ids: Iterable[int]):
    orders = load_orders(db, tenant_id, order_ids)
    paid = [o.order_number or o.id for o in orders if o.status == OrderStatus.paid.value]
    if paid:
        raise MalformedSettlementRequest(f"Orders already paid: {paid}")
    return orders


def _original_total(orders) -> Decimal:
    return money(sum((balance_for_order(o)["adjusted_balance"] for o in orders), ZERO))


def _validate_return(return_amount: Decimal, return_note: Optional[str]) -> None:
    if return_amount < ZERO:
        raise MalformedSettlementRequest("Return amount cannot be negative")
    if return_amount > ZERO and not (return_note or "").strip():
        raise MalformedSettlementRequest("A return requires a note explaining it")


def _ensure_pending(request: PendingSettlement) -> None:
    if request.status != PendingStatus.pending.value:
        raise InvalidStateTransition(
            f"Request #{request.request_number} is {request.status}; only pending requests can change"
        )


def _ensure_version(request: PendingSettlement, expected_version: Optional[int]) -> None:
    if expected_version is not None and request.version != expected_version:
        raise ConcurrentModification(
            f"Request #{request.request_number} changed (version {request.version}, expected {expected_version})"
        )


def _flush(db: Session, request: PendingSettlement) -> None:
    try:
        db.flush()
    except StaleDataError:
        raise ConcurrentModification(f"Request #{request.request_number} was modified concurrently")


def submit_request(
    db: Session,
    tenant_id: int,
    order_ids: Sequence[int],
    payments: Iterable,
    attachments: Optional[Iterable[str]],
    submitter: Optional[User],
    submitter_type: SubmitterType = SubmitterType.representative,
    discount_cascade: Optional[Sequence[dict]] = None,
    return_amount=None,
    return_note: Optional[str] = None,
    credit_amount=None,
    note: Optional[str] = None,
) -> PendingSettlement:
    """
    Crea una solicitud pendiente.

    Raises:
        MalformedSettlementRequest: sin pedidos, pedidos de clientes distintos
            o ya pagados, devolución sin observación
        AttachmentRequired: sin comprobante
        InvalidPaymentAmount: ninguna forma de pago con valor
    """
    orders = _open_orders(db, tenant_id, order_ids)
    customer_code, customer_name = single_customer(orders)
    if submitter is not None and submitter.customer_code and submitter.customer_code != customer_code:
        raise MalformedSettlementRequest("Orders do not belong to the submitter's customer")

    files = _clean_attachments(attachments)
    if not files:
        raise AttachmentRequired("At least one proof attachment is required")

    tender = normalize_payments(payments)
    total_paid = payments_total(tender)
    if not tender or total_paid <= ZERO:
        raise InvalidPaymentAmount("At least one payment with a positive amount is required")

    returned = to_decimal(return_amount)
    _validate_return(returned, return_note)
    credit = to_decimal(credit_amount)
    if credit < ZERO:
        raise InvalidPaymentAmount("Credit amount cannot be negative")

    request = PendingSettlement(
        tenant_id=tenant_id,
        request_number=get_next_folio_seq(db, tenant_id, "SOLICITACAO"),
        customer_code=customer_code,
        customer_name=customer_name,
        order_ids=[o.id for o in orders],
        original_total=_original_total(orders),
        discount_cascade=parse_cascade(discount_cascade),
        return_amount=returned,
        return_note=(return_note or "").strip() or None,
        attachments=files,
        payments=serialize_payments(tender),
        credit_amount=credit,
        proposed_total_paid=total_paid,
        status=PendingStatus.pending.value,
        submitter_type=submitter_type.value,
        submitted_by_id=submitter.id if submitter is not None else None,
        note=note,
    )
    db.add(request)
    db.flush()

    create_status_history(
        db=db,
        tenant_id=tenant_id,
        entity_type="pending_settlement",
        entity_id=request.id,
        old_status=None,
        new_status=request.status,
        user=submitter,
        notes=f"Settlement request #{request.request_number} for {len(orders)} order(s)",
    )
    notify_admins(
        db,
        tenant_id,
        kind="pending_settlement",
        title="New pending settlement",
        message=(
            f"{customer_name or customer_code} requested settlement of {len(orders)} order(s). "
            f"Amount: {total_paid:.2f}"
        ),
        entity_type="pending_settlement",
        entity_id=request.id,
    )
    db.flush()
    logger.info(
        "settlement request submitted tenant=%s number=%s customer=%s orders=%s amount=%s",
        tenant_id, request.request_number, customer_code, request.order_ids, total_paid,
    )
    return request


def get_request(db: Session, tenant_id: int, request_id: int) -> Optional[PendingSettlement]:
    return db.query(PendingSettlement).filter(
        PendingSettlement.id == request_id,
        PendingSettlement.tenant_id == tenant_id,
    ).first()


def list_requests(
    db: Session,
    tenant_id: int,
    status: Optional[str] = None,
    customer_code: Optional[str] = None,
    submitted_by_id: Optional[int] = None,
) -> List[PendingSettlement]:
    query = db.query(PendingSettlement).filter(PendingSettlement.tenant_id == tenant_id)
    if status:
        query = query.filter(PendingSettlement.status == status)
    if customer_code:
        query = query.filter(PendingSettlement.customer_code == customer_code)
    if submitted_by_id is not None:
        query = query.filter(PendingSettlement.submitted_by_id == submitted_by_id)
    return query.order_by(PendingSettlement.request_number.desc()).all()


def update_request(
    db: Session,
    request: PendingSettlement,
    changes: Mapping,
    reviewer: Optional[User] = None,
    expected_version: Optional[int] = None,
) -> PendingSettlement:
    """
    Edición del revisor antes de decidir.

    changes admite: add_order_ids, remove_order_ids, discount_cascade,
    return_amount, return_note, payments, credit_amount, allocations,
    add_attachments, remove_attachments. Los totales se recalculan.
    """
    _ensure_pending(request)
    _ensure_version(request, expected_version)

    order_ids = list(request.order_ids or [])
    for order_id in changes.get("add_order_ids") or []:
        if int(order_id) not in order_ids:
            order_ids.append(int(order_id))
    removed = {int(i) for i in changes.get("remove_order_ids") or []}
    order_ids = [i for i in order_ids if i not in removed]
    if order_ids != list(request.order_ids or []):
        if not order_ids:
            raise MalformedSettlementRequest("A request must keep at least one order")
        orders = _open_orders(db, request.tenant_id, order_ids)
        customer_code, _ = single_customer(orders)
        if customer_code != request.customer_code:
            raise MalformedSettlementRequest("All orders in a settlement must belong to the same customer")
        request.order_ids = order_ids
        request.original_total = _original_total(orders)

    if "discount_cascade" in changes and changes["discount_cascade"] is not None:
        request.discount_cascade = parse_cascade(changes["discount_cascade"])
    if changes.get("return_amount") is not None or changes.get("return_note") is not None:
        returned = to_decimal(changes.get("return_amount", request.return_amount))
        note = changes.get("return_note", request.return_note)
        _validate_return(returned, note)
        request.return_amount = returned
        request.return_note = (note or "").strip() or None
    if changes.get("payments") is not None:
        tender = normalize_payments(changes["payments"])
        request.payments = serialize_payments(tender)
        request.proposed_total_paid = payments_total(tender)
    if changes.get("credit_amount") is not None:
        credit = to_decimal(changes["credit_amount"])
        if credit < ZERO:
            raise InvalidPaymentAmount("Credit amount cannot be negative")
        request.credit_amount = credit
    allocations = request.allocations
    if "allocations" in changes:
        allocations = _clean_allocations(changes["allocations"])
    if allocations and removed:
        dropped = {str(i) for i in removed}
        allocations = {k: v for k, v in allocations.items() if k not in dropped} or None
    if allocations:
        weights_from_explicit(request.order_ids, allocations, to_decimal(request.proposed_total_paid))
    if allocations != request.allocations:
        request.allocations = allocations

    files = list(request.attachments or [])
    for handle in _clean_attachments(changes.get("add_attachments")):
        if handle not in files:
            files.append(handle)
    drop = set(_clean_attachments(changes.get("remove_attachments")))
    files = [f for f in files if f not in drop]
    if files != list(request.attachments or []):
        request.attachments = files

    _flush(db, request)
    logger.info(
        "settlement request edited number=%s reviewer=%s",
        request.request_number, reviewer.id if reviewer is not None else None,
    )
    return request


def approve_request(
    db: Session,
    request: PendingSettlement,
    reviewer: User,
    allow_partial_credit: bool = False,
    expected_version: Optional[int] = None,
) -> SettlementRecord:
    """
    Aprueba y ejecuta la solicitud.

    Todos los pedidos se liquidan en la transacción actual; si alguno falla
    la excepción sube sin marcar la solicitud y el caller hace rollback.
    """
    _ensure_pending(request)
    _ensure_version(request, expected_version)

    if not request.order_ids:
        raise ApprovalPreconditionFailed("Approval requires at least one order")
    tender = normalize_payments(request.payments)
    if not tender or payments_total(tender) <= ZERO:
        raise ApprovalPreconditionFailed("Approval requires at least one payment with a positive amount")

    orders = _open_orders(db, request.tenant_id, request.order_ids)
    allocations = {int(k): v for k, v in (request.allocations or {}).items()}

    record, outcomes = settle_batch(
        db,
        request.tenant_id,
        orders,
        tender,
        reviewer,
        kind=RecordKind.approved,
        discount_cascade=request.discount_cascade,
        return_amount=request.return_amount,
        credit_amount=request.credit_amount,
        allocations=allocations or None,
        attachments=request.attachments,
        allow_partial_credit=allow_partial_credit,
        pending_settlement_id=request.id,
        note=f"Approved settlement request #{request.request_number}",
    )

    old_status = request.status
    request.status = PendingStatus.approved.value
    request.reviewed_by_id = reviewer.id
    request.reviewed_at = utcnow()
    request.settlement_record_id = record.id
    create_status_history(
        db=db,
        tenant_id=request.tenant_id,
        entity_type="pending_settlement",
        entity_id=request.id,
        old_status=old_status,
        new_status=request.status,
        user=reviewer,
        notes=f"Approved - settlement record {record.record_number}",
    )
    _flush(db, request)
    logger.info(
        "settlement request approved number=%s record=%s orders=%s",
        request.request_number, record.record_number, [o["order_id"] for o in outcomes],
    )
    return record


def reject_request(
    db: Session,
    request: PendingSettlement,
    reason: Optional[str],
    reviewer: User,
    expected_version: Optional[int] = None,
) -> PendingSettlement:
    """Rechaza la solicitud; ningún pedido ni crédito se modifica"""
    if not reason or not reason.strip():
        logger.warning("rejection without reason refused number=%s", request.request_number)
        raise RejectionReasonRequired()
    _ensure_pending(request)
    _ensure_version(request, expected_version)

    old_status = request.status
    request.status = PendingStatus.rejected.value
    request.rejection_reason = reason.strip()
    request.reviewed_by_id = reviewer.id
    request.reviewed_at = utcnow()
    create_status_history(
        db=db,
        tenant_id=request.tenant_id,
        entity_type="pending_settlement",
        entity_id=request.id,
        old_status=old_status,
        new_status=request.status,
        user=reviewer,
        notes=f"Rejected: {request.rejection_reason}",
    )
    _flush(db, request)
    logger.info("settlement request rejected number=%s", request.request_number)
    return request
