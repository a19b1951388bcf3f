"""
Ledger de créditos por cliente.

Regla de consumo: los créditos disponibles se consumen del más antiguo al más
nuevo (por número). Un crédito que cubre más de lo pedido se divide: queda
"used" por la parte consumida y se emite un crédito nuevo "available" con el
resto. Lo aplicado es siempre exactamente min(pedido, disponible).

Ninguna función hace commit; el caller controla la transacción.
"""
import logging
from decimal import Decimal
from typing import List, Optional, TypedDict

from sqlalchemy import func
from sqlalchemy.orm import Session

from settlement.core.errors import InsufficientCreditRequested, InvalidPaymentAmount, MalformedSettlementRequest
from settlement.core.folio_service import get_next_folio_seq
from settlement.core.serialization_helpers import money, to_decimal
from settlement.models.credit import Credit
from settlement.models.enums import CreditGeneration, CreditStatus
from settlement.models.tenant import utcnow


logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


class CreditApplication(TypedDict):
    applied: Decimal
    consumed_numbers: List[int]
    remainder_number: Optional[int]


def _available_query(db: Session, tenant_id: int, customer_code: str):
    return db.query(Credit).filter(
        Credit.tenant_id == tenant_id,
        Credit.customer_code == customer_code,
        Credit.status == CreditStatus.available.value,
        Credit.amount > 0,
    )


def available_total(db: Session, tenant_id: int, customer_code: str) -> Decimal:
    total = _available_query(db, tenant_id, customer_code).with_entities(
        func.coalesce(func.sum(Credit.amount), 0)
    ).scalar()
    return money(to_decimal(total))


def list_credits(
    db: Session,
    tenant_id: int,
    customer_code: Optional[str] = None,
    status: Optional[str] = None,
) -> List[Credit]:
    query = db.query(Credit).filter(Credit.tenant_id == tenant_id)
    if customer_code:
        query = query.filter(Credit.customer_code == customer_code)
    if status:
        query = query.filter(Credit.status == status)
    return query.order_by(Credit.credit_number.asc()).all()


def issue_credit(
    db: Session,
    tenant_id: int,
    customer_code: str,
    amount,
    origin: str,
    order=None,
    customer_name: Optional[str] = None,
    generation_type: CreditGeneration = CreditGeneration.automatic,
    justification: Optional[str] = None,
    split_from: Optional[Credit] = None,
) -> Credit:
    value = to_decimal(amount)
    if value <= ZERO:
        raise InvalidPaymentAmount("Credit amount must be positive")
    if not customer_code:
        raise MalformedSettlementRequest("Credit requires a customer")

    credit = Credit(
        tenant_id=tenant_id,
        credit_number=get_next_folio_seq(db, tenant_id, "CREDITO"),
        customer_code=customer_code,
        customer_name=customer_name or (order.customer_name if order is not None else None),
        amount=value,
        origin=origin,
        justification=justification,
        generation_type=generation_type.value,
        status=CreditStatus.available.value,
        source_order_id=order.id if order is not None else None,
        split_from_id=split_from.id if split_from is not None else None,
    )
    db.add(credit)
    db.flush()
    logger.info(
        "credit issued tenant=%s customer=%s number=%s amount=%s origin=%s",
        tenant_id, customer_code, credit.credit_number, value, origin,
    )
    return credit


def issue_manual_credit(
    db: Session,
    tenant_id: int,
    customer_code: str,
    amount,
    justification: Optional[str],
    customer_name: Optional[str] = None,
) -> Credit:
    """Crédito generado a mano por un admin; la justificación es obligatoria"""
    if not justification or not justification.strip():
        raise MalformedSettlementRequest("Manual credit requires a justification")
    return issue_credit(
        db,
        tenant_id,
        customer_code,
        amount,
        origin="Manually issued",
        customer_name=customer_name,
        generation_type=CreditGeneration.manual,
        justification=justification.strip(),
    )


def _mark_used(credit: Credit, order, when, amount: Optional[Decimal] = None) -> None:
    # amount/consuming/fecha antes que status: una vez "used" quedan congelados
    if amount is not None:
        credit.amount = amount
    credit.consuming_order_id = order.id
    credit.consumed_at = when
    credit.status = CreditStatus.used.value


def apply_credit(
    db: Session,
    tenant_id: int,
    customer_code: str,
    requested_amount,
    order,
    allow_partial: bool = False,
) -> CreditApplication:
    """
    Consume créditos disponibles del cliente contra un pedido.

    Args:
        requested_amount: Monto que se desea usar
        order: Pedido que consume el crédito
        allow_partial: Si es False y no hay saldo suficiente se lanza
            InsufficientCreditRequested; si es True se aplica lo que haya

    Returns:
        Monto aplicado, números de los créditos consumidos y número del
        crédito con el resto (si hubo división)
    """
    requested = to_decimal(requested_amount)
    result: CreditApplication = {"applied": ZERO, "consumed_numbers": [], "remainder_number": None}
    if requested <= ZERO:
        return result

    entries = (
        _available_query(db, tenant_id, customer_code)
        .order_by(Credit.credit_number.asc())
        .with_for_update()
        .all()
    )
    available = money(sum((to_decimal(c.amount) for c in entries), ZERO))
    if requested > available:
        if not allow_partial:
            logger.warning(
                "credit refused tenant=%s customer=%s requested=%s available=%s",
                tenant_id, customer_code, requested, available,
            )
            raise InsufficientCreditRequested(requested, available)
        requested = available

    now = utcnow()
    outstanding = requested
    for credit in entries:
        if outstanding <= ZERO:
            break
        amount = to_decimal(credit.amount)
        if amount <= outstanding:
            _mark_used(credit, order, now)
            outstanding -= amount
        else:
            remainder = money(amount - outstanding)
            _mark_used(credit, order, now, amount=outstanding)
            db.flush()
            rest = issue_credit(
                db,
                tenant_id,
                customer_code,
                remainder,
                origin=f"Remainder of credit #{credit.credit_number}",
                customer_name=credit.customer_name,
                generation_type=CreditGeneration(credit.generation_type),
                split_from=credit,
            )
            result["remainder_number"] = rest.credit_number
            outstanding = ZERO
        result["consumed_numbers"].append(credit.credit_number)

    result["applied"] = money(requested - outstanding)
    db.flush()
    logger.info(
        "credit applied tenant=%s customer=%s order=%s amount=%s credits=%s",
        tenant_id, customer_code, order.id, result["applied"], result["consumed_numbers"],
    )
    return result
