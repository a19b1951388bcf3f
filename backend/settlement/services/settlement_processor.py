"""
Procesador de una liquidación sobre UN pedido.

Orden de operaciones:
    1. saldo ajustado (con overrides de descuento/devolución)
    2. consumo de crédito, limitado al saldo
    3. excedente de pago -> crédito nuevo para el cliente
    4. actualización del pedido + historial estructurado

El caso de varios pedidos se resuelve en settlement_service iterando esta
unidad. Nada aquí hace commit.
"""
import logging
from decimal import Decimal
from typing import Iterable, List, Optional, TypedDict

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from settlement.core.config import settings
from settlement.core.errors import ConcurrentModification, InvalidPaymentAmount, MalformedSettlementRequest
from settlement.core.serialization_helpers import money, serialize_payments, to_decimal
from settlement.models.enums import OrderStatus
from settlement.models.order import Order, SettlementHistory
from settlement.models.tenant import utcnow
from settlement.models.user import User
from settlement.services.balance_calculator import DiscountSpec, balance_for_order, derive_status
from settlement.services.credit_ledger import apply_credit, issue_credit
from settlement.services.deposit_service import consume_deposits, parse_method
from settlement.services.status_history_service import create_status_history


logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


class SettlementOutcome(TypedDict):
    order_id: int
    order_number: Optional[str]
    balance_before: Decimal
    adjusted_balance: Decimal
    discount_amount: Decimal
    payments: List[dict]
    payment_total: Decimal
    credit_applied: Decimal
    consumed_credit_numbers: List[int]
    credit_generated: Decimal
    generated_credit_number: Optional[int]
    remaining_balance: Decimal
    status: str
    history_id: int


def _field(entry, name):
    if isinstance(entry, dict):
        return entry.get(name)
    return getattr(entry, name, None)


def normalize_payments(payments: Iterable) -> List[dict]:
    """
    Valida el desglose de pagos.

    Montos vacíos o inválidos valen 0 y la línea se ignora (formularios a
    medio llenar); un monto negativo es un error; una línea con monto pero
    sin forma de pago también.
    """
    result = []
    for entry in payments or []:
        amount = to_decimal(_field(entry, "amount"))
        if amount < ZERO:
            raise InvalidPaymentAmount(f"Negative payment amount: {amount}")
        if amount == ZERO:
            continue
        method = parse_method(_field(entry, "method"))
        result.append({"method": method.value, "amount": amount})
    return result


def payments_total(payments: Iterable[dict]) -> Decimal:
    return money(sum((p["amount"] for p in payments), ZERO))


def apply_settlement(
    db: Session,
    order: Optional[Order],
    payments: Iterable,
    actor: Optional[User],
    credit_amount=None,
    discount: Optional[DiscountSpec] = None,
    return_amount=None,
    allow_partial_credit: bool = False,
    expected_version: Optional[int] = None,
    note: Optional[str] = None,
) -> SettlementOutcome:
    """
    Aplica un evento de liquidación a un pedido.

    Args:
        order: Pedido a liquidar
        payments: Lista de {method, amount}
        actor: Usuario que ejecuta (queda en el historial)
        credit_amount: Crédito del cliente a usar (opcional)
        discount: Override del descuento del pedido
        return_amount: Override de la devolución del pedido
        allow_partial_credit: Aplica el crédito disponible si no alcanza
        expected_version: Versión del pedido que vio el caller
        note: Observación libre para el historial

    Raises:
        MalformedSettlementRequest: sin pedido o pago sin forma de pago
        InvalidPaymentAmount: total ofrecido <= 0 o montos negativos
        InsufficientCreditRequested: crédito pedido > disponible
        ConcurrentModification: el pedido cambió desde que se leyó
    """
    if order is None:
        raise MalformedSettlementRequest("Order reference is required")

    tender = normalize_payments(payments)
    payment_total = payments_total(tender)
    requested_credit = to_decimal(credit_amount)
    if requested_credit < ZERO:
        raise InvalidPaymentAmount("Credit amount cannot be negative")
    if payment_total + requested_credit <= ZERO:
        raise InvalidPaymentAmount("Total tender must be positive")

    if expected_version is not None and order.version != expected_version:
        raise ConcurrentModification(
            f"Order {order.order_number} changed (version {order.version}, expected {expected_version})"
        )

    balance_before = balance_for_order(order)["adjusted_balance"]
    status_before = order.status

    if discount is not None:
        order.discount_type = discount.type.value
        order.discount_value = to_decimal(discount.value)
    if return_amount is not None:
        order.return_amount = to_decimal(return_amount)

    breakdown = balance_for_order(order)
    adjusted = breakdown["adjusted_balance"]

    # El crédito se consume antes de mirar el excedente: un "monto a usar"
    # nunca genera crédito nuevo
    application = apply_credit(
        db,
        order.tenant_id,
        order.customer_code,
        min(requested_credit, adjusted),
        order,
        allow_partial=allow_partial_credit,
    )
    credit_applied = application["applied"]
    if payment_total + credit_applied <= ZERO:
        raise InvalidPaymentAmount(f"Nothing to apply to order {order.order_number or order.id}")

    total_tender = payment_total + credit_applied
    excess = money(total_tender - adjusted)
    credit_generated = ZERO
    generated_number = None
    if excess > settings.overpayment_tolerance:
        generated = issue_credit(
            db,
            order.tenant_id,
            order.customer_code,
            excess,
            origin=f"Overpayment on order {order.order_number or order.id}",
            order=order,
        )
        credit_generated = excess
        generated_number = generated.credit_number

    order.amount_paid = money(to_decimal(order.amount_paid) + total_tender - credit_generated)
    remaining = balance_for_order(order)["adjusted_balance"]
    order.remaining_balance = remaining
    new_status = derive_status(remaining, order.amount_paid, bool(order.deposits))
    order.status = new_status.value

    now = utcnow()
    if new_status == OrderStatus.paid:
        order.payment_date = now
        consume_deposits(order, now)

    history = SettlementHistory(
        tenant_id=order.tenant_id,
        order_id=order.id,
        actor_id=actor.id if actor is not None else None,
        actor_email=actor.email if actor is not None else None,
        payments=serialize_payments(tender),
        amount_paid=payment_total,
        credit_applied=credit_applied,
        credit_generated=credit_generated,
        credit_numbers=application["consumed_numbers"] + ([generated_number] if generated_number else []),
        discount_amount=breakdown["discount_amount"],
        return_amount=to_decimal(order.return_amount),
        balance_before=balance_before,
        balance_after=remaining,
        status_before=status_before,
        status_after=new_status.value,
        note=note[:500] if note else None,
    )
    db.add(history)

    if status_before != new_status.value:
        create_status_history(
            db=db,
            tenant_id=order.tenant_id,
            entity_type="order",
            entity_id=order.id,
            old_status=status_before,
            new_status=new_status.value,
            user=actor,
            notes=f"Settlement of {total_tender:.2f} - remaining {remaining:.2f}",
        )

    try:
        db.flush()
    except StaleDataError:
        logger.warning("concurrent settlement detected order=%s", order.id)
        raise ConcurrentModification(f"Order {order.order_number} was modified concurrently")

    logger.info(
        "settlement applied order=%s paid=%s credit_applied=%s credit_generated=%s remaining=%s status=%s",
        order.id, payment_total, credit_applied, credit_generated, remaining, new_status.value,
    )

    return {
        "order_id": order.id,
        "order_number": order.order_number,
        "balance_before": balance_before,
        "adjusted_balance": adjusted,
        "discount_amount": breakdown["discount_amount"],
        "payments": tender,
        "payment_total": payment_total,
        "credit_applied": credit_applied,
        "consumed_credit_numbers": application["consumed_numbers"],
        "credit_generated": credit_generated,
        "generated_credit_number": generated_number,
        "remaining_balance": remaining,
        "status": new_status.value,
        "history_id": history.id,
    }
