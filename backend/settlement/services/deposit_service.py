"""
Sub-ledger de sinais (pagos anticipados) por pedido.
"""
import logging
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from settlement.core.errors import (
    DepositExceedsOrderValue,
    DepositLocked,
    InvalidPaymentAmount,
    MalformedSettlementRequest,
)
from settlement.core.serialization_helpers import money, to_decimal
from settlement.models.enums import OrderStatus, PaymentMethod
from settlement.models.order import Deposit, Order
from settlement.models.tenant import utcnow
from settlement.services.balance_calculator import balance_for_order, derive_status, discount_amount_for, order_discount


logger = logging.getLogger(__name__)


def parse_method(method) -> PaymentMethod:
    if not method:
        raise MalformedSettlementRequest("Payment method is required")
    try:
        return PaymentMethod(method)
    except ValueError:
        raise MalformedSettlementRequest(f"Unknown payment method: {method}")


def total_deposits(order: Order) -> Decimal:
    return money(sum((to_decimal(d.amount) for d in order.deposits), Decimal("0")))


def refresh_order_balance(order: Order) -> None:
    """Recalcula remaining_balance y status tras cambiar los sinais"""
    breakdown = balance_for_order(order)
    order.remaining_balance = breakdown["adjusted_balance"]
    if order.status == OrderStatus.awaiting_confirmation.value:
        return
    status = derive_status(order.remaining_balance, order.amount_paid, bool(order.deposits))
    order.status = status.value
    if status == OrderStatus.paid:
        now = utcnow()
        order.payment_date = now
        consume_deposits(order, now)


def _ensure_editable(order: Order) -> None:
    if order.status == OrderStatus.paid.value:
        raise DepositLocked(f"Order {order.order_number} is paid; deposits are locked")


def list_deposits(order: Order) -> List[Deposit]:
    return list(order.deposits)


def add_deposit(
    db: Session,
    order: Order,
    method,
    amount,
    proof_ref: Optional[str] = None,
    confirm_excess: bool = False,
    user_id: Optional[int] = None,
) -> Deposit:
    """
    Registra un sinal. Si la suma de sinais supera bruto - descuento se
    exige confirm_excess=True (límite suave, no rechazo definitivo).
    """
    _ensure_editable(order)
    payment_method = parse_method(method)
    value = to_decimal(amount)
    if value <= Decimal("0"):
        raise InvalidPaymentAmount("Deposit amount must be positive")

    limit = to_decimal(order.gross_value) - discount_amount_for(order.gross_value, order_discount(order))
    new_total = total_deposits(order) + value
    if new_total > limit and not confirm_excess:
        logger.warning(
            "deposit over limit order=%s total=%s limit=%s", order.id, new_total, limit
        )
        raise DepositExceedsOrderValue(
            f"Deposits would total {new_total}, above the order value {limit}; confirmation required"
        )

    deposit = Deposit(
        tenant_id=order.tenant_id,
        payment_method=payment_method.value,
        amount=value,
        proof_ref=proof_ref or None,
        consumed=False,
        user_id=user_id,
    )
    order.deposits.append(deposit)
    refresh_order_balance(order)
    db.flush()
    logger.info("deposit added order=%s method=%s amount=%s", order.id, payment_method.value, value)
    return deposit


def remove_deposit(db: Session, order: Order, deposit_id: int) -> None:
    _ensure_editable(order)
    deposit = next((d for d in order.deposits if d.id == deposit_id), None)
    if deposit is None:
        raise MalformedSettlementRequest(f"Deposit {deposit_id} not found on order {order.id}")
    if deposit.consumed:
        raise DepositLocked(f"Deposit {deposit_id} was already consumed")
    order.deposits.remove(deposit)
    refresh_order_balance(order)
    db.flush()
    logger.info("deposit removed order=%s deposit=%s", order.id, deposit_id)


def consume_deposits(order: Order, when) -> None:
    for deposit in order.deposits:
        if not deposit.consumed:
            deposit.consumed = True
            deposit.consumed_at = when
