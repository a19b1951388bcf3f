"""
Liquidación directa (uno o varios pedidos) y ejecución de lotes aprobados.

Cada lote corre dentro de la transacción del caller: si un pedido falla, la
excepción sube y el caller hace rollback de todo el lote.
"""
import logging
from decimal import Decimal
from typing import Iterable, List, Mapping, Optional, Sequence, Tuple, TypedDict

from sqlalchemy.orm import Session

from settlement.core.errors import InsufficientCreditRequested, InvalidPaymentAmount, MalformedSettlementRequest
from settlement.core.serialization_helpers import money, to_decimal
from settlement.models.enums import DiscountType, RecordKind
from settlement.models.order import Order
from settlement.models.settlement_record import SettlementRecord
from settlement.models.user import User
from settlement.services.allocation import resolve_weights, split_amount, split_payments
from settlement.services.balance_calculator import (
    DiscountSpec,
    apply_discount_cascade,
    balance_for_order,
)
from settlement.services.credit_ledger import available_total
from settlement.services.settlement_processor import (
    SettlementOutcome,
    apply_settlement,
    normalize_payments,
    payments_total,
)
from settlement.services.settlement_record_service import create_record


logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


class BatchPlan(TypedDict):
    """Per-order shares computed before anything is applied."""
    order: Order
    balance: Decimal
    payments: List[dict]
    credit: Decimal
    discount: Decimal
    return_amount: Decimal


def load_orders(db: Session, tenant_id: int, order_ids: Iterable[int]) -> List[Order]:
    """Carga los pedidos en el orden pedido; ids repetidos o inexistentes son error"""
    ids = [int(i) for i in order_ids or []]
    if not ids:
        raise MalformedSettlementRequest("At least one order is required")
    if len(set(ids)) != len(ids):
        raise MalformedSettlementRequest("Duplicated order in request")
    found = {
        o.id: o
        for o in db.query(Order).filter(Order.tenant_id == tenant_id, Order.id.in_(ids)).all()
    }
    missing = [i for i in ids if i not in found]
    if missing:
        raise MalformedSettlementRequest(f"Orders not found: {missing}")
    return [found[i] for i in ids]


def single_customer(orders: Sequence[Order]) -> Tuple[str, Optional[str]]:
    codes = {o.customer_code for o in orders}
    if len(codes) != 1:
        raise MalformedSettlementRequest("All orders in a settlement must belong to the same customer")
    first = orders[0]
    return first.customer_code, first.customer_name


def plan_batch(
    orders: Sequence[Order],
    tender: Sequence[dict],
    credit_amount: Decimal,
    discount_total: Decimal,
    return_total: Decimal,
    allocations: Optional[Mapping] = None,
) -> List[BatchPlan]:
    balances = [balance_for_order(o)["adjusted_balance"] for o in orders]
    weights = resolve_weights([o.id for o in orders], balances, payments_total(tender), allocations)
    payment_shares = split_payments(tender, weights)
    credit_shares = split_amount(credit_amount, weights)
    discount_shares = split_amount(discount_total, weights)
    return_shares = split_amount(return_total, weights)
    return [
        {
            "order": order,
            "balance": balance,
            "payments": payment_shares[i],
            "credit": credit_shares[i],
            "discount": discount_shares[i],
            "return_amount": return_shares[i],
        }
        for i, (order, balance) in enumerate(zip(orders, balances))
    ]


def _discount_override(order: Order, share: Decimal) -> Optional[DiscountSpec]:
    if share <= ZERO:
        return None
    current = balance_for_order(order)["discount_amount"]
    return DiscountSpec(DiscountType.fixed, money(current + share))


def _return_override(order: Order, share: Decimal) -> Optional[Decimal]:
    if share <= ZERO:
        return None
    return money(to_decimal(order.return_amount) + share)


def settle_batch(
    db: Session,
    tenant_id: int,
    orders: Sequence[Order],
    payments: Iterable,
    actor: Optional[User],
    kind: RecordKind = RecordKind.direct,
    discount_cascade: Optional[Sequence[dict]] = None,
    return_amount=None,
    credit_amount=None,
    allocations: Optional[Mapping] = None,
    attachments: Optional[Sequence[str]] = None,
    allow_partial_credit: bool = False,
    expected_versions: Optional[Mapping] = None,
    pending_settlement_id: Optional[int] = None,
    note: Optional[str] = None,
) -> Tuple[SettlementRecord, List[SettlementOutcome]]:
    """
    Liquida varios pedidos de un mismo cliente con un único desglose de pago.

    El descuento en cascada se calcula sobre el total original del lote; el
    descuento, la devolución, el crédito y cada forma de pago se reparten con
    los mismos pesos (prorrateo por saldo o reparto explícito).

    Returns:
        (borderô, resultado por pedido)
    """
    if not orders:
        raise MalformedSettlementRequest("At least one order is required")
    customer_code, customer_name = single_customer(orders)

    tender = normalize_payments(payments)
    requested_credit = to_decimal(credit_amount)
    if requested_credit < ZERO:
        raise InvalidPaymentAmount("Credit amount cannot be negative")
    if payments_total(tender) + requested_credit <= ZERO:
        raise InvalidPaymentAmount("Total tender must be positive")

    # Se valida contra el total del lote, no pedido a pedido
    if requested_credit > ZERO:
        available = available_total(db, tenant_id, customer_code)
        if requested_credit > available:
            if not allow_partial_credit:
                raise InsufficientCreditRequested(requested_credit, available)
            requested_credit = available

    original_total = money(sum((balance_for_order(o)["adjusted_balance"] for o in orders), ZERO))
    discount_total = apply_discount_cascade(original_total, discount_cascade or [])
    return_total = to_decimal(return_amount)

    plan = plan_batch(orders, tender, requested_credit, discount_total, return_total, allocations)
    versions = {int(k): int(v) for k, v in (expected_versions or {}).items()}

    outcomes: List[SettlementOutcome] = []
    applied_plan: List[BatchPlan] = []
    for item in plan:
        order = item["order"]
        if payments_total(item["payments"]) + item["credit"] <= ZERO:
            # Reparto explícito en 0 para este pedido: queda fuera del lote
            continue
        outcomes.append(apply_settlement(
            db,
            order,
            item["payments"],
            actor,
            credit_amount=item["credit"],
            discount=_discount_override(order, item["discount"]),
            return_amount=_return_override(order, item["return_amount"]),
            allow_partial_credit=allow_partial_credit,
            expected_version=versions.get(order.id),
            note=note,
        ))
        applied_plan.append(item)

    if not outcomes:
        raise InvalidPaymentAmount("No order received a positive share of the payment")

    record = create_record(
        db,
        tenant_id,
        kind,
        customer_code,
        customer_name,
        tender,
        outcomes,
        original_total=original_total,
        discount_total=money(sum((p["discount"] for p in applied_plan), ZERO)),
        return_total=money(sum((p["return_amount"] for p in applied_plan), ZERO)),
        operator=actor,
        attachments=attachments,
        discount_shares=[p["discount"] for p in applied_plan],
        return_shares=[p["return_amount"] for p in applied_plan],
        pending_settlement_id=pending_settlement_id,
    )
    logger.info(
        "batch settled tenant=%s record=%s kind=%s orders=%s paid=%s",
        tenant_id, record.record_number, kind.value, [o["order_id"] for o in outcomes], record.total_paid,
    )
    return record, outcomes


def settle_order(
    db: Session,
    order: Optional[Order],
    payments: Iterable,
    actor: Optional[User],
    credit_amount=None,
    discount: Optional[DiscountSpec] = None,
    return_amount=None,
    allow_partial_credit: bool = False,
    expected_version: Optional[int] = None,
    attachments: Optional[Sequence[str]] = None,
    note: Optional[str] = None,
) -> Tuple[SettlementRecord, SettlementOutcome]:
    """Liquidación directa de un pedido con su borderô"""
    if order is None:
        raise MalformedSettlementRequest("Order reference is required")
    original_total = balance_for_order(order)["adjusted_balance"]
    outcome = apply_settlement(
        db,
        order,
        payments,
        actor,
        credit_amount=credit_amount,
        discount=discount,
        return_amount=return_amount,
        allow_partial_credit=allow_partial_credit,
        expected_version=expected_version,
        note=note,
    )
    record = create_record(
        db,
        order.tenant_id,
        RecordKind.direct,
        order.customer_code,
        order.customer_name,
        outcome["payments"],
        [outcome],
        original_total=original_total,
        discount_total=outcome["discount_amount"],
        return_total=to_decimal(order.return_amount),
        operator=actor,
        attachments=attachments,
    )
    return record, outcome
