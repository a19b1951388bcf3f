"""
Reparto de un pago único entre varios pedidos.

Regla por defecto: prorrateo por el saldo ajustado de cada pedido (partes
iguales si el total es 0). Los pesos son montos sin normalizar; cada parte se
calcula como monto * peso / suma de pesos y los centavos que faltan se
asignan por mayor residuo (en empate, al pedido más reciente). Así un lote
pagado exacto deja cada parte igual a su saldo.

Alternativa: reparto explícito del revisor ({order_id: monto}), que debe
sumar el total de pagos.
"""
from decimal import Decimal, ROUND_DOWN
from typing import Dict, List, Mapping, Optional, Sequence

from settlement.core.errors import ApprovalPreconditionFailed
from settlement.core.serialization_helpers import CENT, money, to_decimal


ZERO = Decimal("0.00")


def weights_from_balances(balances: Sequence[Decimal]) -> List[Decimal]:
    """Pesos proporcionales a cada saldo; iguales si no hay saldo"""
    weights = [max(to_decimal(b), ZERO) for b in balances]
    if sum(weights, ZERO) <= ZERO:
        return [Decimal(1)] * len(weights)
    return weights


def split_amount(amount, weights: Sequence[Decimal]) -> List[Decimal]:
    """Divide un monto según los pesos por mayor residuo; la suma cuadra exacta"""
    value = money(to_decimal(amount))
    if not weights:
        return []
    total = sum(weights, ZERO)
    if total <= ZERO:
        weights = [Decimal(1)] * len(weights)
        total = Decimal(len(weights))
    exact = [value * w / total for w in weights]
    shares = [e.quantize(CENT, rounding=ROUND_DOWN) for e in exact]
    leftover = int((value - sum(shares, ZERO)) / CENT)
    ranking = sorted(range(len(shares)), key=lambda i: (exact[i] - shares[i], i), reverse=True)
    for index in ranking[:leftover]:
        shares[index] += CENT
    return shares


def split_payments(payments: Sequence[dict], weights: Sequence[Decimal]) -> List[List[dict]]:
    """
    Reparte cada línea {method, amount} entre los pedidos.

    Returns:
        Una lista de pagos por pedido, en el mismo orden que los pesos
    """
    per_order: List[List[dict]] = [[] for _ in weights]
    for payment in payments:
        for index, share in enumerate(split_amount(payment["amount"], weights)):
            if share > ZERO:
                per_order[index].append({"method": payment["method"], "amount": share})
    return per_order


def weights_from_explicit(
    order_ids: Sequence[int],
    allocations: Mapping,
    payment_total: Decimal,
) -> List[Decimal]:
    """
    Convierte el reparto del revisor en pesos.

    Raises:
        ApprovalPreconditionFailed: pedidos que no están en el lote, montos
            negativos o suma distinta del total de pagos
    """
    explicit: Dict[int, Decimal] = {int(k): to_decimal(v) for k, v in allocations.items()}
    unknown = set(explicit) - set(order_ids)
    if unknown:
        raise ApprovalPreconditionFailed(f"Allocation references orders outside the batch: {sorted(unknown)}")
    if any(v < ZERO for v in explicit.values()):
        raise ApprovalPreconditionFailed("Allocation amounts cannot be negative")
    allocated = money(sum(explicit.values(), ZERO))
    if abs(allocated - payment_total) > CENT:
        raise ApprovalPreconditionFailed(
            f"Allocation total {allocated} does not match payment total {payment_total}"
        )
    if allocated <= ZERO:
        return weights_from_balances([ZERO] * len(order_ids))
    return [explicit.get(order_id, ZERO) for order_id in order_ids]


def resolve_weights(
    order_ids: Sequence[int],
    balances: Sequence[Decimal],
    payment_total: Decimal,
    allocations: Optional[Mapping] = None,
) -> List[Decimal]:
    if allocations:
        return weights_from_explicit(order_ids, allocations, payment_total)
    return weights_from_balances(balances)
