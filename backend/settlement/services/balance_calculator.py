"""
Cálculo del saldo restante de un pedido.

Funciones puras: no tocan la sesión ni modifican el pedido recibido.
Cualquier valor numérico inválido (None, "", "abc") se trata como 0.
"""
from decimal import Decimal
from typing import Iterable, List, NamedTuple, Optional, TypedDict

from settlement.core.serialization_helpers import money, to_decimal
from settlement.models.enums import DiscountType, OrderStatus


ZERO = Decimal("0.00")


class DiscountSpec(NamedTuple):
    type: DiscountType
    value: Decimal

    @classmethod
    def parse(cls, type_, value) -> "DiscountSpec":
        try:
            discount_type = DiscountType(type_ or DiscountType.fixed)
        except ValueError:
            discount_type = DiscountType.fixed
        return cls(discount_type, to_decimal(value))

    @classmethod
    def none(cls) -> "DiscountSpec":
        return cls(DiscountType.fixed, ZERO)


class BalanceBreakdown(TypedDict):
    """Structure returned by compute_balance."""
    discount_amount: Decimal
    adjusted_balance: Decimal
    total_deposits: Decimal


def discount_amount_for(gross_value, discount: Optional[DiscountSpec]) -> Decimal:
    if discount is None:
        return ZERO
    gross = to_decimal(gross_value)
    value = to_decimal(discount.value)
    if discount.type == DiscountType.percentage:
        return money(gross * value / Decimal("100"))
    return value


def compute_balance(
    gross_value,
    discount: Optional[DiscountSpec] = None,
    return_amount=None,
    deposits: Iterable = (),
    cumulative_paid=None,
) -> BalanceBreakdown:
    """
    Saldo ajustado = max(0, bruto - descuento - devolución - sinais - pagado).

    Args:
        gross_value: Valor bruto del pedido
        discount: Descuento fijo o porcentual (opcional)
        return_amount: Monto devuelto por el cliente
        deposits: Montos de los sinais registrados
        cumulative_paid: Total ya pagado en liquidaciones previas
    """
    gross = to_decimal(gross_value)
    discount_amount = discount_amount_for(gross, discount)
    total_deposits = money(sum((to_decimal(d) for d in deposits), ZERO))
    adjusted = gross - discount_amount - to_decimal(return_amount) - total_deposits - to_decimal(cumulative_paid)

    return {
        "discount_amount": discount_amount,
        "adjusted_balance": max(ZERO, money(adjusted)),
        "total_deposits": total_deposits,
    }


def order_discount(order) -> DiscountSpec:
    return DiscountSpec.parse(order.discount_type, order.discount_value)


def balance_for_order(
    order,
    discount: Optional[DiscountSpec] = None,
    return_amount=None,
) -> BalanceBreakdown:
    """Runs compute_balance over an order snapshot, with optional overrides."""
    return compute_balance(
        order.gross_value,
        discount if discount is not None else order_discount(order),
        order.return_amount if return_amount is None else return_amount,
        [d.amount for d in order.deposits],
        order.amount_paid,
    )


def apply_discount_cascade(base, cascade: Iterable) -> Decimal:
    """
    Aplica descuentos en secuencia sobre el valor corriente.

    Cada entrada es {"type": "fixed" | "percentage", "value": ...}. Un
    porcentaje se calcula sobre lo que queda después de los anteriores.
    El descuento total nunca supera la base.
    """
    base_value = to_decimal(base)
    running = base_value
    for entry in cascade or []:
        spec = DiscountSpec.parse(entry.get("type"), entry.get("value"))
        running = max(ZERO, running - discount_amount_for(running, spec))
    return money(base_value - running)


def parse_cascade(cascade: Iterable) -> List[dict]:
    """Normaliza la cascada para guardarla en una columna JSON"""
    result = []
    for entry in cascade or []:
        spec = DiscountSpec.parse(entry.get("type"), entry.get("value"))
        if spec.value > ZERO:
            result.append({"type": spec.type.value, "value": str(spec.value)})
    return result


def derive_status(remaining, amount_paid, has_deposits: bool) -> OrderStatus:
    if to_decimal(remaining) <= ZERO:
        return OrderStatus.paid
    if to_decimal(amount_paid) > ZERO or has_deposits:
        return OrderStatus.partial
    return OrderStatus.open
