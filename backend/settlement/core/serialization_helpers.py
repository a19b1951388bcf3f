"""
Helpers genéricos de serialización y conversión numérica.
NO contiene lógica de negocio, solo utilidades de formato.
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

CENT = Decimal("0.01")


def to_decimal(value) -> Decimal:
    """Convierte a Decimal con 2 decimales; valores vacíos o inválidos valen 0"""
    if value is None or isinstance(value, bool):
        return Decimal("0.00")
    if isinstance(value, str):
        value = value.strip().replace(",", ".")
        if not value:
            return Decimal("0.00")
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return Decimal("0.00")
    if not result.is_finite():
        return Decimal("0.00")
    return result.quantize(CENT, rounding=ROUND_HALF_UP)


def money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def serialize_decimal(value):
    """Convierte Decimal a float para serialización JSON"""
    if value is None:
        return None
    return float(value)


def serialize_datetime(value):
    """Convierte datetime a string ISO para serialización JSON"""
    if value is None:
        return None
    return value.isoformat()


def serialize_payments(payments) -> list:
    """Normaliza una lista de pagos {method, amount} para columnas JSON"""
    return [
        {"method": p["method"], "amount": str(to_decimal(p["amount"]))}
        for p in payments or []
    ]
