from __future__ import annotations

from typing import Optional

from sqlalchemy.orm import Session

from settlement.models.customer import Customer
from settlement.models.tenant import utcnow


def _normalize_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    cleaned = value.strip()
    return cleaned or None


def upsert_customer(
    db: Session,
    tenant_id: int,
    code: Optional[str],
    name: Optional[str],
) -> Optional[Customer]:
    """
    Ensure there is a Customer record for the given tenant/code.
    - Code is the grouping key for orders, credits and settlements (unique per tenant).
    - A new non-empty name replaces the stored one.
    """
    normalized_code = _normalize_text(code)
    normalized_name = _normalize_text(name)

    if not normalized_code:
        return None

    customer = db.query(Customer).filter(
        Customer.tenant_id == tenant_id,
        Customer.code == normalized_code,
    ).first()

    if customer:
        if normalized_name and customer.name != normalized_name:
            customer.name = normalized_name
            customer.updated_at = utcnow()
        return customer

    customer = Customer(
        tenant_id=tenant_id,
        code=normalized_code,
        name=normalized_name or normalized_code,
    )
    db.add(customer)
    return customer

