from decimal import Decimal

import pytest
from sqlalchemy import text

from settlement.core.errors import (
    ConcurrentModification,
    InsufficientCreditRequested,
    InvalidPaymentAmount,
    MalformedSettlementRequest,
)
from settlement.models.order import SettlementHistory
from settlement.models.status_history import StatusHistory
from settlement.services.balance_calculator import DiscountSpec
from settlement.services.credit_ledger import available_total
from settlement.services.settlement_processor import apply_settlement, normalize_payments


def test_overpayment_becomes_credit(db, tenant, admin, make_order):
    order = make_order(100)

    outcome = apply_settlement(db, order, [{"method": "cash", "amount": "130"}], admin)

    assert order.status == "paid"
    assert order.remaining_balance == Decimal("0.00")
    assert order.amount_paid == Decimal("100.00")
    assert order.payment_date is not None
    assert outcome["credit_generated"] == Decimal("30.00")
    assert outcome["generated_credit_number"] == 1
    assert available_total(db, tenant.id, "C001") == Decimal("30.00")


def test_generated_credit_pays_next_order(db, tenant, admin, make_order):
    first = make_order(100)
    second = make_order(50)
    apply_settlement(db, first, [{"method": "cash", "amount": "130"}], admin)

    outcome = apply_settlement(
        db, second, [{"method": "pix", "amount": "20"}], admin, credit_amount=Decimal("30"),
    )

    assert outcome["credit_applied"] == Decimal("30.00")
    assert outcome["credit_generated"] == Decimal("0.00")
    assert second.status == "paid"
    assert available_total(db, tenant.id, "C001") == Decimal("0.00")


def test_credit_use_is_capped_at_balance(db, tenant, admin, make_order):
    first = make_order(100)
    second = make_order(50)
    apply_settlement(db, first, [{"method": "cash", "amount": "200"}], admin)

    outcome = apply_settlement(db, second, [], admin, credit_amount=Decimal("100"))

    assert outcome["credit_applied"] == Decimal("50.00")
    assert outcome["credit_generated"] == Decimal("0.00")
    assert available_total(db, tenant.id, "C001") == Decimal("50.00")


def test_percentage_discount_settles_in_full(db, admin, make_order):
    order = make_order(1000, discount_type="percentage", discount_value=10)

    outcome = apply_settlement(db, order, [{"method": "transfer", "amount": "900"}], admin)

    assert outcome["discount_amount"] == Decimal("100.00")
    assert order.status == "paid"
    assert order.remaining_balance == Decimal("0.00")


def test_partial_payment_then_completion(db, admin, make_order):
    order = make_order(500)

    apply_settlement(db, order, [{"method": "cash", "amount": "200"}], admin)
    assert order.status == "partial"
    assert order.remaining_balance == Decimal("300.00")

    apply_settlement(db, order, [{"method": "cash", "amount": "300"}], admin)
    assert order.status == "paid"
    assert order.amount_paid == Decimal("500.00")


def test_overrides_apply_discount_and_return(db, admin, make_order):
    order = make_order(1000)

    apply_settlement(
        db,
        order,
        [{"method": "cash", "amount": "700"}],
        admin,
        discount=DiscountSpec.parse("fixed", "200"),
        return_amount=Decimal("100"),
    )

    assert order.discount_value == Decimal("200.00")
    assert order.return_amount == Decimal("100.00")
    assert order.status == "paid"


def test_tender_rounding_within_tolerance_creates_no_credit(db, admin, make_order):
    order = make_order(Decimal("99.99"))

    outcome = apply_settlement(db, order, [{"method": "cash", "amount": "100.00"}], admin)

    assert outcome["credit_generated"] == Decimal("0.00")
    assert order.status == "paid"


def test_invalid_tender_is_refused(db, admin, make_order):
    order = make_order(100)
    with pytest.raises(InvalidPaymentAmount):
        apply_settlement(db, order, [{"method": "cash", "amount": "0"}], admin)
    with pytest.raises(InvalidPaymentAmount):
        apply_settlement(db, order, [{"method": "cash", "amount": "-5"}], admin)
    with pytest.raises(MalformedSettlementRequest):
        apply_settlement(db, order, [{"method": None, "amount": "50"}], admin)
    with pytest.raises(MalformedSettlementRequest):
        apply_settlement(db, None, [{"method": "cash", "amount": "50"}], admin)
    assert order.amount_paid == Decimal("0.00")


def test_insufficient_credit_is_refused(db, admin, make_order):
    order = make_order(100)
    with pytest.raises(InsufficientCreditRequested):
        apply_settlement(db, order, [{"method": "cash", "amount": "50"}], admin, credit_amount=Decimal("50"))


def test_normalize_skips_empty_lines():
    lines = normalize_payments([
        {"method": "cash", "amount": "10"},
        {"method": "", "amount": ""},
        {"method": "pix", "amount": "abc"},
    ])
    assert lines == [{"method": "cash", "amount": Decimal("10.00")}]


def test_history_and_status_trail(db, admin, make_order):
    order = make_order(100)

    outcome = apply_settlement(db, order, [{"method": "cash", "amount": "100"}], admin, note="Paid at counter")

    history = db.query(SettlementHistory).filter(SettlementHistory.id == outcome["history_id"]).one()
    assert history.balance_before == Decimal("100.00")
    assert history.balance_after == Decimal("0.00")
    assert history.status_before == "open"
    assert history.status_after == "paid"
    assert history.actor_email == admin.email
    assert history.payments == [{"method": "cash", "amount": "100.00"}]

    trail = db.query(StatusHistory).filter(
        StatusHistory.entity_type == "order", StatusHistory.entity_id == order.id
    ).all()
    assert [(t.old_status, t.new_status) for t in trail] == [("open", "paid")]


def test_stale_expected_version_is_refused(db, admin, make_order):
    order = make_order(100)

    with pytest.raises(ConcurrentModification):
        apply_settlement(
            db, order, [{"method": "cash", "amount": "10"}], admin, expected_version=order.version + 1,
        )


def test_concurrent_writer_is_detected_at_flush(db, admin, make_order):
    order = make_order(100)
    assert order.version == 1
    db.execute(text("UPDATE orders SET version = version + 1 WHERE id = :id"), {"id": order.id})

    with pytest.raises(ConcurrentModification):
        apply_settlement(db, order, [{"method": "cash", "amount": "10"}], admin)


def test_credit_only_on_settled_order_is_refused(db, tenant, admin, make_order):
    order = make_order(100)
    apply_settlement(db, order, [{"method": "cash", "amount": "150"}], admin)
    history_rows = db.query(SettlementHistory).count()

    with pytest.raises(InvalidPaymentAmount):
        apply_settlement(db, order, [], admin, credit_amount=Decimal("20"))

    assert db.query(SettlementHistory).count() == history_rows
    assert available_total(db, tenant.id, "C001") == Decimal("50.00")
