from decimal import Decimal

import pytest

from settlement.core.errors import DepositExceedsOrderValue, DepositLocked, MalformedSettlementRequest
from settlement.services.deposit_service import add_deposit, remove_deposit
from settlement.services.settlement_processor import apply_settlement


def test_deposit_reduces_balance(db, make_order):
    order = make_order(1000)

    add_deposit(db, order, "pix", Decimal("300"))

    assert order.remaining_balance == Decimal("700.00")
    assert order.status == "partial"


def test_deposit_above_order_value_needs_confirmation(db, make_order):
    order = make_order(1000, discount_type="percentage", discount_value=10)
    add_deposit(db, order, "cash", Decimal("500"))

    with pytest.raises(DepositExceedsOrderValue):
        add_deposit(db, order, "cash", Decimal("450"))

    add_deposit(db, order, "cash", Decimal("450"), confirm_excess=True)
    assert len(order.deposits) == 2
    assert order.remaining_balance == Decimal("0.00")


def test_unknown_method_is_malformed(db, make_order):
    order = make_order(100)
    with pytest.raises(MalformedSettlementRequest):
        add_deposit(db, order, "barter", Decimal("10"))
    with pytest.raises(MalformedSettlementRequest):
        add_deposit(db, order, "", Decimal("10"))


def test_remove_deposit_restores_balance(db, make_order):
    order = make_order(400)
    deposit = add_deposit(db, order, "transfer", Decimal("150"))

    remove_deposit(db, order, deposit.id)

    assert order.deposits == []
    assert order.remaining_balance == Decimal("400.00")
    assert order.status == "open"


def test_settlement_to_paid_consumes_and_locks_deposits(db, admin, make_order):
    order = make_order(1000)
    deposit = add_deposit(db, order, "pix", Decimal("300"))

    apply_settlement(db, order, [{"method": "cash", "amount": "700"}], admin)

    assert order.status == "paid"
    assert deposit.consumed is True
    assert deposit.consumed_at is not None
    with pytest.raises(DepositLocked):
        add_deposit(db, order, "cash", Decimal("10"))
    with pytest.raises(DepositLocked):
        remove_deposit(db, order, deposit.id)


def test_deposit_covering_order_marks_it_paid(db, make_order):
    order = make_order(100)

    add_deposit(db, order, "cash", Decimal("100"))

    assert order.status == "paid"
    assert order.payment_date is not None
    assert [d.consumed for d in order.deposits] == [True]
    assert order.deposits[0].consumed_at is not None
    with pytest.raises(DepositLocked):
        remove_deposit(db, order, order.deposits[0].id)
