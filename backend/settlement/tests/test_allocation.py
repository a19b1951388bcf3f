from decimal import Decimal

import pytest

from settlement.core.errors import ApprovalPreconditionFailed
from settlement.services.allocation import (
    resolve_weights,
    split_amount,
    split_payments,
    weights_from_balances,
    weights_from_explicit,
)


def test_pro_rata_by_balance():
    weights = weights_from_balances([Decimal("100"), Decimal("300")])
    assert split_amount(Decimal("200"), weights) == [Decimal("50.00"), Decimal("150.00")]


def test_rounding_remainder_goes_to_last_order():
    weights = weights_from_balances([Decimal("1"), Decimal("1"), Decimal("1")])
    shares = split_amount(Decimal("100"), weights)
    assert shares == [Decimal("33.33"), Decimal("33.33"), Decimal("33.34")]
    assert sum(shares) == Decimal("100.00")


def test_zero_balances_split_evenly():
    weights = weights_from_balances([Decimal("0"), Decimal("0")])
    assert split_amount(Decimal("10"), weights) == [Decimal("5.00"), Decimal("5.00")]


def test_each_payment_method_is_split():
    weights = weights_from_balances([Decimal("100"), Decimal("100")])
    per_order = split_payments(
        [{"method": "cash", "amount": Decimal("50")}, {"method": "pix", "amount": Decimal("0.01")}],
        weights,
    )
    assert per_order[0] == [{"method": "cash", "amount": Decimal("25.00")}]
    assert per_order[1] == [
        {"method": "cash", "amount": Decimal("25.00")},
        {"method": "pix", "amount": Decimal("0.01")},
    ]


def test_explicit_split_must_match_payment_total():
    with pytest.raises(ApprovalPreconditionFailed):
        weights_from_explicit([1, 2], {1: "50", 2: "40"}, Decimal("100"))


def test_explicit_split_cannot_name_other_orders():
    with pytest.raises(ApprovalPreconditionFailed):
        weights_from_explicit([1, 2], {1: "50", 3: "50"}, Decimal("100"))


def test_explicit_split_overrides_balances():
    weights = resolve_weights([1, 2], [Decimal("100"), Decimal("100")], Decimal("100"), {"1": "80", "2": "20"})
    assert split_amount(Decimal("100"), weights) == [Decimal("80.00"), Decimal("20.00")]


def test_exact_payment_reproduces_each_balance():
    balances = [Decimal("10.00"), Decimal("10.00"), Decimal("10.01")]
    shares = split_amount(Decimal("30.01"), weights_from_balances(balances))
    assert shares == balances

    balances = [Decimal("10.00"), Decimal("20.01")]
    assert split_amount(Decimal("30.01"), weights_from_balances(balances)) == balances


def test_leftover_cents_follow_largest_remainder():
    weights = weights_from_balances([Decimal("2"), Decimal("1")])
    # 0.6667 / 0.3333: the missing cent belongs to the first order
    assert split_amount(Decimal("1.00"), weights) == [Decimal("0.67"), Decimal("0.33")]
