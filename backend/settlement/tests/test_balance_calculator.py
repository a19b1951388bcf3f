from decimal import Decimal

from settlement.models.enums import DiscountType, OrderStatus
from settlement.services.balance_calculator import (
    DiscountSpec,
    apply_discount_cascade,
    compute_balance,
    derive_status,
    parse_cascade,
)


def test_percentage_discount_on_gross():
    result = compute_balance(1000, DiscountSpec(DiscountType.percentage, Decimal("10")))
    assert result["discount_amount"] == Decimal("100.00")
    assert result["adjusted_balance"] == Decimal("900.00")


def test_all_reductions_are_subtracted():
    result = compute_balance(
        "1000.00",
        DiscountSpec.parse("percentage", "10"),
        return_amount="50",
        deposits=[Decimal("60"), "40"],
        cumulative_paid=Decimal("200"),
    )
    assert result["total_deposits"] == Decimal("100.00")
    assert result["adjusted_balance"] == Decimal("550.00")


def test_balance_never_negative():
    result = compute_balance(100, cumulative_paid=150)
    assert result["adjusted_balance"] == Decimal("0.00")


def test_malformed_numbers_count_as_zero():
    result = compute_balance("abc", DiscountSpec.parse("bogus", ""), return_amount=None, deposits=["x", None])
    assert result["discount_amount"] == Decimal("0.00")
    assert result["adjusted_balance"] == Decimal("0.00")
    assert compute_balance("1.234,5")["adjusted_balance"] == Decimal("0.00")
    assert compute_balance("150,50")["adjusted_balance"] == Decimal("150.50")


def test_same_snapshot_same_result():
    args = (Decimal("812.40"), DiscountSpec.parse("fixed", "12.40"), Decimal("100"), [Decimal("50")], Decimal("0"))
    assert compute_balance(*args) == compute_balance(*args)


def test_discount_cascade_applies_on_running_value():
    cascade = [
        {"type": "percentage", "value": "10"},
        {"type": "fixed", "value": "50"},
        {"type": "percentage", "value": "10"},
    ]
    # 1000 -> 900 -> 850 -> 765
    assert apply_discount_cascade(Decimal("1000"), cascade) == Decimal("235.00")


def test_discount_cascade_capped_at_base():
    assert apply_discount_cascade(100, [{"type": "fixed", "value": "150"}]) == Decimal("100.00")
    assert apply_discount_cascade(100, []) == Decimal("0.00")


def test_parse_cascade_drops_empty_entries():
    parsed = parse_cascade([
        {"type": "percentage", "value": "5"},
        {"type": "fixed", "value": ""},
        {"type": "unknown", "value": "3"},
    ])
    assert parsed == [
        {"type": "percentage", "value": "5.00"},
        {"type": "fixed", "value": "3.00"},
    ]


def test_derive_status():
    assert derive_status(Decimal("0"), Decimal("0"), False) == OrderStatus.paid
    assert derive_status(Decimal("10"), Decimal("5"), False) == OrderStatus.partial
    assert derive_status(Decimal("10"), Decimal("0"), True) == OrderStatus.partial
    assert derive_status(Decimal("10"), Decimal("0"), False) == OrderStatus.open
