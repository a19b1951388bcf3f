from decimal import Decimal

import pytest

from settlement.core.errors import MalformedSettlementRequest, SettlementRecordImmutable
from settlement.core.serialization_helpers import to_decimal
from settlement.models.credit import Credit
from settlement.models.order import SettlementHistory
from settlement.services.settlement_record_service import get_record, list_records
from settlement.services.settlement_service import load_orders, settle_batch, settle_order


def test_direct_settlement_produces_record(db, tenant, admin, make_order):
    order = make_order(100)

    record, outcome = settle_order(db, order, [{"method": "cash", "amount": "130"}], admin, attachments=["proof.pdf"])

    assert record.record_number == "BOR-000001"
    assert record.kind == "direct"
    assert record.order_ids == [order.id]
    assert record.total_paid == Decimal("130.00")
    assert record.credit_generated == Decimal("30.00")
    assert record.attachments == ["proof.pdf"]
    history = db.query(SettlementHistory).filter(SettlementHistory.id == outcome["history_id"]).one()
    assert history.settlement_record_id == record.id


def test_record_cannot_be_updated(db, tenant, admin, make_order):
    order = make_order(100)
    record, _ = settle_order(db, order, [{"method": "cash", "amount": "100"}], admin)
    db.commit()
    assert record.total_paid == Decimal("100.00")

    record.total_paid = Decimal("1.00")
    with pytest.raises(SettlementRecordImmutable):
        db.flush()
    db.rollback()

    assert get_record(db, tenant.id, record.id).total_paid == Decimal("100.00")


def test_batch_splits_payment_pro_rata(db, tenant, admin, make_order):
    small = make_order(100)
    large = make_order(300)

    record, outcomes = settle_batch(
        db,
        tenant.id,
        load_orders(db, tenant.id, [small.id, large.id]),
        [{"method": "cash", "amount": "200"}],
        admin,
    )

    assert [o["payment_total"] for o in outcomes] == [Decimal("50.00"), Decimal("150.00")]
    assert small.remaining_balance == Decimal("50.00")
    assert large.remaining_balance == Decimal("150.00")
    assert record.total_paid == Decimal("200.00")
    assert [a["payment_total"] for a in record.allocations] == ["50.00", "150.00"]


def test_batch_cascade_discount_and_full_payment(db, tenant, admin, make_order):
    small = make_order(100)
    large = make_order(300)

    record, _ = settle_batch(
        db,
        tenant.id,
        [small, large],
        [{"method": "pix", "amount": "360"}],
        admin,
        discount_cascade=[{"type": "percentage", "value": "10"}],
    )

    assert record.discount_total == Decimal("40.00")
    assert small.discount_value == Decimal("10.00")
    assert large.discount_value == Decimal("30.00")
    assert small.status == "paid" and large.status == "paid"


def test_batch_refuses_mixed_customers(db, tenant, admin, make_order):
    first = make_order(100, customer_code="C001")
    second = make_order(100, customer_code="C002")

    with pytest.raises(MalformedSettlementRequest):
        settle_batch(db, tenant.id, [first, second], [{"method": "cash", "amount": "50"}], admin)


def test_load_orders_rejects_missing_and_duplicates(db, tenant, make_order):
    order = make_order(100)
    with pytest.raises(MalformedSettlementRequest):
        load_orders(db, tenant.id, [order.id, order.id])
    with pytest.raises(MalformedSettlementRequest):
        load_orders(db, tenant.id, [order.id, 999])
    with pytest.raises(MalformedSettlementRequest):
        load_orders(db, tenant.id, [])


def test_records_filtered_by_order(db, tenant, admin, make_order):
    first = make_order(100)
    second = make_order(100)
    settle_order(db, first, [{"method": "cash", "amount": "100"}], admin)
    settle_order(db, second, [{"method": "cash", "amount": "40"}], admin)

    records = list_records(db, tenant.id, order_id=second.id)
    assert len(records) == 1
    assert records[0].order_ids == [second.id]
    assert len(list_records(db, tenant.id, customer_code="C001")) == 2


def test_batch_paid_exactly_settles_every_order(db, tenant, admin, make_order):
    orders = [make_order("10.00"), make_order("10.00"), make_order("10.01")]

    record, outcomes = settle_batch(db, tenant.id, orders, [{"method": "pix", "amount": "30.01"}], admin)

    assert [o["payment_total"] for o in outcomes] == [Decimal("10.00"), Decimal("10.00"), Decimal("10.01")]
    assert [o.status for o in orders] == ["paid", "paid", "paid"]
    assert all(o.remaining_balance == Decimal("0.00") for o in orders)
    assert record.credit_generated == Decimal("0.00")
    assert db.query(Credit).count() == 0


def test_record_totals_only_count_orders_settled(db, tenant, admin, make_order):
    first = make_order(100)
    second = make_order(100)

    # 0.01 lands on the second order only; the first is left out of the batch
    record, outcomes = settle_batch(
        db, tenant.id, [first, second], [{"method": "cash", "amount": "0.01"}], admin, return_amount="10",
    )

    assert [o["order_id"] for o in outcomes] == [second.id]
    assert record.return_total == Decimal("5.00")
    assert to_decimal(first.return_amount) == Decimal("0.00")
    assert second.return_amount == Decimal("5.00")
