from decimal import Decimal

import pytest
from sqlalchemy import text

from settlement.core.errors import (
    ApprovalPreconditionFailed,
    AttachmentRequired,
    ConcurrentModification,
    InvalidPaymentAmount,
    InvalidStateTransition,
    MalformedSettlementRequest,
    RejectionReasonRequired,
)
from settlement.models.credit import Credit
from settlement.models.notification import Notification
from settlement.models.settlement_record import SettlementRecord
from settlement.models.status_history import StatusHistory
from settlement.services.pending_settlement_service import (
    approve_request,
    list_requests,
    reject_request,
    submit_request,
    update_request,
)


def _submit(db, tenant, representative, orders, amount, **kwargs):
    kwargs.setdefault("attachments", ["receipt-001.jpg"])
    return submit_request(
        db,
        tenant.id,
        [o.id for o in orders],
        [{"method": "pix", "amount": str(amount)}],
        submitter=representative,
        **kwargs,
    )


def test_submit_leaves_ledger_untouched(db, tenant, admin, representative, make_order):
    first = make_order(100)
    second = make_order(300)

    request = _submit(db, tenant, representative, [first, second], 400)

    assert request.status == "pending"
    assert request.request_number == 1
    assert request.original_total == Decimal("400.00")
    assert request.proposed_total_paid == Decimal("400.00")
    assert request.submitter_type == "representative"
    assert first.amount_paid == Decimal("0.00") and first.status == "open"
    assert db.query(Credit).count() == 0
    assert db.query(SettlementRecord).count() == 0

    notifications = db.query(Notification).all()
    assert [n.user_id for n in notifications] == [admin.id]
    assert notifications[0].entity_id == request.id


def test_submit_requires_attachment(db, tenant, representative, make_order):
    order = make_order(100)
    with pytest.raises(AttachmentRequired):
        _submit(db, tenant, representative, [order], 100, attachments=[])


def test_submit_requires_positive_payment(db, tenant, representative, make_order):
    order = make_order(100)
    with pytest.raises(InvalidPaymentAmount):
        _submit(db, tenant, representative, [order], 0)


def test_submit_requires_single_customer(db, tenant, admin, make_order):
    first = make_order(100, customer_code="C001")
    second = make_order(100, customer_code="C002")
    with pytest.raises(MalformedSettlementRequest):
        _submit(db, tenant, admin, [first, second], 200)


def test_submit_refuses_other_customers_orders(db, tenant, representative, make_order):
    order = make_order(100, customer_code="C002")
    with pytest.raises(MalformedSettlementRequest):
        _submit(db, tenant, representative, [order], 100)


def test_return_requires_note(db, tenant, representative, make_order):
    order = make_order(100)
    with pytest.raises(MalformedSettlementRequest):
        _submit(db, tenant, representative, [order], 50, return_amount=Decimal("50"))


def test_reject_requires_reason(db, tenant, admin, representative, make_order):
    order = make_order(100)
    request = _submit(db, tenant, representative, [order], 100)

    with pytest.raises(RejectionReasonRequired):
        reject_request(db, request, "   ", admin)
    assert request.status == "pending"


def test_reject_is_terminal_and_changes_no_order(db, tenant, admin, representative, make_order):
    order = make_order(100)
    request = _submit(db, tenant, representative, [order], 100)

    reject_request(db, request, "Proof is unreadable", admin)

    assert request.status == "rejected"
    assert request.rejection_reason == "Proof is unreadable"
    assert request.reviewed_by_id == admin.id
    assert order.amount_paid == Decimal("0.00") and order.status == "open"
    with pytest.raises(InvalidStateTransition):
        approve_request(db, request, admin)
    with pytest.raises(InvalidStateTransition):
        update_request(db, request, {"credit_amount": "10"}, reviewer=admin)

    transitions = db.query(StatusHistory).filter(
        StatusHistory.entity_type == "pending_settlement", StatusHistory.entity_id == request.id
    ).order_by(StatusHistory.id).all()
    assert [(t.old_status, t.new_status) for t in transitions] == [(None, "pending"), ("pending", "rejected")]


def test_approve_settles_every_order(db, tenant, admin, representative, make_order):
    first = make_order(100)
    second = make_order(300)
    request = _submit(
        db, tenant, representative, [first, second], 360,
        discount_cascade=[{"type": "percentage", "value": "10"}],
    )

    record = approve_request(db, request, admin)

    assert request.status == "approved"
    assert request.settlement_record_id == record.id
    assert request.reviewed_at is not None
    assert record.kind == "approved"
    assert record.pending_settlement_id == request.id
    assert record.attachments == ["receipt-001.jpg"]
    assert first.status == "paid" and second.status == "paid"
    with pytest.raises(InvalidStateTransition):
        reject_request(db, request, "Too late", admin)


def test_approve_with_reviewer_allocation(db, tenant, admin, representative, make_order):
    first = make_order(100)
    second = make_order(300)
    request = _submit(db, tenant, representative, [first, second], 200)
    update_request(db, request, {"allocations": {first.id: "100", second.id: "100"}}, reviewer=admin)

    approve_request(db, request, admin)

    assert first.status == "paid"
    assert second.remaining_balance == Decimal("200.00")


def test_reviewer_edits_recompute_totals(db, tenant, admin, representative, make_order):
    first = make_order(100)
    second = make_order(300)
    request = _submit(db, tenant, representative, [first], 100)

    update_request(
        db,
        request,
        {
            "add_order_ids": [second.id],
            "payments": [{"method": "cash", "amount": "250"}, {"method": "pix", "amount": "150"}],
            "add_attachments": ["receipt-002.jpg"],
        },
        reviewer=admin,
        expected_version=request.version,
    )

    assert request.order_ids == [first.id, second.id]
    assert request.original_total == Decimal("400.00")
    assert request.proposed_total_paid == Decimal("400.00")
    assert request.attachments == ["receipt-001.jpg", "receipt-002.jpg"]
    with pytest.raises(ConcurrentModification):
        update_request(db, request, {"credit_amount": "5"}, reviewer=admin, expected_version=1)


def test_approve_requires_payment(db, tenant, admin, representative, make_order):
    order = make_order(100)
    request = _submit(db, tenant, representative, [order], 100)
    update_request(db, request, {"payments": []}, reviewer=admin)

    with pytest.raises(ApprovalPreconditionFailed):
        approve_request(db, request, admin)


def test_failed_approval_rolls_back_whole_batch(db, tenant, admin, representative, make_order):
    first = make_order(100)
    second = make_order(300)
    request = _submit(db, tenant, representative, [first, second], 400)
    db.commit()
    assert (first.version, second.version) == (1, 1)
    db.execute(text("UPDATE orders SET version = version + 1 WHERE id = :id"), {"id": second.id})

    with pytest.raises(ConcurrentModification):
        approve_request(db, request, admin)
    db.rollback()

    assert first.amount_paid == Decimal("0.00")
    assert first.status == "open"
    assert request.status == "pending"
    assert db.query(SettlementRecord).count() == 0


def test_list_requests_by_status(db, tenant, admin, representative, make_order):
    first = make_order(100)
    second = make_order(100)
    kept = _submit(db, tenant, representative, [first], 100)
    dropped = _submit(db, tenant, representative, [second], 100)
    reject_request(db, dropped, "Duplicate", admin)

    assert [r.id for r in list_requests(db, tenant.id, status="pending")] == [kept.id]
    assert len(list_requests(db, tenant.id, customer_code="C001")) == 2


def test_removing_order_drops_its_allocation(db, tenant, admin, representative, make_order):
    first = make_order(100)
    second = make_order(300)
    request = _submit(db, tenant, representative, [first, second], 200)
    update_request(db, request, {"allocations": {first.id: "100", second.id: "100"}}, reviewer=admin)

    update_request(
        db,
        request,
        {"remove_order_ids": [second.id], "payments": [{"method": "pix", "amount": "100"}]},
        reviewer=admin,
    )

    assert request.order_ids == [first.id]
    assert request.allocations == {str(first.id): "100.00"}
    approve_request(db, request, admin)
    assert first.status == "paid"
    assert second.status == "open"


def test_allocation_mismatch_is_refused_on_edit(db, tenant, admin, representative, make_order):
    first = make_order(100)
    second = make_order(300)
    request = _submit(db, tenant, representative, [first, second], 200)

    with pytest.raises(ApprovalPreconditionFailed):
        update_request(db, request, {"allocations": {first.id: "100", second.id: "50"}}, reviewer=admin)
    with pytest.raises(ApprovalPreconditionFailed):
        update_request(db, request, {"allocations": {first.id: "100", 999: "100"}}, reviewer=admin)
