from __future__ import annotations

from decimal import Decimal

import pytest

from deposit_escrow.errors import ConflictError, NotFoundError, StateError
from deposit_escrow.services import dispute_manager, inspection_recorder, settlement_engine

from conftest import PROPERTY_ID, TENANT_ID, RecordingNotifier, add_costs, make_deposit, make_inspection


def _refund(db, notifier=None):
    return settlement_engine.process_refund(
        db,
        tenant_id=TENANT_ID,
        property_id=PROPERTY_ID,
        actor_user_id=1,
        notifier=notifier or RecordingNotifier(),
    )


def _settled(db, directory, amount, *costs):
    make_deposit(db, directory, amount)
    insp = make_inspection(db)
    items = add_costs(db, insp.id, *costs)
    settlement_engine.finalize_inspection(db, inspection_id=insp.id, notifier=RecordingNotifier())
    return insp, items


@pytest.mark.parametrize(
    "amount,costs,status,refunded",
    [
        ("15000", (), "fully_refunded", "15000.00"),
        ("15000", ("4000",), "partially_refunded", "11000.00"),
        ("5000", ("3000", "5000"), "forfeited", "0.00"),
    ],
)
def test_refund_status_follows_settlement(db_session, directory, amount, costs, status, refunded):
    _settled(db_session, directory, amount, *costs)
    n = RecordingNotifier()

    dep = _refund(db_session, n)

    assert dep.status == status
    assert dep.refunded_amount == Decimal(refunded)
    assert dep.refunded_at is not None
    assert n.sent == [(TENANT_ID, "refund.processed", {"deposit_id": dep.id, "status": status, "refunded_amount": refunded})]


def test_second_refund_is_already_refunded(db_session, directory):
    _settled(db_session, directory, "15000", "4000")
    _refund(db_session)

    with pytest.raises(ConflictError) as ei:
        _refund(db_session)
    assert ei.value.code == "already_refunded"


def test_refund_requires_deposit_and_completed_inspection(db_session, directory):
    with pytest.raises(NotFoundError) as ei:
        _refund(db_session)
    assert ei.value.code == "deposit_not_found"

    make_deposit(db_session, directory, "15000")
    with pytest.raises(StateError) as ei:
        _refund(db_session)
    assert ei.value.code == "inspection_not_completed"

    insp = make_inspection(db_session)
    with pytest.raises(StateError):
        _refund(db_session)

    inspection_recorder.complete(db_session, inspection_id=insp.id, notifier=RecordingNotifier())
    assert _refund(db_session).status == "fully_refunded"


def test_refund_allowed_with_open_dispute(db_session, directory):
    insp, (item,) = _settled(db_session, directory, "15000", "4000")
    dispute_manager.dispute(
        db_session,
        deduction_id=item.id,
        reason="Carpet stain predates my lease",
        notifier=RecordingNotifier(),
    )

    dep = _refund(db_session)
    assert dep.status == "partially_refunded"
    assert dep.refunded_amount == Decimal("11000.00")


def test_failing_notifier_does_not_undo_refund(db_session, directory):
    _settled(db_session, directory, "15000", "4000")

    dep = _refund(db_session, RecordingNotifier(fail=True))

    assert dep.status == "partially_refunded"
    summary = settlement_engine.settlement_summary(db_session, tenant_id=TENANT_ID)
    assert summary.deposit.status == "partially_refunded"
    assert summary.refund_ready is False


def test_settlement_summary(db_session, directory):
    assert settlement_engine.settlement_summary(db_session, tenant_id=TENANT_ID).deposit is None

    insp, items = _settled(db_session, directory, "15000", "4000", "250")
    s = settlement_engine.settlement_summary(db_session, tenant_id=TENANT_ID)

    assert s.inspection.id == insp.id
    assert [d.id for d in s.deductions] == [d.id for d in items]
    assert s.refund_ready is True
    assert s.disputed_count == 0
    assert s.condition_counts["fair"] == 1
    assert s.as_dict()["deposit"]["refundable_amount"] == "10750.00"


def test_workflow_log_tracks_the_settlement(db_session, directory):
    from deposit_escrow.domain.events import list_workflow_events

    _settled(db_session, directory, "15000", "4000")
    _refund(db_session)

    types = [e.event_type for e in reversed(list_workflow_events(db_session, tenant_id=TENANT_ID))]
    assert types == [
        "deposit.created",
        "inspection.started",
        "deduction.added",
        "inspection.completed",
        "refund.processed",
    ]
    assert list_workflow_events(db_session, property_id=999) == []
