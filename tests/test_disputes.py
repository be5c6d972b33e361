from __future__ import annotations

from decimal import Decimal

import pytest

from deposit_escrow.errors import ConflictError, StateError, ValidationError
from deposit_escrow.services import deposit_ledger, dispute_manager, inspection_recorder
from deposit_escrow.services.ownership import must_get_inspection

from conftest import OWNER_ID, TENANT_ID, RecordingNotifier, add_costs, make_deposit, make_inspection

REASON_19 = "x" * 19
REASON_20 = "The wall was already cracked at move-in"


def _completed_with_items(db, directory, *costs):
    make_deposit(db, directory, "15000")
    insp = make_inspection(db)
    items = add_costs(db, insp.id, *costs)
    inspection_recorder.complete(db, inspection_id=insp.id, notifier=RecordingNotifier())
    return insp, items


def test_reason_must_be_twenty_characters(db_session, directory):
    _, (item,) = _completed_with_items(db_session, directory, "4000")

    with pytest.raises(ValidationError) as ei:
        dispute_manager.dispute(db_session, deduction_id=item.id, reason=REASON_19, actor_user_id=TENANT_ID)
    assert ei.value.code == "reason_too_short"

    with pytest.raises(ValidationError):
        dispute_manager.dispute(db_session, deduction_id=item.id, reason="   " + REASON_19 + "   ")


def test_dispute_once_then_conflict(db_session, directory):
    insp, (item,) = _completed_with_items(db_session, directory, "4000")
    n = RecordingNotifier()

    row = dispute_manager.dispute(
        db_session, deduction_id=item.id, reason=REASON_20, actor_user_id=TENANT_ID, notifier=n
    )
    assert row.disputed is True
    assert row.dispute_reason == REASON_20
    assert row.disputed_by == TENANT_ID
    assert row.disputed_at is not None
    assert n.sent[0][0] == OWNER_ID
    assert n.events() == ["deduction.disputed"]

    with pytest.raises(ConflictError) as ei:
        dispute_manager.dispute(db_session, deduction_id=item.id, reason=REASON_20, actor_user_id=TENANT_ID)
    assert ei.value.code == "already_disputed"


def test_dispute_marks_inspection_but_keeps_totals(db_session, directory):
    insp, (a, b) = _completed_with_items(db_session, directory, "4000", "1000")

    dispute_manager.dispute(db_session, deduction_id=a.id, reason=REASON_20, notifier=RecordingNotifier())
    dispute_manager.dispute(db_session, deduction_id=b.id, reason=REASON_20, notifier=RecordingNotifier())

    row = must_get_inspection(db_session, inspection_id=insp.id, fresh=True)
    assert row.status == "disputed"
    assert row.total_deductions == Decimal("5000.00")

    dep = deposit_ledger.get(db_session, tenant_id=TENANT_ID)
    assert dep.status == "held"
    assert dep.refundable_amount == Decimal("10000.00")
    assert [d.id for d in dispute_manager.list_disputed(db_session, inspection_id=insp.id)] == [a.id, b.id]


def test_cannot_dispute_before_completion(db_session, directory):
    make_deposit(db_session, directory, "15000")
    insp = make_inspection(db_session)
    (item,) = add_costs(db_session, insp.id, "4000")

    with pytest.raises(StateError) as ei:
        dispute_manager.dispute(db_session, deduction_id=item.id, reason=REASON_20)
    assert ei.value.code == "inspection_not_completed"


def test_reason_minimum_is_not_configurable():
    from deposit_escrow.config import settings
    from deposit_escrow.services.dispute_manager import DISPUTE_MIN_REASON_LENGTH

    assert DISPUTE_MIN_REASON_LENGTH == 20
    assert not hasattr(settings, "dispute_min_reason_length")
    assert not hasattr(settings, "legal_cap_months")
