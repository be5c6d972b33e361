from __future__ import annotations

from decimal import Decimal

import pytest

from deposit_escrow.errors import NotFoundError
from deposit_escrow.services.escrow_service import EscrowService

from conftest import OWNER_ID, PROPERTY_ID, TENANT_ID, RecordingNotifier


def test_move_out_through_service_facade(db_session, directory):
    n = RecordingNotifier()
    owner = EscrowService(db_session, actor_user_id=OWNER_ID, directory=directory, notifier=n)
    tenant = EscrowService(db_session, actor_user_id=TENANT_ID, notifier=n)

    with pytest.raises(NotFoundError):
        owner.get_deposit(TENANT_ID)

    dep = owner.create_deposit(TENANT_ID, PROPERTY_ID, Decimal("20000"), notes="two months")
    insp = owner.start_inspection(TENANT_ID, PROPERTY_ID, OWNER_ID, {"bathroom": "poor"})
    keep = owner.add_deduction(insp.id, "Retile shower", Decimal("6000"), category="Repairs")
    drop = owner.add_deduction(insp.id, "Light bulbs", Decimal("50"))
    owner.remove_deduction(drop.id)

    done = owner.complete_inspection(insp.id)
    assert done.total_deductions == Decimal("6000.00")

    tenant.dispute_deduction(keep.id, "Shower tiles were cracked before my lease")
    refunded = owner.process_refund(TENANT_ID, PROPERTY_ID)

    assert refunded.id == dep.id
    assert refunded.status == "partially_refunded"
    assert refunded.refunded_amount == Decimal("14000.00")
    assert owner.get_deposit(TENANT_ID).status == "partially_refunded"
    assert n.events() == ["deposit.created", "inspection.completed", "deduction.disputed", "refund.processed"]


def test_rejected_call_releases_the_session(db_session, directory):
    from deposit_escrow.db import SessionLocal
    from deposit_escrow.errors import StateError
    from deposit_escrow.services import deduction_ledger

    owner = EscrowService(db_session, actor_user_id=OWNER_ID, directory=directory, notifier=RecordingNotifier())
    owner.create_deposit(TENANT_ID, PROPERTY_ID, Decimal("15000"))
    insp = owner.start_inspection(TENANT_ID, PROPERTY_ID, OWNER_ID, {"walls": "good"})
    owner.complete_inspection(insp.id)

    with pytest.raises(StateError) as ei:
        owner.add_deduction(insp.id, "Late paint job", Decimal("100"))
    assert ei.value.code == "inspection_finalized"
    assert not db_session.in_transaction()

    with pytest.raises(StateError):
        deduction_ledger.add(db_session, inspection_id=insp.id, item_description="Late", cost=Decimal("1"))
    assert not db_session.in_transaction()

    # another writer is not blocked behind the rejected call
    other = SessionLocal()
    try:
        dep = EscrowService(other, actor_user_id=OWNER_ID, directory=directory).create_deposit(
            TENANT_ID, PROPERTY_ID + 1, Decimal("5000")
        )
        assert dep.status == "held"
    finally:
        other.close()


def test_refund_conflict_releases_the_session(db_session, directory):
    from deposit_escrow.errors import ConflictError, StateError
    from deposit_escrow.services import deposit_ledger

    owner = EscrowService(db_session, actor_user_id=OWNER_ID, directory=directory, notifier=RecordingNotifier())
    dep = owner.create_deposit(TENANT_ID, PROPERTY_ID, Decimal("15000"))
    insp = owner.start_inspection(TENANT_ID, PROPERTY_ID, OWNER_ID, {"walls": "good"})
    owner.complete_inspection(insp.id)
    owner.process_refund(TENANT_ID, PROPERTY_ID)

    with pytest.raises(ConflictError):
        deposit_ledger.transition_refund(db_session, deposit_id=dep.id, new_status="forfeited", from_status="held")
    assert not db_session.in_transaction()

    with pytest.raises(StateError):
        deposit_ledger.apply_settlement(db_session, deposit_id=dep.id, total_deductions=Decimal("10"))
    assert not db_session.in_transaction()
