from __future__ import annotations

import threading
from decimal import Decimal

from sqlalchemy import func, select

from deposit_escrow.db import SessionLocal
from deposit_escrow.errors import ConflictError, EscrowError
from deposit_escrow.models import AuditEvent, DeductionItem, WorkflowEvent
from deposit_escrow.services import deposit_ledger, dispute_manager, inspection_recorder, settlement_engine

from conftest import PROPERTY_ID, TENANT_ID, RecordingNotifier, add_costs, make_deposit, make_inspection


def _run_pair(fn):
    """Run fn(session) on two threads released together; collect results and errors."""
    barrier = threading.Barrier(2)
    results: list = []
    errors: list = []
    lock = threading.Lock()

    def worker():
        db = SessionLocal()
        try:
            barrier.wait(timeout=10)
            out = fn(db)
            with lock:
                results.append(out)
        except EscrowError as e:
            db.rollback()
            with lock:
                errors.append(e)
        finally:
            db.close()

    threads = [threading.Thread(target=worker) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)
    return results, errors


def _count(db, model, *where):
    return db.scalar(select(func.count()).select_from(model).where(*where))


def test_concurrent_completions_sum_exactly_once(db_session, directory):
    make_deposit(db_session, directory, "15000")
    insp = make_inspection(db_session)
    add_costs(db_session, insp.id, "2500", "1500")
    n = RecordingNotifier()

    results, errors = _run_pair(
        lambda db: inspection_recorder.complete(db, inspection_id=insp.id, notifier=n)
    )

    assert errors == []
    assert len(results) == 2
    assert {r.status for r in results} == {"completed"}
    assert {r.total_deductions for r in results} == {Decimal("4000.00")}

    db_session.expire_all()
    dep = deposit_ledger.get(db_session, tenant_id=TENANT_ID)
    assert dep.deductions == Decimal("4000.00")
    assert dep.refundable_amount == Decimal("11000.00")
    assert _count(db_session, AuditEvent, AuditEvent.action == "inspection.complete") == 1
    assert _count(db_session, WorkflowEvent, WorkflowEvent.event_type == "inspection.completed") == 1
    assert n.events() == ["inspection.completed"]


def test_concurrent_refunds_pay_once(db_session, directory):
    make_deposit(db_session, directory, "15000")
    insp = make_inspection(db_session)
    add_costs(db_session, insp.id, "4000")
    inspection_recorder.complete(db_session, inspection_id=insp.id, notifier=RecordingNotifier())
    n = RecordingNotifier()

    results, errors = _run_pair(
        lambda db: settlement_engine.process_refund(
            db, tenant_id=TENANT_ID, property_id=PROPERTY_ID, actor_user_id=1, notifier=n
        )
    )

    assert len(results) == 1
    assert len(errors) == 1
    assert isinstance(errors[0], ConflictError)
    assert errors[0].code == "already_refunded"
    assert results[0].status == "partially_refunded"
    assert n.events() == ["refund.processed"]
    assert _count(db_session, WorkflowEvent, WorkflowEvent.event_type == "refund.processed") == 1


def test_concurrent_disputes_flag_once(db_session, directory):
    make_deposit(db_session, directory, "15000")
    insp = make_inspection(db_session)
    (item,) = add_costs(db_session, insp.id, "4000")
    inspection_recorder.complete(db_session, inspection_id=insp.id, notifier=RecordingNotifier())

    results, errors = _run_pair(
        lambda db: dispute_manager.dispute(
            db,
            deduction_id=item.id,
            reason="Damage was listed on the move-in report",
            actor_user_id=TENANT_ID,
            notifier=RecordingNotifier(),
        )
    )

    assert len(results) == 1
    assert [e.code for e in errors] == ["already_disputed"]
    assert _count(db_session, DeductionItem, DeductionItem.disputed.is_(True)) == 1
