# deposit_escrow/services/escrow_state_machine.py
from __future__ import annotations

from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ..errors import NotFoundError, StateError
from ..models import MoveOutInspection

# -----------------------------------------------------------------------------
# Escrow state machines
# -----------------------------------------------------------------------------
# DepositBalance.status:
#   held -> {partially_refunded, fully_refunded, forfeited}
#   partially_refunded -> {fully_refunded, forfeited}   (administrative top-up)
#
# MoveOutInspection.status:
#   in_progress -> completed -> disputed
#   "disputed" is informational: the inspection is still settled.
#
# Every transition is applied with a compare-and-set UPDATE guarded on the
# status the caller observed; the affected row count decides the winner.
# -----------------------------------------------------------------------------

DEPOSIT_STATUSES = ("held", "partially_refunded", "fully_refunded", "forfeited")
REFUNDED_STATUSES = frozenset({"partially_refunded", "fully_refunded", "forfeited"})

DEPOSIT_TRANSITIONS: dict[str, frozenset[str]] = {
    "held": frozenset({"partially_refunded", "fully_refunded", "forfeited"}),
    "partially_refunded": frozenset({"fully_refunded", "forfeited"}),
    "fully_refunded": frozenset(),
    "forfeited": frozenset(),
}

INSPECTION_STATUSES = ("in_progress", "completed", "disputed")
SETTLED_INSPECTION_STATUSES = frozenset({"completed", "disputed"})

INSPECTION_TRANSITIONS: dict[str, frozenset[str]] = {
    "in_progress": frozenset({"completed"}),
    "completed": frozenset({"disputed"}),
    "disputed": frozenset(),
}


def can_transition_deposit(current: str, target: str) -> bool:
    return target in DEPOSIT_TRANSITIONS.get((current or "").strip().lower(), frozenset())


def ensure_deposit_transition(current: str, target: str) -> None:
    if not can_transition_deposit(current, target):
        raise StateError(
            "invalid_transition",
            f"Deposit cannot move from {current!r} to {target!r}",
            current=current,
            target=target,
        )


def can_transition_inspection(current: str, target: str) -> bool:
    return target in INSPECTION_TRANSITIONS.get((current or "").strip().lower(), frozenset())


def transition_inspection(db: Session, inspection_id: int, current: str, target: str, **values) -> bool:
    """
    Compare-and-set the inspection from current to target, writing any extra
    column values in the same UPDATE. Returns False when another writer got
    there first; raises StateError when the table forbids the move.
    """
    if not can_transition_inspection(current, target):
        raise StateError(
            "invalid_transition",
            f"Inspection cannot move from {current!r} to {target!r}",
            current=current,
            target=target,
        )
    res = db.execute(
        update(MoveOutInspection)
        .where(MoveOutInspection.id == int(inspection_id), MoveOutInspection.status == current)
        .values(status=target, **values)
        .execution_options(synchronize_session=False)
    )
    return res.rowcount == 1


def is_refunded(deposit_status: str) -> bool:
    return (deposit_status or "") in REFUNDED_STATUSES


def is_settled(inspection_status: str) -> bool:
    return (inspection_status or "") in SETTLED_INSPECTION_STATUSES


def guard_in_progress(db: Session, inspection_id: int) -> MoveOutInspection:
    """
    Claim the inspection row for an edit while it is still in_progress.

    The status-conditional touch of updated_at takes the row's write lock for
    the rest of the caller's transaction, so checklist edits and deduction
    writes serialize against completion instead of racing the aggregate.
    """
    res = db.execute(
        update(MoveOutInspection)
        .where(MoveOutInspection.id == int(inspection_id), MoveOutInspection.status == "in_progress")
        .values(updated_at=datetime.utcnow())
        .execution_options(synchronize_session=False)
    )
    row = db.scalar(
        select(MoveOutInspection)
        .where(MoveOutInspection.id == int(inspection_id))
        .execution_options(populate_existing=True)
    )
    if row is None:
        db.rollback()
        raise NotFoundError("inspection_not_found", "Inspection not found", inspection_id=int(inspection_id))
    if res.rowcount != 1:
        insp_id, status = row.id, row.status
        # release the write lock the 0-row UPDATE opened
        db.rollback()
        raise StateError(
            "inspection_finalized",
            f"Inspection {insp_id} is {status}; it can no longer be edited",
            inspection_id=insp_id,
            status=status,
        )
    return row
