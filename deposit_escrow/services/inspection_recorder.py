# deposit_escrow/services/inspection_recorder.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Mapping, Optional

from sqlalchemy import desc, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..domain.audit import audit_write
from ..domain.checklist import normalize_area, normalize_checklist, normalize_condition
from ..domain.events import emit_workflow_event
from ..domain.money import ZERO
from ..domain.settlement_math import refundable_amount
from ..errors import ConflictError, NotFoundError
from ..models import MoveOutInspection
from . import deduction_ledger, deposit_ledger
from .escrow_state_machine import guard_in_progress, transition_inspection
from .notifications import INSPECTION_COMPLETED, Notifier, notify_safely
from .ownership import must_get_deposit, must_get_inspection

log = logging.getLogger("escrow.inspections")


def _now() -> datetime:
    return datetime.utcnow()


def get(db: Session, *, inspection_id: int) -> Optional[MoveOutInspection]:
    return db.get(MoveOutInspection, int(inspection_id))


def get_for_tenant(db: Session, *, tenant_id: int) -> Optional[MoveOutInspection]:
    return db.scalar(
        select(MoveOutInspection)
        .where(MoveOutInspection.tenant_id == int(tenant_id))
        .order_by(desc(MoveOutInspection.id))
        .limit(1)
    )


def get_for_deposit(db: Session, *, deposit_id: int) -> Optional[MoveOutInspection]:
    return db.scalar(select(MoveOutInspection).where(MoveOutInspection.deposit_id == int(deposit_id)))


def start(
    db: Session,
    *,
    tenant_id: int,
    property_id: int,
    inspector_id: int,
    checklist: Optional[Mapping[str, Any]] = None,
    photos: Optional[list[str]] = None,
    notes: Optional[str] = None,
    inspection_date: Optional[datetime] = None,
    actor_user_id: Optional[int] = None,
) -> MoveOutInspection:
    clean = normalize_checklist(checklist)

    deposit = deposit_ledger.get_for_pair(db, tenant_id=tenant_id, property_id=property_id)
    if deposit is None:
        raise NotFoundError(
            "deposit_not_found",
            "A deposit must be recorded before the move-out inspection",
            tenant_id=int(tenant_id),
            property_id=int(property_id),
        )
    if get_for_deposit(db, deposit_id=deposit.id) is not None:
        raise ConflictError(
            "inspection_exists",
            "A move-out inspection already exists for this deposit",
            deposit_id=deposit.id,
        )

    now = _now()
    row = MoveOutInspection(
        deposit_id=deposit.id,
        tenant_id=int(tenant_id),
        property_id=int(property_id),
        inspector_id=int(inspector_id),
        inspection_date=inspection_date or now,
        notes=notes,
        status="in_progress",
        total_deductions=ZERO,
        refundable_amount=deposit.deposit_amount,
        created_at=now,
        updated_at=now,
    )
    row.checklist = clean
    row.photos = [str(p) for p in (photos or []) if p]
    db.add(row)
    try:
        db.flush()
    except IntegrityError as e:
        db.rollback()
        raise ConflictError(
            "inspection_exists",
            "A move-out inspection already exists for this deposit",
            deposit_id=deposit.id,
        ) from e

    audit_write(
        db,
        actor_user_id=actor_user_id,
        action="inspection.start",
        entity_type="MoveOutInspection",
        entity_id=row.id,
        before=None,
        after=row.model_dump(),
    )
    emit_workflow_event(
        db,
        event_type="inspection.started",
        actor_user_id=actor_user_id,
        property_id=row.property_id,
        tenant_id=row.tenant_id,
        payload={"inspection_id": row.id, "deposit_id": deposit.id, "inspector_id": row.inspector_id},
    )
    db.commit()

    log.info("inspection started", extra={"inspection_id": row.id, "deposit_id": deposit.id})
    return row


def update_checklist(
    db: Session,
    *,
    inspection_id: int,
    item: str,
    condition: str,
    actor_user_id: Optional[int] = None,
) -> MoveOutInspection:
    area = normalize_area(item)
    cond = normalize_condition(condition)

    row = guard_in_progress(db, inspection_id)
    before = row.model_dump()

    checklist = row.checklist
    checklist[area] = cond
    row.checklist = checklist
    db.flush()

    audit_write(
        db,
        actor_user_id=actor_user_id,
        action="inspection.update_checklist",
        entity_type="MoveOutInspection",
        entity_id=row.id,
        before=before,
        after=row.model_dump(),
    )
    db.commit()
    return row


def update_notes(
    db: Session,
    *,
    inspection_id: int,
    notes: Optional[str],
    actor_user_id: Optional[int] = None,
) -> MoveOutInspection:
    row = guard_in_progress(db, inspection_id)
    before = row.model_dump()

    row.notes = notes
    db.flush()

    audit_write(
        db,
        actor_user_id=actor_user_id,
        action="inspection.update_notes",
        entity_type="MoveOutInspection",
        entity_id=row.id,
        before=before,
        after=row.model_dump(),
    )
    db.commit()
    return row


def add_photos(
    db: Session,
    *,
    inspection_id: int,
    photos: list[str],
    actor_user_id: Optional[int] = None,
) -> MoveOutInspection:
    row = guard_in_progress(db, inspection_id)

    current = row.photos
    for p in photos or []:
        s = str(p or "").strip()
        if s and s not in current:
            current.append(s)
    row.photos = current
    db.flush()

    audit_write(
        db,
        actor_user_id=actor_user_id,
        action="inspection.add_photos",
        entity_type="MoveOutInspection",
        entity_id=row.id,
        before=None,
        after={"photos": current},
    )
    db.commit()
    return row


def complete(
    db: Session,
    *,
    inspection_id: int,
    actor_user_id: Optional[int] = None,
    notifier: Optional[Notifier] = None,
) -> MoveOutInspection:
    """
    Freeze the inspection and push its totals onto the deposit.

    Idempotent: completing an already-completed (or disputed) inspection
    returns it unchanged. Of two concurrent completions exactly one wins the
    status compare-and-set and sums the deductions; the other rolls back and
    returns the winner's committed row.
    """
    row = must_get_inspection(db, inspection_id=inspection_id, fresh=True)
    if row.status != "in_progress":
        return row

    now = _now()
    won = transition_inspection(db, row.id, "in_progress", "completed", completed_at=now, updated_at=now)
    if not won:
        db.rollback()
        return must_get_inspection(db, inspection_id=inspection_id, fresh=True)

    # The status write above holds the row; no deduction write can commit
    # between here and our commit.
    total = deduction_ledger.sum_for(db, inspection_id=row.id)
    deposit = must_get_deposit(db, deposit_id=row.deposit_id)
    refundable = refundable_amount(deposit.deposit_amount, total)

    db.execute(
        update(MoveOutInspection)
        .where(MoveOutInspection.id == row.id)
        .values(total_deductions=total, refundable_amount=refundable)
        .execution_options(synchronize_session=False)
    )
    deposit_ledger.apply_settlement(
        db,
        deposit_id=row.deposit_id,
        total_deductions=total,
        actor_user_id=actor_user_id,
    )

    row = must_get_inspection(db, inspection_id=inspection_id, fresh=True)
    audit_write(
        db,
        actor_user_id=actor_user_id,
        action="inspection.complete",
        entity_type="MoveOutInspection",
        entity_id=row.id,
        before={"status": "in_progress"},
        after=row.model_dump(),
    )
    emit_workflow_event(
        db,
        event_type="inspection.completed",
        actor_user_id=actor_user_id,
        property_id=row.property_id,
        tenant_id=row.tenant_id,
        payload={
            "inspection_id": row.id,
            "deposit_id": row.deposit_id,
            "total_deductions": str(total),
            "refundable_amount": str(refundable),
        },
    )
    db.commit()

    log.info(
        "inspection completed total_deductions=%s refundable=%s",
        total,
        refundable,
        extra={"inspection_id": row.id, "deposit_id": row.deposit_id},
    )
    notify_safely(
        notifier,
        user_id=row.tenant_id,
        event=INSPECTION_COMPLETED,
        payload={
            "inspection_id": row.id,
            "total_deductions": str(total),
            "refundable_amount": str(refundable),
        },
    )
    return row
