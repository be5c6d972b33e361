# deposit_escrow/services/dispute_manager.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ..domain.audit import audit_write
from ..domain.events import emit_workflow_event
from ..errors import ConflictError, StateError, ValidationError
from ..models import DeductionItem
from .escrow_state_machine import is_settled, transition_inspection
from .notifications import DEDUCTION_DISPUTED, Notifier, notify_safely
from .ownership import must_get_deduction, must_get_inspection

log = logging.getLogger("escrow.disputes")

# minimum length of the trimmed dispute reason
DISPUTE_MIN_REASON_LENGTH = 20


def list_disputed(db: Session, *, inspection_id: int) -> list[DeductionItem]:
    return list(
        db.scalars(
            select(DeductionItem)
            .where(DeductionItem.inspection_id == int(inspection_id), DeductionItem.disputed.is_(True))
            .order_by(DeductionItem.id.asc())
        ).all()
    )


def dispute(
    db: Session,
    *,
    deduction_id: int,
    reason: str,
    actor_user_id: Optional[int] = None,
    notifier: Optional[Notifier] = None,
) -> DeductionItem:
    """
    Tenant flags one deduction as contested.

    Totals and the deposit are untouched: a dispute is a signal for review,
    not a settlement change. The first dispute on a completed inspection
    moves it to "disputed".
    """
    text = (reason or "").strip()
    if len(text) < DISPUTE_MIN_REASON_LENGTH:
        raise ValidationError(
            "reason_too_short",
            f"Please provide a detailed reason (minimum {DISPUTE_MIN_REASON_LENGTH} characters)",
            min_length=DISPUTE_MIN_REASON_LENGTH,
        )

    item = must_get_deduction(db, deduction_id=deduction_id, fresh=True)
    insp = must_get_inspection(db, inspection_id=item.inspection_id, fresh=True)

    if not is_settled(insp.status):
        raise StateError(
            "inspection_not_completed",
            "Deductions can only be disputed after the inspection is completed",
            inspection_id=insp.id,
            status=insp.status,
        )
    if item.disputed:
        raise ConflictError("already_disputed", "This deduction has already been disputed", deduction_id=item.id)

    now = datetime.utcnow()
    res = db.execute(
        update(DeductionItem)
        .where(DeductionItem.id == item.id, DeductionItem.disputed.is_(False))
        .values(
            disputed=True,
            dispute_reason=text,
            disputed_at=now,
            disputed_by=int(actor_user_id) if actor_user_id is not None else None,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        db.rollback()
        raise ConflictError("already_disputed", "This deduction has already been disputed", deduction_id=item.id)

    # completed -> disputed; a no-op when another item was disputed first
    if insp.status == "completed":
        transition_inspection(db, insp.id, "completed", "disputed", updated_at=now)

    item = must_get_deduction(db, deduction_id=deduction_id, fresh=True)
    audit_write(
        db,
        actor_user_id=actor_user_id,
        action="deduction.dispute",
        entity_type="DeductionItem",
        entity_id=item.id,
        before={"disputed": False},
        after={**item.model_dump(), "dispute_reason": text},
    )
    emit_workflow_event(
        db,
        event_type="deduction.disputed",
        actor_user_id=actor_user_id,
        property_id=insp.property_id,
        tenant_id=insp.tenant_id,
        payload={"inspection_id": insp.id, "deduction_id": item.id, "cost": str(item.cost)},
    )
    db.commit()

    log.info("deduction disputed", extra={"inspection_id": insp.id, "deduction_id": item.id})
    notify_safely(
        notifier,
        user_id=insp.inspector_id,
        event=DEDUCTION_DISPUTED,
        payload={
            "inspection_id": insp.id,
            "deduction_id": item.id,
            "item_description": item.item_description,
            "reason": text,
        },
    )
    return item
