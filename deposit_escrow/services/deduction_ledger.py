# deposit_escrow/services/deduction_ledger.py
from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..domain.audit import audit_write
from ..domain.events import emit_workflow_event
from ..domain.money import ZERO, AmountPrecisionError, money_sum, parse_amount
from ..errors import ValidationError
from ..models import DeductionItem
from .escrow_state_machine import guard_in_progress
from .ownership import must_get_deduction, must_get_inspection

log = logging.getLogger("escrow.deductions")


def _clean_description(raw: Optional[str]) -> str:
    s = (raw or "").strip()
    if not s:
        raise ValidationError("missing_description", "Deduction item description is required")
    return s


def _clean_cost(raw: Any) -> Decimal:
    try:
        cost = parse_amount(raw)
    except AmountPrecisionError:
        raise ValidationError(
            "invalid_amount",
            "Deduction cost must be in whole cents and within the storable range",
        )
    except ValueError:
        raise ValidationError("cost_not_positive", "Deduction cost must be a number greater than 0")
    if cost <= ZERO:
        raise ValidationError("cost_not_positive", "Deduction cost must be greater than 0")
    return cost


def _clean_photos(raw: Optional[list[str]]) -> list[str]:
    return [str(p).strip() for p in (raw or []) if str(p or "").strip()]


def list_for(db: Session, *, inspection_id: int) -> list[DeductionItem]:
    return list(
        db.scalars(
            select(DeductionItem)
            .where(DeductionItem.inspection_id == int(inspection_id))
            .order_by(DeductionItem.id.asc())
        ).all()
    )


def sum_for(db: Session, *, inspection_id: int) -> Decimal:
    # summed as Decimal in Python; SQLite SUM() over NUMERIC drifts into float
    costs = db.scalars(select(DeductionItem.cost).where(DeductionItem.inspection_id == int(inspection_id))).all()
    return money_sum(costs)


def add(
    db: Session,
    *,
    inspection_id: int,
    item_description: str,
    cost: Any,
    category: Optional[str] = None,
    notes: Optional[str] = None,
    proof_photos: Optional[list[str]] = None,
    actor_user_id: Optional[int] = None,
) -> DeductionItem:
    desc = _clean_description(item_description)
    amount = _clean_cost(cost)

    insp = guard_in_progress(db, inspection_id)

    now = datetime.utcnow()
    row = DeductionItem(
        inspection_id=insp.id,
        item_description=desc,
        cost=amount,
        category=(category or "").strip() or None,
        notes=notes,
        disputed=False,
        created_at=now,
        updated_at=now,
    )
    row.proof_photos = _clean_photos(proof_photos)
    db.add(row)
    db.flush()

    audit_write(
        db,
        actor_user_id=actor_user_id,
        action="deduction.add",
        entity_type="DeductionItem",
        entity_id=row.id,
        before=None,
        after=row.model_dump(),
    )
    emit_workflow_event(
        db,
        event_type="deduction.added",
        actor_user_id=actor_user_id,
        property_id=insp.property_id,
        tenant_id=insp.tenant_id,
        payload={"inspection_id": insp.id, "deduction_id": row.id, "cost": str(row.cost)},
    )
    db.commit()

    log.info("deduction added", extra={"inspection_id": insp.id, "deduction_id": row.id})
    return row


def update(
    db: Session,
    *,
    deduction_id: int,
    item_description: Optional[str] = None,
    cost: Any = None,
    category: Optional[str] = None,
    notes: Optional[str] = None,
    proof_photos: Optional[list[str]] = None,
    actor_user_id: Optional[int] = None,
) -> DeductionItem:
    """Patch semantics: only the fields passed (not None) change."""
    row = must_get_deduction(db, deduction_id=deduction_id)

    desc = _clean_description(item_description) if item_description is not None else None
    amount = _clean_cost(cost) if cost is not None else None

    insp = guard_in_progress(db, row.inspection_id)
    row = must_get_deduction(db, deduction_id=deduction_id, fresh=True)
    before = row.model_dump()

    if desc is not None:
        row.item_description = desc
    if amount is not None:
        row.cost = amount
    if category is not None:
        row.category = category.strip() or None
    if notes is not None:
        row.notes = notes
    if proof_photos is not None:
        row.proof_photos = _clean_photos(proof_photos)
    row.updated_at = datetime.utcnow()

    db.flush()
    audit_write(
        db,
        actor_user_id=actor_user_id,
        action="deduction.update",
        entity_type="DeductionItem",
        entity_id=row.id,
        before=before,
        after=row.model_dump(),
    )
    emit_workflow_event(
        db,
        event_type="deduction.updated",
        actor_user_id=actor_user_id,
        property_id=insp.property_id,
        tenant_id=insp.tenant_id,
        payload={"inspection_id": insp.id, "deduction_id": row.id, "cost": str(row.cost)},
    )
    db.commit()
    return row


def remove(db: Session, *, deduction_id: int, actor_user_id: Optional[int] = None) -> None:
    row = must_get_deduction(db, deduction_id=deduction_id)
    insp = guard_in_progress(db, row.inspection_id)
    before = row.model_dump()

    audit_write(
        db,
        actor_user_id=actor_user_id,
        action="deduction.remove",
        entity_type="DeductionItem",
        entity_id=row.id,
        before=before,
        after=None,
    )
    emit_workflow_event(
        db,
        event_type="deduction.removed",
        actor_user_id=actor_user_id,
        property_id=insp.property_id,
        tenant_id=insp.tenant_id,
        payload={"inspection_id": insp.id, "deduction_id": row.id, "cost": before["cost"]},
    )
    db.delete(row)
    db.commit()

    log.info("deduction removed", extra={"inspection_id": insp.id, "deduction_id": int(deduction_id)})


def inspection_for(db: Session, *, deduction_id: int):
    row = must_get_deduction(db, deduction_id=deduction_id)
    return must_get_inspection(db, inspection_id=row.inspection_id)
