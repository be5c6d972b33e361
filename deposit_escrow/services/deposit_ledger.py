# deposit_escrow/services/deposit_ledger.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Iterable, Optional

from sqlalchemy import delete, desc, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..clients.tenant_directory import TenantDirectory, get_tenant_directory
from ..domain import deposit_cap
from ..domain.audit import audit_write
from ..domain.events import emit_workflow_event
from ..domain.money import ZERO, money_sum, to_money
from ..domain.settlement_math import refundable_amount
from ..errors import ConflictError, NotFoundError, StateError
from ..models import DepositBalance, MoveOutInspection
from .escrow_state_machine import (
    DEPOSIT_STATUSES,
    SETTLED_INSPECTION_STATUSES,
    ensure_deposit_transition,
    is_refunded,
    is_settled,
)
from .notifications import DEPOSIT_CREATED, Notifier, notify_safely
from .ownership import must_get_deposit

log = logging.getLogger("escrow.deposits")


def _now() -> datetime:
    return datetime.utcnow()


# -----------------------------
# Reads (absence is a normal state: None, not an error)
# -----------------------------
def get(db: Session, *, tenant_id: int) -> Optional[DepositBalance]:
    return db.scalar(
        select(DepositBalance)
        .where(DepositBalance.tenant_id == int(tenant_id))
        .order_by(desc(DepositBalance.id))
        .limit(1)
    )


def get_by_property(db: Session, *, property_id: int) -> Optional[DepositBalance]:
    return db.scalar(
        select(DepositBalance)
        .where(DepositBalance.property_id == int(property_id))
        .order_by(desc(DepositBalance.id))
        .limit(1)
    )


def get_for_pair(db: Session, *, tenant_id: int, property_id: int) -> Optional[DepositBalance]:
    return db.scalar(
        select(DepositBalance).where(
            DepositBalance.tenant_id == int(tenant_id),
            DepositBalance.property_id == int(property_id),
        )
    )


def get_by_id(db: Session, *, deposit_id: int) -> Optional[DepositBalance]:
    return db.get(DepositBalance, int(deposit_id))


def list_deposits(
    db: Session,
    *,
    property_ids: Optional[Iterable[int]] = None,
    tenant_id: Optional[int] = None,
    status: Optional[str] = None,
    limit: int = 200,
) -> list[DepositBalance]:
    q = select(DepositBalance)
    if property_ids is not None:
        ids = [int(x) for x in property_ids]
        if not ids:
            return []
        q = q.where(DepositBalance.property_id.in_(ids))
    if tenant_id is not None:
        q = q.where(DepositBalance.tenant_id == int(tenant_id))
    if status is not None:
        q = q.where(DepositBalance.status == str(status))
    q = q.order_by(desc(DepositBalance.created_at), desc(DepositBalance.id)).limit(int(limit))
    return list(db.scalars(q).all())


@dataclass(frozen=True)
class DepositStats:
    total: int
    held: int
    refunded: int
    forfeited: int
    total_held_amount: Decimal
    total_refundable: Decimal


def deposit_stats(db: Session, *, property_ids: Optional[Iterable[int]] = None) -> DepositStats:
    """Owner dashboard rollup over the deposits of the given properties."""
    rows = list_deposits(db, property_ids=property_ids, limit=100_000)
    held = [r for r in rows if r.status == "held"]
    return DepositStats(
        total=len(rows),
        held=len(held),
        refunded=sum(1 for r in rows if r.status in ("fully_refunded", "partially_refunded")),
        forfeited=sum(1 for r in rows if r.status == "forfeited"),
        total_held_amount=money_sum(r.deposit_amount for r in held),
        total_refundable=money_sum(r.refundable_amount for r in held),
    )


# -----------------------------
# Writes
# -----------------------------
def create(
    db: Session,
    *,
    tenant_id: int,
    property_id: int,
    deposit_amount: Any,
    notes: Optional[str] = None,
    payment_id: Optional[str] = None,
    actor_user_id: Optional[int] = None,
    directory: Optional[TenantDirectory] = None,
    notifier: Optional[Notifier] = None,
) -> DepositBalance:
    directory = directory or get_tenant_directory()

    monthly_rent = directory.get_monthly_rent(int(tenant_id))
    check = deposit_cap.validate(deposit_amount, monthly_rent)

    if get_for_pair(db, tenant_id=tenant_id, property_id=property_id) is not None:
        raise ConflictError(
            "deposit_exists",
            "Deposit already exists for this tenant and property",
            tenant_id=int(tenant_id),
            property_id=int(property_id),
        )

    now = _now()
    row = DepositBalance(
        tenant_id=int(tenant_id),
        property_id=int(property_id),
        deposit_amount=check.deposit_amount,
        deductions=ZERO,
        refundable_amount=check.deposit_amount,
        status="held",
        payment_id=payment_id,
        monthly_rent_at_creation=check.monthly_rent,
        created_by=int(actor_user_id) if actor_user_id is not None else None,
        notes=notes,
        created_at=now,
        updated_at=now,
    )
    db.add(row)
    try:
        db.flush()
    except IntegrityError as e:
        # lost a create race on uq_deposit_balances_tenant_property
        db.rollback()
        raise ConflictError(
            "deposit_exists",
            "Deposit already exists for this tenant and property",
            tenant_id=int(tenant_id),
            property_id=int(property_id),
        ) from e

    audit_write(
        db,
        actor_user_id=actor_user_id,
        action="deposit.create",
        entity_type="DepositBalance",
        entity_id=row.id,
        before=None,
        after={**row.model_dump(), "cap_check": check.as_dict()},
    )
    emit_workflow_event(
        db,
        event_type="deposit.created",
        actor_user_id=actor_user_id,
        property_id=row.property_id,
        tenant_id=row.tenant_id,
        payload={"deposit_id": row.id, "deposit_amount": str(row.deposit_amount)},
    )
    db.commit()

    log.info("deposit created", extra={"deposit_id": row.id, "tenant_id": row.tenant_id, "property_id": row.property_id})
    notify_safely(
        notifier,
        user_id=row.tenant_id,
        event=DEPOSIT_CREATED,
        payload={"deposit_id": row.id, "deposit_amount": str(row.deposit_amount)},
    )
    return row


def delete_deposit(db: Session, *, deposit_id: int, actor_user_id: Optional[int] = None) -> None:
    """
    Remove a deposit before any money has moved.

    Allowed only while status=held and no settled (completed/disputed)
    inspection is linked; cascades to the inspection and its deductions.
    """
    row = must_get_deposit(db, deposit_id=deposit_id)
    insp = row.inspection

    if row.status != "held" or (insp is not None and is_settled(insp.status)):
        raise ConflictError(
            "refund_in_progress_or_completed",
            "Cannot delete a deposit once its inspection is completed or a refund was processed",
            deposit_id=row.id,
            status=row.status,
        )

    before = row.model_dump()
    before["inspection_id"] = insp.id if insp is not None else None

    audit_write(
        db,
        actor_user_id=actor_user_id,
        action="deposit.delete",
        entity_type="DepositBalance",
        entity_id=row.id,
        before=before,
        after=None,
    )
    emit_workflow_event(
        db,
        event_type="deposit.deleted",
        actor_user_id=actor_user_id,
        property_id=row.property_id,
        tenant_id=row.tenant_id,
        payload={"deposit_id": row.id},
    )

    # Guarded delete: a completion that commits between the check above and
    # this statement makes it match nothing. Children go with ON DELETE CASCADE.
    settled_deposit_ids = select(MoveOutInspection.deposit_id).where(
        MoveOutInspection.status.in_(SETTLED_INSPECTION_STATUSES)
    )
    res = db.execute(
        delete(DepositBalance)
        .where(
            DepositBalance.id == row.id,
            DepositBalance.status == "held",
            DepositBalance.id.not_in(settled_deposit_ids),
        )
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        db.rollback()
        raise ConflictError(
            "refund_in_progress_or_completed",
            "Deposit changed while deleting; its inspection was completed or it was refunded",
            deposit_id=int(deposit_id),
        )

    db.commit()
    db.expunge_all()
    log.info("deposit deleted", extra={"deposit_id": int(deposit_id)})


def apply_settlement(
    db: Session,
    *,
    deposit_id: int,
    total_deductions: Any,
    actor_user_id: Optional[int] = None,
) -> DepositBalance:
    """
    Freeze the settlement figures on the deposit. Status is untouched.

    Runs inside the caller's completion transaction; does not commit.
    deductions and refundable_amount are written by one UPDATE so readers
    never see one without the other.
    """
    total = to_money(total_deductions)
    if total < ZERO:
        raise StateError("invalid_transition", "Deductions total cannot be negative", deposit_id=int(deposit_id))

    row = must_get_deposit(db, deposit_id=deposit_id)
    before = row.model_dump()
    refundable = refundable_amount(row.deposit_amount, total)

    res = db.execute(
        update(DepositBalance)
        .where(DepositBalance.id == row.id, DepositBalance.status == "held")
        .values(deductions=total, refundable_amount=refundable, updated_at=_now())
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        dep_id, status = row.id, row.status
        db.rollback()
        raise StateError(
            "invalid_transition",
            f"Settlement can only be applied to a held deposit (status={status})",
            deposit_id=dep_id,
        )

    row = must_get_deposit(db, deposit_id=deposit_id, fresh=True)
    audit_write(
        db,
        actor_user_id=actor_user_id,
        action="deposit.apply_settlement",
        entity_type="DepositBalance",
        entity_id=row.id,
        before=before,
        after=row.model_dump(),
    )
    return row


def transition_refund(
    db: Session,
    *,
    deposit_id: int,
    new_status: str,
    from_status: Optional[str] = None,
    refunded_amount: Any = None,
    actor_user_id: Optional[int] = None,
) -> DepositBalance:
    """
    Move the deposit to a refund state with a compare-and-set on the status
    the caller observed. Two concurrent refunds cannot both match.

    Runs inside the caller's transaction; does not commit.
    """
    target = (new_status or "").strip().lower()
    if target not in DEPOSIT_STATUSES:
        raise StateError("invalid_transition", f"Unknown deposit status {new_status!r}")

    row = must_get_deposit(db, deposit_id=deposit_id)
    observed = from_status if from_status is not None else row.status
    ensure_deposit_transition(observed, target)

    before = row.model_dump()
    now = _now()
    values: dict[str, Any] = {"status": target, "updated_at": now}
    if refunded_amount is not None:
        values["refunded_amount"] = to_money(refunded_amount)
        values["refunded_at"] = now

    res = db.execute(
        update(DepositBalance)
        .where(DepositBalance.id == row.id, DepositBalance.status == observed)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        current = must_get_deposit(db, deposit_id=deposit_id, fresh=True)
        dep_id, status = current.id, current.status
        db.rollback()
        if is_refunded(status):
            raise ConflictError(
                "already_refunded",
                "Deposit refund has already been processed",
                deposit_id=dep_id,
                status=status,
            )
        raise StateError(
            "invalid_transition",
            f"Deposit cannot move from {status!r} to {target!r}",
            deposit_id=dep_id,
        )

    row = must_get_deposit(db, deposit_id=deposit_id, fresh=True)
    audit_write(
        db,
        actor_user_id=actor_user_id,
        action="deposit.transition_refund",
        entity_type="DepositBalance",
        entity_id=row.id,
        before=before,
        after=row.model_dump(),
    )
    log.info("deposit %s -> %s", observed, target, extra={"deposit_id": row.id})
    return row


def require_deposit(db: Session, *, tenant_id: int, property_id: int) -> DepositBalance:
    row = get_for_pair(db, tenant_id=tenant_id, property_id=property_id)
    if row is None:
        raise NotFoundError(
            "deposit_not_found",
            "No deposit is held for this tenant and property",
            tenant_id=int(tenant_id),
            property_id=int(property_id),
        )
    return row
