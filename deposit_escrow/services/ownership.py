# deposit_escrow/services/ownership.py
from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..errors import NotFoundError
from ..models import DeductionItem, DepositBalance, MoveOutInspection


def must_get_deposit(db: Session, *, deposit_id: int, fresh: bool = False) -> DepositBalance:
    q = select(DepositBalance).where(DepositBalance.id == int(deposit_id))
    if fresh:
        q = q.execution_options(populate_existing=True)
    row = db.scalar(q)
    if not row:
        raise NotFoundError("deposit_not_found", "Deposit not found", deposit_id=int(deposit_id))
    return row


def must_get_inspection(db: Session, *, inspection_id: int, fresh: bool = False) -> MoveOutInspection:
    q = select(MoveOutInspection).where(MoveOutInspection.id == int(inspection_id))
    if fresh:
        q = q.execution_options(populate_existing=True)
    row = db.scalar(q)
    if not row:
        raise NotFoundError("inspection_not_found", "Inspection not found", inspection_id=int(inspection_id))
    return row


def must_get_deduction(db: Session, *, deduction_id: int, fresh: bool = False) -> DeductionItem:
    q = select(DeductionItem).where(DeductionItem.id == int(deduction_id))
    if fresh:
        q = q.execution_options(populate_existing=True)
    row = db.scalar(q)
    if not row:
        raise NotFoundError("deduction_not_found", "Deduction not found", deduction_id=int(deduction_id))
    return row
