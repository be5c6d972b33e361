# deposit_escrow/routers/deductions.py
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..auth import Principal, require_owner, require_tenant
from ..db import get_db
from ..schemas import DeductionOut, DeductionUpdate, DisputeIn, OkOut
from ..services import deduction_ledger, dispute_manager
from ..services.notifications import Notifier, get_notifier

router = APIRouter(prefix="/deductions", tags=["deductions"])


@router.patch("/{deduction_id}", response_model=DeductionOut)
def update_deduction(
    deduction_id: int,
    payload: DeductionUpdate,
    db: Session = Depends(get_db),
    p: Principal = Depends(require_owner),
):
    return deduction_ledger.update(
        db,
        deduction_id=deduction_id,
        item_description=payload.item_description,
        cost=payload.cost,
        category=payload.category,
        notes=payload.notes,
        proof_photos=payload.proof_photos,
        actor_user_id=p.user_id,
    )


@router.delete("/{deduction_id}", response_model=OkOut)
def remove_deduction(
    deduction_id: int,
    db: Session = Depends(get_db),
    p: Principal = Depends(require_owner),
):
    deduction_ledger.remove(db, deduction_id=deduction_id, actor_user_id=p.user_id)
    return OkOut(ok=True)


@router.post("/{deduction_id}/dispute", response_model=DeductionOut)
def dispute_deduction(
    deduction_id: int,
    payload: DisputeIn,
    db: Session = Depends(get_db),
    p: Principal = Depends(require_tenant),
    notifier: Notifier = Depends(get_notifier),
):
    insp = deduction_ledger.inspection_for(db, deduction_id=deduction_id)
    if not p.is_admin and insp.tenant_id != p.user_id:
        raise HTTPException(status_code=403, detail="Only the tenant on this inspection can dispute its deductions")

    return dispute_manager.dispute(
        db,
        deduction_id=deduction_id,
        reason=payload.reason,
        actor_user_id=p.user_id,
        notifier=notifier,
    )
