# deposit_escrow/routers/inspections.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import Principal, ensure_self_or_staff, get_principal, require_owner
from ..db import get_db
from ..errors import NotFoundError
from ..schemas import (
    ChecklistUpdate,
    DeductionCreate,
    DeductionOut,
    InspectionCreate,
    InspectionOut,
    NotesUpdate,
    PhotosAdd,
)
from ..services import deduction_ledger, inspection_recorder, settlement_engine
from ..services.notifications import Notifier, get_notifier
from ..services.ownership import must_get_inspection

router = APIRouter(prefix="/inspections", tags=["inspections"])


@router.post("", response_model=InspectionOut, status_code=201)
def start_inspection(
    payload: InspectionCreate,
    db: Session = Depends(get_db),
    p: Principal = Depends(require_owner),
):
    return inspection_recorder.start(
        db,
        tenant_id=payload.tenant_id,
        property_id=payload.property_id,
        inspector_id=payload.inspector_id if payload.inspector_id is not None else p.user_id,
        checklist=payload.checklist,
        photos=payload.photos,
        notes=payload.notes,
        inspection_date=payload.inspection_date,
        actor_user_id=p.user_id,
    )


@router.get("/tenant/{tenant_id}", response_model=InspectionOut)
def get_inspection_for_tenant(
    tenant_id: int,
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    ensure_self_or_staff(p, tenant_id)
    row = inspection_recorder.get_for_tenant(db, tenant_id=tenant_id)
    if row is None:
        raise NotFoundError("inspection_not_found", "No move-out inspection for this tenant", tenant_id=tenant_id)
    return row


@router.get("/{inspection_id}", response_model=InspectionOut)
def get_inspection(
    inspection_id: int,
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    row = must_get_inspection(db, inspection_id=inspection_id)
    ensure_self_or_staff(p, row.tenant_id)
    return row


@router.patch("/{inspection_id}/checklist", response_model=InspectionOut)
def update_checklist(
    inspection_id: int,
    payload: ChecklistUpdate,
    db: Session = Depends(get_db),
    p: Principal = Depends(require_owner),
):
    return inspection_recorder.update_checklist(
        db,
        inspection_id=inspection_id,
        item=payload.item,
        condition=payload.condition,
        actor_user_id=p.user_id,
    )


@router.patch("/{inspection_id}/notes", response_model=InspectionOut)
def update_notes(
    inspection_id: int,
    payload: NotesUpdate,
    db: Session = Depends(get_db),
    p: Principal = Depends(require_owner),
):
    return inspection_recorder.update_notes(
        db, inspection_id=inspection_id, notes=payload.notes, actor_user_id=p.user_id
    )


@router.post("/{inspection_id}/photos", response_model=InspectionOut)
def add_photos(
    inspection_id: int,
    payload: PhotosAdd,
    db: Session = Depends(get_db),
    p: Principal = Depends(require_owner),
):
    return inspection_recorder.add_photos(
        db, inspection_id=inspection_id, photos=payload.photos, actor_user_id=p.user_id
    )


@router.post("/{inspection_id}/complete", response_model=InspectionOut)
def complete_inspection(
    inspection_id: int,
    db: Session = Depends(get_db),
    p: Principal = Depends(require_owner),
    notifier: Notifier = Depends(get_notifier),
):
    return settlement_engine.finalize_inspection(
        db, inspection_id=inspection_id, actor_user_id=p.user_id, notifier=notifier
    )


# -----------------------------
# Deductions (nested)
# -----------------------------
@router.post("/{inspection_id}/deductions", response_model=DeductionOut, status_code=201)
def add_deduction(
    inspection_id: int,
    payload: DeductionCreate,
    db: Session = Depends(get_db),
    p: Principal = Depends(require_owner),
):
    return deduction_ledger.add(
        db,
        inspection_id=inspection_id,
        item_description=payload.item_description,
        cost=payload.cost,
        category=payload.category,
        notes=payload.notes,
        proof_photos=payload.proof_photos,
        actor_user_id=p.user_id,
    )


@router.get("/{inspection_id}/deductions", response_model=list[DeductionOut])
def list_deductions(
    inspection_id: int,
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    insp = must_get_inspection(db, inspection_id=inspection_id)
    ensure_self_or_staff(p, insp.tenant_id)
    return deduction_ledger.list_for(db, inspection_id=insp.id)
