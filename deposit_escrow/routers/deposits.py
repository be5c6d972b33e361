# deposit_escrow/routers/deposits.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth import Principal, ensure_self_or_staff, get_principal, require_owner
from ..clients.tenant_directory import TenantDirectory, get_tenant_directory
from ..db import get_db
from ..errors import NotFoundError
from ..schemas import (
    DepositCreate,
    DepositOut,
    DepositStatsOut,
    OkOut,
    RefundIn,
    SettlementSummaryOut,
)
from ..services import deposit_ledger, settlement_engine
from ..services.notifications import Notifier, get_notifier

router = APIRouter(prefix="/deposits", tags=["deposits"])


@router.post("", response_model=DepositOut, status_code=201)
def create_deposit(
    payload: DepositCreate,
    db: Session = Depends(get_db),
    p: Principal = Depends(require_owner),
    directory: TenantDirectory = Depends(get_tenant_directory),
    notifier: Notifier = Depends(get_notifier),
):
    return deposit_ledger.create(
        db,
        tenant_id=payload.tenant_id,
        property_id=payload.property_id,
        deposit_amount=payload.deposit_amount,
        notes=payload.notes,
        payment_id=payload.payment_id,
        actor_user_id=p.user_id,
        directory=directory,
        notifier=notifier,
    )


@router.get("", response_model=list[DepositOut])
def list_deposits(
    property_ids: Optional[list[int]] = Query(default=None),
    status: Optional[str] = Query(default=None),
    limit: int = Query(default=200, ge=1, le=1000),
    db: Session = Depends(get_db),
    _p: Principal = Depends(require_owner),
):
    return deposit_ledger.list_deposits(db, property_ids=property_ids, status=status, limit=limit)


@router.get("/stats", response_model=DepositStatsOut)
def deposit_stats(
    property_ids: Optional[list[int]] = Query(default=None),
    db: Session = Depends(get_db),
    _p: Principal = Depends(require_owner),
):
    return deposit_ledger.deposit_stats(db, property_ids=property_ids)


@router.get("/tenant/{tenant_id}", response_model=DepositOut)
def get_deposit_for_tenant(
    tenant_id: int,
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    ensure_self_or_staff(p, tenant_id)
    row = deposit_ledger.get(db, tenant_id=tenant_id)
    if row is None:
        raise NotFoundError("deposit_not_found", "No deposit found for this tenant", tenant_id=tenant_id)
    return row


@router.get("/tenant/{tenant_id}/summary", response_model=SettlementSummaryOut)
def settlement_summary(
    tenant_id: int,
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    ensure_self_or_staff(p, tenant_id)
    s = settlement_engine.settlement_summary(db, tenant_id=tenant_id)
    return SettlementSummaryOut.model_validate(s, from_attributes=True)


@router.get("/property/{property_id}", response_model=DepositOut)
def get_deposit_for_property(
    property_id: int,
    db: Session = Depends(get_db),
    _p: Principal = Depends(require_owner),
):
    row = deposit_ledger.get_by_property(db, property_id=property_id)
    if row is None:
        raise NotFoundError("deposit_not_found", "No deposit found for this property", property_id=property_id)
    return row


@router.get("/{deposit_id}", response_model=DepositOut)
def get_deposit(
    deposit_id: int,
    db: Session = Depends(get_db),
    _p: Principal = Depends(require_owner),
):
    row = deposit_ledger.get_by_id(db, deposit_id=deposit_id)
    if row is None:
        raise NotFoundError("deposit_not_found", "Deposit not found", deposit_id=deposit_id)
    return row


@router.delete("/{deposit_id}", response_model=OkOut)
def delete_deposit(
    deposit_id: int,
    db: Session = Depends(get_db),
    p: Principal = Depends(require_owner),
):
    deposit_ledger.delete_deposit(db, deposit_id=deposit_id, actor_user_id=p.user_id)
    return OkOut(ok=True)


@router.post("/refund", response_model=DepositOut)
def process_refund(
    payload: RefundIn,
    db: Session = Depends(get_db),
    p: Principal = Depends(require_owner),
    notifier: Notifier = Depends(get_notifier),
):
    return settlement_engine.process_refund(
        db,
        tenant_id=payload.tenant_id,
        property_id=payload.property_id,
        actor_user_id=p.user_id,
        notifier=notifier,
    )
