# deposit_escrow/services/settlement_engine.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from sqlalchemy.orm import Session

from ..domain.checklist import summarize_conditions
from ..domain.events import emit_workflow_event
from ..domain.settlement_math import refund_status_for
from ..errors import ConflictError, StateError
from ..models import DeductionItem, DepositBalance, MoveOutInspection
from . import deduction_ledger, deposit_ledger, inspection_recorder
from .escrow_state_machine import is_refunded, is_settled
from .dispute_manager import list_disputed
from .notifications import REFUND_PROCESSED, Notifier, notify_safely
from .ownership import must_get_deposit

log = logging.getLogger("escrow.settlement")


def finalize_inspection(
    db: Session,
    *,
    inspection_id: int,
    actor_user_id: Optional[int] = None,
    notifier: Optional[Notifier] = None,
) -> MoveOutInspection:
    return inspection_recorder.complete(
        db, inspection_id=inspection_id, actor_user_id=actor_user_id, notifier=notifier
    )


def process_refund(
    db: Session,
    *,
    tenant_id: int,
    property_id: int,
    actor_user_id: Optional[int] = None,
    notifier: Optional[Notifier] = None,
) -> DepositBalance:
    """
    Release the frozen refundable amount and close the deposit.

    The only writer of DepositBalance.status. Target status follows from the
    settlement figures written at inspection completion:
      refundable == deposit     -> fully_refunded
      0 < refundable < deposit  -> partially_refunded
      refundable == 0           -> forfeited
    """
    deposit = deposit_ledger.require_deposit(db, tenant_id=tenant_id, property_id=property_id)
    deposit = must_get_deposit(db, deposit_id=deposit.id, fresh=True)

    if is_refunded(deposit.status):
        raise ConflictError(
            "already_refunded",
            "Deposit refund has already been processed",
            deposit_id=deposit.id,
            status=deposit.status,
        )

    insp = inspection_recorder.get_for_deposit(db, deposit_id=deposit.id)
    if insp is None or not is_settled(insp.status):
        raise StateError(
            "inspection_not_completed",
            "Please complete the move-out inspection first",
            deposit_id=deposit.id,
        )

    target = refund_status_for(deposit.deposit_amount, deposit.refundable_amount)
    refund = deposit.refundable_amount

    deposit = deposit_ledger.transition_refund(
        db,
        deposit_id=deposit.id,
        new_status=target,
        from_status="held",
        refunded_amount=refund,
        actor_user_id=actor_user_id,
    )
    emit_workflow_event(
        db,
        event_type="refund.processed",
        actor_user_id=actor_user_id,
        property_id=deposit.property_id,
        tenant_id=deposit.tenant_id,
        payload={
            "deposit_id": deposit.id,
            "status": deposit.status,
            "refunded_amount": str(refund),
            "deductions": str(deposit.deductions),
            "disputed_items": len(list_disputed(db, inspection_id=insp.id)),
        },
    )
    db.commit()

    log.info("refund processed status=%s amount=%s", deposit.status, refund, extra={"deposit_id": deposit.id})
    notify_safely(
        notifier,
        user_id=deposit.tenant_id,
        event=REFUND_PROCESSED,
        payload={"deposit_id": deposit.id, "status": deposit.status, "refunded_amount": str(refund)},
    )
    return deposit


@dataclass
class SettlementSummary:
    deposit: Optional[DepositBalance]
    inspection: Optional[MoveOutInspection]
    deductions: list[DeductionItem] = field(default_factory=list)

    @property
    def disputed_count(self) -> int:
        return sum(1 for d in self.deductions if d.disputed)

    @property
    def condition_counts(self) -> dict[str, int]:
        if self.inspection is None:
            return {}
        return summarize_conditions(self.inspection.checklist)

    @property
    def refund_ready(self) -> bool:
        return (
            self.deposit is not None
            and self.deposit.status == "held"
            and self.inspection is not None
            and is_settled(self.inspection.status)
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "deposit": self.deposit.model_dump() if self.deposit else None,
            "inspection": self.inspection.model_dump() if self.inspection else None,
            "deductions": [d.model_dump() for d in self.deductions],
            "disputed_count": self.disputed_count,
            "refund_ready": self.refund_ready,
        }


def settlement_summary(db: Session, *, tenant_id: int) -> SettlementSummary:
    """Tenant deposit card: latest deposit, its inspection and itemized deductions."""
    deposit = deposit_ledger.get(db, tenant_id=tenant_id)
    if deposit is None:
        return SettlementSummary(deposit=None, inspection=None)
    insp = inspection_recorder.get_for_deposit(db, deposit_id=deposit.id)
    items = deduction_ledger.list_for(db, inspection_id=insp.id) if insp is not None else []
    return SettlementSummary(deposit=deposit, inspection=insp, deductions=items)
