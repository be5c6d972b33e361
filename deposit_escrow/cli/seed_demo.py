# deposit_escrow/cli/seed_demo.py
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from ..clients.tenant_directory import StaticTenantDirectory
from ..db import SessionLocal
from ..services import deduction_ledger, deposit_ledger, inspection_recorder
from ..services.notifications import LogNotifier


@dataclass(frozen=True)
class SeedResult:
    deposit_id: int
    inspection_id: Optional[int]
    deduction_id: Optional[int]
    created: bool


def seed_demo(
    *,
    tenant_id: int = 1001,
    property_id: int = 501,
    owner_id: int = 1,
    monthly_rent: Decimal = Decimal("10000.00"),
    deposit_amount: Decimal = Decimal("15000.00"),
    with_inspection: bool = True,
) -> SeedResult:
    """
    A held deposit, optionally with an in-progress move-out inspection and one
    deduction. Re-running returns the existing rows.
    """
    db = SessionLocal()
    try:
        existing = deposit_ledger.get_for_pair(db, tenant_id=tenant_id, property_id=property_id)
        if existing is not None:
            insp = inspection_recorder.get_for_deposit(db, deposit_id=existing.id)
            items = deduction_ledger.list_for(db, inspection_id=insp.id) if insp else []
            return SeedResult(
                deposit_id=existing.id,
                inspection_id=insp.id if insp else None,
                deduction_id=items[0].id if items else None,
                created=False,
            )

        dep = deposit_ledger.create(
            db,
            tenant_id=tenant_id,
            property_id=property_id,
            deposit_amount=deposit_amount,
            notes="demo deposit",
            actor_user_id=owner_id,
            directory=StaticTenantDirectory({tenant_id: monthly_rent}),
            notifier=LogNotifier(),
        )
        if not with_inspection:
            return SeedResult(deposit_id=dep.id, inspection_id=None, deduction_id=None, created=True)

        insp = inspection_recorder.start(
            db,
            tenant_id=tenant_id,
            property_id=property_id,
            inspector_id=owner_id,
            checklist={"walls": "fair", "flooring": "good", "kitchen": "damaged"},
            notes="demo move-out walkthrough",
            actor_user_id=owner_id,
        )
        item = deduction_ledger.add(
            db,
            inspection_id=insp.id,
            item_description="Broken cabinet door",
            cost=Decimal("4000.00"),
            category="Damage",
            actor_user_id=owner_id,
        )
        return SeedResult(deposit_id=dep.id, inspection_id=insp.id, deduction_id=item.id, created=True)
    finally:
        db.close()
