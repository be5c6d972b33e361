# deposit_escrow/services/escrow_service.py
from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator, Mapping, Optional

from sqlalchemy.orm import Session

from ..clients.tenant_directory import TenantDirectory
from ..errors import NotFoundError
from ..models import DeductionItem, DepositBalance, MoveOutInspection
from . import deduction_ledger, deposit_ledger, dispute_manager, inspection_recorder, settlement_engine
from .notifications import Notifier


class EscrowService:
    """
    Operation-level entry points for callers that are not HTTP routers
    (CLI, workers, embedding apps). Each call is one committed unit of work.

        from deposit_escrow.services.escrow_service import EscrowService
        svc = EscrowService(db, actor_user_id=owner_id)
    """

    def __init__(
        self,
        db: Session,
        *,
        actor_user_id: Optional[int] = None,
        directory: Optional[TenantDirectory] = None,
        notifier: Optional[Notifier] = None,
    ) -> None:
        self.db = db
        self.actor_user_id = actor_user_id
        self.directory = directory
        self.notifier = notifier

    @contextmanager
    def _unit(self) -> Iterator[None]:
        # a failed call leaves no open transaction (or write lock) on the session
        try:
            yield
        except Exception:
            self.db.rollback()
            raise

    def create_deposit(
        self,
        tenant_id: int,
        property_id: int,
        deposit_amount: Any,
        notes: Optional[str] = None,
        payment_id: Optional[str] = None,
    ) -> DepositBalance:
        with self._unit():
            return deposit_ledger.create(
                self.db,
                tenant_id=tenant_id,
                property_id=property_id,
                deposit_amount=deposit_amount,
                notes=notes,
                payment_id=payment_id,
                actor_user_id=self.actor_user_id,
                directory=self.directory,
                notifier=self.notifier,
            )

    def get_deposit(self, tenant_id: int) -> DepositBalance:
        row = deposit_ledger.get(self.db, tenant_id=tenant_id)
        if row is None:
            raise NotFoundError("deposit_not_found", "No deposit found for this tenant", tenant_id=int(tenant_id))
        return row

    def delete_deposit(self, deposit_id: int) -> None:
        with self._unit():
            deposit_ledger.delete_deposit(self.db, deposit_id=deposit_id, actor_user_id=self.actor_user_id)

    def start_inspection(
        self,
        tenant_id: int,
        property_id: int,
        inspector_id: int,
        checklist: Optional[Mapping[str, Any]] = None,
        photos: Optional[list[str]] = None,
        notes: Optional[str] = None,
    ) -> MoveOutInspection:
        with self._unit():
            return inspection_recorder.start(
                self.db,
                tenant_id=tenant_id,
                property_id=property_id,
                inspector_id=inspector_id,
                checklist=checklist,
                photos=photos,
                notes=notes,
                actor_user_id=self.actor_user_id,
            )

    def add_deduction(
        self,
        inspection_id: int,
        description: str,
        cost: Any,
        category: Optional[str] = None,
        notes: Optional[str] = None,
        photos: Optional[list[str]] = None,
    ) -> DeductionItem:
        with self._unit():
            return deduction_ledger.add(
                self.db,
                inspection_id=inspection_id,
                item_description=description,
                cost=cost,
                category=category,
                notes=notes,
                proof_photos=photos,
                actor_user_id=self.actor_user_id,
            )

    def remove_deduction(self, deduction_id: int) -> None:
        with self._unit():
            deduction_ledger.remove(self.db, deduction_id=deduction_id, actor_user_id=self.actor_user_id)

    def complete_inspection(self, inspection_id: int) -> MoveOutInspection:
        with self._unit():
            return settlement_engine.finalize_inspection(
                self.db, inspection_id=inspection_id, actor_user_id=self.actor_user_id, notifier=self.notifier
            )

    def dispute_deduction(self, deduction_id: int, reason: str) -> DeductionItem:
        with self._unit():
            return dispute_manager.dispute(
                self.db,
                deduction_id=deduction_id,
                reason=reason,
                actor_user_id=self.actor_user_id,
                notifier=self.notifier,
            )

    def process_refund(self, tenant_id: int, property_id: int) -> DepositBalance:
        with self._unit():
            return settlement_engine.process_refund(
                self.db,
                tenant_id=tenant_id,
                property_id=property_id,
                actor_user_id=self.actor_user_id,
                notifier=self.notifier,
            )
