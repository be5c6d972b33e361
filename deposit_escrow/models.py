# deposit_escrow/models.py
from __future__ import annotations

import json
from datetime import datetime
from decimal import Decimal
from typing import Any, List, Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Index,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .db import Base

MONEY = Numeric(12, 2)


def _loads(raw: Optional[str], default: Any) -> Any:
    if not raw:
        return default
    try:
        v = json.loads(raw)
    except ValueError:
        return default
    return v if isinstance(v, type(default)) else default


def _dumps(v: Any) -> str:
    return json.dumps(v, ensure_ascii=False, sort_keys=True)


# -----------------------------
# Audit / workflow log
# -----------------------------
class AuditEvent(Base):
    __tablename__ = "audit_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    actor_user_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)

    action: Mapped[str] = mapped_column(String(80), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(80), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(80), nullable=False)

    before_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    after_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


class WorkflowEvent(Base):
    __tablename__ = "workflow_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    property_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    tenant_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    actor_user_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    event_type: Mapped[str] = mapped_column(String(80), nullable=False, index=True)
    payload_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


# -----------------------------
# Escrow: deposits
# -----------------------------
class DepositBalance(Base):
    __tablename__ = "deposit_balances"
    __table_args__ = (
        UniqueConstraint("tenant_id", "property_id", name="uq_deposit_balances_tenant_property"),
        Index("ix_deposit_balances_property_status", "property_id", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    # tenant / property live in external directories; plain ids, no FK
    tenant_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    property_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    deposit_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    deductions: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0.00"))
    refundable_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)

    status: Mapped[str] = mapped_column(String(30), nullable=False, default="held")  # held|partially_refunded|fully_refunded|forfeited

    payment_id: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    monthly_rent_at_creation: Mapped[Optional[Decimal]] = mapped_column(MONEY, nullable=True)
    created_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    refunded_amount: Mapped[Optional[Decimal]] = mapped_column(MONEY, nullable=True)
    refunded_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    inspection: Mapped[Optional["MoveOutInspection"]] = relationship(
        back_populates="deposit",
        uselist=False,
        cascade="all, delete-orphan",
    )

    def model_dump(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "property_id": self.property_id,
            "deposit_amount": str(self.deposit_amount),
            "deductions": str(self.deductions),
            "refundable_amount": str(self.refundable_amount),
            "status": self.status,
            "refunded_amount": str(self.refunded_amount) if self.refunded_amount is not None else None,
        }


# -----------------------------
# Escrow: move-out inspection
# -----------------------------
class MoveOutInspection(Base):
    __tablename__ = "move_out_inspections"
    __table_args__ = (UniqueConstraint("deposit_id", name="uq_move_out_inspections_deposit"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    deposit_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("deposit_balances.id", ondelete="CASCADE"), nullable=False, index=True
    )
    tenant_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    property_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    inspector_id: Mapped[int] = mapped_column(Integer, nullable=False)

    inspection_date: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    checklist_json: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    photos_json: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="in_progress")  # in_progress|completed|disputed

    total_deductions: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0.00"))
    refundable_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0.00"))

    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    deposit: Mapped["DepositBalance"] = relationship(back_populates="inspection")
    deductions: Mapped[List["DeductionItem"]] = relationship(
        back_populates="inspection",
        cascade="all, delete-orphan",
        order_by="DeductionItem.id",
    )

    @property
    def checklist(self) -> dict[str, str]:
        return _loads(self.checklist_json, {})

    @checklist.setter
    def checklist(self, value: dict[str, str]) -> None:
        self.checklist_json = _dumps(dict(value or {}))

    @property
    def photos(self) -> list[str]:
        return _loads(self.photos_json, [])

    @photos.setter
    def photos(self, value: list[str]) -> None:
        self.photos_json = _dumps(list(value or []))

    def model_dump(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "deposit_id": self.deposit_id,
            "status": self.status,
            "checklist": self.checklist,
            "notes": self.notes,
            "total_deductions": str(self.total_deductions),
            "refundable_amount": str(self.refundable_amount),
        }


# -----------------------------
# Escrow: itemized deductions
# -----------------------------
class DeductionItem(Base):
    __tablename__ = "deduction_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    inspection_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("move_out_inspections.id", ondelete="CASCADE"), nullable=False, index=True
    )

    item_description: Mapped[str] = mapped_column(String(255), nullable=False)
    cost: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    category: Mapped[Optional[str]] = mapped_column(String(60), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    proof_photos_json: Mapped[str] = mapped_column(Text, nullable=False, default="[]")

    # tenant-controlled, set once, never cleared by the core
    disputed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    dispute_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    disputed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    disputed_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    inspection: Mapped["MoveOutInspection"] = relationship(back_populates="deductions")

    @property
    def proof_photos(self) -> list[str]:
        return _loads(self.proof_photos_json, [])

    @proof_photos.setter
    def proof_photos(self, value: list[str]) -> None:
        self.proof_photos_json = _dumps(list(value or []))

    def model_dump(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "inspection_id": self.inspection_id,
            "item_description": self.item_description,
            "cost": str(self.cost),
            "category": self.category,
            "disputed": self.disputed,
        }
