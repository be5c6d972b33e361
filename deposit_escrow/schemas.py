# deposit_escrow/schemas.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional, List, Any

from pydantic import BaseModel, Field, ConfigDict

# Money fields are Decimal end to end; pydantic renders them as JSON strings
# ("15000.00") so no float rounding leaks into clients.


# -------------------- Deposits --------------------

class DepositCreate(BaseModel):
    tenant_id: int
    property_id: int
    deposit_amount: Decimal
    notes: Optional[str] = None
    payment_id: Optional[str] = None


class DepositOut(BaseModel):
    id: int
    tenant_id: int
    property_id: int
    deposit_amount: Decimal
    deductions: Decimal
    refundable_amount: Decimal
    status: str
    payment_id: Optional[str] = None
    monthly_rent_at_creation: Optional[Decimal] = None
    refunded_amount: Optional[Decimal] = None
    refunded_at: Optional[datetime] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)


class DepositStatsOut(BaseModel):
    total: int
    held: int
    refunded: int
    forfeited: int
    total_held_amount: Decimal
    total_refundable: Decimal
    model_config = ConfigDict(from_attributes=True)


class RefundIn(BaseModel):
    tenant_id: int
    property_id: int


# -------------------- Inspections --------------------

class InspectionCreate(BaseModel):
    tenant_id: int
    property_id: int
    inspector_id: Optional[int] = None  # defaults to the calling owner
    checklist: dict[str, Optional[str]] = Field(default_factory=dict)
    photos: List[str] = Field(default_factory=list)
    notes: Optional[str] = None
    inspection_date: Optional[datetime] = None


class InspectionOut(BaseModel):
    id: int
    deposit_id: int
    tenant_id: int
    property_id: int
    inspector_id: int
    inspection_date: datetime
    checklist: dict[str, str] = Field(default_factory=dict)
    photos: List[str] = Field(default_factory=list)
    notes: Optional[str] = None
    status: str
    total_deductions: Decimal
    refundable_amount: Decimal
    completed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)


class ChecklistUpdate(BaseModel):
    item: str
    condition: str


class NotesUpdate(BaseModel):
    notes: Optional[str] = None


class PhotosAdd(BaseModel):
    photos: List[str] = Field(default_factory=list)


# -------------------- Deductions --------------------

class DeductionCreate(BaseModel):
    item_description: str
    cost: Decimal
    category: Optional[str] = None
    notes: Optional[str] = None
    proof_photos: List[str] = Field(default_factory=list)


class DeductionUpdate(BaseModel):
    item_description: Optional[str] = None
    cost: Optional[Decimal] = None
    category: Optional[str] = None
    notes: Optional[str] = None
    proof_photos: Optional[List[str]] = None


class DeductionOut(BaseModel):
    id: int
    inspection_id: int
    item_description: str
    cost: Decimal
    category: Optional[str] = None
    notes: Optional[str] = None
    proof_photos: List[str] = Field(default_factory=list)
    disputed: bool
    dispute_reason: Optional[str] = None
    disputed_at: Optional[datetime] = None
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class DisputeIn(BaseModel):
    reason: str


# -------------------- Settlement --------------------

class SettlementSummaryOut(BaseModel):
    deposit: Optional[DepositOut] = None
    inspection: Optional[InspectionOut] = None
    deductions: List[DeductionOut] = Field(default_factory=list)
    disputed_count: int = 0
    condition_counts: dict[str, int] = Field(default_factory=dict)
    refund_ready: bool = False
    model_config = ConfigDict(from_attributes=True)


class OkOut(BaseModel):
    ok: bool = True
    detail: Optional[Any] = None
