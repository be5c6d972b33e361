# deposit_escrow/domain/deposit_cap.py
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional

from ..errors import ValidationError
from .money import ZERO, AmountPrecisionError, parse_amount, to_money

# Statutory cap: a security deposit may not exceed two months' rent.
LEGAL_CAP_MONTHS = 2


@dataclass(frozen=True)
class CapCheck:
    deposit_amount: Decimal
    monthly_rent: Optional[Decimal]
    max_allowed: Optional[Decimal]
    capped: bool  # False when rent is unknown and the cap could not apply

    def as_dict(self) -> dict:
        return {
            "deposit_amount": str(self.deposit_amount),
            "monthly_rent": str(self.monthly_rent) if self.monthly_rent is not None else None,
            "max_allowed": str(self.max_allowed) if self.max_allowed is not None else None,
            "capped": self.capped,
        }


def max_allowed(monthly_rent: Any) -> Decimal:
    return to_money(to_money(monthly_rent) * LEGAL_CAP_MONTHS)


def validate(deposit_amount: Any, monthly_rent: Any = None) -> CapCheck:
    """
    Validate a proposed deposit against the legal cap.

    - amount must be > 0 regardless of rent, in whole cents, within MAX_AMOUNT
    - rent unknown (None) or <= 0: no legal basis to cap, check skipped
    - rent present but not a number: rejected, never treated as unknown
    - otherwise amount must be <= LEGAL_CAP_MONTHS x rent

    Pure; raises ValidationError, returns a CapCheck on success.
    """
    try:
        amount = parse_amount(deposit_amount)
    except AmountPrecisionError:
        raise ValidationError(
            "invalid_amount",
            "Deposit amount must be in whole cents and within the storable range",
        )
    except ValueError:
        raise ValidationError("amount_not_positive", "Deposit amount must be a number greater than 0")

    if amount <= ZERO:
        raise ValidationError("amount_not_positive", "Deposit amount must be greater than 0")

    rent: Optional[Decimal] = None
    if monthly_rent is not None:
        try:
            rent = parse_amount(monthly_rent)
        except ValueError:
            raise ValidationError("invalid_rent", f"Monthly rent {monthly_rent!r} is not a valid amount")

    if rent is None or rent <= ZERO:
        return CapCheck(deposit_amount=amount, monthly_rent=rent, max_allowed=None, capped=False)

    cap = max_allowed(rent)
    if amount > cap:
        raise ValidationError(
            "exceeds_legal_cap",
            f"Security deposit cannot exceed {cap} ({LEGAL_CAP_MONTHS} months of rent at {rent})",
            max_allowed=str(cap),
            monthly_rent=str(rent),
        )

    return CapCheck(deposit_amount=amount, monthly_rent=rent, max_allowed=cap, capped=True)
