# deposit_escrow/domain/settlement_math.py
from __future__ import annotations

from decimal import Decimal
from typing import Any

from .money import ZERO, to_money


def refundable_amount(deposit_amount: Any, deductions: Any) -> Decimal:
    # floored at zero: deductions beyond the deposit are not owed back by the tenant here
    return max(ZERO, to_money(deposit_amount) - to_money(deductions))


def refund_status_for(deposit_amount: Any, refundable: Any) -> str:
    """
    Map the frozen refundable amount to the terminal deposit status:
      refundable == deposit      -> fully_refunded
      0 < refundable < deposit   -> partially_refunded
      refundable == 0            -> forfeited
    """
    dep = to_money(deposit_amount)
    ref = to_money(refundable)
    if ref <= ZERO:
        return "forfeited"
    if ref >= dep:
        return "fully_refunded"
    return "partially_refunded"
