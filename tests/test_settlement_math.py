from __future__ import annotations

from decimal import Decimal

import pytest

from deposit_escrow.domain.checklist import normalize_checklist, summarize_conditions
from deposit_escrow.domain.money import MAX_AMOUNT, money_sum, parse_amount, to_money
from deposit_escrow.domain.settlement_math import refund_status_for, refundable_amount
from deposit_escrow.errors import ValidationError


def test_refundable_amount():
    assert refundable_amount(Decimal("15000"), money_sum([Decimal("4000")])) == Decimal("11000.00")


def test_refundable_is_floored_at_zero():
    total = money_sum([Decimal("3000"), Decimal("5000")])
    assert total == Decimal("8000.00")
    assert refundable_amount(Decimal("5000"), total) == Decimal("0.00")
    assert refundable_amount("100", "250.50") == Decimal("0.00")


def test_money_sum_is_exact():
    assert money_sum(["0.10", "0.20", 0.1]) == Decimal("0.40")
    assert to_money(1) == Decimal("1.00")
    with pytest.raises(ValueError):
        to_money(float("nan"))


@pytest.mark.parametrize(
    "deposit,refundable,expected",
    [
        ("15000", "15000", "fully_refunded"),
        ("15000", "11000", "partially_refunded"),
        ("15000", "0", "forfeited"),
    ],
)
def test_refund_status_mapping(deposit, refundable, expected):
    assert refund_status_for(deposit, refundable) == expected


def test_checklist_normalization_and_summary():
    clean = normalize_checklist({"Walls": "Fair", "kitchen area": "damaged", "doors": "", "windows": None})
    assert clean == {"walls": "fair", "kitchen_area": "damaged"}
    assert summarize_conditions(clean) == {"good": 0, "fair": 1, "poor": 0, "damaged": 1}


def test_checklist_rejects_unknown_condition():
    with pytest.raises(ValidationError) as ei:
        normalize_checklist({"walls": "excellent"})
    assert ei.value.code == "invalid_condition"


def test_checklist_rejects_duplicate_area():
    with pytest.raises(ValidationError) as ei:
        normalize_checklist({"Walls": "good", "walls": "damaged"})
    assert ei.value.code == "duplicate_area"


def test_to_money_out_of_range_is_value_error():
    with pytest.raises(ValueError):
        to_money(Decimal("1e30"))


def test_parse_amount_never_rounds():
    assert parse_amount("20000.00") == Decimal("20000.00")
    assert parse_amount(MAX_AMOUNT) == MAX_AMOUNT
    for bad in ("20000.004", MAX_AMOUNT + Decimal("0.01"), "1e30"):
        with pytest.raises(ValueError):
            parse_amount(bad)
