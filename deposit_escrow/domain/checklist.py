# deposit_escrow/domain/checklist.py
from __future__ import annotations

from typing import Any, Mapping, Optional

from ..errors import ValidationError

STANDARD_AREAS: tuple[str, ...] = (
    "walls",
    "flooring",
    "appliances",
    "plumbing",
    "electrical",
    "windows",
    "doors",
    "kitchen",
    "bathroom",
    "cleanliness",
)

CONDITIONS: tuple[str, ...] = ("good", "fair", "poor", "damaged")

# Suggested, not enforced: category stays a free-form tag.
DEDUCTION_CATEGORIES: tuple[str, ...] = (
    "Damage",
    "Cleaning",
    "Repairs",
    "Missing Items",
    "Unpaid Bills",
    "Other",
)


def normalize_area(raw: Optional[str]) -> str:
    s = (raw or "").strip().lower().replace(" ", "_").replace("-", "_")
    if not s:
        raise ValidationError("missing_field", "Inspection area name is required")
    return s


def normalize_condition(raw: Any) -> str:
    s = str(raw or "").strip().lower()
    if s not in CONDITIONS:
        raise ValidationError(
            "invalid_condition",
            f"Condition must be one of {', '.join(CONDITIONS)}; got {raw!r}",
        )
    return s


def normalize_checklist(raw: Optional[Mapping[str, Any]]) -> dict[str, str]:
    """
    Canonical checklist: normalized area -> condition.

    Unrated areas (None / empty) are dropped rather than rejected, matching a
    partially filled form. Two keys naming the same area ("Walls", "walls")
    are rejected.
    """
    out: dict[str, str] = {}
    seen: dict[str, str] = {}
    for area, cond in (raw or {}).items():
        key = normalize_area(area)
        if key in seen:
            raise ValidationError(
                "duplicate_area",
                f"Checklist names area {key!r} twice ({seen[key]!r} and {area!r})",
                area=key,
            )
        seen[key] = area
        if cond is None or str(cond).strip() == "":
            continue
        out[key] = normalize_condition(cond)
    return out


def summarize_conditions(checklist: Mapping[str, str]) -> dict[str, int]:
    counts = {c: 0 for c in CONDITIONS}
    for cond in checklist.values():
        if cond in counts:
            counts[cond] += 1
    return counts
