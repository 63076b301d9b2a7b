"""
Grading helpers shared by the answer recorder, bulk submitter and insights.

Answer comparison modes:
- ordered: selected and correct answers must match element by element
- set: order is ignored, duplicates collapse
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from uuid import UUID

from quizpulse.errors import ValidationError

MATCH_ORDERED = "ordered"
MATCH_SET = "set"


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positives, toward +inf for negatives."""
    return int(math.floor(value + 0.5))


def clamp(value: int, low: int = 0, high: int = 100) -> int:
    return max(low, min(high, value))


def score_percent(correct: int, total: int) -> int:
    if total <= 0:
        return 0
    return round_half_up(correct / total * 100)


def normalize_answer(selected: Sequence[object] | str) -> list[str]:
    if isinstance(selected, str):
        return [selected]
    return [str(item) for item in selected]


def answers_match(
    selected: Sequence[str],
    correct: Sequence[str],
    mode: str = MATCH_ORDERED,
) -> bool:
    if mode == MATCH_SET:
        return set(selected) == set(correct)
    return list(selected) == list(correct)


def require_uuid(value: object, label: str) -> str:
    """Return the canonical string form of a UUID identifier or raise ValidationError."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"Invalid {label} format", reason=f"{label} cannot be empty")
    try:
        return str(UUID(value.strip()))
    except ValueError as e:
        raise ValidationError(
            f"Invalid {label} format", reason=f"{label} must be a valid UUID"
        ) from e
