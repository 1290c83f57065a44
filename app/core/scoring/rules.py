"""
Scoring rules shared by every place that decides attempted/correct/marks.

Submission scoring, per-user results, leaderboards, statistics and exports all
go through these helpers so the predicates cannot drift apart.
"""
import math
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Iterable, Optional

NULL_LITERAL = "null"
DEFAULT_QUESTION_WEIGHT = 1.0
MAX_RATIO_DENOMINATOR = 10
RATIO_TOLERANCE = 1e-6


def has_answered(value: Any) -> bool:
    """
    Whether a selected answer counts as attempted.

    True only for a string that is non-empty after trimming and is not the
    literal ``"null"`` left behind by clients serializing a missing value.
    """
    if not isinstance(value, str):
        return False
    stripped = value.strip()
    return stripped != "" and stripped != NULL_LITERAL


def is_correct_answer(value: Any, correct_answers: Iterable[str]) -> bool:
    """An attempted answer is correct iff its trimmed text is in the correct set."""
    if not has_answered(value):
        return False
    accepted = {str(answer).strip() for answer in correct_answers if answer is not None}
    return value.strip() in accepted


def _as_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def question_weight(value: Any) -> float:
    """Question score weight; missing, non-finite or non-positive becomes 1."""
    number = _as_float(value)
    if number is None or number <= 0:
        return DEFAULT_QUESTION_WEIGHT
    return number


def negative_ratio(value: Any) -> float:
    """Negative-marking ratio clamped to [0, 1]; unusable values become 0."""
    number = _as_float(value)
    if number is None or number <= 0:
        return 0.0
    return min(number, 1.0)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from negative infinity."""
    return int(math.floor(value + 0.5))


def round_2(value: float) -> float:
    return math.floor(value * 100 + 0.5) / 100


def safe_percentage(part: float, whole: float) -> float:
    """``part / whole * 100`` or 0 when the base is not positive."""
    if whole > 0:
        return part / whole * 100
    return 0.0


def negative_ratio_string(value: Any) -> str:
    """
    Human readable form of a negative-marking ratio.

    ``0.25`` -> ``"1/4"``, ``0.3333335`` -> ``"1/3"``, ``0.37`` -> ``"0.37"``,
    zero or negative -> ``"0"``.
    """
    number = _as_float(value)
    if number is None or number <= 0:
        return "0"
    for denominator in range(1, MAX_RATIO_DENOMINATOR + 1):
        if abs(1 / denominator - number) < RATIO_TOLERANCE:
            return f"1/{denominator}"
    rounded = Decimal(number).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP).normalize()
    return format(rounded, "f")
