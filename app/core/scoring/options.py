"""
Option shape normalization and option-level tallies.

Questions store their options as a list of four strings. Rows created before
that migration store ``{"a": .., "b": .., "c": .., "d": ..}`` and their answers
as the key letter. Both shapes are converted here so scoring only ever sees a
list; the layout tag is kept for the per-option breakdown.
"""
import json
from typing import Any, Dict, Iterable, List, Optional, Tuple

from app.core.scoring.rules import has_answered

LAYOUT_LIST = "list"
LAYOUT_KEYED = "keyed"
LEGACY_OPTION_KEYS = ("a", "b", "c", "d")
NOT_ATTEMPTED_KEY = "notAttempted"


def normalize_options(raw: Any) -> Tuple[List[str], str]:
    """Return ``(options, layout)`` for any stored option shape."""
    if isinstance(raw, dict):
        return [str(raw.get(key) or "") for key in LEGACY_OPTION_KEYS], LAYOUT_KEYED
    if isinstance(raw, str):
        text = raw.strip()
        if text.startswith("[") or text.startswith("{"):
            try:
                return normalize_options(json.loads(text))
            except json.JSONDecodeError:
                pass
        return [part.strip() for part in text.split(",")] if text else [], LAYOUT_LIST
    if isinstance(raw, (list, tuple)):
        return ["" if option is None else str(option) for option in raw], LAYOUT_LIST
    return [], LAYOUT_LIST


def normalize_correct_answers(raw: Any) -> List[str]:
    """Accept a list or a comma separated string; drop blanks, trim the rest."""
    if raw is None:
        return []
    if isinstance(raw, str):
        text = raw.strip()
        if text.startswith("["):
            try:
                return normalize_correct_answers(json.loads(text))
            except json.JSONDecodeError:
                pass
        items: Iterable[Any] = text.split(",")
    elif isinstance(raw, (list, tuple, set)):
        items = raw
    else:
        items = [raw]
    return [str(item).strip() for item in items if item is not None and str(item).strip()]


def _legacy_key(value: str, options: List[str]) -> Optional[str]:
    key = value.strip().lower()
    if key in LEGACY_OPTION_KEYS:
        return key
    for legacy_key, option in zip(LEGACY_OPTION_KEYS, options):
        if option.strip() == value.strip():
            return legacy_key
    return None


def tally_options(options: List[str], layout: str, answers: Iterable[Any]) -> Dict[str, int]:
    """
    Count selections per option plus a ``notAttempted`` bucket.

    ``answers`` holds one entry per participant (``None`` for no answer).
    Answers that match no option are counted as not attempted.
    """
    if layout == LAYOUT_KEYED:
        counts = {key: 0 for key in LEGACY_OPTION_KEYS}
    else:
        counts = {option: 0 for option in options}
    counts[NOT_ATTEMPTED_KEY] = 0

    for value in answers:
        if not has_answered(value):
            counts[NOT_ATTEMPTED_KEY] += 1
            continue
        if layout == LAYOUT_KEYED:
            key = _legacy_key(value, options)
        else:
            key = value.strip() if value.strip() in options else None
            if key is None and value in options:
                key = value
        if key is None:
            counts[NOT_ATTEMPTED_KEY] += 1
        else:
            counts[key] += 1
    return counts
