"""
Bulk question import from Excel workbooks and JSON documents.

Rows are validated with the same schema as single-question creation. The
batch is all-or-nothing: the first invalid row rejects the upload and the
error names the row.
"""
import io
import json
import logging
import math
from typing import Any, Dict, List

import pandas as pd
from pydantic import ValidationError

from app.core.exceptions import ValidationFailedError
from app.schemas.question import QuestionCreate

logger = logging.getLogger(__name__)

# canonical field -> accepted column headers
COLUMN_ALIASES = {
    "category": ("category",),
    "subcategory": ("subcategory", "subCategory", "sub_category"),
    "level": ("level", "difficulty"),
    "question": ("question",),
    "options": ("options",),
    "correct_answers": ("correctAnswers", "correct_answers", "correctAns"),
    "score": ("score", "weight"),
    "explanation": ("explanation",),
    "visibility": ("visibility",),
}
OPTION_COLUMNS = ("option1", "option2", "option3", "option4")


def _clean(value: Any) -> Any:
    """
    Undo pandas cell typing.

    Empty cells come back as NaN, and a numeric column with blanks is read
    as floats, so ``4`` arrives as ``4.0``.
    """
    if isinstance(value, float):
        if math.isnan(value):
            return None
        if value.is_integer():
            return int(value)
    if isinstance(value, str):
        return value.strip()
    return value


def _parse_bool(value: Any, default: bool = True) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    return str(value).strip().lower() not in ("false", "0", "no", "")


def _normalize_row(row: Dict[str, Any]) -> Dict[str, Any]:
    cleaned = {key: _clean(value) for key, value in row.items()}
    data: Dict[str, Any] = {}
    for field, aliases in COLUMN_ALIASES.items():
        for alias in aliases:
            if cleaned.get(alias) is not None:
                data[field] = cleaned[alias]
                break

    # spreadsheets may spread options over option1..option4 columns
    if "options" not in data and any(cleaned.get(c) is not None for c in OPTION_COLUMNS):
        data["options"] = ["" if cleaned.get(c) is None else str(cleaned.get(c)) for c in OPTION_COLUMNS]

    if isinstance(data.get("level"), str):
        data["level"] = data["level"].lower()
    data["visibility"] = _parse_bool(data.get("visibility"))
    return data


def build_questions(rows: List[Dict[str, Any]]) -> List[QuestionCreate]:
    """Validate raw rows; raises ``ValidationFailedError`` naming the first bad row."""
    if not rows:
        raise ValidationFailedError("No questions found in the uploaded file.")

    questions = []
    for index, row in enumerate(rows, start=1):
        if not isinstance(row, dict):
            raise ValidationFailedError(f"Row {index}: expected an object.")
        try:
            questions.append(QuestionCreate.model_validate(_normalize_row(row)))
        except ValidationError as e:
            first = e.errors()[0]
            location = ".".join(str(part) for part in first.get("loc", ()) if part != "__root__")
            message = first.get("msg", "invalid value")
            detail = f"Row {index}: {location}: {message}" if location else f"Row {index}: {message}"
            raise ValidationFailedError(detail)
    return questions


def parse_excel(content: bytes) -> List[QuestionCreate]:
    try:
        df = pd.read_excel(io.BytesIO(content), engine="openpyxl")
    except Exception as e:
        logger.warning(f"Unreadable question workbook: {e}")
        raise ValidationFailedError("Could not read the Excel file.")

    logger.info(f"Parsed {len(df)} rows from question workbook")
    return build_questions(df.to_dict(orient="records"))


def parse_json(content: bytes) -> List[QuestionCreate]:
    try:
        payload = json.loads(content)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ValidationFailedError(f"Invalid JSON file: {e}")

    if isinstance(payload, dict) and isinstance(payload.get("questions"), list):
        payload = payload["questions"]
    if not isinstance(payload, list):
        raise ValidationFailedError("JSON file must contain an array of questions.")
    return build_questions(payload)
