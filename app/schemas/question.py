"""
Pydantic schemas for the question bank.
"""
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import Field, field_validator, model_validator

from app.core.scoring.options import normalize_correct_answers, normalize_options
from app.core.scoring.rules import question_weight
from app.schemas.common import CamelModel

Level = Literal["easy", "medium", "hard"]
OPTIONS_PER_QUESTION = 4


class QuestionBase(CamelModel):
    """Fields shared by question creation and bulk import."""

    category: str = Field(..., min_length=1)
    subcategory: str = Field(..., min_length=1)
    level: Level
    question: str = Field(..., min_length=1)
    options: List[str]
    correct_answers: List[str]
    score: float = 1.0
    explanation: str = ""
    visibility: bool = True

    @field_validator("options", mode="before")
    @classmethod
    def canonical_options(cls, v):
        options, _ = normalize_options(v)
        return options

    @field_validator("correct_answers", mode="before")
    @classmethod
    def canonical_correct_answers(cls, v):
        return normalize_correct_answers(v)

    @field_validator("score", mode="before")
    @classmethod
    def default_weight(cls, v):
        return question_weight(v)

    @field_validator("explanation", mode="before")
    @classmethod
    def empty_explanation(cls, v):
        return v or ""

    @model_validator(mode="after")
    def check_answer_key(self):
        if len(self.options) != OPTIONS_PER_QUESTION:
            raise ValueError(f"Options must be an array with exactly {OPTIONS_PER_QUESTION} elements.")
        if any(not option or not option.strip() for option in self.options):
            raise ValueError("All options must have content.")
        if not self.correct_answers:
            raise ValueError("At least one correct answer must be provided.")
        trimmed = {option.strip() for option in self.options}
        unknown = [answer for answer in self.correct_answers if answer not in trimmed]
        if unknown:
            raise ValueError(f"Correct answers must match one of the provided options exactly: {unknown}")
        return self


class QuestionCreate(QuestionBase):
    """Schema for question creation."""

    pass


class QuestionUpdate(CamelModel):
    """Schema for question update; merged onto the stored question then re-validated."""

    category: Optional[str] = None
    subcategory: Optional[str] = None
    level: Optional[Level] = None
    question: Optional[str] = None
    options: Optional[List[str]] = None
    correct_answers: Optional[List[str]] = None
    score: Optional[float] = None
    explanation: Optional[str] = None
    visibility: Optional[bool] = None


class VisibilityUpdate(CamelModel):
    visibility: bool


class QuestionPublic(CamelModel):
    """Question as shown to participants (no answer key)."""

    id: int
    category: str
    subcategory: str
    level: str
    question: str
    options: List[str]
    score: float = 1.0

    @field_validator("options", mode="before")
    @classmethod
    def canonical_options(cls, v):
        options, _ = normalize_options(v)
        return options

    @field_validator("score", mode="before")
    @classmethod
    def default_weight(cls, v):
        return question_weight(v)


class Question(QuestionPublic):
    """Full question for staff."""

    correct_answers: List[str]
    explanation: Optional[str] = ""
    visibility: bool
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None

    @field_validator("correct_answers", mode="before")
    @classmethod
    def canonical_correct_answers(cls, v):
        return normalize_correct_answers(v)


class QuestionImportResult(CamelModel):
    message: str
    created: int
