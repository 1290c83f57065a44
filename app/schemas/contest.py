"""
Pydantic schemas for contests and participations.
"""
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import Field, field_validator, model_validator

from app.schemas.common import CamelModel
from app.schemas.question import Question, QuestionPublic


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Naive timestamps are taken as UTC; aware ones are converted to it."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class ContestCreate(CamelModel):
    """Schema for contest creation."""

    title: str = Field(..., min_length=1)
    start_time: datetime
    end_time: datetime
    question_ids: List[int] = Field(..., min_length=1)
    requires_code: bool = False
    has_negative_marking: bool = False
    negative_marking_value: Optional[float] = Field(None, ge=0, le=1)

    @field_validator("start_time", "end_time")
    @classmethod
    def normalize_timezone(cls, v):
        return _as_utc(v)

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Title is required.")
        return v

    @model_validator(mode="after")
    def check_window(self):
        if self.end_time <= self.start_time:
            raise ValueError("End time must be after start time.")
        return self


class ContestUpdate(CamelModel):
    """Schema for contest update; omitted fields keep their stored value."""

    title: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    question_ids: Optional[List[int]] = None
    requires_code: Optional[bool] = None
    has_negative_marking: Optional[bool] = None
    negative_marking_value: Optional[float] = Field(None, ge=0, le=1)

    @field_validator("start_time", "end_time")
    @classmethod
    def normalize_timezone(cls, v):
        return _as_utc(v)


class ContestExtend(CamelModel):
    extension_minutes: int = Field(..., gt=0)


class BulkDeleteRequest(CamelModel):
    contest_ids: List[int] = Field(..., min_length=1)


class JoinByCodeRequest(CamelModel):
    contest_code: str = Field(..., min_length=1)


class Contest(CamelModel):
    """Contest list/detail response."""

    id: int
    title: str
    start_time: datetime
    end_time: datetime
    requires_code: bool
    contest_code: Optional[str] = None
    has_negative_marking: bool
    negative_marking_value: float
    negative_marking_ratio: str
    question_count: int
    participants_count: int = 0
    creator_name: Optional[str] = None
    status: str


class ContestDetail(Contest):
    questions: List[Question]


class UpcomingContest(CamelModel):
    id: int
    title: str
    start_time: datetime
    end_time: datetime
    requires_code: bool
    participants: int


class ContestQuestions(CamelModel):
    """Questions of a contest as served to a participant."""

    id: int
    title: str
    start_time: datetime
    end_time: datetime
    questions: List[QuestionPublic]


class BulkDeleteResponse(CamelModel):
    message: str
    deleted_count: int


class Participation(CamelModel):
    id: int
    user_id: int
    contest_id: int
    start_time: datetime
    end_time: Optional[datetime] = None
    submitted_at: Optional[datetime] = None
    violations: int = 0


class UserParticipation(Participation):
    contest_title: str
    contest_start_time: datetime
    contest_end_time: datetime
    status: str


class JoinResponse(CamelModel):
    message: str
    participation: Participation
    contest: ContestQuestions
