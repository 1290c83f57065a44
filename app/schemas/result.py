"""
Request/response schemas for submissions, results and aggregated views.
"""
from typing import List, Optional

from pydantic import Field

from app.core.scoring.schemas import (
    ContestStats,
    ContestSummary,
    DetailedAnalysis,
    LeaderboardEntry,
    QuestionResult,
)
from app.schemas.common import CamelModel


class AnswerSubmit(CamelModel):
    question_id: int
    selected_option: Optional[str] = None


class SubmissionRequest(CamelModel):
    """Schema for submitting contest answers."""

    answers: List[AnswerSubmit] = Field(default_factory=list)
    auto_submitted: bool = False
    violation_type: Optional[str] = None


class SubmissionResults(CamelModel):
    correct_answers: int
    total_questions: int
    attempted_questions: int
    negative_marks: float
    negative_marking_ratio: str
    final_score: float
    time_taken: int
    question_results: List[QuestionResult]


class SubmissionResponse(CamelModel):
    """Outcome of a submission, computed from the submitted answers."""

    message: str
    score: float
    correct: int
    total: int
    attempted: int
    negative_marks: float
    has_negative_marking: bool
    negative_marking_value: float
    negative_marking_ratio: str
    total_max_marks: float
    percentage: int
    time_taken: int
    auto_submitted: bool
    violations: int
    question_results: List[QuestionResult]
    results: SubmissionResults


class UserResult(CamelModel):
    """A user's own result, available after the contest ends."""

    contest_id: int
    contest_title: str
    has_participated: bool
    total_questions: int
    total_max_marks: float
    attempted: int
    correct: int
    negative_marks: float
    final_score: float
    percentage: int
    has_negative_marking: bool
    negative_marking_value: float
    negative_marking_ratio: str
    time_taken: int
    violations: int
    auto_submitted: bool
    question_results: List[QuestionResult]


class ViolationRequest(CamelModel):
    violation_type: str = Field(..., min_length=1)


class ViolationResponse(CamelModel):
    violations: int
    should_auto_submit: bool


class Leaderboard(CamelModel):
    contest_id: int
    contest_title: str
    has_negative_marking: bool
    total_questions: int
    total_participants: int
    leaderboard: List[LeaderboardEntry]


class ContestStatsResponse(ContestStats):
    contest_id: int
    contest_title: str


class AllContestStats(CamelModel):
    contest_stats: List[ContestSummary]


class ContestAnalysis(DetailedAnalysis):
    contest_id: int
    contest_title: str


class ParticipantList(CamelModel):
    contest_id: int
    contest_title: str
    participants: List[LeaderboardEntry]


class ParticipantAnswers(CamelModel):
    """One participant's ranked entry plus their per-question outcomes."""

    contest_id: int
    contest_title: str
    participant: LeaderboardEntry
    obtained_marks: float
    total_max_marks: float
    questions: List[QuestionResult]
