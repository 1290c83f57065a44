"""
Pydantic schemas for the scoring and aggregation core.

Input views are built from ORM rows at the storage boundary so the engine
never touches a session; output models are returned to the API unchanged.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import Field, field_validator

from app.core.scoring.options import LAYOUT_LIST, normalize_correct_answers, normalize_options
from app.core.scoring.rules import negative_ratio, question_weight
from app.schemas.common import CamelModel


# ============= Inputs =============

class QuestionView(CamelModel):
    """A contest question with its canonical list-of-strings options."""
    id: int
    question: str = ""
    options: List[str] = Field(default_factory=list)
    option_layout: str = LAYOUT_LIST
    correct_answers: List[str] = Field(default_factory=list)
    score: float = 1.0
    level: Optional[str] = None
    category: Optional[str] = None
    subcategory: Optional[str] = None
    explanation: Optional[str] = None

    @field_validator("score", mode="before")
    @classmethod
    def sanitize_weight(cls, v):
        return question_weight(v)

    @field_validator("correct_answers", mode="before")
    @classmethod
    def sanitize_correct_answers(cls, v):
        return normalize_correct_answers(v)

    @classmethod
    def from_model(cls, question: Any) -> "QuestionView":
        options, layout = normalize_options(question.options)
        return cls(
            id=question.id,
            question=question.question or "",
            options=options,
            option_layout=layout,
            correct_answers=question.correct_answers,
            score=question.score,
            level=question.level,
            category=question.category,
            subcategory=question.subcategory,
            explanation=question.explanation,
        )


class ContestView(CamelModel):
    """Contest definition as seen by the scoring engine."""
    id: int
    title: str = ""
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    has_negative_marking: bool = False
    negative_marking_value: float = 0.0
    questions: List[QuestionView] = Field(default_factory=list)

    @field_validator("negative_marking_value", mode="before")
    @classmethod
    def sanitize_ratio(cls, v):
        return negative_ratio(v)

    @field_validator("has_negative_marking", mode="before")
    @classmethod
    def coerce_flag(cls, v):
        return bool(v)

    @property
    def total_questions(self) -> int:
        return len(self.questions)

    @property
    def total_max_marks(self) -> float:
        return sum(q.score for q in self.questions)

    @classmethod
    def from_model(cls, contest: Any) -> "ContestView":
        return cls(
            id=contest.id,
            title=contest.title or "",
            start_time=contest.start_time,
            end_time=contest.end_time,
            has_negative_marking=contest.has_negative_marking,
            negative_marking_value=contest.negative_marking_value,
            questions=[QuestionView.from_model(q) for q in contest.questions],
        )


class ParticipantView(CamelModel):
    """A participation row with the user's display fields."""
    participation_id: int
    user_id: int
    user_name: str = "Unknown User"
    user_email: str = "No email"
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    submitted_at: Optional[datetime] = None
    violations: int = 0

    @classmethod
    def from_model(cls, participation: Any) -> "ParticipantView":
        user = participation.user
        return cls(
            participation_id=participation.id,
            user_id=participation.user_id,
            user_name=(user.full_name if user and user.full_name else "Unknown User"),
            user_email=(user.email if user and user.email else "No email"),
            start_time=participation.start_time,
            end_time=participation.end_time,
            submitted_at=participation.submitted_at,
            violations=participation.violations or 0,
        )


class AnswerRecord(CamelModel):
    """One row of the answer activity log."""
    user_id: int
    question_id: int
    selected_answer: Optional[str] = None
    time: Optional[datetime] = None
    id: Optional[int] = None

    @classmethod
    def from_model(cls, activity: Any) -> "AnswerRecord":
        return cls(
            id=activity.id,
            user_id=activity.user_id,
            question_id=activity.question_id,
            selected_answer=activity.selected_answer,
            time=activity.time,
        )


# ============= Per-user scoring =============

class QuestionResult(CamelModel):
    """Outcome of one contest question for one user."""
    question_id: int
    question: str
    options: List[str]
    user_answer: str
    correct_answer: str
    is_correct: bool
    is_attempted: bool
    negative_marks: float
    explanation: Optional[str] = None


class ScoreSheet(CamelModel):
    """Aggregate score of one user's answers for a contest."""
    total_questions: int
    attempted: int
    correct: int
    obtained_marks: float
    negative_marks: float
    final_score: float
    total_max_marks: float
    percentage: int
    question_results: List[QuestionResult]


# ============= Aggregation =============

class LeaderboardEntry(CamelModel):
    """Ranked participant."""
    rank: int
    participation_id: int
    user_id: int
    user_name: str
    user_email: str
    correct: int
    final_score: float
    negative_marks: float
    attempted: int
    total_questions: int
    percentage: float
    accuracy: float
    submitted_at: Optional[datetime] = None
    start_time: Optional[datetime] = None
    time_taken: int
    violations: int = 0


class QuestionStat(CamelModel):
    """Per-question tallies across participants."""
    question_id: int
    question: str
    options: List[str]
    correct_ans: List[str]
    total_attempts: int = 0
    correct_attempts: int = 0
    incorrect_attempts: int = 0
    not_attempted: int = 0


class ContestStats(CamelModel):
    """Contest-wide statistics."""
    scores: List[float]
    average: float
    average_percentage: float
    total_questions: int
    total_participants: int
    total_max_marks: float
    question_stats: List[QuestionStat]
    most_correct: Optional[QuestionStat] = None
    most_incorrect: Optional[QuestionStat] = None
    most_attempted: Optional[QuestionStat] = None
    least_attempted: Optional[QuestionStat] = None


class QuestionAnalysis(CamelModel):
    """Question-level breakdown for the detailed analysis view."""
    question_id: int
    question: str
    options: List[str]
    difficulty: str
    category: str
    subcategory: str
    success_rate: float
    total_attempts: int
    correct_attempts: int
    option_counts: Dict[str, int]


class PerformanceMetrics(CamelModel):
    total_participants: int = 0
    completed_participants: int = 0
    average_score: float = 0.0
    highest_score: float = 0.0
    lowest_score: float = 0.0
    standard_deviation: float = 0.0


class CategoryAnalysis(CamelModel):
    question_count: int = 0
    total_attempts: int = 0
    correct_attempts: int = 0
    average_score: float = 0.0
    success_rate: float = 0.0


class DetailedAnalysis(CamelModel):
    """Everything the admin analysis page renders."""
    question_analysis: List[QuestionAnalysis]
    performance_metrics: PerformanceMetrics
    time_analysis: Dict[str, int]
    category_analysis: Dict[str, CategoryAnalysis]
    total_questions: int


class ContestSummary(CamelModel):
    """One row of the all-contests statistics table."""
    contest_id: int
    contest_title: str
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    total_questions: int
    total_participants: int
    average_score: float
    average_percentage: float
    status: str
