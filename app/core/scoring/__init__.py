"""Contest scoring, ranking and statistics core."""
from app.core.scoring.engine import (
    answers_from_payload,
    evaluate_participants,
    latest_answers,
    score_answers,
)
from app.core.scoring.ranking import build_leaderboard, rank_entries
from app.core.scoring.rules import (
    has_answered,
    is_correct_answer,
    negative_ratio,
    negative_ratio_string,
    question_weight,
)
from app.core.scoring.schemas import (
    AnswerRecord,
    ContestStats,
    ContestSummary,
    ContestView,
    DetailedAnalysis,
    LeaderboardEntry,
    ParticipantView,
    QuestionResult,
    QuestionView,
    ScoreSheet,
)
from app.core.scoring.statistics import (
    compute_contest_stats,
    compute_detailed_analysis,
    summarize_contest,
)
from app.core.scoring.timing import compute_time_taken, contest_status

__all__ = [
    "AnswerRecord",
    "ContestStats",
    "ContestSummary",
    "ContestView",
    "DetailedAnalysis",
    "LeaderboardEntry",
    "ParticipantView",
    "QuestionResult",
    "QuestionView",
    "ScoreSheet",
    "answers_from_payload",
    "build_leaderboard",
    "compute_contest_stats",
    "compute_detailed_analysis",
    "compute_time_taken",
    "contest_status",
    "evaluate_participants",
    "has_answered",
    "is_correct_answer",
    "latest_answers",
    "negative_ratio",
    "negative_ratio_string",
    "question_weight",
    "rank_entries",
    "score_answers",
    "summarize_contest",
]
