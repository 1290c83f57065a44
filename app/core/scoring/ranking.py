"""
Leaderboard ranking.
"""
import logging
from functools import cmp_to_key
from typing import Iterable, List, Sequence

from app.core.scoring.engine import evaluate_participants
from app.core.scoring.rules import round_2, safe_percentage
from app.core.scoring.schemas import AnswerRecord, ContestView, LeaderboardEntry, ParticipantView
from app.core.scoring.timing import coerce_timestamp, compute_time_taken

logger = logging.getLogger(__name__)


def _comparison_score(entry: LeaderboardEntry, has_negative_marking: bool) -> float:
    return entry.final_score if has_negative_marking else entry.correct


def rank_entries(entries: List[LeaderboardEntry], has_negative_marking: bool) -> List[LeaderboardEntry]:
    """
    Sort entries best first and assign 1-based ranks.

    Higher comparison score wins (final score with negative marking, raw
    correct count without). Equal scores go to the earlier submission; when
    either submission time is missing the pair keeps its input order. Ties
    never share a rank.
    """
    def compare(a: LeaderboardEntry, b: LeaderboardEntry) -> int:
        a_score = _comparison_score(a, has_negative_marking)
        b_score = _comparison_score(b, has_negative_marking)
        if a_score != b_score:
            return -1 if a_score > b_score else 1
        a_time = coerce_timestamp(a.submitted_at)
        b_time = coerce_timestamp(b.submitted_at)
        if a_time is not None and b_time is not None and a_time != b_time:
            return -1 if a_time < b_time else 1
        return 0

    ranked = sorted(entries, key=cmp_to_key(compare))
    for index, entry in enumerate(ranked):
        entry.rank = index + 1
    return ranked


def build_leaderboard(
    contest: ContestView,
    participants: Sequence[ParticipantView],
    records: Iterable[AnswerRecord],
) -> List[LeaderboardEntry]:
    """Score every participant and return the ranked leaderboard."""
    entries = []
    for participant, sheet in evaluate_participants(contest, participants, records):
        entries.append(
            LeaderboardEntry(
                rank=0,
                participation_id=participant.participation_id,
                user_id=participant.user_id,
                user_name=participant.user_name,
                user_email=participant.user_email,
                correct=sheet.correct,
                final_score=sheet.final_score,
                negative_marks=sheet.negative_marks,
                attempted=sheet.attempted,
                total_questions=sheet.total_questions,
                percentage=round_2(safe_percentage(sheet.final_score, sheet.total_max_marks)),
                accuracy=round_2(safe_percentage(sheet.correct, sheet.attempted)),
                submitted_at=participant.submitted_at,
                start_time=participant.start_time,
                time_taken=compute_time_taken(
                    participant.start_time,
                    participant.end_time,
                    participant.submitted_at,
                    contest.start_time,
                    contest.end_time,
                ),
                violations=participant.violations,
            )
        )

    ranked = rank_entries(entries, contest.has_negative_marking)
    logger.info(f"Ranked {len(ranked)} participants for contest {contest.id}")
    return ranked
