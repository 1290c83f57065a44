"""
Scoring engine: turns one user's final answers into a score sheet.
"""
from collections import defaultdict
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from app.core.scoring.rules import (
    has_answered,
    is_correct_answer,
    round_half_up,
    safe_percentage,
)
from app.core.scoring.schemas import (
    AnswerRecord,
    ContestView,
    ParticipantView,
    QuestionResult,
    ScoreSheet,
)
from app.core.scoring.timing import coerce_timestamp

AnswerMap = Mapping[int, Optional[str]]

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def score_answers(contest: ContestView, answers: AnswerMap) -> ScoreSheet:
    """
    Score a user's answers against every question of the contest.

    ``answers`` maps question id to the selected option text (or ``None``).
    Questions missing from the map appear in the result as not attempted,
    and ids that are not part of the contest are ignored.
    """
    ratio = contest.negative_marking_value if contest.has_negative_marking else 0.0

    attempted = 0
    correct = 0
    obtained_marks = 0.0
    negative_marks = 0.0
    question_results: List[QuestionResult] = []

    for question in contest.questions:
        raw_answer = answers.get(question.id)
        is_attempted = has_answered(raw_answer)
        is_correct = is_attempted and is_correct_answer(raw_answer, question.correct_answers)

        negative_delta = 0.0
        if is_attempted:
            attempted += 1
            if is_correct:
                correct += 1
                obtained_marks += question.score
            elif contest.has_negative_marking:
                negative_delta = ratio * question.score
                negative_marks += negative_delta

        question_results.append(
            QuestionResult(
                question_id=question.id,
                question=question.question,
                options=question.options,
                user_answer=raw_answer if isinstance(raw_answer, str) else "",
                correct_answer=", ".join(question.correct_answers),
                is_correct=is_correct,
                is_attempted=is_attempted,
                negative_marks=negative_delta,
                explanation=question.explanation,
            )
        )

    final_score = max(0.0, obtained_marks - negative_marks)
    total_max_marks = contest.total_max_marks

    return ScoreSheet(
        total_questions=contest.total_questions,
        attempted=attempted,
        correct=correct,
        obtained_marks=obtained_marks,
        negative_marks=negative_marks,
        final_score=final_score,
        total_max_marks=total_max_marks,
        percentage=round_half_up(safe_percentage(final_score, total_max_marks)),
        question_results=question_results,
    )


def answers_from_payload(pairs: Iterable[Tuple[int, Optional[str]]]) -> Dict[int, Optional[str]]:
    """Build an answer map from submitted pairs; a repeated question keeps its last answer."""
    answers: Dict[int, Optional[str]] = {}
    for question_id, selected in pairs:
        answers[question_id] = selected
    return answers


def latest_answers(records: Iterable[AnswerRecord]) -> Dict[int, Dict[int, Optional[str]]]:
    """
    Collapse the append-only activity log to each user's final answers.

    Rows are replayed oldest first (by time, then row id), so a resubmission
    overwrites earlier answers for the same question.
    """
    ordered = sorted(
        records,
        key=lambda r: (coerce_timestamp(r.time) or _EPOCH, r.id if r.id is not None else 0),
    )
    by_user: Dict[int, Dict[int, Optional[str]]] = defaultdict(dict)
    for record in ordered:
        by_user[record.user_id][record.question_id] = record.selected_answer
    return dict(by_user)


def evaluate_participants(
    contest: ContestView,
    participants: Sequence[ParticipantView],
    records: Iterable[AnswerRecord],
) -> List[Tuple[ParticipantView, ScoreSheet]]:
    """
    Score every participant from the activity log.

    Participants without activity rows score zero; rows of users that have
    no participation are ignored.
    """
    answers_by_user = latest_answers(records)
    return [
        (participant, score_answers(contest, answers_by_user.get(participant.user_id, {})))
        for participant in participants
    ]
