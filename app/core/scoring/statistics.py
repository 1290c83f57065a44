"""
Contest-wide statistics and the detailed analysis report.

Every aggregate is computed from the same per-participant score sheets the
leaderboard uses, so averages are always over final scores (after negative
marking).
"""
from collections import OrderedDict
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Sequence

import numpy as np

from app.core.scoring.engine import evaluate_participants
from app.core.scoring.options import tally_options
from app.core.scoring.schemas import (
    AnswerRecord,
    CategoryAnalysis,
    ContestStats,
    ContestSummary,
    ContestView,
    DetailedAnalysis,
    ParticipantView,
    PerformanceMetrics,
    QuestionAnalysis,
    QuestionStat,
)
from app.core.scoring.rules import safe_percentage
from app.core.scoring.timing import TIME_BUCKETS, compute_time_taken, contest_status, time_bucket


def _pick(stats: List[QuestionStat], key: Callable[[QuestionStat], int], largest: bool) -> Optional[QuestionStat]:
    """First question with the max (or min) value; earlier questions win ties."""
    if not stats:
        return None
    best = stats[0]
    for stat in stats[1:]:
        if (key(stat) > key(best)) if largest else (key(stat) < key(best)):
            best = stat
    return best


def _mean(values: Sequence[float]) -> float:
    return float(np.mean(values)) if len(values) > 0 else 0.0


def compute_contest_stats(
    contest: ContestView,
    participants: Sequence[ParticipantView],
    records: Iterable[AnswerRecord],
) -> ContestStats:
    """Score distribution, averages and per-question tallies for a contest."""
    evaluations = evaluate_participants(contest, participants, records)
    total_participants = len(participants)

    question_stats: "OrderedDict[int, QuestionStat]" = OrderedDict(
        (
            q.id,
            QuestionStat(
                question_id=q.id,
                question=q.question,
                options=q.options,
                correct_ans=q.correct_answers,
            ),
        )
        for q in contest.questions
    )

    for _, sheet in evaluations:
        for result in sheet.question_results:
            stat = question_stats[result.question_id]
            if not result.is_attempted:
                continue
            stat.total_attempts += 1
            if result.is_correct:
                stat.correct_attempts += 1
            else:
                stat.incorrect_attempts += 1

    for stat in question_stats.values():
        stat.not_attempted = total_participants - stat.total_attempts

    scores = [sheet.final_score for _, sheet in evaluations]
    average = _mean(scores)
    total_max_marks = contest.total_max_marks
    stats_list = list(question_stats.values())

    return ContestStats(
        scores=scores,
        average=average,
        average_percentage=safe_percentage(average, total_max_marks) if scores else 0.0,
        total_questions=contest.total_questions,
        total_participants=total_participants,
        total_max_marks=total_max_marks,
        question_stats=stats_list,
        most_correct=_pick(stats_list, lambda s: s.correct_attempts, largest=True),
        most_incorrect=_pick(stats_list, lambda s: s.incorrect_attempts, largest=True),
        most_attempted=_pick(stats_list, lambda s: s.total_attempts, largest=True),
        least_attempted=_pick(stats_list, lambda s: s.total_attempts, largest=False),
    )


def summarize_contest(
    contest: ContestView,
    participants: Sequence[ParticipantView],
    records: Iterable[AnswerRecord],
    now: Optional[datetime] = None,
) -> ContestSummary:
    """Row for the all-contests overview."""
    stats = compute_contest_stats(contest, participants, records)
    return ContestSummary(
        contest_id=contest.id,
        contest_title=contest.title,
        start_time=contest.start_time,
        end_time=contest.end_time,
        total_questions=stats.total_questions,
        total_participants=stats.total_participants,
        average_score=stats.average,
        average_percentage=stats.average_percentage,
        status=contest_status(contest.start_time, contest.end_time, now),
    )


def compute_detailed_analysis(
    contest: ContestView,
    participants: Sequence[ParticipantView],
    records: Iterable[AnswerRecord],
) -> DetailedAnalysis:
    """Option breakdown, performance metrics, time histogram and categories."""
    evaluations = evaluate_participants(contest, participants, records)

    # question id -> one result per participant
    results_by_question: Dict[int, list] = {q.id: [] for q in contest.questions}
    for _, sheet in evaluations:
        for result in sheet.question_results:
            results_by_question[result.question_id].append(result)

    question_analysis = []
    category_analysis: Dict[str, CategoryAnalysis] = {}
    for question in contest.questions:
        results = results_by_question[question.id]
        total_attempts = sum(1 for r in results if r.is_attempted)
        correct_attempts = sum(1 for r in results if r.is_correct)
        category = question.category or "General"

        question_analysis.append(
            QuestionAnalysis(
                question_id=question.id,
                question=question.question,
                options=question.options,
                difficulty=question.level or "medium",
                category=category,
                subcategory=question.subcategory or "General",
                success_rate=safe_percentage(correct_attempts, total_attempts),
                total_attempts=total_attempts,
                correct_attempts=correct_attempts,
                option_counts=tally_options(
                    question.options,
                    question.option_layout,
                    [r.user_answer if r.is_attempted else None for r in results],
                ),
            )
        )

        bucket = category_analysis.setdefault(category, CategoryAnalysis())
        bucket.question_count += 1
        bucket.total_attempts += total_attempts
        bucket.correct_attempts += correct_attempts

    for bucket in category_analysis.values():
        if bucket.total_attempts > 0:
            bucket.average_score = bucket.correct_attempts / bucket.total_attempts
        bucket.success_rate = safe_percentage(bucket.correct_attempts, bucket.total_attempts)

    metrics = PerformanceMetrics(
        total_participants=len(participants),
        completed_participants=sum(1 for p in participants if p.submitted_at is not None),
    )
    scores = np.array([sheet.final_score for _, sheet in evaluations], dtype=float)
    if scores.size > 0:
        metrics.average_score = float(scores.mean())
        metrics.highest_score = float(scores.max())
        metrics.lowest_score = float(scores.min())
        metrics.standard_deviation = float(scores.std())  # population (ddof=0)

    time_analysis = {bucket: 0 for bucket in TIME_BUCKETS}
    for participant in participants:
        if participant.submitted_at is None:
            continue
        minutes = compute_time_taken(
            participant.start_time,
            participant.end_time,
            participant.submitted_at,
            contest.start_time,
            contest.end_time,
        )
        time_analysis[time_bucket(minutes)] += 1

    return DetailedAnalysis(
        question_analysis=question_analysis,
        performance_metrics=metrics,
        time_analysis=time_analysis,
        category_analysis=category_analysis,
        total_questions=contest.total_questions,
    )
