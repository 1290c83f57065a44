"""
Leaderboard ranking, contest statistics and the detailed analysis.
"""
from datetime import datetime, timedelta, timezone

from app.core.scoring import (
    AnswerRecord,
    ContestView,
    LeaderboardEntry,
    ParticipantView,
    QuestionView,
    build_leaderboard,
    compute_contest_stats,
    compute_detailed_analysis,
    rank_entries,
    summarize_contest,
)
from app.core.scoring.options import LAYOUT_KEYED

T0 = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


def make_contest(question_count=3, has_negative_marking=False, ratio=0.25) -> ContestView:
    return ContestView(
        id=7,
        title="Aggregation",
        start_time=T0,
        end_time=T0 + timedelta(hours=2),
        has_negative_marking=has_negative_marking,
        negative_marking_value=ratio,
        questions=[
            QuestionView(
                id=100 + i,
                question=f"Q{i}",
                options=["a", "b", "c", "d"],
                correct_answers=["a"],
                category="Math" if i % 2 == 0 else "Science",
                level="easy",
            )
            for i in range(question_count)
        ],
    )


def participant(pid, user_id, submitted_minutes=None, start_minutes=0) -> ParticipantView:
    return ParticipantView(
        participation_id=pid,
        user_id=user_id,
        user_name=f"User {user_id}",
        user_email=f"user{user_id}@example.com",
        start_time=T0 + timedelta(minutes=start_minutes),
        submitted_at=None if submitted_minutes is None else T0 + timedelta(minutes=submitted_minutes),
        end_time=None if submitted_minutes is None else T0 + timedelta(minutes=submitted_minutes),
    )


def answers(user_id, contest, picks, minutes=0):
    return [
        AnswerRecord(
            id=user_id * 1000 + index,
            user_id=user_id,
            question_id=question.id,
            selected_answer=pick,
            time=T0 + timedelta(minutes=minutes),
        )
        for index, (question, pick) in enumerate(zip(contest.questions, picks))
    ]


def entry(name, correct, final_score, submitted_at):
    return LeaderboardEntry(
        rank=0,
        participation_id=hash(name) % 1000,
        user_id=hash(name) % 1000,
        user_name=name,
        user_email=f"{name}@example.com",
        correct=correct,
        final_score=final_score,
        negative_marks=0,
        attempted=correct,
        total_questions=10,
        percentage=0,
        accuracy=0,
        submitted_at=submitted_at,
        time_taken=0,
    )


class TestRanking:
    def test_equal_scores_rank_earlier_submission_first(self):
        a = entry("A", 10, 10, T0)
        b = entry("B", 10, 10, T0 + timedelta(minutes=5))
        c = entry("C", 8, 8, T0 - timedelta(minutes=5))

        ranked = rank_entries([c, b, a], has_negative_marking=False)

        assert [(e.user_name, e.rank) for e in ranked] == [("A", 1), ("B", 2), ("C", 3)]

    def test_compares_raw_correct_without_negative_marking(self):
        many_correct = entry("Many", 5, 2.0, T0)
        high_score = entry("High", 4, 4.0, T0)

        ranked = rank_entries([high_score, many_correct], has_negative_marking=False)
        assert ranked[0].user_name == "Many"

        ranked = rank_entries([many_correct, high_score], has_negative_marking=True)
        assert ranked[0].user_name == "High"

    def test_missing_submission_keeps_input_order(self):
        first = entry("First", 3, 3, None)
        second = entry("Second", 3, 3, T0)

        ranked = rank_entries([first, second], has_negative_marking=False)

        assert [e.user_name for e in ranked] == ["First", "Second"]
        assert [e.rank for e in ranked] == [1, 2]

    def test_ranking_is_repeatable(self):
        entries = [entry(name, score, score, T0 + timedelta(minutes=i)) for i, (name, score) in enumerate(
            [("A", 3), ("B", 5), ("C", 3), ("D", 1), ("E", 5)]
        )]
        first = [(e.user_name, e.rank) for e in rank_entries(list(entries), False)]
        second = [(e.user_name, e.rank) for e in rank_entries(list(reversed(entries)), False)]
        assert first == second == [("B", 1), ("E", 2), ("A", 3), ("C", 4), ("D", 5)]


class TestLeaderboard:
    def test_entries_carry_scores_and_time(self):
        contest = make_contest(has_negative_marking=True, ratio=0.5)
        participants = [participant(1, 1, submitted_minutes=30), participant(2, 2, submitted_minutes=20)]
        records = answers(1, contest, ["a", "a", "b"]) + answers(2, contest, ["a", "a", "a"])

        board = build_leaderboard(contest, participants, records)

        assert [e.user_id for e in board] == [2, 1]
        top, second = board
        assert top.final_score == 3 and top.percentage == 100 and top.accuracy == 100
        assert second.correct == 2
        assert second.negative_marks == 0.5
        assert second.final_score == 1.5
        assert second.percentage == 50
        assert second.accuracy == 66.67
        assert second.time_taken == 30

    def test_participant_without_activity_scores_zero(self):
        contest = make_contest()
        board = build_leaderboard(contest, [participant(1, 1)], [])

        assert board[0].final_score == 0
        assert board[0].attempted == 0
        assert board[0].accuracy == 0
        # never submitted: the contest window is the last fallback
        assert board[0].time_taken == 120

    def test_activity_without_participation_is_ignored(self):
        contest = make_contest()
        board = build_leaderboard(contest, [participant(1, 1, 10)], answers(99, contest, ["a", "a", "a"]))

        assert len(board) == 1
        assert board[0].user_id == 1


class TestContestStats:
    def test_zero_participants(self):
        contest = make_contest()
        stats = compute_contest_stats(contest, [], [])

        assert stats.average == 0
        assert stats.average_percentage == 0
        assert stats.total_participants == 0
        assert stats.scores == []
        assert len(stats.question_stats) == 3
        assert all(q.not_attempted == 0 for q in stats.question_stats)

    def test_zero_questions(self):
        contest = make_contest(question_count=0)
        stats = compute_contest_stats(contest, [participant(1, 1, 5)], [])

        assert stats.average == 0
        assert stats.average_percentage == 0
        assert stats.question_stats == []
        assert stats.most_correct is None

    def test_tallies_and_not_attempted(self):
        contest = make_contest(has_negative_marking=True, ratio=0.25)
        participants = [participant(1, 1, 10), participant(2, 2, 12), participant(3, 3)]
        records = answers(1, contest, ["a", "b", "a"]) + answers(2, contest, ["a", None])

        stats = compute_contest_stats(contest, participants, records)
        q0, q1, q2 = stats.question_stats

        assert (q0.total_attempts, q0.correct_attempts, q0.incorrect_attempts, q0.not_attempted) == (2, 2, 0, 1)
        assert (q1.total_attempts, q1.correct_attempts, q1.incorrect_attempts, q1.not_attempted) == (1, 0, 1, 2)
        assert (q2.total_attempts, q2.correct_attempts, q2.not_attempted) == (1, 1, 2)
        for q in stats.question_stats:
            assert q.not_attempted == stats.total_participants - q.total_attempts

        # final scores: 2 - 0.25, 1, 0
        assert stats.scores == [1.75, 1.0, 0.0]
        assert stats.average == 2.75 / 3
        assert stats.average_percentage == (2.75 / 3) / 3 * 100
        assert stats.most_correct.question_id == q0.question_id
        assert stats.most_incorrect.question_id == q1.question_id
        assert stats.most_attempted.question_id == q0.question_id
        assert stats.least_attempted.question_id == q1.question_id

    def test_summary_row(self):
        contest = make_contest()
        summary = summarize_contest(
            contest,
            [participant(1, 1, 10)],
            answers(1, contest, ["a", "a", "a"]),
            now=T0 + timedelta(hours=5),
        )

        assert summary.status == "completed"
        assert summary.average_score == 3
        assert summary.average_percentage == 100


class TestDetailedAnalysis:
    def test_option_counts_and_metrics(self):
        contest = make_contest()
        participants = [
            participant(1, 1, 10),
            participant(2, 2, 45),
            participant(3, 3, 200),
            participant(4, 4),
        ]
        records = (
            answers(1, contest, ["a", "a", "a"])
            + answers(2, contest, ["b", "a", "zzz"])
            + answers(3, contest, ["a", "null"])
        )

        analysis = compute_detailed_analysis(contest, participants, records)
        first = analysis.question_analysis[0]

        assert first.option_counts == {"a": 2, "b": 1, "c": 0, "d": 0, "notAttempted": 1}
        assert first.total_attempts == 3
        assert first.correct_attempts == 2
        assert first.success_rate == 2 / 3 * 100
        # unmatched answer text lands in notAttempted
        assert analysis.question_analysis[2].option_counts["notAttempted"] == 3

        metrics = analysis.performance_metrics
        assert metrics.total_participants == 4
        assert metrics.completed_participants == 3
        assert metrics.highest_score == 3
        assert metrics.lowest_score == 0
        assert metrics.average_score == (3 + 1 + 1 + 0) / 4
        assert round(metrics.standard_deviation, 6) == round((((3 - 1.25) ** 2 + 2 * (1 - 1.25) ** 2 + 1.25 ** 2) / 4) ** 0.5, 6)

        assert analysis.time_analysis == {"0-30 min": 1, "31-60 min": 1, "61-90 min": 0, "90+ min": 1}
        assert set(analysis.category_analysis) == {"Math", "Science"}
        assert analysis.category_analysis["Math"].question_count == 2

    def test_legacy_keyed_options(self):
        contest = ContestView(
            id=1,
            questions=[
                QuestionView(
                    id=1,
                    question="Colour?",
                    options=["Red", "Blue", "Green", "Black"],
                    option_layout=LAYOUT_KEYED,
                    correct_answers=["Red"],
                )
            ],
        )
        records = [
            AnswerRecord(id=1, user_id=1, question_id=1, selected_answer="Red", time=T0),
            AnswerRecord(id=2, user_id=2, question_id=1, selected_answer="b", time=T0),
        ]
        analysis = compute_detailed_analysis(contest, [participant(1, 1, 5), participant(2, 2, 5)], records)

        assert analysis.question_analysis[0].option_counts == {"a": 1, "b": 1, "c": 0, "d": 0, "notAttempted": 0}

    def test_empty_contest(self):
        analysis = compute_detailed_analysis(make_contest(question_count=0), [], [])

        assert analysis.question_analysis == []
        assert analysis.performance_metrics.standard_deviation == 0
        assert analysis.time_analysis == {"0-30 min": 0, "31-60 min": 0, "61-90 min": 0, "90+ min": 0}
