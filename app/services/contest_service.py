"""
Contest flows: authoring, participation, submission and every results view.

Routers stay thin and call into ``ContestService``; all scoring goes through
``app.core.scoring`` so submission, results, leaderboard, statistics and
exports agree on the numbers.
"""
import logging
import secrets
import string
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple

from app.core.config import settings
from app.core.exceptions import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ResultsNotAvailableError,
    ValidationFailedError,
)
from app.core.scoring import (
    AnswerRecord,
    ContestView,
    ParticipantView,
    ScoreSheet,
    answers_from_payload,
    build_leaderboard,
    compute_contest_stats,
    compute_detailed_analysis,
    compute_time_taken,
    contest_status,
    evaluate_participants,
    has_answered,
    latest_answers,
    negative_ratio_string,
    score_answers,
    summarize_contest,
)
from app.core.scoring.timing import coerce_timestamp
from app.models.contest import Contest
from app.models.participation import Participation
from app.models.user import User
from app.schemas import contest as contest_schemas
from app.schemas import result as result_schemas
from app.services import results_export
from app.services.contest_repository import ContestRepository
from app.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_contest_code(length: Optional[int] = None) -> str:
    length = length or settings.CONTEST_CODE_LENGTH
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ContestService:
    def __init__(self, repository: ContestRepository, notifications: NotificationService):
        self.repository = repository
        self.notifications = notifications

    # ============= Loading =============

    def _load(self, contest_id: int) -> Tuple[Contest, ContestView, List[ParticipantView], List[AnswerRecord]]:
        contest = self.repository.get_contest(contest_id)
        view = ContestView.from_model(contest)
        participants = [
            ParticipantView.from_model(p) for p in self.repository.list_participations(contest_id)
        ]
        records = [AnswerRecord.from_model(a) for a in self.repository.list_activities(contest_id)]
        return contest, view, participants, records

    def contest_response(
        self, contest: Contest, participants_count: int = 0, now: Optional[datetime] = None
    ) -> contest_schemas.Contest:
        return contest_schemas.Contest(
            id=contest.id,
            title=contest.title,
            start_time=contest.start_time,
            end_time=contest.end_time,
            requires_code=bool(contest.requires_code),
            contest_code=contest.contest_code,
            has_negative_marking=bool(contest.has_negative_marking),
            negative_marking_value=contest.negative_marking_value or 0.0,
            negative_marking_ratio=negative_ratio_string(contest.negative_marking_value),
            question_count=len(contest.questions),
            participants_count=participants_count,
            creator_name=contest.creator.full_name if contest.creator else None,
            status=contest_status(contest.start_time, contest.end_time, now),
        )

    def contest_detail(self, contest_id: int) -> contest_schemas.ContestDetail:
        contest = self.repository.get_contest(contest_id)
        count = self.repository.participant_counts().get(contest.id, 0)
        base = self.contest_response(contest, count)
        return contest_schemas.ContestDetail(
            **base.model_dump(),
            questions=[contest_schemas.Question.model_validate(q) for q in contest.questions],
        )

    def list_contests(self, now: Optional[datetime] = None) -> List[contest_schemas.Contest]:
        counts = self.repository.participant_counts()
        return [
            self.contest_response(contest, counts.get(contest.id, 0), now)
            for contest in self.repository.list_contests()
        ]

    def list_upcoming(self, now: Optional[datetime] = None) -> List[contest_schemas.UpcomingContest]:
        counts = self.repository.participant_counts()
        return [
            contest_schemas.UpcomingContest(
                id=contest.id,
                title=contest.title,
                start_time=contest.start_time,
                end_time=contest.end_time,
                requires_code=bool(contest.requires_code),
                participants=counts.get(contest.id, 0),
            )
            for contest in self.repository.list_upcoming_contests(now or _utcnow())
        ]

    def questions_for(self, user: User, contest_id: int, now: Optional[datetime] = None) -> contest_schemas.ContestQuestions:
        """Participant view of the questions; hidden from students until the contest starts."""
        contest = self.repository.get_contest(contest_id)
        if not user.is_staff and contest_status(contest.start_time, contest.end_time, now) == "upcoming":
            raise PermissionDeniedError("Contest has not started yet.")
        return self.contest_questions(contest)

    def contest_questions(self, contest: Contest) -> contest_schemas.ContestQuestions:
        return contest_schemas.ContestQuestions(
            id=contest.id,
            title=contest.title,
            start_time=contest.start_time,
            end_time=contest.end_time,
            questions=[contest_schemas.QuestionPublic.model_validate(q) for q in contest.questions],
        )

    # ============= Authoring =============

    def create_contest(self, user: User, data: contest_schemas.ContestCreate) -> Contest:
        questions = self.repository.get_questions(data.question_ids)
        ratio = (
            data.negative_marking_value
            if data.negative_marking_value is not None
            else settings.DEFAULT_NEGATIVE_MARKING_VALUE
        )

        contest = None
        for attempt in range(settings.CONTEST_CODE_MAX_ATTEMPTS):
            code = None
            if data.requires_code:
                code = generate_contest_code()
                if self.repository.contest_code_exists(code):
                    logger.debug(f"Contest code collision on attempt {attempt + 1}")
                    continue
            candidate = Contest(
                title=data.title,
                start_time=data.start_time,
                end_time=data.end_time,
                requires_code=data.requires_code,
                contest_code=code,
                has_negative_marking=data.has_negative_marking,
                negative_marking_value=ratio,
                created_by=user.id,
            )
            candidate.questions = questions
            try:
                contest = self.repository.add_contest(candidate)
                break
            except ConflictError:
                if not data.requires_code:
                    raise
        if contest is None:
            raise ConflictError("Could not generate a unique contest code. Please try again.")

        self.repository.set_visibility([q.id for q in questions], False)
        self.repository.save(contest)
        logger.info(f"Contest {contest.id} created by user {user.id} with {len(questions)} questions")

        result = self.notifications.notify_contest_announced(contest)
        if not result.delivered:
            logger.warning(f"Contest {contest.id} announcement failed: {result.error}")
        return contest

    def update_contest(self, contest_id: int, data: contest_schemas.ContestUpdate) -> Contest:
        contest = self.repository.get_contest(contest_id)

        start_time = data.start_time or contest.start_time
        end_time = data.end_time or contest.end_time
        if coerce_timestamp(end_time) <= coerce_timestamp(start_time):
            raise ValidationFailedError("End time must be after start time.")

        if data.title is not None:
            if not data.title.strip():
                raise ValidationFailedError("Title is required.")
            contest.title = data.title.strip()
        contest.start_time = start_time
        contest.end_time = end_time
        if data.has_negative_marking is not None:
            contest.has_negative_marking = data.has_negative_marking
        if data.negative_marking_value is not None:
            contest.negative_marking_value = data.negative_marking_value

        if data.requires_code is not None and data.requires_code != contest.requires_code:
            contest.requires_code = data.requires_code
            if data.requires_code:
                contest.contest_code = self._unused_code()
            else:
                contest.contest_code = None

        if data.question_ids is not None:
            if not data.question_ids:
                raise ValidationFailedError("At least one question is required.")
            new_questions = self.repository.get_questions(data.question_ids)
            # unlock the old set first so questions kept across the update stay locked
            self.repository.set_visibility([q.id for q in contest.questions], True)
            contest.questions = new_questions
            self.repository.set_visibility([q.id for q in new_questions], False)

        self.repository.save(contest)
        logger.info(f"Contest {contest.id} updated")
        return contest

    def _unused_code(self) -> str:
        for _ in range(settings.CONTEST_CODE_MAX_ATTEMPTS):
            code = generate_contest_code()
            if not self.repository.contest_code_exists(code):
                return code
        raise ConflictError("Could not generate a unique contest code. Please try again.")

    def extend_contest(self, contest_id: int, extension_minutes: int) -> Contest:
        contest = self.repository.get_contest(contest_id)
        contest.end_time = coerce_timestamp(contest.end_time) + timedelta(minutes=extension_minutes)
        self.repository.save(contest)
        logger.info(f"Contest {contest.id} extended by {extension_minutes} minutes")

        user_ids = [p.user_id for p in self.repository.list_participations(contest.id)]
        if user_ids:
            result = self.notifications.notify_time_extended(contest, extension_minutes, user_ids)
            if not result.delivered:
                logger.warning(f"Extension notice for contest {contest.id} failed: {result.error}")
        return contest

    def delete_contest(self, contest_id: int) -> None:
        self.repository.get_contest(contest_id)
        self.repository.delete_contests([contest_id])

    def bulk_delete(self, contest_ids: List[int]) -> int:
        return self.repository.delete_contests(contest_ids)

    # ============= Participation =============

    def join(self, user: User, contest_id: int, now: Optional[datetime] = None) -> Tuple[Participation, Contest]:
        """Start (or resume) the user's participation in a contest."""
        contest = self.repository.get_contest(contest_id)
        state = contest_status(contest.start_time, contest.end_time, now)
        if state == "upcoming":
            raise ValidationFailedError("Contest has not started yet.")
        if state == "completed":
            raise ValidationFailedError("Contest has already ended.")

        participation = self.repository.get_participation(user.id, contest.id)
        if participation is None:
            try:
                participation = self.repository.create_participation(user.id, contest.id)
            except ConflictError:
                participation = self.repository.get_participation(user.id, contest.id)
            logger.info(f"User {user.id} joined contest {contest.id}")
        return participation, contest

    def join_by_code(self, user: User, contest_code: str, now: Optional[datetime] = None) -> Tuple[Participation, Contest]:
        contest = self.repository.get_contest_by_code(contest_code)
        if contest_status(contest.start_time, contest.end_time, now) != "live":
            raise ValidationFailedError("Contest is not currently active.")
        if self.repository.get_participation(user.id, contest.id) is not None:
            raise ConflictError("You have already joined this contest.")
        participation = self.repository.create_participation(user.id, contest.id)
        logger.info(f"User {user.id} joined contest {contest.id} by code")
        return participation, contest

    def record_violation(self, user_id: int, contest_id: int, violation_type: str) -> result_schemas.ViolationResponse:
        self.repository.get_contest(contest_id)
        participation = self.repository.get_participation(user_id, contest_id)
        if participation is None:
            raise NotFoundError("Participation not found.")

        participation.violations = (participation.violations or 0) + 1
        self.repository.save(participation)
        should_auto_submit = participation.violations >= settings.VIOLATION_AUTO_SUBMIT_THRESHOLD
        logger.warning(
            f"Violation '{violation_type}' by user {user_id} in contest {contest_id} "
            f"(total {participation.violations})"
        )
        return result_schemas.ViolationResponse(
            violations=participation.violations, should_auto_submit=should_auto_submit
        )

    def list_user_participations(self, user_id: int, now: Optional[datetime] = None) -> List[contest_schemas.UserParticipation]:
        return [
            contest_schemas.UserParticipation(
                id=p.id,
                user_id=p.user_id,
                contest_id=p.contest_id,
                start_time=p.start_time,
                end_time=p.end_time,
                submitted_at=p.submitted_at,
                violations=p.violations or 0,
                contest_title=p.contest.title,
                contest_start_time=p.contest.start_time,
                contest_end_time=p.contest.end_time,
                status=contest_status(p.contest.start_time, p.contest.end_time, now),
            )
            for p in self.repository.list_user_participations(user_id)
        ]

    # ============= Submission =============

    def submit(self, user: User, contest_id: int, payload: result_schemas.SubmissionRequest) -> result_schemas.SubmissionResponse:
        """
        Score a submission and persist it.

        The response is computed from the submitted answers. Every contest
        question is scored; answers for questions outside the contest are
        dropped. Submitting again overwrites earlier answers in later reads.
        """
        contest = self.repository.get_contest(contest_id)
        participation = self.repository.get_participation(user.id, contest.id)
        if participation is None:
            raise NotFoundError("Participation not found.")

        view = ContestView.from_model(contest)
        contest_question_ids = {q.id for q in view.questions}
        pairs = [(a.question_id, a.selected_option) for a in payload.answers]
        ignored = [qid for qid, _ in pairs if qid not in contest_question_ids]
        if ignored:
            logger.warning(f"Ignoring answers for questions {ignored} outside contest {contest.id}")
        answers = answers_from_payload((qid, sel) for qid, sel in pairs if qid in contest_question_ids)
        sheet = score_answers(view, answers)

        now = _utcnow()
        participation.end_time = now
        participation.submitted_at = now
        participation.auto_submitted = payload.auto_submitted
        if payload.violation_type:
            participation.violations = (participation.violations or 0) + 1
        self.repository.record_answers(
            user.id,
            contest.id,
            [
                (q.id, answers.get(q.id) if has_answered(answers.get(q.id)) else None)
                for q in view.questions
            ],
            now,
        )
        self.repository.save(participation)

        time_taken = compute_time_taken(
            participation.start_time, now, now, contest.start_time, contest.end_time
        )
        logger.info(
            f"User {user.id} submitted contest {contest.id}: {sheet.correct}/{sheet.total_questions} correct, "
            f"final score {sheet.final_score}"
            + (" (auto-submitted)" if payload.auto_submitted else "")
        )

        if sheet.percentage >= settings.HIGH_SCORE_PERCENTAGE:
            result = self.notifications.notify_high_score(
                user.id, contest, sheet.correct, sheet.total_questions, sheet.percentage
            )
            if not result.delivered:
                logger.warning(f"High-score notification for user {user.id} failed: {result.error}")

        ratio_string = negative_ratio_string(view.negative_marking_value)
        return result_schemas.SubmissionResponse(
            message="Contest auto-submitted due to violations" if payload.auto_submitted else "Contest submitted successfully",
            score=sheet.final_score,
            correct=sheet.correct,
            total=sheet.total_questions,
            attempted=sheet.attempted,
            negative_marks=sheet.negative_marks,
            has_negative_marking=view.has_negative_marking,
            negative_marking_value=view.negative_marking_value,
            negative_marking_ratio=ratio_string,
            total_max_marks=sheet.total_max_marks,
            percentage=sheet.percentage,
            time_taken=time_taken,
            auto_submitted=payload.auto_submitted,
            violations=participation.violations or 0,
            question_results=sheet.question_results,
            results=result_schemas.SubmissionResults(
                correct_answers=sheet.correct,
                total_questions=sheet.total_questions,
                attempted_questions=sheet.attempted,
                negative_marks=sheet.negative_marks,
                negative_marking_ratio=ratio_string,
                final_score=sheet.final_score,
                time_taken=time_taken,
                question_results=sheet.question_results,
            ),
        )

    # ============= Results =============

    def user_result(self, user_id: int, contest_id: int, now: Optional[datetime] = None) -> result_schemas.UserResult:
        """The user's own result; refused until the contest has ended."""
        contest = self.repository.get_contest(contest_id)
        now = coerce_timestamp(now) or _utcnow()
        end_time = coerce_timestamp(contest.end_time)
        if now < end_time:
            remaining_ms = int((end_time - now).total_seconds() * 1000)
            raise ResultsNotAvailableError(end_time, remaining_ms)

        view = ContestView.from_model(contest)
        participation = self.repository.get_participation(user_id, contest.id)
        if participation is not None:
            records = [
                AnswerRecord.from_model(a)
                for a in self.repository.list_activities(contest.id, user_id=user_id)
            ]
            answers = latest_answers(records).get(user_id, {})
            time_taken = compute_time_taken(
                participation.start_time,
                participation.end_time,
                participation.submitted_at,
                contest.start_time,
                contest.end_time,
            )
        else:
            answers = {}
            time_taken = 0
        sheet = score_answers(view, answers)

        return result_schemas.UserResult(
            contest_id=contest.id,
            contest_title=contest.title,
            has_participated=participation is not None,
            total_questions=sheet.total_questions,
            total_max_marks=sheet.total_max_marks,
            attempted=sheet.attempted,
            correct=sheet.correct,
            negative_marks=sheet.negative_marks,
            final_score=sheet.final_score,
            percentage=sheet.percentage,
            has_negative_marking=view.has_negative_marking,
            negative_marking_value=view.negative_marking_value,
            negative_marking_ratio=negative_ratio_string(view.negative_marking_value),
            time_taken=time_taken,
            violations=(participation.violations or 0) if participation else 0,
            auto_submitted=bool(
                participation
                and (
                    participation.auto_submitted
                    or (participation.violations or 0) >= settings.VIOLATION_AUTO_SUBMIT_THRESHOLD
                )
            ),
            question_results=sheet.question_results,
        )

    def leaderboard(self, contest_id: int) -> result_schemas.Leaderboard:
        contest, view, participants, records = self._load(contest_id)
        entries = build_leaderboard(view, participants, records)
        return result_schemas.Leaderboard(
            contest_id=contest.id,
            contest_title=contest.title,
            has_negative_marking=view.has_negative_marking,
            total_questions=view.total_questions,
            total_participants=len(entries),
            leaderboard=entries,
        )

    def contest_stats(self, contest_id: int) -> result_schemas.ContestStatsResponse:
        contest, view, participants, records = self._load(contest_id)
        stats = compute_contest_stats(view, participants, records)
        return result_schemas.ContestStatsResponse(
            contest_id=contest.id, contest_title=contest.title, **stats.model_dump()
        )

    def all_contest_stats(self, now: Optional[datetime] = None) -> result_schemas.AllContestStats:
        summaries = []
        for contest in self.repository.list_contests():
            _, view, participants, records = self._load(contest.id)
            summaries.append(summarize_contest(view, participants, records, now))
        return result_schemas.AllContestStats(contest_stats=summaries)

    def detailed_analysis(self, contest_id: int) -> result_schemas.ContestAnalysis:
        contest, view, participants, records = self._load(contest_id)
        analysis = compute_detailed_analysis(view, participants, records)
        return result_schemas.ContestAnalysis(
            contest_id=contest.id, contest_title=contest.title, **analysis.model_dump()
        )

    def participants(self, contest_id: int) -> result_schemas.ParticipantList:
        contest, view, participants, records = self._load(contest_id)
        return result_schemas.ParticipantList(
            contest_id=contest.id,
            contest_title=contest.title,
            participants=build_leaderboard(view, participants, records),
        )

    def participant_answers(self, contest_id: int, participation_id: int) -> result_schemas.ParticipantAnswers:
        contest, view, participants, records = self._load(contest_id)
        participation = self.repository.get_participation_by_id(participation_id, contest.id)

        entry = next(
            e for e in build_leaderboard(view, participants, records)
            if e.participation_id == participation.id
        )
        sheet = score_answers(view, latest_answers(records).get(participation.user_id, {}))
        return result_schemas.ParticipantAnswers(
            contest_id=contest.id,
            contest_title=contest.title,
            participant=entry,
            obtained_marks=sheet.obtained_marks,
            total_max_marks=sheet.total_max_marks,
            questions=sheet.question_results,
        )

    # ============= Exports =============

    def export_csv(self, contest_id: int) -> Tuple[str, str]:
        contest, view, participants, records = self._load(contest_id)
        entries = build_leaderboard(view, participants, records)
        logger.info(f"Exporting CSV results for contest {contest.id}")
        return results_export.export_filename(view, "results", "csv"), results_export.build_results_csv(entries)

    def export_excel(self, contest_id: int) -> Tuple[str, bytes]:
        contest, view, participants, records = self._load(contest_id)
        entries = build_leaderboard(view, participants, records)
        sheets: Dict[int, ScoreSheet] = {
            participant.participation_id: sheet
            for participant, sheet in evaluate_participants(view, participants, records)
        }
        content = results_export.build_results_workbook(view, entries, sheets)
        return results_export.export_filename(view, "Detailed_Results", "xlsx"), content
