"""
Storage collaborator for contests, participations and answer activity.
"""
import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload, selectinload

from app.core.exceptions import ConflictError, NotFoundError
from app.models.activity import AnswerActivity
from app.models.contest import Contest
from app.models.participation import Participation
from app.models.question import Question

logger = logging.getLogger(__name__)


class ContestRepository:
    """
    Fetch/update operations the scoring flows need, over one session.

    Constructed per request from the ``get_db`` session and passed into the
    services explicitly.
    """

    def __init__(self, db: Session):
        self.db = db

    # ============= Contests =============

    def get_contest(self, contest_id: int) -> Contest:
        contest = (
            self.db.query(Contest)
            .options(selectinload(Contest.questions))
            .filter(Contest.id == contest_id)
            .first()
        )
        if not contest:
            raise NotFoundError("Contest not found.")
        return contest

    def get_contest_by_code(self, contest_code: str) -> Contest:
        contest = (
            self.db.query(Contest)
            .options(selectinload(Contest.questions))
            .filter(Contest.contest_code == contest_code.strip().upper())
            .first()
        )
        if not contest:
            raise NotFoundError("Invalid contest code.")
        return contest

    def list_contests(self) -> List[Contest]:
        return (
            self.db.query(Contest)
            .options(selectinload(Contest.questions), joinedload(Contest.creator))
            .order_by(Contest.start_time.desc())
            .all()
        )

    def list_upcoming_contests(self, now: datetime) -> List[Contest]:
        return (
            self.db.query(Contest)
            .filter(Contest.start_time >= now)
            .order_by(Contest.start_time.asc())
            .all()
        )

    def participant_counts(self) -> dict:
        rows = (
            self.db.query(Participation.contest_id, func.count(Participation.id))
            .group_by(Participation.contest_id)
            .all()
        )
        return {contest_id: count for contest_id, count in rows}

    def contest_code_exists(self, contest_code: str) -> bool:
        return (
            self.db.query(Contest.id).filter(Contest.contest_code == contest_code).first()
            is not None
        )

    def get_questions(self, question_ids: Sequence[int]) -> List[Question]:
        unique_ids = list(dict.fromkeys(question_ids))
        questions = self.db.query(Question).filter(Question.id.in_(unique_ids)).all()
        if len(questions) != len(unique_ids):
            found = {q.id for q in questions}
            missing = [qid for qid in unique_ids if qid not in found]
            raise NotFoundError(f"Questions not found: {missing}")
        return questions

    def set_visibility(self, question_ids: Iterable[int], visible: bool) -> None:
        ids = list(question_ids)
        if not ids:
            return
        self.db.query(Question).filter(Question.id.in_(ids)).update(
            {Question.visibility: visible}, synchronize_session=False
        )

    def add_contest(self, contest: Contest) -> Contest:
        """Insert a contest; a duplicate join code surfaces as ``ConflictError``."""
        self.db.add(contest)
        try:
            self.db.flush()
        except IntegrityError as e:
            self.db.rollback()
            logger.warning(f"Contest insert conflicted: {e.orig}")
            raise ConflictError("Contest code already in use.")
        return contest

    def delete_contests(self, contest_ids: Sequence[int]) -> int:
        """
        Delete contests with their activity and participation rows.

        Runs as one transaction: every listed contest is removed together with
        its dependents, or nothing is. Unknown ids are skipped.
        """
        deleted = 0
        try:
            for contest_id in contest_ids:
                contest = self.db.query(Contest).filter(Contest.id == contest_id).first()
                if not contest:
                    continue
                self.set_visibility([q.id for q in contest.questions], True)
                self.db.query(AnswerActivity).filter(
                    AnswerActivity.contest_id == contest_id
                ).delete(synchronize_session=False)
                self.db.query(Participation).filter(
                    Participation.contest_id == contest_id
                ).delete(synchronize_session=False)
                contest.questions = []
                self.db.delete(contest)
                deleted += 1
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info(f"Deleted {deleted} contests")
        return deleted

    # ============= Participations =============

    def list_participations(self, contest_id: int) -> List[Participation]:
        """All participations of a contest, earliest submission first."""
        return (
            self.db.query(Participation)
            .options(joinedload(Participation.user))
            .filter(Participation.contest_id == contest_id)
            .order_by(
                Participation.submitted_at.is_(None),
                Participation.submitted_at.asc(),
                Participation.id.asc(),
            )
            .all()
        )

    def list_user_participations(self, user_id: int) -> List[Participation]:
        return (
            self.db.query(Participation)
            .options(joinedload(Participation.contest))
            .filter(Participation.user_id == user_id)
            .order_by(Participation.start_time.desc())
            .all()
        )

    def get_participation(self, user_id: int, contest_id: int) -> Optional[Participation]:
        return (
            self.db.query(Participation)
            .filter(Participation.user_id == user_id, Participation.contest_id == contest_id)
            .first()
        )

    def get_participation_by_id(self, participation_id: int, contest_id: int) -> Participation:
        participation = (
            self.db.query(Participation)
            .options(joinedload(Participation.user))
            .filter(Participation.id == participation_id, Participation.contest_id == contest_id)
            .first()
        )
        if not participation:
            raise NotFoundError("Participation not found.")
        return participation

    def create_participation(self, user_id: int, contest_id: int) -> Participation:
        """Insert a participation; an existing (user, contest) row raises ``ConflictError``."""
        participation = Participation(
            user_id=user_id,
            contest_id=contest_id,
            start_time=datetime.now(timezone.utc),
            violations=0,
        )
        self.db.add(participation)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ConflictError("You have already joined this contest.")
        self.db.refresh(participation)
        return participation

    # ============= Answer activity =============

    def list_activities(self, contest_id: int, user_id: Optional[int] = None) -> List[AnswerActivity]:
        query = self.db.query(AnswerActivity).filter(AnswerActivity.contest_id == contest_id)
        if user_id is not None:
            query = query.filter(AnswerActivity.user_id == user_id)
        return query.order_by(AnswerActivity.time.asc(), AnswerActivity.id.asc()).all()

    def record_answers(
        self,
        user_id: int,
        contest_id: int,
        answers: Iterable[Tuple[int, Optional[str]]],
        recorded_at: datetime,
    ) -> List[AnswerActivity]:
        """Append one activity row per answer; rows are flushed, not committed."""
        rows = [
            AnswerActivity(
                user_id=user_id,
                question_id=question_id,
                contest_id=contest_id,
                selected_answer=selected,
                time=recorded_at,
            )
            for question_id, selected in answers
        ]
        self.db.add_all(rows)
        self.db.flush()
        return rows

    def save(self, *instances) -> None:
        for instance in instances:
            self.db.add(instance)
        self.db.commit()
        for instance in instances:
            self.db.refresh(instance)
