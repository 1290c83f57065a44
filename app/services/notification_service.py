"""
Best-effort notifications for contest events.

Every public method returns a ``NotificationResult`` instead of raising; the
caller logs it and moves on, so a failed notification never changes the
outcome of the request that triggered it.
"""
import logging
from typing import Any, Dict, List, Optional

from fastapi import BackgroundTasks
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.contest import Contest
from app.models.notification import Notification
from app.models.user import User
from app.services.mail import MailService

logger = logging.getLogger(__name__)

CONTEST_ANNOUNCED = "CONTEST_ANNOUNCED"
HIGH_SCORE = "HIGH_SCORE"
CONTEST_EXTENDED = "CONTEST_EXTENDED"


class NotificationResult(BaseModel):
    """Outcome of a notification attempt."""
    delivered: bool
    recipients: int = 0
    error: Optional[str] = None


class NotificationService:
    """Writes in-app notifications and, when configured, queues e-mails."""

    def __init__(
        self,
        db: Session,
        mail: Optional[MailService] = None,
        background_tasks: Optional[BackgroundTasks] = None,
    ):
        self.db = db
        self.mail = mail
        self.background_tasks = background_tasks

    def _deliver(
        self,
        user_ids: List[int],
        title: str,
        message: str,
        notification_type: str,
        data: Dict[str, Any],
    ) -> NotificationResult:
        try:
            for user_id in user_ids:
                self.db.add(
                    Notification(
                        user_id=user_id,
                        title=title,
                        message=message,
                        type=notification_type,
                        data=data,
                        is_read=False,
                    )
                )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to store {notification_type} notification: {e}")
            return NotificationResult(delivered=False, error=str(e))

        logger.info(f"{notification_type} notification sent to {len(user_ids)} users: {title}")
        return NotificationResult(delivered=True, recipients=len(user_ids))

    def _queue_mail(self, recipients: List[str], subject: str, template: str, context: Dict[str, Any]) -> None:
        if not self.mail or not self.background_tasks or not recipients:
            return
        try:
            self.mail.send_message_background(self.background_tasks, subject, recipients, template, context)
        except Exception as e:
            logger.error(f"Failed to queue '{subject}' e-mail: {e}")

    def notify_high_score(
        self,
        user_id: int,
        contest: Contest,
        raw_score: int,
        total_questions: int,
        percentage: int,
    ) -> NotificationResult:
        result = self._deliver(
            [user_id],
            title="🏆 Outstanding Performance!",
            message=(
                f"You scored {percentage}% ({raw_score}/{total_questions}) "
                f"in \"{contest.title}\". Excellent work!"
            ),
            notification_type=HIGH_SCORE,
            data={
                "contestId": contest.id,
                "contestTitle": contest.title,
                "score": raw_score,
                "totalQuestions": total_questions,
                "percentage": percentage,
            },
        )
        if result.delivered:
            user = self.db.get(User, user_id)
            if user:
                self._queue_mail(
                    [user.email],
                    f"Great score in {contest.title}",
                    "high_score.html",
                    {
                        "full_name": user.full_name,
                        "contest_title": contest.title,
                        "percentage": percentage,
                        "correct": raw_score,
                        "total_questions": total_questions,
                    },
                )
        return result

    def notify_contest_announced(self, contest: Contest) -> NotificationResult:
        try:
            users = self.db.query(User.id, User.email).filter(User.is_active.is_(True)).all()
        except SQLAlchemyError as e:
            logger.error(f"Failed to load recipients for contest {contest.id}: {e}")
            return NotificationResult(delivered=False, error=str(e))

        start = contest.start_time.strftime("%Y-%m-%d %H:%M") if contest.start_time else "soon"
        result = self._deliver(
            [user_id for user_id, _ in users],
            title="🎉 New Contest Announced!",
            message=f"A new contest \"{contest.title}\" has been announced. Starts on {start}. Don't miss out!",
            notification_type=CONTEST_ANNOUNCED,
            data={
                "contestId": contest.id,
                "contestTitle": contest.title,
                "startTime": contest.start_time.isoformat() if contest.start_time else None,
            },
        )
        if result.delivered:
            self._queue_mail(
                [email for _, email in users],
                f"New contest: {contest.title}",
                "contest_announced.html",
                {
                    "contest_title": contest.title,
                    "start_time": start,
                    "end_time": contest.end_time.strftime("%Y-%m-%d %H:%M") if contest.end_time else "",
                    "requires_code": contest.requires_code,
                },
            )
        return result

    def notify_time_extended(
        self, contest: Contest, extension_minutes: int, user_ids: List[int]
    ) -> NotificationResult:
        end = contest.end_time.strftime("%Y-%m-%d %H:%M") if contest.end_time else ""
        return self._deliver(
            user_ids,
            title="Contest Time Extended",
            message=(
                f"The contest \"{contest.title}\" has been extended by {extension_minutes} minutes. "
                f"New end time: {end}"
            ),
            notification_type=CONTEST_EXTENDED,
            data={"contestId": contest.id, "extensionMinutes": extension_minutes},
        )
