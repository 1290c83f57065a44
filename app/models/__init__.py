"""Models module - Import all models here for Alembic."""
from app.db.base import Base
from app.models.user import User
from app.models.contest import Contest, contest_questions
from app.models.question import Question
from app.models.participation import Participation
from app.models.activity import AnswerActivity
from app.models.notification import Notification

__all__ = [
    "Base",
    "User",
    "Contest",
    "contest_questions",
    "Question",
    "Participation",
    "AnswerActivity",
    "Notification",
]
