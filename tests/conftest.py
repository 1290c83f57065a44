"""
Shared fixtures: in-memory database, users, tokens and factories.
"""
import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["MAIL_ENABLED"] = "false"
os.environ.setdefault("SECRET_KEY", "test-secret-key")

from datetime import datetime, timedelta, timezone  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from app.core.security import create_access_token, get_password_hash  # noqa: E402
from app.db.base import Base, SessionLocal, engine  # noqa: E402
from app.main import app  # noqa: E402
from app.models import AnswerActivity, Contest, Participation, Question, User  # noqa: E402

PASSWORD = "secret123"
_PASSWORD_HASH = get_password_hash(PASSWORD)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@pytest.fixture(autouse=True)
def reset_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


def make_user(db, email: str, role: str = "student", full_name: str = None) -> User:
    user = User(
        email=email,
        full_name=full_name or email.split("@")[0].title(),
        hashed_password=_PASSWORD_HASH,
        role=role,
        is_active=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(subject=user.id)}"}


@pytest.fixture
def admin(db):
    return make_user(db, "admin@example.com", role="admin", full_name="Admin")


@pytest.fixture
def moderator(db):
    return make_user(db, "mod@example.com", role="moderator", full_name="Moderator")


@pytest.fixture
def student(db):
    return make_user(db, "alice@example.com", full_name="Alice")


@pytest.fixture
def other_student(db):
    return make_user(db, "bob@example.com", full_name="Bob")


def make_question(db, text: str = "2 + 2 = ?", correct: str = "4", score: float = 1.0, **overrides) -> Question:
    fields = dict(
        category="Math",
        subcategory="Arithmetic",
        level="easy",
        question=text,
        options=["3", "4", "5", "6"],
        correct_answers=[correct],
        score=score,
        explanation="",
        visibility=True,
    )
    fields.update(overrides)
    question = Question(**fields)
    db.add(question)
    db.commit()
    db.refresh(question)
    return question


def make_contest(
    db,
    questions,
    start: datetime = None,
    end: datetime = None,
    has_negative_marking: bool = False,
    negative_marking_value: float = 0.25,
    **overrides,
) -> Contest:
    now = utcnow()
    contest = Contest(
        title=overrides.pop("title", "Weekly Contest"),
        start_time=start or now - timedelta(hours=1),
        end_time=end or now + timedelta(hours=1),
        has_negative_marking=has_negative_marking,
        negative_marking_value=negative_marking_value,
        requires_code=overrides.pop("requires_code", False),
        contest_code=overrides.pop("contest_code", None),
        **overrides,
    )
    contest.questions = list(questions)
    db.add(contest)
    db.commit()
    db.refresh(contest)
    return contest


def make_participation(db, user, contest, start=None, end=None, submitted=None, violations=0) -> Participation:
    participation = Participation(
        user_id=user.id,
        contest_id=contest.id,
        start_time=start or utcnow(),
        end_time=end,
        submitted_at=submitted,
        violations=violations,
    )
    db.add(participation)
    db.commit()
    db.refresh(participation)
    return participation


def record_answer(db, user, contest, question, answer, at=None) -> AnswerActivity:
    activity = AnswerActivity(
        user_id=user.id,
        contest_id=contest.id,
        question_id=question.id,
        selected_answer=answer,
        time=at or utcnow(),
    )
    db.add(activity)
    db.commit()
    return activity


def end_contest(db, contest) -> None:
    """Move a contest's window into the past."""
    now = utcnow()
    contest.start_time = now - timedelta(hours=3)
    contest.end_time = now - timedelta(minutes=1)
    db.commit()
