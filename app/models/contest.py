"""
Contest (test series) model.
"""
from sqlalchemy import Boolean, Column, Integer, String, DateTime, ForeignKey, Float, Table
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.db.base import Base

contest_questions = Table(
    "contest_questions",
    Base.metadata,
    Column("contest_id", Integer, ForeignKey("contests.id", ondelete="CASCADE"), primary_key=True),
    Column("question_id", Integer, ForeignKey("questions.id", ondelete="CASCADE"), primary_key=True),
)


class Contest(Base):
    """A timed collection of questions users attempt once."""

    __tablename__ = "contests"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=False)
    requires_code = Column(Boolean, default=False)
    contest_code = Column(String(16), unique=True, index=True, nullable=True)
    has_negative_marking = Column(Boolean, default=False)
    negative_marking_value = Column(Float, default=0.25)  # Ratio of question weight per wrong answer
    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    creator = relationship("User")
    questions = relationship(
        "Question", secondary=contest_questions, back_populates="contests", order_by="Question.id"
    )
    participations = relationship("Participation", back_populates="contest")
    activities = relationship("AnswerActivity", back_populates="contest")
