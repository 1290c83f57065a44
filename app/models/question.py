"""
Question bank model.
"""
from sqlalchemy import Boolean, Column, Integer, String, DateTime, ForeignKey, Text, JSON, Float
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.db.base import Base
from app.models.contest import contest_questions


class Question(Base):
    """Multiple choice question owned by the question bank."""

    __tablename__ = "questions"

    id = Column(Integer, primary_key=True, index=True)
    category = Column(String, nullable=False, index=True)
    subcategory = Column(String, nullable=False)
    level = Column(String, nullable=False, default="medium")  # easy, medium, hard
    question = Column(Text, nullable=False)
    options = Column(JSON, nullable=False)  # List of 4 option strings (legacy rows: {"a": .., "d": ..})
    correct_answers = Column(JSON, nullable=False)  # List of option strings
    score = Column(Float, nullable=False, default=1.0)
    explanation = Column(Text, nullable=True, default="")
    visibility = Column(Boolean, default=True)  # False while locked into a contest
    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    author = relationship("User", back_populates="questions")
    contests = relationship("Contest", secondary=contest_questions, back_populates="questions")
