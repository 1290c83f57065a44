"""
Participation model - one attempt record per (user, contest).
"""
from sqlalchemy import Boolean, Column, Integer, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.db.base import Base


class Participation(Base):
    """A user's single attempt record for a contest."""

    __tablename__ = "participations"
    __table_args__ = (
        UniqueConstraint("user_id", "contest_id", name="uq_participation_user_contest"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    contest_id = Column(Integer, ForeignKey("contests.id", ondelete="CASCADE"), nullable=False, index=True)

    start_time = Column(DateTime(timezone=True), server_default=func.now())
    end_time = Column(DateTime(timezone=True), nullable=True)
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    violations = Column(Integer, default=0, nullable=False)
    auto_submitted = Column(Boolean, default=False, nullable=False)

    # Relationships
    user = relationship("User", back_populates="participations")
    contest = relationship("Contest", back_populates="participations")
