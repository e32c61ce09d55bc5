"""
SQLAlchemy ORM models for phrasal persistence.

Defines the phrases, reviews, study_sessions and study_session_items
tables. Reviews are append-only: the latest row per phrase holds its current
schedule.
"""

from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class PhraseRecord(Base):
    """A phrase saved by a user for study."""

    __tablename__ = "phrases"

    id = Column(String(64), primary_key=True)
    user_id = Column(String(255), nullable=False, index=True)
    text = Column(Text, nullable=False)
    translation = Column(Text, nullable=True)
    context = Column(Text, nullable=True)
    added_at = Column(DateTime(timezone=True), nullable=False)

    def __repr__(self):
        return f"<PhraseRecord({self.id}, {self.text!r})>"


class ReviewRecord(Base):
    """
    One graded review of a phrase.

    Captures the grade and the schedule computed from it.
    """

    __tablename__ = "reviews"

    id = Column(Integer, primary_key=True, autoincrement=True)
    phrase_id = Column(String(64), ForeignKey("phrases.id"), nullable=False)
    user_id = Column(String(255), nullable=False)

    grade = Column(Integer, nullable=False)  # 1=AGAIN, 2=HARD, 3=GOOD, 4=EASY
    ease_factor = Column(Float, nullable=False)
    interval_days = Column(Integer, nullable=False)
    repetitions = Column(Integer, nullable=False)
    next_review_at = Column(DateTime(timezone=True), nullable=False)
    reviewed_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (Index("ix_reviews_phrase_reviewed", "phrase_id", "reviewed_at"),)

    def __repr__(self):
        return f"<ReviewRecord(id={self.id}, {self.phrase_id}, grade={self.grade})>"


class StudySessionRecord(Base):
    """Aggregates of one study session, written at start and completion."""

    __tablename__ = "study_sessions"

    id = Column(String(64), primary_key=True)
    user_id = Column(String(255), nullable=False)
    session_type = Column(String(20), nullable=False)
    total_items = Column(Integer, nullable=False)
    completed_items = Column(Integer, nullable=False, default=0)
    correct_items = Column(Integer, nullable=False, default=0)
    average_grade = Column(Float, nullable=False, default=0.0)
    duration_seconds = Column(Integer, nullable=False, default=0)
    started_at = Column(DateTime(timezone=True), nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    is_complete = Column(Boolean, nullable=False, default=False)

    def __repr__(self):
        return f"<StudySessionRecord({self.id}, {self.session_type})>"


class StudySessionItemRecord(Base):
    """Outcome of one graded item within a study session."""

    __tablename__ = "study_session_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(String(64), ForeignKey("study_sessions.id"), nullable=False, index=True)
    phrase_id = Column(String(64), ForeignKey("phrases.id"), nullable=False, index=True)
    item_order = Column(Integer, nullable=False)
    grade = Column(Integer, nullable=False)
    response_time_seconds = Column(Float, nullable=True)
    is_correct = Column(Boolean, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)

    def __repr__(self):
        return f"<StudySessionItemRecord({self.session_id}, #{self.item_order}, grade={self.grade})>"
