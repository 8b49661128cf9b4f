"""
Survey and Question models.

A survey owns an ordered list of questions (cascade delete). Question
positions are dense and zero-based within a survey; the unique constraint
on (survey_id, order_index) makes concurrent appends collide instead of
silently producing duplicate positions.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.clock import utc_now
from db.base import Base
from db.types import UTCDateTime


class SurveyStatus(str, Enum):
    """Survey lifecycle status."""

    DRAFT = "DRAFT"  # Being authored, not visible to respondents
    SCHEDULED = "SCHEDULED"  # Has a start date, waiting to go live
    ACTIVE = "ACTIVE"  # Live; accepts responses while inside its window
    CLOSED = "CLOSED"  # Terminal


class QuestionType(str, Enum):
    """Kind of answer a question expects."""

    TEXT = "TEXT"
    MULTIPLE_CHOICE = "MULTIPLE_CHOICE"
    RATING = "RATING"
    YES_NO = "YES_NO"
    LIKERT_SCALE = "LIKERT_SCALE"


class Survey(Base):
    """
    Survey model.

    Status alone does not decide whether responses are accepted: the
    optional start/end window is checked on every submission too.
    """

    __tablename__ = "surveys"

    __table_args__ = (
        # Used by the lifecycle job and the open-surveys listing
        Index("ix_surveys_status_start_date", "status", "start_date"),
    )

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )

    title: Mapped[str] = mapped_column(String(200))
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(
        String(20),
        default=SurveyStatus.DRAFT.value,
        index=True,
    )

    # Schedule window (both optional)
    start_date: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)
    end_date: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)

    allow_multiple_responses: Mapped[bool] = mapped_column(Boolean, default=False)

    created_by_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utc_now)

    # Relationships
    questions: Mapped[list["Question"]] = relationship(
        "Question",
        back_populates="survey",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Question.order_index",
    )

    @property
    def is_active(self) -> bool:
        return self.status == SurveyStatus.ACTIVE.value

    @property
    def is_closed(self) -> bool:
        return self.status == SurveyStatus.CLOSED.value


class Question(Base):
    """One item within a survey."""

    __tablename__ = "questions"

    __table_args__ = (
        UniqueConstraint("survey_id", "order_index", name="uq_questions_survey_order"),
    )

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )

    survey_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("surveys.id", ondelete="CASCADE"),
        index=True,
    )

    text: Mapped[str] = mapped_column(Text)
    question_type: Mapped[str] = mapped_column(String(20), default=QuestionType.TEXT.value)
    order_index: Mapped[int] = mapped_column(Integer, default=0)

    # Per-question policy
    is_required: Mapped[bool] = mapped_column(Boolean, default=True)
    max_responses: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    allow_multiple_answers: Mapped[bool] = mapped_column(Boolean, default=False)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utc_now)

    survey: Mapped[Survey] = relationship("Survey", back_populates="questions")
