"""
Response and Upvote models.

Both carry the user who created them; anonymous rows are impossible
(user_id is NOT NULL).

Duplicate protection is enforced by the database, not only by a prior
read:
- Upvote: unconditional UNIQUE(user_id, response_id).
- Response: the "one answer per user per question" rule only applies when
  the survey disallows multiple responses, so it lives on a nullable
  single_response_key column. It is filled with "<question_id>:<user_id>"
  when the rule applies and left NULL otherwise; NULLs never collide.
"""

from datetime import datetime
from typing import Optional
from uuid import uuid4

from sqlalchemy import ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from core.clock import utc_now
from db.base import Base
from db.types import UTCDateTime


def single_response_key(question_id: str, user_id: str) -> str:
    """Key that makes a second response from the same user collide."""
    return f"{question_id}:{user_id}"


class Response(Base):
    """One user's answer to one question."""

    __tablename__ = "responses"

    __table_args__ = (
        Index("ix_responses_question_user", "question_id", "user_id"),
        Index("ix_responses_question_created", "question_id", "created_at"),
    )

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )

    question_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("questions.id", ondelete="CASCADE"),
        index=True,
    )
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )

    text: Mapped[str] = mapped_column(Text)

    single_response_key: Mapped[Optional[str]] = mapped_column(
        String(80),
        unique=True,
        nullable=True,
    )

    # Request metadata
    ip_address: Mapped[Optional[str]] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utc_now)


class Upvote(Base):
    """One user's endorsement of one response."""

    __tablename__ = "upvotes"

    __table_args__ = (
        UniqueConstraint("user_id", "response_id", name="uq_upvotes_user_response"),
    )

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )

    response_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("responses.id", ondelete="CASCADE"),
        index=True,
    )
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        index=True,
    )

    ip_address: Mapped[Optional[str]] = mapped_column(String(45), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utc_now)
