"""
Question repository for database operations.
"""

from datetime import datetime
from typing import Optional
from uuid import uuid4

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from models.response import Response, Upvote
from models.survey import Question, QuestionType


class QuestionRepository:
    """Repository for question database operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(self, question_id: str) -> Optional[Question]:
        """Get a question by ID."""
        result = await self.db.execute(
            select(Question).where(Question.id == question_id).execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_for_survey(self, survey_id: str) -> list[Question]:
        """All questions of a survey in display order."""
        result = await self.db.execute(
            select(Question)
            .where(Question.survey_id == survey_id)
            .order_by(Question.order_index.asc())
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def create(
        self,
        survey_id: str,
        text: str,
        question_type: QuestionType,
        order_index: int,
        created_at: datetime,
        is_required: bool = True,
        max_responses: Optional[int] = None,
        allow_multiple_answers: bool = False,
    ) -> Question:
        """Insert a question at the given position."""
        question = Question(
            id=str(uuid4()),
            survey_id=survey_id,
            text=text,
            question_type=question_type.value,
            order_index=order_index,
            is_required=is_required,
            max_responses=max_responses,
            allow_multiple_answers=allow_multiple_answers,
            created_at=created_at,
            updated_at=created_at,
        )

        self.db.add(question)
        await self.db.flush()

        return question

    async def delete_question(self, question: Question) -> None:
        """Delete a question; responses and upvotes go with it."""
        response_ids = select(Response.id).where(Response.question_id == question.id)
        await self.db.execute(delete(Upvote).where(Upvote.response_id.in_(response_ids)))
        await self.db.execute(delete(Response).where(Response.question_id == question.id))
        await self.db.delete(question)
        await self.db.flush()

    async def renumber(self, ordered: list[Question], now: datetime) -> None:
        """
        Assign order_index 0..n-1 following the given order.

        Goes through negative placeholders first so no intermediate state
        violates UNIQUE(survey_id, order_index).
        """
        for position, question in enumerate(ordered):
            question.order_index = -(position + 1)
        await self.db.flush()

        for position, question in enumerate(ordered):
            question.order_index = position
            question.updated_at = now
        await self.db.flush()
