"""
Response repository for database operations.

Upvote counts are always computed with COUNT queries at call time; nothing
here caches a running total.
"""

from datetime import datetime
from typing import Any, Optional
from uuid import uuid4

from sqlalchemy import and_, delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from models.response import Response, Upvote
from models.survey import Question, Survey


class ResponseRepository:
    """Repository for response database operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    def _get_rowcount(self, result: Any) -> int:
        """Safely get rowcount from result."""
        return getattr(result, "rowcount", 0) or 0

    async def get_by_id(self, response_id: str) -> Optional[Response]:
        """Get a response by ID."""
        result = await self.db.execute(select(Response).where(Response.id == response_id))
        return result.scalar_one_or_none()

    async def get_with_survey(self, response_id: str) -> Optional[tuple[Response, Survey]]:
        """Get a response together with the survey that owns its question."""
        result = await self.db.execute(
            select(Response, Survey)
            .join(Question, Question.id == Response.question_id)
            .join(Survey, Survey.id == Question.survey_id)
            .where(Response.id == response_id)
            .execution_options(populate_existing=True)
        )
        row = result.first()
        if row is None:
            return None
        return row[0], row[1]

    async def exists_for_user(self, question_id: str, user_id: str) -> bool:
        """Check if the user already answered the question."""
        result = await self.db.execute(
            select(func.count(Response.id)).where(
                and_(Response.question_id == question_id, Response.user_id == user_id)
            )
        )
        count = result.scalar() or 0
        return count > 0

    async def count_by_question(self, question_id: str) -> int:
        """Get total response count for a question."""
        result = await self.db.execute(select(func.count(Response.id)).where(Response.question_id == question_id))
        return result.scalar() or 0

    async def count_by_survey(self, survey_id: str) -> int:
        """Get total response count across a survey's questions."""
        result = await self.db.execute(
            select(func.count(Response.id))
            .join(Question, Question.id == Response.question_id)
            .where(Question.survey_id == survey_id)
        )
        return result.scalar() or 0

    async def create(
        self,
        question_id: str,
        user_id: str,
        text: str,
        created_at: datetime,
        single_response_key: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Response:
        """
        Insert a response.

        Flushes immediately so a unique-key collision surfaces here as
        IntegrityError rather than at commit time.
        """
        response = Response(
            id=str(uuid4()),
            question_id=question_id,
            user_id=user_id,
            text=text,
            single_response_key=single_response_key,
            ip_address=ip_address,
            user_agent=user_agent,
            created_at=created_at,
            updated_at=created_at,
        )

        self.db.add(response)
        await self.db.flush()

        return response

    async def list_by_question(self, question_id: str) -> list[Response]:
        """All responses to a question, oldest first."""
        result = await self.db.execute(
            select(Response)
            .where(Response.question_id == question_id)
            .order_by(Response.created_at.asc(), Response.id.asc())
        )
        return list(result.scalars().all())

    async def list_by_survey(self, survey_id: str) -> list[Response]:
        """All responses to a survey, by question position then age."""
        result = await self.db.execute(
            select(Response)
            .join(Question, Question.id == Response.question_id)
            .where(Question.survey_id == survey_id)
            .order_by(Question.order_index.asc(), Response.created_at.asc(), Response.id.asc())
        )
        return list(result.scalars().all())

    async def list_by_user(self, user_id: str) -> list[Response]:
        """All responses written by a user, newest first."""
        result = await self.db.execute(
            select(Response).where(Response.user_id == user_id).order_by(Response.created_at.desc())
        )
        return list(result.scalars().all())

    async def delete_response(self, response_id: str) -> bool:
        """Delete a response and its upvotes."""
        await self.db.execute(delete(Upvote).where(Upvote.response_id == response_id))
        result = await self.db.execute(delete(Response).where(Response.id == response_id))
        return self._get_rowcount(result) > 0

    async def top_for_question(self, question_id: str, limit: int) -> list[tuple[Response, int]]:
        """
        Responses to a question ranked by upvote count.

        Ties are broken by earliest created_at, then by id, so the order is
        fully deterministic.
        """
        upvote_count = func.count(Upvote.id).label("upvote_count")
        result = await self.db.execute(
            select(Response, upvote_count)
            .outerjoin(Upvote, Upvote.response_id == Response.id)
            .where(Response.question_id == question_id)
            .group_by(Response.id)
            .order_by(upvote_count.desc(), Response.created_at.asc(), Response.id.asc())
            .limit(limit)
        )
        return [(row[0], int(row[1])) for row in result.all()]

    async def total_upvotes_for_question(self, question_id: str) -> int:
        """Sum of upvotes over all responses to a question."""
        result = await self.db.execute(
            select(func.count(Upvote.id))
            .join(Response, Response.id == Upvote.response_id)
            .where(Response.question_id == question_id)
        )
        return result.scalar() or 0

    async def total_upvotes_for_survey(self, survey_id: str) -> int:
        """Sum of upvotes over all responses in a survey."""
        result = await self.db.execute(
            select(func.count(Upvote.id))
            .join(Response, Response.id == Upvote.response_id)
            .join(Question, Question.id == Response.question_id)
            .where(Question.survey_id == survey_id)
        )
        return result.scalar() or 0
