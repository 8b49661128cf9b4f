"""
Survey repository for database operations.
"""

from datetime import datetime
from typing import Any, Optional
from uuid import uuid4

from sqlalchemy import and_, delete, exists, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from models.response import Response, Upvote
from models.survey import Question, Survey, SurveyStatus


class SurveyRepository:
    """Repository for survey database operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    def _get_rowcount(self, result: Any) -> int:
        """Safely get rowcount from result."""
        return getattr(result, "rowcount", 0) or 0

    async def get_by_id(
        self,
        survey_id: str,
        with_questions: bool = False,
        for_update: bool = False,
    ) -> Optional[Survey]:
        """
        Get a survey by ID.

        with_questions eagerly loads the ordered question list; for_update
        takes a row lock (ignored by SQLite) so status checks and the write
        that depends on them see the same row.
        """
        query = select(Survey).where(Survey.id == survey_id)
        if with_questions:
            query = query.options(selectinload(Survey.questions))
        if for_update:
            query = query.with_for_update()
        # Refresh identity-mapped instances so a re-read reflects the latest commit
        query = query.execution_options(populate_existing=True)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def list_open(self, now: datetime) -> list[Survey]:
        """Surveys that are ACTIVE and inside their schedule window at ``now``."""
        result = await self.db.execute(
            select(Survey)
            .options(selectinload(Survey.questions))
            .where(
                and_(
                    Survey.status == SurveyStatus.ACTIVE.value,
                    or_(Survey.start_date.is_(None), Survey.start_date <= now),
                    or_(Survey.end_date.is_(None), Survey.end_date >= now),
                )
            )
            .order_by(Survey.created_at.desc(), Survey.id.asc())
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def list_surveys(
        self,
        page: int = 1,
        per_page: int = 20,
        status_filter: Optional[str] = None,
        search_query: Optional[str] = None,
    ) -> tuple[list[Survey], int]:
        """List surveys with filtering and pagination for admin views."""
        query = select(Survey)
        count_query = select(func.count(Survey.id))

        if status_filter:
            query = query.where(Survey.status == status_filter)
            count_query = count_query.where(Survey.status == status_filter)

        if search_query:
            search_pattern = f"%{search_query}%"
            query = query.where(Survey.title.ilike(search_pattern))
            count_query = count_query.where(Survey.title.ilike(search_pattern))

        total_result = await self.db.execute(count_query)
        total = total_result.scalar() or 0

        query = query.order_by(Survey.created_at.desc(), Survey.id.asc())
        query = query.offset((page - 1) * per_page).limit(per_page)

        result = await self.db.execute(query)
        return list(result.scalars().all()), total

    async def create(
        self,
        title: str,
        created_at: datetime,
        description: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        allow_multiple_responses: bool = False,
        created_by_id: Optional[str] = None,
    ) -> Survey:
        """Create a new survey in DRAFT status."""
        survey = Survey(
            id=str(uuid4()),
            title=title,
            description=description,
            status=SurveyStatus.DRAFT.value,
            start_date=start_date,
            end_date=end_date,
            allow_multiple_responses=allow_multiple_responses,
            created_by_id=created_by_id,
            created_at=created_at,
            updated_at=created_at,
        )

        self.db.add(survey)
        await self.db.flush()

        return survey

    async def count_questions(self, survey_id: str) -> int:
        """Number of questions currently attached to a survey."""
        result = await self.db.execute(select(func.count(Question.id)).where(Question.survey_id == survey_id))
        return result.scalar() or 0

    async def delete_survey(self, survey_id: str) -> bool:
        """
        Delete a survey with its questions, responses and upvotes.

        Children are removed explicitly, deepest first, so the cascade does
        not depend on the backend enforcing ON DELETE CASCADE.
        """
        question_ids = select(Question.id).where(Question.survey_id == survey_id)
        response_ids = select(Response.id).where(Response.question_id.in_(question_ids))

        await self.db.execute(delete(Upvote).where(Upvote.response_id.in_(response_ids)))
        await self.db.execute(delete(Response).where(Response.question_id.in_(question_ids)))
        await self.db.execute(delete(Question).where(Question.survey_id == survey_id))
        result = await self.db.execute(delete(Survey).where(Survey.id == survey_id))
        return self._get_rowcount(result) > 0

    async def get_due_for_activation(self, now: datetime) -> list[str]:
        """IDs of SCHEDULED surveys whose start date has come and which have questions."""
        has_questions = exists().where(Question.survey_id == Survey.id)
        result = await self.db.execute(
            select(Survey.id).where(
                and_(
                    Survey.status == SurveyStatus.SCHEDULED.value,
                    Survey.start_date.is_not(None),
                    Survey.start_date <= now,
                    or_(Survey.end_date.is_(None), Survey.end_date >= now),
                    has_questions,
                )
            )
        )
        return list(result.scalars().all())

    async def get_expired(self, now: datetime) -> list[str]:
        """IDs of ACTIVE surveys whose end date has passed."""
        result = await self.db.execute(
            select(Survey.id).where(
                and_(
                    Survey.status == SurveyStatus.ACTIVE.value,
                    Survey.end_date.is_not(None),
                    Survey.end_date < now,
                )
            )
        )
        return list(result.scalars().all())

    async def bulk_update_status(
        self,
        survey_ids: list[str],
        expected: SurveyStatus,
        target: SurveyStatus,
        now: datetime,
    ) -> int:
        """Move surveys still in ``expected`` status to ``target``."""
        if not survey_ids:
            return 0
        result = await self.db.execute(
            update(Survey)
            .where(and_(Survey.id.in_(survey_ids), Survey.status == expected.value))
            .values(status=target.value, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        return self._get_rowcount(result)

    async def status_counts(self) -> dict[str, int]:
        """Number of surveys per status (every status present, zero when empty)."""
        result = await self.db.execute(select(Survey.status, func.count(Survey.id)).group_by(Survey.status))
        counts = {status.value: 0 for status in SurveyStatus}
        for status_value, count in result.all():
            counts[status_value] = count
        return counts
