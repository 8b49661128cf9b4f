"""
Ranking Engine

Top-K responses per question by upvote count. Ties are broken by earliest
submission, then by response id, so the same data always yields the same
order. Every call runs one fresh aggregate query; nothing is cached.
"""

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import NotFound, ValidationError
from models.response import Response
from repositories.question_repository import QuestionRepository
from repositories.response_repository import ResponseRepository
from repositories.survey_repository import SurveyRepository
from repositories.upvote_repository import UpvoteRepository


@dataclass(frozen=True)
class RankedResponse:
    """A response with the upvote count it had when the ranking was computed."""

    response: Response
    upvote_count: int
    has_user_upvoted: bool = False


@dataclass(frozen=True)
class QuestionStats:
    question_id: str
    total_responses: int
    total_upvotes: int
    top_response_id: Optional[str] = None


@dataclass(frozen=True)
class SurveyStats:
    survey_id: str
    question_count: int
    total_responses: int
    total_upvotes: int


class RankingEngine:
    """Read-only ranking and statistics over responses and upvotes."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.questions = QuestionRepository(db)
        self.surveys = SurveyRepository(db)
        self.responses = ResponseRepository(db)
        self.upvotes = UpvoteRepository(db)

    async def top_responses(
        self,
        question_id: str,
        k: int,
        viewer_id: Optional[str] = None,
    ) -> list[RankedResponse]:
        """
        The ``k`` most upvoted responses to a question, best first.

        ``viewer_id``, when given, fills in has_user_upvoted for each entry.
        """
        if k < 0:
            raise ValidationError("k must be zero or positive")
        if await self.questions.get_by_id(question_id) is None:
            raise NotFound.for_entity("Question", question_id)
        if k == 0:
            return []

        rows = await self.responses.top_for_question(question_id, k)

        upvoted: set[str] = set()
        if viewer_id:
            upvoted = await self.upvotes.upvoted_response_ids(viewer_id, [r.id for r, _ in rows])

        return [
            RankedResponse(response=response, upvote_count=count, has_user_upvoted=response.id in upvoted)
            for response, count in rows
        ]

    async def question_statistics(self, question_id: str) -> QuestionStats:
        if await self.questions.get_by_id(question_id) is None:
            raise NotFound.for_entity("Question", question_id)

        top = await self.responses.top_for_question(question_id, 1)
        return QuestionStats(
            question_id=question_id,
            total_responses=await self.responses.count_by_question(question_id),
            total_upvotes=await self.responses.total_upvotes_for_question(question_id),
            top_response_id=top[0][0].id if top else None,
        )

    async def survey_statistics(self, survey_id: str) -> SurveyStats:
        if await self.surveys.get_by_id(survey_id) is None:
            raise NotFound.for_entity("Survey", survey_id)

        return SurveyStats(
            survey_id=survey_id,
            question_count=await self.surveys.count_questions(survey_id),
            total_responses=await self.responses.count_by_survey(survey_id),
            total_upvotes=await self.responses.total_upvotes_for_survey(survey_id),
        )

    async def status_counts(self) -> dict[str, int]:
        """Surveys per lifecycle status."""
        return await self.surveys.status_counts()
