"""
Upvote Ledger

At most one upvote per (user, response). The existence check is only a
fast path for the common "already upvoted" case; UNIQUE(user_id,
response_id) is what holds when two requests race.
"""

from typing import Optional

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.clock import Clock, utc_now
from core.config import settings
from core.exceptions import AuthenticationRequired, BusinessRuleViolation, ConflictError, NotFound
from models.response import Response
from models.survey import SurveyStatus
from repositories.response_repository import ResponseRepository
from repositories.upvote_repository import UpvoteRepository
from repositories.user_repository import UserRepository

logger = structlog.get_logger(__name__)


class UpvoteLedger:
    """Records and revokes upvotes."""

    def __init__(
        self,
        db: AsyncSession,
        clock: Clock = utc_now,
        allow_self_upvote: Optional[bool] = None,
    ):
        self.db = db
        self.clock = clock
        self.allow_self_upvote = settings.ALLOW_SELF_UPVOTE if allow_self_upvote is None else allow_self_upvote
        self.responses = ResponseRepository(db)
        self.upvotes = UpvoteRepository(db)
        self.users = UserRepository(db)

    async def _load_mutable_response(self, response_id: str, user_id: Optional[str]) -> Response:
        found = await self.responses.get_with_survey(response_id)
        if found is None:
            raise NotFound.for_entity("Response", response_id)
        response, survey = found

        if not user_id:
            raise AuthenticationRequired("Authentication is required to upvote")
        user = await self.users.get_by_id(user_id)
        if user is None or not user.is_active:
            raise AuthenticationRequired("Authentication is required to upvote")

        if survey.status == SurveyStatus.CLOSED.value:
            raise BusinessRuleViolation("survey is closed", error_code="SURVEY_CLOSED")
        return response

    async def upvote(self, response_id: str, user_id: Optional[str], ip_address: Optional[str] = None) -> bool:
        """
        Record an upvote.

        Returns:
            True if a new upvote was stored, False if the user had already
            upvoted this response.

        Raises:
            NotFound: unknown response.
            AuthenticationRequired: no active user.
            BusinessRuleViolation: the survey is closed, or self-upvoting is disabled.
            ConflictError: a concurrent identical upvote won the race.
        """
        response = await self._load_mutable_response(response_id, user_id)

        if not self.allow_self_upvote and response.user_id == user_id:
            raise BusinessRuleViolation("Cannot upvote your own response", error_code="SELF_UPVOTE")

        if await self.upvotes.exists(user_id, response_id):
            return False

        try:
            await self.upvotes.create(
                user_id=user_id,
                response_id=response_id,
                created_at=self.clock(),
                ip_address=ip_address,
            )
            await self.db.commit()
        except IntegrityError as exc:
            await self.db.rollback()
            logger.warning("upvote_conflict", response_id=response_id, user_id=user_id, error=str(exc.orig))
            raise ConflictError("Response already upvoted") from exc

        logger.info("response_upvoted", response_id=response_id, user_id=user_id)
        return True

    async def revoke(self, response_id: str, user_id: Optional[str]) -> bool:
        """
        Remove the user's upvote.

        Returns:
            True if an upvote was deleted, False if there was none.
        """
        await self._load_mutable_response(response_id, user_id)

        removed = await self.upvotes.delete_for(user_id, response_id)
        await self.db.commit()

        if removed:
            logger.info("upvote_revoked", response_id=response_id, user_id=user_id)
        return removed

    async def count(self, response_id: str) -> int:
        """Live upvote count for a response."""
        return await self.upvotes.count_by_response(response_id)

    async def has_upvoted(self, response_id: str, user_id: str) -> bool:
        return await self.upvotes.exists(user_id, response_id)

    async def upvoted_response_ids(self, user_id: str, response_ids: list[str]) -> set[str]:
        return await self.upvotes.upvoted_response_ids(user_id, response_ids)
