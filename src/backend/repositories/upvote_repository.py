"""
Upvote repository for database operations.

The table carries UNIQUE(user_id, response_id); the existence check here
is only a fast path, the constraint is what actually prevents duplicates.
"""

from datetime import datetime
from typing import Any, Optional
from uuid import uuid4

from sqlalchemy import and_, delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from models.response import Upvote


class UpvoteRepository:
    """Repository for upvote database operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    def _get_rowcount(self, result: Any) -> int:
        """Safely get rowcount from result."""
        return getattr(result, "rowcount", 0) or 0

    async def exists(self, user_id: str, response_id: str) -> bool:
        """Check if the user has already upvoted the response."""
        result = await self.db.execute(
            select(func.count(Upvote.id)).where(
                and_(Upvote.user_id == user_id, Upvote.response_id == response_id)
            )
        )
        count = result.scalar() or 0
        return count > 0

    async def create(
        self,
        user_id: str,
        response_id: str,
        created_at: datetime,
        ip_address: Optional[str] = None,
    ) -> Upvote:
        """Insert an upvote; raises IntegrityError on a duplicate pair."""
        upvote = Upvote(
            id=str(uuid4()),
            user_id=user_id,
            response_id=response_id,
            ip_address=ip_address,
            created_at=created_at,
        )

        self.db.add(upvote)
        await self.db.flush()

        return upvote

    async def delete_for(self, user_id: str, response_id: str) -> bool:
        """Delete the user's upvote on a response; False if there was none."""
        result = await self.db.execute(
            delete(Upvote).where(and_(Upvote.user_id == user_id, Upvote.response_id == response_id))
        )
        return self._get_rowcount(result) > 0

    async def count_by_response(self, response_id: str) -> int:
        """Get the upvote count for a response."""
        result = await self.db.execute(select(func.count(Upvote.id)).where(Upvote.response_id == response_id))
        return result.scalar() or 0

    async def upvoted_response_ids(self, user_id: str, response_ids: list[str]) -> set[str]:
        """Subset of ``response_ids`` the user has upvoted."""
        if not response_ids:
            return set()
        result = await self.db.execute(
            select(Upvote.response_id).where(
                and_(Upvote.user_id == user_id, Upvote.response_id.in_(response_ids))
            )
        )
        return set(result.scalars().all())
