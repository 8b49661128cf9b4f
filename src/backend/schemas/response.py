"""
Response and upvote Pydantic schemas.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class ResponseCreate(BaseModel):
    """Schema for submitting a response. Length limits are enforced by the service."""

    text: str


class Response(BaseModel):
    """Schema for a stored response."""

    id: str
    question_id: str
    user_id: str
    text: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class RankedResponse(Response):
    """Response with its live upvote count."""

    upvote_count: int = 0
    has_user_upvoted: bool = Field(False, description="Whether the caller has upvoted this response")


class TopResponses(BaseModel):
    """Top-K ranking for a question."""

    question_id: str
    limit: int
    responses: list[RankedResponse]


class UpvoteResult(BaseModel):
    """Outcome of an upvote or revoke call."""

    response_id: str
    changed: bool = Field(..., description="False when the call was a no-op (already upvoted / nothing to revoke)")
    upvote_count: int
    message: str


class QuestionStatistics(BaseModel):
    """Aggregate counts for a question, computed at request time."""

    question_id: str
    total_responses: int
    total_upvotes: int
    top_response_id: Optional[str] = None
