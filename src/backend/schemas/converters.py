"""
Schema converter functions.

Centralized helper functions for converting SQLAlchemy models and service
results to Pydantic schemas. Used by both public and admin endpoints.
"""

from datetime import datetime
from typing import TYPE_CHECKING

from schemas.response import RankedResponse, TopResponses
from schemas.survey import Question, Survey, SurveyDetail, SurveyStatusCounts
from schemas.user import UserInDB, UserResponse
from services.survey_lifecycle import can_accept_responses

if TYPE_CHECKING:
    from models.survey import Survey as SurveyModel
    from models.user import User as UserModel
    from services.ranking_engine import RankedResponse as RankedEntry


def survey_to_schema(survey: "SurveyModel", now: datetime) -> Survey:
    """Survey summary, with is_open evaluated at ``now``."""
    data = Survey.model_validate(survey)
    data.is_open = can_accept_responses(survey, now)
    return data


def survey_to_detail_schema(survey: "SurveyModel", now: datetime) -> SurveyDetail:
    """
    Survey with its questions in display order.

    The survey must have been loaded with its questions.
    """
    summary = survey_to_schema(survey, now)
    return SurveyDetail(
        **summary.model_dump(),
        questions=[
            Question.model_validate(q) for q in sorted(survey.questions, key=lambda q: q.order_index)
        ],
    )


def ranked_to_schema(entry: "RankedEntry") -> RankedResponse:
    response = entry.response
    return RankedResponse(
        id=response.id,
        question_id=response.question_id,
        user_id=response.user_id,
        text=response.text,
        created_at=response.created_at,
        updated_at=response.updated_at,
        upvote_count=entry.upvote_count,
        has_user_upvoted=entry.has_user_upvoted,
    )


def top_responses_to_schema(question_id: str, limit: int, entries: list["RankedEntry"]) -> TopResponses:
    return TopResponses(
        question_id=question_id,
        limit=limit,
        responses=[ranked_to_schema(e) for e in entries],
    )


def status_counts_to_schema(counts: dict[str, int]) -> SurveyStatusCounts:
    return SurveyStatusCounts(
        total=sum(counts.values()),
        draft=counts.get("DRAFT", 0),
        scheduled=counts.get("SCHEDULED", 0),
        active=counts.get("ACTIVE", 0),
        closed=counts.get("CLOSED", 0),
    )


def user_model_to_schema(user: "UserModel") -> UserInDB:
    """
    Convert a User model to the authenticated-caller schema.

    This is the single source of truth for User -> UserInDB conversion,
    ensuring consistent field mapping across all authentication flows.
    """
    return UserInDB(
        id=str(user.id),
        username=user.username,
        role=user.role,
        is_active=user.is_active,
    )


def user_model_to_response(user: "UserModel") -> UserResponse:
    return UserResponse.model_validate(user)


def total_pages(total: int, per_page: int) -> int:
    return (total + per_page - 1) // per_page if per_page else 0
