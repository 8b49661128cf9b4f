"""Schemas module initialization."""

from schemas.auth import LoginRequest, TokenResponse
from schemas.response import RankedResponse, Response, ResponseCreate, TopResponses, UpvoteResult
from schemas.survey import (
    Question,
    QuestionCreate,
    QuestionUpdate,
    Survey,
    SurveyCreate,
    SurveyDetail,
    SurveyListResponse,
    SurveyUpdate,
)
from schemas.user import UserCreate, UserInDB, UserResponse

__all__ = [
    "UserCreate",
    "UserResponse",
    "UserInDB",
    "Survey",
    "SurveyCreate",
    "SurveyUpdate",
    "SurveyDetail",
    "SurveyListResponse",
    "Question",
    "QuestionCreate",
    "QuestionUpdate",
    "Response",
    "ResponseCreate",
    "RankedResponse",
    "TopResponses",
    "UpvoteResult",
    "LoginRequest",
    "TokenResponse",
]
