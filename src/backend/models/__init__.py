"""Database models module."""

from models.user import User, UserRole
from models.survey import Question, QuestionType, Survey, SurveyStatus
from models.response import Response, Upvote

__all__ = [
    "User",
    "UserRole",
    "Survey",
    "SurveyStatus",
    "Question",
    "QuestionType",
    "Response",
    "Upvote",
]
