"""Repository modules for database access."""

from repositories.question_repository import QuestionRepository
from repositories.response_repository import ResponseRepository
from repositories.survey_repository import SurveyRepository
from repositories.upvote_repository import UpvoteRepository
from repositories.user_repository import UserRepository

__all__ = [
    "SurveyRepository",
    "QuestionRepository",
    "ResponseRepository",
    "UpvoteRepository",
    "UserRepository",
]
