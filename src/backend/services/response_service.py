"""
Response Submission Guard

Validates and persists responses. Checks run in a fixed order and stop at
the first failure:

1. the question exists                      -> NotFound
2. its survey is open for responses         -> BusinessRuleViolation
3. the caller is a known, active user       -> AuthenticationRequired
4. no earlier answer, unless the survey
   allows multiple responses                -> BusinessRuleViolation
5. the text is non-empty, within the length
   bound and fits the question type         -> ValidationError
6. the question's max_responses is not hit  -> BusinessRuleViolation

Step 4 is backed by the unique single_response_key column, so two
concurrent submissions that both pass the read still cannot both insert;
the loser gets ConflictError.
"""

from typing import Optional

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.clock import Clock, utc_now
from core.config import settings
from core.exceptions import (
    AuthenticationRequired,
    BusinessRuleViolation,
    ConflictError,
    NotFound,
    ValidationError,
)
from models.response import Response, single_response_key
from models.survey import Question, QuestionType, Survey, SurveyStatus
from repositories.question_repository import QuestionRepository
from repositories.response_repository import ResponseRepository
from repositories.survey_repository import SurveyRepository
from repositories.user_repository import UserRepository
from services.survey_lifecycle import can_accept_responses

logger = structlog.get_logger(__name__)

SCALE_MIN = 1
SCALE_MAX = 5

YES_NO_ANSWERS = frozenset({"yes", "no", "y", "n", "true", "false"})

LIKERT_LABELS = frozenset(
    {
        "strongly disagree",
        "disagree",
        "neutral",
        "neither agree nor disagree",
        "agree",
        "strongly agree",
    }
)


def _is_scale_value(text: str) -> bool:
    try:
        value = int(text)
    except ValueError:
        return False
    return SCALE_MIN <= value <= SCALE_MAX


def validate_answer(question_type: QuestionType, text: str) -> None:
    """
    Check that an answer fits the question type.

    RATING takes an integer from 1 to 5, LIKERT_SCALE takes the same
    integers or one of the agreement labels, YES_NO takes yes/no style
    answers. TEXT and MULTIPLE_CHOICE accept any non-empty text.
    """
    if question_type == QuestionType.RATING:
        if not _is_scale_value(text):
            raise ValidationError(f"Rating must be a whole number from {SCALE_MIN} to {SCALE_MAX}")
    elif question_type == QuestionType.LIKERT_SCALE:
        if not (_is_scale_value(text) or text.lower() in LIKERT_LABELS):
            raise ValidationError(
                f"Likert answer must be {SCALE_MIN}-{SCALE_MAX} or an agreement label"
            )
    elif question_type == QuestionType.YES_NO:
        if text.lower() not in YES_NO_ANSWERS:
            raise ValidationError("Answer must be yes or no")


class ResponseService:
    """Submission guard plus the read/delete operations around responses."""

    def __init__(
        self,
        db: AsyncSession,
        clock: Clock = utc_now,
        max_length: Optional[int] = None,
    ):
        self.db = db
        self.clock = clock
        self.max_length = max_length or settings.RESPONSE_MAX_LENGTH
        self.questions = QuestionRepository(db)
        self.surveys = SurveyRepository(db)
        self.responses = ResponseRepository(db)
        self.users = UserRepository(db)

    async def _get_question_and_survey(self, question_id: str) -> tuple[Question, Survey]:
        question = await self.questions.get_by_id(question_id)
        if question is None:
            raise NotFound.for_entity("Question", question_id)
        survey = await self.surveys.get_by_id(question.survey_id)
        if survey is None:
            raise NotFound.for_entity("Survey", question.survey_id)
        return question, survey

    def _clean_text(self, text: Optional[str], question_type: QuestionType) -> str:
        cleaned = (text or "").strip()
        if not cleaned:
            raise ValidationError("Response text is required")
        if len(cleaned) > self.max_length:
            raise ValidationError(f"Response text must be at most {self.max_length} characters")
        validate_answer(question_type, cleaned)
        return cleaned

    async def submit(
        self,
        question_id: str,
        user_id: Optional[str],
        text: Optional[str],
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Response:
        """
        Submit a response to a question.

        Returns:
            The persisted response.

        Raises:
            NotFound, BusinessRuleViolation, AuthenticationRequired,
            ValidationError, ConflictError (see module docstring).
        """
        question, survey = await self._get_question_and_survey(question_id)

        now = self.clock()
        if not can_accept_responses(survey, now):
            raise BusinessRuleViolation("survey not accepting responses", error_code="SURVEY_NOT_OPEN")

        if not user_id:
            raise AuthenticationRequired("Authentication is required to submit a response")
        user = await self.users.get_by_id(user_id)
        if user is None or not user.is_active:
            raise AuthenticationRequired("Authentication is required to submit a response")

        dedupe_key: Optional[str] = None
        if not survey.allow_multiple_responses:
            if await self.responses.exists_for_user(question_id, user_id):
                raise BusinessRuleViolation("duplicate response", error_code="DUPLICATE_RESPONSE")
            dedupe_key = single_response_key(question_id, user_id)

        cleaned = self._clean_text(text, QuestionType(question.question_type))

        if question.max_responses is not None:
            if await self.responses.count_by_question(question_id) >= question.max_responses:
                raise BusinessRuleViolation(
                    "question has reached its maximum number of responses",
                    error_code="MAX_RESPONSES_REACHED",
                )

        try:
            response = await self.responses.create(
                question_id=question_id,
                user_id=user_id,
                text=cleaned,
                created_at=now,
                single_response_key=dedupe_key,
                ip_address=ip_address,
                user_agent=user_agent,
            )
            await self.db.commit()
        except IntegrityError as exc:
            await self.db.rollback()
            logger.warning(
                "response_conflict",
                question_id=question_id,
                user_id=user_id,
                error=str(exc.orig),
            )
            raise ConflictError("duplicate response") from exc

        logger.info(
            "response_submitted",
            response_id=response.id,
            question_id=question_id,
            survey_id=survey.id,
            user_id=user_id,
        )
        return response

    async def list_responses(self, question_id: str) -> list[Response]:
        """All responses to a question, oldest first."""
        if await self.questions.get_by_id(question_id) is None:
            raise NotFound.for_entity("Question", question_id)
        return await self.responses.list_by_question(question_id)

    async def list_survey_responses(self, survey_id: str) -> list[Response]:
        """Every response of a survey, grouped by question order."""
        if await self.surveys.get_by_id(survey_id) is None:
            raise NotFound.for_entity("Survey", survey_id)
        return await self.responses.list_by_survey(survey_id)

    async def list_user_responses(self, user_id: str) -> list[Response]:
        """Everything a user has answered, newest first."""
        return await self.responses.list_by_user(user_id)

    async def delete_response(self, response_id: str) -> None:
        """Admin removal of a response and its upvotes; refused while the survey is ACTIVE."""
        found = await self.responses.get_with_survey(response_id)
        if found is None:
            raise NotFound.for_entity("Response", response_id)
        _, survey = found
        if survey.status == SurveyStatus.ACTIVE.value:
            raise BusinessRuleViolation(
                "Cannot delete responses of an active survey",
                error_code="SURVEY_ACTIVE",
            )

        await self.responses.delete_response(response_id)
        await self.db.commit()
        logger.info("response_deleted", response_id=response_id, survey_id=survey.id)
