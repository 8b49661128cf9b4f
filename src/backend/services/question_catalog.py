"""
Question Catalog

Keeps each survey's questions in a dense, zero-based order. Adding appends
at position ``len(questions)``; removing re-densifies the rest. The
catalog is frozen once the survey goes live.

Answer payloads are not validated here: their shape depends on the
question type at submission time, which is the submission guard's concern.
"""

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.clock import Clock, utc_now
from core.exceptions import BusinessRuleViolation, ConflictError, NotFound, ValidationError
from models.survey import Question, QuestionType, Survey, SurveyStatus
from repositories.question_repository import QuestionRepository
from repositories.survey_repository import SurveyRepository
from schemas.survey import QuestionCreate, QuestionUpdate
from services.survey_lifecycle import ensure_structure_editable

logger = structlog.get_logger(__name__)


class QuestionCatalog:
    """Ordered question list per survey."""

    def __init__(self, db: AsyncSession, clock: Clock = utc_now):
        self.db = db
        self.clock = clock
        self.surveys = SurveyRepository(db)
        self.questions = QuestionRepository(db)

    async def _get_survey(self, survey_id: str) -> Survey:
        survey = await self.surveys.get_by_id(survey_id, for_update=True)
        if survey is None:
            raise NotFound.for_entity("Survey", survey_id)
        return survey

    async def list_questions(self, survey_id: str) -> list[Question]:
        """Questions of a survey in display order."""
        if await self.surveys.get_by_id(survey_id) is None:
            raise NotFound.for_entity("Survey", survey_id)
        return await self.questions.list_for_survey(survey_id)

    async def get_question(self, question_id: str) -> Question:
        question = await self.questions.get_by_id(question_id)
        if question is None:
            raise NotFound.for_entity("Question", question_id)
        return question

    async def add_question(self, survey_id: str, data: QuestionCreate) -> Question:
        """
        Append a question to the survey.

        Raises:
            NotFound: unknown survey.
            BusinessRuleViolation: survey is ACTIVE or CLOSED.
            ConflictError: another question took the same position concurrently.
        """
        survey = await self._get_survey(survey_id)
        ensure_structure_editable(survey, "add question")

        now = self.clock()
        position = await self.surveys.count_questions(survey_id)
        try:
            question = await self.questions.create(
                survey_id=survey_id,
                text=data.text.strip(),
                question_type=QuestionType(data.question_type),
                order_index=position,
                is_required=data.is_required,
                max_responses=data.max_responses,
                allow_multiple_answers=data.allow_multiple_answers,
                created_at=now,
            )
            survey.updated_at = now
            await self.db.commit()
        except IntegrityError as exc:
            await self.db.rollback()
            logger.warning("question_order_conflict", survey_id=survey_id, order_index=position)
            raise ConflictError("Survey questions were modified concurrently, please retry") from exc

        logger.info(
            "question_added",
            survey_id=survey_id,
            question_id=question.id,
            order_index=position,
            question_type=question.question_type,
        )
        return question

    async def update_question(self, survey_id: str, question_id: str, data: QuestionUpdate) -> Question:
        """
        Edit a question of a survey that has not gone live.

        Changing the type is allowed here; later submissions are checked
        against the new type.

        Raises:
            NotFound: unknown survey, or the question is not in that survey.
            BusinessRuleViolation: survey is ACTIVE or CLOSED.
        """
        survey = await self._get_survey(survey_id)
        ensure_structure_editable(survey, "update question")

        question = await self.questions.get_by_id(question_id)
        if question is None or question.survey_id != survey_id:
            raise NotFound(f"Question {question_id} not found in survey {survey_id}")

        fields = data.model_dump(exclude_unset=True)
        if fields.get("text") is not None:
            question.text = fields["text"].strip()
        if fields.get("question_type") is not None:
            question.question_type = QuestionType(fields["question_type"]).value
        if fields.get("is_required") is not None:
            question.is_required = fields["is_required"]
        if "max_responses" in fields:
            question.max_responses = fields["max_responses"]
        if fields.get("allow_multiple_answers") is not None:
            question.allow_multiple_answers = fields["allow_multiple_answers"]

        now = self.clock()
        question.updated_at = now
        survey.updated_at = now
        await self.db.commit()

        logger.info("question_updated", survey_id=survey_id, question_id=question_id, fields=sorted(fields))
        return question

    async def remove_question(self, survey_id: str, question_id: str) -> list[Question]:
        """
        Remove a question and close the gap it leaves.

        Refused while the survey is ACTIVE. Returns the remaining questions
        in their new order.
        """
        survey = await self._get_survey(survey_id)
        if survey.status == SurveyStatus.ACTIVE.value:
            raise BusinessRuleViolation(
                "Cannot remove question: survey is ACTIVE",
                error_code="SURVEY_NOT_EDITABLE",
            )

        ordered = await self.questions.list_for_survey(survey_id)
        target = next((q for q in ordered if q.id == question_id), None)
        if target is None:
            raise NotFound(f"Question {question_id} not found in survey {survey_id}")

        now = self.clock()
        remaining = [q for q in ordered if q.id != question_id]
        try:
            await self.questions.delete_question(target)
            await self.questions.renumber(remaining, now)
            survey.updated_at = now
            await self.db.commit()
        except IntegrityError as exc:
            await self.db.rollback()
            logger.warning("question_order_conflict", survey_id=survey_id, removed_question_id=question_id)
            raise ConflictError("Survey questions were modified concurrently, please retry") from exc

        logger.info("question_removed", survey_id=survey_id, question_id=question_id, remaining=len(remaining))
        return remaining

    async def reorder(self, survey_id: str, question_ids: list[str]) -> list[Question]:
        """
        Put the survey's questions in the given order.

        ``question_ids`` must list every question of the survey exactly once.
        """
        survey = await self._get_survey(survey_id)
        ensure_structure_editable(survey, "reorder questions")

        ordered = await self.questions.list_for_survey(survey_id)
        by_id = {q.id: q for q in ordered}
        if len(question_ids) != len(set(question_ids)) or set(question_ids) != set(by_id):
            raise ValidationError("question_ids must list every question of the survey exactly once")

        now = self.clock()
        new_order = [by_id[qid] for qid in question_ids]
        try:
            await self.questions.renumber(new_order, now)
            survey.updated_at = now
            await self.db.commit()
        except IntegrityError as exc:
            await self.db.rollback()
            logger.warning("question_order_conflict", survey_id=survey_id)
            raise ConflictError("Survey questions were modified concurrently, please retry") from exc

        logger.info("questions_reordered", survey_id=survey_id, count=len(new_order))
        return new_order
