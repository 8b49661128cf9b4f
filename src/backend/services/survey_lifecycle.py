"""
Survey Lifecycle Manager

Owns survey status transitions and the "open for responses" predicate.

Lifecycle graph:
    DRAFT -> SCHEDULED   (needs a start date)
    DRAFT -> ACTIVE      (needs at least one question)
    SCHEDULED -> SCHEDULED (reschedule)
    SCHEDULED -> ACTIVE  (needs at least one question)
    any -> CLOSED        (administrative override)

Structural edits (title, description, dates, questions) are refused once a
survey is ACTIVE, and CLOSED surveys are frozen except for deletion.
Deletion itself is refused while ACTIVE.
"""

from datetime import datetime
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from core.clock import Clock, ensure_utc, utc_now
from core.exceptions import BusinessRuleViolation, NotFound, ValidationError
from models.survey import Survey, SurveyStatus
from repositories.survey_repository import SurveyRepository
from schemas.survey import SurveyCreate, SurveyUpdate

logger = structlog.get_logger(__name__)

ALLOWED_TRANSITIONS: dict[SurveyStatus, frozenset[SurveyStatus]] = {
    SurveyStatus.DRAFT: frozenset({SurveyStatus.SCHEDULED, SurveyStatus.ACTIVE, SurveyStatus.CLOSED}),
    SurveyStatus.SCHEDULED: frozenset({SurveyStatus.SCHEDULED, SurveyStatus.ACTIVE, SurveyStatus.CLOSED}),
    SurveyStatus.ACTIVE: frozenset({SurveyStatus.CLOSED}),
    SurveyStatus.CLOSED: frozenset({SurveyStatus.CLOSED}),
}

# Statuses in which title, description, dates and questions can no longer change
FROZEN_STATUSES = frozenset({SurveyStatus.ACTIVE, SurveyStatus.CLOSED})


def can_accept_responses(survey: Survey, now: datetime) -> bool:
    """
    Whether the survey is open for responses at ``now``.

    Status alone is not enough: an ACTIVE survey is closed to input outside
    its start/end window even if nobody moved its status.
    """
    if survey.status != SurveyStatus.ACTIVE.value:
        return False
    now = ensure_utc(now)
    start_date = ensure_utc(survey.start_date)
    end_date = ensure_utc(survey.end_date)
    if start_date is not None and now < start_date:
        return False
    if end_date is not None and now > end_date:
        return False
    return True


def ensure_structure_editable(survey: Survey, action: str) -> None:
    """Refuse structural changes to live or closed surveys."""
    if SurveyStatus(survey.status) in FROZEN_STATUSES:
        raise BusinessRuleViolation(
            f"Cannot {action}: survey is {survey.status}",
            error_code="SURVEY_NOT_EDITABLE",
        )


def _validate_window(start_date: Optional[datetime], end_date: Optional[datetime]) -> None:
    if start_date is not None and end_date is not None and ensure_utc(end_date) < ensure_utc(start_date):
        raise ValidationError("end_date must not be earlier than start_date")


class SurveyLifecycleManager:
    """
    Survey CRUD and status transitions.

    Every mutating method runs its checks and its write in the session's
    current transaction and commits at the end; on failure nothing is
    written.
    """

    def __init__(self, db: AsyncSession, clock: Clock = utc_now):
        self.db = db
        self.clock = clock
        self.surveys = SurveyRepository(db)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_survey(self, survey_id: str, with_questions: bool = True) -> Survey:
        """Get a survey or raise NotFound."""
        survey = await self.surveys.get_by_id(survey_id, with_questions=with_questions)
        if survey is None:
            raise NotFound.for_entity("Survey", survey_id)
        return survey

    async def list_open_surveys(self, now: Optional[datetime] = None) -> list[Survey]:
        """Surveys accepting responses at ``now`` (defaults to the clock)."""
        return await self.surveys.list_open(ensure_utc(now) if now else self.clock())

    async def list_surveys(
        self,
        page: int = 1,
        per_page: int = 20,
        status: Optional[SurveyStatus] = None,
        title: Optional[str] = None,
    ) -> tuple[list[Survey], int]:
        """Admin listing with optional status and title filters."""
        return await self.surveys.list_surveys(
            page=page,
            per_page=per_page,
            status_filter=status.value if status else None,
            search_query=title,
        )

    can_accept_responses = staticmethod(can_accept_responses)

    def is_open(self, survey: Survey, now: Optional[datetime] = None) -> bool:
        return can_accept_responses(survey, now or self.clock())

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    async def create_survey(self, data: SurveyCreate, creator_id: Optional[str] = None) -> Survey:
        """Create a survey in DRAFT status."""
        _validate_window(data.start_date, data.end_date)
        now = self.clock()

        survey = await self.surveys.create(
            title=data.title.strip(),
            description=data.description,
            start_date=ensure_utc(data.start_date),
            end_date=ensure_utc(data.end_date),
            allow_multiple_responses=data.allow_multiple_responses,
            created_by_id=creator_id,
            created_at=now,
        )
        await self.db.commit()

        logger.info("survey_created", survey_id=survey.id, creator_id=creator_id)
        return await self.get_survey(survey.id)

    async def update_survey(self, survey_id: str, data: SurveyUpdate) -> Survey:
        """Edit title, description, dates or the multiple-response flag of a non-live survey."""
        survey = await self.surveys.get_by_id(survey_id, for_update=True)
        if survey is None:
            raise NotFound.for_entity("Survey", survey_id)
        ensure_structure_editable(survey, "update survey")

        fields = data.model_dump(exclude_unset=True)
        start_date = ensure_utc(fields["start_date"]) if "start_date" in fields else survey.start_date
        end_date = ensure_utc(fields["end_date"]) if "end_date" in fields else survey.end_date
        _validate_window(start_date, end_date)

        if survey.status == SurveyStatus.SCHEDULED.value and start_date is None:
            raise BusinessRuleViolation("A scheduled survey must keep a start date")

        if fields.get("title") is not None:
            survey.title = fields["title"].strip()
        if "description" in fields:
            survey.description = fields["description"]
        if fields.get("allow_multiple_responses") is not None:
            survey.allow_multiple_responses = fields["allow_multiple_responses"]
        survey.start_date = start_date
        survey.end_date = end_date
        survey.updated_at = self.clock()

        await self.db.commit()
        logger.info("survey_updated", survey_id=survey_id, fields=sorted(fields))
        return await self.get_survey(survey_id)

    async def delete_survey(self, survey_id: str) -> None:
        """Delete a survey with everything it owns; refused while ACTIVE."""
        survey = await self.surveys.get_by_id(survey_id, for_update=True)
        if survey is None:
            raise NotFound.for_entity("Survey", survey_id)
        if survey.status == SurveyStatus.ACTIVE.value:
            raise BusinessRuleViolation("Cannot delete an active survey", error_code="SURVEY_ACTIVE")

        await self.surveys.delete_survey(survey_id)
        await self.db.commit()
        # Drop the stale instance so later lookups in this session miss
        self.db.expunge(survey)
        logger.info("survey_deleted", survey_id=survey_id)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def transition(
        self,
        survey: Survey,
        target: SurveyStatus,
        start_date: Optional[datetime] = None,
    ) -> Survey:
        """
        Move ``survey`` to ``target`` if the lifecycle graph allows it.

        Raises:
            BusinessRuleViolation: the edge is not in the graph, or its
                precondition (start date, at least one question) fails.
        """
        current = SurveyStatus(survey.status)
        if target not in ALLOWED_TRANSITIONS[current]:
            raise BusinessRuleViolation(
                f"Invalid status transition {current.value} -> {target.value}",
                error_code="INVALID_TRANSITION",
            )

        if target == SurveyStatus.SCHEDULED:
            effective_start = ensure_utc(start_date) or survey.start_date
            if effective_start is None:
                raise BusinessRuleViolation("Scheduling a survey requires a start date")
            _validate_window(effective_start, survey.end_date)
            survey.start_date = effective_start

        if target == SurveyStatus.ACTIVE:
            question_count = await self.surveys.count_questions(survey.id)
            if question_count == 0:
                raise BusinessRuleViolation(
                    "Cannot publish a survey without questions",
                    error_code="SURVEY_HAS_NO_QUESTIONS",
                )

        survey.status = target.value
        survey.updated_at = self.clock()
        await self.db.commit()

        logger.info(
            "survey_transitioned",
            survey_id=survey.id,
            from_status=current.value,
            to_status=target.value,
        )
        return survey

    async def _load_for_transition(self, survey_id: str) -> Survey:
        survey = await self.surveys.get_by_id(survey_id, for_update=True)
        if survey is None:
            raise NotFound.for_entity("Survey", survey_id)
        return survey

    async def publish(self, survey_id: str) -> Survey:
        """Make a survey ACTIVE."""
        survey = await self._load_for_transition(survey_id)
        await self.transition(survey, SurveyStatus.ACTIVE)
        return await self.get_survey(survey_id)

    async def schedule(self, survey_id: str, start_date: datetime) -> Survey:
        """Make a survey SCHEDULED to start at ``start_date``."""
        survey = await self._load_for_transition(survey_id)
        await self.transition(survey, SurveyStatus.SCHEDULED, start_date=start_date)
        return await self.get_survey(survey_id)

    async def close(self, survey_id: str) -> Survey:
        """Make a survey CLOSED; always allowed."""
        survey = await self._load_for_transition(survey_id)
        await self.transition(survey, SurveyStatus.CLOSED)
        return await self.get_survey(survey_id)

    # ------------------------------------------------------------------
    # Housekeeping (background scheduler)
    # ------------------------------------------------------------------

    async def activate_due_surveys(self) -> int:
        """Activate SCHEDULED surveys whose start date has arrived and that have questions."""
        now = self.clock()
        due = await self.surveys.get_due_for_activation(now)
        count = await self.surveys.bulk_update_status(due, SurveyStatus.SCHEDULED, SurveyStatus.ACTIVE, now)
        await self.db.commit()
        if count:
            logger.info("scheduled_surveys_activated", count=count, survey_ids=due)
        return count

    async def close_expired_surveys(self) -> int:
        """Close ACTIVE surveys whose end date has passed."""
        now = self.clock()
        expired = await self.surveys.get_expired(now)
        count = await self.surveys.bulk_update_status(expired, SurveyStatus.ACTIVE, SurveyStatus.CLOSED, now)
        await self.db.commit()
        if count:
            logger.info("expired_surveys_closed", count=count, survey_ids=expired)
        return count

    async def run_lifecycle_cycle(self) -> dict[str, int]:
        """Close expired surveys, then activate due ones."""
        closed_count = await self.close_expired_surveys()
        activated_count = await self.activate_due_surveys()
        return {"closed_count": closed_count, "activated_count": activated_count}
