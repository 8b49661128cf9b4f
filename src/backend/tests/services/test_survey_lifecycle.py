"""
Tests for the survey lifecycle manager.
"""

from datetime import datetime, timedelta, timezone

import pytest

from core.exceptions import BusinessRuleViolation, NotFound, ValidationError
from models.survey import Survey, SurveyStatus
from schemas.survey import SurveyCreate, SurveyUpdate
from services.survey_lifecycle import SurveyLifecycleManager, can_accept_responses

NOW = datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.mark.unit
class TestCanAcceptResponses:
    """The open-for-responses predicate is evaluated from status and window only."""

    def test_active_without_window_is_open(self) -> None:
        survey = Survey(status=SurveyStatus.ACTIVE.value)
        assert can_accept_responses(survey, NOW) is True

    @pytest.mark.parametrize("status", [SurveyStatus.DRAFT, SurveyStatus.SCHEDULED, SurveyStatus.CLOSED])
    def test_non_active_is_closed(self, status: SurveyStatus) -> None:
        survey = Survey(status=status.value)
        assert can_accept_responses(survey, NOW) is False

    def test_before_start_is_closed(self) -> None:
        survey = Survey(status=SurveyStatus.ACTIVE.value, start_date=NOW + timedelta(minutes=1))
        assert can_accept_responses(survey, NOW) is False

    def test_after_end_is_closed_even_if_status_is_active(self) -> None:
        survey = Survey(status=SurveyStatus.ACTIVE.value, end_date=NOW - timedelta(seconds=1))
        assert can_accept_responses(survey, NOW) is False

    def test_window_bounds_are_inclusive(self) -> None:
        survey = Survey(status=SurveyStatus.ACTIVE.value, start_date=NOW, end_date=NOW)
        assert can_accept_responses(survey, NOW) is True

    def test_naive_dates_are_treated_as_utc(self) -> None:
        survey = Survey(status=SurveyStatus.ACTIVE.value, end_date=datetime(2030, 1, 1, 13, 0))
        assert can_accept_responses(survey, NOW) is True


class TestSurveyCrud:
    async def test_new_survey_starts_in_draft(self, db, clock) -> None:
        survey = await SurveyLifecycleManager(db, clock=clock).create_survey(SurveyCreate(title="Onboarding"))

        assert survey.status == SurveyStatus.DRAFT.value
        assert survey.questions == []
        assert survey.created_at.tzinfo is not None

    async def test_create_rejects_end_before_start(self, db, clock) -> None:
        manager = SurveyLifecycleManager(db, clock=clock)
        with pytest.raises(ValidationError):
            await manager.create_survey(
                SurveyCreate(title="Backwards", start_date=NOW, end_date=NOW - timedelta(days=1))
            )

    async def test_get_unknown_survey_raises_not_found(self, db, clock) -> None:
        with pytest.raises(NotFound):
            await SurveyLifecycleManager(db, clock=clock).get_survey("missing")

    async def test_update_draft(self, db, clock, make_survey) -> None:
        survey, _ = await make_survey(publish=False)
        updated = await SurveyLifecycleManager(db, clock=clock).update_survey(
            survey.id, SurveyUpdate(title="Renamed survey", description="new")
        )

        assert updated.title == "Renamed survey"
        assert updated.description == "new"
        assert updated.updated_at > updated.created_at

    async def test_update_active_survey_is_refused(self, db, clock, make_survey) -> None:
        survey, _ = await make_survey()

        with pytest.raises(BusinessRuleViolation) as exc_info:
            await SurveyLifecycleManager(db, clock=clock).update_survey(survey.id, SurveyUpdate(title="Too late"))
        assert exc_info.value.error_code == "SURVEY_NOT_EDITABLE"

    async def test_update_closed_survey_is_refused(self, db, clock, make_survey) -> None:
        survey, _ = await make_survey()
        manager = SurveyLifecycleManager(db, clock=clock)
        await manager.close(survey.id)

        with pytest.raises(BusinessRuleViolation):
            await manager.update_survey(survey.id, SurveyUpdate(description="edit"))

    async def test_delete_active_survey_is_refused(self, db, clock, make_survey) -> None:
        survey, _ = await make_survey()

        with pytest.raises(BusinessRuleViolation) as exc_info:
            await SurveyLifecycleManager(db, clock=clock).delete_survey(survey.id)
        assert exc_info.value.error_code == "SURVEY_ACTIVE"

    async def test_delete_closed_survey_removes_everything(self, db, clock, make_survey, make_user) -> None:
        from services.response_service import ResponseService
        from services.upvote_ledger import UpvoteLedger

        author = await make_user("author")
        survey, questions = await make_survey()
        response = await ResponseService(db, clock=clock).submit(questions[0].id, author.id, "hello")
        await UpvoteLedger(db, clock=clock).upvote(response.id, author.id)

        manager = SurveyLifecycleManager(db, clock=clock)
        await manager.close(survey.id)
        await manager.delete_survey(survey.id)

        with pytest.raises(NotFound):
            await manager.get_survey(survey.id)
        assert await ResponseService(db).responses.get_by_id(response.id) is None

    async def test_list_surveys_filters_by_status_and_title(self, db, clock, make_survey) -> None:
        await make_survey(title="Alpha draft", publish=False)
        await make_survey(title="Beta live")
        manager = SurveyLifecycleManager(db, clock=clock)

        active, total = await manager.list_surveys(status=SurveyStatus.ACTIVE)
        assert total == 1
        assert active[0].title == "Beta live"

        by_title, total = await manager.list_surveys(title="alpha")
        assert total == 1
        assert by_title[0].title == "Alpha draft"


class TestTransitions:
    async def test_publish_requires_a_question(self, db, clock) -> None:
        manager = SurveyLifecycleManager(db, clock=clock)
        survey = await manager.create_survey(SurveyCreate(title="Empty survey"))

        with pytest.raises(BusinessRuleViolation) as exc_info:
            await manager.publish(survey.id)
        assert exc_info.value.error_code == "SURVEY_HAS_NO_QUESTIONS"
        assert (await manager.get_survey(survey.id)).status == SurveyStatus.DRAFT.value

    async def test_publish_makes_survey_open(self, db, clock, make_survey) -> None:
        survey, _ = await make_survey()
        manager = SurveyLifecycleManager(db, clock=clock)

        assert survey.status == SurveyStatus.ACTIVE.value
        assert manager.is_open(survey)
        assert [s.id for s in await manager.list_open_surveys()] == [survey.id]

    async def test_schedule_then_reschedule(self, db, clock, make_survey) -> None:
        survey, _ = await make_survey(publish=False)
        manager = SurveyLifecycleManager(db, clock=clock)

        first = clock.now + timedelta(days=1)
        scheduled = await manager.schedule(survey.id, first)
        assert scheduled.status == SurveyStatus.SCHEDULED.value
        assert scheduled.start_date == first

        later = clock.now + timedelta(days=2)
        rescheduled = await manager.schedule(survey.id, later)
        assert rescheduled.start_date == later
        assert not manager.is_open(rescheduled)

    async def test_schedule_rejects_start_after_end(self, db, clock, make_survey) -> None:
        survey, _ = await make_survey(publish=False, end_date=NOW + timedelta(hours=1))

        with pytest.raises(ValidationError):
            await SurveyLifecycleManager(db, clock=clock).schedule(survey.id, NOW + timedelta(days=1))

    async def test_publish_scheduled_survey_before_its_start(self, db, clock, make_survey) -> None:
        survey, _ = await make_survey(publish=False)
        manager = SurveyLifecycleManager(db, clock=clock)
        await manager.schedule(survey.id, clock.now + timedelta(days=1))

        published = await manager.publish(survey.id)

        assert published.status == SurveyStatus.ACTIVE.value
        # Start date still lies ahead, so the window keeps it closed for now
        assert not manager.is_open(published)

    async def test_publish_scheduled_survey_without_questions(self, db, clock) -> None:
        manager = SurveyLifecycleManager(db, clock=clock)
        survey = await manager.create_survey(SurveyCreate(title="Empty survey"))
        await manager.schedule(survey.id, clock.now + timedelta(days=1))

        with pytest.raises(BusinessRuleViolation) as exc_info:
            await manager.publish(survey.id)
        assert exc_info.value.error_code == "SURVEY_HAS_NO_QUESTIONS"
        assert (await manager.get_survey(survey.id)).status == SurveyStatus.SCHEDULED.value

    async def test_scheduling_needs_a_start_date(self, db, clock, make_survey) -> None:
        survey, _ = await make_survey(publish=False)
        manager = SurveyLifecycleManager(db, clock=clock)

        with pytest.raises(BusinessRuleViolation):
            await manager.transition(await manager.get_survey(survey.id), SurveyStatus.SCHEDULED)
        assert (await manager.get_survey(survey.id)).status == SurveyStatus.DRAFT.value

    async def test_active_cannot_go_back_to_scheduled(self, db, clock, make_survey) -> None:
        survey, _ = await make_survey()

        with pytest.raises(BusinessRuleViolation) as exc_info:
            await SurveyLifecycleManager(db, clock=clock).schedule(survey.id, clock.now + timedelta(days=1))
        assert exc_info.value.error_code == "INVALID_TRANSITION"

    async def test_closed_cannot_be_reopened(self, db, clock, make_survey) -> None:
        survey, _ = await make_survey()
        manager = SurveyLifecycleManager(db, clock=clock)
        await manager.close(survey.id)

        with pytest.raises(BusinessRuleViolation):
            await manager.publish(survey.id)

    @pytest.mark.parametrize("publish", [False, True])
    async def test_close_is_always_allowed(self, db, clock, make_survey, publish: bool) -> None:
        survey, _ = await make_survey(publish=publish)
        manager = SurveyLifecycleManager(db, clock=clock)

        closed = await manager.close(survey.id)
        assert closed.status == SurveyStatus.CLOSED.value
        # Closing again is a harmless no-op
        assert (await manager.close(survey.id)).status == SurveyStatus.CLOSED.value


class TestHousekeeping:
    async def test_due_scheduled_survey_is_activated(self, db, clock, make_survey) -> None:
        survey, _ = await make_survey(publish=False)
        manager = SurveyLifecycleManager(db, clock=clock)
        await manager.schedule(survey.id, clock.now + timedelta(hours=1))

        assert await manager.run_lifecycle_cycle() == {"closed_count": 0, "activated_count": 0}

        clock.advance(hours=2)
        assert await manager.run_lifecycle_cycle() == {"closed_count": 0, "activated_count": 1}
        assert (await manager.get_survey(survey.id)).status == SurveyStatus.ACTIVE.value

    async def test_expired_active_survey_is_closed(self, db, clock, make_survey) -> None:
        survey, _ = await make_survey(end_date=clock.now + timedelta(hours=1))
        manager = SurveyLifecycleManager(db, clock=clock)

        clock.advance(hours=2)
        # Already closed to input before the job runs
        assert not manager.is_open(await manager.get_survey(survey.id))

        result = await manager.run_lifecycle_cycle()
        assert result["closed_count"] == 1
        assert (await manager.get_survey(survey.id)).status == SurveyStatus.CLOSED.value

    async def test_due_survey_without_questions_stays_scheduled(self, db, clock) -> None:
        manager = SurveyLifecycleManager(db, clock=clock)
        survey = await manager.create_survey(SurveyCreate(title="Empty survey"))
        await manager.schedule(survey.id, clock.now + timedelta(hours=1))

        clock.advance(hours=2)

        assert await manager.activate_due_surveys() == 0
        assert (await manager.get_survey(survey.id)).status == SurveyStatus.SCHEDULED.value
