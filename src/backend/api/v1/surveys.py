"""
Public survey endpoints.
"""

from fastapi import APIRouter

from api.deps import DbSession, OptionalUser, RequestClock
from core.exceptions import NotFound
from models.survey import SurveyStatus
from schemas.converters import survey_to_detail_schema, survey_to_schema
from schemas.survey import Survey, SurveyDetail
from services.survey_lifecycle import SurveyLifecycleManager

router = APIRouter()


@router.get("/open", response_model=list[Survey])
async def list_open_surveys(db: DbSession, clock: RequestClock) -> list[Survey]:
    """Surveys accepting responses right now."""
    now = clock()
    surveys = await SurveyLifecycleManager(db, clock=clock).list_open_surveys(now)
    return [survey_to_schema(s, now) for s in surveys]


@router.get("/{survey_id}", response_model=SurveyDetail)
async def get_survey(
    survey_id: str,
    db: DbSession,
    clock: RequestClock,
    current_user: OptionalUser,
) -> SurveyDetail:
    """
    A survey with its questions in display order.

    Drafts are only visible to admins.
    """
    survey = await SurveyLifecycleManager(db, clock=clock).get_survey(survey_id)
    is_admin = current_user is not None and current_user.is_admin
    if survey.status == SurveyStatus.DRAFT.value and not is_admin:
        raise NotFound.for_entity("Survey", survey_id)
    return survey_to_detail_schema(survey, clock())
