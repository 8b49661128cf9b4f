"""
Admin endpoints.

Survey authoring and lifecycle control, question management, statistics,
moderation and user management. Every route requires the ADMIN role.
"""

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Query, status

from api.deps import AdminUser, DbSession, RequestClock, get_current_admin_user
from models.survey import SurveyStatus
from schemas.converters import (
    status_counts_to_schema,
    survey_to_detail_schema,
    survey_to_schema,
    total_pages,
    user_model_to_response,
)
from schemas.response import QuestionStatistics, Response
from schemas.survey import (
    Question,
    QuestionCreate,
    QuestionUpdate,
    ReorderQuestions,
    ScheduleSurvey,
    SurveyCreate,
    SurveyDetail,
    SurveyListResponse,
    SurveyStatistics,
    SurveyStatusCounts,
    SurveyUpdate,
)
from schemas.user import AdminUserCreate, UserActiveUpdate, UserResponse, UserRoleUpdate
from services.identity_service import IdentityService
from services.question_catalog import QuestionCatalog
from services.ranking_engine import RankingEngine
from services.response_service import ResponseService
from services.survey_lifecycle import SurveyLifecycleManager

logger = structlog.get_logger(__name__)

router = APIRouter(dependencies=[Depends(get_current_admin_user)])


# ============================================================================
# Surveys
# ============================================================================


@router.get("/surveys", response_model=SurveyListResponse)
async def list_surveys(
    db: DbSession,
    clock: RequestClock,
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    status_filter: Optional[SurveyStatus] = Query(None, alias="status"),
    title: Optional[str] = Query(None, max_length=200),
) -> SurveyListResponse:
    """Paginated survey listing, optionally filtered by status and title."""
    surveys, total = await SurveyLifecycleManager(db, clock=clock).list_surveys(
        page=page,
        per_page=per_page,
        status=status_filter,
        title=title,
    )
    now = clock()
    return SurveyListResponse(
        surveys=[survey_to_schema(s, now) for s in surveys],
        total=total,
        page=page,
        per_page=per_page,
        total_pages=total_pages(total, per_page),
    )


@router.post("/surveys", response_model=SurveyDetail, status_code=status.HTTP_201_CREATED)
async def create_survey(
    data: SurveyCreate,
    admin: AdminUser,
    db: DbSession,
    clock: RequestClock,
) -> SurveyDetail:
    survey = await SurveyLifecycleManager(db, clock=clock).create_survey(data, creator_id=admin.id)
    return survey_to_detail_schema(survey, clock())


@router.patch("/surveys/{survey_id}", response_model=SurveyDetail)
async def update_survey(
    survey_id: str,
    data: SurveyUpdate,
    db: DbSession,
    clock: RequestClock,
) -> SurveyDetail:
    survey = await SurveyLifecycleManager(db, clock=clock).update_survey(survey_id, data)
    return survey_to_detail_schema(survey, clock())


@router.delete("/surveys/{survey_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_survey(survey_id: str, admin: AdminUser, db: DbSession, clock: RequestClock) -> None:
    """Delete a survey with its questions, responses and upvotes."""
    await SurveyLifecycleManager(db, clock=clock).delete_survey(survey_id)
    logger.info("admin_survey_deleted", survey_id=survey_id, admin_id=admin.id)


@router.post("/surveys/{survey_id}/publish", response_model=SurveyDetail)
async def publish_survey(survey_id: str, db: DbSession, clock: RequestClock) -> SurveyDetail:
    survey = await SurveyLifecycleManager(db, clock=clock).publish(survey_id)
    return survey_to_detail_schema(survey, clock())


@router.post("/surveys/{survey_id}/schedule", response_model=SurveyDetail)
async def schedule_survey(
    survey_id: str,
    data: ScheduleSurvey,
    db: DbSession,
    clock: RequestClock,
) -> SurveyDetail:
    survey = await SurveyLifecycleManager(db, clock=clock).schedule(survey_id, data.start_date)
    return survey_to_detail_schema(survey, clock())


@router.post("/surveys/{survey_id}/close", response_model=SurveyDetail)
async def close_survey(survey_id: str, db: DbSession, clock: RequestClock) -> SurveyDetail:
    survey = await SurveyLifecycleManager(db, clock=clock).close(survey_id)
    return survey_to_detail_schema(survey, clock())


@router.post("/lifecycle/run")
async def run_lifecycle(db: DbSession, clock: RequestClock) -> dict[str, int]:
    """Run the activation/expiry housekeeping now instead of waiting for the scheduler."""
    return await SurveyLifecycleManager(db, clock=clock).run_lifecycle_cycle()


# ============================================================================
# Questions
# ============================================================================


@router.post(
    "/surveys/{survey_id}/questions",
    response_model=Question,
    status_code=status.HTTP_201_CREATED,
)
async def add_question(
    survey_id: str,
    data: QuestionCreate,
    db: DbSession,
    clock: RequestClock,
) -> Question:
    question = await QuestionCatalog(db, clock=clock).add_question(survey_id, data)
    return Question.model_validate(question)


@router.delete("/surveys/{survey_id}/questions/{question_id}", response_model=list[Question])
async def remove_question(
    survey_id: str,
    question_id: str,
    db: DbSession,
    clock: RequestClock,
) -> list[Question]:
    """Remove a question; the remaining ones are renumbered without gaps."""
    remaining = await QuestionCatalog(db, clock=clock).remove_question(survey_id, question_id)
    return [Question.model_validate(q) for q in remaining]


@router.put("/surveys/{survey_id}/questions/order", response_model=list[Question])
async def reorder_questions(
    survey_id: str,
    data: ReorderQuestions,
    db: DbSession,
    clock: RequestClock,
) -> list[Question]:
    ordered = await QuestionCatalog(db, clock=clock).reorder(survey_id, data.question_ids)
    return [Question.model_validate(q) for q in ordered]


# Declared after the reorder route so "order" is not taken for a question id
@router.put("/surveys/{survey_id}/questions/{question_id}", response_model=Question)
async def update_question(
    survey_id: str,
    question_id: str,
    data: QuestionUpdate,
    db: DbSession,
    clock: RequestClock,
) -> Question:
    """Edit a question while its survey is still DRAFT or SCHEDULED."""
    question = await QuestionCatalog(db, clock=clock).update_question(survey_id, question_id, data)
    return Question.model_validate(question)


# ============================================================================
# Statistics
# ============================================================================


@router.get("/surveys/{survey_id}/statistics", response_model=SurveyStatistics)
async def survey_statistics(survey_id: str, db: DbSession) -> SurveyStatistics:
    stats = await RankingEngine(db).survey_statistics(survey_id)
    return SurveyStatistics(
        survey_id=stats.survey_id,
        question_count=stats.question_count,
        total_responses=stats.total_responses,
        total_upvotes=stats.total_upvotes,
    )


@router.get("/questions/{question_id}/statistics", response_model=QuestionStatistics)
async def question_statistics(question_id: str, db: DbSession) -> QuestionStatistics:
    stats = await RankingEngine(db).question_statistics(question_id)
    return QuestionStatistics(
        question_id=stats.question_id,
        total_responses=stats.total_responses,
        total_upvotes=stats.total_upvotes,
        top_response_id=stats.top_response_id,
    )


@router.get("/statistics/status-counts", response_model=SurveyStatusCounts)
async def status_counts(db: DbSession) -> SurveyStatusCounts:
    return status_counts_to_schema(await RankingEngine(db).status_counts())


# ============================================================================
# Moderation and users
# ============================================================================


@router.get("/surveys/{survey_id}/responses", response_model=list[Response])
async def list_survey_responses(survey_id: str, db: DbSession) -> list[Response]:
    responses = await ResponseService(db).list_survey_responses(survey_id)
    return [Response.model_validate(r) for r in responses]


@router.delete("/responses/{response_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_response(response_id: str, admin: AdminUser, db: DbSession) -> None:
    await ResponseService(db).delete_response(response_id)
    logger.info("admin_response_deleted", response_id=response_id, admin_id=admin.id)


@router.get("/users", response_model=list[UserResponse])
async def list_users(
    db: DbSession,
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
) -> list[UserResponse]:
    users, _ = await IdentityService(db).list_users(page=page, per_page=per_page)
    return [user_model_to_response(u) for u in users]


@router.patch("/users/{user_id}/active", response_model=UserResponse)
async def set_user_active(
    user_id: str,
    data: UserActiveUpdate,
    admin: AdminUser,
    db: DbSession,
) -> UserResponse:
    user = await IdentityService(db).set_active(user_id, data.is_active)
    logger.info("admin_user_active_changed", user_id=user_id, is_active=data.is_active, admin_id=admin.id)
    return user_model_to_response(user)


@router.post("/users", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    data: AdminUserCreate,
    admin: AdminUser,
    db: DbSession,
    clock: RequestClock,
) -> UserResponse:
    user = await IdentityService(db, clock=clock).register(
        data.username,
        data.password,
        email=data.email,
        role=data.role,
    )
    logger.info("admin_user_created", user_id=user.id, role=user.role, admin_id=admin.id)
    return user_model_to_response(user)


@router.get("/users/{user_id}", response_model=UserResponse)
async def get_user(user_id: str, db: DbSession) -> UserResponse:
    return user_model_to_response(await IdentityService(db).get_user(user_id))


@router.patch("/users/{user_id}/role", response_model=UserResponse)
async def change_user_role(
    user_id: str,
    data: UserRoleUpdate,
    admin: AdminUser,
    db: DbSession,
) -> UserResponse:
    user = await IdentityService(db).change_role(user_id, data.role)
    logger.info("admin_user_role_changed", user_id=user_id, role=user.role, admin_id=admin.id)
    return user_model_to_response(user)
