"""
Response, upvote and ranking endpoints.

All mutations require an authenticated user. Rankings are computed on
every request from the live upvote table.
"""

from typing import Optional

from fastapi import APIRouter, Query, Request, status

from api.deps import CurrentUser, DbSession, OptionalUser, RequestClock, get_client_ip
from core.config import settings
from schemas.converters import top_responses_to_schema
from schemas.response import Response, ResponseCreate, TopResponses, UpvoteResult
from services.ranking_engine import RankingEngine
from services.response_service import ResponseService
from services.upvote_ledger import UpvoteLedger

router = APIRouter()


@router.post(
    "/questions/{question_id}/responses",
    response_model=Response,
    status_code=status.HTTP_201_CREATED,
)
async def submit_response(
    question_id: str,
    payload: ResponseCreate,
    request: Request,
    current_user: CurrentUser,
    db: DbSession,
    clock: RequestClock,
) -> Response:
    """Answer a question of an open survey."""
    response = await ResponseService(db, clock=clock).submit(
        question_id=question_id,
        user_id=current_user.id,
        text=payload.text,
        ip_address=get_client_ip(request),
        user_agent=request.headers.get("User-Agent"),
    )
    return Response.model_validate(response)


@router.get("/questions/{question_id}/responses", response_model=list[Response])
async def list_question_responses(question_id: str, db: DbSession) -> list[Response]:
    """All responses to a question, oldest first."""
    responses = await ResponseService(db).list_responses(question_id)
    return [Response.model_validate(r) for r in responses]


@router.get("/questions/{question_id}/top-responses", response_model=TopResponses)
async def top_responses(
    question_id: str,
    db: DbSession,
    current_user: OptionalUser,
    limit: Optional[int] = Query(None, description="Number of responses to return"),
) -> TopResponses:
    """
    The most upvoted responses to a question.

    Ties go to the earlier response. When the caller is signed in, each
    entry says whether they upvoted it.
    """
    k = settings.TOP_RESPONSES_DEFAULT_LIMIT if limit is None else limit
    entries = await RankingEngine(db).top_responses(
        question_id,
        k,
        viewer_id=current_user.id if current_user else None,
    )
    return top_responses_to_schema(question_id, k, entries)


@router.get("/users/me/responses", response_model=list[Response])
async def my_responses(current_user: CurrentUser, db: DbSession) -> list[Response]:
    """Everything the caller has answered, newest first."""
    responses = await ResponseService(db).list_user_responses(current_user.id)
    return [Response.model_validate(r) for r in responses]


@router.post("/responses/{response_id}/upvote", response_model=UpvoteResult)
async def upvote_response(
    response_id: str,
    request: Request,
    current_user: CurrentUser,
    db: DbSession,
    clock: RequestClock,
) -> UpvoteResult:
    """Upvote a response. Repeating the call is a no-op."""
    ledger = UpvoteLedger(db, clock=clock)
    changed = await ledger.upvote(response_id, current_user.id, ip_address=get_client_ip(request))
    return UpvoteResult(
        response_id=response_id,
        changed=changed,
        upvote_count=await ledger.count(response_id),
        message="Upvote recorded" if changed else "Already upvoted",
    )


@router.delete("/responses/{response_id}/upvote", response_model=UpvoteResult)
async def revoke_upvote(
    response_id: str,
    current_user: CurrentUser,
    db: DbSession,
    clock: RequestClock,
) -> UpvoteResult:
    """Withdraw the caller's upvote, if any."""
    ledger = UpvoteLedger(db, clock=clock)
    changed = await ledger.revoke(response_id, current_user.id)
    return UpvoteResult(
        response_id=response_id,
        changed=changed,
        upvote_count=await ledger.count(response_id),
        message="Upvote removed" if changed else "No upvote to remove",
    )
