"""
Pytest fixtures for SurveyHub backend tests.

Integration fixtures run against a real SQLite database file per test
(aiosqlite), so unique constraints and foreign keys behave as they do in
production. Repository unit tests use mocked sessions instead.
"""

import os
from collections.abc import AsyncGenerator, Callable
from datetime import datetime, timedelta, timezone
from typing import Any, Optional
from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient

# Set test environment variables before importing app
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-testing")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./surveyhub_test.db")
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("ENABLE_LIFECYCLE_SCHEDULER", "false")


class FakeClock:
    """
    Deterministic clock.

    Each call returns the current instant and then moves forward by
    ``step`` so records created one after another get distinct timestamps.
    """

    def __init__(self, start: datetime, step: timedelta = timedelta(seconds=1)):
        self.now = start
        self.step = step

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + self.step
        return current

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    """Use asyncio backend for async tests."""
    return "asyncio"


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
async def engine(tmp_path: Any) -> AsyncGenerator[Any, None]:
    """Fresh SQLite database with every table created."""
    from db.session import create_engine, init_db

    test_engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'surveyhub.db'}", echo=False)
    await init_db(test_engine)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_maker(engine: Any) -> Any:
    from db.session import create_session_maker

    return create_session_maker(engine)


@pytest.fixture
async def db(session_maker: Any) -> AsyncGenerator[Any, None]:
    async with session_maker() as session:
        yield session


@pytest.fixture
def make_user(db: Any, clock: FakeClock) -> Callable[..., Any]:
    """Factory registering users through the identity service."""
    from models.user import UserRole
    from services.identity_service import IdentityService

    async def _make_user(username: str, role: UserRole = UserRole.USER, password: str = "secret123") -> Any:
        return await IdentityService(db, clock=clock).register(username, password, role=role)

    return _make_user


@pytest.fixture
def make_survey(db: Any, clock: FakeClock) -> Callable[..., Any]:
    """
    Factory creating a survey with questions, optionally published.

    Returns ``(survey, [questions])``.
    """
    from models.survey import QuestionType
    from schemas.survey import QuestionCreate, SurveyCreate
    from services.question_catalog import QuestionCatalog
    from services.survey_lifecycle import SurveyLifecycleManager

    async def _make_survey(
        title: str = "Team retrospective",
        question_types: Optional[list[QuestionType]] = None,
        publish: bool = True,
        allow_multiple_responses: bool = False,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        max_responses: Optional[int] = None,
    ) -> tuple[Any, list[Any]]:
        lifecycle = SurveyLifecycleManager(db, clock=clock)
        catalog = QuestionCatalog(db, clock=clock)
        survey = await lifecycle.create_survey(
            SurveyCreate(
                title=title,
                allow_multiple_responses=allow_multiple_responses,
                start_date=start_date,
                end_date=end_date,
            )
        )
        questions = []
        for index, question_type in enumerate(question_types or [QuestionType.TEXT]):
            questions.append(
                await catalog.add_question(
                    survey.id,
                    QuestionCreate(
                        text=f"Question number {index + 1}",
                        question_type=question_type,
                        max_responses=max_responses,
                    ),
                )
            )
        if publish:
            survey = await lifecycle.publish(survey.id)
        return survey, questions

    return _make_survey


@pytest.fixture
async def app(session_maker: Any, clock: FakeClock) -> AsyncGenerator[Any, None]:
    """FastAPI application bound to the per-test database and clock."""
    from api.deps import get_clock
    from db.session import get_db
    from main import app as fastapi_app

    async def _get_test_db() -> AsyncGenerator[Any, None]:
        async with session_maker() as session:
            try:
                yield session
            finally:
                if session.in_transaction():
                    await session.rollback()

    fastapi_app.dependency_overrides[get_db] = _get_test_db
    fastapi_app.dependency_overrides[get_clock] = lambda: clock
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
async def client(app: Any) -> AsyncGenerator[AsyncClient, None]:
    """Create async test client."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def auth_header() -> Callable[[Any], dict[str, str]]:
    """Bearer header for a stored user."""
    from core.security import create_access_token

    def _auth_header(user: Any) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user.id, user.role)}"}

    return _auth_header


@pytest.fixture
def mock_db_session() -> AsyncMock:
    """Create mock database session."""
    session = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.execute = AsyncMock()
    session.flush = AsyncMock()
    return session
