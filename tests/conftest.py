"""Shared fixtures and utilities for tests."""

import os

# Settings are read once at import time, so the environment is prepared
# before any application module is imported.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["ACCESS_TOKEN_SECRET"] = "test-access-secret-min-32-chars-long-xx"
os.environ["REFRESH_TOKEN_SECRET"] = "test-refresh-secret-min-32-chars-long-x"
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("JSON_LOGS", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("FRONTEND_URL", "https://jobs.example.org")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from api.dependencies import get_email_service
from api.main import app
from api.schemas.jobs import JobCreate
from api.services import jobs as job_service
from api.services.users import issue_tokens
from core.errors import DependencyFailure
from core.integrations.email import RESET_EMAIL_FAILED
from core.security import hash_password
from database.engine import Base, get_db
from database.models.users import Gender, User, UserType
import database.models.applications  # noqa: F401

DEFAULT_PASSWORD = "secret123"


class FakeMailer:
    """Captures reset mails instead of talking to SMTP."""

    def __init__(self):
        self.sent = []
        self.fail = False

    async def send_password_reset_email(self, to_email: str, reset_link: str) -> None:
        if self.fail:
            raise DependencyFailure(RESET_EMAIL_FAILED)
        self.sent.append((to_email, reset_link))


@pytest.fixture
async def engine():
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
async def client(session_factory, mailer):
    """HTTP client bound to the app with the test database and mailer."""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_email_service] = lambda: mailer
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def create_user(session_factory):
    """Insert a user directly, bypassing registration rules (e.g. admins)."""

    async def _create(
        email: str = "candidate@jobboard.dev",
        user_type: UserType = UserType.CANDIDATE,
        password: str = DEFAULT_PASSWORD,
        is_active: bool = True,
        name: str = "Test User",
    ) -> User:
        async with session_factory() as session:
            user = User(
                name=name,
                email=email,
                password_hash=hash_password(password, rounds=4),
                gender=Gender.OTHER,
                address="221B Baker Street",
                user_type=user_type,
                is_active=is_active,
            )
            session.add(user)
            await session.commit()
            return user

    return _create


@pytest.fixture
async def hr_user(create_user):
    return await create_user(email="hr@jobboard.dev", user_type=UserType.HR, name="Hiring Manager")


@pytest.fixture
async def other_hr(create_user):
    return await create_user(email="hr2@jobboard.dev", user_type=UserType.HR, name="Other Recruiter")


@pytest.fixture
async def candidate(create_user):
    return await create_user(email="candidate@jobboard.dev", name="Casey Candidate")


@pytest.fixture
async def admin_user(create_user):
    return await create_user(email="admin@jobboard.dev", user_type=UserType.ADMIN, name="Admin")


@pytest.fixture
def create_job(session_factory):
    """Create a job through the service and return its serialized form."""

    async def _create(owner: User, **fields) -> dict:
        data = {
            "title": "Backend Engineer",
            "description": "Build APIs",
            "location": "Berlin",
        }
        data.update(fields)
        async with session_factory() as session:
            result = await job_service.create_job(session, owner, JobCreate(**data))
        return result["job"]

    return _create


@pytest.fixture
def auth_headers():
    """Bearer header with a freshly signed access token."""

    def _headers(user: User) -> dict:
        return {"Authorization": f"Bearer {issue_tokens(user)['accessToken']}"}

    return _headers
