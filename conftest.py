import os
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from dotenv import load_dotenv
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# Tests never touch the deployment database: every test gets its own SQLite file.
env_test_path = os.path.join(os.path.dirname(__file__), ".env.test")
if os.path.exists(env_test_path):
    load_dotenv(env_test_path, override=True)
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test_fulfillment.db")

from libs.auth.dependencies import get_current_user  # noqa: E402
from libs.auth.models import AuthUser  # noqa: E402
from libs.common.config import get_settings  # noqa: E402
from libs.db.base import Base  # noqa: E402
from libs.db.session import get_async_db  # noqa: E402
from services.fulfillment_service import models as _fulfillment_models  # noqa: E402,F401
from services.fulfillment_service.app.main import app  # noqa: E402

# Clear cached settings to reload with new env vars
get_settings.cache_clear()
settings = get_settings()


@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """
    Create a throwaway SQLite database with every table.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'fulfillment.db'}", future=True
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    """
    Session factory configured like the application's.
    Concurrency tests use it to open independent sessions.
    """
    return async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def staff_user() -> AuthUser:
    return AuthUser(user_id="staff-1", email="staff@example.com", role="sales_staff")


@pytest.fixture
def admin_user() -> AuthUser:
    return AuthUser(user_id="admin-1", email="admin@example.com", role="admin")


@pytest_asyncio.fixture
async def client(session_factory, staff_user) -> AsyncGenerator[AsyncClient, None]:
    """
    Yield an AsyncClient with the app, a per-request session on the test
    database, and a staff user for authenticated routes.

    Guest routes still see no user: get_optional_user is left untouched.
    """

    async def _get_test_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_async_db] = _get_test_db
    app.dependency_overrides[get_current_user] = lambda: staff_user

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def act_as():
    """
    Switch the authenticated user for routes depending on get_current_user.
    """

    def _act_as(user: AuthUser):
        app.dependency_overrides[get_current_user] = lambda: user

    return _act_as
