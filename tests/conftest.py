"""pytest configuration and fixtures."""

import os
import tempfile
from collections.abc import AsyncGenerator, Awaitable, Callable, Generator
from pathlib import Path

# settings are read at import time, so the environment goes first
_TEST_DIR = tempfile.mkdtemp(prefix="smartmarks-test-")
os.environ["ENVIRONMENT"] = "test"
os.environ["SMARTMARKS_SECRET_KEY"] = "test-secret-key"
os.environ["SMARTMARKS_DATABASE_PATH"] = str(Path(_TEST_DIR) / "app.db")

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker  # noqa: E402
from sqlalchemy.ext.asyncio import create_async_engine  # noqa: E402

from config import settings  # noqa: E402
from core.auth import create_session_token, hash_password  # noqa: E402
from core.csrf import generate_csrf_token  # noqa: E402
from core.database import make_session_factory  # noqa: E402
from core.dependencies import get_db_session  # noqa: E402
from core.gateway import StoreGateway  # noqa: E402
from main import app  # noqa: E402
from models.models import Base, Bookmark, Tag, User  # noqa: E402
from sync.feed import ChangeFeed, capture_changes  # noqa: E402
from sync.relay import BroadcastHub  # noqa: E402

TEST_PASSWORD = "correct horse battery"


@pytest.fixture
async def engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine]:
    """fresh sqlite file per test, tables created up front."""
    test_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return make_session_factory(engine)


@pytest.fixture
def feed(session_factory: async_sessionmaker[AsyncSession]) -> Generator[ChangeFeed]:
    change_feed = ChangeFeed()
    detach = capture_changes(session_factory, change_feed)
    yield change_feed
    detach()


@pytest.fixture
def hub() -> Generator[BroadcastHub]:
    broadcast_hub = BroadcastHub()
    yield broadcast_hub
    broadcast_hub.close()


@pytest.fixture
def gateway(session_factory: async_sessionmaker[AsyncSession]) -> StoreGateway:
    return StoreGateway(session_factory)


@pytest.fixture
async def db(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_user(db: AsyncSession) -> Callable[[str], Awaitable[User]]:
    async def _make(username: str) -> User:
        user = User(
            username=username,
            email=f"{username}@example.com",
            password_hash=hash_password(TEST_PASSWORD),
        )
        db.add(user)
        await db.commit()
        return user

    return _make


@pytest.fixture
async def user(make_user: Callable[[str], Awaitable[User]]) -> User:
    return await make_user("alice")


@pytest.fixture
async def other_user(make_user: Callable[[str], Awaitable[User]]) -> User:
    return await make_user("bob")


@pytest.fixture
def make_bookmark(db: AsyncSession) -> Callable[..., Awaitable[Bookmark]]:
    async def _make(user: User, url: str, title: str) -> Bookmark:
        bookmark = Bookmark(user_id=user.id, url=url, title=title)
        db.add(bookmark)
        await db.commit()
        return bookmark

    return _make


@pytest.fixture
def make_tag(db: AsyncSession) -> Callable[..., Awaitable[Tag]]:
    async def _make(user: User, name: str) -> Tag:
        tag = Tag(user_id=user.id, name=name)
        db.add(tag)
        await db.commit()
        return tag

    return _make


@pytest.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession],
    feed: ChangeFeed,
    hub: BroadcastHub,
    gateway: StoreGateway,
) -> AsyncGenerator[AsyncClient]:
    """anonymous api client; the lifespan does not run under ASGITransport."""

    async def override_get_db_session() -> AsyncGenerator[AsyncSession]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db_session] = override_get_db_session
    app.state.feed = feed
    app.state.hub = hub
    app.state.gateway = gateway

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers={settings.CSRF_HEADER_NAME: generate_csrf_token()},
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def authenticated_client(client: AsyncClient, user: User) -> AsyncClient:
    client.cookies.set(settings.COOKIE_NAME, create_session_token(user.id))
    return client
