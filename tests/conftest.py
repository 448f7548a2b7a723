"""
Test infrastructure for the blog API.

Strategy
--------
- SQLite in-memory via aiosqlite eliminates the need for a running Postgres
  instance in CI, keeping the suite fast and self-contained.
- StaticPool forces all async tasks to share the same in-memory database
  connection, which is required because SQLite in-memory databases are
  connection-scoped; a new connection would see an empty database.
- The app's get_db dependency is overridden so every test-time request uses
  the test session factory rather than the production one.
- All tables are created fresh before each test and dropped after.
- The credential store runs on fakeredis, so token TTLs and revocation
  behave as they do against a real Redis.  The feed cache is disabled by
  setting cache._redis = None; CacheManager treats that as a permanent miss.
- Tests that seed rows through ``db_session`` commit before issuing HTTP
  requests: both sessions share the one SQLite connection.
"""
import pytest_asyncio
from fakeredis import FakeServer
from fakeredis import aioredis as fake_aioredis
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from blogapi.cache import cache
from blogapi.credentials import credential_store
from blogapi.database import Base, commit, get_db
from blogapi.main import app
from blogapi.middleware import install_query_counter
from blogapi.models import Article, ArticleState, Role, User
from blogapi.security import hash_password

# ---------------------------------------------------------------------------
# Test database engine: SQLite in-memory with aiosqlite
# ---------------------------------------------------------------------------

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

engine_test = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

# Register the per-request SQL query counter on the test engine.
install_query_counter(engine_test)

async_session_test = async_sessionmaker(
    engine_test,
    class_=AsyncSession,
    expire_on_commit=False,
)

DEFAULT_PASSWORD = "secret123"


# ---------------------------------------------------------------------------
# Dependency override: replace production get_db with the test session factory
# ---------------------------------------------------------------------------

async def override_get_db():
    async with async_session_test() as session:
        try:
            yield session
            await commit(session)
        except Exception:
            session.info.clear()
            await session.rollback()
            raise


app.dependency_overrides[get_db] = override_get_db


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    """Create all tables before each test, drop after to guarantee isolation."""
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture(autouse=True)
async def fake_redis():
    """
    Point the credential store at a fresh fakeredis instance and disable
    the feed cache for every test.
    """
    server = fake_aioredis.FakeRedis(server=FakeServer(), decode_responses=True)
    credential_store._redis = server
    cache._redis = None
    yield server
    credential_store._redis = None
    await server.aclose()


@pytest_asyncio.fixture
async def db_session() -> AsyncSession:
    """
    Yield a live AsyncSession for tests that need to interact with the
    database directly (e.g. seeding data, asserting ORM state).
    """
    async with async_session_test() as session:
        yield session


@pytest_asyncio.fixture
async def async_client() -> AsyncClient:
    """Yield an httpx.AsyncClient wired to the FastAPI app via ASGITransport."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client




@pytest_asyncio.fixture
async def make_user(db_session: AsyncSession):
    """Factory inserting a user with a known password; committed immediately."""

    async def _make(username: str = "reader01", role: Role = Role.READER, password: str = DEFAULT_PASSWORD) -> User:
        user = User(username=username, password_hash=hash_password(password), role=role)
        db_session.add(user)
        await db_session.commit()
        return user

    return _make


@pytest_asyncio.fixture
async def make_article(db_session: AsyncSession):
    """Factory inserting an article owned by *author*; committed immediately."""

    async def _make(author: User, title: str = "Hello", state: ArticleState = ArticleState.PUBLISHED) -> Article:
        article = Article(title=title, content=f"{title} body", state=state, user_id=author.id)
        db_session.add(article)
        await db_session.commit()
        return article

    return _make


@pytest_asyncio.fixture
async def login(async_client: AsyncClient):
    """Factory logging a user in through the API; returns the headers to send."""

    async def _login(username: str, password: str = DEFAULT_PASSWORD) -> dict:
        resp = await async_client.post(
            "/api/v1/users/login", json={"username": username, "password": password}
        )
        assert resp.json()["code"] == 200, resp.text
        return {"Authorization": f"Bearer {resp.json()['data']}"}

    return _login
