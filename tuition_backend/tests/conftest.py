"""
Centralized Test Configuration.
"""

import pytest
from types import SimpleNamespace
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from tuition_backend.app.main import app
from tuition_backend.app.db.session import get_db, Base
from tuition_backend.app.core.redis_client import get_redis
from tuition_backend.app.core.tenancy import CallerContext, TenantScope
from tuition_backend.app.models.enums import UserRole
import tuition_backend.app.core.redis_client as redis_client_module
from tuition_backend.tests.factories import create_center, create_user, auth_headers

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Event handler to enable foreign keys for SQLite
from sqlalchemy import event
from sqlalchemy.pool import Pool

@event.listens_for(Pool, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite."""
    if 'sqlite' in str(type(dbapi_conn)):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)

# Mock Redis for reliability in CI/CD
class MockRedis:
    def __init__(self):
        self.store = {}
        self._closed = False

    async def ping(self):
        if self._closed:
            return False
        return True

    async def get(self, key):
        if self._closed:
            return None
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        if self._closed:
            return False
        self.store[key] = value
        return True

    async def setex(self, key, seconds, value):
        return await self.set(key, value, ex=seconds)

    async def delete(self, key):
        if self._closed:
            return 0
        if key in self.store:
            del self.store[key]
            return 1
        return 0

    async def exists(self, key):
        if self._closed:
            return 0
        return 1 if key in self.store else 0

    async def flushdb(self):
        if not self._closed:
            self.store = {}

    async def aclose(self):
        self._closed = True
        self.store = {}

# Redis Fixture (Session Scope)
@pytest.fixture(scope="session")
def redis_client_session():
    return MockRedis()

@pytest.fixture(scope="session", autouse=True)
def apply_overrides(redis_client_session):
    """Apply overrides once for the session.
    Global override is safer here than per-test override to avoid app state flux.
    """

    # Patch the global redis client used by token revocation and /health
    original_client = redis_client_module.redis_client
    redis_client_module.redis_client = redis_client_session

    async def override_get_db():
        async with TestingSessionLocal() as session:
            yield session

    async def override_get_redis():
        return redis_client_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = override_get_redis
    yield

    # Restore and clear
    app.dependency_overrides = {}
    redis_client_module.redis_client = original_client

@pytest.fixture(autouse=True)
async def setup_database(redis_client_session):
    """Create tables before each test function and drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    await redis_client_session.flushdb()

    yield

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

@pytest.fixture
async def client():
    """Async client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

# Shared session for fixture data creation
@pytest.fixture
async def db_session():
    async with TestingSessionLocal() as session:
        yield session


# Tenants and callers.
# Callers are plain namespaces so tests can keep using their ids after a
# failed operation rolls the session back and expires loaded rows.

def _caller(user, password="secret123"):
    return SimpleNamespace(
        user_id=user.id,
        username=user.username,
        password=password,
        role=user.role,
        center_id=user.center_id,
        headers=auth_headers(user),
    )

@pytest.fixture
async def center_id(db_session):
    center = await create_center(db_session, "NORTH01", "North Star Tuition")
    return center.id

@pytest.fixture
async def other_center_id(db_session):
    center = await create_center(db_session, "SOUTH01", "Southside Classes")
    return center.id

@pytest.fixture
async def staff(db_session, center_id):
    user = await create_user(db_session, "frontdesk", UserRole.CENTER, center_id)
    return _caller(user)

@pytest.fixture
async def principal(db_session, center_id):
    user = await create_user(db_session, "principal", UserRole.PRINCIPAL, center_id)
    return _caller(user)

@pytest.fixture
async def other_staff(db_session, other_center_id):
    user = await create_user(db_session, "southdesk", UserRole.CENTER, other_center_id)
    return _caller(user)

@pytest.fixture
async def parent(db_session, center_id):
    user = await create_user(db_session, "parent.verma", UserRole.PARENT, center_id)
    return _caller(user)

@pytest.fixture
async def teacher(db_session, center_id):
    user = await create_user(db_session, "teacher.rao", UserRole.TEACHER, center_id)
    return _caller(user)

@pytest.fixture
async def admin(db_session):
    user = await create_user(db_session, "admin", UserRole.ADMIN, None, is_superuser=True)
    return _caller(user)

@pytest.fixture
def scope(db_session, staff):
    """Tenant scope of the front-desk user of NORTH01."""
    return TenantScope(db_session, CallerContext(
        user_id=staff.user_id, username=staff.username, role=staff.role, center_id=staff.center_id,
    ))

@pytest.fixture
def other_scope(db_session, other_staff):
    return TenantScope(db_session, CallerContext(
        user_id=other_staff.user_id, username=other_staff.username, role=other_staff.role,
        center_id=other_staff.center_id,
    ))

@pytest.fixture
def parent_scope(db_session, parent):
    return TenantScope(db_session, CallerContext(
        user_id=parent.user_id, username=parent.username, role=parent.role, center_id=parent.center_id,
    ))
