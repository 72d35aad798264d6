import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from hearth.main import app
from hearth.db import Base, get_db
from hearth.models import FamilyMember, Household, User
from hearth.settings import settings

# --- Test Database Setup ---

from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.compiler import compiles


@compiles(JSONB, 'sqlite')
def compile_jsonb(element, compiler, **kw):
    return "JSON"


SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool  # one shared connection so the in-memory db survives across sessions
)


@event.listens_for(engine, "connect")
def _enable_foreign_keys(dbapi_connection, connection_record):
    # ON DELETE CASCADE / SET NULL are only enforced with this pragma
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


def make_token(email: str, secret: str = None, **claims) -> str:
    return jwt.encode({"email": email, **claims}, secret or settings.auth_secret, algorithm="HS256")


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {make_token(user.email)}"}


@pytest.fixture(autouse=True, scope="session")
def _set_test_env():
    from hearth.main import limiter
    from hearth.routers.conversations import limiter as assistant_limiter

    settings.ai_mode = "mock"
    # one client address for the whole run would trip the per-minute limits
    limiter.enabled = False
    assistant_limiter.enabled = False
    yield


@pytest.fixture(autouse=True)
def setup_database():
    """Create tables before each test, drop after."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client():
    """Test client with DB override."""
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def db_session():
    """Direct database session for setup."""
    session = TestingSessionLocal()
    yield session
    session.close()


@pytest.fixture
def household(db_session):
    h = Household(name="Test Household")
    db_session.add(h)
    db_session.commit()
    db_session.refresh(h)
    return h


@pytest.fixture
def other_household(db_session):
    h = Household(name="Other Household")
    db_session.add(h)
    db_session.commit()
    db_session.refresh(h)
    return h


@pytest.fixture
def user(db_session, household):
    u = User(email="alex@example.com", name="Alex", household_id=household.id)
    db_session.add(u)
    db_session.commit()
    db_session.refresh(u)
    return u


@pytest.fixture
def other_user(db_session, other_household):
    u = User(email="sam@example.com", name="Sam", household_id=other_household.id)
    db_session.add(u)
    db_session.commit()
    db_session.refresh(u)
    return u


@pytest.fixture
def housemate(db_session, household):
    u = User(email="jordan@example.com", name="Jordan", household_id=household.id)
    db_session.add(u)
    db_session.commit()
    db_session.refresh(u)
    return u


@pytest.fixture
def headers(user):
    return auth_headers(user)


@pytest.fixture
def member(db_session, household):
    m = FamilyMember(household_id=household.id, first_name="Riley", last_name="Park")
    db_session.add(m)
    db_session.commit()
    db_session.refresh(m)
    return m


import fakeredis
import fakeredis.aioredis
from hearth.infra import redis_client


@pytest.fixture(autouse=True)
def mock_redis():
    server = fakeredis.FakeServer()
    # Fake clients sharing the same server
    async_redis = fakeredis.aioredis.FakeRedis(server=server, decode_responses=True)
    sync_redis = fakeredis.FakeRedis(server=server, decode_responses=True)

    redis_client._redis_async = async_redis
    redis_client._redis_sync = sync_redis

    yield sync_redis

    redis_client._redis_async = None
    redis_client._redis_sync = None


@pytest.fixture
def headers_for():
    return auth_headers
