"""
Test configuration and fixtures for eCredit tests.
"""
import pytest
from typing import AsyncGenerator, Dict
from decimal import Decimal
from unittest.mock import AsyncMock

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool
from httpx import AsyncClient, ASGITransport

from ecredit.core.database import Base, get_db, get_redis
from ecredit.core.security import create_access_token
from ecredit.modules.authz.policy import PolicyEvaluator
from ecredit.modules.authz.resolver import AdminStatusResolver
from ecredit.modules.loans.models import Loan, LoanStatus
from ecredit.modules.profiles.models import Profile
from main import app


# ============================================================
# Database Fixtures
# ============================================================

# Use SQLite for testing (in-memory)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
async def test_engine():
    """Fresh in-memory database per test"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False
    )
    
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    
    yield engine
    
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False
    )


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create database session for each test"""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def evaluator(db_session) -> PolicyEvaluator:
    return PolicyEvaluator(db_session, AdminStatusResolver(db_session))


# ============================================================
# Redis Fixtures
# ============================================================

@pytest.fixture
def redis_store() -> Dict[str, str]:
    return {}


@pytest.fixture
def mock_redis(redis_store):
    """AsyncMock Redis backed by a dict; enough for the revocation list"""
    redis = AsyncMock()
    
    async def _get(key):
        return redis_store.get(key)
    
    async def _setex(key, ttl, value):
        redis_store[key] = value
        return True
    
    redis.get.side_effect = _get
    redis.setex.side_effect = _setex
    return redis


@pytest.fixture
async def client(db_session, mock_redis) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with database and Redis overrides"""
    
    async def override_get_db():
        yield db_session
    
    async def override_get_redis():
        return mock_redis
    
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = override_get_redis
    
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    
    app.dependency_overrides.clear()


# ============================================================
# Profile Fixtures
# ============================================================

@pytest.fixture
async def test_user(db_session):
    """Create a regular borrower"""
    user = Profile(
        id="user-1",
        email="borrower@example.com",
        full_name="Test Borrower",
        loan_limit=Decimal("0"),
        is_admin=False
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest.fixture
async def other_user(db_session):
    """A second borrower who owns nothing of test_user's"""
    user = Profile(
        id="user-2",
        email="other@example.com",
        full_name="Other Borrower",
        loan_limit=Decimal("0"),
        is_admin=False
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest.fixture
async def admin_user(db_session):
    """Create an administrator"""
    admin = Profile(
        id="admin-1",
        email="admin@example.com",
        full_name="Test Admin",
        loan_limit=Decimal("0"),
        is_admin=True
    )
    db_session.add(admin)
    await db_session.commit()
    await db_session.refresh(admin)
    return admin


def make_headers(user_id: str, email: str = None) -> Dict[str, str]:
    claims = {"sub": user_id}
    if email:
        claims["email"] = email
    token = create_access_token(data=claims)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def auth_headers(test_user):
    """Generate auth headers for test user"""
    return make_headers(test_user.id, test_user.email)


@pytest.fixture
async def other_headers(other_user):
    return make_headers(other_user.id, other_user.email)


@pytest.fixture
async def admin_headers(admin_user):
    """Generate auth headers for the administrator"""
    return make_headers(admin_user.id, admin_user.email)


# ============================================================
# Loan Fixtures
# ============================================================

@pytest.fixture
async def test_loan(db_session, test_user):
    """Pending loan owned by test_user"""
    loan = Loan(
        user_id=test_user.id,
        amount=Decimal("10000.00"),
        interest_rate=Decimal("12.00"),
        term_months=12,
        monthly_payment=Decimal("888.49"),
        status=LoanStatus.PENDING
    )
    db_session.add(loan)
    await db_session.commit()
    await db_session.refresh(loan)
    return loan


@pytest.fixture
def headers_for():
    """Build bearer headers for an arbitrary identity"""
    return make_headers
