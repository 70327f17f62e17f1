"""
Test configuration and fixtures.

Provides:
- In-memory SQLite database, schema created and dropped per test
- One user per role plus session cookies
- HTTPX AsyncClient with proper headers
"""
import os
import uuid
from dataclasses import dataclass
from typing import AsyncGenerator, Generator

# Must be set before app modules read settings
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["TESTING"] = "1"
os.environ["ENV"] = "test"
os.environ["INTERNAL_SECRET"] = "test-internal-secret"
os.environ["VAPI_API_KEY"] = ""
os.environ["TWILIO_ACCOUNT_SID"] = ""
os.environ["TWILIO_AUTH_TOKEN"] = ""

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.orm import Session

from app.core.deps import COOKIE_NAME, get_db
from app.core.security import create_session_token
from app.db.base import Base
from app.db.enums import Role
from app.db.models import Campaign, LeadStage, Organization, SalesUser, User
from app.db.session import SessionLocal, engine
from app.main import app

CSRF_HEADERS = {"X-Requested-With": "XMLHttpRequest"}


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """
    Fresh schema for every test.

    The engine keeps a single in-memory connection, so app code may
    commit freely; dropping the tables afterwards resets everything.
    """
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def test_org(db: Session) -> Organization:
    org = Organization(name="Acme Dental", contact_email="owner@acme.test")
    db.add(org)
    db.flush()
    return org


@pytest.fixture(scope="function")
def other_org(db: Session) -> Organization:
    org = Organization(name="Other Clinic")
    db.add(org)
    db.flush()
    return org


@pytest.fixture(scope="function")
def admin_user(db: Session) -> User:
    user = User(email="admin@test.com", full_name="Test Admin", role=Role.ADMIN.value)
    db.add(user)
    db.flush()
    return user


@pytest.fixture(scope="function")
def client_user(db: Session, test_org: Organization) -> User:
    user = User(
        email="client@test.com",
        full_name="Test Client",
        role=Role.CLIENT_USER.value,
        organization_id=test_org.id,
    )
    db.add(user)
    db.flush()
    return user


@pytest.fixture(scope="function")
def sales_user(db: Session) -> SalesUser:
    """A sales-role user with an active profile (the profile is returned)."""
    user = User(email="sales@test.com", full_name="Sam Seller", role=Role.SALES.value)
    db.add(user)
    db.flush()
    profile = SalesUser(user_id=user.id, email=user.email, full_name=user.full_name, commission_rate=18)
    db.add(profile)
    db.flush()
    return profile


@pytest.fixture(scope="function")
def lead_stages(db: Session) -> dict[str, LeadStage]:
    stages = {}
    for order, (name, is_default, is_final, is_won) in enumerate(
        [
            ("New", True, False, False),
            ("Contacted", False, False, False),
            ("Won", False, True, True),
        ]
    ):
        stage = LeadStage(
            name=name,
            order=order,
            is_default=is_default,
            is_final=is_final,
            is_won=is_won,
        )
        db.add(stage)
        stages[name] = stage
    db.flush()
    return stages


@pytest.fixture(scope="function")
def campaign(db: Session, test_org: Organization) -> Campaign:
    campaign = Campaign(
        organization_id=test_org.id,
        name="Spring Promo",
        webhook_uuid=uuid.uuid4(),
        twilio_phone_number="+15550001111",
    )
    db.add(campaign)
    db.commit()
    return campaign


# =============================================================================
# Auth Fixtures
# =============================================================================

@dataclass
class TestAuth:
    """Test authentication context."""
    user: User
    token: str
    cookie_name: str = COOKIE_NAME


def _auth_for(user: User) -> TestAuth:
    token = create_session_token(
        user_id=user.id,
        org_id=user.organization_id,
        role=user.role,
        token_version=user.token_version,
    )
    return TestAuth(user=user, token=token)


@pytest.fixture(scope="function")
def admin_auth(db: Session, admin_user: User) -> TestAuth:
    db.commit()
    return _auth_for(admin_user)


@pytest.fixture(scope="function")
def client_auth(db: Session, client_user: User) -> TestAuth:
    db.commit()
    return _auth_for(client_user)


@pytest.fixture(scope="function")
def sales_auth(db: Session, sales_user: SalesUser) -> TestAuth:
    db.commit()
    user = db.query(User).filter(User.id == sales_user.user_id).one()
    return _auth_for(user)


# =============================================================================
# Client Fixtures
# =============================================================================

def _override_db(db: Session) -> None:
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db


@pytest.fixture(scope="function")
async def client(db: Session) -> AsyncGenerator[AsyncClient, None]:
    """Unauthenticated AsyncClient for public endpoints."""
    _override_db(db)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


async def _authed(db: Session, auth: TestAuth) -> AsyncGenerator[AsyncClient, None]:
    _override_db(db)
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        cookies={auth.cookie_name: auth.token},
        headers=CSRF_HEADERS,
    ) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def admin_client(db: Session, admin_auth: TestAuth) -> AsyncGenerator[AsyncClient, None]:
    async for c in _authed(db, admin_auth):
        yield c


@pytest.fixture(scope="function")
async def client_user_client(db: Session, client_auth: TestAuth) -> AsyncGenerator[AsyncClient, None]:
    async for c in _authed(db, client_auth):
        yield c


@pytest.fixture(scope="function")
async def sales_client(db: Session, sales_auth: TestAuth) -> AsyncGenerator[AsyncClient, None]:
    async for c in _authed(db, sales_auth):
        yield c
