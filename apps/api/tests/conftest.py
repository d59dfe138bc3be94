"""
Test configuration and fixtures.

Provides:
- In-memory SQLite schema rebuilt for every test
- Practice, member-per-role, and client fixtures
- JWT session cookies for authenticated API tests
- HTTPX AsyncClient bound to the app with the CSRF header set
"""
import os
import uuid
from typing import AsyncGenerator, Generator

# Settings are read at import time; point them at an in-memory database
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["ENV"] = "test"

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.orm import Session

from practice_api.core.deps import COOKIE_NAME, CSRF_HEADER, CSRF_HEADER_VALUE, get_db
from practice_api.core.security import create_session_token
from practice_api.db.base import Base
from practice_api.db.enums import Role
from practice_api.db.models import Client, Membership, Practice, User
from practice_api.db.session import SessionLocal, engine
from practice_api.main import app
from practice_api.schemas.auth import UserSession


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Fresh schema per test; services are free to commit."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def practice(db: Session) -> Practice:
    practice = Practice(
        id=uuid.uuid4(),
        name="Test Practice",
        slug=f"test-practice-{uuid.uuid4().hex[:8]}",
        timezone="UTC",
    )
    db.add(practice)
    db.commit()
    return practice


@pytest.fixture(scope="function")
def other_practice(db: Session) -> Practice:
    practice = Practice(
        id=uuid.uuid4(),
        name="Other Practice",
        slug=f"other-practice-{uuid.uuid4().hex[:8]}",
        timezone="UTC",
    )
    db.add(practice)
    db.commit()
    return practice


def create_member(db: Session, practice: Practice, role: Role, name: str | None = None) -> User:
    """Create a user with a membership in ``practice``."""
    user = User(
        id=uuid.uuid4(),
        email=f"{role.value}-{uuid.uuid4().hex[:8]}@test.com",
        display_name=name or f"Test {role.value.title()}",
        token_version=1,
        is_active=True,
    )
    db.add(user)
    db.flush()
    db.add(Membership(
        id=uuid.uuid4(),
        user_id=user.id,
        practice_id=practice.id,
        role=role.value,
    ))
    db.commit()
    return user


@pytest.fixture
def admin(db, practice) -> User:
    return create_member(db, practice, Role.ADMIN, "Ada Admin")


@pytest.fixture
def practitioner(db, practice) -> User:
    return create_member(db, practice, Role.PRACTITIONER, "Pat Practitioner")


@pytest.fixture
def other_practitioner(db, practice) -> User:
    return create_member(db, practice, Role.PRACTITIONER, "Quinn Practitioner")


@pytest.fixture
def staff(db, practice) -> User:
    return create_member(db, practice, Role.STAFF, "Sam Staff")


@pytest.fixture
def assistant(db, practice) -> User:
    return create_member(db, practice, Role.ASSISTANT, "Alex Assistant")


@pytest.fixture
def client_record(db, practice) -> Client:
    client = Client(
        id=uuid.uuid4(),
        practice_id=practice.id,
        full_name="Casey Client",
    )
    db.add(client)
    db.commit()
    return client


def actor_for(user: User, practice: Practice, role: Role) -> UserSession:
    """Session context as get_current_session would build it."""
    return UserSession(
        user_id=user.id,
        practice_id=practice.id,
        role=role,
        email=user.email,
        display_name=user.display_name,
    )


# =============================================================================
# Client Fixtures
# =============================================================================

def login(client: AsyncClient, user: User, practice: Practice, role: Role) -> AsyncClient:
    """Attach a session cookie for ``user`` to ``client``."""
    token = create_session_token(
        user_id=user.id,
        practice_id=practice.id,
        role=role.value,
        token_version=user.token_version,
    )
    client.cookies.clear()
    client.cookies.set(COOKIE_NAME, token)
    return client


@pytest.fixture(scope="function")
async def client(db: Session) -> AsyncGenerator[AsyncClient, None]:
    """AsyncClient sharing the test session, CSRF header preset."""
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers={CSRF_HEADER: CSRF_HEADER_VALUE},
    ) as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture
def make_member(db, practice):
    """Factory: create_member bound to the test practice."""
    def _make(role: Role, name: str | None = None) -> User:
        return create_member(db, practice, role, name)
    return _make


@pytest.fixture
def make_actor(practice):
    """Factory: session context for a member of the test practice."""
    def _make(user: User, role: Role) -> UserSession:
        return actor_for(user, practice, role)
    return _make


@pytest.fixture
def login_as(client, practice):
    """Factory: switch the shared client to another member's session."""
    def _login(user: User, role: Role) -> AsyncClient:
        return login(client, user, practice, role)
    return _login
