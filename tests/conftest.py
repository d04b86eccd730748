"""
Test configuration and fixtures.

Provides:
- In-memory SQLite database, schema rebuilt for every test
- Workspace/user/role fixtures built through the service layer
- JWT bearer tokens for authenticated tests
- HTTPX AsyncClient bound to the ASGI app
"""
import os
import uuid
from dataclasses import dataclass
from typing import AsyncGenerator, Generator

# Settings are read at import time; configure before importing crm
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["TESTING"] = "1"
os.environ["ENV"] = "test"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["API_BASE_URL"] = "http://test"

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.orm import Session

from crm.core.deps import get_db
from crm.core.security import create_access_token
from crm.db.base import Base
from crm.db.enums import MembershipStatus
from crm.db.models import User, Workspace
from crm.db.session import SessionLocal, engine
from crm.main import app
from crm.services import membership_service, role_service, workspace_service


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Fresh schema per test; app code may commit freely."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


def make_user(db: Session, name: str = "user") -> User:
    user = User(
        email=f"{name}-{uuid.uuid4().hex[:8]}@test.com",
        display_name=name.title(),
    )
    db.add(user)
    db.flush()
    return user


@pytest.fixture(scope="function")
def user_factory(db: Session):
    """Factory: create a user with no memberships."""
    def _make(name: str = "user") -> User:
        return make_user(db, name)
    return _make


@pytest.fixture(scope="function")
def owner(db: Session) -> User:
    return make_user(db, "owner")


@pytest.fixture(scope="function")
def workspace(db: Session, owner: User) -> Workspace:
    """Workspace with system roles and an active owner membership."""
    workspace = workspace_service.create_workspace(
        db,
        name="Test Workspace",
        owner=owner,
        slug=f"test-{uuid.uuid4().hex[:8]}",
    )
    db.commit()
    return workspace


@pytest.fixture(scope="function")
def add_member(db: Session, workspace: Workspace):
    """Factory: add a user to the workspace with a named role and status."""
    def _add(
        role_name: str = "viewer",
        status: MembershipStatus = MembershipStatus.ACTIVE,
        user: User | None = None,
    ):
        user = user or make_user(db, role_name)
        role = role_service.get_role_by_name(db, workspace.id, role_name)
        membership = membership_service.create_membership(
            db,
            workspace_id=workspace.id,
            user_id=user.id,
            role_id=role.id if role else None,
            status=status,
        )
        db.commit()
        return user, membership
    return _add


# =============================================================================
# Auth Fixtures
# =============================================================================

@dataclass
class TestAuth:
    """Test authentication context."""
    user: User
    workspace: Workspace
    token: str

    @property
    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}


def bearer(user: User) -> dict[str, str]:
    token = create_access_token(user_id=user.id, token_version=user.token_version)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(scope="function")
def test_auth(owner: User, workspace: Workspace) -> TestAuth:
    """Bearer token for the workspace owner."""
    token = create_access_token(user_id=owner.id, token_version=owner.token_version)
    return TestAuth(user=owner, workspace=workspace, token=token)


# =============================================================================
# Client Fixtures
# =============================================================================

@pytest.fixture(scope="function")
async def client(db: Session) -> AsyncGenerator[AsyncClient, None]:
    """Unauthenticated AsyncClient for public endpoints."""
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def authed_client(
    db: Session,
    test_auth: TestAuth
) -> AsyncGenerator[AsyncClient, None]:
    """AsyncClient authenticated as the workspace owner."""
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers=test_auth.headers,
    ) as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def auth_headers():
    """Factory: Authorization headers for any user."""
    return bearer
