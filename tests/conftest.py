"""
Shared fixtures: an in-memory SQLite database and a scriptable OAuth provider.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from connectors.base import BaseConnector
from database.models import Base, User

NOW = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)


class FakeConnector(BaseConnector):
    """Provider double: returns canned grants and records every call."""

    def __init__(self):
        self.grant: Dict[str, Any] = {"access_token": "at-2", "expires_in": 3600}
        self.tokens: Dict[str, Any] = {
            "access_token": "at-1",
            "refresh_token": "rt-1",
            "expires_in": 3600,
            "scopes": ["https://www.googleapis.com/auth/calendar"],
            "account_email": "ada@gmail.com",
        }
        self.refresh_error: Optional[Exception] = None
        self.exchange_error: Optional[Exception] = None
        self.refresh_calls: List[str] = []
        self.exchange_calls: List[str] = []
        self.revoked: List[str] = []

    @property
    def provider_name(self) -> str:
        return "google"

    @property
    def display_name(self) -> str:
        return "Fake Google"

    @property
    def default_scopes(self) -> List[str]:
        return ["https://www.googleapis.com/auth/calendar"]

    def build_authorization_url(self, scopes, state):
        return f"https://provider.test/auth?state={state}"

    async def exchange_code(self, code):
        self.exchange_calls.append(code)
        if self.exchange_error is not None:
            raise self.exchange_error
        return dict(self.tokens)

    async def refresh_access_token(self, refresh_token):
        self.refresh_calls.append(refresh_token)
        if self.refresh_error is not None:
            raise self.refresh_error
        return dict(self.grant)

    async def revoke_token(self, token):
        self.revoked.append(token)
        return True


@pytest_asyncio.fixture
async def engine():
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
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


async def _add_user(session: AsyncSession, email: str, name: str) -> User:
    user = User(user_id=uuid.uuid4(), email=email, display_name=name)
    session.add(user)
    await session.commit()
    return user


@pytest_asyncio.fixture
async def user(session):
    return await _add_user(session, "ada@example.com", "Ada")


@pytest_asyncio.fixture
async def other_user(session):
    return await _add_user(session, "bob@example.com", "Bob")


@pytest.fixture
def fake_connector():
    return FakeConnector()


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def now():
    return NOW
