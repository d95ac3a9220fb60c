"""
Shared fixtures: in-memory and SQLite-backed repositories, a resolver with a
deterministic name supplier, and an HTTP client wired to the app through
dependency overrides.
"""

from __future__ import annotations

from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.core.auth import create_session_token
from app.core.database import get_session_context, init_db
from app.core.dependencies import get_blob_storage, get_repository, get_resolver
from app.core.identity import Identity
from app.main import app
from app.models.user import User
from app.repositories.memory import InMemoryMembershipRepository
from app.repositories.sql import SqlMembershipRepository
from app.services.blob_storage import LocalBlobStorage
from app.services.onboarding import OnboardingResolver


class RecordingSink:
    """Analytics sink that keeps what it was given."""

    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []

    async def emit(self, event: str, properties: dict[str, Any]) -> None:
        self.events.append((event, properties))


class ExplodingSink:
    async def emit(self, event: str, properties: dict[str, Any]) -> None:
        raise RuntimeError("analytics backend down")


GENERATED_NAME = "Magic Unicorn"


# ---------------------------------------------------------------------------
# In-memory repository
# ---------------------------------------------------------------------------

@pytest.fixture
def repo():
    return InMemoryMembershipRepository()


@pytest.fixture
def analytics():
    return RecordingSink()


@pytest.fixture
def resolver(repo, analytics):
    return OnboardingResolver(repo, analytics=analytics, name_supplier=lambda: GENERATED_NAME)


@pytest.fixture
def make_identity(repo):
    """Register a user with the fake identity provider and return its Identity."""

    def _make(email: str) -> Identity:
        user = repo.add_user(email)
        return Identity(user_id=user.id, email=email.lower())

    return _make


@pytest.fixture
def seed_org(repo):
    """Create an org owned by a separate user, with a domain policy."""

    async def _seed(name: str, slug: str, domains: list[str], open: bool = True):
        owner = repo.add_user(f"owner@{slug}.owners.test")
        org = await repo.insert_organization(name, slug, owner.id)
        await repo.set_domain_policy(org.id, domains, open)
        return org

    return _seed


# ---------------------------------------------------------------------------
# SQLite-backed repository
# ---------------------------------------------------------------------------

@pytest.fixture
async def sql_session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'onboarding.db'}")
    await init_db(engine)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def sql_repo(sql_session_factory):
    return SqlMembershipRepository(sql_session_factory)


@pytest.fixture
def make_sql_identity(sql_session_factory):
    async def _make(email: str) -> Identity:
        async with get_session_context(sql_session_factory) as session:
            user = User(email=email)
            session.add(user)
            await session.flush()
        return Identity(user_id=user.id, email=email.lower())

    return _make


# ---------------------------------------------------------------------------
# HTTP client
# ---------------------------------------------------------------------------

@pytest.fixture
async def client(repo, analytics, tmp_path):
    app.dependency_overrides[get_repository] = lambda: repo
    app.dependency_overrides[get_resolver] = lambda: OnboardingResolver(
        repo, analytics=analytics, name_supplier=lambda: GENERATED_NAME
    )
    app.dependency_overrides[get_blob_storage] = lambda: LocalBlobStorage(
        tmp_path / "blobs", "http://files.test"
    )
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    def _headers(identity: Identity) -> dict[str, str]:
        token = create_session_token(identity.user_id, identity.email)
        return {"Authorization": f"Bearer {token}"}

    return _headers
