"""
Analytics sink tests: the production log sink, the disabled sink, and
failure isolation under the service's structlog configuration.
"""

import pytest
from httpx import ASGITransport, AsyncClient
from structlog.testing import capture_logs

from app.core.config import Settings
from app.core.dependencies import get_analytics_sink, get_blob_storage, get_repository
from app.core.logging import configure_logging
from app.main import app
from app.services.analytics import LogAnalyticsSink, NullAnalyticsSink, emit_safely
from app.services.onboarding import OnboardingResolver

from onboarding_shared.schemas.onboarding import OnboardingStage

from conftest import ExplodingSink

PROFILE = ("engineering", "2-25", "internal-apps")


def _events(logs, name):
    return [entry for entry in logs if entry["event"] == name]


class TestSinks:
    @pytest.mark.asyncio
    async def test_log_sink_writes_event(self):
        with capture_logs() as logs:
            await LogAnalyticsSink().emit("onboarding.completed", {"path": "skip"})
        [entry] = _events(logs, "analytics.event")
        assert entry["name"] == "onboarding.completed"
        assert entry["path"] == "skip"

    @pytest.mark.asyncio
    async def test_null_sink(self):
        assert await NullAnalyticsSink().emit("onboarding.completed", {}) is None

    @pytest.mark.asyncio
    async def test_emit_safely_logs_failure(self):
        with capture_logs() as logs:
            await emit_safely(ExplodingSink(), "onboarding.completed", {})
        [entry] = _events(logs, "analytics.emit_failed")
        assert entry["analytics_event"] == "onboarding.completed"
        assert entry["log_level"] == "warning"

    def test_sink_follows_settings(self, monkeypatch):
        monkeypatch.setattr(
            "app.core.dependencies.get_settings", lambda: Settings(analytics_enabled=True)
        )
        assert isinstance(get_analytics_sink(), LogAnalyticsSink)
        monkeypatch.setattr(
            "app.core.dependencies.get_settings", lambda: Settings(analytics_enabled=False)
        )
        assert isinstance(get_analytics_sink(), NullAnalyticsSink)


class TestResolverWithProductionLogging:
    @pytest.fixture(autouse=True)
    def configured_logging(self):
        configure_logging("info", "json")

    @pytest.mark.asyncio
    async def test_join_completes_with_log_sink(self, repo, make_identity, seed_org):
        resolver = OnboardingResolver(repo, analytics=LogAnalyticsSink())
        acme = await seed_org("Acme", "acme", ["@acme.com"])
        user = make_identity("a@acme.com")
        await resolver.submit_profile(user, *PROFILE)

        with capture_logs() as logs:
            destination = await resolver.join_organization(user, acme.id)

        assert destination.id == acme.id
        [entry] = _events(logs, "analytics.event")
        assert entry["name"] == "onboarding.completed"
        assert entry["path"] == "join"
        assert entry["organization_id"] == str(acme.id)

    @pytest.mark.asyncio
    async def test_skip_and_create_with_log_sink(self, repo, make_identity):
        resolver = OnboardingResolver(repo, analytics=LogAnalyticsSink())
        user = make_identity("b@nomatch.com")

        with capture_logs() as logs:
            await resolver.submit_profile(user, *PROFILE)
            created = await resolver.create_organization(user, "Acme Inc")

        assert created.slug == "acme-inc"
        assert [e["path"] for e in _events(logs, "analytics.event")] == ["skip"]
        assert (await resolver.get_state(user)).stage == OnboardingStage.COMPLETED

    @pytest.mark.asyncio
    async def test_failing_sink_is_logged_not_raised(self, repo, make_identity):
        resolver = OnboardingResolver(repo, analytics=ExplodingSink())
        user = make_identity("b@nomatch.com")

        with capture_logs() as logs:
            profile = await resolver.submit_profile(user, *PROFILE)

        assert profile.completed_at is not None
        assert len(_events(logs, "analytics.emit_failed")) == 1


class TestApiWithDefaultSink:
    @pytest.fixture
    async def default_client(self, repo):
        app.dependency_overrides[get_repository] = lambda: repo
        app.dependency_overrides[get_blob_storage] = lambda: None
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            yield ac
        app.dependency_overrides.clear()

    @pytest.mark.asyncio
    async def test_join_over_http(
        self, default_client, make_identity, seed_org, auth_headers, monkeypatch
    ):
        monkeypatch.setattr(
            "app.core.dependencies.get_settings", lambda: Settings(analytics_enabled=True)
        )
        acme = await seed_org("Acme", "acme", ["@acme.com"])
        headers = auth_headers(make_identity("a@acme.com"))
        await default_client.post(
            "/api/v1/onboarding/profile",
            json={"role": "engineering", "company_size": "2-25", "use_case": "internal-apps"},
            headers=headers,
        )

        with capture_logs() as logs:
            response = await default_client.post(f"/api/v1/orgs/{acme.id}/join", headers=headers)

        assert response.status_code == 200
        assert [e["name"] for e in _events(logs, "analytics.event")] == ["onboarding.completed"]
