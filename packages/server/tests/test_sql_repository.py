"""
SQL repository tests on a throwaway SQLite database.

The relational store is the final authority on uniqueness, so these cover
the constraint translations the resolver relies on.
"""

import uuid
from datetime import datetime, timezone

import pytest
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.core.errors import (
    ConflictError,
    OrganizationNotFound,
    RepositoryUnavailable,
    SlugConflictError,
)
from app.repositories.sql import SqlMembershipRepository, open_policies_query
from app.services.onboarding import OnboardingResolver

from onboarding_shared.schemas.onboarding import OnboardingStage

PROFILE = ("engineering", "2-25", "internal-apps")


class TestOrganizations:
    @pytest.mark.asyncio
    async def test_insert_creates_admin_membership(self, sql_repo, make_sql_identity):
        owner = await make_sql_identity("owner@acme.com")
        org = await sql_repo.insert_organization("Acme", "acme", owner.user_id)

        membership = await sql_repo.get_membership(owner.user_id, org.id)
        assert membership.role == "administrator"
        assert (await sql_repo.get_organization_by_slug("acme")).id == org.id

    @pytest.mark.asyncio
    async def test_duplicate_slug(self, sql_repo, make_sql_identity):
        first = await make_sql_identity("a@one.com")
        second = await make_sql_identity("b@two.com")
        org = await sql_repo.insert_organization("Acme", "acme", first.user_id)

        with pytest.raises(SlugConflictError):
            await sql_repo.insert_organization("Acme", "acme", second.user_id)
        assert await sql_repo.has_membership(second.user_id, org.id) is False

    @pytest.mark.asyncio
    async def test_duplicate_creation_key(self, sql_repo, make_sql_identity):
        owner = await make_sql_identity("a@one.com")
        org = await sql_repo.insert_organization("Acme", "acme", owner.user_id, "k-1")

        with pytest.raises(ConflictError) as exc_info:
            await sql_repo.insert_organization("Acme", "acme-2", owner.user_id, "k-1")
        assert not isinstance(exc_info.value, SlugConflictError)
        assert exc_info.value.constraint == "uq_org_creation_key"

        found = await sql_repo.get_organization_by_creation_key(owner.user_id, "k-1")
        assert found.id == org.id

    @pytest.mark.asyncio
    async def test_get_organizations_keeps_requested_order(self, sql_repo, make_sql_identity):
        owner = await make_sql_identity("a@one.com")
        first = await sql_repo.insert_organization("First", "first", owner.user_id)
        second = await sql_repo.insert_organization("Second", "second", owner.user_id)

        orgs = await sql_repo.get_organizations([second.id, uuid.uuid4(), first.id])
        assert [o.id for o in orgs] == [second.id, first.id]

    @pytest.mark.asyncio
    async def test_update_organization(self, sql_repo, make_sql_identity):
        owner = await make_sql_identity("a@one.com")
        org = await sql_repo.insert_organization("Acme", "acme", owner.user_id)
        await sql_repo.insert_organization("Taken", "taken", owner.user_id)

        updated = await sql_repo.update_organization(org.id, name="Acme Corp", slug="acme-corp")
        assert (updated.name, updated.slug) == ("Acme Corp", "acme-corp")

        with pytest.raises(SlugConflictError):
            await sql_repo.update_organization(org.id, slug="taken")
        with pytest.raises(OrganizationNotFound):
            await sql_repo.update_organization(uuid.uuid4(), name="Ghost")


class TestMemberships:
    @pytest.mark.asyncio
    async def test_duplicate_membership(self, sql_repo, make_sql_identity):
        owner = await make_sql_identity("owner@acme.com")
        user = await make_sql_identity("a@acme.com")
        org = await sql_repo.insert_organization("Acme", "acme", owner.user_id)

        await sql_repo.insert_membership(user.user_id, org.id, "member")
        with pytest.raises(ConflictError):
            await sql_repo.insert_membership(user.user_id, org.id, "member")

        assert await sql_repo.count_members([org.id]) == {org.id: 2}

    @pytest.mark.asyncio
    async def test_count_members_empty(self, sql_repo):
        assert await sql_repo.count_members([]) == {}

    @pytest.mark.asyncio
    async def test_has_any_membership(self, sql_repo, make_sql_identity):
        owner = await make_sql_identity("owner@acme.com")
        user = await make_sql_identity("a@acme.com")
        assert await sql_repo.has_any_membership(owner.user_id) is False

        await sql_repo.insert_organization("Acme", "acme", owner.user_id)
        assert await sql_repo.has_any_membership(owner.user_id) is True
        assert await sql_repo.has_any_membership(user.user_id) is False

    @pytest.mark.asyncio
    async def test_sample_members_in_join_order(self, sql_repo, make_sql_identity):
        owner = await make_sql_identity("owner@acme.com")
        org = await sql_repo.insert_organization("Acme", "acme", owner.user_id)
        other = await sql_repo.insert_organization("Other", "other", owner.user_id)
        members = [await make_sql_identity(f"m{i}@acme.com") for i in range(4)]
        for member in members:
            await sql_repo.insert_membership(member.user_id, org.id, "member")

        samples = await sql_repo.sample_members([org.id, other.id], 3)

        assert [u.id for u in samples[org.id]] == [
            owner.user_id,
            members[0].user_id,
            members[1].user_id,
        ]
        assert [u.email for u in samples[other.id]] == ["owner@acme.com"]
        assert await sql_repo.sample_members([], 3) == {}


class TestProfiles:
    @pytest.mark.asyncio
    async def test_upsert_keeps_one_row(self, sql_repo, make_sql_identity):
        user = await make_sql_identity("a@acme.com")
        await sql_repo.upsert_profile(user.user_id, *PROFILE)
        await sql_repo.upsert_profile(user.user_id, "founder", "1", "ai-saas")

        profile = await sql_repo.get_profile(user.user_id)
        assert (profile.role, profile.company_size, profile.use_case) == ("founder", "1", "ai-saas")

    @pytest.mark.asyncio
    async def test_mark_completed_once(self, sql_repo, make_sql_identity):
        user = await make_sql_identity("a@acme.com")
        owner = await make_sql_identity("owner@acme.com")
        first_org = await sql_repo.insert_organization("First", "first", owner.user_id)
        second_org = await sql_repo.insert_organization("Second", "second", owner.user_id)
        await sql_repo.upsert_profile(user.user_id, *PROFILE)

        at = datetime.now(timezone.utc)
        assert await sql_repo.mark_completed(user.user_id, first_org.id, at) is True
        assert await sql_repo.mark_completed(user.user_id, second_org.id, at) is False

        profile = await sql_repo.get_profile(user.user_id)
        assert profile.completed_at is not None
        assert profile.destination_org_id == first_org.id

    @pytest.mark.asyncio
    async def test_destination_set_after_skip(self, sql_repo, make_sql_identity):
        user = await make_sql_identity("b@nomatch.com")
        await sql_repo.upsert_profile(user.user_id, *PROFILE)
        at = datetime.now(timezone.utc)
        assert await sql_repo.mark_completed(user.user_id, None, at) is True

        org = await sql_repo.insert_organization("Mine", "mine", user.user_id)
        assert await sql_repo.mark_completed(user.user_id, org.id, at) is False
        assert (await sql_repo.get_profile(user.user_id)).destination_org_id == org.id


class TestDomainPolicies:
    @pytest.mark.asyncio
    async def test_lists_open_policies_in_creation_order(self, sql_repo, make_sql_identity):
        owner = await make_sql_identity("owner@acme.com")
        first = await sql_repo.insert_organization("First", "first", owner.user_id)
        closed = await sql_repo.insert_organization("Closed", "closed", owner.user_id)
        second = await sql_repo.insert_organization("Second", "second", owner.user_id)
        await sql_repo.set_domain_policy(first.id, ["@acme.com"], True)
        await sql_repo.set_domain_policy(closed.id, ["@acme.com"], False)
        await sql_repo.set_domain_policy(second.id, ["@acme.io"], True)

        policies = await sql_repo.list_domain_policies("acme.com")
        assert [p.org_id for p in policies] == [first.id, second.id]
        assert len(await sql_repo.list_all_domain_policies()) == 3

    @pytest.mark.asyncio
    async def test_set_policy_overwrites(self, sql_repo, make_sql_identity):
        owner = await make_sql_identity("owner@acme.com")
        org = await sql_repo.insert_organization("Acme", "acme", owner.user_id)
        await sql_repo.set_domain_policy(org.id, ["@acme.com"], True)
        await sql_repo.set_domain_policy(org.id, ["@acme.io"], False)

        policy = await sql_repo.get_domain_policy(org.id)
        assert policy.domains == ["@acme.io"]
        assert policy.open is False

    @pytest.mark.asyncio
    async def test_domains_stored_normalized(self, sql_repo, make_sql_identity):
        owner = await make_sql_identity("owner@acme.com")
        org = await sql_repo.insert_organization("Acme", "acme", owner.user_id)
        await sql_repo.set_domain_policy(org.id, [" @ACME.com "], True)

        assert (await sql_repo.get_domain_policy(org.id)).domains == ["@acme.com"]
        assert [p.org_id for p in await sql_repo.list_domain_policies("acme.com")] == [org.id]

    def test_postgres_query_uses_containment(self):
        stmt = open_policies_query("ACME.com", "postgresql")
        compiled = stmt.compile(dialect=postgresql.dialect())

        assert "@>" in str(compiled)
        assert ["@acme.com"] in compiled.params.values()

    def test_other_dialects_filter_in_python(self):
        stmt = open_policies_query("acme.com", "sqlite")
        assert "@>" not in str(stmt.compile(dialect=sqlite.dialect()))

    def test_postgres_query_without_domain(self):
        stmt = open_policies_query("", "postgresql")
        assert "@>" not in str(stmt.compile(dialect=postgresql.dialect()))


class TestResolverOnSql:
    @pytest.mark.asyncio
    async def test_join_flow(self, sql_repo, make_sql_identity):
        resolver = OnboardingResolver(sql_repo)
        owner = await make_sql_identity("owner@acme.com")
        acme = await sql_repo.insert_organization("Acme", "acme", owner.user_id)
        await sql_repo.set_domain_policy(acme.id, ["@acme.com"], True)
        user = await make_sql_identity("a@acme.com")

        await resolver.submit_profile(user, *PROFILE)
        state = await resolver.get_state(user)
        assert state.stage == OnboardingStage.AWAITING_ORG_CHOICE
        assert [o.slug for o in state.joinable_organizations] == ["acme"]

        await resolver.join_organization(user, acme.id)
        await resolver.join_organization(user, acme.id)

        state = await resolver.get_state(user)
        assert state.stage == OnboardingStage.COMPLETED
        assert state.destination.id == acme.id
        assert await sql_repo.count_members([acme.id]) == {acme.id: 2}

    @pytest.mark.asyncio
    async def test_create_suffixes_slug(self, sql_repo, make_sql_identity):
        resolver = OnboardingResolver(sql_repo)
        first = await make_sql_identity("a@one.com")
        second = await make_sql_identity("b@two.com")
        for user in (first, second):
            await resolver.submit_profile(user, *PROFILE)

        assert (await resolver.create_organization(first, "Acme Inc")).slug == "acme-inc"
        assert (await resolver.create_organization(second, "Acme Inc")).slug == "acme-inc-2"

    @pytest.mark.asyncio
    async def test_creation_key_replay(self, sql_repo, make_sql_identity):
        resolver = OnboardingResolver(sql_repo)
        user = await make_sql_identity("a@one.com")
        await resolver.submit_profile(user, *PROFILE)

        first = await resolver.create_organization(user, "Acme Inc", creation_key="k-1")
        replay = await resolver.create_organization(user, "Acme Inc", creation_key="k-1")
        assert replay.id == first.id


class TestUnavailable:
    @pytest.mark.asyncio
    async def test_unreachable_store(self, tmp_path):
        engine = create_async_engine(
            f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'dir' / 'onboarding.db'}"
        )
        repo = SqlMembershipRepository(
            async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
        )
        try:
            with pytest.raises(RepositoryUnavailable):
                await repo.get_profile(uuid.uuid4())
        finally:
            await engine.dispose()
