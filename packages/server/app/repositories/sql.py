"""
SQL adapter for the membership repository (SQLModel over an async engine).

Each public method runs in its own short transaction, so the decisive
writes (membership insert, organization + creator membership insert) are
atomic and the database's unique indexes are the final authority.
"""

from __future__ import annotations

import uuid
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Optional, Sequence

import structlog
from sqlalchemy import func, type_coerce, update
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import select

from app.core.database import get_session_context
from app.core.errors import ConflictError, OrganizationNotFound, RepositoryUnavailable, SlugConflictError
from app.models.base import utcnow
from app.models.domain_policy import OrgDomainPolicy
from app.models.onboarding_profile import OnboardingProfile
from app.models.organization import Organization
from app.models.user import User
from app.models.user_org import UserOrg

from onboarding_shared.schemas.common import Role

log = structlog.get_logger()


class SqlMembershipRepository:
    """Membership repository backed by the relational store."""

    def __init__(self, session_factory: async_sessionmaker) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def _unit(self) -> AsyncIterator[AsyncSession]:
        try:
            async with get_session_context(self._session_factory) as session:
                yield session
        except IntegrityError as exc:
            raise ConflictError(str(exc.orig)) from exc
        except (OperationalError, InterfaceError, OSError) as exc:
            log.error("repository.unavailable", error=str(exc))
            raise RepositoryUnavailable("Membership store is unavailable") from exc

    # ── Users ──

    async def get_user(self, user_id: uuid.UUID) -> Optional[User]:
        async with self._unit() as session:
            return await session.get(User, user_id)

    # ── Profiles ──

    async def get_profile(self, user_id: uuid.UUID) -> Optional[OnboardingProfile]:
        async with self._unit() as session:
            return await session.get(OnboardingProfile, user_id)

    async def upsert_profile(
        self, user_id: uuid.UUID, role: str, company_size: str, use_case: str
    ) -> OnboardingProfile:
        try:
            return await self._write_profile(user_id, role, company_size, use_case)
        except ConflictError:
            # A concurrent first submission won the insert; this pass updates it.
            return await self._write_profile(user_id, role, company_size, use_case)

    async def _write_profile(
        self, user_id: uuid.UUID, role: str, company_size: str, use_case: str
    ) -> OnboardingProfile:
        async with self._unit() as session:
            profile = await session.get(OnboardingProfile, user_id)
            if profile is None:
                profile = OnboardingProfile(
                    user_id=user_id,
                    role=role,
                    company_size=company_size,
                    use_case=use_case,
                )
            else:
                profile.role = role
                profile.company_size = company_size
                profile.use_case = use_case
                profile.updated_at = utcnow()
            session.add(profile)
            await session.flush()
        return profile

    async def mark_completed(
        self, user_id: uuid.UUID, org_id: Optional[uuid.UUID], at: datetime
    ) -> bool:
        """Set completion once and the destination only while unset.

        Returns True when this call performed the transition.
        """
        async with self._unit() as session:
            result = await session.execute(
                update(OnboardingProfile)
                .where(
                    OnboardingProfile.user_id == user_id,
                    OnboardingProfile.completed_at.is_(None),
                )
                .values(completed_at=at, updated_at=at)
            )
            newly_completed = result.rowcount == 1
            if org_id is not None:
                await session.execute(
                    update(OnboardingProfile)
                    .where(
                        OnboardingProfile.user_id == user_id,
                        OnboardingProfile.destination_org_id.is_(None),
                    )
                    .values(destination_org_id=org_id)
                )
        return newly_completed

    # ── Domain policies ──

    async def list_domain_policies(self, email_domain: str) -> list[OrgDomainPolicy]:
        """Open policies that may list ``email_domain``; the caller does the exact match."""
        async with self._unit() as session:
            stmt = open_policies_query(email_domain, session.bind.dialect.name)
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def list_all_domain_policies(self) -> list[OrgDomainPolicy]:
        async with self._unit() as session:
            result = await session.execute(
                select(OrgDomainPolicy).order_by(OrgDomainPolicy.created_at, OrgDomainPolicy.org_id)
            )
            return list(result.scalars().all())

    async def get_domain_policy(self, org_id: uuid.UUID) -> Optional[OrgDomainPolicy]:
        async with self._unit() as session:
            return await session.get(OrgDomainPolicy, org_id)

    async def set_domain_policy(
        self, org_id: uuid.UUID, domains: Sequence[str], open: bool
    ) -> OrgDomainPolicy:
        # Stored lowercase and trimmed so the JSONB containment prefilter is exact.
        domains = [d.strip().lower() for d in domains]
        async with self._unit() as session:
            policy = await session.get(OrgDomainPolicy, org_id)
            if policy is None:
                policy = OrgDomainPolicy(org_id=org_id, domains=domains, open=open)
            else:
                policy.domains = domains
                policy.open = open
                policy.updated_at = utcnow()
            session.add(policy)
            await session.flush()
        log.info("domain_policy.updated", org_id=str(org_id), domains=list(domains), open=open)
        return policy

    # ── Organizations ──

    async def get_organization(self, org_id: uuid.UUID) -> Optional[Organization]:
        async with self._unit() as session:
            return await session.get(Organization, org_id)

    async def get_organizations(self, org_ids: Sequence[uuid.UUID]) -> list[Organization]:
        if not org_ids:
            return []
        async with self._unit() as session:
            result = await session.execute(
                select(Organization).where(Organization.id.in_(list(org_ids)))
            )
            by_id = {org.id: org for org in result.scalars().all()}
        return [by_id[i] for i in org_ids if i in by_id]

    async def get_organization_by_slug(self, slug: str) -> Optional[Organization]:
        async with self._unit() as session:
            result = await session.execute(select(Organization).where(Organization.slug == slug))
            return result.scalar_one_or_none()

    async def get_organization_by_creation_key(
        self, user_id: uuid.UUID, creation_key: str
    ) -> Optional[Organization]:
        async with self._unit() as session:
            result = await session.execute(
                select(Organization).where(
                    Organization.created_by == user_id,
                    Organization.creation_key == creation_key,
                )
            )
            return result.scalar_one_or_none()

    async def insert_organization(
        self,
        name: str,
        slug: str,
        creator_user_id: uuid.UUID,
        creation_key: Optional[str] = None,
    ) -> Organization:
        """Create the org and the creator's administrator membership together."""
        try:
            async with self._unit() as session:
                org = Organization(
                    name=name,
                    slug=slug,
                    created_by=creator_user_id,
                    creation_key=creation_key,
                )
                session.add(org)
                await session.flush()
                session.add(
                    UserOrg(user_id=creator_user_id, org_id=org.id, role=Role.ADMIN.value)
                )
                await session.flush()
        except ConflictError:
            if creation_key is not None and await self.get_organization_by_creation_key(
                creator_user_id, creation_key
            ):
                raise ConflictError(
                    "Organization already created for this key",
                    constraint="uq_org_creation_key",
                )
            if await self.get_organization_by_slug(slug):
                raise SlugConflictError(slug)
            raise
        return org

    async def update_organization(
        self,
        org_id: uuid.UUID,
        *,
        name: Optional[str] = None,
        slug: Optional[str] = None,
        avatar_url: Optional[str] = None,
    ) -> Organization:
        try:
            async with self._unit() as session:
                org = await session.get(Organization, org_id)
                if org is None:
                    raise OrganizationNotFound("Organization not found", org_id=org_id)
                if name is not None:
                    org.name = name
                if slug is not None:
                    org.slug = slug
                if avatar_url is not None:
                    org.avatar_url = avatar_url
                org.updated_at = utcnow()
                session.add(org)
                await session.flush()
        except ConflictError:
            if slug is not None:
                raise SlugConflictError(slug)
            raise
        return org

    # ── Memberships ──

    async def insert_membership(
        self, user_id: uuid.UUID, org_id: uuid.UUID, role: str
    ) -> UserOrg:
        try:
            async with self._unit() as session:
                membership = UserOrg(user_id=user_id, org_id=org_id, role=role)
                session.add(membership)
                await session.flush()
        except ConflictError as exc:
            raise ConflictError("Membership already exists", constraint="users_orgs") from exc
        return membership

    async def get_membership(self, user_id: uuid.UUID, org_id: uuid.UUID) -> Optional[UserOrg]:
        async with self._unit() as session:
            return await session.get(UserOrg, (user_id, org_id))

    async def has_membership(self, user_id: uuid.UUID, org_id: uuid.UUID) -> bool:
        return await self.get_membership(user_id, org_id) is not None

    async def count_members(self, org_ids: Sequence[uuid.UUID]) -> dict[uuid.UUID, int]:
        if not org_ids:
            return {}
        async with self._unit() as session:
            result = await session.execute(
                select(UserOrg.org_id, func.count())
                .where(UserOrg.org_id.in_(list(org_ids)))
                .group_by(UserOrg.org_id)
            )
            return {org_id: count for org_id, count in result.all()}

    async def has_any_membership(self, user_id: uuid.UUID) -> bool:
        async with self._unit() as session:
            result = await session.execute(
                select(UserOrg.org_id).where(UserOrg.user_id == user_id).limit(1)
            )
            return result.first() is not None

    async def sample_members(
        self, org_ids: Sequence[uuid.UUID], limit: int
    ) -> dict[uuid.UUID, list[User]]:
        if not org_ids or limit < 1:
            return {}
        async with self._unit() as session:
            result = await session.execute(
                select(UserOrg.org_id, User)
                .join(User, User.id == UserOrg.user_id)
                .where(UserOrg.org_id.in_(list(org_ids)))
                .order_by(UserOrg.joined_at, UserOrg.user_id)
            )
            rows = result.all()
        samples: dict[uuid.UUID, list[User]] = {}
        for org_id, user in rows:
            members = samples.setdefault(org_id, [])
            if len(members) < limit:
                members.append(user)
        return samples


def open_policies_query(email_domain: str, dialect_name: str):
    """Open policies in creation order.

    On Postgres the JSONB ``@>`` operator narrows the rows to policies that
    list the domain; other dialects return every open policy and leave the
    matching to ``find_joinable``.
    """
    stmt = select(OrgDomainPolicy).where(OrgDomainPolicy.open == True)  # noqa: E712
    if dialect_name == "postgresql" and email_domain:
        stmt = stmt.where(
            type_coerce(OrgDomainPolicy.domains, JSONB).contains([f"@{email_domain.lower()}"])
        )
    return stmt.order_by(OrgDomainPolicy.created_at, OrgDomainPolicy.org_id)
