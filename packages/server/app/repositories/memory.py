"""In-memory membership repository for tests and local development.

Enforces the same uniqueness rules as the SQL schema. Every method yields
to the event loop first, so concurrent callers interleave the way they
would around real I/O.
"""

from __future__ import annotations

import asyncio
import uuid
from datetime import datetime
from typing import Optional, Sequence

from app.core.errors import ConflictError, OrganizationNotFound, RepositoryUnavailable, SlugConflictError
from app.models.base import utcnow
from app.models.domain_policy import OrgDomainPolicy
from app.models.onboarding_profile import OnboardingProfile
from app.models.organization import Organization
from app.models.user import User
from app.models.user_org import UserOrg

from onboarding_shared.schemas.common import Role


class InMemoryMembershipRepository:
    """Dict-backed repository. Set ``available = False`` to simulate an outage."""

    def __init__(self) -> None:
        self.available = True
        self._users: dict[uuid.UUID, User] = {}
        self._profiles: dict[uuid.UUID, OnboardingProfile] = {}
        self._orgs: dict[uuid.UUID, Organization] = {}
        self._policies: dict[uuid.UUID, OrgDomainPolicy] = {}
        self._memberships: dict[tuple[uuid.UUID, uuid.UUID], UserOrg] = {}

    async def _io(self) -> None:
        await asyncio.sleep(0)
        if not self.available:
            raise RepositoryUnavailable("Membership store is unavailable")

    # ── Users ──

    def add_user(self, email: str, user_id: Optional[uuid.UUID] = None) -> User:
        """Seed a user as the identity provider would."""
        user = User(id=user_id or uuid.uuid4(), email=email)
        self._users[user.id] = user
        return user

    async def get_user(self, user_id: uuid.UUID) -> Optional[User]:
        await self._io()
        return self._users.get(user_id)

    # ── Profiles ──

    async def get_profile(self, user_id: uuid.UUID) -> Optional[OnboardingProfile]:
        await self._io()
        return self._profiles.get(user_id)

    async def upsert_profile(
        self, user_id: uuid.UUID, role: str, company_size: str, use_case: str
    ) -> OnboardingProfile:
        await self._io()
        profile = self._profiles.get(user_id)
        if profile is None:
            profile = OnboardingProfile(
                user_id=user_id, role=role, company_size=company_size, use_case=use_case
            )
            self._profiles[user_id] = profile
        else:
            profile.role = role
            profile.company_size = company_size
            profile.use_case = use_case
            profile.updated_at = utcnow()
        return profile

    async def mark_completed(
        self, user_id: uuid.UUID, org_id: Optional[uuid.UUID], at: datetime
    ) -> bool:
        await self._io()
        profile = self._profiles.get(user_id)
        if profile is None:
            return False
        newly_completed = profile.completed_at is None
        if newly_completed:
            profile.completed_at = at
            profile.updated_at = at
        if org_id is not None and profile.destination_org_id is None:
            profile.destination_org_id = org_id
        return newly_completed

    # ── Domain policies ──

    async def list_domain_policies(self, email_domain: str) -> list[OrgDomainPolicy]:
        await self._io()
        return [p for p in self._policies.values() if p.open]

    async def list_all_domain_policies(self) -> list[OrgDomainPolicy]:
        await self._io()
        return list(self._policies.values())

    async def get_domain_policy(self, org_id: uuid.UUID) -> Optional[OrgDomainPolicy]:
        await self._io()
        return self._policies.get(org_id)

    async def set_domain_policy(
        self, org_id: uuid.UUID, domains: Sequence[str], open: bool
    ) -> OrgDomainPolicy:
        await self._io()
        domains = [d.strip().lower() for d in domains]
        policy = self._policies.get(org_id)
        if policy is None:
            policy = OrgDomainPolicy(org_id=org_id, domains=domains, open=open)
            self._policies[org_id] = policy
        else:
            policy.domains = domains
            policy.open = open
            policy.updated_at = utcnow()
        return policy

    # ── Organizations ──

    async def get_organization(self, org_id: uuid.UUID) -> Optional[Organization]:
        await self._io()
        return self._orgs.get(org_id)

    async def get_organizations(self, org_ids: Sequence[uuid.UUID]) -> list[Organization]:
        await self._io()
        return [self._orgs[i] for i in org_ids if i in self._orgs]

    async def get_organization_by_slug(self, slug: str) -> Optional[Organization]:
        await self._io()
        return next((o for o in self._orgs.values() if o.slug == slug), None)

    async def get_organization_by_creation_key(
        self, user_id: uuid.UUID, creation_key: str
    ) -> Optional[Organization]:
        await self._io()
        return self._find_by_creation_key(user_id, creation_key)

    def _find_by_creation_key(
        self, user_id: uuid.UUID, creation_key: str
    ) -> Optional[Organization]:
        return next(
            (
                o for o in self._orgs.values()
                if o.created_by == user_id and o.creation_key == creation_key
            ),
            None,
        )

    async def insert_organization(
        self,
        name: str,
        slug: str,
        creator_user_id: uuid.UUID,
        creation_key: Optional[str] = None,
    ) -> Organization:
        await self._io()
        if creation_key is not None and self._find_by_creation_key(creator_user_id, creation_key):
            raise ConflictError(
                "Organization already created for this key",
                constraint="uq_org_creation_key",
            )
        if any(o.slug == slug for o in self._orgs.values()):
            raise SlugConflictError(slug)
        org = Organization(
            name=name, slug=slug, created_by=creator_user_id, creation_key=creation_key
        )
        self._orgs[org.id] = org
        self._memberships[(creator_user_id, org.id)] = UserOrg(
            user_id=creator_user_id, org_id=org.id, role=Role.ADMIN.value
        )
        return org

    async def update_organization(
        self,
        org_id: uuid.UUID,
        *,
        name: Optional[str] = None,
        slug: Optional[str] = None,
        avatar_url: Optional[str] = None,
    ) -> Organization:
        await self._io()
        org = self._orgs.get(org_id)
        if org is None:
            raise OrganizationNotFound("Organization not found", org_id=org_id)
        if slug is not None and any(
            o.slug == slug and o.id != org_id for o in self._orgs.values()
        ):
            raise SlugConflictError(slug)
        if name is not None:
            org.name = name
        if slug is not None:
            org.slug = slug
        if avatar_url is not None:
            org.avatar_url = avatar_url
        org.updated_at = utcnow()
        return org

    # ── Memberships ──

    async def insert_membership(
        self, user_id: uuid.UUID, org_id: uuid.UUID, role: str
    ) -> UserOrg:
        await self._io()
        key = (user_id, org_id)
        if key in self._memberships:
            raise ConflictError("Membership already exists", constraint="users_orgs")
        membership = UserOrg(user_id=user_id, org_id=org_id, role=role)
        self._memberships[key] = membership
        return membership

    async def get_membership(self, user_id: uuid.UUID, org_id: uuid.UUID) -> Optional[UserOrg]:
        await self._io()
        return self._memberships.get((user_id, org_id))

    async def has_membership(self, user_id: uuid.UUID, org_id: uuid.UUID) -> bool:
        return await self.get_membership(user_id, org_id) is not None

    async def count_members(self, org_ids: Sequence[uuid.UUID]) -> dict[uuid.UUID, int]:
        await self._io()
        counts: dict[uuid.UUID, int] = {}
        for _, org_id in self._memberships:
            if org_id in org_ids:
                counts[org_id] = counts.get(org_id, 0) + 1
        return counts

    def memberships_for(self, user_id: uuid.UUID) -> list[UserOrg]:
        return [m for (uid, _), m in self._memberships.items() if uid == user_id]

    async def has_any_membership(self, user_id: uuid.UUID) -> bool:
        await self._io()
        return any(uid == user_id for uid, _ in self._memberships)

    async def sample_members(
        self, org_ids: Sequence[uuid.UUID], limit: int
    ) -> dict[uuid.UUID, list[User]]:
        await self._io()
        samples: dict[uuid.UUID, list[User]] = {}
        for (user_id, org_id), membership in self._memberships.items():
            if org_id not in org_ids or user_id not in self._users:
                continue
            members = samples.setdefault(org_id, [])
            if len(members) < limit:
                members.append(self._users[user_id])
        return samples
