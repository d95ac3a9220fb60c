"""Protocol for the membership persistence boundary.

Both adapters (SQL and in-memory) enforce the same uniqueness rules:
one membership per (user, org), one org per slug, one org per
(creator, creation_key), one profile per user.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional, Protocol, Sequence

from app.models.domain_policy import OrgDomainPolicy
from app.models.onboarding_profile import OnboardingProfile
from app.models.organization import Organization
from app.models.user import User
from app.models.user_org import UserOrg


class MembershipRepository(Protocol):
    """Backend interface for users, organizations, policies and memberships.

    Write methods raise ``ConflictError`` / ``SlugConflictError`` on
    uniqueness violations and ``RepositoryUnavailable`` on transport or
    storage failure.
    """

    async def get_user(self, user_id: uuid.UUID) -> Optional[User]: ...

    # Profiles
    async def get_profile(self, user_id: uuid.UUID) -> Optional[OnboardingProfile]: ...
    async def upsert_profile(
        self, user_id: uuid.UUID, role: str, company_size: str, use_case: str
    ) -> OnboardingProfile: ...
    async def mark_completed(
        self, user_id: uuid.UUID, org_id: Optional[uuid.UUID], at: datetime
    ) -> bool: ...

    # Domain policies
    async def list_domain_policies(self, email_domain: str) -> list[OrgDomainPolicy]: ...
    async def list_all_domain_policies(self) -> list[OrgDomainPolicy]: ...
    async def get_domain_policy(self, org_id: uuid.UUID) -> Optional[OrgDomainPolicy]: ...
    async def set_domain_policy(
        self, org_id: uuid.UUID, domains: Sequence[str], open: bool
    ) -> OrgDomainPolicy: ...

    # Organizations
    async def get_organization(self, org_id: uuid.UUID) -> Optional[Organization]: ...
    async def get_organizations(self, org_ids: Sequence[uuid.UUID]) -> list[Organization]: ...
    async def get_organization_by_slug(self, slug: str) -> Optional[Organization]: ...
    async def get_organization_by_creation_key(
        self, user_id: uuid.UUID, creation_key: str
    ) -> Optional[Organization]: ...
    async def insert_organization(
        self,
        name: str,
        slug: str,
        creator_user_id: uuid.UUID,
        creation_key: Optional[str] = None,
    ) -> Organization: ...
    async def update_organization(
        self,
        org_id: uuid.UUID,
        *,
        name: Optional[str] = None,
        slug: Optional[str] = None,
        avatar_url: Optional[str] = None,
    ) -> Organization: ...

    # Memberships
    async def insert_membership(
        self, user_id: uuid.UUID, org_id: uuid.UUID, role: str
    ) -> UserOrg: ...
    async def get_membership(self, user_id: uuid.UUID, org_id: uuid.UUID) -> Optional[UserOrg]: ...
    async def has_membership(self, user_id: uuid.UUID, org_id: uuid.UUID) -> bool: ...
    async def count_members(self, org_ids: Sequence[uuid.UUID]) -> dict[uuid.UUID, int]: ...
    async def has_any_membership(self, user_id: uuid.UUID) -> bool: ...
    async def sample_members(
        self, org_ids: Sequence[uuid.UUID], limit: int
    ) -> dict[uuid.UUID, list[User]]:
        """Up to ``limit`` earliest members per org, for avatar previews."""
        ...
