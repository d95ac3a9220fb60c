"""
Onboarding resolver. Takes a freshly authenticated user to exactly one
organizational home, by joining an org whose domain policy admits the
user's email domain or by creating a new org.

Holds no state between calls; every operation recomputes from the
repository. Duplicate and concurrent requests are made safe by the
repository's unique constraints plus the translations below:

- duplicate join   -> AlreadyMember -> success with the existing membership
- slug collision   -> retry with -2, -3, ... up to ``max_slug_attempts``
- duplicate create with the same ``creation_key`` -> the first org
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog

from app.core.identity import Identity
from app.core.errors import (
    AlreadyMember,
    ConflictError,
    DomainNotAllowed,
    OrganizationNotFound,
    ProfileRequired,
    SlugConflictError,
    SlugExhausted,
    ValidationError,
)
from app.models.base import utcnow
from app.models.onboarding_profile import OnboardingProfile
from app.models.organization import Organization
from app.models.user_org import UserOrg
from app.repositories.base import MembershipRepository
from app.services.analytics import AnalyticsSink, NullAnalyticsSink, emit_safely
from app.services.domains import email_domain, find_joinable
from app.services.onboarding_state import (
    check_transition,
    parse_profile_answers,
    stage_after_profile,
    stored_stage,
)
from app.services.slugs import NameSupplier, candidate_slugs, random_org_name, slugify

from onboarding_shared.schemas.common import Role
from onboarding_shared.schemas.onboarding import (
    CompletionPath,
    JoinableOrg,
    MemberPreview,
    OnboardingStage,
    OnboardingStateResponse,
    OrgDestination,
    ProfileResponse,
)

log = structlog.get_logger()

DEFAULT_MAX_SLUG_ATTEMPTS = 5
SAMPLE_MEMBER_LIMIT = 4


class OnboardingResolver:
    def __init__(
        self,
        repo: MembershipRepository,
        *,
        analytics: Optional[AnalyticsSink] = None,
        name_supplier: NameSupplier = random_org_name,
        max_slug_attempts: int = DEFAULT_MAX_SLUG_ATTEMPTS,
    ) -> None:
        if max_slug_attempts < 1:
            raise ValueError("max_slug_attempts must be at least 1")
        self._repo = repo
        self._analytics = analytics or NullAnalyticsSink()
        self._name_supplier = name_supplier
        self._max_slug_attempts = max_slug_attempts

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_state(self, identity: Identity) -> OnboardingStateResponse:
        """Current stage; joinable orgs are recomputed until COMPLETED."""
        profile = await self._repo.get_profile(identity.user_id)
        stage = stored_stage(profile)

        if stage == OnboardingStage.NOT_STARTED:
            return OnboardingStateResponse(stage=stage)

        if stage == OnboardingStage.COMPLETED:
            destination = await self._destination(identity.user_id, profile.destination_org_id)
            return OnboardingStateResponse(
                stage=stage,
                profile=_profile_response(profile),
                destination=destination,
            )

        return OnboardingStateResponse(
            stage=stage,
            profile=_profile_response(profile),
            joinable_organizations=await self.list_joinable(identity),
        )

    async def list_joinable(self, identity: Identity) -> list[JoinableOrg]:
        domain = email_domain(identity.email)
        if not domain:
            return []
        policies = await self._repo.list_domain_policies(domain)
        org_ids = find_joinable(domain, policies)
        if not org_ids:
            return []
        orgs = await self._repo.get_organizations(org_ids)
        counts = await self._repo.count_members(org_ids)
        samples = await self._repo.sample_members(org_ids, SAMPLE_MEMBER_LIMIT)
        return [
            JoinableOrg(
                id=org.id,
                name=org.name,
                slug=org.slug,
                avatar_url=org.avatar_url,
                member_count=counts.get(org.id, 0),
                sample_members=[
                    MemberPreview(id=u.id, display_name=u.display_name, avatar_url=u.avatar_url)
                    for u in samples.get(org.id, [])
                ],
            )
            for org in orgs
        ]

    # ------------------------------------------------------------------
    # Profile
    # ------------------------------------------------------------------

    async def submit_profile(
        self, identity: Identity, role: str, company_size: str, use_case: str
    ) -> ProfileResponse:
        """Upsert answers and decide join-or-skip once.

        The decision is still open while the user has neither completed
        onboarding nor joined anything, so a retry after a partial failure
        reaches it. All reads happen before the profile write.
        """
        role_v, size_v, use_case_v = parse_profile_answers(role, company_size, use_case)

        existing = await self._repo.get_profile(identity.user_id)
        before = stored_stage(existing)
        undecided = before == OnboardingStage.NOT_STARTED or (
            before == OnboardingStage.AWAITING_ORG_CHOICE
            and not await self._repo.has_any_membership(identity.user_id)
        )
        joinable = await self.list_joinable(identity) if undecided else []

        profile = await self._repo.upsert_profile(
            identity.user_id, role_v.value, size_v.value, use_case_v.value
        )
        log.info(
            "onboarding.profile_submitted",
            user_id=str(identity.user_id),
            role=role_v.value,
            company_size=size_v.value,
            use_case=use_case_v.value,
            resubmission=existing is not None,
        )

        if undecided:
            after = stage_after_profile(len(joinable))
            if before == OnboardingStage.NOT_STARTED:
                check_transition(before, OnboardingStage.PROFILE_COLLECTED)
                check_transition(OnboardingStage.PROFILE_COLLECTED, after)
            elif after == OnboardingStage.COMPLETED:
                check_transition(before, after)
            if after == OnboardingStage.COMPLETED:
                await self._complete(identity.user_id, None, CompletionPath.SKIP)
                profile = await self._repo.get_profile(identity.user_id) or profile
            else:
                log.info(
                    "onboarding.awaiting_org_choice",
                    user_id=str(identity.user_id),
                    joinable=len(joinable),
                )

        return _profile_response(profile)

    # ------------------------------------------------------------------
    # Join
    # ------------------------------------------------------------------

    async def join_organization(self, identity: Identity, org_id: uuid.UUID) -> OrgDestination:
        await self._require_profile(identity.user_id)

        org = await self._repo.get_organization(org_id)
        if org is None:
            raise OrganizationNotFound("Organization not found", org_id=org_id)

        try:
            membership = await self._join(identity, org)
        except AlreadyMember:
            membership = await self._repo.get_membership(identity.user_id, org.id)
            log.info("membership.already_member", user_id=str(identity.user_id), org_id=str(org.id))

        await self._complete(identity.user_id, org.id, CompletionPath.JOIN)
        return _destination(org, membership.role)

    async def _join(self, identity: Identity, org: Organization) -> UserOrg:
        if await self._repo.has_membership(identity.user_id, org.id):
            raise AlreadyMember("Already a member", org_id=org.id)

        # Re-check against the live policy; the client's list may be stale.
        domain = email_domain(identity.email)
        policy = await self._repo.get_domain_policy(org.id)
        if policy is None or org.id not in find_joinable(domain, [policy]):
            log.info(
                "membership.domain_not_allowed",
                user_id=str(identity.user_id),
                org_id=str(org.id),
                domain=domain,
            )
            raise DomainNotAllowed(
                "Your email domain is not allowed to join this organization",
                org_id=org.id,
            )

        try:
            membership = await self._repo.insert_membership(
                identity.user_id, org.id, Role.MEMBER.value
            )
        except ConflictError:
            raise AlreadyMember("Already a member", org_id=org.id) from None

        log.info(
            "membership.created",
            user_id=str(identity.user_id),
            org_id=str(org.id),
            role=membership.role,
        )
        return membership

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def create_organization(
        self,
        identity: Identity,
        requested_name: Optional[str] = None,
        creation_key: Optional[str] = None,
    ) -> OrgDestination:
        await self._require_profile(identity.user_id)

        if creation_key is not None:
            existing = await self._repo.get_organization_by_creation_key(
                identity.user_id, creation_key
            )
            if existing is not None:
                return await self._replayed_create(identity, existing)

        name = (requested_name or "").strip() or self._name_supplier()
        base = slugify(name)
        if not base:
            raise ValidationError(
                f"Organization name '{name}' has no URL-safe characters", field="name"
            )

        org: Optional[Organization] = None
        for slug in candidate_slugs(base, self._max_slug_attempts):
            try:
                org = await self._repo.insert_organization(
                    name, slug, identity.user_id, creation_key
                )
                break
            except SlugConflictError:
                log.info("org.slug_collision", slug=slug, user_id=str(identity.user_id))
            except ConflictError:
                # Same creation_key committed by a concurrent request.
                if creation_key is None:
                    raise
                existing = await self._repo.get_organization_by_creation_key(
                    identity.user_id, creation_key
                )
                if existing is None:
                    raise
                return await self._replayed_create(identity, existing)

        if org is None:
            log.warning(
                "org.slug_exhausted",
                base=base,
                attempts=self._max_slug_attempts,
                user_id=str(identity.user_id),
            )
            raise SlugExhausted(
                f"Could not find a free slug for '{name}' after "
                f"{self._max_slug_attempts} attempts; choose a different name",
                base=base,
            )

        log.info("org.created", org_id=str(org.id), slug=org.slug, creator=str(identity.user_id))
        await self._complete(identity.user_id, org.id, CompletionPath.CREATE)
        return _destination(org, Role.ADMIN.value, created=True)

    async def _replayed_create(self, identity: Identity, org: Organization) -> OrgDestination:
        log.info("org.create_replayed", org_id=str(org.id), user_id=str(identity.user_id))
        await self._complete(identity.user_id, org.id, CompletionPath.CREATE)
        return _destination(org, Role.ADMIN.value)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _require_profile(self, user_id: uuid.UUID) -> OnboardingProfile:
        profile = await self._repo.get_profile(user_id)
        if profile is None:
            raise ProfileRequired("Submit your profile before choosing an organization")
        return profile

    async def _complete(
        self, user_id: uuid.UUID, org_id: Optional[uuid.UUID], path: CompletionPath
    ) -> None:
        """Enter COMPLETED; a repeat is a no-op that keeps the first destination."""
        newly_completed = await self._repo.mark_completed(user_id, org_id, utcnow())
        if not newly_completed:
            return
        log.info(
            "onboarding.completed",
            user_id=str(user_id),
            path=path.value,
            org_id=str(org_id) if org_id else None,
        )
        await emit_safely(
            self._analytics,
            "onboarding.completed",
            {
                "user_id": str(user_id),
                "path": path.value,
                "organization_id": str(org_id) if org_id else None,
            },
        )

    async def _destination(
        self, user_id: uuid.UUID, org_id: Optional[uuid.UUID]
    ) -> Optional[OrgDestination]:
        if org_id is None:
            return None
        org = await self._repo.get_organization(org_id)
        if org is None:
            return None
        membership = await self._repo.get_membership(user_id, org_id)
        role = membership.role if membership else Role.MEMBER.value
        return _destination(org, role)


def _destination(org: Organization, role: str, *, created: bool = False) -> OrgDestination:
    return OrgDestination(id=org.id, name=org.name, slug=org.slug, role=role, created=created)


def _profile_response(profile: OnboardingProfile) -> ProfileResponse:
    return ProfileResponse(
        user_id=profile.user_id,
        role=profile.role,
        company_size=profile.company_size,
        use_case=profile.use_case,
        completed_at=profile.completed_at,
        destination_org_id=profile.destination_org_id,
    )
