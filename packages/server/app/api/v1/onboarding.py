"""
Onboarding API endpoints.

GET    /api/v1/onboarding/state                  — Current stage, profile, joinable orgs
GET    /api/v1/onboarding/options                — Profile option sets with labels
POST   /api/v1/onboarding/profile                — Submit (or resubmit) profile answers
GET    /api/v1/onboarding/joinable-organizations — Orgs the caller's email domain may join
POST   /api/v1/orgs                              — Create a new org (caller becomes admin)
POST   /api/v1/orgs/{org_id}/join                — Join an org through its domain policy
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends

from app.core.auth import get_current_identity
from app.core.dependencies import get_resolver
from app.core.identity import Identity
from app.services.onboarding import OnboardingResolver

from onboarding_shared.schemas.common import (
    COMPANY_SIZE_LABELS,
    PROFILE_ROLE_LABELS,
    USE_CASE_LABELS,
    ErrorResponse,
)
from onboarding_shared.schemas.onboarding import (
    JoinableOrgListResponse,
    OnboardingOptionsResponse,
    OnboardingStateResponse,
    OptionItem,
    OrgCreateRequest,
    OrgDestination,
    ProfileResponse,
    ProfileSubmitRequest,
)

# Domain errors share one envelope; see app.main.onboarding_error_handler
ERROR_RESPONSES = {
    status: {"model": ErrorResponse} for status in (403, 404, 409, 503)
}

router = APIRouter(responses=ERROR_RESPONSES)


@router.get("/onboarding/state", response_model=OnboardingStateResponse, tags=["Onboarding"])
async def get_state(
    identity: Identity = Depends(get_current_identity),
    resolver: OnboardingResolver = Depends(get_resolver),
):
    return await resolver.get_state(identity)


@router.get("/onboarding/options", response_model=OnboardingOptionsResponse, tags=["Onboarding"])
async def get_options():
    """Option sets for the profile form, in display order."""
    return OnboardingOptionsResponse(
        roles=[OptionItem(value=k.value, label=v) for k, v in PROFILE_ROLE_LABELS.items()],
        company_sizes=[OptionItem(value=k.value, label=v) for k, v in COMPANY_SIZE_LABELS.items()],
        use_cases=[OptionItem(value=k.value, label=v) for k, v in USE_CASE_LABELS.items()],
    )


@router.post("/onboarding/profile", response_model=ProfileResponse, tags=["Onboarding"])
async def submit_profile(
    body: ProfileSubmitRequest,
    identity: Identity = Depends(get_current_identity),
    resolver: OnboardingResolver = Depends(get_resolver),
):
    return await resolver.submit_profile(identity, body.role, body.company_size, body.use_case)


@router.get(
    "/onboarding/joinable-organizations",
    response_model=JoinableOrgListResponse,
    tags=["Onboarding"],
)
async def list_joinable_organizations(
    identity: Identity = Depends(get_current_identity),
    resolver: OnboardingResolver = Depends(get_resolver),
):
    return JoinableOrgListResponse(data=await resolver.list_joinable(identity))


@router.post("/orgs", response_model=OrgDestination, status_code=201, tags=["Organizations"])
async def create_org(
    body: OrgCreateRequest,
    identity: Identity = Depends(get_current_identity),
    resolver: OnboardingResolver = Depends(get_resolver),
):
    """Create a new organization; a generated name is used when none is given."""
    return await resolver.create_organization(identity, body.name, body.creation_key)


@router.post("/orgs/{org_id}/join", response_model=OrgDestination, tags=["Organizations"])
async def join_org(
    org_id: uuid.UUID,
    identity: Identity = Depends(get_current_identity),
    resolver: OnboardingResolver = Depends(get_resolver),
):
    """Join an organization. Repeating the call returns the existing membership."""
    return await resolver.join_organization(identity, org_id)
