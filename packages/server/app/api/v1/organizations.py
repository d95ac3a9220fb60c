"""
Organization setup endpoints (administrators of the org only).

GET    /api/v1/orgs/{orgSlug}/setup/suggestion — Prefill from the caller's email
PATCH  /api/v1/orgs/{orgSlug}/setup            — Rename and set domain-join policy
PUT    /api/v1/orgs/{orgSlug}/avatar           — Upload a logo (raw image body)
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Header, Request

from app.core.auth import get_current_identity
from app.core.config import get_settings
from app.core.dependencies import get_blob_storage, get_repository
from app.core.identity import Identity
from app.repositories.base import MembershipRepository
from app.services import organization_setup as setup_service
from app.services.blob_storage import BlobStorage

from .onboarding import ERROR_RESPONSES

from onboarding_shared.schemas.organizations import (
    OrgResponse,
    OrgSetupRequest,
    OrgSetupSuggestion,
)

router = APIRouter(responses=ERROR_RESPONSES)


@router.get("/setup/suggestion", response_model=OrgSetupSuggestion, tags=["Organizations"])
async def get_setup_suggestion(
    orgSlug: str,
    identity: Identity = Depends(get_current_identity),
    repo: MembershipRepository = Depends(get_repository),
):
    await setup_service.require_org_admin(repo, identity, orgSlug)
    return setup_service.suggest_setup(identity.email)


@router.patch("/setup", response_model=OrgResponse, tags=["Organizations"])
async def setup_org(
    orgSlug: str,
    body: OrgSetupRequest,
    identity: Identity = Depends(get_current_identity),
    repo: MembershipRepository = Depends(get_repository),
):
    """Save the setup dialog. The slug follows the new name."""
    return await setup_service.setup_organization(
        repo,
        identity,
        orgSlug,
        body,
        max_slug_attempts=get_settings().slug_max_attempts,
    )


@router.put("/avatar", response_model=OrgResponse, tags=["Organizations"])
async def upload_avatar(
    orgSlug: str,
    request: Request,
    content_type: str = Header(default="application/octet-stream"),
    x_filename: str = Header(default="logo.png"),
    identity: Identity = Depends(get_current_identity),
    repo: MembershipRepository = Depends(get_repository),
    storage: BlobStorage = Depends(get_blob_storage),
):
    data = await request.body()
    return await setup_service.upload_avatar(
        repo, storage, identity, orgSlug, x_filename, content_type, data
    )
