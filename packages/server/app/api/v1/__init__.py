"""
API v1 Router

Org-scoped setup endpoints are prefixed with /orgs/{orgSlug}.
"""

from fastapi import APIRouter
from . import onboarding, organizations

router = APIRouter()

router.include_router(onboarding.router)
router.include_router(organizations.router, prefix="/orgs/{orgSlug}", tags=["Organizations"])


@router.get("/", tags=["API"])
async def api_root():
    """API root — returns version and available endpoints."""
    return {
        "api": "v1",
        "version": "0.1.0",
        "endpoints": [
            "/onboarding/state",
            "/onboarding/options",
            "/onboarding/profile",
            "/onboarding/joinable-organizations",
            "/orgs",
            "/orgs/{orgId}/join",
            "/orgs/{orgSlug}/setup",
            "/orgs/{orgSlug}/avatar",
        ],
    }
