"""
Organization setup service: the post-creation setup dialog (rename,
domain-join policy, avatar upload). Administrator only.
"""

from __future__ import annotations

import re
import uuid

import structlog

from app.core.identity import Identity
from app.core.errors import (
    NotOrgAdmin,
    OrganizationNotFound,
    SlugConflictError,
    SlugExhausted,
    ValidationError,
)
from app.models.organization import Organization
from app.repositories.base import MembershipRepository
from app.services.blob_storage import BlobStorage
from app.services.domains import email_domain, normalize_policy_domain
from app.services.slugs import candidate_slugs, slugify

from onboarding_shared.schemas.common import Role
from onboarding_shared.schemas.organizations import (
    DomainPolicyResponse,
    OrgResponse,
    OrgSetupRequest,
    OrgSetupSuggestion,
)

log = structlog.get_logger()

FAVICON_URL = "https://www.google.com/s2/favicons?domain={domain}&sz=256"
_EXTENSION = re.compile(r"^[a-z0-9]{1,10}$")


def domain_to_company_name(domain: str) -> str:
    """acme.com -> Acme"""
    if not domain:
        return ""
    name = domain.split(".")[0]
    return name[:1].upper() + name[1:]


def logo_url(domain: str) -> str:
    if not domain:
        return ""
    return FAVICON_URL.format(domain=domain)


def suggest_setup(email: str) -> OrgSetupSuggestion:
    """Prefill the setup dialog from the user's email domain."""
    domain = email_domain(email)
    return OrgSetupSuggestion(
        company_domain=domain,
        suggested_name=domain_to_company_name(domain),
        logo_url=logo_url(domain),
    )


async def org_response(repo: MembershipRepository, org: Organization) -> OrgResponse:
    policy = await repo.get_domain_policy(org.id)
    return OrgResponse(
        id=org.id,
        name=org.name,
        slug=org.slug,
        avatar_url=org.avatar_url,
        domain_policy=(
            DomainPolicyResponse(domains=list(policy.domains), open=policy.open)
            if policy
            else None
        ),
        created_at=org.created_at,
        updated_at=org.updated_at,
    )


async def require_org_admin(
    repo: MembershipRepository, identity: Identity, org_slug: str
) -> Organization:
    org = await repo.get_organization_by_slug(org_slug)
    if org is None:
        raise OrganizationNotFound("Organization not found", slug=org_slug)
    membership = await repo.get_membership(identity.user_id, org.id)
    if membership is None:
        # Don't reveal orgs the caller can't see
        raise OrganizationNotFound("Organization not found", slug=org_slug)
    if membership.role != Role.ADMIN.value:
        raise NotOrgAdmin("Only administrators can set up this organization")
    return org


async def setup_organization(
    repo: MembershipRepository,
    identity: Identity,
    org_slug: str,
    req: OrgSetupRequest,
    *,
    max_slug_attempts: int = 5,
) -> OrgResponse:
    """Rename (re-deriving the slug) and set the domain-join policy."""
    org = await require_org_admin(repo, identity, org_slug)

    policy_domain = normalize_policy_domain(req.company_domain)
    if not policy_domain:
        raise ValidationError(
            f"Invalid company domain '{req.company_domain}'", field="company_domain"
        )

    name = req.name.strip()
    base = slugify(name)
    if not base:
        raise ValidationError(
            f"Organization name '{name}' has no URL-safe characters", field="name"
        )

    for slug in candidate_slugs(base, max_slug_attempts):
        if slug == org.slug:
            org = await repo.update_organization(org.id, name=name)
            break
        try:
            org = await repo.update_organization(org.id, name=name, slug=slug)
            break
        except SlugConflictError:
            log.info("org.slug_collision", slug=slug, org_id=str(org.id))
    else:
        raise SlugExhausted(
            f"Could not find a free slug for '{name}' after "
            f"{max_slug_attempts} attempts; choose a different name",
            base=base,
        )

    await repo.set_domain_policy(org.id, [policy_domain], req.allow_domain_join)
    log.info(
        "org.setup_saved",
        org_id=str(org.id),
        slug=org.slug,
        domain=policy_domain,
        allow_domain_join=req.allow_domain_join,
    )
    return await org_response(repo, org)


async def upload_avatar(
    repo: MembershipRepository,
    storage: BlobStorage,
    identity: Identity,
    org_slug: str,
    filename: str,
    content_type: str,
    data: bytes,
) -> OrgResponse:
    org = await require_org_admin(repo, identity, org_slug)

    if not content_type.startswith("image/"):
        raise ValidationError("Please select an image file", field="content_type")
    if not data:
        raise ValidationError("Uploaded file is empty", field="file")

    extension = filename.rsplit(".", 1)[-1].lower() if "." in filename else "png"
    if not _EXTENSION.match(extension):
        extension = "png"
    path = f"{org.slug}/uploads/org-logo-{uuid.uuid4()}.{extension}"

    url = await storage.write(path, content_type, data)
    org = await repo.update_organization(org.id, avatar_url=url)
    log.info("org.avatar_uploaded", org_id=str(org.id), url=url)
    return await org_response(repo, org)
