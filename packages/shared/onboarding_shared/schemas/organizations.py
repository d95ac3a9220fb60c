"""
Organization setup schemas: the post-creation setup dialog and avatar upload.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class OrgSetupRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, description="Organization display name")
    company_domain: str = Field(
        ...,
        min_length=1,
        max_length=253,
        description="Company domain, e.g. acme.com (scheme optional)",
    )
    allow_domain_join: bool = Field(
        default=True,
        description="Let anyone with an @company_domain email join",
    )


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class DomainPolicyResponse(BaseModel):
    domains: list[str]
    open: bool


class OrgResponse(BaseModel):
    id: uuid.UUID
    name: str
    slug: str
    avatar_url: Optional[str] = None
    domain_policy: Optional[DomainPolicyResponse] = None
    created_at: datetime
    updated_at: datetime


class OrgSetupSuggestion(BaseModel):
    company_domain: str
    suggested_name: str
    logo_url: str
