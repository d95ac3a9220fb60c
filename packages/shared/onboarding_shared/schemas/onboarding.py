"""
Onboarding schemas shared between the server and web clients.

Covers: onboarding stages and their transitions, profile submission,
state responses, joinable organizations and the join/create results.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from .common import CompanySize, ProfileRole, UseCase


# ---------------------------------------------------------------------------
# Stages
# ---------------------------------------------------------------------------

class OnboardingStage(str, Enum):
    NOT_STARTED = "not_started"
    PROFILE_COLLECTED = "profile_collected"
    AWAITING_ORG_CHOICE = "awaiting_org_choice"
    COMPLETED = "completed"


# Forward-only; COMPLETED is terminal
ONBOARDING_TRANSITIONS: dict[OnboardingStage, list[OnboardingStage]] = {
    OnboardingStage.NOT_STARTED: [OnboardingStage.PROFILE_COLLECTED],
    OnboardingStage.PROFILE_COLLECTED: [
        OnboardingStage.AWAITING_ORG_CHOICE,
        OnboardingStage.COMPLETED,
    ],
    OnboardingStage.AWAITING_ORG_CHOICE: [OnboardingStage.COMPLETED],
    OnboardingStage.COMPLETED: [],
}


class CompletionPath(str, Enum):
    JOIN = "join"
    CREATE = "create"
    SKIP = "skip"


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class ProfileSubmitRequest(BaseModel):
    """Profile answers. Values are checked against the closed option sets
    by the resolver so that every caller gets the same error shape."""
    role: str
    company_size: str
    use_case: str


class OrgCreateRequest(BaseModel):
    name: Optional[str] = Field(
        default=None,
        max_length=100,
        description="Display name; a generated name is used when omitted or blank",
    )
    creation_key: Optional[str] = Field(
        default=None,
        min_length=1,
        max_length=100,
        description="Client-chosen key making retries of the same create idempotent",
    )


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class ProfileResponse(BaseModel):
    user_id: uuid.UUID
    role: ProfileRole
    company_size: CompanySize
    use_case: UseCase
    completed_at: Optional[datetime] = None
    destination_org_id: Optional[uuid.UUID] = None

    model_config = {"from_attributes": True}


class MemberPreview(BaseModel):
    id: uuid.UUID
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None

    model_config = {"from_attributes": True}


class JoinableOrg(BaseModel):
    id: uuid.UUID
    name: str
    slug: str
    avatar_url: Optional[str] = None
    member_count: int = 0
    sample_members: list[MemberPreview] = Field(default_factory=list, max_length=4)

    model_config = {"from_attributes": True}


class JoinableOrgListResponse(BaseModel):
    data: list[JoinableOrg]


class OrgDestination(BaseModel):
    """Where the client should navigate once onboarding resolves."""
    id: uuid.UUID
    name: str
    slug: str
    role: str
    created: bool = False


class OnboardingStateResponse(BaseModel):
    stage: OnboardingStage
    profile: Optional[ProfileResponse] = None
    joinable_organizations: list[JoinableOrg] = Field(default_factory=list)
    destination: Optional[OrgDestination] = None


class OptionItem(BaseModel):
    value: str
    label: str


class OnboardingOptionsResponse(BaseModel):
    roles: list[OptionItem]
    company_sizes: list[OptionItem]
    use_cases: list[OptionItem]
