"""
Onboarding state machine.

NOT_STARTED -> PROFILE_COLLECTED -> AWAITING_ORG_CHOICE -> COMPLETED, with
PROFILE_COLLECTED -> COMPLETED when nobody can be joined at the moment the
profile is first collected. Only NOT_STARTED, AWAITING_ORG_CHOICE and
COMPLETED are ever observed from storage; PROFILE_COLLECTED exists only
inside a profile submission.
"""

from __future__ import annotations

from typing import Optional

from app.core.errors import InvalidTransition, ValidationError
from app.models.onboarding_profile import OnboardingProfile

from onboarding_shared.schemas.common import CompanySize, ProfileRole, UseCase
from onboarding_shared.schemas.onboarding import ONBOARDING_TRANSITIONS, OnboardingStage


def stored_stage(profile: Optional[OnboardingProfile]) -> OnboardingStage:
    if profile is None:
        return OnboardingStage.NOT_STARTED
    if profile.completed_at is not None:
        return OnboardingStage.COMPLETED
    return OnboardingStage.AWAITING_ORG_CHOICE


def stage_after_profile(joinable_count: int) -> OnboardingStage:
    """Evaluated once, when the profile is first collected."""
    if joinable_count:
        return OnboardingStage.AWAITING_ORG_CHOICE
    return OnboardingStage.COMPLETED


def check_transition(current: OnboardingStage, target: OnboardingStage) -> None:
    if target not in ONBOARDING_TRANSITIONS.get(current, []):
        raise InvalidTransition(
            f"Cannot move onboarding from '{current.value}' to '{target.value}'",
            current=current.value,
            target=target.value,
        )


def parse_profile_answers(
    role: str, company_size: str, use_case: str
) -> tuple[ProfileRole, CompanySize, UseCase]:
    """Check each answer against its closed option set."""
    fields = (
        ("role", role, ProfileRole),
        ("company_size", company_size, CompanySize),
        ("use_case", use_case, UseCase),
    )
    parsed = []
    for field, value, enum_cls in fields:
        try:
            parsed.append(enum_cls(value))
        except ValueError:
            allowed = ", ".join(member.value for member in enum_cls)
            raise ValidationError(
                f"Invalid {field} '{value}'; expected one of: {allowed}",
                field=field,
            ) from None
    return parsed[0], parsed[1], parsed[2]
