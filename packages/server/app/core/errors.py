"""
Typed error taxonomy for the onboarding core.

Every error carries a stable ``code`` so callers can branch on kind without
matching message strings, and an HTTP status used by the API layer.
"""

from __future__ import annotations

from typing import Any, Optional


class OnboardingError(Exception):
    code = "ONBOARDING_ERROR"
    status_code = 400

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        body: dict[str, Any] = {
            "code": self.code,
            "message": self.message,
            "status": self.status_code,
        }
        if self.details:
            body["details"] = {k: str(v) for k, v in self.details.items()}
        return {"error": body}


class ValidationError(OnboardingError):
    """Input outside its closed option set, or an unusable name."""
    code = "VALIDATION_ERROR"
    status_code = 422


class DomainNotAllowed(OnboardingError):
    code = "DOMAIN_NOT_ALLOWED"
    status_code = 403


class AlreadyMember(OnboardingError):
    """Raised internally on a duplicate join; resolved into a success."""
    code = "ALREADY_MEMBER"
    status_code = 200


class SlugExhausted(OnboardingError):
    code = "SLUG_EXHAUSTED"
    status_code = 409


class RepositoryUnavailable(OnboardingError):
    code = "REPOSITORY_UNAVAILABLE"
    status_code = 503


class OrganizationNotFound(OnboardingError):
    code = "ORGANIZATION_NOT_FOUND"
    status_code = 404


class ProfileRequired(OnboardingError):
    code = "PROFILE_REQUIRED"
    status_code = 409


class NotOrgAdmin(OnboardingError):
    code = "NOT_ORG_ADMIN"
    status_code = 403


class InvalidTransition(OnboardingError):
    code = "INVALID_TRANSITION"
    status_code = 409


# ---------------------------------------------------------------------------
# Repository conflicts (never surfaced past the resolver)
# ---------------------------------------------------------------------------

class ConflictError(Exception):
    """A uniqueness constraint rejected the write."""

    def __init__(self, message: str = "Uniqueness conflict", *, constraint: Optional[str] = None):
        super().__init__(message)
        self.constraint = constraint


class SlugConflictError(ConflictError):
    def __init__(self, slug: str):
        super().__init__(f"Slug '{slug}' is already taken", constraint="organizations.slug")
        self.slug = slug
