"""
FastAPI dependency providers. Collaborators are built per request; nothing
here caches domain state between requests.
"""

from __future__ import annotations

from fastapi import Depends

from app.core.config import get_settings
from app.core.database import async_session_factory
from app.repositories.base import MembershipRepository
from app.repositories.sql import SqlMembershipRepository
from app.services.analytics import AnalyticsSink, LogAnalyticsSink, NullAnalyticsSink
from app.services.blob_storage import BlobStorage, LocalBlobStorage
from app.services.onboarding import OnboardingResolver


def get_repository() -> MembershipRepository:
    return SqlMembershipRepository(async_session_factory)


def get_analytics_sink() -> AnalyticsSink:
    if get_settings().analytics_enabled:
        return LogAnalyticsSink()
    return NullAnalyticsSink()


def get_blob_storage() -> BlobStorage:
    settings = get_settings()
    return LocalBlobStorage(settings.blob_storage_dir, settings.blob_public_base_url)


def get_resolver(
    repo: MembershipRepository = Depends(get_repository),
    analytics: AnalyticsSink = Depends(get_analytics_sink),
) -> OnboardingResolver:
    return OnboardingResolver(
        repo,
        analytics=analytics,
        max_slug_attempts=get_settings().slug_max_attempts,
    )
