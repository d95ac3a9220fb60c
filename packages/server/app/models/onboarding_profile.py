"""Onboarding profile (one row per user)."""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import TimestampMixin


class OnboardingProfile(TimestampMixin, SQLModel, table=True):
    __tablename__ = "onboarding_profiles"

    user_id: uuid.UUID = Field(foreign_key="users.id", primary_key=True)
    role: str = Field(nullable=False)
    company_size: str = Field(nullable=False)
    use_case: str = Field(nullable=False)
    completed_at: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
    destination_org_id: Optional[uuid.UUID] = Field(default=None, foreign_key="organizations.id")
