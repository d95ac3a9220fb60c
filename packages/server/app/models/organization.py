"""Organization model."""

from typing import Optional
import uuid

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class Organization(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "organizations"
    __table_args__ = (
        UniqueConstraint("created_by", "creation_key", name="uq_org_creation_key"),
    )

    name: str = Field(nullable=False, index=True)
    slug: str = Field(unique=True, nullable=False, index=True)
    avatar_url: Optional[str] = None
    created_by: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    creation_key: Optional[str] = Field(default=None, max_length=100)  # client idempotency key
