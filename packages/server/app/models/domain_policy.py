"""Email-domain join policy (one per organization)."""

from typing import List
import uuid

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB
from sqlmodel import Field, SQLModel

from .base import TimestampMixin


class OrgDomainPolicy(TimestampMixin, SQLModel, table=True):
    __tablename__ = "org_domain_policies"

    org_id: uuid.UUID = Field(foreign_key="organizations.id", primary_key=True)
    # ordered, e.g. ["@acme.com", "@acme.io"]; lowercase, trimmed
    domains: List[str] = Field(
        default_factory=list,
        sa_type=sa.JSON().with_variant(JSONB(), "postgresql"),
        nullable=False,
    )
    open: bool = Field(default=True, nullable=False)
