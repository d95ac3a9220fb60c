"""The authenticated caller, as supplied by the identity provider."""

from __future__ import annotations

import uuid
from dataclasses import dataclass


@dataclass(frozen=True)
class Identity:
    user_id: uuid.UUID
    email: str  # lowercased
