"""
Slug derivation and random organization names.

``slugify`` never touches storage. Collision handling belongs to the
caller, which walks ``candidate_slugs`` only after the repository
reports a conflict.
"""

from __future__ import annotations

import random
import re
from typing import Callable, Iterator, Optional

_NON_SLUG = re.compile(r"[^a-z0-9]+")

# Fun adjectives and nouns for generated org names
ADJECTIVES = [
    "Magic", "Cosmic", "Happy", "Swift", "Bright", "Golden", "Silver", "Crystal",
    "Mystic", "Noble", "Rapid", "Stellar", "Lucky", "Mighty", "Clever", "Bold",
    "Wild", "Cool", "Epic", "Super", "Mega", "Ultra", "Turbo", "Hyper",
]

NOUNS = [
    "Unicorn", "Dragon", "Phoenix", "Tiger", "Eagle", "Wolf", "Falcon", "Lion",
    "Panther", "Raven", "Hawk", "Bear", "Fox", "Owl", "Shark", "Dolphin",
    "Penguin", "Koala", "Panda", "Otter", "Rabbit", "Squirrel", "Raccoon", "Beaver",
]

NameSupplier = Callable[[], str]


def slugify(name: str) -> str:
    """Example: "Magic Unicorn" -> "magic-unicorn"."""
    return _NON_SLUG.sub("-", name.lower()).strip("-")


def candidate_slugs(base: str, max_attempts: int) -> Iterator[str]:
    """``base``, ``base-2``, ``base-3``, ... up to ``max_attempts`` candidates."""
    for attempt in range(1, max_attempts + 1):
        yield base if attempt == 1 else f"{base}-{attempt}"


def random_org_name(rng: Optional[random.Random] = None) -> str:
    """e.g. "Magic Unicorn", "Cosmic Dragon"."""
    rng = rng or random
    return f"{rng.choice(ADJECTIVES)} {rng.choice(NOUNS)}"


def seeded_name_supplier(seed: int) -> NameSupplier:
    rng = random.Random(seed)
    return lambda: random_org_name(rng)
