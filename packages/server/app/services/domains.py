"""
Email-domain matching against organization join policies.

Policy entries have the form ``"@example.com"``; an email domain is the
part after the last ``"@"``. Matching is exact and case-insensitive: no
wildcards, no subdomains, and an empty domain never matches.
"""

from __future__ import annotations

import uuid
from typing import Iterable

from app.models.domain_policy import OrgDomainPolicy


def email_domain(email: str) -> str:
    """Return the lowercased domain of ``email``, or ``""`` if it has none."""
    local, sep, domain = email.strip().rpartition("@")
    if not sep or not local:
        return ""
    return domain.lower()


def normalize_policy_domain(value: str) -> str:
    """Normalize user input (``Acme.com``, ``https://acme.com/``, ``@acme.com``)
    to the stored ``"@acme.com"`` form. Returns ``""`` for unusable input."""
    domain = value.strip().lower()
    for scheme in ("https://", "http://"):
        if domain.startswith(scheme):
            domain = domain[len(scheme):]
    domain = domain.split("/", 1)[0].lstrip("@").strip()
    if not domain or "@" in domain or any(ch.isspace() for ch in domain):
        return ""
    return f"@{domain}"


def policy_admits(domain: str, policy: OrgDomainPolicy) -> bool:
    if not domain or not policy.open:
        return False
    wanted = f"@{domain.lower()}"
    return any(entry.strip().lower() == wanted for entry in policy.domains)


def find_joinable(domain: str, policies: Iterable[OrgDomainPolicy]) -> list[uuid.UUID]:
    """Organization ids whose open policy lists ``domain``, in policy order."""
    return [policy.org_id for policy in policies if policy_admits(domain, policy)]
