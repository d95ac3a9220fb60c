# SQLModel definitions, imported here so create_all sees every table.
from .base import UUIDMixin, TimestampMixin  # noqa: F401
from .user import User  # noqa: F401
from .organization import Organization  # noqa: F401
from .domain_policy import OrgDomainPolicy  # noqa: F401
from .user_org import UserOrg  # noqa: F401
from .onboarding_profile import OnboardingProfile  # noqa: F401
