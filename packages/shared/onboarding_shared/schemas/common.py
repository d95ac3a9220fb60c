from enum import Enum
from typing import Optional
from pydantic import BaseModel

class Role(str, Enum):
    ADMIN = "administrator"
    MEMBER = "member"

class ProfileRole(str, Enum):
    ENGINEERING = "engineering"
    PRODUCT = "product"
    MARKETING = "marketing"
    DESIGN = "design"
    OPERATIONS = "operations"
    SALES = "sales"
    FOUNDER = "founder"
    OTHER = "other"

class CompanySize(str, Enum):
    SOLO = "1"
    SMALL = "2-25"
    MEDIUM = "26-100"
    LARGE = "101-500"
    XLARGE = "501-1000"
    ENTERPRISE = "1001+"

class UseCase(str, Enum):
    INTERNAL_APPS = "internal-apps"
    MANAGE_MCPS = "manage-mcps"
    AI_SAAS = "ai-saas"

# Display labels, in form order
PROFILE_ROLE_LABELS: dict["ProfileRole", str] = {
    ProfileRole.ENGINEERING: "Engineering",
    ProfileRole.PRODUCT: "Product",
    ProfileRole.MARKETING: "Marketing",
    ProfileRole.DESIGN: "Design",
    ProfileRole.OPERATIONS: "Operations",
    ProfileRole.SALES: "Sales",
    ProfileRole.FOUNDER: "Founder/Executive",
    ProfileRole.OTHER: "Other",
}

COMPANY_SIZE_LABELS: dict["CompanySize", str] = {
    CompanySize.SOLO: "Just me",
    CompanySize.SMALL: "2-25",
    CompanySize.MEDIUM: "26-100",
    CompanySize.LARGE: "101-500",
    CompanySize.XLARGE: "501-1000",
    CompanySize.ENTERPRISE: "1001+",
}

USE_CASE_LABELS: dict["UseCase", str] = {
    UseCase.INTERNAL_APPS: "Make internal apps",
    UseCase.MANAGE_MCPS: "Manage MCPs",
    UseCase.AI_SAAS: "Create AI SaaS",
}

class ErrorBody(BaseModel):
    code: str
    message: str
    status: int
    details: Optional[dict] = None

class ErrorResponse(BaseModel):
    error: ErrorBody
