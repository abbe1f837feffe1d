from datetime import datetime

from pydantic import Field

from marksheet.schemas.base import CamelModel


class OrganizationCreate(CamelModel):
    """Schema for creating an organization (school)."""

    code: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=255)


class OrganizationResponse(OrganizationCreate):
    """Schema for organization response."""

    id: str
    created_at: datetime
    updated_at: datetime
