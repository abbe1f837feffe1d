from datetime import datetime

from pydantic import Field

from marksheet.schemas.base import CamelModel


class StudentBase(CamelModel):
    """Base student schema."""

    name: str = Field(..., min_length=1, max_length=255)
    admission_no: str = Field(..., min_length=1, max_length=50)
    class_level: str = Field(..., min_length=1, max_length=10)
    section: str | None = Field(None, max_length=10)
    roll_number: str | None = Field(None, max_length=20)
    email: str | None = Field(None, max_length=255)


class StudentCreate(StudentBase):
    """Schema for creating a student."""

    pass


class StudentUpdate(CamelModel):
    """Schema for updating a student."""

    name: str | None = Field(None, min_length=1, max_length=255)
    class_level: str | None = Field(None, min_length=1, max_length=10)
    section: str | None = Field(None, max_length=10)
    roll_number: str | None = Field(None, max_length=20)
    email: str | None = Field(None, max_length=255)


class StudentResponse(StudentBase):
    """Schema for student response."""

    id: str
    organization_id: str
    created_at: datetime
    updated_at: datetime
