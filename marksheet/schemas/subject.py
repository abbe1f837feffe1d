from datetime import datetime

from pydantic import Field

from marksheet.schemas.base import CamelModel


class SubjectBase(CamelModel):
    """Base subject schema."""

    code: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=100)
    max_marks: float | None = Field(None, gt=0)
    passing_marks: float | None = Field(None, ge=0)
    class_level: str | None = Field(None, max_length=10)


class SubjectCreate(SubjectBase):
    """Schema for creating a subject."""

    pass


class SubjectUpdate(CamelModel):
    """Schema for updating a subject."""

    name: str | None = Field(None, min_length=1, max_length=100)
    max_marks: float | None = Field(None, gt=0)
    passing_marks: float | None = Field(None, ge=0)
    class_level: str | None = Field(None, max_length=10)


class SubjectResponse(SubjectBase):
    """Schema for subject response."""

    id: str
    organization_id: str
    created_at: datetime
    updated_at: datetime
