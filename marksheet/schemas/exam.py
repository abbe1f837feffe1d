from datetime import date, datetime

from pydantic import Field

from marksheet.models import ExamStatus
from marksheet.schemas.base import CamelModel


class ExamBase(CamelModel):
    """Base exam schema."""

    name: str = Field(..., min_length=1, max_length=255)
    exam_type: str = Field("Term Exam", min_length=1, max_length=50)
    exam_date: date | None = None
    class_level: str | None = Field(None, max_length=10)
    total_marks: float | None = Field(None, gt=0)
    passing_marks: float | None = Field(None, ge=0)
    duration_minutes: int | None = Field(None, gt=0)
    status: ExamStatus = ExamStatus.SCHEDULED


class ExamCreate(ExamBase):
    """Schema for creating an exam."""

    pass


class ExamUpdate(CamelModel):
    """Schema for updating an exam."""

    name: str | None = Field(None, min_length=1, max_length=255)
    exam_type: str | None = Field(None, min_length=1, max_length=50)
    exam_date: date | None = None
    class_level: str | None = Field(None, max_length=10)
    total_marks: float | None = Field(None, gt=0)
    passing_marks: float | None = Field(None, ge=0)
    duration_minutes: int | None = Field(None, gt=0)
    status: ExamStatus | None = None


class ExamResponse(ExamBase):
    """Schema for exam response."""

    id: str
    organization_id: str
    created_at: datetime
    updated_at: datetime
