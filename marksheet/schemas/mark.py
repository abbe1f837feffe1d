from pydantic import Field

from marksheet.schemas.base import CamelModel
from marksheet.schemas.scoring import ScoredMark


class MarkUpsert(CamelModel):
    """Schema for entering a mark. Range checks happen in the scoring engine."""

    student_id: str
    exam_id: str
    subject_id: str
    marks_obtained: float
    max_marks: float | None = Field(None, description="Defaults to the subject's max marks, else 100")


class MarkBatchUpsert(CamelModel):
    """Schema for entering many marks at once; one invalid mark rejects the batch."""

    marks: list[MarkUpsert] = Field(..., min_length=1)


class MarkBatchResponse(CamelModel):
    """Schema for batch upsert response."""

    created: int
    updated: int
    marks: list[ScoredMark]


class MarksBulkUploadError(CamelModel):
    """Schema for bulk upload error details."""

    row_number: int
    error_message: str
    field: str | None = None


class MarksBulkUploadResponse(CamelModel):
    """Schema for bulk upload response."""

    total_rows: int
    successful: int
    failed: int
    errors: list[MarksBulkUploadError]
