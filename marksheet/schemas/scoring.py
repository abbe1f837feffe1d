"""Records consumed and summaries produced by the scoring core."""

from datetime import date
from enum import Enum

from pydantic import Field

from marksheet.models import ExamStatus
from marksheet.schemas.base import CamelModel


class Grade(str, Enum):
    """Letter grades, highest first."""

    A_PLUS = "A+"
    A = "A"
    B_PLUS = "B+"
    B = "B"
    C = "C"
    F = "F"


class Trend(str, Enum):
    IMPROVING = "improving"
    DECLINING = "declining"
    STABLE = "stable"


class Urgency(str, Enum):
    LOW = "low"  # additional support
    HIGH = "high"  # immediate intervention


class InvalidMarkPolicy(str, Enum):
    """What a batch does when one of its marks is invalid."""

    REJECT = "reject"
    SKIP = "skip"


class MarkRecord(CamelModel):
    student_id: str
    exam_id: str
    subject_id: str
    marks_obtained: float
    max_marks: float


class StudentRecord(CamelModel):
    id: str
    class_level: str


class ExamRecord(CamelModel):
    id: str
    passing_marks: float | None = Field(None, description="Out of total_marks")
    total_marks: float | None = None
    exam_date: date | None = None
    class_level: str | None = None
    status: ExamStatus | None = None


class SubjectRecord(CamelModel):
    id: str
    passing_marks: float | None = None
    max_marks: float | None = None


class ScoredMark(MarkRecord):
    percentage: float
    grade: Grade
    passed: bool
    passing_marks: float


class SkippedMark(CamelModel):
    index: int
    mark: MarkRecord
    reason: str


class ScoringBatch(CamelModel):
    scored: list[ScoredMark] = Field(default_factory=list)
    skipped: list[SkippedMark] = Field(default_factory=list)


class ExamPerformance(CamelModel):
    """One student's totals-based result in one exam."""

    exam_id: str
    exam_date: date | None = None
    total_obtained: float
    total_max: float
    percentage: float
    grade: Grade
    passed: bool
    subject_count: int


class ExamResult(ExamPerformance):
    """Certificate data: per-subject marks plus the exam totals."""

    student_id: str
    subjects: list[ScoredMark]
    percentage_display: str


class StudentSummary(CamelModel):
    student_id: str
    class_level: str | None = None
    per_exam: list[ExamPerformance]
    average_performance: float = Field(..., description="Mean of per-exam percentages")
    grade: Grade
    trend: Trend = Trend.STABLE
    trend_value: float = 0.0


class ClassSummary(CamelModel):
    class_level: str
    average_score: float = Field(..., description="Totals-based percentage over every mark in the class")
    student_count: int
    mark_count: int
    total_marks_obtained: float
    highest_percentage: float | None = None
    lowest_percentage: float | None = None
    pass_count: int
    fail_count: int


class SubjectSummary(CamelModel):
    subject_id: str
    average_score: float = Field(..., description="Totals-based percentage over every mark in the subject")
    distinct_student_count: int
    mark_count: int
    highest_percentage: float | None = None
    lowest_percentage: float | None = None
    pass_count: int
    fail_count: int
    grade_distribution: dict[str, int]


class Insight(CamelModel):
    student_id: str
    average_performance: float
    urgency: Urgency


class PerformanceOverview(CamelModel):
    """Organization-wide counts plus statistics over student averages."""

    student_count: int
    exam_count: int
    subject_count: int
    mark_count: int
    mean: float | None = None
    median: float | None = None
    min: float | None = None
    max: float | None = None
    std_deviation: float | None = None
    grade_distribution: dict[str, int]
    pass_rate: float | None = Field(None, description="Percentage of marks that passed")
