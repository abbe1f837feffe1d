"""API endpoints for performance analytics."""

from fastapi import APIRouter, Query

from marksheet.config import settings
from marksheet.dependencies.database import DBSessionDep
from marksheet.dependencies.organization import OrganizationDep
from marksheet.models import Exam
from marksheet.schemas.scoring import (
    ClassSummary,
    Insight,
    PerformanceOverview,
    ScoringBatch,
    StudentSummary,
    SubjectSummary,
)
from marksheet.services.aggregation import (
    build_overview,
    priority_insights,
    summarize_by_class,
    summarize_by_student,
    summarize_by_subject,
)
from marksheet.services.records import (
    load_exams,
    load_students,
    load_subjects,
    score_stored_marks,
    to_exam_record,
    to_student_record,
)

router = APIRouter(prefix="/api/v1/organizations/{organization_id}/analytics", tags=["analytics"])


async def get_student_summaries(
    session: DBSessionDep, organization_id: str, class_level: str | None = None
) -> tuple[list[StudentSummary], ScoringBatch, list[Exam]]:
    """Summaries for the organization's students, with the scored marks and exams they were built from."""
    students = await load_students(session, organization_id, class_level)
    exams = await load_exams(session, organization_id)
    batch = await score_stored_marks(session, organization_id)
    summaries = summarize_by_student(
        batch.scored,
        [to_exam_record(exam) for exam in exams],
        [to_student_record(student) for student in students],
        trend_threshold=settings.trend_threshold,
    )
    return summaries, batch, exams


@router.get("/students", response_model=list[StudentSummary])
async def get_student_performance(
    organization: OrganizationDep,
    session: DBSessionDep,
    class_level: str | None = Query(None, alias="classLevel", description="Filter by class"),
) -> list[StudentSummary]:
    """
    Per-student performance: totals-based percentage for each exam, the mean
    across exams, and the trend between the two most recent exams.
    """
    summaries, _, _ = await get_student_summaries(session, organization.id, class_level)
    return summaries


@router.get("/classes", response_model=list[ClassSummary])
async def get_class_performance(organization: OrganizationDep, session: DBSessionDep) -> list[ClassSummary]:
    """Class comparison: totals-based average, enrolment and pass/fail counts per class."""
    students = await load_students(session, organization.id)
    batch = await score_stored_marks(session, organization.id)
    return summarize_by_class(batch.scored, [to_student_record(student) for student in students])


@router.get("/subjects", response_model=list[SubjectSummary])
async def get_subject_performance(
    organization: OrganizationDep,
    session: DBSessionDep,
    exam_id: str | None = Query(None, alias="examId", description="Restrict to one exam"),
) -> list[SubjectSummary]:
    """Subject analysis: totals-based average, distinct students and grade distribution."""
    batch = await score_stored_marks(session, organization.id, exam_id=exam_id)
    return summarize_by_subject(batch.scored)


@router.get("/insights", response_model=list[Insight])
async def get_priority_insights(
    organization: OrganizationDep,
    session: DBSessionDep,
    threshold: float | None = Query(None, ge=0, le=100, description="Flag averages below this percentage"),
    urgent_threshold: float | None = Query(
        None, ge=0, le=100, alias="urgentThreshold", description="Averages below this need immediate intervention"
    ),
    class_level: str | None = Query(None, alias="classLevel", description="Filter by class"),
) -> list[Insight]:
    """Students needing attention, worst first."""
    summaries, _, _ = await get_student_summaries(session, organization.id, class_level)
    return priority_insights(
        summaries,
        threshold=threshold if threshold is not None else settings.insight_threshold,
        urgent_threshold=urgent_threshold if urgent_threshold is not None else settings.urgent_insight_threshold,
    )


@router.get("/overview", response_model=PerformanceOverview)
async def get_overview(organization: OrganizationDep, session: DBSessionDep) -> PerformanceOverview:
    """Organization-wide counts and statistics over student averages."""
    summaries, batch, exams = await get_student_summaries(session, organization.id)
    subjects = await load_subjects(session, organization.id)
    return build_overview(batch.scored, summaries, exam_count=len(exams), subject_count=len(subjects))
