"""Loading persisted rows as scoring records, and writing marks back."""

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from marksheet.config import settings
from marksheet.models import Exam, Mark, Student, Subject, generate_id
from marksheet.schemas.scoring import (
    ExamRecord,
    InvalidMarkPolicy,
    MarkRecord,
    ScoringBatch,
    StudentRecord,
    SubjectRecord,
)
from marksheet.services.aggregation import score_marks

logger = logging.getLogger(__name__)


def to_mark_record(mark: Mark) -> MarkRecord:
    return MarkRecord(
        student_id=mark.student_id,
        exam_id=mark.exam_id,
        subject_id=mark.subject_id,
        marks_obtained=mark.marks_obtained,
        max_marks=mark.max_marks,
    )


def to_student_record(student: Student) -> StudentRecord:
    return StudentRecord(id=student.id, class_level=student.class_level)


def to_exam_record(exam: Exam) -> ExamRecord:
    return ExamRecord(
        id=exam.id,
        passing_marks=exam.passing_marks,
        total_marks=exam.total_marks,
        exam_date=exam.exam_date,
        class_level=exam.class_level,
        status=exam.status,
    )


def to_subject_record(subject: Subject) -> SubjectRecord:
    return SubjectRecord(id=subject.id, passing_marks=subject.passing_marks, max_marks=subject.max_marks)


async def load_students(session: AsyncSession, organization_id: str, class_level: str | None = None) -> list[Student]:
    stmt = select(Student).where(Student.organization_id == organization_id)
    if class_level:
        stmt = stmt.where(Student.class_level == class_level)
    result = await session.execute(stmt.order_by(Student.class_level, Student.admission_no))
    return list(result.scalars().all())


async def load_exams(session: AsyncSession, organization_id: str) -> list[Exam]:
    stmt = select(Exam).where(Exam.organization_id == organization_id).order_by(Exam.exam_date, Exam.name)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def load_subjects(session: AsyncSession, organization_id: str) -> list[Subject]:
    stmt = select(Subject).where(Subject.organization_id == organization_id).order_by(Subject.code)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def load_marks(
    session: AsyncSession,
    organization_id: str,
    exam_id: str | None = None,
    subject_id: str | None = None,
    student_id: str | None = None,
) -> list[Mark]:
    stmt = select(Mark).where(Mark.organization_id == organization_id)
    if exam_id:
        stmt = stmt.where(Mark.exam_id == exam_id)
    if subject_id:
        stmt = stmt.where(Mark.subject_id == subject_id)
    if student_id:
        stmt = stmt.where(Mark.student_id == student_id)
    result = await session.execute(stmt.order_by(Mark.created_at, Mark.id))
    return list(result.scalars().all())


async def score_stored_marks(
    session: AsyncSession,
    organization_id: str,
    exam_id: str | None = None,
    subject_id: str | None = None,
    student_id: str | None = None,
) -> ScoringBatch:
    """
    Score the organization's stored marks.

    Stored marks were validated on entry, so rows that no longer validate are
    skipped (and logged) rather than failing every analytics request.
    """
    marks = await load_marks(session, organization_id, exam_id, subject_id, student_id)
    exams = await load_exams(session, organization_id)
    subjects = await load_subjects(session, organization_id)
    batch = score_marks(
        [to_mark_record(mark) for mark in marks],
        [to_exam_record(exam) for exam in exams],
        [to_subject_record(subject) for subject in subjects],
        settings.default_passing_percentage,
        policy=InvalidMarkPolicy.SKIP,
    )
    if batch.skipped:
        logger.warning(f"Organization {organization_id}: skipped {len(batch.skipped)} stored marks that fail validation")
    return batch


def mark_insert(session: AsyncSession):
    """The dialect's INSERT construct, which supports ON CONFLICT."""
    if session.bind.dialect.name == "sqlite":
        return sqlite_insert
    return postgresql_insert


async def insert_mark(session: AsyncSession, organization_id: str, record: MarkRecord) -> None:
    """
    Insert the mark for (student, exam, subject) in one statement.

    When another request inserted the same triple first, its row is
    overwritten instead of violating uq_mark_student_exam_subject.
    """
    stmt = mark_insert(session)(Mark).values(
        id=generate_id(),
        organization_id=organization_id,
        student_id=record.student_id,
        exam_id=record.exam_id,
        subject_id=record.subject_id,
        marks_obtained=record.marks_obtained,
        max_marks=record.max_marks,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[Mark.student_id, Mark.exam_id, Mark.subject_id],
        set_={
            "marks_obtained": stmt.excluded.marks_obtained,
            "max_marks": stmt.excluded.max_marks,
            "updated_at": datetime.utcnow(),
        },
    )
    await session.execute(stmt)


async def upsert_mark(session: AsyncSession, organization_id: str, record: MarkRecord) -> bool:
    """
    Insert or update the mark for (student, exam, subject). Last write wins.

    The caller commits. Returns True when the mark was created.
    """
    stmt = select(Mark).where(
        Mark.student_id == record.student_id,
        Mark.exam_id == record.exam_id,
        Mark.subject_id == record.subject_id,
    )
    result = await session.execute(stmt)
    mark = result.scalar_one_or_none()
    if mark is not None:
        mark.marks_obtained = record.marks_obtained
        mark.max_marks = record.max_marks
        return False

    await insert_mark(session, organization_id, record)
    return True
