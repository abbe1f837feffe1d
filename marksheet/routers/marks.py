import logging

from fastapi import APIRouter, File, HTTPException, Query, UploadFile, status
from sqlalchemy import select

from marksheet.config import settings
from marksheet.dependencies.database import DBSessionDep
from marksheet.dependencies.organization import OrganizationDep
from marksheet.models import Exam, Student, Subject
from marksheet.schemas.mark import (
    MarkBatchResponse,
    MarkBatchUpsert,
    MarksBulkUploadError,
    MarksBulkUploadResponse,
    MarkUpsert,
)
from marksheet.schemas.scoring import InvalidMarkPolicy, MarkRecord, ScoredMark
from marksheet.services.aggregation import score_marks
from marksheet.services.marks_upload import (
    MarksUploadParseError,
    MarksUploadValidationError,
    parse_marks_row,
    parse_upload_file,
    validate_required_columns,
)
from marksheet.services.records import (
    load_exams,
    load_students,
    load_subjects,
    score_stored_marks,
    to_exam_record,
    to_subject_record,
    upsert_mark,
)
from marksheet.utils.score_utils import InvalidInputError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/organizations/{organization_id}", tags=["marks"])

DEFAULT_MAX_MARKS = 100.0


def build_mark_record(
    mark: MarkUpsert,
    students_by_id: dict[str, Student],
    exams_by_id: dict[str, Exam],
    subjects_by_id: dict[str, Subject],
) -> MarkRecord:
    """Check the referenced rows exist and fill in max marks from the subject."""
    if mark.student_id not in students_by_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Student {mark.student_id} not found")
    if mark.exam_id not in exams_by_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Exam {mark.exam_id} not found")
    subject = subjects_by_id.get(mark.subject_id)
    if subject is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Subject {mark.subject_id} not found")

    max_marks = mark.max_marks if mark.max_marks is not None else subject.max_marks or DEFAULT_MAX_MARKS
    return MarkRecord(
        student_id=mark.student_id,
        exam_id=mark.exam_id,
        subject_id=mark.subject_id,
        marks_obtained=mark.marks_obtained,
        max_marks=max_marks,
    )


async def save_marks(
    marks: list[MarkUpsert], organization_id: str, session: DBSessionDep
) -> MarkBatchResponse:
    """Validate every mark, then upsert them all. One invalid mark rejects the whole batch."""
    students_by_id = {student.id: student for student in await load_students(session, organization_id)}
    exams = await load_exams(session, organization_id)
    subjects = await load_subjects(session, organization_id)
    exams_by_id = {exam.id: exam for exam in exams}
    subjects_by_id = {subject.id: subject for subject in subjects}

    records = [build_mark_record(mark, students_by_id, exams_by_id, subjects_by_id) for mark in marks]
    try:
        batch = score_marks(
            records,
            [to_exam_record(exam) for exam in exams],
            [to_subject_record(subject) for subject in subjects],
            settings.default_passing_percentage,
            policy=InvalidMarkPolicy.REJECT,
        )
    except InvalidInputError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))

    created = 0
    updated = 0
    for record in records:
        was_created = await upsert_mark(session, organization_id, record)
        if was_created:
            created += 1
        else:
            updated += 1
    await session.commit()

    logger.info(f"Organization {organization_id}: saved {len(records)} marks ({created} created, {updated} updated)")
    return MarkBatchResponse(created=created, updated=updated, marks=batch.scored)


@router.put("/marks", response_model=ScoredMark)
async def upsert_single_mark(mark: MarkUpsert, organization: OrganizationDep, session: DBSessionDep) -> ScoredMark:
    """Enter or re-enter a mark for a student/exam/subject. Last write wins."""
    response = await save_marks([mark], organization.id, session)
    return response.marks[0]


@router.post("/marks/batch", response_model=MarkBatchResponse)
async def upsert_mark_batch(
    payload: MarkBatchUpsert, organization: OrganizationDep, session: DBSessionDep
) -> MarkBatchResponse:
    """Enter many marks at once (marks-entry grid). Nothing is saved if any mark is invalid."""
    return await save_marks(payload.marks, organization.id, session)


@router.get("/marks", response_model=list[ScoredMark])
async def list_marks(
    organization: OrganizationDep,
    session: DBSessionDep,
    exam_id: str | None = Query(None, alias="examId"),
    subject_id: str | None = Query(None, alias="subjectId"),
    student_id: str | None = Query(None, alias="studentId"),
) -> list[ScoredMark]:
    """List marks with percentage, grade and pass/fail."""
    batch = await score_stored_marks(session, organization.id, exam_id, subject_id, student_id)
    return batch.scored


@router.post(
    "/exams/{exam_id}/marks/bulk-upload", response_model=MarksBulkUploadResponse, status_code=status.HTTP_200_OK
)
async def bulk_upload_marks(
    exam_id: str,
    organization: OrganizationDep,
    session: DBSessionDep,
    file: UploadFile = File(...),
) -> MarksBulkUploadResponse:
    """Bulk upload marks for one exam from Excel or CSV. Invalid rows are reported and skipped."""
    exam_stmt = select(Exam).where(Exam.id == exam_id, Exam.organization_id == organization.id)
    exam_result = await session.execute(exam_stmt)
    exam = exam_result.scalar_one_or_none()
    if not exam:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Exam not found")

    file_content = await file.read()
    if len(file_content) > settings.upload_max_size:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="File is too large")

    try:
        df = parse_upload_file(file_content, file.filename or "unknown")
        validate_required_columns(df)
    except (MarksUploadParseError, MarksUploadValidationError) as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    students_by_admission_no = {
        student.admission_no: student for student in await load_students(session, organization.id)
    }
    subjects = await load_subjects(session, organization.id)
    subjects_by_code = {subject.code: subject for subject in subjects}

    total_rows = len(df)
    errors: list[MarksBulkUploadError] = []
    records: list[MarkRecord] = []
    record_row_numbers: list[int] = []

    for position, (_, row) in enumerate(df.iterrows()):
        row_number = position + 2  # +2 because rows are 1-indexed and header is row 1
        try:
            marks_data = parse_marks_row(row)
        except ValueError as e:
            errors.append(MarksBulkUploadError(row_number=row_number, error_message=f"Invalid number: {e}"))
            continue

        if not marks_data["admission_no"]:
            errors.append(
                MarksBulkUploadError(
                    row_number=row_number, error_message="Admission number is required", field="admission_no"
                )
            )
            continue
        if not marks_data["subject_code"]:
            errors.append(
                MarksBulkUploadError(row_number=row_number, error_message="Subject code is required", field="subject_code")
            )
            continue
        if marks_data["marks_obtained"] is None:
            errors.append(
                MarksBulkUploadError(row_number=row_number, error_message="Marks are required", field="marks_obtained")
            )
            continue

        student = students_by_admission_no.get(marks_data["admission_no"])
        if student is None:
            errors.append(
                MarksBulkUploadError(
                    row_number=row_number,
                    error_message=f"Student with admission number '{marks_data['admission_no']}' not found",
                    field="admission_no",
                )
            )
            continue
        subject = subjects_by_code.get(marks_data["subject_code"])
        if subject is None:
            errors.append(
                MarksBulkUploadError(
                    row_number=row_number,
                    error_message=f"Subject with code '{marks_data['subject_code']}' not found",
                    field="subject_code",
                )
            )
            continue

        max_marks = marks_data["max_marks"]
        if max_marks is None:
            max_marks = subject.max_marks or DEFAULT_MAX_MARKS
        records.append(
            MarkRecord(
                student_id=student.id,
                exam_id=exam.id,
                subject_id=subject.id,
                marks_obtained=marks_data["marks_obtained"],
                max_marks=max_marks,
            )
        )
        record_row_numbers.append(row_number)

    batch = score_marks(
        records,
        [to_exam_record(exam)],
        [to_subject_record(subject) for subject in subjects],
        settings.default_passing_percentage,
        policy=InvalidMarkPolicy.SKIP,
    )
    for skipped in batch.skipped:
        errors.append(
            MarksBulkUploadError(
                row_number=record_row_numbers[skipped.index], error_message=skipped.reason, field="marks_obtained"
            )
        )

    # Commit all valid rows
    try:
        for scored in batch.scored:
            await upsert_mark(session, organization.id, scored)
        await session.commit()
    except Exception as e:
        await session.rollback()
        logger.error(f"Failed to save uploaded marks for exam {exam.id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"Failed to commit transactions: {str(e)}"
        )

    errors.sort(key=lambda error: error.row_number)
    logger.info(
        f"Bulk marks upload for exam {exam.id}: {len(batch.scored)} saved, {len(errors)} failed of {total_rows} rows"
    )
    return MarksBulkUploadResponse(
        total_rows=total_rows,
        successful=len(batch.scored),
        failed=len(errors),
        errors=errors,
    )
