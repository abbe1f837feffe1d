from fastapi import APIRouter, HTTPException, Query, status
from sqlalchemy import delete, select

from marksheet.dependencies.database import DBSessionDep
from marksheet.dependencies.organization import OrganizationDep
from marksheet.models import Exam, Mark, Student
from marksheet.schemas.scoring import ExamResult
from marksheet.schemas.student import StudentCreate, StudentResponse, StudentUpdate
from marksheet.services.aggregation import build_exam_result
from marksheet.services.records import score_stored_marks

router = APIRouter(prefix="/api/v1/organizations/{organization_id}/students", tags=["students"])


async def get_student_or_404(session: DBSessionDep, organization_id: str, student_id: str) -> Student:
    stmt = select(Student).where(Student.id == student_id, Student.organization_id == organization_id)
    result = await session.execute(stmt)
    student = result.scalar_one_or_none()
    if not student:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Student not found")
    return student


@router.post("", response_model=StudentResponse, status_code=status.HTTP_201_CREATED)
async def create_student(
    student: StudentCreate, organization: OrganizationDep, session: DBSessionDep
) -> StudentResponse:
    """Enroll a new student."""
    stmt = select(Student).where(
        Student.organization_id == organization.id, Student.admission_no == student.admission_no
    )
    result = await session.execute(stmt)
    if result.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Student with admission number {student.admission_no} already exists",
        )

    db_student = Student(organization_id=organization.id, **student.model_dump())
    session.add(db_student)
    await session.commit()
    await session.refresh(db_student)
    return StudentResponse.model_validate(db_student)


@router.get("", response_model=list[StudentResponse])
async def list_students(
    organization: OrganizationDep,
    session: DBSessionDep,
    class_level: str | None = Query(None, alias="classLevel", description="Filter by class"),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200, alias="pageSize"),
) -> list[StudentResponse]:
    """List students with pagination."""
    offset = (page - 1) * page_size
    stmt = select(Student).where(Student.organization_id == organization.id)
    if class_level:
        stmt = stmt.where(Student.class_level == class_level)
    stmt = stmt.order_by(Student.class_level, Student.admission_no).offset(offset).limit(page_size)
    result = await session.execute(stmt)
    return [StudentResponse.model_validate(student) for student in result.scalars().all()]


@router.get("/{student_id}", response_model=StudentResponse)
async def get_student(student_id: str, organization: OrganizationDep, session: DBSessionDep) -> StudentResponse:
    """Get student details."""
    student = await get_student_or_404(session, organization.id, student_id)
    return StudentResponse.model_validate(student)


@router.put("/{student_id}", response_model=StudentResponse)
async def update_student(
    student_id: str, student_update: StudentUpdate, organization: OrganizationDep, session: DBSessionDep
) -> StudentResponse:
    """Update student."""
    student = await get_student_or_404(session, organization.id, student_id)

    if student_update.name is not None:
        student.name = student_update.name
    if student_update.class_level is not None:
        student.class_level = student_update.class_level
    if student_update.section is not None:
        student.section = student_update.section
    if student_update.roll_number is not None:
        student.roll_number = student_update.roll_number
    if student_update.email is not None:
        student.email = student_update.email

    await session.commit()
    await session.refresh(student)
    return StudentResponse.model_validate(student)


@router.delete("/{student_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_student(student_id: str, organization: OrganizationDep, session: DBSessionDep) -> None:
    """Delete student and their marks."""
    student = await get_student_or_404(session, organization.id, student_id)

    await session.execute(delete(Mark).where(Mark.student_id == student.id))
    await session.delete(student)
    await session.commit()


@router.get("/{student_id}/exams/{exam_id}/result", response_model=ExamResult)
async def get_exam_result(
    student_id: str, exam_id: str, organization: OrganizationDep, session: DBSessionDep
) -> ExamResult:
    """Certificate data for one student in one exam: subject marks, totals, percentage and grade."""
    student = await get_student_or_404(session, organization.id, student_id)

    exam_stmt = select(Exam).where(Exam.id == exam_id, Exam.organization_id == organization.id)
    exam_result = await session.execute(exam_stmt)
    exam = exam_result.scalar_one_or_none()
    if not exam:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Exam not found")

    batch = await score_stored_marks(session, organization.id, exam_id=exam.id, student_id=student.id)
    return build_exam_result(student.id, exam.id, batch.scored, exam.exam_date)
