from fastapi import APIRouter, HTTPException, Query, status
from sqlalchemy import delete, select

from marksheet.dependencies.database import DBSessionDep
from marksheet.dependencies.organization import OrganizationDep
from marksheet.models import Exam, ExamStatus, Mark
from marksheet.schemas.exam import ExamCreate, ExamResponse, ExamUpdate

router = APIRouter(prefix="/api/v1/organizations/{organization_id}/exams", tags=["exams"])


async def get_exam_or_404(session: DBSessionDep, organization_id: str, exam_id: str) -> Exam:
    stmt = select(Exam).where(Exam.id == exam_id, Exam.organization_id == organization_id)
    result = await session.execute(stmt)
    exam = result.scalar_one_or_none()
    if not exam:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Exam not found")
    return exam


@router.post("", response_model=ExamResponse, status_code=status.HTTP_201_CREATED)
async def create_exam(exam: ExamCreate, organization: OrganizationDep, session: DBSessionDep) -> ExamResponse:
    """Create a new exam."""
    if exam.total_marks is not None and exam.passing_marks is not None and exam.passing_marks > exam.total_marks:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Passing marks cannot exceed total marks"
        )

    db_exam = Exam(organization_id=organization.id, **exam.model_dump())
    session.add(db_exam)
    await session.commit()
    await session.refresh(db_exam)
    return ExamResponse.model_validate(db_exam)


@router.get("", response_model=list[ExamResponse])
async def list_exams(
    organization: OrganizationDep,
    session: DBSessionDep,
    exam_status: ExamStatus | None = Query(None, alias="status", description="Filter by exam status"),
    class_level: str | None = Query(None, alias="classLevel", description="Filter by class"),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200, alias="pageSize"),
) -> list[ExamResponse]:
    """List exams with pagination."""
    offset = (page - 1) * page_size
    stmt = select(Exam).where(Exam.organization_id == organization.id)
    if exam_status:
        stmt = stmt.where(Exam.status == exam_status)
    if class_level:
        stmt = stmt.where(Exam.class_level == class_level)
    stmt = stmt.order_by(Exam.exam_date, Exam.name).offset(offset).limit(page_size)
    result = await session.execute(stmt)
    return [ExamResponse.model_validate(exam) for exam in result.scalars().all()]


@router.get("/{exam_id}", response_model=ExamResponse)
async def get_exam(exam_id: str, organization: OrganizationDep, session: DBSessionDep) -> ExamResponse:
    """Get exam details."""
    exam = await get_exam_or_404(session, organization.id, exam_id)
    return ExamResponse.model_validate(exam)


@router.put("/{exam_id}", response_model=ExamResponse)
async def update_exam(
    exam_id: str, exam_update: ExamUpdate, organization: OrganizationDep, session: DBSessionDep
) -> ExamResponse:
    """Update exam."""
    exam = await get_exam_or_404(session, organization.id, exam_id)

    total_marks = exam_update.total_marks if exam_update.total_marks is not None else exam.total_marks
    passing_marks = exam_update.passing_marks if exam_update.passing_marks is not None else exam.passing_marks
    if total_marks is not None and passing_marks is not None and passing_marks > total_marks:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Passing marks cannot exceed total marks"
        )

    for field, value in exam_update.model_dump(exclude_none=True).items():
        setattr(exam, field, value)

    await session.commit()
    await session.refresh(exam)
    return ExamResponse.model_validate(exam)


@router.delete("/{exam_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_exam(exam_id: str, organization: OrganizationDep, session: DBSessionDep) -> None:
    """Delete exam and its marks."""
    exam = await get_exam_or_404(session, organization.id, exam_id)

    await session.execute(delete(Mark).where(Mark.exam_id == exam.id))
    await session.delete(exam)
    await session.commit()
