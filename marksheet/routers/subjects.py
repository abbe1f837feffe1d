from fastapi import APIRouter, HTTPException, Query, status
from sqlalchemy import delete, select

from marksheet.dependencies.database import DBSessionDep
from marksheet.dependencies.organization import OrganizationDep
from marksheet.models import Mark, Subject
from marksheet.schemas.subject import SubjectCreate, SubjectResponse, SubjectUpdate

router = APIRouter(prefix="/api/v1/organizations/{organization_id}/subjects", tags=["subjects"])


async def get_subject_or_404(session: DBSessionDep, organization_id: str, subject_id: str) -> Subject:
    stmt = select(Subject).where(Subject.id == subject_id, Subject.organization_id == organization_id)
    result = await session.execute(stmt)
    subject = result.scalar_one_or_none()
    if not subject:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Subject not found")
    return subject


@router.post("", response_model=SubjectResponse, status_code=status.HTTP_201_CREATED)
async def create_subject(
    subject: SubjectCreate, organization: OrganizationDep, session: DBSessionDep
) -> SubjectResponse:
    """Create a new subject."""
    stmt = select(Subject).where(Subject.organization_id == organization.id, Subject.code == subject.code)
    result = await session.execute(stmt)
    if result.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail=f"Subject with code {subject.code} already exists"
        )
    if subject.max_marks is not None and subject.passing_marks is not None and subject.passing_marks > subject.max_marks:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Passing marks cannot exceed max marks"
        )

    db_subject = Subject(organization_id=organization.id, **subject.model_dump())
    session.add(db_subject)
    await session.commit()
    await session.refresh(db_subject)
    return SubjectResponse.model_validate(db_subject)


@router.get("", response_model=list[SubjectResponse])
async def list_subjects(
    organization: OrganizationDep,
    session: DBSessionDep,
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200, alias="pageSize"),
) -> list[SubjectResponse]:
    """List subjects with pagination."""
    offset = (page - 1) * page_size
    stmt = (
        select(Subject)
        .where(Subject.organization_id == organization.id)
        .order_by(Subject.code)
        .offset(offset)
        .limit(page_size)
    )
    result = await session.execute(stmt)
    return [SubjectResponse.model_validate(subject) for subject in result.scalars().all()]


@router.get("/{subject_id}", response_model=SubjectResponse)
async def get_subject(subject_id: str, organization: OrganizationDep, session: DBSessionDep) -> SubjectResponse:
    """Get subject details."""
    subject = await get_subject_or_404(session, organization.id, subject_id)
    return SubjectResponse.model_validate(subject)


@router.put("/{subject_id}", response_model=SubjectResponse)
async def update_subject(
    subject_id: str, subject_update: SubjectUpdate, organization: OrganizationDep, session: DBSessionDep
) -> SubjectResponse:
    """Update subject. Existing marks keep their own max marks."""
    subject = await get_subject_or_404(session, organization.id, subject_id)

    max_marks = subject_update.max_marks if subject_update.max_marks is not None else subject.max_marks
    passing_marks = subject_update.passing_marks if subject_update.passing_marks is not None else subject.passing_marks
    if max_marks is not None and passing_marks is not None and passing_marks > max_marks:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Passing marks cannot exceed max marks"
        )

    if subject_update.name is not None:
        subject.name = subject_update.name
    if subject_update.max_marks is not None:
        subject.max_marks = subject_update.max_marks
    if subject_update.passing_marks is not None:
        subject.passing_marks = subject_update.passing_marks
    if subject_update.class_level is not None:
        subject.class_level = subject_update.class_level

    await session.commit()
    await session.refresh(subject)
    return SubjectResponse.model_validate(subject)


@router.delete("/{subject_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_subject(subject_id: str, organization: OrganizationDep, session: DBSessionDep) -> None:
    """Delete subject and its marks."""
    subject = await get_subject_or_404(session, organization.id, subject_id)

    await session.execute(delete(Mark).where(Mark.subject_id == subject.id))
    await session.delete(subject)
    await session.commit()
