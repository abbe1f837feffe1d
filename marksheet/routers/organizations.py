from fastapi import APIRouter, HTTPException, Query, status
from sqlalchemy import select

from marksheet.dependencies.database import DBSessionDep
from marksheet.dependencies.organization import OrganizationDep
from marksheet.models import Organization
from marksheet.schemas.organization import OrganizationCreate, OrganizationResponse

router = APIRouter(prefix="/api/v1/organizations", tags=["organizations"])


@router.post("", response_model=OrganizationResponse, status_code=status.HTTP_201_CREATED)
async def create_organization(organization: OrganizationCreate, session: DBSessionDep) -> OrganizationResponse:
    """Create a new organization (school)."""
    stmt = select(Organization).where(Organization.code == organization.code)
    result = await session.execute(stmt)
    if result.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Organization with code {organization.code} already exists",
        )

    db_organization = Organization(code=organization.code, name=organization.name)
    session.add(db_organization)
    await session.commit()
    await session.refresh(db_organization)
    return OrganizationResponse.model_validate(db_organization)


@router.get("", response_model=list[OrganizationResponse])
async def list_organizations(
    session: DBSessionDep,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100, alias="pageSize"),
) -> list[OrganizationResponse]:
    """List organizations with pagination."""
    offset = (page - 1) * page_size
    stmt = select(Organization).offset(offset).limit(page_size).order_by(Organization.code)
    result = await session.execute(stmt)
    return [OrganizationResponse.model_validate(organization) for organization in result.scalars().all()]


@router.get("/{organization_id}", response_model=OrganizationResponse)
async def get_organization(organization: OrganizationDep) -> OrganizationResponse:
    """Get organization details."""
    return OrganizationResponse.model_validate(organization)
