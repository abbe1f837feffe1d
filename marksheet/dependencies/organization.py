from typing import Annotated

from fastapi import Depends, HTTPException, status
from sqlalchemy import select

from marksheet.dependencies.database import DBSessionDep
from marksheet.models import Organization


async def get_organization(organization_id: str, session: DBSessionDep) -> Organization:
    """Resolve the organization named in the path, or 404."""
    stmt = select(Organization).where(Organization.id == organization_id)
    result = await session.execute(stmt)
    organization = result.scalar_one_or_none()
    if organization is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Organization not found")
    return organization


OrganizationDep = Annotated[Organization, Depends(get_organization)]
