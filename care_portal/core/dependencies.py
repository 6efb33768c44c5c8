from typing import Optional
from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from .cache import get_cache_backend
from .database import get_session
from .exceptions import AuthenticationError, ValidationError
from care_portal.enrollments.services.enrollment_service import EnrollmentService
from care_portal.enrollments.services.projections import (
    EnrollmentCache,
    EnrollmentQueryService,
    ViewerRole,
)
from care_portal.staff.crud.directory import StaffDirectory


async def get_actor_id(x_actor_id: Optional[str] = Header(None)) -> str:
    """Id of the admin performing a mutation (authentication happens upstream)"""
    if not x_actor_id or not x_actor_id.strip():
        raise AuthenticationError("X-Actor-Id header is required")
    return x_actor_id.strip()


async def get_viewer(
    x_viewer_role: Optional[str] = Header(None),
    x_viewer_id: Optional[str] = Header(None),
) -> dict:
    """Role and id of the reader; defaults to an admin view"""
    role = (x_viewer_role or ViewerRole.admin.value).strip().lower()
    try:
        viewer_role = ViewerRole(role)
    except ValueError:
        raise ValidationError(
            f"Unknown viewer role '{x_viewer_role}'",
            {"allowed": [r.value for r in ViewerRole]},
        )

    if viewer_role in (ViewerRole.teacher, ViewerRole.therapist) and not x_viewer_id:
        raise ValidationError("X-Viewer-Id header is required for staff viewers")

    return {"role": viewer_role, "id": x_viewer_id}


async def get_enrollment_cache(backend=Depends(get_cache_backend)) -> EnrollmentCache:
    return EnrollmentCache(backend)


async def get_enrollment_service(
    db: AsyncSession = Depends(get_session),
    cache: EnrollmentCache = Depends(get_enrollment_cache),
) -> EnrollmentService:
    return EnrollmentService(db, cache, StaffDirectory(db))


async def get_query_service(
    db: AsyncSession = Depends(get_session),
    cache: EnrollmentCache = Depends(get_enrollment_cache),
) -> EnrollmentQueryService:
    return EnrollmentQueryService(db, cache)
