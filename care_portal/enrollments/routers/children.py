from fastapi import APIRouter, Depends, Path, Request, status
from fastapi.responses import JSONResponse
from typing import List

from care_portal.core.limits import limiter
from care_portal.core.dependencies import (
    get_actor_id,
    get_enrollment_service,
    get_query_service,
    get_viewer,
)
from care_portal.enrollments.schemas.enrollments import (
    ChildEnrollmentsOverview,
    EnrollServiceRequest,
    StaffIds,
    StaffTimelineEntry,
)
from care_portal.enrollments.schemas.results import EnrollmentResult
from care_portal.enrollments.services.enrollment_service import EnrollmentService
from care_portal.enrollments.services.history import collect_staff_ids
from care_portal.enrollments.services.projections import EnrollmentQueryService

router = APIRouter(prefix="/children", tags=["Child Enrollments"])


@router.get("/{child_id}/enrollments", response_model=ChildEnrollmentsOverview)
@limiter.limit("60/minute")
async def get_child_enrollments(
    request: Request,
    child_id: str = Path(..., description="Child ID"),
    viewer: dict = Depends(get_viewer),
    queries: EnrollmentQueryService = Depends(get_query_service),
):
    """
    Enrollments of a child, split into active and inactive, with active ones
    grouped into therapy and class.

    Teachers and therapists (`X-Viewer-Role`) only see the enrollments they
    currently staff (`X-Viewer-Id`).
    """
    return await queries.get_child_overview(child_id, viewer["role"], viewer["id"])


@router.get("/{child_id}/staff-history", response_model=List[StaffTimelineEntry])
@limiter.limit("60/minute")
async def get_child_staff_history(
    request: Request,
    child_id: str = Path(..., description="Child ID"),
    queries: EnrollmentQueryService = Depends(get_query_service),
):
    """
    Current and past staff across all services of the child, most recent
    assignment first.
    """
    return await queries.get_staff_history(child_id)


@router.get("/{child_id}/staff-ids", response_model=StaffIds)
@limiter.limit("60/minute")
async def get_child_staff_ids(
    request: Request,
    child_id: str = Path(..., description="Child ID"),
    queries: EnrollmentQueryService = Depends(get_query_service),
):
    """Ids of staff serving the child now and of everyone who ever did"""
    enrollments = await queries.get_child_enrollments(child_id)
    return collect_staff_ids(enrollments)


@router.post(
    "/{child_id}/enrollments",
    response_model=EnrollmentResult,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit("10/minute")
async def enroll_child_in_service(
    request: Request,
    data: EnrollServiceRequest,
    child_id: str = Path(..., description="Child ID"),
    actor_id: str = Depends(get_actor_id),
    service: EnrollmentService = Depends(get_enrollment_service),
):
    """
    Enroll a child in a service with its first staff member.

    If the child was enrolled in the same service before and it is now
    inactive, that enrollment is reactivated instead.

    - **service_id**: Service catalogue id (optional)
    - **service_name**: Service name
    - **service_type**: Therapy or Class
    - **staff**: First staff member (therapist for Therapy, teacher for Class)
    - **frequency**: e.g. "2x weekly" (optional)
    - **notes**: Admin notes (optional)
    """
    result = await service.enroll_service(child_id, data, actor_id)
    if not result.success:
        return JSONResponse(status_code=result.http_status, content=result.model_dump(mode="json"))
    return result
