from fastapi import APIRouter, Depends, Path, Request
from fastapi.responses import JSONResponse
from typing import List

from care_portal.core.config import DEACTIVATION_CONFIRMATION_TOKEN, DEACTIVATION_REASONS
from care_portal.core.limits import limiter
from care_portal.core.dependencies import get_actor_id, get_enrollment_service
from care_portal.enrollments.models.service_enrollments import (
    OTHER_REASON,
    REMOVAL_REASON_LABELS,
    USER_SELECTABLE_REMOVAL_REASONS,
)
from care_portal.enrollments.schemas.enrollments import (
    ChangeStaffRequest,
    DeactivateServiceRequest,
    EnrollmentMetadataUpdate,
    EnrollmentReasons,
    ReactivateServiceRequest,
    ReasonOption,
)
from care_portal.enrollments.schemas.results import EnrollmentResult
from care_portal.enrollments.services.enrollment_service import EnrollmentService
from care_portal.staff.schemas.staff import EligibleStaff

router = APIRouter(prefix="/enrollments", tags=["Enrollments"])


def _respond(result: EnrollmentResult):
    """Failures keep the result shape, with the status taken from the error kind"""
    if not result.success:
        return JSONResponse(status_code=result.http_status, content=result.model_dump(mode="json"))
    return result


@router.get("/reasons", response_model=EnrollmentReasons)
@limiter.limit("60/minute")
async def get_enrollment_reasons(request: Request):
    """
    Reason options for the change-staff and deactivate dialogs and the
    confirmation word required to deactivate.
    """
    return EnrollmentReasons(
        staff_removal_reasons=[
            ReasonOption(value=reason.value, label=REMOVAL_REASON_LABELS[reason])
            for reason in USER_SELECTABLE_REMOVAL_REASONS
        ],
        service_deactivation_reasons=[
            *(ReasonOption(value=label, label=label) for label in DEACTIVATION_REASONS),
            ReasonOption(value=OTHER_REASON, label="Other"),
        ],
        confirmation_token=DEACTIVATION_CONFIRMATION_TOKEN,
    )


@router.post("/{enrollment_id}/change-staff", response_model=EnrollmentResult)
@limiter.limit("20/minute")
async def change_enrollment_staff(
    request: Request,
    data: ChangeStaffRequest,
    enrollment_id: str = Path(..., description="Enrollment ID"),
    actor_id: str = Depends(get_actor_id),
    service: EnrollmentService = Depends(get_enrollment_service),
):
    """
    Replace the staff member of an active enrollment. The previous
    assignment is moved to the staff history.

    - **new_staff**: Staff id, name and role (must match the service type)
    - **reason**: staff_transferred, scheduling_conflict, staff_resigned,
      parent_request, admin_decision or other
    - **note**: Required when reason is other
    """
    result = await service.change_staff(
        enrollment_id, data.new_staff, data.reason, actor_id, note=data.note
    )
    return _respond(result)


@router.post("/{enrollment_id}/deactivate", response_model=EnrollmentResult)
@limiter.limit("20/minute")
async def deactivate_enrollment(
    request: Request,
    data: DeactivateServiceRequest,
    enrollment_id: str = Path(..., description="Enrollment ID"),
    actor_id: str = Depends(get_actor_id),
    service: EnrollmentService = Depends(get_enrollment_service),
):
    """
    Deactivate a service for the child.

    - **reason**: One of the configured labels, or other
    - **custom_reason**: Required when reason is other
    - **confirmation**: Must be the confirmation word (case-insensitive)
    """
    result = await service.deactivate_service(
        enrollment_id,
        data.reason,
        actor_id,
        confirmation=data.confirmation,
        custom_reason=data.custom_reason,
    )
    return _respond(result)


@router.post("/{enrollment_id}/reactivate", response_model=EnrollmentResult)
@limiter.limit("20/minute")
async def reactivate_enrollment(
    request: Request,
    data: ReactivateServiceRequest,
    enrollment_id: str = Path(..., description="Enrollment ID"),
    actor_id: str = Depends(get_actor_id),
    service: EnrollmentService = Depends(get_enrollment_service),
):
    """
    Reactivate an inactive service with a new staff member.

    - **new_staff**: Staff id, name and role (must match the service type)
    """
    result = await service.reactivate_service(enrollment_id, data.new_staff, actor_id)
    return _respond(result)


@router.patch("/{enrollment_id}", response_model=EnrollmentResult)
@limiter.limit("20/minute")
async def update_enrollment(
    request: Request,
    data: EnrollmentMetadataUpdate,
    enrollment_id: str = Path(..., description="Enrollment ID"),
    actor_id: str = Depends(get_actor_id),
    service: EnrollmentService = Depends(get_enrollment_service),
):
    """
    Update enrollment details. Only provided fields are changed.

    - **frequency**: Session frequency
    - **notes**: Admin notes
    - **last_activity_date**: Last session date
    """
    result = await service.update_metadata(enrollment_id, data, actor_id)
    return _respond(result)


@router.get("/{enrollment_id}/eligible-staff", response_model=List[EligibleStaff])
@limiter.limit("30/minute")
async def get_eligible_staff(
    request: Request,
    enrollment_id: str = Path(..., description="Enrollment ID"),
    service: EnrollmentService = Depends(get_enrollment_service),
):
    """
    Staff who can take over this enrollment: matching role, specialized in
    the service or unspecialized, excluding the current staff member.
    """
    return await service.list_eligible_staff(enrollment_id)
