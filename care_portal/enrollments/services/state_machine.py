"""
Enrollment lifecycle transitions.

active --deactivate--> inactive --reactivate--> active, and change_staff
within active. Every function here is pure: it takes an enrollment and
returns an EnrollmentResult holding the new record or an INVALID_REQUEST
failure. Nothing is persisted and precondition failures never raise.
"""
from datetime import datetime
from typing import Optional

from care_portal.core.config import DEACTIVATION_CONFIRMATION_TOKEN
from care_portal.enrollments.models.service_enrollments import (
    OTHER_REASON,
    EnrollmentStatus,
    ServiceType,
    StaffRemovalReason,
    StaffRole,
    USER_SELECTABLE_REMOVAL_REASONS,
)
from care_portal.enrollments.schemas.enrollments import (
    ServiceEnrollment,
    StaffAssignment,
    StaffSelection,
    utc_now,
)
from care_portal.enrollments.schemas.results import EnrollmentResult, ErrorKind
from care_portal.enrollments.services.history import close_assignment

SERVICE_ROLES = {
    ServiceType.therapy: StaffRole.therapist,
    ServiceType.group_class: StaffRole.teacher,
}


def required_role(service_type: ServiceType) -> StaffRole:
    """Therapy is staffed by therapists, classes by teachers"""
    return SERVICE_ROLES[ServiceType(service_type)]


def is_deactivation_confirmed(
    confirmation: Optional[str],
    token: str = DEACTIVATION_CONFIRMATION_TOKEN,
) -> bool:
    return (confirmation or "").strip().lower() == token.strip().lower()


def resolve_deactivation_reason(
    reason: Optional[str], custom_reason: Optional[str] = None
) -> Optional[str]:
    """Stored status_change_reason: the selected label, or the typed text for 'other'"""
    reason = (reason or "").strip()
    if reason.lower() == OTHER_REASON:
        return (custom_reason or "").strip() or None
    return reason or None


def _invalid(message: str) -> EnrollmentResult:
    return EnrollmentResult.fail(ErrorKind.invalid_request, message)


def _replace(enrollment: ServiceEnrollment, **changes) -> ServiceEnrollment:
    # Re-run validation so the status/current_staff invariant is checked
    return ServiceEnrollment(**{**dict(enrollment), **changes})


def _check_candidate(enrollment: ServiceEnrollment, new_staff: StaffSelection) -> Optional[str]:
    if new_staff is None or not new_staff.staff_id:
        return "A staff member must be selected"

    expected = required_role(enrollment.service_type)
    if new_staff.staff_role != expected:
        return (
            f"{enrollment.service_type.value} services must be staffed by a "
            f"{expected.value}, got {new_staff.staff_role.value}"
        )
    return None


def _assignment(new_staff: StaffSelection, now: datetime, actor_id: Optional[str]) -> StaffAssignment:
    return StaffAssignment(
        staff_id=new_staff.staff_id,
        staff_name=new_staff.staff_name,
        staff_role=new_staff.staff_role,
        assigned_at=now,
        assigned_by=actor_id,
    )


def change_staff(
    enrollment: ServiceEnrollment,
    new_staff: StaffSelection,
    reason: str,
    *,
    now: Optional[datetime] = None,
    actor_id: Optional[str] = None,
    note: Optional[str] = None,
) -> EnrollmentResult:
    """Close the current assignment into history and assign new_staff"""
    if enrollment.status != EnrollmentStatus.active or enrollment.current_staff is None:
        return _invalid("Staff can only be changed on an active enrollment")

    try:
        removal_reason = StaffRemovalReason(reason)
    except ValueError:
        return _invalid(f"Unknown staff removal reason '{reason}'")

    if removal_reason not in USER_SELECTABLE_REMOVAL_REASONS:
        return _invalid(f"Staff removal reason '{reason}' cannot be selected")

    note = (note or "").strip() or None
    if removal_reason == StaffRemovalReason.other and not note:
        return _invalid("Please describe the reason for the staff change")

    problem = _check_candidate(enrollment, new_staff)
    if problem:
        return _invalid(problem)

    if new_staff.staff_id == enrollment.current_staff.staff_id:
        return _invalid("The selected staff member is already assigned to this service")

    now = now or utc_now()
    closed = close_assignment(
        enrollment.current_staff,
        removed_at=now,
        reason=removal_reason,
        removed_by=actor_id,
        removal_note=note,
    )

    return EnrollmentResult.ok(
        _replace(
            enrollment,
            current_staff=_assignment(new_staff, now, actor_id),
            staff_history=[closed, *enrollment.staff_history],
        )
    )


def deactivate(
    enrollment: ServiceEnrollment,
    reason: str,
    *,
    now: Optional[datetime] = None,
    actor_id: Optional[str] = None,
) -> EnrollmentResult:
    """Close the current assignment and mark the enrollment inactive.

    The history entry always records service_deactivated; the caller's
    reason goes to status_change_reason.
    """
    if enrollment.status != EnrollmentStatus.active or enrollment.current_staff is None:
        return _invalid("Service is already inactive")

    reason = (reason or "").strip()
    if not reason:
        return _invalid("A reason is required to deactivate a service")

    now = now or utc_now()
    closed = close_assignment(
        enrollment.current_staff,
        removed_at=now,
        reason=StaffRemovalReason.service_deactivated,
        removed_by=actor_id,
    )

    return EnrollmentResult.ok(
        _replace(
            enrollment,
            status=EnrollmentStatus.inactive,
            current_staff=None,
            staff_history=[closed, *enrollment.staff_history],
            status_changed_at=now,
            status_change_reason=reason,
        )
    )


def reactivate(
    enrollment: ServiceEnrollment,
    new_staff: StaffSelection,
    *,
    now: Optional[datetime] = None,
    actor_id: Optional[str] = None,
) -> EnrollmentResult:
    """Assign new_staff to an inactive enrollment. History is left untouched."""
    if enrollment.status != EnrollmentStatus.inactive:
        return _invalid("Service is already active")

    problem = _check_candidate(enrollment, new_staff)
    if problem:
        return _invalid(problem)

    now = now or utc_now()
    return EnrollmentResult.ok(
        _replace(
            enrollment,
            status=EnrollmentStatus.active,
            current_staff=_assignment(new_staff, now, actor_id),
            status_changed_at=now,
            status_change_reason=None,
        )
    )
