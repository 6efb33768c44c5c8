"""Builders shared by the test modules"""
from datetime import datetime, timedelta, timezone

from care_portal.enrollments.models import EnrollmentStatus, ServiceType, StaffRole
from care_portal.enrollments.schemas.enrollments import (
    ServiceEnrollment,
    StaffAssignment,
    StaffSelection,
)

DAY0 = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)


def make_enrollment(
    enrollment_id: str = "enr_1",
    child_id: str = "child_1",
    service_name: str = "Speech Therapy",
    service_type: ServiceType = ServiceType.therapy,
    staff_id: str = "th_1",
    staff_name: str = "Tara Hale",
    staff_role: StaffRole = None,
    assigned_at: datetime = DAY0,
    **overrides,
) -> ServiceEnrollment:
    """Active enrollment with one current assignment"""
    if staff_role is None:
        staff_role = StaffRole.therapist if service_type == ServiceType.therapy else StaffRole.teacher

    fields = dict(
        enrollment_id=enrollment_id,
        child_id=child_id,
        service_id=f"svc_{service_name.lower().replace(' ', '_')}",
        service_name=service_name,
        service_type=service_type,
        status=EnrollmentStatus.active,
        current_staff=StaffAssignment(
            staff_id=staff_id,
            staff_name=staff_name,
            staff_role=staff_role,
            assigned_at=assigned_at,
            assigned_by="admin_1",
        ),
        staff_history=[],
        enrolled_at=assigned_at,
        status_changed_at=assigned_at,
    )
    fields.update(overrides)
    return ServiceEnrollment(**fields)


def selection(staff_id: str, name: str = "New Staff", role: StaffRole = StaffRole.therapist) -> StaffSelection:
    return StaffSelection(staff_id=staff_id, staff_name=name, staff_role=role)


class FixedClock:
    """Injectable clock; advance() moves it forward"""

    def __init__(self, start: datetime = DAY0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta):
        self.now = self.now + timedelta(**delta)

