"""Staff history accounting.

Pure functions: nothing here touches the database. The state machine calls
them to close assignments; the projection layer uses them for display.
"""
import uuid
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from care_portal.enrollments.models.service_enrollments import (
    EnrollmentStatus,
    REMOVAL_REASON_LABELS,
    StaffRemovalReason,
)
from care_portal.enrollments.schemas.enrollments import (
    ServiceEnrollment,
    StaffAssignment,
    StaffHistoryRecord,
    StaffIds,
    StaffTimelineEntry,
)

ONE_DAY = timedelta(days=1)


def generate_history_id() -> str:
    return f"hist_{uuid.uuid4().hex}"


def duration_in_days(start: datetime, end: datetime) -> int:
    """Whole 24h periods between two instants, never negative"""
    return max(0, (end - start) // ONE_DAY)


def close_assignment(
    assignment: StaffAssignment,
    removed_at: datetime,
    reason: StaffRemovalReason,
    removed_by: Optional[str] = None,
    removal_note: Optional[str] = None,
) -> StaffHistoryRecord:
    """Turn the open assignment into an immutable history record.

    duration_days is fixed here and never recomputed.
    """
    return StaffHistoryRecord(
        history_id=generate_history_id(),
        staff_id=assignment.staff_id,
        staff_name=assignment.staff_name,
        staff_role=assignment.staff_role,
        assigned_at=assignment.assigned_at,
        assigned_by=assignment.assigned_by,
        removed_at=removed_at,
        removal_reason=StaffRemovalReason(reason),
        removal_note=removal_note,
        removed_by=removed_by,
        duration_days=duration_in_days(assignment.assigned_at, removed_at),
    )


def format_duration(days: Optional[int]) -> str:
    """Human readable assignment length.

    <1 day -> "Less than a day", <30 -> days, <365 -> whole 30-day months,
    otherwise years plus remaining months ("1y 1m"), or just years when the
    remainder is under a month.
    """
    if not days or days < 1:
        return "Less than a day"
    if days == 1:
        return "1 day"
    if days < 30:
        return f"{days} days"
    if days < 365:
        months = days // 30
        return "1 month" if months == 1 else f"{months} months"

    years = days // 365
    remaining_months = (days % 365) // 30
    if remaining_months == 0:
        return "1 year" if years == 1 else f"{years} years"
    return f"{years}y {remaining_months}m"


def reason_label(reason: Optional[str]) -> Optional[str]:
    if reason is None:
        return None
    try:
        return REMOVAL_REASON_LABELS[StaffRemovalReason(reason)]
    except ValueError:
        return reason


def build_staff_timeline(enrollments: Iterable[ServiceEnrollment]) -> List[StaffTimelineEntry]:
    """Current and past staff of a child across all services, newest assignment first"""
    entries: List[StaffTimelineEntry] = []

    for enrollment in enrollments:
        staff = enrollment.current_staff
        if staff is not None and enrollment.status == EnrollmentStatus.active:
            entries.append(
                StaffTimelineEntry(
                    enrollment_id=enrollment.enrollment_id,
                    service_name=enrollment.service_name,
                    service_type=enrollment.service_type,
                    staff_id=staff.staff_id,
                    staff_name=staff.staff_name,
                    staff_role=staff.staff_role,
                    assigned_at=staff.assigned_at,
                    is_current=True,
                )
            )

        for record in enrollment.staff_history:
            entries.append(
                StaffTimelineEntry(
                    enrollment_id=enrollment.enrollment_id,
                    service_name=enrollment.service_name,
                    service_type=enrollment.service_type,
                    staff_id=record.staff_id,
                    staff_name=record.staff_name,
                    staff_role=record.staff_role,
                    assigned_at=record.assigned_at,
                    removed_at=record.removed_at,
                    removal_reason=record.removal_reason,
                    removal_reason_label=reason_label(record.removal_reason),
                    duration_days=record.duration_days,
                    duration_label=format_duration(record.duration_days),
                    is_current=False,
                )
            )

    entries.sort(key=lambda entry: entry.assigned_at, reverse=True)
    return entries


def collect_staff_ids(enrollments: Iterable[ServiceEnrollment]) -> StaffIds:
    """Staff serving the child now, and everyone who ever did"""
    assigned: List[str] = []
    historical: List[str] = []

    for enrollment in enrollments:
        staff = enrollment.current_staff
        if staff is not None:
            if enrollment.status == EnrollmentStatus.active and staff.staff_id not in assigned:
                assigned.append(staff.staff_id)
            if staff.staff_id not in historical:
                historical.append(staff.staff_id)

        for record in enrollment.staff_history:
            if record.staff_id not in historical:
                historical.append(record.staff_id)

    return StaffIds(assigned_staff_ids=assigned, all_historical_staff_ids=historical)
