from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from care_portal.enrollments.models import EnrollmentStatus, ServiceType, StaffRemovalReason, StaffRole
from care_portal.enrollments.schemas.enrollments import StaffAssignment
from care_portal.enrollments.services.history import (
    build_staff_timeline,
    close_assignment,
    collect_staff_ids,
    format_duration,
    reason_label,
)
from care_portal.enrollments.services.state_machine import change_staff, deactivate

from helpers import DAY0, make_enrollment, selection


def assignment(assigned_at: datetime) -> StaffAssignment:
    return StaffAssignment(
        staff_id="th_1",
        staff_name="Tara Hale",
        staff_role=StaffRole.therapist,
        assigned_at=assigned_at,
        assigned_by="admin_1",
    )


class TestCloseAssignment:
    def test_duration_counts_whole_days(self):
        record = close_assignment(
            assignment(datetime(2024, 1, 1, tzinfo=timezone.utc)),
            datetime(2024, 1, 10, tzinfo=timezone.utc),
            StaffRemovalReason.staff_resigned,
        )
        assert record.duration_days == 9

    def test_same_instant_is_zero_days(self):
        record = close_assignment(assignment(DAY0), DAY0, StaffRemovalReason.parent_request)
        assert record.duration_days == 0

    def test_partial_day_is_floored(self):
        record = close_assignment(
            assignment(DAY0), DAY0 + timedelta(days=2, hours=23), StaffRemovalReason.parent_request
        )
        assert record.duration_days == 2

    def test_removal_before_assignment_clamps_to_zero(self):
        record = close_assignment(
            assignment(DAY0), DAY0 - timedelta(hours=5), StaffRemovalReason.admin_decision
        )
        assert record.duration_days == 0

    def test_copies_assignment_and_audit_fields(self):
        removed_at = DAY0 + timedelta(days=3)
        record = close_assignment(
            assignment(DAY0),
            removed_at,
            StaffRemovalReason.other,
            removed_by="admin_2",
            removal_note="Family moved",
        )

        assert record.staff_id == "th_1"
        assert record.staff_name == "Tara Hale"
        assert record.staff_role == StaffRole.therapist
        assert record.assigned_at == DAY0
        assert record.assigned_by == "admin_1"
        assert record.removed_at == removed_at
        assert record.removal_reason == StaffRemovalReason.other
        assert record.removed_by == "admin_2"
        assert record.removal_note == "Family moved"

    def test_history_ids_are_unique(self):
        first = close_assignment(assignment(DAY0), DAY0, StaffRemovalReason.parent_request)
        second = close_assignment(assignment(DAY0), DAY0, StaffRemovalReason.parent_request)
        assert first.history_id != second.history_id

    def test_records_are_frozen(self):
        record = close_assignment(assignment(DAY0), DAY0, StaffRemovalReason.parent_request)
        with pytest.raises(ValidationError):
            record.duration_days = 42


@pytest.mark.parametrize(
    "days, expected",
    [
        (0, "Less than a day"),
        (1, "1 day"),
        (2, "2 days"),
        (29, "29 days"),
        (30, "1 month"),
        (59, "1 month"),
        (60, "2 months"),
        (364, "12 months"),
        (365, "1 year"),
        (400, "1y 1m"),
        (730, "2 years"),
        (800, "2y 2m"),
    ],
)
def test_format_duration(days, expected):
    assert format_duration(days) == expected


def test_format_duration_without_value():
    assert format_duration(None) == "Less than a day"


def test_reason_labels():
    assert reason_label("admin_decision") == "Administrative Decision"
    assert reason_label(StaffRemovalReason.service_deactivated) == "Service Deactivated"
    assert reason_label("legacy_code") == "legacy_code"
    assert reason_label(None) is None


def test_staff_timeline_lists_current_and_past_staff_newest_first():
    speech = make_enrollment()
    speech = change_staff(
        speech,
        selection("th_2", "Owen Price"),
        "scheduling_conflict",
        now=DAY0 + timedelta(days=5),
        actor_id="admin_1",
    ).enrollment

    art = make_enrollment(
        enrollment_id="enr_2",
        service_name="Art",
        service_type=ServiceType.group_class,
        staff_id="te_1",
        staff_name="Lena Moss",
        assigned_at=DAY0 + timedelta(days=1),
    )
    art = deactivate(
        art, "Goals Achieved", now=DAY0 + timedelta(days=40), actor_id="admin_1"
    ).enrollment

    timeline = build_staff_timeline([speech, art])

    assert [(entry.staff_id, entry.is_current) for entry in timeline] == [
        ("th_2", True),
        ("te_1", False),
        ("th_1", False),
    ]
    past_teacher = timeline[1]
    assert past_teacher.removal_reason_label == "Service Deactivated"
    assert past_teacher.duration_days == 39
    assert past_teacher.duration_label == "1 month"
    assert timeline[0].removed_at is None


def test_collect_staff_ids():
    speech = change_staff(
        make_enrollment(),
        selection("th_2"),
        "staff_resigned",
        now=DAY0 + timedelta(days=2),
    ).enrollment
    art = deactivate(
        make_enrollment(
            enrollment_id="enr_2",
            service_name="Art",
            service_type=ServiceType.group_class,
            staff_id="te_1",
        ),
        "Parent Request",
        now=DAY0 + timedelta(days=3),
    ).enrollment

    ids = collect_staff_ids([speech, art])

    assert art.status == EnrollmentStatus.inactive
    assert ids.assigned_staff_ids == ["th_2"]
    assert ids.all_historical_staff_ids == ["th_2", "th_1", "te_1"]
