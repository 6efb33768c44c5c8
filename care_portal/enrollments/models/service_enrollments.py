"""Service Enrollment Model - one row per (child, service) enrollment"""
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    DateTime,
    JSON,
    Index,
    Enum as SQLEnum,
)
from enum import Enum
from care_portal.core.database import Base


class ServiceType(str, Enum):
    """Kind of service a child is enrolled in"""
    therapy = "Therapy"
    group_class = "Class"


class EnrollmentStatus(str, Enum):
    active = "active"
    inactive = "inactive"


class StaffRole(str, Enum):
    teacher = "teacher"
    therapist = "therapist"


class StaffRemovalReason(str, Enum):
    """Why a staff member stopped serving an enrollment"""
    staff_transferred = "staff_transferred"
    scheduling_conflict = "scheduling_conflict"
    staff_resigned = "staff_resigned"
    parent_request = "parent_request"
    admin_decision = "admin_decision"
    other = "other"
    # Written by deactivation only, never offered to users
    service_deactivated = "service_deactivated"


USER_SELECTABLE_REMOVAL_REASONS = [
    reason for reason in StaffRemovalReason
    if reason != StaffRemovalReason.service_deactivated
]

REMOVAL_REASON_LABELS = {
    StaffRemovalReason.staff_transferred: "Staff Transferred",
    StaffRemovalReason.scheduling_conflict: "Scheduling Conflict",
    StaffRemovalReason.staff_resigned: "Staff Resigned",
    StaffRemovalReason.parent_request: "Parent Request",
    StaffRemovalReason.admin_decision: "Administrative Decision",
    StaffRemovalReason.service_deactivated: "Service Deactivated",
    StaffRemovalReason.other: "Other",
}

OTHER_REASON = "other"


class ServiceEnrollmentRecord(Base):
    """Persisted enrollment document.

    The current assignment and the staff history are stored as JSON so a
    single UPDATE replaces the whole enrollment state.
    """
    __tablename__ = "service_enrollments"

    enrollment_id = Column(String(64), primary_key=True)
    child_id = Column(String(64), nullable=False, index=True)

    service_id = Column(String(64), nullable=True)
    service_name = Column(String(120), nullable=False)
    service_type = Column(SQLEnum(ServiceType, native_enum=False, length=16), nullable=False)

    status = Column(
        SQLEnum(EnrollmentStatus, native_enum=False, length=16),
        default=EnrollmentStatus.active,
        nullable=False,
    )
    current_staff = Column(JSON, nullable=True)
    staff_history = Column(JSON, nullable=False, default=list)

    enrolled_at = Column(DateTime(timezone=True), nullable=False)
    status_changed_at = Column(DateTime(timezone=True), nullable=False)
    status_change_reason = Column(Text, nullable=True)

    frequency = Column(String(50), nullable=True)
    notes = Column(Text, nullable=True)
    last_activity_date = Column(DateTime(timezone=True), nullable=True)

    # Bumped on every persisted change, guards conditional writes
    version = Column(Integer, nullable=False, default=1)

    __table_args__ = (
        Index("ix_service_enrollments_child_service", "child_id", "service_id"),
    )

    def __repr__(self):
        return (
            f"<ServiceEnrollmentRecord(enrollment_id={self.enrollment_id}, "
            f"child_id={self.child_id}, service={self.service_name}, status={self.status})>"
        )
