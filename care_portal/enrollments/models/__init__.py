from care_portal.core.database import Base
from .service_enrollments import (
    ServiceEnrollmentRecord,
    ServiceType,
    EnrollmentStatus,
    StaffRole,
    StaffRemovalReason,
    USER_SELECTABLE_REMOVAL_REASONS,
    REMOVAL_REASON_LABELS,
    OTHER_REASON,
)

__all__ = [
    "Base",
    "ServiceEnrollmentRecord",
    "ServiceType",
    "EnrollmentStatus",
    "StaffRole",
    "StaffRemovalReason",
    "USER_SELECTABLE_REMOVAL_REASONS",
    "REMOVAL_REASON_LABELS",
    "OTHER_REASON",
]
