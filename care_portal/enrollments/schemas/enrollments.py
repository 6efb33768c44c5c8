"""Service enrollment schemas - records, requests and projections"""
from datetime import datetime, timezone
from typing import Annotated, List, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, model_validator

from care_portal.enrollments.models.service_enrollments import (
    EnrollmentStatus,
    ServiceType,
    StaffRemovalReason,
    StaffRole,
)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # Some backends drop tzinfo on read; all timestamps are stored in UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


UtcDatetime = Annotated[datetime, AfterValidator(_as_utc)]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ===== Embedded staff records =====

class StaffSelection(BaseModel):
    """Staff member picked in the UI for an assignment"""
    staff_id: str = Field(..., min_length=1, max_length=64)
    staff_name: str = Field(..., min_length=1, max_length=200)
    staff_role: StaffRole

    model_config = ConfigDict(str_strip_whitespace=True)


class StaffAssignment(BaseModel):
    """Who serves the enrollment now (denormalized at assignment time)"""
    staff_id: str
    staff_name: str
    staff_role: StaffRole
    assigned_at: UtcDatetime
    assigned_by: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class StaffHistoryRecord(BaseModel):
    """A closed assignment. Never edited once written."""
    history_id: str
    staff_id: str
    staff_name: str
    staff_role: StaffRole
    assigned_at: UtcDatetime
    assigned_by: Optional[str] = None
    removed_at: UtcDatetime
    removal_reason: StaffRemovalReason
    removal_note: Optional[str] = None
    removed_by: Optional[str] = None
    duration_days: int = Field(..., ge=0)

    model_config = ConfigDict(frozen=True)


# ===== Enrollment record =====

class ServiceEnrollment(BaseModel):
    enrollment_id: str
    child_id: str
    service_id: Optional[str] = None
    service_name: str
    service_type: ServiceType
    status: EnrollmentStatus = EnrollmentStatus.active
    current_staff: Optional[StaffAssignment] = None
    staff_history: List[StaffHistoryRecord] = Field(default_factory=list)
    enrolled_at: UtcDatetime
    status_changed_at: UtcDatetime
    status_change_reason: Optional[str] = None
    frequency: Optional[str] = None
    notes: Optional[str] = None
    last_activity_date: Optional[UtcDatetime] = None
    version: int = Field(1, ge=1)

    model_config = ConfigDict(frozen=True, from_attributes=True)

    @model_validator(mode="after")
    def check_status_invariants(self):
        if self.status == EnrollmentStatus.active and self.current_staff is None:
            raise ValueError("Active enrollment must have a current staff assignment")
        if self.status == EnrollmentStatus.inactive:
            if self.current_staff is not None:
                raise ValueError("Inactive enrollment cannot have a current staff assignment")
            if not self.status_change_reason:
                raise ValueError("Inactive enrollment requires a status change reason")
        return self

    @property
    def is_active(self) -> bool:
        return self.status == EnrollmentStatus.active


# ===== Requests =====

class ChangeStaffRequest(BaseModel):
    new_staff: StaffSelection
    reason: StaffRemovalReason
    note: Optional[str] = Field(None, max_length=500, description="Required when reason is 'other'")

    model_config = ConfigDict(str_strip_whitespace=True)


class DeactivateServiceRequest(BaseModel):
    reason: str = Field(..., max_length=200, description="Selected label, or 'other'")
    custom_reason: Optional[str] = Field(None, max_length=500)
    confirmation: str = Field("", max_length=50, description="Typed confirmation token")

    model_config = ConfigDict(str_strip_whitespace=True)


class ReactivateServiceRequest(BaseModel):
    new_staff: StaffSelection


class EnrollServiceRequest(BaseModel):
    service_id: Optional[str] = Field(None, max_length=64)
    service_name: str = Field(..., min_length=1, max_length=120)
    service_type: ServiceType
    staff: StaffSelection
    frequency: Optional[str] = Field(None, max_length=50)
    notes: Optional[str] = Field(None, max_length=2000)

    model_config = ConfigDict(str_strip_whitespace=True)


class EnrollmentMetadataUpdate(BaseModel):
    """Fields editable outside the lifecycle transitions"""
    frequency: Optional[str] = Field(None, max_length=50)
    notes: Optional[str] = Field(None, max_length=2000)
    last_activity_date: Optional[UtcDatetime] = None

    model_config = ConfigDict(str_strip_whitespace=True)


# ===== Projections =====

class PartitionedEnrollments(BaseModel):
    active: List[ServiceEnrollment] = Field(default_factory=list)
    inactive: List[ServiceEnrollment] = Field(default_factory=list)


class GroupedEnrollments(BaseModel):
    therapy: List[ServiceEnrollment] = Field(default_factory=list)
    group_class: List[ServiceEnrollment] = Field(default_factory=list)


class ChildEnrollmentsOverview(BaseModel):
    child_id: str
    active: List[ServiceEnrollment] = Field(default_factory=list)
    inactive: List[ServiceEnrollment] = Field(default_factory=list)
    therapy: List[ServiceEnrollment] = Field(default_factory=list)
    group_class: List[ServiceEnrollment] = Field(default_factory=list)


class StaffTimelineEntry(BaseModel):
    """One assignment, current or past, in a child's staff timeline"""
    enrollment_id: str
    service_name: str
    service_type: ServiceType
    staff_id: str
    staff_name: str
    staff_role: StaffRole
    assigned_at: datetime
    removed_at: Optional[datetime] = None
    removal_reason: Optional[StaffRemovalReason] = None
    removal_reason_label: Optional[str] = None
    duration_days: Optional[int] = None
    duration_label: Optional[str] = None
    is_current: bool


class StaffIds(BaseModel):
    assigned_staff_ids: List[str] = Field(default_factory=list)
    all_historical_staff_ids: List[str] = Field(default_factory=list)


class ReasonOption(BaseModel):
    value: str
    label: str


class EnrollmentReasons(BaseModel):
    staff_removal_reasons: List[ReasonOption]
    service_deactivation_reasons: List[ReasonOption]
    confirmation_token: str
