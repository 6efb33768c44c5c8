"""
Enrollment Service - the public mutation contract.

Loads the enrollment, checks staff against the directory, runs the pure
transition, persists with a version check and only then reports success and
invalidates the child's cached list. Every outcome, including store
failures, comes back as an EnrollmentResult.
"""
import logging
import uuid
from typing import Callable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from care_portal.core.exceptions import BaseAppException, InvalidRequestError, NotFoundError
from care_portal.core.logging_utils import error_tracker, log_business_event
from care_portal.enrollments.crud import store
from care_portal.enrollments.models.service_enrollments import EnrollmentStatus, OTHER_REASON
from care_portal.enrollments.schemas.enrollments import (
    EnrollServiceRequest,
    EnrollmentMetadataUpdate,
    ServiceEnrollment,
    StaffAssignment,
    StaffSelection,
    utc_now,
)
from care_portal.enrollments.schemas.results import EnrollmentResult, ErrorKind
from care_portal.enrollments.services import state_machine
from care_portal.enrollments.services.projections import EnrollmentCache
from care_portal.staff.crud.directory import StaffDirectory
from care_portal.staff.schemas.staff import EligibleStaff

logger = logging.getLogger(__name__)

SAVE_FAILED_MESSAGE = "Failed to save, please try again"


def generate_enrollment_id() -> str:
    return f"enr_{uuid.uuid4().hex}"


class EnrollmentService:
    def __init__(
        self,
        session: AsyncSession,
        cache: EnrollmentCache,
        directory: Optional[StaffDirectory] = None,
        clock: Callable = utc_now,
    ):
        self.session = session
        self.cache = cache
        self.directory = directory or StaffDirectory(session)
        self.clock = clock

    # ===== Transitions =====

    async def change_staff(
        self,
        enrollment_id: str,
        new_staff: StaffSelection,
        reason: str,
        actor_id: Optional[str] = None,
        note: Optional[str] = None,
    ) -> EnrollmentResult:
        return await self._apply(
            enrollment_id,
            lambda enrollment, now, staff: state_machine.change_staff(
                enrollment, staff, reason, now=now, actor_id=actor_id, note=note
            ),
            event="enrollment_staff_changed",
            actor_id=actor_id,
            new_staff=new_staff,
            details={"new_staff_id": new_staff.staff_id, "reason": getattr(reason, "value", reason)},
        )

    async def deactivate_service(
        self,
        enrollment_id: str,
        reason: str,
        actor_id: Optional[str] = None,
        confirmation: Optional[str] = None,
        custom_reason: Optional[str] = None,
    ) -> EnrollmentResult:
        """
        Deactivate an active enrollment.

        When a confirmation is supplied it must match the configured token
        (case-insensitive). Selecting 'other' requires custom_reason, which
        is then stored as the status change reason.
        """
        if confirmation is not None and not state_machine.is_deactivation_confirmed(confirmation):
            return EnrollmentResult.fail(
                ErrorKind.invalid_request, "Please type the confirmation text to deactivate"
            )

        if (reason or "").strip().lower() == OTHER_REASON and not (custom_reason or "").strip():
            return EnrollmentResult.fail(
                ErrorKind.invalid_request, "Please specify the reason for deactivation"
            )

        stored_reason = state_machine.resolve_deactivation_reason(reason, custom_reason)
        return await self._apply(
            enrollment_id,
            lambda enrollment, now, staff: state_machine.deactivate(
                enrollment, stored_reason, now=now, actor_id=actor_id
            ),
            event="enrollment_deactivated",
            actor_id=actor_id,
            details={"reason": stored_reason},
        )

    async def reactivate_service(
        self,
        enrollment_id: str,
        new_staff: StaffSelection,
        actor_id: Optional[str] = None,
    ) -> EnrollmentResult:
        return await self._apply(
            enrollment_id,
            lambda enrollment, now, staff: state_machine.reactivate(
                enrollment, staff, now=now, actor_id=actor_id
            ),
            event="enrollment_reactivated",
            actor_id=actor_id,
            new_staff=new_staff,
            details={"new_staff_id": new_staff.staff_id},
        )

    # ===== Creation and metadata =====

    async def enroll_service(
        self,
        child_id: str,
        data: EnrollServiceRequest,
        actor_id: Optional[str] = None,
    ) -> EnrollmentResult:
        """
        Enroll a child in a service with its first staff assignment.

        Re-enrolling a service the child had before reactivates the old
        enrollment so its history is kept; an active duplicate is rejected.
        """
        try:
            existing = await store.list_by_child(self.session, child_id)
        except BaseAppException as e:
            return self._failure("enroll_service", e)

        match = next((e for e in existing if self._same_service(e, data)), None)
        if match is not None:
            if match.status == EnrollmentStatus.active:
                return EnrollmentResult.fail(
                    ErrorKind.invalid_request, "Service is already active for this student"
                )
            return await self.reactivate_service(match.enrollment_id, data.staff, actor_id)

        if data.staff.staff_role != state_machine.required_role(data.service_type):
            return EnrollmentResult.fail(
                ErrorKind.invalid_request,
                f"{data.service_type.value} services must be staffed by a "
                f"{state_machine.required_role(data.service_type).value}",
            )

        now = self.clock()
        try:
            staff = await self._verify_staff(data.staff)
            enrollment = ServiceEnrollment(
                enrollment_id=generate_enrollment_id(),
                child_id=child_id,
                service_id=data.service_id,
                service_name=data.service_name,
                service_type=data.service_type,
                status=EnrollmentStatus.active,
                current_staff=StaffAssignment(
                    staff_id=staff.staff_id,
                    staff_name=staff.staff_name,
                    staff_role=staff.staff_role,
                    assigned_at=now,
                    assigned_by=actor_id,
                ),
                staff_history=[],
                enrolled_at=now,
                status_changed_at=now,
                frequency=data.frequency,
                notes=data.notes,
            )
            saved = await store.save(self.session, enrollment)
        except BaseAppException as e:
            return self._failure("enroll_service", e)
        except Exception as e:
            return self._unexpected("enroll_service", e)

        await self.cache.invalidate(child_id)
        log_business_event(
            "enrollment_created",
            "service_enrollment",
            saved.enrollment_id,
            {"child_id": child_id, "service_name": saved.service_name, "actor_id": actor_id},
        )
        return EnrollmentResult.ok(saved)

    async def update_metadata(
        self,
        enrollment_id: str,
        data: EnrollmentMetadataUpdate,
        actor_id: Optional[str] = None,
    ) -> EnrollmentResult:
        """Update frequency, notes or last activity date; lifecycle fields are untouched"""
        changes = data.model_dump(exclude_unset=True)
        if not changes:
            return EnrollmentResult.fail(ErrorKind.invalid_request, "Nothing to update")

        def transition(enrollment: ServiceEnrollment, now, staff) -> EnrollmentResult:
            return EnrollmentResult.ok(ServiceEnrollment(**{**dict(enrollment), **changes}))

        return await self._apply(
            enrollment_id,
            transition,
            event="enrollment_updated",
            actor_id=actor_id,
            details={"fields": sorted(changes)},
        )

    async def list_eligible_staff(self, enrollment_id: str) -> List[EligibleStaff]:
        """Candidates for change_staff / reactivate, without the current staff member"""
        enrollment = await store.get_by_id(self.session, enrollment_id)
        candidates = await self.directory.list_staff_eligible_for_service(
            enrollment.service_type, enrollment.service_name
        )
        current_id = enrollment.current_staff.staff_id if enrollment.current_staff else None
        return [staff for staff in candidates if staff.staff_id != current_id]

    # ===== Internals =====

    async def _apply(
        self,
        enrollment_id: str,
        transition: Callable,
        event: str,
        actor_id: Optional[str],
        new_staff: Optional[StaffSelection] = None,
        details: Optional[dict] = None,
    ) -> EnrollmentResult:
        try:
            current = await store.get_by_id(self.session, enrollment_id)
            staff = await self._verify_staff(new_staff) if new_staff is not None else None

            result = transition(current, self.clock(), staff)
            if not result.success:
                logger.info(
                    f"Enrollment {enrollment_id} transition rejected: {result.error.message}",
                    extra={"enrollment_id": enrollment_id, "event": event},
                )
                return result

            saved = await store.save(
                self.session, result.enrollment, expected_version=current.version
            )
        except BaseAppException as e:
            return self._failure(event, e, enrollment_id)
        except Exception as e:
            return self._unexpected(event, e, enrollment_id)

        await self.cache.invalidate(saved.child_id)
        log_business_event(
            event,
            "service_enrollment",
            saved.enrollment_id,
            {**(details or {}), "child_id": saved.child_id, "actor_id": actor_id},
        )
        return EnrollmentResult.ok(saved)

    async def _verify_staff(self, new_staff: StaffSelection) -> StaffSelection:
        """Selection backed by the directory record; the stored name is the directory's"""
        member = await self.directory.get_staff_member(new_staff.staff_id)
        if member is None:
            raise NotFoundError("Staff member", new_staff.staff_id)
        if member.role != new_staff.staff_role:
            raise InvalidRequestError(
                f"Staff member '{new_staff.staff_id}' is a {member.role.value}, "
                f"not a {new_staff.staff_role.value}"
            )
        return new_staff.model_copy(update={"staff_name": member.full_name})

    @staticmethod
    def _same_service(enrollment: ServiceEnrollment, data: EnrollServiceRequest) -> bool:
        if data.service_id and enrollment.service_id:
            return enrollment.service_id == data.service_id
        return (
            enrollment.service_name == data.service_name
            and enrollment.service_type == data.service_type
        )

    def _failure(
        self, operation: str, exc: BaseAppException, enrollment_id: Optional[str] = None
    ) -> EnrollmentResult:
        error_tracker.track_error(
            exc.error_code,
            exc.message,
            {"operation": operation, "enrollment_id": enrollment_id},
        )
        return EnrollmentResult.from_exception(exc)

    def _unexpected(
        self, operation: str, exc: Exception, enrollment_id: Optional[str] = None
    ) -> EnrollmentResult:
        logger.error(
            f"Unexpected error in {operation}: {str(exc)}",
            extra={"operation": operation, "enrollment_id": enrollment_id},
            exc_info=True,
        )
        error_tracker.track_error(
            type(exc).__name__,
            str(exc),
            {"operation": operation, "enrollment_id": enrollment_id},
        )
        return EnrollmentResult.fail(ErrorKind.persistence_error, SAVE_FAILED_MESSAGE)
