"""
Read side of the enrollment subsystem.

Shapes a child's enrollment list for display (active/inactive split,
therapy/class grouping, privacy filter for staff viewers) and owns the
per-child list cache that mutations invalidate.
"""
import json
import logging
from enum import Enum
from typing import Iterable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from care_portal.core.cache import cache_ttl
from care_portal.core.exceptions import CacheError
from care_portal.core.logging_utils import error_tracker
from care_portal.enrollments.crud import store
from care_portal.enrollments.models.service_enrollments import EnrollmentStatus, ServiceType
from care_portal.enrollments.schemas.enrollments import (
    ChildEnrollmentsOverview,
    GroupedEnrollments,
    PartitionedEnrollments,
    ServiceEnrollment,
    StaffTimelineEntry,
)
from care_portal.enrollments.services.history import build_staff_timeline

logger = logging.getLogger(__name__)


class ViewerRole(str, Enum):
    admin = "admin"
    parent = "parent"
    teacher = "teacher"
    therapist = "therapist"


STAFF_VIEWER_ROLES = {ViewerRole.teacher, ViewerRole.therapist}


def partition(enrollments: Iterable[ServiceEnrollment]) -> PartitionedEnrollments:
    result = PartitionedEnrollments()
    for enrollment in enrollments:
        if enrollment.status == EnrollmentStatus.active:
            result.active.append(enrollment)
        else:
            result.inactive.append(enrollment)
    return result


def group_by_service_type(enrollments: Iterable[ServiceEnrollment]) -> GroupedEnrollments:
    result = GroupedEnrollments()
    for enrollment in enrollments:
        if enrollment.service_type == ServiceType.therapy:
            result.therapy.append(enrollment)
        else:
            result.group_class.append(enrollment)
    return result


def filter_by_viewer_role(
    enrollments: Iterable[ServiceEnrollment],
    viewer_role: ViewerRole,
    viewer_id: Optional[str] = None,
) -> List[ServiceEnrollment]:
    """
    Admins and parents see everything. Teachers and therapists only see
    enrollments they currently staff, so inactive ones are always hidden
    from them.
    """
    enrollments = list(enrollments)
    if ViewerRole(viewer_role) not in STAFF_VIEWER_ROLES:
        return enrollments

    return [
        enrollment
        for enrollment in enrollments
        if enrollment.current_staff is not None
        and viewer_id is not None
        and enrollment.current_staff.staff_id == viewer_id
    ]


class EnrollmentCache:
    """
    Read-through cache of enrollment lists keyed by child id.

    Readers take generation() before loading from the store and pass it to
    set(); an invalidation in between bumps the generation and the fill is
    dropped, so a list read before a mutation is never cached after it.
    """

    key_prefix = "enrollments:child:"

    def __init__(self, backend, ttl: Optional[int] = None):
        self.backend = backend
        self.ttl = cache_ttl if ttl is None else ttl

    def key(self, child_id: str) -> str:
        return f"{self.key_prefix}{child_id}"

    def generation_key(self, child_id: str) -> str:
        return f"{self.key(child_id)}:generation"

    async def get(self, child_id: str) -> Optional[List[ServiceEnrollment]]:
        raw = await self.backend.get(self.key(child_id))
        if raw is None:
            return None
        return [ServiceEnrollment.model_validate(item) for item in json.loads(raw)]

    async def generation(self, child_id: str) -> Optional[int]:
        """Current generation, None when the backend can't tell"""
        return await self.backend.generation(self.generation_key(child_id))

    async def set(
        self,
        child_id: str,
        enrollments: List[ServiceEnrollment],
        generation: Optional[int] = None,
    ) -> bool:
        payload = json.dumps([enrollment.model_dump(mode="json") for enrollment in enrollments])
        if generation is None:
            return await self.backend.set(self.key(child_id), payload, self.ttl or None)

        written = await self.backend.set_if_generation(
            self.key(child_id),
            payload,
            self.ttl or None,
            self.generation_key(child_id),
            generation,
        )
        if not written:
            logger.debug(f"Enrollment cache fill skipped for child {child_id}")
        return written

    async def invalidate(self, child_id: str):
        """
        Drop the child's list after a committed mutation. A backend failure
        is tracked by the backend, which serves misses for the key until a
        retried invalidation succeeds; the mutation itself stands.
        """
        try:
            await self.backend.invalidate(self.key(child_id), self.generation_key(child_id))
        except CacheError as e:
            error_tracker.track_error(e.error_code, e.message, {"child_id": child_id})
            return
        logger.debug(f"Enrollment cache invalidated for child {child_id}")


class EnrollmentQueryService:
    def __init__(self, session: AsyncSession, cache: EnrollmentCache):
        self.session = session
        self.cache = cache

    async def get_child_enrollments(self, child_id: str) -> List[ServiceEnrollment]:
        cached = await self.cache.get(child_id)
        if cached is not None:
            return cached

        generation = await self.cache.generation(child_id)
        enrollments = await store.list_by_child(self.session, child_id)
        if generation is not None:
            await self.cache.set(child_id, enrollments, generation)
        return enrollments

    async def get_child_overview(
        self,
        child_id: str,
        viewer_role: ViewerRole = ViewerRole.admin,
        viewer_id: Optional[str] = None,
    ) -> ChildEnrollmentsOverview:
        """Enrollments split by status, with active ones grouped by service type"""
        enrollments = await self.get_child_enrollments(child_id)
        visible = filter_by_viewer_role(enrollments, viewer_role, viewer_id)
        split = partition(visible)
        grouped = group_by_service_type(split.active)

        return ChildEnrollmentsOverview(
            child_id=child_id,
            active=split.active,
            inactive=split.inactive,
            therapy=grouped.therapy,
            group_class=grouped.group_class,
        )

    async def get_staff_history(self, child_id: str) -> List[StaffTimelineEntry]:
        enrollments = await self.get_child_enrollments(child_id)
        return build_staff_timeline(enrollments)
