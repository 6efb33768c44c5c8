"""Enrollment Record Store - load and persist whole enrollment documents"""
from typing import Any, Dict, List, Optional

from sqlalchemy import update
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession

from care_portal.core.database import db_operation, db_retry
from care_portal.core.exceptions import ConflictError, NotFoundError
from care_portal.enrollments.models.service_enrollments import ServiceEnrollmentRecord
from care_portal.enrollments.schemas.enrollments import ServiceEnrollment


def _to_domain(record: ServiceEnrollmentRecord) -> ServiceEnrollment:
    return ServiceEnrollment.model_validate(record)


def _to_row_values(enrollment: ServiceEnrollment) -> Dict[str, Any]:
    """Column values for one enrollment; embedded staff records go to JSON columns"""
    values = enrollment.model_dump(exclude={"current_staff", "staff_history", "version"})
    values["current_staff"] = (
        enrollment.current_staff.model_dump(mode="json")
        if enrollment.current_staff is not None
        else None
    )
    values["staff_history"] = [
        record.model_dump(mode="json") for record in enrollment.staff_history
    ]
    return values


@db_operation
@db_retry()
async def list_by_child(session: AsyncSession, child_id: str) -> List[ServiceEnrollment]:
    """All enrollments of a child, oldest enrollment first"""
    query = (
        select(ServiceEnrollmentRecord)
        .where(ServiceEnrollmentRecord.child_id == child_id)
        .order_by(ServiceEnrollmentRecord.enrolled_at, ServiceEnrollmentRecord.enrollment_id)
        .execution_options(populate_existing=True)
    )
    result = await session.execute(query)
    return [_to_domain(record) for record in result.scalars().all()]


@db_operation
@db_retry()
async def get_by_id(session: AsyncSession, enrollment_id: str) -> ServiceEnrollment:
    query = (
        select(ServiceEnrollmentRecord)
        .where(ServiceEnrollmentRecord.enrollment_id == enrollment_id)
        .execution_options(populate_existing=True)
    )
    result = await session.execute(query)
    record = result.scalar_one_or_none()

    if not record:
        raise NotFoundError("Enrollment", enrollment_id)

    return _to_domain(record)


@db_operation
async def save(
    session: AsyncSession,
    enrollment: ServiceEnrollment,
    expected_version: Optional[int] = None,
) -> ServiceEnrollment:
    """
    Persist the full enrollment state in a single write.

    Without expected_version this is an upsert keyed by enrollment_id.
    With it the UPDATE only applies when the stored version still matches;
    otherwise ConflictError is raised and nothing is written.
    Returns the enrollment as stored (with its new version).
    """
    values = _to_row_values(enrollment)

    if expected_version is not None:
        new_version = expected_version + 1
        stmt = (
            update(ServiceEnrollmentRecord)
            .where(
                ServiceEnrollmentRecord.enrollment_id == enrollment.enrollment_id,
                ServiceEnrollmentRecord.version == expected_version,
            )
            .values(**values, version=new_version)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)

        if result.rowcount == 0:
            await session.rollback()
            exists = await session.get(
                ServiceEnrollmentRecord, enrollment.enrollment_id, populate_existing=True
            )
            if exists is None:
                raise NotFoundError("Enrollment", enrollment.enrollment_id)
            raise ConflictError("Enrollment", enrollment.enrollment_id, expected_version)

        await session.commit()
        return enrollment.model_copy(update={"version": new_version})

    record = await session.get(
        ServiceEnrollmentRecord, enrollment.enrollment_id, populate_existing=True
    )
    if record is None:
        new_version = enrollment.version
        record = ServiceEnrollmentRecord(**values, version=new_version)
        session.add(record)
    else:
        new_version = record.version + 1
        for field, value in values.items():
            setattr(record, field, value)
        record.version = new_version

    await session.commit()
    return enrollment.model_copy(update={"version": new_version})
