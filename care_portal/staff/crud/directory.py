"""Staff Directory - lookups used when assigning staff to enrollments"""
from typing import List, Optional

from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession

from care_portal.core.database import db_operation, db_retry
from care_portal.enrollments.models.service_enrollments import ServiceType
from care_portal.enrollments.services.state_machine import required_role
from care_portal.staff.models.staff_members import StaffMember
from care_portal.staff.schemas.staff import EligibleStaff, StaffMemberRead


@db_operation
@db_retry()
async def get_staff_member(session: AsyncSession, staff_id: str) -> Optional[StaffMemberRead]:
    """Active staff member by id, None when unknown or deactivated"""
    query = select(StaffMember).where(
        StaffMember.id == staff_id,
        StaffMember.is_active == True,
    )
    result = await session.execute(query)
    member = result.scalar_one_or_none()
    return StaffMemberRead.model_validate(member) if member else None


@db_operation
@db_retry()
async def list_staff_eligible_for_service(
    session: AsyncSession,
    service_type: ServiceType,
    service_name: str,
) -> List[EligibleStaff]:
    """
    Staff who may be assigned to a service.

    Role must match the service type. Specializations only narrow the list:
    staff without any specialization are offered for every service.
    """
    role = required_role(service_type)
    query = (
        select(StaffMember)
        .where(StaffMember.role == role, StaffMember.is_active == True)
        .order_by(StaffMember.first_name, StaffMember.last_name)
    )
    result = await session.execute(query)

    eligible = []
    for member in result.scalars().all():
        specializations = member.specializations or []
        if specializations and service_name not in specializations:
            continue
        eligible.append(
            EligibleStaff(
                staff_id=member.id,
                first_name=member.first_name,
                last_name=member.last_name,
                staff_name=member.full_name,
                staff_role=member.role,
                specializations=specializations,
            )
        )
    return eligible


class StaffDirectory:
    """Session-bound facade handed to the enrollment service"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_staff_member(self, staff_id: str) -> Optional[StaffMemberRead]:
        return await get_staff_member(self.session, staff_id)

    async def list_staff_eligible_for_service(
        self, service_type: ServiceType, service_name: str
    ) -> List[EligibleStaff]:
        return await list_staff_eligible_for_service(self.session, service_type, service_name)
