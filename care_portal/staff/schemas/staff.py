from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional

from care_portal.enrollments.models.service_enrollments import StaffRole


class StaffMemberRead(BaseModel):
    id: str
    first_name: str
    last_name: Optional[str] = None
    role: StaffRole
    specializations: List[str] = Field(default_factory=list)
    is_active: bool = True

    model_config = ConfigDict(from_attributes=True)

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)


class EligibleStaff(BaseModel):
    """Option in the "select new staff" dropdown"""
    staff_id: str
    first_name: str
    last_name: Optional[str] = None
    staff_name: str
    staff_role: StaffRole
    specializations: List[str] = Field(default_factory=list)
