from care_portal.core.database import Base
from .staff_members import StaffMember

__all__ = [
    "Base",
    "StaffMember",
]
