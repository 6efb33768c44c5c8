from sqlalchemy import Column, String, DateTime, JSON, Boolean, Enum as SQLEnum
from sqlalchemy.sql import func
from care_portal.core.database import Base
from care_portal.enrollments.models.service_enrollments import StaffRole


class StaffMember(Base):
    __tablename__ = "staff_members"

    id = Column(String(64), primary_key=True)
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=True)
    role = Column(SQLEnum(StaffRole, native_enum=False, length=16), nullable=False, index=True)

    # Service names the staff member specializes in; empty means any
    specializations = Column(JSON, nullable=False, default=list)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)

    def __repr__(self):
        return f"<StaffMember(id={self.id}, name={self.full_name}, role={self.role})>"
