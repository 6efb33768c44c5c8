"""Discriminated success/failure result returned by every enrollment mutation"""
from enum import Enum
from typing import Optional

from pydantic import BaseModel

from care_portal.core.exceptions import BaseAppException
from care_portal.enrollments.schemas.enrollments import ServiceEnrollment


class ErrorKind(str, Enum):
    invalid_request = "INVALID_REQUEST"
    not_found = "NOT_FOUND"
    conflict = "CONFLICT"
    persistence_error = "PERSISTENCE_ERROR"


ERROR_KIND_STATUS = {
    ErrorKind.invalid_request: 400,
    ErrorKind.not_found: 404,
    ErrorKind.conflict: 409,
    ErrorKind.persistence_error: 503,
}


class EnrollmentError(BaseModel):
    kind: ErrorKind
    message: str


class EnrollmentResult(BaseModel):
    success: bool
    enrollment: Optional[ServiceEnrollment] = None
    error: Optional[EnrollmentError] = None

    @classmethod
    def ok(cls, enrollment: ServiceEnrollment) -> "EnrollmentResult":
        return cls(success=True, enrollment=enrollment)

    @classmethod
    def fail(cls, kind: ErrorKind, message: str) -> "EnrollmentResult":
        return cls(success=False, error=EnrollmentError(kind=kind, message=message))

    @classmethod
    def from_exception(cls, exc: BaseAppException) -> "EnrollmentResult":
        if exc.error_code == "VALIDATION_ERROR":
            kind = ErrorKind.invalid_request
        else:
            try:
                kind = ErrorKind(exc.error_code)
            except ValueError:
                kind = ErrorKind.persistence_error
        return cls.fail(kind, exc.message)

    @property
    def http_status(self) -> int:
        if self.success:
            return 200
        return ERROR_KIND_STATUS[self.error.kind]
