"""
Application exceptions for centralized error handling
"""

from typing import Optional, Dict, Any


class BaseAppException(Exception):
    """Base application exception"""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)


# === Authentication ===
class AuthenticationError(BaseAppException):
    """Caller identity missing or malformed"""

    def __init__(
        self,
        message: str = "Authentication failed",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, 401, "AUTHENTICATION_ERROR", details)


# === Validation ===
class ValidationError(BaseAppException):
    """Malformed input data"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, 400, "VALIDATION_ERROR", details)


# === Enrollment lifecycle ===
class InvalidRequestError(BaseAppException):
    """Transition precondition violated: wrong status, role mismatch,
    no-op staff change or missing reason. The user must correct the input."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, 400, "INVALID_REQUEST", details)


class NotFoundError(BaseAppException):
    """Resource not found"""

    def __init__(self, resource: str, identifier: str = None):
        if identifier:
            message = f"{resource} with identifier '{identifier}' not found"
            details = {"resource": resource, "identifier": identifier}
        else:
            message = f"{resource} not found"
            details = {"resource": resource}
        super().__init__(message, 404, "NOT_FOUND", details)


class ConflictError(BaseAppException):
    """The record changed since it was read (lost conditional write)"""

    def __init__(self, resource: str, identifier: str, expected_version: int):
        message = (
            f"{resource} '{identifier}' was modified by another request, "
            "reload it and try again"
        )
        details = {
            "resource": resource,
            "identifier": identifier,
            "expected_version": expected_version,
        }
        super().__init__(message, 409, "CONFLICT", details)


# === Persistence ===
class PersistenceError(BaseAppException):
    """Backing store failed (network, permission, unknown)"""

    def __init__(
        self,
        message: str = "Failed to save, please try again",
        details: Optional[Dict[str, Any]] = None,
        status_code: int = 503,
    ):
        super().__init__(message, status_code, "PERSISTENCE_ERROR", details)


class DatabaseConnectionError(PersistenceError):
    """Database connection failure"""

    def __init__(self, message: str = "Database connection failed"):
        super().__init__(message, {"reason": "connection"})


class DatabaseTimeoutError(PersistenceError):
    """Database operation timed out"""

    def __init__(self, operation: str, timeout: int):
        message = f"Database operation '{operation}' timed out after {timeout}s"
        details = {"operation": operation, "timeout": timeout, "reason": "timeout"}
        super().__init__(message, details, 504)


class CacheError(BaseAppException):
    """Cache backend rejected a write or invalidation"""

    def __init__(self, operation: str, key: str, message: str = None):
        message = message or f"Cache {operation} failed for '{key}'"
        details = {"operation": operation, "key": key}
        super().__init__(message, 503, "CACHE_ERROR", details)


# === Configuration ===
class ConfigurationError(BaseAppException):
    """Invalid configuration"""

    def __init__(self, parameter: str, message: str = None):
        message = (
            message or f"Configuration parameter '{parameter}' is invalid or missing"
        )
        details = {"parameter": parameter}
        super().__init__(message, 500, "CONFIGURATION_ERROR", details)
