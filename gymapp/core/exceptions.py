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
    """Missing or invalid credentials"""

    def __init__(
        self,
        message: str = "Authentication failed",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, 401, "AUTHENTICATION_ERROR", details)


class AuthorizationError(BaseAppException):
    """Caller is not the owner or not an admin"""

    def __init__(
        self, message: str = "Access denied", details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, 403, "AUTHORIZATION_ERROR", details)


# === Validation ===
class ValidationError(BaseAppException):
    """Missing or malformed input"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, 400, "VALIDATION_ERROR", details)


# === Resources ===
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
    """Overlapping booking or time slot, or a state that forbids the change"""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        status_code: int = 409,
    ):
        super().__init__(message, status_code, "CONFLICT", details)


# === Database ===
class DatabaseError(BaseAppException):
    """Database error"""

    def __init__(
        self,
        message: str = "Database operation failed",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, 500, "DATABASE_ERROR", details)


class DatabaseConnectionError(BaseAppException):
    """Database connection failure"""

    def __init__(self, message: str = "Database connection failed"):
        super().__init__(message, 503, "DATABASE_CONNECTION_ERROR")


class DatabaseTimeoutError(BaseAppException):
    """Database operation timeout"""

    def __init__(self, operation: str, timeout: int):
        message = f"Database operation '{operation}' timed out after {timeout}s"
        details = {"operation": operation, "timeout": timeout}
        super().__init__(message, 504, "DATABASE_TIMEOUT", details)


class DatabaseIntegrityError(BaseAppException):
    """Integrity constraint violation"""

    def __init__(self, constraint: str, details: Optional[Dict[str, Any]] = None):
        message = f"Database integrity constraint violated: {constraint}"
        error_details = {"constraint": constraint}
        if details:
            error_details.update(details)
        super().__init__(message, 409, "DATABASE_INTEGRITY_ERROR", error_details)


# === External services ===
class UpstreamError(BaseAppException):
    """Payment gateway (or other upstream) call failed or timed out"""

    def __init__(
        self,
        service: str,
        message: str = None,
        status_code: int = 502,
        retryable: bool = True,
        details: Optional[Dict[str, Any]] = None,
    ):
        message = message or f"Upstream service '{service}' error"
        error_details = {"service": service, "retryable": retryable}
        if details:
            error_details.update(details)
        super().__init__(message, status_code, "UPSTREAM_ERROR", error_details)


# === Configuration ===
class ConfigurationError(BaseAppException):
    """Configuration error"""

    def __init__(self, parameter: str, message: str = None):
        message = (
            message or f"Configuration parameter '{parameter}' is invalid or missing"
        )
        details = {"parameter": parameter}
        super().__init__(message, 500, "CONFIGURATION_ERROR", details)
