"""
Error taxonomy for the provisioning core.

Every error raised on purpose is a BaseError carrying an ErrorCode, an HTTP
status and free-form context. Errors log themselves when created, so callers
only need to log when they swallow one. The ErrorCode decides the category
reported to API clients (Conflict, NotFound, ValidationFailure,
ExternalToolFailure, PersistenceFailure).
"""

import threading
import traceback
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

# Logger is imported lazily in _log_error to avoid a circular import

_thread_local = threading.local()


class ErrorCode(str, Enum):
    """Error codes reported to API clients."""

    # System errors (1xxx)
    INTERNAL_ERROR = "1000"
    DATABASE_ERROR = "1001"
    CONFIGURATION_ERROR = "1003"

    # Validation errors (2xxx)
    VALIDATION_FAILED = "2000"
    INVALID_FORMAT = "2001"
    MISSING_REQUIRED = "2002"

    # Resource errors (3xxx)
    NOT_FOUND = "3000"
    DUPLICATE = "3001"
    LIMIT_EXCEEDED = "3005"

    # Access errors (4xxx)
    PERMISSION_DENIED = "4003"
    AUTHENTICATION_FAILED = "4005"

    # External tool errors (5xxx)
    EXTERNAL_TOOL_ERROR = "5005"


ERROR_CATEGORIES = {
    ErrorCode.INTERNAL_ERROR: "InternalError",
    ErrorCode.DATABASE_ERROR: "PersistenceFailure",
    ErrorCode.CONFIGURATION_ERROR: "InternalError",
    ErrorCode.VALIDATION_FAILED: "ValidationFailure",
    ErrorCode.INVALID_FORMAT: "ValidationFailure",
    ErrorCode.MISSING_REQUIRED: "ValidationFailure",
    ErrorCode.NOT_FOUND: "NotFound",
    ErrorCode.DUPLICATE: "Conflict",
    ErrorCode.LIMIT_EXCEEDED: "InternalError",
    ErrorCode.PERMISSION_DENIED: "Forbidden",
    ErrorCode.AUTHENTICATION_FAILED: "Unauthenticated",
    ErrorCode.EXTERNAL_TOOL_ERROR: "ExternalToolFailure",
}


class BaseError(Exception):
    """Root of the taxonomy: code, status, context, cause and self-logging."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        status_code: int = 500,
        cause: Optional[Exception] = None,
        **context: Any,
    ):
        """
        Args:
            message: Human-readable message, returned to API clients as ``detail``
            error_code: Code from ErrorCode
            status_code: HTTP status the error maps to by default
            cause: Lower-level exception being translated
            **context: Identifiers and values worth logging with the error
        """
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc).isoformat()
        self.error_id = str(uuid.uuid4())
        self.context = context
        self.context["error_id"] = self.error_id

        correlation_id = get_correlation_id()
        if correlation_id:
            self.context["correlation_id"] = correlation_id

        if cause is not None:
            self.context["cause"] = {
                "type": type(cause).__name__,
                "message": str(cause),
                "traceback": traceback.format_exception(type(cause), cause, cause.__traceback__),
            }

        self._log_error()
        super().__init__(message)

    @property
    def category(self) -> str:
        return ERROR_CATEGORIES.get(self.error_code, "InternalError")

    def _log_error(self) -> None:
        """Server-side failures log at ERROR with the cause, client errors at WARNING."""
        from .utils.logger import get_logger

        log_data = {
            "error_id": self.error_id,
            "error_code": self.error_code.value,
            "status_code": self.status_code,
            **{k: v for k, v in self.context.items() if k not in ("cause", "error_id")},
        }
        logger = get_logger()
        if self.status_code >= 500:
            logger.error(
                f"{self.category} {self.error_code.value}: {self.message}",
                extra=log_data,
                exc_info=self.cause,
            )
        else:
            logger.warning(
                f"{self.category} {self.error_code.value}: {self.message}", extra=log_data
            )

    def to_dict(self, include_cause: bool = False) -> Dict[str, Any]:
        """
        Body of an API error response.

        Args:
            include_cause: Add the type and message of the underlying exception
        """
        result: Dict[str, Any] = {
            "code": self.error_code.value,
            "error": self.category,
            "detail": self.message,
            "error_id": self.error_id,
        }
        if include_cause and "cause" in self.context:
            result["cause"] = {
                "type": self.context["cause"]["type"],
                "message": self.context["cause"]["message"],
            }
        return result

    def add_context(self, **kwargs: Any) -> "BaseError":
        """Attach more context; returns self so calls can be chained."""
        self.context.update(kwargs)
        return self

    @property
    def error_chain(self) -> List[Exception]:
        """This error followed by its causes, outermost first."""
        chain: List[Exception] = [self]
        current = self.cause
        while current is not None:
            chain.append(current)
            current = getattr(current, "cause", None)
        return chain


# Layer-specific base exceptions
class RepositoryError(BaseError):
    """Store-level failures."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.DATABASE_ERROR,
        status_code: int = 500,
        cause: Optional[Exception] = None,
        **context,
    ):
        super().__init__(message, error_code, status_code, cause, **context)


class ServiceError(BaseError):
    """Failures inside a service or the provisioning engine."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        operation: Optional[str] = None,
        cause: Optional[Exception] = None,
        **context,
    ):
        if operation:
            context["operation"] = operation
        super().__init__(message, error_code, 500, cause, **context)


class ValidationError(BaseError):
    """Input that is well-formed but not acceptable."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        error_code: ErrorCode = ErrorCode.VALIDATION_FAILED,
        cause: Optional[Exception] = None,
        **context,
    ):
        if field:
            context["field"] = field
        super().__init__(message, error_code, 400, cause, **context)


class ExternalServiceError(BaseError):
    """Failures of tools or services outside the process."""

    def __init__(
        self,
        message: str,
        service_name: str,
        error_code: ErrorCode = ErrorCode.EXTERNAL_TOOL_ERROR,
        cause: Optional[Exception] = None,
        **context,
    ):
        context["service_name"] = service_name
        super().__init__(message, error_code, 502, cause, **context)


# ==================== PROVISIONING EXCEPTIONS ====================


class AccountNotFoundError(RepositoryError):
    """Raised when a hosting account or one of its records does not exist."""

    def __init__(self, message: str = "Hosting account not found", **kwargs):
        super().__init__(message, error_code=ErrorCode.NOT_FOUND, status_code=404, **kwargs)


class AccountConflictError(RepositoryError):
    """Raised when a unique value (identifier, email, account number, login) is taken."""

    def __init__(self, field: str, value: Any, cause: Optional[Exception] = None, **kwargs):
        self.field = field
        self.value = value
        super().__init__(
            f"{field} already in use: {value}",
            error_code=ErrorCode.DUPLICATE,
            status_code=409,
            cause=cause,
            field=field,
            value=str(value),
            **kwargs,
        )


class PersistenceError(RepositoryError):
    """Raised when the relational store fails during a provisioning step."""

    def __init__(self, message: str, cause: Optional[Exception] = None, **kwargs):
        super().__init__(message, error_code=ErrorCode.DATABASE_ERROR, cause=cause, **kwargs)


class OSAccountError(ExternalServiceError):
    """Raised when a host user-management tool fails; carries the tool's output."""

    def __init__(
        self,
        message: str,
        diagnostic: str = "",
        cause: Optional[Exception] = None,
        **kwargs,
    ):
        self.diagnostic = diagnostic
        if diagnostic:
            message = f"{message}: {diagnostic}"
        super().__init__(
            message,
            service_name="os_accounts",
            cause=cause,
            diagnostic=diagnostic,
            **kwargs,
        )


class AuthenticationError(BaseError):
    """Raised when a caller presents unknown or wrong credentials."""

    def __init__(self, message: str = "Invalid credentials", **kwargs):
        super().__init__(
            message, error_code=ErrorCode.AUTHENTICATION_FAILED, status_code=401, **kwargs
        )


# Factory functions for common error patterns
def not_found(
    resource_type: str, cause: Optional[Exception] = None, **identifiers
) -> AccountNotFoundError:
    """
    Build a 404 for a missing record.

    >>> not_found("HostingProfile", account_id="42").message
    'HostingProfile not found: account_id=42'
    """
    message = f"{resource_type} not found"
    if identifiers:
        message += ": " + ", ".join(f"{k}={v}" for k, v in identifiers.items())
    return AccountNotFoundError(message, cause=cause, resource_type=resource_type, **identifiers)


def duplicate(
    field: str, value: Any, cause: Optional[Exception] = None, **context
) -> AccountConflictError:
    return AccountConflictError(field, value, cause=cause, **context)


def validation_failed(
    field: str, value: Any, reason: str, cause: Optional[Exception] = None
) -> ValidationError:
    """Build a ValidationError naming the field, the rejected value and why."""
    return ValidationError(
        f"Validation failed for {field}: {reason}",
        field=field,
        cause=cause,
        value=str(value),
        reason=reason,
    )


def permission_denied(
    action: str, resource: str, cause: Optional[Exception] = None, **context
) -> BaseError:
    """Build a 403 for an authenticated caller lacking the required permission level."""
    return BaseError(
        f"Permission denied: {action} on {resource}",
        error_code=ErrorCode.PERMISSION_DENIED,
        status_code=403,
        cause=cause,
        action=action,
        resource=resource,
        **context,
    )


# Correlation ID management
def set_correlation_id(correlation_id: str) -> None:
    """Set the correlation ID for the current thread."""
    _thread_local.correlation_id = correlation_id


def get_correlation_id() -> Optional[str]:
    """Get the current thread's correlation ID."""
    return getattr(_thread_local, "correlation_id", None)


def clear_correlation_id() -> None:
    """Clear the current thread's correlation ID."""
    if hasattr(_thread_local, "correlation_id"):
        delattr(_thread_local, "correlation_id")
