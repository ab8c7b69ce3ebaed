"""
Centralized error catalog for the permission engine.

Mutating operations raise one of the engine errors below; permission checks
never raise and degrade to ``False`` instead. The FastAPI handler at the bottom
turns engine errors into consistent JSON responses.
"""

from enum import Enum
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse


class ErrorCode(Enum):
    """Standardized error codes for the permission engine."""

    # Validation errors
    NO_PERMISSIONS = "VAL_001"
    DEPENDENCY_UNSATISFIED = "VAL_002"
    INVALID_EXPIRATION = "VAL_003"
    DUPLICATE_TEMPORARY_GRANT = "VAL_004"
    REASON_REQUIRED = "VAL_005"
    ROLE_HIERARCHY_CYCLE = "VAL_006"
    ROLE_HIERARCHY_TOO_DEEP = "VAL_007"

    # Authorization errors
    UNAUTHORIZED_REVOKE = "AUTHZ_001"
    UNAUTHORIZED_CANCEL = "AUTHZ_002"

    # State errors
    REQUEST_NOT_VALID = "STATE_001"
    REQUEST_NOT_CANCELLABLE = "STATE_002"
    ALREADY_REVOKED = "STATE_003"

    # Lookup errors
    USER_NOT_FOUND = "NF_001"
    PERMISSION_NOT_FOUND = "NF_002"
    ROLE_NOT_FOUND = "NF_003"
    REQUEST_NOT_FOUND = "NF_004"
    TEMPORARY_PERMISSION_NOT_FOUND = "NF_005"


class ErrorMessage:
    """Standardized error messages."""

    NO_PERMISSIONS = "At least one permission must be added or removed."
    DEPENDENCY_UNSATISFIED = "Permission dependencies not satisfied"
    EXPIRATION_IN_PAST = "Expiration must be in the future."
    DUPLICATE_TEMPORARY_GRANT = "User already has an active temporary permission for this action."
    REASON_REQUIRED = "A reason is required."
    ROLE_HIERARCHY_CYCLE = "Role hierarchy cannot contain cycles."
    ROLE_HIERARCHY_TOO_DEEP = "Role hierarchy is too deep."

    UNAUTHORIZED_REVOKE = "Unauthorized to revoke this permission."
    UNAUTHORIZED_CANCEL = "Unauthorized to cancel this request."

    REQUEST_NOT_VALID = "Request is no longer valid."
    REQUEST_NOT_CANCELLABLE = "Only pending requests can be cancelled."
    ALREADY_REVOKED = "Temporary permission is already revoked."

    USER_NOT_FOUND = "User not found."
    PERMISSION_NOT_FOUND = "Permission not found."
    ROLE_NOT_FOUND = "Role not found."
    REQUEST_NOT_FOUND = "Permission change request not found."
    TEMPORARY_PERMISSION_NOT_FOUND = "Temporary permission not found."


class PermissionEngineError(Exception):
    """Base class for errors raised by mutating engine operations."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, error_code: ErrorCode, message: str, details: Optional[list] = None):
        super().__init__(message)
        self.error_code = error_code
        self.message = message
        self.details = details or []

    def to_dict(self) -> dict:
        """Convert the error to a response payload."""
        payload = {
            "error": self.message,
            "error_code": self.error_code.value,
        }
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(PermissionEngineError):
    """Malformed input to a mutating operation."""

    status_code = status.HTTP_400_BAD_REQUEST


class AuthorizationError(PermissionEngineError):
    """Actor lacks the right to perform the operation."""

    status_code = status.HTTP_403_FORBIDDEN


class StateError(PermissionEngineError):
    """Operation attempted on a request or grant in the wrong state."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(PermissionEngineError):
    """Referenced record does not exist."""

    status_code = status.HTTP_404_NOT_FOUND


class EngineError:
    """Factories for the errors the engine raises."""

    @staticmethod
    def no_permissions() -> ValidationError:
        return ValidationError(ErrorCode.NO_PERMISSIONS, ErrorMessage.NO_PERMISSIONS)

    @staticmethod
    def dependencies_unsatisfied(errors: list) -> ValidationError:
        """Dependency validation failed; ``errors`` are 'x requires y' strings."""
        return ValidationError(
            ErrorCode.DEPENDENCY_UNSATISFIED,
            f"{ErrorMessage.DEPENDENCY_UNSATISFIED}: {'; '.join(errors)}",
            details=list(errors),
        )

    @staticmethod
    def expiration_in_past() -> ValidationError:
        return ValidationError(ErrorCode.INVALID_EXPIRATION, ErrorMessage.EXPIRATION_IN_PAST)

    @staticmethod
    def duplicate_temporary_grant() -> ValidationError:
        return ValidationError(ErrorCode.DUPLICATE_TEMPORARY_GRANT, ErrorMessage.DUPLICATE_TEMPORARY_GRANT)

    @staticmethod
    def reason_required() -> ValidationError:
        return ValidationError(ErrorCode.REASON_REQUIRED, ErrorMessage.REASON_REQUIRED)

    @staticmethod
    def role_hierarchy_cycle() -> ValidationError:
        return ValidationError(ErrorCode.ROLE_HIERARCHY_CYCLE, ErrorMessage.ROLE_HIERARCHY_CYCLE)

    @staticmethod
    def role_hierarchy_too_deep(max_depth: int) -> ValidationError:
        return ValidationError(
            ErrorCode.ROLE_HIERARCHY_TOO_DEEP,
            f"{ErrorMessage.ROLE_HIERARCHY_TOO_DEEP} Maximum depth is {max_depth}.",
        )

    @staticmethod
    def unauthorized_revoke() -> AuthorizationError:
        return AuthorizationError(ErrorCode.UNAUTHORIZED_REVOKE, ErrorMessage.UNAUTHORIZED_REVOKE)

    @staticmethod
    def unauthorized_cancel() -> AuthorizationError:
        return AuthorizationError(ErrorCode.UNAUTHORIZED_CANCEL, ErrorMessage.UNAUTHORIZED_CANCEL)

    @staticmethod
    def request_not_valid() -> StateError:
        return StateError(ErrorCode.REQUEST_NOT_VALID, ErrorMessage.REQUEST_NOT_VALID)

    @staticmethod
    def request_not_cancellable() -> StateError:
        return StateError(ErrorCode.REQUEST_NOT_CANCELLABLE, ErrorMessage.REQUEST_NOT_CANCELLABLE)

    @staticmethod
    def already_revoked() -> StateError:
        return StateError(ErrorCode.ALREADY_REVOKED, ErrorMessage.ALREADY_REVOKED)

    @staticmethod
    def user_not_found() -> NotFoundError:
        return NotFoundError(ErrorCode.USER_NOT_FOUND, ErrorMessage.USER_NOT_FOUND)

    @staticmethod
    def permission_not_found(reference=None) -> NotFoundError:
        message = ErrorMessage.PERMISSION_NOT_FOUND
        if reference is not None:
            message = f"{message[:-1]}: {reference}"
        return NotFoundError(ErrorCode.PERMISSION_NOT_FOUND, message)

    @staticmethod
    def role_not_found() -> NotFoundError:
        return NotFoundError(ErrorCode.ROLE_NOT_FOUND, ErrorMessage.ROLE_NOT_FOUND)

    @staticmethod
    def request_not_found() -> NotFoundError:
        return NotFoundError(ErrorCode.REQUEST_NOT_FOUND, ErrorMessage.REQUEST_NOT_FOUND)

    @staticmethod
    def temporary_permission_not_found() -> NotFoundError:
        return NotFoundError(ErrorCode.TEMPORARY_PERMISSION_NOT_FOUND, ErrorMessage.TEMPORARY_PERMISSION_NOT_FOUND)


async def engine_error_handler(request: Request, exc: PermissionEngineError) -> JSONResponse:
    """Render engine errors as ``{"error": ..., "error_code": ...}``."""
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the engine error handler to an application."""
    app.add_exception_handler(PermissionEngineError, engine_error_handler)
