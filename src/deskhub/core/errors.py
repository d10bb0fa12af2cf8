"""Error handling module for deskhub.

This module defines error codes, exception classes, and response models.

Error Response Format:
{
    "error": {
        "code": "DUPLICATE_WORKSPACE",
        "message": "User already has a workspace"
    }
}

Usage:
    from deskhub.core.errors import DuplicateWorkspaceError, WorkspaceNotFoundError

    # Raise with default message
    raise WorkspaceNotFoundError()

    # Raise with custom message
    raise ProvisioningFailedError("Failed to create workspace container: no such image")
"""

from enum import Enum

from pydantic import BaseModel


class ErrorCode(str, Enum):
    """Error codes."""

    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    WORKSPACE_NOT_FOUND = "WORKSPACE_NOT_FOUND"
    DUPLICATE_WORKSPACE = "DUPLICATE_WORKSPACE"
    INVALID_WORKSPACE_STATE = "INVALID_WORKSPACE_STATE"
    PORT_EXHAUSTION = "PORT_EXHAUSTION"
    PROVISIONING_FAILED = "PROVISIONING_FAILED"
    CONTAINER_OPERATION_FAILED = "CONTAINER_OPERATION_FAILED"
    STATS_UNAVAILABLE = "STATS_UNAVAILABLE"
    ENGINE_TIMEOUT = "ENGINE_TIMEOUT"


class ErrorDetail(BaseModel):
    """Error detail containing code and message."""

    code: str
    message: str


class ErrorResponse(BaseModel):
    """Error response format."""

    error: ErrorDetail


class DeskHubError(Exception):
    """Base exception for deskhub.

    All deskhub specific exceptions should inherit from this class.
    This enables centralized exception handling in FastAPI.

    Attributes:
        code: The error code from ErrorCode enum
        message: Human-readable error message
        status_code: HTTP status code to return
    """

    def __init__(self, code: ErrorCode, message: str, status_code: int) -> None:
        self.code = code
        self.message = message
        self.status_code = status_code
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert exception to ErrorResponse model."""
        return ErrorResponse(
            error=ErrorDetail(code=self.code.value, message=self.message)
        )


class UnauthorizedError(DeskHubError):
    """401 Unauthorized - Authentication required."""

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(ErrorCode.UNAUTHORIZED, message, 401)


class ForbiddenError(DeskHubError):
    """403 Forbidden - Permission denied."""

    def __init__(self, message: str = "Permission denied") -> None:
        super().__init__(ErrorCode.FORBIDDEN, message, 403)


class WorkspaceNotFoundError(DeskHubError):
    """404 Not Found - Workspace not found."""

    def __init__(self, message: str = "Workspace not found") -> None:
        super().__init__(ErrorCode.WORKSPACE_NOT_FOUND, message, 404)


class DuplicateWorkspaceError(DeskHubError):
    """409 Conflict - User already owns a workspace."""

    def __init__(self, message: str = "User already has a workspace") -> None:
        super().__init__(ErrorCode.DUPLICATE_WORKSPACE, message, 409)


class InvalidWorkspaceStateError(DeskHubError):
    """409 Conflict - Operation not allowed in the current status."""

    def __init__(self, message: str = "Operation not allowed in current workspace state") -> None:
        super().__init__(ErrorCode.INVALID_WORKSPACE_STATE, message, 409)


class PortExhaustionError(DeskHubError):
    """503 Service Unavailable - Every port in the VNC range is held."""

    def __init__(self, message: str = "No available ports") -> None:
        super().__init__(ErrorCode.PORT_EXHAUSTION, message, 503)


class ProvisioningFailedError(DeskHubError):
    """502 Bad Gateway - Engine rejected container create/start."""

    def __init__(self, message: str = "Failed to create workspace container") -> None:
        super().__init__(ErrorCode.PROVISIONING_FAILED, message, 502)


class ContainerOperationFailedError(DeskHubError):
    """502 Bad Gateway - Container stop/remove failed."""

    def __init__(self, message: str = "Container operation failed") -> None:
        super().__init__(ErrorCode.CONTAINER_OPERATION_FAILED, message, 502)


class StatsUnavailableError(DeskHubError):
    """502 Bad Gateway - Container stats could not be read.

    Callers substitute a zero snapshot; this error is not meant to reach clients.
    """

    def __init__(self, message: str = "Container stats unavailable") -> None:
        super().__init__(ErrorCode.STATS_UNAVAILABLE, message, 502)


class EngineTimeoutError(DeskHubError):
    """504 Gateway Timeout - Docker engine did not answer in time."""

    def __init__(self, message: str = "Container engine timed out") -> None:
        super().__init__(ErrorCode.ENGINE_TIMEOUT, message, 504)
