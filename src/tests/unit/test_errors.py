"""Tests for error handling classes."""

import pytest

from deskhub.core.errors import (
    ContainerOperationFailedError,
    DeskHubError,
    DuplicateWorkspaceError,
    EngineTimeoutError,
    ErrorCode,
    ForbiddenError,
    InvalidWorkspaceStateError,
    PortExhaustionError,
    ProvisioningFailedError,
    StatsUnavailableError,
    UnauthorizedError,
    WorkspaceNotFoundError,
)


class TestDuplicateWorkspaceError:
    """Tests for DuplicateWorkspaceError."""

    def test_inherits_deskhub_error(self) -> None:
        exc = DuplicateWorkspaceError()
        assert isinstance(exc, DeskHubError)
        assert isinstance(exc, Exception)

    def test_has_correct_error_code(self) -> None:
        exc = DuplicateWorkspaceError()
        assert exc.code == ErrorCode.DUPLICATE_WORKSPACE

    def test_has_correct_status_code(self) -> None:
        exc = DuplicateWorkspaceError()
        assert exc.status_code == 409

    def test_default_message(self) -> None:
        exc = DuplicateWorkspaceError()
        assert exc.message == "User already has a workspace"

    def test_to_response(self) -> None:
        """to_response() should return ErrorResponse with correct fields."""
        resp = DuplicateWorkspaceError().to_response()

        assert resp.error.code == "DUPLICATE_WORKSPACE"
        assert resp.error.message == "User already has a workspace"


class TestPortExhaustionError:
    """Tests for PortExhaustionError."""

    def test_default_message(self) -> None:
        exc = PortExhaustionError()
        assert exc.message == "No available ports"
        assert exc.status_code == 503

    def test_custom_message(self) -> None:
        exc = PortExhaustionError("No available ports in range 10000-10002")
        assert exc.message == "No available ports in range 10000-10002"
        assert str(exc) == "No available ports in range 10000-10002"


@pytest.mark.parametrize(
    ("exc_class", "code", "status_code"),
    [
        (UnauthorizedError, ErrorCode.UNAUTHORIZED, 401),
        (ForbiddenError, ErrorCode.FORBIDDEN, 403),
        (WorkspaceNotFoundError, ErrorCode.WORKSPACE_NOT_FOUND, 404),
        (InvalidWorkspaceStateError, ErrorCode.INVALID_WORKSPACE_STATE, 409),
        (ProvisioningFailedError, ErrorCode.PROVISIONING_FAILED, 502),
        (ContainerOperationFailedError, ErrorCode.CONTAINER_OPERATION_FAILED, 502),
        (StatsUnavailableError, ErrorCode.STATS_UNAVAILABLE, 502),
        (EngineTimeoutError, ErrorCode.ENGINE_TIMEOUT, 504),
    ],
)
def test_error_mapping(exc_class, code: ErrorCode, status_code: int) -> None:
    """Every error carries its code and HTTP status."""
    exc = exc_class()
    assert exc.code == code
    assert exc.status_code == status_code
    assert exc.to_response().error.code == code.value
