"""Domain models and enums."""

from deskhub.core.domain.workspace import RETRYABLE_STATUSES, WorkspaceStatus

__all__ = [
    "RETRYABLE_STATUSES",
    "WorkspaceStatus",
]
