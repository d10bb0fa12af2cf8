"""Workspace domain enums."""

from enum import StrEnum


class WorkspaceStatus(StrEnum):
    """Workspace lifecycle status.

    PROVISIONING -> ACTIVE on container start, PROVISIONING -> ERROR on any
    provisioning failure. SUSPENDED is only set by administrative action.
    """

    PROVISIONING = "PROVISIONING"
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"
    ERROR = "ERROR"


# Statuses from which provisioning may be re-run manually
RETRYABLE_STATUSES = frozenset({WorkspaceStatus.ERROR})
