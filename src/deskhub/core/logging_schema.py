"""Logging field schema - v1.0

Standard fields (added to all logs):
- schema_version: Log schema version
- service: Service name (deskhub-orchestrator)
- component: Component name (provisioner, sweeper)
- event: Event type (provisioning_failed, container_started, etc.)
- trace_id: Request trace ID
- duration_ms: Duration in milliseconds

High cardinality fields (OK in logs, NOT in metric labels):
- ws_id: Workspace ID
- user_id: User ID
- container: Container name or ID
"""

from enum import StrEnum


class LogEvent(StrEnum):
    """Standard log event types.

    Use these event types in the 'event' extra field for consistent
    log filtering and analysis.
    """

    # Workspace lifecycle events
    WORKSPACE_CREATED = "workspace_created"
    WORKSPACE_DELETED = "workspace_deleted"
    STATE_CHANGED = "state_changed"
    PROVISIONING_STARTED = "provisioning_started"
    PROVISIONING_SUCCESS = "provisioning_success"
    PROVISIONING_FAILED = "provisioning_failed"
    PROVISIONING_CANCELLED = "provisioning_cancelled"

    # Port allocation events
    PORT_ALLOCATED = "port_allocated"
    PORT_EXHAUSTED = "port_exhausted"

    # Container events
    CONTAINER_CREATED = "container_created"
    CONTAINER_STARTED = "container_started"
    CONTAINER_STOPPED = "container_stopped"
    CONTAINER_REMOVED = "container_removed"
    CONTAINER_OPERATION_FAILED = "container_operation_failed"
    STATS_UNAVAILABLE = "stats_unavailable"

    # Sweeper events
    SWEEP_COMPLETE = "sweep_complete"
    SWEEP_FAILED = "sweep_failed"
    ORPHAN_CONTAINER = "orphan_container"

    # Lifecycle events
    APP_STARTED = "app_started"
    APP_STOPPED = "app_stopped"
    DB_CONNECTED = "db_connected"
    DB_ERROR = "db_error"

    # API events
    REQUEST_COMPLETE = "request_complete"
    REQUEST_FAILED = "request_failed"
    REQUEST_SLOW = "request_slow"


class Component(StrEnum):
    """Component identifiers for log filtering."""

    PROVISIONER = "provisioner"
    SWEEPER = "sweeper"
