"""Prometheus metrics definitions for workspace orchestration."""

from prometheus_client import Counter, Gauge, Histogram

# =============================================================================
# Histogram Buckets
# =============================================================================

# FAST: HTTP handlers, DB queries (0.5ms ~ 5s)
_BUCKETS_FAST = (
    0.0005, 0.001, 0.002, 0.005, 0.01,
    0.02, 0.05, 0.1, 0.2, 0.5,
    1, 2, 5,
)

# SLOW: Container create+start (100ms ~ 180s)
_BUCKETS_SLOW = (
    0.1, 0.2, 0.39, 0.77, 1.5,
    3, 6, 12, 23, 46,
    91, 180,
)

# =============================================================================
# Provisioning Metrics
# =============================================================================

PROVISIONING_TOTAL = Counter(
    "deskhub_provisioning_total",
    "Workspace provisioning attempts by outcome",
    ["result"],  # success, error, cancelled
)

PROVISIONING_DURATION = Histogram(
    "deskhub_provisioning_duration_seconds",
    "Time from provisioning start to ACTIVE/ERROR",
    ["result"],
    buckets=_BUCKETS_SLOW,
)

PROVISIONING_IN_FLIGHT = Gauge(
    "deskhub_provisioning_in_flight",
    "Provisioning tasks currently running in this process",
)

# =============================================================================
# Port Allocation Metrics
# =============================================================================

PORT_ALLOCATIONS_TOTAL = Counter(
    "deskhub_port_allocations_total",
    "VNC port allocation attempts by outcome",
    ["result"],  # allocated, exhausted
)

# =============================================================================
# Docker Engine Metrics
# =============================================================================

DOCKER_API_FAILURES_TOTAL = Counter(
    "deskhub_docker_api_failures_total",
    "Failed Docker Engine API calls",
    ["operation"],  # create, start, stop, remove, list, stats
)

# =============================================================================
# Sweeper Metrics
# =============================================================================

SWEEPER_STUCK_TOTAL = Counter(
    "deskhub_sweeper_stuck_workspaces_total",
    "Workspaces moved from PROVISIONING to ERROR by the sweeper",
)

SWEEPER_ORPHANS_TOTAL = Counter(
    "deskhub_sweeper_orphan_containers_total",
    "Workspace containers found without a workspace record",
)

# =============================================================================
# HTTP Metrics
# =============================================================================

HTTP_REQUESTS_TOTAL = Counter(
    "deskhub_http_requests_total",
    "HTTP requests by method, endpoint and status",
    ["method", "endpoint", "status"],
)

HTTP_REQUEST_DURATION = Histogram(
    "deskhub_http_request_duration_seconds",
    "HTTP request duration",
    ["method", "endpoint"],
    buckets=_BUCKETS_FAST,
)
