# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Prometheus metrics — single source of truth for all metric objects.
Imported by services and middleware. Never instantiated in controllers.
"""

from prometheus_client import Counter, Gauge, Histogram

# ── HTTP Metrics (used by middleware) ──
REQUEST_COUNT = Counter(
    "sprintdesk_requests_total",
    "Total HTTP requests to sprint desk",
    ["method", "endpoint", "status"],
)
REQUEST_LATENCY = Histogram(
    "sprintdesk_request_duration_seconds",
    "Request latency in seconds",
    ["method", "endpoint"],
)
HTTP_ERRORS = Counter(
    "sprintdesk_http_errors_total",
    "Total HTTP error responses",
    ["method", "endpoint", "status"],
)

# ── Record store (updated by store clients only) ──
STORE_OPERATIONS = Counter(
    "sprintdesk_store_operations_total",
    "Record store operations",
    ["operation", "collection"],
)
STORE_ERRORS = Counter(
    "sprintdesk_store_errors_total",
    "Record store operations that failed",
    ["operation", "collection"],
)
STORE_LATENCY = Histogram(
    "sprintdesk_store_duration_seconds",
    "Record store call latency in seconds",
    ["operation"],
)

# ── Business Metrics (updated by service layer only) ──
ROTATION_LOOKUPS = Counter(
    "sprintdesk_rotation_lookups_total",
    "Rotation records served",
    ["view"],
)
CAPACITY_CALCULATIONS = Counter(
    "sprintdesk_capacity_calculations_total",
    "Capacity summaries computed",
)
CAPACITY_PLANS_SAVED = Counter(
    "sprintdesk_capacity_plans_saved_total",
    "Capacity plans saved",
    ["mode"],
)
SPRINTS_STARTED = Counter(
    "sprintdesk_sprints_started_total",
    "Sprints started from a previous plan",
)
POKER_SESSIONS_CREATED = Counter(
    "sprintdesk_poker_sessions_created_total",
    "Poker sessions created",
)
POKER_SESSION_RACES = Counter(
    "sprintdesk_poker_session_races_total",
    "Session bootstraps that found an existing record",
)
POKER_VOTES_CAST = Counter(
    "sprintdesk_poker_votes_total",
    "Votes cast or withdrawn",
    ["kind"],
)
POKER_ROUNDS_COMPLETED = Counter(
    "sprintdesk_poker_rounds_completed_total",
    "Rounds reset, archived or not",
    ["archived"],
)
POKER_ACTIVE_ROOMS = Gauge(
    "sprintdesk_poker_active_rooms",
    "Poker rooms with a local projection in this process",
)
