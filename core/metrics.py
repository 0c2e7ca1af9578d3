"""
Prometheus metrics for the license service.

Custom metrics for business logic and performance monitoring.
"""

from prometheus_client import Counter, Histogram

# HTTP metrics
http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.0, 5.0, 10.0],
)

# Application lifecycle metrics
application_transitions_total = Counter(
    "application_transitions_total",
    "Application status transitions",
    ["action", "from_status", "to_status"],
)

application_transition_failures_total = Counter(
    "application_transition_failures_total",
    "Rejected application transitions",
    ["action", "reason"],
)

applications_submitted_total = Counter(
    "applications_submitted_total",
    "Applications received from the external form",
    ["integration_test"],
)

optimistic_conflicts_total = Counter(
    "optimistic_conflicts_total",
    "Conditional writes that lost an optimistic concurrency race",
    ["operation"],
)

# Notification metrics
notifications_scheduled_total = Counter(
    "notifications_scheduled_total",
    "Deferred license notifications armed",
)

notifications_cancelled_total = Counter(
    "notifications_cancelled_total",
    "Deferred license notifications disarmed before firing",
)

notifications_delivered_total = Counter(
    "notifications_delivered_total",
    "License notification delivery attempts",
    ["channel", "result"],
)

notification_arm_failures_total = Counter(
    "notification_arm_failures_total",
    "Deferred license notifications that could not be armed",
)

notifications_recovered_total = Counter(
    "notifications_recovered_total",
    "Overdue license notifications fired by the sweep",
)

notification_delivery_failures_total = Counter(
    "notification_delivery_failures_total",
    "License notifications that exhausted their delivery retries",
    ["channel"],
)

# Integration test metrics
integration_test_steps_total = Counter(
    "integration_test_steps_total",
    "Integration test step reports",
    ["step", "result"],
)

integration_tests_started_total = Counter(
    "integration_tests_started_total",
    "Integration tests started",
    ["result"],
)

# Inbound webhooks
webhook_events_total = Counter(
    "webhook_events_total",
    "Inbound webhook events",
    ["action", "result"],
)

webhook_processing_seconds = Histogram(
    "webhook_processing_seconds",
    "Time spent processing inbound webhook events",
    ["action"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.0, 5.0],
)
