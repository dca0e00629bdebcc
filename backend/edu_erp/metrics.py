# edu_erp/metrics.py
from __future__ import annotations

from prometheus_client import Counter


# ---- Fail-soft paths ----
# These errors are logged and swallowed by the services, so the counters are
# the only operational signal that they happened.

AUDIT_LOG_FAILURES = Counter(
    "audit_log_failures_total",
    "Audit log writes or reads that failed and were swallowed",
    labelnames=("operation",),
)

NOTIFICATION_QUERY_FAILURES = Counter(
    "notification_query_failures_total",
    "Notification read queries that failed and returned a default",
    labelnames=("operation",),
)

EMAIL_DELIVERY_FAILURES = Counter(
    "email_delivery_failures_total",
    "Notification emails the gateway reported as not sent",
    labelnames=("notification_type",),
)

# ---- Throughput ----

NOTIFICATIONS_CREATED = Counter(
    "notifications_created_total",
    "In-app notification rows created",
    labelnames=("notification_type",),
)

TIMETABLE_TRANSITIONS = Counter(
    "timetable_transitions_total",
    "Exam timetable lifecycle events",
    labelnames=("action",),
)


def record_swallowed_audit_failure(operation: str) -> None:
    AUDIT_LOG_FAILURES.labels(operation=operation).inc()


def record_swallowed_notification_failure(operation: str) -> None:
    NOTIFICATION_QUERY_FAILURES.labels(operation=operation).inc()
