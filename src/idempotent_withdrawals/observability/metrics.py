"""Prometheus metrics for the withdrawals service and client.

Metrics include:

- Withdrawal creation and rejection counters
- Creation latency histogram
- Lookup counters by result
- Active idempotency bindings gauge
- Binding cleanup tracking
- Client submission outcomes

Examples:
    Recording a rejected request::

        from idempotent_withdrawals.observability.metrics import record_rejection

        record_rejection(reason="DuplicateRequestError")

    Recording cleanup operations::

        from idempotent_withdrawals.observability.metrics import record_cleanup

        record_cleanup(bindings_removed=42)
"""

from prometheus_client import Counter, Gauge, Histogram

withdrawals_created = Counter(
    "withdrawals_created_total",
    "Total number of withdrawals created",
)

# Labels: reason (exception class name)
withdrawal_rejections = Counter(
    "withdrawal_rejections_total",
    "Total number of rejected withdrawal requests",
    ["reason"],
)

# Labels: result (found, not_found)
withdrawal_lookups = Counter(
    "withdrawal_lookups_total",
    "Total number of withdrawal lookups",
    ["result"],
)

create_duration = Histogram(
    "withdrawal_create_duration_seconds",
    "Time spent creating a withdrawal, including waiting for the key lock",
    buckets=[0.0005, 0.001, 0.0025, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0],
)

# Assumes one idempotency index per process; the last index to change wins.
active_bindings = Gauge(
    "idempotency_bindings_active",
    "Number of idempotency keys currently bound to a withdrawal (one index per process)",
)

cleanup_operations = Counter(
    "idempotency_cleanup_operations_total",
    "Total number of binding cleanup operations performed",
)

cleanup_bindings_removed = Counter(
    "idempotency_cleanup_bindings_removed_total",
    "Total number of expired idempotency bindings removed by cleanup",
)

# Labels: outcome (success, api_error, network_error, ignored, invalid)
client_submissions = Counter(
    "withdraw_client_submissions_total",
    "Client submission attempts by outcome",
    ["outcome"],
)


def record_created() -> None:
    """Record a newly created withdrawal."""
    withdrawals_created.inc()


def record_rejection(reason: str) -> None:
    """Record a rejected create request.

    Args:
        reason: Rejection reason, usually the exception class name
    """
    withdrawal_rejections.labels(reason=reason).inc()


def record_lookup(result: str) -> None:
    """Record a withdrawal lookup.

    Args:
        result: "found" or "not_found"
    """
    withdrawal_lookups.labels(result=result).inc()


def record_create_duration(seconds: float) -> None:
    """Record how long a create call took."""
    create_duration.observe(seconds)


def set_active_bindings(count: int) -> None:
    """Set the number of live idempotency bindings."""
    active_bindings.set(count)


def record_cleanup(bindings_removed: int) -> None:
    """Record a binding cleanup operation.

    Args:
        bindings_removed: Number of expired bindings removed
    """
    cleanup_operations.inc()
    cleanup_bindings_removed.inc(bindings_removed)


def record_client_submission(outcome: str) -> None:
    """Record the outcome of a client submission attempt."""
    client_submissions.labels(outcome=outcome).inc()
