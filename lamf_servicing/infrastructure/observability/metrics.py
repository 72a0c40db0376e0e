"""Prometheus metrics for monitoring repayments, LTV risk and notification delivery"""

from prometheus_client import Counter, Histogram

# Repayment metrics
payment_counter = Counter(
    "lamf_payments_allocated_total",
    "Payments allocated across EMI schedules",
    ["outcome"],  # applied | overpaid
)

# Risk metrics
margin_call_counter = Counter(
    "lamf_margin_calls_raised_total",
    "Margin calls raised by the risk engine",
)

ltv_histogram = Histogram(
    "lamf_loan_ltv_percent",
    "Loan-to-value observed on recomputation",
    buckets=[25, 50, 60, 70, 75, 80, 85, 90, 100, 150],
)

batch_item_failures_counter = Counter(
    "lamf_batch_item_failures_total",
    "Entities a batch job could not process",
    ["job"],  # update_nav | check_margin_calls | rebalancing
)

# Notification metrics
notification_latency_histogram = Histogram(
    "notification_latency_seconds",
    "Notification webhook response time",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

notification_failure_counter = Counter(
    "notification_failures_total",
    "Failed notification deliveries",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_payment(unapplied_amount) -> None:
    """Count allocations, separating payments that overshot the schedule"""
    outcome = "overpaid" if unapplied_amount > 0 else "applied"
    payment_counter.labels(outcome=outcome).inc()


def record_ltv(ltv) -> None:
    ltv_histogram.observe(float(ltv))


def record_batch_failures(job: str, count: int) -> None:
    if count:
        batch_item_failures_counter.labels(job=job).inc(count)
