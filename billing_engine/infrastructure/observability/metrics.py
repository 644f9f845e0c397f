"""Prometheus metrics for payment allocation and the daily billing job"""

from prometheus_client import Counter, Histogram

# Payment metrics
payment_counter = Counter(
    "billing_payments_total",
    "Payments submitted to the billing engine",
    ["outcome"],  # applied | rejected
)

payment_allocated_counter = Counter(
    "billing_payment_allocated_amount_total",
    "Amount applied to obligations",
    ["kind"],  # installment | recurring
)

excess_credited_counter = Counter(
    "billing_excess_credited_amount_total",
    "Excess payment amount moved to customer credit",
)

concurrency_conflict_counter = Counter(
    "billing_concurrency_conflicts_total",
    "Writes rejected because an obligation changed after it was read",
)

# Daily job metrics
job_run_counter = Counter(
    "billing_job_runs_total",
    "Daily job invocations",
    ["outcome"],  # completed | skipped | failed
)

obligations_generated_counter = Counter(
    "billing_obligations_generated_total",
    "Recurring charges created by the daily job",
)

obligations_overdue_counter = Counter(
    "billing_obligations_marked_overdue_total",
    "Obligations moved to overdue by the sweep",
    ["kind"],
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_payment(success: bool, installment_amount: int, recurring_amount: int, excess: int) -> None:
    """Record payment outcome and how much went where"""
    payment_counter.labels(outcome="applied" if success else "rejected").inc()
    if not success:
        return

    if installment_amount:
        payment_allocated_counter.labels(kind="installment").inc(installment_amount)
    if recurring_amount:
        payment_allocated_counter.labels(kind="recurring").inc(recurring_amount)
    if excess:
        excess_credited_counter.inc(excess)


def record_job_run(skipped: bool, failed: bool, generated: int, overdue_rent: int, overdue_installment: int) -> None:
    """Count the run by outcome; a run that collected errors is failed"""
    if skipped:
        outcome = "skipped"
    elif failed:
        outcome = "failed"
    else:
        outcome = "completed"
    job_run_counter.labels(outcome=outcome).inc()
    if generated:
        obligations_generated_counter.inc(generated)
    if overdue_rent:
        obligations_overdue_counter.labels(kind="recurring").inc(overdue_rent)
    if overdue_installment:
        obligations_overdue_counter.labels(kind="installment").inc(overdue_installment)
