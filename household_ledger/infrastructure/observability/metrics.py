"""Prometheus metrics for bill materialization, payments and balance mutations"""

from prometheus_client import Counter, Histogram

# Bill metrics
bills_materialized_counter = Counter(
    "ledger_bills_materialized_total",
    "Current-bill resolutions",
    ["outcome"],  # created | existing
)

bill_cache_hits_counter = Counter(
    "ledger_bill_cache_hits_total",
    "Current-bill requests joined to an in-flight resolution",
)

bill_payment_counter = Counter(
    "ledger_bill_payments_total",
    "Bill payments applied",
    ["outcome"],  # paid_in_full | partial
)

bill_payment_amount_histogram = Histogram(
    "ledger_bill_payment_amount_cents",
    "Bill payment amounts",
    buckets=[1_000, 5_000, 10_000, 50_000, 100_000, 500_000, 1_000_000],
)

# Ledger metrics
balance_adjustment_counter = Counter(
    "ledger_balance_adjustments_total",
    "Atomic account balance increments",
)

transaction_mutation_counter = Counter(
    "ledger_transaction_mutations_total",
    "Transaction create/update/delete operations",
    ["operation"],  # create | update | delete
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_bill_payment(paid_in_full: bool, amount_cents: int) -> None:
    """Record payment metrics for monitoring full vs partial payments"""
    outcome = "paid_in_full" if paid_in_full else "partial"
    bill_payment_counter.labels(outcome=outcome).inc()
    bill_payment_amount_histogram.observe(amount_cents)
