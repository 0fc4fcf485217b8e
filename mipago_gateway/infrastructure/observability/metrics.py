"""Prometheus metrics for credit decisions, transfer outcomes and account security"""

from prometheus_client import Counter, Histogram

# Credit metrics
eligibility_counter = Counter(
    "mipago_eligibility_decisions_total",
    "Eligibility decisions by product",
    ["product", "outcome"],  # eligible | denied
)

disbursement_counter = Counter(
    "mipago_disbursements_total",
    "Credit disbursements",
    ["product", "outcome"],  # disbursed | failed
)

disbursed_amount_histogram = Histogram(
    "mipago_disbursed_amount_cents",
    "Disbursed principal in cents",
    ["product"],
    buckets=[100_000, 500_000, 1_000_000, 2_500_000, 5_000_000, 10_000_000, 25_000_000],
)

# Transfer metrics
transfer_counter = Counter(
    "mipago_transfers_total",
    "Transfer settlement outcomes",
    ["destination_kind", "outcome"],  # settled | failed | denied
)

fraud_signal_counter = Counter(
    "mipago_fraud_signals_total",
    "Fraud signals raised on transfers",
    ["kind", "severity"],
)

compensation_failure_counter = Counter(
    "mipago_compensation_failures_total",
    "Failed re-credits after a failed transfer",
)

unrecorded_settlement_counter = Counter(
    "mipago_unrecorded_settlements_total",
    "External transfers accepted by clearing whose settled status was not stored",
)

clearing_failure_counter = Counter(
    "mipago_clearing_failures_total",
    "Failed clearing house submissions",
)

# Security metrics
login_counter = Counter(
    "mipago_logins_total",
    "Login attempts by outcome",
    ["outcome"],  # success | invalid_credentials | locked
)

lockout_counter = Counter(
    "mipago_account_lockouts_total",
    "Accounts locked after repeated failed logins",
)

kyc_decision_counter = Counter(
    "mipago_kyc_decisions_total",
    "KYC approvals and rejections",
    ["outcome"],  # approved | rejected | denied
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_eligibility(product: str, eligible: bool) -> None:
    eligibility_counter.labels(product=product, outcome="eligible" if eligible else "denied").inc()


def record_disbursement(product: str, principal_cents: int, succeeded: bool) -> None:
    """Count a disbursement attempt and, when it succeeds, its principal"""
    disbursement_counter.labels(product=product, outcome="disbursed" if succeeded else "failed").inc()
    if succeeded:
        disbursed_amount_histogram.labels(product=product).observe(principal_cents)


def record_transfer(destination_kind: str, outcome: str, signals=()) -> None:
    transfer_counter.labels(destination_kind=destination_kind, outcome=outcome).inc()
    for signal in signals:
        fraud_signal_counter.labels(kind=signal.kind, severity=signal.severity.value).inc()
