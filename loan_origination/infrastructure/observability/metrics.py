"""Prometheus metrics for application flow, decisions, simulations and collaborator health"""

from prometheus_client import Counter, Histogram

# Lifecycle metrics
transition_counter = Counter(
    "loan_application_transitions_total",
    "Committed application status changes",
    ["from_status", "to_status"],
)

decision_counter = Counter(
    "loan_application_decisions_total",
    "Credit decisions recorded on applications",
    ["decision"],  # APPROVED | REJECTED
)

simulation_counter = Counter(
    "loan_simulations_total",
    "Loan simulations computed",
    ["frequency"],
)

concurrent_modification_counter = Counter(
    "loan_concurrent_modification_total",
    "Writes rejected because the application version changed",
)

# Collaborator metrics
collaborator_failure_counter = Counter(
    "collaborator_failures_total",
    "Failed calls to the applicant directory service",
)

webhook_latency_histogram = Histogram(
    "webhook_latency_seconds",
    "Event webhook response time",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

webhook_failure_counter = Counter(
    "webhook_failures_total",
    "Failed webhook deliveries",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_transition(from_status: str, to_status: str) -> None:
    transition_counter.labels(from_status=from_status or "NONE", to_status=to_status).inc()


def record_decision(decision: str) -> None:
    """Record approve/reject outcomes for monitoring approval rates"""
    decision_counter.labels(decision=decision).inc()


def record_simulation(frequency: str) -> None:
    simulation_counter.labels(frequency=frequency).inc()
