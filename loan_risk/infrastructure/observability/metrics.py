"""Prometheus metrics for monitoring risk distribution, data quality and formula defects"""

from prometheus_client import Counter, Histogram

# Scoring metrics
assessment_counter = Counter(
    "loan_risk_assessments_total",
    "Risk assessments produced",
    ["category"],  # LOW | MEDIUM | HIGH
)

unscoreable_counter = Counter(
    "loan_risk_unscoreable_total",
    "Loans excluded from scoring because of malformed input",
    ["reason"],
)

scoring_run_histogram = Histogram(
    "loan_risk_scoring_run_seconds",
    "Duration of a full portfolio scoring run",
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

# Concentration metrics
concentration_report_counter = Counter(
    "loan_risk_concentration_reports_total",
    "Concentration reports generated",
    ["overall_risk"],  # LOW | MODERATE | HIGH
)

# Formula / threshold defects
invariant_violation_counter = Counter(
    "loan_risk_invariant_violations_total",
    "Derived values that broke a structural invariant",
    ["check"],
)


def record_assessment(category: str) -> None:
    """Record one assessment in the category distribution"""
    assessment_counter.labels(category=category).inc()


def record_unscoreable(reason: str) -> None:
    """Record a malformed loan, bucketed by the leading clause of its reason"""
    bucket = reason.split(":", 1)[0].strip() or "unknown"
    unscoreable_counter.labels(reason=bucket).inc()
