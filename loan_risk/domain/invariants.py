"""
Structural guarantees on derived values.

A violation here means a formula or threshold is wrong, not that the input
data is bad. With `settings.strict_invariants` enabled (tests, debugging) the
violation raises InvariantViolationError; otherwise it is logged, counted,
and the value is clamped back into range so the report can still be served.
"""

import logging
from typing import Iterable

from loan_risk.config import settings
from loan_risk.domain.exceptions import InvariantViolationError
from loan_risk.infrastructure.observability.metrics import invariant_violation_counter

logger = logging.getLogger(__name__)


def _violation(check: str, detail: str) -> None:
    invariant_violation_counter.labels(check=check).inc()
    if settings.strict_invariants:
        raise InvariantViolationError(check, detail)
    logger.error("Invariant violated", extra={"check": check, "detail": detail})


def ensure_in_range(check: str, value: float, low: float, high: float) -> float:
    """Return value, clamped to [low, high] after reporting if it falls outside"""
    if value < low or value > high:
        _violation(check, f"{value} outside [{low}, {high}]")
        return min(high, max(low, value))
    return value


def ensure_non_negative(check: str, value: float) -> float:
    if value < 0:
        _violation(check, f"negative value {value}")
        return 0
    return value


def ensure_percentage_total(check: str, percentages: Iterable[float], tolerance: float = 0.1) -> None:
    """A completed breakdown must account for 100% of exposure"""
    values = list(percentages)
    if not values:
        return
    total = sum(values)
    if abs(total - 100) > tolerance:
        _violation(check, f"percentages sum to {total:.4f}")
