"""Delinquency analysis - converts a loan's repayment history into a risk sub-score"""

from typing import List, Sequence

from loan_risk.domain.models import DelinquencyResult, DelinquencyTrend, PaymentStatus, RepaymentRecord
from loan_risk.domain.thresholds import DEFAULT_CONFIG, DelinquencyThresholds, RiskConfig


def _chronological(repayments: Sequence[RepaymentRecord]) -> List[RepaymentRecord]:
    return sorted(repayments, key=lambda r: r.due_date)


def _longest_delay_streak(repayments: Sequence[RepaymentRecord]) -> int:
    longest = 0
    current = 0
    for repayment in repayments:
        if repayment.dpd > 0:
            current += 1
            longest = max(longest, current)
        else:
            current = 0
    return longest


_TIER_LABELS = (
    "Perfect payment history",
    "Minor delays only",
    "Occasional delays",
    "Consistent delays",
    "Serious delinquency",
    "Critical delinquency",
)


def _dpd_tier(max_dpd: int, thresholds: DelinquencyThresholds) -> tuple[int, float]:
    for index, (upper_bound, score) in enumerate(thresholds.dpd_tiers):
        if max_dpd <= upper_bound:
            return index, score
    return len(thresholds.dpd_tiers), thresholds.dpd_ceiling_score


def dpd_base_score(max_dpd: int, thresholds: DelinquencyThresholds) -> float:
    """Base risk from the worst DPD ever observed"""
    return _dpd_tier(max_dpd, thresholds)[1]


def analyze_delinquency(
    repayments: Sequence[RepaymentRecord],
    config: RiskConfig = DEFAULT_CONFIG,
) -> DelinquencyResult:
    """
    Score repayment behaviour from 0 (clean) to 100 (critical).

    Requirements:
    - No history is not itself risky: score 0, not flagged
    - Base score tiered on max DPD
    - Penalties for a delay streak in the last 6 EMIs, a high average DPD,
      and any partial payment in the last 3 EMIs
    - Flag when max DPD > 15 or at least 2 consecutive delays
    """
    thresholds = config.delinquency

    if not repayments:
        return DelinquencyResult(
            score=0,
            flagged=False,
            max_dpd=0,
            avg_dpd=0.0,
            consecutive_delays=0,
            trend=DelinquencyTrend.STABLE,
            reasons=("No repayment history",),
        )

    ordered = _chronological(repayments)
    max_dpd = max(r.dpd for r in ordered)
    avg_dpd = sum(r.dpd for r in ordered) / len(ordered)
    consecutive_delays = _longest_delay_streak(ordered[-thresholds.streak_window:])

    tier, score = _dpd_tier(max_dpd, thresholds)
    label = _TIER_LABELS[min(tier, len(_TIER_LABELS) - 1)]
    reasons = [label if max_dpd == 0 else f"{label} (max {max_dpd} days)"]

    if consecutive_delays >= thresholds.consecutive_penalty_at:
        score += thresholds.consecutive_penalty
        reasons.append(f"{consecutive_delays} consecutive delayed payments")

    if avg_dpd > thresholds.avg_dpd_penalty_above:
        score += thresholds.avg_dpd_penalty
        reasons.append(f"High average DPD: {avg_dpd:.1f} days")

    partial_payments = sum(1 for r in ordered[-thresholds.partial_window:] if r.is_partial)
    if partial_payments > 0:
        score += thresholds.partial_payment_penalty
        reasons.append(f"{partial_payments} partial payments in last {thresholds.partial_window} EMIs")

    score = min(100, score)
    flagged = max_dpd > thresholds.flag_max_dpd_above or consecutive_delays >= thresholds.flag_consecutive_at

    return DelinquencyResult(
        score=score,
        flagged=flagged,
        max_dpd=max_dpd,
        avg_dpd=round(avg_dpd, 1),
        consecutive_delays=consecutive_delays,
        trend=delinquency_trend(ordered, config),
        reasons=tuple(reasons),
    )


def delinquency_trend(
    repayments: Sequence[RepaymentRecord],
    config: RiskConfig = DEFAULT_CONFIG,
) -> DelinquencyTrend:
    """
    Compare mean DPD of the latest 3 EMIs with the 3 before them.

    Fewer than 4 repayments is always stable. Both windows are divided by 3,
    so a short earlier window (4 or 5 repayments) counts the missing EMIs as 0.
    """
    thresholds = config.delinquency
    if len(repayments) < thresholds.trend_min_repayments:
        return DelinquencyTrend.STABLE

    ordered = _chronological(repayments)
    window = thresholds.trend_window
    recent = ordered[-window:]
    previous = ordered[-2 * window:-window]

    recent_avg = sum(r.dpd for r in recent) / window
    previous_avg = sum(r.dpd for r in previous) / window

    # Flat at zero is no movement in either direction
    if recent_avg == previous_avg == 0:
        return DelinquencyTrend.STABLE
    if recent_avg <= previous_avg * thresholds.improving_ratio:
        return DelinquencyTrend.IMPROVING
    if recent_avg >= previous_avg * thresholds.worsening_ratio:
        return DelinquencyTrend.WORSENING
    return DelinquencyTrend.STABLE


def payment_consistency(
    repayments: Sequence[RepaymentRecord],
    config: RiskConfig = DEFAULT_CONFIG,
) -> int:
    """Percentage of EMIs paid within the on-time tolerance (0-100, higher is better)"""
    thresholds = config.delinquency
    if not repayments:
        return thresholds.no_history_consistency

    on_time = sum(1 for r in repayments if r.dpd <= thresholds.on_time_max_dpd)
    return round(on_time / len(repayments) * 100)


def has_missed_payments(repayments: Sequence[RepaymentRecord], months: int = 3) -> bool:
    """True if any of the most recent `months` EMIs was missed outright"""
    recent = _chronological(repayments)[-months:] if months > 0 else []
    return any(r.payment_status == PaymentStatus.MISSED for r in recent)
