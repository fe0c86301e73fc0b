"""
Scoring constants table.

Every tier boundary, weight and threshold used by the risk model lives here,
grouped per component, and is injected into the scoring functions through a
single RiskConfig. Tuning the model means building a different RiskConfig,
never editing the scoring code.

Tier tables are ordered tuples of (boundary, score) pairs; the first matching
boundary wins and the `*_floor` / `*_ceiling` value applies when none match.
"""

from dataclasses import dataclass, field
from typing import Dict, Tuple

from loan_risk.domain.models import LoanStatus, Sector


@dataclass(frozen=True)
class DelinquencyThresholds:
    # (max DPD inclusive, base score)
    dpd_tiers: Tuple[Tuple[int, float], ...] = ((0, 5), (5, 10), (15, 25), (30, 50), (60, 75))
    dpd_ceiling_score: float = 95

    streak_window: int = 6
    partial_window: int = 3

    consecutive_penalty_at: int = 3
    consecutive_penalty: float = 10
    avg_dpd_penalty_above: float = 10
    avg_dpd_penalty: float = 5
    partial_payment_penalty: float = 10

    flag_max_dpd_above: int = 15
    flag_consecutive_at: int = 2

    trend_min_repayments: int = 4
    trend_window: int = 3
    improving_ratio: float = 0.7
    worsening_ratio: float = 1.3

    on_time_max_dpd: int = 3
    no_history_consistency: int = 50


@dataclass(frozen=True)
class CreditThresholds:
    # (minimum credit score inclusive, risk)
    credit_score_tiers: Tuple[Tuple[int, float], ...] = ((750, 10), (700, 25), (650, 40), (600, 60))
    credit_score_floor: float = 85
    # (DTI strictly above, risk)
    dti_tiers: Tuple[Tuple[float, float], ...] = ((60, 80), (50, 60), (40, 40), (30, 20))
    dti_floor: float = 10

    credit_score_weight: float = 0.6
    dti_weight: float = 0.4


def _default_sector_risk() -> Dict[Sector, float]:
    return {
        Sector.IT: 10,
        Sector.HEALTHCARE: 15,
        Sector.MANUFACTURING: 30,
        Sector.RETAIL: 35,
        Sector.REAL_ESTATE: 40,
        Sector.AGRICULTURE: 45,
    }


def _default_status_penalty() -> Dict[LoanStatus, float]:
    return {
        LoanStatus.ACTIVE: 0,
        LoanStatus.CLOSED: 0,
        LoanStatus.NPA: 50,
        LoanStatus.RESTRUCTURED: 30,
    }


@dataclass(frozen=True)
class LoanThresholds:
    outstanding_ratio_weight: float = 30
    sector_risk: Dict[Sector, float] = field(default_factory=_default_sector_risk)
    status_penalty: Dict[LoanStatus, float] = field(default_factory=_default_status_penalty)

    # Seasoned, well-performing loans earn a credit
    seasoned_after_months: float = 12
    seasoned_delinquency_below: float = 20
    seasoned_credit: float = 10


@dataclass(frozen=True)
class ConcentrationThresholds:
    """Shared by the per-loan penalty, the composite flags and the portfolio report"""

    sector_limit_pct: float = 30
    sector_limit_penalty: float = 50
    sector_watch_pct: float = 25
    sector_watch_penalty: float = 30

    geography_limit_pct: float = 35
    geography_limit_penalty: float = 30
    geography_watch_pct: float = 30
    geography_watch_penalty: float = 20

    single_name_limit_pct: float = 10
    top10_limit_pct: float = 40
    dominant_sector_pct: float = 40

    hhi_high: float = 2500
    hhi_moderate: float = 1500
    # Mean of LOW=1 / MODERATE=2 / HIGH=3 across dimensions
    overall_high: float = 2.5
    overall_moderate: float = 1.5

    # Per-sector at-risk count: latest risk score strictly above this
    at_risk_score_above: float = 60

    # Portfolio concentration score gates, capped at 100
    flagged_sector_points: int = 30
    flagged_geography_points: int = 25
    single_name_points: int = 20
    dominant_sector_points: int = 15


@dataclass(frozen=True)
class CompositeThresholds:
    delinquency_weight: float = 0.4
    credit_profile_weight: float = 0.3
    loan_characteristics_weight: float = 0.2
    concentration_weight: float = 0.1

    # Closed upper bounds: score <= low_max is LOW, score <= medium_max is MEDIUM
    low_max: float = 35
    medium_max: float = 65

    high_dpd_above: int = 15
    high_dti_above: float = 50

    urgent_score_above: float = 70
    payment_arrangement_dpd_above: int = 30
    capacity_review_delays_at: int = 2
    collateral_credit_below: int = 600
    income_stability_dti_above: float = 60


@dataclass(frozen=True)
class PortfolioThresholds:
    par_thresholds: Tuple[int, ...] = (1, 15, 30, 60, 90)
    # One name per band between consecutive PAR thresholds, the last one open-ended
    band_names: Tuple[str, ...] = ("early", "watch", "substandard", "doubtful", "critical")
    percentage_tolerance: float = 0.1


@dataclass(frozen=True)
class RiskConfig:
    delinquency: DelinquencyThresholds = field(default_factory=DelinquencyThresholds)
    credit: CreditThresholds = field(default_factory=CreditThresholds)
    loan: LoanThresholds = field(default_factory=LoanThresholds)
    concentration: ConcentrationThresholds = field(default_factory=ConcentrationThresholds)
    composite: CompositeThresholds = field(default_factory=CompositeThresholds)
    portfolio: PortfolioThresholds = field(default_factory=PortfolioThresholds)


DEFAULT_CONFIG = RiskConfig()
