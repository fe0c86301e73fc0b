"""Portfolio statistics and PAR delinquency cascade"""

from typing import Dict, List, Mapping, Sequence, Tuple

from loan_risk.domain.invariants import ensure_non_negative, ensure_percentage_total
from loan_risk.domain.models import (
    CascadeBand,
    LoanRecord,
    LoanStatus,
    ParCascade,
    ParLevel,
    PortfolioStats,
    RepaymentRecord,
    RiskAssessment,
    RiskCategory,
)
from loan_risk.domain.thresholds import DEFAULT_CONFIG, RiskConfig


def portfolio_stats(pairs: Sequence[Tuple[LoanRecord, RiskAssessment | None]]) -> PortfolioStats:
    """
    Roll loans and their latest assessments into headline numbers.

    Loans without an assessment count towards loan totals and exposure but
    score 0 in the average and belong to no category, as in the dashboard
    summary this feeds.
    """
    total_loans = len(pairs)
    active_loans = sum(1 for loan, _ in pairs if loan.status == LoanStatus.ACTIVE)
    npa_loans = sum(1 for loan, _ in pairs if loan.status == LoanStatus.NPA)
    npa_rate = npa_loans / total_loans * 100 if total_loans > 0 else 0.0

    total_score = sum(a.risk_score for _, a in pairs if a is not None)
    avg_risk_score = total_score / total_loans if total_loans > 0 else 0.0

    category_counts: Dict[RiskCategory, int] = {category: 0 for category in RiskCategory}
    for _, assessment in pairs:
        if assessment is not None:
            category_counts[assessment.risk_category] += 1

    total_exposure = sum(loan.outstanding_amount for loan, _ in pairs)
    at_risk_exposure = sum(
        loan.outstanding_amount
        for loan, assessment in pairs
        if assessment is not None and assessment.risk_category == RiskCategory.HIGH
    )

    return PortfolioStats(
        total_loans=total_loans,
        active_loans=active_loans,
        npa_loans=npa_loans,
        npa_rate=round(npa_rate, 1),
        avg_risk_score=round(avg_risk_score, 1),
        high_risk_count=category_counts[RiskCategory.HIGH],
        medium_risk_count=category_counts[RiskCategory.MEDIUM],
        low_risk_count=category_counts[RiskCategory.LOW],
        total_exposure=total_exposure,
        at_risk_exposure=at_risk_exposure,
    )


def latest_dpd(repayments: Sequence[RepaymentRecord]) -> int:
    """DPD of the most recently due installment, 0 when nothing has fallen due"""
    if not repayments:
        return 0
    return max(repayments, key=lambda r: r.due_date).dpd


def par_cascade(
    loans: Sequence[LoanRecord],
    repayments_by_loan: Mapping[str, Sequence[RepaymentRecord]],
    config: RiskConfig = DEFAULT_CONFIG,
) -> ParCascade:
    """
    Portfolio-at-risk levels and the delinquency bands between them.

    PAR-k = exposure of loans whose latest DPD >= k, as % of total exposure.
    Bands are differences of adjacent PAR levels (a static snapshot, not a
    roll rate), e.g. watch = PAR-15 - PAR-30. Because PAR thresholds nest,
    a negative band means a formula defect.
    """
    thresholds = config.portfolio
    total_exposure = sum(loan.outstanding_amount for loan in loans)
    dpd_by_loan = {loan.loan_id: latest_dpd(repayments_by_loan.get(loan.loan_id, ())) for loan in loans}

    def percentage(exposure: float) -> float:
        return exposure / total_exposure * 100 if total_exposure > 0 else 0.0

    levels: List[ParLevel] = []
    for threshold in thresholds.par_thresholds:
        delinquent = [loan for loan in loans if dpd_by_loan[loan.loan_id] >= threshold]
        exposure = sum(loan.outstanding_amount for loan in delinquent)
        levels.append(
            ParLevel(
                threshold=threshold,
                count=len(delinquent),
                exposure=exposure,
                percentage=percentage(exposure),
            )
        )

    healthy = [loan for loan in loans if dpd_by_loan[loan.loan_id] == 0]
    healthy_exposure = sum(loan.outstanding_amount for loan in healthy)
    bands: List[CascadeBand] = [
        CascadeBand(
            name="healthy",
            min_dpd=0,
            max_dpd=0,
            count=len(healthy),
            exposure=healthy_exposure,
            percentage=percentage(healthy_exposure),
        )
    ]

    for index, (level, name) in enumerate(zip(levels, thresholds.band_names)):
        following = levels[index + 1] if index + 1 < len(levels) else None
        if following is None:
            count, exposure, pct = level.count, level.exposure, level.percentage
            max_dpd = None
        else:
            count = ensure_non_negative(f"cascade_{name}_count", level.count - following.count)
            exposure = ensure_non_negative(f"cascade_{name}_exposure", level.exposure - following.exposure)
            pct = ensure_non_negative(f"cascade_{name}_percentage", level.percentage - following.percentage)
            max_dpd = following.threshold - 1
        bands.append(
            CascadeBand(
                name=name,
                min_dpd=level.threshold,
                max_dpd=max_dpd,
                count=count,
                exposure=exposure,
                percentage=pct,
            )
        )

    if total_exposure > 0:
        ensure_percentage_total(
            "cascade_percentage_total",
            (band.percentage for band in bands),
            thresholds.percentage_tolerance,
        )

    return ParCascade(
        levels=levels,
        bands=bands,
        total_loans=len(loans),
        total_exposure=total_exposure,
    )
