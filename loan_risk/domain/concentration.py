"""
Concentration risk analysis.

Two computations share the Herfindahl-Hirschman index and one threshold
table (ConcentrationThresholds):

- the per-loan concentration penalty that feeds the composite score
- the portfolio-level report across sector, geography, borrower and product

HHI = sum(share_i ** 2) * 10000, with share_i the bucket's fraction of total
exposure:
- HHI <= 1500: LOW (unconcentrated)
- HHI 1500-2500: MODERATE
- HHI > 2500: HIGH
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Sequence, Tuple

from loan_risk.domain.invariants import ensure_in_range, ensure_percentage_total
from loan_risk.domain.models import (
    BorrowerConcentration,
    ConcentrationLevel,
    ConcentrationPenalty,
    ConcentrationReport,
    ConcentrationScore,
    CustomerRecord,
    DimensionConcentration,
    ExposureBucket,
    HeatmapCell,
    LoanRecord,
    LoanStatus,
    PortfolioContext,
    RepaymentRecord,
    RiskAssessment,
    Sector,
)
from loan_risk.domain.portfolio_stats import latest_dpd
from loan_risk.domain.thresholds import DEFAULT_CONFIG, ConcentrationThresholds, RiskConfig

HHI_SCALE = 10000
UNKNOWN_GEOGRAPHY = "UNKNOWN"

LEVEL_RANK: Dict[ConcentrationLevel, int] = {
    ConcentrationLevel.LOW: 1,
    ConcentrationLevel.MODERATE: 2,
    ConcentrationLevel.HIGH: 3,
}


def herfindahl_index(exposures: Iterable[float]) -> float:
    """HHI of an exposure distribution; 0 when there is no exposure"""
    values = list(exposures)
    total = sum(values)
    if total <= 0:
        return 0.0

    hhi = round(sum((value / total) ** 2 for value in values) * HHI_SCALE, 6)
    return ensure_in_range("hhi_range", hhi, 0, HHI_SCALE)


def classify_hhi(hhi: float, thresholds: ConcentrationThresholds = DEFAULT_CONFIG.concentration) -> ConcentrationLevel:
    if hhi > thresholds.hhi_high:
        return ConcentrationLevel.HIGH
    elif hhi > thresholds.hhi_moderate:
        return ConcentrationLevel.MODERATE
    else:
        return ConcentrationLevel.LOW


def overall_level(
    levels: Sequence[ConcentrationLevel],
    thresholds: ConcentrationThresholds = DEFAULT_CONFIG.concentration,
) -> ConcentrationLevel:
    """Classify the mean rank (LOW=1, MODERATE=2, HIGH=3) of several levels"""
    if not levels:
        return ConcentrationLevel.LOW
    mean_rank = sum(LEVEL_RANK[level] for level in levels) / len(levels)
    if mean_rank > thresholds.overall_high:
        return ConcentrationLevel.HIGH
    elif mean_rank > thresholds.overall_moderate:
        return ConcentrationLevel.MODERATE
    else:
        return ConcentrationLevel.LOW


# ---------------------------------------------------------------------------
# Per-loan penalty
# ---------------------------------------------------------------------------


def _tiered_penalty(share_pct: float, limit_pct: float, limit_penalty: float, watch_pct: float, watch_penalty: float) -> float:
    # Higher tier wins, tiers never stack
    if share_pct > limit_pct:
        return limit_penalty
    if share_pct > watch_pct:
        return watch_penalty
    return 0


def concentration_penalty(
    loan: LoanRecord,
    customer: CustomerRecord,
    context: PortfolioContext,
    config: RiskConfig = DEFAULT_CONFIG,
) -> ConcentrationPenalty:
    """Penalty for belonging to an over-weight sector and/or geography"""
    thresholds = config.concentration
    sector_share = context.sector_share(loan.sector)
    geography_share = context.geography_share(customer.geography)

    score = _tiered_penalty(
        sector_share,
        thresholds.sector_limit_pct,
        thresholds.sector_limit_penalty,
        thresholds.sector_watch_pct,
        thresholds.sector_watch_penalty,
    )
    score += _tiered_penalty(
        geography_share,
        thresholds.geography_limit_pct,
        thresholds.geography_limit_penalty,
        thresholds.geography_watch_pct,
        thresholds.geography_watch_penalty,
    )

    return ConcentrationPenalty(
        score=score,
        sector_share_pct=sector_share,
        geography_share_pct=geography_share,
    )


# ---------------------------------------------------------------------------
# Portfolio report
# ---------------------------------------------------------------------------


@dataclass
class _Group:
    loans: List[LoanRecord] = field(default_factory=list)
    label: str | None = None

    @property
    def exposure(self) -> float:
        return sum(loan.outstanding_amount for loan in self.loans)


@dataclass
class _Cell:
    exposure: float = 0.0
    loan_count: int = 0
    npa_count: int = 0
    scores: List[float] = field(default_factory=list)


BucketMetrics = Callable[[Sequence[LoanRecord]], Dict[str, Any]]


def _group_loans(
    loans: Iterable[LoanRecord],
    key: Callable[[LoanRecord], str],
    label: Callable[[LoanRecord], str | None] = lambda loan: None,
) -> Dict[str, _Group]:
    groups: Dict[str, _Group] = {}
    for loan in loans:
        groups.setdefault(key(loan), _Group(label=label(loan))).loans.append(loan)
    return groups


def _risk_metrics(assessments: Mapping[str, RiskAssessment], thresholds: ConcentrationThresholds) -> BucketMetrics:
    """Mean latest risk score of the scored loans in a bucket, and how many sit above the at-risk line"""

    def metrics(loans: Sequence[LoanRecord]) -> Dict[str, Any]:
        scores = [assessments[loan.loan_id].risk_score for loan in loans if loan.loan_id in assessments]
        return {
            "avg_risk_score": round(sum(scores) / len(scores), 1) if scores else None,
            "at_risk_loans": sum(1 for score in scores if score > thresholds.at_risk_score_above),
        }

    return metrics


def _delinquency_metrics(repayments_by_loan: Mapping[str, Sequence[RepaymentRecord]]) -> BucketMetrics:
    """Exposure of loans whose latest EMI is overdue, and the mean latest DPD"""

    def metrics(loans: Sequence[LoanRecord]) -> Dict[str, Any]:
        dpds = [(loan, latest_dpd(repayments_by_loan.get(loan.loan_id, ()))) for loan in loans]
        return {
            "overdue_exposure": sum(loan.outstanding_amount for loan, dpd in dpds if dpd > 0),
            "avg_dpd": round(sum(dpd for _, dpd in dpds) / len(dpds), 1),
        }

    return metrics


def _dimension(
    dimension: str,
    groups: Dict[str, _Group],
    total_exposure: float,
    thresholds: ConcentrationThresholds,
    flag_above_pct: float | None = None,
    metrics: BucketMetrics | None = None,
) -> DimensionConcentration:
    buckets: List[ExposureBucket] = []
    for key, group in groups.items():
        exposure = group.exposure
        percentage = exposure / total_exposure * 100 if total_exposure > 0 else 0.0
        buckets.append(
            ExposureBucket(
                key=key,
                exposure=exposure,
                loan_count=len(group.loans),
                percentage=percentage,
                flagged=flag_above_pct is not None and percentage > flag_above_pct,
                label=group.label,
                **(metrics(group.loans) if metrics is not None else {}),
            )
        )

    # Sort by exposure (descending), key breaks ties so output is deterministic
    buckets.sort(key=lambda b: (-b.exposure, b.key))

    if total_exposure > 0:
        ensure_percentage_total(f"{dimension}_percentage_total", (b.percentage for b in buckets))

    hhi = herfindahl_index(b.exposure for b in buckets)
    return DimensionConcentration(
        dimension=dimension,
        buckets=buckets,
        hhi=hhi,
        risk_level=classify_hhi(hhi, thresholds),
    )


def _borrower_concentration(
    breakdown: DimensionConcentration,
    thresholds: ConcentrationThresholds,
    top_n: int,
) -> BorrowerConcentration:
    top_borrowers = breakdown.buckets[:top_n]
    return BorrowerConcentration(
        breakdown=breakdown,
        top_borrowers=top_borrowers,
        top10_percentage=sum(b.percentage for b in breakdown.buckets[:10]),
        top20_percentage=sum(b.percentage for b in breakdown.buckets[:20]),
        # Strictly above the limit: exactly at the limit is allowed
        limit_violations=[b for b in breakdown.buckets if b.percentage > thresholds.single_name_limit_pct],
    )


def _heatmap(
    loans: Sequence[LoanRecord],
    geography_of: Callable[[LoanRecord], str],
    total_exposure: float,
    assessments: Mapping[str, RiskAssessment],
) -> List[HeatmapCell]:
    cells: Dict[Tuple[Sector, str], _Cell] = {}
    for loan in loans:
        cell = cells.setdefault((loan.sector, geography_of(loan)), _Cell())
        cell.exposure += loan.outstanding_amount
        cell.loan_count += 1
        if loan.status == LoanStatus.NPA:
            cell.npa_count += 1
        assessment = assessments.get(loan.loan_id)
        if assessment is not None:
            cell.scores.append(assessment.risk_score)

    heatmap = []
    for (sector, geography), cell in sorted(cells.items(), key=lambda item: (item[0][0].value, item[0][1])):
        scores = cell.scores
        heatmap.append(
            HeatmapCell(
                sector=sector,
                geography=geography,
                exposure=cell.exposure,
                loan_count=cell.loan_count,
                npa_count=cell.npa_count,
                percentage=cell.exposure / total_exposure * 100 if total_exposure > 0 else 0.0,
                avg_risk_score=round(sum(scores) / len(scores), 1) if scores else None,
            )
        )
    return heatmap


def diversification_recommendations(
    sector: DimensionConcentration,
    geography: DimensionConcentration,
    borrower: BorrowerConcentration,
    thresholds: ConcentrationThresholds = DEFAULT_CONFIG.concentration,
) -> List[str]:
    """
    Independent checks in fixed order:
    sector HHI, geography HHI, single-name limit, top-10 share, largest sector.
    """
    recommendations: List[str] = []

    if sector.hhi > thresholds.hhi_high:
        recommendations.append(
            f"High sector concentration (HHI: {round(sector.hhi)}). "
            "Consider diversifying into underrepresented sectors."
        )

    if geography.hhi > thresholds.hhi_high:
        recommendations.append(
            f"High geographic concentration (HHI: {round(geography.hhi)}). "
            "Expand lending to new geographies."
        )

    if borrower.limit_violations:
        recommendations.append(
            f"{len(borrower.limit_violations)} borrower(s) exceed single-name limit of "
            f"{thresholds.single_name_limit_pct:g}%. Review exposure limits."
        )

    if borrower.top10_percentage > thresholds.top10_limit_pct:
        recommendations.append(
            f"Top-10 borrowers represent {round(borrower.top10_percentage)}% of portfolio. "
            "High single-name concentration risk."
        )

    top_sector = sector.largest
    if top_sector is not None and top_sector.percentage > thresholds.dominant_sector_pct:
        recommendations.append(
            f"{top_sector.key} sector accounts for {round(top_sector.percentage)}% of portfolio. "
            "Diversification needed."
        )

    return recommendations


def portfolio_concentration_score(
    sector: DimensionConcentration,
    geography: DimensionConcentration,
    borrower: BorrowerConcentration,
    thresholds: ConcentrationThresholds = DEFAULT_CONFIG.concentration,
) -> ConcentrationScore:
    """
    Additive 0-100 concentration score with a reason for each gate that fires:
    - any sector above its limit: +30
    - any geography above its limit: +25
    - any borrower above the single-name limit: +20
    - largest sector above the dominant share: +15
    """
    score = 0
    risks: List[str] = []

    flagged_sectors = [b for b in sector.buckets if b.flagged]
    if flagged_sectors:
        score += thresholds.flagged_sector_points
        risks.append(f"{len(flagged_sectors)} sector(s) exceed {thresholds.sector_limit_pct:g}% threshold")

    flagged_geographies = [b for b in geography.buckets if b.flagged]
    if flagged_geographies:
        score += thresholds.flagged_geography_points
        risks.append(
            f"{len(flagged_geographies)} geography(ies) exceed {thresholds.geography_limit_pct:g}% threshold"
        )

    if borrower.limit_violations:
        score += thresholds.single_name_points
        risks.append(
            f"{len(borrower.limit_violations)} customer(s) exceed {thresholds.single_name_limit_pct:g}% threshold"
        )

    top_sector = sector.largest
    if top_sector is not None and top_sector.percentage > thresholds.dominant_sector_pct:
        score += thresholds.dominant_sector_points
        risks.append(f"Extremely high sector concentration: {top_sector.percentage:.1f}%")

    return ConcentrationScore(
        score=round(ensure_in_range("concentration_score_range", min(100, score), 0, 100)),
        risks=tuple(risks),
    )


def build_concentration_report(
    loans: Sequence[LoanRecord],
    customers: Mapping[str, CustomerRecord],
    assessments: Mapping[str, RiskAssessment] | None = None,
    config: RiskConfig = DEFAULT_CONFIG,
    top_n: int = 20,
    repayments_by_loan: Mapping[str, Sequence[RepaymentRecord]] | None = None,
) -> ConcentrationReport:
    """
    Portfolio concentration across sector, geography, borrower and product.

    Sector buckets carry risk-score metrics when assessments are given, and
    geography buckets carry overdue metrics when repayments are given.

    An empty loan set (or one with no outstanding exposure) yields zero
    percentages and HHI everywhere and LOW risk levels.
    """
    thresholds = config.concentration
    total_exposure = sum(loan.outstanding_amount for loan in loans)

    def geography_of(loan: LoanRecord) -> str:
        customer = customers.get(loan.customer_id)
        return customer.geography if customer is not None else UNKNOWN_GEOGRAPHY

    def borrower_name(loan: LoanRecord) -> str | None:
        customer = customers.get(loan.customer_id)
        return customer.name if customer is not None and customer.name else None

    sector = _dimension(
        "sector",
        _group_loans(loans, lambda loan: loan.sector.value),
        total_exposure,
        thresholds,
        flag_above_pct=thresholds.sector_limit_pct,
        metrics=_risk_metrics(assessments, thresholds) if assessments is not None else None,
    )
    geography = _dimension(
        "geography",
        _group_loans(loans, geography_of),
        total_exposure,
        thresholds,
        flag_above_pct=thresholds.geography_limit_pct,
        metrics=_delinquency_metrics(repayments_by_loan) if repayments_by_loan is not None else None,
    )
    borrower = _borrower_concentration(
        _dimension(
            "borrower",
            _group_loans(loans, lambda loan: loan.customer_id, borrower_name),
            total_exposure,
            thresholds,
            flag_above_pct=thresholds.single_name_limit_pct,
        ),
        thresholds,
        top_n,
    )
    product = _dimension(
        "product",
        _group_loans(loans, lambda loan: loan.loan_type.value),
        total_exposure,
        thresholds,
    )

    return ConcentrationReport(
        sector=sector,
        geography=geography,
        borrower=borrower,
        product=product,
        overall_risk=overall_level(
            [sector.risk_level, geography.risk_level, borrower.breakdown.risk_level],
            thresholds,
        ),
        recommendations=diversification_recommendations(sector, geography, borrower, thresholds),
        heatmap=_heatmap(loans, geography_of, total_exposure, assessments or {}),
        total_loans=len(loans),
        total_exposure=total_exposure,
        unique_borrowers=len(borrower.breakdown.buckets),
        concentration_score=portfolio_concentration_score(sector, geography, borrower, thresholds),
    )
