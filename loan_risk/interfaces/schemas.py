"""Pydantic schemas for the reporting and agent boundary

Only numbers, strings and lists cross this boundary. Percentages are rounded
to 2 decimals and HHI to whole points here, never inside the domain.
"""

from typing import List, Optional

from pydantic import BaseModel, Field

from loan_risk.domain.models import (
    BorrowerConcentration,
    CascadeBand,
    ConcentrationReport,
    DimensionConcentration,
    ExposureBucket,
    HeatmapCell,
    ParCascade,
    ParLevel,
    PortfolioStats,
    RiskAssessment,
    ScoringBatch,
    UnscoreableLoan,
    VintageCohort,
)


def _pct(value: float) -> float:
    return round(value, 2)


class ComponentScoresSchema(BaseModel):
    delinquency_score: float = Field(..., ge=0, le=100)
    credit_profile_score: float = Field(..., ge=0, le=100)
    loan_characteristics_score: float = Field(..., ge=0, le=100)
    concentration_score: float = Field(..., ge=0, le=100)


class RiskFlagsSchema(BaseModel):
    high_dpd: bool
    sector_concentration: bool
    geography_risk: bool
    high_dti: bool


class DelinquencySchema(BaseModel):
    score: float
    flagged: bool
    max_dpd: int
    avg_dpd: float
    consecutive_delays: int
    trend: str
    reason: str


class RiskAssessmentSchema(BaseModel):
    """Single loan risk assessment"""

    loan_id: str
    risk_score: float = Field(..., ge=0, le=100)
    risk_category: str
    factors: ComponentScoresSchema
    flags: RiskFlagsSchema
    recommendations: List[str]
    delinquency: DelinquencySchema
    assessed_at: str

    @classmethod
    def from_domain(cls, assessment: RiskAssessment) -> "RiskAssessmentSchema":
        delinquency = assessment.delinquency
        return cls(
            loan_id=assessment.loan_id,
            risk_score=assessment.risk_score,
            risk_category=assessment.risk_category.value,
            factors=ComponentScoresSchema(
                delinquency_score=assessment.components.delinquency,
                credit_profile_score=assessment.components.credit_profile,
                loan_characteristics_score=assessment.components.loan_characteristics,
                concentration_score=assessment.components.concentration,
            ),
            flags=RiskFlagsSchema(
                high_dpd=assessment.flags.high_dpd,
                sector_concentration=assessment.flags.sector_concentration,
                geography_risk=assessment.flags.geography_risk,
                high_dti=assessment.flags.high_dti,
            ),
            recommendations=list(assessment.recommendations),
            delinquency=DelinquencySchema(
                score=delinquency.score,
                flagged=delinquency.flagged,
                max_dpd=delinquency.max_dpd,
                avg_dpd=delinquency.avg_dpd,
                consecutive_delays=delinquency.consecutive_delays,
                trend=delinquency.trend.value,
                reason="; ".join(delinquency.reasons),
            ),
            assessed_at=assessment.assessed_at.isoformat(),
        )


class UnscoreableLoanSchema(BaseModel):
    loan_id: str
    reason: str

    @classmethod
    def from_domain(cls, failure: UnscoreableLoan) -> "UnscoreableLoanSchema":
        return cls(loan_id=failure.loan_id, reason=failure.reason)


class ScoringBatchSchema(BaseModel):
    """Response for a portfolio scoring run"""

    run_id: str
    assessed_at: str
    total_loans: int
    total_exposure: float
    assessments: List[RiskAssessmentSchema]
    failures: List[UnscoreableLoanSchema]

    @classmethod
    def from_domain(cls, batch: ScoringBatch) -> "ScoringBatchSchema":
        return cls(
            run_id=batch.run_id,
            assessed_at=batch.assessed_at.isoformat(),
            total_loans=batch.context.total_loans,
            total_exposure=batch.context.total_exposure,
            assessments=[RiskAssessmentSchema.from_domain(a) for a in batch.assessments],
            failures=[UnscoreableLoanSchema.from_domain(f) for f in batch.failures],
        )


class ExposureBucketSchema(BaseModel):
    key: str
    label: Optional[str] = None
    exposure: float
    loan_count: int
    percentage: float
    flagged: bool
    avg_risk_score: Optional[float] = None
    at_risk_loans: Optional[int] = None
    overdue_exposure: Optional[float] = None
    avg_dpd: Optional[float] = None

    @classmethod
    def from_domain(cls, bucket: ExposureBucket) -> "ExposureBucketSchema":
        return cls(
            key=bucket.key,
            label=bucket.label,
            exposure=bucket.exposure,
            loan_count=bucket.loan_count,
            percentage=_pct(bucket.percentage),
            flagged=bucket.flagged,
            avg_risk_score=bucket.avg_risk_score,
            at_risk_loans=bucket.at_risk_loans,
            overdue_exposure=bucket.overdue_exposure,
            avg_dpd=bucket.avg_dpd,
        )


class DimensionConcentrationSchema(BaseModel):
    data: List[ExposureBucketSchema]
    hhi: int = Field(..., ge=0, le=10000)
    risk_level: str

    @classmethod
    def from_domain(cls, dimension: DimensionConcentration) -> "DimensionConcentrationSchema":
        return cls(
            data=[ExposureBucketSchema.from_domain(b) for b in dimension.buckets],
            hhi=round(dimension.hhi),
            risk_level=dimension.risk_level.value,
        )


class BorrowerConcentrationSchema(BaseModel):
    top_borrowers: List[ExposureBucketSchema]
    top10_concentration: float
    top20_concentration: float
    limit_violations: List[ExposureBucketSchema]
    hhi: int = Field(..., ge=0, le=10000)
    risk_level: str

    @classmethod
    def from_domain(cls, borrower: BorrowerConcentration) -> "BorrowerConcentrationSchema":
        return cls(
            top_borrowers=[ExposureBucketSchema.from_domain(b) for b in borrower.top_borrowers],
            top10_concentration=_pct(borrower.top10_percentage),
            top20_concentration=_pct(borrower.top20_percentage),
            limit_violations=[ExposureBucketSchema.from_domain(b) for b in borrower.limit_violations],
            hhi=round(borrower.breakdown.hhi),
            risk_level=borrower.breakdown.risk_level.value,
        )


class HeatmapCellSchema(BaseModel):
    sector: str
    geography: str
    exposure: float
    loan_count: int
    npa_count: int
    percentage: float
    avg_risk_score: Optional[float] = None

    @classmethod
    def from_domain(cls, cell: HeatmapCell) -> "HeatmapCellSchema":
        return cls(
            sector=cell.sector.value,
            geography=cell.geography,
            exposure=cell.exposure,
            loan_count=cell.loan_count,
            npa_count=cell.npa_count,
            percentage=_pct(cell.percentage),
            avg_risk_score=cell.avg_risk_score,
        )


class ConcentrationReportSchema(BaseModel):
    """Portfolio concentration across sector, geography, borrower and product"""

    sector_concentration: DimensionConcentrationSchema
    geography_concentration: DimensionConcentrationSchema
    borrower_concentration: BorrowerConcentrationSchema
    product_concentration: DimensionConcentrationSchema
    overall_risk: str
    concentration_score: int = Field(..., ge=0, le=100)
    concentration_risks: List[str]
    recommendations: List[str]
    heatmap: List[HeatmapCellSchema]
    total_loans: int
    total_exposure: float
    unique_borrowers: int

    @classmethod
    def from_domain(cls, report: ConcentrationReport) -> "ConcentrationReportSchema":
        return cls(
            sector_concentration=DimensionConcentrationSchema.from_domain(report.sector),
            geography_concentration=DimensionConcentrationSchema.from_domain(report.geography),
            borrower_concentration=BorrowerConcentrationSchema.from_domain(report.borrower),
            product_concentration=DimensionConcentrationSchema.from_domain(report.product),
            overall_risk=report.overall_risk.value,
            concentration_score=report.concentration_score.score,
            concentration_risks=list(report.concentration_score.risks),
            recommendations=list(report.recommendations),
            heatmap=[HeatmapCellSchema.from_domain(c) for c in report.heatmap],
            total_loans=report.total_loans,
            total_exposure=report.total_exposure,
            unique_borrowers=report.unique_borrowers,
        )


class PortfolioSummarySchema(BaseModel):
    """Headline portfolio numbers"""

    total_loans: int
    active_loans: int
    npa_loans: int
    npa_rate: float
    avg_risk_score: float
    high_risk_count: int
    medium_risk_count: int
    low_risk_count: int
    total_exposure: float
    at_risk_exposure: float

    @classmethod
    def from_domain(cls, stats: PortfolioStats) -> "PortfolioSummarySchema":
        return cls(
            total_loans=stats.total_loans,
            active_loans=stats.active_loans,
            npa_loans=stats.npa_loans,
            npa_rate=stats.npa_rate,
            avg_risk_score=stats.avg_risk_score,
            high_risk_count=stats.high_risk_count,
            medium_risk_count=stats.medium_risk_count,
            low_risk_count=stats.low_risk_count,
            total_exposure=round(stats.total_exposure),
            at_risk_exposure=round(stats.at_risk_exposure),
        )


class ParLevelSchema(BaseModel):
    name: str
    threshold: int
    count: int
    exposure: float
    percentage: float

    @classmethod
    def from_domain(cls, level: ParLevel) -> "ParLevelSchema":
        return cls(
            name=f"PAR-{level.threshold}",
            threshold=level.threshold,
            count=level.count,
            exposure=level.exposure,
            percentage=_pct(level.percentage),
        )


class CascadeBandSchema(BaseModel):
    name: str
    min_dpd: int
    max_dpd: Optional[int] = None
    count: int = Field(..., ge=0)
    exposure: float = Field(..., ge=0)
    percentage: float = Field(..., ge=0)

    @classmethod
    def from_domain(cls, band: CascadeBand) -> "CascadeBandSchema":
        return cls(
            name=band.name,
            min_dpd=band.min_dpd,
            max_dpd=band.max_dpd,
            count=band.count,
            exposure=band.exposure,
            percentage=_pct(band.percentage),
        )


class ParCascadeSchema(BaseModel):
    levels: List[ParLevelSchema]
    cascade: List[CascadeBandSchema]
    total_loans: int
    total_exposure: float
    healthy_loans: int
    delinquent_loans: int

    @classmethod
    def from_domain(cls, cascade: ParCascade) -> "ParCascadeSchema":
        healthy = next((b for b in cascade.bands if b.name == "healthy"), None)
        first = cascade.levels[0] if cascade.levels else None
        return cls(
            levels=[ParLevelSchema.from_domain(level) for level in cascade.levels],
            cascade=[CascadeBandSchema.from_domain(band) for band in cascade.bands],
            total_loans=cascade.total_loans,
            total_exposure=cascade.total_exposure,
            healthy_loans=healthy.count if healthy else 0,
            delinquent_loans=first.count if first else 0,
        )


class VintageCohortSchema(BaseModel):
    vintage: str
    loan_count: int
    total_disbursed: float
    total_outstanding: float
    npa_count: int
    npa_exposure: float
    avg_months_on_book: float
    avg_dpd: float
    collection_rate: float
    default_rate: float
    recovery_rate: float
    avg_risk_score: Optional[float] = None

    @classmethod
    def from_domain(cls, cohort: VintageCohort) -> "VintageCohortSchema":
        return cls(
            vintage=cohort.vintage,
            loan_count=cohort.loan_count,
            total_disbursed=cohort.total_disbursed,
            total_outstanding=cohort.total_outstanding,
            npa_count=cohort.npa_count,
            npa_exposure=cohort.npa_exposure,
            avg_months_on_book=cohort.avg_months_on_book,
            avg_dpd=cohort.avg_dpd,
            collection_rate=cohort.collection_rate,
            default_rate=cohort.default_rate,
            recovery_rate=cohort.recovery_rate,
            avg_risk_score=cohort.avg_risk_score,
        )
