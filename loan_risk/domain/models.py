"""Domain models - pure Python dataclasses representing lending entities and risk outputs"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Dict, List, Tuple


class Sector(str, Enum):
    MANUFACTURING = "MANUFACTURING"
    RETAIL = "RETAIL"
    IT = "IT"
    HEALTHCARE = "HEALTHCARE"
    REAL_ESTATE = "REAL_ESTATE"
    AGRICULTURE = "AGRICULTURE"


class LoanStatus(str, Enum):
    ACTIVE = "ACTIVE"
    CLOSED = "CLOSED"
    NPA = "NPA"
    RESTRUCTURED = "RESTRUCTURED"


class LoanType(str, Enum):
    BUSINESS_LOAN = "BUSINESS_LOAN"
    PERSONAL_LOAN = "PERSONAL_LOAN"
    HOME_LOAN = "HOME_LOAN"


class EmploymentStatus(str, Enum):
    SALARIED = "SALARIED"
    SELF_EMPLOYED = "SELF_EMPLOYED"
    BUSINESS = "BUSINESS"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    DELAYED = "DELAYED"
    MISSED = "MISSED"


class RiskCategory(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class ConcentrationLevel(str, Enum):
    LOW = "LOW"
    MODERATE = "MODERATE"
    HIGH = "HIGH"


class DelinquencyTrend(str, Enum):
    IMPROVING = "improving"
    STABLE = "stable"
    WORSENING = "worsening"


# ---------------------------------------------------------------------------
# Input records (immutable snapshots supplied by the data source)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CustomerRecord:
    """Borrower attributes referenced by one or more loans"""

    customer_id: str
    credit_score: int  # 300-850
    dti_ratio: float  # percent, 0-100
    employment_status: EmploymentStatus
    geography: str
    age: int
    monthly_income: float
    name: str = ""


@dataclass(frozen=True)
class LoanRecord:
    """Loan as booked by the lender"""

    loan_id: str
    customer_id: str
    principal_amount: float
    outstanding_amount: float
    disbursement_date: date
    tenure_months: int
    interest_rate: float
    sector: Sector
    status: LoanStatus
    loan_type: LoanType = LoanType.PERSONAL_LOAN


@dataclass(frozen=True)
class RepaymentRecord:
    """Single installment due on a loan, with its payment outcome if any"""

    loan_id: str
    due_date: date
    emi_amount: float
    dpd: int = 0
    payment_status: PaymentStatus = PaymentStatus.PENDING
    payment_date: date | None = None
    payment_amount: float | None = None

    @property
    def is_partial(self) -> bool:
        return self.payment_amount is not None and self.payment_amount < self.emi_amount


# ---------------------------------------------------------------------------
# Derived, per-run values
# ---------------------------------------------------------------------------


@dataclass
class PortfolioContext:
    """Exposure totals for the loan set being scored"""

    total_loans: int
    total_exposure: float
    sector_exposure: Dict[Sector, float]
    geography_exposure: Dict[str, float]

    def sector_share(self, sector: Sector) -> float:
        """Sector exposure as a percentage of total exposure"""
        if self.total_exposure <= 0:
            return 0.0
        return self.sector_exposure.get(sector, 0.0) / self.total_exposure * 100

    def geography_share(self, geography: str) -> float:
        """Geography exposure as a percentage of total exposure"""
        if self.total_exposure <= 0:
            return 0.0
        return self.geography_exposure.get(geography, 0.0) / self.total_exposure * 100


@dataclass(frozen=True)
class DelinquencyResult:
    """Repayment-history risk metrics for one loan"""

    score: float
    flagged: bool
    max_dpd: int
    avg_dpd: float
    consecutive_delays: int
    trend: DelinquencyTrend
    reasons: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ConcentrationPenalty:
    """Per-loan concentration sub-score and the shares it was derived from"""

    score: float
    sector_share_pct: float
    geography_share_pct: float


@dataclass(frozen=True)
class ComponentScores:
    delinquency: float
    credit_profile: float
    loan_characteristics: float
    concentration: float


@dataclass(frozen=True)
class RiskFlags:
    high_dpd: bool
    sector_concentration: bool
    geography_risk: bool
    high_dti: bool


@dataclass(frozen=True)
class RiskAssessment:
    """Output of composite scoring; a new snapshot per run, never mutated"""

    loan_id: str
    risk_score: float
    risk_category: RiskCategory
    components: ComponentScores
    flags: RiskFlags
    recommendations: Tuple[str, ...]
    delinquency: DelinquencyResult
    assessed_at: datetime


@dataclass(frozen=True)
class UnscoreableLoan:
    """A loan excluded from a run because its inputs were malformed"""

    loan_id: str
    reason: str


@dataclass
class ScoringBatch:
    """All assessments and per-loan failures produced by one scoring run"""

    run_id: str
    assessed_at: datetime
    context: PortfolioContext
    assessments: List[RiskAssessment] = field(default_factory=list)
    failures: List[UnscoreableLoan] = field(default_factory=list)

    def by_loan(self) -> Dict[str, RiskAssessment]:
        return {a.loan_id: a for a in self.assessments}


# ---------------------------------------------------------------------------
# Concentration report
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ExposureBucket:
    """Aggregate exposure for one key of a concentration dimension"""

    key: str
    exposure: float
    loan_count: int
    percentage: float
    flagged: bool = False
    label: str | None = None
    # Sector buckets, when assessments are supplied
    avg_risk_score: float | None = None
    at_risk_loans: int | None = None
    # Geography buckets, when repayments are supplied
    overdue_exposure: float | None = None
    avg_dpd: float | None = None


@dataclass
class DimensionConcentration:
    dimension: str
    buckets: List[ExposureBucket]
    hhi: float
    risk_level: ConcentrationLevel

    @property
    def largest(self) -> ExposureBucket | None:
        return self.buckets[0] if self.buckets else None


@dataclass
class BorrowerConcentration:
    breakdown: DimensionConcentration
    top_borrowers: List[ExposureBucket]
    top10_percentage: float
    top20_percentage: float
    limit_violations: List[ExposureBucket]


@dataclass(frozen=True)
class HeatmapCell:
    """Sector x geography exposure cell"""

    sector: Sector
    geography: str
    exposure: float
    loan_count: int
    npa_count: int
    percentage: float
    avg_risk_score: float | None = None


@dataclass(frozen=True)
class ConcentrationScore:
    """0-100 portfolio concentration score, higher is more concentrated"""

    score: int
    risks: Tuple[str, ...] = ()


@dataclass
class ConcentrationReport:
    sector: DimensionConcentration
    geography: DimensionConcentration
    borrower: BorrowerConcentration
    product: DimensionConcentration
    overall_risk: ConcentrationLevel
    recommendations: List[str]
    heatmap: List[HeatmapCell]
    total_loans: int
    total_exposure: float
    unique_borrowers: int
    concentration_score: ConcentrationScore


# ---------------------------------------------------------------------------
# Portfolio statistics
# ---------------------------------------------------------------------------


@dataclass
class PortfolioStats:
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


@dataclass(frozen=True)
class ParLevel:
    """Portfolio-at-risk for loans whose latest DPD is at least `threshold`"""

    threshold: int
    count: int
    exposure: float
    percentage: float


@dataclass(frozen=True)
class CascadeBand:
    """Loans between two adjacent PAR thresholds (max_dpd inclusive, None = open)"""

    name: str
    min_dpd: int
    max_dpd: int | None
    count: int
    exposure: float
    percentage: float


@dataclass
class ParCascade:
    levels: List[ParLevel]
    bands: List[CascadeBand]
    total_loans: int
    total_exposure: float

    def level(self, threshold: int) -> ParLevel:
        for par in self.levels:
            if par.threshold == threshold:
                return par
        raise KeyError(f"No PAR level for threshold {threshold}")


@dataclass
class VintageCohort:
    """Performance of loans disbursed in one calendar month"""

    vintage: str  # YYYY-MM
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
    avg_risk_score: float | None
