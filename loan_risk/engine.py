"""Risk engine facade consumed by the reporting and agent layers"""

import time
import uuid
from datetime import date, datetime
from typing import Collection, Dict, Iterable, List, Mapping, Sequence

from loan_risk.config import settings
from loan_risk.domain.concentration import build_concentration_report
from loan_risk.domain.history import AssessmentHistory
from loan_risk.domain.models import (
    ConcentrationReport,
    CustomerRecord,
    LoanRecord,
    LoanStatus,
    ParCascade,
    PortfolioStats,
    RepaymentRecord,
    RiskAssessment,
    RiskCategory,
    ScoringBatch,
    VintageCohort,
)
from loan_risk.domain.portfolio_stats import par_cascade, portfolio_stats
from loan_risk.domain.scoring import group_repayments, score_portfolio
from loan_risk.domain.thresholds import DEFAULT_CONFIG, RiskConfig
from loan_risk.domain.vintage import vintage_analysis
from loan_risk.infrastructure.observability.logging import (
    log_concentration_report,
    log_scoring_run,
    log_unscoreable,
    setup_logging,
)
from loan_risk.infrastructure.observability.metrics import (
    concentration_report_counter,
    record_assessment,
    record_unscoreable,
    scoring_run_histogram,
)
from loan_risk.utils.date_utils import as_utc, utc_now

CONCENTRATION_STATUSES = (LoanStatus.ACTIVE, LoanStatus.RESTRUCTURED, LoanStatus.NPA)
CASCADE_STATUSES = (LoanStatus.ACTIVE, LoanStatus.RESTRUCTURED)

CustomerInput = Mapping[str, CustomerRecord] | Iterable[CustomerRecord]


def index_customers(customers: CustomerInput) -> Dict[str, CustomerRecord]:
    """Accept customers keyed by id or as a plain collection"""
    if isinstance(customers, Mapping):
        return dict(customers)
    return {customer.customer_id: customer for customer in customers}


def _with_status(loans: Sequence[LoanRecord], statuses: Collection[LoanStatus]) -> List[LoanRecord]:
    return [loan for loan in loans if loan.status in statuses]


class RiskEngine:
    """
    Wires the scoring pipeline and portfolio reports.

    Domain functions stay pure; this layer adds timing, structured logs,
    Prometheus metrics and optional recording into an AssessmentHistory.
    """

    def __init__(self, config: RiskConfig = DEFAULT_CONFIG, history: AssessmentHistory | None = None):
        self.config = config
        self.history = history

    def score_portfolio(
        self,
        loans: Sequence[LoanRecord],
        customers: CustomerInput,
        repayments: Sequence[RepaymentRecord],
        as_of: date | None = None,
        assessed_at: datetime | None = None,
    ) -> ScoringBatch:
        """
        Score every loan in the portfolio.

        Flow:
        1. Validate and score (malformed loans are reported, not raised)
        2. Log and count excluded loans
        3. Record the category distribution and run duration
        4. Append the run to history when one is attached
        """
        start_time = time.time()
        assessed_at = as_utc(assessed_at) if assessed_at is not None else utc_now()
        as_of = as_of or assessed_at.date()
        run_id = str(uuid.uuid4())

        batch = score_portfolio(
            loans,
            index_customers(customers),
            repayments,
            as_of=as_of,
            assessed_at=assessed_at,
            config=self.config,
            run_id=run_id,
        )

        for failure in batch.failures:
            log_unscoreable(run_id, failure.loan_id, failure.reason)
            record_unscoreable(failure.reason)

        for assessment in batch.assessments:
            record_assessment(assessment.risk_category.value)

        duration = time.time() - start_time
        scoring_run_histogram.observe(duration)
        log_scoring_run(
            run_id,
            scored=len(batch.assessments),
            failed=len(batch.failures),
            high_risk=sum(1 for a in batch.assessments if a.risk_category == RiskCategory.HIGH),
            duration_ms=duration * 1000,
        )

        if self.history is not None:
            self.history.record(batch)

        return batch

    def concentration_report(
        self,
        loans: Sequence[LoanRecord],
        customers: CustomerInput,
        batch: ScoringBatch | None = None,
        statuses: Collection[LoanStatus] = CONCENTRATION_STATUSES,
        repayments: Sequence[RepaymentRecord] | None = None,
    ) -> ConcentrationReport:
        """
        Concentration across sector, geography, borrower and product for loans still on book.

        The run's assessments add sector risk metrics; repayments add geography overdue metrics.
        """
        start_time = time.time()
        report = build_concentration_report(
            _with_status(loans, statuses),
            index_customers(customers),
            assessments=batch.by_loan() if batch is not None else None,
            config=self.config,
            top_n=settings.top_borrowers_limit,
            repayments_by_loan=group_repayments(repayments) if repayments is not None else None,
        )

        concentration_report_counter.labels(overall_risk=report.overall_risk.value).inc()
        log_concentration_report(
            total_loans=report.total_loans,
            overall_risk=report.overall_risk.value,
            concentration_score=report.concentration_score.score,
            recommendation_count=len(report.recommendations),
            duration_ms=(time.time() - start_time) * 1000,
        )
        return report

    def portfolio_summary(self, loans: Sequence[LoanRecord], batch: ScoringBatch | None = None) -> PortfolioStats:
        """Headline numbers over all loans, joined to the run's assessments"""
        assessments = batch.by_loan() if batch is not None else {}
        return portfolio_stats([(loan, assessments.get(loan.loan_id)) for loan in loans])

    def high_risk_loans(self, batch: ScoringBatch, limit: int | None = None) -> List[RiskAssessment]:
        """HIGH category assessments, riskiest first"""
        limit = settings.high_risk_list_limit if limit is None else limit
        high = [a for a in batch.assessments if a.risk_category == RiskCategory.HIGH]
        high.sort(key=lambda a: (-a.risk_score, a.loan_id))
        return high[:limit]

    def par_cascade(
        self,
        loans: Sequence[LoanRecord],
        repayments: Sequence[RepaymentRecord],
        statuses: Collection[LoanStatus] = CASCADE_STATUSES,
    ) -> ParCascade:
        """PAR levels and delinquency bands over performing and restructured loans"""
        return par_cascade(_with_status(loans, statuses), group_repayments(repayments), self.config)

    def vintage_analysis(
        self,
        loans: Sequence[LoanRecord],
        repayments: Sequence[RepaymentRecord],
        as_of: date,
        batch: ScoringBatch | None = None,
    ) -> List[VintageCohort]:
        return vintage_analysis(
            loans,
            group_repayments(repayments),
            as_of,
            assessments=batch.by_loan() if batch is not None else None,
        )


def create_engine(config: RiskConfig = DEFAULT_CONFIG, history: AssessmentHistory | None = None) -> RiskEngine:
    """Configure structured logging and build an engine"""
    setup_logging(settings.log_level)
    return RiskEngine(config=config, history=history)
