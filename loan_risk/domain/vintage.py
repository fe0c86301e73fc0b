"""Vintage (origination cohort) analysis"""

from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Mapping, Sequence

from loan_risk.domain.models import LoanRecord, LoanStatus, RepaymentRecord, RiskAssessment, VintageCohort
from loan_risk.domain.portfolio_stats import latest_dpd
from loan_risk.utils.date_utils import month_label, months_between


@dataclass
class _CohortTotals:
    loan_count: int = 0
    total_disbursed: float = 0.0
    total_outstanding: float = 0.0
    npa_count: int = 0
    npa_exposure: float = 0.0
    months_on_book: float = 0.0
    dpd: float = 0.0
    collection_rates: float = 0.0
    risk_scores: List[float] = field(default_factory=list)


def collection_rate(repayments: Sequence[RepaymentRecord]) -> float:
    """Collected amount as a percentage of EMIs fallen due; 0 with no EMIs"""
    expected = sum(r.emi_amount for r in repayments)
    collected = sum(r.payment_amount or 0 for r in repayments)
    return collected / expected * 100 if expected > 0 else 0.0


def vintage_analysis(
    loans: Sequence[LoanRecord],
    repayments_by_loan: Mapping[str, Sequence[RepaymentRecord]],
    as_of: date,
    assessments: Mapping[str, RiskAssessment] | None = None,
) -> List[VintageCohort]:
    """
    Group loans by disbursement month and compare cohort performance.

    Key metrics per cohort:
    - default rate: NPA loans as % of cohort loans
    - recovery rate: (disbursed - outstanding) as % of disbursed
    - collection rate: mean of per-loan collected / due
    - average latest DPD and months on book

    Cohorts are returned oldest first.
    """
    assessments = assessments or {}
    cohorts: Dict[str, _CohortTotals] = {}

    for loan in loans:
        repayments = repayments_by_loan.get(loan.loan_id, ())
        totals = cohorts.setdefault(month_label(loan.disbursement_date), _CohortTotals())

        totals.loan_count += 1
        totals.total_disbursed += loan.principal_amount
        totals.total_outstanding += loan.outstanding_amount
        if loan.status == LoanStatus.NPA:
            totals.npa_count += 1
            totals.npa_exposure += loan.outstanding_amount
        totals.months_on_book += months_between(loan.disbursement_date, as_of)
        totals.dpd += latest_dpd(repayments)
        totals.collection_rates += collection_rate(repayments)

        assessment = assessments.get(loan.loan_id)
        if assessment is not None:
            totals.risk_scores.append(assessment.risk_score)

    results = []
    for vintage in sorted(cohorts):
        totals = cohorts[vintage]
        recovered = totals.total_disbursed - totals.total_outstanding
        results.append(
            VintageCohort(
                vintage=vintage,
                loan_count=totals.loan_count,
                total_disbursed=totals.total_disbursed,
                total_outstanding=totals.total_outstanding,
                npa_count=totals.npa_count,
                npa_exposure=totals.npa_exposure,
                avg_months_on_book=round(totals.months_on_book / totals.loan_count, 1),
                avg_dpd=round(totals.dpd / totals.loan_count, 1),
                collection_rate=round(totals.collection_rates / totals.loan_count, 2),
                default_rate=round(totals.npa_count / totals.loan_count * 100, 2),
                recovery_rate=(
                    round(recovered / totals.total_disbursed * 100, 2) if totals.total_disbursed > 0 else 0.0
                ),
                avg_risk_score=(
                    round(sum(totals.risk_scores) / len(totals.risk_scores), 1) if totals.risk_scores else None
                ),
            )
        )

    return results
