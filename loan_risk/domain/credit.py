"""Credit profile and loan characteristics sub-scores"""

from datetime import date

from loan_risk.domain.models import LoanRecord
from loan_risk.domain.thresholds import DEFAULT_CONFIG, CreditThresholds, RiskConfig
from loan_risk.utils.date_utils import months_between


def credit_score_risk(credit_score: int, thresholds: CreditThresholds) -> float:
    """Bureau score to risk: 750+ excellent ... below 600 very poor"""
    for minimum, risk in thresholds.credit_score_tiers:
        if credit_score >= minimum:
            return risk
    return thresholds.credit_score_floor


def dti_risk(dti_ratio: float, thresholds: CreditThresholds) -> float:
    for above, risk in thresholds.dti_tiers:
        if dti_ratio > above:
            return risk
    return thresholds.dti_floor


def credit_profile_score(
    credit_score: int,
    dti_ratio: float,
    config: RiskConfig = DEFAULT_CONFIG,
) -> float:
    """
    Borrower credit risk from 0 to 100.

    Scoring weights:
    - 60%: Credit score tier
    - 40%: Debt-to-income tier
    """
    thresholds = config.credit
    return (
        credit_score_risk(credit_score, thresholds) * thresholds.credit_score_weight
        + dti_risk(dti_ratio, thresholds) * thresholds.dti_weight
    )


def loan_characteristics_score(
    loan: LoanRecord,
    delinquency_score: float,
    as_of: date,
    config: RiskConfig = DEFAULT_CONFIG,
) -> float:
    """
    Loan-level risk from 0 to 100.

    - Outstanding/principal ratio scaled to 30 points (less repaid = riskier)
    - Fixed sector risk weight
    - Credit for seasoned loans (> 12 months on book) that are performing well
    - Penalty for NPA and restructured status

    `as_of` is the reference date for loan age, so identical inputs always
    produce identical scores.
    """
    thresholds = config.loan

    score = loan.outstanding_amount / loan.principal_amount * thresholds.outstanding_ratio_weight
    score += thresholds.sector_risk[loan.sector]

    loan_age_months = months_between(loan.disbursement_date, as_of)
    if (
        loan_age_months > thresholds.seasoned_after_months
        and delinquency_score < thresholds.seasoned_delinquency_below
    ):
        score -= thresholds.seasoned_credit

    score += thresholds.status_penalty[loan.status]

    return min(100, max(0, score))
