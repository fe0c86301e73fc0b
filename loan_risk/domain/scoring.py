"""Composite risk scoring engine - core business logic for per-loan risk assessment"""

import uuid
from collections import defaultdict
from datetime import date, datetime
from typing import Dict, List, Mapping, Sequence

from loan_risk.domain.concentration import concentration_penalty
from loan_risk.domain.credit import credit_profile_score, loan_characteristics_score
from loan_risk.domain.delinquency import analyze_delinquency
from loan_risk.domain.exceptions import MalformedInputError
from loan_risk.domain.invariants import ensure_in_range
from loan_risk.domain.models import (
    ComponentScores,
    ConcentrationPenalty,
    CustomerRecord,
    DelinquencyResult,
    LoanRecord,
    LoanStatus,
    PortfolioContext,
    RepaymentRecord,
    RiskAssessment,
    RiskCategory,
    RiskFlags,
    ScoringBatch,
    UnscoreableLoan,
)
from loan_risk.domain.portfolio_context import build_portfolio_context
from loan_risk.domain.thresholds import DEFAULT_CONFIG, CompositeThresholds, RiskConfig
from loan_risk.domain.validation import validate_loan
from loan_risk.utils.date_utils import as_utc, utc_now

URGENT_FOLLOW_UP = "URGENT: Immediate follow-up required"
PAYMENT_ARRANGEMENT = "Contact customer for payment arrangement"
REVIEW_REPAYMENT_CAPACITY = "Review repayment capacity with customer"
ADDITIONAL_COLLATERAL = "Consider requiring additional collateral"
INCOME_STABILITY = "High DTI - assess income stability"
MONITOR_RESTRUCTURED = "Monitor restructured loan closely"
ROUTINE_MONITORING = "Continue routine monitoring"


def _clamp(value: float) -> float:
    return min(100, max(0, value))


def categorize(score: float, thresholds: CompositeThresholds = DEFAULT_CONFIG.composite) -> RiskCategory:
    """
    Map risk score to category with closed upper bounds.

    - 0 - 35:    LOW
    - 35.1 - 65: MEDIUM
    - above 65:  HIGH
    """
    if score <= thresholds.low_max:
        return RiskCategory.LOW
    elif score <= thresholds.medium_max:
        return RiskCategory.MEDIUM
    else:
        return RiskCategory.HIGH


def weighted_score(components: ComponentScores, thresholds: CompositeThresholds = DEFAULT_CONFIG.composite) -> float:
    """
    Combine sub-scores into a 0-100 risk score rounded to one decimal.

    Scoring weights:
    - 40%: Delinquency
    - 30%: Credit profile
    - 20%: Loan characteristics
    - 10%: Concentration
    """
    score = (
        _clamp(components.delinquency) * thresholds.delinquency_weight
        + _clamp(components.credit_profile) * thresholds.credit_profile_weight
        + _clamp(components.loan_characteristics) * thresholds.loan_characteristics_weight
        + _clamp(components.concentration) * thresholds.concentration_weight
    )
    return ensure_in_range("risk_score_range", round(score, 1), 0, 100)


def risk_flags(
    delinquency: DelinquencyResult,
    penalty: ConcentrationPenalty,
    customer: CustomerRecord,
    config: RiskConfig = DEFAULT_CONFIG,
) -> RiskFlags:
    return RiskFlags(
        high_dpd=delinquency.max_dpd > config.composite.high_dpd_above,
        sector_concentration=penalty.sector_share_pct > config.concentration.sector_limit_pct,
        geography_risk=penalty.geography_share_pct > config.concentration.geography_limit_pct,
        high_dti=customer.dti_ratio > config.composite.high_dti_above,
    )


def recommendations_for(
    loan: LoanRecord,
    customer: CustomerRecord,
    score: float,
    category: RiskCategory,
    delinquency: DelinquencyResult,
    flags: RiskFlags,
    thresholds: CompositeThresholds = DEFAULT_CONFIG.composite,
) -> List[str]:
    """
    Remediation actions in fixed priority order.

    Every rule is checked independently; routine monitoring is only suggested
    for LOW loans that triggered nothing else.
    """
    recommendations: List[str] = []

    if score > thresholds.urgent_score_above:
        recommendations.append(URGENT_FOLLOW_UP)

    if delinquency.max_dpd > thresholds.payment_arrangement_dpd_above:
        recommendations.append(PAYMENT_ARRANGEMENT)

    if delinquency.consecutive_delays >= thresholds.capacity_review_delays_at:
        recommendations.append(REVIEW_REPAYMENT_CAPACITY)

    if customer.credit_score < thresholds.collateral_credit_below:
        recommendations.append(ADDITIONAL_COLLATERAL)

    if customer.dti_ratio > thresholds.income_stability_dti_above:
        recommendations.append(INCOME_STABILITY)

    if loan.status == LoanStatus.RESTRUCTURED:
        recommendations.append(MONITOR_RESTRUCTURED)

    if flags.sector_concentration:
        recommendations.append(f"Portfolio over-exposed to {loan.sector.value} sector")

    if not recommendations and category == RiskCategory.LOW:
        recommendations.append(ROUTINE_MONITORING)

    return recommendations


def score_loan(
    loan: LoanRecord,
    customer: CustomerRecord,
    repayments: Sequence[RepaymentRecord],
    context: PortfolioContext,
    as_of: date,
    assessed_at: datetime,
    config: RiskConfig = DEFAULT_CONFIG,
) -> RiskAssessment:
    """
    Score a single, already validated loan against a portfolio context.

    The result depends only on the arguments; `assessed_at` is stamped on the
    snapshot and never feeds the score.
    """
    delinquency = analyze_delinquency(repayments, config)
    credit = credit_profile_score(customer.credit_score, customer.dti_ratio, config)
    loan_score = loan_characteristics_score(loan, delinquency.score, as_of, config)
    penalty = concentration_penalty(loan, customer, context, config)

    components = ComponentScores(
        delinquency=_clamp(delinquency.score),
        credit_profile=_clamp(credit),
        loan_characteristics=_clamp(loan_score),
        concentration=_clamp(penalty.score),
    )
    score = weighted_score(components, config.composite)
    category = categorize(score, config.composite)
    flags = risk_flags(delinquency, penalty, customer, config)

    return RiskAssessment(
        loan_id=loan.loan_id,
        risk_score=score,
        risk_category=category,
        components=ComponentScores(
            delinquency=round(components.delinquency, 1),
            credit_profile=round(components.credit_profile, 1),
            loan_characteristics=round(components.loan_characteristics, 1),
            concentration=round(components.concentration, 1),
        ),
        flags=flags,
        recommendations=tuple(
            recommendations_for(loan, customer, score, category, delinquency, flags, config.composite)
        ),
        delinquency=delinquency,
        assessed_at=assessed_at,
    )


def group_repayments(repayments: Sequence[RepaymentRecord]) -> Dict[str, List[RepaymentRecord]]:
    """Index repayments by owning loan"""
    by_loan: Dict[str, List[RepaymentRecord]] = defaultdict(list)
    for repayment in repayments:
        by_loan[repayment.loan_id].append(repayment)
    return dict(by_loan)


def score_portfolio(
    loans: Sequence[LoanRecord],
    customers: Mapping[str, CustomerRecord],
    repayments: Sequence[RepaymentRecord],
    as_of: date,
    assessed_at: datetime | None = None,
    config: RiskConfig = DEFAULT_CONFIG,
    run_id: str | None = None,
) -> ScoringBatch:
    """
    Main entry point: validate, build the portfolio context, score every loan.

    Flow:
    1. Validate each loan; malformed loans become UnscoreableLoan entries
    2. Build the PortfolioContext from the loans that passed validation
    3. Score each valid loan independently against that context

    A bad loan never aborts the batch.
    """
    run_id = run_id or str(uuid.uuid4())
    assessed_at = as_utc(assessed_at) if assessed_at is not None else utc_now()
    repayments_by_loan = group_repayments(repayments)

    valid: List[tuple[LoanRecord, CustomerRecord]] = []
    failures: List[UnscoreableLoan] = []
    for loan in loans:
        try:
            customer = validate_loan(loan, customers, repayments_by_loan.get(loan.loan_id, ()))
        except MalformedInputError as e:
            failures.append(UnscoreableLoan(loan_id=loan.loan_id, reason=e.reason))
            continue
        valid.append((loan, customer))

    context = build_portfolio_context([loan for loan, _ in valid], customers)

    assessments = [
        score_loan(
            loan,
            customer,
            repayments_by_loan.get(loan.loan_id, []),
            context,
            as_of,
            assessed_at,
            config,
        )
        for loan, customer in valid
    ]

    return ScoringBatch(
        run_id=run_id,
        assessed_at=assessed_at,
        context=context,
        assessments=assessments,
        failures=failures,
    )
