"""Input consistency checks applied to each loan before it is scored"""

from typing import Mapping, Sequence

from loan_risk.domain.exceptions import MalformedInputError
from loan_risk.domain.models import CustomerRecord, LoanRecord, LoanStatus, RepaymentRecord

CREDIT_SCORE_RANGE = (300, 850)
DTI_RANGE = (0, 100)


def validate_loan(
    loan: LoanRecord,
    customers: Mapping[str, CustomerRecord],
    repayments: Sequence[RepaymentRecord] = (),
) -> CustomerRecord:
    """
    Check a loan and its related records, returning the owning customer.

    Raises:
        MalformedInputError: the first inconsistency found; the reason starts
            with a short category ("missing customer", "outstanding", ...)
            followed by detail after a colon.
    """
    customer = customers.get(loan.customer_id)
    if customer is None:
        raise MalformedInputError(loan.loan_id, f"missing customer: {loan.customer_id}")

    if loan.principal_amount <= 0:
        raise MalformedInputError(loan.loan_id, f"principal: non-positive amount {loan.principal_amount}")
    if loan.outstanding_amount < 0:
        raise MalformedInputError(loan.loan_id, f"outstanding: negative amount {loan.outstanding_amount}")
    if loan.outstanding_amount > loan.principal_amount:
        raise MalformedInputError(
            loan.loan_id,
            f"outstanding: {loan.outstanding_amount} exceeds principal {loan.principal_amount}",
        )
    if loan.status == LoanStatus.CLOSED and loan.outstanding_amount != 0:
        raise MalformedInputError(loan.loan_id, f"outstanding: closed loan carries {loan.outstanding_amount}")

    low, high = CREDIT_SCORE_RANGE
    if not low <= customer.credit_score <= high:
        raise MalformedInputError(loan.loan_id, f"credit score: {customer.credit_score} outside {low}-{high}")
    low, high = DTI_RANGE
    if not low <= customer.dti_ratio <= high:
        raise MalformedInputError(loan.loan_id, f"dti: {customer.dti_ratio} outside {low}-{high}")

    for repayment in repayments:
        if repayment.loan_id != loan.loan_id:
            raise MalformedInputError(loan.loan_id, f"repayment: belongs to loan {repayment.loan_id}")
        if repayment.dpd < 0:
            raise MalformedInputError(loan.loan_id, f"repayment: negative dpd {repayment.dpd} on {repayment.due_date}")

    return customer
