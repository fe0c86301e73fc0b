"""Unit tests for input validation"""

import pytest
from dataclasses import replace

from loan_risk.domain.exceptions import MalformedInputError
from loan_risk.domain.models import LoanStatus
from loan_risk.domain.validation import validate_loan


def test_valid_loan_returns_customer(make_customer, make_loan, make_repayments):
    customer = make_customer("C1")

    assert validate_loan(make_loan("L1", "C1"), {"C1": customer}, make_repayments("L1", [0, 3])) is customer


@pytest.mark.parametrize(
    "loan_overrides,customer_overrides,reason_prefix",
    [
        ({"customer_id": "C404"}, {}, "missing customer"),
        ({"principal_amount": 0.0}, {}, "principal"),
        ({"outstanding_amount": -1.0}, {}, "outstanding"),
        ({"outstanding_amount": 100000.01}, {}, "outstanding"),
        ({"status": LoanStatus.CLOSED}, {}, "outstanding"),
        ({}, {"credit_score": 299}, "credit score"),
        ({}, {"credit_score": 851}, "credit score"),
        ({}, {"dti_ratio": -0.5}, "dti"),
        ({}, {"dti_ratio": 100.5}, "dti"),
    ],
)
def test_malformed_loan(make_customer, make_loan, loan_overrides, customer_overrides, reason_prefix):
    loan = make_loan("L1", **{"customer_id": "C1", **loan_overrides})
    customers = {"C1": make_customer("C1", **customer_overrides)}

    with pytest.raises(MalformedInputError) as exc_info:
        validate_loan(loan, customers)

    assert exc_info.value.loan_id == "L1"
    assert exc_info.value.reason.startswith(reason_prefix)


def test_closed_loan_with_zero_outstanding_is_valid(make_customer, make_loan):
    loan = make_loan("L1", "C1", status=LoanStatus.CLOSED, outstanding_amount=0.0)

    validate_loan(loan, {"C1": make_customer("C1")})


def test_boundary_values_accepted(make_customer, make_loan):
    """Range limits are inclusive"""
    loan = make_loan("L1", "C1", outstanding_amount=100000.0)

    validate_loan(loan, {"C1": make_customer("C1", credit_score=300, dti_ratio=0.0)})
    validate_loan(loan, {"C1": make_customer("C1", credit_score=850, dti_ratio=100.0)})


def test_negative_dpd_rejected(make_customer, make_loan, make_repayments):
    repayments = make_repayments("L1", [0, 0])
    repayments[1] = replace(repayments[1], dpd=-2)

    with pytest.raises(MalformedInputError, match="negative dpd"):
        validate_loan(make_loan("L1", "C1"), {"C1": make_customer("C1")}, repayments)


def test_repayment_for_other_loan_rejected(make_customer, make_loan, make_repayments):
    with pytest.raises(MalformedInputError, match="belongs to loan L2"):
        validate_loan(make_loan("L1", "C1"), {"C1": make_customer("C1")}, make_repayments("L2", [0]))
