"""Pytest fixtures for testing"""

import pytest
from datetime import date, datetime, timedelta, timezone
from typing import Callable, List

from loan_risk.config import settings
from loan_risk.domain.models import (
    CustomerRecord,
    EmploymentStatus,
    LoanRecord,
    LoanStatus,
    LoanType,
    PaymentStatus,
    RepaymentRecord,
    Sector,
)

AS_OF = date(2024, 6, 30)
ASSESSED_AT = datetime(2024, 6, 30, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def strict_invariants(monkeypatch):
    """Formula defects fail the test instead of being clamped"""
    monkeypatch.setattr(settings, "strict_invariants", True)


@pytest.fixture
def as_of() -> date:
    return AS_OF


@pytest.fixture
def assessed_at() -> datetime:
    return ASSESSED_AT


@pytest.fixture
def make_customer() -> Callable[..., CustomerRecord]:
    """Build a customer with sensible defaults (prime borrower, moderate DTI)"""

    def _make(customer_id: str = "C1", **overrides) -> CustomerRecord:
        fields = dict(
            customer_id=customer_id,
            credit_score=760,
            dti_ratio=25.0,
            employment_status=EmploymentStatus.SALARIED,
            geography="Mumbai",
            age=35,
            monthly_income=80000.0,
            name=f"Customer {customer_id}",
        )
        fields.update(overrides)
        return CustomerRecord(**fields)

    return _make


@pytest.fixture
def make_loan() -> Callable[..., LoanRecord]:
    """Build an active loan; outstanding defaults to half of principal"""

    def _make(loan_id: str = "L1", customer_id: str = "C1", **overrides) -> LoanRecord:
        fields = dict(
            loan_id=loan_id,
            customer_id=customer_id,
            principal_amount=100000.0,
            outstanding_amount=50000.0,
            disbursement_date=AS_OF - timedelta(days=360),
            tenure_months=36,
            interest_rate=11.5,
            sector=Sector.IT,
            status=LoanStatus.ACTIVE,
            loan_type=LoanType.PERSONAL_LOAN,
        )
        fields.update(overrides)
        return LoanRecord(**fields)

    return _make


@pytest.fixture
def make_repayments() -> Callable[..., List[RepaymentRecord]]:
    """Build monthly installments for a loan from a list of DPD values, oldest first"""

    def _make(loan_id: str, dpds: List[int], emi_amount: float = 5000.0, partial_last: bool = False) -> List[RepaymentRecord]:
        first_due = AS_OF - timedelta(days=30 * len(dpds))
        repayments = []
        for index, dpd in enumerate(dpds):
            due_date = first_due + timedelta(days=30 * index)
            amount = emi_amount
            if partial_last and index == len(dpds) - 1:
                amount = emi_amount / 2
            repayments.append(
                RepaymentRecord(
                    loan_id=loan_id,
                    due_date=due_date,
                    emi_amount=emi_amount,
                    dpd=dpd,
                    payment_status=PaymentStatus.DELAYED if dpd > 0 else PaymentStatus.PAID,
                    payment_date=due_date + timedelta(days=dpd),
                    payment_amount=amount,
                )
            )
        return repayments

    return _make
