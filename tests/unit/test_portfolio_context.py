"""Unit tests for portfolio exposure aggregation"""

import pytest

from loan_risk.domain.models import Sector
from loan_risk.domain.portfolio_context import build_portfolio_context


def test_exposure_by_sector_and_geography(make_customer, make_loan):
    customers = {
        "C1": make_customer("C1", geography="Mumbai"),
        "C2": make_customer("C2", geography="Pune"),
    }
    loans = [
        make_loan("L1", "C1", sector=Sector.IT, outstanding_amount=60000.0),
        make_loan("L2", "C1", sector=Sector.RETAIL, outstanding_amount=20000.0),
        make_loan("L3", "C2", sector=Sector.IT, outstanding_amount=20000.0),
    ]

    context = build_portfolio_context(loans, customers)

    assert context.total_loans == 3
    assert context.total_exposure == 100000.0
    assert context.sector_exposure == {Sector.IT: 80000.0, Sector.RETAIL: 20000.0}
    assert context.geography_exposure == {"Mumbai": 80000.0, "Pune": 20000.0}
    assert context.sector_share(Sector.IT) == pytest.approx(80.0)
    assert context.geography_share("Pune") == pytest.approx(20.0)
    # Sectors absent from the portfolio have no share
    assert context.sector_share(Sector.AGRICULTURE) == 0.0


def test_empty_portfolio_shares_are_zero():
    """No exposure means no division by zero"""
    context = build_portfolio_context([], {})

    assert context.total_loans == 0
    assert context.total_exposure == 0.0
    assert context.sector_share(Sector.IT) == 0.0
    assert context.geography_share("Mumbai") == 0.0


def test_unknown_customer_counts_toward_total_only(make_customer, make_loan):
    """A loan without a customer has a sector but no geography"""
    customers = {"C1": make_customer("C1")}
    loans = [
        make_loan("L1", "C1", outstanding_amount=50000.0),
        make_loan("L2", "GHOST", outstanding_amount=50000.0),
    ]

    context = build_portfolio_context(loans, customers)

    assert context.total_exposure == 100000.0
    assert context.sector_exposure[Sector.IT] == 100000.0
    assert context.geography_exposure == {"Mumbai": 50000.0}
