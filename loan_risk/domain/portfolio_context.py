"""Portfolio exposure aggregation used as the concentration input for per-loan scoring"""

from collections import defaultdict
from typing import Dict, Mapping, Sequence

from loan_risk.domain.models import CustomerRecord, LoanRecord, PortfolioContext, Sector


def build_portfolio_context(
    loans: Sequence[LoanRecord],
    customers: Mapping[str, CustomerRecord],
) -> PortfolioContext:
    """
    Sum outstanding exposure in total, by sector and by borrower geography.

    Always a full pass over the supplied loans; there is no incremental
    update. Loans whose customer is unknown still count towards the total
    and their sector, but contribute no geography.
    """
    sector_exposure: Dict[Sector, float] = defaultdict(float)
    geography_exposure: Dict[str, float] = defaultdict(float)
    total_exposure = 0.0

    for loan in loans:
        total_exposure += loan.outstanding_amount
        sector_exposure[loan.sector] += loan.outstanding_amount

        customer = customers.get(loan.customer_id)
        if customer is not None:
            geography_exposure[customer.geography] += loan.outstanding_amount

    return PortfolioContext(
        total_loans=len(loans),
        total_exposure=total_exposure,
        sector_exposure=dict(sector_exposure),
        geography_exposure=dict(geography_exposure),
    )
