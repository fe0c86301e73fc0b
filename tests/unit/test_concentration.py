"""Unit tests for concentration risk analysis"""

import pytest
from dataclasses import replace

from loan_risk.domain.concentration import (
    UNKNOWN_GEOGRAPHY,
    build_concentration_report,
    classify_hhi,
    concentration_penalty,
    herfindahl_index,
    overall_level,
)
from loan_risk.domain.models import ConcentrationLevel, LoanStatus, LoanType, Sector
from loan_risk.domain.portfolio_context import build_portfolio_context
from loan_risk.domain.scoring import group_repayments, score_portfolio
from loan_risk.domain.thresholds import ConcentrationThresholds, RiskConfig


def test_hhi_two_buckets():
    """90/10 split: 0.81 + 0.01 = 0.82"""
    assert herfindahl_index([90, 10]) == pytest.approx(8200)


def test_hhi_single_bucket_is_maximum():
    assert herfindahl_index([12345.67]) == 10000


def test_hhi_even_split():
    assert herfindahl_index([25, 25, 25, 25]) == pytest.approx(2500)


def test_hhi_no_exposure():
    assert herfindahl_index([]) == 0
    assert herfindahl_index([0, 0]) == 0


@pytest.mark.parametrize(
    "hhi,expected",
    [
        (0, ConcentrationLevel.LOW),
        (1500, ConcentrationLevel.LOW),
        (1501, ConcentrationLevel.MODERATE),
        (2500, ConcentrationLevel.MODERATE),
        (2501, ConcentrationLevel.HIGH),
    ],
)
def test_classify_hhi(hhi, expected):
    assert classify_hhi(hhi) == expected


def test_overall_level_mean_rank():
    """Mean rank above 2.5 is HIGH, above 1.5 is MODERATE"""
    high, moderate, low = ConcentrationLevel.HIGH, ConcentrationLevel.MODERATE, ConcentrationLevel.LOW

    assert overall_level([high, high, moderate]) == ConcentrationLevel.HIGH  # 2.67
    assert overall_level([high, moderate, low]) == ConcentrationLevel.MODERATE  # 2.0
    assert overall_level([moderate, low, low]) == ConcentrationLevel.LOW  # 1.33
    assert overall_level([]) == ConcentrationLevel.LOW


def test_penalty_tiers_do_not_stack(make_customer, make_loan):
    """Sector above 30% takes the 50-point tier only; geography above 35% adds 30"""
    customer = make_customer("C1", geography="Mumbai")
    customers = {"C1": customer, "C2": make_customer("C2", geography="Delhi")}
    loan = make_loan("L1", "C1", sector=Sector.IT, outstanding_amount=40000.0)
    loans = [loan, make_loan("L2", "C2", sector=Sector.RETAIL, outstanding_amount=60000.0)]
    context = build_portfolio_context(loans, customers)

    penalty = concentration_penalty(loan, customer, context)

    assert penalty.sector_share_pct == pytest.approx(40)
    assert penalty.geography_share_pct == pytest.approx(40)
    assert penalty.score == 80


def test_penalty_watch_tiers(make_customer, make_loan):
    """Between watch and limit: 30 sector + 20 geography"""
    customer = make_customer("C1", geography="Mumbai")
    customers = {"C1": customer, "C2": make_customer("C2", geography="Delhi")}
    loan = make_loan("L1", "C1", sector=Sector.IT, outstanding_amount=28000.0)
    loans = [
        loan,
        make_loan("L2", "C1", sector=Sector.RETAIL, outstanding_amount=4000.0),
        make_loan("L3", "C2", sector=Sector.RETAIL, outstanding_amount=68000.0),
    ]
    context = build_portfolio_context(loans, customers)

    penalty = concentration_penalty(loan, customer, context)

    # IT 28%, Mumbai 32%
    assert penalty.score == 50


def test_penalty_at_limit_is_not_above(make_customer, make_loan):
    """Exactly 30% sector / 35% geography falls into the watch tier"""
    customer = make_customer("C1", geography="Mumbai")
    customers = {"C1": customer, "C2": make_customer("C2", geography="Delhi")}
    loan = make_loan("L1", "C1", sector=Sector.IT, outstanding_amount=30000.0)
    loans = [
        loan,
        make_loan("L2", "C1", sector=Sector.RETAIL, outstanding_amount=5000.0),
        make_loan("L3", "C2", sector=Sector.RETAIL, outstanding_amount=65000.0),
    ]
    context = build_portfolio_context(loans, customers)

    penalty = concentration_penalty(loan, customer, context)

    assert penalty.score == 30 + 20


def test_report_two_sector_split(make_customer, make_loan):
    """90/10 sector split is HIGH with a diversification recommendation"""
    customers = {f"C{i}": make_customer(f"C{i}", geography=f"City{i}") for i in range(10)}
    loans = [
        make_loan(f"L{i}", f"C{i}", sector=Sector.IT, outstanding_amount=10000.0)
        for i in range(9)
    ]
    loans.append(make_loan("L9", "C9", sector=Sector.RETAIL, outstanding_amount=10000.0))

    report = build_concentration_report(loans, customers)

    assert report.sector.hhi == pytest.approx(8200)
    assert report.sector.risk_level == ConcentrationLevel.HIGH
    assert report.sector.buckets[0].key == "IT"
    assert report.sector.buckets[0].flagged is True
    assert report.recommendations[0] == (
        "High sector concentration (HHI: 8200). Consider diversifying into underrepresented sectors."
    )
    assert "IT sector accounts for 90% of portfolio. Diversification needed." in report.recommendations


def test_single_name_limit_is_strict(make_customer, make_loan):
    """Exactly 10% is within the limit, anything above violates it"""
    customers = {f"C{i}": make_customer(f"C{i}") for i in range(10)}
    even = [make_loan(f"L{i}", f"C{i}", outstanding_amount=1000.0) for i in range(10)]

    report = build_concentration_report(even, customers)

    assert report.borrower.breakdown.buckets[0].percentage == pytest.approx(10.0)
    assert report.borrower.limit_violations == []

    uneven = even[:-1] + [make_loan("L9", "C9", outstanding_amount=1001.0)]
    report = build_concentration_report(uneven, customers)

    assert [b.key for b in report.borrower.limit_violations] == ["C9"]
    assert report.borrower.limit_violations[0].percentage > 10.0
    assert "1 borrower(s) exceed single-name limit of 10%. Review exposure limits." in report.recommendations


def test_borrower_exposure_aggregates_loans(make_customer, make_loan):
    """A borrower's exposure is the sum of their loans, labelled by name"""
    customers = {"C1": make_customer("C1", name="Asha"), "C2": make_customer("C2", name="Ravi")}
    loans = [
        make_loan("L1", "C1", outstanding_amount=30000.0),
        make_loan("L2", "C1", outstanding_amount=30000.0),
        make_loan("L3", "C2", outstanding_amount=40000.0),
    ]

    report = build_concentration_report(loans, customers)
    top = report.borrower.top_borrowers[0]

    assert (top.key, top.label, top.loan_count, top.exposure) == ("C1", "Asha", 2, 60000.0)
    assert report.unique_borrowers == 2
    assert report.borrower.top10_percentage == pytest.approx(100)


def test_empty_portfolio_report():
    """No loans: zeros everywhere, LOW risk, no recommendations"""
    report = build_concentration_report([], {})

    assert report.total_loans == 0
    assert report.total_exposure == 0
    assert report.sector.hhi == 0
    assert report.geography.buckets == []
    assert report.borrower.top10_percentage == 0
    assert report.overall_risk == ConcentrationLevel.LOW
    assert report.recommendations == []
    assert report.heatmap == []


def test_zero_exposure_portfolio(make_customer, make_loan):
    """Loans with nothing outstanding give 0% shares, not a division error"""
    customers = {"C1": make_customer("C1")}
    loans = [make_loan("L1", "C1", outstanding_amount=0.0)]

    report = build_concentration_report(loans, customers)

    assert report.sector.buckets[0].percentage == 0
    assert report.sector.hhi == 0
    assert report.overall_risk == ConcentrationLevel.LOW


def test_percentages_sum_to_100(make_customer, make_loan):
    customers = {
        "C1": make_customer("C1", geography="Mumbai"),
        "C2": make_customer("C2", geography="Delhi"),
        "C3": make_customer("C3", geography="Chennai"),
    }
    loans = [
        make_loan("L1", "C1", sector=Sector.IT, outstanding_amount=33333.33),
        make_loan("L2", "C2", sector=Sector.RETAIL, outstanding_amount=33333.33),
        make_loan("L3", "C3", sector=Sector.HEALTHCARE, outstanding_amount=33333.34),
    ]

    report = build_concentration_report(loans, customers)

    for dimension in (report.sector, report.geography, report.borrower.breakdown, report.product):
        assert sum(b.percentage for b in dimension.buckets) == pytest.approx(100, abs=0.1)


def test_ties_broken_by_key(make_customer, make_loan):
    """Equal exposure sorts alphabetically so reports are deterministic"""
    customers = {"C1": make_customer("C1"), "C2": make_customer("C2")}
    loans = [
        make_loan("L1", "C1", sector=Sector.RETAIL, outstanding_amount=5000.0),
        make_loan("L2", "C2", sector=Sector.IT, outstanding_amount=5000.0),
    ]

    report = build_concentration_report(loans, customers)

    assert [b.key for b in report.sector.buckets] == ["IT", "RETAIL"]


def test_missing_customer_grouped_as_unknown(make_customer, make_loan):
    customers = {"C1": make_customer("C1", geography="Mumbai")}
    loans = [
        make_loan("L1", "C1", outstanding_amount=50000.0),
        make_loan("L2", "GHOST", outstanding_amount=50000.0),
    ]

    report = build_concentration_report(loans, customers)

    assert {b.key for b in report.geography.buckets} == {"Mumbai", UNKNOWN_GEOGRAPHY}


def test_product_and_heatmap(make_customer, make_loan):
    customers = {"C1": make_customer("C1", geography="Mumbai"), "C2": make_customer("C2", geography="Delhi")}
    loans = [
        make_loan("L1", "C1", sector=Sector.IT, loan_type=LoanType.HOME_LOAN, outstanding_amount=60000.0),
        make_loan("L2", "C1", sector=Sector.IT, status=LoanStatus.NPA, outstanding_amount=20000.0),
        make_loan("L3", "C2", sector=Sector.RETAIL, outstanding_amount=20000.0),
    ]

    report = build_concentration_report(loans, customers)

    assert [(b.key, b.percentage) for b in report.product.buckets] == [
        ("HOME_LOAN", pytest.approx(60)),
        ("PERSONAL_LOAN", pytest.approx(40)),
    ]
    cells = {(c.sector, c.geography): c for c in report.heatmap}
    assert cells[(Sector.IT, "Mumbai")].loan_count == 2
    assert cells[(Sector.IT, "Mumbai")].npa_count == 1
    assert cells[(Sector.IT, "Mumbai")].percentage == pytest.approx(80)
    assert cells[(Sector.RETAIL, "Delhi")].avg_risk_score is None


def test_sector_and_geography_bucket_metrics(make_customer, make_loan, make_repayments, as_of, assessed_at):
    """Sector buckets carry risk scores, geography buckets carry latest-DPD metrics"""
    customers = {"C1": make_customer("C1", geography="Mumbai"), "C2": make_customer("C2", geography="Delhi")}
    loans = [
        make_loan("L1", "C1", sector=Sector.IT, outstanding_amount=40000.0),
        make_loan("L2", "C2", sector=Sector.IT, outstanding_amount=20000.0),
        make_loan("L3", "C2", sector=Sector.RETAIL, outstanding_amount=40000.0),
    ]
    scored = score_portfolio(loans[:2], customers, [], as_of, assessed_at).by_loan()
    assessments = {
        "L1": replace(scored["L1"], risk_score=72.0),
        "L2": replace(scored["L2"], risk_score=40.0),
    }
    repayments = make_repayments("L1", [0, 0, 15]) + make_repayments("L2", [0, 0, 0])

    report = build_concentration_report(
        loans, customers, assessments=assessments, repayments_by_loan=group_repayments(repayments)
    )
    sectors = {b.key: b for b in report.sector.buckets}
    geographies = {b.key: b for b in report.geography.buckets}

    # Only scores strictly above 60 count as at risk; unscored loans are left out of the mean
    assert (sectors["IT"].avg_risk_score, sectors["IT"].at_risk_loans) == (56.0, 1)
    assert (sectors["RETAIL"].avg_risk_score, sectors["RETAIL"].at_risk_loans) == (None, 0)
    # A loan with no repayments has latest DPD 0
    assert (geographies["Mumbai"].overdue_exposure, geographies["Mumbai"].avg_dpd) == (40000.0, 15.0)
    assert (geographies["Delhi"].overdue_exposure, geographies["Delhi"].avg_dpd) == (0, 0.0)
    # Metrics stay on their own dimension
    assert geographies["Mumbai"].avg_risk_score is None
    assert sectors["IT"].overdue_exposure is None


def test_bucket_metrics_absent_without_inputs(make_customer, make_loan):
    report = build_concentration_report([make_loan("L1", "C1")], {"C1": make_customer("C1")})

    assert report.sector.buckets[0].avg_risk_score is None
    assert report.sector.buckets[0].at_risk_loans is None
    assert report.geography.buckets[0].overdue_exposure is None
    assert report.geography.buckets[0].avg_dpd is None


def test_concentration_score_sector_gates(make_customer, make_loan):
    """90% in one sector: over the sector limit (+30) and dominant (+15); cities and borrowers at 10%"""
    customers = {f"C{i}": make_customer(f"C{i}", geography=f"City{i}") for i in range(10)}
    loans = [
        make_loan(f"L{i}", f"C{i}", sector=Sector.IT, outstanding_amount=10000.0)
        for i in range(9)
    ]
    loans.append(make_loan("L9", "C9", sector=Sector.RETAIL, outstanding_amount=10000.0))

    score = build_concentration_report(loans, customers).concentration_score

    assert score.score == 45
    assert score.risks == (
        "1 sector(s) exceed 30% threshold",
        "Extremely high sector concentration: 90.0%",
    )


def test_concentration_score_every_gate(make_customer, make_loan):
    """A single loan is 100% of every dimension: 30 + 25 + 20 + 15"""
    report = build_concentration_report([make_loan("L1", "C1")], {"C1": make_customer("C1")})

    assert report.concentration_score.score == 90
    assert report.concentration_score.risks == (
        "1 sector(s) exceed 30% threshold",
        "1 geography(ies) exceed 35% threshold",
        "1 customer(s) exceed 10% threshold",
        "Extremely high sector concentration: 100.0%",
    )


def test_concentration_score_capped_at_100(make_customer, make_loan):
    config = RiskConfig(concentration=ConcentrationThresholds(flagged_sector_points=60))

    report = build_concentration_report([make_loan("L1", "C1")], {"C1": make_customer("C1")}, config=config)

    assert report.concentration_score.score == 100


def test_concentration_score_empty_portfolio():
    score = build_concentration_report([], {}).concentration_score

    assert score.score == 0
    assert score.risks == ()
