"""
Tests for the opportunity engine.

The default profile (service company in SP, R$ 1 mi revenue, R$ 600k
expenses) triggers seven rules:

    rule                     savings     priority
    contractor_analysis      48.000,00   8
    equipment_depreciation   30.000,00   8
    service_outsourcing      30.000,00   7
    home_office              12.000,00   7
    expense_acceleration     12.000,00   7
    lease_vs_purchase         9.000,00   7
    revenue_deferral         24.000,00   6
"""

from decimal import Decimal

import pytest

from domain import (
    Comparison,
    EffortLevel,
    Money,
    OpportunityCategory,
    OpportunitySummary,
    RiskLevel,
    TaxRegime,
)
from recommendation import (
    OpportunityEngine,
    RegimeComparisonEngine,
    calculate_roi,
    compare_regimes,
    filter_opportunities,
    score_priority,
)
from recommendation.opportunity_engine import home_office_rule


@pytest.fixture
def engine():
    return OpportunityEngine()


@pytest.fixture
def derive(engine):
    """Compare with the default calculators, then derive opportunities."""
    def _derive(fi):
        return engine.derive_opportunities(compare_regimes(fi), fi)
    return _derive


class TestDefaultProfile:
    """Opportunities for the default company profile."""

    def test_presentation_order(self, make_input, derive):
        opportunities, _ = derive(make_input())

        assert [o.rule_id for o in opportunities] == [
            "contractor_analysis",
            "equipment_depreciation",
            "service_outsourcing",
            "home_office",
            "expense_acceleration",
            "lease_vs_purchase",
            "revenue_deferral",
        ]

    def test_scores(self, make_input, derive):
        opportunities, _ = derive(make_input())
        by_rule = {o.rule_id: o for o in opportunities}

        contractor = by_rule["contractor_analysis"]
        assert contractor.estimated_savings == Money(48_000_00)
        assert contractor.roi == Decimal("860.00")
        assert contractor.priority == 8

        home_office = by_rule["home_office"]
        assert home_office.estimated_savings == Money(12_000_00)
        assert home_office.roi == Decimal("100")
        assert home_office.priority == 7

        assert by_rule["revenue_deferral"].priority == 6

    def test_ids_scoped_to_company_without_analysis(self, make_input, derive):
        opportunities, _ = derive(make_input())
        assert opportunities[0].id == "company-1:contractor_analysis"

    def test_ids_scoped_to_analysis(self, make_input, engine):
        fi = make_input()
        comparison = RegimeComparisonEngine().compare(fi, analysis_id="analysis-9")
        opportunities, _ = engine.derive_opportunities(comparison, fi)
        assert all(o.id.startswith("analysis-9:") for o in opportunities)

    def test_summary(self, make_input, derive):
        opportunities, summary = derive(make_input())

        assert summary.total_opportunities == 7
        assert summary.potential_annual_savings == Money(165_000_00)
        assert summary.high_priority_count == 2
        assert summary.implementable_now == 2

    def test_deterministic(self, make_input, derive):
        fi = make_input()
        assert derive(fi) == derive(fi)


class TestOrdering:
    """Sort order holds for any profile."""

    @pytest.mark.parametrize("overrides", [
        {},
        {"expenses": Money(0)},
        {"expenses": Money(950_000_00), "state": "BA"},
        {"activity_description": "Desenvolvimento de software para exportação"},
        {"gross_revenue": Money(30_000_00), "expenses": Money(10_000_00)},
    ])
    def test_sorted_by_priority_then_savings(self, make_input, derive, overrides):
        opportunities, _ = derive(make_input(**overrides))

        for current, following in zip(opportunities, opportunities[1:]):
            assert current.priority >= following.priority
            if current.priority == following.priority:
                assert current.estimated_savings >= following.estimated_savings

    def test_equal_savings_fall_back_to_category(self, make_input, derive):
        opportunities, _ = derive(make_input())
        rule_ids = [o.rule_id for o in opportunities]

        # Same priority and savings: DEDUCTION before TIMING
        assert rule_ids.index("home_office") < rule_ids.index("expense_acceleration")


class TestRules:
    """Tests for individual rule triggers."""

    def test_zero_savings_rules_emit_nothing(self, make_input, derive):
        opportunities, _ = derive(make_input(expenses=Money(0)))
        rule_ids = {o.rule_id for o in opportunities}

        assert "home_office" not in rule_ids
        assert "expense_acceleration" not in rule_ids
        assert rule_ids == {"revenue_deferral"}

    def test_sudene_in_northeast(self, make_input, derive):
        """75% of the IRPJ share of the best profit-regime liability."""
        opportunities, _ = derive(make_input(state="BA"))
        regional = next(o for o in opportunities if o.rule_id == "regional_development_credit")

        # Presumido R$ 84.800,00 x 0.625 IRPJ share x 0.75
        assert regional.estimated_savings == Money(39_750_00)
        assert "SUDENE" in regional.title
        assert regional.category == OpportunityCategory.CREDIT

    def test_sudam_in_north(self, make_input, derive):
        opportunities, _ = derive(make_input(state="AM"))
        regional = next(o for o in opportunities if o.rule_id == "regional_development_credit")
        assert "SUDAM" in regional.title

    def test_no_regional_credit_in_southeast(self, make_input, derive):
        opportunities, _ = derive(make_input(state="SP"))
        assert all(o.rule_id != "regional_development_credit" for o in opportunities)

    def test_research_development_keyword(self, make_input, derive):
        opportunities, _ = derive(make_input(activity_description="Desenvolvimento de software"))
        rd = next(o for o in opportunities if o.rule_id == "research_development_credit")

        assert rd.estimated_savings == Money(7_500_00)
        assert rd.applicable_regimes == (TaxRegime.LUCRO_REAL,)
        assert rd.implementation_effort == EffortLevel.HIGH

    def test_export_keyword(self, make_input, derive):
        opportunities, _ = derive(make_input(activity_description="Exportação de café"))
        export = next(o for o in opportunities if o.rule_id == "export_credit")
        assert export.estimated_savings == Money(25_000_00)

    def test_quarterly_input_is_annualized(self, make_input, derive):
        from domain import AnalysisType

        quarterly = make_input(
            gross_revenue=Money(250_000_00),
            expenses=Money(150_000_00),
            analysis_type=AnalysisType.QUARTERLY,
        )
        annual_opps, _ = derive(make_input())
        quarterly_opps, _ = derive(quarterly)
        assert quarterly_opps == annual_opps

    def test_custom_rule_set(self, make_input):
        fi = make_input()
        engine = OpportunityEngine(rules=[home_office_rule])
        opportunities, summary = engine.derive_opportunities(compare_regimes(fi), fi)

        assert [o.rule_id for o in opportunities] == ["home_office"]
        assert summary.total_opportunities == 1


class TestEligibility:
    """Opportunities require an eligible applicable regime."""

    def test_empty_when_no_regime_eligible(self, make_input, engine, fixed_calculators):
        fi = make_input()
        results = RegimeComparisonEngine(fixed_calculators(
            simples=(1_00, False), presumido=(1_00, False), real=(1_00, False),
        )).evaluate(fi)
        comparison = Comparison(regimes=results)

        opportunities, summary = engine.derive_opportunities(comparison, fi)

        assert opportunities == []
        assert summary == OpportunitySummary()

    def test_profit_rules_skipped_when_only_simples_eligible(
        self, make_input, engine, fixed_calculators
    ):
        fi = make_input(activity_description="software")
        comparison = RegimeComparisonEngine(fixed_calculators(
            presumido=(9_600_00, False), real=(12_000_00, False),
        )).compare(fi)

        opportunities, _ = engine.derive_opportunities(comparison, fi)
        assert opportunities == []

    def test_real_only_rule_skipped_when_real_ineligible(
        self, make_input, engine, fixed_calculators
    ):
        fi = make_input(activity_description="software")
        comparison = RegimeComparisonEngine(fixed_calculators(
            real=(12_000_00, False),
        )).compare(fi)

        opportunities, _ = engine.derive_opportunities(comparison, fi)
        rule_ids = {o.rule_id for o in opportunities}

        assert "research_development_credit" not in rule_ids
        assert "home_office" in rule_ids


class TestScoring:
    """Tests for ROI and priority scoring."""

    def test_roi_free_opportunity(self):
        assert calculate_roi(Money(1_000_00), Money.zero()) == Decimal("100")

    def test_roi(self):
        assert calculate_roi(Money(30_000_00), Money(1_000_00)) == Decimal("2900.00")

    def test_roi_never_negative(self):
        assert calculate_roi(Money(1_00), Money(1_000_00)) == Decimal("0")

    @pytest.mark.parametrize("savings", [0, 500_00, 1_000_00, 5_000_00, 20_000_00, 50_000_00, 10**9])
    @pytest.mark.parametrize("roi", [Decimal("0"), Decimal("100"), Decimal("5000")])
    @pytest.mark.parametrize("effort", list(EffortLevel))
    @pytest.mark.parametrize("risk", list(RiskLevel))
    def test_priority_bounds(self, savings, roi, effort, risk):
        priority = score_priority(Money(savings), roi, effort, risk)
        assert 0 <= priority <= 10

    def test_best_and_worst(self):
        assert score_priority(Money(100_000_00), Decimal("1000"), EffortLevel.LOW, RiskLevel.LOW) == 10
        assert score_priority(Money.zero(), Decimal("0"), EffortLevel.HIGH, RiskLevel.HIGH) == 1

    def test_more_savings_never_lowers_priority(self):
        tiers = [0, 1_000_00, 5_000_00, 20_000_00, 50_000_00]
        scores = [
            score_priority(Money(s), Decimal("100"), EffortLevel.MEDIUM, RiskLevel.MEDIUM)
            for s in tiers
        ]
        assert scores == sorted(scores)

    def test_more_risk_never_raises_priority(self):
        scores = [
            score_priority(Money(20_000_00), Decimal("100"), EffortLevel.LOW, risk)
            for risk in RiskLevel
        ]
        assert scores == sorted(scores, reverse=True)


class TestFilters:
    """Tests for filter_opportunities."""

    def test_by_category(self, make_input, derive):
        opportunities, _ = derive(make_input())
        filtered = filter_opportunities(
            opportunities, category=OpportunityCategory.EXPENSE_OPTIMIZATION
        )
        assert [o.rule_id for o in filtered] == [
            "contractor_analysis", "service_outsourcing", "lease_vs_purchase",
        ]

    def test_by_risk(self, make_input, derive):
        opportunities, _ = derive(make_input())
        filtered = filter_opportunities(opportunities, risk_level=RiskLevel.LOW)
        assert [o.rule_id for o in filtered] == [
            "equipment_depreciation", "expense_acceleration", "lease_vs_purchase",
        ]

    def test_by_min_roi(self, make_input, derive):
        opportunities, _ = derive(make_input())
        filtered = filter_opportunities(opportunities, min_roi=Decimal("500"))
        assert [o.rule_id for o in filtered] == ["contractor_analysis", "equipment_depreciation"]

    def test_no_filters(self, make_input, derive):
        opportunities, _ = derive(make_input())
        assert filter_opportunities(opportunities) == opportunities
