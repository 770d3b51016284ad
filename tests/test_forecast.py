"""
Tests for ForecastEngine.

Base profile for most tests: R$ 1.200.000,00 revenue (R$ 100.000,00 a
month) and R$ 600.000,00 expenses, service sector. Per month:
- Simples Nacional: 8.8% -> R$ 8.800,00
- Lucro Presumido: R$ 106.560,00 / 12 -> R$ 8.880,00
- Lucro Real: R$ 180.000,00 / 12 -> R$ 15.000,00
"""

from decimal import Decimal

import pytest

from domain import EffortLevel, Money, TaxRegime, ValidationError
from recommendation import ForecastEngine, RegimeComparisonEngine, TaxForecast


@pytest.fixture
def engine():
    return ForecastEngine()


@pytest.fixture
def base_input(make_input):
    return make_input(gross_revenue=Money(1_200_000_00), expenses=Money(600_000_00))


class TestForecastShape:
    """Tests for the forecast structure."""

    @pytest.mark.parametrize("months", [1, 3, 6, 12])
    def test_one_entry_per_month(self, engine, base_input, months):
        forecast = engine.forecast(base_input, months)

        assert isinstance(forecast, TaxForecast)
        assert forecast.months == months
        assert [m.month for m in forecast.monthly_forecasts] == list(range(1, months + 1))

    def test_identifies_company_and_year(self, engine, base_input):
        forecast = engine.forecast(base_input, 1)
        assert forecast.company_id == "company-1"
        assert forecast.base_year == 2024

    def test_reports_every_regime_by_default(self, engine, base_input):
        month = engine.forecast(base_input, 1).monthly_forecasts[0]
        assert [f.regime for f in month.regime_forecasts] == list(TaxRegime)

    def test_deterministic(self, engine, base_input):
        first = engine.forecast(base_input, 6, expected_expense_growth="0.2")
        second = engine.forecast(base_input, 6, expected_expense_growth="0.2")
        assert first == second


class TestForecastFigures:
    """Tests for projected amounts."""

    def test_flat_projection(self, engine, base_input):
        forecast = engine.forecast(base_input, 3)
        month = forecast.monthly_forecasts[0]
        by_regime = {f.regime: f for f in month.regime_forecasts}

        assert month.projected_revenue == Money(100_000_00)
        assert month.projected_expenses == Money(50_000_00)
        assert month.profit_margin == Decimal("50.00")
        assert by_regime[TaxRegime.SIMPLES_NACIONAL].estimated_monthly_payment == Money(8_800_00)
        assert by_regime[TaxRegime.LUCRO_PRESUMIDO].estimated_monthly_payment == Money(8_880_00)
        assert by_regime[TaxRegime.LUCRO_REAL].estimated_monthly_payment == Money(15_000_00)
        assert month.recommended_regime == TaxRegime.SIMPLES_NACIONAL

    def test_summary_totals(self, engine, base_input):
        summary = engine.forecast(base_input, 3).annual_summary

        assert summary.total_projected_revenue == Money(300_000_00)
        assert summary.total_projected_expenses == Money(150_000_00)
        assert summary.projected_profit == Money(150_000_00)
        assert summary.estimated_tax_by_regime[TaxRegime.SIMPLES_NACIONAL] == Money(26_400_00)
        assert summary.estimated_tax_by_regime[TaxRegime.LUCRO_PRESUMIDO] == Money(26_640_00)
        assert summary.estimated_tax_by_regime[TaxRegime.LUCRO_REAL] == Money(45_000_00)
        assert summary.recommended_regime == TaxRegime.SIMPLES_NACIONAL

    def test_expense_growth_is_linear(self, engine, base_input):
        """30% growth over 3 months: +10%, +20%, +30%."""
        forecast = engine.forecast(base_input, 3, expected_expense_growth=Decimal("0.3"))

        assert [m.projected_expenses for m in forecast.monthly_forecasts] == [
            Money(55_000_00),
            Money(60_000_00),
            Money(65_000_00),
        ]

    def test_seasonality(self, engine, base_input):
        forecast = engine.forecast(base_input, 1, seasonality_factor="1.5")
        assert forecast.monthly_forecasts[0].projected_revenue == Money(150_000_00)

    def test_projected_revenue_override(self, engine, base_input):
        forecast = engine.forecast(base_input, 2, projected_monthly_revenue=Money(20_000_00))

        assert all(m.projected_revenue == Money(20_000_00) for m in forecast.monthly_forecasts)
        assert forecast.annual_summary.total_projected_revenue == Money(40_000_00)

    def test_projected_loss(self, engine, make_input):
        fi = make_input(gross_revenue=Money(120_000_00), expenses=Money(240_000_00))
        forecast = engine.forecast(fi, 1)

        assert forecast.monthly_forecasts[0].profit_margin == Decimal("-100.00")
        assert forecast.annual_summary.projected_profit == Money(-10_000_00)

    def test_ineligible_regime_never_recommended(self, engine, make_input):
        """R$ 500.000,00 a month is above the Simples ceiling."""
        fi = make_input(gross_revenue=Money(6_000_000_00), expenses=Money(5_000_000_00))
        forecast = engine.forecast(fi, 2)

        for month in forecast.monthly_forecasts:
            simples = next(
                f for f in month.regime_forecasts if f.regime == TaxRegime.SIMPLES_NACIONAL
            )
            assert not simples.eligible
            assert month.recommended_regime != TaxRegime.SIMPLES_NACIONAL
        assert forecast.annual_summary.recommended_regime != TaxRegime.SIMPLES_NACIONAL

    def test_reported_regime_subset(self, engine, base_input):
        forecast = engine.forecast(base_input, 2, regimes=[TaxRegime.LUCRO_REAL])
        month = forecast.monthly_forecasts[0]

        assert [f.regime for f in month.regime_forecasts] == [TaxRegime.LUCRO_REAL]
        # The monthly recommendation still weighs every regime
        assert month.recommended_regime == TaxRegime.SIMPLES_NACIONAL
        assert set(forecast.annual_summary.estimated_tax_by_regime) == {TaxRegime.LUCRO_REAL}

    def test_subset_summary_weighs_every_regime(self, engine, base_input):
        """The summary agrees with the months even when one regime is reported."""
        forecast = engine.forecast(base_input, 2, regimes=[TaxRegime.LUCRO_REAL])

        assert {m.recommended_regime for m in forecast.monthly_forecasts} == {
            TaxRegime.SIMPLES_NACIONAL
        }
        assert forecast.annual_summary.recommended_regime == TaxRegime.SIMPLES_NACIONAL
        assert forecast.annual_summary.estimated_tax_by_regime == {
            TaxRegime.LUCRO_REAL: Money(30_000_00)
        }

    def test_summary_tie_broken_by_compliance_effort(self, base_input, fixed_calculators):
        calculators = fixed_calculators(
            simples=(9_600_00, True),
            presumido=(9_600_00, True),
            real=(12_000_00, True),
            efforts={
                TaxRegime.SIMPLES_NACIONAL: EffortLevel.HIGH,
                TaxRegime.LUCRO_PRESUMIDO: EffortLevel.LOW,
            },
        )
        engine = ForecastEngine(RegimeComparisonEngine(calculators))

        forecast = engine.forecast(base_input, 3)

        assert forecast.monthly_forecasts[0].recommended_regime == TaxRegime.LUCRO_PRESUMIDO
        assert forecast.annual_summary.recommended_regime == TaxRegime.LUCRO_PRESUMIDO

    def test_previous_payments_ignored(self, engine, base_input):
        paid = base_input.model_copy(update={"previous_payments": Money(500_000_00)})
        assert engine.forecast(paid, 2).annual_summary == engine.forecast(base_input, 2).annual_summary


class TestForecastValidation:
    """Out-of-range parameters are rejected."""

    @pytest.mark.parametrize("months", [0, 13, -1])
    def test_months_range(self, engine, base_input, months):
        with pytest.raises(ValidationError) as exc_info:
            engine.forecast(base_input, months)
        assert exc_info.value.details["months"] == months

    @pytest.mark.parametrize("months", [True, 2.0, "3"])
    def test_months_must_be_int(self, engine, base_input, months):
        with pytest.raises(ValidationError):
            engine.forecast(base_input, months)

    @pytest.mark.parametrize("factor", ["0.49", "2.01", 0])
    def test_seasonality_range(self, engine, base_input, factor):
        with pytest.raises(ValidationError):
            engine.forecast(base_input, 3, seasonality_factor=factor)

    @pytest.mark.parametrize("growth", ["-0.01", "0.51"])
    def test_expense_growth_range(self, engine, base_input, growth):
        with pytest.raises(ValidationError):
            engine.forecast(base_input, 3, expected_expense_growth=growth)

    def test_projected_revenue_must_be_positive(self, engine, base_input):
        with pytest.raises(ValidationError):
            engine.forecast(base_input, 3, projected_monthly_revenue=Money.zero())

    def test_bounds_are_inclusive(self, engine, base_input):
        engine.forecast(base_input, 12, seasonality_factor="0.5", expected_expense_growth="0.5")
        engine.forecast(base_input, 1, seasonality_factor="2.0", expected_expense_growth=0)
