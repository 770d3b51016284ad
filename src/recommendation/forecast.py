"""Tax Forecast Engine.

Projects the next months of tax for a company from the figures of its
latest analysis. Every month is evaluated on annualized figures by the
regime comparison engine, so a forecast month and a stored analysis use
exactly the same calculators and ranking.

Inputs:
- projected monthly revenue (defaults to the base revenue / 12)
- seasonality factor applied to that revenue (0.5 - 2.0)
- expected expense growth over the horizon (0 - 50%), applied linearly
"""

from __future__ import annotations

import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field

from domain import (
    AnalysisType,
    FinancialInput,
    Money,
    TaxRegime,
    ValidationError,
)
from domain.money import Numeric, to_decimal

from recommendation.regime_comparison import (
    RegimeComparisonEngine,
    effort_rank,
    normalize_input,
)


logger = logging.getLogger(__name__)

MONTHS_PER_YEAR = 12
MAX_FORECAST_MONTHS = 12
MIN_SEASONALITY = Decimal("0.5")
MAX_SEASONALITY = Decimal("2.0")
MAX_EXPENSE_GROWTH = Decimal("0.5")

MARGIN_PRECISION = Decimal("0.01")


# =============================================================================
# RESULT MODELS
# =============================================================================

class RegimeForecast(BaseModel):
    """One regime's projection for one month."""
    model_config = ConfigDict(frozen=True)

    regime: TaxRegime
    eligible: bool
    estimated_annual_tax: Money
    estimated_monthly_payment: Money


class MonthlyForecast(BaseModel):
    model_config = ConfigDict(frozen=True)

    month: int = Field(ge=1, le=MAX_FORECAST_MONTHS)
    projected_revenue: Money
    projected_expenses: Money
    profit_margin: Decimal = Field(description="Percent of revenue; negative on a loss")
    regime_forecasts: Tuple[RegimeForecast, ...]
    recommended_regime: Optional[TaxRegime] = None


class ForecastSummary(BaseModel):
    """Totals over the forecast horizon."""
    model_config = ConfigDict(frozen=True)

    total_projected_revenue: Money
    total_projected_expenses: Money
    projected_profit: Money = Field(description="Signed: negative on a projected loss")
    estimated_tax_by_regime: Dict[TaxRegime, Money]
    recommended_regime: Optional[TaxRegime] = None


class TaxForecast(BaseModel):
    model_config = ConfigDict(frozen=True)

    company_id: str
    base_year: int
    months: int
    monthly_forecasts: Tuple[MonthlyForecast, ...]
    annual_summary: ForecastSummary


# =============================================================================
# ENGINE
# =============================================================================

class ForecastEngine:
    """
    Month-by-month regime projections.

    Deterministic: no clock or randomness; identical arguments give an
    identical TaxForecast.
    """

    def __init__(self, comparison_engine: Optional[RegimeComparisonEngine] = None):
        self.comparison_engine = comparison_engine or RegimeComparisonEngine()

    def forecast(
        self,
        base_input: FinancialInput,
        months: int,
        projected_monthly_revenue: Optional[Money] = None,
        seasonality_factor: Numeric = Decimal("1"),
        expected_expense_growth: Numeric = Decimal("0"),
        regimes: Optional[Sequence[TaxRegime]] = None,
    ) -> TaxForecast:
        """
        Project the tax of the next months.

        Args:
            base_input: Financial input of the latest analysis
            months: Horizon, 1 to 12
            projected_monthly_revenue: Overrides the base revenue / 12
            seasonality_factor: Multiplier on monthly revenue, 0.5 to 2.0
            expected_expense_growth: Growth reached by the last month, 0 to 0.5
            regimes: Regimes to report (all by default); the recommendation
                always considers every regime

        Returns:
            TaxForecast with one MonthlyForecast per month

        Raises:
            ValidationError: If a parameter is out of range
        """
        seasonality = to_decimal(seasonality_factor)
        growth = to_decimal(expected_expense_growth)
        self._validate(months, projected_monthly_revenue, seasonality, growth)

        base = normalize_input(base_input)
        reported = tuple(regimes) if regimes else tuple(TaxRegime)

        if projected_monthly_revenue is None:
            projected_monthly_revenue = base.gross_revenue.divide(MONTHS_PER_YEAR)
        monthly_revenue = projected_monthly_revenue.multiply_by_rate(seasonality)
        if monthly_revenue.is_zero:
            raise ValidationError("Projected monthly revenue rounds to zero")

        monthly_forecasts: List[MonthlyForecast] = []
        totals: Dict[TaxRegime, Money] = {regime: Money.zero() for regime in TaxRegime}
        efforts: Dict[TaxRegime, int] = {}
        always_eligible = set(TaxRegime)

        for month in range(1, months + 1):
            # Linear ramp: the full growth is reached in the last month
            factor = Decimal("1") + growth * Decimal(month) / Decimal(months)
            annual_expenses = base.expenses.multiply_by_rate(factor)
            annual_revenue = monthly_revenue.multiply(MONTHS_PER_YEAR)

            projected = base.model_copy(update={
                "gross_revenue": annual_revenue,
                "expenses": annual_expenses,
                "previous_payments": Money.zero(),
                "analysis_type": AnalysisType.ANNUAL,
            })
            results = self.comparison_engine.evaluate(projected)
            ranking = self.comparison_engine.rank(results)

            for regime, result in results.items():
                totals[regime] = totals[regime].add(result.monthly_payment)
                efforts[regime] = max(efforts.get(regime, 0), effort_rank(result))
                if not result.eligible:
                    always_eligible.discard(regime)

            regime_forecasts = [
                RegimeForecast(
                    regime=regime,
                    eligible=results[regime].eligible,
                    estimated_annual_tax=results[regime].tax_liability,
                    estimated_monthly_payment=results[regime].monthly_payment,
                )
                for regime in reported
            ]

            monthly_forecasts.append(MonthlyForecast(
                month=month,
                projected_revenue=monthly_revenue,
                projected_expenses=annual_expenses.divide(MONTHS_PER_YEAR),
                profit_margin=self._profit_margin(annual_revenue, annual_expenses),
                regime_forecasts=tuple(regime_forecasts),
                recommended_regime=ranking[0] if ranking else None,
            ))

        summary = self._summarize(monthly_forecasts, totals, efforts, always_eligible, reported)
        logger.debug(
            f"Forecast for {base_input.company_id}: {months} months, "
            f"recommended={summary.recommended_regime}"
        )
        return TaxForecast(
            company_id=base_input.company_id,
            base_year=base_input.year,
            months=months,
            monthly_forecasts=tuple(monthly_forecasts),
            annual_summary=summary,
        )

    @staticmethod
    def _validate(
        months: int,
        projected_monthly_revenue: Optional[Money],
        seasonality: Decimal,
        growth: Decimal,
    ) -> None:
        if isinstance(months, bool) or not isinstance(months, int):
            raise ValidationError("Forecast months must be an integer", months=repr(months))
        if not 1 <= months <= MAX_FORECAST_MONTHS:
            raise ValidationError(
                f"Forecast months must be between 1 and {MAX_FORECAST_MONTHS}",
                months=months,
            )
        if projected_monthly_revenue is not None and projected_monthly_revenue.centavos <= 0:
            raise ValidationError(
                "Projected monthly revenue must be greater than 0",
                projected_monthly_revenue=projected_monthly_revenue.centavos,
            )
        if not MIN_SEASONALITY <= seasonality <= MAX_SEASONALITY:
            raise ValidationError(
                f"Seasonality factor must be between {MIN_SEASONALITY} and {MAX_SEASONALITY}",
                seasonality_factor=str(seasonality),
            )
        if not Decimal("0") <= growth <= MAX_EXPENSE_GROWTH:
            raise ValidationError(
                f"Expected expense growth must be between 0 and {MAX_EXPENSE_GROWTH}",
                expected_expense_growth=str(growth),
            )

    @staticmethod
    def _profit_margin(revenue: Money, expenses: Money) -> Decimal:
        profit = revenue.subtract(expenses, allow_negative=True)
        return (profit.ratio_to(revenue) * 100).quantize(MARGIN_PRECISION, rounding=ROUND_HALF_UP)

    @staticmethod
    def _summarize(
        monthly_forecasts: Sequence[MonthlyForecast],
        totals: Dict[TaxRegime, Money],
        efforts: Dict[TaxRegime, int],
        always_eligible: set,
        reported: Sequence[TaxRegime],
    ) -> ForecastSummary:
        """Totals per reported regime; the recommendation weighs every regime."""
        revenue = Money.sum(m.projected_revenue for m in monthly_forecasts)
        expenses = Money.sum(m.projected_expenses for m in monthly_forecasts)

        candidates = [r for r in totals if r in always_eligible]
        recommended = None
        if candidates:
            recommended = min(
                candidates,
                key=lambda r: (totals[r].centavos, efforts[r], r.order),
            )

        return ForecastSummary(
            total_projected_revenue=revenue,
            total_projected_expenses=expenses,
            projected_profit=revenue.subtract(expenses, allow_negative=True),
            estimated_tax_by_regime={r: totals[r] for r in reported},
            recommended_regime=recommended,
        )
