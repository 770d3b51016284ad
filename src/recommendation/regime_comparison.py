"""Tax Regime Comparison Engine.

Runs every regime calculator for one financial input and picks the
regime a company should adopt:

- Simples Nacional (unified DAS)
- Lucro Presumido (presumed margin)
- Lucro Real (actual profit)

Ranking: lowest annual liability among eligible regimes; ties broken by
lower compliance effort, then by regime declaration order. Savings are
measured against the company's current regime, never against the most
expensive one.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Dict, List, Mapping, Optional, Tuple

from domain import (
    AnalysisType,
    Comparison,
    EffortLevel,
    FinancialInput,
    NoEligibleRegime,
    RegimeResult,
    TaxRegime,
    ValidationError,
)

from calculator.regime_config import RegimeYearConfig
from calculator.regimes import RegimeCalculator, default_calculators


logger = logging.getLogger(__name__)

QUARTERS_PER_YEAR = 4

_MONEY_FIELDS = (
    "gross_revenue",
    "expenses",
    "deductions",
    "tax_credits",
    "previous_payments",
)

# Results without an effort signal sort after those with one
_NO_EFFORT_RANK = len(EffortLevel)


def normalize_input(financial_input: FinancialInput) -> FinancialInput:
    """
    Bring a financial input to the annual basis the calculators expect.

    QUARTERLY figures are multiplied by four; ANNUAL and CUSTOM figures
    are used as given. The sector is already stripped and upper-cased by
    FinancialInput itself.
    """
    if financial_input.analysis_type != AnalysisType.QUARTERLY:
        return financial_input

    update = {
        name: getattr(financial_input, name).multiply(QUARTERS_PER_YEAR)
        for name in _MONEY_FIELDS
    }
    update["analysis_type"] = AnalysisType.ANNUAL
    return financial_input.model_copy(update=update)


def effort_rank(result: RegimeResult) -> int:
    """Compliance effort order; results without an effort signal sort last."""
    if result.compliance_effort is None:
        return _NO_EFFORT_RANK
    return result.compliance_effort.order


def ranking_key(result: RegimeResult) -> Tuple[int, int, int]:
    """Sort key: liability, then compliance effort, then declaration order."""
    return (result.tax_liability.centavos, effort_rank(result), result.regime.order)


class RegimeComparisonEngine:
    """
    Compares the three Brazilian corporate tax regimes.

    The engine is stateless apart from its configuration and may be
    shared across threads.

    Example:
        engine = RegimeComparisonEngine()
        comparison = engine.compare(financial_input)
        print(comparison.recommended_regime, comparison.estimated_annual_savings)
    """

    def __init__(
        self,
        calculators: Optional[Mapping[TaxRegime, RegimeCalculator]] = None,
        default_baseline: TaxRegime = TaxRegime.SIMPLES_NACIONAL,
        config: Optional[RegimeYearConfig] = None,
    ):
        """
        Initialize the engine.

        Args:
            calculators: Strategy per regime; defaults to the built-in calculators
            default_baseline: Regime assumed current when the input declares none
            config: Rates and ceilings for the built-in calculators
        """
        self.calculators = (
            dict(calculators) if calculators is not None else default_calculators(config)
        )
        self.default_baseline = default_baseline

    def compare(
        self,
        financial_input: FinancialInput,
        calculators: Optional[Mapping[TaxRegime, RegimeCalculator]] = None,
        analysis_id: Optional[str] = None,
    ) -> Comparison:
        """
        Run every regime and recommend the cheapest eligible one.

        Args:
            financial_input: Figures to compare
            calculators: Per-call override of the engine calculators
            analysis_id: Analysis the comparison belongs to, if stored

        Returns:
            Comparison with one result per regime

        Raises:
            ValidationError: If a regime has no calculator or a calculator
                returns a result for another regime
            NoEligibleRegime: If every regime is ineligible
        """
        results = self.evaluate(financial_input, calculators)
        ranking = self.rank(results)

        if not ranking:
            reasons = {
                regime.value: results[regime].eligibility_notes
                for regime in TaxRegime
            }
            logger.warning(
                f"No eligible regime for company {financial_input.company_id} "
                f"({financial_input.year})"
            )
            raise NoEligibleRegime(
                "No tax regime is eligible for the given financial input; "
                "review the revenue and sector figures",
                company_id=financial_input.company_id,
                reasons=reasons,
            )

        recommended = ranking[0]
        baseline = financial_input.current_regime or self.default_baseline
        savings = results[baseline].tax_liability.subtract_floor(
            results[recommended].tax_liability
        )

        logger.debug(
            f"Compared regimes for {financial_input.company_id}: "
            f"recommended={recommended.value}, baseline={baseline.value}, "
            f"savings={savings.centavos}"
        )

        return Comparison(
            analysis_id=analysis_id,
            regimes=results,
            recommended_regime=recommended,
            baseline_regime=baseline,
            estimated_annual_savings=savings,
            ranking=tuple(ranking),
        )

    def evaluate(
        self,
        financial_input: FinancialInput,
        calculators: Optional[Mapping[TaxRegime, RegimeCalculator]] = None,
    ) -> Dict[TaxRegime, RegimeResult]:
        """Run every calculator on the annualized input without ranking."""
        calculators = calculators if calculators is not None else self.calculators
        return self._run_calculators(normalize_input(financial_input), calculators)

    @staticmethod
    def rank(results: Mapping[TaxRegime, RegimeResult]) -> List[TaxRegime]:
        """Eligible regimes, best first."""
        eligible = [r for r in results.values() if r.eligible]
        return [r.regime for r in sorted(eligible, key=ranking_key)]

    def _run_calculators(
        self,
        financial_input: FinancialInput,
        calculators: Mapping[TaxRegime, RegimeCalculator],
    ) -> Dict[TaxRegime, RegimeResult]:
        results: Dict[TaxRegime, RegimeResult] = {}
        for regime in TaxRegime:
            calculator = calculators.get(regime)
            if calculator is None:
                raise ValidationError(
                    f"No calculator configured for {regime.value}",
                    regime=regime.value,
                )
            result = calculator.compute(financial_input)
            if result.regime != regime:
                raise ValidationError(
                    f"Calculator for {regime.value} returned a result for {result.regime.value}",
                    regime=regime.value,
                    returned=result.regime.value,
                )
            results[regime] = result
        return results


def compare_regimes(
    financial_input: FinancialInput,
    calculators: Optional[Mapping[TaxRegime, RegimeCalculator]] = None,
) -> Comparison:
    """Compare with a default engine. See RegimeComparisonEngine.compare."""
    return RegimeComparisonEngine(calculators=calculators).compare(financial_input)


# =============================================================================
# TEXT SUMMARY
# =============================================================================

def _percent(rate: Decimal) -> str:
    return f"{(rate * 100).quantize(Decimal('0.01'))}%".replace(".", ",")


def build_analysis_details(financial_input: FinancialInput, comparison: Comparison) -> str:
    """
    Plain-text comparison summary in Portuguese, stored alongside an
    analysis for the accountant who reviews it.
    """
    lines = [
        "ANÁLISE COMPARATIVA DE REGIMES FISCAIS",
        "=" * 38,
        "",
        f"Receita Bruta Anual: {normalize_input(financial_input).gross_revenue}",
        "",
    ]

    for regime in TaxRegime:
        result = comparison.regimes[regime]
        lines.append(f"{regime.label.upper()}:")
        lines.append(f"  - Alíquota Efetiva: {_percent(result.tax_rate)}")
        lines.append(f"  - Imposto Anual: {result.tax_liability}")
        lines.append(f"  - Parcela Mensal: {result.monthly_payment}")
        if not result.eligible:
            lines.append(f"  - Inelegível: {result.eligibility_notes or 'sem detalhes'}")
        lines.append("")

    lines.append("RECOMENDAÇÃO:")
    if comparison.recommended_regime is None:
        lines.append("  - Nenhum regime elegível")
    else:
        lines.append(f"  - Regime Recomendado: {comparison.recommended_regime.label}")
        lines.append(
            f"  - Economia Anual: {comparison.estimated_annual_savings} "
            f"vs {comparison.baseline_regime.label}"
        )
    lines.extend([
        "",
        "IMPORTANTE:",
        "  - Esta análise é informativa e não constitui consultoria fiscal",
        "  - Consulte um contador para decisão definitiva",
        "  - Considere fatores não-fiscais na decisão",
    ])
    return "\n".join(lines)
