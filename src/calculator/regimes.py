"""
Default regime calculators.

Each calculator is a pure strategy: FinancialInput in, RegimeResult out.
The comparison engine receives them as a mapping keyed by TaxRegime, so a
law revision or a new jurisdiction rule-set is a new calculator, not a
change to the engine.

The formulas are the simplified planning rules of the product:

- Simples Nacional: sector rate x gross revenue, single DAS payment
- Lucro Presumido: IRPJ + CSLL over a presumed margin of revenue
- Lucro Real: IRPJ + CSLL over actual profit, minus tax credits

They are not a statement of tax law; swap them for a certified engine
where exact figures matter.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Optional, Tuple

from domain import (
    EffortLevel,
    FinancialInput,
    Money,
    RegimeResult,
    TaxRegime,
)

from calculator.regime_config import RegimeYearConfig


RATE_PRECISION = Decimal("0.0001")

MONTHS_PER_YEAR = 12
QUARTERS_PER_YEAR = 4


def effective_rate(liability: Money, revenue: Money) -> Decimal:
    """Liability as a fraction of revenue, clamped to [0, 1]."""
    rate = liability.ratio_to(revenue).quantize(RATE_PRECISION, rounding=ROUND_HALF_UP)
    return max(Decimal("0"), min(Decimal("1"), rate))


class RegimeCalculator(ABC):
    """
    Strategy computing the liability of one regime.

    Implementations must be pure: no I/O, no clock, no shared mutable
    state. Ineligibility is reported through RegimeResult.eligible,
    never raised.
    """

    regime: TaxRegime

    @abstractmethod
    def compute(self, financial_input: FinancialInput) -> RegimeResult:
        """
        Compute the annual liability for the given input.

        Args:
            financial_input: Normalized (annual) financial figures

        Returns:
            RegimeResult for self.regime
        """
        pass


# =============================================================================
# SIMPLES NACIONAL
# =============================================================================

class SimplesNacionalCalculator(RegimeCalculator):
    """Unified DAS rate by sector, limited by the annual revenue ceiling."""

    regime = TaxRegime.SIMPLES_NACIONAL

    ADVANTAGES = (
        "Single unified tax (replaces IRPJ, CSLL, IPI, INSS)",
        "Simplified accounting",
        "Lower administrative burden",
        "Fixed monthly payments (DAS)",
        "Eligible companies with revenue < R$4.8M",
    )
    DISADVANTAGES = (
        "Cannot recover VAT credit",
        "Higher effective rate for high-margin businesses",
        "Limited to certain sectors",
        "Cannot offset losses",
    )

    def __init__(self, config: Optional[RegimeYearConfig] = None):
        self.config = config or RegimeYearConfig.for_2024()

    def compute(self, financial_input: FinancialInput) -> RegimeResult:
        rate = self.config.simples_rate(financial_input.sector_key)
        liability = financial_input.gross_revenue.multiply_by_rate(rate)

        ceiling = self.config.simples_revenue_ceiling
        eligible = financial_input.gross_revenue <= ceiling
        notes = None
        if not eligible:
            notes = (
                f"Gross revenue {financial_input.gross_revenue} exceeds the "
                f"Simples Nacional ceiling of {ceiling}"
            )

        return RegimeResult(
            regime=self.regime,
            tax_rate=effective_rate(liability, financial_input.gross_revenue),
            tax_liability=liability,
            monthly_payment=liability.divide(MONTHS_PER_YEAR),
            quarterly_payment=None,
            balance_due=liability.subtract_floor(financial_input.previous_payments),
            advantages=self.ADVANTAGES,
            disadvantages=self.DISADVANTAGES,
            eligible=eligible,
            eligibility_notes=notes,
            compliance_effort=EffortLevel.LOW,
        )


# =============================================================================
# LUCRO PRESUMIDO / LUCRO REAL
# =============================================================================

class _FederalProfitCalculator(RegimeCalculator):
    """Shared IRPJ + CSLL computation over an annual profit base."""

    def __init__(self, config: Optional[RegimeYearConfig] = None):
        self.config = config or RegimeYearConfig.for_2024()

    def federal_taxes(self, profit: Money) -> Tuple[Money, Money]:
        """
        IRPJ and CSLL over an annual profit.

        The IRPJ surcharge applies to the profit exceeding the monthly
        threshold times twelve.
        """
        annual_threshold = self.config.irpj_additional_monthly_threshold.multiply(MONTHS_PER_YEAR)
        excess = profit.subtract_floor(annual_threshold)

        irpj = profit.multiply_by_rate(self.config.irpj_rate).add(
            excess.multiply_by_rate(self.config.irpj_additional_rate)
        )
        csll = profit.multiply_by_rate(self.config.csll_rate)
        return irpj, csll

    def build_result(
        self,
        financial_input: FinancialInput,
        liability: Money,
        eligible: bool,
        notes: Optional[str],
        advantages: Tuple[str, ...],
        disadvantages: Tuple[str, ...],
        effort: EffortLevel,
    ) -> RegimeResult:
        return RegimeResult(
            regime=self.regime,
            tax_rate=effective_rate(liability, financial_input.gross_revenue),
            tax_liability=liability,
            monthly_payment=liability.divide(MONTHS_PER_YEAR),
            quarterly_payment=liability.divide(QUARTERS_PER_YEAR),
            balance_due=liability.subtract_floor(financial_input.previous_payments),
            advantages=advantages,
            disadvantages=disadvantages,
            eligible=eligible,
            eligibility_notes=notes,
            compliance_effort=effort,
        )


class LucroPresumidoCalculator(_FederalProfitCalculator):
    """Federal taxes over a presumed margin of revenue."""

    regime = TaxRegime.LUCRO_PRESUMIDO

    ADVANTAGES = (
        "Moderate tax rate (34% federal)",
        "Simple calculation (fixed profit margin)",
        "Quarterly estimated payments",
        "No detailed accounting required",
        "Can be elected by any company",
    )
    DISADVANTAGES = (
        "Presumed profit fixed regardless of actual profit",
        "Cannot recover VAT credit",
        "Fixed margins may not match reality",
        "More tax if actual profit is low",
        "Cannot offset previous losses",
    )

    def presumed_profit(self, financial_input: FinancialInput) -> Money:
        margin = self.config.presumed_margin(financial_input.sector_key)
        return financial_input.gross_revenue.multiply_by_rate(margin)

    def compute(self, financial_input: FinancialInput) -> RegimeResult:
        irpj, csll = self.federal_taxes(self.presumed_profit(financial_input))
        liability = irpj.add(csll)

        ceiling = self.config.presumido_revenue_ceiling
        eligible = financial_input.gross_revenue <= ceiling
        notes = None
        if not eligible:
            notes = (
                f"Gross revenue {financial_input.gross_revenue} exceeds the "
                f"Lucro Presumido ceiling of {ceiling}; Lucro Real is mandatory"
            )

        return self.build_result(
            financial_input, liability, eligible, notes,
            self.ADVANTAGES, self.DISADVANTAGES, EffortLevel.MEDIUM,
        )


class LucroRealCalculator(_FederalProfitCalculator):
    """Federal taxes over actual profit; always available."""

    regime = TaxRegime.LUCRO_REAL

    ADVANTAGES = (
        "Lower rate if profit is low (34% federal)",
        "Can recover VAT credit",
        "Tax based on actual profit",
        "Can offset losses",
        "Can utilize tax credits",
        "Required for companies > R$78M revenue",
    )
    DISADVANTAGES = (
        "Requires detailed accounting",
        "More complex calculations",
        "Higher tax if profit is high",
        "Quarterly estimated payments required",
        "Annual reconciliation needed",
    )

    def actual_profit(self, financial_input: FinancialInput) -> Money:
        costs = financial_input.expenses.add(financial_input.deductions)
        return financial_input.gross_revenue.subtract_floor(costs)

    def compute(self, financial_input: FinancialInput) -> RegimeResult:
        irpj, csll = self.federal_taxes(self.actual_profit(financial_input))
        # Credits cannot push the liability below zero
        liability = irpj.add(csll).subtract_floor(financial_input.tax_credits)

        return self.build_result(
            financial_input, liability, True, None,
            self.ADVANTAGES, self.DISADVANTAGES, EffortLevel.HIGH,
        )


def default_calculators(
    config: Optional[RegimeYearConfig] = None,
) -> Dict[TaxRegime, RegimeCalculator]:
    """One default calculator per regime, sharing the same config."""
    config = config or RegimeYearConfig.for_2024()
    return {
        TaxRegime.SIMPLES_NACIONAL: SimplesNacionalCalculator(config),
        TaxRegime.LUCRO_PRESUMIDO: LucroPresumidoCalculator(config),
        TaxRegime.LUCRO_REAL: LucroRealCalculator(config),
    }
