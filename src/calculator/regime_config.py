from __future__ import annotations

from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Dict, Optional

from domain.money import Money


# Sector-based unified rates for Simples Nacional
SIMPLES_RATES: Dict[str, Decimal] = {
    "COMÉRCIO": Decimal("0.048"),
    "INDÚSTRIA": Decimal("0.063"),
    "SERVIÇO": Decimal("0.088"),
    "TRANSPORTES": Decimal("0.042"),
    "INTERMEDIAÇÃO": Decimal("0.062"),
    "DEFAULT": Decimal("0.088"),
}

# Presumed profit margins for Lucro Presumido by activity
PRESUMED_MARGINS: Dict[str, Decimal] = {
    "COMÉRCIO": Decimal("0.08"),
    "INDÚSTRIA": Decimal("0.12"),
    "SERVIÇO": Decimal("0.32"),
    "TRANSPORTES": Decimal("0.16"),
    "INTERMEDIAÇÃO": Decimal("0.16"),
    "DEFAULT": Decimal("0.32"),
}


@dataclass(frozen=True)
class RegimeYearConfig:
    """
    Centralized constants for the default regime calculators.

    NOTE: Values here are simplified planning figures, not the full
    statutory tables. Review annually; the structure keeps updates
    localized and testable.
    """

    tax_year: int

    simples_rates: Dict[str, Decimal] = field(default_factory=lambda: dict(SIMPLES_RATES))
    presumed_margins: Dict[str, Decimal] = field(default_factory=lambda: dict(PRESUMED_MARGINS))

    # Federal income taxes (IRPJ + CSLL)
    irpj_rate: Decimal = Decimal("0.15")
    irpj_additional_rate: Decimal = Decimal("0.10")  # on profit above the monthly threshold
    irpj_additional_monthly_threshold: Money = Money(20_000_00)  # R$ 20.000/month
    csll_rate: Decimal = Decimal("0.09")

    # Eligibility ceilings (annual gross revenue)
    simples_revenue_ceiling: Money = Money(4_800_000_00)  # R$ 4,8 mi
    presumido_revenue_ceiling: Money = Money(78_000_000_00)  # R$ 78 mi

    def simples_rate(self, sector_key: str) -> Decimal:
        return self.simples_rates.get(sector_key, self.simples_rates["DEFAULT"])

    def presumed_margin(self, sector_key: str) -> Decimal:
        return self.presumed_margins.get(sector_key, self.presumed_margins["DEFAULT"])

    @property
    def federal_base_rate(self) -> Decimal:
        return self.irpj_rate + self.csll_rate

    @property
    def irpj_share(self) -> Decimal:
        """IRPJ portion of the base federal rate."""
        return self.irpj_rate / self.federal_base_rate

    def with_ceilings(
        self,
        simples: Optional[Money] = None,
        presumido: Optional[Money] = None,
    ) -> "RegimeYearConfig":
        """Copy with overridden eligibility ceilings (e.g. from settings)."""
        return replace(
            self,
            simples_revenue_ceiling=simples or self.simples_revenue_ceiling,
            presumido_revenue_ceiling=presumido or self.presumido_revenue_ceiling,
        )

    @staticmethod
    def for_2024() -> "RegimeYearConfig":
        return RegimeYearConfig(tax_year=2024)

    @staticmethod
    def for_year(tax_year: int) -> "RegimeYearConfig":
        """
        Config for a tax year. The ceilings and rates have not changed
        since 2018, so every year shares the same figures for now.
        """
        return RegimeYearConfig(tax_year=tax_year)
