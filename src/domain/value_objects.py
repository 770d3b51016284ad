"""
Domain Value Objects for the tax-regime guidance core.

Value objects are immutable objects that describe characteristics of a thing,
but have no conceptual identity. They are defined by their attributes.

All monetary fields are Money (integer centavos); rates are Decimal fractions.
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .money import Money


# =============================================================================
# ENUMS
# =============================================================================

class _OrderedEnum(str, Enum):
    """str Enum whose declaration order is meaningful for tie-breaks."""

    @property
    def order(self) -> int:
        return list(type(self)).index(self)


class TaxRegime(_OrderedEnum):
    """Brazilian corporate tax regimes, in tie-break order."""
    SIMPLES_NACIONAL = "SIMPLES_NACIONAL"
    LUCRO_PRESUMIDO = "LUCRO_PRESUMIDO"
    LUCRO_REAL = "LUCRO_REAL"

    @property
    def label(self) -> str:
        return _REGIME_LABELS[self]


_REGIME_LABELS = {
    TaxRegime.SIMPLES_NACIONAL: "Simples Nacional",
    TaxRegime.LUCRO_PRESUMIDO: "Lucro Presumido",
    TaxRegime.LUCRO_REAL: "Lucro Real",
}


class AnalysisType(str, Enum):
    """Period covered by the financial figures of an analysis."""
    QUARTERLY = "QUARTERLY"
    ANNUAL = "ANNUAL"
    CUSTOM = "CUSTOM"


class OpportunityCategory(_OrderedEnum):
    """Categories of optimization opportunities, in presentation order."""
    DEDUCTION = "DEDUCTION"
    CREDIT = "CREDIT"
    TIMING = "TIMING"
    EXPENSE_OPTIMIZATION = "EXPENSE_OPTIMIZATION"


class RiskLevel(_OrderedEnum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class EffortLevel(_OrderedEnum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


# Sectors with dedicated rate tables; anything else uses DEFAULT
KNOWN_SECTORS = ("COMÉRCIO", "INDÚSTRIA", "SERVIÇO", "TRANSPORTES", "INTERMEDIAÇÃO")


# =============================================================================
# FINANCIAL INPUT
# =============================================================================

class FinancialInput(BaseModel):
    """
    Financial figures of one company for one analysis.

    Immutable: once a comparison has been run against it, a later edit
    produces a new analysis revision instead of mutating this object.
    """
    model_config = ConfigDict(frozen=True)

    company_id: str = Field(min_length=1)
    year: int = Field(ge=2000, le=2050)
    gross_revenue: Money = Field(description="Gross revenue, must be > 0")
    expenses: Money = Field(default_factory=Money.zero)
    deductions: Money = Field(default_factory=Money.zero)
    tax_credits: Money = Field(default_factory=Money.zero)
    previous_payments: Money = Field(default_factory=Money.zero)
    sector: str = Field(default="SERVIÇO", min_length=1)
    analysis_type: AnalysisType = AnalysisType.ANNUAL

    # Baseline for savings; None means the engine default (Simples Nacional)
    current_regime: Optional[TaxRegime] = None

    # Company context used by opportunity rules
    state: Optional[str] = Field(default=None, description="UF, e.g. 'BA'")
    activity_description: Optional[str] = Field(default=None, max_length=1000)

    @field_validator("gross_revenue")
    @classmethod
    def _revenue_positive(cls, v: Money) -> Money:
        if v.centavos <= 0:
            raise ValueError("Revenue must be greater than 0")
        return v

    @field_validator("expenses", "deductions", "tax_credits", "previous_payments")
    @classmethod
    def _non_negative(cls, v: Money) -> Money:
        if v.is_negative:
            raise ValueError("Amount must be non-negative")
        return v

    @field_validator("sector", mode="before")
    @classmethod
    def _normalize_sector(cls, v):
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @field_validator("state", mode="before")
    @classmethod
    def _normalize_state(cls, v):
        if v is None:
            return None
        v = str(v).strip().upper()
        if len(v) != 2 or not v.isalpha():
            raise ValueError("State must be a two-letter UF code")
        return v

    @property
    def sector_key(self) -> str:
        """Sector used for rate-table lookups."""
        return self.sector if self.sector in KNOWN_SECTORS else "DEFAULT"


# =============================================================================
# REGIME RESULTS / COMPARISON
# =============================================================================

class RegimeResult(BaseModel):
    """Liability of one regime for one financial input."""
    model_config = ConfigDict(frozen=True)

    regime: TaxRegime
    tax_rate: Decimal = Field(ge=0, le=1, description="Effective rate as a fraction")
    tax_liability: Money
    monthly_payment: Money
    quarterly_payment: Optional[Money] = None
    balance_due: Money = Field(
        default_factory=Money.zero,
        description="Liability minus previous payments, floored at zero"
    )
    advantages: Tuple[str, ...] = ()
    disadvantages: Tuple[str, ...] = ()
    eligible: bool = True
    eligibility_notes: Optional[str] = None

    # Bookkeeping burden of operating under the regime; ranking tie-break
    compliance_effort: Optional[EffortLevel] = None

    @field_validator("tax_liability", "monthly_payment", "quarterly_payment", "balance_due")
    @classmethod
    def _non_negative(cls, v: Optional[Money]) -> Optional[Money]:
        if v is not None and v.is_negative:
            raise ValueError("Amount must be non-negative")
        return v


class Comparison(BaseModel):
    """
    Result of running every regime for one analysis.

    Invariants:
    - Exactly one RegimeResult per TaxRegime
    - recommended_regime is eligible (None only when nothing is eligible)
    - estimated_annual_savings >= 0
    """
    model_config = ConfigDict(frozen=True)

    analysis_id: Optional[str] = None
    regimes: Dict[TaxRegime, RegimeResult]
    recommended_regime: Optional[TaxRegime] = None
    baseline_regime: TaxRegime = TaxRegime.SIMPLES_NACIONAL
    estimated_annual_savings: Money = Field(default_factory=Money.zero)
    ranking: Tuple[TaxRegime, ...] = Field(
        default=(),
        description="Eligible regimes, best first"
    )

    @model_validator(mode="after")
    def _check_invariants(self) -> "Comparison":
        if set(self.regimes) != set(TaxRegime):
            raise ValueError("Comparison must hold exactly one result per regime")
        for regime, result in self.regimes.items():
            if result.regime != regime:
                raise ValueError(f"Result for {result.regime.value} stored under {regime.value}")
        if self.recommended_regime is not None:
            if not self.regimes[self.recommended_regime].eligible:
                raise ValueError("Recommended regime must be eligible")
        elif self.has_eligible_regime:
            raise ValueError("A recommendation is required when a regime is eligible")
        if self.estimated_annual_savings.is_negative:
            raise ValueError("Estimated savings cannot be negative")
        return self

    @property
    def has_eligible_regime(self) -> bool:
        return any(r.eligible for r in self.regimes.values())

    @property
    def eligible_results(self) -> List[RegimeResult]:
        return [self.regimes[r] for r in TaxRegime if self.regimes[r].eligible]

    @property
    def recommended(self) -> Optional[RegimeResult]:
        if self.recommended_regime is None:
            return None
        return self.regimes[self.recommended_regime]

    @property
    def baseline(self) -> RegimeResult:
        return self.regimes[self.baseline_regime]


# =============================================================================
# OPPORTUNITIES
# =============================================================================

class Opportunity(BaseModel):
    """A scored action that could reduce the company's tax burden."""
    model_config = ConfigDict(frozen=True)

    id: str
    rule_id: str
    category: OpportunityCategory
    title: str
    description: str
    estimated_savings: Money
    implementation_cost: Money = Field(default_factory=Money.zero)
    roi: Decimal = Field(ge=0, description="Return on investment, percent")
    risk_level: RiskLevel
    implementation_effort: EffortLevel
    timeline: str
    priority: int = Field(ge=0, le=10)
    requirements: Tuple[str, ...] = ()
    applicable_regimes: Tuple[TaxRegime, ...] = ()
    legal_basis: Optional[str] = None
    action_items: Tuple[str, ...] = ()

    @field_validator("estimated_savings", "implementation_cost")
    @classmethod
    def _non_negative(cls, v: Money) -> Money:
        if v.is_negative:
            raise ValueError("Amount must be non-negative")
        return v

    @property
    def implementable_now(self) -> bool:
        return (
            self.implementation_effort == EffortLevel.LOW
            and self.risk_level != RiskLevel.HIGH
        )


class OpportunitySummary(BaseModel):
    """Aggregate figures over a list of opportunities."""
    model_config = ConfigDict(frozen=True)

    total_opportunities: int = 0
    potential_annual_savings: Money = Field(default_factory=Money.zero)
    high_priority_count: int = 0
    implementable_now: int = 0
