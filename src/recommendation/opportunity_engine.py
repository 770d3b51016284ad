"""
Tax Opportunity Engine - rule-based tax savings identification.

Derives optimization opportunities from a completed regime comparison.
Each rule is independent and side-effect free; it looks at the
(annualized) financial input and the comparison and emits at most one
opportunity. A rule only fires when at least one regime it applies to is
eligible for the company.

Scoring (0-10):
    base 4
    + savings tier (0-4)
    + ROI bonus (0-2)
    - effort penalty (LOW 0, MEDIUM 1, HIGH 2)
    - risk penalty (LOW 0, MEDIUM 0.5, HIGH 1.5)
    rounded half-up and clamped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Callable, FrozenSet, List, Optional, Sequence, Tuple

from domain import (
    Comparison,
    EffortLevel,
    FinancialInput,
    Money,
    Opportunity,
    OpportunityCategory,
    OpportunitySummary,
    RiskLevel,
    TaxRegime,
)

from calculator.regime_config import RegimeYearConfig
from recommendation.regime_comparison import normalize_input


logger = logging.getLogger(__name__)


# =============================================================================
# SCORING
# =============================================================================

HIGH_PRIORITY_THRESHOLD = 8
MIN_PRIORITY = 0
MAX_PRIORITY = 10

BASE_SCORE = Decimal("4")

# (minimum savings, points), highest tier first
SAVINGS_TIERS: Tuple[Tuple[Money, int], ...] = (
    (Money(50_000_00), 4),
    (Money(20_000_00), 3),
    (Money(5_000_00), 2),
    (Money(1_000_00), 1),
)

MAX_ROI_BONUS = Decimal("2")
ROI_PER_BONUS_POINT = Decimal("100")

EFFORT_PENALTY = {
    EffortLevel.LOW: Decimal("0"),
    EffortLevel.MEDIUM: Decimal("1"),
    EffortLevel.HIGH: Decimal("2"),
}

RISK_PENALTY = {
    RiskLevel.LOW: Decimal("0"),
    RiskLevel.MEDIUM: Decimal("0.5"),
    RiskLevel.HIGH: Decimal("1.5"),
}

ROI_PRECISION = Decimal("0.01")


def calculate_roi(estimated_savings: Money, implementation_cost: Money) -> Decimal:
    """
    Return on investment as a percentage.

    100 when the opportunity costs nothing to implement; never negative.
    """
    if implementation_cost.is_zero:
        return Decimal("100")
    roi = (
        Decimal(estimated_savings.centavos - implementation_cost.centavos)
        / Decimal(implementation_cost.centavos)
        * 100
    )
    return max(Decimal("0"), roi.quantize(ROI_PRECISION, rounding=ROUND_HALF_UP))


def savings_points(estimated_savings: Money) -> int:
    for threshold, points in SAVINGS_TIERS:
        if estimated_savings >= threshold:
            return points
    return 0


def score_priority(
    estimated_savings: Money,
    roi: Decimal,
    effort: EffortLevel,
    risk: RiskLevel,
) -> int:
    """Priority score in [0, 10]; higher means act sooner."""
    roi_bonus = min(MAX_ROI_BONUS, roi / ROI_PER_BONUS_POINT)
    score = (
        BASE_SCORE
        + savings_points(estimated_savings)
        + roi_bonus
        - EFFORT_PENALTY[effort]
        - RISK_PENALTY[risk]
    )
    rounded = int(score.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    return max(MIN_PRIORITY, min(MAX_PRIORITY, rounded))


def sort_key(opportunity: Opportunity):
    """Priority desc, savings desc, category order, rule id."""
    return (
        -opportunity.priority,
        -opportunity.estimated_savings.centavos,
        opportunity.category.order,
        opportunity.rule_id,
    )


# =============================================================================
# RULES
# =============================================================================

NORTHEAST_STATES = frozenset({"BA", "SE", "PE", "AL", "PB", "RN", "CE", "PI", "MA"})
NORTH_STATES = frozenset({"AM", "RR", "AP", "PA", "TO", "AC", "RO"})

RD_KEYWORDS = ("TECNOLOG", "INOV", "PESQUISA", "SOFTWARE")
EXPORT_KEYWORDS = ("EXPORT", "INTERNACIONAL", "COMÉRCIO EXTERIOR")

PROFIT_REGIMES = (TaxRegime.LUCRO_REAL, TaxRegime.LUCRO_PRESUMIDO)


@dataclass(frozen=True)
class RuleContext:
    """What a rule may look at."""
    financial_input: FinancialInput  # annualized
    comparison: Comparison
    eligible_regimes: FrozenSet[TaxRegime]
    federal_rate: Decimal
    irpj_share: Decimal

    @property
    def profile_text(self) -> str:
        """Sector and activity description, upper-cased, for keyword rules."""
        parts = [self.financial_input.sector, self.financial_input.activity_description or ""]
        return " ".join(parts).upper()

    def best_liability(self, regimes: Sequence[TaxRegime]) -> Money:
        """Lowest liability among the eligible regimes in the list."""
        candidates = [
            self.comparison.regimes[r].tax_liability
            for r in regimes
            if r in self.eligible_regimes
        ]
        return min(candidates) if candidates else Money.zero()


@dataclass(frozen=True)
class OpportunityDraft:
    """Unscored opportunity emitted by a rule."""
    rule_id: str
    category: OpportunityCategory
    title: str
    description: str
    estimated_savings: Money
    implementation_cost: Money
    risk_level: RiskLevel
    implementation_effort: EffortLevel
    timeline: str
    applicable_regimes: Tuple[TaxRegime, ...] = PROFIT_REGIMES
    requirements: Tuple[str, ...] = ()
    legal_basis: Optional[str] = None
    action_items: Tuple[str, ...] = ()


Rule = Callable[[RuleContext], Optional[OpportunityDraft]]


def home_office_rule(ctx: RuleContext) -> Optional[OpportunityDraft]:
    """Deduct home office costs; 7% of expenses, capped at R$ 12k/year."""
    savings = min(ctx.financial_input.expenses.multiply_by_rate("0.07"), Money(12_000_00))
    if savings.is_zero:
        return None
    return OpportunityDraft(
        rule_id="home_office",
        category=OpportunityCategory.DEDUCTION,
        title="Home Office Deduction",
        description="Deduct home office expenses including rent, utilities, and internet",
        estimated_savings=savings,
        implementation_cost=Money.zero(),
        risk_level=RiskLevel.MEDIUM,
        implementation_effort=EffortLevel.LOW,
        timeline="Immediate",
        requirements=(
            "Work exclusively from home",
            "Document space allocation (percentage of house)",
            "Track utility proportions (electricity, water, internet)",
            "Keep rental contracts and utility bills",
        ),
        legal_basis="Art. 12-E, Lei nº 14.754/2023",
        action_items=(
            "Calculate home office percentage",
            "Gather utility bills and rental contract",
            "Document in tax records",
        ),
    )


def equipment_depreciation_rule(ctx: RuleContext) -> Optional[OpportunityDraft]:
    """Depreciate equipment when expenses exceed R$ 50k."""
    expenses = ctx.financial_input.expenses
    if expenses <= Money(50_000_00):
        return None
    return OpportunityDraft(
        rule_id="equipment_depreciation",
        category=OpportunityCategory.DEDUCTION,
        title="Equipment Depreciation",
        description="Depreciate business equipment, machinery, and furniture",
        estimated_savings=min(expenses.multiply_by_rate("0.05"), Money(50_000_00)),
        implementation_cost=Money(1_000_00),
        risk_level=RiskLevel.LOW,
        implementation_effort=EffortLevel.MEDIUM,
        timeline="30 days",
        requirements=(
            "Equipment cost > R$1,000",
            "Document purchase date, cost, and useful life",
            "Create depreciation schedule",
            "Keep equipment inventory",
        ),
        legal_basis="Art. 305-309, RIR/1999",
        action_items=(
            "Inventory all equipment and machinery",
            "Calculate depreciation schedules",
            "Create asset registry",
        ),
    )


def research_development_rule(ctx: RuleContext) -> Optional[OpportunityDraft]:
    """Lei do Bem credit for technology and innovation companies."""
    if not any(keyword in ctx.profile_text for keyword in RD_KEYWORDS):
        return None
    # 5% of expenses assumed R&D, 25% of that recovered
    savings = ctx.financial_input.expenses.multiply_by_rate("0.0125")
    if savings.is_zero:
        return None
    return OpportunityDraft(
        rule_id="research_development_credit",
        category=OpportunityCategory.CREDIT,
        title="Research & Development Tax Credit",
        description="Tax credit for R&D spending under Lei do Bem",
        estimated_savings=savings,
        implementation_cost=Money(5_000_00),
        risk_level=RiskLevel.MEDIUM,
        implementation_effort=EffortLevel.HIGH,
        timeline="Next quarter",
        applicable_regimes=(TaxRegime.LUCRO_REAL,),
        requirements=(
            "Document R&D projects and activities",
            "Track R&D-related expenses",
            "Annual compliance reporting",
            "Technical documentation of innovations",
        ),
        legal_basis="Lei nº 11.196/2005 (Lei do Bem)",
        action_items=(
            "Document all R&D projects",
            "Create expense tracking system",
            "Prepare compliance documentation",
        ),
    )


def regional_development_rule(ctx: RuleContext) -> Optional[OpportunityDraft]:
    """SUDENE/SUDAM reduction of up to 75% of IRPJ for North and Northeast."""
    state = ctx.financial_input.state
    if state in NORTHEAST_STATES:
        agency, basis = "SUDENE", "Lei Complementar nº 125/2007"
    elif state in NORTH_STATES:
        agency, basis = "SUDAM", "Lei Complementar nº 124/2007"
    else:
        return None

    regimes = PROFIT_REGIMES
    irpj = ctx.best_liability(regimes).multiply_by_rate(ctx.irpj_share)
    savings = irpj.multiply_by_rate("0.75")
    if savings.is_zero:
        return None
    return OpportunityDraft(
        rule_id="regional_development_credit",
        category=OpportunityCategory.CREDIT,
        title=f"{agency} Regional Development Credit",
        description=f"IRPJ reduction of up to 75% for businesses in the {agency} area",
        estimated_savings=savings,
        implementation_cost=Money(30_000_00),
        risk_level=RiskLevel.MEDIUM,
        implementation_effort=EffortLevel.HIGH,
        timeline="Next quarter",
        applicable_regimes=regimes,
        requirements=(
            f"Business located in the {agency} area",
            f"Meet {agency} income requirements",
            f"File {agency} pre-approval request",
            "Annual compliance reporting",
        ),
        legal_basis=basis,
        action_items=(
            f"Check {agency} eligibility",
            "File pre-approval request",
            "Engage regional tax advisor",
        ),
    )


def export_credit_rule(ctx: RuleContext) -> Optional[OpportunityDraft]:
    """Export incentives; assumes 10% export revenue with a 25% benefit."""
    if not any(keyword in ctx.profile_text for keyword in EXPORT_KEYWORDS):
        return None
    return OpportunityDraft(
        rule_id="export_credit",
        category=OpportunityCategory.CREDIT,
        title="Export Tax Credit",
        description="Tax credit or exemption for export-related activities",
        estimated_savings=ctx.financial_input.gross_revenue.multiply_by_rate("0.025"),
        implementation_cost=Money(10_000_00),
        risk_level=RiskLevel.LOW,
        implementation_effort=EffortLevel.MEDIUM,
        timeline="Immediate",
        requirements=(
            "Active export contracts",
            "Export documentation (invoices, shipping)",
            "Payment proof in foreign currency",
        ),
        legal_basis="Export incentives (PIS/COFINS exemption on exports)",
        action_items=(
            "Quantify export revenue",
            "Organize export documentation",
            "File export credit claims",
        ),
    )


def revenue_deferral_rule(ctx: RuleContext) -> Optional[OpportunityDraft]:
    """Defer 10% of revenue to next year; only above R$ 50k revenue."""
    revenue = ctx.financial_input.gross_revenue
    if revenue <= Money(50_000_00):
        return None
    return OpportunityDraft(
        rule_id="revenue_deferral",
        category=OpportunityCategory.TIMING,
        title="Strategic Revenue Deferral",
        description="Defer invoicing of large contracts to next year for tax optimization",
        estimated_savings=revenue.multiply_by_rate("0.10").multiply_by_rate(ctx.federal_rate),
        implementation_cost=Money.zero(),
        risk_level=RiskLevel.HIGH,
        implementation_effort=EffortLevel.MEDIUM,
        timeline="Next quarter",
        requirements=(
            "Large contracts > R$500k",
            "Flexible billing terms with clients",
            "Strong cash flow management",
            "Proper documentation of deferral",
        ),
        legal_basis="Revenue recognition (regime de competência)",
        action_items=(
            "Identify deferrable contracts",
            "Negotiate flexible payment terms",
            "Document commercial rationale",
        ),
    )


def expense_acceleration_rule(ctx: RuleContext) -> Optional[OpportunityDraft]:
    """Bring 15% of expenses (max R$ 50k) forward before year end."""
    accelerated = min(ctx.financial_input.expenses.multiply_by_rate("0.15"), Money(50_000_00))
    savings = accelerated.multiply_by_rate(ctx.federal_rate)
    if savings.is_zero:
        return None
    return OpportunityDraft(
        rule_id="expense_acceleration",
        category=OpportunityCategory.TIMING,
        title="Year-End Expense Acceleration",
        description="Accelerate deductible expenses before year-end for immediate tax benefit",
        estimated_savings=savings,
        implementation_cost=Money.zero(),
        risk_level=RiskLevel.LOW,
        implementation_effort=EffortLevel.LOW,
        timeline="Immediate",
        requirements=(
            "Planned expenses > R$100k",
            "Strong supplier relationships",
            "Available cash flow",
            "Documented business need",
        ),
        legal_basis="Expense recognition (regime de competência)",
        action_items=(
            "Identify discretionary expenses",
            "Negotiate delivery schedules",
            "Execute contracts before year-end",
        ),
    )


def contractor_rule(ctx: RuleContext) -> Optional[OpportunityDraft]:
    """Payroll (40% of expenses) above R$ 100k; 20% potential savings."""
    payroll = ctx.financial_input.expenses.multiply_by_rate("0.40")
    if payroll <= Money(100_000_00):
        return None
    return OpportunityDraft(
        rule_id="contractor_analysis",
        category=OpportunityCategory.EXPENSE_OPTIMIZATION,
        title="Contractor vs Employee Cost Analysis",
        description="Evaluate hiring contractors instead of employees for specific roles",
        estimated_savings=payroll.multiply_by_rate("0.20"),
        implementation_cost=Money(5_000_00),
        risk_level=RiskLevel.MEDIUM,
        implementation_effort=EffortLevel.MEDIUM,
        timeline="30 days",
        requirements=(
            "Regular service need (6+ months)",
            "Clearly defined project scope",
            "Contractor available in market",
            "Proper legal documentation",
        ),
        legal_basis="Lei nº 8.212/1991",
        action_items=(
            "Identify roles suitable for contractors",
            "Compare costs (employee vs contractor)",
            "Ensure legal compliance",
        ),
    )


def lease_vs_purchase_rule(ctx: RuleContext) -> Optional[OpportunityDraft]:
    """Equipment budget (10% of expenses) above R$ 20k; 15% potential savings."""
    budget = ctx.financial_input.expenses.multiply_by_rate("0.10")
    if budget <= Money(20_000_00):
        return None
    return OpportunityDraft(
        rule_id="lease_vs_purchase",
        category=OpportunityCategory.EXPENSE_OPTIMIZATION,
        title="Equipment Lease vs Purchase Analysis",
        description="Compare benefits of leasing vs purchasing equipment",
        estimated_savings=budget.multiply_by_rate("0.15"),
        implementation_cost=Money(2_000_00),
        risk_level=RiskLevel.LOW,
        implementation_effort=EffortLevel.MEDIUM,
        timeline="30 days",
        requirements=(
            "Equipment cost > R$500k",
            "Lease providers available",
            "Technology may become obsolete",
            "Regular equipment replacement",
        ),
        legal_basis="Art. 305-309 RIR/1999",
        action_items=(
            "Get lease quotes",
            "Compare TCO (total cost of ownership)",
            "Evaluate equipment lifecycle",
        ),
    )


def outsourcing_rule(ctx: RuleContext) -> Optional[OpportunityDraft]:
    """Service spending (20% of expenses) above R$ 50k; 25% potential savings."""
    services = ctx.financial_input.expenses.multiply_by_rate("0.20")
    if services <= Money(50_000_00):
        return None
    return OpportunityDraft(
        rule_id="service_outsourcing",
        category=OpportunityCategory.EXPENSE_OPTIMIZATION,
        title="Service Outsourcing Opportunity",
        description="Outsource non-core services to reduce overhead",
        estimated_savings=services.multiply_by_rate("0.25"),
        implementation_cost=Money(10_000_00),
        risk_level=RiskLevel.MEDIUM,
        implementation_effort=EffortLevel.HIGH,
        timeline="Next quarter",
        requirements=(
            "Non-core service spending > R$500k",
            "Quality service providers available",
            "Service SLA requirements clear",
            "Proper vendor contracts",
        ),
        legal_basis="Lei nº 12.973/2014",
        action_items=(
            "Identify non-core services",
            "Request RFP from vendors",
            "Evaluate vendor capabilities",
        ),
    )


DEFAULT_RULES: Tuple[Rule, ...] = (
    home_office_rule,
    equipment_depreciation_rule,
    research_development_rule,
    regional_development_rule,
    export_credit_rule,
    revenue_deferral_rule,
    expense_acceleration_rule,
    contractor_rule,
    lease_vs_purchase_rule,
    outsourcing_rule,
)


# =============================================================================
# ENGINE
# =============================================================================

class OpportunityEngine:
    """
    Runs the opportunity rules over a comparison and ranks the result.

    Stateless; safe to share across threads.
    """

    def __init__(
        self,
        rules: Optional[Sequence[Rule]] = None,
        config: Optional[RegimeYearConfig] = None,
    ):
        self.rules: Tuple[Rule, ...] = tuple(rules) if rules is not None else DEFAULT_RULES
        self.config = config or RegimeYearConfig.for_2024()

    def derive_opportunities(
        self,
        comparison: Comparison,
        financial_input: FinancialInput,
    ) -> Tuple[List[Opportunity], OpportunitySummary]:
        """
        Derive, score and sort the opportunities for a comparison.

        Args:
            comparison: Completed regime comparison
            financial_input: Input the comparison was computed from

        Returns:
            (opportunities sorted for presentation, summary)
        """
        if not comparison.has_eligible_regime:
            logger.info(
                f"No eligible regime for {financial_input.company_id}; "
                f"skipping opportunity rules"
            )
            return [], OpportunitySummary()

        ctx = RuleContext(
            financial_input=normalize_input(financial_input),
            comparison=comparison,
            eligible_regimes=frozenset(r.regime for r in comparison.eligible_results),
            federal_rate=self.config.federal_base_rate,
            irpj_share=self.config.irpj_share,
        )

        opportunities = []
        for rule in self.rules:
            draft = rule(ctx)
            if draft is None:
                continue
            if not ctx.eligible_regimes.intersection(draft.applicable_regimes):
                logger.debug(f"Rule {draft.rule_id} skipped: no applicable regime is eligible")
                continue
            opportunities.append(self._score(draft, comparison.analysis_id or financial_input.company_id))

        opportunities.sort(key=sort_key)
        return opportunities, summarize(opportunities)

    def _score(self, draft: OpportunityDraft, scope: str) -> Opportunity:
        roi = calculate_roi(draft.estimated_savings, draft.implementation_cost)
        return Opportunity(
            id=f"{scope}:{draft.rule_id}",
            rule_id=draft.rule_id,
            category=draft.category,
            title=draft.title,
            description=draft.description,
            estimated_savings=draft.estimated_savings,
            implementation_cost=draft.implementation_cost,
            roi=roi,
            risk_level=draft.risk_level,
            implementation_effort=draft.implementation_effort,
            timeline=draft.timeline,
            priority=score_priority(
                draft.estimated_savings, roi,
                draft.implementation_effort, draft.risk_level,
            ),
            requirements=draft.requirements,
            applicable_regimes=draft.applicable_regimes,
            legal_basis=draft.legal_basis,
            action_items=draft.action_items,
        )


# =============================================================================
# LISTING HELPERS
# =============================================================================

def summarize(opportunities: Sequence[Opportunity]) -> OpportunitySummary:
    """Aggregate figures over a list of opportunities."""
    return OpportunitySummary(
        total_opportunities=len(opportunities),
        potential_annual_savings=Money.sum(o.estimated_savings for o in opportunities),
        high_priority_count=sum(1 for o in opportunities if o.priority >= HIGH_PRIORITY_THRESHOLD),
        implementable_now=sum(1 for o in opportunities if o.implementable_now),
    )


def filter_opportunities(
    opportunities: Sequence[Opportunity],
    category: Optional[OpportunityCategory] = None,
    risk_level: Optional[RiskLevel] = None,
    min_roi: Optional[Decimal] = None,
) -> List[Opportunity]:
    """Filter keeping the original order; None filters match everything."""
    result = list(opportunities)
    if category is not None:
        result = [o for o in result if o.category == category]
    if risk_level is not None:
        result = [o for o in result if o.risk_level == risk_level]
    if min_roi is not None:
        threshold = Decimal(str(min_roi))
        result = [o for o in result if o.roi >= threshold]
    return result
