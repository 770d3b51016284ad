"""Tax Regime Recommendation Engines.

This module provides the deterministic analysis behind a tax analysis:
- Regime comparison (Simples Nacional, Lucro Presumido, Lucro Real)
- Scored optimization opportunities
- Month-by-month regime forecasts
"""

from .regime_comparison import (
    RegimeComparisonEngine,
    build_analysis_details,
    compare_regimes,
    effort_rank,
    normalize_input,
    ranking_key,
)
from .opportunity_engine import (
    DEFAULT_RULES,
    HIGH_PRIORITY_THRESHOLD,
    OpportunityDraft,
    OpportunityEngine,
    RuleContext,
    calculate_roi,
    filter_opportunities,
    score_priority,
    summarize,
)
from .forecast import (
    ForecastEngine,
    ForecastSummary,
    MonthlyForecast,
    RegimeForecast,
    TaxForecast,
)

__all__ = [
    # Regime comparison
    "RegimeComparisonEngine",
    "build_analysis_details",
    "compare_regimes",
    "effort_rank",
    "normalize_input",
    "ranking_key",
    # Opportunities
    "DEFAULT_RULES",
    "HIGH_PRIORITY_THRESHOLD",
    "OpportunityDraft",
    "OpportunityEngine",
    "RuleContext",
    "calculate_roi",
    "filter_opportunities",
    "score_priority",
    "summarize",
    # Forecast
    "ForecastEngine",
    "ForecastSummary",
    "MonthlyForecast",
    "RegimeForecast",
    "TaxForecast",
]
