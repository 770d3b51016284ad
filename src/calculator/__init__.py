from .regime_config import RegimeYearConfig, SIMPLES_RATES, PRESUMED_MARGINS
from .regimes import (
    RegimeCalculator,
    SimplesNacionalCalculator,
    LucroPresumidoCalculator,
    LucroRealCalculator,
    default_calculators,
    effective_rate,
)

__all__ = [
    "RegimeYearConfig",
    "SIMPLES_RATES",
    "PRESUMED_MARGINS",
    "RegimeCalculator",
    "SimplesNacionalCalculator",
    "LucroPresumidoCalculator",
    "LucroRealCalculator",
    "default_calculators",
    "effective_rate",
]
