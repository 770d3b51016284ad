"""
Services Module - Application services for the tax-regime guidance core.

Application Services (orchestration):
- TaxAnalysisService: Analysis lifecycle, opportunities and forecasts

Infrastructure Services:
- Logging and observability (logging_config)
"""

from .logging_config import (
    AnalysisLogger,
    ContextLogger,
    JsonFormatter,
    ReadableFormatter,
    configure_from_settings,
    configure_logging,
    get_logger,
    log_context,
    log_performance,
)
from .tax_analysis_service import TaxAnalysisService

__all__ = [
    "TaxAnalysisService",
    "AnalysisLogger",
    "ContextLogger",
    "JsonFormatter",
    "ReadableFormatter",
    "configure_from_settings",
    "configure_logging",
    "get_logger",
    "log_context",
    "log_performance",
]
