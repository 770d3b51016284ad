"""
Domain layer for the tax-regime guidance core.

This module contains the core domain models, aggregates, value objects,
events, errors and port interfaces following Domain-Driven Design principles.
"""

from .errors import (
    ErrorKind,
    DomainError,
    ValidationError,
    NoEligibleRegime,
    InvalidStateTransition,
    ConflictError,
    Unauthorized,
    AccountantUnavailable,
    NotFound,
    NegativeResult,
)
from .money import Money
from .value_objects import (
    TaxRegime,
    AnalysisType,
    OpportunityCategory,
    RiskLevel,
    EffortLevel,
    FinancialInput,
    RegimeResult,
    Comparison,
    Opportunity,
    OpportunitySummary,
)
from .aggregates import (
    TaxAnalysis,
    AnalysisStatus,
    AdvisoryRequest,
    AdvisoryStatus,
    RequestType,
    ReviewStatus,
    VALID_TRANSITIONS,
    can_transition,
)
from .events import (
    DomainEvent,
    EventType,
    AnalysisCompleted,
    AnalysisRevised,
    AdvisoryRequested,
    AdvisoryAssigned,
    AdvisoryReviewed,
    AdvisoryCancelled,
    AdvisoryNotification,
)
from .repositories import (
    AdvisoryFilter,
    IAdvisoryRepository,
    IAnalysisRepository,
    NotificationPort,
    AccountantAvailability,
    CompanyDirectory,
)
from .event_bus import (
    EventBus,
    AuditEventRecorder,
    LoggingEventHandler,
    get_event_bus,
    publish_event,
    reset_event_bus,
)

__all__ = [
    # Errors
    "ErrorKind",
    "DomainError",
    "ValidationError",
    "NoEligibleRegime",
    "InvalidStateTransition",
    "ConflictError",
    "Unauthorized",
    "AccountantUnavailable",
    "NotFound",
    "NegativeResult",
    # Value Objects
    "Money",
    "TaxRegime",
    "AnalysisType",
    "OpportunityCategory",
    "RiskLevel",
    "EffortLevel",
    "FinancialInput",
    "RegimeResult",
    "Comparison",
    "Opportunity",
    "OpportunitySummary",
    # Aggregates
    "TaxAnalysis",
    "AnalysisStatus",
    "AdvisoryRequest",
    "AdvisoryStatus",
    "RequestType",
    "ReviewStatus",
    "VALID_TRANSITIONS",
    "can_transition",
    # Events
    "DomainEvent",
    "EventType",
    "AnalysisCompleted",
    "AnalysisRevised",
    "AdvisoryRequested",
    "AdvisoryAssigned",
    "AdvisoryReviewed",
    "AdvisoryCancelled",
    "AdvisoryNotification",
    # Ports
    "AdvisoryFilter",
    "IAdvisoryRepository",
    "IAnalysisRepository",
    "NotificationPort",
    "AccountantAvailability",
    "CompanyDirectory",
    # Event Bus
    "EventBus",
    "AuditEventRecorder",
    "LoggingEventHandler",
    "get_event_bus",
    "publish_event",
    "reset_event_bus",
]
