"""
Domain Events for the tax-regime guidance core.

Domain events represent something that happened in the domain that domain
experts care about. They are immutable records of past occurrences.

Events are used for:
1. Audit trails - history of every advisory transition
2. Integration - triggering side effects (notifications, analysis status)
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


class EventType(str, Enum):
    """Types of domain events."""
    # Analysis Events
    ANALYSIS_COMPLETED = "analysis.completed"
    ANALYSIS_REVISED = "analysis.revised"

    # Advisory Events
    ADVISORY_REQUESTED = "advisory.requested"
    ADVISORY_ASSIGNED = "advisory.assigned"
    ADVISORY_REVIEWED = "advisory.reviewed"
    ADVISORY_CANCELLED = "advisory.cancelled"

    # Outbound notifications
    NOTIFICATION = "notification.emitted"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DomainEvent(BaseModel):
    """
    Base class for all domain events.

    All events are immutable and contain:
    - Unique event ID
    - When the event occurred
    - Metadata about context (user, correlation id, etc.)
    """
    model_config = ConfigDict(frozen=True)

    event_id: UUID = Field(default_factory=uuid4)
    event_type: EventType
    occurred_at: datetime = Field(default_factory=_utcnow)
    version: int = Field(default=1, description="Event schema version")

    metadata: Dict[str, Any] = Field(
        default_factory=dict,
        description="Additional context (user_id, correlation_id, etc.)"
    )

    aggregate_id: Optional[str] = Field(
        default=None,
        description="ID of the aggregate this event belongs to"
    )
    aggregate_type: Optional[str] = Field(
        default=None,
        description="Type of aggregate (analysis, advisory_request)"
    )


# =============================================================================
# ANALYSIS EVENTS
# =============================================================================

class AnalysisCompleted(DomainEvent):
    """Event raised when a comparison and its opportunities are stored."""
    event_type: EventType = EventType.ANALYSIS_COMPLETED
    aggregate_type: str = "analysis"

    analysis_id: str
    company_id: str
    revision: int
    recommended_regime: Optional[str] = None
    estimated_annual_savings: int = Field(default=0, description="Centavos")
    opportunity_count: int = 0


class AnalysisRevised(DomainEvent):
    """Event raised when an analysis is superseded by a new revision."""
    event_type: EventType = EventType.ANALYSIS_REVISED
    aggregate_type: str = "analysis"

    analysis_id: str
    parent_analysis_id: str
    company_id: str
    revision: int
    changed_fields: List[str] = Field(default_factory=list)


# =============================================================================
# ADVISORY EVENTS
# =============================================================================

class AdvisoryRequested(DomainEvent):
    """Event raised when a business owner asks for a review."""
    event_type: EventType = EventType.ADVISORY_REQUESTED
    aggregate_type: str = "advisory_request"

    request_id: str
    company_id: str
    analysis_id: str
    requested_by: str
    request_type: str


class AdvisoryAssigned(DomainEvent):
    """Event raised when an accountant is assigned to a request."""
    event_type: EventType = EventType.ADVISORY_ASSIGNED
    aggregate_type: str = "advisory_request"

    request_id: str
    accountant_id: str
    assigned_by: str


class AdvisoryReviewed(DomainEvent):
    """Event raised when the assigned accountant submits the parecer."""
    event_type: EventType = EventType.ADVISORY_REVIEWED
    aggregate_type: str = "advisory_request"

    request_id: str
    company_id: str
    analysis_id: str
    accountant_id: str
    review_status: str
    recommendation_count: int = 0


class AdvisoryCancelled(DomainEvent):
    """Event raised when a request is cancelled before review."""
    event_type: EventType = EventType.ADVISORY_CANCELLED
    aggregate_type: str = "advisory_request"

    request_id: str
    cancelled_by: str
    previous_status: str


# =============================================================================
# NOTIFICATION EVENTS
# =============================================================================

class AdvisoryNotification(DomainEvent):
    """Outbound message addressed to a user, queued for delivery elsewhere."""
    event_type: EventType = EventType.NOTIFICATION
    aggregate_type: str = "notification"

    user_id: str
    notification_type: str
    payload: Dict[str, Any] = Field(default_factory=dict)
