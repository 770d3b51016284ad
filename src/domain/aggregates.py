"""
Domain Aggregates for the tax-regime guidance core.

Aggregates are clusters of domain objects that are treated as a single unit
for data changes. Each aggregate has a root entity that controls access to
other entities within the boundary.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Tuple
from uuid import uuid4

from pydantic import BaseModel, Field

from .value_objects import (
    Comparison,
    FinancialInput,
    Opportunity,
    OpportunitySummary,
)


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid4())


# =============================================================================
# TAX ANALYSIS AGGREGATE
# =============================================================================

class AnalysisStatus(str, Enum):
    """Status of a tax analysis."""
    DRAFT = "DRAFT"
    COMPLETED = "COMPLETED"  # Comparison and opportunities computed
    REVIEWED = "REVIEWED"  # An accountant signed off on it
    ARCHIVED = "ARCHIVED"  # Superseded by a later revision


class TaxAnalysis(BaseModel):
    """
    Tax Analysis Aggregate Root.

    One immutable run of the comparison and opportunity engines over one
    FinancialInput. Editing the figures never touches an existing analysis:
    a new revision is created pointing back at its parent, so the
    comparison an accountant reviewed stays exactly as it was.
    """

    analysis_id: str = Field(default_factory=new_id)
    company_id: str
    revision: int = Field(default=1, ge=1)
    parent_analysis_id: Optional[str] = None

    financial_input: FinancialInput
    comparison: Optional[Comparison] = None
    opportunities: Tuple[Opportunity, ...] = ()
    summary: OpportunitySummary = Field(default_factory=OpportunitySummary)

    status: AnalysisStatus = AnalysisStatus.DRAFT
    created_at: datetime = Field(default_factory=utcnow)
    created_by: Optional[str] = None

    @property
    def year(self) -> int:
        return self.financial_input.year

    @property
    def has_comparison(self) -> bool:
        return self.comparison is not None


# =============================================================================
# ADVISORY REQUEST AGGREGATE
# =============================================================================

class AdvisoryStatus(str, Enum):
    """Lifecycle of an advisory request."""
    PENDING = "PENDING"
    ASSIGNED = "ASSIGNED"
    REVIEWED = "REVIEWED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return not VALID_TRANSITIONS[self]

    @property
    def label(self) -> str:
        return _STATUS_LABELS[self]


# Valid status transitions; terminal states map to nothing
VALID_TRANSITIONS: Dict[AdvisoryStatus, List[AdvisoryStatus]] = {
    AdvisoryStatus.PENDING: [AdvisoryStatus.ASSIGNED, AdvisoryStatus.CANCELLED],
    AdvisoryStatus.ASSIGNED: [AdvisoryStatus.REVIEWED, AdvisoryStatus.CANCELLED],
    AdvisoryStatus.REVIEWED: [],
    AdvisoryStatus.CANCELLED: [],
}

_STATUS_LABELS = {
    AdvisoryStatus.PENDING: "Aguardando",
    AdvisoryStatus.ASSIGNED: "Em análise",
    AdvisoryStatus.REVIEWED: "Analisado",
    AdvisoryStatus.CANCELLED: "Cancelado",
}


def can_transition(current: AdvisoryStatus, target: AdvisoryStatus) -> bool:
    return target in VALID_TRANSITIONS[current]


class RequestType(str, Enum):
    TAX_REVIEW = "TAX_REVIEW"
    GENERAL_ADVISORY = "GENERAL_ADVISORY"

    @property
    def label(self) -> str:
        return {
            RequestType.TAX_REVIEW: "Análise Tributária",
            RequestType.GENERAL_ADVISORY: "Parecer Geral",
        }[self]


class ReviewStatus(str, Enum):
    """The accountant's verdict on the reviewed analysis."""
    APPROVED = "APPROVED"
    NEEDS_REVISION = "NEEDS_REVISION"
    REJECTED = "REJECTED"

    @property
    def label(self) -> str:
        return {
            ReviewStatus.APPROVED: "Aprovado",
            ReviewStatus.NEEDS_REVISION: "Revisão Necessária",
            ReviewStatus.REJECTED: "Rejeitado",
        }[self]


class AdvisoryRequest(BaseModel):
    """
    Advisory Request Aggregate Root.

    Created by a business owner against one analysis. Until it reaches a
    terminal state it is owned jointly by the requester (who may cancel)
    and the assigned accountant (who may review).

    Invariants:
    - status only moves along VALID_TRANSITIONS
    - assignment fields are set iff the request was ever ASSIGNED
    - review fields are set iff status == REVIEWED
    """

    # Identity
    id: str = Field(default_factory=new_id)
    company_id: str
    analysis_id: str
    requested_by: str
    request_type: RequestType = RequestType.TAX_REVIEW
    description: Optional[str] = None

    status: AdvisoryStatus = AdvisoryStatus.PENDING

    # Assignment
    assigned_accountant_id: Optional[str] = None
    assigned_at: Optional[datetime] = None
    assigned_by: Optional[str] = None

    # Review ("parecer")
    reviewed_at: Optional[datetime] = None
    reviewed_by: Optional[str] = None
    review_notes: Optional[str] = None
    review_recommendations: List[str] = Field(default_factory=list)
    review_status: Optional[ReviewStatus] = None

    # Cancellation
    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[str] = None

    # Metadata
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    version: int = Field(default=1, description="Optimistic locking version")

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def mark_assigned(self, accountant_id: str, assigned_by: str, at: datetime) -> None:
        self.status = AdvisoryStatus.ASSIGNED
        self.assigned_accountant_id = accountant_id
        self.assigned_by = assigned_by
        self.assigned_at = at
        self.updated_at = at

    def mark_reviewed(
        self,
        accountant_id: str,
        notes: str,
        recommendations: List[str],
        review_status: ReviewStatus,
        at: datetime,
    ) -> None:
        self.status = AdvisoryStatus.REVIEWED
        self.reviewed_by = accountant_id
        self.reviewed_at = at
        self.review_notes = notes
        self.review_recommendations = list(recommendations)
        self.review_status = review_status
        self.updated_at = at

    def mark_cancelled(self, cancelled_by: str, at: datetime) -> None:
        self.status = AdvisoryStatus.CANCELLED
        self.cancelled_by = cancelled_by
        self.cancelled_at = at
        self.updated_at = at

    def to_summary_dict(self) -> Dict[str, Optional[str]]:
        """Compact view for queue listings."""
        return {
            "id": self.id,
            "company_id": self.company_id,
            "analysis_id": self.analysis_id,
            "request_type": self.request_type.value,
            "status": self.status.value,
            "status_label": self.status.label,
            "assigned_accountant_id": self.assigned_accountant_id,
            "review_status": self.review_status.value if self.review_status else None,
        }
