"""
Advisory Request Workflow

Manages the lifecycle of an advisory request ("parecer") between a
business owner and an accountant:
- PENDING: Created by the owner against one completed analysis
- ASSIGNED: An available accountant has taken the request
- REVIEWED: The assigned accountant submitted the parecer (terminal)
- CANCELLED: Withdrawn before review (terminal)

Concurrency:
- Every transition is a single load + compare-and-swap commit through
  the repository; of two concurrent transitions from the same state,
  exactly one commits and the other fails with ConflictError
- No locks are held across the accountant's review

Side effects:
- Each committed transition publishes a domain event
- A successful review emits exactly one notification to the company
  owner; a notifier failure is logged and never undoes the review
"""

import logging
from collections import Counter
from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence, Union

from domain import (
    AccountantAvailability,
    AccountantUnavailable,
    AdvisoryAssigned,
    AdvisoryCancelled,
    AdvisoryFilter,
    AdvisoryRequest,
    AdvisoryRequested,
    AdvisoryReviewed,
    AdvisoryStatus,
    CompanyDirectory,
    DomainEvent,
    EventBus,
    IAdvisoryRepository,
    IAnalysisRepository,
    InvalidStateTransition,
    NotificationPort,
    RequestType,
    ReviewStatus,
    Unauthorized,
    ValidationError,
    can_transition,
    get_event_bus,
)
from domain.aggregates import utcnow

from config.settings import AdvisorySettings


logger = logging.getLogger(__name__)


REVIEW_NOTIFICATION_TYPE = "CONTADOR_MESSAGE"
REVIEW_NOTIFICATION_TITLE = "Parecer Contábil Disponível"


class AdvisoryWorkflow:
    """
    Request / assign / review / cancel state machine.

    Collaborators are injected ports; the workflow itself keeps no
    state between calls and may be shared across threads.
    """

    def __init__(
        self,
        repository: IAdvisoryRepository,
        analyses: IAnalysisRepository,
        availability: AccountantAvailability,
        notifier: NotificationPort,
        company_directory: Optional[CompanyDirectory] = None,
        event_bus: Optional[EventBus] = None,
        settings: Optional[AdvisorySettings] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        """
        Initialize the workflow.

        Args:
            repository: Advisory request storage (compare-and-swap commits)
            analyses: Analysis lookup used to validate new requests
            availability: Accountant capacity check
            notifier: Outbound notification port
            company_directory: Company owner lookup; the requester is
                notified when absent or when the owner is unknown
            event_bus: Bus for domain events (global bus by default)
            settings: Boundary limits (description length, notes length)
            clock: Source of transition timestamps
        """
        self._repository = repository
        self._analyses = analyses
        self._availability = availability
        self._notifier = notifier
        self._company_directory = company_directory
        self._event_bus = event_bus or get_event_bus()
        self._settings = settings or AdvisorySettings()
        self._clock = clock

    # =========================================================================
    # TRANSITIONS
    # =========================================================================

    def create(
        self,
        company_id: str,
        analysis_id: str,
        requested_by: str,
        request_type: Union[RequestType, str] = RequestType.TAX_REVIEW,
        description: Optional[str] = None,
    ) -> AdvisoryRequest:
        """
        Open a new request in PENDING.

        Raises:
            ValidationError: If an id is empty, the description is too long,
                or the analysis is unknown, has no comparison, or belongs
                to another company
        """
        self._require_id("company_id", company_id)
        self._require_id("analysis_id", analysis_id)
        self._require_id("requested_by", requested_by)
        request_type = self._parse_enum(RequestType, request_type, "request_type")

        if description is not None:
            description = description.strip() or None
        max_length = self._settings.description_max_length
        if description is not None and len(description) > max_length:
            raise ValidationError(
                f"Description must be at most {max_length} characters",
                length=len(description),
            )

        analysis = self._analyses.get(analysis_id)
        if analysis is None:
            raise ValidationError("Analysis not found", analysis_id=analysis_id)
        if analysis.company_id != company_id:
            raise ValidationError(
                "Analysis does not belong to this company",
                analysis_id=analysis_id,
                company_id=company_id,
            )
        if not analysis.has_comparison:
            raise ValidationError(
                "Analysis has no regime comparison to review",
                analysis_id=analysis_id,
            )

        now = self._clock()
        request = self._repository.add(AdvisoryRequest(
            company_id=company_id,
            analysis_id=analysis_id,
            requested_by=requested_by,
            request_type=request_type,
            description=description,
            created_at=now,
            updated_at=now,
        ))

        logger.info(f"Advisory request {request.id} created for company {company_id}")
        self._publish(AdvisoryRequested(
            aggregate_id=request.id,
            request_id=request.id,
            company_id=company_id,
            analysis_id=analysis_id,
            requested_by=requested_by,
            request_type=request_type.value,
            metadata={"user_id": requested_by},
        ))
        return request

    def assign(self, request_id: str, accountant_id: str, assigned_by: str) -> AdvisoryRequest:
        """
        Assign an available accountant to a PENDING request.

        Raises:
            NotFound: Unknown request
            InvalidStateTransition: Request is not PENDING
            AccountantUnavailable: The accountant cannot take the request
            ConflictError: A concurrent transition won
        """
        self._require_id("accountant_id", accountant_id)
        self._require_id("assigned_by", assigned_by)

        request = self._repository.load(request_id)
        self._check_transition(request, AdvisoryStatus.ASSIGNED)

        if not self._availability.is_available(accountant_id):
            logger.warning(f"Accountant {accountant_id} unavailable for request {request_id}")
            raise AccountantUnavailable(
                "Accountant is not available for new requests",
                accountant_id=accountant_id,
            )

        at = self._clock()
        committed = self._repository.commit(
            request_id,
            request.status,
            lambda r: r.mark_assigned(accountant_id, assigned_by, at),
        )

        logger.info(f"Advisory request {request_id} assigned to {accountant_id}")
        self._publish(AdvisoryAssigned(
            aggregate_id=request_id,
            request_id=request_id,
            accountant_id=accountant_id,
            assigned_by=assigned_by,
            metadata={"user_id": assigned_by},
        ))
        return committed

    def review(
        self,
        request_id: str,
        accountant_id: str,
        notes: str,
        recommendations: Optional[Sequence[str]] = None,
        review_status: Union[ReviewStatus, str] = ReviewStatus.APPROVED,
    ) -> AdvisoryRequest:
        """
        Record the assigned accountant's parecer.

        Raises:
            NotFound: Unknown request
            Unauthorized: accountant_id is not the assigned accountant
            InvalidStateTransition: Request is not ASSIGNED
            ValidationError: Empty notes or invalid verdict
            ConflictError: A concurrent transition won
        """
        request = self._repository.load(request_id)

        if not accountant_id or request.assigned_accountant_id != accountant_id:
            logger.warning(
                f"Accountant {accountant_id} tried to review request {request_id} "
                f"assigned to {request.assigned_accountant_id}"
            )
            raise Unauthorized(
                "Only the assigned accountant can review this request",
                request_id=request_id,
                accountant_id=accountant_id,
            )
        self._check_transition(request, AdvisoryStatus.REVIEWED)

        notes = (notes or "").strip()
        min_length = max(1, self._settings.review_notes_min_length)
        if len(notes) < min_length:
            raise ValidationError(
                f"Review notes must have at least {min_length} characters",
                length=len(notes),
            )
        review_status = self._parse_enum(ReviewStatus, review_status, "review_status")
        recommendations = [r.strip() for r in (recommendations or []) if r and r.strip()]

        at = self._clock()
        committed = self._repository.commit(
            request_id,
            request.status,
            lambda r: r.mark_reviewed(accountant_id, notes, recommendations, review_status, at),
        )

        logger.info(
            f"Advisory request {request_id} reviewed by {accountant_id}: {review_status.value}"
        )
        self._publish(AdvisoryReviewed(
            aggregate_id=request_id,
            request_id=request_id,
            company_id=committed.company_id,
            analysis_id=committed.analysis_id,
            accountant_id=accountant_id,
            review_status=review_status.value,
            recommendation_count=len(recommendations),
            metadata={"user_id": accountant_id},
        ))
        self._notify_review(committed)
        return committed

    def cancel(self, request_id: str, cancelled_by: str) -> AdvisoryRequest:
        """
        Cancel a PENDING or ASSIGNED request.

        Raises:
            NotFound: Unknown request
            InvalidStateTransition: Request already REVIEWED or CANCELLED
            ConflictError: A concurrent transition won
        """
        self._require_id("cancelled_by", cancelled_by)

        request = self._repository.load(request_id)
        self._check_transition(request, AdvisoryStatus.CANCELLED)
        previous = request.status

        at = self._clock()
        committed = self._repository.commit(
            request_id,
            previous,
            lambda r: r.mark_cancelled(cancelled_by, at),
        )

        logger.info(f"Advisory request {request_id} cancelled by {cancelled_by}")
        self._publish(AdvisoryCancelled(
            aggregate_id=request_id,
            request_id=request_id,
            cancelled_by=cancelled_by,
            previous_status=previous.value,
            metadata={"user_id": cancelled_by},
        ))
        return committed

    # =========================================================================
    # QUERIES
    # =========================================================================

    def get(self, request_id: str) -> AdvisoryRequest:
        return self._repository.load(request_id)

    def list_by_company(
        self,
        company_id: str,
        status: Optional[AdvisoryStatus] = None,
        request_type: Optional[RequestType] = None,
    ) -> List[AdvisoryRequest]:
        """Requests of a company, newest first."""
        return self._repository.query(AdvisoryFilter(
            company_id=company_id,
            status=status,
            request_type=request_type,
        ))

    def list_by_accountant(
        self,
        accountant_id: str,
        status: Optional[AdvisoryStatus] = None,
    ) -> List[AdvisoryRequest]:
        """Requests assigned to an accountant, newest first."""
        return self._repository.query(AdvisoryFilter(
            assigned_accountant_id=accountant_id,
            status=status,
        ))

    def status_counts(
        self,
        company_id: Optional[str] = None,
        accountant_id: Optional[str] = None,
    ) -> Dict[AdvisoryStatus, int]:
        """Number of requests per status; every status is present."""
        requests = self._repository.query(AdvisoryFilter(
            company_id=company_id,
            assigned_accountant_id=accountant_id,
        ))
        counts = Counter(r.status for r in requests)
        return {status: counts.get(status, 0) for status in AdvisoryStatus}

    # =========================================================================
    # HELPERS
    # =========================================================================

    @staticmethod
    def _check_transition(request: AdvisoryRequest, target: AdvisoryStatus) -> None:
        if can_transition(request.status, target):
            return
        logger.warning(
            f"Rejected transition {request.status.value} -> {target.value} "
            f"for request {request.id}"
        )
        raise InvalidStateTransition(
            f"Cannot transition from {request.status.value} to {target.value}",
            current_status=request.status.value,
            target_status=target.value,
            request_id=request.id,
        )

    @staticmethod
    def _require_id(name: str, value: Optional[str]) -> None:
        if not value or not str(value).strip():
            raise ValidationError(f"{name} is required", field=name)

    @staticmethod
    def _parse_enum(enum_cls, value, name: str):
        if isinstance(value, enum_cls):
            return value
        try:
            return enum_cls(str(value).upper())
        except ValueError as e:
            raise ValidationError(
                f"Invalid {name}: {value!r}",
                field=name,
                allowed=[m.value for m in enum_cls],
            ) from e

    def _publish(self, event: DomainEvent) -> None:
        self._event_bus.publish(event)

    def _notify_review(self, request: AdvisoryRequest) -> None:
        """Tell the company owner the parecer is ready. Never raises."""
        recipient = request.requested_by
        payload = {
            "title": REVIEW_NOTIFICATION_TITLE,
            "message": f"Seu parecer contábil foi revisado ({request.review_status.label})",
            "advisory_id": request.id,
            "analysis_id": request.analysis_id,
            "company_id": request.company_id,
            "review_status": request.review_status.value,
        }
        try:
            if self._company_directory is not None:
                recipient = self._company_directory.owner_of(request.company_id) or recipient
            self._notifier.notify(recipient, REVIEW_NOTIFICATION_TYPE, payload)
        except Exception as e:
            logger.error(
                f"Review notification for request {request.id} to {recipient} failed: {e}",
                exc_info=True,
            )
