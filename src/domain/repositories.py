"""
Repository and port interfaces for the tax-regime guidance core.

Repository interfaces define the contract for data access, following the
Repository pattern from Domain-Driven Design. Implementations are provided
in the infrastructure layer (database.repositories, notifications).

This abstraction allows:
1. Swapping storage backends (in-memory -> SQLAlchemy)
2. Testing with in-memory implementations
3. Clear separation between domain and infrastructure
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from .aggregates import (
    AdvisoryRequest,
    AdvisoryStatus,
    AnalysisStatus,
    RequestType,
    TaxAnalysis,
)


# Mutation applied to a working copy of a request inside commit()
AdvisoryMutation = Callable[[AdvisoryRequest], None]


@dataclass(frozen=True)
class AdvisoryFilter:
    """Query filter for advisory requests; None fields match anything."""
    company_id: Optional[str] = None
    assigned_accountant_id: Optional[str] = None
    status: Optional[AdvisoryStatus] = None
    request_type: Optional[RequestType] = None

    def matches(self, request: AdvisoryRequest) -> bool:
        if self.company_id is not None and request.company_id != self.company_id:
            return False
        if (
            self.assigned_accountant_id is not None
            and request.assigned_accountant_id != self.assigned_accountant_id
        ):
            return False
        if self.status is not None and request.status != self.status:
            return False
        if self.request_type is not None and request.request_type != self.request_type:
            return False
        return True


class IAdvisoryRepository(ABC):
    """
    Advisory Request Repository Interface.

    commit() is the only way to change a stored request. It is a
    compare-and-swap: the mutation is persisted only if the stored status
    still equals expected_status at write time.
    """

    @abstractmethod
    def add(self, request: AdvisoryRequest) -> AdvisoryRequest:
        """Store a new request."""
        pass

    @abstractmethod
    def load(self, request_id: str) -> AdvisoryRequest:
        """
        Load a request by ID.

        Raises:
            NotFound: If no request has this ID
        """
        pass

    @abstractmethod
    def commit(
        self,
        request_id: str,
        expected_status: AdvisoryStatus,
        mutation: AdvisoryMutation,
    ) -> AdvisoryRequest:
        """
        Apply a mutation if the stored status still matches.

        Args:
            request_id: Request to update
            expected_status: Status the caller computed the transition from
            mutation: Callable that edits a working copy in place

        Returns:
            The committed request (version incremented)

        Raises:
            NotFound: If no request has this ID
            ConflictError: If the stored status differs from expected_status
        """
        pass

    @abstractmethod
    def query(self, filter: AdvisoryFilter) -> List[AdvisoryRequest]:
        """Requests matching the filter, newest first."""
        pass


class IAnalysisRepository(ABC):
    """Tax analysis storage. Analyses are append-only apart from status."""

    @abstractmethod
    def add(self, analysis: TaxAnalysis) -> TaxAnalysis:
        pass

    @abstractmethod
    def get(self, analysis_id: str) -> Optional[TaxAnalysis]:
        pass

    @abstractmethod
    def list_by_company(self, company_id: str) -> List[TaxAnalysis]:
        """Analyses of a company, newest first."""
        pass

    @abstractmethod
    def update_status(self, analysis_id: str, status: AnalysisStatus) -> TaxAnalysis:
        """
        Raises:
            NotFound: If no analysis has this ID
        """
        pass


class NotificationPort(ABC):
    """Outbound notifications. Fire-and-forget from the caller's perspective."""

    @abstractmethod
    def notify(self, user_id: str, event_type: str, payload: Dict[str, Any]) -> None:
        pass


class AccountantAvailability(ABC):
    """Capacity/availability check for accountants."""

    @abstractmethod
    def is_available(self, accountant_id: str) -> bool:
        pass


class CompanyDirectory(ABC):
    """Lookup of company ownership."""

    @abstractmethod
    def owner_of(self, company_id: str) -> Optional[str]:
        """User ID of the company owner, or None if unknown."""
        pass
