"""
In-memory adapters for the repository and port interfaces.

Used by tests and single-process deployments. Every adapter is
thread-safe; stored objects are deep-copied on the way in and out so
callers never share state with the store.
"""

import logging
import threading
from typing import Dict, Iterable, List, Optional

from domain import (
    AccountantAvailability,
    AdvisoryFilter,
    AdvisoryRequest,
    AdvisoryStatus,
    AnalysisStatus,
    CompanyDirectory,
    ConflictError,
    IAdvisoryRepository,
    IAnalysisRepository,
    NotFound,
    TaxAnalysis,
)
from domain.repositories import AdvisoryMutation

logger = logging.getLogger(__name__)


class InMemoryAdvisoryRepository(IAdvisoryRepository):
    """
    Advisory storage backed by a dict.

    The whole read-check-write of commit() happens under one lock, which
    gives the same compare-and-swap guarantee as the SQL conditional update.
    """

    def __init__(self):
        self._requests: Dict[str, AdvisoryRequest] = {}
        self._lock = threading.Lock()

    def add(self, request: AdvisoryRequest) -> AdvisoryRequest:
        with self._lock:
            self._requests[request.id] = request.model_copy(deep=True)
        return request.model_copy(deep=True)

    def load(self, request_id: str) -> AdvisoryRequest:
        with self._lock:
            stored = self._requests.get(request_id)
            if stored is None:
                raise NotFound("Advisory request not found", request_id=request_id)
            return stored.model_copy(deep=True)

    def commit(
        self,
        request_id: str,
        expected_status: AdvisoryStatus,
        mutation: AdvisoryMutation,
    ) -> AdvisoryRequest:
        with self._lock:
            stored = self._requests.get(request_id)
            if stored is None:
                raise NotFound("Advisory request not found", request_id=request_id)
            if stored.status != expected_status:
                logger.warning(
                    f"Conflict on advisory request {request_id}: "
                    f"expected {expected_status.value}, found {stored.status.value}"
                )
                raise ConflictError(
                    "Advisory request changed concurrently; reload and retry",
                    current_status=stored.status.value,
                    target_status=None,
                    request_id=request_id,
                    expected_status=expected_status.value,
                )

            working = stored.model_copy(deep=True)
            mutation(working)
            working.version = stored.version + 1
            self._requests[request_id] = working
            return working.model_copy(deep=True)

    def query(self, filter: AdvisoryFilter) -> List[AdvisoryRequest]:
        with self._lock:
            # Later insertions first among equal timestamps
            matched = [r for r in reversed(list(self._requests.values())) if filter.matches(r)]
            matched.sort(key=lambda r: r.created_at, reverse=True)
            return [r.model_copy(deep=True) for r in matched]

    def __len__(self) -> int:
        with self._lock:
            return len(self._requests)


class InMemoryAnalysisRepository(IAnalysisRepository):
    """Analysis storage backed by a dict."""

    def __init__(self):
        self._analyses: Dict[str, TaxAnalysis] = {}
        self._lock = threading.Lock()

    def add(self, analysis: TaxAnalysis) -> TaxAnalysis:
        with self._lock:
            self._analyses[analysis.analysis_id] = analysis.model_copy(deep=True)
        return analysis

    def get(self, analysis_id: str) -> Optional[TaxAnalysis]:
        with self._lock:
            stored = self._analyses.get(analysis_id)
            return stored.model_copy(deep=True) if stored is not None else None

    def list_by_company(self, company_id: str) -> List[TaxAnalysis]:
        with self._lock:
            matched = [
                a for a in reversed(list(self._analyses.values()))
                if a.company_id == company_id
            ]
            matched.sort(key=lambda a: a.created_at, reverse=True)
            return [a.model_copy(deep=True) for a in matched]

    def update_status(self, analysis_id: str, status: AnalysisStatus) -> TaxAnalysis:
        with self._lock:
            stored = self._analyses.get(analysis_id)
            if stored is None:
                raise NotFound("Analysis not found", analysis_id=analysis_id)
            updated = stored.model_copy(update={"status": status})
            self._analyses[analysis_id] = updated
            return updated.model_copy(deep=True)


class StaticAccountantAvailability(AccountantAvailability):
    """
    Availability from a fixed roster.

    Args:
        available: Accountant IDs that accept new assignments. None means
            everyone not explicitly marked unavailable.
        unavailable: Accountant IDs that are at capacity or away.
    """

    def __init__(
        self,
        available: Optional[Iterable[str]] = None,
        unavailable: Optional[Iterable[str]] = None,
    ):
        self._available = set(available) if available is not None else None
        self._unavailable = set(unavailable or ())
        self._lock = threading.Lock()

    def is_available(self, accountant_id: str) -> bool:
        with self._lock:
            if accountant_id in self._unavailable:
                return False
            return self._available is None or accountant_id in self._available

    def set_available(self, accountant_id: str, available: bool = True) -> None:
        with self._lock:
            if available:
                self._unavailable.discard(accountant_id)
                if self._available is not None:
                    self._available.add(accountant_id)
            else:
                self._unavailable.add(accountant_id)


class InMemoryCompanyDirectory(CompanyDirectory):
    """Company -> owner lookup from a dict."""

    def __init__(self, owners: Optional[Dict[str, str]] = None):
        self._owners: Dict[str, str] = dict(owners or {})

    def owner_of(self, company_id: str) -> Optional[str]:
        return self._owners.get(company_id)

    def register(self, company_id: str, owner_id: str) -> None:
        self._owners[company_id] = owner_id
