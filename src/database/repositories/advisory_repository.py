"""SQL Advisory Repository Implementation.

Implements IAdvisoryRepository on SQLAlchemy. Each call runs in its own
short transaction; commit() is a conditional UPDATE guarded by both the
expected status and the version read in the same transaction, so of two
concurrent writers only one can match the row.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import sessionmaker

from domain import (
    AdvisoryFilter,
    AdvisoryRequest,
    AdvisoryStatus,
    ConflictError,
    IAdvisoryRepository,
    NotFound,
    RequestType,
    ReviewStatus,
)
from domain.repositories import AdvisoryMutation

from database.connection import get_sync_session_factory, session_scope
from database.models import AdvisoryRequestRecord

logger = logging.getLogger(__name__)


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite drops tzinfo; stored values are always UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def record_to_request(record: AdvisoryRequestRecord) -> AdvisoryRequest:
    return AdvisoryRequest(
        id=record.id,
        company_id=record.company_id,
        analysis_id=record.analysis_id,
        requested_by=record.requested_by,
        request_type=RequestType(record.request_type),
        description=record.description,
        status=AdvisoryStatus(record.status),
        assigned_accountant_id=record.assigned_accountant_id,
        assigned_at=_aware(record.assigned_at),
        assigned_by=record.assigned_by,
        reviewed_at=_aware(record.reviewed_at),
        reviewed_by=record.reviewed_by,
        review_notes=record.review_notes,
        review_recommendations=list(record.review_recommendations or []),
        review_status=ReviewStatus(record.review_status) if record.review_status else None,
        cancelled_at=_aware(record.cancelled_at),
        cancelled_by=record.cancelled_by,
        created_at=_aware(record.created_at),
        updated_at=_aware(record.updated_at),
        version=record.version,
    )


def request_to_values(request: AdvisoryRequest) -> Dict[str, Any]:
    """Column values for a request (everything except the primary key)."""
    return {
        "company_id": request.company_id,
        "analysis_id": request.analysis_id,
        "requested_by": request.requested_by,
        "request_type": request.request_type.value,
        "description": request.description,
        "status": request.status.value,
        "assigned_accountant_id": request.assigned_accountant_id,
        "assigned_at": request.assigned_at,
        "assigned_by": request.assigned_by,
        "reviewed_at": request.reviewed_at,
        "reviewed_by": request.reviewed_by,
        "review_notes": request.review_notes,
        "review_recommendations": list(request.review_recommendations),
        "review_status": request.review_status.value if request.review_status else None,
        "cancelled_at": request.cancelled_at,
        "cancelled_by": request.cancelled_by,
        "created_at": request.created_at,
        "updated_at": request.updated_at,
        "version": request.version,
    }


class SQLAdvisoryRepository(IAdvisoryRepository):
    """
    SQLAlchemy implementation of IAdvisoryRepository.

    Example:
        engine = create_engine_from_settings(get_database_settings())
        init_db(engine)
        repository = SQLAdvisoryRepository(create_session_factory(engine))
    """

    def __init__(self, session_factory: Optional[sessionmaker] = None):
        """
        Initialize repository with a session factory.

        Args:
            session_factory: Factory producing SQLAlchemy sessions; the
                global factory from the environment settings when omitted.
        """
        self._session_factory = session_factory or get_sync_session_factory()

    def add(self, request: AdvisoryRequest) -> AdvisoryRequest:
        with session_scope(self._session_factory) as session:
            session.add(AdvisoryRequestRecord(id=request.id, **request_to_values(request)))
        logger.debug(f"Stored advisory request: {request.id}")
        return request.model_copy(deep=True)

    def load(self, request_id: str) -> AdvisoryRequest:
        with session_scope(self._session_factory) as session:
            record = session.get(AdvisoryRequestRecord, request_id)
            if record is None:
                raise NotFound("Advisory request not found", request_id=request_id)
            return record_to_request(record)

    def commit(
        self,
        request_id: str,
        expected_status: AdvisoryStatus,
        mutation: AdvisoryMutation,
    ) -> AdvisoryRequest:
        with session_scope(self._session_factory) as session:
            record = session.get(AdvisoryRequestRecord, request_id)
            if record is None:
                raise NotFound("Advisory request not found", request_id=request_id)
            if record.status != expected_status.value:
                raise self._conflict(request_id, record.status, expected_status)

            current = record_to_request(record)
            working = current.model_copy(deep=True)
            mutation(working)
            working.version = current.version + 1

            values = request_to_values(working)
            result = session.execute(
                update(AdvisoryRequestRecord)
                .where(
                    AdvisoryRequestRecord.id == request_id,
                    AdvisoryRequestRecord.status == expected_status.value,
                    AdvisoryRequestRecord.version == current.version,
                )
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                # Row changed between the read and the update
                raise self._conflict(request_id, None, expected_status)

        logger.debug(
            f"Committed advisory request {request_id}: "
            f"{expected_status.value} -> {working.status.value} (v{working.version})"
        )
        return working

    def query(self, filter: AdvisoryFilter) -> List[AdvisoryRequest]:
        stmt = select(AdvisoryRequestRecord)
        if filter.company_id is not None:
            stmt = stmt.where(AdvisoryRequestRecord.company_id == filter.company_id)
        if filter.assigned_accountant_id is not None:
            stmt = stmt.where(
                AdvisoryRequestRecord.assigned_accountant_id == filter.assigned_accountant_id
            )
        if filter.status is not None:
            stmt = stmt.where(AdvisoryRequestRecord.status == filter.status.value)
        if filter.request_type is not None:
            stmt = stmt.where(AdvisoryRequestRecord.request_type == filter.request_type.value)
        stmt = stmt.order_by(AdvisoryRequestRecord.created_at.desc(), AdvisoryRequestRecord.id)

        with session_scope(self._session_factory) as session:
            return [record_to_request(r) for r in session.scalars(stmt)]

    @staticmethod
    def _conflict(
        request_id: str,
        actual: Optional[str],
        expected: AdvisoryStatus,
    ) -> ConflictError:
        logger.warning(
            f"Conflict on advisory request {request_id}: expected {expected.value}, found {actual}"
        )
        return ConflictError(
            "Advisory request changed concurrently; reload and retry",
            current_status=actual,
            target_status=None,
            request_id=request_id,
            expected_status=expected.value,
        )
