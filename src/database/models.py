"""
SQLAlchemy ORM models for the advisory workflow.

Tables:
- advisory_requests: one row per advisory request, with a version column
  used for compare-and-swap updates

Status, request type and verdict are stored as their enum values so the
schema stays readable from SQL and portable across PostgreSQL and SQLite.
"""

from sqlalchemy import Column, DateTime, Index, Integer, JSON, String, Text
from sqlalchemy.dialects.postgresql import JSONB as PG_JSONB
from sqlalchemy.orm import declarative_base
from sqlalchemy.types import TypeDecorator


# Cross-database compatible JSON type
# Uses JSONB on PostgreSQL, JSON on SQLite/others
class JSONB(TypeDecorator):
    """A portable JSONB type that works with both PostgreSQL and SQLite."""
    impl = JSON
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == 'postgresql':
            return dialect.type_descriptor(PG_JSONB())
        else:
            return dialect.type_descriptor(JSON())


Base = declarative_base()


class AdvisoryRequestRecord(Base):
    """Advisory request storage."""
    __tablename__ = "advisory_requests"

    id = Column(String(36), primary_key=True)

    # Ownership
    company_id = Column(String(36), nullable=False, index=True)
    analysis_id = Column(String(36), nullable=False)
    requested_by = Column(String(36), nullable=False)

    request_type = Column(String(30), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, index=True)

    # Assignment
    assigned_accountant_id = Column(String(36), nullable=True, index=True)
    assigned_at = Column(DateTime(timezone=True), nullable=True)
    assigned_by = Column(String(36), nullable=True)

    # Review ("parecer")
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    reviewed_by = Column(String(36), nullable=True)
    review_notes = Column(Text, nullable=True)
    review_recommendations = Column(JSONB, nullable=False, default=list)
    review_status = Column(String(20), nullable=True)

    # Cancellation
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_by = Column(String(36), nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    # Optimistic locking
    version = Column(Integer, nullable=False, default=1)

    __table_args__ = (
        Index("ix_advisory_requests_company_status", "company_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<AdvisoryRequestRecord {self.id} {self.status} v{self.version}>"
