"""
Repository Implementations.

Concrete implementations of the repository and port interfaces defined
in the domain layer:

- SQLAdvisoryRepository: SQLAlchemy-backed advisory storage
- InMemory*: thread-safe in-process adapters for tests and single-node use
"""

from .advisory_repository import SQLAdvisoryRepository
from .memory_repository import (
    InMemoryAdvisoryRepository,
    InMemoryAnalysisRepository,
    InMemoryCompanyDirectory,
    StaticAccountantAvailability,
)

__all__ = [
    "SQLAdvisoryRepository",
    "InMemoryAdvisoryRepository",
    "InMemoryAnalysisRepository",
    "InMemoryCompanyDirectory",
    "StaticAccountantAvailability",
]
