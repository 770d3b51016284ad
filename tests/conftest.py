"""Pytest configuration and fixtures for test suite."""

import os
import sys
from pathlib import Path
from typing import Dict, Optional, Tuple

import pytest

# Set test environment BEFORE any other imports
os.environ.setdefault("APP_ENVIRONMENT", "test")

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from advisory import AdvisoryWorkflow
from calculator import RegimeCalculator, effective_rate
from config import AdvisorySettings, DatabaseSettings
from database import (
    InMemoryAdvisoryRepository,
    InMemoryAnalysisRepository,
    InMemoryCompanyDirectory,
    SQLAdvisoryRepository,
    StaticAccountantAvailability,
    create_engine_from_settings,
    create_session_factory,
    init_db,
)
from domain import (
    AuditEventRecorder,
    EffortLevel,
    EventBus,
    FinancialInput,
    Money,
    RegimeResult,
    TaxRegime,
)
from notifications import OutboxNotificationPort
from services import TaxAnalysisService


COMPANY_ID = "company-1"
OWNER_ID = "owner-1"
ACCOUNTANT_ID = "accountant-1"
OTHER_ACCOUNTANT_ID = "accountant-2"
BUSY_ACCOUNTANT_ID = "accountant-busy"
ADMIN_ID = "admin-1"


# =============================================================================
# FINANCIAL INPUTS
# =============================================================================

@pytest.fixture
def make_input():
    """
    Factory for FinancialInput with sensible defaults.

    Amounts are in centavos. Defaults describe a service company with
    R$ 1.000.000,00 revenue and R$ 600.000,00 expenses in São Paulo.
    """
    def _make(**overrides) -> FinancialInput:
        data = {
            "company_id": COMPANY_ID,
            "year": 2024,
            "gross_revenue": Money(1_000_000_00),
            "expenses": Money(600_000_00),
            "sector": "SERVIÇO",
            "state": "SP",
        }
        data.update(overrides)
        return FinancialInput(**data)

    return _make


@pytest.fixture
def financial_payload() -> Dict:
    """Raw payload as the outer layer would send it (centavos)."""
    return {
        "year": 2024,
        "gross_revenue": 1_000_000_00,
        "expenses": 600_000_00,
        "sector": "serviço",
        "state": "sp",
    }


# =============================================================================
# STUB CALCULATORS
# =============================================================================

class FixedCalculator(RegimeCalculator):
    """Calculator returning a fixed liability, for engine tests."""

    def __init__(
        self,
        regime: TaxRegime,
        liability: int,
        eligible: bool = True,
        effort: Optional[EffortLevel] = None,
    ):
        self.regime = regime
        self.liability = Money(liability)
        self.eligible = eligible
        self.effort = effort
        self.calls = 0

    def compute(self, financial_input: FinancialInput) -> RegimeResult:
        self.calls += 1
        return RegimeResult(
            regime=self.regime,
            tax_rate=effective_rate(self.liability, financial_input.gross_revenue),
            tax_liability=self.liability,
            monthly_payment=self.liability.divide(12),
            eligible=self.eligible,
            eligibility_notes=None if self.eligible else f"{self.regime.value} not allowed",
            compliance_effort=self.effort,
        )


@pytest.fixture
def fixed_calculators():
    """
    Factory building a calculator mapping from (liability, eligible) pairs.

    Usage:
        calculators = fixed_calculators(
            simples=(6_000_00, True),
            presumido=(9_600_00, True),
            real=(12_000_00, False),
        )
    """
    def _build(
        simples: Tuple[int, bool] = (6_000_00, True),
        presumido: Tuple[int, bool] = (9_600_00, True),
        real: Tuple[int, bool] = (12_000_00, True),
        efforts: Optional[Dict[TaxRegime, EffortLevel]] = None,
    ) -> Dict[TaxRegime, FixedCalculator]:
        efforts = efforts or {}
        specs = {
            TaxRegime.SIMPLES_NACIONAL: simples,
            TaxRegime.LUCRO_PRESUMIDO: presumido,
            TaxRegime.LUCRO_REAL: real,
        }
        return {
            regime: FixedCalculator(regime, liability, eligible, efforts.get(regime))
            for regime, (liability, eligible) in specs.items()
        }

    return _build


# =============================================================================
# EVENTS
# =============================================================================

@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def recorder(event_bus) -> AuditEventRecorder:
    """Records every event published on the test bus."""
    recorder = AuditEventRecorder()
    event_bus.subscribe_all(recorder)
    return recorder


# =============================================================================
# ADAPTERS
# =============================================================================

@pytest.fixture
def analysis_repository() -> InMemoryAnalysisRepository:
    return InMemoryAnalysisRepository()


@pytest.fixture
def advisory_repository() -> InMemoryAdvisoryRepository:
    return InMemoryAdvisoryRepository()


@pytest.fixture
def availability() -> StaticAccountantAvailability:
    return StaticAccountantAvailability(unavailable=[BUSY_ACCOUNTANT_ID])


@pytest.fixture
def company_directory() -> InMemoryCompanyDirectory:
    return InMemoryCompanyDirectory({COMPANY_ID: OWNER_ID})


@pytest.fixture
def outbox() -> OutboxNotificationPort:
    return OutboxNotificationPort()


@pytest.fixture
def sql_session_factory():
    """Session factory on a fresh in-memory SQLite database."""
    engine = create_engine_from_settings(DatabaseSettings(url="sqlite://"))
    init_db(engine)
    yield create_session_factory(engine)
    engine.dispose()


@pytest.fixture
def sql_advisory_repository(sql_session_factory) -> SQLAdvisoryRepository:
    return SQLAdvisoryRepository(sql_session_factory)


# =============================================================================
# SERVICES
# =============================================================================

@pytest.fixture
def analysis_service(analysis_repository, event_bus, recorder) -> TaxAnalysisService:
    return TaxAnalysisService(analysis_repository, event_bus=event_bus)


@pytest.fixture
def completed_analysis(analysis_service, financial_payload):
    """A stored, completed analysis for COMPANY_ID."""
    return analysis_service.create_analysis(COMPANY_ID, financial_payload, created_by=OWNER_ID)


@pytest.fixture
def workflow(
    advisory_repository,
    analysis_repository,
    availability,
    outbox,
    company_directory,
    event_bus,
    recorder,
) -> AdvisoryWorkflow:
    return AdvisoryWorkflow(
        repository=advisory_repository,
        analyses=analysis_repository,
        availability=availability,
        notifier=outbox,
        company_directory=company_directory,
        event_bus=event_bus,
        settings=AdvisorySettings(),
    )


@pytest.fixture
def pending_request(workflow, completed_analysis):
    """A PENDING advisory request against the completed analysis."""
    return workflow.create(
        COMPANY_ID,
        completed_analysis.analysis_id,
        OWNER_ID,
        description="Revisar enquadramento para 2024",
    )
