"""
Tax Analysis Service - Application service for regime analyses.

This service provides:
- Creating an analysis from a company's financial figures
- Revising an analysis (a new revision, never an in-place edit)
- Opportunity listing with filters
- Month-by-month tax forecasts from the latest analysis

This is an APPLICATION SERVICE - it orchestrates the comparison,
opportunity and forecast engines and the analysis repository but
contains no tax logic itself.
"""

from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from pydantic import ValidationError as PydanticValidationError

from domain import (
    AdvisoryReviewed,
    AnalysisCompleted,
    AnalysisRevised,
    AnalysisStatus,
    EventBus,
    FinancialInput,
    IAnalysisRepository,
    Money,
    NotFound,
    Opportunity,
    OpportunityCategory,
    OpportunitySummary,
    RiskLevel,
    TaxAnalysis,
    TaxRegime,
    ValidationError,
    get_event_bus,
)
from domain.aggregates import new_id, utcnow
from domain.money import Numeric

from calculator import RegimeYearConfig, default_calculators
from config.settings import RegimeSettings
from recommendation import (
    ForecastEngine,
    OpportunityEngine,
    RegimeComparisonEngine,
    TaxForecast,
    filter_opportunities,
    summarize,
)

from .logging_config import AnalysisLogger, get_logger, log_performance


logger = get_logger(__name__)


FinancialPayload = Union[FinancialInput, Mapping[str, Any]]


def _validation_error(message: str, exc: PydanticValidationError) -> ValidationError:
    errors = [
        {
            "field": ".".join(str(part) for part in error["loc"]),
            "message": error["msg"],
        }
        for error in exc.errors()
    ]
    return ValidationError(message, errors=errors)


class TaxAnalysisService:
    """
    Application service for tax analyses.

    Analyses are immutable once stored: revise_analysis() creates a new
    revision pointing at its parent and leaves the parent untouched. Only
    the status of a stored analysis ever changes.
    """

    def __init__(
        self,
        repository: IAnalysisRepository,
        comparison_engine: Optional[RegimeComparisonEngine] = None,
        opportunity_engine: Optional[OpportunityEngine] = None,
        forecast_engine: Optional[ForecastEngine] = None,
        event_bus: Optional[EventBus] = None,
    ):
        """
        Initialize TaxAnalysisService.

        Args:
            repository: Analysis storage
            comparison_engine: Regime comparison engine
            opportunity_engine: Opportunity rules engine
            forecast_engine: Forecast engine; defaults to one sharing the
                comparison engine
            event_bus: Bus for analysis events; defaults to the global bus
        """
        self._repository = repository
        self._comparison_engine = comparison_engine or RegimeComparisonEngine()
        self._opportunity_engine = opportunity_engine or OpportunityEngine()
        self._forecast_engine = forecast_engine or ForecastEngine(self._comparison_engine)
        self._event_bus = event_bus

    @classmethod
    def from_settings(
        cls,
        repository: IAnalysisRepository,
        settings: Optional[RegimeSettings] = None,
        event_bus: Optional[EventBus] = None,
    ) -> "TaxAnalysisService":
        """Build the service with rates for the configured year and ceilings."""
        settings = settings or RegimeSettings()
        config = RegimeYearConfig.for_year(settings.tax_year).with_ceilings(
            simples=settings.simples_ceiling,
            presumido=settings.presumido_ceiling,
        )
        comparison_engine = RegimeComparisonEngine(
            calculators=default_calculators(config),
            default_baseline=settings.default_baseline,
        )
        return cls(
            repository,
            comparison_engine=comparison_engine,
            opportunity_engine=OpportunityEngine(config=config),
            event_bus=event_bus,
        )

    @property
    def event_bus(self) -> EventBus:
        return self._event_bus or get_event_bus()

    # =========================================================================
    # COMMANDS
    # =========================================================================

    def create_analysis(
        self,
        company_id: str,
        payload: FinancialPayload,
        created_by: Optional[str] = None,
    ) -> TaxAnalysis:
        """
        Run the comparison and opportunity engines and store revision 1.

        Args:
            company_id: Company the figures belong to
            payload: FinancialInput, or a mapping of its fields (money in centavos)
            created_by: User creating the analysis

        Returns:
            The stored analysis

        Raises:
            ValidationError: If the payload is malformed
            NoEligibleRegime: If no regime is eligible; nothing is stored
        """
        financial_input = self._parse_input(company_id, payload)
        analysis = self._run(financial_input, revision=1, created_by=created_by)
        self._repository.add(analysis)

        logger.info(
            f"Created analysis {analysis.analysis_id} for company {company_id}",
            extra={'extra_data': {'year': analysis.year}},
        )
        self._publish_completed(analysis)
        return analysis

    def revise_analysis(
        self,
        analysis_id: str,
        changes: Mapping[str, Any],
        created_by: Optional[str] = None,
    ) -> TaxAnalysis:
        """
        Create a new revision of an analysis with some figures changed.

        Args:
            analysis_id: Analysis to revise
            changes: FinancialInput fields to replace
            created_by: User creating the revision

        Returns:
            The new revision; the parent is left exactly as it was

        Raises:
            NotFound: If the analysis does not exist
            ValidationError: If the changes are malformed or try to move
                the analysis to another company
            NoEligibleRegime: If no regime is eligible for the revised figures
        """
        parent = self.get_analysis(analysis_id)

        if "company_id" in changes and changes["company_id"] != parent.company_id:
            raise ValidationError(
                "An analysis cannot be revised into another company",
                analysis_id=analysis_id,
            )

        data = parent.financial_input.model_dump()
        data.update(changes)
        financial_input = self._parse_input(parent.company_id, data)

        changed_fields = sorted(
            name for name in FinancialInput.model_fields
            if getattr(financial_input, name) != getattr(parent.financial_input, name)
        )

        revision = self._run(
            financial_input,
            revision=parent.revision + 1,
            created_by=created_by,
            parent_analysis_id=parent.analysis_id,
        )
        self._repository.add(revision)

        logger.info(
            f"Revised analysis {parent.analysis_id} -> {revision.analysis_id} "
            f"(revision {revision.revision})",
            extra={'extra_data': {'changed_fields': changed_fields}},
        )
        self.event_bus.publish(AnalysisRevised(
            aggregate_id=revision.analysis_id,
            analysis_id=revision.analysis_id,
            parent_analysis_id=parent.analysis_id,
            company_id=revision.company_id,
            revision=revision.revision,
            changed_fields=changed_fields,
            metadata={"user_id": created_by},
        ))
        self._publish_completed(revision)
        return revision

    def mark_reviewed(self, analysis_id: str) -> TaxAnalysis:
        """Record that an accountant reviewed the analysis."""
        analysis = self._repository.update_status(analysis_id, AnalysisStatus.REVIEWED)
        logger.info(f"Analysis {analysis_id} marked as reviewed")
        return analysis

    def archive_analysis(self, analysis_id: str) -> TaxAnalysis:
        """Take a superseded analysis out of the latest-analysis lookup."""
        analysis = self._repository.update_status(analysis_id, AnalysisStatus.ARCHIVED)
        logger.info(f"Analysis {analysis_id} archived")
        return analysis

    def subscribe(self, event_bus: Optional[EventBus] = None) -> None:
        """Mark analyses as reviewed when their advisory request is reviewed."""
        (event_bus or self.event_bus).subscribe(AdvisoryReviewed, self._on_advisory_reviewed)

    # =========================================================================
    # QUERIES
    # =========================================================================

    def get_analysis(self, analysis_id: str) -> TaxAnalysis:
        analysis = self._repository.get(analysis_id)
        if analysis is None:
            raise NotFound("Analysis not found", analysis_id=analysis_id)
        return analysis

    def list_analyses(self, company_id: str, year: Optional[int] = None) -> List[TaxAnalysis]:
        """Analyses of a company, newest first."""
        analyses = self._repository.list_by_company(company_id)
        if year is not None:
            analyses = [a for a in analyses if a.year == year]
        return analyses

    def latest_analysis(self, company_id: str) -> Optional[TaxAnalysis]:
        """Newest analysis of a company that is not archived."""
        for analysis in self._repository.list_by_company(company_id):
            if analysis.status != AnalysisStatus.ARCHIVED:
                return analysis
        return None

    def get_opportunities(
        self,
        analysis_id: str,
        category: Optional[OpportunityCategory] = None,
        risk_level: Optional[RiskLevel] = None,
        min_roi: Optional[Numeric] = None,
    ) -> Tuple[List[Opportunity], OpportunitySummary]:
        """
        Opportunities of an analysis, filtered.

        Returns:
            (filtered opportunities in presentation order, summary over them)
        """
        analysis = self.get_analysis(analysis_id)
        opportunities = filter_opportunities(
            analysis.opportunities,
            category=category,
            risk_level=risk_level,
            min_roi=Decimal(str(min_roi)) if min_roi is not None else None,
        )
        return opportunities, summarize(opportunities)

    @log_performance("tax_analysis.forecast")
    def forecast(
        self,
        company_id: str,
        months: int,
        projected_monthly_revenue: Optional[Money] = None,
        seasonality_factor: Numeric = Decimal("1"),
        expected_expense_growth: Numeric = Decimal("0"),
        regimes: Optional[Sequence[TaxRegime]] = None,
    ) -> TaxForecast:
        """
        Forecast the next months from the company's latest analysis.

        Raises:
            NotFound: If the company has no analysis
            ValidationError: If a forecast parameter is out of range
        """
        latest = self.latest_analysis(company_id)
        if latest is None:
            raise NotFound(
                "No analysis found for company; create one before forecasting",
                company_id=company_id,
            )
        return self._forecast_engine.forecast(
            latest.financial_input,
            months,
            projected_monthly_revenue=projected_monthly_revenue,
            seasonality_factor=seasonality_factor,
            expected_expense_growth=expected_expense_growth,
            regimes=regimes,
        )

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _parse_input(self, company_id: str, payload: FinancialPayload) -> FinancialInput:
        if not company_id:
            raise ValidationError("company_id is required")

        if isinstance(payload, FinancialInput):
            if payload.company_id != company_id:
                raise ValidationError(
                    "Financial input belongs to another company",
                    company_id=company_id,
                    input_company_id=payload.company_id,
                )
            return payload

        data: Dict[str, Any] = dict(payload)
        data["company_id"] = company_id
        try:
            return FinancialInput.model_validate(data)
        except PydanticValidationError as e:
            logger.warning(f"Invalid financial input for company {company_id}")
            raise _validation_error("Invalid financial input", e) from e

    def _run(
        self,
        financial_input: FinancialInput,
        revision: int,
        created_by: Optional[str],
        parent_analysis_id: Optional[str] = None,
    ) -> TaxAnalysis:
        analysis_id = new_id()
        run_log = AnalysisLogger(analysis_id, financial_input.company_id)
        run_log.start(financial_input.year, revision, financial_input.gross_revenue.centavos)

        comparison = self._comparison_engine.compare(financial_input, analysis_id=analysis_id)
        run_log.log_comparison(
            comparison.recommended_regime.value if comparison.recommended_regime else None,
            comparison.baseline_regime.value,
            comparison.estimated_annual_savings.centavos,
            [r.value for r in comparison.ranking],
        )

        opportunities, summary = self._opportunity_engine.derive_opportunities(
            comparison, financial_input
        )
        run_log.log_opportunities(
            summary.total_opportunities,
            summary.potential_annual_savings.centavos,
            summary.high_priority_count,
        )
        run_log.complete()

        return TaxAnalysis(
            analysis_id=analysis_id,
            company_id=financial_input.company_id,
            revision=revision,
            parent_analysis_id=parent_analysis_id,
            financial_input=financial_input,
            comparison=comparison,
            opportunities=tuple(opportunities),
            summary=summary,
            status=AnalysisStatus.COMPLETED,
            created_at=utcnow(),
            created_by=created_by,
        )

    def _publish_completed(self, analysis: TaxAnalysis) -> None:
        comparison = analysis.comparison
        self.event_bus.publish(AnalysisCompleted(
            aggregate_id=analysis.analysis_id,
            analysis_id=analysis.analysis_id,
            company_id=analysis.company_id,
            revision=analysis.revision,
            recommended_regime=(
                comparison.recommended_regime.value if comparison.recommended_regime else None
            ),
            estimated_annual_savings=comparison.estimated_annual_savings.centavos,
            opportunity_count=analysis.summary.total_opportunities,
            metadata={"user_id": analysis.created_by},
        ))

    def _on_advisory_reviewed(self, event: AdvisoryReviewed) -> None:
        self.mark_reviewed(event.analysis_id)
