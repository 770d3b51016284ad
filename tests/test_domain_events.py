"""
Tests for domain events, the event bus and the advisory aggregate.
"""

import logging

import pytest

from domain import (
    AdvisoryCancelled,
    AdvisoryRequest,
    AdvisoryRequested,
    AdvisoryStatus,
    AnalysisCompleted,
    AuditEventRecorder,
    ConflictError,
    DomainEvent,
    ErrorKind,
    EventBus,
    EventType,
    InvalidStateTransition,
    LoggingEventHandler,
    NotFound,
    VALID_TRANSITIONS,
    can_transition,
    get_event_bus,
    publish_event,
    reset_event_bus,
)


def requested(request_id="req-1") -> AdvisoryRequested:
    return AdvisoryRequested(
        aggregate_id=request_id,
        request_id=request_id,
        company_id="company-1",
        analysis_id="analysis-1",
        requested_by="owner-1",
        request_type="TAX_REVIEW",
    )


def completed(analysis_id="analysis-1") -> AnalysisCompleted:
    return AnalysisCompleted(
        aggregate_id=analysis_id,
        analysis_id=analysis_id,
        company_id="company-1",
        revision=1,
    )


# =============================================================================
# EVENT TESTS
# =============================================================================

class TestDomainEvents:
    """Tests for event models."""

    def test_event_type_and_aggregate(self):
        event = requested()
        assert event.event_type == EventType.ADVISORY_REQUESTED
        assert event.aggregate_type == "advisory_request"
        assert event.occurred_at.tzinfo is not None

    def test_events_are_immutable(self):
        event = requested()
        with pytest.raises(Exception):
            event.request_id = "other"

    def test_unique_ids(self):
        assert requested().event_id != requested().event_id


# =============================================================================
# EVENT BUS TESTS
# =============================================================================

class TestEventBus:
    """Tests for EventBus."""

    def test_subscribe_and_publish(self):
        """Handlers receive events of their exact type only."""
        bus = EventBus()
        received = []
        bus.subscribe(AdvisoryRequested, received.append)

        event = requested()
        bus.publish(event)
        bus.publish(completed())

        assert received == [event]

    def test_global_handler(self):
        bus = EventBus()
        received = []
        bus.subscribe_all(received.append)

        bus.publish(requested())
        bus.publish(completed())

        assert [type(e) for e in received] == [AdvisoryRequested, AnalysisCompleted]

    def test_typed_handlers_run_before_global(self):
        bus = EventBus()
        calls = []
        bus.subscribe_all(lambda e: calls.append("global"))
        bus.subscribe(AdvisoryRequested, lambda e: calls.append("typed"))

        bus.publish(requested())

        assert calls == ["typed", "global"]

    def test_handler_error_does_not_stop_others(self, caplog):
        bus = EventBus()
        received = []

        def broken(event: DomainEvent):
            raise RuntimeError("handler failed")

        bus.subscribe(AdvisoryRequested, broken)
        bus.subscribe(AdvisoryRequested, received.append)

        with caplog.at_level(logging.ERROR, logger="domain.event_bus"):
            bus.publish(requested())

        assert len(received) == 1
        assert "handler failed" in caplog.text

    def test_unsubscribe(self):
        bus = EventBus()
        received = []
        bus.subscribe(AdvisoryRequested, received.append)

        assert bus.unsubscribe(AdvisoryRequested, received.append)
        assert not bus.unsubscribe(AdvisoryRequested, received.append)

        bus.publish(requested())
        assert received == []

    def test_clear(self):
        bus = EventBus()
        received = []
        bus.subscribe(AdvisoryRequested, received.append)
        bus.subscribe_all(received.append)

        bus.clear()
        bus.publish(requested())

        assert received == []


class TestGlobalEventBus:
    """Tests for the process-wide bus."""

    def test_singleton(self):
        assert get_event_bus() is get_event_bus()

    def test_reset(self):
        before = get_event_bus()
        reset_event_bus()
        assert get_event_bus() is not before

    def test_publish_event(self):
        recorder = AuditEventRecorder()
        get_event_bus().subscribe_all(recorder)

        publish_event(requested())

        assert len(recorder.events()) == 1


class TestHandlers:
    """Tests for the bundled handlers."""

    def test_recorder_filters_by_aggregate(self):
        recorder = AuditEventRecorder()
        recorder(requested("req-1"))
        recorder(requested("req-2"))
        recorder(completed("analysis-1"))

        assert len(recorder.events()) == 3
        assert [e.request_id for e in recorder.events("req-2")] == ["req-2"]

        recorder.clear()
        assert recorder.events() == []

    def test_logging_handler(self, caplog):
        handler = LoggingEventHandler()
        event = AdvisoryCancelled(
            aggregate_id="req-1",
            request_id="req-1",
            cancelled_by="owner-1",
            previous_status="PENDING",
        )

        with caplog.at_level(logging.INFO, logger="domain.events"):
            handler(event)

        record = caplog.records[-1]
        assert record.getMessage() == "Event: advisory.cancelled"
        assert record.extra_data["aggregate_id"] == "req-1"
        assert record.extra_data["event_id"] == str(event.event_id)


# =============================================================================
# AGGREGATE TESTS
# =============================================================================

class TestAdvisoryStateMachine:
    """Tests for the transition table."""

    @pytest.mark.parametrize("current,target,allowed", [
        (AdvisoryStatus.PENDING, AdvisoryStatus.ASSIGNED, True),
        (AdvisoryStatus.PENDING, AdvisoryStatus.CANCELLED, True),
        (AdvisoryStatus.PENDING, AdvisoryStatus.REVIEWED, False),
        (AdvisoryStatus.ASSIGNED, AdvisoryStatus.REVIEWED, True),
        (AdvisoryStatus.ASSIGNED, AdvisoryStatus.CANCELLED, True),
        (AdvisoryStatus.ASSIGNED, AdvisoryStatus.PENDING, False),
        (AdvisoryStatus.REVIEWED, AdvisoryStatus.CANCELLED, False),
        (AdvisoryStatus.CANCELLED, AdvisoryStatus.ASSIGNED, False),
    ])
    def test_can_transition(self, current, target, allowed):
        assert can_transition(current, target) is allowed

    def test_terminal_states(self):
        terminal = {s for s in AdvisoryStatus if s.is_terminal}
        assert terminal == {AdvisoryStatus.REVIEWED, AdvisoryStatus.CANCELLED}
        assert set(VALID_TRANSITIONS) == set(AdvisoryStatus)

    def test_labels(self):
        assert AdvisoryStatus.ASSIGNED.label == "Em análise"

    def test_summary_dict(self):
        request = AdvisoryRequest(company_id="c", analysis_id="a", requested_by="u")
        summary = request.to_summary_dict()

        assert summary["status"] == "PENDING"
        assert summary["status_label"] == "Aguardando"
        assert summary["review_status"] is None


class TestDomainErrors:
    """Tests for the error taxonomy."""

    def test_to_dict(self):
        error = NotFound("Advisory request not found", request_id="req-1")
        assert error.to_dict() == {
            "code": "NOT_FOUND",
            "message": "Advisory request not found",
            "details": {"request_id": "req-1"},
        }

    def test_conflict_is_a_state_transition_error(self):
        error = ConflictError("changed", current_status="CANCELLED", target_status=None)

        assert isinstance(error, InvalidStateTransition)
        assert error.kind == ErrorKind.CONFLICT
        assert error.details["current_status"] == "CANCELLED"
