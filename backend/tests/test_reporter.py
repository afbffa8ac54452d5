"""
EventLens Backend — Result Reporter and Analytics Sink Tests
=============================================================

What we test:
    ✅ Severity and message for every outcome kind
    ✅ Latency classification boundaries
    ✅ Analytics record handed to the sink, and sink failures swallowed
    ✅ AnalyticsSink: non-blocking submit, bounded queue, writer failures
"""

import asyncio
from unittest.mock import MagicMock

import pytest

from eventlens.schemas.activity import SCAN_ACTIVITY, ActivityRecord
from eventlens.schemas.scan import LatencyClass, OutcomeKind, ScanOutcome, Severity
from eventlens.services.analytics import AnalyticsSink
from eventlens.services.reporter import ResultReporter, classify_latency


@pytest.fixture
def mock_sink():
    sink = MagicMock(spec=AnalyticsSink)
    sink.submit.return_value = True
    return sink


@pytest.fixture
def reporter(mock_sink):
    return ResultReporter(mock_sink, excellent_ms=200, good_ms=500, poor_ms=1000, latency_budget_ms=500)


class TestPresentation:

    def test_success(self, reporter, make_stall, make_event):
        stall = make_stall(name="Dosa Corner")
        report = reporter.report(ScanOutcome.success(stall, make_event("E1")), "STALL_001", 42.0)

        assert report.severity is Severity.SUCCESS
        assert report.message == "Showing Dosa Corner"
        assert report.stall == stall

    @pytest.mark.parametrize(
        "outcome_factory,severity,message",
        [
            (lambda s: ScanOutcome.marker_not_found(), Severity.WARNING, "Marker M1 not registered"),
            (lambda s: ScanOutcome.wrong_event(s), Severity.WARNING, "This marker is from another event"),
            (lambda s: ScanOutcome.stall_inactive(s), Severity.WARNING, "'Stall M1' is inactive"),
            (lambda s: ScanOutcome.event_not_found(), Severity.ERROR, "Event data missing. Contact organizer."),
            (lambda s: ScanOutcome.network_error(retryable=False), Severity.ERROR, "Failed to load stall data"),
        ],
    )
    def test_failure_outcomes(self, reporter, make_stall, outcome_factory, severity, message):
        outcome = outcome_factory(make_stall("M1", "E2"))
        report = reporter.report(outcome, "M1", 10.0)

        assert report.severity is severity
        assert report.message == message

    def test_event_ended_is_warning(self, reporter, make_stall, make_event):
        outcome = ScanOutcome.event_ended(make_stall(), make_event("E1", status="ended"))
        report = reporter.report(outcome, "STALL_001", 10.0)
        assert report.severity is Severity.WARNING
        assert report.message == "This event has ended"

    def test_missing_event_more_severe_than_missing_stall(self, reporter):
        missing_stall = reporter.report(ScanOutcome.marker_not_found(), "M", 1.0)
        missing_event = reporter.report(ScanOutcome.event_not_found(), "M", 1.0)
        assert missing_stall.severity is Severity.WARNING
        assert missing_event.severity is Severity.ERROR

    def test_only_network_error_is_retryable(self, reporter):
        report = reporter.report(ScanOutcome.network_error(), "M", 1.0)
        assert report.retryable is True
        assert "try again" in report.message


class TestLatencyClassification:

    @pytest.mark.parametrize(
        "elapsed,expected",
        [
            (0, LatencyClass.EXCELLENT),
            (199.9, LatencyClass.EXCELLENT),
            (200, LatencyClass.GOOD),
            (499, LatencyClass.GOOD),
            (500, LatencyClass.POOR),
            (999, LatencyClass.POOR),
            (1000, LatencyClass.CRITICAL),
            (5000, LatencyClass.CRITICAL),
        ],
    )
    def test_boundaries(self, elapsed, expected):
        assert classify_latency(elapsed) is expected

    def test_report_carries_latency(self, reporter):
        report = reporter.report(ScanOutcome.marker_not_found(), "M", 734.567)
        assert report.elapsed_ms == 734.57
        assert report.latency_class is LatencyClass.POOR

    def test_explicit_zero_budget_is_kept(self, mock_sink):
        reporter = ResultReporter(mock_sink, latency_budget_ms=0)
        assert reporter.latency_budget_ms == 0
        assert reporter.excellent_ms == 200


class TestScanAnalytics:

    def test_record_submitted(self, reporter, mock_sink, make_stall, make_event):
        stall = make_stall()
        reporter.report(
            ScanOutcome.success(stall, make_event("E1")),
            "STALL_001",
            120.0,
            event_id="E1",
            user_id="u1",
            details={"session_id": "s1"},
        )

        [record] = [call.args[0] for call in mock_sink.submit.call_args_list]
        assert record.activity_type == SCAN_ACTIVITY
        assert record.marker_id == "STALL_001"
        assert record.stall_id == stall.id
        assert record.details == {
            "outcome": "success",
            "elapsed_ms": 120.0,
            "latency_class": "excellent",
            "session_id": "s1",
        }

    def test_sink_exception_is_swallowed(self, reporter, mock_sink):
        mock_sink.submit.side_effect = RuntimeError("sink broken")

        report = reporter.report(ScanOutcome.marker_not_found(), "M", 5.0)

        assert report.outcome is OutcomeKind.MARKER_NOT_FOUND


class TestAnalyticsSink:

    @pytest.mark.asyncio
    async def test_records_delivered_in_background(self):
        written = []

        async def writer(record):
            written.append(record)

        sink = AnalyticsSink(writer, maxsize=10)
        assert sink.submit(ActivityRecord(activity_type="view")) is True
        assert written == []  # not delivered synchronously

        await sink.drain()
        assert len(written) == 1
        assert sink.delivered == 1
        await sink.close()

    @pytest.mark.asyncio
    async def test_full_queue_drops(self):
        async def writer(record):
            await asyncio.sleep(0)

        sink = AnalyticsSink(writer, maxsize=1)
        assert sink.submit(ActivityRecord(activity_type="a")) is True
        assert sink.submit(ActivityRecord(activity_type="b")) is False
        assert sink.dropped == 1
        await sink.close()

    @pytest.mark.asyncio
    async def test_writer_failure_is_counted_and_worker_survives(self):
        calls = []

        async def writer(record):
            calls.append(record.activity_type)
            if record.activity_type == "bad":
                raise ConnectionError("store down")

        sink = AnalyticsSink(writer, maxsize=10)
        sink.submit(ActivityRecord(activity_type="bad"))
        sink.submit(ActivityRecord(activity_type="good"))
        await sink.drain()

        assert calls == ["bad", "good"]
        assert sink.failed == 1
        assert sink.delivered == 1
        await sink.close()

    def test_submit_without_running_loop_drops(self):
        async def writer(record):
            pass

        sink = AnalyticsSink(writer)
        assert sink.submit(ActivityRecord(activity_type="view")) is False
        assert sink.dropped == 1
