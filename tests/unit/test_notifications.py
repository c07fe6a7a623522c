"""
Unit Tests: Notifications
=========================
Tests for ProgressTracker and WebhookNotifier.
"""

from unittest.mock import Mock

import pytest

WEBHOOK = "https://hooks.example.com/snapr"


def _result(status="prepared"):
    from listing_engine.models import ListingResult, ListingStatus, PhotoProcessingResult, ToolId, ToolResult

    return ListingResult(
        listing_id="L-1",
        status=ListingStatus(status),
        hero_photo_id="front",
        confidence_score=88,
        per_photo=[
            PhotoProcessingResult(
                photo_id="front",
                original_ref="memory://raw/front.jpg",
                success=True,
                final_ref="memory://out/front.jpg",
                tool_results=[ToolResult(tool=ToolId.HDR, success=True)],
            ),
            PhotoProcessingResult(
                photo_id="bath",
                original_ref="memory://raw/bath.jpg",
                success=False,
                error="hdr: 503",
            ),
        ],
        errors=["bath: hdr: 503"],
    )


class TestProgressTracker:
    """Tests for ProgressTracker class."""

    @pytest.mark.unit
    def test_progress_never_decreases(self):
        """Lower or out-of-range values are clamped."""
        from listing_engine.models import Phase
        from listing_engine.notifications import ProgressTracker

        tracker = ProgressTracker()

        values = [
            tracker.emit(Phase.ANALYZING, 40).progress,
            tracker.emit(Phase.ANALYZING, 20).progress,
            tracker.emit(Phase.PROCESSING, 250).progress,
        ]

        assert values == [40, 40, 100]

    @pytest.mark.unit
    def test_subscribers_and_unsubscribe(self):
        """Subscribers see events until they unsubscribe."""
        from listing_engine.models import Phase
        from listing_engine.notifications import ProgressTracker

        tracker = ProgressTracker()
        seen = []
        unsubscribe = tracker.subscribe(seen.append)

        tracker.emit(Phase.ANALYZING, 5, "start")
        unsubscribe()
        tracker.emit(Phase.ANALYZING, 10)

        assert [e.message for e in seen] == ["start"]
        assert len(tracker.history) == 2

    @pytest.mark.unit
    def test_snapshot_and_reset(self):
        """snapshot() returns the latest event; reset() starts over."""
        from listing_engine.models import Phase
        from listing_engine.notifications import ProgressTracker

        tracker = ProgressTracker()
        assert tracker.snapshot() is None

        tracker.emit(Phase.VERIFYING, 90)
        assert tracker.snapshot().phase == Phase.VERIFYING

        tracker.reset()
        assert tracker.snapshot() is None
        assert tracker.emit(Phase.ANALYZING, 3).progress == 3


class TestWebhookNotifierFiltering:
    """Tests for notification level filtering."""

    @pytest.mark.unit
    def test_no_webhook_sends_nothing(self):
        """Without a URL every send returns False."""
        from listing_engine.notifications import WebhookNotifier

        notifier = WebhookNotifier(callback_webhook=None)

        assert notifier.send_debug("phase_processing") is False
        assert notifier.send_listing_result(_result()) is False

    @pytest.mark.unit
    @pytest.mark.parametrize("level,status,expected", [
        ("minimal", "phase_processing", True),
        ("minimal", "photo_progress", False),
        ("minimal", "listing_started", True),
        ("errors_only", "phase_processing", False),
        ("standard", "photo_progress", True),
        ("standard", "tool_started", False),
        ("verbose", "tool_started", True),
    ])
    def test_level_filtering(self, level, status, expected):
        """Each level lets through its own set of statuses."""
        from listing_engine.notifications import WebhookNotifier

        notifier = WebhookNotifier(callback_webhook=WEBHOOK, notification_level=level)

        assert notifier._should_send(status, "INFO") is expected

    @pytest.mark.unit
    def test_errors_always_pass(self):
        """ERROR log level bypasses filtering."""
        from listing_engine.notifications import WebhookNotifier

        notifier = WebhookNotifier(callback_webhook=WEBHOOK, notification_level="errors_only")

        assert notifier._should_send("tool_started", "ERROR")

    @pytest.mark.unit
    def test_unknown_level_defaults_to_minimal(self):
        """An unknown level falls back to minimal."""
        from listing_engine.notifications import NotificationLevel, WebhookNotifier

        notifier = WebhookNotifier(callback_webhook=WEBHOOK, notification_level="chatty")

        assert notifier.notification_level == NotificationLevel.MINIMAL


def _session(status_code=200, error=None):
    """requests.Session stand-in answering every post with one status."""
    session = Mock()
    if error is not None:
        session.post.side_effect = error
    else:
        session.post.return_value = Mock(status_code=status_code)
    return session


def _posted(session, call=0):
    return session.post.call_args_list[call].kwargs["json"]


class TestWebhookNotifierDelivery:
    """Tests for payloads posted to the webhook."""

    @pytest.mark.unit
    def test_debug_payload(self):
        """Debug payloads carry identifiers and extra data."""
        from listing_engine.notifications import WebhookNotifier

        session = _session()
        notifier = WebhookNotifier(
            callback_webhook=WEBHOOK,
            job_id="job-1",
            listing_id="L-1",
            correlation_id="corr-9",
            function_name="prepare",
            version="1.0.0",
            session=session,
        )

        assert notifier.send_error("credentials_invalid", "bad key", {"client_id": "ACME"})

        assert session.post.call_args.args[0] == WEBHOOK
        assert session.post.call_args.kwargs["timeout"] == 10
        body = _posted(session)
        assert body["debug_status"] == "credentials_invalid"
        assert body["log_level"] == "ERROR"
        assert body["error"] == "bad key"
        assert body["client_id"] == "ACME"
        assert body["listing_id"] == "L-1"
        assert body["correlation_id"] == "corr-9"

    @pytest.mark.unit
    def test_progress_statuses(self):
        """Tool events are verbose; phase events pass at minimal."""
        from listing_engine.models import Phase, ProgressEvent, ToolId
        from listing_engine.notifications import WebhookNotifier

        session = _session()
        notifier = WebhookNotifier(callback_webhook=WEBHOOK, notification_level="minimal", session=session)

        assert not notifier.send_progress(
            ProgressEvent(phase=Phase.PROCESSING, progress=40, current_tool=ToolId.HDR)
        )
        assert notifier.send_progress(ProgressEvent(phase=Phase.PROCESSING, progress=40))

        assert session.post.call_count == 1
        body = _posted(session)
        assert body["debug_status"] == "phase_processing"
        assert body["progress"]["progress"] == 40

    @pytest.mark.unit
    @pytest.mark.parametrize("status", ["prepared", "needs_review", "failed"])
    def test_listing_result(self, status):
        """The result notification summarizes the listing."""
        from listing_engine.notifications import WebhookNotifier

        session = _session()
        notifier = WebhookNotifier(
            callback_webhook=WEBHOOK, job_id="job-1", function_name="prepare", session=session
        )

        assert notifier.send_listing_result(_result(status))

        body = _posted(session)
        assert body["status"] == status
        assert body["total_photos"] == 2
        assert body["successful_photos"] == 1
        assert body["failed_photos"] == 1
        assert body["enhanced_images"] == [
            {"photo_id": "front", "ref": "memory://out/front.jpg", "tools": ["hdr"]}
        ]
        assert body["source"] == "prepare_function"

    @pytest.mark.unit
    def test_http_error_returns_false(self):
        """A rejected post is reported, not raised."""
        from listing_engine.notifications import WebhookNotifier

        notifier = WebhookNotifier(callback_webhook=WEBHOOK, session=_session(status_code=500))

        assert notifier.send_listing_result(_result()) is False

    @pytest.mark.unit
    def test_connection_error_returns_false(self):
        """Network failures never propagate."""
        import requests
        from listing_engine.notifications import WebhookNotifier

        session = _session(error=requests.exceptions.ConnectionError("down"))
        notifier = WebhookNotifier(callback_webhook=WEBHOOK, session=session)

        assert notifier.send_debug("listing_started") is False


class TestCreateNotifierFromEvent:
    """Tests for create_notifier_from_event function."""

    @pytest.mark.unit
    def test_reads_event_fields(self):
        """Identifiers and level come from the event."""
        from listing_engine.notifications import NotificationLevel, create_notifier_from_event

        notifier = create_notifier_from_event(
            {
                "callback_webhook": WEBHOOK,
                "job_id": "job-1",
                "listing_id": "L-1",
                "notification_level": "verbose",
            },
            function_name="prepare",
            version="2.0.0",
        )

        assert notifier.callback_webhook == WEBHOOK
        assert notifier.listing_id == "L-1"
        assert notifier.notification_level == NotificationLevel.VERBOSE
        assert notifier.version == "2.0.0"
