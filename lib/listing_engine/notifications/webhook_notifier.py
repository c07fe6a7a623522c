"""
Webhook Notifier
================
Posts listing progress and results to a callback URL with configurable
verbosity levels.

Delivery failures are logged and reported through the return value; they
never propagate into the pipeline.
"""

import logging
import time
from enum import Enum
from typing import Any, Dict, Optional

import requests

from ..models.enums import ListingStatus
from ..models.results import ListingResult, ProgressEvent
from ..utils.enum_utils import require_exhaustive

logger = logging.getLogger(__name__)

WEBHOOK_TIMEOUT_SECONDS = 10


class NotificationLevel(Enum):
    """Notification verbosity levels."""
    ERRORS_ONLY = "errors_only"  # Only errors and critical failures
    MINIMAL = "minimal"          # Phase changes only
    STANDARD = "standard"        # Per-photo progress, skip per-tool detail
    VERBOSE = "verbose"          # Everything


# Business notification per terminal status
RESULT_NOTIFICATIONS = require_exhaustive({
    ListingStatus.PREPARED: 'listing_prepared',
    ListingStatus.NEEDS_REVIEW: 'listing_needs_review',
    ListingStatus.FAILED: 'listing_failed',
}, ListingStatus, "RESULT_NOTIFICATIONS")


class WebhookNotifier:
    """
    Notification manager for listing runs.

    Handles debug notifications (progress monitoring) and business
    notifications (the final result, for workflow orchestration).

    Usage:
        notifier = WebhookNotifier(
            callback_webhook="https://...",
            listing_id="listing456",
            notification_level="standard",
        )

        tracker.subscribe(notifier.send_progress)
        notifier.send_listing_result(result)
    """

    # Critical notifications always sent regardless of level
    CRITICAL_NOTIFICATIONS = frozenset([
        'listing_started', 'listing_prepared', 'listing_needs_review', 'listing_failed',
        'storage_connection_failed', 'credentials_invalid',
    ])

    # Minimal level allowed notifications
    MINIMAL_ALLOWED = frozenset([
        'phase_analyzing', 'phase_strategizing', 'phase_processing', 'phase_verifying',
        'phase_completed', 'phase_needs_review', 'phase_failed',
    ])

    # Verbose-only notifications (skip in standard mode)
    VERBOSE_ONLY = frozenset([
        'tool_started', 'photo_analyzed', 'storage_write',
    ])

    def __init__(
        self,
        callback_webhook: Optional[str],
        job_id: Optional[str] = None,
        listing_id: Optional[str] = None,
        correlation_id: Optional[str] = None,
        notification_level: str = "minimal",
        function_name: str = "unknown",
        version: str = "unknown",
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize webhook notifier.

        Args:
            callback_webhook: URL to send notifications to (None disables)
            job_id: Job identifier
            listing_id: Listing identifier
            correlation_id: Request correlation ID for tracing
            notification_level: One of 'errors_only', 'minimal', 'standard', 'verbose'
            function_name: Name of the calling function
            version: Version string for tracking
        """
        self.callback_webhook = callback_webhook
        self.job_id = job_id
        self.listing_id = listing_id
        self.correlation_id = correlation_id
        self.function_name = function_name
        self.version = version
        self.session = session or requests.Session()

        try:
            self.notification_level = NotificationLevel(notification_level.lower())
        except (ValueError, AttributeError):
            self.notification_level = NotificationLevel.MINIMAL

    def _should_send(self, status: str, log_level: str) -> bool:
        """
        Determine if notification should be sent based on level and type.

        Args:
            status: Notification status/type
            log_level: Log level (INFO, ERROR, WARNING, DEBUG)

        Returns:
            True if notification should be sent
        """
        if log_level == "ERROR":
            return True

        if status in self.CRITICAL_NOTIFICATIONS:
            return True

        if self.notification_level == NotificationLevel.ERRORS_ONLY:
            return False

        if self.notification_level == NotificationLevel.MINIMAL:
            return status in self.MINIMAL_ALLOWED

        if self.notification_level == NotificationLevel.STANDARD:
            return status not in self.VERBOSE_ONLY

        return True

    def _post(self, payload: Dict[str, Any], label: str) -> bool:
        try:
            response = self.session.post(
                self.callback_webhook,
                json=payload,
                timeout=WEBHOOK_TIMEOUT_SECONDS,
                headers={'Content-Type': 'application/json'},
            )
        except requests.exceptions.RequestException as e:
            logger.warning("Failed to send notification '%s': %s", label, e)
            return False

        if response.status_code >= 400:
            logger.warning("Notification '%s' rejected: HTTP %d", label, response.status_code)
            return False
        logger.debug("Notification sent: %s", label)
        return True

    def send_debug(
        self,
        status: str,
        extra_data: Optional[Dict[str, Any]] = None,
        log_level: str = "INFO",
    ) -> bool:
        """
        Send debug notification to webhook.

        Args:
            status: Status identifier (e.g., 'phase_processing')
            extra_data: Additional data to include
            log_level: Log level (INFO, ERROR, WARNING, DEBUG)

        Returns:
            True if notification was sent successfully
        """
        if not self.callback_webhook:
            return False

        if not self._should_send(status, log_level):
            return False

        payload = {
            'debug_status': status,
            'function_name': self.function_name,
            'log_level': log_level,
            'job_id': self.job_id,
            'listing_id': self.listing_id,
            'timestamp': time.time(),
            'version': self.version,
            'correlation_id': self.correlation_id,
        }
        if extra_data:
            payload.update(extra_data)

        return self._post(payload, status)

    def send_business(
        self,
        notification_type: str,
        job_data: Dict[str, Any],
    ) -> bool:
        """
        Send business notification to webhook.

        Business notifications are always sent (not filtered by level)
        as they're required for workflow orchestration.

        Args:
            notification_type: Type of notification (e.g., 'listing_prepared')
            job_data: Result data

        Returns:
            True if notification was sent successfully
        """
        if not self.callback_webhook:
            return False

        payload = dict(job_data)
        payload.update({
            'function_name': self.function_name,
            'log_level': 'INFO',
            'correlation_id': self.correlation_id,
            'version': self.version,
        })
        return self._post(payload, notification_type)

    def send_error(
        self,
        error_status: str,
        error_message: str,
        extra_data: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """Send error notification (always sent regardless of level)."""
        data = {'error': error_message}
        if extra_data:
            data.update(extra_data)

        return self.send_debug(error_status, data, log_level="ERROR")

    def send_progress(self, event: ProgressEvent) -> bool:
        """
        Forward a progress event, filtered by level.

        Tool-level events are verbose, per-photo events standard, and
        phase-level events minimal.
        """
        if event.current_tool is not None:
            status = 'tool_started'
        elif event.photo_progress is not None:
            status = 'photo_progress'
        else:
            status = f'phase_{event.phase.value}'

        return self.send_debug(status, {'progress': event.model_dump(mode='json')})

    def send_listing_result(self, result: ListingResult) -> bool:
        """
        Send the standardized final result notification.

        Args:
            result: Outcome of prepare_listing

        Returns:
            True if notification was sent successfully
        """
        succeeded = result.succeeded
        job_data = {
            'status': result.status.value,
            'job_id': self.job_id,
            'listing_id': result.listing_id,
            'hero_photo_id': result.hero_photo_id,
            'twilight_photo_id': result.twilight_photo_id,
            'confidence_score': result.confidence_score,
            'minor': result.minor,
            'total_photos': len(result.per_photo),
            'successful_photos': len(succeeded),
            'failed_photos': len(result.per_photo) - len(succeeded),
            'enhanced_images': [
                {'photo_id': r.photo_id, 'ref': r.final_ref, 'tools': [t.value for t in r.tools_applied]}
                for r in succeeded
            ],
            'flagged_photo_ids': result.flagged_photo_ids,
            'errors': result.errors,
            'total_cost': result.total_cost,
            'timestamp': time.time(),
            'source': f'{self.function_name}_function',
        }

        return self.send_business(RESULT_NOTIFICATIONS[result.status], job_data)


def create_notifier_from_event(
    event_data: Dict[str, Any],
    function_name: str,
    version: str,
) -> WebhookNotifier:
    """
    Factory function to create WebhookNotifier from event data.

    Args:
        event_data: Event/request data containing webhook and IDs
        function_name: Name of the calling function
        version: Version string

    Returns:
        Configured WebhookNotifier instance
    """
    return WebhookNotifier(
        callback_webhook=event_data.get('callback_webhook'),
        job_id=event_data.get('job_id'),
        listing_id=event_data.get('listing_id'),
        correlation_id=event_data.get('correlation_id'),
        notification_level=event_data.get('notification_level', 'minimal'),
        function_name=function_name,
        version=version,
    )
