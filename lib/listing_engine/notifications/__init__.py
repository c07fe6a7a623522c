"""
Notifications module - Progress tracking and webhook delivery.
"""

from .progress import ProgressTracker
from .webhook_notifier import WebhookNotifier, NotificationLevel, create_notifier_from_event

__all__ = [
    "ProgressTracker",
    "WebhookNotifier",
    "NotificationLevel",
    "create_notifier_from_event",
]
