"""
Progress Tracking
=================
Ordered progress events for one listing run.

Subscribers receive every event in emission order; snapshot() returns the
latest event so polling consumers see the same phase and progress as
streaming ones. Progress never goes backwards within a run.
"""

import logging
import threading
from typing import Callable, List, Optional

from ..models.enums import Phase, ToolId
from ..models.results import PhotoProgress, ProgressEvent

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressEvent], None]


class ProgressTracker:
    """
    Progress sink shared by the pipeline stages.

    Usage:
        tracker = ProgressTracker()
        tracker.subscribe(notifier.send_progress)
        tracker.emit(Phase.ANALYZING, 5, "Analyzing 12 photos")
        tracker.snapshot().progress
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._subscribers: List[ProgressCallback] = []
        self._last: Optional[ProgressEvent] = None
        self.history: List[ProgressEvent] = []

    def subscribe(self, callback: ProgressCallback) -> Callable[[], None]:
        """
        Register a callback for future events.

        Returns:
            Function that removes the subscription
        """
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def emit(
        self,
        phase: Phase,
        progress: float,
        message: str = "",
        photo_progress: Optional[PhotoProgress] = None,
        current_tool: Optional[ToolId] = None,
        current_photo_id: Optional[str] = None,
    ) -> ProgressEvent:
        """
        Record and publish one event.

        Progress is clamped to 0-100 and to the last emitted value, so
        consumers always see a non-decreasing sequence.
        """
        with self._lock:
            floor = self._last.progress if self._last else 0
            event = ProgressEvent(
                phase=phase,
                progress=max(floor, min(100, max(0, int(progress)))),
                message=message,
                photo_progress=photo_progress,
                current_tool=current_tool,
                current_photo_id=current_photo_id,
            )
            self._last = event
            self.history.append(event)
            subscribers = list(self._subscribers)

        logger.debug("[%s %d%%] %s", event.phase.value, event.progress, event.message)
        for callback in subscribers:
            callback(event)
        return event

    def snapshot(self) -> Optional[ProgressEvent]:
        """Latest event, or None before the first one."""
        with self._lock:
            return self._last

    def reset(self) -> None:
        """Forget previous events so a new run starts from 0."""
        with self._lock:
            self._last = None
            self.history = []
