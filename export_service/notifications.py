"""In-process notification channel for export status updates."""

from __future__ import annotations

import threading
from typing import Callable, Dict, List, Optional

import structlog

from .models import ExportJobStatus, ExportPushNotification

logger = structlog.get_logger("export_notifications")

Subscriber = Callable[[ExportPushNotification], None]

_STATUS_RANK = {
    ExportJobStatus.QUEUED: 0,
    ExportJobStatus.RUNNING: 1,
    ExportJobStatus.COMPLETED: 2,
    ExportJobStatus.FAILED: 2,
    ExportJobStatus.CANCELLED: 2,
}


class NotificationChannel:
    """Keeps the latest snapshot of every notification and fans updates out.

    Updates that would move a notification backwards (e.g. ``queued`` after
    ``running``) or touch one that is already terminal are dropped, so a
    consumer sees transitions in order and at most one terminal update per id.
    """

    def __init__(self) -> None:
        self._latest: Dict[str, ExportPushNotification] = {}
        self._subscribers: List[Subscriber] = []
        self._lock = threading.RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._latest)

    def subscribe(self, subscriber: Subscriber) -> None:
        with self._lock:
            self._subscribers.append(subscriber)

    def unsubscribe(self, subscriber: Subscriber) -> None:
        with self._lock:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

    def send(self, notification: ExportPushNotification) -> bool:
        """Record and deliver an update; return False when it was dropped."""
        snapshot = notification.model_copy(deep=True)
        with self._lock:
            previous = self._latest.get(snapshot.id)
            if previous is not None and (
                previous.status.is_terminal
                or _STATUS_RANK[snapshot.status] < _STATUS_RANK[previous.status]
            ):
                logger.debug(
                    "notification_update_dropped",
                    notification_id=snapshot.id,
                    job_id=snapshot.job_id,
                    status=snapshot.status.value,
                    current_status=previous.status.value,
                )
                return False
            self._latest[snapshot.id] = snapshot
            # Delivered under the lock so every subscriber sees updates in order.
            for subscriber in list(self._subscribers):
                try:
                    subscriber(snapshot)
                except Exception as exc:  # pragma: no cover - a broken subscriber must not fail the job
                    logger.error("notification_subscriber_failed", notification_id=snapshot.id, error=str(exc))
        return True

    def get(self, notification_id: str) -> Optional[ExportPushNotification]:
        with self._lock:
            latest = self._latest.get(notification_id)
            return latest.model_copy(deep=True) if latest else None

    def discard(self, notification_id: str) -> None:
        """Forget a notification; called when its job is evicted from the runner."""
        with self._lock:
            self._latest.pop(notification_id, None)


__all__ = ["NotificationChannel", "Subscriber"]
