from __future__ import annotations

import logging
import threading
from collections import OrderedDict, deque
from dataclasses import dataclass
from datetime import datetime

from facedash.application.jobs.dto import JobNotification, NotificationOutcome
from facedash.domain.common import utcnow

logger = logging.getLogger(__name__)

_LEVELS: dict[NotificationOutcome, str] = {
    NotificationOutcome.STARTED: "info",
    NotificationOutcome.SUCCESS: "success",
    NotificationOutcome.FAILURE: "error",
}


@dataclass(frozen=True, slots=True)
class Toast:
    level: str  # "info" | "success" | "error"
    title: str
    body: str
    job_id: str
    created_at: datetime

    @property
    def text(self) -> str:
        return f"{self.title}: {self.body}" if self.body else self.title


def _title(notification: JobNotification) -> str:
    name = notification.context_name or notification.context_id or notification.job_id
    if notification.outcome is NotificationOutcome.STARTED:
        return f"Started job for {name}"
    if notification.outcome is NotificationOutcome.SUCCESS:
        return f"Finished job for {name}"
    return f"Job failed for {name}"


class ToastCenter:
    """
    Collects job notifications as toasts for the UI to render.

    Written from the tracker's event loop thread, drained from the UI thread.
    A given (context, job, outcome) produces one toast no matter how many
    times it is reported.
    """

    def __init__(self, *, max_pending: int = 50, max_seen: int = 1000) -> None:
        self._lock = threading.Lock()
        self._pending: deque[Toast] = deque(maxlen=max_pending)
        self._max_seen = max(max_seen, 1)
        # insertion-ordered; the oldest keys are evicted first
        self._seen: OrderedDict[tuple[str, str, NotificationOutcome], None] = OrderedDict()

    def notify(self, notification: JobNotification) -> None:
        key = (notification.context_id, notification.job_id, notification.outcome)
        toast = Toast(
            level=_LEVELS[notification.outcome],
            title=_title(notification),
            body=notification.summary,
            job_id=notification.job_id,
            created_at=utcnow(),
        )
        with self._lock:
            if key in self._seen:
                logger.debug("Duplicate %s notification for job %s", notification.outcome, notification.job_id)
                return
            self._seen[key] = None
            while len(self._seen) > self._max_seen:
                self._seen.popitem(last=False)
            self._pending.append(toast)
        logger.info("Toast queued: %s", toast.text)

    def drain(self) -> list[Toast]:
        with self._lock:
            toasts = list(self._pending)
            self._pending.clear()
        return toasts

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)

    @property
    def remembered(self) -> int:
        with self._lock:
            return len(self._seen)
