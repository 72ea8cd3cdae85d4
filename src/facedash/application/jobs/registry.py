"""
Process-wide table of tracked jobs.

The registry owns one ``JobProgress`` record and at most one open progress
channel per job id, fans frames out to watchers, and settles every
subscription exactly once when the job reaches a terminal state.

All methods run on the event loop thread and never await, so the
check-then-open in ``track_job`` cannot interleave with a frame handler.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from functools import partial
from typing import Callable, Hashable, Optional

from facedash.application.jobs import notifications
from facedash.application.jobs.dto import JobNotification
from facedash.application.jobs.interfaces import ChannelFactory, NotificationSink, ProgressChannel
from facedash.application.jobs.subscription import (
    CompleteHandler,
    ErrorHandler,
    OutcomeHandler,
    Subscription,
    outcome_handler,
)
from facedash.domain.common import utcnow
from facedash.domain.jobs.entities import JobProgress
from facedash.domain.jobs.enums import JobStatus
from facedash.domain.jobs.errors import InvalidJobRequest
from facedash.domain.jobs.value_objects import Completed, Failed, JobOutcome, ProgressFrame

logger = logging.getLogger(__name__)

LOST_CONNECTION = "Progress stream lost connection; the job may still be running on the server."

JobListener = Callable[[Optional[JobProgress]], None]


@dataclass(slots=True)
class _JobEntry:
    job: JobProgress
    channel: Optional[ProgressChannel] = None
    subscriptions: dict[int, Subscription] = field(default_factory=dict)
    outcome: Optional[JobOutcome] = None
    retention_elapsed: bool = False
    idle_timer: Optional[asyncio.TimerHandle] = None
    evict_timer: Optional[asyncio.TimerHandle] = None


class JobRegistry:
    def __init__(
        self,
        channel_factory: ChannelFactory,
        *,
        notifier: Optional[NotificationSink] = None,
        terminal_retention_seconds: float = 30.0,
        idle_timeout_seconds: Optional[float] = None,
        notify_on_start: bool = False,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._channel_factory = channel_factory
        self._notifier = notifier
        self._retention = max(terminal_retention_seconds, 0.0)
        self._idle_timeout = idle_timeout_seconds
        self._notify_on_start = notify_on_start
        self._clock = clock
        self._entries: dict[str, _JobEntry] = {}
        self._watchers: dict[str, list[JobListener]] = {}

    # ---------- Consumer API ----------

    def track_job(
        self,
        job_id: str,
        progress_key: str,
        context_id: str = "",
        context_name: str = "",
        on_complete: Optional[CompleteHandler] = None,
        on_error: Optional[ErrorHandler] = None,
        *,
        on_outcome: Optional[OutcomeHandler] = None,
        owner: Hashable | None = None,
    ) -> Subscription:
        """
        Register interest in a job and return the caller's disposer.

        Opens a progress channel only if none is open for ``job_id``.
        Exactly one of on_complete/on_error (or one on_outcome call) fires
        for a job that reaches a terminal frame while this subscription is live.
        """
        if not job_id:
            raise InvalidJobRequest("job_id must be a non-empty string")
        if not progress_key:
            raise InvalidJobRequest("progress_key must be a non-empty string")

        handler = on_outcome or outcome_handler(on_complete, on_error)

        entry = self._entries.get(job_id)
        if entry is None:
            entry = self._open_entry(job_id, progress_key, context_id, context_name)
        elif owner is not None:
            for existing in entry.subscriptions.values():
                if existing.owner == owner and existing.active:
                    return existing

        subscription = Subscription(
            job_id=job_id,
            on_outcome=handler,
            release=self._release,
            owner=owner,
        )

        if entry.outcome is not None:
            # Already settled and retained: replay the outcome on the next tick.
            asyncio.get_running_loop().call_soon(self._deliver, subscription, entry.outcome)
        else:
            entry.subscriptions[subscription.id] = subscription
        return subscription

    def get_job(self, job_id: str) -> Optional[JobProgress]:
        entry = self._entries.get(job_id)
        return entry.job if entry is not None else None

    def watch(self, job_id: str, listener: JobListener) -> Callable[[], None]:
        """
        Call ``listener`` after every mutation of ``job_id`` (``None`` on eviction).
        A watcher keeps a finished record from being evicted until it unwatches.
        """
        self._watchers.setdefault(job_id, []).append(listener)

        def _unwatch() -> None:
            listeners = self._watchers.get(job_id)
            if not listeners or listener not in listeners:
                return
            listeners.remove(listener)
            if not listeners:
                del self._watchers[job_id]
                self._maybe_evict(job_id)

        return _unwatch

    @property
    def jobs(self) -> list[JobProgress]:
        return [entry.job for entry in self._entries.values()]

    @property
    def running_jobs(self) -> list[JobProgress]:
        return [entry.job for entry in self._entries.values() if entry.job.is_active]

    @property
    def has_running_jobs(self) -> bool:
        return any(entry.job.is_active for entry in self._entries.values())

    def interest_count(self, job_id: str) -> int:
        entry = self._entries.get(job_id)
        return len(entry.subscriptions) if entry is not None else 0

    def close(self) -> None:
        """Close every channel and forget every record. Callbacks do not fire."""
        for entry in list(self._entries.values()):
            self._close_channel(entry)
            self._cancel_timers(entry)
            for subscription in list(entry.subscriptions.values()):
                subscription.dispose()
        self._entries.clear()
        self._watchers.clear()

    # ---------- Channel wiring ----------

    def _open_entry(self, job_id: str, progress_key: str, context_id: str, context_name: str) -> _JobEntry:
        now = self._clock()
        job = JobProgress(
            job_id=job_id,
            progress_key=progress_key,
            context_id=context_id,
            context_name=context_name,
            status=JobStatus.QUEUED,
            message="Queued...",
            started_at=now,
            updated_at=now,
        )
        entry = _JobEntry(job=job)
        self._entries[job_id] = entry

        channel = self._channel_factory.create(progress_key=progress_key)
        entry.channel = channel
        logger.info("Tracking job %s via %s (progress_key=%s)", job_id, type(channel).__name__, progress_key)
        channel.open(
            on_frame=partial(self._on_frame, job_id, channel),
            on_error=partial(self._on_channel_error, job_id, channel),
        )
        if entry.outcome is not None:
            # the channel failed while opening
            return entry
        self._arm_idle_timer(entry)

        if self._notify_on_start:
            self._notify(notifications.started(job))
        return entry

    def _on_frame(self, job_id: str, channel: ProgressChannel, frame: ProgressFrame) -> None:
        entry = self._entries.get(job_id)
        if entry is None or entry.channel is not channel:
            logger.debug("Dropping frame for untracked job %s", job_id)
            return
        if entry.outcome is not None:
            return

        entry.job.apply(frame, now=self._clock())
        self._arm_idle_timer(entry)
        self._publish(job_id, entry.job)

        if entry.job.status is JobStatus.COMPLETED:
            self._settle(entry, Completed(job=entry.job.snapshot()))
            self._notify(notifications.succeeded(entry.job))
        elif entry.job.status is JobStatus.FAILED:
            message = entry.job.error_message or "Job failed"
            self._settle(entry, Failed(message=message, job=entry.job.snapshot()))
            self._notify(notifications.failed(entry.job, message))
        else:
            return
        self._schedule_eviction(entry)

    def _on_channel_error(self, job_id: str, channel: ProgressChannel, reason: str) -> None:
        entry = self._entries.get(job_id)
        if entry is None or entry.channel is not channel or entry.outcome is not None:
            return
        logger.warning("Lost progress channel for job %s: %s", job_id, reason)
        self._abandon(entry, LOST_CONNECTION)

    def _on_idle_timeout(self, job_id: str) -> None:
        entry = self._entries.get(job_id)
        if entry is None or entry.outcome is not None:
            return
        logger.warning("No progress for job %s in %ss; dropping it", job_id, self._idle_timeout)
        self._abandon(entry, f"No progress received for {self._idle_timeout:g}s; {LOST_CONNECTION}")

    def _abandon(self, entry: _JobEntry, message: str) -> None:
        """Outcome unknown: tell subscribers, then forget the record so nobody reads a frozen state."""
        job_id = entry.job.job_id
        self._settle(entry, Failed(message=message, lost_connection=True, job=entry.job.snapshot()))
        self._notify(notifications.failed(entry.job, message))
        self._evict(job_id)

    # ---------- Terminal dispatch ----------

    def _settle(self, entry: _JobEntry, outcome: JobOutcome) -> None:
        entry.outcome = outcome
        self._cancel_idle_timer(entry)
        interested = list(entry.subscriptions.values())
        entry.subscriptions.clear()
        for subscription in interested:
            self._deliver(subscription, outcome)
        self._close_channel(entry)
        logger.info(
            "Job %s settled as %s for %d subscriber(s)",
            entry.job.job_id, type(outcome).__name__, len(interested),
        )

    def _deliver(self, subscription: Subscription, outcome: JobOutcome) -> None:
        try:
            subscription.deliver(outcome)
        except Exception:
            logger.exception("Job outcome callback failed for %s", subscription)

    def _release(self, subscription: Subscription) -> None:
        entry = self._entries.get(subscription.job_id)
        if entry is None:
            return
        entry.subscriptions.pop(subscription.id, None)
        if not entry.subscriptions and entry.outcome is None:
            logger.info("Job %s continues in the background", subscription.job_id)

    def _notify(self, notification: JobNotification) -> None:
        if self._notifier is None:
            return
        try:
            self._notifier.notify(notification)
        except Exception:
            logger.exception("Notification sink failed for job %s", notification.job_id)

    def _publish(self, job_id: str, job: Optional[JobProgress]) -> None:
        for listener in list(self._watchers.get(job_id, ())):
            try:
                listener(job)
            except Exception:
                logger.exception("Job listener failed for %s", job_id)

    # ---------- Eviction ----------

    def _schedule_eviction(self, entry: _JobEntry) -> None:
        job_id = entry.job.job_id
        entry.evict_timer = asyncio.get_running_loop().call_later(
            self._retention, self._on_retention_elapsed, job_id
        )

    def _on_retention_elapsed(self, job_id: str) -> None:
        entry = self._entries.get(job_id)
        if entry is None:
            return
        entry.evict_timer = None
        entry.retention_elapsed = True
        self._maybe_evict(job_id)

    def _maybe_evict(self, job_id: str) -> None:
        entry = self._entries.get(job_id)
        if entry is None or not entry.retention_elapsed:
            return
        if self._watchers.get(job_id):
            return
        self._evict(job_id)

    def _evict(self, job_id: str) -> None:
        entry = self._entries.pop(job_id, None)
        if entry is None:
            return
        self._close_channel(entry)
        self._cancel_timers(entry)
        logger.debug("Evicted job %s", job_id)
        self._publish(job_id, None)

    # ---------- Helpers ----------

    def _close_channel(self, entry: _JobEntry) -> None:
        if entry.channel is not None:
            entry.channel.close()

    def _arm_idle_timer(self, entry: _JobEntry) -> None:
        if self._idle_timeout is None:
            return
        self._cancel_idle_timer(entry)
        entry.idle_timer = asyncio.get_running_loop().call_later(
            self._idle_timeout, self._on_idle_timeout, entry.job.job_id
        )

    def _cancel_idle_timer(self, entry: _JobEntry) -> None:
        if entry.idle_timer is not None:
            entry.idle_timer.cancel()
            entry.idle_timer = None

    def _cancel_timers(self, entry: _JobEntry) -> None:
        self._cancel_idle_timer(entry)
        if entry.evict_timer is not None:
            entry.evict_timer.cancel()
            entry.evict_timer = None
