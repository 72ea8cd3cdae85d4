"""
UI-facing derivation of a ``JobProgress`` record.

``project`` is pure; ``LiveJobView`` recomputes it after every mutation the
registry publishes.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Callable, Optional

from facedash.application.jobs.dto import JobView
from facedash.domain.common import utcnow
from facedash.domain.jobs.entities import JobProgress

if TYPE_CHECKING:
    from facedash.application.jobs.registry import JobRegistry

logger = logging.getLogger(__name__)

DEFAULT_MESSAGE = "Processing…"


def percent_complete(current: int, total: int) -> int:
    if total <= 0:
        return 0
    value = int(100 * current / total + 0.5)
    return max(0, min(100, value))


def project(job: JobProgress, *, now: Optional[datetime] = None) -> JobView:
    now = now or utcnow()
    elapsed = max((now - job.started_at).total_seconds(), 0.0)

    rate: float | None = None
    eta: float | None = None
    if elapsed > 0 and job.current > 0:
        rate = job.current / elapsed
        if job.is_active and job.total > 0:
            eta = max(job.total - job.current, 0) / rate

    return JobView(
        job_id=job.job_id,
        context_name=job.context_name,
        status=job.status,
        percent=percent_complete(job.current, job.total),
        indeterminate=job.total <= 0 and not job.is_terminal,
        message=job.message or DEFAULT_MESSAGE,
        elapsed_seconds=elapsed,
        rate_per_second=rate,
        eta_seconds=eta,
        result=job.result,
        error_message=job.error_message,
    )


class LiveJobView:
    """
    Keeps ``view`` in sync with a tracked job.
    While open it counts as a reader, so a finished record stays readable.
    """

    def __init__(
        self,
        registry: "JobRegistry",
        job_id: str,
        on_change: Optional[Callable[[Optional[JobView]], None]] = None,
    ) -> None:
        self._on_change = on_change
        job = registry.get_job(job_id)
        self.view: Optional[JobView] = project(job) if job is not None else None
        self._unwatch = registry.watch(job_id, self._refresh)

    def _refresh(self, job: Optional[JobProgress]) -> None:
        self.view = project(job) if job is not None else None
        if self._on_change is not None:
            self._on_change(self.view)

    def close(self) -> None:
        self._unwatch()
