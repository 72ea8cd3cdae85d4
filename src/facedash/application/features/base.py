from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from enum import StrEnum
from typing import Any, Callable, Mapping, Optional, Sequence

from facedash.application.jobs.dto import JobView
from facedash.application.jobs.projection import project
from facedash.application.jobs.registry import JobRegistry
from facedash.application.jobs.subscription import Subscription
from facedash.domain.jobs.entities import JobProgress
from facedash.domain.jobs.errors import FailedToStartJob
from facedash.domain.jobs.value_objects import Completed, Failed, JobHandle, JobOutcome

logger = logging.getLogger(__name__)


class FlowState(StrEnum):
    IDLE = "idle"
    STARTING = "starting"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    DETACHED = "detached"


class JobFlow(ABC):
    """
    Call-site glue for one feature that starts a backend job.

    ``start()`` asks the backend for a job and tracks it right away.
    ``close()`` is what a dialog calls when it is dismissed: observation stops,
    the job keeps running, and the notification bridge reports the result.
    """

    def __init__(
        self,
        registry: JobRegistry,
        *,
        on_changed: Sequence[Callable[["JobFlow"], None]] = (),
    ) -> None:
        self._registry = registry
        self._on_changed = list(on_changed)
        self._subscription: Optional[Subscription] = None
        self.state = FlowState.IDLE
        self.handle: Optional[JobHandle] = None
        self.result: Optional[Mapping[str, Any]] = None
        self.error: Optional[str] = None
        self.lost_connection = False

    @abstractmethod
    async def _start_job(self) -> JobHandle:
        """Call the feature's start-job endpoint."""

    def _on_completed(self, job: JobProgress) -> None:
        """Feature-specific handling of the final record."""

    async def start(self) -> JobHandle:
        if self.state in {FlowState.STARTING, FlowState.RUNNING} and self.handle is not None:
            return self.handle

        self.state = FlowState.STARTING
        self.result = None
        self.error = None
        self.lost_connection = False
        try:
            handle = await self._start_job()
        except Exception as e:
            self.state = FlowState.FAILED
            self.error = str(e) or "Could not start job"
            raise FailedToStartJob(self.error) from e

        self.handle = handle
        self.state = FlowState.RUNNING
        self._subscription = self._registry.track_job(
            handle.job_id,
            handle.progress_key,
            handle.context_id,
            handle.context_name,
            on_outcome=self._handle_outcome,
            owner=self,
        )
        return handle

    def close(self) -> None:
        if self._subscription is not None:
            self._subscription.dispose()
            self._subscription = None
        if self.state is FlowState.RUNNING:
            self.state = FlowState.DETACHED
            logger.info("Job %s continues in the background", self.job_id)

    @property
    def job_id(self) -> Optional[str]:
        return self.handle.job_id if self.handle is not None else None

    @property
    def job(self) -> Optional[JobProgress]:
        if self.handle is None:
            return None
        return self._registry.get_job(self.handle.job_id)

    @property
    def view(self) -> Optional[JobView]:
        job = self.job
        return project(job) if job is not None else None

    def _handle_outcome(self, outcome: JobOutcome) -> None:
        self._subscription = None
        if isinstance(outcome, Completed):
            self.state = FlowState.COMPLETED
            self.result = outcome.job.result or {}
            self._on_completed(outcome.job)
            for hook in self._on_changed:
                hook(self)
        elif isinstance(outcome, Failed):
            self.state = FlowState.FAILED
            self.error = outcome.message
            self.lost_connection = outcome.lost_connection
