from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Optional

from ..common import utcnow
from .enums import JobStatus
from .value_objects import ProgressFrame

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class JobProgress:
    """
    Live state of one backend job as seen by this client.
    Mutable on purpose: the registry updates it in place as frames arrive,
    and readers holding the record see the change.
    """
    job_id: str
    progress_key: str
    context_id: str = ""
    context_name: str = ""
    status: JobStatus = JobStatus.QUEUED
    phase: Optional[str] = None
    current: int = 0
    total: int = 0
    message: Optional[str] = None
    result: Optional[dict[str, Any]] = None
    error_message: Optional[str] = None
    started_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def is_active(self) -> bool:
        return self.status.is_active

    def apply(self, frame: ProgressFrame, *, now: datetime | None = None) -> None:
        """Field-level merge of a frame into this record."""
        if self.is_terminal:
            logger.debug("Ignoring frame for terminal job %s", self.job_id)
            return

        if frame.status is not None and frame.status != self.status:
            if self.status.can_advance_to(frame.status):
                self.status = frame.status
            else:
                logger.debug(
                    "Ignoring backwards status %s -> %s for job %s",
                    self.status, frame.status, self.job_id,
                )

        if frame.phase is not None:
            self.phase = frame.phase
        if frame.total is not None:
            self.total = max(frame.total, 0)
        if frame.current is not None:
            self.current = max(frame.current, 0)
        elif self.status is JobStatus.COMPLETED and self.total > 0:
            self.current = self.total
        if self.total > 0 and self.current > self.total:
            self.current = self.total
        if frame.message is not None:
            self.message = frame.message

        if self.status is JobStatus.COMPLETED:
            self.result = frame.result if frame.result is not None else (self.result or {})
        elif self.status is JobStatus.FAILED:
            self.error_message = frame.error or self.error_message or "Job failed"

        self.updated_at = now or utcnow()

    def snapshot(self) -> "JobProgress":
        return replace(self, result=dict(self.result) if self.result is not None else None)
