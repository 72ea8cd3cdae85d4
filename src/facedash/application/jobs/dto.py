from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Mapping, Optional

from facedash.domain.jobs.enums import JobStatus


class NotificationOutcome(StrEnum):
    STARTED = "started"
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass(frozen=True, slots=True)
class JobNotification:
    job_id: str
    context_id: str
    context_name: str
    outcome: NotificationOutcome
    summary: str


@dataclass(frozen=True, slots=True)
class JobView:
    job_id: str
    context_name: str
    status: JobStatus
    percent: int  # 0..100
    indeterminate: bool
    message: str
    elapsed_seconds: float
    rate_per_second: Optional[float] = None
    eta_seconds: Optional[float] = None
    result: Optional[Mapping[str, Any]] = None
    error_message: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal
