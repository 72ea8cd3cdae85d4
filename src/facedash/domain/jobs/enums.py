from __future__ import annotations

from enum import StrEnum


class JobStatus(StrEnum):
    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in {JobStatus.COMPLETED, JobStatus.FAILED}

    @property
    def is_active(self) -> bool:
        return self in {JobStatus.QUEUED, JobStatus.RUNNING}

    @property
    def rank(self) -> int:
        return _RANK[self]

    def can_advance_to(self, other: "JobStatus") -> bool:
        if self.is_terminal:
            return False
        return other.rank > self.rank

    @classmethod
    def active(cls) -> tuple["JobStatus", ...]:
        return cls.QUEUED, cls.RUNNING

    @classmethod
    def parse(cls, value: object) -> "JobStatus | None":
        if value is None:
            return None
        return _ALIASES.get(str(value).strip().lower())


_RANK: dict[JobStatus, int] = {
    JobStatus.QUEUED: 0,
    JobStatus.RUNNING: 1,
    JobStatus.COMPLETED: 2,
    JobStatus.FAILED: 2,
}

_ALIASES: dict[str, JobStatus] = {
    "queued": JobStatus.QUEUED,
    "pending": JobStatus.QUEUED,
    "running": JobStatus.RUNNING,
    "started": JobStatus.RUNNING,
    "processing": JobStatus.RUNNING,
    "in_progress": JobStatus.RUNNING,
    "progress": JobStatus.RUNNING,
    "completed": JobStatus.COMPLETED,
    "complete": JobStatus.COMPLETED,
    "done": JobStatus.COMPLETED,
    "finished": JobStatus.COMPLETED,
    "success": JobStatus.COMPLETED,
    "ready": JobStatus.COMPLETED,
    "failed": JobStatus.FAILED,
    "error": JobStatus.FAILED,
    "cancelled": JobStatus.FAILED,
    "canceled": JobStatus.FAILED,
    "stopped": JobStatus.FAILED,
}


class ChannelState(StrEnum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"
    ERRORED = "errored"

    @property
    def is_live(self) -> bool:
        return self in {ChannelState.CONNECTING, ChannelState.OPEN}
