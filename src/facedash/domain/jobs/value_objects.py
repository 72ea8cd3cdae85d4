from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Mapping

from .enums import JobStatus
from .errors import InvalidJobRequest

if TYPE_CHECKING:
    from .entities import JobProgress


# Keys that describe progress itself; anything else on a completion event is result data.
PROGRESS_KEYS = frozenset({
    "status",
    "phase",
    "current",
    "total",
    "message",
    "error",
    "result",
    "jobId",
    "job_id",
    "progressKey",
    "progress_key",
    "processedImages",
    "processed_images",
    "totalImages",
    "total_images",
})

_EVENT_STATUS: dict[str, JobStatus] = {
    "progress": JobStatus.RUNNING,
    "complete": JobStatus.COMPLETED,
    "completed": JobStatus.COMPLETED,
    "done": JobStatus.COMPLETED,
    "error": JobStatus.FAILED,
    "failed": JobStatus.FAILED,
}


def _first(payload: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if payload.get(key) is not None:
            return payload[key]
    return None


def _as_int(value: Any) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True, slots=True)
class ProgressFrame:
    """
    One decoded message from a progress channel.
    Every field is optional: ``None`` means "unchanged", never "reset".
    """
    status: JobStatus | None = None
    phase: str | None = None
    current: int | None = None
    total: int | None = None
    message: str | None = None
    result: dict[str, Any] | None = None
    error: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status is not None and self.status.is_terminal

    @classmethod
    def from_event(cls, event: str | None, payload: Mapping[str, Any]) -> "ProgressFrame":
        status = JobStatus.parse(payload.get("status"))
        if status is None:
            # the polling endpoint reports terminal states through "phase"
            phase_status = JobStatus.parse(payload.get("phase"))
            if phase_status is not None and phase_status.is_terminal:
                status = phase_status
        if status is None and event:
            status = _EVENT_STATUS.get(event.strip().lower())

        phase = payload.get("phase")
        message = payload.get("message")

        result: dict[str, Any] | None = None
        if isinstance(payload.get("result"), Mapping):
            result = dict(payload["result"])
        elif status is JobStatus.COMPLETED:
            extra = {k: v for k, v in payload.items() if k not in PROGRESS_KEYS}
            result = extra or None

        error: str | None = None
        if status is JobStatus.FAILED:
            error = str(_first(payload, "error", "message") or "Job failed")

        return cls(
            status=status,
            phase=str(phase) if phase is not None else None,
            current=_as_int(_first(payload, "current", "processedImages", "processed_images")),
            total=_as_int(_first(payload, "total", "totalImages", "total_images")),
            message=str(message) if message is not None else None,
            result=result,
            error=error,
        )

    @classmethod
    def from_sse(cls, event: str | None, data: str) -> "ProgressFrame | None":
        """
        Decode the data field of an SSE event.
        Returns None for undecodable data, except on error events which
        always produce a failed frame.
        """
        try:
            payload = json.loads(data) if data else {}
        except json.JSONDecodeError:
            payload = None
        if not isinstance(payload, Mapping):
            if event and _EVENT_STATUS.get(event.strip().lower()) is JobStatus.FAILED:
                return cls(status=JobStatus.FAILED, error="Job failed")
            return None
        return cls.from_event(event, payload)


@dataclass(frozen=True, slots=True)
class JobHandle:
    """What a start-job API hands back: enough to open a progress channel."""
    job_id: str
    progress_key: str
    context_id: str = ""
    context_name: str = ""
    extra: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.job_id:
            raise InvalidJobRequest("job_id must be a non-empty string")
        if not self.progress_key:
            raise InvalidJobRequest("progress_key must be a non-empty string")


@dataclass(frozen=True, slots=True)
class Completed:
    job: "JobProgress"


@dataclass(frozen=True, slots=True)
class Failed:
    message: str
    lost_connection: bool = False
    job: "JobProgress | None" = None


JobOutcome = Completed | Failed
