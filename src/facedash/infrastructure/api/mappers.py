from typing import Any, Mapping

from facedash.domain.jobs.errors import FailedToStartJob
from facedash.domain.jobs.value_objects import JobHandle

_ID_KEYS = {"jobId", "job_id", "progressKey", "progress_key"}


def to_job_handle(
    data: Any,
    *,
    context_id: str = "",
    context_name: str = "",
) -> JobHandle:
    """Map a start-job response (camelCase or snake_case) to a JobHandle."""
    if not isinstance(data, Mapping):
        raise FailedToStartJob("Start-job response is not a JSON object")

    job_id = data.get("jobId") or data.get("job_id")
    progress_key = data.get("progressKey") or data.get("progress_key")
    if not job_id or not progress_key:
        raise FailedToStartJob("Start-job response is missing jobId or progressKey")

    return JobHandle(
        job_id=str(job_id),
        progress_key=str(progress_key),
        context_id=context_id,
        context_name=context_name or str(data.get("personName") or data.get("person_name") or ""),
        extra={k: v for k, v in data.items() if k not in _ID_KEYS},
    )
