from __future__ import annotations

from facedash.application.jobs.dto import JobNotification, NotificationOutcome
from facedash.domain.jobs.entities import JobProgress

# result counter -> label, in display order
RESULT_LABELS: dict[str, str] = {
    "suggestionsCreated": "suggestions created",
    "candidatesFound": "candidates found",
    "prototypesUsed": "prototypes used",
    "duplicatesSkipped": "duplicates skipped",
    "facesDetected": "faces detected",
    "facesAssigned": "faces assigned",
    "clustersCreated": "clusters created",
}


def summarize(job: JobProgress) -> str:
    result = job.result or {}
    parts = [
        f"{result[key]} {label}"
        for key, label in RESULT_LABELS.items()
        if isinstance(result.get(key), int)
    ]
    if parts:
        return ", ".join(parts)
    return job.message or "Completed"


def started(job: JobProgress) -> JobNotification:
    return JobNotification(
        job_id=job.job_id,
        context_id=job.context_id,
        context_name=job.context_name,
        outcome=NotificationOutcome.STARTED,
        summary=job.message or "Started",
    )


def succeeded(job: JobProgress) -> JobNotification:
    return JobNotification(
        job_id=job.job_id,
        context_id=job.context_id,
        context_name=job.context_name,
        outcome=NotificationOutcome.SUCCESS,
        summary=summarize(job),
    )


def failed(job: JobProgress, message: str) -> JobNotification:
    return JobNotification(
        job_id=job.job_id,
        context_id=job.context_id,
        context_name=job.context_name,
        outcome=NotificationOutcome.FAILURE,
        summary=message,
    )
