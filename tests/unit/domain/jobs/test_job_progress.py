from __future__ import annotations

from datetime import datetime, timedelta, timezone

from facedash.domain.jobs.entities import JobProgress
from facedash.domain.jobs.enums import JobStatus
from facedash.domain.jobs.value_objects import ProgressFrame

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _job() -> JobProgress:
    return JobProgress(job_id="j1", progress_key="k1", started_at=T0, updated_at=T0)


class TestJobProgressApply:
    def test_merges_only_fields_present_in_frame(self) -> None:
        job = _job()
        job.apply(ProgressFrame(status=JobStatus.RUNNING, current=2, total=10, message="Loading"))
        job.apply(ProgressFrame(current=5))

        assert job.status is JobStatus.RUNNING
        assert (job.current, job.total) == (5, 10)
        assert job.message == "Loading"

    def test_status_never_moves_backwards(self) -> None:
        job = _job()
        job.apply(ProgressFrame(status=JobStatus.RUNNING))
        job.apply(ProgressFrame(status=JobStatus.QUEUED))

        assert job.status is JobStatus.RUNNING

    def test_frames_after_terminal_are_ignored(self) -> None:
        job = _job()
        job.apply(ProgressFrame(status=JobStatus.COMPLETED, result={"n": 1}))
        job.apply(ProgressFrame(status=JobStatus.RUNNING, current=1, message="late"))

        assert job.status is JobStatus.COMPLETED
        assert job.message is None
        assert job.result == {"n": 1}

    def test_failed_cannot_become_completed(self) -> None:
        job = _job()
        job.apply(ProgressFrame(status=JobStatus.FAILED, error="boom"))
        job.apply(ProgressFrame(status=JobStatus.COMPLETED))

        assert job.status is JobStatus.FAILED
        assert job.error_message == "boom"

    def test_completion_without_current_fills_the_bar(self) -> None:
        job = _job()
        job.apply(ProgressFrame(status=JobStatus.RUNNING, current=3, total=10))
        job.apply(ProgressFrame(status=JobStatus.COMPLETED))

        assert job.current == 10
        assert job.result == {}

    def test_current_is_clamped_to_total(self) -> None:
        job = _job()
        job.apply(ProgressFrame(current=15, total=10))

        assert job.current == 10

    def test_updates_timestamp(self) -> None:
        job = _job()
        later = T0 + timedelta(seconds=5)
        job.apply(ProgressFrame(current=1), now=later)

        assert job.updated_at == later
        assert job.started_at == T0

    def test_snapshot_is_detached_from_the_live_record(self) -> None:
        job = _job()
        job.apply(ProgressFrame(status=JobStatus.COMPLETED, result={"n": 1}))
        snap = job.snapshot()
        job.result["n"] = 2

        assert snap.result == {"n": 1}
        assert snap is not job


class TestJobStatus:
    def test_terminal_and_active_sets(self) -> None:
        assert {s for s in JobStatus if s.is_terminal} == {JobStatus.COMPLETED, JobStatus.FAILED}
        assert set(JobStatus.active()) == {s for s in JobStatus if s.is_active}
