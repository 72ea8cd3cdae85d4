from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from facedash.application.jobs.projection import DEFAULT_MESSAGE, LiveJobView, percent_complete, project
from facedash.application.jobs.registry import JobRegistry
from facedash.domain.jobs.entities import JobProgress
from facedash.domain.jobs.enums import JobStatus
from tests.unit.fakes.channels import FakeChannelFactory

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _job(**fields) -> JobProgress:
    return JobProgress(job_id="j1", progress_key="k1", started_at=T0, updated_at=T0, **fields)


@pytest.mark.parametrize(
    "current, total, expected",
    [
        (0, 10, 0),
        (3, 10, 30),
        (1, 3, 33),
        (2, 3, 67),
        (10, 10, 100),
        (12, 10, 100),
        (5, 0, 0),
        (-1, 10, 0),
    ],
)
def test_percent_complete(current: int, total: int, expected: int) -> None:
    assert percent_complete(current, total) == expected


class TestProject:
    def test_determinate_running_job(self) -> None:
        job = _job(status=JobStatus.RUNNING, current=25, total=100, message="Embedding")

        view = project(job, now=T0 + timedelta(seconds=5))

        assert view.percent == 25
        assert not view.indeterminate
        assert view.message == "Embedding"
        assert view.elapsed_seconds == 5
        assert view.rate_per_second == pytest.approx(5.0)
        assert view.eta_seconds == pytest.approx(15.0)

    def test_unknown_total_is_indeterminate(self) -> None:
        view = project(_job(status=JobStatus.RUNNING), now=T0)

        assert view.indeterminate
        assert view.percent == 0
        assert view.message == DEFAULT_MESSAGE
        assert view.eta_seconds is None

    def test_terminal_job_has_no_eta(self) -> None:
        job = _job(status=JobStatus.COMPLETED, current=10, total=10, result={"n": 1})

        view = project(job, now=T0 + timedelta(seconds=2))

        assert view.is_terminal
        assert view.percent == 100
        assert view.eta_seconds is None
        assert view.result == {"n": 1}

    def test_failed_job_without_total_is_not_indeterminate(self) -> None:
        view = project(_job(status=JobStatus.FAILED, error_message="boom"), now=T0)

        assert not view.indeterminate
        assert view.error_message == "boom"


class TestLiveJobView:
    async def test_follows_registry_updates(self, factory: FakeChannelFactory) -> None:
        registry = JobRegistry(factory)
        registry.track_job("j1", "k1", context_name="Alice")
        changes = []
        live = LiveJobView(registry, "j1", on_change=changes.append)

        assert live.view.message == "Queued..."

        factory.channel("k1").emit(current=4, total=8, message="Scanning")

        assert live.view.percent == 50
        assert live.view.context_name == "Alice"
        assert changes[-1] is live.view

        live.close()

    async def test_untracked_job_has_no_view(self, factory: FakeChannelFactory) -> None:
        live = LiveJobView(JobRegistry(factory), "missing")

        assert live.view is None
        live.close()
