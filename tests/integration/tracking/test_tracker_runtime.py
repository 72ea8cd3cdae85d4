from __future__ import annotations

import asyncio
import time

import httpx
import pytest

from facedash.application.features.base import FlowState
from facedash.core.config import Settings
from facedash.domain.jobs.errors import FailedToStartJob
from facedash.frontend.streamlit_app.services.tracker import TrackerRuntime


@pytest.fixture
def runtime(backend):
    runtime = TrackerRuntime(
        Settings(API_BASE_URL="http://faces.test", POLL_INTERVAL_SECONDS=0.01),
        transport=backend.transport,
        call_timeout=5,
    )
    yield runtime
    runtime.shutdown()


def _wait(predicate, timeout: float = 2.0) -> None:
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not reached in time")
        time.sleep(0.01)


def test_runtime_tracks_jobs_from_another_thread(runtime: TrackerRuntime) -> None:
    flow = runtime.find_more("p1", "Alice")

    assert flow.state in {FlowState.RUNNING, FlowState.COMPLETED}
    _wait(lambda: flow.state is FlowState.COMPLETED)

    views = runtime.views()
    assert [v.job_id for v in views] == [flow.job_id]
    assert views[0].percent == 100
    assert not runtime.has_running_jobs()
    assert [t.level for t in runtime.toasts.drain()] == ["success"]


def test_closing_a_flow_keeps_the_job(runtime: TrackerRuntime) -> None:
    flow = runtime.compute_centroids("p1", "Alice")
    runtime.close_flow(flow)

    _wait(lambda: len(runtime.toasts) > 0)

    assert flow.state in {FlowState.DETACHED, FlowState.COMPLETED}


def test_slow_start_is_reported_as_start_failure(backend) -> None:
    async def slow_backend(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(5)
        return backend.handler(request)

    runtime = TrackerRuntime(
        Settings(API_BASE_URL="http://faces.test"),
        transport=httpx.MockTransport(slow_backend),
        call_timeout=0.1,
    )
    try:
        with pytest.raises(FailedToStartJob, match="timed out"):
            runtime.find_more("p1", "Alice")

        assert runtime.views() == []
    finally:
        runtime.shutdown()
