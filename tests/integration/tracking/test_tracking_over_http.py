from __future__ import annotations

import asyncio
from typing import Callable

import pytest

from facedash.application.features.base import FlowState
from facedash.application.features.face_detection import FaceDetectionFlow
from facedash.application.features.find_more import FindMoreSuggestionsFlow
from facedash.application.jobs.registry import LOST_CONNECTION, JobRegistry
from facedash.infrastructure.api.client import FacesApi
from facedash.infrastructure.channels.factory import AdaptiveChannelFactory
from facedash.infrastructure.notifications.toasts import ToastCenter
from tests.unit.fakes.sse import sse_event


async def _until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)


@pytest.fixture
async def api(backend):
    api = FacesApi("http://faces.test", transport=backend.transport)
    yield api
    await api.aclose()


def _registry(api: FacesApi, toasts: ToastCenter, *, max_sse: int = 4) -> JobRegistry:
    return JobRegistry(
        AdaptiveChannelFactory(api, max_sse_connections=max_sse, poll_interval=0.01),
        notifier=toasts,
    )


class TestTrackingOverHttp:
    async def test_find_more_completes_over_sse(self, backend, api: FacesApi) -> None:
        toasts = ToastCenter()
        registry = _registry(api, toasts)
        flow = FindMoreSuggestionsFlow(registry, api, person_id="p1", person_name="Alice")

        await flow.start()
        await _until(lambda: flow.state is FlowState.COMPLETED)

        assert flow.suggestions_created == 5
        assert registry.get_job(flow.job_id).current == 2
        assert [t.text for t in toasts.drain()] == ["Finished job for Alice: 5 suggestions created"]
        assert "/api/v1/job-progress/events" in backend.paths()
        registry.close()

    async def test_dismissed_dialog_still_gets_a_toast(self, backend, api: FacesApi) -> None:
        toasts = ToastCenter()
        registry = _registry(api, toasts)
        flow = FindMoreSuggestionsFlow(registry, api, person_id="p1", person_name="Alice")

        await flow.start()
        flow.close()
        await _until(lambda: len(toasts) > 0)

        assert flow.state is FlowState.DETACHED
        assert toasts.drain()[0].level == "success"
        registry.close()

    async def test_stream_dropping_reports_lost_connection(self, backend, api: FacesApi) -> None:
        backend.default_script = lambda key: [sse_event("progress", {"current": 1, "total": 4})]
        toasts = ToastCenter()
        registry = _registry(api, toasts)
        flow = FindMoreSuggestionsFlow(registry, api, person_id="p1", person_name="Alice")

        await flow.start()
        await _until(lambda: flow.state is FlowState.FAILED)

        assert flow.lost_connection
        assert flow.error == LOST_CONNECTION
        assert registry.get_job(flow.job_id) is None
        assert toasts.drain()[0].level == "error"

    async def test_polling_fallback_past_sse_limit(self, backend, api: FacesApi) -> None:
        backend.status["key-1"] = [
            {"phase": "detecting", "processedImages": 3, "totalImages": 10},
            {"phase": "completed", "processedImages": 10, "totalImages": 10, "result": {"facesDetected": 17}},
        ]
        toasts = ToastCenter()
        registry = _registry(api, toasts, max_sse=0)
        flow = FaceDetectionFlow(registry, api)

        await flow.start()
        await _until(lambda: flow.state is FlowState.COMPLETED)

        assert flow.faces_detected == 17
        assert flow.session_id == "session0001"
        assert "/api/v1/job-progress/events" not in backend.paths()
        assert backend.paths().count("/api/v1/job-progress/status") == 2
        registry.close()

    async def test_two_features_share_one_stream(self, backend, api: FacesApi) -> None:
        toasts = ToastCenter()
        registry = _registry(api, toasts)
        flow = FindMoreSuggestionsFlow(registry, api, person_id="p1", person_name="Alice")
        await flow.start()

        completed = []
        registry.track_job(flow.job_id, flow.handle.progress_key, on_complete=completed.append)
        await _until(lambda: flow.state is FlowState.COMPLETED and completed)

        assert backend.paths().count("/api/v1/job-progress/events") == 1
        assert len(toasts.drain()) == 1
        registry.close()
