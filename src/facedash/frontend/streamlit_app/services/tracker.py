from __future__ import annotations

import asyncio
import logging
import threading
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, Callable, Coroutine, Optional, TypeVar

import httpx

from facedash.application.features.base import JobFlow
from facedash.application.features.centroids import CentroidComputationFlow
from facedash.application.features.face_detection import FaceDetectionFlow
from facedash.application.features.find_more import FindMoreSuggestionsFlow
from facedash.application.jobs.dto import JobView
from facedash.application.jobs.projection import project
from facedash.application.jobs.registry import JobRegistry
from facedash.core.config import Settings
from facedash.domain.jobs.errors import FailedToStartJob
from facedash.infrastructure.api.client import FacesApi
from facedash.infrastructure.channels.factory import AdaptiveChannelFactory
from facedash.infrastructure.notifications.toasts import ToastCenter

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TrackerRuntime:
    """
    Hosts the job registry on a private asyncio loop thread.

    Streamlit reruns scripts on its own threads; every registry call is
    marshalled onto the loop thread so the registry stays single-threaded.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        call_timeout: float = 30.0,
    ) -> None:
        self._call_timeout = call_timeout
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._run_loop, name="facedash-tracker", daemon=True)

        self.toasts = ToastCenter()
        self.api = FacesApi(
            settings.API_BASE_URL,
            prefix=settings.API_PREFIX,
            timeout=settings.REQUEST_TIMEOUT_SECONDS,
            transport=transport,
        )
        self.registry = JobRegistry(
            AdaptiveChannelFactory(
                self.api,
                max_sse_connections=settings.MAX_SSE_CONNECTIONS,
                poll_interval=settings.POLL_INTERVAL_SECONDS,
            ),
            notifier=self.toasts,
            terminal_retention_seconds=settings.TERMINAL_RETENTION_SECONDS,
            idle_timeout_seconds=settings.IDLE_TIMEOUT_SECONDS,
            notify_on_start=settings.NOTIFY_ON_START,
        )
        self._thread.start()

    def _run_loop(self) -> None:
        asyncio.set_event_loop(self._loop)
        self._loop.run_forever()

    # ---------- Marshalling ----------

    def submit(self, coro: Coroutine[Any, Any, T]) -> Future:
        return asyncio.run_coroutine_threadsafe(coro, self._loop)

    def call(self, fn: Callable[..., T], *args: Any) -> T:
        async def _invoke() -> T:
            return fn(*args)

        return self.submit(_invoke()).result(self._call_timeout)

    # ---------- Features ----------

    def start(self, flow: JobFlow) -> JobFlow:
        future = self.submit(flow.start())
        try:
            future.result(self._call_timeout)
        except FutureTimeoutError as e:
            future.cancel()
            logger.warning("Starting %s timed out after %ss", type(flow).__name__, self._call_timeout)
            raise FailedToStartJob(f"Starting the job timed out after {self._call_timeout:g}s") from e
        return flow

    def find_more(self, person_id: str, person_name: str, **options: Any) -> FindMoreSuggestionsFlow:
        flow = FindMoreSuggestionsFlow(
            self.registry, self.api, person_id=person_id, person_name=person_name, **options
        )
        self.start(flow)
        return flow

    def compute_centroids(self, person_id: str, person_name: str, **options: Any) -> CentroidComputationFlow:
        flow = CentroidComputationFlow(
            self.registry, self.api, person_id=person_id, person_name=person_name, **options
        )
        self.start(flow)
        return flow

    def detect_faces(self, **options: Any) -> FaceDetectionFlow:
        flow = FaceDetectionFlow(self.registry, self.api, **options)
        self.start(flow)
        return flow

    def close_flow(self, flow: JobFlow) -> None:
        self.call(flow.close)

    # ---------- Reads ----------

    def views(self) -> list[JobView]:
        return self.call(lambda: [project(job) for job in self.registry.jobs])

    def flow_view(self, flow: JobFlow) -> Optional[JobView]:
        return self.call(lambda: flow.view)

    def has_running_jobs(self) -> bool:
        return self.call(lambda: self.registry.has_running_jobs)

    def shutdown(self) -> None:
        if not self._thread.is_alive():
            return
        try:
            self.call(self.registry.close)
            self.submit(self.api.aclose()).result(self._call_timeout)
        finally:
            self._loop.call_soon_threadsafe(self._loop.stop)
            self._thread.join(timeout=5)
            logger.info("Tracker runtime stopped")
