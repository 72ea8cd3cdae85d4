from __future__ import annotations

from typing import Any, Callable

import httpx
import pytest

from tests.unit.fakes.sse import sse_event, sse_response


class FakeFacesBackend:
    """
    In-memory stand-in for the faces backend, served through httpx.MockTransport.

    Every started job gets a scripted list of SSE events; ``status`` holds
    what the polling endpoint returns per progress key.
    """

    def __init__(self) -> None:
        self.scripts: dict[str, list[bytes]] = {}
        self.status: dict[str, list[dict[str, Any]]] = {}
        self.requests: list[httpx.Request] = []
        self.default_script: Callable[[str], list[bytes]] = lambda key: [
            sse_event("progress", {"current": 1, "total": 2, "message": "Working"}),
            sse_event("complete", {"current": 2, "total": 2, "suggestionsCreated": 5}),
        ]
        self._seq = 0

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if request.method == "POST":
            self._seq += 1
            job_id = f"job-{self._seq}"
            body: dict[str, Any] = {"jobId": job_id, "progressKey": f"key-{self._seq}"}
            if path.endswith("/faces/sessions"):
                body["id"] = f"session{self._seq:04d}"
            return httpx.Response(202, json=body)

        key = request.url.params.get("progress_key", "")
        if path.endswith("/job-progress/events"):
            return sse_response(*self.scripts.get(key, self.default_script(key)))
        if path.endswith("/job-progress/status"):
            queue = self.status.get(key) or [{"phase": "completed", "current": 1, "total": 1}]
            payload = queue.pop(0) if len(queue) > 1 else queue[0]
            return httpx.Response(200, json=payload)
        return httpx.Response(404, json={"detail": "Not found"})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def paths(self, method: str = "GET") -> list[str]:
        return [r.url.path for r in self.requests if r.method == method]


@pytest.fixture
def backend() -> FakeFacesBackend:
    return FakeFacesBackend()
