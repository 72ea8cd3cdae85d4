from __future__ import annotations

import functools
import json
from typing import Any, Dict, Optional

import httpx

from facedash.domain.jobs.errors import FailedToStartJob
from facedash.domain.jobs.value_objects import JobHandle
from facedash.infrastructure.api.mappers import to_job_handle


class ApiError(RuntimeError):
    """Raised when an HTTP/API error occurs, with a human-readable message."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def unwrap_error(e: Exception) -> str:
    """Extract a human-readable error message from httpx exceptions."""
    if isinstance(e, httpx.HTTPStatusError):
        # The request reached the server, but the response had an error code
        try:
            data = e.response.json()
            detail = data.get("detail") or data.get("message") if isinstance(data, dict) else data
            return f"{e.response.status_code} {e.response.reason_phrase}: {detail}"
        except Exception:
            return f"{e.response.status_code} {e.response.reason_phrase}"

    elif isinstance(e, httpx.TimeoutException):
        return "Request timed out."

    elif isinstance(e, httpx.ConnectError):
        return "Failed to connect to server. Is it running?"

    elif isinstance(e, json.JSONDecodeError):
        return "Server returned a response that is not valid JSON."

    elif isinstance(e, httpx.RequestError):
        # Other transport errors: DNS failures, dropped connections, etc.
        return f"Request failed: {e.__class__.__name__}: {e}"

    else:
        return str(e)


def handle_httpx_errors(func):
    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except (ApiError, FailedToStartJob):
            raise
        except Exception as e:
            status_code = e.response.status_code if isinstance(e, httpx.HTTPStatusError) else None
            # Wrap any other error into a consistent ApiError
            raise ApiError(unwrap_error(e), status_code=status_code) from e

    return wrapper


class FacesApi:
    """
    Async API client for the job-starting endpoints of the faces backend.

    Assumes backend routes:
      POST {prefix}/faces/persons/{id}/find-more            -> {"jobId", "progressKey", ...}
      POST {prefix}/faces/persons/{id}/centroid-suggestions -> {"jobId", "progressKey", ...}
      POST {prefix}/faces/sessions                          -> {"id", "jobId", "progressKey", ...}
      GET  {prefix}/job-progress/status?progress_key=...    -> progress payload
      GET  {prefix}/job-progress/events?progress_key=...    -> text/event-stream
    """

    def __init__(
        self,
        base_url: str,
        *,
        prefix: str = "/api/v1",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._prefix = "/" + prefix.strip("/") if prefix.strip("/") else ""
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
        )

    @property
    def http(self) -> httpx.AsyncClient:
        """Shared client; progress channels stream over the same connection pool."""
        return self._client

    def path(self, endpoint: str) -> str:
        return f"{self._prefix}/{endpoint.lstrip('/')}"

    @property
    def events_path(self) -> str:
        return self.path("/job-progress/events")

    @property
    def status_path(self) -> str:
        return self.path("/job-progress/status")

    async def aclose(self) -> None:
        await self._client.aclose()

    # ---------- Job-starting endpoints ----------

    @handle_httpx_errors
    async def start_find_more(
        self,
        person_id: str,
        *,
        person_name: str = "",
        prototype_count: int = 50,
        max_suggestions: int = 100,
        min_confidence: float = 0.7,
    ) -> JobHandle:
        """Search for more faces of a person, seeded from its labelled prototypes."""
        payload: Dict[str, Any] = {
            "prototype_count": prototype_count,
            "max_suggestions": max_suggestions,
            "min_confidence": min_confidence,
        }
        resp = await self._client.post(self.path(f"/faces/persons/{person_id}/find-more"), json=payload)
        resp.raise_for_status()
        return to_job_handle(resp.json(), context_id=person_id, context_name=person_name)

    @handle_httpx_errors
    async def start_centroid_computation(
        self,
        person_id: str,
        *,
        person_name: str = "",
        min_similarity: float = 0.65,
        max_results: int = 200,
    ) -> JobHandle:
        payload: Dict[str, Any] = {
            "min_similarity": min_similarity,
            "max_results": max_results,
        }
        resp = await self._client.post(
            self.path(f"/faces/persons/{person_id}/centroid-suggestions"),
            json=payload,
        )
        resp.raise_for_status()
        return to_job_handle(resp.json(), context_id=person_id, context_name=person_name)

    @handle_httpx_errors
    async def start_face_detection(
        self,
        *,
        training_session_id: Optional[int] = None,
        min_confidence: float = 0.5,
        min_face_size: int = 20,
        batch_size: int = 16,
    ) -> JobHandle:
        payload: Dict[str, Any] = {
            "training_session_id": training_session_id,
            "min_confidence": min_confidence,
            "min_face_size": min_face_size,
            "batch_size": batch_size,
        }
        resp = await self._client.post(self.path("/faces/sessions"), json=payload)
        resp.raise_for_status()
        data = resp.json()
        session_id = str(data.get("id") or "") if isinstance(data, dict) else ""
        return to_job_handle(
            data,
            context_id=session_id,
            context_name=f"Face detection {session_id[:8]}".strip(),
        )

    # ---------- Progress ----------

    @handle_httpx_errors
    async def get_progress_status(self, progress_key: str) -> Dict[str, Any]:
        resp = await self._client.get(self.status_path, params={"progress_key": progress_key})
        resp.raise_for_status()
        data = resp.json()
        if not isinstance(data, dict):
            raise ApiError("Unexpected progress status payload.")
        return data
