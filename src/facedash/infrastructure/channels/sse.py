"""
Server-Sent Events progress channel.

One streaming GET per progress key. The channel stops by itself on a
terminal frame and reports every other way the stream can end as an error;
it never reconnects.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import AsyncIterator, Optional

import httpx

from facedash.application.jobs.interfaces import ErrorHandler, FrameHandler
from facedash.domain.jobs.enums import ChannelState
from facedash.domain.jobs.value_objects import ProgressFrame
from facedash.infrastructure.api.client import unwrap_error

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SseEvent:
    event: str
    data: str
    id: Optional[str] = None


async def iter_sse_events(lines: AsyncIterator[str]) -> AsyncIterator[SseEvent]:
    event_name = "message"
    event_id: Optional[str] = None
    data_lines: list[str] = []
    async for raw_line in lines:
        line = raw_line.rstrip("\r\n")
        if not line:
            if data_lines:
                yield SseEvent(event=event_name or "message", data="\n".join(data_lines), id=event_id)
            event_name = "message"
            data_lines = []
            continue
        if line.startswith(":"):
            continue
        field_name, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if field_name == "event":
            event_name = value.strip()
        elif field_name == "data":
            data_lines.append(value)
        elif field_name == "id":
            event_id = value
    if data_lines:
        yield SseEvent(event=event_name or "message", data="\n".join(data_lines), id=event_id)


class SseProgressChannel:
    def __init__(self, client: httpx.AsyncClient, *, path: str, progress_key: str) -> None:
        self.progress_key = progress_key
        self._client = client
        self._path = path
        self._state = ChannelState.CONNECTING
        self._task: Optional[asyncio.Task] = None
        self._on_frame: Optional[FrameHandler] = None
        self._on_error: Optional[ErrorHandler] = None
        self._closing = False
        self.last_event_id: Optional[str] = None

    @property
    def state(self) -> ChannelState:
        return self._state

    def open(self, *, on_frame: FrameHandler, on_error: ErrorHandler) -> None:
        if self._task is not None or self._closing:
            return
        self._on_frame = on_frame
        self._on_error = on_error
        self._state = ChannelState.CONNECTING
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name=f"sse-progress:{self.progress_key}"
        )

    def close(self) -> None:
        if self._closing or not self._state.is_live:
            return
        self._closing = True
        self._state = ChannelState.CLOSED
        # Called from inside on_frame: the reader is about to return on its own.
        if self._task is not None and self._task is not asyncio.current_task():
            self._task.cancel()

    async def wait_closed(self) -> None:
        if self._task is None:
            return
        try:
            await self._task
        except asyncio.CancelledError:
            pass

    async def _run(self) -> None:
        try:
            async with self._client.stream(
                "GET",
                self._path,
                params={"progress_key": self.progress_key},
                headers={"Accept": "text/event-stream"},
                timeout=httpx.Timeout(10.0, read=None),
            ) as response:
                response.raise_for_status()
                if self._closing:
                    return
                self._state = ChannelState.OPEN
                logger.debug("SSE channel open for %s", self.progress_key)

                async for event in iter_sse_events(response.aiter_lines()):
                    if event.id is not None:
                        self.last_event_id = event.id
                    frame = ProgressFrame.from_sse(event.event, event.data)
                    if frame is None:
                        logger.warning(
                            "Skipping undecodable %r event for %s", event.event, self.progress_key
                        )
                        continue
                    self._on_frame(frame)
                    if frame.is_terminal or self._closing:
                        self._state = ChannelState.CLOSED
                        return
        except asyncio.CancelledError:
            self._state = ChannelState.CLOSED
            raise
        except httpx.HTTPError as e:
            self._fail(unwrap_error(e))
            return
        except Exception as e:
            # decoder and stream-state errors are not HTTPError subclasses
            logger.exception("Unexpected error reading SSE stream for %s", self.progress_key)
            self._fail(f"{type(e).__name__}: {e}")
            return

        self._fail("Stream ended before the job finished")

    def _fail(self, reason: str) -> None:
        if self._closing:
            return
        self._state = ChannelState.ERRORED
        logger.warning("SSE channel for %s errored: %s", self.progress_key, reason)
        self._on_error(reason)
