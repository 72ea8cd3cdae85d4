from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from facedash.application.jobs.interfaces import ErrorHandler, FrameHandler
from facedash.domain.jobs.enums import ChannelState
from facedash.domain.jobs.value_objects import ProgressFrame
from facedash.infrastructure.api.client import ApiError

logger = logging.getLogger(__name__)

StatusFetcher = Callable[[str], Awaitable[dict[str, Any]]]


class PollingProgressChannel:
    """
    Fallback channel that reads the job status endpoint on an interval.
    Used when the SSE connection limit is reached.
    """

    def __init__(self, fetch_status: StatusFetcher, *, progress_key: str, interval: float = 2.0) -> None:
        self.progress_key = progress_key
        self._fetch_status = fetch_status
        self._interval = interval
        self._state = ChannelState.CONNECTING
        self._task: Optional[asyncio.Task] = None
        self._closing = False

    @property
    def state(self) -> ChannelState:
        return self._state

    def open(self, *, on_frame: FrameHandler, on_error: ErrorHandler) -> None:
        if self._task is not None or self._closing:
            return
        self._state = ChannelState.CONNECTING
        self._task = asyncio.get_running_loop().create_task(
            self._run(on_frame, on_error), name=f"poll-progress:{self.progress_key}"
        )

    def close(self) -> None:
        if self._closing or not self._state.is_live:
            return
        self._closing = True
        self._state = ChannelState.CLOSED
        if self._task is not None and self._task is not asyncio.current_task():
            self._task.cancel()

    async def wait_closed(self) -> None:
        if self._task is None:
            return
        try:
            await self._task
        except asyncio.CancelledError:
            pass

    async def _run(self, on_frame: FrameHandler, on_error: ErrorHandler) -> None:
        try:
            while not self._closing:
                try:
                    payload = await self._fetch_status(self.progress_key)
                except ApiError as e:
                    self._fail(on_error, str(e))
                    return
                except Exception as e:
                    logger.exception("Unexpected error polling %s", self.progress_key)
                    self._fail(on_error, f"{type(e).__name__}: {e}")
                    return

                if self._closing:
                    return
                self._state = ChannelState.OPEN
                frame = ProgressFrame.from_event("progress", payload)
                on_frame(frame)
                if frame.is_terminal or self._closing:
                    self._state = ChannelState.CLOSED
                    return
                await asyncio.sleep(self._interval)
        except asyncio.CancelledError:
            self._state = ChannelState.CLOSED
            raise

    def _fail(self, on_error: ErrorHandler, reason: str) -> None:
        if self._closing:
            return
        self._state = ChannelState.ERRORED
        logger.warning("Polling %s failed: %s", self.progress_key, reason)
        on_error(reason)
