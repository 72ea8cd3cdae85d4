from __future__ import annotations

import logging

from facedash.application.jobs.interfaces import ProgressChannel
from facedash.infrastructure.api.client import FacesApi
from facedash.infrastructure.channels.polling import PollingProgressChannel
from facedash.infrastructure.channels.sse import SseProgressChannel

logger = logging.getLogger(__name__)


class AdaptiveChannelFactory:
    """
    Opens SSE channels while fewer than ``max_sse_connections`` are live
    (browsers cap concurrent event streams per origin), polling channels after that.
    """

    def __init__(
        self,
        api: FacesApi,
        *,
        max_sse_connections: int = 4,
        poll_interval: float = 2.0,
    ) -> None:
        self._api = api
        self._max_sse = max_sse_connections
        self._poll_interval = poll_interval
        self._sse: list[SseProgressChannel] = []

    @property
    def live_sse_connections(self) -> int:
        self._sse = [channel for channel in self._sse if channel.state.is_live]
        return len(self._sse)

    def create(self, *, progress_key: str) -> ProgressChannel:
        if self.live_sse_connections >= self._max_sse:
            logger.info(
                "SSE limit (%d) reached; polling %s every %ss",
                self._max_sse, progress_key, self._poll_interval,
            )
            return PollingProgressChannel(
                self._api.get_progress_status,
                progress_key=progress_key,
                interval=self._poll_interval,
            )

        channel = SseProgressChannel(self._api.http, path=self._api.events_path, progress_key=progress_key)
        self._sse.append(channel)
        return channel
