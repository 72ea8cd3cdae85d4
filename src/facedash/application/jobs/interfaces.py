from __future__ import annotations

from typing import Callable, Protocol

from facedash.application.jobs.dto import JobNotification
from facedash.domain.jobs.enums import ChannelState
from facedash.domain.jobs.value_objects import ProgressFrame

FrameHandler = Callable[[ProgressFrame], None]
ErrorHandler = Callable[[str], None]


class ProgressChannel(Protocol):
    progress_key: str

    @property
    def state(self) -> ChannelState: ...

    def open(self, *, on_frame: FrameHandler, on_error: ErrorHandler) -> None:
        """Start listening. Must not block; frames arrive later on the event loop."""
        ...

    def close(self) -> None:
        """Stop listening. Safe to call more than once and from inside on_frame."""
        ...


class ChannelFactory(Protocol):
    def create(self, *, progress_key: str) -> ProgressChannel: ...


class NotificationSink(Protocol):
    def notify(self, notification: JobNotification) -> None: ...
