from __future__ import annotations

import itertools
import logging
from typing import Callable, Hashable, Optional

from facedash.domain.jobs.value_objects import Completed, Failed, JobOutcome

logger = logging.getLogger(__name__)

OutcomeHandler = Callable[[JobOutcome], None]
CompleteHandler = Callable[..., None]
ErrorHandler = Callable[[str], None]

_ids = itertools.count(1)


def outcome_handler(
    on_complete: Optional[CompleteHandler] = None,
    on_error: Optional[ErrorHandler] = None,
) -> OutcomeHandler:
    """Fold the two legacy callbacks into one handler of the tagged outcome."""

    def _handle(outcome: JobOutcome) -> None:
        if isinstance(outcome, Completed):
            if on_complete is not None:
                on_complete(outcome.job)
        elif isinstance(outcome, Failed):
            if on_error is not None:
                on_error(outcome.message)

    return _handle


class Subscription:
    """
    One caller's interest in a job, returned by ``JobRegistry.track_job``.

    Calling it (or ``dispose()``) drops the caller's interest; the job itself
    keeps running on the server. The outcome is delivered at most once and
    never after disposal.
    """

    __slots__ = ("id", "job_id", "owner", "_on_outcome", "_release", "_active", "_settled")

    def __init__(
        self,
        *,
        job_id: str,
        on_outcome: OutcomeHandler,
        release: Callable[["Subscription"], None],
        owner: Hashable | None = None,
    ) -> None:
        self.id = next(_ids)
        self.job_id = job_id
        self.owner = owner
        self._on_outcome = on_outcome
        self._release = release
        self._active = True
        self._settled = False

    @property
    def active(self) -> bool:
        return self._active

    @property
    def settled(self) -> bool:
        return self._settled

    def deliver(self, outcome: JobOutcome) -> bool:
        if not self._active:
            return False
        self._active = False
        self._settled = True
        self._on_outcome(outcome)
        return True

    def dispose(self) -> None:
        if not self._active:
            return
        self._active = False
        self._release(self)

    def __call__(self) -> None:
        self.dispose()

    def __repr__(self) -> str:
        return f"Subscription(id={self.id}, job_id={self.job_id!r}, active={self._active})"
