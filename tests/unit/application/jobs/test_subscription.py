from __future__ import annotations

from facedash.application.jobs.subscription import Subscription, outcome_handler
from facedash.domain.jobs.entities import JobProgress
from facedash.domain.jobs.value_objects import Completed, Failed


def _subscription(received: list, released: list) -> Subscription:
    return Subscription(job_id="j1", on_outcome=received.append, release=released.append)


class TestSubscription:
    def test_delivers_at_most_once(self) -> None:
        received, released = [], []
        sub = _subscription(received, released)
        outcome = Failed(message="boom")

        assert sub.deliver(outcome) is True
        assert sub.deliver(outcome) is False
        assert received == [outcome]
        assert sub.settled
        assert not sub.active

    def test_dispose_is_idempotent_and_releases_once(self) -> None:
        received, released = [], []
        sub = _subscription(received, released)

        sub()
        sub.dispose()

        assert released == [sub]
        assert not sub.active
        assert sub.deliver(Failed(message="late")) is False
        assert received == []

    def test_dispose_after_delivery_is_a_noop(self) -> None:
        received, released = [], []
        sub = _subscription(received, released)
        sub.deliver(Failed(message="boom"))

        sub.dispose()

        assert released == []

    def test_ids_are_unique(self) -> None:
        a = _subscription([], [])
        b = _subscription([], [])

        assert a.id != b.id


class TestOutcomeHandler:
    def test_routes_completed_to_on_complete(self) -> None:
        completed, errors = [], []
        job = JobProgress(job_id="j1", progress_key="k1")

        outcome_handler(completed.append, errors.append)(Completed(job=job))

        assert completed == [job]
        assert errors == []

    def test_routes_failed_to_on_error(self) -> None:
        completed, errors = [], []

        outcome_handler(completed.append, errors.append)(Failed(message="nope"))

        assert errors == ["nope"]

    def test_missing_callbacks_are_fine(self) -> None:
        outcome_handler()(Failed(message="nope"))
