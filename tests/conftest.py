import pytest

from facedash.application.jobs.registry import JobRegistry
from tests.unit.fakes.channels import FakeChannelFactory
from tests.unit.fakes.notifier import RecordingNotifier


@pytest.fixture
def factory() -> FakeChannelFactory:
    return FakeChannelFactory()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def registry(factory: FakeChannelFactory, notifier: RecordingNotifier) -> JobRegistry:
    return JobRegistry(factory, notifier=notifier, terminal_retention_seconds=30.0)
