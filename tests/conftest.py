# tests/conftest.py
# Shared fixtures: a PreviewService wired to in-memory fakes and a hand-driven clock.

import pytest  # type: ignore[import-not-found]

from studio.config import Settings
from studio.services.preview_service import PreviewService

from fakes import FakeComposer, FakeProvisioner, FrozenClock, InMemorySessionRegistry


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def registry():
    return InMemorySessionRegistry()


@pytest.fixture
def provisioner():
    return FakeProvisioner()


@pytest.fixture
def composer():
    return FakeComposer()


@pytest.fixture
def service(registry, provisioner, composer, clock):
    return PreviewService(registry, provisioner, composer, settings=Settings(), clock=clock)
