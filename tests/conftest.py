"""Shared fixtures for dmxnet tests."""

import pytest

from tests.helpers import FakeTransport


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def failing_transport() -> FakeTransport:
    return FakeTransport(fail=True)
