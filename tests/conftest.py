"""Pytest fixtures shared by every test module.

All tests are network-isolated - socket connections are blocked by default.
"""

from __future__ import annotations

import socket
from collections.abc import Iterator

import pytest

from tests.fakes import (
    FakeCandidateSource,
    FakeCriteriaRepository,
    InMemoryFileSystem,
    InMemorySignalLog,
    InMemoryWeightStore,
)
from tests.support.errors import NetworkIsolationError


def _blocked_socket_connect(self: socket.socket, *args: object, **kwargs: object) -> None:
    _ = (self, kwargs)
    raise NetworkIsolationError(str(args))


@pytest.fixture(autouse=True)
def block_network_access(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Block all network access in tests.

    Tests that need HTTP should use FakeHttpClient or a mocked requests session.
    """
    monkeypatch.setattr(socket.socket, "connect", _blocked_socket_connect)
    yield


@pytest.fixture
def in_memory_fs() -> InMemoryFileSystem:
    return InMemoryFileSystem()


@pytest.fixture
def candidate_source() -> FakeCandidateSource:
    return FakeCandidateSource()


@pytest.fixture
def weight_store() -> InMemoryWeightStore:
    return InMemoryWeightStore()


@pytest.fixture
def signal_log() -> InMemorySignalLog:
    return InMemorySignalLog()


@pytest.fixture
def criteria_repository() -> FakeCriteriaRepository:
    return FakeCriteriaRepository()
