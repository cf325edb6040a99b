"""Pytest configuration and shared fixtures for snaptracker tests."""

from __future__ import annotations

import logging
from typing import Any, Callable
from urllib.parse import urlencode

import pytest

from snaptracker.config.config import reset_config
from snaptracker.models import TrackerConfig
from snaptracker.storage import MemoryKeyValueStore, PeerStore
from snaptracker.tracker.announce import AnnounceHandler
from snaptracker.utils.shutdown import clear_shutdown


def pytest_configure(config):
    """Register project markers to avoid warnings when ini isn't loaded."""
    markers = [
        ("unit", "marks tests as unit tests"),
        ("integration", "marks tests as integration tests"),
        ("tracker", "marks tests as tracker tests"),
        ("storage", "marks tests as storage tests"),
        ("cli", "marks tests as CLI tests"),
        ("property", "marks tests as property-based tests"),
    ]
    for name, desc in markers:
        config.addinivalue_line("markers", f"{name}: {desc}")


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch, tmp_path):
    """Keep tests away from user config files and SNAPTRACKER_* variables."""
    import os

    for name in list(os.environ):
        if name.startswith("SNAPTRACKER_"):
            monkeypatch.delenv(name)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    reset_config()
    clear_shutdown()
    yield
    reset_config()
    clear_shutdown()


@pytest.fixture(autouse=True)
def cleanup_logging():
    """Clean up logging handlers after each test to prevent closed file errors."""
    yield
    for logger_name in list(logging.Logger.manager.loggerDict.keys()):
        logger = logging.getLogger(logger_name)
        for handler in logger.handlers[:]:
            handler.close()
            logger.removeHandler(handler)
        # setup_logging() detaches the package logger from the root
        logger.propagate = True
        logger.setLevel(logging.NOTSET)

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        handler.close()
        root_logger.removeHandler(handler)


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def kv_store() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
def peer_store(kv_store) -> PeerStore:
    return PeerStore(kv_store)


@pytest.fixture
def handler(peer_store, clock) -> AnnounceHandler:
    return AnnounceHandler(peer_store, TrackerConfig(), clock=clock)


@pytest.fixture
def make_query() -> Callable[..., str]:
    """Build an announce query string; ``None`` values are left out."""

    def _make(
        info_hash: bytes | None = b"H" * 19 + b"1",
        peer_id: bytes | None = b"-ST0001-" + b"a" * 12,
        **overrides: Any,
    ) -> str:
        params: dict[str, Any] = {
            "info_hash": info_hash,
            "peer_id": peer_id,
            "port": 6881,
            "uploaded": 0,
            "downloaded": 0,
            "left": 100,
            "compact": 1,
        }
        params.update(overrides)
        return urlencode({k: v for k, v in params.items() if v is not None})

    return _make
