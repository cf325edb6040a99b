"""Peer record storage."""

from __future__ import annotations

from snaptracker.storage.kv_store import (
    KeyValueStore,
    MemoryKeyValueStore,
    SQLiteKeyValueStore,
)
from snaptracker.storage.peer_store import PeerStore, peer_key

__all__ = [
    "KeyValueStore",
    "MemoryKeyValueStore",
    "PeerStore",
    "SQLiteKeyValueStore",
    "peer_key",
]
