"""Peer record persistence on top of a :class:`KeyValueStore`.

Records live under ``info_hash ++ peer_id``. A swarm is enumerated by scanning
from ``info_hash ++ 20 zero bytes``, the lowest key its peers can have, for at
most ``scan_limit`` entries. The bound keeps responses small; with more peers
than the bound, the peers with the highest ids are left out.
"""

from __future__ import annotations

from typing import Callable

from pydantic import ValidationError as PydanticValidationError

from snaptracker.models import INFO_HASH_LENGTH, PEER_ID_LENGTH, PeerRecord
from snaptracker.storage.kv_store import KeyValueStore
from snaptracker.utils.exceptions import KeyNotFoundError, SerializationError

DEFAULT_SCAN_LIMIT = 20 * 8

SwarmVisitor = Callable[[bytes, bytes], None]


def peer_key(info_hash: bytes, peer_id: bytes) -> bytes:
    """Return the store key of one peer in one swarm."""
    return info_hash + peer_id


def window_start(info_hash: bytes) -> bytes:
    """Return the first key of ``info_hash``'s scan window."""
    return info_hash + bytes(PEER_ID_LENGTH)


def serialize_record(record: PeerRecord) -> bytes:
    """Encode a peer record for storage."""
    try:
        return record.model_dump_json().encode("utf-8")
    except (ValueError, TypeError) as e:
        msg = f"failed to serialize peer record: {e}"
        raise SerializationError(msg) from e


def deserialize_record(data: bytes) -> PeerRecord:
    """Decode a stored peer record."""
    try:
        return PeerRecord.model_validate_json(data)
    except (PydanticValidationError, ValueError) as e:
        msg = f"failed to deserialize peer record: {e}"
        raise SerializationError(msg) from e


class PeerStore:
    """Peer records of every swarm, keyed by info hash and peer id."""

    def __init__(self, store: KeyValueStore, scan_limit: int = DEFAULT_SCAN_LIMIT):
        self.store = store
        self.scan_limit = scan_limit

    def load(self, key: bytes) -> PeerRecord | None:
        """Return the record at ``key``, or None if there is none.

        Raises:
            StoreError: the backend failed
            SerializationError: the stored bytes are not a peer record

        """
        try:
            data = self.store.get(key)
        except KeyNotFoundError:
            return None
        if not data:
            return None
        return deserialize_record(data)

    def save(self, record: PeerRecord) -> bytes:
        """Persist ``record`` and return its key."""
        key = peer_key(record.info_hash, record.peer_id)
        self.store.put(key, serialize_record(record))
        return key

    def remove(self, info_hash: bytes, peer_id: bytes) -> None:
        """Delete one peer's record."""
        self.store.delete(peer_key(info_hash, peer_id))

    def scan_swarm(
        self, info_hash: bytes, visit: SwarmVisitor, limit: int | None = None
    ) -> None:
        """Call ``visit(key, value)`` for the raw entries of ``info_hash``'s window.

        Stops at the first key outside ``info_hash``, or after ``limit``
        entries (``scan_limit`` when not given).
        """

        def _visit(key: bytes, value: bytes) -> bool:
            if key[:INFO_HASH_LENGTH] != info_hash:
                return False
            visit(key, value)
            return True

        if limit is None:
            limit = self.scan_limit
        self.store.scan(window_start(info_hash), limit, _visit)
