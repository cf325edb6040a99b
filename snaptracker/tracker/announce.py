"""Announce state machine.

One call to :meth:`AnnounceHandler.handle` takes a raw announce query through
parse → validate → stop/throttle/update → swarm enumeration and returns an
:class:`AnnounceOutcome`. Failures never escape; they become the response's
``failure reason``. The outcome also says what happened, so the caller can
decide what to log.
"""

from __future__ import annotations

import contextlib
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Iterator

from snaptracker.models import (
    AnnounceEvent,
    AnnounceRequest,
    AnnounceResponse,
    AnnounceStatus,
    PeerDescriptor,
    PeerRecord,
    TrackerConfig,
)
from snaptracker.storage.peer_store import PeerStore, deserialize_record, peer_key
from snaptracker.tracker.codec import (
    decode_announce,
    encode_response,
    parse_query,
    requested_compact,
    validate_announce,
)
from snaptracker.utils.exceptions import (
    IdentifierError,
    ParseError,
    SerializationError,
    SnapTrackerError,
    StoreError,
    ThrottleRejection,
)

TOO_EARLY_TO_UPDATE = "too early to update"


@dataclass
class SwarmView:
    """Fresh peers of one swarm."""

    complete: int = 0
    incomplete: int = 0
    peers: list[PeerDescriptor] = field(default_factory=list)
    skipped_corrupt: int = 0
    skipped_expired: int = 0


@dataclass
class AnnounceOutcome:
    """Result of one announce."""

    status: AnnounceStatus
    response: AnnounceResponse
    compact: bool = False
    request: AnnounceRequest | None = None
    error: SnapTrackerError | None = None
    corrupt_prior: bool = False
    skipped_corrupt: int = 0
    skipped_expired: int = 0

    @property
    def ok(self) -> bool:
        """True when the response carries a swarm, not a failure reason."""
        return self.response.failure_reason is None


class KeyedLock:
    """Registry of per-key mutexes, dropped once nobody holds them."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[bytes, list] = {}  # key -> [lock, holders]

    @contextlib.contextmanager
    def hold(self, key: bytes) -> Iterator[None]:
        """Hold the mutex of ``key`` for the duration of the block."""
        with self._guard:
            entry = self._locks.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


class AnnounceHandler:
    """Handles announce requests against a :class:`PeerStore`."""

    def __init__(
        self,
        peers: PeerStore,
        config: TrackerConfig | None = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the handler.

        Args:
            peers: Peer record storage
            config: Interval, tracker id, TTL and locking settings
            clock: Returns the current Unix time

        """
        self.peers = peers
        self.config = config or TrackerConfig()
        self.clock = clock
        self._key_locks = KeyedLock() if self.config.serialize_updates else None

    def handle(self, query: str | bytes, remote_addr: str) -> AnnounceOutcome:
        """Process one raw announce query string from ``remote_addr``."""
        params = parse_query(query)
        compact = requested_compact(params)

        try:
            request = decode_announce(params, remote_addr)
        except ParseError as e:
            return self._fail(AnnounceStatus.PARSE_FAILED, e, compact)

        try:
            validate_announce(request)
        except IdentifierError as e:
            return self._fail(AnnounceStatus.VALIDATION_FAILED, e, compact, request)

        key = peer_key(request.info_hash, request.peer_id)
        corrupt_prior = False
        try:
            if request.event == AnnounceEvent.STOPPED:
                self.peers.remove(request.info_hash, request.peer_id)
                status = AnnounceStatus.STOPPED
            else:
                with self._serialized(key):
                    corrupt_prior = self._update(key, request)
                status = AnnounceStatus.UPDATED
            swarm = self.enumerate_swarm(request.info_hash)
        except ThrottleRejection as e:
            return self._fail(AnnounceStatus.THROTTLED, e, compact, request)
        except StoreError as e:
            return self._fail(
                AnnounceStatus.STORE_FAILED, e, compact, request, corrupt_prior
            )
        except SerializationError as e:
            return self._fail(
                AnnounceStatus.SERIALIZATION_FAILED, e, compact, request, corrupt_prior
            )

        response = AnnounceResponse(
            interval=self.config.announce_interval,
            tracker_id=self.config.tracker_id,
            complete=swarm.complete,
            incomplete=swarm.incomplete,
            peers=swarm.peers,
        )
        return AnnounceOutcome(
            status=status,
            response=response,
            compact=compact,
            request=request,
            corrupt_prior=corrupt_prior,
            skipped_corrupt=swarm.skipped_corrupt,
            skipped_expired=swarm.skipped_expired,
        )

    def announce(self, query: str | bytes, remote_addr: str) -> tuple[AnnounceOutcome, bytes]:
        """Handle ``query`` and return the outcome with its encoded body."""
        outcome = self.handle(query, remote_addr)
        return outcome, encode_response(outcome.response, outcome.compact)

    def _serialized(self, key: bytes) -> contextlib.AbstractContextManager:
        if self._key_locks is None:
            return contextlib.nullcontext()
        return self._key_locks.hold(key)

    def _update(self, key: bytes, request: AnnounceRequest) -> bool:
        """Write the peer's new state unless it updated within the interval.

        Returns True if the previous record could not be decoded.

        Raises:
            ThrottleRejection: previous update is younger than the interval

        """
        now = self.clock()
        corrupt_prior = False
        try:
            prior = self.peers.load(key)
        except SerializationError:
            prior = None
            corrupt_prior = True
        if prior is not None and now - prior.updated_at < self.config.announce_interval:
            raise ThrottleRejection(TOO_EARLY_TO_UPDATE)

        record = PeerRecord(**request.model_dump(), updated_at=now)
        self.peers.save(record)
        return corrupt_prior

    def enumerate_swarm(self, info_hash: bytes) -> SwarmView:
        """Collect the fresh peers of ``info_hash``."""
        now = self.clock()
        view = SwarmView()

        def _visit(_key: bytes, value: bytes) -> None:
            try:
                record = deserialize_record(value)
            except SerializationError:
                view.skipped_corrupt += 1
                return
            if now - record.updated_at > self.config.peer_ttl:
                view.skipped_expired += 1
                return
            if record.is_seed:
                view.complete += 1
            else:
                view.incomplete += 1
            view.peers.append(
                PeerDescriptor(
                    ip=record.remote_ip or "",
                    peer_id=record.peer_id,
                    port=record.port,
                )
            )

        self.peers.scan_swarm(info_hash, _visit, self.config.swarm_scan_limit)
        return view

    @staticmethod
    def _fail(
        status: AnnounceStatus,
        error: SnapTrackerError,
        compact: bool,
        request: AnnounceRequest | None = None,
        corrupt_prior: bool = False,
    ) -> AnnounceOutcome:
        return AnnounceOutcome(
            status=status,
            response=AnnounceResponse.failure(error.message),
            compact=compact,
            request=request,
            error=error,
            corrupt_prior=corrupt_prior,
        )
