"""Pydantic models for snaptracker.

Provides validated data models for announce requests, persisted peer records,
tracker responses and configuration.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

INFO_HASH_LENGTH = 20
PEER_ID_LENGTH = 20


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class AnnounceEvent(str, Enum):
    """Announce ``event`` parameter values."""

    NONE = ""
    STARTED = "started"
    STOPPED = "stopped"
    COMPLETED = "completed"


class AnnounceStatus(str, Enum):
    """Terminal state of one announce."""

    UPDATED = "updated"
    STOPPED = "stopped"
    THROTTLED = "throttled"
    PARSE_FAILED = "parse_failed"
    VALIDATION_FAILED = "validation_failed"
    STORE_FAILED = "store_failed"
    SERIALIZATION_FAILED = "serialization_failed"


class AnnounceRequest(BaseModel):
    """Decoded announce query."""

    # bytes fields survive JSON round trips as base64
    model_config = ConfigDict(ser_json_bytes="base64", val_json_bytes="base64")

    info_hash: bytes = Field(..., description="Content identifier")
    peer_id: bytes = Field(..., description="Announcing client identifier")
    remote_ip: str | None = Field(None, description="Remote address, port stripped")
    port: int = Field(..., ge=0, le=65535, description="Peer listen port")
    event: str = Field(default=AnnounceEvent.NONE.value, description="Raw event value")
    uploaded: int = Field(default=0)
    downloaded: int = Field(default=0)
    left: int = Field(default=0)
    support_crypto: bool = Field(default=False)
    compact: bool = Field(default=False)


class PeerRecord(AnnounceRequest):
    """Announce request as persisted, stamped with its write time."""

    updated_at: float = Field(..., description="Unix time of the accepted update")

    @property
    def is_seed(self) -> bool:
        """Peer has the complete content."""
        return self.left == 0


class PeerDescriptor(BaseModel):
    """One entry of the response peer list."""

    ip: str
    peer_id: bytes
    port: int

    def to_wire(self) -> dict[str, Any]:
        """Return the BEP 3 peer dictionary."""
        return {"ip": self.ip, "peer id": self.peer_id, "port": self.port}


class AnnounceResponse(BaseModel):
    """Tracker response to an announce."""

    failure_reason: str | None = None
    interval: int = 0
    tracker_id: str = ""
    complete: int = 0
    incomplete: int = 0
    peers: list[PeerDescriptor] = Field(default_factory=list)

    @classmethod
    def failure(cls, reason: str) -> AnnounceResponse:
        """Build a response carrying only a failure reason."""
        return cls(failure_reason=reason)

    def to_wire(self) -> dict[str, Any]:
        """Return the response dictionary keyed by wire names."""
        if self.failure_reason is not None:
            return {"failure reason": self.failure_reason}
        return {
            "interval": self.interval,
            "tracker id": self.tracker_id,
            "complete": self.complete,
            "incomplete": self.incomplete,
            "peers": [peer.to_wire() for peer in self.peers],
        }


class TrackerConfig(BaseModel):
    """Announce handling configuration."""

    announce_interval: int = Field(
        default=60,
        ge=1,
        description="Announce interval in seconds; also the minimum time between accepted updates",
    )
    tracker_id: str = Field(default="snaptracker", description="Tracker id sent to peers")
    peer_ttl: int = Field(
        default=24 * 60 * 60,
        ge=1,
        description="Seconds after which an un-refreshed peer is left out of the swarm",
    )
    swarm_scan_limit: int = Field(
        default=20 * 8,
        ge=1,
        le=100000,
        description="Maximum number of store entries visited per swarm enumeration",
    )
    serialize_updates: bool = Field(
        default=True,
        description="Serialize the read-check-write of concurrent announces per peer",
    )


class StorageConfig(BaseModel):
    """Peer store configuration."""

    db_path: str = Field(default="snaptracker.db", description="SQLite database path")
    bucket: str = Field(default="peers", description="Table holding peer records")

    @field_validator("bucket")
    @classmethod
    def validate_bucket(cls, v: str) -> str:
        """Bucket is used as a table name, keep it an identifier."""
        if not v.isidentifier():
            msg = f"Bucket name must be an identifier: {v!r}"
            raise ValueError(msg)
        return v


class ServerConfig(BaseModel):
    """HTTP endpoint configuration."""

    host: str = Field(default="0.0.0.0", description="Listen address")  # noqa: S104
    port: int = Field(default=8080, ge=1, le=65535, description="Listen port")
    announce_path: str = Field(default="/announce", description="Announce URL path")

    @field_validator("announce_path")
    @classmethod
    def validate_announce_path(cls, v: str) -> str:
        """Announce path must be absolute."""
        if not v.startswith("/"):
            msg = "announce_path must start with '/'"
            raise ValueError(msg)
        return v


class ObservabilityConfig(BaseModel):
    """Observability configuration."""

    log_level: LogLevel = Field(default=LogLevel.INFO, description="Log level")
    log_file: str | None = Field(None, description="Log file path")
    structured_logging: bool = Field(
        default=False,
        description="Use structured JSON logging on the console",
    )
    log_correlation_id: bool = Field(
        default=True,
        description="Include correlation IDs",
    )


class Config(BaseModel):
    """Main configuration model."""

    tracker: TrackerConfig = Field(
        default_factory=TrackerConfig,
        description="Announce handling configuration",
    )
    storage: StorageConfig = Field(
        default_factory=StorageConfig,
        description="Storage configuration",
    )
    server: ServerConfig = Field(
        default_factory=ServerConfig,
        description="HTTP server configuration",
    )
    observability: ObservabilityConfig = Field(
        default_factory=ObservabilityConfig,
        description="Observability configuration",
    )
