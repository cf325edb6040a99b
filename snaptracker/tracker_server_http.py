"""HTTP tracker endpoint (BEP 3 style) for snaptracker.

Serves ``GET /announce`` with one thread per request. Every announce answers
200; protocol failures travel in the body's ``failure reason``.
"""

from __future__ import annotations

import logging
import socket
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from urllib.parse import urlsplit

from snaptracker.models import AnnounceStatus, ServerConfig
from snaptracker.tracker.announce import AnnounceHandler, AnnounceOutcome
from snaptracker.utils.logging_config import set_correlation_id

logger = logging.getLogger(__name__)


def log_outcome(outcome: AnnounceOutcome) -> None:
    """Record one announce outcome."""
    request = outcome.request
    info_hash = request.info_hash.hex() if request else None
    peer_id = request.peer_id.hex() if request else None

    if outcome.corrupt_prior:
        logger.error("Unable to decode previous record of peer %s in %s", peer_id, info_hash)
    if outcome.skipped_corrupt:
        logger.error(
            "Skipped %d undecodable records in swarm %s", outcome.skipped_corrupt, info_hash
        )
    if outcome.skipped_expired:
        logger.info("Skipped %d expired peers in swarm %s", outcome.skipped_expired, info_hash)

    if outcome.ok:
        logger.info(
            "Announce %s peer=%s info_hash=%s complete=%d incomplete=%d",
            outcome.status.value,
            peer_id,
            info_hash,
            outcome.response.complete,
            outcome.response.incomplete,
        )
    elif outcome.status == AnnounceStatus.THROTTLED:
        logger.debug("Announce throttled peer=%s info_hash=%s", peer_id, info_hash)
    else:
        logger.error(
            "Announce failed (%s): %s", outcome.status.value, outcome.response.failure_reason
        )


class AnnounceRequestHandler(BaseHTTPRequestHandler):
    """Maps each GET on the announce path to one :class:`AnnounceHandler` call."""

    server: TrackerHTTPServer

    def do_GET(self) -> None:  # noqa: N802
        set_correlation_id()
        parsed = urlsplit(self.path)
        if parsed.path != self.server.announce_path:
            self.send_error(404)
            return

        logger.debug("call %s", self.path)
        host, port = self.client_address[:2]
        remote_addr = f"[{host}]:{port}" if ":" in host else f"{host}:{port}"
        outcome, body = self.server.announce_handler.announce(parsed.query, remote_addr)
        log_outcome(outcome)

        self.send_response(200)
        self.send_header(
            "Content-Type", "text/plain" if outcome.compact else "application/json"
        )
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format: str, *args) -> None:  # noqa: A002
        logger.debug("%s - %s", self.address_string(), format % args)


class TrackerHTTPServer(ThreadingHTTPServer):
    """Threading HTTP server bound to one announce handler."""

    daemon_threads = True

    def __init__(
        self,
        server_address: tuple[str, int],
        announce_handler: AnnounceHandler,
        announce_path: str = "/announce",
    ):
        self.announce_handler = announce_handler
        self.announce_path = announce_path
        if ":" in server_address[0]:
            self.address_family = socket.AF_INET6
        super().__init__(server_address, AnnounceRequestHandler)


def create_http_tracker(
    announce_handler: AnnounceHandler, config: ServerConfig | None = None
) -> TrackerHTTPServer:
    """Bind a tracker server according to ``config``."""
    config = config or ServerConfig()
    return TrackerHTTPServer(
        (config.host, config.port), announce_handler, config.announce_path
    )
