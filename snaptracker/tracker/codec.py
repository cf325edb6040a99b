"""Announce wire codec.

Decodes the ``/announce`` query string into an :class:`AnnounceRequest` and
encodes :class:`AnnounceResponse` as bencode or JSON, as selected by the
client's ``compact`` flag. Here ``compact`` chooses bencode; peers are always
sent as dictionaries, never as the binary compact peer string.
"""

from __future__ import annotations

import base64
import ipaddress
import json
import logging
import re
from typing import Any, Mapping
from urllib.parse import unquote_to_bytes

from snaptracker.bencode import encode
from snaptracker.models import (
    INFO_HASH_LENGTH,
    PEER_ID_LENGTH,
    AnnounceRequest,
    AnnounceResponse,
)
from snaptracker.utils.exceptions import BencodeEncodeError, IdentifierError, ParseError

logger = logging.getLogger(__name__)

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1
PORT_MAX = 65535

_INTEGER_RE = re.compile(rb"[+-]?[0-9]+")


def parse_query(query: str | bytes) -> dict[str, bytes]:
    """Split a query string into raw byte values.

    ``+`` decodes to a space and percent escapes to raw bytes. When a name
    repeats, the first value wins.
    """
    if isinstance(query, str):
        try:
            query = query.encode("latin-1")
        except UnicodeEncodeError:
            query = query.encode("utf-8")
    params: dict[str, bytes] = {}
    for part in query.split(b"&"):
        if not part:
            continue
        name, _, value = part.partition(b"=")
        key = unquote_to_bytes(name.replace(b"+", b" ")).decode("utf-8", "replace")
        params.setdefault(key, unquote_to_bytes(value.replace(b"+", b" ")))
    return params


def split_remote_addr(remote_addr: str) -> str | None:
    """Return the IP of ``remote_addr`` with any trailing port stripped.

    Accepts ``a.b.c.d``, ``a.b.c.d:port``, bare IPv6 and ``[v6]:port``.
    Returns None when the host is not an IP address.
    """
    host = remote_addr.strip()
    if host.startswith("["):
        host = host[1:].split("]", 1)[0]
    elif host.count(":") == 1:
        host = host.split(":", 1)[0]
    try:
        return str(ipaddress.ip_address(host))
    except ValueError:
        return None


def requested_compact(params: Mapping[str, bytes]) -> bool:
    """Return True if the client asked for a bencoded response."""
    return params.get("compact") == b"1"


def _parse_int(params: Mapping[str, bytes], name: str, low: int, high: int) -> int:
    raw = params.get(name)
    if raw is None:
        msg = f"missing {name}"
        raise ParseError(msg)
    if not _INTEGER_RE.fullmatch(raw):
        msg = f"invalid {name}: {raw.decode('latin-1')!r}"
        raise ParseError(msg)
    value = int(raw)
    if not low <= value <= high:
        msg = f"{name} out of range: {value}"
        raise ParseError(msg)
    return value


def decode_announce(params: Mapping[str, bytes], remote_addr: str) -> AnnounceRequest:
    """Build an announce request from decoded query parameters.

    Raises:
        ParseError: a numeric field is missing or malformed

    """
    downloaded = _parse_int(params, "downloaded", INT64_MIN, INT64_MAX)
    uploaded = _parse_int(params, "uploaded", INT64_MIN, INT64_MAX)
    left = _parse_int(params, "left", INT64_MIN, INT64_MAX)
    port = _parse_int(params, "port", 0, PORT_MAX)

    return AnnounceRequest(
        info_hash=params.get("info_hash", b""),
        peer_id=params.get("peer_id", b""),
        remote_ip=split_remote_addr(remote_addr),
        port=port,
        event=params.get("event", b"").decode("latin-1"),
        uploaded=uploaded,
        downloaded=downloaded,
        left=left,
        support_crypto=params.get("supportcrypto") == b"1",
        compact=requested_compact(params),
    )


def validate_announce(request: AnnounceRequest) -> None:
    """Check identifier lengths.

    Raises:
        IdentifierError: info hash or peer id is not 20 bytes

    """
    if len(request.info_hash) != INFO_HASH_LENGTH:
        msg = "invalid infohash"
        raise IdentifierError(msg, {"length": len(request.info_hash)})
    if len(request.peer_id) != PEER_ID_LENGTH:
        msg = "invalid peer id"
        raise IdentifierError(msg, {"length": len(request.peer_id)})


def _json_default(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(value).decode("ascii")
    msg = f"Object of type {type(value).__name__} is not JSON serializable"
    raise TypeError(msg)


def encode_response(response: AnnounceResponse, compact: bool) -> bytes:
    """Serialize ``response`` as bencode when ``compact`` is set, JSON otherwise.

    Encoding errors are logged and yield an empty body.
    """
    payload = response.to_wire()
    if compact:
        try:
            return encode(payload)
        except BencodeEncodeError:
            logger.exception("Bencode encode failed")
            return b""
    try:
        return json.dumps(payload, default=_json_default).encode("utf-8") + b"\n"
    except (TypeError, ValueError):
        logger.exception("JSON encode failed")
        return b""
