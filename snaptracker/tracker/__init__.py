"""Announce handling."""

from __future__ import annotations

from snaptracker.tracker.announce import AnnounceHandler, AnnounceOutcome, KeyedLock
from snaptracker.tracker.codec import decode_announce, encode_response, parse_query

__all__ = [
    "AnnounceHandler",
    "AnnounceOutcome",
    "KeyedLock",
    "decode_announce",
    "encode_response",
    "parse_query",
]
