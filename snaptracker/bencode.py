"""Bencoding module for the tracker wire format.

This module provides a convenient interface to the core bencode functionality.
"""

from __future__ import annotations

from snaptracker.core.bencode import (
    BencodeDecodeError,
    BencodeDecoder,
    BencodeEncodeError,
    BencodeEncoder,
    decode,
    encode,
)

__all__ = [
    "BencodeDecodeError",
    "BencodeDecoder",
    "BencodeEncodeError",
    "BencodeEncoder",
    "decode",
    "encode",
]
