"""Bencode encoder and decoder (BEP 3).

Strings are returned as ``bytes``. ``str`` values and dictionary keys are
accepted on encode and written as UTF-8. Dictionary keys are emitted in
sorted raw-byte order.
"""

from __future__ import annotations

from typing import Any

from snaptracker.utils.exceptions import BencodeDecodeError, BencodeEncodeError

__all__ = [
    "BencodeDecodeError",
    "BencodeDecoder",
    "BencodeEncodeError",
    "BencodeEncoder",
    "decode",
    "encode",
]


class BencodeDecoder:
    """Decoder for a single bencoded value."""

    def __init__(self, data: bytes):
        """Initialize decoder over ``data``."""
        self.data = data
        self.pos = 0

    def decode(self) -> Any:
        """Decode the value at the start of the buffer."""
        value = self._decode_next()
        if self.pos != len(self.data):
            msg = f"Trailing data at position {self.pos}"
            raise BencodeDecodeError(msg)
        return value

    def _peek(self) -> bytes:
        if self.pos >= len(self.data):
            msg = "Unexpected end of data"
            raise BencodeDecodeError(msg)
        return self.data[self.pos : self.pos + 1]

    def _decode_next(self) -> Any:
        token = self._peek()
        if token == b"i":
            return self._decode_int()
        if token == b"l":
            return self._decode_list()
        if token == b"d":
            return self._decode_dict()
        if token.isdigit():
            return self._decode_string()
        msg = f"Invalid token {token!r} at position {self.pos}"
        raise BencodeDecodeError(msg)

    def _decode_int(self) -> int:
        end = self.data.find(b"e", self.pos)
        if end == -1:
            msg = "Unterminated integer"
            raise BencodeDecodeError(msg)
        raw = self.data[self.pos + 1 : end]
        digits = raw[1:] if raw.startswith(b"-") else raw
        if not digits.isdigit():
            msg = f"Invalid integer {raw!r}"
            raise BencodeDecodeError(msg)
        if (digits.startswith(b"0") and len(digits) > 1) or raw == b"-0":
            msg = f"Invalid integer {raw!r}"
            raise BencodeDecodeError(msg)
        self.pos = end + 1
        return int(raw)

    def _decode_string(self) -> bytes:
        colon = self.data.find(b":", self.pos)
        if colon == -1:
            msg = "Missing string length separator"
            raise BencodeDecodeError(msg)
        length_raw = self.data[self.pos : colon]
        if not length_raw.isdigit():
            msg = f"Invalid string length {length_raw!r}"
            raise BencodeDecodeError(msg)
        start = colon + 1
        end = start + int(length_raw)
        if end > len(self.data):
            msg = "String length exceeds data"
            raise BencodeDecodeError(msg)
        self.pos = end
        return self.data[start:end]

    def _decode_list(self) -> list[Any]:
        self.pos += 1
        result: list[Any] = []
        while self._peek() != b"e":
            result.append(self._decode_next())
        self.pos += 1
        return result

    def _decode_dict(self) -> dict[bytes, Any]:
        self.pos += 1
        result: dict[bytes, Any] = {}
        while self._peek() != b"e":
            if not self._peek().isdigit():
                msg = f"Dictionary key must be a string at position {self.pos}"
                raise BencodeDecodeError(msg)
            key = self._decode_string()
            result[key] = self._decode_next()
        self.pos += 1
        return result


class BencodeEncoder:
    """Encoder for Python values into bencode."""

    def encode(self, value: Any) -> bytes:
        """Encode ``value`` to bencode bytes."""
        out = bytearray()
        self._encode_into(value, out)
        return bytes(out)

    def _encode_into(self, value: Any, out: bytearray) -> None:
        # bool is an int subclass; reject it rather than writing i1e
        if isinstance(value, bool):
            msg = "Cannot bencode bool"
            raise BencodeEncodeError(msg)
        if isinstance(value, int):
            out += b"i%de" % value
        elif isinstance(value, (bytes, bytearray)):
            out += b"%d:" % len(value)
            out += value
        elif isinstance(value, str):
            self._encode_into(value.encode("utf-8"), out)
        elif isinstance(value, (list, tuple)):
            out += b"l"
            for item in value:
                self._encode_into(item, out)
            out += b"e"
        elif isinstance(value, dict):
            out += b"d"
            for key, item in sorted(
                ((self._dict_key(k), v) for k, v in value.items()),
                key=lambda kv: kv[0],
            ):
                self._encode_into(key, out)
                self._encode_into(item, out)
            out += b"e"
        else:
            msg = f"Cannot bencode type {type(value).__name__}"
            raise BencodeEncodeError(msg)

    @staticmethod
    def _dict_key(key: Any) -> bytes:
        if isinstance(key, bytes):
            return key
        if isinstance(key, str):
            return key.encode("utf-8")
        msg = f"Dictionary keys must be bytes or str, got {type(key).__name__}"
        raise BencodeEncodeError(msg)


def decode(data: bytes) -> Any:
    """Decode bencoded ``data``."""
    return BencodeDecoder(data).decode()


def encode(value: Any) -> bytes:
    """Bencode ``value``."""
    return BencodeEncoder().encode(value)
