"""Tests for Bencoding implementation."""

import pytest

from snaptracker.bencode import (
    BencodeDecodeError,
    BencodeDecoder,
    BencodeEncodeError,
    BencodeEncoder,
    decode,
    encode,
)


class TestBencodeDecoder:
    """Test cases for BencodeDecoder."""

    def test_decode_string(self):
        """Test decoding bencoded strings."""
        assert BencodeDecoder(b"6:coding").decode() == b"coding"
        assert BencodeDecoder(b"0:").decode() == b""
        assert BencodeDecoder(b"11:hello world").decode() == b"hello world"

    def test_decode_integer(self):
        """Test decoding bencoded integers."""
        assert BencodeDecoder(b"i100e").decode() == 100
        assert BencodeDecoder(b"i0e").decode() == 0
        assert BencodeDecoder(b"i-50e").decode() == -50
        assert BencodeDecoder(b"i999999999999999999999e").decode() == 999999999999999999999

    def test_decode_list_and_dict(self):
        """Test decoding containers."""
        assert BencodeDecoder(b"l6:codingi100e0:lee").decode() == [b"coding", 100, b"", []]
        assert BencodeDecoder(b"de").decode() == {}
        assert BencodeDecoder(b"d4:spamd3:fooi1eee").decode() == {b"spam": {b"foo": 1}}

    @pytest.mark.parametrize(
        "data",
        [b"i100", b"i03e", b"i-e", b"i-0e", b"6coding", b"6:code", b"l", b"x", b"i1ei2e", b"di1ei2ee"],
    )
    def test_decode_errors(self, data):
        """Malformed input raises BencodeDecodeError."""
        with pytest.raises(BencodeDecodeError):
            BencodeDecoder(data).decode()


class TestBencodeEncoder:
    """Test cases for BencodeEncoder."""

    def test_encode_scalars(self):
        """Test encoding strings and integers."""
        encoder = BencodeEncoder()
        assert encoder.encode(b"coding") == b"6:coding"
        assert encoder.encode("") == b"0:"
        assert encoder.encode(-50) == b"i-50e"

    def test_encode_key_ordering(self):
        """Dictionary keys are sorted, str keys encoded as bytes."""
        data = {"zebra": 1, b"apple": 2, "banana": [b"x"]}
        assert BencodeEncoder().encode(data) == b"d5:applei2e6:bananal1:xe5:zebrai1ee"

    def test_encode_tracker_response(self):
        """A peer dictionary encodes in BEP 3 key order."""
        peer = {"port": 6881, "ip": "10.0.0.1", "peer id": b"P" * 20}
        assert encode(peer) == b"d2:ip8:10.0.0.17:peer id20:" + b"P" * 20 + b"4:porti6881ee"

    @pytest.mark.parametrize("value", [3.14, None, True, {123: "value"}, {b"k": object()}])
    def test_encode_errors(self, value):
        """Unsupported values raise BencodeEncodeError."""
        with pytest.raises(BencodeEncodeError):
            BencodeEncoder().encode(value)


def test_decode_encode_dict():
    """decode() inverts encode() for a nested dictionary."""
    original = {b"interval": 60, b"peers": [{b"ip": b"1.2.3.4", b"port": 1}]}
    assert decode(encode(original)) == original
