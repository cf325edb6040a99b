"""Tests for the announce wire codec."""

from __future__ import annotations

import base64
import json

import pytest

from snaptracker.bencode import decode
from snaptracker.models import AnnounceEvent, AnnounceResponse, PeerDescriptor
from snaptracker.tracker.codec import (
    decode_announce,
    encode_response,
    parse_query,
    split_remote_addr,
    validate_announce,
)
from snaptracker.utils.exceptions import IdentifierError, ParseError

pytestmark = [pytest.mark.unit, pytest.mark.tracker]

# Sample query as sent by a real client
RAW_QUERY = (
    "compact=1&downloaded=0&event=started"
    "&info_hash=D%22%5C%80%F7%FD%12Z%EA%9B%F0%A5z%DA%AF%1F%A4%E1je"
    "&left=0&peer_id=-GT0002-9%EA%FB+%BF%B3%AD%DE%8Ae%D0%B7"
    "&port=53631&supportcrypto=1&uploaded=0"
)


class TestParseQuery:
    def test_binary_values_stay_raw(self):
        params = parse_query(RAW_QUERY)
        assert params["info_hash"] == b'D"\\\x80\xf7\xfd\x12Z\xea\x9b\xf0\xa5z\xda\xaf\x1f\xa4\xe1je'
        assert len(params["info_hash"]) == 20
        # "+" decodes to a space
        assert params["peer_id"] == b"-GT0002-9\xea\xfb \xbf\xb3\xad\xde\x8ae\xd0\xb7"
        assert len(params["peer_id"]) == 20

    def test_first_value_wins(self):
        assert parse_query("port=1&port=2")["port"] == b"1"

    def test_empty_parts_and_bare_names(self):
        assert parse_query(b"&&compact&left=") == {"compact": b"", "left": b""}


class TestSplitRemoteAddr:
    @pytest.mark.parametrize(
        ("addr", "expected"),
        [
            ("10.1.2.3:6881", "10.1.2.3"),
            ("10.1.2.3", "10.1.2.3"),
            ("[::1]:6881", "::1"),
            ("2001:db8::1", "2001:db8::1"),
            ("not-an-ip:80", None),
            ("", None),
        ],
    )
    def test_strips_port(self, addr, expected):
        assert split_remote_addr(addr) == expected


class TestDecodeAnnounce:
    def test_decodes_client_query(self):
        request = decode_announce(parse_query(RAW_QUERY), "192.168.1.7:40000")

        assert request.remote_ip == "192.168.1.7"
        assert request.port == 53631
        assert request.event == AnnounceEvent.STARTED
        assert request.left == 0
        assert request.compact is True
        assert request.support_crypto is True

    def test_event_defaults_to_empty(self, make_query):
        request = decode_announce(parse_query(make_query()), "1.2.3.4")
        assert request.event == AnnounceEvent.NONE

    def test_flags_require_literal_one(self, make_query):
        request = decode_announce(
            parse_query(make_query(compact="true", supportcrypto="yes")), "1.2.3.4"
        )
        assert request.compact is False
        assert request.support_crypto is False

    @pytest.mark.parametrize("field", ["downloaded", "uploaded", "left", "port"])
    def test_missing_numeric_field(self, make_query, field):
        with pytest.raises(ParseError, match=f"missing {field}"):
            decode_announce(parse_query(make_query(**{field: None})), "1.2.3.4")

    @pytest.mark.parametrize("value", ["abc", "", "1.5", " 1", "1_000", "0x10"])
    def test_malformed_port(self, make_query, value):
        with pytest.raises(ParseError):
            decode_announce(parse_query(make_query(port=value)), "1.2.3.4")

    @pytest.mark.parametrize("value", [-1, 65536])
    def test_port_out_of_range(self, make_query, value):
        with pytest.raises(ParseError, match="out of range"):
            decode_announce(parse_query(make_query(port=value)), "1.2.3.4")

    def test_counter_beyond_int64(self, make_query):
        with pytest.raises(ParseError):
            decode_announce(parse_query(make_query(left=2**63)), "1.2.3.4")

    def test_signed_counters_accepted(self, make_query):
        request = decode_announce(parse_query(make_query(uploaded="+5", left=-1)), "1.2.3.4")
        assert request.uploaded == 5
        assert request.left == -1

    def test_unknown_event_kept_verbatim(self, make_query):
        request = decode_announce(parse_query(make_query(event="paused")), "1.2.3.4")
        assert request.event == "paused"


class TestValidateAnnounce:
    @pytest.mark.parametrize("length", [0, 19, 21])
    def test_bad_info_hash(self, make_query, length):
        request = decode_announce(parse_query(make_query(info_hash=b"x" * length)), "1.2.3.4")
        with pytest.raises(IdentifierError, match="invalid infohash"):
            validate_announce(request)

    @pytest.mark.parametrize("length", [19, 21])
    def test_bad_peer_id(self, make_query, length):
        request = decode_announce(parse_query(make_query(peer_id=b"p" * length)), "1.2.3.4")
        with pytest.raises(IdentifierError, match="invalid peer id"):
            validate_announce(request)

    def test_missing_ids(self, make_query):
        request = decode_announce(parse_query(make_query(info_hash=None)), "1.2.3.4")
        with pytest.raises(IdentifierError):
            validate_announce(request)


class TestEncodeResponse:
    @pytest.fixture
    def response(self):
        return AnnounceResponse(
            interval=60,
            tracker_id="snaptracker",
            complete=1,
            incomplete=0,
            peers=[PeerDescriptor(ip="10.0.0.1", peer_id=b"\xff" * 20, port=6881)],
        )

    def test_bencoded_peers_are_dictionaries(self, response):
        body = decode(encode_response(response, compact=True))

        assert body[b"interval"] == 60
        assert body[b"tracker id"] == b"snaptracker"
        assert body[b"complete"] == 1
        assert body[b"incomplete"] == 0
        assert body[b"peers"] == [{b"ip": b"10.0.0.1", b"peer id": b"\xff" * 20, b"port": 6881}]
        assert b"failure reason" not in body

    def test_json_body(self, response):
        body = json.loads(encode_response(response, compact=False))

        assert body["tracker id"] == "snaptracker"
        assert body["peers"][0]["ip"] == "10.0.0.1"
        assert base64.b64decode(body["peers"][0]["peer id"]) == b"\xff" * 20

    @pytest.mark.parametrize("compact", [True, False])
    def test_failure_carries_only_reason(self, compact):
        raw = encode_response(AnnounceResponse.failure("invalid peer id"), compact)
        body = decode(raw) if compact else json.loads(raw)
        key = b"failure reason" if compact else "failure reason"
        assert list(body) == [key]

    def test_encode_failure_yields_empty_body(self, monkeypatch, response, caplog):
        from snaptracker.tracker import codec
        from snaptracker.utils.exceptions import BencodeEncodeError

        def _boom(_payload):
            raise BencodeEncodeError("boom")

        monkeypatch.setattr(codec, "encode", _boom)
        assert encode_response(response, compact=True) == b""
        assert "Bencode encode failed" in caplog.text
