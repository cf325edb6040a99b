"""Property-based tests for bencode encoding/decoding.

Uses Hypothesis to check invariants of the bencode implementation.
"""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from snaptracker.bencode import decode, encode

pytestmark = [pytest.mark.property]

bencodable = st.recursive(
    st.integers() | st.binary(),
    lambda children: st.lists(children) | st.dictionaries(st.binary(), children),
    max_leaves=20,
)


class TestBencodeProperties:
    """Property-based tests for bencode operations."""

    @given(bencodable)
    def test_decode_inverts_encode(self, value):
        """Any bencodable value survives encode then decode."""
        assert decode(encode(value)) == value

    @given(st.dictionaries(st.binary(), st.integers()))
    def test_dict_keys_sorted(self, dct):
        """Encoded dictionaries list keys in ascending byte order."""
        decoded = decode(encode(dct))
        assert list(decoded) == sorted(dct)

    @given(st.text())
    def test_text_encodes_as_utf8(self, text):
        """str values are written as their UTF-8 bytes."""
        assert decode(encode(text)) == text.encode("utf-8")
