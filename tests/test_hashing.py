"""
Tests for the canonical message encoding and Keccak-256 digest.
"""

import hashlib

import pytest

from crossgate.crypto.hashing import (
    create_message_hash,
    encode_length_prefixed,
    encode_message,
    hash_message,
    keccak256,
)
from crossgate.protocol.models import Message

from conftest import DEST, RECIPIENT, SOURCE, make_message


class TestKeccak:
    def test_empty_input_vector(self):
        assert keccak256(b"").hex() == (
            "c5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470"
        )

    def test_abc_vector(self):
        assert keccak256(b"abc").hex() == (
            "4e03657aea45a94fc7d47ba826c8d667c0d1e6e33a64a036ec44f58fa12d6c45"
        )

    def test_not_nist_sha3(self):
        assert keccak256(b"") != hashlib.sha3_256(b"").digest()


class TestEncoding:
    def test_length_prefix_is_u32_le(self):
        assert encode_length_prefixed(b"avax") == b"\x04\x00\x00\x00avax"
        assert encode_length_prefixed(b"") == b"\x00\x00\x00\x00"

    def test_field_layout(self):
        msg = make_message(recipient=b"\x01" * 32)
        encoded = encode_message(msg)

        expected = (
            b"\x01" + b"\x00" * 15
            + bytes.fromhex("69a8000000000000")
            + DEST.to_bytes(8, "little")
            + b"\x04\x00\x00\x00" + b"avax"
            + b"\x20\x00\x00\x00" + b"\x01" * 32
            + b"\x05\x00\x00\x00" + b"hello"
            + b"\x00\x00\x00\x00"
        )
        assert encoded == expected
        assert len(encoded) == 89

    def test_dest_chain_id_uses_full_u64(self):
        encoded = encode_message(make_message())
        assert int.from_bytes(encoded[24:32], "little") == DEST

    def test_oversized_tx_id_rejected(self):
        msg = Message(1 << 128, SOURCE, DEST, b"", b"")
        with pytest.raises(OverflowError):
            encode_message(msg)


class TestMessageHash:
    def test_deterministic(self):
        assert hash_message(make_message()) == hash_message(make_message())
        assert len(hash_message(make_message())) == 32

    def test_fieldwise_matches_message(self, message):
        assert create_message_hash(
            message.tx_id,
            message.source_chain_id,
            message.dest_chain_id,
            message.sender,
            message.recipient,
            message.on_chain_data,
            message.off_chain_data,
        ) == hash_message(message)

    @pytest.mark.parametrize(
        "field,value",
        [
            ("tx_id", 2),
            ("source_chain_id", SOURCE + 1),
            ("dest_chain_id", DEST - 1),
            ("sender", b"avay"),
            ("recipient", bytes([1]) + RECIPIENT[1:]),
            ("on_chain_data", b"hellp"),
            ("off_chain_data", b"\x00"),
        ],
    )
    def test_single_field_change_changes_digest(self, field, value):
        base = make_message()
        changed = make_message(**{field: value})
        assert hash_message(base) != hash_message(changed)

    def test_length_prefix_prevents_boundary_shift(self):
        a = make_message(sender=b"ab", recipient=b"c")
        b = make_message(sender=b"a", recipient=b"bc")
        assert hash_message(a) != hash_message(b)

    def test_no_collisions_in_corpus(self):
        digests = {
            hash_message(make_message(tx_id=i, on_chain_data=bytes([i % 7]) * (i % 5)))
            for i in range(200)
        }
        assert len(digests) == 200
