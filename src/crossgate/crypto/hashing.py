"""
Canonical message encoding and digest.

Layout (MESSAGE_HASH_VERSION 1), concatenated with no separators:

    tx_id             16 bytes, little-endian
    source_chain_id    8 bytes, little-endian
    dest_chain_id      8 bytes, little-endian
    sender            u32 LE length + raw bytes
    recipient         u32 LE length + raw bytes
    on_chain_data     u32 LE length + raw bytes
    off_chain_data    u32 LE length + raw bytes

The digest is Keccak-256 of that byte string. This is the original Keccak
padding used by EVM chains, NOT the NIST SHA3-256 exposed by hashlib.
Counterpart implementations on other chains compute the same bytes; any
change here is a breaking protocol change.
"""

from __future__ import annotations

from Crypto.Hash import keccak

from crossgate.protocol import constants as c
from crossgate.protocol.models import Message


def keccak256(data: bytes) -> bytes:
    """Keccak-256 digest (32 bytes)."""
    h = keccak.new(digest_bits=256)
    h.update(data)
    return h.digest()


def encode_length_prefixed(data: bytes) -> bytes:
    if len(data) > c.U32_MAX:
        raise ValueError("Field too large for a u32 length prefix")
    return len(data).to_bytes(c.LENGTH_PREFIX_BYTES, "little") + bytes(data)


def encode_fields(
    tx_id: int,
    source_chain_id: int,
    dest_chain_id: int,
    sender: bytes,
    recipient: bytes,
    on_chain_data: bytes,
    off_chain_data: bytes,
) -> bytes:
    """Canonical byte encoding of the seven message fields."""
    # to_bytes raises OverflowError for negative or oversized ids
    parts = [
        tx_id.to_bytes(c.TX_ID_BYTES, "little"),
        source_chain_id.to_bytes(c.CHAIN_ID_BYTES, "little"),
        dest_chain_id.to_bytes(c.CHAIN_ID_BYTES, "little"),
        encode_length_prefixed(sender),
        encode_length_prefixed(recipient),
        encode_length_prefixed(on_chain_data),
        encode_length_prefixed(off_chain_data),
    ]
    return b"".join(parts)


def encode_message(message: Message) -> bytes:
    return encode_fields(
        message.tx_id,
        message.source_chain_id,
        message.dest_chain_id,
        message.sender,
        message.recipient,
        message.on_chain_data,
        message.off_chain_data,
    )


def create_message_hash(
    tx_id: int,
    source_chain_id: int,
    dest_chain_id: int,
    sender: bytes,
    recipient: bytes,
    on_chain_data: bytes,
    off_chain_data: bytes,
) -> bytes:
    """Field-wise digest, for relayers that do not build a Message first."""
    return keccak256(
        encode_fields(
            tx_id,
            source_chain_id,
            dest_chain_id,
            sender,
            recipient,
            on_chain_data,
            off_chain_data,
        )
    )


def hash_message(message: Message) -> bytes:
    """The 32-byte digest every signer signs."""
    return keccak256(encode_message(message))
