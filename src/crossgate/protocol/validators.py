from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey

from . import constants as c
from .errors import (
    InvalidChainId,
    InvalidPublicKey,
    InvalidTxId,
    OffChainDataTooLarge,
    OnChainDataTooLarge,
    RecipientTooLong,
    SenderTooLong,
    TooFewSignatures,
    TooManySignatures,
)
from .models import Message, MessageSignature


@dataclass(frozen=True)
class GatewayLimits:
    """Signature-set and registry bounds enforced by the gateway."""

    min_signatures: int = c.MIN_SIGNATURES_REQUIRED
    max_signatures: int = c.MAX_SIGNATURES_PER_MESSAGE
    max_signers: int = c.MAX_SIGNERS_PER_REGISTRY

    def __post_init__(self) -> None:
        if self.min_signatures < 1:
            raise ValueError("min_signatures must be at least 1")
        if self.max_signatures < self.min_signatures:
            raise ValueError("max_signatures must be >= min_signatures")
        if self.max_signers < 1:
            raise ValueError("max_signers must be at least 1")


def validate_chain_id(chain_id: int) -> None:
    if isinstance(chain_id, bool) or not isinstance(chain_id, int):
        raise InvalidChainId(f"Invalid chain ID: {chain_id!r}")
    if chain_id <= 0 or chain_id > c.U64_MAX:
        raise InvalidChainId(f"Invalid chain ID: {chain_id}")


def validate_tx_id(tx_id: int) -> None:
    if isinstance(tx_id, bool) or not isinstance(tx_id, int):
        raise InvalidTxId(f"Invalid TX ID: {tx_id!r}")
    if tx_id < 0 or tx_id > c.U128_MAX:
        raise InvalidTxId(f"Invalid TX ID: {tx_id}")


def validate_message(message: Message) -> None:
    """Check identifiers and per-field size limits before any hashing."""
    validate_tx_id(message.tx_id)
    validate_chain_id(message.source_chain_id)
    validate_chain_id(message.dest_chain_id)

    if len(message.sender) > c.MAX_SENDER_SIZE:
        raise SenderTooLong(f"Sender exceeds {c.MAX_SENDER_SIZE} bytes")
    if len(message.recipient) > c.MAX_RECIPIENT_SIZE:
        raise RecipientTooLong(f"Recipient exceeds {c.MAX_RECIPIENT_SIZE} bytes")
    if len(message.on_chain_data) > c.MAX_ON_CHAIN_DATA_SIZE:
        raise OnChainDataTooLarge(
            f"On-chain data exceeds {c.MAX_ON_CHAIN_DATA_SIZE} bytes"
        )
    if len(message.off_chain_data) > c.MAX_OFF_CHAIN_DATA_SIZE:
        raise OffChainDataTooLarge(
            f"Off-chain data exceeds {c.MAX_OFF_CHAIN_DATA_SIZE} bytes"
        )


def validate_signature_count(
    signatures: Sequence[MessageSignature],
    limits: GatewayLimits,
    *,
    check_minimum: bool = True,
) -> None:
    count = len(signatures)
    if count > limits.max_signatures:
        raise TooManySignatures(
            f"{count} signatures submitted, at most {limits.max_signatures} allowed"
        )
    if check_minimum and count < limits.min_signatures:
        raise TooFewSignatures(
            f"{count} signatures submitted, at least {limits.min_signatures} required"
        )


def validate_public_key(key: bytes) -> None:
    """Require a raw 32-byte key that decodes as an Ed25519 public key."""
    if not isinstance(key, (bytes, bytearray)) or len(key) != c.PUBLIC_KEY_LENGTH:
        raise InvalidPublicKey(f"Public key must be {c.PUBLIC_KEY_LENGTH} raw bytes")
    try:
        Ed25519PublicKey.from_public_bytes(bytes(key))
    except ValueError as e:
        raise InvalidPublicKey(f"Not an Ed25519 public key: {bytes(key).hex()}") from e
