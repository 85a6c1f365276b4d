"""
Ed25519 message signing and verification.

Signers sign the 32-byte message digest directly (detached signature,
64 bytes). Public keys travel as raw 32-byte values.

KEY MANAGEMENT ASSUMPTIONS:
- Private keys are provided by the caller (keypair file, raw bytes, KMS)
- generate() exists for tests and local tooling only
"""

from __future__ import annotations

import hashlib
import json
from typing import Optional

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

from crossgate.protocol import constants as c
from crossgate.protocol.models import Message, MessageSignature

from .hashing import hash_message


class MessageSigner:
    """
    Ed25519 signer for message digests.

    Usage:
        signer = MessageSigner.from_keypair_file("keypairs/authority.json")
        sig = signer.sign_message(message)
    """

    def __init__(self, private_key: Ed25519PrivateKey):
        self._private_key = private_key
        self._public_bytes = private_key.public_key().public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        )
        self._key_id = hashlib.sha256(self._public_bytes).hexdigest()[:16]

    @property
    def key_id(self) -> str:
        """Short fingerprint of the public key, for logs."""
        return self._key_id

    @property
    def public_key_bytes(self) -> bytes:
        return self._public_bytes

    def sign(self, digest: bytes) -> bytes:
        """Sign a 32-byte digest. Returns a 64-byte signature."""
        if len(digest) != c.DIGEST_LENGTH:
            raise ValueError(f"Digest must be {c.DIGEST_LENGTH} bytes")
        return self._private_key.sign(digest)

    def sign_digest(self, digest: bytes) -> MessageSignature:
        return MessageSignature(signature=self.sign(digest), signer=self._public_bytes)

    def sign_message(self, message: Message) -> MessageSignature:
        return self.sign_digest(hash_message(message))

    @classmethod
    def generate(cls) -> "MessageSigner":
        """
        Generate a new key pair.

        WARNING: Use only for testing and local tooling.
        """
        return cls(Ed25519PrivateKey.generate())

    @classmethod
    def from_private_bytes(cls, key_bytes: bytes) -> "MessageSigner":
        """Create signer from a raw 32-byte seed."""
        return cls(Ed25519PrivateKey.from_private_bytes(key_bytes))

    @classmethod
    def from_keypair_bytes(cls, keypair: bytes) -> "MessageSigner":
        """
        Create signer from the 64-byte seed||public form used by chain
        wallets. The embedded public key must match the seed.
        """
        if len(keypair) != 64:
            raise ValueError("Keypair must be 64 bytes (seed || public key)")
        signer = cls.from_private_bytes(keypair[:32])
        if signer.public_key_bytes != keypair[32:]:
            raise ValueError("Keypair public key does not match its seed")
        return signer

    @classmethod
    def from_keypair_file(cls, path: str) -> "MessageSigner":
        """Load a keypair stored as a JSON array of 64 integers."""
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, list):
            raise ValueError(f"Keypair file {path} must contain a JSON array")
        return cls.from_keypair_bytes(bytes(data))

    @classmethod
    def from_pem_file(cls, path: str, password: Optional[bytes] = None) -> "MessageSigner":
        with open(path, "rb") as f:
            private_key = serialization.load_pem_private_key(f.read(), password=password)
        if not isinstance(private_key, Ed25519PrivateKey):
            raise TypeError(f"Expected Ed25519 private key, got {type(private_key)}")
        return cls(private_key)

    def export_keypair_bytes(self) -> bytes:
        seed = self._private_key.private_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PrivateFormat.Raw,
            encryption_algorithm=serialization.NoEncryption(),
        )
        return seed + self._public_bytes


class SignatureVerifier:
    """
    Stateless Ed25519 verifier.

    verify() answers only "did this key sign exactly this digest"; whether
    the key is authorized is the signer registry's concern.
    """

    def verify(self, digest: bytes, signature: bytes, signer: bytes) -> bool:
        if len(digest) != c.DIGEST_LENGTH:
            return False
        if len(signature) != c.SIGNATURE_LENGTH or len(signer) != c.PUBLIC_KEY_LENGTH:
            return False
        try:
            public_key = Ed25519PublicKey.from_public_bytes(bytes(signer))
        except ValueError:
            return False
        try:
            public_key.verify(bytes(signature), bytes(digest))
            return True
        except InvalidSignature:
            return False

    def verify_signature(self, digest: bytes, sig: MessageSignature) -> bool:
        return self.verify(digest, sig.signature, sig.signer)
