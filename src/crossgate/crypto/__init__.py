"""
Message digest and Ed25519 signature primitives.
"""

from .hashing import (
    create_message_hash,
    encode_length_prefixed,
    encode_message,
    hash_message,
    keccak256,
)
from .signing import MessageSigner, SignatureVerifier
from .precheck import Ed25519Instruction, VerifiedSignatures, run_signature_checks

__all__ = [
    "create_message_hash",
    "encode_length_prefixed",
    "encode_message",
    "hash_message",
    "keccak256",
    "MessageSigner",
    "SignatureVerifier",
    "Ed25519Instruction",
    "VerifiedSignatures",
    "run_signature_checks",
]
