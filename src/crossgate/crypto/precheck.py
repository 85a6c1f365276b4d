"""
Host-level signature checks.

A submission carries one Ed25519Instruction per signature, checked by the
host before the gateway operation runs. If any instruction fails, the
whole submission is rejected. The gateway then reconciles its own view of
the signature set against the confirmed instructions: a signature that was
not confirmed here is treated as invalid even if it would verify
in-process.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import FrozenSet, Iterable, List, Optional, Sequence, Tuple

from crossgate.protocol.errors import InvalidSignature
from crossgate.protocol.models import MessageSignature

from .signing import SignatureVerifier

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Ed25519Instruction:
    """One system-level signature check: public_key signed message."""

    public_key: bytes
    signature: bytes
    message: bytes

    @classmethod
    def create(cls, signature: bytes, public_key: bytes, message: bytes) -> "Ed25519Instruction":
        return cls(public_key=bytes(public_key), signature=bytes(signature), message=bytes(message))

    @classmethod
    def for_signatures(
        cls, signatures: Sequence[MessageSignature], digest: bytes
    ) -> List["Ed25519Instruction"]:
        return [cls.create(s.signature, s.signer, digest) for s in signatures]


_Confirmed = Tuple[bytes, bytes, bytes]


@dataclass(frozen=True)
class VerifiedSignatures:
    """Set of (public_key, signature, message) triples the host confirmed."""

    entries: FrozenSet[_Confirmed] = frozenset()

    def confirms(self, sig: MessageSignature, digest: bytes) -> bool:
        return (bytes(sig.signer), bytes(sig.signature), bytes(digest)) in self.entries

    def __len__(self) -> int:
        return len(self.entries)


def run_signature_checks(
    instructions: Iterable[Ed25519Instruction],
    verifier: Optional[SignatureVerifier] = None,
) -> VerifiedSignatures:
    """
    Verify every instruction.

    Raises:
        InvalidSignature: if any instruction fails; nothing is confirmed.
    """
    verifier = verifier or SignatureVerifier()
    confirmed = set()
    for index, ix in enumerate(instructions):
        if not _check(verifier, ix):
            logger.warning("Signature check instruction %d failed", index)
            raise InvalidSignature(
                f"Signature check instruction {index} failed for signer {ix.public_key.hex()}"
            )
        confirmed.add((ix.public_key, ix.signature, ix.message))
    return VerifiedSignatures(frozenset(confirmed))


def _check(verifier: SignatureVerifier, ix: Ed25519Instruction) -> bool:
    if len(ix.message) != 32:
        # Only digests are ever signed under this protocol
        return False
    return verifier.verify(ix.message, ix.signature, ix.public_key)
