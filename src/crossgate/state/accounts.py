"""
Persistent record types.

Records are stored as JSON dicts tagged with a "kind". Integers that may
exceed 2**53 (chain ids, tx ids) are serialized as decimal strings; bytes
as lowercase hex.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence

from crossgate.crypto.signing import SignatureVerifier
from crossgate.protocol.enums import RegistryLayer
from crossgate.protocol.models import MessageSignature
from crossgate.utils.timestamps import now_iso


@dataclass
class GatewayAccount:
    """Per-chain gateway configuration. Created once, never deleted."""

    KIND = "gateway"

    chain_id: int
    authority: bytes
    system_enabled: bool = True
    created_at: str = field(default_factory=now_iso)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.KIND,
            "chainId": str(self.chain_id),
            "authority": self.authority.hex(),
            "systemEnabled": self.system_enabled,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GatewayAccount":
        return cls(
            chain_id=int(data["chainId"]),
            authority=bytes.fromhex(data["authority"]),
            system_enabled=bool(data["systemEnabled"]),
            created_at=data.get("createdAt", ""),
        )


@dataclass
class SignerRegistryAccount:
    """
    Authorized signers and threshold for one (layer, chain) pair.

    signers keeps insertion order; membership is by key equality.
    """

    KIND = "signer_registry"

    layer: RegistryLayer
    chain_id: int
    signers: List[bytes]
    threshold: int
    enabled: bool = True

    def contains(self, signer: bytes) -> bool:
        return bytes(signer) in self.signers

    def count_valid(
        self,
        signatures: Sequence[MessageSignature],
        digest: bytes,
        verifier: SignatureVerifier,
    ) -> int:
        """
        Number of distinct registered signers with a valid signature over
        digest. Repeated signatures from the same key count once.
        """
        counted = set()
        for sig in signatures:
            key = bytes(sig.signer)
            if key in counted or not self.contains(key):
                continue
            if verifier.verify(digest, sig.signature, key):
                counted.add(key)
        return len(counted)

    def authorize(
        self,
        signatures: Sequence[MessageSignature],
        digest: bytes,
        verifier: SignatureVerifier,
    ) -> bool:
        return self.count_valid(signatures, digest, verifier) >= self.threshold

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.KIND,
            "layer": self.layer.label,
            "discriminant": self.layer.discriminant,
            "chainId": str(self.chain_id),
            "signers": [s.hex() for s in self.signers],
            "threshold": self.threshold,
            "enabled": self.enabled,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SignerRegistryAccount":
        return cls(
            layer=RegistryLayer(data["discriminant"]),
            chain_id=int(data["chainId"]),
            signers=[bytes.fromhex(s) for s in data["signers"]],
            threshold=int(data["threshold"]),
            enabled=bool(data["enabled"]),
        )


@dataclass
class TxMarker:
    """
    Replay marker for (source_chain_id, tx_id).

    Its existence means Pending. It stores the digest computed at
    creation so finalize can detect a payload changed between phases.
    """

    KIND = "tx"

    tx_id: int
    source_chain_id: int
    dest_chain_id: int
    digest: bytes
    relayer: bytes = b""
    created_at: str = field(default_factory=now_iso)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.KIND,
            "txId": str(self.tx_id),
            "sourceChainId": str(self.source_chain_id),
            "destChainId": str(self.dest_chain_id),
            "digest": self.digest.hex(),
            "relayer": self.relayer.hex(),
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TxMarker":
        return cls(
            tx_id=int(data["txId"]),
            source_chain_id=int(data["sourceChainId"]),
            dest_chain_id=int(data["destChainId"]),
            digest=bytes.fromhex(data["digest"]),
            relayer=bytes.fromhex(data.get("relayer", "")),
            created_at=data.get("createdAt", ""),
        )


@dataclass
class CounterAccount:
    """Highest transaction id accepted from a source chain."""

    KIND = "counter"

    source_chain_id: int
    highest_tx_id_seen: int = 0

    def next_tx_id(self) -> int:
        return self.highest_tx_id_seen + 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.KIND,
            "sourceChainId": str(self.source_chain_id),
            "highestTxIdSeen": str(self.highest_tx_id_seen),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CounterAccount":
        return cls(
            source_chain_id=int(data["sourceChainId"]),
            highest_tx_id_seen=int(data["highestTxIdSeen"]),
        )


ACCOUNT_TYPES = {
    GatewayAccount.KIND: GatewayAccount,
    SignerRegistryAccount.KIND: SignerRegistryAccount,
    TxMarker.KIND: TxMarker,
    CounterAccount.KIND: CounterAccount,
}


def account_from_dict(data: Dict[str, Any]):
    """Decode any stored record by its kind tag."""
    kind = data.get("kind")
    if kind not in ACCOUNT_TYPES:
        raise ValueError(f"Unknown record kind: {kind!r}")
    return ACCOUNT_TYPES[kind].from_dict(data)
