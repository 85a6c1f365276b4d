"""
Wire-level value types.

Message and MessageSignature are immutable values passed by copy between
components. Bytes fields serialize as lowercase hex.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Sequence, Tuple

MessageKey = Tuple[int, int]


@dataclass(frozen=True)
class Message:
    """
    A cross-chain message.

    Every field, including off_chain_data, participates in the digest.
    off_chain_data is never persisted by the gateway.
    """

    tx_id: int
    source_chain_id: int
    dest_chain_id: int
    sender: bytes
    recipient: bytes
    on_chain_data: bytes = b""
    off_chain_data: bytes = b""

    @property
    def key(self) -> MessageKey:
        """Replay-protection key: (source_chain_id, tx_id)."""
        return (self.source_chain_id, self.tx_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "txId": str(self.tx_id),
            "sourceChainId": str(self.source_chain_id),
            "destChainId": str(self.dest_chain_id),
            "sender": self.sender.hex(),
            "recipient": self.recipient.hex(),
            "onChainData": self.on_chain_data.hex(),
            "offChainData": self.off_chain_data.hex(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Message":
        return cls(
            tx_id=int(data["txId"]),
            source_chain_id=int(data["sourceChainId"]),
            dest_chain_id=int(data["destChainId"]),
            sender=bytes.fromhex(data["sender"]),
            recipient=bytes.fromhex(data["recipient"]),
            on_chain_data=bytes.fromhex(data.get("onChainData", "")),
            off_chain_data=bytes.fromhex(data.get("offChainData", "")),
        )


@dataclass(frozen=True)
class MessageSignature:
    """Detached Ed25519 signature over a message digest."""

    signature: bytes
    signer: bytes

    def to_dict(self) -> Dict[str, str]:
        return {"signature": self.signature.hex(), "signer": self.signer.hex()}

    @classmethod
    def from_dict(cls, data: Dict[str, str]) -> "MessageSignature":
        return cls(
            signature=bytes.fromhex(data["signature"]),
            signer=bytes.fromhex(data["signer"]),
        )


def signatures_to_list(signatures: Sequence[MessageSignature]) -> List[Dict[str, str]]:
    return [s.to_dict() for s in signatures]


def signatures_from_list(data: Sequence[Dict[str, str]]) -> List[MessageSignature]:
    return [MessageSignature.from_dict(d) for d in data]
