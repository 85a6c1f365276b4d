"""
Relayer-side driver for the two-phase flow.

    receipt = RelayerClient(program, relayer_key).submit(message, signatures)

Retry rules:
- Phase 1 is never retried after a failure. A Pending marker left by an
  earlier attempt is resumed instead, provided its digest matches.
- Phase 2 is safe to call again after a failure (e.g. once a missing
  signature has been collected); the marker stays Pending until it
  succeeds.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Sequence

from crossgate.crypto.hashing import hash_message
from crossgate.crypto.precheck import Ed25519Instruction
from crossgate.crypto.signing import MessageSigner
from crossgate.gateway.context import InvocationContext
from crossgate.gateway.coordinator import FinalizeResult
from crossgate.gateway.program import MessageGatewayProgram
from crossgate.protocol.models import Message, MessageSignature
from crossgate.state.accounts import TxMarker

logger = logging.getLogger(__name__)


@dataclass
class DeliveryReceipt:
    tx_id: int
    source_chain_id: int
    dest_chain_id: int
    digest: bytes
    resumed: bool = False
    layer_counts: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, object]:
        return {
            "txId": str(self.tx_id),
            "sourceChainId": str(self.source_chain_id),
            "destChainId": str(self.dest_chain_id),
            "digest": self.digest.hex(),
            "resumed": self.resumed,
            "layerCounts": dict(self.layer_counts),
        }


class RelayerClient:
    def __init__(self, program: MessageGatewayProgram, relayer_key: MessageSigner) -> None:
        self._program = program
        self._relayer_key = relayer_key

    @property
    def relayer(self) -> bytes:
        return self._relayer_key.public_key_bytes

    @staticmethod
    def sign(message: Message, signers: Iterable[MessageSigner]) -> List[MessageSignature]:
        """Collect one signature per signer over the message digest."""
        digest = hash_message(message)
        return [s.sign_digest(digest) for s in signers]

    def create_record(
        self, message: Message, signatures: Sequence[MessageSignature] = ()
    ) -> TxMarker:
        """Phase 1. Carries no signature check instructions."""
        return self._program.create_record(InvocationContext.of(self.relayer), message, signatures)

    def finalize(
        self, message: Message, signatures: Sequence[MessageSignature]
    ) -> FinalizeResult:
        """Phase 2, with one signature check instruction per signature."""
        instructions = Ed25519Instruction.for_signatures(signatures, hash_message(message))
        return self._program.finalize(
            InvocationContext.of(self.relayer, instructions), message, signatures
        )

    def submit(
        self, message: Message, signatures: Sequence[MessageSignature]
    ) -> DeliveryReceipt:
        """Run both phases, resuming a matching Pending marker if one exists."""
        digest = hash_message(message)
        marker = self._program.get_marker(message.source_chain_id, message.tx_id)

        resumed = marker is not None and marker.digest == digest
        if resumed:
            logger.info(
                "Resuming pending marker source=%d tx=%d",
                message.source_chain_id,
                message.tx_id,
            )
        else:
            self.create_record(message, signatures)

        result = self.finalize(message, signatures)
        return DeliveryReceipt(
            tx_id=message.tx_id,
            source_chain_id=message.source_chain_id,
            dest_chain_id=message.dest_chain_id,
            digest=result.digest,
            resumed=resumed,
            layer_counts=result.layer_counts,
        )
