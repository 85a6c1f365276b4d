"""
Two-phase replay protection.

Marker lifecycle per (source_chain_id, tx_id):

    Absent --create_record--> Pending --finalize--> Absent

Phase 1 (create_record) is cheap: size checks, digest, exclusive marker
creation and the source chain counter, which only accepts increasing tx
ids. It performs no signature verification, so an attacker who floods
never-finalized messages pays only for marker creation.

Phase 2 (finalize) recomputes the digest from the full message, requires
it to equal the digest stored in Phase 1, verifies every signature, checks
each layer's threshold and only then deletes the marker. Any failure
leaves the marker Pending so a corrected finalize can be retried.

CRITICAL INVARIANTS:
1. At most one marker per key; creation is exclusive (AlreadyExists)
2. A marker is deleted only after all enabled layers are satisfied
3. A signature counts only if the host-level check confirmed it AND it
   verifies in-process
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from crossgate.crypto.hashing import hash_message
from crossgate.crypto.precheck import VerifiedSignatures
from crossgate.crypto.signing import SignatureVerifier
from crossgate.protocol.enums import MarkerState, RegistryLayer
from crossgate.protocol.errors import (
    CounterNotInitialized,
    DigestMismatch,
    InsufficientLayerSignatures,
    InvalidSignature,
    RecordNotFound,
    TxIdTooOld,
    UnauthorizedSigner,
)
from crossgate.protocol.models import Message, MessageSignature
from crossgate.protocol.validators import (
    GatewayLimits,
    validate_message,
    validate_signature_count,
)
from crossgate.state.accounts import CounterAccount, SignerRegistryAccount, TxMarker
from crossgate.state.addresses import AddressBook
from crossgate.state.store import StoreTransaction

from .registry import SignerRegistryService

logger = logging.getLogger(__name__)


@dataclass
class FinalizeResult:
    """Outcome of a successful finalize."""

    message: Message
    digest: bytes
    layer_counts: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, object]:
        return {
            "txId": str(self.message.tx_id),
            "sourceChainId": str(self.message.source_chain_id),
            "destChainId": str(self.message.dest_chain_id),
            "digest": self.digest.hex(),
            "layerCounts": dict(self.layer_counts),
        }


class TwoPhaseCoordinator:
    def __init__(
        self,
        addresses: AddressBook,
        registries: SignerRegistryService,
        limits: GatewayLimits,
        verifier: SignatureVerifier,
        *,
        require_signature_precheck: bool = True,
    ) -> None:
        self._addresses = addresses
        self._registries = registries
        self._limits = limits
        self._verifier = verifier
        self._require_precheck = require_signature_precheck

    # ------------------------------------------------------------------
    # Phase 1
    # ------------------------------------------------------------------

    def create_record(
        self,
        txn: StoreTransaction,
        message: Message,
        signatures: Sequence[MessageSignature] = (),
        *,
        relayer: bytes = b"",
    ) -> TxMarker:
        """
        Absent -> Pending.

        Raises:
            AlreadyExists: a marker for (source_chain_id, tx_id) is Pending
            CounterNotInitialized: the source chain has no counter
            TxIdTooOld: the source chain's counter has seen a newer tx id
        """
        validate_message(message)
        validate_signature_count(signatures, self._limits, check_minimum=False)

        marker = TxMarker(
            tx_id=message.tx_id,
            source_chain_id=message.source_chain_id,
            dest_chain_id=message.dest_chain_id,
            digest=hash_message(message),
            relayer=bytes(relayer),
        )
        txn.create(
            self._addresses.tx(message.source_chain_id, message.tx_id),
            marker.to_dict(),
        )

        counter_address = self._addresses.counter(message.source_chain_id)
        record = txn.get(counter_address)
        if record is None:
            raise CounterNotInitialized(
                f"No counter for source chain {message.source_chain_id}"
            )
        counter = CounterAccount.from_dict(record)
        if message.tx_id <= counter.highest_tx_id_seen:
            raise TxIdTooOld(
                f"TX ID {message.tx_id} is not above {counter.highest_tx_id_seen} "
                f"for source chain {message.source_chain_id}"
            )
        counter.highest_tx_id_seen = message.tx_id
        txn.put(counter_address, counter.to_dict())

        logger.info(
            "Marker created source=%d tx=%d digest=%s",
            message.source_chain_id,
            message.tx_id,
            marker.digest.hex()[:16],
        )
        return marker

    # ------------------------------------------------------------------
    # Phase 2
    # ------------------------------------------------------------------

    def finalize(
        self,
        txn: StoreTransaction,
        message: Message,
        signatures: Sequence[MessageSignature],
        verified: VerifiedSignatures,
    ) -> FinalizeResult:
        """
        Pending -> Absent.

        Raises:
            RecordNotFound: no Pending marker for the key
            TooFewSignatures / TooManySignatures: set size out of bounds
            DigestMismatch: full message differs from the one recorded
            InvalidSignature: a signature is unconfirmed or does not verify
            UnauthorizedSigner: a signer is in none of the consulted registries
            InsufficientLayerSignatures: a layer is below its threshold
        """
        validate_message(message)

        address = self._addresses.tx(message.source_chain_id, message.tx_id)
        record = txn.get(address)
        if record is None:
            raise RecordNotFound(
                f"No pending record for source chain {message.source_chain_id}, "
                f"tx {message.tx_id}"
            )
        marker = TxMarker.from_dict(record)

        validate_signature_count(signatures, self._limits)

        digest = hash_message(message)
        if digest != marker.digest:
            raise DigestMismatch(
                f"Message digest {digest.hex()} does not match recorded {marker.digest.hex()}"
            )

        self._verify_signatures(signatures, digest, verified)
        counts = self._check_layers(txn, message, signatures, digest)

        txn.delete(address)
        logger.info(
            "Message finalized source=%d tx=%d layers=%s",
            message.source_chain_id,
            message.tx_id,
            counts,
        )
        return FinalizeResult(message=message, digest=digest, layer_counts=counts)

    def _verify_signatures(
        self,
        signatures: Sequence[MessageSignature],
        digest: bytes,
        verified: VerifiedSignatures,
    ) -> None:
        for index, sig in enumerate(signatures):
            if self._require_precheck and not verified.confirms(sig, digest):
                raise InvalidSignature(
                    f"Signature {index} from {sig.signer.hex()} was not confirmed "
                    "by a signature check instruction"
                )
            if not self._verifier.verify_signature(digest, sig):
                raise InvalidSignature(
                    f"Signature {index} from {sig.signer.hex()} does not verify"
                )

    def _check_layers(
        self,
        txn: StoreTransaction,
        message: Message,
        signatures: Sequence[MessageSignature],
        digest: bytes,
    ) -> Dict[str, int]:
        via = self._registries.require(txn, RegistryLayer.VIA, message.dest_chain_id)
        chain = self._registries.require(txn, RegistryLayer.CHAIN, message.source_chain_id)
        project = self._registries.load(txn, RegistryLayer.PROJECT, message.dest_chain_id)

        consulted: List[SignerRegistryAccount] = [via, chain]
        if project is not None:
            consulted.append(project)

        for sig in signatures:
            if not any(r.contains(sig.signer) for r in consulted):
                raise UnauthorizedSigner(
                    f"Signer {sig.signer.hex()} is not registered for this route"
                )

        enforced = [via, chain]
        if project is not None and project.enabled:
            enforced.append(project)

        counts: Dict[str, int] = {}
        for registry in enforced:
            valid = registry.count_valid(signatures, digest, self._verifier)
            counts[registry.layer.label] = valid
            if valid < registry.threshold:
                raise InsufficientLayerSignatures(registry.layer, valid, registry.threshold)
        return counts

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def load_marker(
        self, txn: StoreTransaction, source_chain_id: int, tx_id: int
    ) -> Optional[TxMarker]:
        record = txn.get(self._addresses.tx(source_chain_id, tx_id))
        return TxMarker.from_dict(record) if record else None

    def marker_state(
        self, txn: StoreTransaction, source_chain_id: int, tx_id: int
    ) -> MarkerState:
        if self.load_marker(txn, source_chain_id, tx_id) is None:
            return MarkerState.ABSENT
        return MarkerState.PENDING
