"""
Signer registries.

One registry per (layer, chain id). Each holds an ordered signer set, a
threshold and an enabled flag.

CRITICAL INVARIANTS:
1. threshold <= len(signers), always
2. An enabled registry has threshold >= 1
3. Via and Chain registries are always enabled; only Project may be
   disabled (and a Project registry initialized with threshold 0 starts
   disabled)
4. Initialization is exclusive: a second initialize fails with
   AlreadyExists and never overwrites

Authority checks happen in the program before these methods run.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence

from crossgate.crypto.signing import SignatureVerifier
from crossgate.protocol.enums import RegistryLayer
from crossgate.protocol.errors import (
    AlreadyExists,
    DuplicateSigner,
    InvalidThreshold,
    MandatoryLayer,
    RegistryNotInitialized,
    SignerNotFound,
    TooManySigners,
)
from crossgate.protocol.models import MessageSignature
from crossgate.protocol.validators import GatewayLimits, validate_chain_id, validate_public_key
from crossgate.state.accounts import SignerRegistryAccount
from crossgate.state.addresses import AddressBook
from crossgate.state.store import StoreTransaction

logger = logging.getLogger(__name__)


class SignerRegistryService:
    def __init__(
        self,
        addresses: AddressBook,
        limits: GatewayLimits,
        verifier: SignatureVerifier,
    ) -> None:
        self._addresses = addresses
        self._limits = limits
        self._verifier = verifier

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def load(
        self, txn: StoreTransaction, layer: RegistryLayer, chain_id: int
    ) -> Optional[SignerRegistryAccount]:
        record = txn.get(self._addresses.signer_registry(layer, chain_id))
        return SignerRegistryAccount.from_dict(record) if record else None

    def require(
        self, txn: StoreTransaction, layer: RegistryLayer, chain_id: int
    ) -> SignerRegistryAccount:
        registry = self.load(txn, layer, chain_id)
        if registry is None:
            raise RegistryNotInitialized(
                f"{RegistryLayer(layer).label} registry not initialized for chain {chain_id}"
            )
        return registry

    def _save(self, txn: StoreTransaction, registry: SignerRegistryAccount) -> None:
        txn.put(self._addresses.signer_registry(registry.layer, registry.chain_id), registry.to_dict())

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def _check_signers(self, signers: Sequence[bytes]) -> List[bytes]:
        keys = [bytes(s) for s in signers]
        if len(keys) > self._limits.max_signers:
            raise TooManySigners(
                f"{len(keys)} signers exceeds the limit of {self._limits.max_signers}"
            )
        seen = set()
        for key in keys:
            validate_public_key(key)
            if key in seen:
                raise DuplicateSigner(f"Duplicate signer: {key.hex()}")
            seen.add(key)
        return keys

    @staticmethod
    def _check_threshold(
        layer: RegistryLayer, signer_count: int, threshold: int, enabled: bool
    ) -> None:
        if isinstance(threshold, bool) or not isinstance(threshold, int) or threshold < 0:
            raise InvalidThreshold(f"Invalid threshold: {threshold!r}")
        if threshold > signer_count:
            raise InvalidThreshold(
                f"Threshold {threshold} exceeds signer count {signer_count}"
            )
        if enabled and threshold == 0:
            raise InvalidThreshold(
                f"Enabled {layer.label} registry requires a threshold of at least 1"
            )
        if not enabled and layer.is_mandatory:
            raise MandatoryLayer(f"The {layer.label} layer cannot be disabled")

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def initialize(
        self,
        txn: StoreTransaction,
        layer: RegistryLayer,
        chain_id: int,
        signers: Iterable[bytes],
        threshold: int,
    ) -> SignerRegistryAccount:
        layer = RegistryLayer(layer)
        validate_chain_id(chain_id)
        address = self._addresses.signer_registry(layer, chain_id)
        if txn.exists(address):
            raise AlreadyExists(
                f"{layer.label} registry already exists for chain {chain_id}"
            )

        keys = self._check_signers(list(signers))
        enabled = not (layer is RegistryLayer.PROJECT and threshold == 0)
        self._check_threshold(layer, len(keys), threshold, enabled)

        registry = SignerRegistryAccount(
            layer=layer,
            chain_id=chain_id,
            signers=keys,
            threshold=threshold,
            enabled=enabled,
        )
        txn.create(address, registry.to_dict())
        logger.info(
            "Initialized %s registry chain=%d signers=%d threshold=%d enabled=%s",
            layer.label,
            chain_id,
            len(keys),
            threshold,
            enabled,
        )
        return registry

    def add_signer(
        self, txn: StoreTransaction, layer: RegistryLayer, chain_id: int, signer: bytes
    ) -> SignerRegistryAccount:
        registry = self.require(txn, layer, chain_id)
        if registry.contains(signer):
            raise DuplicateSigner(f"Signer already registered: {bytes(signer).hex()}")
        registry.signers = self._check_signers(registry.signers + [bytes(signer)])
        self._save(txn, registry)
        logger.info("Added signer %s to %s registry chain=%d", bytes(signer).hex()[:16], registry.layer.label, chain_id)
        return registry

    def remove_signer(
        self, txn: StoreTransaction, layer: RegistryLayer, chain_id: int, signer: bytes
    ) -> SignerRegistryAccount:
        registry = self.require(txn, layer, chain_id)
        if not registry.contains(signer):
            raise SignerNotFound(f"Signer not registered: {bytes(signer).hex()}")
        remaining = [s for s in registry.signers if s != bytes(signer)]
        self._check_threshold(registry.layer, len(remaining), registry.threshold, registry.enabled)
        registry.signers = remaining
        self._save(txn, registry)
        logger.info("Removed signer %s from %s registry chain=%d", bytes(signer).hex()[:16], registry.layer.label, chain_id)
        return registry

    def update_signers(
        self,
        txn: StoreTransaction,
        layer: RegistryLayer,
        chain_id: int,
        signers: Iterable[bytes],
        threshold: int,
    ) -> SignerRegistryAccount:
        registry = self.require(txn, layer, chain_id)
        keys = self._check_signers(list(signers))
        self._check_threshold(registry.layer, len(keys), threshold, registry.enabled)
        registry.signers = keys
        registry.threshold = threshold
        self._save(txn, registry)
        logger.info(
            "Replaced %s registry chain=%d signers=%d threshold=%d",
            registry.layer.label,
            chain_id,
            len(keys),
            threshold,
        )
        return registry

    def update_threshold(
        self, txn: StoreTransaction, layer: RegistryLayer, chain_id: int, threshold: int
    ) -> SignerRegistryAccount:
        registry = self.require(txn, layer, chain_id)
        self._check_threshold(registry.layer, len(registry.signers), threshold, registry.enabled)
        registry.threshold = threshold
        self._save(txn, registry)
        logger.info("Set %s registry chain=%d threshold=%d", registry.layer.label, chain_id, threshold)
        return registry

    def set_enabled(
        self, txn: StoreTransaction, layer: RegistryLayer, chain_id: int, enabled: bool
    ) -> SignerRegistryAccount:
        registry = self.require(txn, layer, chain_id)
        self._check_threshold(registry.layer, len(registry.signers), registry.threshold, enabled)
        registry.enabled = enabled
        self._save(txn, registry)
        logger.info("Set %s registry chain=%d enabled=%s", registry.layer.label, chain_id, enabled)
        return registry

    # ------------------------------------------------------------------
    # Authorization
    # ------------------------------------------------------------------

    def authorize(
        self,
        txn: StoreTransaction,
        layer: RegistryLayer,
        chain_id: int,
        signatures: Sequence[MessageSignature],
        digest: bytes,
    ) -> bool:
        """
        True iff at least `threshold` distinct registered signers produced
        a valid signature over digest.
        """
        registry = self.require(txn, layer, chain_id)
        return registry.authorize(signatures, digest, self._verifier)
