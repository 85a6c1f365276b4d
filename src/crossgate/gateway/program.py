"""
Message gateway program.

The operation surface of the gateway. Every call runs as one atomic store
transaction: either all of its record writes are committed or none are.
Events are appended to the journal only after the commit succeeds, so the
journal never records an operation that left no state behind. A journal
write that fails after the commit is logged; the operation still succeeds.

Authority model:
- A gateway record per chain holds the authority key and system flag.
- Registry and counter mutations are checked against the gateway at
  `gateway_chain_id`, which defaults to the chain the record belongs to.
- Phase 1 and Phase 2 are open to any caller; their safety comes from the
  marker state machine and the signature checks.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from crossgate.crypto.precheck import VerifiedSignatures, run_signature_checks
from crossgate.crypto.signing import SignatureVerifier
from crossgate.protocol import constants as c
from crossgate.protocol.enums import MarkerState, RegistryLayer
from crossgate.protocol.errors import (
    GatewayError,
    GatewayNotInitialized,
    OnChainDataTooLarge,
    RecipientTooLong,
    SystemDisabled,
    Unauthorized,
)
from crossgate.protocol.models import Message, MessageSignature
from crossgate.protocol.validators import GatewayLimits, validate_chain_id, validate_tx_id
from crossgate.state.accounts import (
    CounterAccount,
    GatewayAccount,
    SignerRegistryAccount,
    TxMarker,
)
from crossgate.state.addresses import DEFAULT_PROGRAM_ID, AddressBook
from crossgate.state.journal import EventJournal
from crossgate.state.store import (
    AccountStore,
    FileAccountStore,
    InMemoryAccountStore,
    StoreTransaction,
)

from . import events
from .context import InvocationContext
from .coordinator import FinalizeResult, TwoPhaseCoordinator
from .registry import SignerRegistryService

logger = logging.getLogger(__name__)

_Event = Tuple[str, Dict[str, Any]]


class MessageGatewayProgram:
    def __init__(
        self,
        store: Optional[AccountStore] = None,
        journal: Optional[EventJournal] = None,
        *,
        limits: Optional[GatewayLimits] = None,
        verifier: Optional[SignatureVerifier] = None,
        program_id: bytes = DEFAULT_PROGRAM_ID,
        require_signature_precheck: bool = True,
    ) -> None:
        self._store = store if store is not None else InMemoryAccountStore()
        self._journal = journal if journal is not None else EventJournal()
        self._limits = limits or GatewayLimits()
        self._verifier = verifier or SignatureVerifier()
        self._addresses = AddressBook(program_id)
        self._registries = SignerRegistryService(self._addresses, self._limits, self._verifier)
        self._coordinator = TwoPhaseCoordinator(
            self._addresses,
            self._registries,
            self._limits,
            self._verifier,
            require_signature_precheck=require_signature_precheck,
        )

    @classmethod
    def from_settings(
        cls,
        settings=None,
        *,
        store_dir: Optional[str] = None,
        journal_path: Optional[str] = None,
    ) -> "MessageGatewayProgram":
        """
        Build a program with store, journal and limits from configuration.

        store_dir forces a file store at that directory; journal_path
        overrides CROSSGATE_JOURNAL_PATH.
        """
        if settings is None:
            from crossgate.core.settings import get_settings

            settings = get_settings()

        if store_dir or settings.store.backend == "file":
            store: AccountStore = FileAccountStore(
                store_dir or settings.store.dir, sync=settings.store.sync
            )
        else:
            store = InMemoryAccountStore()

        journal = EventJournal(
            journal_path or settings.runtime.journal_path, sync=settings.store.sync
        )
        limits = GatewayLimits(
            min_signatures=settings.limits.min_signatures,
            max_signatures=settings.limits.max_signatures,
            max_signers=settings.limits.max_signers,
        )
        return cls(
            store,
            journal,
            limits=limits,
            program_id=settings.runtime.program_id.encode("utf-8"),
            require_signature_precheck=settings.runtime.require_signature_precheck,
        )

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def store(self) -> AccountStore:
        return self._store

    @property
    def journal(self) -> EventJournal:
        return self._journal

    @property
    def limits(self) -> GatewayLimits:
        return self._limits

    @property
    def addresses(self) -> AddressBook:
        return self._addresses

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @contextmanager
    def _operation(self, name: str) -> Iterator[Tuple[StoreTransaction, List[_Event]]]:
        pending: List[_Event] = []
        try:
            with self._store.transaction() as txn:
                yield txn, pending
        except GatewayError as e:
            logger.warning("%s rejected [%s]: %s", name, e.code.value, e)
            raise
        # The state change is committed; a journal failure must not turn
        # it into a reported error.
        for event_type, payload in pending:
            try:
                self._journal.append(event_type, payload)
            except (OSError, ValueError) as e:
                logger.error(
                    "%s committed but journaling %s failed: %s", name, event_type, e
                )

    def _load_gateway(self, txn: StoreTransaction, chain_id: int) -> Optional[GatewayAccount]:
        record = txn.get(self._addresses.gateway(chain_id))
        return GatewayAccount.from_dict(record) if record else None

    def _require_gateway(self, txn: StoreTransaction, chain_id: int) -> GatewayAccount:
        gateway = self._load_gateway(txn, chain_id)
        if gateway is None:
            raise GatewayNotInitialized(f"Gateway not initialized for chain {chain_id}")
        return gateway

    def _require_authority(
        self, txn: StoreTransaction, ctx: InvocationContext, chain_id: int
    ) -> GatewayAccount:
        gateway = self._require_gateway(txn, chain_id)
        if ctx.caller != gateway.authority:
            raise Unauthorized(
                f"Caller {ctx.caller.hex()} is not the authority of gateway {chain_id}"
            )
        return gateway

    @staticmethod
    def _require_enabled(gateway: GatewayAccount) -> None:
        if not gateway.system_enabled:
            raise SystemDisabled(f"Gateway for chain {gateway.chain_id} is disabled")

    @staticmethod
    def _registry_event(registry: SignerRegistryAccount) -> Dict[str, Any]:
        return {
            "layer": registry.layer.label,
            "chainId": str(registry.chain_id),
            "signers": [s.hex() for s in registry.signers],
            "threshold": registry.threshold,
            "enabled": registry.enabled,
        }

    # ------------------------------------------------------------------
    # Gateway
    # ------------------------------------------------------------------

    def initialize_gateway(self, ctx: InvocationContext, chain_id: int) -> GatewayAccount:
        """Create the gateway for chain_id with the caller as authority."""
        validate_chain_id(chain_id)
        with self._operation("initialize_gateway") as (txn, pending):
            gateway = GatewayAccount(chain_id=chain_id, authority=ctx.caller)
            txn.create(self._addresses.gateway(chain_id), gateway.to_dict())
            pending.append(
                (
                    events.GATEWAY_INITIALIZED,
                    {"chainId": str(chain_id), "authority": ctx.caller.hex()},
                )
            )
        logger.info("Gateway initialized chain=%d authority=%s", chain_id, ctx.caller.hex()[:16])
        return gateway

    def set_system_enabled(
        self, ctx: InvocationContext, chain_id: int, enabled: bool
    ) -> GatewayAccount:
        with self._operation("set_system_enabled") as (txn, pending):
            gateway = self._require_authority(txn, ctx, chain_id)
            gateway.system_enabled = bool(enabled)
            txn.put(self._addresses.gateway(chain_id), gateway.to_dict())
            pending.append(
                (
                    events.SYSTEM_ENABLED_CHANGED,
                    {"chainId": str(chain_id), "enabled": gateway.system_enabled},
                )
            )
        logger.info("Gateway chain=%d system_enabled=%s", chain_id, gateway.system_enabled)
        return gateway

    # ------------------------------------------------------------------
    # Signer registries
    # ------------------------------------------------------------------

    def initialize_registry(
        self,
        ctx: InvocationContext,
        layer: RegistryLayer,
        chain_id: int,
        signers: Sequence[bytes],
        threshold: int,
        *,
        gateway_chain_id: Optional[int] = None,
    ) -> SignerRegistryAccount:
        with self._operation("initialize_registry") as (txn, pending):
            self._require_authority(txn, ctx, gateway_chain_id or chain_id)
            registry = self._registries.initialize(txn, layer, chain_id, signers, threshold)
            pending.append((events.SIGNER_REGISTRY_INITIALIZED, self._registry_event(registry)))
        return registry

    def add_signer(
        self,
        ctx: InvocationContext,
        layer: RegistryLayer,
        chain_id: int,
        signer: bytes,
        *,
        gateway_chain_id: Optional[int] = None,
    ) -> SignerRegistryAccount:
        with self._operation("add_signer") as (txn, pending):
            self._require_authority(txn, ctx, gateway_chain_id or chain_id)
            registry = self._registries.add_signer(txn, layer, chain_id, signer)
            pending.append(
                (
                    events.SIGNER_ADDED,
                    {
                        "layer": registry.layer.label,
                        "chainId": str(chain_id),
                        "signer": bytes(signer).hex(),
                    },
                )
            )
        return registry

    def remove_signer(
        self,
        ctx: InvocationContext,
        layer: RegistryLayer,
        chain_id: int,
        signer: bytes,
        *,
        gateway_chain_id: Optional[int] = None,
    ) -> SignerRegistryAccount:
        with self._operation("remove_signer") as (txn, pending):
            self._require_authority(txn, ctx, gateway_chain_id or chain_id)
            registry = self._registries.remove_signer(txn, layer, chain_id, signer)
            pending.append(
                (
                    events.SIGNER_REMOVED,
                    {
                        "layer": registry.layer.label,
                        "chainId": str(chain_id),
                        "signer": bytes(signer).hex(),
                    },
                )
            )
        return registry

    def update_signers(
        self,
        ctx: InvocationContext,
        layer: RegistryLayer,
        chain_id: int,
        signers: Sequence[bytes],
        threshold: int,
        *,
        gateway_chain_id: Optional[int] = None,
    ) -> SignerRegistryAccount:
        with self._operation("update_signers") as (txn, pending):
            self._require_authority(txn, ctx, gateway_chain_id or chain_id)
            registry = self._registries.update_signers(txn, layer, chain_id, signers, threshold)
            pending.append((events.SIGNERS_UPDATED, self._registry_event(registry)))
        return registry

    def update_threshold(
        self,
        ctx: InvocationContext,
        layer: RegistryLayer,
        chain_id: int,
        threshold: int,
        *,
        gateway_chain_id: Optional[int] = None,
    ) -> SignerRegistryAccount:
        with self._operation("update_threshold") as (txn, pending):
            self._require_authority(txn, ctx, gateway_chain_id or chain_id)
            registry = self._registries.update_threshold(txn, layer, chain_id, threshold)
            pending.append(
                (
                    events.THRESHOLD_UPDATED,
                    {
                        "layer": registry.layer.label,
                        "chainId": str(chain_id),
                        "threshold": threshold,
                    },
                )
            )
        return registry

    def set_registry_enabled(
        self,
        ctx: InvocationContext,
        layer: RegistryLayer,
        chain_id: int,
        enabled: bool,
        *,
        gateway_chain_id: Optional[int] = None,
    ) -> SignerRegistryAccount:
        with self._operation("set_registry_enabled") as (txn, pending):
            self._require_authority(txn, ctx, gateway_chain_id or chain_id)
            registry = self._registries.set_enabled(txn, layer, chain_id, bool(enabled))
            pending.append(
                (
                    events.REGISTRY_ENABLED_CHANGED,
                    {
                        "layer": registry.layer.label,
                        "chainId": str(chain_id),
                        "enabled": registry.enabled,
                    },
                )
            )
        return registry

    # ------------------------------------------------------------------
    # Counter
    # ------------------------------------------------------------------

    def initialize_counter(
        self,
        ctx: InvocationContext,
        source_chain_id: int,
        *,
        gateway_chain_id: Optional[int] = None,
    ) -> CounterAccount:
        """
        Start tracking transaction ids from source_chain_id.

        Phase 1 requires this counter and only accepts tx ids above the
        highest one seen for that source chain.
        """
        with self._operation("initialize_counter") as (txn, pending):
            validate_chain_id(source_chain_id)
            gateway = self._require_authority(txn, ctx, gateway_chain_id or source_chain_id)
            self._require_enabled(gateway)
            counter = CounterAccount(source_chain_id=source_chain_id)
            txn.create(self._addresses.counter(source_chain_id), counter.to_dict())
            pending.append((events.COUNTER_INITIALIZED, {"sourceChainId": str(source_chain_id)}))
        logger.info("Counter initialized source=%d", source_chain_id)
        return counter

    # ------------------------------------------------------------------
    # Two-phase message processing
    # ------------------------------------------------------------------

    def create_record(
        self,
        ctx: InvocationContext,
        message: Message,
        signatures: Sequence[MessageSignature] = (),
    ) -> TxMarker:
        """
        Phase 1: Absent -> Pending for (source_chain_id, tx_id).

        No signature is verified here. Signatures, if supplied, only count
        against the upper bound.
        """
        with self._operation("create_record") as (txn, pending):
            self._require_enabled(self._require_gateway(txn, message.dest_chain_id))
            marker = self._coordinator.create_record(
                txn, message, signatures, relayer=ctx.caller
            )
            pending.append(
                (
                    events.TX_PDA_CREATED,
                    {
                        "txId": str(message.tx_id),
                        "sourceChainId": str(message.source_chain_id),
                        "destChainId": str(message.dest_chain_id),
                        "digest": marker.digest.hex(),
                        "relayer": ctx.caller.hex(),
                    },
                )
            )
        return marker

    def finalize(
        self,
        ctx: InvocationContext,
        message: Message,
        signatures: Sequence[MessageSignature],
    ) -> FinalizeResult:
        """
        Phase 2: Pending -> Absent once every enabled layer is satisfied.

        The host-level signature checks in ctx.instructions run first; a
        failing instruction rejects the whole submission.
        """
        with self._operation("finalize") as (txn, pending):
            verified: VerifiedSignatures = run_signature_checks(ctx.instructions, self._verifier)
            self._require_enabled(self._require_gateway(txn, message.dest_chain_id))
            result = self._coordinator.finalize(txn, message, signatures, verified)
            pending.append(
                (
                    events.MESSAGE_PROCESSED,
                    {
                        "txId": str(message.tx_id),
                        "sourceChainId": str(message.source_chain_id),
                        "destChainId": str(message.dest_chain_id),
                        "digest": result.digest.hex(),
                        "layerCounts": dict(result.layer_counts),
                        "relayer": ctx.caller.hex(),
                    },
                )
            )
        return result

    def send_message(
        self,
        ctx: InvocationContext,
        chain_id: int,
        tx_id: int,
        recipient: bytes,
        dest_chain_id: int,
        chain_data: bytes,
        confirmations: int = 1,
    ) -> Dict[str, Any]:
        """
        Request delivery of an outbound message from chain_id.

        Only records the request; relaying it to dest_chain_id happens off
        this program.
        """
        request = {
            "txId": str(tx_id),
            "sourceChainId": str(chain_id),
            "destChainId": str(dest_chain_id),
            "sender": ctx.caller.hex(),
            "recipient": bytes(recipient).hex(),
            "chainData": bytes(chain_data).hex(),
            "confirmations": int(confirmations),
        }
        with self._operation("send_message") as (txn, pending):
            validate_tx_id(tx_id)
            validate_chain_id(dest_chain_id)
            if len(recipient) > c.MAX_RECIPIENT_SIZE:
                raise RecipientTooLong(f"Recipient exceeds {c.MAX_RECIPIENT_SIZE} bytes")
            if len(chain_data) > c.MAX_ON_CHAIN_DATA_SIZE:
                raise OnChainDataTooLarge(f"Chain data exceeds {c.MAX_ON_CHAIN_DATA_SIZE} bytes")
            self._require_enabled(self._require_gateway(txn, chain_id))
            pending.append((events.SEND_REQUESTED, request))
        logger.info("Send requested tx=%d %d -> %d", tx_id, chain_id, dest_chain_id)
        return request

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_gateway(self, chain_id: int) -> Optional[GatewayAccount]:
        with self._store.transaction() as txn:
            return self._load_gateway(txn, chain_id)

    def get_registry(
        self, layer: RegistryLayer, chain_id: int
    ) -> Optional[SignerRegistryAccount]:
        with self._store.transaction() as txn:
            return self._registries.load(txn, RegistryLayer(layer), chain_id)

    def get_marker(self, source_chain_id: int, tx_id: int) -> Optional[TxMarker]:
        with self._store.transaction() as txn:
            return self._coordinator.load_marker(txn, source_chain_id, tx_id)

    def marker_state(self, source_chain_id: int, tx_id: int) -> MarkerState:
        with self._store.transaction() as txn:
            return self._coordinator.marker_state(txn, source_chain_id, tx_id)

    def get_counter(self, source_chain_id: int) -> Optional[CounterAccount]:
        with self._store.transaction() as txn:
            record = txn.get(self._addresses.counter(source_chain_id))
            return CounterAccount.from_dict(record) if record else None

    def next_tx_id(self, source_chain_id: int) -> int:
        """Next transaction id the counter would accept (1 without a counter)."""
        counter = self.get_counter(source_chain_id)
        return counter.next_tx_id() if counter else 1

    def pending_markers(self) -> List[TxMarker]:
        markers = [TxMarker.from_dict(r) for r in self._store.records(TxMarker.KIND)]
        return sorted(markers, key=lambda m: (m.source_chain_id, m.tx_id))
