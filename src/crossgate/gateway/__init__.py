"""
Cross-chain message gateway.

Accepts a message from a source chain exactly once, and only when it
carries enough valid Ed25519 signatures from each signer layer:

    Relayer → create_record (Phase 1) → finalize (Phase 2) → MessageProcessed

Phase 1 reserves the (source_chain_id, tx_id) marker at minimal cost.
Phase 2 recomputes the digest, verifies signatures against the Via, Chain
and Project registries, and releases the marker.
"""

from . import events
from .context import InvocationContext
from .coordinator import FinalizeResult, TwoPhaseCoordinator
from .program import MessageGatewayProgram
from .registry import SignerRegistryService

__all__ = [
    "events",
    "InvocationContext",
    "FinalizeResult",
    "TwoPhaseCoordinator",
    "MessageGatewayProgram",
    "SignerRegistryService",
]
