"""
Idempotent gateway setup.

The core always reports an existing record as AlreadyExists. Setup flows
treat that as success so a deployment can be re-run after a partial
failure; each absorbed conflict is logged.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional, Sequence

from crossgate.crypto.signing import MessageSigner
from crossgate.gateway.context import InvocationContext
from crossgate.gateway.program import MessageGatewayProgram
from crossgate.protocol.enums import RegistryLayer
from crossgate.protocol.errors import AlreadyExists
from crossgate.state.accounts import CounterAccount, GatewayAccount, SignerRegistryAccount

logger = logging.getLogger(__name__)


class GatewayAdmin:
    """
    Authority-side tooling.

    Usage:
        admin = GatewayAdmin(program, MessageSigner.from_keypair_file(path))
        admin.setup(dest_chain_id=SOLANA_CHAIN_ID, source_chain_id=AVALANCHE_CHAIN_ID)
    """

    def __init__(self, program: MessageGatewayProgram, authority_key: MessageSigner) -> None:
        self._program = program
        self._authority_key = authority_key

    @property
    def authority(self) -> bytes:
        return self._authority_key.public_key_bytes

    def _ctx(self) -> InvocationContext:
        return InvocationContext.of(self.authority)

    def ensure_gateway(self, chain_id: int) -> GatewayAccount:
        try:
            return self._program.initialize_gateway(self._ctx(), chain_id)
        except AlreadyExists:
            logger.warning("Gateway for chain %d already exists", chain_id)
            return self._program.get_gateway(chain_id)

    def ensure_registry(
        self,
        layer: RegistryLayer,
        chain_id: int,
        signers: Sequence[bytes],
        threshold: int,
        *,
        gateway_chain_id: Optional[int] = None,
    ) -> SignerRegistryAccount:
        try:
            return self._program.initialize_registry(
                self._ctx(),
                layer,
                chain_id,
                signers,
                threshold,
                gateway_chain_id=gateway_chain_id,
            )
        except AlreadyExists:
            logger.warning(
                "%s registry for chain %d already exists", RegistryLayer(layer).label, chain_id
            )
            return self._program.get_registry(layer, chain_id)

    def ensure_counter(
        self, source_chain_id: int, *, gateway_chain_id: Optional[int] = None
    ) -> CounterAccount:
        try:
            return self._program.initialize_counter(
                self._ctx(), source_chain_id, gateway_chain_id=gateway_chain_id
            )
        except AlreadyExists:
            logger.warning("Counter for source chain %d already exists", source_chain_id)
            return self._program.get_counter(source_chain_id)

    def setup(
        self,
        dest_chain_id: int,
        source_chain_id: int,
        *,
        via_signers: Optional[Sequence[bytes]] = None,
        chain_signers: Optional[Sequence[bytes]] = None,
        project_signers: Sequence[bytes] = (),
        via_threshold: int = 1,
        chain_threshold: int = 1,
        project_threshold: int = 0,
    ) -> Dict[str, object]:
        """
        Prepare dest_chain_id to accept messages from source_chain_id.

        Via and Project registries live on the destination chain, the Chain
        registry on the source chain; all are governed by the destination
        gateway, as is the source chain counter Phase 1 requires. Signer
        sets default to the authority key alone.
        """
        gateway = self.ensure_gateway(dest_chain_id)
        via = self.ensure_registry(
            RegistryLayer.VIA,
            dest_chain_id,
            via_signers if via_signers is not None else [self.authority],
            via_threshold,
        )
        chain = self.ensure_registry(
            RegistryLayer.CHAIN,
            source_chain_id,
            chain_signers if chain_signers is not None else [self.authority],
            chain_threshold,
            gateway_chain_id=dest_chain_id,
        )
        project = self.ensure_registry(
            RegistryLayer.PROJECT,
            dest_chain_id,
            project_signers,
            project_threshold,
        )
        report: Dict[str, object] = {
            "gateway": gateway,
            "via": via,
            "chain": chain,
            "project": project,
            "counter": self.ensure_counter(source_chain_id, gateway_chain_id=dest_chain_id),
        }
        logger.info("Setup complete dest=%d source=%d", dest_chain_id, source_chain_id)
        return report
