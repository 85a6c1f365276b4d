"""
Shared fixtures for crossgate tests.
"""

import pytest

from crossgate.client.admin import GatewayAdmin
from crossgate.client.relayer import RelayerClient
from crossgate.crypto.signing import MessageSigner
from crossgate.gateway.context import InvocationContext
from crossgate.gateway.program import MessageGatewayProgram
from crossgate.protocol.constants import AVALANCHE_CHAIN_ID, SOLANA_CHAIN_ID
from crossgate.protocol.models import Message

SOURCE = AVALANCHE_CHAIN_ID
DEST = SOLANA_CHAIN_ID
RECIPIENT = bytes(range(32))


def make_message(tx_id=1, on_chain_data=b"hello", **overrides):
    fields = dict(
        tx_id=tx_id,
        source_chain_id=SOURCE,
        dest_chain_id=DEST,
        sender=b"avax",
        recipient=RECIPIENT,
        on_chain_data=on_chain_data,
        off_chain_data=b"",
    )
    fields.update(overrides)
    return Message(**fields)


@pytest.fixture
def message():
    return make_message()


@pytest.fixture
def authority():
    return MessageSigner.generate()


@pytest.fixture
def authority_ctx(authority):
    return InvocationContext.of(authority.public_key_bytes)


@pytest.fixture
def via_signer():
    return MessageSigner.generate()


@pytest.fixture
def chain_signer():
    return MessageSigner.generate()


@pytest.fixture
def program():
    return MessageGatewayProgram()


@pytest.fixture
def admin(program, authority):
    return GatewayAdmin(program, authority)


@pytest.fixture
def configured(program, admin, via_signer, chain_signer):
    """Destination gateway with one Via and one Chain signer, Project disabled."""
    admin.setup(
        DEST,
        SOURCE,
        via_signers=[via_signer.public_key_bytes],
        chain_signers=[chain_signer.public_key_bytes],
    )
    return program


@pytest.fixture
def relayer(configured):
    return RelayerClient(configured, MessageSigner.generate())
