"""
Deterministic record addresses.

Each persistent record lives at an address derived from a fixed seed
prefix plus its key fields, little-endian:

    gateway          b"gateway"         + chain_id (8)
    signer_registry  b"signer_registry" + layer discriminant (1) + chain_id (8)
    tx               b"tx"              + source_chain_id (8) + tx_id (16)
    counter          b"counter"         + source_chain_id (8)

The seeds and their order are part of the compatibility surface.
"""

from __future__ import annotations

import hashlib
from typing import List

from crossgate.protocol import constants as c
from crossgate.protocol.enums import RegistryLayer
from crossgate.protocol.validators import validate_chain_id, validate_tx_id

DEFAULT_PROGRAM_ID = b"crossgate.message_gateway.v1"


def _u64(value: int) -> bytes:
    return value.to_bytes(c.CHAIN_ID_BYTES, "little")


def _u128(value: int) -> bytes:
    return value.to_bytes(c.TX_ID_BYTES, "little")


def gateway_seeds(chain_id: int) -> List[bytes]:
    validate_chain_id(chain_id)
    return [c.GATEWAY_SEED, _u64(chain_id)]


def signer_registry_seeds(layer: RegistryLayer, chain_id: int) -> List[bytes]:
    validate_chain_id(chain_id)
    return [c.SIGNER_REGISTRY_SEED, bytes([RegistryLayer(layer).discriminant]), _u64(chain_id)]


def tx_seeds(source_chain_id: int, tx_id: int) -> List[bytes]:
    validate_chain_id(source_chain_id)
    validate_tx_id(tx_id)
    return [c.TX_SEED, _u64(source_chain_id), _u128(tx_id)]


def counter_seeds(source_chain_id: int) -> List[bytes]:
    validate_chain_id(source_chain_id)
    return [c.COUNTER_SEED, _u64(source_chain_id)]


def derive_address(seeds: List[bytes], program_id: bytes = DEFAULT_PROGRAM_ID) -> str:
    """
    Hex address for a seed list.

    Each seed is length-prefixed so that adjacent seeds cannot be
    re-split into a different list with the same concatenation.
    """
    h = hashlib.sha256()
    h.update(len(program_id).to_bytes(1, "little"))
    h.update(program_id)
    for seed in seeds:
        h.update(len(seed).to_bytes(1, "little"))
        h.update(seed)
    return h.hexdigest()


class AddressBook:
    """Address derivation bound to one program id."""

    def __init__(self, program_id: bytes = DEFAULT_PROGRAM_ID) -> None:
        self._program_id = program_id

    @property
    def program_id(self) -> bytes:
        return self._program_id

    def gateway(self, chain_id: int) -> str:
        return derive_address(gateway_seeds(chain_id), self._program_id)

    def signer_registry(self, layer: RegistryLayer, chain_id: int) -> str:
        return derive_address(signer_registry_seeds(layer, chain_id), self._program_id)

    def tx(self, source_chain_id: int, tx_id: int) -> str:
        return derive_address(tx_seeds(source_chain_id, tx_id), self._program_id)

    def counter(self, source_chain_id: int) -> str:
        return derive_address(counter_seeds(source_chain_id), self._program_id)
