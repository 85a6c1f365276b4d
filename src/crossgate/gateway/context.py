from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence, Tuple

from crossgate.crypto.precheck import Ed25519Instruction


@dataclass(frozen=True)
class InvocationContext:
    """
    Who submitted an operation, and which host-level signature checks
    were submitted alongside it.
    """

    caller: bytes
    instructions: Tuple[Ed25519Instruction, ...] = field(default_factory=tuple)

    @classmethod
    def of(
        cls, caller: bytes, instructions: Sequence[Ed25519Instruction] = ()
    ) -> "InvocationContext":
        return cls(caller=bytes(caller), instructions=tuple(instructions))
