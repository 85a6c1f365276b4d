from .gateway.program import MessageGatewayProgram
from .gateway.context import InvocationContext
from .gateway.coordinator import FinalizeResult
from .client.relayer import RelayerClient, DeliveryReceipt
from .client.admin import GatewayAdmin
from .crypto.hashing import hash_message, create_message_hash, keccak256
from .crypto.signing import MessageSigner, SignatureVerifier
from .crypto.precheck import Ed25519Instruction
from .protocol import Message, MessageSignature, RegistryLayer, MarkerState, GatewayLimits
from .protocol.errors import GatewayError

__version__ = "0.1.0"

__all__ = [
    "MessageGatewayProgram",
    "InvocationContext",
    "FinalizeResult",
    "RelayerClient",
    "DeliveryReceipt",
    "GatewayAdmin",
    "hash_message",
    "create_message_hash",
    "keccak256",
    "MessageSigner",
    "SignatureVerifier",
    "Ed25519Instruction",
    "Message",
    "MessageSignature",
    "RegistryLayer",
    "MarkerState",
    "GatewayLimits",
    "GatewayError",
]
