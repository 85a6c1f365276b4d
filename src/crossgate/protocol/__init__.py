from .enums import ErrorCode, MarkerState, RegistryLayer
from .models import Message, MessageKey, MessageSignature
from .validators import GatewayLimits

__all__ = [
    "ErrorCode",
    "MarkerState",
    "RegistryLayer",
    "Message",
    "MessageKey",
    "MessageSignature",
    "GatewayLimits",
]
