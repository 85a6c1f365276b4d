from enum import Enum, IntEnum


class ErrorCode(str, Enum):
    TOO_FEW_SIGNATURES = "too_few_signatures"
    TOO_MANY_SIGNATURES = "too_many_signatures"
    INVALID_SIGNATURE = "invalid_signature"
    UNAUTHORIZED_SIGNER = "unauthorized_signer"
    INSUFFICIENT_LAYER_SIGNATURES = "insufficient_layer_signatures"
    ALREADY_EXISTS = "already_exists"
    RECORD_NOT_FOUND = "record_not_found"
    DIGEST_MISMATCH = "digest_mismatch"
    UNAUTHORIZED = "unauthorized"
    SYSTEM_DISABLED = "system_disabled"

    INVALID_CHAIN_ID = "invalid_chain_id"
    INVALID_TX_ID = "invalid_tx_id"
    SENDER_TOO_LONG = "sender_too_long"
    RECIPIENT_TOO_LONG = "recipient_too_long"
    ON_CHAIN_DATA_TOO_LARGE = "on_chain_data_too_large"
    OFF_CHAIN_DATA_TOO_LARGE = "off_chain_data_too_large"
    TX_ID_TOO_OLD = "tx_id_too_old"
    INVALID_THRESHOLD = "invalid_threshold"
    DUPLICATE_SIGNER = "duplicate_signer"
    SIGNER_NOT_FOUND = "signer_not_found"
    TOO_MANY_SIGNERS = "too_many_signers"
    INVALID_PUBLIC_KEY = "invalid_public_key"
    MANDATORY_LAYER = "mandatory_layer"
    REGISTRY_NOT_INITIALIZED = "registry_not_initialized"
    GATEWAY_NOT_INITIALIZED = "gateway_not_initialized"
    COUNTER_NOT_INITIALIZED = "counter_not_initialized"
    VALIDATION_ERROR = "validation_error"
    INTERNAL_ERROR = "internal_error"


class RegistryLayer(IntEnum):
    """
    Security layer of a signer registry.

    The integer values are part of the storage-address derivation and
    must never be renumbered.
    """

    VIA = 0
    CHAIN = 1
    PROJECT = 2

    @property
    def discriminant(self) -> int:
        return int(self.value)

    @property
    def label(self) -> str:
        return self.name.lower()

    @property
    def is_mandatory(self) -> bool:
        return self is not RegistryLayer.PROJECT

    @classmethod
    def from_name(cls, name: str) -> "RegistryLayer":
        try:
            return cls[name.strip().upper()]
        except KeyError:
            raise ValueError(f"Invalid registry type: {name}") from None


class MarkerState(str, Enum):
    """Replay marker lifecycle for a (source chain, tx id) key."""

    ABSENT = "absent"
    PENDING = "pending"
