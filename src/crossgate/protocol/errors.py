from typing import Optional

from .enums import ErrorCode, RegistryLayer


class GatewayError(Exception):
    """Base error for every rejected gateway operation."""

    default_code = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str, code: Optional[ErrorCode] = None):
        super().__init__(message)
        self.code = code or self.default_code


# ---------------------------------------------------------------------------
# Signature set
# ---------------------------------------------------------------------------


class TooFewSignatures(GatewayError):
    default_code = ErrorCode.TOO_FEW_SIGNATURES


class TooManySignatures(GatewayError):
    default_code = ErrorCode.TOO_MANY_SIGNATURES


class InvalidSignature(GatewayError):
    """Raised when a claimed signature fails cryptographic verification."""

    default_code = ErrorCode.INVALID_SIGNATURE


class UnauthorizedSigner(GatewayError):
    """Raised when a signer key is not present in any consulted registry."""

    default_code = ErrorCode.UNAUTHORIZED_SIGNER


class InsufficientLayerSignatures(GatewayError):
    """Raised when a layer's valid, authorized signature count is below its threshold."""

    default_code = ErrorCode.INSUFFICIENT_LAYER_SIGNATURES

    def __init__(self, layer: RegistryLayer, valid: int, threshold: int):
        self.layer = layer
        self.valid = valid
        self.threshold = threshold
        super().__init__(
            f"Insufficient {layer.label} signatures: {valid} valid, {threshold} required"
        )


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


class AlreadyExists(GatewayError):
    default_code = ErrorCode.ALREADY_EXISTS


class RecordNotFound(GatewayError):
    default_code = ErrorCode.RECORD_NOT_FOUND


class DigestMismatch(GatewayError):
    default_code = ErrorCode.DIGEST_MISMATCH


class TxIdTooOld(GatewayError):
    default_code = ErrorCode.TX_ID_TOO_OLD


class RegistryNotInitialized(GatewayError):
    default_code = ErrorCode.REGISTRY_NOT_INITIALIZED


class GatewayNotInitialized(GatewayError):
    default_code = ErrorCode.GATEWAY_NOT_INITIALIZED


class CounterNotInitialized(GatewayError):
    default_code = ErrorCode.COUNTER_NOT_INITIALIZED


# ---------------------------------------------------------------------------
# Authority
# ---------------------------------------------------------------------------


class Unauthorized(GatewayError):
    default_code = ErrorCode.UNAUTHORIZED


class SystemDisabled(GatewayError):
    default_code = ErrorCode.SYSTEM_DISABLED


# ---------------------------------------------------------------------------
# Input validation
# ---------------------------------------------------------------------------


class ValidationError(GatewayError):
    """Raised when operation input fails validation."""

    default_code = ErrorCode.VALIDATION_ERROR


class InvalidChainId(ValidationError):
    default_code = ErrorCode.INVALID_CHAIN_ID


class InvalidTxId(ValidationError):
    default_code = ErrorCode.INVALID_TX_ID


class SenderTooLong(ValidationError):
    default_code = ErrorCode.SENDER_TOO_LONG


class RecipientTooLong(ValidationError):
    default_code = ErrorCode.RECIPIENT_TOO_LONG


class OnChainDataTooLarge(ValidationError):
    default_code = ErrorCode.ON_CHAIN_DATA_TOO_LARGE


class OffChainDataTooLarge(ValidationError):
    default_code = ErrorCode.OFF_CHAIN_DATA_TOO_LARGE


class InvalidPublicKey(ValidationError):
    default_code = ErrorCode.INVALID_PUBLIC_KEY


class InvalidThreshold(ValidationError):
    default_code = ErrorCode.INVALID_THRESHOLD


class DuplicateSigner(ValidationError):
    default_code = ErrorCode.DUPLICATE_SIGNER


class SignerNotFound(ValidationError):
    default_code = ErrorCode.SIGNER_NOT_FOUND


class TooManySigners(ValidationError):
    default_code = ErrorCode.TOO_MANY_SIGNERS


class MandatoryLayer(ValidationError):
    """Raised when a Via or Chain registry would be disabled."""

    default_code = ErrorCode.MANDATORY_LAYER
