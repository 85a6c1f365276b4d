"""
Protocol constants.

Field widths, size limits and storage seeds below are part of the
cross-chain compatibility surface. Changing any of them is a breaking
protocol change and requires a new MESSAGE_HASH_VERSION.
"""

# Message hash layout version
MESSAGE_HASH_VERSION = 1

# Encoded field widths
TX_ID_BYTES = 16
CHAIN_ID_BYTES = 8
LENGTH_PREFIX_BYTES = 4

# Integer bounds
U64_MAX = (1 << 64) - 1
U128_MAX = (1 << 128) - 1
U32_MAX = (1 << 32) - 1

# Message field limits (DoS protection)
MAX_SENDER_SIZE = 64
MAX_RECIPIENT_SIZE = 64
MAX_ON_CHAIN_DATA_SIZE = 1024
MAX_OFF_CHAIN_DATA_SIZE = 4096

# Signature set bounds
MIN_SIGNATURES_REQUIRED = 1
MAX_SIGNATURES_PER_MESSAGE = 32
MAX_SIGNERS_PER_REGISTRY = 16

# Ed25519 / digest sizes
SIGNATURE_LENGTH = 64
PUBLIC_KEY_LENGTH = 32
DIGEST_LENGTH = 32

# Storage seeds
GATEWAY_SEED = b"gateway"
SIGNER_REGISTRY_SEED = b"signer_registry"
TX_SEED = b"tx"
COUNTER_SEED = b"counter"

# Well-known chain ids
SOLANA_CHAIN_ID = 9999999999999999999
AVALANCHE_CHAIN_ID = 43113
