"""
Journal event types emitted by the gateway program.
"""

GATEWAY_INITIALIZED = "GatewayInitialized"
SYSTEM_ENABLED_CHANGED = "SystemEnabledChanged"

SIGNER_REGISTRY_INITIALIZED = "SignerRegistryInitialized"
SIGNER_ADDED = "SignerAdded"
SIGNER_REMOVED = "SignerRemoved"
SIGNERS_UPDATED = "SignersUpdated"
THRESHOLD_UPDATED = "ThresholdUpdated"
REGISTRY_ENABLED_CHANGED = "RegistryEnabledChanged"

COUNTER_INITIALIZED = "CounterInitialized"

TX_PDA_CREATED = "TxPdaCreated"
MESSAGE_PROCESSED = "MessageProcessed"
SEND_REQUESTED = "SendRequested"

ALL_EVENTS = (
    GATEWAY_INITIALIZED,
    SYSTEM_ENABLED_CHANGED,
    SIGNER_REGISTRY_INITIALIZED,
    SIGNER_ADDED,
    SIGNER_REMOVED,
    SIGNERS_UPDATED,
    THRESHOLD_UPDATED,
    REGISTRY_ENABLED_CHANGED,
    COUNTER_INITIALIZED,
    TX_PDA_CREATED,
    MESSAGE_PROCESSED,
    SEND_REQUESTED,
)
