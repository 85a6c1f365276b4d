"""
Persistent state: record types, addressing, atomic storage and the
event journal.
"""

from .accounts import (
    CounterAccount,
    GatewayAccount,
    SignerRegistryAccount,
    TxMarker,
    account_from_dict,
)
from .addresses import AddressBook, derive_address
from .journal import EventJournal
from .store import AccountStore, FileAccountStore, InMemoryAccountStore, StoreTransaction

__all__ = [
    "CounterAccount",
    "GatewayAccount",
    "SignerRegistryAccount",
    "TxMarker",
    "account_from_dict",
    "AddressBook",
    "derive_address",
    "EventJournal",
    "AccountStore",
    "FileAccountStore",
    "InMemoryAccountStore",
    "StoreTransaction",
]
