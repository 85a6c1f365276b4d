from .settings import (
    CrossgateSettings,
    LimitSettings,
    RuntimeSettings,
    StoreSettings,
    get_settings,
)

__all__ = [
    "CrossgateSettings",
    "LimitSettings",
    "RuntimeSettings",
    "StoreSettings",
    "get_settings",
]
