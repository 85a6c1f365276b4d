"""
Central configuration for crossgate.

This module provides a single, typed configuration object that reads from
environment variables (12-factor style) using pydantic-settings.

Usage:

    from crossgate.core.settings import get_settings

    settings = get_settings()
    if settings.store.backend == "file":
        ...
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from crossgate.protocol import constants as c


class StoreSettings(BaseSettings):
    backend: str = Field(
        default="memory",
        validation_alias="CROSSGATE_STORE_BACKEND",
        description="Record store backend: 'memory' or 'file'.",
    )
    dir: str = Field(
        default=".crossgate",
        validation_alias="CROSSGATE_STORE_DIR",
        description="Root directory of the file store.",
    )
    sync: bool = Field(
        default=True,
        validation_alias="CROSSGATE_STORE_SYNC",
        description="fsync record and journal writes.",
    )

    @field_validator("backend")
    @classmethod
    def _normalize_backend(cls, v: str) -> str:
        v = (v or "memory").lower()
        if v not in ("memory", "file"):
            raise ValueError("CROSSGATE_STORE_BACKEND must be 'memory' or 'file'")
        return v

    model_config = SettingsConfigDict(populate_by_name=True)


class LimitSettings(BaseSettings):
    """
    Signature-set and registry size bounds.
    """

    min_signatures: int = Field(
        default=c.MIN_SIGNATURES_REQUIRED,
        validation_alias="CROSSGATE_MIN_SIGNATURES",
        description="Fewest signatures a finalize may carry.",
    )
    max_signatures: int = Field(
        default=c.MAX_SIGNATURES_PER_MESSAGE,
        validation_alias="CROSSGATE_MAX_SIGNATURES",
        description="Most signatures a message may carry.",
    )
    max_signers: int = Field(
        default=c.MAX_SIGNERS_PER_REGISTRY,
        validation_alias="CROSSGATE_MAX_SIGNERS",
        description="Most signers a single registry may hold.",
    )

    @model_validator(mode="after")
    def _check_bounds(self) -> "LimitSettings":
        if self.min_signatures < 1:
            raise ValueError("CROSSGATE_MIN_SIGNATURES must be at least 1")
        if self.max_signatures < self.min_signatures:
            raise ValueError("CROSSGATE_MAX_SIGNATURES must be >= CROSSGATE_MIN_SIGNATURES")
        if self.max_signers < 1:
            raise ValueError("CROSSGATE_MAX_SIGNERS must be at least 1")
        return self

    model_config = SettingsConfigDict(populate_by_name=True)


class RuntimeSettings(BaseSettings):
    log_level: str = Field(
        default="INFO",
        validation_alias="CROSSGATE_LOG_LEVEL",
        description="Root log level (DEBUG/INFO/WARNING/ERROR).",
    )
    journal_path: Optional[str] = Field(
        default=None,
        validation_alias="CROSSGATE_JOURNAL_PATH",
        description="Event journal file; in-memory when unset.",
    )
    require_signature_precheck: bool = Field(
        default=True,
        validation_alias="CROSSGATE_REQUIRE_SIGNATURE_PRECHECK",
        description="Require a host-level check instruction for every signature.",
    )
    program_id: str = Field(
        default="crossgate.message_gateway.v1",
        validation_alias="CROSSGATE_PROGRAM_ID",
        description="Program id mixed into every record address.",
    )

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, v: str) -> str:
        v = (v or "INFO").upper()
        if v == "WARN":
            return "WARNING"
        return v

    model_config = SettingsConfigDict(populate_by_name=True)


class CrossgateSettings(BaseSettings):
    """
    Root configuration object for crossgate.

    Aggregates:
      - Store
      - Limits
      - Runtime
    """

    store: StoreSettings = Field(default_factory=StoreSettings)
    limits: LimitSettings = Field(default_factory=LimitSettings)
    runtime: RuntimeSettings = Field(default_factory=RuntimeSettings)

    model_config = SettingsConfigDict(env_prefix="CROSSGATE_SETTINGS_")


@lru_cache(maxsize=1)
def get_settings() -> CrossgateSettings:
    """
    Cached accessor for CrossgateSettings.

    Usage:
        from crossgate.core.settings import get_settings
        settings = get_settings()
    """
    return CrossgateSettings()
