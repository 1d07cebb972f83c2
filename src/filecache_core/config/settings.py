"""Application settings using pydantic-settings."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from filecache_core.constants import (
    DEFAULT_READ_CHUNK_SIZE,
    DEFAULT_SIGNATURE,
    DEFAULT_STALE_TEMP_SECONDS,
    DEFAULT_SWEEP_INTERVAL_SECONDS,
)


class CacheSettings(BaseSettings):
    """Central configuration for filecache."""

    model_config = SettingsConfigDict(env_prefix="FILECACHE_", env_file=".env")

    # --- Storage ---
    cache_dir: Path = Field(
        default=Path("./.cache/filecache"),
        description="Directory holding one file per cache key",
    )
    signature: str = Field(
        default=DEFAULT_SIGNATURE.decode("ascii"),
        description="Magic prefix written to every record; empty disables the check",
    )
    read_chunk_size: int = Field(
        default=DEFAULT_READ_CHUNK_SIZE,
        gt=0,
        description="Bytes read per chunk when streaming or buffering a payload",
    )

    # --- Sweeper ---
    sweep_interval_seconds: float = Field(
        default=DEFAULT_SWEEP_INTERVAL_SECONDS,
        gt=0,
        description="Seconds between background sweeps of the cache directory",
    )
    stale_temp_seconds: float = Field(
        default=DEFAULT_STALE_TEMP_SECONDS,
        ge=0,
        description="Age after which an orphaned temp file is removed by the sweep",
    )

    # --- Logging ---
    log_level: str = Field(
        default="INFO",
        description="Root log level",
    )
    log_format: Literal["console", "json"] = Field(
        default="console",
        description="Log renderer: 'console' for humans, 'json' for aggregation",
    )

    @field_validator("signature")
    @classmethod
    def validate_signature(cls, value: str) -> str:
        """Require an ASCII signature so its byte length is stable."""
        if not value.isascii():
            msg = "signature must be ASCII"
            raise ValueError(msg)
        return value

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, value: str) -> str:
        """Upper-case the level name."""
        return value.upper()

    @property
    def signature_bytes(self) -> bytes:
        """Signature as written to disk."""
        return self.signature.encode("ascii")
