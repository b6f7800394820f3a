"""StoreSettings: environment-driven configuration for a PasteStore."""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

BackendKind = Literal["memory", "file", "mmap"]

MIB = 1 << 20
GIB = 1 << 30


class StoreSettings(BaseSettings):
    """Paste store settings, configurable via ``PASTESTORE_*`` environment variables.

    Limits of 0 mean unbounded; a zero lifetime disables expiration.
    """

    model_config = SettingsConfigDict(env_prefix="PASTESTORE_", env_file=".env", extra="ignore")

    backend: BackendKind = "file"
    storage_root: Path = Path("pastes")
    lifetime: timedelta = timedelta(hours=24)
    max_count: int = Field(default=0, ge=0)
    max_bytes: int = Field(default=GIB, ge=0)
    max_paste_bytes: int = Field(default=MIB, ge=0)

    @field_validator("lifetime")
    @classmethod
    def _non_negative_lifetime(cls, value: timedelta) -> timedelta:
        if value < timedelta(0):
            msg = "lifetime must be >= 0."
            raise ValueError(msg)
        return value
