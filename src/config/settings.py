# src/config/settings.py — v1
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for operator credentials, chain endpoints,
refinement service location and batch bounds.
"""

from __future__ import annotations

import re
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_REFINEMENT_SERVICE_URL = (
    "https://a7df0ae43df690b889c1201546d7058ceb04d21b-8000.dstack-prod5.phala.network"
)


class ConfigurationError(Exception):
    """Raised when required configuration is missing or malformed."""


def parse_size(size: str | int) -> int:
    """Parse a size like '10MB' (or a plain byte count) into bytes.

    Supported suffixes: KB, MB, GB (case-insensitive).
    """
    if isinstance(size, int):
        return size
    text = size.strip()
    if text.isdigit():
        return int(text)
    match = re.match(r"^(\d+)\s*(KB|MB|GB)$", text, re.IGNORECASE)
    if not match:
        raise ValueError(f"Invalid size format: {size!r}. Use e.g. '10MB'.")
    value = int(match.group(1))
    unit = match.group(2).upper()
    multipliers = {"KB": 1024, "MB": 1024**2, "GB": 1024**3}
    return value * multipliers[unit]


class Settings(BaseSettings):
    """Application settings loaded from environment and .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === Operator (DLP) identity ===
    dlp_private_key: str = ""
    dlp_address: str = ""

    # === Chain ===
    rpc_url: str = "https://rpc.moksha.vana.org"
    chain_id: int = 14800
    data_registry_address: str = ""
    index_resolver_signature: str = "entryAt(uint256)"

    # === Refinement service ===
    refinement_service_api_base_url: str = DEFAULT_REFINEMENT_SERVICE_URL
    refiner_id: int = 7

    # === Batch processing ===
    max_file_id: int = 1000
    batch_size: int = 10

    # === Logging ===
    verbose: bool = False
    log_dir: Path = Path("output")
    max_log_size: int = 10 * 1024 * 1024

    # === Pinata (IPFS) credentials forwarded to the refiner ===
    pinata_api_key: str = ""
    pinata_api_secret: str = ""

    # --- Validators ---

    @field_validator("batch_size")
    @classmethod
    def validate_batch_size(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("batch_size must be > 0")
        return v

    @field_validator("max_file_id")
    @classmethod
    def validate_max_file_id(cls, v: int) -> int:
        if v < 0:
            raise ValueError("max_file_id must be >= 0")
        return v

    @field_validator("max_log_size", mode="before")
    @classmethod
    def validate_max_log_size(cls, v: str | int) -> int:
        size = parse_size(v)
        if size <= 0:
            raise ValueError("max_log_size must be > 0")
        return size

    @field_validator("refinement_service_api_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    def validate_required(self) -> None:
        """Check the values a run cannot start without.

        Raises:
            ConfigurationError: Listing every missing or malformed value.
        """
        errors: list[str] = []

        if not self.dlp_private_key or not self.dlp_address:
            errors.append("DLP_PRIVATE_KEY and DLP_ADDRESS environment variables must be set")
        elif not _is_hex_key(self.dlp_private_key):
            errors.append("DLP_PRIVATE_KEY must be a 32-byte hex string")

        if not self.data_registry_address:
            errors.append("DATA_REGISTRY_ADDRESS environment variable must be set")

        if errors:
            raise ConfigurationError("; ".join(errors))

    # --- Helpers ---

    @property
    def private_key_bytes(self) -> bytes:
        """Operator private key as raw bytes (accepts a 0x prefix)."""
        return bytes.fromhex(_strip_0x(self.dlp_private_key))

    @property
    def storage_credentials(self) -> dict[str, str]:
        """Credentials forwarded to the refiner as env_vars."""
        return {
            "PINATA_API_KEY": self.pinata_api_key,
            "PINATA_API_SECRET": self.pinata_api_secret,
        }


def _strip_0x(value: str) -> str:
    return value[2:] if value[:2].lower() == "0x" else value


def _is_hex_key(value: str) -> bool:
    return re.fullmatch(r"[0-9a-fA-F]{64}", _strip_0x(value)) is not None


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or CLI flags).

    Returns:
        Settings instance. Required values are checked separately by
        ``Settings.validate_required``.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
