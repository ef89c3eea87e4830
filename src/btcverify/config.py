"""Verifier settings via pydantic-settings."""

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

NETWORKS = ("mainnet", "testnet", "signet", "regtest")


class Settings(BaseSettings):
    """Verifier configuration loaded from environment variables with BTCVERIFY_ prefix."""

    model_config = SettingsConfigDict(
        env_prefix="BTCVERIFY_",
        env_file=".env",
        case_sensitive=False,
    )

    # --- Logging ---
    log_level: str = "INFO"
    log_format: str = "json"

    # --- Addresses ---
    # None accepts addresses from every known network
    network: str | None = None

    # --- Strategies ---
    loose_bip137_enabled: bool = True
    header_recovery_only: bool = True

    @field_validator("network")
    @classmethod
    def check_network(cls, v: str | None) -> str | None:
        """Reject network names the address codec does not know about."""
        if v is None:
            return v
        v = v.lower()
        if v not in NETWORKS:
            msg = f"Unknown network {v!r}, expected one of {', '.join(NETWORKS)}"
            raise ValueError(msg)
        return v


@lru_cache
def get_settings() -> Settings:
    """Get cached verifier settings."""
    return Settings()
