"""
Configuration loader for tvm-deploy.

- Reads environment variables (optionally from `.env`) via pydantic-settings.
- Exposes a cached `get_settings()` accessor and helpers that turn settings
  into the named deploy constants used by the core.

Environment variables:
    ENDPOINT            (str, default testnet)   : network endpoint (GraphQL at <ENDPOINT>/graphql)
    WALLET_KEYS         (path, optional)         : key file of the funding wallet/giver
    WALLET_ADDRESS      (str, optional)          : address of the funding wallet/giver
    CONTRACT_CODE       (path, optional)         : code image (.tvc) of the contract to deploy
    FUNDING_AMOUNT      (int, default 1e9)       : nanotokens sent to the future address
    POLL_ATTEMPTS       (int, default 30)        : funding observations before giving up
    POLL_INTERVAL_S     (float, default 2.0)     : sleep between funding observations
    WORKCHAIN_ID        (int, default 0)
    UNSIGNED_CALLS      ("allow"|"reject")       : policy for calls on keyless contracts
    REQUEST_TIMEOUT_S   (float, default 30.0)    : HTTP timeout for GraphQL requests
    LOG_LEVEL           (str, default "WARNING")
    LOG_FORMAT          ("console"|"json")

Notes
-----
- GIVER_KEYS / GIVER_ADDRESS are accepted as aliases of WALLET_KEYS /
  WALLET_ADDRESS for older setups.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any, Literal, Optional

from pydantic import AliasChoices, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .contracts.client import UnsignedCallPolicy
from .contracts.deployer import DeployPolicy
from .errors import ConfigError

DEFAULT_ENDPOINT = "https://ackinacki-testnet.tvmlabs.dev"
_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class Settings(BaseSettings):
    # Network
    endpoint: str = Field(DEFAULT_ENDPOINT, description="Network endpoint URL")
    request_timeout_s: float = Field(30.0, gt=0)

    # Funding wallet
    wallet_keys: Optional[Path] = Field(
        None, validation_alias=AliasChoices("wallet_keys", "giver_keys")
    )
    wallet_address: Optional[str] = Field(
        None, validation_alias=AliasChoices("wallet_address", "giver_address")
    )

    # Contract under deployment
    contract_code: Optional[Path] = None

    # Deploy tuning
    funding_amount: int = Field(1_000_000_000, gt=0)
    poll_attempts: int = Field(30, ge=1)
    poll_interval_s: float = Field(2.0, ge=0)
    workchain_id: int = 0
    unsigned_calls: Literal["allow", "reject"] = "allow"

    # Logging
    log_level: str = "WARNING"
    log_format: Literal["console", "json"] = "console"

    model_config = SettingsConfigDict(
        env_prefix="", env_file=".env", case_sensitive=False, extra="ignore",
        populate_by_name=True,
    )

    @field_validator("endpoint")
    @classmethod
    def _check_endpoint(cls, v: str) -> str:
        v = v.strip().rstrip("/")
        if not v.lower().startswith(("http://", "https://")):
            raise ValueError(f"endpoint must start with http:// or https://, got: {v!r}")
        return v

    @field_validator("unsigned_calls", "log_format", mode="before")
    @classmethod
    def _lower(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("log_level", mode="before")
    @classmethod
    def _check_level(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.strip().upper()
            if v not in _LOG_LEVELS:
                raise ValueError(f"log_level must be one of {', '.join(_LOG_LEVELS)}, got: {v!r}")
        return v

    # ------------------------------------------------------------------ helpers

    def require(self, name: str) -> Any:
        """
        Return a setting that the current command cannot run without.
        Raises ConfigError naming the environment variable when it is unset.
        """
        value = getattr(self, name)
        if value is None or value == "":
            raise ConfigError(f"{name.upper()} is not set", setting=name.upper())
        return value

    def deploy_policy(self) -> DeployPolicy:
        return DeployPolicy(
            funding_amount=self.funding_amount,
            poll_attempts=self.poll_attempts,
            poll_interval_s=self.poll_interval_s,
            workchain_id=self.workchain_id,
        )

    def unsigned_call_policy(self) -> UnsignedCallPolicy:
        return UnsignedCallPolicy(self.unsigned_calls)

    @property
    def graphql_url(self) -> str:
        return f"{self.endpoint}/graphql"


def load_settings(**overrides: Any) -> Settings:
    """
    Build settings from env/.env plus keyword overrides (None values ignored).
    Validation failures surface as ConfigError.
    """
    data = {k: v for k, v in overrides.items() if v is not None}
    try:
        return Settings(**data)
    except ValidationError as e:
        raise ConfigError(f"invalid configuration: {e}") from e


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Cached process-wide settings (loaded once at process start)."""
    return load_settings()


__all__ = ["Settings", "DEFAULT_ENDPOINT", "load_settings", "get_settings"]
