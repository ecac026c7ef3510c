"""Canonical configuration surface for the Brokex keeper."""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import List, Literal

from eth_utils import is_address
from pydantic import AliasChoices, BaseModel, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError

DEFAULT_PROOF_SERVICE_URL = "https://proof-production.up.railway.app"
DEFAULT_ALLOWED_ORIGIN = "https://brokex.trade"
DEFAULT_GAS_LIMIT = 800_000


class RetrySettings(BaseModel):
    """Submission retry policy knobs."""
    max_attempts: int = Field(default=15, ge=1)
    interval_seconds: float = Field(default=1.0, ge=0.0)


class KeeperSettings(BaseSettings):
    """Main keeper configuration.

    The five options carried over from the legacy deployment (contract
    address, RPC URL, signing key, allowed origin and port) also accept
    their bare environment names.
    """

    model_config = SettingsConfigDict(
        env_prefix="BROKEX_",
        env_nested_delimiter="__",
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )

    # Environment
    environment: Literal["dev", "staging", "prod"] = "dev"

    # Ledger
    contract_address: str = Field(
        default="",
        validation_alias=AliasChoices("BROKEX_CONTRACT_ADDRESS", "CONTRACT_ADDRESS"),
    )
    rpc_url: str = Field(
        default="",
        validation_alias=AliasChoices("BROKEX_RPC_URL", "RPC_URL"),
    )
    private_key: SecretStr = Field(
        default=SecretStr(""),
        validation_alias=AliasChoices("BROKEX_PRIVATE_KEY", "PRIVATE_KEY"),
    )
    chain_mode: Literal["live", "simulated"] = "live"
    gas_limit: int = Field(default=DEFAULT_GAS_LIMIT, gt=0)

    # Proof oracle
    proof_mode: Literal["per_item", "batch"] = "per_item"
    proof_service_url: str = DEFAULT_PROOF_SERVICE_URL

    # HTTP surface
    allowed_origins: str = Field(
        default=DEFAULT_ALLOWED_ORIGIN,
        validation_alias=AliasChoices(
            "BROKEX_ALLOWED_ORIGINS", "ALLOWED_ORIGINS", "ALLOWED_ORIGIN"
        ),
    )
    port: int = Field(
        default=3000,
        validation_alias=AliasChoices("BROKEX_PORT", "PORT"),
    )

    # Timeouts (seconds)
    rpc_timeout_seconds: float = 30.0
    oracle_timeout_seconds: float = 30.0
    receipt_timeout_seconds: float = 120.0
    call_timeout_seconds: float = 60.0

    retry: RetrySettings = Field(default_factory=RetrySettings)

    # Logging
    log_level: str = "INFO"
    log_json: bool | None = None

    @field_validator("proof_service_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return v.upper()

    @property
    def allowed_origins_list(self) -> List[str]:
        """Parse comma-separated origins."""
        return [o.strip() for o in self.allowed_origins.split(",") if o.strip()]

    @property
    def json_logs(self) -> bool:
        if self.log_json is not None:
            return self.log_json
        return self.environment != "dev"

    def validate_for_live(self) -> None:
        """Fail fast when live mode is missing what it needs to sign and submit."""
        if self.chain_mode != "live":
            return

        missing = [
            name
            for name, value in (
                ("contract_address", self.contract_address),
                ("rpc_url", self.rpc_url),
                ("private_key", self.private_key.get_secret_value()),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(
                f"Live chain mode requires: {', '.join(missing)}",
                details={"missing": missing},
            )

        if not is_address(self.contract_address):
            raise ConfigurationError(
                f"Invalid contract address: {self.contract_address}",
                details={"contract_address": self.contract_address},
            )


@lru_cache
def load_settings(env_file: str | None = None) -> KeeperSettings:
    """Load KeeperSettings once per process to keep services consistent."""
    env_path = Path(env_file) if env_file else None
    if env_path is None:
        return KeeperSettings()
    return KeeperSettings(_env_file=env_path)
