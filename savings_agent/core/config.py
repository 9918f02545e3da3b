"""Application configuration loaded from environment via pydantic-settings."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


class Settings(BaseSettings):
    """Runtime configuration for the savings agent."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="allow",
        populate_by_name=True,
    )

    log_level: Literal["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"] = Field("INFO", alias="LOG_LEVEL")

    agent_private_key: Optional[SecretStr] = Field(None, alias="AGENT_PRIVATE_KEY")
    rpc_url: str = Field("https://ethereum-sepolia-rpc.publicnode.com", alias="RPC_URL")
    attribution_code: str = Field("savingsagent", alias="ATTRIBUTION_CODE", min_length=1, max_length=255)
    data_dir: Path = Field(Path("~/.savings-agent"), alias="DATA_DIR")

    dashboard_host: str = Field("127.0.0.1", alias="DASHBOARD_HOST")
    dashboard_port: int = Field(3402, alias="DASHBOARD_PORT")

    rebalance_interval_minutes: float = Field(60, alias="REBALANCE_INTERVAL_MINUTES", gt=0)
    rebalance_threshold_percent: float = Field(5.0, alias="REBALANCE_THRESHOLD_PERCENT", ge=0)
    management_fee_bps: int = Field(200, alias="MANAGEMENT_FEE_BPS", ge=0, le=10_000)
    native_asset_price_usd: float = Field(2500.0, alias="NATIVE_ASSET_PRICE_USD", ge=0)

    receipt_timeout_seconds: float = Field(120.0, alias="RECEIPT_TIMEOUT_SECONDS", gt=0)
    http_timeout_seconds: float = Field(15.0, alias="HTTP_TIMEOUT_SECONDS", gt=0)
    http_retry_attempts: int = Field(5, alias="HTTP_RETRY_ATTEMPTS", ge=1)
    http_retry_backoff_seconds: float = Field(0.5, alias="HTTP_RETRY_BACKOFF_SECONDS", gt=0)

    metrics_sink_url: Optional[str] = Field(None, alias="METRICS_SINK_URL")
    metrics_sink_key: Optional[SecretStr] = Field(None, alias="METRICS_SINK_KEY")

    usdc_address: str = Field(ZERO_ADDRESS, alias="USDC_ADDRESS")
    savings_vault_address: str = Field(ZERO_ADDRESS, alias="SAVINGS_VAULT_ADDRESS")
    hedge_router_address: str = Field(ZERO_ADDRESS, alias="HEDGE_ROUTER_ADDRESS")
    re_hedge_address: str = Field(ZERO_ADDRESS, alias="RE_HEDGE_ADDRESS")
    sp_hedge_address: str = Field(ZERO_ADDRESS, alias="SP_HEDGE_ADDRESS")
    bond_hedge_address: str = Field(ZERO_ADDRESS, alias="BOND_HEDGE_ADDRESS")

    @field_validator("data_dir", mode="after")
    @classmethod
    def _expand_data_dir(cls, value: Path) -> Path:
        return value.expanduser()

    @field_validator("attribution_code", mode="after")
    @classmethod
    def _require_ascii_code(cls, value: str) -> str:
        if not value.isascii():
            raise ValueError("attribution code must be ASCII")
        return value

    @field_validator("metrics_sink_url", mode="before")
    @classmethod
    def _normalize_sink_url(cls, value: Optional[str]) -> Optional[str]:
        if value in (None, "", "null", "None"):
            return None
        return str(value).rstrip("/")

    @property
    def rebalance_interval_seconds(self) -> float:
        return self.rebalance_interval_minutes * 60


@lru_cache(1)
def get_settings() -> Settings:
    """Return cached Settings instance."""

    return Settings()  # type: ignore[call-arg]


__all__ = ["Settings", "get_settings", "ZERO_ADDRESS"]
