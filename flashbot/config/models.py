"""Configuration models for the engine and application settings"""

from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# CoinGecko coin ids for the tracked base symbols
DEFAULT_COIN_IDS: Dict[str, str] = {
    "BTC": "bitcoin",
    "ETH": "ethereum",
    "MATIC": "matic-network",
    "WBTC": "wrapped-bitcoin",
    "LINK": "chainlink",
}


class EngineConfig(BaseModel):
    """Tuning parameters of the detection and aggregation engine"""

    detection_interval_seconds: float = Field(default=30.0, gt=0)
    retention_minutes: float = Field(default=60.0, gt=0)
    expiry_interval_seconds: float = Field(default=60.0, gt=0)
    min_margin_pct: Decimal = Field(default=Decimal("0.5"), ge=0)
    stats_window_hours: float = Field(default=24.0, gt=0)
    success_probability: float = Field(default=0.9, ge=0, le=1)
    default_opportunity_limit: int = Field(default=50, ge=1)
    default_transaction_limit: int = Field(default=10, ge=1)

    model_config = ConfigDict(frozen=True)


class QuoteSourceConfig(BaseModel):
    """Connection parameters for the price quote source"""

    api_url: str = "https://api.coingecko.com/api/v3"
    timeout_seconds: float = Field(default=10.0, gt=0)
    spread_pct: Decimal = Field(default=Decimal("4"), ge=0, lt=100)
    coin_ids: Dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_COIN_IDS))

    model_config = ConfigDict(frozen=True)


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Database (in-memory repository when unset)
    database_url: Optional[str] = Field(default=None, alias="DATABASE_URL")

    # API Configuration
    api_keys: str = Field(default="", alias="API_KEYS")
    api_host: str = Field(default="0.0.0.0", alias="API_HOST")
    api_port: int = Field(default=8000, alias="API_PORT")

    # Engine
    detection_interval_seconds: float = Field(default=30.0, alias="DETECTION_INTERVAL_SECONDS")
    retention_minutes: float = Field(default=60.0, alias="RETENTION_MINUTES")
    expiry_interval_seconds: float = Field(default=60.0, alias="EXPIRY_INTERVAL_SECONDS")
    min_margin_pct: Decimal = Field(default=Decimal("0.5"), alias="MIN_MARGIN_PCT")
    success_probability: float = Field(default=0.9, alias="SUCCESS_PROBABILITY")

    # Quote source
    quote_api_url: str = Field(default="https://api.coingecko.com/api/v3", alias="QUOTE_API_URL")
    quote_timeout_seconds: float = Field(default=10.0, alias="QUOTE_TIMEOUT_SECONDS")
    price_spread_pct: Decimal = Field(default=Decimal("4"), alias="PRICE_SPREAD_PCT")

    # Monitoring
    prometheus_port: Optional[int] = Field(default=None, alias="PROMETHEUS_PORT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @model_validator(mode="after")
    def _check_log_level(self) -> "Settings":
        self.log_level = self.log_level.upper()
        if self.log_level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unsupported log level: {self.log_level}")
        return self

    def get_api_keys_list(self) -> List[str]:
        """Parse comma-separated API keys into list"""
        return [key.strip() for key in self.api_keys.split(",") if key.strip()]

    def get_engine_config(self) -> EngineConfig:
        """Get engine configuration"""
        return EngineConfig(
            detection_interval_seconds=self.detection_interval_seconds,
            retention_minutes=self.retention_minutes,
            expiry_interval_seconds=self.expiry_interval_seconds,
            min_margin_pct=self.min_margin_pct,
            success_probability=self.success_probability,
        )

    def get_quote_source_config(self) -> QuoteSourceConfig:
        """Get quote source configuration"""
        return QuoteSourceConfig(
            api_url=self.quote_api_url,
            timeout_seconds=self.quote_timeout_seconds,
            spread_pct=self.price_spread_pct,
        )
