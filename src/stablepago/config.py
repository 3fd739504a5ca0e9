"""Application configuration using pydantic-settings.

All knobs of the orchestration engine (provider credentials, poll policy,
confirmation window, amount ceilings) are read from the environment.
"""

from decimal import Decimal
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ======================
    # Telegram
    # ======================
    telegram_bot_token: str = Field(default="", description="Telegram bot token from BotFather")

    # ======================
    # API
    # ======================
    api_host: str = Field(default="0.0.0.0", description="API server host")
    api_port: int = Field(default=8000, description="API server port")

    # ======================
    # Environment
    # ======================
    environment: str = Field(default="development", description="Runtime environment")
    debug: bool = Field(default=True, description="Enable debug mode")

    # ======================
    # Wallet provider
    # ======================
    wallet_provider: str = Field(
        default="dryrun", description="Wallet provider backend: dryrun or circle"
    )
    circle_api_key: str = Field(default="", description="Circle W3S API key")
    circle_entity_secret: str = Field(
        default="", description="Circle entity secret (32-byte hex)"
    )
    circle_base_url: str = Field(
        default="https://api.circle.com", description="Circle W3S API base URL"
    )
    circle_wallet_set_id: Optional[str] = Field(
        default=None, description="Existing wallet set to create wallets in"
    )
    circle_fee_level: str = Field(default="MEDIUM", description="LOW, MEDIUM or HIGH")
    attestation_api_url: str = Field(
        default="https://iris-api-sandbox.circle.com",
        description="Circle Iris attestation API base URL",
    )

    # ======================
    # Networks
    # ======================
    default_network: str = Field(
        default="BASE-SEPOLIA", description="Network new users start on"
    )

    # ======================
    # Confirmation gate
    # ======================
    confirmation_timeout_seconds: float = Field(
        default=30.0, description="Human approval window for sensitive intents"
    )
    confirmation_sweep_interval_seconds: float = Field(
        default=60.0, description="How often expired tickets are swept"
    )
    min_confidence: float = Field(
        default=0.5, description="Parsed intents below this confidence are rejected"
    )

    # ======================
    # Safety limits
    # ======================
    max_transaction_amount: Decimal = Field(
        default=Decimal("10000"), description="Maximum single transfer in stable units"
    )
    max_cross_chain_amount: Decimal = Field(
        default=Decimal("25000"), description="Maximum cross-chain transfer in stable units"
    )
    asset_limits: dict[str, Decimal] = Field(
        default_factory=lambda: {
            "USDC": Decimal("10000"),
            "WETH": Decimal("5"),
            "DAI": Decimal("10000"),
            "UNI": Decimal("1000"),
        },
        description="Per-asset ceiling for a single intent",
    )
    max_slippage_bps: int = Field(default=5000, description="Upper bound for slippage")

    # ======================
    # Polling
    # ======================
    poll_max_attempts: int = Field(default=40, description="Status polls before timing out")
    poll_initial_delay: float = Field(default=1.5, description="First poll delay (seconds)")
    poll_max_delay: float = Field(default=5.0, description="Poll delay cap (seconds)")
    poll_delay_step: float = Field(default=0.5, description="Additive delay growth (seconds)")
    attestation_max_attempts: int = Field(default=30, description="Attestation polls")
    attestation_interval: float = Field(default=10.0, description="Attestation poll interval")

    # ======================
    # Cross-chain / swap defaults
    # ======================
    burn_max_fee_divisor: int = Field(
        default=5000, description="maxFee = amount // divisor (0.02%)"
    )
    min_finality_threshold: int = Field(default=1000, description="CCTP finality threshold")
    default_slippage_bps: int = Field(default=100, description="Default swap slippage (1%)")
    default_deadline_minutes: int = Field(default=30, description="Default swap deadline")

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"

    @property
    def has_circle_credentials(self) -> bool:
        """Check if Circle credentials are configured."""
        return bool(self.circle_api_key and self.circle_entity_secret)

    def get_safe_dict(self) -> dict:
        """Return settings dict with secrets redacted."""
        return {
            "environment": self.environment,
            "debug": self.debug,
            "api_host": self.api_host,
            "api_port": self.api_port,
            "telegram_bot_token": "***" if self.telegram_bot_token else "(not set)",
            "wallet_provider": self.wallet_provider,
            "circle": {
                "base_url": self.circle_base_url,
                "api_key": "***" if self.circle_api_key else "(not set)",
                "entity_secret": "***" if self.circle_entity_secret else "(not set)",
                "wallet_set_id": self.circle_wallet_set_id or "(auto)",
                "fee_level": self.circle_fee_level,
            },
            "attestation_api_url": self.attestation_api_url,
            "default_network": self.default_network,
            "confirmation": {
                "timeout_seconds": self.confirmation_timeout_seconds,
                "sweep_interval_seconds": self.confirmation_sweep_interval_seconds,
                "min_confidence": self.min_confidence,
            },
            "limits": {
                "max_transaction_amount": str(self.max_transaction_amount),
                "max_cross_chain_amount": str(self.max_cross_chain_amount),
                "asset_limits": {k: str(v) for k, v in self.asset_limits.items()},
            },
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
