"""Wallet provider factory."""

import logging
from typing import Optional

from stablepago.config import get_settings
from stablepago.wallet.base import WalletProvider
from stablepago.wallet.circle import CircleWalletClient
from stablepago.wallet.dryrun import DryRunWalletProvider

logger = logging.getLogger(__name__)

# Singleton instance
_provider_instance: Optional[WalletProvider] = None


def get_wallet_provider() -> WalletProvider:
    """Get the configured wallet provider.

    Provider is selected based on WALLET_PROVIDER environment variable:
    - dryrun (default): Simulated wallets and transactions
    - circle: Circle developer-controlled wallets

    Returns:
        Configured WalletProvider instance
    """
    global _provider_instance

    if _provider_instance is not None:
        return _provider_instance

    settings = get_settings()
    provider_name = settings.wallet_provider.lower()

    if provider_name == "circle" and settings.has_circle_credentials:
        _provider_instance = CircleWalletClient(
            api_key=settings.circle_api_key,
            entity_secret=settings.circle_entity_secret,
            base_url=settings.circle_base_url,
            wallet_set_id=settings.circle_wallet_set_id,
            fee_level=settings.circle_fee_level,
        )
    else:
        if provider_name == "circle":
            logger.warning("Circle credentials missing, falling back to dry-run provider")
        _provider_instance = DryRunWalletProvider()

    logger.info(f"Wallet provider: {_provider_instance.name}")
    return _provider_instance


def reset_wallet_provider() -> None:
    """Reset provider instance (useful for testing)."""
    global _provider_instance
    _provider_instance = None
