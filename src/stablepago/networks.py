"""Network registry for all supported chains.

Each network is addressed by its Circle blockchain identifier (ETH-SEPOLIA,
BASE, ...). Networks that support Circle CCTP V2 carry their bridge domain
and contract addresses.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from stablepago.errors import UnknownNetwork

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BridgeContracts:
    """CCTP V2 configuration for a network."""

    domain: int
    token_messenger: str
    message_transmitter: str


@dataclass(frozen=True)
class NetworkDescriptor:
    """Immutable description of a supported network."""

    # Required fields (no defaults) - must come first
    key: str  # Circle blockchain identifier
    name: str
    chain_family: str  # "evm" or "solana"
    is_testnet: bool
    stable_token_address: str

    # Optional fields (with defaults)
    stable_token_id: Optional[str] = None  # Circle token id, when known
    stable_symbol: str = "USDC"
    stable_decimals: int = 6
    account_type: str = "SCA"
    explorer_url: Optional[str] = None
    bridge: Optional[BridgeContracts] = None

    @property
    def supports_bridge(self) -> bool:
        return self.bridge is not None

    @property
    def label(self) -> str:
        return f"{self.key} (Testnet)" if self.is_testnet else self.key


# ======================
# CCTP V2 contracts
# ======================
# V2 uses the same addresses on every EVM chain of a given environment.

TESTNET_TOKEN_MESSENGER = "0x8FE6B999Dc680CcFDD5Bf7EB0974218be2542DAA"
TESTNET_MESSAGE_TRANSMITTER = "0xE737e5cEBEEBa77EFE34D4aa090756590b1CE275"
MAINNET_TOKEN_MESSENGER = "0x28b5a0e9C621a5BadaA536219b3a228C8168cf5d"
MAINNET_MESSAGE_TRANSMITTER = "0x81D40F21F12A8F0E3252Bccb954D722d4c464B64"

CCTP_DOMAINS: dict[str, int] = {
    "ETH": 0,
    "AVAX": 1,
    "ARB": 3,
    "BASE": 6,
    "MATIC": 7,
}


def _bridge(family: str, testnet: bool) -> BridgeContracts:
    if testnet:
        return BridgeContracts(
            domain=CCTP_DOMAINS[family],
            token_messenger=TESTNET_TOKEN_MESSENGER,
            message_transmitter=TESTNET_MESSAGE_TRANSMITTER,
        )
    return BridgeContracts(
        domain=CCTP_DOMAINS[family],
        token_messenger=MAINNET_TOKEN_MESSENGER,
        message_transmitter=MAINNET_MESSAGE_TRANSMITTER,
    )


# ======================
# Network Configurations
# ======================

NETWORKS: dict[str, NetworkDescriptor] = {
    # Testnets
    "ETH-SEPOLIA": NetworkDescriptor(
        key="ETH-SEPOLIA",
        name="Ethereum Sepolia",
        chain_family="evm",
        is_testnet=True,
        stable_token_address="0x1c7D4B196Cb0C7B01d743Fbc6116a902379C7238",
        explorer_url="https://sepolia.etherscan.io",
        bridge=_bridge("ETH", testnet=True),
    ),
    "AVAX-FUJI": NetworkDescriptor(
        key="AVAX-FUJI",
        name="Avalanche Fuji",
        chain_family="evm",
        is_testnet=True,
        stable_token_address="0x5425890298aed601595a70AB815c96711a31Bc65",
        account_type="EOA",
        explorer_url="https://testnet.snowtrace.io",
        bridge=_bridge("AVAX", testnet=True),
    ),
    "ARB-SEPOLIA": NetworkDescriptor(
        key="ARB-SEPOLIA",
        name="Arbitrum Sepolia",
        chain_family="evm",
        is_testnet=True,
        stable_token_address="0x75faf114eafb1BDbe2F0316DF893fd58CE46AA4d",
        stable_token_id="4b8daacc-5f47-5909-a3ba-30d171ebad98",
        explorer_url="https://sepolia.arbiscan.io",
        bridge=_bridge("ARB", testnet=True),
    ),
    "BASE-SEPOLIA": NetworkDescriptor(
        key="BASE-SEPOLIA",
        name="Base Sepolia",
        chain_family="evm",
        is_testnet=True,
        stable_token_address="0x036CbD53842c5426634e7929541eC2318f3dCF7e",
        explorer_url="https://sepolia.basescan.org",
        bridge=_bridge("BASE", testnet=True),
    ),
    "MATIC-AMOY": NetworkDescriptor(
        key="MATIC-AMOY",
        name="Polygon Amoy",
        chain_family="evm",
        is_testnet=True,
        stable_token_address="0x41E94Eb019C0762f9Bfcf9Fb1E58725BfB0e7582",
        explorer_url="https://amoy.polygonscan.com",
        bridge=_bridge("MATIC", testnet=True),
    ),
    "SOL-DEVNET": NetworkDescriptor(
        key="SOL-DEVNET",
        name="Solana Devnet",
        chain_family="solana",
        is_testnet=True,
        stable_token_address="4zMMC9srt5Ri5X14GAgXhaHii3GnPAEERYPJgZJDncDU",
        account_type="EOA",
        explorer_url="https://explorer.solana.com/?cluster=devnet",
    ),
    # Mainnets
    "ETH": NetworkDescriptor(
        key="ETH",
        name="Ethereum",
        chain_family="evm",
        is_testnet=False,
        stable_token_address="0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48",
        explorer_url="https://etherscan.io",
        bridge=_bridge("ETH", testnet=False),
    ),
    "AVAX": NetworkDescriptor(
        key="AVAX",
        name="Avalanche",
        chain_family="evm",
        is_testnet=False,
        stable_token_address="0xB97EF9Ef8734C71904D8002F8b6Bc66Dd9c48a6E",
        account_type="EOA",
        explorer_url="https://snowtrace.io",
        bridge=_bridge("AVAX", testnet=False),
    ),
    "ARB": NetworkDescriptor(
        key="ARB",
        name="Arbitrum One",
        chain_family="evm",
        is_testnet=False,
        stable_token_address="0xaf88d065e77c8cC2239327C5EDb3A432268e5831",
        explorer_url="https://arbiscan.io",
        bridge=_bridge("ARB", testnet=False),
    ),
    "BASE": NetworkDescriptor(
        key="BASE",
        name="Base",
        chain_family="evm",
        is_testnet=False,
        stable_token_address="0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913",
        explorer_url="https://basescan.org",
        bridge=_bridge("BASE", testnet=False),
    ),
    "MATIC": NetworkDescriptor(
        key="MATIC",
        name="Polygon",
        chain_family="evm",
        is_testnet=False,
        stable_token_address="0x3c499c542cEF5E3811e1192ce70d8cC03d5c3359",
        explorer_url="https://polygonscan.com",
        bridge=_bridge("MATIC", testnet=False),
    ),
}


class NetworkRegistry:
    """Lookup of network descriptors plus a process-wide "current" pointer.

    The current pointer only seeds defaults for new users; orchestrators
    always receive the descriptor they operate on explicitly.
    """

    def __init__(
        self,
        networks: Optional[dict[str, NetworkDescriptor]] = None,
        default_key: str = "BASE-SEPOLIA",
    ):
        self._networks = dict(networks if networks is not None else NETWORKS)
        self._current = self.get(default_key).key

    def get(self, key: str) -> NetworkDescriptor:
        """Get a network by key (case-insensitive).

        Raises:
            UnknownNetwork: If the key is not registered
        """
        network = self._networks.get(str(key).strip().upper())
        if network is None:
            raise UnknownNetwork(key, self.keys())
        return network

    def find(self, key: str) -> Optional[NetworkDescriptor]:
        """Get a network by key, or None."""
        return self._networks.get(str(key).strip().upper())

    def current(self) -> NetworkDescriptor:
        return self._networks[self._current]

    def select(self, key: str) -> NetworkDescriptor:
        """Switch the process-wide current network."""
        network = self.get(key)
        self._current = network.key
        logger.info(f"Default network switched to {network.key}")
        return network

    def all(self) -> list[NetworkDescriptor]:
        return list(self._networks.values())

    def keys(self) -> list[str]:
        return list(self._networks.keys())

    def bridgeable(self) -> list[NetworkDescriptor]:
        """Networks that support CCTP transfers."""
        return [n for n in self._networks.values() if n.supports_bridge]

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key.strip().upper() in self._networks


# Singleton instance
_registry: Optional[NetworkRegistry] = None


def get_registry() -> NetworkRegistry:
    """Get the shared registry, seeded with the configured default network."""
    global _registry

    if _registry is None:
        from stablepago.config import get_settings

        _registry = NetworkRegistry(default_key=get_settings().default_network)
    return _registry


def reset_registry() -> None:
    """Reset registry instance (useful for testing)."""
    global _registry
    _registry = None
