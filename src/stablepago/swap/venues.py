"""Per-network Uniswap V2 router and token configuration."""

from dataclasses import dataclass, field
from typing import Optional

from stablepago.errors import SwapNotSupported, UnsupportedAsset


@dataclass(frozen=True)
class SwapToken:
    symbol: str
    address: str
    decimals: int = 18


@dataclass(frozen=True)
class SwapVenue:
    """Router plus allow-listed output tokens on one network."""

    network_key: str
    router: str
    input_token: SwapToken  # USDC
    wrapped_native: SwapToken  # WETH, the routing hub
    outputs: dict[str, SwapToken] = field(default_factory=dict)

    @property
    def supported_outputs(self) -> list[str]:
        return list(self.outputs.keys())

    def output(self, symbol: str) -> SwapToken:
        """Look up an allow-listed output token.

        Raises:
            UnsupportedAsset: Symbol not swappable on this network
        """
        token = self.outputs.get(symbol.upper())
        if token is None:
            raise UnsupportedAsset(symbol, self.network_key, self.supported_outputs)
        return token

    def path_to(self, symbol: str) -> list[str]:
        """Routing path: USDC -> WETH, or USDC -> WETH -> token."""
        token = self.output(symbol)
        if token.address == self.wrapped_native.address:
            return [self.input_token.address, self.wrapped_native.address]
        return [self.input_token.address, self.wrapped_native.address, token.address]


def _venue(network_key: str, router: str, usdc: str, weth: str, **extra: str) -> SwapVenue:
    wrapped = SwapToken("WETH", weth)
    outputs = {"WETH": wrapped}
    for symbol, address in extra.items():
        outputs[symbol] = SwapToken(symbol, address)
    return SwapVenue(
        network_key=network_key,
        router=router,
        input_token=SwapToken("USDC", usdc, decimals=6),
        wrapped_native=wrapped,
        outputs=outputs,
    )


# ======================
# Venue Configurations
# ======================

SWAP_VENUES: dict[str, SwapVenue] = {
    "ETH": _venue(
        "ETH",
        router="0x7a250d5630B4cF539739dF2C5dAcb4c659F2488D",
        usdc="0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48",
        weth="0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2",
        DAI="0x6B175474E89094C44Da98b954EedeAC495271d0F",
    ),
    "ETH-SEPOLIA": _venue(
        "ETH-SEPOLIA",
        router="0xC532a74256D3Db42D0Bf7a0400fEFDbad7694008",
        usdc="0x1c7D4B196Cb0C7B01d743Fbc6116a902379C7238",
        weth="0x7b79995e5f793A07Bc00c21412e50Ecae098E7f9",
    ),
    "BASE-SEPOLIA": _venue(
        "BASE-SEPOLIA",
        router="0x4752ba5dbc23f44d87826276bf6fd6b1c372ad24",
        usdc="0x036CbD53842c5426634e7929541eC2318f3dCF7e",
        weth="0x4200000000000000000000000000000000000006",
        UNI="0x1f9840a85d5aF5bf1D1762F925BDADdC4201F984",
    ),
    "ARB-SEPOLIA": _venue(
        "ARB-SEPOLIA",
        router="0x101F443B4d1b059569D643917553c771E1b9663E",
        usdc="0x75faf114eafb1BDbe2F0316DF893fd58CE46AA4d",
        weth="0x980B62Da83eFf3D4576C647993b0c1D7faf17c73",
    ),
}


def find_venue(network_key: str) -> Optional[SwapVenue]:
    return SWAP_VENUES.get(network_key.upper())


def get_venue(network_key: str) -> SwapVenue:
    """Get the swap venue of a network.

    Raises:
        SwapNotSupported: Network has no configured router
    """
    venue = find_venue(network_key)
    if venue is None:
        raise SwapNotSupported(network_key)
    return venue
