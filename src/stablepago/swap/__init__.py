"""Uniswap V2 exact-output swaps from the stable asset."""

from stablepago.swap.orchestrator import SwapOrchestrator, SwapRequest, SwapResult
from stablepago.swap.venues import SwapVenue, get_venue

__all__ = ["SwapOrchestrator", "SwapRequest", "SwapResult", "SwapVenue", "get_venue"]
