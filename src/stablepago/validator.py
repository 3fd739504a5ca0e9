"""Shape and bounds checks applied to every intent before execution.

Orchestrators assume validated input and do not re-check these rules.
"""

import logging
import re
from decimal import Decimal
from typing import Optional

from stablepago.amounts import parse_amount, to_base_units
from stablepago.errors import (
    AmountLimitExceeded,
    BridgeNotSupported,
    InvalidAddress,
    InvalidAmount,
    InvalidDeadline,
    InvalidSlippage,
    LowConfidence,
    MissingParameter,
    ProhibitedContent,
    SameNetworkTransfer,
)
from stablepago.intents import CrossChainTransfer, Intent, Query, QueryKind, SimpleTransfer, Swap
from stablepago.networks import NetworkDescriptor, NetworkRegistry
from stablepago.swap.venues import get_venue

logger = logging.getLogger(__name__)

ADDRESS_PATTERNS: dict[str, re.Pattern] = {
    "evm": re.compile(r"^0x[0-9a-fA-F]{40}$"),
    "solana": re.compile(r"^[1-9A-HJ-NP-Za-km-z]{32,44}$"),
}

PROHIBITED_PATTERNS: list[re.Pattern] = [
    re.compile(r"private\s*key", re.I),
    re.compile(r"seed\s*phrase", re.I),
    re.compile(r"mnemonic", re.I),
    re.compile(r"password", re.I),
    re.compile(r"secret", re.I),
]

MAX_DEADLINE_MINUTES = 1440


def is_valid_address(address: str, network: NetworkDescriptor) -> bool:
    pattern = ADDRESS_PATTERNS.get(network.chain_family)
    return bool(address and pattern and pattern.fullmatch(address))


class IntentValidator:
    """Fails fast with a specific ValidationError per violation."""

    def __init__(
        self,
        registry: NetworkRegistry,
        min_confidence: float = 0.5,
        max_transaction_amount: Decimal = Decimal("10000"),
        max_cross_chain_amount: Decimal = Decimal("25000"),
        asset_limits: Optional[dict[str, Decimal]] = None,
        max_slippage_bps: int = 5000,
    ):
        self.registry = registry
        self.min_confidence = min_confidence
        self.max_transaction_amount = Decimal(max_transaction_amount)
        self.max_cross_chain_amount = Decimal(max_cross_chain_amount)
        self.asset_limits = {k.upper(): Decimal(v) for k, v in (asset_limits or {}).items()}
        self.max_slippage_bps = max_slippage_bps

    @classmethod
    def from_settings(cls, registry: NetworkRegistry, settings) -> "IntentValidator":
        return cls(
            registry,
            min_confidence=settings.min_confidence,
            max_transaction_amount=settings.max_transaction_amount,
            max_cross_chain_amount=settings.max_cross_chain_amount,
            asset_limits=settings.asset_limits,
            max_slippage_bps=settings.max_slippage_bps,
        )

    def validate(self, intent: Intent, network_key: str) -> Intent:
        """Validate an intent against the network it will run on.

        Args:
            intent: Parsed intent
            network_key: The user's current (source) network

        Returns:
            The same intent, unchanged

        Raises:
            ValidationError: A subclass naming the first violation found
        """
        self._check_source_text(intent)

        if intent.confidence < self.min_confidence:
            raise LowConfidence(intent.confidence, self.min_confidence)

        if isinstance(intent, Query):
            if intent.query == QueryKind.SWITCH_NETWORK:
                if not intent.network:
                    raise MissingParameter("network")
                self.registry.get(intent.network)
            return intent

        network = self.registry.get(network_key)

        if isinstance(intent, SimpleTransfer):
            self._check_address(intent.destination_address, network)
            self._check_amount(
                intent.amount, intent.asset, self.max_transaction_amount, network.stable_decimals
            )
        elif isinstance(intent, CrossChainTransfer):
            destination = self.registry.get(intent.destination_network)
            if network.bridge is None:
                raise BridgeNotSupported(network.key)
            if destination.bridge is None:
                raise BridgeNotSupported(destination.key)
            if destination.key == network.key:
                raise SameNetworkTransfer(network.key)
            self._check_address(intent.destination_address, destination)
            # The cross-chain ceiling replaces the per-asset limit
            self._check_amount(
                intent.amount,
                intent.asset,
                self.max_cross_chain_amount,
                network.stable_decimals,
                asset_limit=False,
            )
        elif isinstance(intent, Swap):
            venue = get_venue(network.key)
            output = venue.output(intent.output_asset)
            self._check_amount(intent.exact_output, output.symbol, None, output.decimals)
            self._check_amount(
                intent.max_input,
                venue.input_token.symbol,
                self.max_transaction_amount,
                venue.input_token.decimals,
            )
            if not 0 <= intent.slippage_bps <= self.max_slippage_bps:
                raise InvalidSlippage(intent.slippage_bps, self.max_slippage_bps)
            if not 1 <= intent.deadline_minutes <= MAX_DEADLINE_MINUTES:
                raise InvalidDeadline(intent.deadline_minutes)

        logger.debug(f"Validated {intent.kind} intent on {network.key}")
        return intent

    def _check_source_text(self, intent: Intent) -> None:
        for pattern in PROHIBITED_PATTERNS:
            if pattern.search(intent.source_text or ""):
                logger.warning(f"Rejected {intent.kind} intent containing sensitive material")
                raise ProhibitedContent()

    def _check_address(self, address: str, network: NetworkDescriptor) -> None:
        if not address:
            raise MissingParameter("destination_address")
        if not is_valid_address(address, network):
            raise InvalidAddress(address, network.key)

    def _check_amount(
        self,
        amount: str,
        asset: str,
        ceiling: Optional[Decimal],
        decimals: int,
        asset_limit: bool = True,
    ) -> Decimal:
        if amount is None or amount == "":
            raise MissingParameter("amount")

        value = parse_amount(amount)
        if value <= 0:
            raise InvalidAmount(amount, "must be greater than zero")

        # Rejects more fractional digits than the asset supports
        to_base_units(value, decimals)

        if ceiling is not None and value > ceiling:
            raise AmountLimitExceeded(amount, ceiling, asset.upper())

        limit = self.asset_limits.get(asset.upper()) if asset_limit else None
        if limit is not None and value > limit:
            raise AmountLimitExceeded(amount, limit, asset.upper())

        return value
