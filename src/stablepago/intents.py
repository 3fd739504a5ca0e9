"""Typed intents produced by channels and parsers.

An intent is a read-only request to move or exchange value, tagged by
``kind``. Amounts are kept as decimal strings so no precision is lost
before base unit conversion.
"""

from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

from stablepago.config import get_settings


class QueryKind(str, Enum):
    BALANCE = "balance"
    ADDRESS = "address"
    WALLET_ID = "wallet_id"
    NETWORKS = "networks"
    HELP = "help"
    CREATE_WALLET = "create_wallet"
    SWITCH_NETWORK = "switch_network"


def _decimal_text(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, Decimal)):
        return str(value)
    if isinstance(value, float):
        return repr(value)
    if isinstance(value, str):
        return value.strip()
    return value


def _default_slippage_bps() -> int:
    return get_settings().default_slippage_bps


def _default_deadline_minutes() -> int:
    return get_settings().default_deadline_minutes


class IntentBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    confidence: float = Field(default=1.0, ge=0, le=1, description="Producer confidence")
    source_text: str = Field(default="", description="Raw text the intent came from")


class SimpleTransfer(IntentBase):
    """Send stable asset to an address on the user's current network."""

    kind: Literal["simple_transfer"] = "simple_transfer"
    amount: str = Field(..., description="Decimal amount, e.g. 10.5")
    destination_address: str
    asset: str = "USDC"

    @field_validator("amount", mode="before")
    @classmethod
    def coerce_amount_text(cls, value: Any) -> Any:
        return _decimal_text(value)

    @field_validator("destination_address", mode="before")
    @classmethod
    def strip_address(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value


class CrossChainTransfer(IntentBase):
    """Burn on the current network, mint on another."""

    kind: Literal["cross_chain_transfer"] = "cross_chain_transfer"
    amount: str = Field(..., description="Decimal amount, e.g. 10.5")
    destination_network: str
    destination_address: str
    asset: str = "USDC"

    @field_validator("amount", mode="before")
    @classmethod
    def coerce_amount_text(cls, value: Any) -> Any:
        return _decimal_text(value)

    @field_validator("destination_network", "destination_address", mode="before")
    @classmethod
    def strip_text(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value


class Swap(IntentBase):
    """Buy an exact amount of an output asset with at most max_input USDC."""

    kind: Literal["swap"] = "swap"
    output_asset: str
    exact_output: str
    max_input: str
    slippage_bps: int = Field(default_factory=_default_slippage_bps)
    deadline_minutes: int = Field(default_factory=_default_deadline_minutes)

    @field_validator("exact_output", "max_input", mode="before")
    @classmethod
    def coerce_amount_text(cls, value: Any) -> Any:
        return _decimal_text(value)


class Query(IntentBase):
    """Read-only or wallet-management command."""

    kind: Literal["query"] = "query"
    query: QueryKind
    network: Optional[str] = None


Intent = Annotated[
    Union[SimpleTransfer, CrossChainTransfer, Swap, Query],
    Field(discriminator="kind"),
]

_intent_adapter: TypeAdapter = TypeAdapter(Intent)


def parse_intent(data: dict) -> Intent:
    """Build an intent from a tagged dict (raises pydantic.ValidationError)."""
    return _intent_adapter.validate_python(data)


def is_sensitive(intent: Intent) -> bool:
    """Intents that move value need explicit human confirmation."""
    return isinstance(intent, (SimpleTransfer, CrossChainTransfer, Swap))
