"""Wallet provider base interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from stablepago.networks import NetworkDescriptor


class TxState(str, Enum):
    """Normalized state of a provider transaction."""

    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    FAILED = "failed"


@dataclass(frozen=True)
class WalletHandle:
    """A provider wallet on one network."""

    wallet_id: str
    address: str
    network_key: str


@dataclass
class TransactionRecord:
    """Snapshot of a submitted on-chain operation."""

    provider_tx_id: str
    state: TxState
    phase: Optional[str] = None
    tx_hash: Optional[str] = None
    error_reason: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.state in (TxState.CONFIRMED, TxState.FAILED)

    def to_dict(self) -> dict:
        return {
            "provider_tx_id": self.provider_tx_id,
            "state": self.state.value,
            "phase": self.phase,
            "tx_hash": self.tx_hash,
            "error_reason": self.error_reason,
        }


class WalletProvider(ABC):
    """Abstract base class for programmable wallet services.

    Submission methods accept an ``idempotency_key``: repeating a request with
    the same key must not create a second transaction. A new key always
    creates a new transaction, even if an identical one already confirmed.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name."""
        raise NotImplementedError()

    @abstractmethod
    async def create_wallet(
        self,
        network: NetworkDescriptor,
        idempotency_key: Optional[str] = None,
    ) -> WalletHandle:
        """Create a new wallet on a network.

        Args:
            network: Network to create the wallet on
            idempotency_key: Request deduplication key

        Returns:
            Handle of the created wallet
        """
        raise NotImplementedError()

    @abstractmethod
    async def get_balance(self, handle: WalletHandle, token: str) -> Decimal:
        """Read a wallet's balance of a token.

        Args:
            handle: Wallet to read
            token: Provider token id or token contract address

        Returns:
            Balance in human units (0 if the token is not held)
        """
        raise NotImplementedError()

    @abstractmethod
    async def submit_transfer(
        self,
        handle: WalletHandle,
        network: NetworkDescriptor,
        destination: str,
        amount: int,
        idempotency_key: Optional[str] = None,
    ) -> TransactionRecord:
        """Submit a same-chain stable asset transfer.

        Args:
            handle: Source wallet
            network: Network the wallet lives on
            destination: Recipient address
            amount: Amount in base units
            idempotency_key: Request deduplication key
        """
        raise NotImplementedError()

    @abstractmethod
    async def submit_contract_call(
        self,
        handle: WalletHandle,
        contract: str,
        function_signature: str,
        args: list[Any],
        idempotency_key: Optional[str] = None,
    ) -> TransactionRecord:
        """Submit an arbitrary contract execution.

        Args:
            handle: Wallet executing the call
            contract: Contract address
            function_signature: ABI signature, e.g. "approve(address,uint256)"
            args: ABI parameters, stringified
            idempotency_key: Request deduplication key
        """
        raise NotImplementedError()

    @abstractmethod
    async def get_status(self, provider_tx_id: str) -> TransactionRecord:
        """Read the current state of a submitted transaction."""
        raise NotImplementedError()

    async def find_wallet(self, address: str) -> Optional[str]:
        """Resolve a provider wallet id from an address, if supported."""
        return None

    async def aclose(self) -> None:
        """Release network resources."""
        return None
