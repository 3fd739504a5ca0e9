"""Same-chain stable asset transfer."""

import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Union

from stablepago.amounts import to_base_units
from stablepago.networks import NetworkDescriptor
from stablepago.poller import TransactionPoller
from stablepago.wallet.base import TransactionRecord, WalletHandle, WalletProvider

logger = logging.getLogger(__name__)


@dataclass
class TransferResult:
    network_key: str
    destination: str
    amount_units: int
    tx: TransactionRecord

    def to_dict(self) -> dict:
        return {
            "network": self.network_key,
            "destination": self.destination,
            "amount_units": self.amount_units,
            "tx": self.tx.to_dict(),
        }


class SimpleTransferOrchestrator:
    """One submit_transfer, then wait for confirmation."""

    def __init__(self, provider: WalletProvider, poller: TransactionPoller):
        self.provider = provider
        self.poller = poller

    async def send(
        self,
        handle: WalletHandle,
        network: NetworkDescriptor,
        destination: str,
        amount: Union[str, Decimal],
        idempotency_key: Optional[str] = None,
    ) -> TransferResult:
        """Send ``amount`` of the network's stable asset to ``destination``.

        Raises:
            InvalidAmount: Amount cannot be represented in base units
            TransactionFailed: Chain reported failure
            ConfirmationTimeout: Still pending after the poll budget
        """
        amount_units = to_base_units(amount, network.stable_decimals)
        submitted = await self.provider.submit_transfer(
            handle,
            network,
            destination,
            amount_units,
            idempotency_key=idempotency_key or str(uuid.uuid4()),
        )
        logger.info(
            f"Transfer {submitted.provider_tx_id}: {amount_units} units on {network.key} -> {destination}"
        )
        confirmed = await self.poller.await_confirmed(submitted.provider_tx_id, phase="transfer")
        return TransferResult(
            network_key=network.key,
            destination=destination,
            amount_units=amount_units,
            tx=confirmed,
        )
