"""Bounded-retry transaction confirmation poller.

This is the single place that encodes what waiting for an on-chain effect
looks like: poll the provider, fail fast on a failed state, back off
additively while submitted, give up after a fixed number of attempts.
"""

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Awaitable, Callable, Optional

from stablepago.errors import ConfirmationTimeout, TransactionFailed
from stablepago.wallet.base import TransactionRecord, TxState, WalletProvider

logger = logging.getLogger(__name__)

SleepFunc = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class PollPolicy:
    """Attempt and delay ceilings for a confirmation wait."""

    max_attempts: int = 40
    initial_delay: float = 1.5
    max_delay: float = 5.0
    delay_step: float = 0.5

    def delays(self) -> list[float]:
        """Sleep schedule between consecutive attempts."""
        schedule = []
        delay = self.initial_delay
        for _ in range(max(self.max_attempts - 1, 0)):
            schedule.append(delay)
            delay = min(delay + self.delay_step, self.max_delay)
        return schedule

    @classmethod
    def from_settings(cls, settings) -> "PollPolicy":
        return cls(
            max_attempts=settings.poll_max_attempts,
            initial_delay=settings.poll_initial_delay,
            max_delay=settings.poll_max_delay,
            delay_step=settings.poll_delay_step,
        )


class TransactionPoller:
    """Turns a provider transaction id into a terminal state."""

    def __init__(
        self,
        provider: WalletProvider,
        policy: Optional[PollPolicy] = None,
        sleep: SleepFunc = asyncio.sleep,
    ):
        self.provider = provider
        self.policy = policy or PollPolicy()
        self._sleep = sleep

    async def await_confirmed(
        self,
        provider_tx_id: str,
        *,
        policy: Optional[PollPolicy] = None,
        capture_tx_hash: bool = False,
        phase: Optional[str] = None,
    ) -> TransactionRecord:
        """Poll until the transaction is confirmed.

        Args:
            provider_tx_id: Provider transaction id
            policy: Override of the poller's default policy
            capture_tx_hash: Keep polling a confirmed record until it carries a hash
            phase: Label stamped on the returned record

        Returns:
            The confirmed TransactionRecord

        Raises:
            TransactionFailed: The provider reported a failed state
            ConfirmationTimeout: Attempts exhausted while still submitted
        """
        policy = policy or self.policy
        delay = policy.initial_delay
        label = phase or "tx"

        for attempt in range(1, policy.max_attempts + 1):
            record = await self.provider.get_status(provider_tx_id)

            if record.state == TxState.FAILED:
                logger.warning(
                    f"[{label}] {provider_tx_id} failed: {record.error_reason or 'no reason given'}"
                )
                raise TransactionFailed(provider_tx_id, record.error_reason)

            if record.state == TxState.CONFIRMED:
                if not capture_tx_hash or record.tx_hash:
                    if phase:
                        record = replace(record, phase=phase)
                    logger.info(f"[{label}] {provider_tx_id} confirmed after {attempt} poll(s)")
                    return record
                logger.debug(f"[{label}] {provider_tx_id} confirmed, waiting for tx hash")

            if attempt < policy.max_attempts:
                logger.debug(
                    f"[{label}] {provider_tx_id} pending (attempt {attempt}/{policy.max_attempts}), "
                    f"sleeping {delay:.1f}s"
                )
                await self._sleep(delay)
                delay = min(delay + policy.delay_step, policy.max_delay)

        logger.warning(f"[{label}] {provider_tx_id} not confirmed after {policy.max_attempts} polls")
        raise ConfirmationTimeout(provider_tx_id, policy.max_attempts)
