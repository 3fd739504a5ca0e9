"""Time-boxed human confirmation for sensitive intents.

Per user: NoTicket -> Pending -> {Confirmed | Cancelled | Expired} -> NoTicket.
A user holds at most one ticket; a new sensitive intent replaces the pending
one (latest intent wins) and the replaced ticket is reported to the caller.
"""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from stablepago.intents import CrossChainTransfer, Intent, SimpleTransfer, Swap
from stablepago.utils.locks import user_lock

logger = logging.getLogger(__name__)

CONFIRM_KEYWORDS = frozenset({"CONFIRM", "CONFIRMAR"})
CANCEL_KEYWORDS = frozenset({"CANCEL", "CANCELAR"})


class Resolution(str, Enum):
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"
    NO_TICKET = "no_ticket"
    UNRECOGNIZED = "unrecognized"


@dataclass(frozen=True)
class ConfirmationTicket:
    user_id: int
    intent: Intent
    chat_context: Any
    created_at: float
    expires_at: float
    network_key: Optional[str] = None
    ticket_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at

    def seconds_left(self, now: float) -> float:
        return max(self.expires_at - now, 0.0)


@dataclass
class PendingConfirmation:
    """Returned by ``request``: the new ticket, its prompt and any ticket it replaced."""

    ticket: ConfirmationTicket
    prompt: str
    replaced: Optional[ConfirmationTicket] = None


@dataclass
class GateOutcome:
    resolution: Resolution
    message: str
    ticket: Optional[ConfirmationTicket] = None
    result: Any = None


ConfirmedHandler = Callable[[ConfirmationTicket], Awaitable[Any]]
ExpiryNotifier = Callable[[ConfirmationTicket], Awaitable[None]]


def confirmation_prompt(intent: Intent, timeout: float = 30, network_key: Optional[str] = None) -> str:
    """Human-readable prompt for a sensitive intent."""
    seconds = int(timeout)
    reply = (
        f'⚠️ Reply "CONFIRM" (or "CONFIRMAR") within {seconds} seconds to proceed, '
        f'"CANCEL" (or "CANCELAR") to abort.'
    )
    network_line = f"Network: {network_key}\n" if network_key else ""
    source_line = f"From Network: {network_key}\n" if network_key else ""

    if isinstance(intent, SimpleTransfer):
        return (
            f"🔐 Confirm Transaction\n\n"
            f"Send: {intent.amount} {intent.asset}\n"
            f"To: {intent.destination_address}\n"
            f"{network_line}\n"
            f"{reply}\n"
            f"This action cannot be undone."
        )

    if isinstance(intent, CrossChainTransfer):
        return (
            f"🌉 Confirm Cross-Chain Transfer\n\n"
            f"Amount: {intent.amount} {intent.asset}\n"
            f"{source_line}"
            f"To Network: {intent.destination_network}\n"
            f"To Address: {intent.destination_address}\n\n"
            f"{reply}\n"
            f"Cross-chain transfers may take 10-20 minutes."
        )

    if isinstance(intent, Swap):
        return (
            f"💱 Confirm Swap\n\n"
            f"Buy: {intent.exact_output} {intent.output_asset}\n"
            f"Max spend: {intent.max_input} USDC (+{intent.slippage_bps / 100:g}% slippage)\n"
            f"{network_line}"
            f"Deadline: {intent.deadline_minutes} min\n\n"
            f"{reply}"
        )

    return f"Please confirm this action. {reply}"


class ConfirmationGate:
    """Single-slot confirmation tickets keyed by user."""

    def __init__(
        self,
        timeout: float = 30.0,
        sweep_interval: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
        on_confirmed: Optional[ConfirmedHandler] = None,
        on_expired: Optional[ExpiryNotifier] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.timeout = timeout
        self.sweep_interval = sweep_interval
        self.on_confirmed = on_confirmed
        self.on_expired = on_expired
        self._clock = clock
        self._sleep = sleep
        self._tickets: dict[int, ConfirmationTicket] = {}
        self._task: Optional[asyncio.Task] = None

    async def request(
        self,
        user_id: int,
        intent: Intent,
        chat_context: Any = None,
        network_key: Optional[str] = None,
    ) -> PendingConfirmation:
        """Hold an intent until the user confirms or the window closes."""
        async with user_lock(user_id, operation="request"):
            now = self._clock()
            ticket = ConfirmationTicket(
                user_id=user_id,
                intent=intent,
                chat_context=chat_context,
                created_at=now,
                expires_at=now + self.timeout,
                network_key=network_key,
            )
            replaced = self._tickets.get(user_id)
            self._tickets[user_id] = ticket

        if replaced is not None:
            logger.info(
                f"User {user_id}: {intent.kind} replaced pending {replaced.intent.kind} ticket"
            )
        else:
            logger.info(f"User {user_id}: holding {intent.kind} for confirmation")

        return PendingConfirmation(
            ticket=ticket,
            prompt=confirmation_prompt(intent, self.timeout, network_key),
            replaced=replaced,
        )

    def seconds_left(self, ticket: ConfirmationTicket) -> float:
        """Time left on a ticket's window by the gate's clock."""
        return ticket.seconds_left(self._clock())

    def pending(self, user_id: int) -> Optional[ConfirmationTicket]:
        """The user's live ticket, if any."""
        ticket = self._tickets.get(user_id)
        if ticket is None or ticket.is_expired(self._clock()):
            return None
        return ticket

    def has_ticket(self, user_id: int) -> bool:
        """True while a ticket is stored, expired or not."""
        return user_id in self._tickets

    async def resolve(self, user_id: int, text: str) -> GateOutcome:
        """Apply a reply keyword to the user's ticket.

        Returns:
            GateOutcome; on CONFIRMED ``result`` carries the handler's return value
        """
        keyword = (text or "").strip().upper()

        async with user_lock(user_id, operation="resolve"):
            ticket = self._tickets.get(user_id)

            if ticket is None:
                return GateOutcome(
                    Resolution.NO_TICKET,
                    "⏱️ No pending confirmation. The confirmation window has passed; "
                    "please send the command again.",
                )

            if ticket.is_expired(self._clock()):
                del self._tickets[user_id]
                logger.info(f"User {user_id}: ticket expired before reply")
                return GateOutcome(
                    Resolution.EXPIRED,
                    "⏱️ Confirmation expired. Please send the command again.",
                    ticket,
                )

            if keyword in CANCEL_KEYWORDS:
                del self._tickets[user_id]
                logger.info(f"User {user_id}: {ticket.intent.kind} cancelled")
                return GateOutcome(Resolution.CANCELLED, "❌ Transaction cancelled.", ticket)

            if keyword not in CONFIRM_KEYWORDS:
                return GateOutcome(
                    Resolution.UNRECOGNIZED,
                    '❓ Reply "CONFIRM" to proceed or "CANCEL" to abort.',
                    ticket,
                )

            # Cleared before execution so a second CONFIRM cannot run it twice
            del self._tickets[user_id]

        logger.info(f"User {user_id}: {ticket.intent.kind} confirmed")
        result = None
        if self.on_confirmed is not None:
            result = await self.on_confirmed(ticket)
        return GateOutcome(Resolution.CONFIRMED, "✅ Confirmed. Executing...", ticket, result)

    async def sweep(self) -> list[ConfirmationTicket]:
        """Remove expired tickets and notify their owners."""
        now = self._clock()
        candidates = [uid for uid, t in self._tickets.items() if t.is_expired(now)]
        removed: list[ConfirmationTicket] = []

        for user_id in candidates:
            async with user_lock(user_id, operation="sweep"):
                ticket = self._tickets.get(user_id)
                if ticket is None or not ticket.is_expired(self._clock()):
                    continue
                del self._tickets[user_id]
            removed.append(ticket)

        for ticket in removed:
            logger.info(f"User {ticket.user_id}: {ticket.intent.kind} ticket expired")
            if self.on_expired is not None:
                try:
                    await self.on_expired(ticket)
                except Exception as e:
                    logger.warning(f"Expiry notification failed for user {ticket.user_id}: {e}")

        return removed

    async def _sweep_loop(self) -> None:
        while True:
            await self._sleep(self.sweep_interval)
            try:
                await self.sweep()
            except Exception:
                logger.exception("Confirmation sweep failed")

    def start(self) -> None:
        """Run the expiry sweep in the background."""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._sweep_loop())
            logger.info(f"Confirmation sweeper started (every {self.sweep_interval:g}s)")

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            logger.info("Confirmation sweeper stopped")
