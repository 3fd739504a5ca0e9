"""Transaction engine: validation, confirmation and orchestrator dispatch.

Each user has their own selected network. The registry's process-wide
current network only seeds that choice, and every orchestrator call is handed
the NetworkDescriptor explicitly.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Optional

from stablepago.bridge.attestation import AttestationClient, AttestationSource, DryRunAttestationClient
from stablepago.bridge.cctp import (
    CrossChainTransferOrchestrator,
    CrossChainTransferRequest,
    CrossChainTransferResult,
)
from stablepago.config import Settings, get_settings
from stablepago.errors import (
    AttestationTimeout,
    ConfirmationTimeout,
    DestinationWalletMissing,
    StablePagoError,
    ValidationError,
    WalletNotFound,
)
from stablepago.gate import ConfirmationGate, ConfirmationTicket, Resolution
from stablepago.intents import CrossChainTransfer, Intent, Query, QueryKind, SimpleTransfer, Swap, is_sensitive
from stablepago.networks import NetworkDescriptor, NetworkRegistry, get_registry
from stablepago.poller import PollPolicy, TransactionPoller
from stablepago.progress import PhaseEvent, ProgressCallback
from stablepago.swap.orchestrator import SwapOrchestrator, SwapRequest
from stablepago.swap.venues import find_venue
from stablepago.transfer import SimpleTransferOrchestrator
from stablepago.utils.locks import user_lock
from stablepago.validator import IntentValidator
from stablepago.wallet.base import TransactionRecord, WalletHandle, WalletProvider
from stablepago.wallet.factory import get_wallet_provider
from stablepago.wallet.store import InMemoryWalletStore, WalletStore

logger = logging.getLogger(__name__)

HELP_TEXT = (
    "🤖 StablePago commands\n\n"
    "/createWallet - create a wallet on your current network\n"
    "/balance - show your USDC balance\n"
    "/address - show your wallet address\n"
    "/walletId - show your wallet id\n"
    "/networks - list supported networks\n"
    "/network <key> - switch network\n"
    "/send <address> <amount> - send USDC\n"
    "/cctp <network> <address> <amount> - cross-chain transfer\n"
    "/swap <asset> <amount> <max_usdc> [slippage_bps] - buy a token with USDC\n"
    "/resume [run_id] - continue pending cross-chain transfers\n\n"
    "Sensitive actions ask for CONFIRM / CANCEL within 30 seconds."
)


@dataclass
class EngineReply:
    """What a channel should tell the user."""

    status: str
    message: str
    data: Optional[dict] = None
    ticket: Optional[ConfirmationTicket] = None

    @property
    def ok(self) -> bool:
        return self.status in ("ok", "completed", "confirmation_required")


@dataclass
class UserState:
    network_key: Optional[str] = None
    # run_id -> resumable cross-chain result, oldest first
    pending_bridges: dict[str, CrossChainTransferResult] = field(default_factory=dict)
    runs: list[str] = field(default_factory=list)


class TransactionEngine:
    """Routes intents from channels to orchestrators."""

    def __init__(
        self,
        provider: WalletProvider,
        registry: NetworkRegistry,
        validator: IntentValidator,
        gate: ConfirmationGate,
        poller: TransactionPoller,
        attestation_client: AttestationSource,
        store: Optional[WalletStore] = None,
        max_fee_divisor: int = 5000,
        min_finality_threshold: int = 1000,
        notifier: Any = None,
    ):
        self.provider = provider
        self.registry = registry
        self.validator = validator
        self.gate = gate
        self.poller = poller
        self.attestation_client = attestation_client
        self.store = store or InMemoryWalletStore()
        self.notifier = notifier

        self.transfers = SimpleTransferOrchestrator(provider, poller)
        self.bridge = CrossChainTransferOrchestrator(
            provider,
            attestation_client,
            poller,
            max_fee_divisor=max_fee_divisor,
            min_finality_threshold=min_finality_threshold,
        )
        self.swaps = SwapOrchestrator(provider, poller)

        self._users: dict[int, UserState] = {}
        self._runs: dict[str, dict] = {}

        self.gate.on_confirmed = self.execute
        if notifier is not None and self.gate.on_expired is None:
            self.gate.on_expired = notifier.notify_expired

    # ======================
    # Per-user network and wallets
    # ======================

    def _user(self, user_id: int) -> UserState:
        return self._users.setdefault(user_id, UserState())

    def network_for(self, user_id: int) -> NetworkDescriptor:
        """The user's selected network, seeded from the registry default."""
        state = self._user(user_id)
        if state.network_key is None:
            state.network_key = self.registry.current().key
        return self.registry.get(state.network_key)

    def select_network(self, user_id: int, key: str) -> NetworkDescriptor:
        network = self.registry.get(key)
        self._user(user_id).network_key = network.key
        logger.info(f"User {user_id} switched to {network.key}")
        return network

    def describe_networks(self, user_id: int) -> str:
        current = self.network_for(user_id)
        lines = ["🌐 Supported networks\n"]
        for network in self.registry.all():
            marker = "👉 " if network.key == current.key else "   "
            features = []
            if network.supports_bridge:
                features.append("CCTP")
            if find_venue(network.key):
                features.append("swap")
            suffix = f" [{', '.join(features)}]" if features else ""
            lines.append(f"{marker}{network.label} - {network.name}{suffix}")
        lines.append("\nSwitch with /network <key>")
        return "\n".join(lines)

    async def get_wallet(self, user_id: int, network: NetworkDescriptor) -> Optional[WalletHandle]:
        return await self.store.get(user_id, network.key)

    async def require_wallet(self, user_id: int, network: NetworkDescriptor) -> WalletHandle:
        handle = await self.get_wallet(user_id, network)
        if handle is None:
            raise WalletNotFound(network.key)
        return handle

    async def ensure_wallet(
        self,
        user_id: int,
        network: Optional[NetworkDescriptor] = None,
    ) -> tuple[WalletHandle, bool]:
        """Return the user's wallet on a network, creating it on first use.

        Returns:
            (handle, created)
        """
        network = network or self.network_for(user_id)
        async with user_lock(user_id, operation="create_wallet"):
            handle = await self.get_wallet(user_id, network)
            if handle is not None:
                return handle, False

            handle = await self.provider.create_wallet(network)
            await self.store.put(user_id, handle)
        logger.info(f"User {user_id}: created wallet {handle.wallet_id} on {network.key}")
        return handle, True

    async def balance(self, user_id: int) -> tuple[NetworkDescriptor, Decimal]:
        network = self.network_for(user_id)
        handle = await self.require_wallet(user_id, network)
        token = network.stable_token_id or network.stable_token_address
        return network, await self.provider.get_balance(handle, token)

    # ======================
    # Intake
    # ======================

    async def submit(self, user_id: int, intent: Intent, chat_context: Any = None) -> EngineReply:
        """Validate an intent, then hold it for confirmation or answer it."""
        network = self.network_for(user_id)
        try:
            self.validator.validate(intent, network.key)
            if is_sensitive(intent):
                await self.require_wallet(user_id, network)
        except (ValidationError, WalletNotFound) as e:
            logger.info(f"User {user_id}: rejected {intent.kind}: {e}")
            return EngineReply("rejected", e.user_message)

        if not is_sensitive(intent):
            return await self.answer_query(user_id, intent)

        pending = await self.gate.request(user_id, intent, chat_context, network.key)
        message = pending.prompt
        if pending.replaced is not None:
            message = (
                f"ℹ️ Your previous pending {pending.replaced.intent.kind.replace('_', ' ')} "
                f"was replaced by this one.\n\n{message}"
            )
        return EngineReply("confirmation_required", message, ticket=pending.ticket)

    async def resolve(self, user_id: int, text: str) -> EngineReply:
        """Feed a CONFIRM/CANCEL reply to the gate."""
        outcome = await self.gate.resolve(user_id, text)
        if outcome.resolution == Resolution.CONFIRMED and isinstance(outcome.result, EngineReply):
            return outcome.result
        return EngineReply(outcome.resolution.value, outcome.message, ticket=outcome.ticket)

    async def answer_query(self, user_id: int, query: Query) -> EngineReply:
        try:
            return await self._answer_query(user_id, query)
        except StablePagoError as e:
            return EngineReply("rejected", e.user_message)

    async def _answer_query(self, user_id: int, query: Query) -> EngineReply:
        kind = query.query

        if kind == QueryKind.HELP:
            return EngineReply("ok", HELP_TEXT)

        if kind == QueryKind.NETWORKS:
            return EngineReply("ok", self.describe_networks(user_id))

        if kind == QueryKind.SWITCH_NETWORK:
            network = self.select_network(user_id, query.network or "")
            return EngineReply(
                "ok",
                f"🔄 Switched to {network.label}",
                data={"network": network.key},
            )

        network = self.network_for(user_id)

        if kind == QueryKind.CREATE_WALLET:
            handle, created = await self.ensure_wallet(user_id, network)
            headline = "✅ Wallet created" if created else "ℹ️ You already have a wallet"
            return EngineReply(
                "ok",
                f"{headline} on {network.label}\n\nAddress: {handle.address}\nWallet ID: {handle.wallet_id}",
                data={"wallet_id": handle.wallet_id, "address": handle.address, "created": created},
            )

        handle = await self.require_wallet(user_id, network)

        if kind == QueryKind.BALANCE:
            _, amount = await self.balance(user_id)
            return EngineReply(
                "ok",
                f"💰 Balance on {network.label}: {amount} {network.stable_symbol}",
                data={"network": network.key, "balance": str(amount)},
            )

        if kind == QueryKind.ADDRESS:
            return EngineReply(
                "ok",
                f"📍 Your {network.label} address:\n{handle.address}",
                data={"address": handle.address},
            )

        return EngineReply(
            "ok",
            f"🆔 Your {network.label} wallet ID:\n{handle.wallet_id}",
            data={"wallet_id": handle.wallet_id},
        )

    # ======================
    # Execution
    # ======================

    def _progress_for(self, chat_context: Any) -> Optional[ProgressCallback]:
        if self.notifier is None or chat_context is None:
            return None

        async def report(event: PhaseEvent) -> None:
            await self.notifier.notify_progress(chat_context, event)

        return report

    def _remember(self, user_id: int, run_id: str, data: dict) -> None:
        self._runs[run_id] = data
        runs = self._user(user_id).runs
        if run_id not in runs:
            runs.append(run_id)

    async def execute(self, ticket: ConfirmationTicket) -> EngineReply:
        """Run a confirmed intent. Installed as the gate's confirmed handler."""
        intent = ticket.intent
        user_id = ticket.user_id
        network = self.registry.get(ticket.network_key or self.network_for(user_id).key)
        progress = self._progress_for(ticket.chat_context)

        logger.info(f"User {user_id}: executing {intent.kind} on {network.key}")
        try:
            if isinstance(intent, SimpleTransfer):
                return await self._execute_transfer(user_id, network, intent, ticket.ticket_id)
            if isinstance(intent, CrossChainTransfer):
                return await self._execute_bridge(user_id, network, intent, ticket.ticket_id, progress)
            if isinstance(intent, Swap):
                return await self._execute_swap(user_id, network, intent, ticket.ticket_id, progress)
        except (AttestationTimeout, ConfirmationTimeout) as e:
            message = e.user_message
            if isinstance(e.result, CrossChainTransferResult) and e.result.is_resumable:
                self._user(user_id).pending_bridges[e.result.run_id] = e.result
                self._remember(user_id, e.result.run_id, e.result.to_dict())
                message += f"\n\nRun /resume {e.result.run_id} to continue."
            return EngineReply("pending", message, data=_result_data(e))
        except StablePagoError as e:
            data = _result_data(e)
            if data and data.get("run_id"):
                self._remember(user_id, data["run_id"], data)
            return EngineReply("failed", e.user_message, data=data)

        return EngineReply("rejected", f"Nothing to execute for {intent.kind}")

    async def _execute_transfer(
        self,
        user_id: int,
        network: NetworkDescriptor,
        intent: SimpleTransfer,
        run_id: str,
    ) -> EngineReply:
        handle = await self.require_wallet(user_id, network)
        result = await self.transfers.send(
            handle, network, intent.destination_address, intent.amount, idempotency_key=run_id
        )
        data = {"run_id": run_id, **result.to_dict()}
        self._remember(user_id, run_id, data)
        return EngineReply(
            "completed",
            f"✅ Sent {intent.amount} {intent.asset} to {intent.destination_address}\n"
            f"Tx: {result.tx.tx_hash or result.tx.provider_tx_id}",
            data=data,
        )

    async def _execute_bridge(
        self,
        user_id: int,
        network: NetworkDescriptor,
        intent: CrossChainTransfer,
        run_id: str,
        progress: Optional[ProgressCallback],
    ) -> EngineReply:
        destination = self.registry.get(intent.destination_network)
        request = CrossChainTransferRequest(
            source_handle=await self.require_wallet(user_id, network),
            source_network=network,
            destination_network=destination,
            destination_address=intent.destination_address,
            amount=intent.amount,
            destination_handle=await self.get_wallet(user_id, destination),
            run_id=run_id,
        )
        result = await self.bridge.transfer(request, progress)
        self._remember(user_id, run_id, result.to_dict())
        return EngineReply(
            "completed",
            f"✅ Cross-chain transfer complete\n\n"
            f"{intent.amount} USDC {network.key} → {destination.key}\n"
            f"To: {intent.destination_address}",
            data=result.to_dict(),
        )

    async def _execute_swap(
        self,
        user_id: int,
        network: NetworkDescriptor,
        intent: Swap,
        run_id: str,
        progress: Optional[ProgressCallback],
    ) -> EngineReply:
        request = SwapRequest(
            handle=await self.require_wallet(user_id, network),
            network=network,
            output_asset=intent.output_asset,
            exact_output=intent.exact_output,
            max_input=intent.max_input,
            slippage_bps=intent.slippage_bps,
            deadline_minutes=intent.deadline_minutes,
            run_id=run_id,
        )
        result = await self.swaps.swap(request, progress)
        self._remember(user_id, run_id, result.to_dict())
        return EngineReply(
            "completed",
            f"✅ Swap complete\n\n"
            f"Bought {intent.exact_output} {result.output_asset} "
            f"for at most {result.max_input_display} USDC on {network.key}",
            data=result.to_dict(),
        )

    def pending_bridges(self, user_id: int) -> list[CrossChainTransferResult]:
        """The user's resumable cross-chain runs, oldest first."""
        return list(self._user(user_id).pending_bridges.values())

    async def resume(
        self,
        user_id: int,
        run_id: Optional[str] = None,
        chat_context: Any = None,
    ) -> EngineReply:
        """Continue pending cross-chain transfers.

        Args:
            user_id: Channel user id
            run_id: Resume only this run; every pending run when omitted
            chat_context: Where progress events go

        Returns:
            The run's reply, or for several runs a combined reply whose
            ``data["runs"]`` lists each result
        """
        state = self._user(user_id)
        if run_id is not None:
            if run_id not in state.pending_bridges:
                return EngineReply(
                    "rejected", f"ℹ️ No cross-chain transfer {run_id} is waiting to be resumed."
                )
            run_ids = [run_id]
        else:
            run_ids = list(state.pending_bridges)

        if not run_ids:
            return EngineReply("rejected", "ℹ️ No cross-chain transfer is waiting to be resumed.")

        replies = [await self._resume_run(user_id, rid, chat_context) for rid in run_ids]
        if len(replies) == 1:
            return replies[0]

        statuses = {reply.status for reply in replies}
        status = next(s for s in ("pending", "rejected", "failed", "completed") if s in statuses)
        return EngineReply(
            status,
            "\n\n".join(reply.message for reply in replies),
            data={"runs": [reply.data for reply in replies]},
        )

    async def _resume_run(self, user_id: int, run_id: str, chat_context: Any) -> EngineReply:
        state = self._user(user_id)
        pending = state.pending_bridges[run_id]
        destination_handle = await self.get_wallet(user_id, pending.destination_network)
        try:
            result = await self.bridge.resume(
                pending, destination_handle, self._progress_for(chat_context)
            )
        except (AttestationTimeout, ConfirmationTimeout) as e:
            self._remember(user_id, run_id, pending.to_dict())
            return EngineReply(
                "pending", f"[{run_id}] {e.user_message}", data=_result_data(e)
            )
        except DestinationWalletMissing as e:
            # Stays pending until the destination wallet exists
            return EngineReply("rejected", f"[{run_id}] {e.user_message}", data=pending.to_dict())
        except StablePagoError as e:
            del state.pending_bridges[run_id]
            self._remember(user_id, run_id, pending.to_dict())
            return EngineReply("failed", f"[{run_id}] {e.user_message}", data=_result_data(e))

        del state.pending_bridges[run_id]
        self._remember(user_id, run_id, result.to_dict())
        return EngineReply(
            "completed",
            f"✅ Cross-chain transfer {run_id} complete",
            data=result.to_dict(),
        )

    # ======================
    # Status
    # ======================

    def get_run(self, run_id: str) -> Optional[dict]:
        return self._runs.get(run_id)

    async def transaction_status(self, provider_tx_id: str) -> TransactionRecord:
        """Single status read; never re-submits anything."""
        return await self.provider.get_status(provider_tx_id)


def _result_data(error: StablePagoError) -> Optional[dict]:
    result = getattr(error, "result", None)
    return result.to_dict() if result is not None and hasattr(result, "to_dict") else None


def build_engine(
    settings: Optional[Settings] = None,
    provider: Optional[WalletProvider] = None,
    attestation_client: Optional[AttestationSource] = None,
    registry: Optional[NetworkRegistry] = None,
    notifier: Any = None,
    sleep=asyncio.sleep,
) -> TransactionEngine:
    """Wire an engine from settings."""
    settings = settings or get_settings()
    registry = registry or get_registry()
    provider = provider or get_wallet_provider()

    if attestation_client is None:
        if provider.name == "dryrun":
            attestation_client = DryRunAttestationClient(
                max_attempts=settings.attestation_max_attempts,
                interval=settings.attestation_interval,
                sleep=sleep,
            )
        else:
            attestation_client = AttestationClient(
                base_url=settings.attestation_api_url,
                max_attempts=settings.attestation_max_attempts,
                interval=settings.attestation_interval,
                sleep=sleep,
            )

    gate = ConfirmationGate(
        timeout=settings.confirmation_timeout_seconds,
        sweep_interval=settings.confirmation_sweep_interval_seconds,
    )
    return TransactionEngine(
        provider=provider,
        registry=registry,
        validator=IntentValidator.from_settings(registry, settings),
        gate=gate,
        poller=TransactionPoller(provider, PollPolicy.from_settings(settings), sleep=sleep),
        attestation_client=attestation_client,
        max_fee_divisor=settings.burn_max_fee_divisor,
        min_finality_threshold=settings.min_finality_threshold,
        notifier=notifier,
    )
