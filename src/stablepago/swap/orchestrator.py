"""Two-phase approve/execute swap against a Uniswap V2 router.

Exact-output only: the user names how much of the output asset they want
and the most USDC they are willing to spend.
"""

import logging
import re
import time
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Callable, Optional, Union

from stablepago.amounts import from_base_units, to_base_units
from stablepago.errors import ProviderError, SwapFailed, StablePagoError, TransactionFailed
from stablepago.networks import NetworkDescriptor
from stablepago.poller import TransactionPoller
from stablepago.progress import PhaseEvent, ProgressCallback, emit
from stablepago.swap.venues import SwapVenue, get_venue
from stablepago.wallet.base import TransactionRecord, WalletHandle, WalletProvider

logger = logging.getLogger(__name__)

APPROVE_SIGNATURE = "approve(address,uint256)"
SWAP_EXACT_OUTPUT_SIGNATURE = "swapTokensForExactTokens(uint256,uint256,address[],address,uint256)"

_KEY_NAMESPACE = uuid.UUID("3e9a6d41-0c7f-4b2a-8f55-91d7c2a0e6b3")


class SwapPhase(str, Enum):
    APPROVE = "approve"
    EXECUTE = "execute"


class SwapStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class SwapFailureKind(str, Enum):
    INSUFFICIENT_BALANCE = "insufficient_balance"
    EXPIRED = "expired"
    SLIPPAGE = "slippage"
    REVERTED = "reverted"
    UNCLASSIFIED = "unclassified"


@dataclass(frozen=True)
class FailurePattern:
    kind: SwapFailureKind
    pattern: re.Pattern
    suggestion: str


# Checked in order; the first match wins. Provider wording drifts, so this list
# needs revisiting whenever unclassified failures show up in the logs.
SWAP_FAILURE_PATTERNS: list[FailurePattern] = [
    FailurePattern(
        SwapFailureKind.INSUFFICIENT_BALANCE,
        re.compile(r"insufficient[\s_-]*(balance|funds|input|token)|transfer amount exceeds balance|INSUFFICIENT", re.I),
        "❌ Insufficient USDC balance. Check your wallet balance or try a smaller amount.",
    ),
    FailurePattern(
        SwapFailureKind.EXPIRED,
        re.compile(r"expired|deadline", re.I),
        "❌ Transaction expired. The deadline passed before the swap executed; "
        "try again with a longer deadline.",
    ),
    FailurePattern(
        SwapFailureKind.SLIPPAGE,
        re.compile(r"slippage|EXCESSIVE_INPUT_AMOUNT|price impact", re.I),
        "❌ Price moved too much. Increase the maximum USDC input, "
        "reduce the output amount or wait for calmer markets.",
    ),
    FailurePattern(
        SwapFailureKind.REVERTED,
        re.compile(r"revert", re.I),
        "❌ The swap reverted on-chain. Check pool liquidity and parameters, then retry.",
    ),
]

UNCLASSIFIED_SUGGESTION = (
    "❌ Swap execution failed. Common causes: price moved, insufficient pool "
    "liquidity or invalid swap parameters."
)


def classify_swap_failure(message: str) -> tuple[SwapFailureKind, str]:
    """Best-effort classification of an execute-phase error text."""
    for candidate in SWAP_FAILURE_PATTERNS:
        if candidate.pattern.search(message or ""):
            return candidate.kind, candidate.suggestion
    return SwapFailureKind.UNCLASSIFIED, UNCLASSIFIED_SUGGESTION


def apply_slippage(units: int, slippage_bps: int) -> int:
    """max_input * (10000 + bps) // 10000, in base units."""
    return units * (10000 + slippage_bps) // 10000


@dataclass
class SwapRequest:
    handle: WalletHandle
    network: NetworkDescriptor
    output_asset: str
    exact_output: Union[str, Decimal]
    max_input: Union[str, Decimal]
    slippage_bps: int = 100
    deadline_minutes: int = 30
    recipient: Optional[str] = None
    run_id: str = field(default_factory=lambda: str(uuid.uuid4()))


@dataclass
class SwapResult:
    run_id: str
    network_key: str
    output_asset: str
    path: list[str]
    exact_output_units: int
    max_input_units: int
    max_input_with_slippage: int
    deadline: int
    approve_tx: Optional[TransactionRecord] = None
    swap_tx: Optional[TransactionRecord] = None
    completed_phases: list[SwapPhase] = field(default_factory=list)
    status: SwapStatus = SwapStatus.IN_PROGRESS
    error: Optional[str] = None

    @property
    def max_input_display(self) -> str:
        return from_base_units(self.max_input_with_slippage)

    def to_dict(self) -> dict:
        return {
            "run_id": self.run_id,
            "network": self.network_key,
            "output_asset": self.output_asset,
            "path": self.path,
            "exact_output_units": str(self.exact_output_units),
            "max_input_units": self.max_input_units,
            "max_input_with_slippage": self.max_input_with_slippage,
            "deadline": self.deadline,
            "approve_tx": self.approve_tx.provider_tx_id if self.approve_tx else None,
            "swap_tx": self.swap_tx.provider_tx_id if self.swap_tx else None,
            "completed_phases": [p.value for p in self.completed_phases],
            "status": self.status.value,
            "error": self.error,
        }


class SwapOrchestrator:
    """Approve the router, then swapTokensForExactTokens."""

    def __init__(
        self,
        provider: WalletProvider,
        poller: TransactionPoller,
        clock: Callable[[], float] = time.time,
    ):
        self.provider = provider
        self.poller = poller
        self._clock = clock

    def _key(self, run_id: str, phase: SwapPhase) -> str:
        return str(uuid.uuid5(_KEY_NAMESPACE, f"{run_id}:{phase.value}"))

    async def _phase(
        self,
        progress: Optional[ProgressCallback],
        run_id: str,
        phase: SwapPhase,
        stage: str,
        provider_tx_id: Optional[str] = None,
    ) -> None:
        step = 1 if phase == SwapPhase.APPROVE else 2
        await emit(progress, PhaseEvent(run_id, phase.value, stage, step, 2, provider_tx_id))

    async def swap(
        self,
        request: SwapRequest,
        progress: Optional[ProgressCallback] = None,
    ) -> SwapResult:
        """Execute an exact-output swap.

        Raises:
            SwapNotSupported: Network has no router
            UnsupportedAsset: Output not in the venue allow-list
            SwapFailed: Execute phase rejected or failed (classified)
            ConfirmationTimeout: A phase is still pending
        """
        venue: SwapVenue = get_venue(request.network.key)
        output = venue.output(request.output_asset)
        path = venue.path_to(request.output_asset)

        exact_output_units = to_base_units(request.exact_output, output.decimals)
        max_input_units = to_base_units(request.max_input, venue.input_token.decimals)
        result = SwapResult(
            run_id=request.run_id,
            network_key=request.network.key,
            output_asset=output.symbol,
            path=path,
            exact_output_units=exact_output_units,
            max_input_units=max_input_units,
            max_input_with_slippage=apply_slippage(max_input_units, request.slippage_bps),
            deadline=int(self._clock()) + request.deadline_minutes * 60,
        )
        recipient = request.recipient or request.handle.address

        logger.info(
            f"[{result.run_id[:8]}] Swap on {venue.network_key}: {request.exact_output} "
            f"{output.symbol} for at most {result.max_input_display} USDC"
        )

        # Phase 1: approve
        try:
            await self._phase(progress, result.run_id, SwapPhase.APPROVE, "started")
            submitted = await self.provider.submit_contract_call(
                request.handle,
                venue.input_token.address,
                APPROVE_SIGNATURE,
                [venue.router, max_input_units],
                idempotency_key=self._key(result.run_id, SwapPhase.APPROVE),
            )
            result.approve_tx = await self.poller.await_confirmed(
                submitted.provider_tx_id, phase=SwapPhase.APPROVE.value
            )
            result.completed_phases.append(SwapPhase.APPROVE)
            await self._phase(
                progress, result.run_id, SwapPhase.APPROVE, "completed",
                result.approve_tx.provider_tx_id,
            )
        except StablePagoError as e:
            self._fail(result, e)
            raise

        # Phase 2: execute
        try:
            await self._phase(progress, result.run_id, SwapPhase.EXECUTE, "started")
            submitted = await self.provider.submit_contract_call(
                request.handle,
                venue.router,
                SWAP_EXACT_OUTPUT_SIGNATURE,
                [
                    exact_output_units,
                    result.max_input_with_slippage,
                    path,
                    recipient,
                    result.deadline,
                ],
                idempotency_key=self._key(result.run_id, SwapPhase.EXECUTE),
            )
            result.swap_tx = await self.poller.await_confirmed(
                submitted.provider_tx_id, phase=SwapPhase.EXECUTE.value
            )
        except (ProviderError, TransactionFailed) as e:
            detail = e.reason if isinstance(e, TransactionFailed) and e.reason else str(e)
            kind, suggestion = classify_swap_failure(detail)
            failure = SwapFailed(kind, suggestion, detail)
            self._fail(result, failure)
            raise failure from e
        except StablePagoError as e:
            self._fail(result, e)
            raise

        result.completed_phases.append(SwapPhase.EXECUTE)
        result.status = SwapStatus.COMPLETED
        await self._phase(
            progress, result.run_id, SwapPhase.EXECUTE, "completed",
            result.swap_tx.provider_tx_id,
        )
        return result

    def _fail(self, result: SwapResult, error: StablePagoError) -> None:
        result.status = SwapStatus.FAILED
        result.error = str(error)
        error.result = result
        logger.error(
            f"[{result.run_id[:8]}] Swap failed: {error} "
            f"(completed: {', '.join(p.value for p in result.completed_phases) or 'none'})"
        )
