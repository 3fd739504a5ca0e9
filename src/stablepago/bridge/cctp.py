"""CCTP V2 cross-chain transfer orchestrator.

Flow:
1. Approve the TokenMessenger to spend USDC on the source network
2. depositForBurn on the source network, capturing the burn tx hash
3. Wait for Circle's attestation of that burn
4. receiveMessage on the destination MessageTransmitter (mint)

Phases 1 and 2 have irreversible on-chain effects. Every submitted
transaction is recorded on the result before it is polled, so a confirmation
or attestation timeout leaves the run PENDING with the in-flight record, and
``resume`` continues from the first unfinished phase by re-polling what was
already submitted. A phase is only ever submitted once per run.
"""

import logging
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Optional, Union

from stablepago.amounts import to_base_units
from stablepago.bridge.attestation import Attestation, AttestationSource
from stablepago.errors import (
    AttestationTimeout,
    BridgeNotSupported,
    ConfirmationTimeout,
    DestinationWalletMissing,
    ProviderError,
    StablePagoError,
)
from stablepago.networks import NetworkDescriptor
from stablepago.poller import TransactionPoller
from stablepago.progress import PhaseEvent, ProgressCallback, emit
from stablepago.wallet.base import TransactionRecord, WalletHandle, WalletProvider

logger = logging.getLogger(__name__)

APPROVE_SIGNATURE = "approve(address,uint256)"
DEPOSIT_FOR_BURN_SIGNATURE = "depositForBurn(uint256,uint32,bytes32,address,bytes32,uint256,uint32)"
RECEIVE_MESSAGE_SIGNATURE = "receiveMessage(bytes,bytes)"

ZERO_BYTES32 = "0x" + "00" * 32

_KEY_NAMESPACE = uuid.UUID("7b0c1f2e-5d34-4c8e-9a61-3f2d8e4b9c10")


class TransferPhase(str, Enum):
    APPROVE = "approve"
    BURN = "burn"
    ATTESTATION = "attestation"
    RECEIVE = "receive"


class TransferStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    PENDING = "pending"  # a phase timed out; resumable
    FAILED = "failed"


PHASE_ORDER = [
    TransferPhase.APPROVE,
    TransferPhase.BURN,
    TransferPhase.ATTESTATION,
    TransferPhase.RECEIVE,
]


def to_bytes32(address: str) -> str:
    """Left-pad a 20-byte EVM address to a bytes32 hex string."""
    return "0x" + address[2:].lower().zfill(64)


def phase_key(run_id: str, phase: TransferPhase) -> str:
    """Deterministic idempotency key for one phase of one run."""
    return str(uuid.uuid5(_KEY_NAMESPACE, f"{run_id}:{phase.value}"))


@dataclass
class CrossChainTransferRequest:
    """Validated inputs of a cross-chain transfer."""

    source_handle: WalletHandle
    source_network: NetworkDescriptor
    destination_network: NetworkDescriptor
    destination_address: str
    amount: Union[str, Decimal]
    destination_handle: Optional[WalletHandle] = None
    run_id: str = field(default_factory=lambda: str(uuid.uuid4()))


@dataclass
class CrossChainTransferResult:
    """Outcome of a cross-chain run, complete or partial.

    Transaction records are set as soon as a phase is submitted; a phase is
    only listed in ``completed_phases`` once its record is confirmed.
    """

    run_id: str
    source_network: NetworkDescriptor
    destination_network: NetworkDescriptor
    destination_address: str
    amount_units: int
    source_handle: Optional[WalletHandle] = None
    approve_tx: Optional[TransactionRecord] = None
    burn_tx: Optional[TransactionRecord] = None
    burn_tx_hash: Optional[str] = None
    attestation: Optional[Attestation] = None
    receive_tx: Optional[TransactionRecord] = None
    completed_phases: list[TransferPhase] = field(default_factory=list)
    status: TransferStatus = TransferStatus.IN_PROGRESS
    error: Optional[str] = None

    @property
    def approve_tx_id(self) -> Optional[str]:
        return self.approve_tx.provider_tx_id if self.approve_tx else None

    @property
    def burn_tx_id(self) -> Optional[str]:
        return self.burn_tx.provider_tx_id if self.burn_tx else None

    @property
    def receive_tx_id(self) -> Optional[str]:
        return self.receive_tx.provider_tx_id if self.receive_tx else None

    @property
    def is_resumable(self) -> bool:
        return self.status == TransferStatus.PENDING

    def to_dict(self) -> dict:
        return {
            "run_id": self.run_id,
            "source_network": self.source_network.key,
            "destination_network": self.destination_network.key,
            "destination_address": self.destination_address,
            "amount_units": self.amount_units,
            "approve_tx": self.approve_tx_id,
            "burn_tx": self.burn_tx_id,
            "burn_tx_hash": self.burn_tx_hash,
            "receive_tx": self.receive_tx_id,
            "completed_phases": [p.value for p in self.completed_phases],
            "status": self.status.value,
            "error": self.error,
        }


class CrossChainTransferOrchestrator:
    """Drives the four CCTP phases through a wallet provider."""

    def __init__(
        self,
        provider: WalletProvider,
        attestation_client: AttestationSource,
        poller: TransactionPoller,
        max_fee_divisor: int = 5000,
        min_finality_threshold: int = 1000,
    ):
        self.provider = provider
        self.attestation_client = attestation_client
        self.poller = poller
        self.max_fee_divisor = max_fee_divisor
        self.min_finality_threshold = min_finality_threshold

    def compute_max_fee(self, amount_units: int) -> int:
        """Relay fee ceiling as a fixed fraction of the amount (0.02% by default)."""
        if self.max_fee_divisor <= 0:
            return 0
        return amount_units // self.max_fee_divisor

    async def _phase(
        self,
        progress: Optional[ProgressCallback],
        result: CrossChainTransferResult,
        phase: TransferPhase,
        stage: str,
        provider_tx_id: Optional[str] = None,
    ) -> None:
        await emit(
            progress,
            PhaseEvent(
                run_id=result.run_id,
                phase=phase.value,
                stage=stage,
                step=PHASE_ORDER.index(phase) + 1,
                total=len(PHASE_ORDER),
                provider_tx_id=provider_tx_id,
            ),
        )

    async def transfer(
        self,
        request: CrossChainTransferRequest,
        progress: Optional[ProgressCallback] = None,
    ) -> CrossChainTransferResult:
        """Run a cross-chain transfer from the approve phase.

        Raises:
            DestinationWalletMissing: No wallet on the destination network
            BridgeNotSupported: Either network lacks CCTP contracts
            ConfirmationTimeout: A phase is still unconfirmed; ``.result`` is
                PENDING and can be resumed
            AttestationTimeout: Burned but not attested yet; ``.result`` is
                PENDING and can be resumed
            StablePagoError: Any other phase failure, with ``.result`` set to
                the partial result listing completed phases
        """
        source = request.source_network
        destination = request.destination_network

        if request.destination_handle is None:
            raise DestinationWalletMissing(destination.key)
        for network in (source, destination):
            if network.bridge is None:
                raise BridgeNotSupported(network.key)

        amount_units = to_base_units(request.amount, source.stable_decimals)
        result = CrossChainTransferResult(
            run_id=request.run_id,
            source_network=source,
            destination_network=destination,
            destination_address=request.destination_address,
            amount_units=amount_units,
            source_handle=request.source_handle,
        )

        logger.info(
            f"[{result.run_id[:8]}] CCTP {amount_units} units {source.key} -> "
            f"{destination.key} ({request.destination_address})"
        )
        return await self._advance(result, request.destination_handle, progress)

    async def resume(
        self,
        result: CrossChainTransferResult,
        destination_handle: Optional[WalletHandle],
        progress: Optional[ProgressCallback] = None,
    ) -> CrossChainTransferResult:
        """Continue a pending transfer from its first unfinished phase.

        Transactions already submitted are polled again, never re-submitted.

        Raises:
            ValueError: Nothing was submitted yet, or the run already failed
        """
        if TransferPhase.RECEIVE in result.completed_phases:
            return result
        if result.approve_tx is None or result.status == TransferStatus.FAILED:
            raise ValueError(f"Transfer {result.run_id} has nothing in flight to resume")
        if destination_handle is None:
            raise DestinationWalletMissing(result.destination_network.key)

        done = ", ".join(p.value for p in result.completed_phases) or "none"
        logger.info(f"[{result.run_id[:8]}] Resuming CCTP (completed: {done})")
        result.status = TransferStatus.IN_PROGRESS
        result.error = None
        return await self._advance(result, destination_handle, progress)

    async def _advance(
        self,
        result: CrossChainTransferResult,
        destination_handle: WalletHandle,
        progress: Optional[ProgressCallback],
    ) -> CrossChainTransferResult:
        source = result.source_network
        destination = result.destination_network
        completed = result.completed_phases

        try:
            # Phase 1: approve
            if TransferPhase.APPROVE not in completed:
                if result.approve_tx is None:
                    await self._phase(progress, result, TransferPhase.APPROVE, "started")
                    result.approve_tx = await self.provider.submit_contract_call(
                        result.source_handle,
                        source.stable_token_address,
                        APPROVE_SIGNATURE,
                        [source.bridge.token_messenger, result.amount_units],
                        idempotency_key=phase_key(result.run_id, TransferPhase.APPROVE),
                    )
                result.approve_tx = await self.poller.await_confirmed(
                    result.approve_tx.provider_tx_id, phase=TransferPhase.APPROVE.value
                )
                completed.append(TransferPhase.APPROVE)
                await self._phase(
                    progress, result, TransferPhase.APPROVE, "completed", result.approve_tx_id
                )

            # Phase 2: burn
            if TransferPhase.BURN not in completed:
                if result.burn_tx is None:
                    await self._phase(progress, result, TransferPhase.BURN, "started")
                    result.burn_tx = await self.provider.submit_contract_call(
                        result.source_handle,
                        source.bridge.token_messenger,
                        DEPOSIT_FOR_BURN_SIGNATURE,
                        [
                            result.amount_units,
                            destination.bridge.domain,
                            to_bytes32(result.destination_address),
                            source.stable_token_address,
                            ZERO_BYTES32,
                            self.compute_max_fee(result.amount_units),
                            self.min_finality_threshold,
                        ],
                        idempotency_key=phase_key(result.run_id, TransferPhase.BURN),
                    )
                result.burn_tx = await self.poller.await_confirmed(
                    result.burn_tx.provider_tx_id,
                    capture_tx_hash=True,
                    phase=TransferPhase.BURN.value,
                )
                result.burn_tx_hash = result.burn_tx.tx_hash
                completed.append(TransferPhase.BURN)
                await self._phase(
                    progress, result, TransferPhase.BURN, "completed", result.burn_tx_id
                )

            # Phase 3: attestation
            if TransferPhase.ATTESTATION not in completed:
                await self._phase(progress, result, TransferPhase.ATTESTATION, "started")
                result.attestation = await self.attestation_client.wait_for_attestation(
                    source.bridge.domain, result.burn_tx_hash
                )
                completed.append(TransferPhase.ATTESTATION)
                await self._phase(progress, result, TransferPhase.ATTESTATION, "completed")

            attestation = result.attestation
            if not attestation.signature or (
                attestation.tx_hash.lower() != result.burn_tx_hash.lower()
            ):
                raise ProviderError(
                    f"Attestation does not match burn {result.burn_tx_hash}"
                )

            # Phase 4: receive (mint)
            if result.receive_tx is None:
                await self._phase(progress, result, TransferPhase.RECEIVE, "started")
                result.receive_tx = await self.provider.submit_contract_call(
                    destination_handle,
                    destination.bridge.message_transmitter,
                    RECEIVE_MESSAGE_SIGNATURE,
                    [attestation.message, attestation.signature],
                    idempotency_key=phase_key(result.run_id, TransferPhase.RECEIVE),
                )
            result.receive_tx = await self.poller.await_confirmed(
                result.receive_tx.provider_tx_id, phase=TransferPhase.RECEIVE.value
            )
            completed.append(TransferPhase.RECEIVE)
            await self._phase(
                progress, result, TransferPhase.RECEIVE, "completed", result.receive_tx_id
            )
        except (AttestationTimeout, ConfirmationTimeout) as e:
            result.status = TransferStatus.PENDING
            result.error = str(e)
            e.result = result
            done = ", ".join(p.value for p in completed) or "none"
            logger.warning(f"[{result.run_id[:8]}] CCTP pending: {e} (completed: {done}); resumable")
            raise
        except StablePagoError as e:
            self._fail(result, e)
            raise

        result.status = TransferStatus.COMPLETED
        logger.info(f"[{result.run_id[:8]}] CCTP transfer completed")
        return result

    def _fail(self, result: CrossChainTransferResult, error: StablePagoError) -> None:
        result.status = TransferStatus.FAILED
        result.error = str(error)
        error.result = result
        done = ", ".join(p.value for p in result.completed_phases) or "none"
        logger.error(f"[{result.run_id[:8]}] CCTP failed: {error} (completed: {done})")
