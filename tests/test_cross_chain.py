"""Tests for the CCTP burn/attest/mint orchestrator."""

import pytest

from stablepago.bridge.attestation import Attestation, AttestationSource, DryRunAttestationClient
from stablepago.bridge.cctp import (
    APPROVE_SIGNATURE,
    DEPOSIT_FOR_BURN_SIGNATURE,
    PHASE_ORDER,
    RECEIVE_MESSAGE_SIGNATURE,
    ZERO_BYTES32,
    CrossChainTransferOrchestrator,
    CrossChainTransferRequest,
    CrossChainTransferResult,
    TransferPhase,
    TransferStatus,
    phase_key,
    to_bytes32,
)
from stablepago.errors import (
    AttestationTimeout,
    BridgeNotSupported,
    ConfirmationTimeout,
    DestinationWalletMissing,
    ProviderError,
    TransactionFailed,
)
from stablepago.networks import NETWORKS, TESTNET_MESSAGE_TRANSMITTER, TESTNET_TOKEN_MESSENGER
from stablepago.poller import TransactionPoller
from stablepago.wallet.dryrun import DryRunWalletProvider

SOURCE = NETWORKS["BASE-SEPOLIA"]
DESTINATION = NETWORKS["ARB-SEPOLIA"]


class WrongBurnAttestation(AttestationSource):
    """Returns a signed attestation for some other burn."""

    async def fetch_attestation(self, source_domain, tx_hash):
        return Attestation(source_domain, "0x" + "de" * 32, "0xmessage", "0xsignature")


async def _wallets(provider):
    source = await provider.create_wallet(SOURCE)
    destination = await provider.create_wallet(DESTINATION)
    return source, destination


def _request(source, destination, amount="10.5", destination_network=DESTINATION):
    return CrossChainTransferRequest(
        source_handle=source,
        source_network=SOURCE,
        destination_network=destination_network,
        destination_address=destination.address,
        amount=amount,
        destination_handle=destination,
        run_id="run-1",
    )


class TestHelpers:
    """Tests for encoding helpers."""

    def test_to_bytes32(self):
        encoded = to_bytes32("0x" + "AB" * 20)

        assert encoded == "0x" + "0" * 24 + "ab" * 20
        assert len(encoded) == 66

    def test_phase_keys_are_deterministic(self):
        assert phase_key("run-1", TransferPhase.BURN) == phase_key("run-1", TransferPhase.BURN)
        assert phase_key("run-1", TransferPhase.BURN) != phase_key("run-1", TransferPhase.APPROVE)
        assert phase_key("run-1", TransferPhase.BURN) != phase_key("run-2", TransferPhase.BURN)

    def test_max_fee(self, provider, attestation_client, poller):
        orchestrator = CrossChainTransferOrchestrator(provider, attestation_client, poller)

        assert orchestrator.compute_max_fee(10_000_000) == 2_000
        assert CrossChainTransferOrchestrator(
            provider, attestation_client, poller, max_fee_divisor=0
        ).compute_max_fee(10_000_000) == 0


class TestTransfer:
    """Tests for a full cross-chain run."""

    @pytest.mark.asyncio
    async def test_happy_path(self, provider, attestation_client, poller):
        source, destination = await _wallets(provider)
        orchestrator = CrossChainTransferOrchestrator(provider, attestation_client, poller)
        events = []

        async def progress(event):
            events.append((event.phase, event.stage))

        result = await orchestrator.transfer(_request(source, destination), progress)

        assert result.status == TransferStatus.COMPLETED
        assert result.completed_phases == PHASE_ORDER
        assert [c.function_signature for c in provider.calls] == [
            APPROVE_SIGNATURE,
            DEPOSIT_FOR_BURN_SIGNATURE,
            RECEIVE_MESSAGE_SIGNATURE,
        ]

        approve, burn, receive = provider.calls
        assert approve.wallet_id == source.wallet_id
        assert approve.contract == SOURCE.stable_token_address
        assert approve.args == [TESTNET_TOKEN_MESSENGER, 10_500_000]

        assert burn.contract == TESTNET_TOKEN_MESSENGER
        assert burn.args == [
            10_500_000,
            3,
            to_bytes32(destination.address),
            SOURCE.stable_token_address,
            ZERO_BYTES32,
            2_100,
            1000,
        ]

        assert receive.wallet_id == destination.wallet_id
        assert receive.contract == TESTNET_MESSAGE_TRANSMITTER
        assert receive.args == [result.attestation.message, result.attestation.signature]
        assert attestation_client.lookups == [(6, result.burn_tx_hash)]

        assert events == [
            ("approve", "started"), ("approve", "completed"),
            ("burn", "started"), ("burn", "completed"),
            ("attestation", "started"), ("attestation", "completed"),
            ("receive", "started"), ("receive", "completed"),
        ]

    @pytest.mark.asyncio
    async def test_progress_failure_does_not_abort(self, provider, attestation_client, poller):
        source, destination = await _wallets(provider)
        orchestrator = CrossChainTransferOrchestrator(provider, attestation_client, poller)

        async def broken(event):
            raise RuntimeError("chat gone")

        result = await orchestrator.transfer(_request(source, destination), broken)

        assert result.status == TransferStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_missing_destination_wallet(self, provider, attestation_client, poller):
        source, destination = await _wallets(provider)
        request = _request(source, destination)
        request.destination_handle = None
        orchestrator = CrossChainTransferOrchestrator(provider, attestation_client, poller)

        with pytest.raises(DestinationWalletMissing):
            await orchestrator.transfer(request)

        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_destination_without_bridge(self, provider, attestation_client, poller):
        source, destination = await _wallets(provider)
        request = _request(source, destination, destination_network=NETWORKS["SOL-DEVNET"])
        orchestrator = CrossChainTransferOrchestrator(provider, attestation_client, poller)

        with pytest.raises(BridgeNotSupported):
            await orchestrator.transfer(request)

        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_burn_failure_stops_before_attestation(self, attestation_client, sleeper):
        provider = DryRunWalletProvider(fail_calls={DEPOSIT_FOR_BURN_SIGNATURE: "execution reverted"})
        source, destination = await _wallets(provider)
        orchestrator = CrossChainTransferOrchestrator(
            provider, attestation_client, TransactionPoller(provider, sleep=sleeper)
        )

        with pytest.raises(TransactionFailed) as exc:
            await orchestrator.transfer(_request(source, destination))

        result = exc.value.result
        assert result.status == TransferStatus.FAILED
        assert result.completed_phases == [TransferPhase.APPROVE]
        assert attestation_client.lookups == []

    @pytest.mark.asyncio
    async def test_attestation_for_other_burn_is_refused(self, provider, poller):
        source, destination = await _wallets(provider)
        orchestrator = CrossChainTransferOrchestrator(provider, WrongBurnAttestation(), poller)

        with pytest.raises(ProviderError) as exc:
            await orchestrator.transfer(_request(source, destination))

        assert exc.value.result.status == TransferStatus.FAILED
        assert provider.contract_calls(RECEIVE_MESSAGE_SIGNATURE) == []


class TestAttestationTimeoutAndResume:
    """Tests for the burned-but-unattested path."""

    @pytest.mark.asyncio
    async def test_timeout_leaves_resumable_partial_result(self, provider, poller, sleeper):
        source, destination = await _wallets(provider)
        attestor = DryRunAttestationClient(ready_after=None, max_attempts=3, sleep=sleeper)
        orchestrator = CrossChainTransferOrchestrator(provider, attestor, poller)

        with pytest.raises(AttestationTimeout) as exc:
            await orchestrator.transfer(_request(source, destination))

        result = exc.value.result
        assert result.status == TransferStatus.PENDING
        assert result.completed_phases == [TransferPhase.APPROVE, TransferPhase.BURN]
        assert result.approve_tx_id and result.burn_tx_id
        assert result.burn_tx_hash
        assert result.receive_tx is None
        assert provider.contract_calls(RECEIVE_MESSAGE_SIGNATURE) == []

        # Attestation arrives later; resume must not burn again
        attestor.ready_after = 1
        resumed = await orchestrator.resume(result, destination)

        assert resumed.status == TransferStatus.COMPLETED
        assert resumed.completed_phases == PHASE_ORDER
        assert len(provider.contract_calls(APPROVE_SIGNATURE)) == 1
        assert len(provider.contract_calls(DEPOSIT_FOR_BURN_SIGNATURE)) == 1
        assert len(provider.contract_calls(RECEIVE_MESSAGE_SIGNATURE)) == 1

    @pytest.mark.asyncio
    async def test_resume_completed_run_is_noop(self, provider, attestation_client, poller):
        source, destination = await _wallets(provider)
        orchestrator = CrossChainTransferOrchestrator(provider, attestation_client, poller)
        result = await orchestrator.transfer(_request(source, destination))
        calls = len(provider.calls)

        assert await orchestrator.resume(result, destination) is result
        assert len(provider.calls) == calls

    @pytest.mark.asyncio
    async def test_resume_without_burn(self, provider, attestation_client, poller):
        source, destination = await _wallets(provider)
        orchestrator = CrossChainTransferOrchestrator(provider, attestation_client, poller)
        result = CrossChainTransferResult(
            run_id="run-1",
            source_network=SOURCE,
            destination_network=DESTINATION,
            destination_address=destination.address,
            amount_units=1,
        )

        with pytest.raises(ValueError):
            await orchestrator.resume(result, destination)

        assert provider.calls == []


class TestConfirmationTimeoutAndResume:
    """Tests for phases whose transaction is still unconfirmed after polling."""

    @pytest.mark.asyncio
    async def test_unconfirmed_burn_is_pending_and_keeps_its_record(self, attestation_client, sleeper):
        provider = DryRunWalletProvider(pending_calls={DEPOSIT_FOR_BURN_SIGNATURE})
        source, destination = await _wallets(provider)
        orchestrator = CrossChainTransferOrchestrator(
            provider, attestation_client, TransactionPoller(provider, sleep=sleeper)
        )

        with pytest.raises(ConfirmationTimeout) as exc:
            await orchestrator.transfer(_request(source, destination))

        result = exc.value.result
        burn = provider.contract_calls(DEPOSIT_FOR_BURN_SIGNATURE)[0]
        assert result.status == TransferStatus.PENDING
        assert result.is_resumable
        assert result.completed_phases == [TransferPhase.APPROVE]
        assert result.burn_tx_id == burn.provider_tx_id
        assert result.burn_tx_hash is None
        assert result.to_dict()["burn_tx"] == burn.provider_tx_id
        assert attestation_client.lookups == []

        # The burn lands later; resume polls the same burn instead of burning again
        provider.pending_calls.clear()
        resumed = await orchestrator.resume(result, destination)

        assert resumed.status == TransferStatus.COMPLETED
        assert resumed.completed_phases == PHASE_ORDER
        assert resumed.burn_tx_id == burn.provider_tx_id
        assert resumed.burn_tx_hash
        assert attestation_client.lookups == [(6, resumed.burn_tx_hash)]
        assert len(provider.contract_calls(APPROVE_SIGNATURE)) == 1
        assert len(provider.contract_calls(DEPOSIT_FOR_BURN_SIGNATURE)) == 1
        assert len(provider.contract_calls(RECEIVE_MESSAGE_SIGNATURE)) == 1

    @pytest.mark.asyncio
    async def test_unconfirmed_approve_resumes_into_a_single_burn(self, attestation_client, sleeper):
        provider = DryRunWalletProvider(pending_calls={APPROVE_SIGNATURE})
        source, destination = await _wallets(provider)
        orchestrator = CrossChainTransferOrchestrator(
            provider, attestation_client, TransactionPoller(provider, sleep=sleeper)
        )

        with pytest.raises(ConfirmationTimeout) as exc:
            await orchestrator.transfer(_request(source, destination))

        result = exc.value.result
        assert result.status == TransferStatus.PENDING
        assert result.completed_phases == []
        assert provider.contract_calls(DEPOSIT_FOR_BURN_SIGNATURE) == []

        provider.pending_calls.clear()
        resumed = await orchestrator.resume(result, destination)

        assert resumed.status == TransferStatus.COMPLETED
        assert len(provider.contract_calls(APPROVE_SIGNATURE)) == 1
        burns = provider.contract_calls(DEPOSIT_FOR_BURN_SIGNATURE)
        assert len(burns) == 1
        assert burns[0].idempotency_key == phase_key("run-1", TransferPhase.BURN)
        assert burns[0].wallet_id == source.wallet_id

    @pytest.mark.asyncio
    async def test_unconfirmed_receive_is_polled_again(self, attestation_client, sleeper):
        provider = DryRunWalletProvider(pending_calls={RECEIVE_MESSAGE_SIGNATURE})
        source, destination = await _wallets(provider)
        orchestrator = CrossChainTransferOrchestrator(
            provider, attestation_client, TransactionPoller(provider, sleep=sleeper)
        )

        with pytest.raises(ConfirmationTimeout) as exc:
            await orchestrator.transfer(_request(source, destination))

        result = exc.value.result
        receive_id = result.receive_tx_id
        assert result.status == TransferStatus.PENDING
        assert receive_id is not None

        provider.pending_calls.clear()
        resumed = await orchestrator.resume(result, destination)

        assert resumed.status == TransferStatus.COMPLETED
        assert resumed.receive_tx_id == receive_id
        assert len(provider.contract_calls(RECEIVE_MESSAGE_SIGNATURE)) == 1
        assert len(attestation_client.lookups) == 1

    @pytest.mark.asyncio
    async def test_failed_run_is_not_resumable(self, attestation_client, sleeper):
        provider = DryRunWalletProvider(fail_calls={DEPOSIT_FOR_BURN_SIGNATURE: "execution reverted"})
        source, destination = await _wallets(provider)
        orchestrator = CrossChainTransferOrchestrator(
            provider, attestation_client, TransactionPoller(provider, sleep=sleeper)
        )

        with pytest.raises(TransactionFailed) as exc:
            await orchestrator.transfer(_request(source, destination))

        with pytest.raises(ValueError):
            await orchestrator.resume(exc.value.result, destination)

        assert len(provider.contract_calls(DEPOSIT_FOR_BURN_SIGNATURE)) == 1
