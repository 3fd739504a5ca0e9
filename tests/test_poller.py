"""Tests for the bounded-retry confirmation poller."""

import pytest

from stablepago.errors import ConfirmationTimeout, TransactionFailed
from stablepago.poller import PollPolicy, TransactionPoller
from stablepago.wallet.base import TransactionRecord, TxState


class ScriptedStatus:
    """Returns a fixed sequence of states, repeating the last one."""

    def __init__(self, *records: TransactionRecord):
        self.records = list(records)
        self.polls = 0

    async def get_status(self, provider_tx_id: str) -> TransactionRecord:
        index = min(self.polls, len(self.records) - 1)
        self.polls += 1
        return self.records[index]


def _record(state: TxState, tx_hash=None, reason=None) -> TransactionRecord:
    return TransactionRecord("tx-1", state, tx_hash=tx_hash, error_reason=reason)


class TestPollPolicy:
    """Tests for the delay schedule."""

    def test_additive_growth_capped(self):
        policy = PollPolicy(max_attempts=10, initial_delay=1.5, max_delay=5.0, delay_step=0.5)

        assert policy.delays() == [1.5, 2.0, 2.5, 3.0, 3.5, 4.0, 4.5, 5.0, 5.0]

    def test_default_policy(self):
        delays = PollPolicy().delays()

        assert len(delays) == 39
        assert max(delays) == 5.0


class TestTransactionPoller:
    """Tests for await_confirmed."""

    @pytest.mark.asyncio
    async def test_confirms_after_pending(self, sleeper):
        provider = ScriptedStatus(
            _record(TxState.SUBMITTED),
            _record(TxState.SUBMITTED),
            _record(TxState.CONFIRMED, tx_hash="0xabc"),
        )
        poller = TransactionPoller(provider, sleep=sleeper)

        record = await poller.await_confirmed("tx-1", phase="approve")

        assert record.state == TxState.CONFIRMED
        assert record.phase == "approve"
        assert provider.polls == 3
        assert sleeper.calls == [1.5, 2.0]

    @pytest.mark.asyncio
    async def test_failed_state_fails_fast(self, sleeper):
        provider = ScriptedStatus(
            _record(TxState.SUBMITTED),
            _record(TxState.FAILED, reason="execution reverted"),
        )
        poller = TransactionPoller(provider, sleep=sleeper)

        with pytest.raises(TransactionFailed) as exc:
            await poller.await_confirmed("tx-1")

        assert exc.value.reason == "execution reverted"
        assert provider.polls == 2
        assert sleeper.calls == [1.5]

    @pytest.mark.asyncio
    async def test_timeout_after_max_attempts(self, sleeper):
        provider = ScriptedStatus(_record(TxState.SUBMITTED))
        poller = TransactionPoller(provider, PollPolicy(max_attempts=3), sleep=sleeper)

        with pytest.raises(ConfirmationTimeout) as exc:
            await poller.await_confirmed("tx-1")

        assert exc.value.attempts == 3
        assert provider.polls == 3
        assert len(sleeper.calls) == 2

    @pytest.mark.asyncio
    async def test_capture_hash_waits_for_hash(self, sleeper):
        provider = ScriptedStatus(
            _record(TxState.CONFIRMED),
            _record(TxState.CONFIRMED, tx_hash="0xburn"),
        )
        poller = TransactionPoller(provider, sleep=sleeper)

        record = await poller.await_confirmed("tx-1", capture_tx_hash=True)

        assert record.tx_hash == "0xburn"
        assert provider.polls == 2

    @pytest.mark.asyncio
    async def test_confirmed_without_hash_is_enough_by_default(self, sleeper):
        provider = ScriptedStatus(_record(TxState.CONFIRMED))
        poller = TransactionPoller(provider, sleep=sleeper)

        record = await poller.await_confirmed("tx-1")

        assert record.tx_hash is None
        assert sleeper.calls == []

    @pytest.mark.asyncio
    async def test_phase_label_does_not_touch_provider_record(self, sleeper):
        confirmed = _record(TxState.CONFIRMED, tx_hash="0xabc")
        poller = TransactionPoller(ScriptedStatus(confirmed), sleep=sleeper)

        record = await poller.await_confirmed("tx-1", phase="burn")

        assert record.phase == "burn"
        assert record is not confirmed
        assert confirmed.phase is None

    @pytest.mark.asyncio
    async def test_policy_override(self, sleeper):
        provider = ScriptedStatus(_record(TxState.SUBMITTED))
        poller = TransactionPoller(provider, sleep=sleeper)

        with pytest.raises(ConfirmationTimeout):
            await poller.await_confirmed("tx-1", policy=PollPolicy(max_attempts=1))

        assert provider.polls == 1
        assert sleeper.calls == []
