"""Tests for the time-boxed confirmation gate."""

import asyncio

import pytest

from conftest import EVM_ADDRESS, FakeClock
from stablepago.gate import ConfirmationGate, Resolution, confirmation_prompt
from stablepago.intents import CrossChainTransfer, SimpleTransfer, Swap


def _transfer(amount="10") -> SimpleTransfer:
    return SimpleTransfer(amount=amount, destination_address=EVM_ADDRESS)


class Recorder:
    def __init__(self, result="done"):
        self.tickets = []
        self.result = result

    async def __call__(self, ticket):
        self.tickets.append(ticket)
        return self.result


@pytest.fixture
def handler() -> Recorder:
    return Recorder()


@pytest.fixture
def gate(clock, handler) -> ConfirmationGate:
    return ConfirmationGate(timeout=30, clock=clock, on_confirmed=handler)


class TestResolve:
    """Tests for keyword resolution."""

    @pytest.mark.asyncio
    async def test_confirm_within_window(self, gate, clock, handler):
        pending = await gate.request(1, _transfer(), chat_context=99, network_key="BASE-SEPOLIA")
        clock.advance(10)

        outcome = await gate.resolve(1, " confirm ")

        assert outcome.resolution == Resolution.CONFIRMED
        assert outcome.result == "done"
        assert handler.tickets == [pending.ticket]
        assert handler.tickets[0].chat_context == 99
        assert not gate.has_ticket(1)

    @pytest.mark.asyncio
    async def test_spanish_keywords(self, gate, handler):
        await gate.request(1, _transfer())
        assert (await gate.resolve(1, "CONFIRMAR")).resolution == Resolution.CONFIRMED

        await gate.request(1, _transfer())
        assert (await gate.resolve(1, "cancelar")).resolution == Resolution.CANCELLED
        assert len(handler.tickets) == 1

    @pytest.mark.asyncio
    async def test_confirm_after_window_expires(self, gate, clock, handler):
        await gate.request(1, _transfer())
        clock.advance(31)

        outcome = await gate.resolve(1, "CONFIRM")

        assert outcome.resolution == Resolution.EXPIRED
        assert handler.tickets == []
        assert not gate.has_ticket(1)

    @pytest.mark.asyncio
    async def test_window_boundary_is_expired(self, gate, clock, handler):
        await gate.request(1, _transfer())
        clock.advance(30)

        assert (await gate.resolve(1, "CONFIRM")).resolution == Resolution.EXPIRED
        assert handler.tickets == []

    @pytest.mark.asyncio
    async def test_cancel(self, gate, handler):
        await gate.request(1, _transfer())

        outcome = await gate.resolve(1, "CANCEL")

        assert outcome.resolution == Resolution.CANCELLED
        assert handler.tickets == []
        assert not gate.has_ticket(1)

    @pytest.mark.asyncio
    async def test_unrecognized_reply_keeps_ticket(self, gate, handler):
        await gate.request(1, _transfer())

        outcome = await gate.resolve(1, "maybe")

        assert outcome.resolution == Resolution.UNRECOGNIZED
        assert gate.has_ticket(1)
        assert handler.tickets == []

    @pytest.mark.asyncio
    async def test_no_ticket(self, gate):
        assert (await gate.resolve(1, "CONFIRM")).resolution == Resolution.NO_TICKET

    @pytest.mark.asyncio
    async def test_second_confirm_does_not_run_twice(self, gate, handler):
        await gate.request(1, _transfer())

        await gate.resolve(1, "CONFIRM")
        outcome = await gate.resolve(1, "CONFIRM")

        assert outcome.resolution == Resolution.NO_TICKET
        assert len(handler.tickets) == 1

    @pytest.mark.asyncio
    async def test_concurrent_confirms_run_once(self, gate, handler):
        await gate.request(1, _transfer())

        outcomes = await asyncio.gather(gate.resolve(1, "CONFIRM"), gate.resolve(1, "CONFIRM"))

        assert sorted(o.resolution.value for o in outcomes) == ["confirmed", "no_ticket"]
        assert len(handler.tickets) == 1

    @pytest.mark.asyncio
    async def test_users_are_independent(self, gate, handler):
        await gate.request(1, _transfer("1"))
        await gate.request(2, _transfer("2"))

        await gate.resolve(1, "CANCEL")

        assert gate.has_ticket(2)


class TestReplacement:
    """Tests for latest-intent-wins replacement."""

    @pytest.mark.asyncio
    async def test_new_request_replaces_pending(self, gate, handler):
        first = await gate.request(1, _transfer("1"))
        second = await gate.request(1, _transfer("2"))

        assert first.replaced is None
        assert second.replaced == first.ticket

        await gate.resolve(1, "CONFIRM")

        assert handler.tickets == [second.ticket]
        assert handler.tickets[0].intent.amount == "2"

    @pytest.mark.asyncio
    async def test_replacement_restarts_window(self, gate, clock):
        await gate.request(1, _transfer("1"))
        clock.advance(20)
        await gate.request(1, _transfer("2"))
        clock.advance(20)

        assert (await gate.resolve(1, "CONFIRM")).resolution == Resolution.CONFIRMED


class TestSweep:
    """Tests for expiry sweeping."""

    @pytest.mark.asyncio
    async def test_sweep_removes_only_expired(self, clock):
        expired = []

        async def on_expired(ticket):
            expired.append(ticket)

        gate = ConfirmationGate(timeout=30, clock=clock, on_expired=on_expired)
        old = await gate.request(1, _transfer())
        clock.advance(20)
        await gate.request(2, _transfer())
        clock.advance(11)

        removed = await gate.sweep()

        assert removed == [old.ticket]
        assert expired == [old.ticket]
        assert not gate.has_ticket(1)
        assert gate.has_ticket(2)

    @pytest.mark.asyncio
    async def test_notifier_failure_is_contained(self, clock):
        async def on_expired(ticket):
            raise RuntimeError("chat gone")

        gate = ConfirmationGate(timeout=30, clock=clock, on_expired=on_expired)
        await gate.request(1, _transfer())
        clock.advance(31)

        assert len(await gate.sweep()) == 1

    @pytest.mark.asyncio
    async def test_pending_hides_expired_ticket(self, gate, clock):
        await gate.request(1, _transfer())
        assert gate.pending(1) is not None

        clock.advance(31)

        assert gate.pending(1) is None
        assert gate.has_ticket(1)

    @pytest.mark.asyncio
    async def test_background_sweeper(self):
        clock = FakeClock()
        expired = []

        async def on_expired(ticket):
            expired.append(ticket)

        gate = ConfirmationGate(timeout=30, sweep_interval=0.01, clock=clock, on_expired=on_expired)
        await gate.request(1, _transfer())
        clock.advance(31)

        gate.start()
        await asyncio.sleep(0.05)
        await gate.stop()

        assert len(expired) == 1
        assert not gate.has_ticket(1)


class TestPrompt:
    """Tests for confirmation prompts."""

    def test_transfer_prompt(self):
        prompt = confirmation_prompt(_transfer("10.5"), 30, "BASE-SEPOLIA")

        assert "10.5 USDC" in prompt
        assert EVM_ADDRESS in prompt
        assert "CONFIRM" in prompt
        assert "30 seconds" in prompt

    def test_cross_chain_prompt(self):
        intent = CrossChainTransfer(
            amount="25", destination_network="ARB-SEPOLIA", destination_address=EVM_ADDRESS
        )

        prompt = confirmation_prompt(intent, 30, "BASE-SEPOLIA")

        assert "From Network: BASE-SEPOLIA" in prompt
        assert "To Network: ARB-SEPOLIA" in prompt

    def test_swap_prompt(self):
        intent = Swap(output_asset="WETH", exact_output="0.01", max_input="40", slippage_bps=50)

        prompt = confirmation_prompt(intent)

        assert "0.01 WETH" in prompt
        assert "+0.5% slippage" in prompt
