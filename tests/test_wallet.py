"""Tests for the dry-run provider, provider factory and wallet store."""

from decimal import Decimal

import pytest

from stablepago.errors import ProviderError
from stablepago.networks import NETWORKS
from stablepago.validator import ADDRESS_PATTERNS
from stablepago.wallet.base import TxState
from stablepago.wallet.circle import CircleWalletClient
from stablepago.wallet.dryrun import DryRunWalletProvider
from stablepago.wallet.factory import get_wallet_provider
from stablepago.wallet.store import InMemoryWalletStore

APPROVE = "approve(address,uint256)"


class TestDryRunProvider:
    """Tests for DryRunWalletProvider."""

    @pytest.mark.asyncio
    async def test_addresses_match_chain_family(self, provider):
        evm = await provider.create_wallet(NETWORKS["BASE-SEPOLIA"])
        sol = await provider.create_wallet(NETWORKS["SOL-DEVNET"])

        assert ADDRESS_PATTERNS["evm"].match(evm.address)
        assert ADDRESS_PATTERNS["solana"].match(sol.address)
        assert await provider.find_wallet(evm.address.upper()) == evm.wallet_id

    @pytest.mark.asyncio
    async def test_confirms_after_configured_polls(self):
        provider = DryRunWalletProvider(confirm_after=2)
        handle = await provider.create_wallet(NETWORKS["BASE-SEPOLIA"])
        record = await provider.submit_contract_call(handle, "0x" + "11" * 20, APPROVE, [])

        first = await provider.get_status(record.provider_tx_id)
        second = await provider.get_status(record.provider_tx_id)

        assert first.state == TxState.SUBMITTED
        assert second.state == TxState.CONFIRMED
        assert second.tx_hash.startswith("0x")

    @pytest.mark.asyncio
    async def test_idempotent_replay(self, provider):
        handle = await provider.create_wallet(NETWORKS["BASE-SEPOLIA"])

        first = await provider.submit_transfer(handle, NETWORKS["BASE-SEPOLIA"], "0x" + "22" * 20, 5, "k-1")
        again = await provider.submit_transfer(handle, NETWORKS["BASE-SEPOLIA"], "0x" + "22" * 20, 5, "k-1")
        other = await provider.submit_transfer(handle, NETWORKS["BASE-SEPOLIA"], "0x" + "22" * 20, 5, "k-2")

        assert first.provider_tx_id == again.provider_tx_id
        assert other.provider_tx_id != first.provider_tx_id
        assert len(provider.transfers()) == 2

    @pytest.mark.asyncio
    async def test_fail_and_reject_calls(self):
        provider = DryRunWalletProvider(
            fail_calls={APPROVE: "execution reverted"},
            reject_calls={"burn()": "insufficient funds"},
        )
        handle = await provider.create_wallet(NETWORKS["BASE-SEPOLIA"])

        record = await provider.submit_contract_call(handle, "0x" + "11" * 20, APPROVE, [])
        status = await provider.get_status(record.provider_tx_id)
        assert status.state == TxState.FAILED
        assert status.error_reason == "execution reverted"

        with pytest.raises(ProviderError) as exc:
            await provider.submit_contract_call(handle, "0x" + "11" * 20, "burn()", [])
        assert exc.value.status_code == 400
        assert provider.contract_calls("burn()") == []

    @pytest.mark.asyncio
    async def test_unknown_transaction(self, provider):
        with pytest.raises(ProviderError) as exc:
            await provider.get_status("missing")

        assert exc.value.status_code == 404

    @pytest.mark.asyncio
    async def test_balance(self, provider):
        handle = await provider.create_wallet(NETWORKS["BASE-SEPOLIA"])
        provider.set_balance(handle, "0xABC", Decimal("12.5"))

        assert await provider.get_balance(handle, "0xabc") == Decimal("12.5")
        assert await provider.get_balance(handle, "0xdef") == Decimal("0")


class TestProviderFactory:
    """Tests for get_wallet_provider selection."""

    def test_defaults_to_dryrun(self):
        provider = get_wallet_provider()

        assert provider.name == "dryrun"
        assert get_wallet_provider() is provider

    def test_circle_without_credentials_falls_back(self, monkeypatch):
        monkeypatch.setenv("WALLET_PROVIDER", "circle")
        monkeypatch.setenv("CIRCLE_API_KEY", "")

        assert get_wallet_provider().name == "dryrun"

    def test_circle_with_credentials(self, monkeypatch):
        monkeypatch.setenv("WALLET_PROVIDER", "circle")
        monkeypatch.setenv("CIRCLE_API_KEY", "TEST_API_KEY")
        monkeypatch.setenv("CIRCLE_ENTITY_SECRET", "00" * 32)

        provider = get_wallet_provider()

        assert isinstance(provider, CircleWalletClient)


class TestWalletStore:
    """Tests for InMemoryWalletStore."""

    @pytest.mark.asyncio
    async def test_keyed_by_user_and_network(self, provider):
        store = InMemoryWalletStore()
        base = await provider.create_wallet(NETWORKS["BASE-SEPOLIA"])
        arb = await provider.create_wallet(NETWORKS["ARB-SEPOLIA"])

        await store.put(1, base)
        await store.put(1, arb)

        assert await store.get(1, "base-sepolia") == base
        assert await store.get(2, "BASE-SEPOLIA") is None
        assert set(h.wallet_id for h in await store.list_for_user(1)) == {base.wallet_id, arb.wallet_id}
