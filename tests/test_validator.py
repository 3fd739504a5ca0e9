"""Tests for intent validation."""

from decimal import Decimal

import pytest

from conftest import EVM_ADDRESS, SOLANA_ADDRESS
from stablepago.errors import (
    AmountLimitExceeded,
    BridgeNotSupported,
    InvalidAddress,
    InvalidAmount,
    InvalidDeadline,
    InvalidSlippage,
    LowConfidence,
    MissingParameter,
    ProhibitedContent,
    SameNetworkTransfer,
    SwapNotSupported,
    UnknownNetwork,
    UnsupportedAsset,
)
from stablepago.intents import CrossChainTransfer, Query, QueryKind, SimpleTransfer, Swap
from stablepago.validator import IntentValidator, is_valid_address


@pytest.fixture
def validator(registry) -> IntentValidator:
    return IntentValidator(
        registry,
        asset_limits={"USDC": Decimal("10000"), "WETH": Decimal("5"), "UNI": Decimal("1000")},
    )


def _send(amount="10", address=EVM_ADDRESS, **kwargs) -> SimpleTransfer:
    return SimpleTransfer(amount=amount, destination_address=address, **kwargs)


def _bridge(amount="10", network="ARB-SEPOLIA", address=EVM_ADDRESS) -> CrossChainTransfer:
    return CrossChainTransfer(amount=amount, destination_network=network, destination_address=address)


def _swap(asset="WETH", exact_output="0.01", max_input="40", **kwargs) -> Swap:
    return Swap(output_asset=asset, exact_output=exact_output, max_input=max_input, **kwargs)


class TestCommonChecks:
    """Checks applied to every intent."""

    def test_low_confidence(self, validator):
        with pytest.raises(LowConfidence):
            validator.validate(_send(confidence=0.3), "BASE-SEPOLIA")

    @pytest.mark.parametrize(
        "text",
        ["here is my private key", "my seed phrase is", "MNEMONIC words", "password123", "secret"],
    )
    def test_prohibited_content(self, validator, text):
        with pytest.raises(ProhibitedContent):
            validator.validate(Query(query=QueryKind.BALANCE, source_text=text), "BASE-SEPOLIA")

    def test_switch_network_requires_known_network(self, validator):
        validator.validate(Query(query=QueryKind.SWITCH_NETWORK, network="eth-sepolia"), "BASE-SEPOLIA")

        with pytest.raises(UnknownNetwork):
            validator.validate(Query(query=QueryKind.SWITCH_NETWORK, network="DOGE"), "BASE-SEPOLIA")
        with pytest.raises(MissingParameter):
            validator.validate(Query(query=QueryKind.SWITCH_NETWORK), "BASE-SEPOLIA")


class TestSimpleTransfer:
    """Checks for same-chain transfers."""

    def test_valid(self, validator):
        intent = _send("10.5")

        assert validator.validate(intent, "BASE-SEPOLIA") is intent

    @pytest.mark.parametrize("address", ["0x1234", "not-an-address", SOLANA_ADDRESS, "0x" + "g" * 40])
    def test_bad_evm_address(self, validator, address):
        with pytest.raises(InvalidAddress):
            validator.validate(_send(address=address), "BASE-SEPOLIA")

    def test_surrounding_whitespace_is_stripped_by_the_intent(self, validator):
        intent = _send(address=f" {EVM_ADDRESS}\n")

        assert intent.destination_address == EVM_ADDRESS
        assert validator.validate(intent, "BASE-SEPOLIA") is intent

    def test_inner_whitespace_is_rejected(self, validator):
        with pytest.raises(InvalidAddress):
            validator.validate(_send(address=EVM_ADDRESS[:20] + " " + EVM_ADDRESS[20:]), "BASE-SEPOLIA")

    def test_is_valid_address_requires_exact_match(self, registry):
        network = registry.get("BASE-SEPOLIA")

        assert is_valid_address(EVM_ADDRESS, network)
        assert not is_valid_address(EVM_ADDRESS + " ", network)
        assert not is_valid_address(EVM_ADDRESS + "\n", network)

    def test_solana_address_on_solana(self, validator):
        validator.validate(_send(address=SOLANA_ADDRESS), "SOL-DEVNET")

    def test_empty_address(self, validator):
        with pytest.raises(MissingParameter):
            validator.validate(_send(address=""), "BASE-SEPOLIA")

    @pytest.mark.parametrize("amount", ["0", "0.0", "abc", "-5", "1.0000001"])
    def test_bad_amount(self, validator, amount):
        with pytest.raises(InvalidAmount):
            validator.validate(_send(amount), "BASE-SEPOLIA")

    def test_amount_ceiling(self, validator):
        validator.validate(_send("10000"), "BASE-SEPOLIA")

        with pytest.raises(AmountLimitExceeded):
            validator.validate(_send("10000.01"), "BASE-SEPOLIA")

    def test_numeric_amount_is_coerced(self, validator):
        intent = SimpleTransfer(amount=12.5, destination_address=EVM_ADDRESS)

        assert intent.amount == "12.5"
        validator.validate(intent, "BASE-SEPOLIA")


class TestCrossChainTransfer:
    """Checks for cross-chain transfers."""

    def test_valid(self, validator):
        validator.validate(_bridge(), "BASE-SEPOLIA")

    def test_cross_chain_ceiling_is_higher(self, validator):
        validator.validate(_bridge("20000"), "BASE-SEPOLIA")

        with pytest.raises(AmountLimitExceeded):
            validator.validate(_bridge("25000.01"), "BASE-SEPOLIA")

    def test_same_network(self, validator):
        with pytest.raises(SameNetworkTransfer):
            validator.validate(_bridge(network="base-sepolia"), "BASE-SEPOLIA")

    def test_unknown_destination(self, validator):
        with pytest.raises(UnknownNetwork):
            validator.validate(_bridge(network="DOGE"), "BASE-SEPOLIA")

    def test_destination_without_bridge(self, validator):
        with pytest.raises(BridgeNotSupported):
            validator.validate(_bridge(network="SOL-DEVNET", address=SOLANA_ADDRESS), "BASE-SEPOLIA")

    def test_source_without_bridge(self, validator):
        with pytest.raises(BridgeNotSupported):
            validator.validate(_bridge(), "SOL-DEVNET")

    def test_address_checked_against_destination(self, validator):
        with pytest.raises(InvalidAddress):
            validator.validate(_bridge(address="0xdead"), "BASE-SEPOLIA")


class TestSwap:
    """Checks for swaps."""

    def test_valid(self, validator):
        validator.validate(_swap(), "BASE-SEPOLIA")

    def test_network_without_router(self, validator):
        with pytest.raises(SwapNotSupported):
            validator.validate(_swap(), "AVAX-FUJI")

    def test_unsupported_output(self, validator):
        with pytest.raises(UnsupportedAsset):
            validator.validate(_swap(asset="DAI"), "BASE-SEPOLIA")

    def test_output_asset_limit(self, validator):
        with pytest.raises(AmountLimitExceeded):
            validator.validate(_swap(exact_output="6"), "BASE-SEPOLIA")

    def test_max_input_ceiling(self, validator):
        with pytest.raises(AmountLimitExceeded):
            validator.validate(_swap(max_input="10001"), "BASE-SEPOLIA")

    def test_slippage_bounds(self, validator):
        validator.validate(_swap(slippage_bps=0), "BASE-SEPOLIA")

        with pytest.raises(InvalidSlippage):
            validator.validate(_swap(slippage_bps=5001), "BASE-SEPOLIA")
        with pytest.raises(InvalidSlippage):
            validator.validate(_swap(slippage_bps=-1), "BASE-SEPOLIA")

    def test_deadline_bounds(self, validator):
        with pytest.raises(InvalidDeadline):
            validator.validate(_swap(deadline_minutes=0), "BASE-SEPOLIA")
        with pytest.raises(InvalidDeadline):
            validator.validate(_swap(deadline_minutes=1441), "BASE-SEPOLIA")
