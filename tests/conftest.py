"""Pytest configuration and fixtures."""

import os

import pytest
import pytest_asyncio

# Set test environment
os.environ["ENVIRONMENT"] = "test"
os.environ["TELEGRAM_BOT_TOKEN"] = ""
os.environ["WALLET_PROVIDER"] = "dryrun"
os.environ["DEBUG"] = "true"

from stablepago.bridge.attestation import DryRunAttestationClient
from stablepago.config import get_settings
from stablepago.engine import TransactionEngine
from stablepago.gate import ConfirmationGate
from stablepago.networks import NetworkRegistry, reset_registry
from stablepago.poller import TransactionPoller
from stablepago.utils.locks import clear_user_locks
from stablepago.validator import IntentValidator
from stablepago.wallet.dryrun import DryRunWalletProvider
from stablepago.wallet.factory import reset_wallet_provider

EVM_ADDRESS = "0x" + "ab" * 20
SOLANA_ADDRESS = "7EcDhSYGxXyscszYEp35KHN8vvw3svAuLKTzXwCFLtV"


class SleepRecorder:
    """Stands in for asyncio.sleep and records requested delays."""

    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.calls.append(delay)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingNotifier:
    """Collects progress and expiry notifications."""

    def __init__(self):
        self.progress = []
        self.expired = []

    async def notify_progress(self, chat_id, event) -> bool:
        self.progress.append((chat_id, event))
        return True

    async def notify_expired(self, ticket) -> bool:
        self.expired.append(ticket)
        return True


@pytest.fixture(autouse=True)
def reset_singletons():
    """Reset process-wide state around every test."""
    get_settings.cache_clear()
    reset_registry()
    reset_wallet_provider()
    clear_user_locks()
    yield
    get_settings.cache_clear()
    reset_registry()
    reset_wallet_provider()
    clear_user_locks()


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def registry() -> NetworkRegistry:
    return NetworkRegistry(default_key="BASE-SEPOLIA")


@pytest.fixture
def provider() -> DryRunWalletProvider:
    return DryRunWalletProvider()


@pytest.fixture
def poller(provider, sleeper) -> TransactionPoller:
    return TransactionPoller(provider, sleep=sleeper)


@pytest.fixture
def attestation_client(sleeper) -> DryRunAttestationClient:
    return DryRunAttestationClient(ready_after=1, max_attempts=3, sleep=sleeper)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest_asyncio.fixture
async def engine(provider, registry, poller, attestation_client, clock, notifier):
    """Engine over the dry-run provider with a manual clock."""
    settings = get_settings()
    engine = TransactionEngine(
        provider=provider,
        registry=registry,
        validator=IntentValidator.from_settings(registry, settings),
        gate=ConfirmationGate(timeout=30, sweep_interval=60, clock=clock),
        poller=poller,
        attestation_client=attestation_client,
        notifier=notifier,
    )
    yield engine
    await engine.gate.stop()
