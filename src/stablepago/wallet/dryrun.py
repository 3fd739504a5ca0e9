"""Dry-run wallet provider for testing (no real transactions)."""

import logging
import secrets
import uuid
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Any, Optional

from stablepago.errors import ProviderError
from stablepago.networks import NetworkDescriptor
from stablepago.wallet.base import TransactionRecord, TxState, WalletHandle, WalletProvider

logger = logging.getLogger(__name__)

_BASE58 = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"


@dataclass
class RecordedCall:
    """One submission observed by the dry-run provider."""

    kind: str  # "transfer" or "contract_call"
    wallet_id: str
    provider_tx_id: str
    idempotency_key: Optional[str] = None
    contract: Optional[str] = None
    function_signature: Optional[str] = None
    args: list[Any] = field(default_factory=list)
    destination: Optional[str] = None
    amount: Optional[int] = None


class DryRunWalletProvider(WalletProvider):
    """In-memory simulated provider.

    Submitted transactions confirm after ``confirm_after`` status polls.
    Function signatures listed in ``fail_calls`` end up FAILED with the given
    reason instead; signatures in ``reject_calls`` are refused at submission
    with a ProviderError. Signatures in ``pending_calls`` never leave the
    submitted state while listed. Plain transfers are keyed as "transfer".
    """

    def __init__(
        self,
        confirm_after: int = 1,
        fail_calls: Optional[dict[str, str]] = None,
        reject_calls: Optional[dict[str, str]] = None,
        pending_calls: Optional[set[str]] = None,
    ):
        self.confirm_after = confirm_after
        self.fail_calls = dict(fail_calls or {})
        self.reject_calls = dict(reject_calls or {})
        self.pending_calls = set(pending_calls or ())
        self.calls: list[RecordedCall] = []
        self.wallets: list[WalletHandle] = []
        self._balances: dict[tuple[str, str], Decimal] = {}
        self._transactions: dict[str, TransactionRecord] = {}
        self._polls: dict[str, int] = {}
        self._signatures: dict[str, str] = {}
        self._by_key: dict[str, str] = {}

    @property
    def name(self) -> str:
        return "dryrun"

    def set_balance(self, handle: WalletHandle, token: str, amount: Decimal) -> None:
        self._balances[(handle.wallet_id, token.lower())] = Decimal(amount)

    def contract_calls(self, function_signature: Optional[str] = None) -> list[RecordedCall]:
        """Recorded contract calls, optionally filtered by signature."""
        return [
            c for c in self.calls
            if c.kind == "contract_call"
            and (function_signature is None or c.function_signature == function_signature)
        ]

    def transfers(self) -> list[RecordedCall]:
        return [c for c in self.calls if c.kind == "transfer"]

    async def create_wallet(
        self,
        network: NetworkDescriptor,
        idempotency_key: Optional[str] = None,
    ) -> WalletHandle:
        if network.chain_family == "solana":
            address = "".join(secrets.choice(_BASE58) for _ in range(44))
        else:
            address = "0x" + secrets.token_hex(20)

        handle = WalletHandle(
            wallet_id=f"dry-{uuid.uuid4()}",
            address=address,
            network_key=network.key,
        )
        self.wallets.append(handle)
        logger.debug(f"[dryrun] created wallet {handle.wallet_id} on {network.key}")
        return handle

    async def get_balance(self, handle: WalletHandle, token: str) -> Decimal:
        return self._balances.get((handle.wallet_id, token.lower()), Decimal("0"))

    async def find_wallet(self, address: str) -> Optional[str]:
        for handle in self.wallets:
            if handle.address.lower() == address.lower():
                return handle.wallet_id
        return None

    def _submit(self, call: RecordedCall) -> TransactionRecord:
        if call.idempotency_key and call.idempotency_key in self._by_key:
            existing = self._by_key[call.idempotency_key]
            logger.debug(f"[dryrun] idempotent replay of {existing}")
            return replace(self._transactions[existing])

        signature = call.function_signature or call.kind
        if signature in self.reject_calls:
            raise ProviderError(self.reject_calls[signature], status_code=400)

        self.calls.append(call)
        record = TransactionRecord(
            provider_tx_id=call.provider_tx_id,
            state=TxState.SUBMITTED,
            phase=signature.split("(", 1)[0],
        )
        self._transactions[record.provider_tx_id] = record
        self._polls[record.provider_tx_id] = 0
        self._signatures[record.provider_tx_id] = signature
        if call.idempotency_key:
            self._by_key[call.idempotency_key] = record.provider_tx_id
        return replace(record)

    async def submit_transfer(
        self,
        handle: WalletHandle,
        network: NetworkDescriptor,
        destination: str,
        amount: int,
        idempotency_key: Optional[str] = None,
    ) -> TransactionRecord:
        return self._submit(
            RecordedCall(
                kind="transfer",
                wallet_id=handle.wallet_id,
                provider_tx_id=str(uuid.uuid4()),
                idempotency_key=idempotency_key,
                destination=destination,
                amount=amount,
            )
        )

    async def submit_contract_call(
        self,
        handle: WalletHandle,
        contract: str,
        function_signature: str,
        args: list[Any],
        idempotency_key: Optional[str] = None,
    ) -> TransactionRecord:
        return self._submit(
            RecordedCall(
                kind="contract_call",
                wallet_id=handle.wallet_id,
                provider_tx_id=str(uuid.uuid4()),
                idempotency_key=idempotency_key,
                contract=contract,
                function_signature=function_signature,
                args=list(args),
            )
        )

    async def get_status(self, provider_tx_id: str) -> TransactionRecord:
        record = self._transactions.get(provider_tx_id)
        if record is None:
            raise ProviderError(f"Transaction {provider_tx_id} not found", status_code=404)
        if record.is_terminal or self._signatures.get(provider_tx_id) in self.pending_calls:
            return replace(record)

        self._polls[provider_tx_id] += 1
        if self._polls[provider_tx_id] >= self.confirm_after:
            signature = self._signatures.get(provider_tx_id)
            if signature in self.fail_calls:
                record.state = TxState.FAILED
                record.error_reason = self.fail_calls[signature]
            else:
                record.state = TxState.CONFIRMED
                record.tx_hash = "0x" + secrets.token_hex(32)
        return replace(record)
