"""Circle developer-controlled wallets (W3S) client.

Docs: https://developers.circle.com/w3s/reference
"""

import base64
import logging
import uuid
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

import httpx
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding

from stablepago.amounts import from_base_units
from stablepago.errors import ProviderError
from stablepago.networks import NetworkDescriptor
from stablepago.wallet.base import TransactionRecord, TxState, WalletHandle, WalletProvider

logger = logging.getLogger(__name__)

CONFIRMED_STATES = {"CONFIRMED", "COMPLETE"}
FAILED_STATES = {"FAILED", "CANCELLED", "DENIED"}


def map_state(state: Optional[str]) -> TxState:
    """Map a Circle transaction state onto the engine's three states."""
    value = (state or "").upper()
    if value in CONFIRMED_STATES:
        return TxState.CONFIRMED
    if value in FAILED_STATES:
        return TxState.FAILED
    return TxState.SUBMITTED


def _abi_value(value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        return [_abi_value(v) for v in value]
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return str(value)
    return value


class CircleWalletClient(WalletProvider):
    """Wallet provider backed by the Circle W3S REST API.

    Every mutating request carries a freshly encrypted entity secret; the
    ciphertext is never reused between requests.
    """

    def __init__(
        self,
        api_key: str,
        entity_secret: str,
        base_url: str = "https://api.circle.com",
        wallet_set_id: Optional[str] = None,
        fee_level: str = "MEDIUM",
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ):
        """Initialize the Circle client.

        Args:
            api_key: Circle API key
            entity_secret: 32-byte entity secret, hex encoded
            base_url: API base URL override
            wallet_set_id: Wallet set to create wallets in (created on demand if None)
            fee_level: Fee level for submitted transactions
            client: Optional pre-built HTTP client (tests)
            timeout: Request timeout in seconds
        """
        self.api_key = api_key
        self.entity_secret = entity_secret
        self.base_url = base_url.rstrip("/")
        self.wallet_set_id = wallet_set_id
        self.fee_level = fee_level
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._public_key = None

    @property
    def name(self) -> str:
        return "circle"

    # ======================
    # HTTP plumbing
    # ======================

    async def _request(
        self,
        method: str,
        path: str,
        json: Optional[dict] = None,
        params: Optional[dict] = None,
    ) -> dict:
        try:
            response = await self._client.request(
                method,
                f"{self.base_url}{path}",
                json=json,
                params=params,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
            )
        except httpx.HTTPError as e:
            logger.error(f"Circle {method} {path} transport error: {e}")
            raise ProviderError(f"Circle API unreachable: {e}") from e

        try:
            payload = response.json()
        except ValueError:
            payload = {"message": response.text}

        if response.status_code >= 400:
            message = payload.get("message") if isinstance(payload, dict) else None
            logger.warning(f"Circle {method} {path} -> {response.status_code}: {message}")
            raise ProviderError(
                message or f"Circle API returned HTTP {response.status_code}",
                status_code=response.status_code,
                payload=payload,
            )

        return payload.get("data", {}) if isinstance(payload, dict) else {}

    async def _entity_secret_ciphertext(self) -> str:
        """Encrypt the entity secret with Circle's RSA public key (OAEP/SHA-256)."""
        if self._public_key is None:
            data = await self._request("GET", "/v1/w3s/config/entity/publicKey")
            pem = data.get("publicKey")
            if not pem:
                raise ProviderError("Circle did not return an entity public key")
            self._public_key = serialization.load_pem_public_key(pem.encode())

        ciphertext = self._public_key.encrypt(
            bytes.fromhex(self.entity_secret),
            padding.OAEP(
                mgf=padding.MGF1(algorithm=hashes.SHA256()),
                algorithm=hashes.SHA256(),
                label=None,
            ),
        )
        return base64.b64encode(ciphertext).decode()

    def _record(self, data: dict, phase: Optional[str] = None) -> TransactionRecord:
        tx_id = data.get("id")
        if not tx_id:
            raise ProviderError("Circle response is missing a transaction id", payload=data)
        return TransactionRecord(
            provider_tx_id=tx_id,
            state=map_state(data.get("state")),
            phase=phase,
            tx_hash=data.get("txHash") or None,
            error_reason=data.get("errorReason") or None,
        )

    # ======================
    # Wallets
    # ======================

    async def ensure_wallet_set(self) -> str:
        """Return the configured wallet set, creating one if needed."""
        if self.wallet_set_id:
            return self.wallet_set_id

        data = await self._request(
            "POST",
            "/v1/w3s/developer/walletSets",
            json={
                "idempotencyKey": str(uuid.uuid4()),
                "entitySecretCiphertext": await self._entity_secret_ciphertext(),
                "name": "stablepago",
            },
        )
        wallet_set_id = (data.get("walletSet") or {}).get("id")
        if not wallet_set_id:
            raise ProviderError("Circle did not return a wallet set id", payload=data)

        self.wallet_set_id = wallet_set_id
        logger.info(f"Created Circle wallet set {wallet_set_id}")
        return wallet_set_id

    async def create_wallet(
        self,
        network: NetworkDescriptor,
        idempotency_key: Optional[str] = None,
    ) -> WalletHandle:
        wallet_set_id = await self.ensure_wallet_set()
        data = await self._request(
            "POST",
            "/v1/w3s/developer/wallets",
            json={
                "idempotencyKey": idempotency_key or str(uuid.uuid4()),
                "blockchains": [network.key],
                "accountType": network.account_type,
                "walletSetId": wallet_set_id,
                "count": 1,
                "entitySecretCiphertext": await self._entity_secret_ciphertext(),
            },
        )
        wallets = data.get("wallets") or []
        if not wallets:
            raise ProviderError("Circle did not return a wallet", payload=data)

        wallet = wallets[0]
        logger.info(f"Created Circle wallet {wallet['id']} on {network.key}")
        return WalletHandle(
            wallet_id=wallet["id"],
            address=wallet["address"],
            network_key=network.key,
        )

    async def get_balance(self, handle: WalletHandle, token: str) -> Decimal:
        data = await self._request("GET", f"/v1/w3s/wallets/{handle.wallet_id}/balances")
        wanted = token.lower()

        for entry in data.get("tokenBalances") or []:
            info = entry.get("token") or {}
            token_id = (info.get("id") or "").lower()
            token_address = (info.get("tokenAddress") or "").lower()
            if wanted in (token_id, token_address):
                try:
                    return Decimal(str(entry.get("amount", "0")))
                except InvalidOperation:
                    raise ProviderError(f"Unparseable balance {entry.get('amount')!r}")

        return Decimal("0")

    async def find_wallet(self, address: str) -> Optional[str]:
        data = await self._request("GET", "/v1/w3s/wallets", params={"address": address})
        wallets = data.get("wallets") or []
        return wallets[0]["id"] if wallets else None

    # ======================
    # Transactions
    # ======================

    async def submit_transfer(
        self,
        handle: WalletHandle,
        network: NetworkDescriptor,
        destination: str,
        amount: int,
        idempotency_key: Optional[str] = None,
    ) -> TransactionRecord:
        body: dict[str, Any] = {
            "idempotencyKey": idempotency_key or str(uuid.uuid4()),
            "entitySecretCiphertext": await self._entity_secret_ciphertext(),
            "walletId": handle.wallet_id,
            "destinationAddress": destination,
            "amounts": [from_base_units(amount, network.stable_decimals)],
            "feeLevel": self.fee_level,
        }
        if network.stable_token_id:
            body["tokenId"] = network.stable_token_id
        else:
            body["blockchain"] = network.key
            body["tokenAddress"] = network.stable_token_address

        data = await self._request("POST", "/v1/w3s/developer/transactions/transfer", json=body)
        record = self._record(data, phase="transfer")
        logger.info(f"Submitted transfer {record.provider_tx_id} from {handle.wallet_id}")
        return record

    async def submit_contract_call(
        self,
        handle: WalletHandle,
        contract: str,
        function_signature: str,
        args: list[Any],
        idempotency_key: Optional[str] = None,
    ) -> TransactionRecord:
        data = await self._request(
            "POST",
            "/v1/w3s/developer/transactions/contractExecution",
            json={
                "idempotencyKey": idempotency_key or str(uuid.uuid4()),
                "entitySecretCiphertext": await self._entity_secret_ciphertext(),
                "walletId": handle.wallet_id,
                "contractAddress": contract,
                "abiFunctionSignature": function_signature,
                "abiParameters": _abi_value(list(args)),
                "feeLevel": self.fee_level,
            },
        )
        record = self._record(data, phase=function_signature.split("(", 1)[0])
        logger.info(
            f"Submitted {function_signature} on {contract}: {record.provider_tx_id}"
        )
        return record

    async def get_status(self, provider_tx_id: str) -> TransactionRecord:
        data = await self._request("GET", f"/v1/w3s/transactions/{provider_tx_id}")
        transaction = data.get("transaction") or {}
        if not transaction.get("id"):
            transaction = {**transaction, "id": provider_tx_id}
        return self._record(transaction)

    async def aclose(self) -> None:
        await self._client.aclose()
