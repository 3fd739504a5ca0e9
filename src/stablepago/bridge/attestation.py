"""Circle Iris attestation client.

The attestation service is eventually consistent: a burn becomes visible a
while after it confirms, then moves from pending to complete once the
attestors have signed it.
"""

import asyncio
import logging
import secrets
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

import httpx

from stablepago.errors import AttestationTimeout, ProviderError

logger = logging.getLogger(__name__)

SleepFunc = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class Attestation:
    """Signed proof of a burn, required to mint on the destination."""

    source_domain: int
    tx_hash: str
    message: str
    signature: str


class AttestationSource(ABC):
    """Base class for attestation lookups with a shared bounded wait."""

    def __init__(
        self,
        max_attempts: int = 30,
        interval: float = 10.0,
        sleep: SleepFunc = asyncio.sleep,
    ):
        self.max_attempts = max_attempts
        self.interval = interval
        self._sleep = sleep

    @abstractmethod
    async def fetch_attestation(self, source_domain: int, tx_hash: str) -> Optional[Attestation]:
        """Single lookup. Returns None while the attestation is not complete."""
        raise NotImplementedError()

    async def wait_for_attestation(self, source_domain: int, tx_hash: str) -> Attestation:
        """Poll at a fixed interval until the attestation is complete.

        Raises:
            AttestationTimeout: Not complete after ``max_attempts`` lookups
            ProviderError: The service rejected a lookup
        """
        for attempt in range(1, self.max_attempts + 1):
            attestation = await self.fetch_attestation(source_domain, tx_hash)
            if attestation is not None:
                logger.info(f"Attestation for {tx_hash} ready after {attempt} attempt(s)")
                return attestation

            if attempt < self.max_attempts:
                logger.debug(
                    f"Attestation for {tx_hash} pending ({attempt}/{self.max_attempts})"
                )
                await self._sleep(self.interval)

        logger.warning(f"Attestation for {tx_hash} not ready after {self.max_attempts} attempts")
        raise AttestationTimeout(source_domain, tx_hash, self.max_attempts)

    async def aclose(self) -> None:
        return None


class AttestationClient(AttestationSource):
    """Iris V2 client: GET {base}/v2/messages/{domain}?transactionHash=..."""

    def __init__(
        self,
        base_url: str = "https://iris-api-sandbox.circle.com",
        api_key: Optional[str] = None,
        max_attempts: int = 30,
        interval: float = 10.0,
        sleep: SleepFunc = asyncio.sleep,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(max_attempts=max_attempts, interval=interval, sleep=sleep)
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self._client = client or httpx.AsyncClient(timeout=15.0)

    async def fetch_attestation(self, source_domain: int, tx_hash: str) -> Optional[Attestation]:
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
        try:
            response = await self._client.get(
                f"{self.base_url}/v2/messages/{source_domain}",
                params={"transactionHash": tx_hash},
                headers=headers,
            )
        except httpx.HTTPError as e:
            raise ProviderError(f"Attestation service unreachable: {e}") from e

        # Burn not indexed yet
        if response.status_code == 404:
            return None

        if response.status_code >= 400:
            raise ProviderError(
                f"Attestation service returned HTTP {response.status_code}",
                status_code=response.status_code,
                payload=response.text,
            )

        try:
            payload = response.json()
        except ValueError:
            raise ProviderError("Attestation service returned invalid JSON")
        if not isinstance(payload, dict):
            raise ProviderError(
                "Attestation service returned an unexpected payload",
                status_code=response.status_code,
                payload=payload,
            )

        messages = payload.get("messages") or []
        if not messages:
            return None

        entry = messages[0]
        if not isinstance(entry, dict):
            raise ProviderError(
                "Attestation service returned an unexpected message entry",
                status_code=response.status_code,
                payload=payload,
            )
        message = entry.get("message")
        signature = entry.get("attestation")
        if (
            entry.get("status") != "complete"
            or not message
            or not signature
            or signature == "PENDING"
        ):
            return None

        return Attestation(
            source_domain=source_domain,
            tx_hash=tx_hash,
            message=message,
            signature=signature,
        )

    async def aclose(self) -> None:
        await self._client.aclose()


class DryRunAttestationClient(AttestationSource):
    """Simulated attestor: completes after ``ready_after`` lookups.

    ``ready_after=None`` never completes.
    """

    def __init__(
        self,
        ready_after: Optional[int] = 1,
        max_attempts: int = 30,
        interval: float = 10.0,
        sleep: SleepFunc = asyncio.sleep,
    ):
        super().__init__(max_attempts=max_attempts, interval=interval, sleep=sleep)
        self.ready_after = ready_after
        self.lookups: list[tuple[int, str]] = []

    async def fetch_attestation(self, source_domain: int, tx_hash: str) -> Optional[Attestation]:
        self.lookups.append((source_domain, tx_hash))
        seen = sum(1 for lookup in self.lookups if lookup == (source_domain, tx_hash))
        if self.ready_after is None or seen < self.ready_after:
            return None
        return Attestation(
            source_domain=source_domain,
            tx_hash=tx_hash,
            message="0x" + secrets.token_hex(120),
            signature="0x" + secrets.token_hex(65),
        )
