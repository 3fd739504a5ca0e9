"""Error taxonomy for the orchestration engine.

Every error carries a ``user_message`` that channels can show verbatim.
Orchestrators attach the partial run result to ``result`` before re-raising,
so callers always learn which irreversible phases already completed.
"""

from typing import Any, Optional


class StablePagoError(Exception):
    """Base class for all engine errors."""

    def __init__(self, message: str, user_message: Optional[str] = None):
        super().__init__(message)
        self.user_message = user_message or message
        self.result: Any = None


# ======================
# Validation (never retried)
# ======================


class ValidationError(StablePagoError):
    """An intent or parameter failed shape/bounds checks."""


class InvalidAmount(ValidationError):
    def __init__(self, amount: Any, reason: str = "must be a positive decimal number"):
        self.amount = amount
        super().__init__(
            f"Invalid amount {amount!r}: {reason}",
            f"💰 Invalid amount: {amount} ({reason}).",
        )


class InvalidAddress(ValidationError):
    def __init__(self, address: Any, network_key: str):
        self.address = address
        self.network_key = network_key
        super().__init__(
            f"Invalid address {address!r} for {network_key}",
            f"📍 Invalid wallet address for {network_key}: {address}",
        )


class AmountLimitExceeded(ValidationError):
    def __init__(self, amount: Any, limit: Any, asset: str):
        self.amount = amount
        self.limit = limit
        self.asset = asset
        super().__init__(
            f"Amount {amount} {asset} exceeds limit {limit}",
            f"💰 Amount exceeds maximum limit of {limit} {asset}. Please use a smaller amount.",
        )


class UnknownNetwork(ValidationError):
    def __init__(self, key: Any, known: Optional[list[str]] = None):
        self.key = key
        self.known = known or []
        hint = f" Available: {', '.join(self.known)}" if self.known else ""
        super().__init__(f"Unknown network {key!r}", f"🌐 Unknown network: {key}.{hint}")


class BridgeNotSupported(ValidationError):
    def __init__(self, network_key: str):
        self.network_key = network_key
        super().__init__(
            f"Cross-chain transfers are not supported on {network_key}",
            f"🌉 Cross-chain transfers are not available on {network_key}.",
        )


class SwapNotSupported(ValidationError):
    def __init__(self, network_key: str):
        self.network_key = network_key
        super().__init__(
            f"Swaps are not supported on {network_key}",
            f"💱 Swaps are not available on {network_key}.",
        )


class SameNetworkTransfer(ValidationError):
    def __init__(self, network_key: str):
        self.network_key = network_key
        super().__init__(
            f"Source and destination network are both {network_key}",
            f"🌉 You are already on {network_key}. Use /send for same-network transfers.",
        )


class InvalidSlippage(ValidationError):
    def __init__(self, slippage_bps: Any, maximum: int):
        self.slippage_bps = slippage_bps
        self.maximum = maximum
        super().__init__(
            f"Slippage {slippage_bps} bps outside 0..{maximum}",
            f"⚠️ Slippage must be between 0 and {maximum} basis points.",
        )


class InvalidDeadline(ValidationError):
    def __init__(self, minutes: Any):
        self.minutes = minutes
        super().__init__(
            f"Deadline {minutes} minutes outside 1..1440",
            "⚠️ Swap deadline must be between 1 and 1440 minutes.",
        )


class UnsupportedAsset(ValidationError):
    def __init__(self, asset: str, network_key: str, supported: list[str]):
        self.asset = asset
        self.network_key = network_key
        self.supported = supported
        super().__init__(
            f"Unsupported asset {asset} on {network_key}",
            f"❌ Unsupported token: {asset}\n"
            f"Supported tokens on {network_key}: {', '.join(supported)}",
        )


class LowConfidence(ValidationError):
    def __init__(self, confidence: float, threshold: float):
        self.confidence = confidence
        self.threshold = threshold
        super().__init__(
            f"Intent confidence {confidence:.2f} below threshold {threshold:.2f}",
            "❓ I'm not sure I understood correctly. Could you try again or use text commands?",
        )


class ProhibitedContent(ValidationError):
    def __init__(self):
        super().__init__(
            "Intent text contains secret material",
            "🚫 Your message contains sensitive information. "
            "Please don't share private keys or passwords.",
        )


class MissingParameter(ValidationError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Missing parameter: {name}", f"⚠️ Missing parameter: {name}")


# ======================
# Wallets
# ======================


class WalletNotFound(StablePagoError):
    def __init__(self, network_key: str):
        self.network_key = network_key
        super().__init__(
            f"No wallet on {network_key}",
            f"No wallet found for {network_key}. Create one with /createWallet",
        )


class DestinationWalletMissing(StablePagoError):
    def __init__(self, network_key: str):
        self.network_key = network_key
        super().__init__(
            f"No destination wallet on {network_key}",
            f"No wallet found for {network_key}. Create one there first with /createWallet",
        )


# ======================
# Provider and chain
# ======================


class ProviderError(StablePagoError):
    """The wallet, attestation or router service rejected a call."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        payload: Any = None,
    ):
        self.status_code = status_code
        self.payload = payload
        super().__init__(message, f"❌ Provider error: {message}")


class ConfirmationTimeout(StablePagoError):
    def __init__(self, provider_tx_id: str, attempts: int = 0):
        self.provider_tx_id = provider_tx_id
        self.attempts = attempts
        super().__init__(
            f"Timeout waiting for tx {provider_tx_id} to confirm",
            f"⏳ Transaction {provider_tx_id} is still pending. "
            f"Check its status again later; it will not be re-submitted.",
        )


class AttestationTimeout(StablePagoError):
    def __init__(self, source_domain: int, tx_hash: str, attempts: int = 0):
        self.source_domain = source_domain
        self.tx_hash = tx_hash
        self.attempts = attempts
        super().__init__(
            f"Timeout waiting for attestation of {tx_hash} (domain {source_domain})",
            "⏳ The burn is confirmed but the attestation is not ready yet. "
            "Funds are in flight; the transfer can be resumed without burning again.",
        )


class TransactionFailed(StablePagoError):
    def __init__(self, provider_tx_id: str, reason: Optional[str] = None):
        self.provider_tx_id = provider_tx_id
        self.reason = reason
        detail = f": {reason}" if reason else ""
        super().__init__(
            f"Transaction {provider_tx_id} failed{detail}",
            f"❌ Transaction {provider_tx_id} failed on-chain{detail}",
        )


class SwapFailed(StablePagoError):
    """Execute phase of a swap failed; ``kind`` is a best-effort classification."""

    def __init__(self, kind: Any, suggestion: str, detail: str):
        self.kind = kind
        self.suggestion = suggestion
        self.detail = detail
        super().__init__(f"Swap failed ({kind}): {detail}", suggestion)
