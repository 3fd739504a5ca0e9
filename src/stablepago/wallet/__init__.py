"""Programmable wallet providers."""

from stablepago.wallet.base import TransactionRecord, TxState, WalletHandle, WalletProvider

__all__ = ["TransactionRecord", "TxState", "WalletHandle", "WalletProvider"]
