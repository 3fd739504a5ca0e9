"""Wallet directory: which provider wallet a user owns on each network."""

from abc import ABC, abstractmethod
from typing import Optional

from stablepago.wallet.base import WalletHandle


class WalletStore(ABC):
    """Lookup of WalletHandles keyed by (user, network)."""

    @abstractmethod
    async def get(self, user_id: int, network_key: str) -> Optional[WalletHandle]:
        raise NotImplementedError()

    @abstractmethod
    async def put(self, user_id: int, handle: WalletHandle) -> None:
        """Store a handle, superseding any previous one for that network."""
        raise NotImplementedError()

    @abstractmethod
    async def list_for_user(self, user_id: int) -> list[WalletHandle]:
        raise NotImplementedError()


class InMemoryWalletStore(WalletStore):
    """Process-local wallet directory."""

    def __init__(self):
        self._handles: dict[tuple[int, str], WalletHandle] = {}

    async def get(self, user_id: int, network_key: str) -> Optional[WalletHandle]:
        return self._handles.get((user_id, network_key.upper()))

    async def put(self, user_id: int, handle: WalletHandle) -> None:
        self._handles[(user_id, handle.network_key.upper())] = handle

    async def list_for_user(self, user_id: int) -> list[WalletHandle]:
        return [h for (uid, _), h in self._handles.items() if uid == user_id]
