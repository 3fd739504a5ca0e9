"""Utility modules for StablePago."""

from stablepago.utils.locks import LockTimeoutError, get_user_lock, user_lock

__all__ = ["LockTimeoutError", "get_user_lock", "user_lock"]
