"""Abstract interface for the persistent key-value store."""

from typing import Protocol


class KeyValueStore(Protocol):
    """String key-value storage used for mistake counts and run history.

    Values are opaque strings (the engine stores JSON). Reads of a missing
    key return None.
    """

    def get(self, key: str) -> str | None:
        """Return the stored value or None."""
        ...

    def set(self, key: str, value: str) -> None:
        """
        Store ``value`` under ``key``.

        Raises:
            StorageError: If the value cannot be persisted
        """
        ...

    def remove(self, key: str) -> None:
        """Delete ``key``. Missing keys are ignored."""
        ...
