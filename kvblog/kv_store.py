"""
Abstract interface for key-value store backends.

Defines raw text get/put/delete against an external associative store.
Implementations can store values locally or in distributed storage
(Tigris/S3), so every process serving the blog sees the same data.
"""
from abc import ABC, abstractmethod
from typing import Dict, Iterable, Optional


class KeyValueStore(ABC):
    """Abstract base class for key-value store backends."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """
        Get the raw value stored under a key.

        Args:
            key: Store key

        Returns:
            Stored text, or None if the key does not exist.
        """

    @abstractmethod
    def put(self, key: str, value: str) -> None:
        """
        Store a raw value under a key, replacing any previous value.

        Args:
            key: Store key
            value: Text to store
        """

    @abstractmethod
    def delete(self, key: str) -> bool:
        """
        Delete a key.

        Args:
            key: Store key

        Returns:
            True if the key existed, False otherwise.
        """

    def get_many(self, keys: Iterable[str]) -> Dict[str, str]:
        """
        Get several keys at once.

        Backends that can issue reads in parallel override this.

        Args:
            keys: Store keys

        Returns:
            Mapping of key to value for the keys that exist.
        """
        results = {}
        for key in keys:
            value = self.get(key)
            if value is not None:
                results[key] = value
        return results
