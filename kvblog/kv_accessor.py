"""
JSON access layer over a key-value store backend.

Reads are contained: a failing or unparseable read is logged and reported
as a missing value. Writes and deletes raise StoreError so callers can
report them.
"""
import json
import logging
from typing import Any, Dict, Iterable, Optional

from kvblog.exceptions import StoreError
from kvblog.kv_store import KeyValueStore

logger = logging.getLogger(__name__)


class KeyValueAccessor:
    """Wraps a KeyValueStore with JSON (de)serialization and error containment."""

    def __init__(self, store: KeyValueStore):
        """
        Initialize the accessor.

        Args:
            store: Backend holding the raw values
        """
        self.store = store

    def get_text(self, key: str) -> Optional[str]:
        """
        Get the raw text stored under key.

        Returns:
            Stored text, or None when missing or unreadable
        """
        try:
            return self.store.get(key)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            logger.error("Error getting key %s: %s", key, exc)
            return None

    def get_json(self, key: str) -> Optional[Any]:
        """
        Get and decode the JSON value stored under key.

        Returns:
            Decoded value, or None when missing, unreadable or not valid JSON
        """
        text = self.get_text(key)
        if not text:
            return None
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            logger.error("Error decoding key %s: %s", key, exc)
            return None

    def get_many_json(self, keys: Iterable[str]) -> Dict[str, Any]:
        """
        Get and decode several keys at once.

        Keys that are missing or undecodable are left out of the result.
        """
        keys = list(keys)
        if not keys:
            return {}
        try:
            raw = self.store.get_many(keys)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            logger.error("Error in batch get of %d keys: %s", len(keys), exc)
            return {}

        results = {}
        for key, text in raw.items():
            try:
                results[key] = json.loads(text)
            except (TypeError, json.JSONDecodeError) as exc:
                logger.error("Error decoding key %s: %s", key, exc)
        return results

    def put_json(self, key: str, value: Any) -> None:
        """
        Encode value as JSON and store it under key.

        Raises:
            StoreError: If the backend rejects the write
        """
        try:
            self.store.put(key, json.dumps(value, ensure_ascii=False))
        except Exception as exc:
            logger.error("Error putting key %s: %s", key, exc)
            raise StoreError(f"Failed to save data: {exc}") from exc

    def delete(self, key: str) -> bool:
        """
        Delete key.

        Returns:
            True if the key existed

        Raises:
            StoreError: If the backend rejects the delete
        """
        try:
            return self.store.delete(key)
        except Exception as exc:
            logger.error("Error deleting key %s: %s", key, exc)
            raise StoreError(f"Failed to delete data: {exc}") from exc
