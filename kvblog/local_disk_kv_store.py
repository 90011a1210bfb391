"""
Local disk implementation of the key-value store.

Stores each key as its own JSON file on the local filesystem.
Default location: state/<key>.json
"""
import os
import re
from typing import Optional

from kvblog.file_utils import load_text_file, save_text_file
from kvblog.kv_store import KeyValueStore

_SAFE_KEY = re.compile(r"^[A-Za-z0-9_.-]+$")


class LocalDiskKeyValueStore(KeyValueStore):
    """
    Local disk implementation of the key-value store.

    One file per key inside state_dir.
    """

    def __init__(self, state_dir: str = "state"):
        """
        Initialize local disk store.

        Args:
            state_dir: Directory for storing state files (default: "state")
        """
        self.state_dir = state_dir
        os.makedirs(self.state_dir, exist_ok=True)

    def _get_filepath(self, key: str) -> str:
        """Get the full file path for a key."""
        if not _SAFE_KEY.match(key) or key.startswith("."):
            raise ValueError(f"Invalid store key: {key!r}")
        return os.path.join(self.state_dir, f"{key}.json")

    def get(self, key: str) -> Optional[str]:
        """Read the file for a key, or None when it doesn't exist."""
        return load_text_file(self._get_filepath(key))

    def put(self, key: str, value: str) -> None:
        """Write the file for a key."""
        save_text_file(self._get_filepath(key), value, ensure_dir=False)

    def delete(self, key: str) -> bool:
        """Remove the file for a key."""
        filepath = self._get_filepath(key)
        if not os.path.exists(filepath):
            return False
        os.remove(filepath)
        return True
