"""
Factory function for creating key-value store backends.
"""
import os
from typing import Optional

from kvblog.kv_store import KeyValueStore
from kvblog.local_disk_kv_store import LocalDiskKeyValueStore
from kvblog.tigris_kv_store import TigrisKeyValueStore


def create_kv_store(state_dir: Optional[str] = None) -> KeyValueStore:
    """
    Create a key-value store based on environment configuration.

    Reads the BLOG_STORAGE_TYPE environment variable to determine
    which implementation to use:
    - 'local' or unset: LocalDiskKeyValueStore (default)
    - 'tigris': TigrisKeyValueStore

    Args:
        state_dir: Directory for local disk storage (defaults to the
            BLOG_STATE_DIR env var, then "state")

    Returns:
        KeyValueStore: Configured store instance
    """
    storage_type = os.getenv('BLOG_STORAGE_TYPE', 'local').lower()

    if storage_type == 'tigris':
        return TigrisKeyValueStore(prefix=os.getenv('TIGRIS_KEY_PREFIX', 'blog/'))
    else:
        # Default to local disk storage
        return LocalDiskKeyValueStore(state_dir=state_dir or os.getenv('BLOG_STATE_DIR', 'state'))
