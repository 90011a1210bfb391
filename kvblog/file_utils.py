"""
File utility functions for the blog.
Common file operations shared by the local disk store.
"""
import os
from datetime import datetime, timezone
from typing import Optional


def load_text_file(filepath: str, default: Optional[str] = None) -> Optional[str]:
    """
    Load a text file with a default fallback.

    Args:
        filepath: Path to the file
        default: Value returned if the file doesn't exist

    Returns:
        File contents or default value
    """
    if os.path.exists(filepath):
        with open(filepath, 'r', encoding='utf-8') as f:
            return f.read()
    return default


def save_text_file(filepath: str, content: str, ensure_dir: bool = True) -> None:
    """
    Save text to a file.

    The content is written to a sibling temporary file first and moved into
    place, so readers never observe a half-written value.

    Args:
        filepath: Path to save the file
        content: Text to save
        ensure_dir: Whether to create parent directory if it doesn't exist
    """
    if ensure_dir:
        os.makedirs(os.path.dirname(filepath), exist_ok=True)
    tmp_path = f"{filepath}.tmp"
    with open(tmp_path, 'w', encoding='utf-8') as f:
        f.write(content)
    os.replace(tmp_path, filepath)


def get_utc_timestamp() -> str:
    """
    Get current UTC timestamp in ISO format.

    Returns:
        ISO formatted timestamp string without +00:00 suffix
    """
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
