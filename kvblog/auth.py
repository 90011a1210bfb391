"""
HTTP Basic authentication against the admin directory.
"""
import base64
import binascii
from typing import Any, Dict, Optional, Tuple

from kvblog.admin_directory import ROLE_SUPERADMIN, AdminDirectory

REALM = 'Basic realm="Blog Admin", charset="UTF-8"'


def parse_basic_auth(header: Optional[str]) -> Optional[Tuple[str, str]]:
    """
    Extract credentials from an Authorization header.

    Args:
        header: Authorization header value, e.g. "Basic YWRtaW46YWRtaW4="

    Returns:
        (username, password), or None if the header is missing or malformed
    """
    if not header or not header.startswith("Basic "):
        return None
    try:
        decoded = base64.b64decode(header[6:].strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None
    if ":" not in decoded:
        return None
    username, password = decoded.split(":", 1)
    return username, password


def authenticate(directory: AdminDirectory, header: Optional[str]) -> Optional[Dict[str, Any]]:
    """Return the active admin matching the header's credentials, if any."""
    credentials = parse_basic_auth(header)
    if credentials is None:
        return None
    return directory.verify(*credentials)


def is_superadmin(admin: Optional[Dict[str, Any]]) -> bool:
    return bool(admin) and admin.get("role") == ROLE_SUPERADMIN
