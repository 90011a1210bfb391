"""
Administrator accounts stored as a single list under SYSTEM_ADMINS.

Passwords are stored and compared in plaintext. This is a known weakness
kept for compatibility with existing stores; never expose the raw records
outside this module, use public_view() instead.
"""
import hmac
import logging
import uuid
from typing import Any, Dict, List, Optional

from kvblog.exceptions import NotFoundError, ValidationError
from kvblog.file_utils import get_utc_timestamp
from kvblog.kv_accessor import KeyValueAccessor

logger = logging.getLogger(__name__)

ADMINS_KEY = "SYSTEM_ADMINS"

ROLE_ADMIN = "admin"
ROLE_SUPERADMIN = "superadmin"
ROLES = (ROLE_ADMIN, ROLE_SUPERADMIN)

STATUS_ACTIVE = "active"

EDITABLE_FIELDS = ("username", "password", "email", "role", "status")
PUBLIC_FIELDS = ("id", "username", "email", "role", "status", "createdAt", "lastLogin")

DEFAULT_USERNAME = "admin"
DEFAULT_PASSWORD = "admin"


def public_view(admin: Dict[str, Any]) -> Dict[str, Any]:
    """Return an admin record without its password."""
    return {field: admin.get(field) for field in PUBLIC_FIELDS}


def merge_admin_update(existing: Dict[str, Any], updates: Dict[str, Any]) -> Dict[str, Any]:
    """
    Apply caller-supplied editable fields onto an admin record.

    The identifier is always kept, and an empty password leaves the stored
    one unchanged.
    """
    merged = dict(existing)
    for field in EDITABLE_FIELDS:
        if field not in updates:
            continue
        if field == "password" and not updates[field]:
            continue
        merged[field] = updates[field]
    merged["id"] = existing["id"]
    return merged


class AdminDirectory:
    """CRUD and credential checks over the administrator list."""

    def __init__(self, accessor: KeyValueAccessor):
        self.accessor = accessor

    def list_admins(self) -> List[Dict[str, Any]]:
        admins = self.accessor.get_json(ADMINS_KEY)
        if not isinstance(admins, list):
            return []
        return [a for a in admins if isinstance(a, dict)]

    def get_by_id(self, admin_id: str) -> Optional[Dict[str, Any]]:
        return next((a for a in self.list_admins() if a.get("id") == admin_id), None)

    def get_by_username(self, username: str) -> Optional[Dict[str, Any]]:
        return next((a for a in self.list_admins() if a.get("username") == username), None)

    def save_admin(self, admin: Dict[str, Any]) -> str:
        """Insert or replace an admin record by id; returns the id."""
        admins = self.list_admins()
        for i, existing in enumerate(admins):
            if existing.get("id") == admin["id"]:
                admins[i] = admin
                break
        else:
            admins.append(admin)
        self.accessor.put_json(ADMINS_KEY, admins)
        return admin["id"]

    def delete_admin(self, admin_id: str) -> bool:
        """Remove an admin; returns False if none had this id."""
        admins = self.list_admins()
        remaining = [a for a in admins if a.get("id") != admin_id]
        if len(remaining) == len(admins):
            return False
        self.accessor.put_json(ADMINS_KEY, remaining)
        return True

    def create_admin(
        self,
        username: str,
        password: str,
        email: str,
        role: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Create a new active admin.

        Raises:
            ValidationError: On missing fields, unknown role or taken username
        """
        if not username or not password or not email:
            raise ValidationError("Username, password, and email are required")
        role = role or ROLE_ADMIN
        if role not in ROLES:
            raise ValidationError(f"Invalid role: {role}")
        if self.get_by_username(username):
            raise ValidationError("Username already exists")

        admin = {
            "id": uuid.uuid4().hex,
            "username": username,
            "password": password,
            "email": email,
            "role": role,
            "status": STATUS_ACTIVE,
            "createdAt": get_utc_timestamp(),
            "lastLogin": None,
        }
        self.save_admin(admin)
        logger.info("Created admin %s with role %s", username, role)
        return admin

    def update_admin(self, admin_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        """
        Apply a partial update to an admin.

        Raises:
            NotFoundError: If no admin has this id
            ValidationError: On unknown role or a username taken by someone else
        """
        existing = self.get_by_id(admin_id)
        if existing is None:
            raise NotFoundError("Admin not found")

        updated = merge_admin_update(existing, updates)
        if updated.get("role") not in ROLES:
            raise ValidationError(f"Invalid role: {updated.get('role')}")
        if not updated.get("username"):
            raise ValidationError("Username is required")
        other = self.get_by_username(updated["username"])
        if other is not None and other.get("id") != admin_id:
            raise ValidationError("Username already exists")

        self.save_admin(updated)
        return updated

    def verify(self, username: str, password: str) -> Optional[Dict[str, Any]]:
        """
        Check credentials.

        Returns:
            The admin record if the password matches and the account is
            active, otherwise None
        """
        admin = self.get_by_username(username)
        if admin is None:
            return None
        stored = str(admin.get("password") or "")
        if not hmac.compare_digest(stored.encode("utf-8"), password.encode("utf-8")):
            return None
        if admin.get("status") == STATUS_ACTIVE:
            return admin
        return None

    def ensure_default_admin(self) -> Optional[Dict[str, Any]]:
        """
        Seed a superadmin with default credentials when no admin exists.

        Returns:
            The created admin, or None if admins already exist
        """
        if self.list_admins():
            return None
        admin = self.create_admin(
            DEFAULT_USERNAME, DEFAULT_PASSWORD, "admin@example.com", role=ROLE_SUPERADMIN
        )
        logger.warning(
            "Created default admin '%s' with the default password; change it immediately",
            DEFAULT_USERNAME,
        )
        return admin
