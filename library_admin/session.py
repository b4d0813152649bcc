"""Current-session identity and the admin access gate."""
import logging
from dataclasses import dataclass
from typing import Optional, Any

from library_admin.client import LibraryStoreClient, StoreError
from library_admin.models import User
from library_admin.parse import parse_user

logger = logging.getLogger(__name__)

ACCESS_DENIED_MESSAGE = "Access to the administrator panel denied"


class AccessDenied(PermissionError):
    """Raised when a non-admin session reaches the admin mutation surface."""

    def __init__(self, message: str = ACCESS_DENIED_MESSAGE):
        super().__init__(message)


@dataclass
class Session:
    """Identity of whoever is looking at the screen. ``user`` is None when anonymous."""
    user: Optional[User] = None

    @property
    def role(self) -> Optional[str]:
        return self.user.role if self.user else None

    def is_admin(self, admin_role: str = "Admin") -> bool:
        """Rendering guard only; the API has to enforce authorization itself."""
        return self.role == admin_role


def load_session(client: LibraryStoreClient, user_id: Any) -> Session:
    """
    Resolve the session user through ``GET /users/{id}``.

    Args:
        client: Blocking store client
        user_id: Identity of the signed-in user, or None

    Returns:
        Session; anonymous if the id is missing or the lookup fails
    """
    if user_id is None or user_id == "":
        logger.info("No session user configured")
        return Session()

    try:
        item = client.get("users", user_id)
    except StoreError as e:
        logger.error(f"Error resolving session user {user_id}: {e}")
        return Session()

    user = parse_user(item) if isinstance(item, dict) else None
    return Session(user)
