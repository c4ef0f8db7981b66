"""Authentication state and session persistence."""

import logging
from typing import Optional

from pydantic import ValidationError

from .models import SessionData, User
from .storage import KeyValueStorage

logger = logging.getLogger(__name__)

SESSION_KEY = "session"


class AuthManager:
    """Manages the bearer token and the logged-in user's profile."""

    def __init__(self, storage: KeyValueStorage, key: str = SESSION_KEY) -> None:
        """
        Initialize the authentication manager.

        Args:
            storage: Where the session is persisted between runs
            key: Storage key for the session document
        """
        self.storage = storage
        self.key = key
        self.session: SessionData = self._load_session()

    def _load_session(self) -> SessionData:
        """Load session data from storage if present."""
        data = self.storage.get(self.key)
        if not data:
            return SessionData()
        try:
            session = SessionData.model_validate(data)
        except ValidationError as e:
            # Corrupted session, start fresh
            logger.warning(f"Discarding stored session: {e}")
            return SessionData()
        if session.token:
            logger.info("Loaded existing session")
        return session

    def _save_session(self) -> None:
        self.storage.set(self.key, self.session.model_dump(mode="json", by_alias=True))

    def save_session(self, token: str, user: Optional[User] = None) -> None:
        """
        Save an authenticated session.

        Args:
            token: Bearer access token returned by the API
            user: Profile of the logged-in user, if known
        """
        self.session = SessionData(token=token, user=user, is_authenticated=True)
        self._save_session()

    def set_user(self, user: Optional[User]) -> None:
        """Replace the cached profile, keeping the token."""
        self.session.user = user
        self._save_session()

    def clear_session(self) -> None:
        """Drop the token and profile."""
        self.session = SessionData()
        self.storage.delete(self.key)
        logger.info("Session cleared")

    def is_authenticated(self) -> bool:
        """Check if there's an active authenticated session."""
        return self.session.is_authenticated and bool(self.session.token)

    def get_token(self) -> Optional[str]:
        return self.session.token

    @property
    def user(self) -> Optional[User]:
        return self.session.user
