"""Key-value persistence for client-side state (cart, session)."""

import json
import logging
import os
from pathlib import Path
from typing import Any, Optional, Protocol

logger = logging.getLogger(__name__)


class KeyValueStorage(Protocol):
    """Minimal storage port used by the cart store and auth manager."""

    def get(self, key: str) -> Optional[Any]: ...

    def set(self, key: str, value: Any) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryStorage:
    """Storage kept in process memory only."""

    def __init__(self) -> None:
        self._data: dict[str, Any] = {}

    def get(self, key: str) -> Optional[Any]:
        return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStorage:
    """Stores all keys in a single JSON document on disk."""

    def __init__(self, path: Optional[str] = None) -> None:
        """
        Initialize file storage.

        Args:
            path: JSON file to use. Defaults to ~/.angostura_state.json
        """
        if path is None:
            path = str(Path.home() / ".angostura_state.json")
        self.path = path
        self._data: dict[str, Any] = self._load()

    def _load(self) -> dict[str, Any]:
        """Load the state file, starting fresh if it is missing or corrupted."""
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Could not load state from {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring unexpected state format in {self.path}")
            return {}
        return data

    def _flush(self) -> None:
        with open(self.path, "w") as f:
            json.dump(self._data, f, indent=2, default=str)
        # State holds the bearer token
        os.chmod(self.path, 0o600)

    def get(self, key: str) -> Optional[Any]:
        return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value
        self._flush()

    def delete(self, key: str) -> None:
        if key in self._data:
            del self._data[key]
            self._flush()
